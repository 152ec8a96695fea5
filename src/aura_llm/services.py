"""External systems the tools act on.

The reminder list and the notification center live outside this package; the
tool executor only talks to them through the two protocols below. The
in-memory implementations stand in for them in tests and the example.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Protocol

from aura_llm.errors import ToolExecutionError


class PermissionDeniedError(ToolExecutionError):
    """The user has not granted access to the external system."""


class SaveFailedError(ToolExecutionError):
    """The external system refused to store the item."""


class ReminderStore(Protocol):
    async def create_reminder(self, title: str, due_date: datetime | None, notes: str | None) -> None:
        ...


class NotificationScheduler(Protocol):
    async def schedule_notification(self, title: str, body: str, delay_s: float) -> str:
        """Schedule a notification and return its identifier."""
        ...


@dataclass(frozen=True)
class Reminder:
    title: str
    due_date: datetime | None = None
    notes: str | None = None


@dataclass(frozen=True)
class ScheduledNotification:
    identifier: str
    title: str
    body: str
    delay_s: float


@dataclass
class InMemoryReminderStore:
    granted: bool = True
    reminders: list[Reminder] = field(default_factory=list)

    async def create_reminder(self, title: str, due_date: datetime | None, notes: str | None) -> None:
        if not self.granted:
            raise PermissionDeniedError(
                "Access to Reminders was denied. Please enable it in System Settings."
            )
        self.reminders.append(Reminder(title=title, due_date=due_date, notes=notes))


@dataclass
class InMemoryNotificationScheduler:
    granted: bool = True
    scheduled: list[ScheduledNotification] = field(default_factory=list)

    async def schedule_notification(self, title: str, body: str, delay_s: float) -> str:
        if not self.granted:
            raise PermissionDeniedError(
                "Notification permission was denied. Please enable notifications in System Settings."
            )
        identifier = f"aura_notification_{uuid.uuid4()}"
        self.scheduled.append(
            ScheduledNotification(identifier=identifier, title=title, body=body, delay_s=max(1.0, delay_s))
        )
        return identifier

"""Tool catalog and the executor that turns completed tool calls into messages."""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from aura_llm.aggregator import ToolCallBuffer
from aura_llm.errors import ToolExecutionError, ToolParseError
from aura_llm.services import NotificationScheduler, ReminderStore
from aura_llm.types import ToolDef

SUCCESS = "✅"
FAILURE = "❌"
WARNING = "⚠️"

CREATE_REMINDER = ToolDef(
    name="create_reminder",
    description=(
        "Create a reminder in the user's Reminders app. Use this when the user asks "
        "to be reminded about something, optionally at a specific date and time."
    ),
    json_schema={
        "type": "object",
        "properties": {
            "title": {
                "type": "string",
                "description": "What to remind the user about.",
            },
            "due_date": {
                "type": "string",
                "description": "When the reminder is due, as an ISO 8601 timestamp with UTC offset.",
            },
            "notes": {
                "type": "string",
                "description": "Optional extra details.",
            },
        },
        "required": ["title"],
    },
)

SCHEDULE_NOTIFICATION = ToolDef(
    name="schedule_notification",
    description=(
        "Show a desktop notification after a delay or at a given time. Use this for "
        "short-term alerts such as 'ping me in 5 minutes'."
    ),
    json_schema={
        "type": "object",
        "properties": {
            "title": {
                "type": "string",
                "description": "Notification title.",
            },
            "body": {
                "type": "string",
                "description": "Notification body text.",
            },
            "delay_seconds": {
                "type": "number",
                "description": "Seconds from now until the notification appears.",
            },
            "fire_date": {
                "type": "string",
                "description": "Absolute ISO 8601 time for the notification, used when delay_seconds is absent.",
            },
        },
        "required": ["title"],
    },
)

TOOL_CATALOG: tuple[ToolDef, ...] = (CREATE_REMINDER, SCHEDULE_NOTIFICATION)


class ReminderArgs(BaseModel):
    title: str = Field(min_length=1)
    due_date: str | None = None
    notes: str | None = None


class NotificationArgs(BaseModel):
    title: str = Field(min_length=1)
    body: str | None = None
    delay_seconds: float | None = Field(default=None, ge=0)
    fire_date: str | None = None


def parse_due_date(value: str, now: datetime) -> datetime | None:
    """Parse a model-supplied date.

    Accepts ISO 8601 (with or without fraction, ``Z`` or an offset), a bare date,
    and bare times such as ``17:00``, ``5:30pm`` or ``5pm``. Bare times that have
    already passed today are moved to tomorrow. Naive results take ``now``'s zone.
    """
    text = value.strip()
    if not text:
        return None

    iso = text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text
    try:
        parsed = datetime.fromisoformat(iso)
    except ValueError:
        pass
    else:
        return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=now.tzinfo)

    compact = text.lower().replace(" ", "")
    for fmt in ("%H:%M", "%I:%M%p", "%I%p"):
        try:
            clock = datetime.strptime(compact, fmt)
        except ValueError:
            continue
        candidate = now.replace(hour=clock.hour, minute=clock.minute, second=0, microsecond=0)
        if candidate < now:
            candidate += timedelta(days=1)
        return candidate

    return None


def format_datetime(moment: datetime) -> str:
    """Medium date, short time: ``Oct 17, 2026 at 3:05 PM``."""
    hour = moment.hour % 12 or 12
    meridiem = "AM" if moment.hour < 12 else "PM"
    return f"{moment:%b} {moment.day}, {moment.year} at {hour}:{moment:%M} {meridiem}"


def format_delay(seconds: float) -> str:
    total = max(1, round(seconds))
    if total < 60:
        return f"{total} second{'s' if total != 1 else ''}"
    minutes = round(total / 60)
    if minutes < 60:
        return f"{minutes} minute{'s' if minutes != 1 else ''}"
    hours, minutes = divmod(minutes, 60)
    text = f"{hours} hour{'s' if hours != 1 else ''}"
    if minutes:
        text += f" {minutes} minute{'s' if minutes != 1 else ''}"
    return text


@dataclass(frozen=True)
class _Binding:
    args_model: type[BaseModel]
    label: str
    action: str
    handler: Callable[[Any], Awaitable[str]]


class ToolExecutor:
    """Runs one completed tool call at a time and reports the outcome as text.

    Nothing raised by the external systems escapes ``execute``; every outcome is
    a short string prefixed with a success, failure or warning marker.
    """

    _logger = logging.getLogger(__name__)

    def __init__(
        self,
        reminders: ReminderStore,
        notifications: NotificationScheduler,
        *,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self._reminders = reminders
        self._notifications = notifications
        self._now = now or (lambda: datetime.now().astimezone())
        self._bindings: dict[str, _Binding] = {
            CREATE_REMINDER.name: _Binding(
                ReminderArgs, "reminder", "create reminder", self._create_reminder
            ),
            SCHEDULE_NOTIFICATION.name: _Binding(
                NotificationArgs, "notification", "schedule notification", self._schedule_notification
            ),
        }

    async def execute(self, call: ToolCallBuffer) -> str:
        binding = self._bindings.get(call.name)
        if binding is None:
            self._logger.warning("Model requested unknown tool %r", call.name)
            return f"{WARNING} Unknown tool: {call.name or '(unnamed)'}"

        try:
            args = self._parse_arguments(call, binding.args_model)
        except ToolParseError as exc:
            self._logger.debug("Could not parse tool arguments: %s", exc)
            return f"{FAILURE} Failed to parse {binding.label} details."

        self._logger.info("Executing tool %s (call %s)", call.name, call.id or call.index)
        try:
            return await binding.handler(args)
        except ToolExecutionError as exc:
            return f"{FAILURE} {exc}"
        except Exception as exc:  # noqa: BLE001
            self._logger.exception("Tool %s failed", call.name)
            return f"{FAILURE} Failed to {binding.action}: {exc}"

    @staticmethod
    def _parse_arguments(call: ToolCallBuffer, model: type[BaseModel]) -> BaseModel:
        raw = call.arguments_text.strip() or "{}"
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ToolParseError(call.name, f"invalid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise ToolParseError(call.name, "arguments are not a JSON object")
        try:
            return model.model_validate(data)
        except ValidationError as exc:
            raise ToolParseError(call.name, str(exc)) from exc

    async def _create_reminder(self, args: ReminderArgs) -> str:
        now = self._now()
        due: datetime | None = None
        if args.due_date:
            due = parse_due_date(args.due_date, now)
            if due is None:
                raise ToolExecutionError("Could not parse the reminder date.")

        await self._reminders.create_reminder(args.title, due, args.notes or None)

        message = f'{SUCCESS} Created reminder: "{args.title}"'
        if due is not None:
            message += f" for {format_datetime(due.astimezone(now.tzinfo))}"
        return message

    async def _schedule_notification(self, args: NotificationArgs) -> str:
        now = self._now()
        if args.delay_seconds is not None:
            delay = args.delay_seconds
        elif args.fire_date:
            fire_at = parse_due_date(args.fire_date, now)
            if fire_at is None:
                raise ToolExecutionError("Could not parse the notification time.")
            delay = (fire_at - now).total_seconds()
        else:
            raise ToolExecutionError("No delay or time given for the notification.")
        delay = max(1.0, delay)

        await self._notifications.schedule_notification(args.title, args.body or "", delay)
        return f'{SUCCESS} Scheduled notification: "{args.title}" in {format_delay(delay)}'

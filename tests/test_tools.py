import asyncio
import unittest
from datetime import datetime, timedelta

from aura_llm.aggregator import ToolCallBuffer
from aura_llm.services import InMemoryNotificationScheduler, InMemoryReminderStore, SaveFailedError
from aura_llm.tools import TOOL_CATALOG, ToolExecutor, format_datetime, format_delay, parse_due_date
from tests._support import FIXED_NOW, PDT, fixed_now


def _call(name: str, arguments: str) -> ToolCallBuffer:
    return ToolCallBuffer(index=0, id="call_1", name=name, arguments_text=arguments)


class FailingReminderStore:
    def __init__(self, error: Exception) -> None:
        self.error = error

    async def create_reminder(self, title, due_date, notes) -> None:
        raise self.error


class ToolExecutorTests(unittest.TestCase):
    def setUp(self) -> None:
        self.reminders = InMemoryReminderStore()
        self.notifications = InMemoryNotificationScheduler()
        self.executor = ToolExecutor(self.reminders, self.notifications, now=fixed_now)

    def _run(self, name: str, arguments: str, executor: ToolExecutor | None = None) -> str:
        return asyncio.run((executor or self.executor).execute(_call(name, arguments)))

    def test_catalog_declares_required_fields(self) -> None:
        names = {tool.name: tool for tool in TOOL_CATALOG}
        self.assertEqual(set(names), {"create_reminder", "schedule_notification"})
        self.assertEqual(names["create_reminder"].json_schema["required"], ["title"])

    def test_services_must_be_supplied(self) -> None:
        with self.assertRaises(TypeError):
            ToolExecutor()  # type: ignore[call-arg]

    def test_create_reminder_with_due_date(self) -> None:
        result = self._run("create_reminder", '{"title": "call mom", "due_date": "2026-10-17T15:02:00-07:00", "notes": "bday"}')

        self.assertEqual(result, '✅ Created reminder: "call mom" for Oct 17, 2026 at 3:02 PM')
        (reminder,) = self.reminders.reminders
        self.assertEqual(reminder.due_date, FIXED_NOW + timedelta(minutes=2))
        self.assertEqual(reminder.notes, "bday")

    def test_due_date_is_shown_in_local_time(self) -> None:
        result = self._run("create_reminder", '{"title": "standup", "due_date": "2026-10-18T16:30:00Z"}')
        self.assertEqual(result, '✅ Created reminder: "standup" for Oct 18, 2026 at 9:30 AM')

    def test_parse_failures_are_reported_not_raised(self) -> None:
        cases = [
            ("create_reminder", '{"title": "call', "❌ Failed to parse reminder details."),
            ("create_reminder", '{"notes": "no title"}', "❌ Failed to parse reminder details."),
            ("create_reminder", "[1, 2]", "❌ Failed to parse reminder details."),
            ("schedule_notification", "not json", "❌ Failed to parse notification details."),
        ]
        for name, arguments, expected in cases:
            with self.subTest(arguments=arguments):
                self.assertEqual(self._run(name, arguments), expected)
        self.assertEqual(self.reminders.reminders, [])

    def test_unknown_tool_is_a_warning(self) -> None:
        self.assertEqual(self._run("launch_rocket", "{}"), "⚠️ Unknown tool: launch_rocket")

    def test_invalid_date(self) -> None:
        result = self._run("create_reminder", '{"title": "x", "due_date": "someday"}')
        self.assertEqual(result, "❌ Could not parse the reminder date.")
        self.assertEqual(self.reminders.reminders, [])

    def test_permission_denied(self) -> None:
        executor = ToolExecutor(InMemoryReminderStore(granted=False), self.notifications, now=fixed_now)
        result = self._run("create_reminder", '{"title": "x"}', executor)
        self.assertTrue(result.startswith("❌ Access to Reminders was denied"))

    def test_service_failures_never_propagate(self) -> None:
        cases = [
            (SaveFailedError("Failed to save reminder: disk full"), "❌ Failed to save reminder: disk full"),
            (RuntimeError("event store gone"), "❌ Failed to create reminder: event store gone"),
        ]
        for error, expected in cases:
            with self.subTest(error=error):
                executor = ToolExecutor(FailingReminderStore(error), self.notifications, now=fixed_now)
                with self.assertLogs("aura_llm.tools", level="INFO"):
                    self.assertEqual(self._run("create_reminder", '{"title": "x"}', executor), expected)

    def test_schedule_notification_with_delay(self) -> None:
        result = self._run("schedule_notification", '{"title": "Tea", "body": "Steeped", "delay_seconds": 90}')

        self.assertEqual(result, '✅ Scheduled notification: "Tea" in 2 minutes')
        (scheduled,) = self.notifications.scheduled
        self.assertEqual((scheduled.title, scheduled.body, scheduled.delay_s), ("Tea", "Steeped", 90.0))
        self.assertTrue(scheduled.identifier.startswith("aura_notification_"))

    def test_schedule_notification_with_fire_date(self) -> None:
        result = self._run("schedule_notification", '{"title": "Leave", "fire_date": "2026-10-17T16:30:00-07:00"}')
        self.assertEqual(result, '✅ Scheduled notification: "Leave" in 1 hour 30 minutes')
        self.assertEqual(self.notifications.scheduled[0].delay_s, 5400.0)

    def test_schedule_notification_requires_a_time(self) -> None:
        result = self._run("schedule_notification", '{"title": "Leave"}')
        self.assertEqual(result, "❌ No delay or time given for the notification.")

    def test_notification_permission_denied(self) -> None:
        executor = ToolExecutor(self.reminders, InMemoryNotificationScheduler(granted=False), now=fixed_now)
        result = self._run("schedule_notification", '{"title": "x", "delay_seconds": 5}', executor)
        self.assertTrue(result.startswith("❌ Notification permission was denied"))


class DateHelpersTests(unittest.TestCase):
    def test_parse_due_date_formats(self) -> None:
        cases = {
            "2026-10-17T18:00:00.250-07:00": datetime(2026, 10, 17, 18, 0, 0, 250000, tzinfo=PDT),
            "2026-10-17T18:00:00": datetime(2026, 10, 17, 18, 0, tzinfo=PDT),
            "2026-10-20": datetime(2026, 10, 20, tzinfo=PDT),
            "17:30": datetime(2026, 10, 17, 17, 30, tzinfo=PDT),
            "5:30 PM": datetime(2026, 10, 17, 17, 30, tzinfo=PDT),
            "9am": datetime(2026, 10, 18, 9, 0, tzinfo=PDT),
            "14:00": datetime(2026, 10, 18, 14, 0, tzinfo=PDT),
        }
        for text, expected in cases.items():
            with self.subTest(text=text):
                self.assertEqual(parse_due_date(text, FIXED_NOW), expected)

    def test_parse_due_date_rejects_garbage(self) -> None:
        for text in ("", "tomorrow-ish", "25:99"):
            with self.subTest(text=text):
                self.assertIsNone(parse_due_date(text, FIXED_NOW))

    def test_formatting(self) -> None:
        self.assertEqual(format_datetime(datetime(2026, 1, 5, 0, 7)), "Jan 5, 2026 at 12:07 AM")
        self.assertEqual(format_delay(1), "1 second")
        self.assertEqual(format_delay(45), "45 seconds")
        self.assertEqual(format_delay(60), "1 minute")
        self.assertEqual(format_delay(7200), "2 hours")


if __name__ == "__main__":
    unittest.main()

import asyncio
import sys

from aura_llm.client import StreamController
from aura_llm.services import InMemoryNotificationScheduler, InMemoryReminderStore
from aura_llm.tools import ToolExecutor
from aura_llm.types import ConversationMessage


async def main() -> None:
    provider = sys.argv[1] if len(sys.argv) > 1 else "openai"
    prompt = " ".join(sys.argv[2:]) or "remind me to call mom in 2 minutes"

    reminders = InMemoryReminderStore()
    notifications = InMemoryNotificationScheduler()
    controller = StreamController(executor=ToolExecutor(reminders, notifications))

    # Without AURA_OPENAI_API_KEY / AURA_GEMINI_API_KEY this prints an auth failure.
    async for event in controller.open([ConversationMessage(role="user", text=prompt)], provider=provider):
        if event.type == "text_delta":
            print(event.text, end="", flush=True)
        elif event.type == "tool_result":
            print(f"\n{event.text}")
        elif event.type == "failure":
            print(f"\nError ({event.error}): {event.detail}")
        else:
            print()

    print("Reminders:", reminders.reminders)
    print("Notifications:", notifications.scheduled)


if __name__ == "__main__":
    asyncio.run(main())

"""Minimal demonstration: send one message and ask for grammar feedback on it."""

import asyncio

from tutor_core.api.service import create_coordinator, get_default_store


async def main():
    store = get_default_store()
    conv = store.conversations[0]
    question = "I go to school yesterday and meet my friend"
    reply = await store.send_user_message(question, conv.id)
    print("User:", question)
    print(f"{conv.name}:", reply.text)

    coordinator = create_coordinator(conv.id)
    user_msg = store.messages(conv.id)[-2]
    state = await coordinator.select_message(user_msg.id)
    if state.status == "loaded":
        print("Better:", coordinator.improved_expression(user_msg.id) or "(no change)")
    else:
        print("Feedback failed:", state.error)
    await store.memory.wait_idle()
    print("Memory:", store.memory_sync_status(conv.id))
    coordinator.close()


if __name__ == "__main__":
    asyncio.run(main())

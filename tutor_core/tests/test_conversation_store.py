import asyncio

from tutor_core.domain.feedback import GrammarEdit, GrammarFeedback, MemoryUpdate, NativeAlternative
from tutor_core.domain.models import ConversationMemoryProfile, PersonaProfile
from tutor_core.infrastructure.storage.json_store import MemoryKeyValueStore
from tutor_core.stores.conversation_store import FALLBACK_REPLY, ConversationStore


def _first(store):
    return store.conversations[0]


def test_fresh_store_is_seeded(store):
    assert [c.name for c in store.conversations] == ["Cat", "English Coach", "Practice Buddy"]
    msgs = store.messages(_first(store).id)
    assert len(msgs) == 3
    assert msgs[0].text == "Hey! I'm Cat. What do you want to practice today?"


def test_send_blank_message_is_ignored(store, backend, kv):
    conv = _first(store)
    assert asyncio.run(store.send_user_message("   ", conv.id)) is None
    assert len(store.messages(conv.id)) == 3
    assert backend.calls == []
    assert kv.write_count == 0


def test_send_message_success_appends_reply_and_syncs_memory(store, backend, kv):
    conv = _first(store)
    backend.memory = MemoryUpdate(memory_summary="- Likes tennis", memory_profile=ConversationMemoryProfile(hobbies=["tennis"]))

    async def scenario():
        reply = await store.send_user_message("  I play tennis  ", conv.id)
        await store.memory.wait_idle()
        return reply

    reply = asyncio.run(scenario())

    msgs = store.messages(conv.id)
    assert [m.role for m in msgs[-2:]] == ["user", "ai"]
    assert msgs[-2].text == "I play tennis"
    assert reply.text == backend.reply
    assert conv.last_message == backend.reply
    assert conv.unread_count == 0
    assert conv.time_text == "09:30"
    # 历史只包含发送前的消息
    assert len(backend.last_chat["history"]) == 3
    assert backend.last_chat["persona_profile"] == PersonaProfile().as_dict()
    assert backend.count("update_memory_summary") == 1
    assert store.memory_profile(conv.id).hobbies == ["tennis"]
    assert store.memory_sync_status(conv.id) == "Succeeded"
    assert kv.write_count >= 3


def test_send_message_failure_appends_fallback(store, backend, api_error):
    conv = _first(store)
    backend.reply = api_error

    reply = asyncio.run(store.send_user_message("I go to school yesterday", conv.id))

    msgs = store.messages(conv.id)
    assert msgs[-2].text == "I go to school yesterday"
    assert msgs[-1].role == "ai"
    assert msgs[-1].text == FALLBACK_REPLY
    assert reply.text == FALLBACK_REPLY
    assert conv.last_message == FALLBACK_REPLY
    assert backend.count("update_memory_summary") == 0


def test_memory_context_sent_with_reply(backend, kv):
    store = ConversationStore(client=backend, kv_store=kv, clock=lambda: "09:30")
    conv = _first(store)
    store.memory.summaries[conv.id] = "- Studies for IELTS"
    store.memory.profiles[conv.id] = ConversationMemoryProfile(goals=["IELTS"])

    async def scenario():
        await store.send_user_message("Hi", conv.id)
        await store.memory.wait_idle()

    asyncio.run(scenario())
    assert backend.last_chat["memory_summary"] == "- Studies for IELTS"
    assert backend.last_chat["memory_profile"].goals == ["IELTS"]


def test_mark_opened_keeps_preview(store, kv):
    conv = _first(store)
    before = (conv.last_message, conv.time_text)
    store.mark_conversation_opened(conv.id)
    assert conv.unread_count == 0
    assert (conv.last_message, conv.time_text) == before
    assert kv.write_count == 1


def test_ai_profile_default_and_update(store):
    conv = _first(store)
    profile = store.ai_profile(conv.id)
    assert profile.name == "Cat"
    assert profile.voice_preset == "Kore"
    assert profile.korean_translation_register == "polite"

    events = []
    store.add_profile_listener(lambda cid, old, new: events.append((cid, old.name, new.name)))
    updated = store.update_ai_profile(
        conv.id,
        name="  milo ",
        voice_preset="NotAVoice",
        korean_translation_register="casual",
        persona=PersonaProfile(humor=9, energy=0),
    )
    assert updated.name == "milo"
    assert updated.voice_preset == "Kore"
    assert updated.korean_translation_register == "casual"
    assert updated.persona.humor == 5
    assert updated.persona.energy == 1
    assert conv.name == "milo"
    assert conv.avatar_text == "M"
    assert events == [(conv.id, "Cat", "milo")]


def test_clear_history(store, kv):
    conv = _first(store)
    store.memory.signatures[conv.id] = "sig"
    store.clear_conversation_history(conv.id)
    assert store.messages(conv.id) == []
    assert conv.last_message == ""
    assert conv.id not in store.memory.signatures
    assert kv.write_count == 1


def test_save_paths_and_duplicates(store):
    source = "I go to school yesterday"
    feedback = GrammarFeedback(
        has_errors=True,
        corrected_text="I went to school yesterday",
        edits=[GrammarEdit(wrong="go", right="went", reason="past tense")],
        feedback="Use the past tense.",
        natural_rewrite="I went to school yesterday.",
        natural_reason="Sounds natural",
    )
    assert store.save_grammar_correction(source, feedback) is True
    entry = store.dictionary.entries[0]
    assert entry.kind == "grammar"
    assert entry.text == "I went to school yesterday"
    assert entry.correction_pairs[0].wrong == "go"
    assert store.save_grammar_correction(source, feedback) is False
    # 自然改写与已保存的改正句归一化后相同
    assert store.save_natural_rewrite(source, feedback) is False
    assert len(store.dictionary.entries) == 1

    alt = NativeAlternative(text="I went to class yesterday", tone="Casual", nuance="everyday")
    assert store.save_native_alternative(alt, source) is True
    assert store.is_saved("i went to class yesterday!")
    assert store.dictionary.entries[0].tone == "Casual"


def test_state_survives_reload(backend):
    kv = MemoryKeyValueStore()
    store = ConversationStore(client=backend, kv_store=kv, clock=lambda: "09:30")
    conv = _first(store)
    asyncio.run(store.send_user_message("Hello there", conv.id))
    cat = store.dictionary.create_category("Travel")
    store.dictionary.save("native", "Where is the gate?", "gate?", category_ids=[cat.id])
    store.update_ai_profile(conv.id, name="Cat", avatar_image_data=b"\x89PNG", korean_translation_register="casual")

    reloaded = ConversationStore(client=backend, kv_store=kv)
    conv2 = reloaded.get_conversation(conv.id)
    assert conv2.last_message == backend.reply
    assert [m.text for m in reloaded.messages(conv.id)] == [m.text for m in store.messages(conv.id)]
    assert reloaded.dictionary.categories[0].name == "Travel"
    assert reloaded.dictionary.entries[0].category_ids == [cat.id]
    profile = reloaded.ai_profile(conv.id)
    assert profile.avatar_image_data == b"\x89PNG"
    assert profile.korean_translation_register == "casual"


def test_corrupt_snapshot_starts_from_defaults(backend):
    kv = MemoryKeyValueStore({"chat_store_snapshot": "{not json"})
    store = ConversationStore(client=backend, kv_store=kv, snapshot_key="chat_store_snapshot")
    assert len(store.conversations) == 3


def test_wrong_typed_snapshot_starts_from_defaults(backend):
    kv = MemoryKeyValueStore({"chat_store_snapshot": '{"conversations": 5, "messages": {"c1": 1}}'})
    store = ConversationStore(client=backend, kv_store=kv, snapshot_key="chat_store_snapshot")
    assert [c.name for c in store.conversations] == ["Cat", "English Coach", "Practice Buddy"]


def test_profile_update_keeps_avatar_unless_cleared(store):
    conv = _first(store)
    store.update_ai_profile(conv.id, name="Cat", avatar_image_data=b"\x89PNG")
    store.update_ai_profile(conv.id, name="Cat", korean_translation_register="casual")
    assert store.ai_profile(conv.id).avatar_image_data == b"\x89PNG"

    store.update_ai_profile(conv.id, name="Cat", clear_avatar=True)
    assert store.ai_profile(conv.id).avatar_image_data is None


def test_refresh_memory_now_returns_status(store, backend):
    conv = _first(store)
    backend.memory = MemoryUpdate(memory_summary="Wants to practice speaking")
    status = asyncio.run(store.refresh_memory_now(conv.id))
    assert status == "Succeeded"
    assert store.memory_summary(conv.id) == "Wants to practice speaking"

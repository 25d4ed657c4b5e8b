from datetime import datetime, timezone

from tutor_core.domain.models import (
    AIProfileSettings,
    ConversationMemoryProfile,
    DictionaryEntry,
    PersonaProfile,
    initial_letter,
    voice_preview_text,
)
from tutor_core.domain.states import FeatureState


def test_persona_traits_are_clamped():
    persona = PersonaProfile(friendliness=9, humor=0, curiosity="4", directness=None)
    assert persona.as_dict() == {"friendliness": 5, "humor": 1, "curiosity": 4, "directness": 3, "energy": 3}


def test_profile_falls_back_on_unknown_voice_and_register():
    profile = AIProfileSettings(name="Cat", voice_preset="Robot", korean_translation_register="formal")
    assert profile.voice_preset == "Kore"
    assert profile.korean_translation_register == "polite"
    assert AIProfileSettings(name="Cat", voice_preset="Puck").voice_preset == "Puck"


def test_initial_letter_and_preview_text():
    assert initial_letter("  milo ") == "M"
    assert initial_letter("   ") == "A"
    assert voice_preview_text("", "Cat") == "Hi, I'm Cat. Nice to meet you."


def test_memory_profile_cleaning_and_debug_sections():
    profile = ConversationMemoryProfile(hobbies=[" tennis", "tennis", ""], notes=["likes tea"])
    cleaned = profile.cleaned()
    assert cleaned.hobbies == ["tennis"]
    assert cleaned.debug_sections() == [("Hobbies", ["tennis"]), ("Notes", ["likes tea"])]
    assert ConversationMemoryProfile(goals=[]).is_empty


def test_entry_label():
    entry = DictionaryEntry(
        id="d1", kind="grammar", text="x", original_text="y", tone="", nuance="",
        created_at=datetime.now(timezone.utc),
    )
    assert entry.label == "#Grammar Correction"


def test_feature_state_helpers():
    assert not FeatureState.idle().is_busy_or_done
    assert FeatureState.loading().is_busy_or_done
    failed = FeatureState.failed("boom")
    assert failed.status == "failed" and failed.error == "boom"
    assert not failed.is_busy_or_done

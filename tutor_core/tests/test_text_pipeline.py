from tutor_core.domain.feedback import FeedbackPoint, GrammarEdit, GrammarFeedback, NativeAlternative
from tutor_core.text import (
    apply_edits,
    apply_feedback_points,
    derive_replacement,
    improved_expression,
    merge_alternatives,
    normalize,
)
from tutor_core.text.alternatives import preferred_alternative
from tutor_core.text.search import MessageSearch, find_spans
from tutor_core.domain.models import ChatMessage


def test_normalize_basic():
    assert normalize("  Let's   go!!  ") == "let's go"
    assert normalize("Let's go") == normalize("let's go!")
    assert normalize("") == ""
    assert normalize("?!.") == ""


def test_normalize_is_idempotent():
    samples = ["Hello  World . ", "a .  b!", "  Wait... what?! ", "Tab\tand\nnewline.", "ÀB? ?"]
    for s in samples:
        once = normalize(s)
        assert normalize(once) == once


def test_derive_replacement_add_directive():
    assert derive_replacement("Add 'to the store'", "I went") == "I went to the store"
    assert derive_replacement('add "really"  ', "I  like it") == "I like it really"


def test_derive_replacement_use_directive_ignores_context():
    assert derive_replacement("Use 'delicious'", "very tasty") == "delicious"
    assert derive_replacement("You should use \" went \" here", "go") == "went"


def test_derive_replacement_remove_directive():
    assert derive_replacement("Remove 'very'", "very unique") == "unique"
    assert derive_replacement("Omit 'the'", "at the home ,") == "at home,"
    assert derive_replacement("Delete 'so'", "so") is None


def test_derive_replacement_bare_fix():
    assert derive_replacement("went", "go") == "went"
    assert derive_replacement("x" * 36, "go") == "x" * 36
    assert derive_replacement("This sentence needs a past tense verb here instead", "go") is None
    assert derive_replacement(None, "go") is None
    assert derive_replacement("   ", "go") is None


def test_apply_edits_longest_first_and_case_insensitive():
    edits = [
        GrammarEdit(wrong="go", right="went"),
        GrammarEdit(wrong="go to school", right="went to school"),
    ]
    assert apply_edits("I GO TO SCHOOL yesterday", edits) == "I went to school yesterday"


def test_apply_edits_missing_phrase_is_noop():
    assert apply_edits("Hello there", [GrammarEdit(wrong="bye", right="hi")]) == "Hello there"


def test_apply_edits_replaces_only_first_occurrence():
    assert apply_edits("a cat and a cat", [GrammarEdit(wrong="cat", right="dog")]) == "a dog and a cat"


def test_apply_feedback_points_skips_unusable_fix():
    points = [
        FeedbackPoint(part="I go", fix="Use 'I went'"),
        FeedbackPoint(part="yesterday", fix="This part is fine but consider a more specific time reference"),
    ]
    assert apply_feedback_points("I go to school yesterday", points) == "I went to school yesterday"


def test_improved_expression_prefers_corrected_text():
    fb = GrammarFeedback(
        has_errors=True,
        corrected_text="I went to school yesterday",
        natural_rewrite="Yesterday I went to school.",
    )
    assert improved_expression("I go to school yesterday", fb) == "I went to school yesterday"


def test_improved_expression_never_returns_source():
    fb = GrammarFeedback(
        has_errors=True,
        corrected_text="i go to school yesterday.",
        natural_rewrite="I go to school yesterday!",
        natural_alternative="  ",
    )
    assert improved_expression("I go to school yesterday", fb) is None


def test_improved_expression_falls_back_to_edits_then_rewrite():
    fb = GrammarFeedback(has_errors=False, edits=[GrammarEdit(wrong="go", right="went")])
    assert improved_expression("I go home", fb) == "I went home"
    fb = GrammarFeedback(has_errors=False, natural_alternative="I headed home")
    assert improved_expression("I go home", fb) == "I headed home"
    assert improved_expression("I go home", None) is None


def test_merge_alternatives_dedup_and_order():
    pref = NativeAlternative(text="Let's head out", tone="Most Common")
    a = NativeAlternative(text="Shall we go?")
    b = NativeAlternative(text="Let's get going")
    assert [x.text for x in merge_alternatives(pref, [a, a, b])] == ["Let's head out", "Shall we go?", "Let's get going"]
    assert [x.text for x in merge_alternatives(None, [a, a])] == ["Shall we go?"]


def test_merge_alternatives_caps_and_skips_preferred_duplicates():
    pref = NativeAlternative(text="Let's go!", tone="Most Common")
    items = [NativeAlternative(text=t) for t in ["let's go", "One", "Two", "Three"]]
    merged = merge_alternatives(pref, items)
    assert [x.text for x in merged] == ["Let's go!", "One", "Two"]
    assert merged[0].tone == "Most Common"


def test_preferred_alternative_from_feedback():
    fb = GrammarFeedback(has_errors=False, natural_alternative=" I'm beat ", natural_reason="casual")
    alt = preferred_alternative(fb)
    assert alt.text == "I'm beat"
    assert alt.tone == "Most Common"
    assert alt.nuance == "casual"
    assert preferred_alternative(GrammarFeedback(has_errors=False)) is None


def test_message_search_spans_and_navigation():
    msgs = [
        ChatMessage(role="ai", text="Coffee or tea?", time_text="10:00", id="m1"),
        ChatMessage(role="user", text="I like tea. TEA is great", time_text="10:01", id="m2"),
        ChatMessage(role="ai", text="Nice", time_text="10:02", id="m3"),
    ]
    assert find_spans("I like tea. TEA", "tea") == [(7, 10), (12, 15)]
    search = MessageSearch(msgs, " tea ")
    assert [m.message_id for m in search.matches] == ["m1", "m2"]
    assert search.active.message_id == "m2"
    assert search.next().message_id == "m1"
    assert search.previous().message_id == "m2"
    assert not search.is_matched("m3")
    assert MessageSearch(msgs, "  ").matches == []


def test_derive_replacement_keeps_contractions_inside_quotes():
    assert derive_replacement('Use "I\'m" instead', "I am") == "I'm"
    assert derive_replacement('Add "don\'t"', "I") == "I don't"
    assert derive_replacement("Use 'don't' here", "do not") == "don't"
    assert derive_replacement("Use “it's” instead", "its") == "it's"
    assert derive_replacement("Remove \"can't\"", "I can't really go") == "I really go"


def test_apply_feedback_points_with_contraction_fix():
    points = [FeedbackPoint(part="I am", fix='Use "I\'m" to sound casual')]
    assert apply_feedback_points("I am so tired", points) == "I'm so tired"

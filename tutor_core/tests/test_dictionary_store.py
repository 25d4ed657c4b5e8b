import pytest

from tutor_core.domain.exceptions import ValidationError
from tutor_core.domain.models import CorrectionPair
from tutor_core.stores.dictionary_store import DictionaryFilter, DictionaryStore


def test_save_rejects_normalized_duplicate():
    changes = []
    ds = DictionaryStore(on_change=lambda: changes.append(1))
    ds.save("native", "Let's go!", "We go now")
    with pytest.raises(ValidationError) as exc:
        ds.save("grammar", "let's go", "lets go")
    assert exc.value.code == "DUPLICATE_ENTRY"
    assert len(ds.entries) == 1
    assert len(changes) == 1


def test_save_inserts_most_recent_first_and_keeps_pairs():
    ds = DictionaryStore()
    ds.save("native", "First one", "a")
    pairs = [CorrectionPair(wrong="go", right="went", reason="past tense")]
    second = ds.save("grammar", "I went home", "I go home", tone="Correction", correction_pairs=pairs)
    assert [e.text for e in ds.entries] == ["I went home", "First one"]
    assert second.correction_pairs[0].right == "went"
    assert second.label == "#Grammar Correction"


def test_save_rejects_empty_text():
    ds = DictionaryStore()
    with pytest.raises(ValidationError) as exc:
        ds.save("native", " ?! ", "x")
    assert exc.value.code == "EMPTY_TEXT"


def test_create_category_validation():
    ds = DictionaryStore()
    travel = ds.create_category("  Travel ")
    assert travel.name == "Travel"
    with pytest.raises(ValidationError) as exc:
        ds.create_category("travel")
    assert exc.value.code == "CATEGORY_NAME_DUPLICATE"
    with pytest.raises(ValidationError) as exc:
        ds.create_category("   ")
    assert exc.value.code == "CATEGORY_NAME_EMPTY"
    assert len(ds.categories) == 1


def test_rename_category_allows_same_name_for_itself():
    ds = DictionaryStore()
    work = ds.create_category("Work")
    ds.create_category("Travel")
    assert ds.rename_category(work.id, "WORK").name == "WORK"
    with pytest.raises(ValidationError):
        ds.rename_category(work.id, "travel")


def test_delete_category_cascades_but_keeps_entries():
    ds = DictionaryStore()
    travel = ds.create_category("Travel")
    food = ds.create_category("Food")
    e1 = ds.save("native", "Where is the gate?", "gate where", category_ids=[travel.id, food.id])
    e2 = ds.save("native", "Table for two", "two table", category_ids=[travel.id])
    ds.set_active_filter(DictionaryFilter.category(travel.id))

    ds.delete_category(travel.id)

    assert len(ds.entries) == 2
    assert e1.category_ids == [food.id]
    assert e2.category_ids == []
    assert ds.active_filter == DictionaryFilter.all()


def test_set_categories_filters_unknown_and_duplicates():
    ds = DictionaryStore()
    cat = ds.create_category("Daily")
    entry = ds.save("native", "Catch you later", "bye")
    ds.set_categories(entry.id, [cat.id, "cat-unknown", cat.id])
    assert entry.category_ids == [cat.id]


def test_filters():
    ds = DictionaryStore()
    cat = ds.create_category("Daily")
    tagged = ds.save("native", "Catch you later", "bye", category_ids=[cat.id])
    plain = ds.save("native", "No worries", "it's ok")
    assert ds.filtered(DictionaryFilter.all()) == [plain, tagged]
    assert ds.filtered(DictionaryFilter.uncategorized()) == [plain]
    assert ds.filtered(DictionaryFilter.category(cat.id)) == [tagged]
    assert ds.count(DictionaryFilter.category(cat.id)) == 1


def test_delete_entry_and_unknown_ids():
    ds = DictionaryStore()
    entry = ds.save("native", "No worries", "it's ok")
    ds.delete_entry(entry.id)
    assert ds.entries == []
    with pytest.raises(ValidationError):
        ds.delete_entry(entry.id)
    with pytest.raises(ValidationError):
        ds.set_active_filter(DictionaryFilter.category("cat-missing"))

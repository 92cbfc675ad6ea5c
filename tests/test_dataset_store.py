"""Tests for the in-memory comparison dataset store."""

import json
from datetime import date

import pytest

from preference_platform.errors import NotFoundError, ParseError, ValidationError
from preference_platform.models.comparison import Annotation, Preference
from preference_platform.workflows.dataset_store import DatasetStore


def _record(item_id="1", **overrides):
    record = {
        "id": item_id,
        "prompt": "Prompt",
        "responseA": "Answer A",
        "responseB": "Answer B",
        "created": "2024-05-01T12:00:00+00:00",
    }
    record.update(overrides)
    return record


class TestAdd:
    def test_add_appends_last(self, store):
        before = store.total_count()
        item = store.add("New prompt", "left", "right")
        assert store.total_count() == before + 1
        assert store.items()[-1] is item

    def test_add_trims_text(self):
        store = DatasetStore()
        item = store.add("  hello  ", " a ", "b\n")
        assert (item.prompt, item.response_a, item.response_b) == ("hello", "a", "b")

    def test_ids_are_unique(self):
        store = DatasetStore()
        ids = {store.add("p", "a", "b").id for _ in range(50)}
        assert len(ids) == 50

    @pytest.mark.parametrize("prompt,a,b", [
        ("", "a", "b"),
        ("p", "   ", "b"),
        ("p", "a", "\n\t"),
    ])
    def test_blank_fields_rejected(self, store, prompt, a, b):
        before = store.export_snapshot()
        with pytest.raises(ValidationError):
            store.add(prompt, a, b)
        assert store.export_snapshot() == before


class TestRemove:
    def test_remove_existing(self, store):
        target = store.items()[1]
        assert store.remove(target.id) == 1
        assert store.get(target.id) is None
        assert store.total_count() == 2

    def test_remove_absent_is_noop(self, store):
        before = store.export_snapshot()
        assert store.remove("does-not-exist") == 0
        assert store.export_snapshot() == before

    def test_remove_drops_annotation(self, store):
        item = store.items()[0]
        store.annotate(Annotation(item_id=item.id, preference=Preference.A))
        store.remove(item.id)
        assert store.annotation_for(item.id) is None
        assert store.annotated_count() == 0


class TestImportExport:
    def test_round_trip(self, store):
        first, second = store.items()[:2]
        store.annotate(Annotation(item_id=first.id, preference=Preference.B, reasoning="more accurate"))
        store.annotate(Annotation(item_id=second.id, preference=Preference.TIE))
        snapshot = store.export_snapshot()

        restored = DatasetStore()
        assert restored.import_merge(list(snapshot)) == 3
        assert restored.export_snapshot() == snapshot
        assert [i.id for i in restored.items()] == [i.id for i in store.items()]
        assert restored.preference_for(first.id) == Preference.B
        assert restored.annotation_for(first.id).reasoning == "more accurate"

    def test_json_round_trip(self, store):
        restored = DatasetStore()
        restored.import_json(store.export_json())
        assert restored.export_snapshot() == store.export_snapshot()

    def test_export_shape(self, store):
        record = store.export_snapshot()[0]
        assert set(record) == {"id", "prompt", "responseA", "responseB", "created"}

    def test_snapshot_is_a_copy(self, store):
        snapshot = store.export_snapshot()
        assert isinstance(snapshot, tuple)
        snapshot[0]["prompt"] = "changed"
        assert store.export_snapshot()[0]["prompt"] != "changed"

    def test_merge_appends_after_existing(self, store):
        existing = [i.id for i in store.items()]
        store.import_merge([_record("x1"), _record("x2")])
        assert [i.id for i in store.items()] == existing + ["x1", "x2"]

    def test_merge_does_not_reconcile_ids(self, store):
        payload = list(store.export_snapshot())
        store.import_merge(payload)
        assert store.total_count() == 6

    def test_imported_preference_counts(self):
        store = DatasetStore()
        store.import_merge([
            _record("1", preference="A"),
            _record("2", preference="tie", reasoning=None),
            _record("3", preference="unset"),
            _record("4"),
        ])
        assert store.annotated_count() == 2
        assert store.preference_breakdown() == {"A": 1, "B": 0, "tie": 1}

    def test_duplicate_ids_keep_independent_annotations(self, store):
        original = store.items()[0]
        store.annotate(Annotation(item_id=original.id, preference=Preference.A))
        record = original.to_dict()
        record["preference"] = "B"

        store.import_merge([record])

        assert store.preference_at(0) == Preference.A
        assert store.preference_at(3) == Preference.B
        assert store.preference_for(original.id) == Preference.A
        assert store.preference_breakdown() == {"A": 1, "B": 1, "tie": 0}

    def test_unset_annotation_with_reasoning_round_trips(self, store):
        item = store.items()[0]
        store.annotate(Annotation(item_id=item.id, reasoning="need a second look"))
        snapshot = store.export_snapshot()
        assert "preference" not in snapshot[0]
        assert snapshot[0]["reasoning"] == "need a second look"

        restored = DatasetStore()
        restored.import_merge(list(snapshot))
        annotation = restored.annotation_for(item.id)
        assert annotation.preference == Preference.UNSET
        assert annotation.reasoning == "need a second look"
        assert restored.annotated_count() == 0
        assert restored.export_snapshot() == snapshot

    def test_numeric_ids_accepted(self):
        store = DatasetStore()
        store.import_merge([_record(1717171717)])
        assert store.items()[0].id == "1717171717"

    @pytest.mark.parametrize("payload", [
        {"not": "a list"},
        [_record(prompt=None)],
        [{"id": "1", "prompt": "p", "responseA": "a"}],
        [_record(preference="C")],
        [_record(created="yesterday")],
        ["just a string"],
    ])
    def test_malformed_payload_rejected(self, store, payload):
        before = store.export_snapshot()
        with pytest.raises(ParseError):
            store.import_merge(payload)
        assert store.export_snapshot() == before

    def test_bad_record_after_good_ones_adds_nothing(self, store):
        with pytest.raises(ParseError):
            store.import_merge([_record("ok"), _record("bad", created="not-a-date")])
        assert store.get("ok") is None

    def test_invalid_json(self, store):
        with pytest.raises(ParseError):
            store.import_json("{not json")

    def test_export_filename(self):
        assert DatasetStore.export_filename(date(2024, 3, 9)) == "dpo_dataset_2024-03-09.json"


class TestAnnotationsAndStats:
    def test_counts(self, store):
        assert store.total_count() == 3
        assert store.annotated_count() == 0
        store.annotate(Annotation(item_id=store.items()[0].id, preference=Preference.A))
        assert store.annotated_count() == 1

    def test_unset_is_not_annotated(self, store):
        store.annotate(Annotation(item_id=store.items()[0].id, preference=Preference.UNSET))
        assert store.annotated_count() == 0

    def test_annotate_unknown_item(self, store):
        with pytest.raises(NotFoundError):
            store.annotate(Annotation(item_id="nope", preference=Preference.A))

    def test_preference_pairs(self, store):
        a_item, b_item, tie_item = store.items()
        store.annotate(Annotation(item_id=a_item.id, preference=Preference.A, reasoning="correct"))
        store.annotate(Annotation(item_id=b_item.id, preference=Preference.B))
        store.annotate(Annotation(item_id=tie_item.id, preference=Preference.TIE))

        pairs = store.to_preference_pairs()
        assert len(pairs) == 2
        assert pairs[0]["chosen"] == a_item.response_a
        assert pairs[0]["rejected"] == a_item.response_b
        assert pairs[0]["reasoning"] == "correct"
        assert pairs[1]["chosen"] == b_item.response_b
        assert pairs[1]["rejected"] == b_item.response_a
        json.dumps(pairs)

"""In-memory store for preference comparison datasets."""

import json
import logging
from dataclasses import dataclass
from datetime import date
from typing import Iterable, Optional

import jsonschema

from ..errors import NotFoundError, ParseError, ValidationError
from ..models.comparison import (
    Annotation,
    ComparisonItem,
    Preference,
    annotation_from_dict,
    new_item_id,
)

logger = logging.getLogger(__name__)


# Shape of one exported/imported record.
RECORD_SCHEMA = {
    "type": "object",
    "required": ["id", "prompt", "responseA", "responseB", "created"],
    "properties": {
        "id": {"type": ["string", "integer"]},
        "prompt": {"type": "string"},
        "responseA": {"type": "string"},
        "responseB": {"type": "string"},
        "preference": {"enum": ["A", "B", "tie", "unset", None]},
        "reasoning": {"type": ["string", "null"]},
        "created": {"type": "string"},
    },
}

PAYLOAD_SCHEMA = {"type": "array", "items": RECORD_SCHEMA}


@dataclass
class _Entry:
    """One dataset position: an item and the annotation made on it."""

    item: ComparisonItem
    annotation: Optional[Annotation] = None

    @property
    def preference(self) -> Preference:
        return self.annotation.preference if self.annotation else Preference.UNSET


class DatasetStore:
    """Ordered collection of comparison items and their annotations.

    Annotations belong to a position in the sequence, not to an ID, so
    items that share an ID after an import keep independent annotations.
    Lookups by ID resolve to the first item with that ID.
    """

    def __init__(self, items: Optional[Iterable[ComparisonItem]] = None):
        self._entries: list[_Entry] = [_Entry(item) for item in items or []]

    def __len__(self) -> int:
        return len(self._entries)

    def items(self) -> list[ComparisonItem]:
        """Items in display order."""
        return [entry.item for entry in self._entries]

    def item_at(self, index: int) -> ComparisonItem:
        return self._entries[index].item

    def _first_entry(self, item_id: str) -> Optional[_Entry]:
        for entry in self._entries:
            if entry.item.id == item_id:
                return entry
        return None

    def get(self, item_id: str) -> Optional[ComparisonItem]:
        """Get the first item with this ID."""
        entry = self._first_entry(item_id)
        return entry.item if entry else None

    def contains(self, item_id: str) -> bool:
        return self._first_entry(item_id) is not None

    def annotation_for(self, item_id: str) -> Optional[Annotation]:
        entry = self._first_entry(item_id)
        return entry.annotation if entry else None

    def annotation_at(self, index: int) -> Optional[Annotation]:
        return self._entries[index].annotation

    def preference_for(self, item_id: str) -> Preference:
        entry = self._first_entry(item_id)
        return entry.preference if entry else Preference.UNSET

    def preference_at(self, index: int) -> Preference:
        return self._entries[index].preference

    # === Mutation ===

    def add(self, prompt: str, response_a: str, response_b: str) -> ComparisonItem:
        """Append a new comparison pair."""
        fields = {"prompt": prompt, "response_a": response_a, "response_b": response_b}
        missing = [name for name, value in fields.items() if not (value or "").strip()]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

        item = ComparisonItem(
            id=self._fresh_id(),
            prompt=prompt.strip(),
            response_a=response_a.strip(),
            response_b=response_b.strip(),
        )
        self._entries.append(_Entry(item))
        logger.debug("Added comparison %s", item.id)
        return item

    def remove(self, item_id: str) -> int:
        """Remove every item with this ID. Unknown IDs are ignored."""
        before = len(self._entries)
        self._entries = [entry for entry in self._entries if entry.item.id != item_id]
        removed = before - len(self._entries)
        if removed:
            logger.debug("Removed %d comparison(s) with id %s", removed, item_id)
        return removed

    def annotate(self, annotation: Annotation, index: Optional[int] = None) -> None:
        """Attach an annotation, replacing any previous one on the item.

        With `index`, the annotation goes to that position, whose item must
        carry `annotation.item_id`. Without it, the first item with that ID
        is annotated.
        """
        if index is None:
            entry = self._first_entry(annotation.item_id)
        elif 0 <= index < len(self._entries) and self._entries[index].item.id == annotation.item_id:
            entry = self._entries[index]
        else:
            entry = None
        if entry is None:
            raise NotFoundError(f"Comparison not found: {annotation.item_id}")
        entry.annotation = annotation

    def import_merge(self, records) -> int:
        """Append imported records after the existing items.

        The whole payload is parsed before anything is appended, so a bad
        record leaves the store untouched. IDs are not reconciled against
        existing items.
        """
        try:
            jsonschema.validate(records, PAYLOAD_SCHEMA)
        except jsonschema.ValidationError as exc:
            path = "/".join(str(p) for p in exc.absolute_path) or "<root>"
            raise ParseError(f"Malformed dataset at {path}: {exc.message}") from exc

        parsed: list[_Entry] = []
        for index, record in enumerate(records):
            try:
                parsed.append(_Entry(ComparisonItem.from_dict(record), annotation_from_dict(record)))
            except ValueError as exc:
                raise ParseError(f"Malformed dataset at {index}: {exc}") from exc

        self._entries.extend(parsed)
        logger.info("Imported %d comparison(s); dataset now has %d", len(parsed), len(self._entries))
        return len(parsed)

    def import_json(self, text: str) -> int:
        """Parse a JSON export and merge it in."""
        try:
            records = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ParseError(f"Failed to parse JSON: {exc}") from exc
        return self.import_merge(records)

    def _fresh_id(self) -> str:
        existing = {entry.item.id for entry in self._entries}
        item_id = new_item_id()
        while item_id in existing:
            item_id = new_item_id()
        return item_id

    # === Export ===

    def export_snapshot(self) -> tuple[dict, ...]:
        """Serialized copy of the dataset, with annotations merged in."""
        return tuple(entry.item.to_dict(entry.annotation) for entry in self._entries)

    def export_json(self) -> str:
        return json.dumps(list(self.export_snapshot()), indent=2)

    @staticmethod
    def export_filename(today: Optional[date] = None) -> str:
        """Default download name for an export."""
        today = today or date.today()
        return f"dpo_dataset_{today.isoformat()}.json"

    def to_preference_pairs(self, source: str = "annotation") -> list[dict]:
        """DPO-ready chosen/rejected pairs for items with a clear winner.

        Ties and unannotated items carry no preference signal and are skipped.
        """
        pairs = []
        for entry in self._entries:
            item, annotation = entry.item, entry.annotation
            if entry.preference not in (Preference.A, Preference.B):
                continue
            if annotation.preference == Preference.A:
                chosen, rejected = item.response_a, item.response_b
            else:
                chosen, rejected = item.response_b, item.response_a
            pairs.append({
                "timestamp": annotation.annotated_at.isoformat(),
                "prompt": item.prompt,
                "chosen": chosen,
                "rejected": rejected,
                "reasoning": annotation.reasoning or "",
                "source": source,
                "item_id": item.id,
            })
        return pairs

    # === Statistics ===

    def total_count(self) -> int:
        return len(self._entries)

    def annotated_count(self) -> int:
        return sum(1 for entry in self._entries if entry.preference.is_set)

    def preference_breakdown(self) -> dict[str, int]:
        """Count of items per chosen preference."""
        counts = {Preference.A.value: 0, Preference.B.value: 0, Preference.TIE.value: 0}
        for entry in self._entries:
            if entry.preference.is_set:
                counts[entry.preference.value] += 1
        return counts

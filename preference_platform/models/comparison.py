"""Comparison pair and annotation models for preference datasets."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
import uuid


def new_item_id() -> str:
    """Generate an opaque identifier for a comparison item."""
    return f"CMP-{uuid.uuid4().hex[:12].upper()}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Preference(Enum):
    """Which of the two responses an annotator preferred."""

    A = "A"
    B = "B"
    TIE = "tie"
    UNSET = "unset"

    @classmethod
    def parse(cls, value: "Preference | str") -> "Preference":
        """Accept an enum member or its wire value ("a" and "b" are tolerated)."""
        if isinstance(value, cls):
            return value
        lookup = {member.value.lower(): member for member in cls}
        key = str(value).strip().lower()
        if key not in lookup:
            raise ValueError(f"Unknown preference: {value!r}")
        return lookup[key]

    @property
    def is_set(self) -> bool:
        return self is not Preference.UNSET

    @property
    def label(self) -> str:
        """Human-readable label, as shown after a selection."""
        if self is Preference.TIE:
            return "Tie"
        if self is Preference.UNSET:
            return "Not annotated"
        return f"Response {self.value}"


@dataclass
class Annotation:
    """A preference judgement attached to one comparison item."""

    item_id: str
    preference: Preference = Preference.UNSET
    reasoning: Optional[str] = None
    annotated_at: datetime = field(default_factory=_utcnow)

    @property
    def is_annotated(self) -> bool:
        return self.preference.is_set


@dataclass
class ComparisonItem:
    """A prompt with two candidate responses to compare."""

    id: str = field(default_factory=new_item_id)
    prompt: str = ""
    response_a: str = ""
    response_b: str = ""
    created: datetime = field(default_factory=_utcnow)

    def to_dict(self, annotation: Optional[Annotation] = None) -> dict:
        """Serialize to the export record shape, merging in the annotation if any."""
        record = {
            "id": self.id,
            "prompt": self.prompt,
            "responseA": self.response_a,
            "responseB": self.response_b,
            "created": self.created.isoformat(),
        }
        if annotation is not None:
            if annotation.is_annotated:
                record["preference"] = annotation.preference.value
            if annotation.reasoning:
                record["reasoning"] = annotation.reasoning
        return record

    @classmethod
    def from_dict(cls, data: dict) -> "ComparisonItem":
        """Deserialize from an export record. Annotation fields are ignored here."""
        created = data.get("created")
        item = cls(
            id=str(data["id"]),
            prompt=data["prompt"],
            response_a=data["responseA"],
            response_b=data["responseB"],
        )
        if created:
            parsed = datetime.fromisoformat(created.replace("Z", "+00:00"))
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            item.created = parsed
        return item


def annotation_from_dict(data: dict) -> Optional[Annotation]:
    """Build the annotation carried by an export record, if it has one.

    A record with reasoning but no preference still yields an (unset)
    annotation so the note survives a round trip.
    """
    raw = data.get("preference")
    preference = Preference.parse(raw) if raw is not None else Preference.UNSET
    reasoning = data.get("reasoning") or None
    if not preference.is_set and reasoning is None:
        return None
    return Annotation(item_id=str(data["id"]), preference=preference, reasoning=reasoning)

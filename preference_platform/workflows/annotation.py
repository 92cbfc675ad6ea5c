"""Preference annotation workflow over a dataset's review sequence."""

import logging
from typing import Optional

from ..errors import NotFoundError, ValidationError
from ..models.comparison import Annotation, ComparisonItem, Preference
from .dataset_store import DatasetStore

logger = logging.getLogger(__name__)


# Demonstration pairs shown on first launch of the annotation screen.
SAMPLE_COMPARISONS = [
    {
        "prompt": "Write a professional email to decline a job offer politely.",
        "response_a": (
            "Dear [Hiring Manager],\n\nThank you for offering me the position. After careful "
            "consideration, I must decline as I have accepted another opportunity. I appreciate "
            "your time and consideration.\n\nBest regards,\n[Your Name]"
        ),
        "response_b": (
            "Hi there,\n\nThanks for the job offer! Unfortunately, I can't take it because I "
            "found something better. Hope you understand.\n\nThanks again!"
        ),
    },
    {
        "prompt": "Explain quantum computing in simple terms for a 10-year-old.",
        "response_a": (
            "Quantum computing is like having a magical computer that can try many different "
            "solutions to a problem at the same time, instead of trying them one by one like "
            "regular computers. It uses special particles called 'qubits' that can be in multiple "
            "states simultaneously, making calculations much faster for certain types of problems."
        ),
        "response_b": (
            "Quantum computers use quantum mechanics and superposition to process information "
            "using qubits instead of bits. They leverage quantum entanglement and interference to "
            "perform parallel computations, offering exponential speedup for specific algorithmic "
            "problems through quantum gates and circuits."
        ),
    },
    {
        "prompt": "Write a Python function to check if a string is a palindrome.",
        "response_a": (
            "def is_palindrome(s):\n    s = s.lower().replace(' ', '')\n    return s == s[::-1]\n\n"
            "# Example usage:\nprint(is_palindrome('A man a plan a canal Panama'))  # True"
        ),
        "response_b": (
            "def check_palindrome(text):\n"
            "    clean_text = ''.join(char.lower() for char in text if char.isalnum())\n"
            "    left, right = 0, len(clean_text) - 1\n\n"
            "    while left < right:\n"
            "        if clean_text[left] != clean_text[right]:\n"
            "            return False\n"
            "        left += 1\n"
            "        right -= 1\n\n"
            "    return True"
        ),
    },
]


def load_sample_items(store: DatasetStore) -> list[ComparisonItem]:
    """Seed a store with the demonstration comparisons."""
    return [store.add(**sample) for sample in SAMPLE_COMPARISONS]


class AnnotationSession:
    """Walks a dataset in order, recording one preference per item."""

    def __init__(self, store: DatasetStore):
        self.store = store
        self._index = 0

    @property
    def current_index(self) -> int:
        """Cursor position, clamped in case the dataset shrank."""
        last = max(len(self.store) - 1, 0)
        if self._index > last:
            self._index = last
        return self._index

    @property
    def current_item(self) -> Optional[ComparisonItem]:
        if len(self.store) == 0:
            return None
        return self.store.item_at(self.current_index)

    @property
    def current_preference(self) -> Preference:
        if len(self.store) == 0:
            return Preference.UNSET
        return self.store.preference_at(self.current_index)

    @property
    def position_label(self) -> str:
        total = len(self.store)
        if total == 0:
            return "0 of 0"
        return f"{self.current_index + 1} of {total}"

    @property
    def progress_percent(self) -> float:
        total = len(self.store)
        if total == 0:
            return 0.0
        return (self.current_index + 1) / total * 100

    @property
    def at_start(self) -> bool:
        return self.current_index == 0

    @property
    def at_end(self) -> bool:
        return self.current_index >= len(self.store) - 1

    @property
    def is_complete(self) -> bool:
        """On the last item and that item has been judged."""
        if len(self.store) == 0 or not self.at_end:
            return False
        return self.current_preference.is_set

    def set_preference(
        self,
        item_id: str,
        preference: "Preference | str",
        reasoning: Optional[str] = None,
        index: Optional[int] = None,
    ) -> Annotation:
        """Record a preference, overwriting any earlier one for the item.

        `index` pins the annotation to one position when several items
        share an ID; otherwise the first item with the ID is used.
        """
        try:
            preference = Preference.parse(preference)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc

        if not self.store.contains(item_id):
            raise NotFoundError(f"Comparison not found: {item_id}")

        annotation = Annotation(
            item_id=item_id,
            preference=preference,
            reasoning=(reasoning or "").strip() or None,
        )
        self.store.annotate(annotation, index=index)
        logger.debug("Item %s annotated: %s", item_id, preference.label)
        return annotation

    def annotate_current(
        self,
        preference: "Preference | str",
        reasoning: Optional[str] = None,
    ) -> Annotation:
        item = self.current_item
        if item is None:
            raise NotFoundError("Dataset is empty; nothing to annotate")
        return self.set_preference(item.id, preference, reasoning, index=self.current_index)

    def advance(self) -> int:
        """Move to the next item; a no-op on the last one."""
        if not self.at_end:
            self._index = self.current_index + 1
        return self.current_index

    def retreat(self) -> int:
        """Move to the previous item; a no-op on the first one."""
        if not self.at_start:
            self._index = self.current_index - 1
        return self.current_index

    def skip(self) -> int:
        """Move on without requiring a preference."""
        return self.advance()

    def go_to(self, index: int) -> int:
        """Jump to an index, clamped to the dataset bounds."""
        last = max(len(self.store) - 1, 0)
        self._index = min(max(index, 0), last)
        return self._index

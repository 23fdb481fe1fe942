from __future__ import annotations

import threading
from enum import Enum

from pawfectmatch.errors import ValidationError
from pawfectmatch.models import Candidate


class Decision(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"

    @classmethod
    def parse(cls, value: "str | Decision") -> "Decision":
        """Parse a decision, also accepting swipe directions."""
        if isinstance(value, Decision):
            return value
        text = str(value or "").strip().lower()
        if text in ("accept", "right"):
            return cls.ACCEPT
        if text in ("reject", "left"):
            return cls.REJECT
        raise ValidationError("decision must be accept or reject")


class DecisionLedger:
    """Favorites and rejections recorded during one browsing session.

    Favorites are keyed by candidate id and keep the order in which they
    were first accepted.
    """

    def __init__(self) -> None:
        self._favorites: dict[int, Candidate] = {}
        self._rejected: set[int] = set()
        self._lock = threading.Lock()

    def accept(self, candidate: Candidate) -> bool:
        """Favorite a candidate; return False when it already was one."""
        with self._lock:
            if candidate.id in self._favorites:
                return False
            self._favorites[candidate.id] = candidate
            return True

    def reject(self, candidate: Candidate) -> None:
        with self._lock:
            self._rejected.add(candidate.id)

    def record(self, candidate: Candidate, decision: Decision) -> None:
        if decision is Decision.ACCEPT:
            self.accept(candidate)
        else:
            self.reject(candidate)

    def remove_favorite(self, pet_id: int) -> bool:
        with self._lock:
            return self._favorites.pop(pet_id, None) is not None

    def is_favorited(self, pet_id: int) -> bool:
        with self._lock:
            return pet_id in self._favorites

    def favorites(self) -> list[Candidate]:
        with self._lock:
            return list(self._favorites.values())

    def rejected_ids(self) -> set[int]:
        with self._lock:
            return set(self._rejected)

    def __len__(self) -> int:
        with self._lock:
            return len(self._favorites)

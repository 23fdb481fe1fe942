from __future__ import annotations

from dataclasses import dataclass, field, fields, is_dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Optional

TRUTHY_VALUES = frozenset({"1", "true", "yes", "on"})
FALSY_VALUES = frozenset({"0", "false", "no", "off"})


class Tristate(Enum):
    """Yes/no answer that may also be unknown."""

    YES = "yes"
    NO = "no"
    UNKNOWN = "unknown"

    @classmethod
    def from_optional(cls, value: Optional[bool]) -> "Tristate":
        if value is True:
            return cls.YES
        if value is False:
            return cls.NO
        return cls.UNKNOWN

    @classmethod
    def from_query(cls, raw: Optional[str]) -> "Tristate":
        """Parse a query-string flag; anything unrecognized stays unknown."""
        text = (raw or "").strip().lower()
        if text in TRUTHY_VALUES:
            return cls.YES
        if text in FALSY_VALUES:
            return cls.NO
        return cls.UNKNOWN

    @property
    def is_set(self) -> bool:
        return self is not Tristate.UNKNOWN


def _coerce_json(value):
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _jsonify(obj):
    """Recursively convert dataclasses and containers to JSON-safe values."""
    if is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: _jsonify(getattr(obj, f.name)) for f in fields(obj)}
    if isinstance(obj, dict):
        return {k: _jsonify(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_jsonify(v) for v in obj]
    return _coerce_json(obj)


@dataclass(frozen=True)
class PetPhoto:
    small: Optional[str] = None
    medium: Optional[str] = None
    large: Optional[str] = None
    full: Optional[str] = None

    def best_url(self) -> Optional[str]:
        """Return the largest available rendition."""
        return self.full or self.large or self.medium or self.small


@dataclass(frozen=True)
class PetAttributes:
    house_trained: bool = False
    spayed_neutered: bool = False
    special_needs: bool = False
    shots_current: bool = False


@dataclass(frozen=True)
class PetEnvironment:
    children: Tristate = Tristate.UNKNOWN
    dogs: Tristate = Tristate.UNKNOWN
    cats: Tristate = Tristate.UNKNOWN


@dataclass(frozen=True)
class ContactAddress:
    city: Optional[str] = None
    state: Optional[str] = None
    postcode: Optional[str] = None
    country: Optional[str] = None

    def summary(self) -> str:
        """Return a compact "City, ST 12345" style location string."""
        place = ", ".join(part for part in (self.city, self.state) if part)
        return " ".join(part for part in (place, self.postcode) if part)


@dataclass(frozen=True)
class Candidate:
    id: int
    name: str = ""

    type: Optional[str] = None
    species: Optional[str] = None
    breed_primary: Optional[str] = None
    breed_secondary: Optional[str] = None
    breed_mixed: bool = False
    age: Optional[str] = None
    size: Optional[str] = None
    gender: Optional[str] = None
    colors: tuple[str, ...] = ()

    photos: tuple[PetPhoto, ...] = ()
    description: Optional[str] = None
    attributes: PetAttributes = field(default_factory=PetAttributes)
    environment: PetEnvironment = field(default_factory=PetEnvironment)
    contact_address: ContactAddress = field(default_factory=ContactAddress)

    url: Optional[str] = None
    status: Optional[str] = None
    organization_id: Optional[str] = None
    tags: tuple[str, ...] = ()
    published_at: Optional[datetime] = None
    distance: Optional[float] = None

    def __post_init__(self) -> None:
        """Keep at most three non-empty colors."""
        colors = tuple(c for c in self.colors if c)[:3]
        object.__setattr__(self, "colors", colors)

    @property
    def has_photos(self) -> bool:
        return len(self.photos) > 0

    @property
    def primary_photo(self) -> Optional[str]:
        for photo in self.photos:
            url = photo.best_url()
            if url:
                return url
        return None

    @property
    def breed(self) -> Optional[str]:
        """Return a display breed such as "Labrador / Poodle"."""
        parts = [b for b in (self.breed_primary, self.breed_secondary) if b]
        return " / ".join(parts) or None

    def to_dict(self) -> dict:
        record = _jsonify(self)
        record["primary_photo"] = self.primary_photo
        return record

    def __str__(self) -> str:
        def fmt(v):
            return v if v not in (None, "") else "--"

        env = self.environment
        return (
            f"Candidate #{self.id} ({fmt(self.type)})\n"
            f"{'-' * 88}\n"
            f"Name       : {fmt(self.name)}\n"
            f"Breed      : {fmt(self.breed)}\n"
            f"Age        : {fmt(self.age)}\n"
            f"Size       : {fmt(self.size)}\n"
            f"Gender     : {fmt(self.gender)}\n"
            f"Location   : {fmt(self.contact_address.summary())}\n"
            f"Good with  : children={env.children.value}, dogs={env.dogs.value}, "
            f"cats={env.cats.value}\n"
            f"Photos     : {len(self.photos)}\n\n"
            f"URL        : {fmt(self.url)}\n"
        )


@dataclass(frozen=True)
class FilterSpec:
    type: Optional[str] = None
    age: Optional[str] = None
    size: Optional[str] = None
    gender: Optional[str] = None
    location: Optional[str] = None
    distance: Optional[int] = None
    has_photos: bool = False
    good_with_kids: Tristate = Tristate.UNKNOWN
    good_with_dogs: Tristate = Tristate.UNKNOWN
    good_with_cats: Tristate = Tristate.UNKNOWN

    def active_count(self) -> int:
        """Count the criteria the user has set."""
        count = sum(
            1 for value in (self.type, self.age, self.size, self.gender, self.location)
            if value
        )
        if self.has_photos:
            count += 1
        count += sum(
            1
            for value in (self.good_with_kids, self.good_with_dogs, self.good_with_cats)
            if value.is_set
        )
        return count

    def to_dict(self) -> dict:
        return _jsonify(self)


@dataclass(frozen=True)
class Credential:
    value: str
    expires_at: float

    def is_valid(self, now: float) -> bool:
        return now < self.expires_at


@dataclass(frozen=True)
class Page:
    items: tuple[Candidate, ...]
    current_page: int
    total_pages: int
    total_count: int
    count_per_page: int = 0

    @property
    def has_more(self) -> bool:
        return self.current_page < self.total_pages

    def refined(self, items) -> "Page":
        """Return a copy holding ``items`` with the upstream counters kept."""
        return replace(self, items=tuple(items))

    def to_dict(self) -> dict:
        return {
            "items": [item.to_dict() for item in self.items],
            "count": len(self.items),
            "current_page": self.current_page,
            "total_pages": self.total_pages,
            "total_count": self.total_count,
        }

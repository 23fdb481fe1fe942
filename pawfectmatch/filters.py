"""Filter splitting and local refinement for candidate pages.

The Petfinder ``/animals`` endpoint only understands some of the filters
offered to users. ``split_filter`` turns a :class:`FilterSpec` into the
query parameters that can be sent upstream plus a set of residual
predicates, and ``refine_candidates`` evaluates those residual predicates
on each fetched page.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Sequence

from pawfectmatch.config import MAX_DISTANCE_MILES, MAX_FILTER_TEXT_LENGTH
from pawfectmatch.errors import ValidationError
from pawfectmatch.models import (
    TRUTHY_VALUES,
    Candidate,
    FilterSpec,
    Tristate,
)

logger = logging.getLogger(__name__)

POSTCODE_RE = re.compile(r"^\d{5}$")
CITY_STATE_RE = re.compile(r"^[A-Za-z][A-Za-z ]*, *[A-Za-z][A-Za-z ]*$")


@dataclass(frozen=True)
class ResidualPredicates:
    has_photos: bool = False
    good_with_kids: Tristate = Tristate.UNKNOWN
    good_with_dogs: Tristate = Tristate.UNKNOWN
    good_with_cats: Tristate = Tristate.UNKNOWN

    @property
    def is_empty(self) -> bool:
        return not self.has_photos and not any(
            value.is_set
            for value in (self.good_with_kids, self.good_with_dogs, self.good_with_cats)
        )


def is_valid_location(value: str | None) -> bool:
    """Return True for a 5-digit postcode or a "City, State" string."""
    text = (value or "").strip()
    if not text:
        return False
    return bool(POSTCODE_RE.fullmatch(text) or CITY_STATE_RE.fullmatch(text))


def validate_location(value: str | None) -> str:
    """Return the stripped location or raise ``ValidationError``."""
    if not is_valid_location(value):
        raise ValidationError(
            "Location must be a 5-digit ZIP code or \"City, State\"."
        )
    return (value or "").strip()


def split_filter(spec: FilterSpec) -> tuple[dict[str, str], ResidualPredicates]:
    """Partition a filter into upstream query params and local predicates."""
    remote: dict[str, str] = {}
    for key in ("type", "age", "size", "gender"):
        value = getattr(spec, key)
        if value:
            remote[key] = value

    if spec.location:
        try:
            remote["location"] = validate_location(spec.location)
        except ValidationError:
            logger.debug(f"Dropping invalid location filter: {spec.location!r}")
        else:
            if spec.distance is not None and spec.distance > 0:
                remote["distance"] = str(int(spec.distance))

    residual = ResidualPredicates(
        has_photos=spec.has_photos,
        good_with_kids=spec.good_with_kids,
        good_with_dogs=spec.good_with_dogs,
        good_with_cats=spec.good_with_cats,
    )
    return remote, residual


def _environment_matches(actual: Tristate, wanted: Tristate) -> bool:
    # Unknown environment data never satisfies a yes or a no.
    if not wanted.is_set:
        return True
    return actual is wanted


def matches_residual(candidate: Candidate, residual: ResidualPredicates) -> bool:
    if residual.has_photos and not candidate.has_photos:
        return False
    env = candidate.environment
    return (
        _environment_matches(env.children, residual.good_with_kids)
        and _environment_matches(env.dogs, residual.good_with_dogs)
        and _environment_matches(env.cats, residual.good_with_cats)
    )


def refine_candidates(
    items: Iterable[Candidate], residual: ResidualPredicates
) -> list[Candidate]:
    """Keep the candidates matching every residual predicate, in order."""
    if residual.is_empty:
        return list(items)
    return [item for item in items if matches_residual(item, residual)]


def _normalize_text(value: str | None) -> str:
    text = " ".join((value or "").split()).strip()
    return text[:MAX_FILTER_TEXT_LENGTH]


def _normalize_choice(value: str | None) -> Optional[str]:
    return _normalize_text(value).lower() or None


def _parse_distance(value) -> Optional[int]:
    try:
        distance = int(float(str(value).strip()))
    except (TypeError, ValueError, OverflowError):
        return None
    if distance <= 0:
        return None
    return min(distance, MAX_DISTANCE_MILES)


def _first(query: Mapping, key: str) -> Optional[str]:
    value = query.get(key)
    if isinstance(value, (list, tuple)):
        value = value[0] if value else None
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def filter_from_query(query: Mapping[str, Sequence[str] | str]) -> FilterSpec:
    """Build a filter from ``parse_qs`` output or a flat JSON object.

    Args:
        query: Mapping of parameter name to a value or list of values,
            using the camelCase names of the public API.

    Returns:
        A normalized ``FilterSpec``.
    """
    location = _normalize_text(_first(query, "location")) or None
    return FilterSpec(
        type=_normalize_choice(_first(query, "type")),
        age=_normalize_choice(_first(query, "age")),
        size=_normalize_choice(_first(query, "size")),
        gender=_normalize_choice(_first(query, "gender")),
        location=location,
        distance=_parse_distance(_first(query, "distance")),
        has_photos=(_first(query, "hasPhotos") or "").strip().lower() in TRUTHY_VALUES,
        good_with_kids=Tristate.from_query(_first(query, "goodWithKids")),
        good_with_dogs=Tristate.from_query(_first(query, "goodWithDogs")),
        good_with_cats=Tristate.from_query(_first(query, "goodWithCats")),
    )

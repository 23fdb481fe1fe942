"""Petfinder ``/animals`` client returning typed pages of candidates."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable, Mapping

import requests
from diskcache import Cache

from pawfectmatch.config import (
    ADOPTABLE_STATUS,
    DEFAULT_PET_DETAIL_CACHE_SECONDS,
    DEFAULT_PETFINDER_BASE_URL,
    DEFAULT_TIMEOUT_SECONDS,
)
from pawfectmatch.errors import UpstreamError
from pawfectmatch.models import (
    Candidate,
    ContactAddress,
    Page,
    PetAttributes,
    PetEnvironment,
    PetPhoto,
    Tristate,
)
from pawfectmatch.petfinder.token_cache import TokenCache

logger = logging.getLogger(__name__)

USER_AGENT = "pawfectmatch/0.1 (+non-commercial)"


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _parse_published_at(value: Any) -> datetime | None:
    text = _text(value)
    if not text:
        return None
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        pass
    try:
        # Petfinder uses offsets like +0000.
        return datetime.strptime(text, "%Y-%m-%dT%H:%M:%S%z")
    except ValueError:
        return None


def _parse_distance(value: Any) -> float | None:
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _section(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, dict) else {}


def _iter_photos(raw_photos: Any) -> Iterable[PetPhoto]:
    if not isinstance(raw_photos, list):
        return
    for item in raw_photos:
        if not isinstance(item, dict):
            continue
        photo = PetPhoto(
            small=_text(item.get("small")),
            medium=_text(item.get("medium")),
            large=_text(item.get("large")),
            full=_text(item.get("full")),
        )
        if photo.best_url():
            yield photo


def candidate_from_payload(animal: Mapping[str, Any]) -> Candidate:
    """Build a ``Candidate`` from one Petfinder animal object.

    Raises:
        ValueError: If the record has no usable integer ``id``.
    """
    try:
        pet_id = int(animal["id"])
    except (KeyError, TypeError, ValueError) as exc:
        raise ValueError("Petfinder animal is missing an integer id.") from exc

    breeds = _section(animal.get("breeds"))
    colors = _section(animal.get("colors"))
    attributes = _section(animal.get("attributes"))
    environment = _section(animal.get("environment"))
    contact = _section(animal.get("contact"))
    address = _section(contact.get("address"))
    tags = animal.get("tags")
    if not isinstance(tags, list):
        tags = []

    return Candidate(
        id=pet_id,
        name=_text(animal.get("name")) or "",
        type=_text(animal.get("type")),
        species=_text(animal.get("species")),
        breed_primary=_text(breeds.get("primary")),
        breed_secondary=_text(breeds.get("secondary")),
        breed_mixed=bool(breeds.get("mixed")),
        age=_text(animal.get("age")),
        size=_text(animal.get("size")),
        gender=_text(animal.get("gender")),
        colors=tuple(
            c for c in (
                _text(colors.get("primary")),
                _text(colors.get("secondary")),
                _text(colors.get("tertiary")),
            )
            if c
        ),
        photos=tuple(_iter_photos(animal.get("photos"))),
        description=_text(animal.get("description")),
        attributes=PetAttributes(
            house_trained=bool(attributes.get("house_trained")),
            spayed_neutered=bool(attributes.get("spayed_neutered")),
            special_needs=bool(attributes.get("special_needs")),
            shots_current=bool(attributes.get("shots_current")),
        ),
        environment=PetEnvironment(
            children=Tristate.from_optional(environment.get("children")),
            dogs=Tristate.from_optional(environment.get("dogs")),
            cats=Tristate.from_optional(environment.get("cats")),
        ),
        contact_address=ContactAddress(
            city=_text(address.get("city")),
            state=_text(address.get("state")),
            postcode=_text(address.get("postcode")),
            country=_text(address.get("country")),
        ),
        url=_text(animal.get("url")),
        status=_text(animal.get("status")),
        organization_id=_text(animal.get("organization_id")),
        tags=tuple(t for t in (_text(tag) for tag in tags if isinstance(tag, str)) if t),
        published_at=_parse_published_at(animal.get("published_at")),
        distance=_parse_distance(animal.get("distance")),
    )


def page_from_payload(
    payload: Mapping[str, Any], page_number: int, page_size: int
) -> Page:
    """Build a ``Page`` from a ``/animals`` response body."""
    animals = payload.get("animals") or []
    items: list[Candidate] = []
    for animal in animals:
        if not isinstance(animal, dict):
            continue
        try:
            items.append(candidate_from_payload(animal))
        except ValueError as exc:
            logger.warning(f"Skipping malformed Petfinder animal: {exc}")

    pagination = payload.get("pagination") or {}

    def _int(key: str, default: int) -> int:
        try:
            return int(pagination.get(key, default))
        except (TypeError, ValueError):
            return default

    return Page(
        items=tuple(items),
        current_page=_int("current_page", page_number),
        total_pages=_int("total_pages", page_number if items else 0),
        total_count=_int("total_count", len(items)),
        count_per_page=_int("count_per_page", page_size),
    )


class PetfinderClient:
    """Issue authenticated requests against the Petfinder v2 API.

    Args:
        token_cache: Source of bearer tokens.
        base_url: API root such as ``https://api.petfinder.com/v2``.
        http: Object exposing ``get`` like the ``requests`` module.
        timeout: Request timeout in seconds.
        cache: Optional disk cache for single-animal lookups.
        detail_ttl: Seconds a cached animal stays fresh.
    """

    def __init__(
        self,
        token_cache: TokenCache,
        *,
        base_url: str = DEFAULT_PETFINDER_BASE_URL,
        http=requests,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        cache: Cache | None = None,
        detail_ttl: int = DEFAULT_PET_DETAIL_CACHE_SECONDS,
    ) -> None:
        self.token_cache = token_cache
        self._base_url = base_url.rstrip("/")
        self._http = http
        self._timeout = timeout
        self._cache = cache
        self._detail_ttl = detail_ttl

    def fetch_page(
        self,
        page_number: int,
        page_size: int,
        remote_params: Mapping[str, str] | None = None,
    ) -> Page:
        """Fetch one page of adoptable animals.

        Args:
            page_number: 1-based page to request.
            page_size: Requested number of animals per page.
            remote_params: Upstream-supported filters from ``split_filter``.

        Returns:
            The deserialized page, before any local refinement.

        Raises:
            AuthError: If no access token could be obtained.
            UpstreamError: If the API failed or could not be reached.
        """
        params: dict[str, str] = dict(remote_params or {})
        params.update(
            {
                "page": str(page_number),
                "limit": str(page_size),
                "status": ADOPTABLE_STATUS,
            }
        )
        payload = self._get_json("/animals", params=params)
        page = page_from_payload(payload, page_number, page_size)
        logger.debug(
            f"Fetched page {page.current_page}/{page.total_pages} "
            f"with {len(page.items)} animals."
        )
        return page

    def fetch_pet(self, pet_id: int) -> Candidate:
        """Fetch a single animal by id, consulting the disk cache first."""
        key = ("animal", int(pet_id))
        if self._cache is not None:
            try:
                hit = self._cache.get(key)
            except Exception:
                self._cache.delete(key)
                hit = None
            if hit is not None:
                return hit

        payload = self._get_json(f"/animals/{int(pet_id)}")
        animal = payload.get("animal")
        if not isinstance(animal, dict):
            raise UpstreamError(502, "Petfinder response did not include an animal.")
        try:
            candidate = candidate_from_payload(animal)
        except ValueError as exc:
            raise UpstreamError(502, str(exc)) from exc

        if self._cache is not None and self._detail_ttl > 0:
            self._cache.set(key, candidate, expire=self._detail_ttl)
        return candidate

    def _get_json(self, path: str, params: Mapping[str, str] | None = None) -> dict:
        token = self.token_cache.get_token()
        headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "application/json",
            "User-Agent": USER_AGENT,
        }
        url = f"{self._base_url}{path}"
        try:
            response = self._http.get(
                url, params=params, headers=headers, timeout=self._timeout
            )
        except requests.Timeout as exc:
            raise UpstreamError(504, "Petfinder request timed out.") from exc
        except requests.RequestException as exc:
            raise UpstreamError(502, f"Petfinder request failed: {exc}") from exc

        if response.status_code == 401:
            self.token_cache.invalidate()
        if response.status_code != 200:
            raise UpstreamError(
                response.status_code,
                _error_detail(response) or f"Petfinder returned HTTP {response.status_code}",
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamError(502, "Petfinder returned invalid JSON.") from exc
        if not isinstance(payload, dict):
            raise UpstreamError(502, "Petfinder returned an unexpected payload.")
        return payload


def _error_detail(response) -> str | None:
    """Pull the problem-details ``detail`` or ``title`` from an error body."""
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    return _text(body.get("detail")) or _text(body.get("title"))

from __future__ import annotations

from diskcache import Cache

from ..config import (
    get_cache_dir,
    get_pet_detail_cache_seconds,
    get_petfinder_base_url,
    get_petfinder_credentials,
    get_timeout_seconds,
)
from .client import PetfinderClient, candidate_from_payload, page_from_payload
from .token_cache import TokenCache

__all__ = [
    "PetfinderClient",
    "TokenCache",
    "build_client",
    "candidate_from_payload",
    "page_from_payload",
]


def build_client() -> PetfinderClient:
    """Create a client wired from environment configuration."""
    client_id, client_secret = get_petfinder_credentials()
    base_url = get_petfinder_base_url()
    timeout = get_timeout_seconds()
    token_cache = TokenCache(
        client_id, client_secret, base_url=base_url, timeout=timeout
    )
    return PetfinderClient(
        token_cache,
        base_url=base_url,
        timeout=timeout,
        cache=Cache(get_cache_dir()),
        detail_ttl=get_pet_detail_cache_seconds(),
    )

"""Swipe session: paging, filter epochs and decisions for one browser.

A session owns a buffer of candidates loaded under the active filter.
Changing the filter starts a new epoch: the buffer, cursor and page
counter reset while favorites carry over. Pages that arrive for an epoch
that has since been replaced are thrown away.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Optional

from pawfectmatch.config import DEFAULT_PAGE_SIZE, MAX_EMPTY_PAGE_SKIPS, MAX_PAGE_SIZE
from pawfectmatch.errors import AuthError, UpstreamError, ValidationError
from pawfectmatch.filters import refine_candidates, split_filter
from pawfectmatch.ledger import Decision, DecisionLedger
from pawfectmatch.models import Candidate, FilterSpec

logger = logging.getLogger(__name__)

ERROR_MESSAGE = "Failed to load pets. Please try again."


class PagerState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    EXHAUSTED = "exhausted"
    ERROR = "error"


class SwipeSession:
    """Serve candidates one at a time and record accept/reject decisions.

    Args:
        client: Object with ``fetch_page(page_number, page_size, params)``.
        page_size: Number of animals requested per upstream page.
        ledger: Decision ledger to share; a fresh one by default.
        max_empty_page_skips: Consecutive pages that may refine to nothing
            before ``next_candidate`` gives up for the current call.
    """

    def __init__(
        self,
        client,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        ledger: DecisionLedger | None = None,
        max_empty_page_skips: int = MAX_EMPTY_PAGE_SKIPS,
    ) -> None:
        self._client = client
        self.page_size = max(1, min(MAX_PAGE_SIZE, int(page_size)))
        self.ledger = ledger if ledger is not None else DecisionLedger()
        self._max_empty_page_skips = max(1, max_empty_page_skips)
        self._lock = threading.Lock()
        self._epoch = 0
        self._loading_epoch: int | None = None
        self._filter = FilterSpec()
        self._remote_params, self._residual = split_filter(self._filter)
        self._reset_buffer_locked()

    def _reset_buffer_locked(self) -> None:
        self._loaded: list[Candidate] = []
        self._seen_ids: set[int] = set()
        self._cursor = 0
        self._remote_page = 1
        self._total_pages: int | None = None
        self._total_count: int | None = None
        self._state = PagerState.IDLE
        self._last_error: Exception | None = None

    @property
    def state(self) -> PagerState:
        return self._state

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def remote_page(self) -> int:
        return self._remote_page

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def active_filter(self) -> FilterSpec:
        return self._filter

    @property
    def last_error(self) -> Exception | None:
        return self._last_error

    @property
    def loaded_candidates(self) -> tuple[Candidate, ...]:
        with self._lock:
            return tuple(self._loaded)

    def _begin_epoch(self, spec: FilterSpec) -> int:
        remote_params, residual = split_filter(spec)
        with self._lock:
            self._epoch += 1
            self._loading_epoch = None
            self._filter = spec
            self._remote_params = remote_params
            self._residual = residual
            self._reset_buffer_locked()
            logger.info(
                f"Starting epoch {self._epoch} with {spec.active_count()} active filter(s)."
            )
            return self._epoch

    def load_initial(self, spec: FilterSpec | None = None) -> Optional[Candidate]:
        """Start browsing under ``spec`` and return the first candidate."""
        self._begin_epoch(spec if spec is not None else FilterSpec())
        return self.next_candidate()

    def apply_filter(self, spec: FilterSpec) -> Optional[Candidate]:
        """Replace the active filter, discarding buffered candidates."""
        self._begin_epoch(spec)
        return self.next_candidate()

    def restart(self) -> Optional[Candidate]:
        """Browse again from page one under the current filter."""
        self._begin_epoch(self._filter)
        return self.next_candidate()

    def retry(self) -> Optional[Candidate]:
        """Re-request the page that failed; a no-op unless loading is needed."""
        return self.next_candidate()

    def _has_more_pages_locked(self) -> bool:
        return self._total_pages is None or self._remote_page <= self._total_pages

    def _is_loading_locked(self) -> bool:
        return (
            self._state is PagerState.LOADING
            and self._loading_epoch == self._epoch
        )

    def next_candidate(self) -> Optional[Candidate]:
        """Return the candidate awaiting a decision without consuming it.

        Loads further pages when the buffer is used up. Returns ``None``
        while another load for this epoch is in flight, after a failed
        load (state ``ERROR``), or once the upstream has no more pages.
        """
        empty_pages = 0
        while True:
            with self._lock:
                if self._cursor < len(self._loaded):
                    return self._loaded[self._cursor]
                if self._is_loading_locked():
                    return None
                if not self._has_more_pages_locked():
                    self._state = PagerState.EXHAUSTED
                    return None

            added = self._load_next_page()
            if added is None:
                return None
            if added == 0:
                empty_pages += 1
                if empty_pages >= self._max_empty_page_skips:
                    logger.info(
                        f"Stopped after {empty_pages} page(s) with no matching pets."
                    )
                    return None

    def _load_next_page(self) -> int | None:
        """Fetch ``remote_page`` for the current epoch.

        Returns:
            Number of new candidates appended, or ``None`` when the load
            was coalesced, failed, or belonged to a superseded epoch.
        """
        with self._lock:
            if self._is_loading_locked():
                return None
            epoch = self._epoch
            page_number = self._remote_page
            remote_params = dict(self._remote_params)
            residual = self._residual
            self._state = PagerState.LOADING
            self._loading_epoch = epoch
            self._last_error = None

        try:
            page = self._client.fetch_page(page_number, self.page_size, remote_params)
        except (AuthError, UpstreamError) as exc:
            with self._lock:
                if epoch != self._epoch:
                    logger.debug(f"Ignoring failure from superseded epoch {epoch}.")
                    return None
                self._state = PagerState.ERROR
                self._loading_epoch = None
                self._last_error = exc
            logger.warning(f"Failed to load page {page_number}: {exc}")
            return None
        except Exception:
            with self._lock:
                if epoch == self._epoch:
                    self._state = PagerState.ERROR
                    self._loading_epoch = None
            raise

        refined = refine_candidates(page.items, residual)
        with self._lock:
            if epoch != self._epoch:
                logger.info(
                    f"Discarding page {page_number} from superseded epoch {epoch}."
                )
                return None
            if page_number == 1:
                self._loaded = []
                self._seen_ids = set()
            fresh: list[Candidate] = []
            for candidate in refined:
                if candidate.id in self._seen_ids:
                    continue
                self._seen_ids.add(candidate.id)
                fresh.append(candidate)
            self._loaded.extend(fresh)
            self._remote_page = page_number + 1
            self._total_pages = page.total_pages
            self._total_count = page.total_count
            self._loading_epoch = None
            if self._cursor >= len(self._loaded) and not self._has_more_pages_locked():
                self._state = PagerState.EXHAUSTED
            else:
                self._state = PagerState.READY

        logger.debug(
            f"Page {page_number}: {len(page.items)} fetched, {len(fresh)} kept "
            f"(epoch {epoch})."
        )
        return len(fresh)

    def decide(self, pet_id: int, decision: str | Decision) -> Candidate:
        """Record a decision for the current candidate and advance.

        Raises:
            ValidationError: If ``decision`` is unknown or ``pet_id`` is not
                the candidate awaiting a decision.
        """
        parsed = Decision.parse(decision)
        with self._lock:
            if self._cursor >= len(self._loaded):
                raise ValidationError("No pet is awaiting a decision.")
            current = self._loaded[self._cursor]
            if current.id != pet_id:
                raise ValidationError(f"Pet {pet_id} is not the current pet.")
            self._cursor += 1
        self.ledger.record(current, parsed)
        return current

    def find_loaded(self, pet_id: int) -> Optional[Candidate]:
        with self._lock:
            for candidate in self._loaded:
                if candidate.id == pet_id:
                    return candidate
        return None

    def add_favorite(self, candidate: Candidate) -> bool:
        """Favorite a candidate from the details view without advancing."""
        return self.ledger.accept(candidate)

    def remove_favorite(self, pet_id: int) -> bool:
        return self.ledger.remove_favorite(pet_id)

    def is_favorited(self, pet_id: int) -> bool:
        return self.ledger.is_favorited(pet_id)

    def list_favorites(self) -> list[Candidate]:
        return self.ledger.favorites()

    def status(self) -> dict:
        """Summarize session state for the presentation layer."""
        with self._lock:
            return {
                "state": self._state.value,
                "epoch": self._epoch,
                "cursor": self._cursor,
                "loaded": len(self._loaded),
                "remote_page": self._remote_page,
                "total_pages": self._total_pages,
                "total_count": self._total_count,
                "filter": self._filter.to_dict(),
                "active_filters": self._filter.active_count(),
                "favorites": len(self.ledger),
                "error": ERROR_MESSAGE if self._state is PagerState.ERROR else None,
            }

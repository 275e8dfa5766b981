"""
Edit session for a single Location.

Holds a draft name/description, fetches nearby pages for the location's
coordinate, and reports progress through a tri-state `LoadingState`.

A session belongs to one asyncio task. `fetch_nearby_places` runs the blocking
HTTP call in a worker thread and only touches `pages`/`loading_state` after it
resumes on the caller's task, so there is a single writer for session state.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from domain.models import LoadingState, Location, Page, is_really_empty
from services.geosearch import GeosearchClient, GeosearchError, get_default_geosearch_client

logger = logging.getLogger(__name__)

StateListener = Callable[[LoadingState, LoadingState], None]


@dataclass(frozen=True)
class EditSessionSnapshot:
    loading_state: LoadingState
    pages: Tuple[Page, ...]
    name: str
    description: str


class LocationEditSession:
    def __init__(self, location: Location, client: Optional[GeosearchClient] = None):
        self.location = location
        self.name: str = location.name
        self.description: str = location.description
        self.loading_state: LoadingState = LoadingState.LOADING
        self.pages: List[Page] = []
        self._client = client
        self._listeners: List[StateListener] = []

    @property
    def client(self) -> GeosearchClient:
        if self._client is None:
            self._client = get_default_geosearch_client()
        return self._client

    @property
    def can_commit(self) -> bool:
        return not is_really_empty(self.name)

    def commit(self) -> Location:
        """Return a copy of the location with a new id and the draft text."""
        return self.location.with_draft(self.name, self.description)

    def snapshot(self) -> EditSessionSnapshot:
        return EditSessionSnapshot(
            loading_state=self.loading_state,
            pages=tuple(self.pages),
            name=self.name,
            description=self.description,
        )

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Call `listener(old, new)` on every loading-state change.

        Returns a function that removes the listener.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, new_state: LoadingState) -> None:
        old_state = self.loading_state
        self.loading_state = new_state
        if old_state == new_state:
            return
        logger.debug("Edit session %s: %s -> %s", self.location.id, old_state.value, new_state.value)
        for listener in list(self._listeners):
            try:
                listener(old_state, new_state)
            except Exception:
                logger.exception("Loading state listener failed")

    def mark_failed(self) -> None:
        """Move to FAILED without a lookup, notifying listeners."""
        self._set_state(LoadingState.FAILED)

    async def fetch_nearby_places(self) -> None:
        """Fetch pages near the location; ends in LOADED or FAILED.

        On failure `pages` keeps whatever it held before the call.
        """
        self._set_state(LoadingState.LOADING)
        lat, lon = self.location.coordinate
        try:
            results = await asyncio.to_thread(self.client.search_nearby, lat, lon)
        except GeosearchError as exc:
            logger.info("Nearby lookup failed for location %s: %s", self.location.id, exc)
            self._set_state(LoadingState.FAILED)
            return

        self.pages = sorted(results)
        self._set_state(LoadingState.LOADED)

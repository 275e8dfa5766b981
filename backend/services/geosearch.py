"""Nearby points of interest from the Wikipedia geosearch API.

The client only knows how to turn a coordinate into a list of `Page` values.
It raises a `GeosearchError` subclass on any failure and leaves it to callers
(see `services.edit_session`) to decide what a failure means for them.
"""

from __future__ import annotations

import logging
import math
import os
import threading
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import requests
from pydantic import BaseModel, ValidationError

from domain.models import Page, PageThumbnail

WIKIPEDIA_API_URL = "https://en.wikipedia.org/w/api.php"
FALLBACK_UA = "bucketlist-backend/0.1 (contact: example@example.com)"

logger = logging.getLogger(__name__)
_session = requests.Session()
_last_request_ts: float = 0.0
_lock = threading.Lock()


class GeosearchError(Exception):
    """Base class for anything that makes a nearby lookup fail."""


class GeosearchRequestError(GeosearchError):
    """The request could not be built; nothing was sent."""


class GeosearchTransportError(GeosearchError):
    """Network failure, timeout, or an error status/body from the server."""


class GeosearchDecodeError(GeosearchError):
    """The response body is not the JSON shape we expect."""


@dataclass(frozen=True)
class GeosearchConfig:
    base_url: str = WIKIPEDIA_API_URL
    radius_m: int = 10000
    limit: int = 50
    thumb_size: int = 500
    timeout: float = 10.0
    user_agent: str = FALLBACK_UA
    min_interval_sec: float = 0.0

    @classmethod
    def from_env(cls) -> "GeosearchConfig":
        defaults = cls()
        user_agent = os.getenv("GEOSEARCH_USER_AGENT")
        if user_agent is None:
            logger.warning(
                "GEOSEARCH_USER_AGENT not set in environment; using fallback UA. "
                "This may violate the Wikimedia User-Agent policy."
            )
        try:
            return cls(
                base_url=os.getenv("GEOSEARCH_BASE_URL", defaults.base_url),
                radius_m=int(os.getenv("GEOSEARCH_RADIUS_M", str(defaults.radius_m))),
                limit=int(os.getenv("GEOSEARCH_LIMIT", str(defaults.limit))),
                thumb_size=int(os.getenv("GEOSEARCH_THUMB_SIZE", str(defaults.thumb_size))),
                timeout=float(os.getenv("GEOSEARCH_TIMEOUT", str(defaults.timeout))),
                user_agent=user_agent or defaults.user_agent,
                min_interval_sec=float(
                    os.getenv("GEOSEARCH_MIN_INTERVAL", str(defaults.min_interval_sec))
                ),
            )
        except ValueError as exc:
            raise GeosearchRequestError(f"invalid GEOSEARCH_* setting: {exc}") from exc


# Response schema. Only `query.pages` is consumed; its keys are discarded.


class _ThumbnailPayload(BaseModel):
    source: str
    width: int
    height: int


class _PagePayload(BaseModel):
    pageid: int
    title: str
    terms: Optional[Dict[str, List[str]]] = None
    thumbnail: Optional[_ThumbnailPayload] = None


class _QueryPayload(BaseModel):
    pages: Dict[str, _PagePayload]


class GeosearchResponse(BaseModel):
    query: _QueryPayload


def _page_from_payload(payload: _PagePayload) -> Page:
    thumb = payload.thumbnail
    return Page(
        pageid=payload.pageid,
        title=payload.title,
        terms=payload.terms,
        thumbnail=PageThumbnail(source=thumb.source, width=thumb.width, height=thumb.height)
        if thumb
        else None,
    )


def decode_pages(data: Any) -> List[Page]:
    """Decode a parsed JSON body into pages, in server order.

    Anything without `query.pages` is a decode error, including an empty body.
    """
    if isinstance(data, dict) and isinstance(data.get("error"), dict):
        error = data["error"]
        raise GeosearchTransportError(
            f"geosearch API error {error.get('code')}: {error.get('info')}"
        )
    try:
        parsed = GeosearchResponse.model_validate(data)
    except ValidationError as exc:
        raise GeosearchDecodeError(f"unexpected geosearch response: {exc}") from exc
    return [_page_from_payload(p) for p in parsed.query.pages.values()]


def _throttled_get(
    url: str,
    *,
    headers: dict[str, str],
    timeout: float,
    min_interval: float = 0.0,
) -> requests.Response:
    """Perform a GET request with a simple global rate limit."""
    global _last_request_ts
    with _lock:
        now = time.time()
        delta = now - _last_request_ts
        if delta < min_interval:
            time.sleep(min_interval - delta)
        _last_request_ts = time.time()
    return _session.get(url, headers=headers, timeout=timeout)


class GeosearchClient:
    def __init__(self, config: Optional[GeosearchConfig] = None):
        self.config = config or GeosearchConfig.from_env()
        self.logger = logging.getLogger(__name__)

    def _params(self, lat: float, lon: float) -> dict[str, str]:
        limit = str(self.config.limit)
        return {
            "ggscoord": f"{lat}|{lon}",
            "action": "query",
            "prop": "coordinates|pageimages|pageterms",
            "colimit": limit,
            "piprop": "thumbnail",
            "pithumbsize": str(self.config.thumb_size),
            "pilimit": limit,
            "wbptterms": "description",
            "generator": "geosearch",
            "ggsradius": str(self.config.radius_m),
            "ggslimit": limit,
            "format": "json",
        }

    def build_request(self, lat: float, lon: float) -> requests.PreparedRequest:
        """Build the GET request for a coordinate without sending it."""
        if not (math.isfinite(lat) and math.isfinite(lon)):
            raise GeosearchRequestError(f"non-finite coordinate {lat},{lon}")
        if not (-90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0):
            raise GeosearchRequestError(f"coordinate out of range {lat},{lon}")
        try:
            return requests.Request(
                "GET",
                self.config.base_url,
                params=self._params(lat, lon),
                headers={"User-Agent": self.config.user_agent},
            ).prepare()
        except requests.RequestException as exc:
            raise GeosearchRequestError(f"bad geosearch URL {self.config.base_url!r}: {exc}") from exc

    def search_nearby(self, lat: float, lon: float) -> List[Page]:
        """Return pages near (lat, lon) in the order the server sent them."""
        prepared = self.build_request(lat, lon)
        try:
            resp = _throttled_get(
                prepared.url,
                headers=dict(prepared.headers),
                timeout=self.config.timeout,
                min_interval=self.config.min_interval_sec,
            )
            resp.raise_for_status()
        except requests.RequestException as exc:
            self.logger.warning("Geosearch request failed for lat=%s lon=%s: %s", lat, lon, exc)
            raise GeosearchTransportError(str(exc)) from exc

        try:
            data = resp.json()
        except ValueError as exc:
            self.logger.warning("Geosearch JSON error for lat=%s lon=%s: %s", lat, lon, exc)
            raise GeosearchDecodeError(f"response is not JSON: {exc}") from exc

        pages = decode_pages(data)
        self.logger.debug(
            "GeosearchClient.search_nearby: lat=%.6f lon=%.6f radius_m=%d got %d pages",
            lat,
            lon,
            self.config.radius_m,
            len(pages),
        )
        return pages


_default_geosearch_client: Optional[GeosearchClient] = None


def get_default_geosearch_client() -> GeosearchClient:
    global _default_geosearch_client
    if _default_geosearch_client is None:
        _default_geosearch_client = GeosearchClient()
    return _default_geosearch_client

"""
Core domain models for the bucket list backend.
These are framework-agnostic and can be used across all services.
"""
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
import uuid


NO_FURTHER_INFORMATION = "No further information"


def is_really_empty(text: Optional[str]) -> bool:
    """True when text is None or only whitespace/newlines."""
    return not (text or "").strip()


class LoadingState(str, Enum):
    """State of a nearby-places fetch."""
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


@dataclass(frozen=True)
class Location:
    """
    A saved place on the map.

    Locations are immutable: edits produce a copy via `with_draft`, and the
    copy always gets a new id so the original record is untouched until the
    caller explicitly saves the result.
    """
    id: str
    latitude: float
    longitude: float
    name: str
    description: str = ""

    @staticmethod
    def generate_id() -> str:
        return str(uuid.uuid4())

    @property
    def coordinate(self) -> Tuple[float, float]:
        return (self.latitude, self.longitude)

    def with_draft(self, name: str, description: str) -> "Location":
        return replace(self, id=Location.generate_id(), name=name, description=description)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "name": self.name,
            "description": self.description,
        }


@dataclass(frozen=True)
class PageThumbnail:
    source: str
    width: int
    height: int


@dataclass(frozen=True, order=True)
class Page:
    """
    A nearby point of interest returned by the geosearch API.

    Ordering compares `pageid` only, so `sorted(pages)` gives a stable,
    id-ascending list.
    """
    pageid: int
    title: str = field(compare=False)
    terms: Optional[Dict[str, List[str]]] = field(default=None, compare=False)
    thumbnail: Optional[PageThumbnail] = field(default=None, compare=False)

    @property
    def description(self) -> str:
        values = (self.terms or {}).get("description") or []
        return values[0] if values else NO_FURTHER_INFORMATION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pageid": self.pageid,
            "title": self.title,
            "description": self.description,
            "thumbnail": (
                {
                    "source": self.thumbnail.source,
                    "width": self.thumbnail.width,
                    "height": self.thumbnail.height,
                }
                if self.thumbnail
                else None
            ),
        }

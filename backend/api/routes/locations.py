"""
Locations API routes.
"""
import logging
from typing import List, Optional
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from db import SessionLocal
from domain.models import Location, Page, is_really_empty
from repositories import LocationsRepository
from services.edit_session import LocationEditSession
from settings import settings

router = APIRouter()
locations_repo = LocationsRepository()
logger = logging.getLogger(__name__)


class LocationCreate(BaseModel):
    latitude: float = Field(ge=-90.0, le=90.0)
    longitude: float = Field(ge=-180.0, le=180.0)
    name: str
    description: str = ""


class LocationDraft(BaseModel):
    name: str
    description: str = ""


class LocationResponse(BaseModel):
    id: str
    latitude: float
    longitude: float
    name: str
    description: str


class PageThumbnailResponse(BaseModel):
    source: str
    width: int
    height: int


class PageResponse(BaseModel):
    pageid: int
    title: str
    description: str
    thumbnail: Optional[PageThumbnailResponse] = None


class NearbyPlacesResponse(BaseModel):
    location_id: str
    loading_state: str
    pages: List[PageResponse]


def location_to_response(location: Location) -> LocationResponse:
    """Convert domain Location to API response."""
    return LocationResponse(**location.to_dict())


def page_to_response(page: Page) -> PageResponse:
    return PageResponse(**page.to_dict())


def _get_or_404(session, location_id: str) -> Location:
    location = locations_repo.get_location(session, location_id)
    if not location:
        raise HTTPException(status_code=404, detail="Location not found")
    return location


@router.get("", response_model=List[LocationResponse])
async def list_locations():
    """List all saved locations."""
    with SessionLocal() as session:
        return [location_to_response(loc) for loc in locations_repo.list_locations(session)]


@router.post("", response_model=LocationResponse)
async def create_location(data: LocationCreate):
    """Save a new location."""
    if is_really_empty(data.name):
        raise HTTPException(status_code=400, detail="Location name must not be empty")
    location = Location(
        id=Location.generate_id(),
        latitude=data.latitude,
        longitude=data.longitude,
        name=data.name,
        description=data.description,
    )
    with SessionLocal() as session:
        saved = locations_repo.save_location(session, location)
        return location_to_response(saved)


@router.get("/{location_id}", response_model=LocationResponse)
async def get_location(location_id: str):
    """Get a location by ID."""
    with SessionLocal() as session:
        return location_to_response(_get_or_404(session, location_id))


@router.put("/{location_id}", response_model=LocationResponse)
async def update_location(location_id: str, draft: LocationDraft):
    """Commit a draft edit. The stored record is replaced by a copy with a new ID."""
    with SessionLocal() as session:
        location = _get_or_404(session, location_id)
        edit = LocationEditSession(location)
        edit.name = draft.name
        edit.description = draft.description
        if not edit.can_commit:
            raise HTTPException(status_code=400, detail="Location name must not be empty")
        updated = locations_repo.replace_location(session, location_id, edit.commit())
        logger.debug("Replaced location %s with %s", location_id, updated.id)
        return location_to_response(updated)


@router.get("/{location_id}/nearby", response_model=NearbyPlacesResponse)
async def nearby_places(location_id: str):
    """Fetch Wikipedia pages near a saved location.

    Lookup failures are reported through `loading_state`, never as an HTTP error.
    """
    with SessionLocal() as session:
        location = _get_or_404(session, location_id)

    edit = LocationEditSession(location)
    if settings.NEARBY_LOOKUP_ENABLED:
        await edit.fetch_nearby_places()
    else:
        logger.debug("nearby: lookup disabled, reporting failed for %s", location_id)
        edit.mark_failed()

    return NearbyPlacesResponse(
        location_id=location.id,
        loading_state=edit.loading_state.value,
        pages=[page_to_response(p) for p in edit.pages],
    )


@router.delete("/{location_id}")
async def delete_location(location_id: str):
    """Delete a location."""
    with SessionLocal() as session:
        if not locations_repo.delete_location(session, location_id):
            raise HTTPException(status_code=404, detail="Location not found")
        return {"status": "deleted"}

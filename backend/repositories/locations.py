"""
Location repository backed by SQLAlchemy/SQLite.
"""
from datetime import datetime
from typing import List, Optional
from sqlalchemy.orm import Session

from domain.models import Location
from repositories.models import LocationORM


def _location_from_orm(orm: LocationORM) -> Location:
    return Location(
        id=orm.id,
        latitude=orm.latitude,
        longitude=orm.longitude,
        name=orm.name,
        description=orm.description or "",
    )


def _update_orm_from_location(orm: LocationORM, location: Location) -> None:
    orm.latitude = location.latitude
    orm.longitude = location.longitude
    orm.name = location.name
    orm.description = location.description


class LocationsRepository:
    """Load/save/delete operations for locations."""

    def list_locations(self, session: Session) -> List[Location]:
        rows = session.query(LocationORM).order_by(LocationORM.created_at).all()
        return [_location_from_orm(r) for r in rows]

    def get_location(self, session: Session, location_id: str) -> Optional[Location]:
        orm = session.get(LocationORM, location_id)
        if not orm:
            return None
        return _location_from_orm(orm)

    def save_location(self, session: Session, location: Location) -> Location:
        """Insert the location, or overwrite the row with the same id."""
        orm = session.get(LocationORM, location.id)
        if orm is None:
            orm = LocationORM(id=location.id, created_at=datetime.utcnow())
        _update_orm_from_location(orm, location)
        session.add(orm)
        session.commit()
        session.refresh(orm)
        return _location_from_orm(orm)

    def replace_location(self, session: Session, old_id: str, location: Location) -> Location:
        """Swap the row `old_id` for a committed copy, keeping its list position."""
        old = session.get(LocationORM, old_id)
        if not old:
            raise ValueError("Location not found")
        created_at = old.created_at
        session.delete(old)
        orm = LocationORM(id=location.id, created_at=created_at)
        _update_orm_from_location(orm, location)
        session.add(orm)
        session.commit()
        session.refresh(orm)
        return _location_from_orm(orm)

    def delete_location(self, session: Session, location_id: str) -> bool:
        orm = session.get(LocationORM, location_id)
        if not orm:
            return False
        session.delete(orm)
        session.commit()
        return True

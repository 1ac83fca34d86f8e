from datetime import datetime

from sqlalchemy import select

from app.countdesk.db.models import LocationMapping


class LocationRepository:
    def __init__(self, db):
        self.db = db

    def external_id_for(self, location_name: str) -> str | None:
        mapping = self.db.get(LocationMapping, location_name)
        return mapping.external_location_id if mapping else None

    def list_all(self) -> list[LocationMapping]:
        stmt = select(LocationMapping).order_by(LocationMapping.location_name)
        return list(self.db.execute(stmt).scalars().all())

    def upsert(self, location_name: str, external_location_id: str) -> LocationMapping:
        mapping = self.db.get(LocationMapping, location_name)
        if mapping is None:
            mapping = LocationMapping(location_name=location_name)
            self.db.add(mapping)
        mapping.external_location_id = external_location_id
        mapping.updated_at = datetime.utcnow()
        return mapping

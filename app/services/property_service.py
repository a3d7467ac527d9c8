# app/services/property_service.py
from __future__ import annotations

import uuid
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.errors import NotFoundError
from app.models.property import Property
from app.models.token_offering import TokenOffering


class PropertyService:
    """
    Thin adapter over the property catalogue.
    The ledger reads properties and writes only the tokenized mark.
    """

    def get(self, db: Session, property_id: uuid.UUID) -> Optional[Property]:
        return db.get(Property, property_id)

    def get_or_404(self, db: Session, property_id: uuid.UUID) -> Property:
        prop = self.get(db, property_id)
        if not prop:
            raise NotFoundError("Property not found.")
        return prop

    def get_for_update(self, db: Session, property_id: uuid.UUID) -> Optional[Property]:
        return (
            db.execute(select(Property).where(Property.id == property_id).with_for_update())
            .scalars()
            .one_or_none()
        )

    def mark_tokenized(self, db: Session, prop: Property, offering: TokenOffering) -> None:
        """
        Flags the property as tokenized. No commit; runs inside the issuing transaction.
        """
        prop.is_tokenized = True
        prop.investment_type = "tokenized"
        prop.token_offering_id = offering.id
        db.add(prop)

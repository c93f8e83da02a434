from typing import Optional
from sqlalchemy.orm import Session
from storefront.domain.models import Address
from .schemas import AddressIn

class AddressStore:
    """Shipping and billing addresses. Rows are never updated after insert."""

    def __init__(self, db: Session):
        self.db = db

    def create(self, data: AddressIn) -> Address:
        # Flushed only; the caller's transaction decides whether the row survives
        address = Address(street=data.street, city=data.city, state=data.state)
        self.db.add(address)
        self.db.flush()
        return address

    def get(self, address_id: int) -> Optional[Address]:
        return self.db.get(Address, address_id)

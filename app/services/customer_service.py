"""Customer lookups and creation."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.models.customer import Customer


class CustomerService:
    def __init__(self, db: Session) -> None:
        self.db = db

    def get_customer(self, customer_id: UUID) -> Optional[Customer]:
        return self.db.query(Customer).filter(Customer.id == customer_id).first()

    def get_by_external_user_id(self, external_user_id: str) -> Optional[Customer]:
        return (
            self.db.query(Customer)
            .filter(Customer.external_user_id == external_user_id)
            .first()
        )

    def add_customer(
        self,
        external_user_id: str,
        display_name: Optional[str] = None,
        picture_url: Optional[str] = None,
    ) -> Customer:
        """Stage and flush a new customer. Raises IntegrityError if the id is taken."""
        customer = Customer(
            external_user_id=external_user_id,
            display_name=display_name,
            picture_url=picture_url,
        )
        self.db.add(customer)
        self.db.flush()
        return customer

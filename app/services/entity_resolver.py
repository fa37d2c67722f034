"""
EntityResolver: external user id -> (customer, OPEN conversation), creating either if absent.

The lookup is read-then-write, so two deliveries for the same new user can
both see "nothing yet". The store's unique constraints (customers.external_user_id
and the one-OPEN-per-customer partial index) make the slower writer fail
with IntegrityError; the resolver then rolls back and re-reads the winner's
row, up to a bounded number of attempts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import get_settings
from app.exceptions import EntityResolutionConflictError
from app.models.conversation import Conversation
from app.models.customer import Customer
from app.services.conversation_service import ConversationService
from app.services.customer_service import CustomerService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedEntities:
    customer: Customer
    conversation: Conversation
    customer_created: bool = False
    conversation_created: bool = False


class EntityResolver:
    def __init__(self, db: Session, max_attempts: Optional[int] = None) -> None:
        self.db = db
        self.max_attempts = max_attempts or get_settings().entity_resolution_max_attempts
        self._customers = CustomerService(db)
        self._conversations = ConversationService(db)

    def resolve(self, external_user_id: str) -> ResolvedEntities:
        """
        Return the customer and their single OPEN conversation, committed.

        Raises:
            EntityResolutionConflictError: constraint conflicts persisted past max_attempts.
        """
        for attempt in range(1, self.max_attempts + 1):
            try:
                resolved = self._resolve_once(external_user_id)
                self.db.commit()
                return resolved
            except IntegrityError as e:
                self.db.rollback()
                logger.warning(
                    "Entity resolution conflict for %s (attempt %d/%d), re-reading: %s",
                    external_user_id,
                    attempt,
                    self.max_attempts,
                    e.orig,
                )
        raise EntityResolutionConflictError(external_user_id, self.max_attempts)

    def _resolve_once(self, external_user_id: str) -> ResolvedEntities:
        customer_created = False
        conversation_created = False

        customer = self._find_customer(external_user_id)
        if customer is None:
            customer = self._customers.add_customer(external_user_id)
            customer_created = True

        conversation = self._find_open_conversation(customer)
        if conversation is None:
            conversation = self._conversations.add_open_conversation(customer.id)
            conversation_created = True

        return ResolvedEntities(
            customer=customer,
            conversation=conversation,
            customer_created=customer_created,
            conversation_created=conversation_created,
        )

    def _find_customer(self, external_user_id: str) -> Optional[Customer]:
        return self._customers.get_by_external_user_id(external_user_id)

    def _find_open_conversation(self, customer: Customer) -> Optional[Conversation]:
        return self._conversations.get_open_conversation(customer.id)

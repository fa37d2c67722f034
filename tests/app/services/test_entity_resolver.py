"""Tests for EntityResolver get-or-create and its conflict path."""

import threading
from unittest.mock import patch

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from app.config import get_settings
from app.constants.messaging import ConversationStatus
from app.db import Base
from app.exceptions import EntityResolutionConflictError
from app.models.conversation import Conversation
from app.models.customer import Customer
from app.services.conversation_service import ConversationService
from app.services.entity_resolver import EntityResolver


def test_resolve_creates_customer_and_open_conversation(db):
    resolved = EntityResolver(db).resolve("Unew")
    assert resolved.customer_created is True
    assert resolved.conversation_created is True
    assert resolved.customer.external_user_id == "Unew"
    assert resolved.conversation.status == ConversationStatus.OPEN.value
    assert resolved.conversation.customer_id == resolved.customer.id
    assert db.query(Customer).count() == 1
    assert db.query(Conversation).count() == 1


def test_resolve_reuses_existing_rows(db, setup_conversation, setup_customer):
    resolved = EntityResolver(db).resolve(setup_customer.external_user_id)
    assert resolved.customer.id == setup_customer.id
    assert resolved.conversation.id == setup_conversation.id
    assert resolved.customer_created is False
    assert resolved.conversation_created is False


def test_resolve_opens_new_conversation_when_previous_closed(db, setup_conversation, setup_customer):
    setup_conversation.status = ConversationStatus.CLOSED.value
    db.commit()
    resolved = EntityResolver(db).resolve(setup_customer.external_user_id)
    assert resolved.conversation.id != setup_conversation.id
    assert resolved.conversation_created is True
    assert ConversationService(db).count_open_conversations(setup_customer.id) == 1


def test_store_rejects_second_open_conversation(db, setup_conversation, setup_customer):
    with pytest.raises(IntegrityError):
        ConversationService(db).add_open_conversation(setup_customer.id)
    db.rollback()


def test_resolve_recovers_when_losing_open_conversation_race(
    db, setup_conversation, setup_customer
):
    """
    Simulates a concurrent writer: the first read sees no OPEN conversation,
    the insert hits the unique index, and the retry re-reads the winner's row.
    """
    resolver = EntityResolver(db)
    real_find = resolver._find_open_conversation
    calls = []

    def stale_then_real(customer):
        calls.append(customer.id)
        if len(calls) == 1:
            return None
        return real_find(customer)

    with patch.object(resolver, "_find_open_conversation", side_effect=stale_then_real):
        resolved = resolver.resolve(setup_customer.external_user_id)

    assert len(calls) == 2
    assert resolved.conversation.id == setup_conversation.id
    assert resolved.conversation_created is False
    assert ConversationService(db).count_open_conversations(setup_customer.id) == 1


def test_resolve_recovers_when_losing_customer_race(db, setup_customer):
    resolver = EntityResolver(db)
    real_find = resolver._find_customer
    calls = []

    def stale_then_real(external_user_id):
        calls.append(external_user_id)
        if len(calls) == 1:
            return None
        return real_find(external_user_id)

    with patch.object(resolver, "_find_customer", side_effect=stale_then_real):
        resolved = resolver.resolve(setup_customer.external_user_id)

    assert resolved.customer.id == setup_customer.id
    assert db.query(Customer).count() == 1


def test_resolve_gives_up_after_max_attempts(db, setup_conversation, setup_customer):
    resolver = EntityResolver(db, max_attempts=2)
    with patch.object(resolver, "_find_open_conversation", return_value=None):
        with pytest.raises(EntityResolutionConflictError) as exc_info:
            resolver.resolve(setup_customer.external_user_id)
    assert exc_info.value.attempts == 2
    assert ConversationService(db).count_open_conversations(setup_customer.id) == 1


@pytest.fixture
def shared_engine(tmp_path, engine):
    """An engine whose sessions each get their own connection."""
    if get_settings().database_url.startswith("postgresql"):
        Base.metadata.create_all(bind=engine)
        yield engine
        Base.metadata.drop_all(bind=engine)
        return
    file_engine = create_engine(
        f"sqlite:///{tmp_path / 'resolver.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=file_engine)
    yield file_engine
    file_engine.dispose()


def test_concurrent_first_contact_creates_one_customer_and_conversation(shared_engine):
    workers = 8
    barrier = threading.Barrier(workers)
    Session = sessionmaker(bind=shared_engine, expire_on_commit=False)
    conversation_ids = []
    errors = []
    lock = threading.Lock()

    def first_contact():
        session = Session()
        try:
            barrier.wait(timeout=30)
            resolved = EntityResolver(session, max_attempts=5).resolve("Usame")
            with lock:
                conversation_ids.append(resolved.conversation.id)
        except Exception as e:
            with lock:
                errors.append(e)
        finally:
            session.close()

    threads = [threading.Thread(target=first_contact) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)

    assert errors == []
    assert len(conversation_ids) == workers
    assert len(set(conversation_ids)) == 1

    session = Session()
    try:
        customers = session.query(Customer).filter(Customer.external_user_id == "Usame").all()
        assert len(customers) == 1
        assert ConversationService(session).count_open_conversations(customers[0].id) == 1
    finally:
        session.close()

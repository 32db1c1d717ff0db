"""Pytest configuration and fixtures for unit tests."""

from datetime import date

import pytest

from src.domain.user import UserCreate
from src.services import group_service, user_service
from tests.unit.mocks import InMemoryDBClient


# 2024-01-01 was a Monday
MONDAY = date(2024, 1, 1)
TUESDAY = date(2024, 1, 2)


@pytest.fixture
def in_memory_db():
    """Provides a fresh InMemoryDBClient for each test."""
    return InMemoryDBClient()


@pytest.fixture
def patched_db(monkeypatch, in_memory_db):
    """Patches src.core.db_client functions to use InMemoryDBClient."""
    monkeypatch.setattr("src.core.db_client.create_record", in_memory_db.create_record)
    monkeypatch.setattr("src.core.db_client.get_record", in_memory_db.get_record)
    monkeypatch.setattr("src.core.db_client.update_record", in_memory_db.update_record)
    monkeypatch.setattr("src.core.db_client.delete_record", in_memory_db.delete_record)
    monkeypatch.setattr("src.core.db_client.list_records", in_memory_db.list_records)
    monkeypatch.setattr("src.core.db_client.get_first_record", in_memory_db.get_first_record)
    monkeypatch.setattr("src.core.db_client.increment_field", in_memory_db.increment_field)
    monkeypatch.setattr("src.core.db_client.create_record_with_increment", in_memory_db.create_record_with_increment)
    monkeypatch.setattr("src.core.db_client.set_fields_to_sums", in_memory_db.set_fields_to_sums)

    return in_memory_db


@pytest.fixture
async def alice(patched_db):
    """A user with no groups."""
    return await user_service.create_user(
        payload=UserCreate(display_name="Alisher", goals="Ingliz tilini o'rganish", habits="Erta turish")
    )


@pytest.fixture
async def bob(patched_db):
    return await user_service.create_user(payload=UserCreate(display_name="Bobur"))


@pytest.fixture
async def group(patched_db, alice):
    """A group administered by alice."""
    return await group_service.create_group(admin_id=alice.id, name="Kitobxonlar", description="Har kuni o'qiymiz")

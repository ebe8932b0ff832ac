"""
Pytest configuration and shared fixtures.
"""

import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

from accounts.models import AuthContext, User
from research.database import MongoDBManager
from research.models import LegalInformation, ResearchBook

OWNER_ID = "64b000000000000000000001"
OTHER_USER_ID = "64b000000000000000000002"
BOOK_ID = "64b0000000000000000000a1"
ITEM_ID = "64b0000000000000000000b1"


@pytest.fixture
def mock_db_manager():
    """Create a mock MongoDB manager for testing."""
    manager = AsyncMock(spec=MongoDBManager)
    manager.get_books.return_value = []
    manager.get_all_legal_information.return_value = []
    manager.get_book_by_id.return_value = None
    manager.get_user_by_id.return_value = None
    manager.get_user_by_email.return_value = None
    manager.insert_shares.return_value = 0
    manager.get_shares_by_book.return_value = []
    manager.get_shares_by_user.return_value = []
    manager.is_token_revoked.return_value = False
    return manager


@pytest.fixture
def auth_context():
    """Authenticated caller used by service and endpoint tests."""
    return AuthContext(
        user_id=OWNER_ID,
        email="owner@example.com",
        jti="test-jti",
        expires_at=datetime.now(timezone.utc) + timedelta(hours=1)
    )


@pytest.fixture
def sample_book():
    return ResearchBook(
        id=BOOK_ID,
        name="Contract Law 101",
        date_created=datetime(2024, 1, 10, 9, 0),
        last_modified=datetime(2024, 1, 10, 9, 0),
        user_id=OWNER_ID
    )


@pytest.fixture
def sample_books(sample_book):
    """Books owned by different users, used by search tests."""
    return [
        sample_book,
        ResearchBook(id="64b0000000000000000000a2", name="Tort Notes", user_id=OTHER_USER_ID),
        ResearchBook(id="64b0000000000000000000a3", name="Evidence Prep", user_id=OTHER_USER_ID),
    ]


@pytest.fixture
def sample_legal_information():
    return LegalInformation(
        id=ITEM_ID,
        type="Statute",
        title="Sale of Goods Act",
        description="Implied terms in consumer contracts",
        document="Section 14 covers satisfactory quality.",
        date_added=datetime(2024, 1, 11, 15, 30),
        research_book_id=BOOK_ID
    )


@pytest.fixture
def sample_user():
    from accounts.security import hash_password

    return User(
        id=OTHER_USER_ID,
        email="colleague@example.com",
        first_name="Sam",
        last_name="Reed",
        organization="Reed & Co",
        contact_details="+1 555 0100",
        password_hash=hash_password("Str0ng!Pass"),
        security_stamp="stamp-1"
    )

"""
Unit tests for the MongoDB layer: filter building and cascading deletes.
"""

import pytest
from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, MagicMock

from bson import ObjectId

from research.database import MongoDBManager, build_legal_information_filter, to_object_id
from research.models import LegalInformation, ResearchBook, ResearchBookShare, SearchCriteria
from tests.conftest import BOOK_ID, OWNER_ID


class TestFilterBuilding:
    """Test cases for build_legal_information_filter."""

    def test_no_criteria_matches_everything(self):
        assert build_legal_information_filter(None) == {}
        assert build_legal_information_filter(SearchCriteria()) == {}
        assert build_legal_information_filter(SearchCriteria(document_type="", title="")) == {}

    def test_document_type_matches_document_field(self):
        query = build_legal_information_filter(SearchCriteria(document_type="PDF"))
        assert query == {"document": "PDF"}

    def test_title_exact(self):
        query = build_legal_information_filter(SearchCriteria(title="Sale of Goods Act"))
        assert query == {"title": "Sale of Goods Act"}

    def test_date_matches_whole_day(self):
        query = build_legal_information_filter(SearchCriteria(date_added=date(2024, 1, 11)))
        assert query == {
            "date_added": {
                "$gte": datetime(2024, 1, 11, tzinfo=timezone.utc),
                "$lt": datetime(2024, 1, 12, tzinfo=timezone.utc),
            }
        }

    def test_criteria_combine(self):
        query = build_legal_information_filter(
            SearchCriteria(document_type="PDF", title="T", date_added=date(2024, 2, 29))
        )
        assert query["document"] == "PDF"
        assert query["title"] == "T"
        assert query["date_added"]["$lt"] == datetime(2024, 3, 1, tzinfo=timezone.utc)


class TestObjectIds:

    def test_valid_id(self):
        assert str(to_object_id(BOOK_ID)) == BOOK_ID

    def test_invalid_id(self):
        assert to_object_id("not-an-id") is None
        assert to_object_id("") is None


class TestMongoDBManager:
    """Test cases for MongoDBManager against mocked collections."""

    @pytest.fixture
    def manager(self):
        manager = MongoDBManager("mongodb://localhost:27017", "legalgen_test")
        manager.database = MagicMock()
        return manager

    @pytest.mark.asyncio
    async def test_delete_book_removes_children_before_book(self, manager):
        calls = []

        def record(name, result):
            async def call(*args, **kwargs):
                calls.append(name)
                return result
            return call

        manager.database.research_books.count_documents = AsyncMock(return_value=1)
        manager.database.legal_information.delete_many = AsyncMock(
            side_effect=record("legal_information", MagicMock(deleted_count=2))
        )
        manager.database.research_book_shares.delete_many = AsyncMock(
            side_effect=record("shares", MagicMock(deleted_count=1))
        )
        manager.database.research_books.delete_one = AsyncMock(
            side_effect=record("book", MagicMock(deleted_count=1))
        )

        assert await manager.delete_book(BOOK_ID) is True
        assert calls == ["legal_information", "shares", "book"]
        manager.database.legal_information.delete_many.assert_awaited_once_with({"research_book_id": BOOK_ID})
        manager.database.research_book_shares.delete_many.assert_awaited_once_with({"research_book_id": BOOK_ID})

    @pytest.mark.asyncio
    async def test_failed_child_delete_keeps_book(self, manager):
        manager.database.research_books.count_documents = AsyncMock(return_value=1)
        manager.database.legal_information.delete_many = AsyncMock(side_effect=Exception("Database error"))
        manager.database.research_books.delete_one = AsyncMock()

        with pytest.raises(Exception, match="Database error"):
            await manager.delete_book(BOOK_ID)

        manager.database.research_books.delete_one.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delete_missing_book_leaves_children(self, manager):
        manager.database.research_books.count_documents = AsyncMock(return_value=0)
        manager.database.legal_information.delete_many = AsyncMock()
        manager.database.research_books.delete_one = AsyncMock()

        assert await manager.delete_book(BOOK_ID) is False
        manager.database.legal_information.delete_many.assert_not_awaited()
        manager.database.research_books.delete_one.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delete_book_with_malformed_id(self, manager):
        manager.database.research_books.count_documents = AsyncMock()

        assert await manager.delete_book("nope") is False
        manager.database.research_books.count_documents.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_insert_shares_single_batch(self, manager):
        manager.database.research_book_shares.insert_many = AsyncMock(
            return_value=MagicMock(inserted_ids=["a", "b"])
        )
        shares = [
            ResearchBookShare(user_id="u1", research_book_id=BOOK_ID),
            ResearchBookShare(user_id="u2", research_book_id=BOOK_ID),
        ]

        assert await manager.insert_shares(shares) == 2
        documents = manager.database.research_book_shares.insert_many.call_args.args[0]
        assert [d["user_id"] for d in documents] == ["u1", "u2"]
        assert all("id" not in d for d in documents)

    @pytest.mark.asyncio
    async def test_insert_no_shares(self, manager):
        manager.database.research_book_shares.insert_many = AsyncMock()

        assert await manager.insert_shares([]) == 0
        manager.database.research_book_shares.insert_many.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_update_legal_information_scoped_to_book(self, manager):
        manager.database.legal_information.update_one = AsyncMock(return_value=MagicMock(matched_count=0))

        updated = await manager.update_legal_information(BOOK_ID, "64b0000000000000000000b9", {"title": "T"})

        assert updated is False
        query = manager.database.legal_information.update_one.call_args.args[0]
        assert query["research_book_id"] == BOOK_ID


class InMemoryCollection:
    """Minimal async collection supporting the equality filters MongoDBManager issues."""

    def __init__(self):
        self.documents = []

    def _matches(self, doc, query):
        return all(doc.get(key) == value for key, value in query.items())

    async def insert_one(self, document):
        document = dict(document, _id=ObjectId())
        self.documents.append(document)
        return MagicMock(inserted_id=document["_id"])

    async def find_one(self, query):
        return next((dict(d) for d in self.documents if self._matches(d, query)), None)

    async def count_documents(self, query, limit=0):
        return sum(1 for d in self.documents if self._matches(d, query))

    async def delete_one(self, query):
        for doc in self.documents:
            if self._matches(doc, query):
                self.documents.remove(doc)
                return MagicMock(deleted_count=1)
        return MagicMock(deleted_count=0)

    async def delete_many(self, query):
        kept = [d for d in self.documents if not self._matches(d, query)]
        deleted = len(self.documents) - len(kept)
        self.documents = kept
        return MagicMock(deleted_count=deleted)


class TestCascadeDelete:
    """Deleting a book makes its legal information unreachable."""

    @pytest.fixture
    def manager(self):
        manager = MongoDBManager("mongodb://localhost:27017", "legalgen_test")
        manager.database = MagicMock()
        manager.database.research_books = InMemoryCollection()
        manager.database.legal_information = InMemoryCollection()
        manager.database.research_book_shares = InMemoryCollection()
        return manager

    @pytest.mark.asyncio
    async def test_children_not_found_after_book_delete(self, manager):
        book = await manager.insert_book(ResearchBook(name="Contract Law 101", user_id=OWNER_ID))
        first = await manager.insert_legal_information(
            LegalInformation(type="Case", title="A", description="D", research_book_id=book.id)
        )
        second = await manager.insert_legal_information(
            LegalInformation(type="Statute", title="B", description="D", research_book_id=book.id)
        )
        assert await manager.get_legal_information(book.id, first.id) is not None

        assert await manager.delete_book(book.id) is True

        assert await manager.get_book_by_id(book.id) is None
        assert await manager.get_legal_information(book.id, first.id) is None
        assert await manager.get_legal_information(book.id, second.id) is None
        assert manager.database.legal_information.documents == []

    @pytest.mark.asyncio
    async def test_other_books_keep_their_children(self, manager):
        doomed = await manager.insert_book(ResearchBook(name="Old", user_id=OWNER_ID))
        kept = await manager.insert_book(ResearchBook(name="Current", user_id=OWNER_ID))
        item = await manager.insert_legal_information(
            LegalInformation(type="Case", title="A", description="D", research_book_id=kept.id)
        )

        await manager.delete_book(doomed.id)

        assert await manager.get_legal_information(kept.id, item.id) is not None

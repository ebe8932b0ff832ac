"""
Unit tests for research book and legal information management.
"""

import pytest
from datetime import datetime

from research.books import ResearchBookService
from research.models import LegalInformation, LegalInformationUpdate, ResearchBook, SearchCriteria
from tests.conftest import BOOK_ID, ITEM_ID, OTHER_USER_ID, OWNER_ID


class TestResearchBookService:
    """Test cases for book CRUD."""

    @pytest.fixture
    def service(self, mock_db_manager):
        return ResearchBookService(mock_db_manager)

    @pytest.mark.asyncio
    async def test_create_book_forces_caller_as_owner(self, service, mock_db_manager, auth_context):
        mock_db_manager.insert_book.side_effect = lambda book: book.model_copy(update={"id": BOOK_ID})
        book = ResearchBook(name="Contract Law 101", user_id=OTHER_USER_ID)

        created = await service.create_book(book, auth_context)

        assert created.id == BOOK_ID
        assert created.user_id == OWNER_ID
        assert created.date_created == created.last_modified
        assert created.date_created.tzinfo is not None

    @pytest.mark.asyncio
    async def test_update_book_keeps_owner(self, service, mock_db_manager, sample_book):
        mock_db_manager.update_book.return_value = True
        mock_db_manager.get_book_by_id.return_value = sample_book.model_copy(update={"name": "Renamed"})

        updated = await service.update_book(BOOK_ID, "Renamed")

        assert updated.name == "Renamed"
        fields = mock_db_manager.update_book.call_args.args[1]
        assert set(fields) == {"name", "last_modified"}

    @pytest.mark.asyncio
    async def test_update_missing_book(self, service, mock_db_manager):
        mock_db_manager.update_book.return_value = False

        assert await service.update_book(BOOK_ID, "Renamed") is None
        mock_db_manager.get_book_by_id.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_list_books_for_user(self, service, mock_db_manager, sample_book):
        mock_db_manager.get_books_by_user.return_value = [sample_book]

        books = await service.list_books_for_user(OWNER_ID)

        assert books == [sample_book]
        mock_db_manager.get_books_by_user.assert_awaited_once_with(OWNER_ID)

    @pytest.mark.asyncio
    async def test_delete_book(self, service, mock_db_manager):
        mock_db_manager.delete_book.return_value = True

        assert await service.delete_book(BOOK_ID) is True
        mock_db_manager.delete_book.assert_awaited_once_with(BOOK_ID)


class TestLegalInformation:
    """Test cases for legal information within a book."""

    @pytest.fixture
    def service(self, mock_db_manager):
        return ResearchBookService(mock_db_manager)

    @pytest.mark.asyncio
    async def test_list_missing_book_returns_none(self, service):
        assert await service.list_legal_information(BOOK_ID) is None

    @pytest.mark.asyncio
    async def test_list_existing_book(self, service, mock_db_manager, sample_book, sample_legal_information):
        mock_db_manager.get_book_by_id.return_value = sample_book
        mock_db_manager.get_legal_information_by_book.return_value = [sample_legal_information]

        assert await service.list_legal_information(BOOK_ID) == [sample_legal_information]

    @pytest.mark.asyncio
    async def test_add_attaches_item_to_book(self, service, mock_db_manager, sample_book):
        mock_db_manager.get_book_by_id.return_value = sample_book
        mock_db_manager.insert_legal_information.side_effect = (
            lambda item: item.model_copy(update={"id": ITEM_ID})
        )
        item = LegalInformation(type="Case", title="T", description="D", research_book_id="elsewhere")

        assert await service.add_legal_information(BOOK_ID, item) is True
        stored = mock_db_manager.insert_legal_information.call_args.args[0]
        assert stored.research_book_id == BOOK_ID

    @pytest.mark.asyncio
    async def test_add_to_missing_book(self, service, mock_db_manager):
        item = LegalInformation(type="Case", title="T", description="D", research_book_id=BOOK_ID)

        assert await service.add_legal_information(BOOK_ID, item) is False
        mock_db_manager.insert_legal_information.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_update_copies_all_fields(
        self, service, mock_db_manager, sample_book, sample_legal_information
    ):
        mock_db_manager.get_book_by_id.return_value = sample_book
        mock_db_manager.get_legal_information.return_value = sample_legal_information
        mock_db_manager.update_legal_information.return_value = True
        new_date = datetime(2024, 3, 1, 12, 0)
        changes = LegalInformationUpdate(
            type="Case", title="New title", description="New description",
            document="New body", date_added=new_date
        )

        assert await service.update_legal_information(BOOK_ID, ITEM_ID, changes) is True
        mock_db_manager.update_legal_information.assert_awaited_once_with(
            BOOK_ID, ITEM_ID,
            {
                "type": "Case",
                "title": "New title",
                "description": "New description",
                "document": "New body",
                "date_added": new_date,
            }
        )

    @pytest.mark.asyncio
    async def test_update_without_date_keeps_stored_date(
        self, service, mock_db_manager, sample_book, sample_legal_information
    ):
        mock_db_manager.get_book_by_id.return_value = sample_book
        mock_db_manager.get_legal_information.return_value = sample_legal_information
        mock_db_manager.update_legal_information.return_value = True
        changes = LegalInformationUpdate(type="Case", title="T", description="D")

        await service.update_legal_information(BOOK_ID, ITEM_ID, changes)

        fields = mock_db_manager.update_legal_information.call_args.args[2]
        assert "date_added" not in fields
        assert fields["document"] is None

    @pytest.mark.asyncio
    async def test_update_item_in_other_book(self, service, mock_db_manager, sample_book):
        mock_db_manager.get_book_by_id.return_value = sample_book
        mock_db_manager.get_legal_information.return_value = None
        changes = LegalInformationUpdate(type="Case", title="T", description="D")

        assert await service.update_legal_information(BOOK_ID, ITEM_ID, changes) is False
        mock_db_manager.update_legal_information.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_delete_missing_item(self, service, mock_db_manager, sample_book):
        mock_db_manager.get_book_by_id.return_value = sample_book
        mock_db_manager.delete_legal_information.return_value = False

        assert await service.delete_legal_information(BOOK_ID, ITEM_ID) is False

    @pytest.mark.asyncio
    async def test_criteria_search(self, service, mock_db_manager, sample_legal_information):
        mock_db_manager.find_legal_information.return_value = [sample_legal_information]
        criteria = SearchCriteria(title="Sale of Goods Act")

        assert await service.search_legal_information(criteria) == [sample_legal_information]
        mock_db_manager.find_legal_information.assert_awaited_once_with(criteria)

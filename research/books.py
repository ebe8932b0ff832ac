"""
Research book management: book CRUD and the legal information inside each book.
"""

from datetime import datetime, timezone
from typing import List, Optional

import structlog

from accounts.models import AuthContext
from .database import MongoDBManager
from .models import (
    LegalInformation, LegalInformationUpdate, ResearchBook, SearchCriteria
)

logger = structlog.get_logger(__name__)


class ResearchBookService:
    """Service for research books and their legal information."""

    def __init__(self, db_manager: MongoDBManager):
        self.db_manager = db_manager
        self.logger = logger.bind(component="research_book_service")

    async def list_books(self) -> List[ResearchBook]:
        books = await self.db_manager.get_books()
        self.logger.info("Research books listed", count=len(books))
        return books

    async def list_books_for_user(self, user_id: str) -> List[ResearchBook]:
        return await self.db_manager.get_books_by_user(user_id)

    async def get_book(self, book_id: str) -> Optional[ResearchBook]:
        return await self.db_manager.get_book_by_id(book_id)

    async def create_book(self, book: ResearchBook, auth: AuthContext) -> ResearchBook:
        """
        Create a research book owned by the caller.

        Args:
            book: Book to store; its owner and timestamps are overwritten
            auth: Caller identity

        Returns:
            The stored book with its new id
        """
        now = datetime.now(timezone.utc)
        book = book.model_copy(update={
            "user_id": auth.user_id,
            "date_created": now,
            "last_modified": now,
        })
        created = await self.db_manager.insert_book(book)
        self.logger.info("Research book created", book_id=created.id, user_id=auth.user_id)
        return created

    async def update_book(self, book_id: str, name: str) -> Optional[ResearchBook]:
        """
        Rename a research book and bump its last_modified time.
        Ownership is never changed by an update.

        Returns:
            The updated book, or None if it does not exist
        """
        updated = await self.db_manager.update_book(book_id, {
            "name": name,
            "last_modified": datetime.now(timezone.utc),
        })
        if not updated:
            return None

        self.logger.info("Research book updated", book_id=book_id)
        return await self.db_manager.get_book_by_id(book_id)

    async def delete_book(self, book_id: str) -> bool:
        """Delete a book; its legal information and shares go with it."""
        deleted = await self.db_manager.delete_book(book_id)
        if deleted:
            self.logger.info("Research book deleted", book_id=book_id)
        return deleted

    async def list_legal_information(self, book_id: str) -> Optional[List[LegalInformation]]:
        """
        Get all legal information in a research book.

        Returns:
            The items, or None if the book does not exist
        """
        book = await self.db_manager.get_book_by_id(book_id)
        if book is None:
            self.logger.warning("Research book not found", book_id=book_id)
            return None
        return await self.db_manager.get_legal_information_by_book(book_id)

    async def get_legal_information(self, book_id: str, item_id: str) -> Optional[LegalInformation]:
        book = await self.db_manager.get_book_by_id(book_id)
        if book is None:
            return None
        return await self.db_manager.get_legal_information(book_id, item_id)

    async def add_legal_information(self, book_id: str, item: LegalInformation) -> bool:
        """
        Add legal information to a research book.

        Args:
            book_id: Research book to add to
            item: Item to add; it is attached to book_id whatever it says

        Returns:
            True if added, False if the book does not exist
        """
        book = await self.db_manager.get_book_by_id(book_id)
        if book is None:
            self.logger.warning("Research book not found", book_id=book_id)
            return False

        created = await self.db_manager.insert_legal_information(
            item.model_copy(update={"research_book_id": book_id})
        )
        self.logger.info("Legal information added", book_id=book_id, item_id=created.id)
        return True

    async def update_legal_information(
        self,
        book_id: str,
        item_id: str,
        changes: LegalInformationUpdate
    ) -> bool:
        """
        Replace the fields of a legal information item within a research book.

        Returns:
            True if updated, False if the book or the item within it does not exist
        """
        book = await self.db_manager.get_book_by_id(book_id)
        if book is None:
            self.logger.warning("Research book not found", book_id=book_id)
            return False

        existing = await self.db_manager.get_legal_information(book_id, item_id)
        if existing is None:
            self.logger.warning("Legal information not found", book_id=book_id, item_id=item_id)
            return False

        updated = await self.db_manager.update_legal_information(
            book_id, item_id, changes.to_update_fields()
        )
        if updated:
            self.logger.info("Legal information updated", book_id=book_id, item_id=item_id)
        return updated

    async def delete_legal_information(self, book_id: str, item_id: str) -> bool:
        """
        Delete a legal information item from a research book.

        Returns:
            True if deleted, False if the book or the item within it does not exist
        """
        book = await self.db_manager.get_book_by_id(book_id)
        if book is None:
            self.logger.warning("Research book not found", book_id=book_id)
            return False

        deleted = await self.db_manager.delete_legal_information(book_id, item_id)
        if deleted:
            self.logger.info("Legal information deleted", book_id=book_id, item_id=item_id)
        else:
            self.logger.warning("Legal information not found", book_id=book_id, item_id=item_id)
        return deleted

    async def search_legal_information(self, criteria: SearchCriteria) -> List[LegalInformation]:
        """Find legal information across all books matching every given criterion."""
        items = await self.db_manager.find_legal_information(criteria)
        self.logger.info(
            "Legal information criteria search",
            document_type=criteria.document_type,
            title=criteria.title,
            date_added=str(criteria.date_added) if criteria.date_added else None,
            count=len(items)
        )
        return items

"""
Sharing research books with users other than the owner.
"""

from typing import List

import structlog

from .database import MongoDBManager
from .models import (
    ResearchBook, ResearchBookShare, ShareOutcome, ShareResult, ShareStatus
)

logger = structlog.get_logger(__name__)

BOOK_NOT_FOUND = "book_not_found"
USER_NOT_FOUND = "user_not_found"


class SharingService:
    """Creates and reads research book share grants."""

    def __init__(self, db_manager: MongoDBManager):
        self.db_manager = db_manager
        self.logger = logger.bind(component="sharing_service")

    async def share_book_with_users(self, book_id: str, user_ids: List[str]) -> ShareResult:
        """
        Share a research book with each of the given users.

        Best effort: unknown users are skipped, and an unknown book skips
        everyone. Nothing is raised for either case. All grants are written in
        one batch after every user has been looked up.

        Args:
            book_id: Research book to share
            user_ids: Users to share it with

        Returns:
            ShareResult with one outcome per requested user id
        """
        book = await self.db_manager.get_book_by_id(book_id)
        if book is None:
            self.logger.warning("Research book not found for sharing", book_id=book_id)
            return ShareResult(
                research_book_id=book_id,
                book_found=False,
                outcomes=[
                    ShareOutcome(user_id=user_id, status=ShareStatus.SKIPPED, reason=BOOK_NOT_FOUND)
                    for user_id in user_ids
                ],
            )

        grants: List[ResearchBookShare] = []
        outcomes: List[ShareOutcome] = []
        for user_id in user_ids:
            user = await self.db_manager.get_user_by_id(user_id)
            if user is None:
                outcomes.append(
                    ShareOutcome(user_id=user_id, status=ShareStatus.SKIPPED, reason=USER_NOT_FOUND)
                )
                continue

            grants.append(ResearchBookShare(user_id=user.id, research_book_id=book.id))
            outcomes.append(ShareOutcome(user_id=user_id, status=ShareStatus.SHARED))

        await self.db_manager.insert_shares(grants)

        result = ShareResult(research_book_id=book_id, book_found=True, outcomes=outcomes)
        self.logger.info(
            "Book shared",
            book_id=book_id,
            shared=len(result.shared_user_ids),
            skipped=len(result.skipped_user_ids)
        )
        return result

    async def list_shares(self, book_id: str) -> List[ResearchBookShare]:
        return await self.db_manager.get_shares_by_book(book_id)

    async def list_books_shared_with(self, user_id: str) -> List[ResearchBook]:
        shares = await self.db_manager.get_shares_by_user(user_id)
        book_ids = list(dict.fromkeys(share.research_book_id for share in shares))
        return await self.db_manager.get_books_by_ids(book_ids)

    async def has_read_access(self, book: ResearchBook, user_id: str) -> bool:
        """The owner and every user holding a grant may read a book."""
        if book.user_id == user_id:
            return True
        shares = await self.db_manager.get_shares_by_book(book.id)
        return any(share.user_id == user_id for share in shares)

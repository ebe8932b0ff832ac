"""
Keyword search over research books and legal information.

A query is split on single whitespace characters and each piece is matched as a
literal, case-sensitive substring. There is no ranking, stemming or index: every
call scans all books and all legal information. Consecutive spaces (or an empty
query) produce empty tokens, and an empty token matches every string.
"""

import re
from datetime import datetime, timezone
from typing import Iterable, List

import structlog

from accounts.models import AuthContext
from .database import MongoDBManager
from .models import (
    AiChat, BookSummary, LegalInformation, LegalInformationSummary,
    ResearchBook, SearchResult
)

logger = structlog.get_logger(__name__)

_WHITESPACE = re.compile(r"\s")


def tokenize(query: str) -> List[str]:
    """Split on every whitespace character, keeping empty tokens."""
    return _WHITESPACE.split(query)


def contains_any(text: str, tokens: Iterable[str]) -> bool:
    return any(token in text for token in tokens)


def book_matches(book: ResearchBook, tokens: List[str]) -> bool:
    return contains_any(book.name, tokens)


def legal_information_matches(item: LegalInformation, tokens: List[str]) -> bool:
    fields = [item.type, item.title, item.description]
    if item.document is not None:
        fields.append(item.document)
    return any(contains_any(field, tokens) for field in fields)


class SearchEngine:
    """
    Searches every user's research books and legal information and records
    each query in the caller's chat history.
    """

    def __init__(self, db_manager: MongoDBManager):
        self.db_manager = db_manager
        self.logger = logger.bind(component="search_engine")

    async def search(self, query: str, auth: AuthContext) -> SearchResult:
        """
        Run a keyword search.

        Args:
            query: Free-text query
            auth: Caller identity; used for the chat history entry only

        Returns:
            Matching books (id, name) and legal information (id, type, title, description)
        """
        tokens = tokenize(query)

        books = await self.db_manager.get_books()
        items = await self.db_manager.get_all_legal_information()

        result = SearchResult(
            books=[
                BookSummary(id=book.id, name=book.name)
                for book in books
                if book_matches(book, tokens)
            ],
            legal_information=[
                LegalInformationSummary(
                    id=item.id,
                    type=item.type,
                    title=item.title,
                    description=item.description,
                )
                for item in items
                if legal_information_matches(item, tokens)
            ],
        )

        await self.db_manager.insert_ai_chat(
            AiChat(user_id=auth.user_id, message=query, date_time=datetime.now(timezone.utc))
        )

        self.logger.info(
            "Search completed",
            user_id=auth.user_id,
            tokens=len(tokens),
            books_scanned=len(books),
            items_scanned=len(items),
            books_matched=len(result.books),
            items_matched=len(result.legal_information)
        )
        return result

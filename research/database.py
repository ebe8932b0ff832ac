"""
MongoDB database utilities for async operations.
Handles connection, indexing, and CRUD operations for users, research books,
legal information, shares, chat history and revoked tokens.
"""

from datetime import datetime, timedelta, time, timezone
from typing import List, Optional, Dict, Any
from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import ConnectionFailure
import structlog

from accounts.models import User
from .models import ResearchBook, LegalInformation, ResearchBookShare, AiChat, SearchCriteria

logger = structlog.get_logger(__name__)


def to_object_id(value: str) -> Optional[ObjectId]:
    """Parse a 24-hex id; anything else cannot name a stored document."""
    if value and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def _from_document(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Replace MongoDB's _id with a string id."""
    doc = dict(doc)
    doc["id"] = str(doc.pop("_id"))
    return doc


def _to_document(model) -> Dict[str, Any]:
    return model.model_dump(exclude={"id"})


def build_legal_information_filter(criteria: Optional[SearchCriteria]) -> Dict[str, Any]:
    """
    Translate search criteria into a MongoDB filter.

    document_type and title are exact matches; date_added matches any time on
    the same calendar day.
    """
    filter_query: Dict[str, Any] = {}
    if criteria is None or criteria.is_empty():
        return filter_query

    if criteria.document_type:
        filter_query["document"] = criteria.document_type

    if criteria.title:
        filter_query["title"] = criteria.title

    if criteria.date_added is not None:
        day_start = datetime.combine(criteria.date_added, time.min, tzinfo=timezone.utc)
        filter_query["date_added"] = {"$gte": day_start, "$lt": day_start + timedelta(days=1)}

    return filter_query


class MongoDBManager:
    """
    Async MongoDB manager for the research data.
    One collection per entity, linked by string id references.
    """

    def __init__(self, connection_url: str, database_name: str):
        """
        Initialize MongoDB manager.

        Args:
            connection_url: MongoDB connection URL
            database_name: Name of the database
        """
        self.connection_url = connection_url
        self.database_name = database_name
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None

    async def connect(self) -> None:
        """Establish connection to MongoDB."""
        try:
            self.client = AsyncIOMotorClient(self.connection_url, tz_aware=True)
            self.database = self.client[self.database_name]

            # Test connection
            await self.client.admin.command('ping')
            logger.info("Successfully connected to MongoDB", database=self.database_name)

            await self._create_indexes()

        except ConnectionFailure as e:
            logger.error("Failed to connect to MongoDB", error=str(e))
            raise

    async def disconnect(self) -> None:
        """Close MongoDB connection."""
        if self.client:
            self.client.close()
            logger.info("Disconnected from MongoDB")

    @property
    def users(self):
        return self.database.users

    @property
    def research_books(self):
        return self.database.research_books

    @property
    def legal_information(self):
        return self.database.legal_information

    @property
    def research_book_shares(self):
        return self.database.research_book_shares

    @property
    def ai_chats(self):
        return self.database.ai_chats

    @property
    def revoked_tokens(self):
        return self.database.revoked_tokens

    async def _create_indexes(self) -> None:
        """
        Create indexes backing the lookups the services make.
        """
        try:
            await self.users.create_index("email", unique=True)

            await self.research_books.create_index("user_id")

            await self.legal_information.create_index("research_book_id")
            await self.legal_information.create_index([("title", 1), ("date_added", 1)])

            await self.research_book_shares.create_index([("research_book_id", 1), ("user_id", 1)])
            await self.research_book_shares.create_index("user_id")

            await self.ai_chats.create_index([("user_id", 1), ("date_time", -1)])

            # Revoked tokens disappear once they would have expired anyway
            await self.revoked_tokens.create_index("expires_at", expireAfterSeconds=0)
            await self.revoked_tokens.create_index("jti", unique=True)

            logger.info("Successfully created MongoDB indexes")

        except Exception as e:
            logger.error("Failed to create indexes", error=str(e))
            raise

    async def health_check(self) -> Dict[str, Any]:
        """
        Perform database health check.

        Returns:
            Dictionary with health status
        """
        try:
            await self.database.command("ping")
            return {
                "status": "healthy",
                "research_books_count": await self.research_books.estimated_document_count(),
                "users_count": await self.users.estimated_document_count(),
            }
        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return {
                "status": "unhealthy",
                "error": str(e)
            }

    # Users

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        object_id = to_object_id(user_id)
        if object_id is None:
            return None
        try:
            doc = await self.users.find_one({"_id": object_id})
            return User(**_from_document(doc)) if doc else None
        except Exception as e:
            logger.error("Failed to get user by ID", user_id=user_id, error=str(e))
            raise

    async def get_user_by_email(self, email: str) -> Optional[User]:
        try:
            doc = await self.users.find_one({"email": email})
            return User(**_from_document(doc)) if doc else None
        except Exception as e:
            logger.error("Failed to get user by email", error=str(e))
            raise

    async def insert_user(self, user: User) -> User:
        try:
            result = await self.users.insert_one(_to_document(user))
            logger.debug("Successfully inserted user", user_id=str(result.inserted_id))
            return user.model_copy(update={"id": str(result.inserted_id)})
        except Exception as e:
            logger.error("Failed to insert user", error=str(e))
            raise

    async def update_user(self, user_id: str, update_data: Dict[str, Any]) -> bool:
        """
        Update a user's fields.

        Returns:
            bool: True if the user exists, False otherwise
        """
        object_id = to_object_id(user_id)
        if object_id is None:
            return False
        try:
            result = await self.users.update_one({"_id": object_id}, {"$set": update_data})
            if result.matched_count == 0:
                logger.warning("User not found for update", user_id=user_id)
                return False
            return True
        except Exception as e:
            logger.error("Failed to update user", user_id=user_id, error=str(e))
            raise

    # Research books

    async def get_books(self) -> List[ResearchBook]:
        try:
            cursor = self.research_books.find({})
            return [ResearchBook(**_from_document(doc)) async for doc in cursor]
        except Exception as e:
            logger.error("Failed to get research books", error=str(e))
            raise

    async def get_books_by_user(self, user_id: str) -> List[ResearchBook]:
        try:
            cursor = self.research_books.find({"user_id": user_id})
            return [ResearchBook(**_from_document(doc)) async for doc in cursor]
        except Exception as e:
            logger.error("Failed to get research books by user", user_id=user_id, error=str(e))
            raise

    async def get_books_by_ids(self, book_ids: List[str]) -> List[ResearchBook]:
        object_ids = [oid for oid in (to_object_id(b) for b in book_ids) if oid is not None]
        if not object_ids:
            return []
        try:
            cursor = self.research_books.find({"_id": {"$in": object_ids}})
            return [ResearchBook(**_from_document(doc)) async for doc in cursor]
        except Exception as e:
            logger.error("Failed to get research books by IDs", count=len(object_ids), error=str(e))
            raise

    async def get_book_by_id(self, book_id: str) -> Optional[ResearchBook]:
        object_id = to_object_id(book_id)
        if object_id is None:
            return None
        try:
            doc = await self.research_books.find_one({"_id": object_id})
            return ResearchBook(**_from_document(doc)) if doc else None
        except Exception as e:
            logger.error("Failed to get research book by ID", book_id=book_id, error=str(e))
            raise

    async def insert_book(self, book: ResearchBook) -> ResearchBook:
        try:
            result = await self.research_books.insert_one(_to_document(book))
            logger.debug("Successfully inserted research book", book_id=str(result.inserted_id))
            return book.model_copy(update={"id": str(result.inserted_id)})
        except Exception as e:
            logger.error("Failed to insert research book", error=str(e))
            raise

    async def update_book(self, book_id: str, update_data: Dict[str, Any]) -> bool:
        """
        Update a research book's fields.

        Returns:
            bool: True if the book exists, False otherwise
        """
        object_id = to_object_id(book_id)
        if object_id is None:
            return False
        try:
            result = await self.research_books.update_one({"_id": object_id}, {"$set": update_data})
            if result.matched_count == 0:
                logger.warning("Research book not found for update", book_id=book_id)
                return False
            return True
        except Exception as e:
            logger.error("Failed to update research book", book_id=book_id, error=str(e))
            raise

    async def delete_book(self, book_id: str) -> bool:
        """
        Delete a research book together with its legal information and share grants.

        Returns:
            bool: True if deleted, False if not found
        """
        object_id = to_object_id(book_id)
        if object_id is None:
            return False
        try:
            if await self.research_books.count_documents({"_id": object_id}, limit=1) == 0:
                logger.warning("Research book not found for deletion", book_id=book_id)
                return False

            # Children go first; the book row is removed last
            items = await self.legal_information.delete_many({"research_book_id": book_id})
            shares = await self.research_book_shares.delete_many({"research_book_id": book_id})
            await self.research_books.delete_one({"_id": object_id})
            logger.debug(
                "Successfully deleted research book",
                book_id=book_id,
                legal_information_deleted=items.deleted_count,
                shares_deleted=shares.deleted_count
            )
            return True
        except Exception as e:
            logger.error("Failed to delete research book", book_id=book_id, error=str(e))
            raise

    # Legal information

    async def get_all_legal_information(self) -> List[LegalInformation]:
        try:
            cursor = self.legal_information.find({})
            return [LegalInformation(**_from_document(doc)) async for doc in cursor]
        except Exception as e:
            logger.error("Failed to get legal information", error=str(e))
            raise

    async def get_legal_information_by_book(self, book_id: str) -> List[LegalInformation]:
        try:
            cursor = self.legal_information.find({"research_book_id": book_id})
            return [LegalInformation(**_from_document(doc)) async for doc in cursor]
        except Exception as e:
            logger.error("Failed to get legal information by book", book_id=book_id, error=str(e))
            raise

    async def get_legal_information(self, book_id: str, item_id: str) -> Optional[LegalInformation]:
        """Get an item only if it belongs to the given book."""
        object_id = to_object_id(item_id)
        if object_id is None:
            return None
        try:
            doc = await self.legal_information.find_one({"_id": object_id, "research_book_id": book_id})
            return LegalInformation(**_from_document(doc)) if doc else None
        except Exception as e:
            logger.error("Failed to get legal information", book_id=book_id, item_id=item_id, error=str(e))
            raise

    async def find_legal_information(self, criteria: Optional[SearchCriteria]) -> List[LegalInformation]:
        filter_query = build_legal_information_filter(criteria)
        try:
            cursor = self.legal_information.find(filter_query)
            return [LegalInformation(**_from_document(doc)) async for doc in cursor]
        except Exception as e:
            logger.error("Failed to search legal information", error=str(e))
            raise

    async def insert_legal_information(self, item: LegalInformation) -> LegalInformation:
        try:
            result = await self.legal_information.insert_one(_to_document(item))
            logger.debug(
                "Successfully inserted legal information",
                item_id=str(result.inserted_id),
                book_id=item.research_book_id
            )
            return item.model_copy(update={"id": str(result.inserted_id)})
        except Exception as e:
            logger.error("Failed to insert legal information", book_id=item.research_book_id, error=str(e))
            raise

    async def update_legal_information(self, book_id: str, item_id: str, update_data: Dict[str, Any]) -> bool:
        object_id = to_object_id(item_id)
        if object_id is None:
            return False
        try:
            result = await self.legal_information.update_one(
                {"_id": object_id, "research_book_id": book_id},
                {"$set": update_data}
            )
            return result.matched_count > 0
        except Exception as e:
            logger.error("Failed to update legal information", book_id=book_id, item_id=item_id, error=str(e))
            raise

    async def delete_legal_information(self, book_id: str, item_id: str) -> bool:
        object_id = to_object_id(item_id)
        if object_id is None:
            return False
        try:
            result = await self.legal_information.delete_one({"_id": object_id, "research_book_id": book_id})
            return result.deleted_count > 0
        except Exception as e:
            logger.error("Failed to delete legal information", book_id=book_id, item_id=item_id, error=str(e))
            raise

    # Shares

    async def insert_shares(self, shares: List[ResearchBookShare]) -> int:
        """
        Insert share grants in one batch.

        Returns:
            Number of grants written
        """
        if not shares:
            return 0
        try:
            result = await self.research_book_shares.insert_many([_to_document(s) for s in shares])
            logger.debug("Share batch inserted", count=len(result.inserted_ids))
            return len(result.inserted_ids)
        except Exception as e:
            logger.error("Share batch insert failed", count=len(shares), error=str(e))
            raise

    async def get_shares_by_book(self, book_id: str) -> List[ResearchBookShare]:
        try:
            cursor = self.research_book_shares.find({"research_book_id": book_id})
            return [ResearchBookShare(**_from_document(doc)) async for doc in cursor]
        except Exception as e:
            logger.error("Failed to get shares by book", book_id=book_id, error=str(e))
            raise

    async def get_shares_by_user(self, user_id: str) -> List[ResearchBookShare]:
        try:
            cursor = self.research_book_shares.find({"user_id": user_id})
            return [ResearchBookShare(**_from_document(doc)) async for doc in cursor]
        except Exception as e:
            logger.error("Failed to get shares by user", user_id=user_id, error=str(e))
            raise

    # Chat history

    async def insert_ai_chat(self, chat: AiChat) -> AiChat:
        try:
            result = await self.ai_chats.insert_one(_to_document(chat))
            return chat.model_copy(update={"id": str(result.inserted_id)})
        except Exception as e:
            logger.error("Failed to insert chat history", user_id=chat.user_id, error=str(e))
            raise

    # Revoked tokens

    async def revoke_token(self, jti: str, expires_at: datetime) -> None:
        try:
            await self.revoked_tokens.update_one(
                {"jti": jti},
                {"$set": {"jti": jti, "expires_at": expires_at}},
                upsert=True
            )
        except Exception as e:
            logger.error("Failed to revoke token", error=str(e))
            raise

    async def is_token_revoked(self, jti: str) -> bool:
        try:
            doc = await self.revoked_tokens.find_one({"jti": jti})
            return doc is not None
        except Exception as e:
            logger.error("Failed to check token revocation", error=str(e))
            raise

"""
Pydantic models for research books, legal information, shares and chat history.
These are the stored shapes; wire-facing shapes live in api.models.
"""

from datetime import datetime, date, timezone
from enum import Enum
from typing import Optional, List
from pydantic import BaseModel, Field


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ResearchBook(BaseModel):
    """
    A named container owned by a user, holding legal information items.
    """
    id: Optional[str] = Field(None, description="Document identifier")
    name: str = Field(..., description="Name of the research book")
    date_created: datetime = Field(default_factory=utc_now, description="When the book was created")
    last_modified: datetime = Field(default_factory=utc_now, description="Last time the book was changed")
    user_id: str = Field(..., description="Identifier of the owning user")


class LegalInformation(BaseModel):
    """
    A single legal document or reference record belonging to one research book.
    """
    id: Optional[str] = Field(None, description="Document identifier")
    type: str = Field(..., description="Free-text category")
    title: str = Field(..., description="Title")
    description: str = Field(..., description="Description")
    document: Optional[str] = Field(None, description="Document body or reference")
    date_added: datetime = Field(default_factory=utc_now, description="When the item was added")
    research_book_id: str = Field(..., description="Identifier of the owning research book")


class LegalInformationUpdate(BaseModel):
    """
    Replacement values for a stored legal information item. A missing
    date_added keeps the stored one; a missing document clears it.
    """
    type: str
    title: str
    description: str
    document: Optional[str] = None
    date_added: Optional[datetime] = None

    def to_update_fields(self) -> dict:
        fields = {
            "type": self.type,
            "title": self.title,
            "description": self.description,
            "document": self.document,
        }
        if self.date_added is not None:
            fields["date_added"] = self.date_added
        return fields


class ResearchBookShare(BaseModel):
    """Grant giving a user visibility into a research book."""
    id: Optional[str] = Field(None, description="Document identifier")
    user_id: str = Field(..., description="User the book is shared with")
    research_book_id: str = Field(..., description="Shared research book")
    date_shared: datetime = Field(default_factory=utc_now, description="When the grant was created")


class AiChat(BaseModel):
    """Chat history entry: the raw query a user searched for."""
    id: Optional[str] = Field(None, description="Document identifier")
    user_id: str = Field(..., description="User who searched")
    message: str = Field(..., description="Verbatim query text")
    date_time: datetime = Field(default_factory=utc_now, description="When the search ran")


class SearchCriteria(BaseModel):
    """
    Optional filters for legal information. Present criteria are AND-combined.
    """
    document_type: Optional[str] = Field(None, description="Exact match on the document field")
    title: Optional[str] = Field(None, description="Exact match on the title")
    date_added: Optional[date] = Field(None, description="Calendar day to match against date_added")

    def is_empty(self) -> bool:
        return not self.document_type and not self.title and self.date_added is None


class BookSummary(BaseModel):
    """Book fields exposed by search."""
    id: str
    name: str


class LegalInformationSummary(BaseModel):
    """Legal information fields exposed by search; the document body is left out."""
    id: str
    type: str
    title: str
    description: str


class SearchResult(BaseModel):
    """Combined keyword search result."""
    books: List[BookSummary] = Field(default_factory=list)
    legal_information: List[LegalInformationSummary] = Field(default_factory=list)


class ShareStatus(str, Enum):
    """Per-user outcome of a share request."""
    SHARED = "shared"
    SKIPPED = "skipped"


class ShareOutcome(BaseModel):
    """What happened to one user id in a share request."""
    user_id: str
    status: ShareStatus
    reason: Optional[str] = None


class ShareResult(BaseModel):
    """
    Outcome of sharing a book with a batch of users.
    """
    research_book_id: str
    book_found: bool
    outcomes: List[ShareOutcome] = Field(default_factory=list)

    @property
    def shared_user_ids(self) -> List[str]:
        return [o.user_id for o in self.outcomes if o.status == ShareStatus.SHARED]

    @property
    def skipped_user_ids(self) -> List[str]:
        return [o.user_id for o in self.outcomes if o.status == ShareStatus.SKIPPED]

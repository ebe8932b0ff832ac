"""
Field-by-field conversion between stored entities and API shapes.
"""

from datetime import datetime, timezone
from typing import Optional

from accounts.models import User
from api.models import (
    AiChatResponse, LegalInformationChatDto, LegalInformationDto,
    ResearchBookChatDto, ResearchBookDto, UserProfile
)
from research.models import LegalInformation, LegalInformationUpdate, ResearchBook, SearchResult


def book_to_dto(book: ResearchBook) -> ResearchBookDto:
    return ResearchBookDto(
        id=book.id,
        name=book.name,
        date_created=book.date_created,
        last_modified=book.last_modified,
        user_id=book.user_id,
    )


def dto_to_book(dto: ResearchBookDto, owner_id: str, now: Optional[datetime] = None) -> ResearchBook:
    """Build a new book; the owner always comes from the caller, not the payload."""
    now = now or datetime.now(timezone.utc)
    return ResearchBook(
        name=dto.name,
        date_created=now,
        last_modified=now,
        user_id=owner_id,
    )


def legal_information_to_dto(item: LegalInformation) -> LegalInformationDto:
    return LegalInformationDto(
        id=item.id,
        type=item.type,
        title=item.title,
        description=item.description,
        document=item.document,
        date_added=item.date_added,
        research_book_id=item.research_book_id,
    )


def dto_to_legal_information(dto: LegalInformationDto, research_book_id: str) -> LegalInformation:
    """
    Build a new item for a book. The path's book id wins over the payload's,
    and a missing date_added defaults to now.
    """
    return LegalInformation(
        type=dto.type,
        title=dto.title,
        description=dto.description,
        document=dto.document,
        date_added=dto.date_added or datetime.now(timezone.utc),
        research_book_id=research_book_id,
    )


def dto_to_legal_information_update(dto: LegalInformationDto) -> LegalInformationUpdate:
    return LegalInformationUpdate(
        type=dto.type,
        title=dto.title,
        description=dto.description,
        document=dto.document,
        date_added=dto.date_added,
    )


def search_result_to_response(result: SearchResult) -> AiChatResponse:
    return AiChatResponse(
        books=[ResearchBookChatDto(id=b.id, name=b.name) for b in result.books],
        legal_information=[
            LegalInformationChatDto(
                id=li.id,
                type=li.type,
                title=li.title,
                description=li.description,
            )
            for li in result.legal_information
        ],
    )


def user_to_profile(user: User) -> UserProfile:
    return UserProfile(
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        organization=user.organization,
        contact_details=user.contact_details,
    )

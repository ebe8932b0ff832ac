"""
API models and schemas for the FastAPI application.
"""

from datetime import datetime
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Uniform response envelope used by every endpoint."""
    message: str = Field(..., description="Human-readable outcome")
    data: Optional[T] = Field(None, description="Payload, null on failure")
    status_code: int = Field(..., alias="statusCode", description="HTTP status code")

    model_config = ConfigDict(populate_by_name=True)


class ResearchBookDto(BaseModel):
    """Research book as sent and received over the API."""
    id: Optional[str] = Field(None, description="Research book identifier")
    name: str = Field(..., min_length=1, description="Research book name")
    date_created: Optional[datetime] = Field(None, description="Creation timestamp")
    last_modified: Optional[datetime] = Field(None, description="Last modification timestamp")
    user_id: Optional[str] = Field(None, description="Owner identifier")


class LegalInformationDto(BaseModel):
    """Legal information as sent and received over the API."""
    id: Optional[str] = Field(None, description="Legal information identifier")
    type: str = Field(..., description="Free-text category")
    title: str = Field(..., description="Title")
    description: str = Field(..., description="Description")
    document: Optional[str] = Field(None, description="Document body or reference")
    date_added: Optional[datetime] = Field(None, description="When the item was added")
    research_book_id: Optional[str] = Field(None, description="Owning research book identifier")


class ResearchBookChatDto(BaseModel):
    id: str
    name: str


class LegalInformationChatDto(BaseModel):
    id: str
    type: str
    title: str
    description: str


class AiChatResponse(BaseModel):
    """Search result: matching books and legal information."""
    books: List[ResearchBookChatDto] = Field(default_factory=list)
    legal_information: List[LegalInformationChatDto] = Field(
        default_factory=list, alias="legalInformation"
    )

    model_config = ConfigDict(populate_by_name=True)


class ShareRequest(BaseModel):
    """Users to share a research book with."""
    user_ids: List[str] = Field(..., description="Identifiers of the users to share with")


class RegisterRequest(BaseModel):
    """New account details."""
    email: EmailStr = Field(..., description="Login email")
    password: str = Field(..., min_length=1, description="Plain-text password")
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    organization: str = Field(..., min_length=1)
    contact_details: str = Field(..., min_length=1)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class LoginResponse(BaseModel):
    jwt_token: str = Field(..., alias="jwtToken")
    expiration: datetime

    model_config = ConfigDict(populate_by_name=True)


class ResetPasswordRequest(BaseModel):
    """Reset token plus the new password and its confirmation."""
    email: EmailStr
    token: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)
    confirm_password: str = Field(..., min_length=1)

    @model_validator(mode="after")
    def passwords_match(self):
        """The password and its confirmation must be identical."""
        if self.password != self.confirm_password:
            raise ValueError("The password and confirm password do not match.")
        return self


class ChangePasswordRequest(BaseModel):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=8)
    confirm_password: str = Field(..., min_length=1)

    @model_validator(mode="after")
    def passwords_match(self):
        """The new password and its confirmation must be identical."""
        if self.new_password != self.confirm_password:
            raise ValueError("The password and confirm password do not match.")
        return self


class UserProfile(BaseModel):
    """Editable profile fields of the caller."""
    email: EmailStr
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    organization: str = Field(..., min_length=1)
    contact_details: str = Field(..., min_length=1)


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    database_status: str = Field(..., description="Database connection status")

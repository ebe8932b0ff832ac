"""
Pydantic models for user accounts and the authenticated caller.
"""

from datetime import datetime, timezone
from typing import Optional
from pydantic import BaseModel, Field


class User(BaseModel):
    """
    Stored user account. password_hash and the reset token digest never leave the service layer.
    """
    id: Optional[str] = Field(None, description="Document identifier")
    email: str = Field(..., description="Login email, unique")
    first_name: str = Field(..., description="First name")
    last_name: str = Field(..., description="Last name")
    organization: str = Field(..., description="Organization")
    contact_details: str = Field(..., description="Phone number or other contact")
    password_hash: str = Field(..., description="pbkdf2_sha256 hash")
    security_stamp: str = Field(..., description="Changes whenever the credential changes")
    date_created: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    reset_token_hash: Optional[str] = Field(None, description="SHA-256 of the outstanding reset token")
    reset_token_expires_at: Optional[datetime] = Field(None, description="When the reset token stops working")


class AuthContext(BaseModel):
    """
    Identity of the caller, taken from a validated bearer token and passed to each operation.
    """
    user_id: str
    email: str
    jti: str
    expires_at: datetime

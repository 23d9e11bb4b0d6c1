"""Profile and authentication models for the hosted backend."""
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Literal, Optional
from pydantic import BaseModel, Field
from balance.models.transaction import Amount

BackupMode = Literal["manual", "automatic"]


class Profile(BaseModel):
    """Mirrors a row of the hosted `profiles` table."""

    id: str = Field(..., description="User identifier")
    email: str
    username: Optional[str] = None
    base_currency: str = "EUR"
    monthly_income_target: Amount = Decimal("0")
    backup_mode: BackupMode = "automatic"
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProfileUpdate(BaseModel):
    username: Optional[str] = None
    base_currency: Optional[str] = None
    monthly_income_target: Optional[Amount] = Field(None, ge=Decimal("0"))
    backup_mode: Optional[BackupMode] = None


class SignUpRequest(BaseModel):
    email: str = Field(..., min_length=3)
    password: str = Field(..., min_length=6)
    username: Optional[str] = None


class SignInRequest(BaseModel):
    email_or_username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class ResetPasswordRequest(BaseModel):
    email: str
    redirect_to: Optional[str] = None


class AuthUser(BaseModel):
    id: str
    email: Optional[str] = None
    user_metadata: Dict[str, Any] = Field(default_factory=dict)


class AuthSession(BaseModel):
    """Session returned by the hosted auth service."""

    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    user: AuthUser
    migrated_transactions: int = 0


class BackupModeSetting(BaseModel):
    backup_mode: BackupMode

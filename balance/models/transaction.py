"""Transaction data models."""
import datetime
from decimal import Decimal
from typing import Annotated, Literal, Optional
from pydantic import BaseModel, Field, PlainSerializer, field_validator, model_validator
from balance.utils.timestamp import parse_day

TransactionType = Literal["income", "expense", "investment"]

# Amounts are exact decimals in memory and plain JSON numbers on the wire.
Amount = Annotated[
    Decimal,
    PlainSerializer(lambda v: float(v), return_type=float, when_used="json"),
]

# JSON numbers carry amounts of up to 15 significant digits exactly.
MAX_AMOUNT_DIGITS = 15

OTHER_CATEGORY = "other"
OTHER_DESCRIPTION_MIN_LENGTH = 5


class TransactionBase(BaseModel):
    """Fields shared by stored and incoming transactions."""

    type: TransactionType = Field(..., description="income, expense or investment")
    amount: Amount = Field(
        ...,
        ge=Decimal("0.01"),
        max_digits=MAX_AMOUNT_DIGITS,
        description="Positive amount in the transaction currency",
    )
    currency: str = Field(..., min_length=1, description="Currency code")
    category: str = Field(..., min_length=1, description="Category tag")
    description: str = Field(default="", description="Free-text description")
    date: datetime.date

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("date", mode="before")
    @classmethod
    def coerce_day(cls, v):
        if isinstance(v, str):
            return parse_day(v)
        return v

    def content_key(self) -> tuple:
        """Identity of a transaction ignoring its id."""
        return (self.type, self.amount, self.currency, self.category, self.description, self.date)


class Transaction(TransactionBase):
    """Transaction model."""

    id: str

    class Config:
        json_schema_extra = {
            "example": {
                "id": "5f1c2b0e9d4a4d3c8a61f0e2b7c9d111",
                "type": "expense",
                "amount": 45.99,
                "currency": "EUR",
                "category": "groceries",
                "description": "Weekly shop",
                "date": "2024-01-15",
            }
        }


def other_description_error(category: str, description: Optional[str]) -> Optional[str]:
    """Message for an "other" transaction whose description is too short, else None."""
    if category == OTHER_CATEGORY and len((description or "").strip()) < OTHER_DESCRIPTION_MIN_LENGTH:
        return 'Please provide a more detailed description for "Other" category (at least 5 characters)'
    return None


class TransactionCreate(TransactionBase):
    """Transaction creation model (no id yet)."""

    @model_validator(mode="after")
    def check_other_description(self) -> "TransactionCreate":
        error = other_description_error(self.category, self.description)
        if error:
            raise ValueError(error)
        return self


class TransactionUpdate(BaseModel):
    """Partial update of a transaction."""

    type: Optional[TransactionType] = None
    amount: Optional[Amount] = Field(None, ge=Decimal("0.01"), max_digits=MAX_AMOUNT_DIGITS)
    currency: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    date: Optional[datetime.date] = None

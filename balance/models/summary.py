"""Derived summary and analytics models (recomputed on read, never persisted)."""
from datetime import date
from decimal import Decimal
from typing import Dict, List, Literal, Optional
from pydantic import BaseModel, Field
from balance.models.transaction import Amount, Transaction

Trend = Literal["up", "down", "stable"]


class FinancialSummary(BaseModel):
    """Totals across all transactions, in their own currencies."""

    total_income: Amount = Decimal("0")
    total_expenses: Amount = Decimal("0")
    balance: Amount = Decimal("0")
    income_by_currency: Dict[str, Amount] = Field(default_factory=dict)
    expenses_by_currency: Dict[str, Amount] = Field(default_factory=dict)


class CategoryTotal(BaseModel):
    """Sum of amounts for one category."""

    category: str
    amount: Amount


class TrendResult(BaseModel):
    """Period-over-period comparison."""

    trend: Trend = "stable"
    percentage: float = 0.0
    previous_total: Amount = Decimal("0")


class CategoryBreakdown(BaseModel):
    """One slice of a period analysis."""

    category: str
    amount: Amount
    percentage: float = Field(..., description="Share of the period total, 0-100")
    count: int


class PeriodAnalysis(BaseModel):
    """Analysis of one transaction type over a period, normalized to a base currency."""

    transaction_type: str
    period: str
    start: date
    end: date
    base_currency: str
    total: Amount = Decimal("0")
    average_daily: Amount = Decimal("0")
    period_days: int = 1
    trend: Trend = "stable"
    trend_percentage: float = 0.0
    categories: List[CategoryBreakdown] = Field(default_factory=list)


class InvestmentAnalysis(PeriodAnalysis):
    """Investment analysis also relates invested amounts to income."""

    total_income: Amount = Decimal("0")
    investment_percentage: float = 0.0


class TotalsByType(BaseModel):
    """Converted totals per transaction type."""

    base_currency: str
    income: Amount = Decimal("0")
    expenses: Amount = Decimal("0")
    investments: Amount = Decimal("0")
    net_balance: Amount = Decimal("0")


class ConvertedTransaction(Transaction):
    """A transaction together with its amount in the base currency."""

    converted_amount: Amount


class ConvertedCategoryTotal(BaseModel):
    category: str
    amount: Amount
    converted_amount: Amount


class ConversionResult(BaseModel):
    amount: Amount
    from_currency: str
    to_currency: str
    rate: float
    converted_amount: Amount
    symbol: Optional[str] = None

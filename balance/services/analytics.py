"""Period analytics over transactions, normalized to a base currency."""
import logging
from collections import defaultdict
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, List, Optional, Tuple

from balance.models.summary import (
    CategoryBreakdown,
    ConvertedCategoryTotal,
    ConvertedTransaction,
    InvestmentAnalysis,
    PeriodAnalysis,
    TotalsByType,
    TrendResult,
)
from balance.models.transaction import Transaction, TransactionType
from balance.services.currency import CurrencyService
from balance.utils.periods import DEFAULT_PERIOD, period_days, previous_period, resolve_period

logger = logging.getLogger(__name__)

# Analysis kinds and the transaction type each one covers.
ANALYSIS_TYPES: Dict[str, TransactionType] = {
    "spending": "expense",
    "income": "income",
    "investment": "investment",
}

# Changes smaller than this (in percent) count as stable.
TREND_DEADBAND = 5.0
CENT = Decimal("0.01")


def classify_trend(current: Decimal, previous: Decimal) -> TrendResult:
    """
    Compare a period total with the previous one.

    No prior activity always reads as stable at 0%. Within the deadband the
    trend is stable and keeps its signed percentage; beyond it the direction
    follows the sign and the percentage is absolute.
    """
    if previous == 0:
        return TrendResult(trend="stable", percentage=0.0, previous_total=previous)

    change = float((current - previous) / previous * 100)
    if abs(change) < TREND_DEADBAND:
        return TrendResult(trend="stable", percentage=round(change, 2), previous_total=previous)
    return TrendResult(
        trend="up" if change > 0 else "down",
        percentage=round(abs(change), 2),
        previous_total=previous,
    )


class AnalyticsService:
    """Builds spending, income and investment analyses."""

    def __init__(self, currency_service: CurrencyService):
        self.currency = currency_service

    def _converted(self, transaction: Transaction, base_currency: str) -> Decimal:
        return self.currency.convert_amount(transaction.amount, transaction.currency, base_currency)

    @staticmethod
    def _select(
        transactions: List[Transaction],
        type: TransactionType,
        start: date,
        end: date,
    ) -> List[Transaction]:
        return [t for t in transactions if t.type == type and start <= t.date <= end]

    def period_total(
        self,
        transactions: List[Transaction],
        type: TransactionType,
        start: date,
        end: date,
        base_currency: str,
    ) -> Decimal:
        selected = self._select(transactions, type, start, end)
        return sum((self._converted(t, base_currency) for t in selected), Decimal("0"))

    def compare_periods(
        self,
        transactions: List[Transaction],
        type: TransactionType,
        start: date,
        end: date,
        base_currency: str,
    ) -> TrendResult:
        """Trend of [start, end] against the equally long period right before it."""
        current = self.period_total(transactions, type, start, end, base_currency)
        prev_start, prev_end = previous_period(start, end)
        previous = self.period_total(transactions, type, prev_start, prev_end, base_currency)
        return classify_trend(current, previous)

    def category_breakdown(
        self,
        transactions: List[Transaction],
        base_currency: str,
    ) -> Tuple[Decimal, List[CategoryBreakdown]]:
        """
        Group converted amounts by category.

        Returns:
            (total, categories sorted by amount descending). The category
            amounts add up to the total.
        """
        amounts: Dict[str, Decimal] = defaultdict(Decimal)
        counts: Dict[str, int] = defaultdict(int)
        for t in transactions:
            amounts[t.category] += self._converted(t, base_currency)
            counts[t.category] += 1

        total = sum(amounts.values(), Decimal("0"))
        breakdown = [
            CategoryBreakdown(
                category=category,
                amount=amount,
                percentage=round(float(amount / total * 100), 2) if total else 0.0,
                count=counts[category],
            )
            for category, amount in amounts.items()
        ]
        breakdown.sort(key=lambda c: c.amount, reverse=True)
        return total, breakdown

    def analyze(
        self,
        transactions: List[Transaction],
        kind: str,
        base_currency: str,
        period: str = DEFAULT_PERIOD,
        today: Optional[date] = None,
        custom_start: Optional[date] = None,
        custom_end: Optional[date] = None,
    ) -> PeriodAnalysis:
        """
        Analyze one of "spending", "income" or "investment" over a period.

        Income looks at whole months and years; the other kinds stop at today.

        Raises:
            ValueError: If `kind` is unknown
        """
        if kind not in ANALYSIS_TYPES:
            raise ValueError(f"Unknown analysis kind: {kind}")
        tx_type = ANALYSIS_TYPES[kind]
        base_currency = base_currency.upper()

        start, end = resolve_period(
            period,
            today=today,
            custom_start=custom_start,
            custom_end=custom_end,
            full_period=(kind == "income"),
        )
        selected = self._select(transactions, tx_type, start, end)
        total, categories = self.category_breakdown(selected, base_currency)
        days = period_days(start, end)
        trend = self.compare_periods(transactions, tx_type, start, end, base_currency)

        fields = dict(
            transaction_type=tx_type,
            period=period,
            start=start,
            end=end,
            base_currency=base_currency,
            total=total,
            average_daily=(total / days).quantize(CENT, rounding=ROUND_HALF_UP),
            period_days=days,
            trend=trend.trend,
            trend_percentage=trend.percentage,
            categories=categories,
        )

        if kind != "investment":
            return PeriodAnalysis(**fields)

        income = self.period_total(transactions, "income", start, end, base_currency)
        percentage = round(float(total / income * 100), 2) if income else 0.0
        return InvestmentAnalysis(**fields, total_income=income, investment_percentage=percentage)

    def totals_by_type(
        self,
        transactions: List[Transaction],
        base_currency: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> TotalsByType:
        """Converted totals per type, optionally limited to [start, end]."""
        base_currency = base_currency.upper()
        totals: Dict[str, Decimal] = defaultdict(Decimal)
        for t in transactions:
            if start and t.date < start:
                continue
            if end and t.date > end:
                continue
            totals[t.type] += self._converted(t, base_currency)

        return TotalsByType(
            base_currency=base_currency,
            income=totals["income"],
            expenses=totals["expense"],
            investments=totals["investment"],
            net_balance=totals["income"] - totals["expense"],
        )

    def totals_by_category(
        self,
        transactions: List[Transaction],
        base_currency: str,
        type: Optional[TransactionType] = None,
    ) -> List[ConvertedCategoryTotal]:
        """Raw and converted totals per category, largest converted total first."""
        raw: Dict[str, Decimal] = defaultdict(Decimal)
        converted: Dict[str, Decimal] = defaultdict(Decimal)
        for t in transactions:
            if type and t.type != type:
                continue
            raw[t.category] += t.amount
            converted[t.category] += self._converted(t, base_currency.upper())

        totals = [
            ConvertedCategoryTotal(category=c, amount=raw[c], converted_amount=converted[c])
            for c in raw
        ]
        totals.sort(key=lambda c: c.converted_amount, reverse=True)
        return totals

    def category_transactions(
        self,
        transactions: List[Transaction],
        kind: str,
        category: str,
        base_currency: str,
        period: str = DEFAULT_PERIOD,
        today: Optional[date] = None,
        custom_start: Optional[date] = None,
        custom_end: Optional[date] = None,
    ) -> List[ConvertedTransaction]:
        """A category's transactions in the period with converted amounts, newest first."""
        if kind not in ANALYSIS_TYPES:
            raise ValueError(f"Unknown analysis kind: {kind}")
        start, end = resolve_period(
            period,
            today=today,
            custom_start=custom_start,
            custom_end=custom_end,
            full_period=(kind == "income"),
        )
        selected = [
            t for t in self._select(transactions, ANALYSIS_TYPES[kind], start, end)
            if t.category == category
        ]
        selected.sort(key=lambda t: t.date, reverse=True)
        return [
            ConvertedTransaction(
                **t.model_dump(),
                converted_amount=self._converted(t, base_currency.upper()),
            )
            for t in selected
        ]

from __future__ import annotations

from collections import defaultdict
from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List

CENT = Decimal("0.01")


def _to_decimal(value: Any) -> Decimal:
    return Decimal(str(value if value is not None else 0))


def _money(value: Decimal) -> float:
    return float(value.quantize(CENT, rounding=ROUND_HALF_UP))


@dataclass
class CategoryTotal:
    """Summed spend for a single expense category."""

    category: str
    total: float
    transaction_count: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class TransactionAnalyzer:
    """
    Aggregation helpers shared by the transaction routes.

    Amounts are summed as Decimal so a total never depends on the order the
    transactions were stored in.
    """

    def income_total(self, transactions: List[Dict[str, Any]]) -> float:
        return _money(sum((_to_decimal(t.get("amount")) for t in transactions if t.get("is_income")), Decimal(0)))

    def expense_total(self, transactions: List[Dict[str, Any]]) -> float:
        return _money(
            sum((_to_decimal(t.get("amount")) for t in transactions if not t.get("is_income")), Decimal(0))
        )

    def category_totals(self, transactions: List[Dict[str, Any]]) -> List[CategoryTotal]:
        totals: Dict[str, Decimal] = defaultdict(Decimal)
        counts: Dict[str, int] = defaultdict(int)
        for tx in transactions:
            if tx.get("is_income"):
                continue
            totals[tx["category"]] += _to_decimal(tx.get("amount"))
            counts[tx["category"]] += 1
        return [
            CategoryTotal(category=category, total=_money(totals[category]), transaction_count=counts[category])
            for category in sorted(totals)
        ]

    def summarize(self, transactions: List[Dict[str, Any]]) -> Dict[str, Any]:
        if not transactions:
            return {
                "categories": [],
                "income": 0.0,
                "expense": 0.0,
                "difference": 0.0,
            }

        income = self.income_total(transactions)
        expense = self.expense_total(transactions)
        return {
            "categories": [item.to_dict() for item in self.category_totals(transactions)],
            "income": income,
            "expense": expense,
            "difference": _money(_to_decimal(income) - _to_decimal(expense)),
        }

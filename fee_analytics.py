import logging
from typing import Dict, Iterable, List, Optional

import pandas as pd

from date_utils import month_key


class MonthlyAggregation:
    """
    Fee and expense totals bucketed by ``YYYY-MM``.

    Built from normalized students (each carrying its ``fees``) and expenses.
    Month keys sort lexicographically in chronological order.
    """

    def __init__(self, students: Iterable[Dict] = (), expenses: Iterable[Dict] = (), tz_name: str = ""):
        self.logger = logging.getLogger(__name__)
        self.tz_name = tz_name

        payments = [fee for student in students for fee in (student.get('fees') or [])]
        self.expense_records = list(expenses)
        self.fees_by_month = self._monthly_totals(payments, "fee payment")
        self.expenses_by_month = self._monthly_totals(self.expense_records, "expense")
        self.months = sorted(set(self.fees_by_month) | set(self.expenses_by_month))

    def _monthly_totals(self, records: List[Dict], kind: str) -> Dict[str, float]:
        rows = []
        for record in records:
            key = month_key(record.get('date'), self.tz_name)
            if key is None:
                self.logger.warning(f"Skipping {kind} with unreadable date: {record.get('date')!r}")
                continue
            rows.append({'month': key, 'amount': float(record.get('amount') or 0)})

        if not rows:
            return {}
        df = pd.DataFrame(rows)
        totals = df.groupby('month')['amount'].sum()
        return {month: float(amount) for month, amount in totals.items()}

    def fee(self, month: str) -> float:
        return self.fees_by_month.get(month, 0.0)

    def expense(self, month: str) -> float:
        return self.expenses_by_month.get(month, 0.0)

    def profit(self, month: str) -> float:
        return self.fee(month) - self.expense(month)

    def profit_percentage(self, month: str) -> float:
        fee = self.fee(month)
        # No fees collected means no margin to speak of
        if fee <= 0:
            return 0
        return round(self.profit(month) / fee * 100, 1)

    def latest_month(self) -> Optional[str]:
        return self.months[-1] if self.months else None

    def select_month(self, selected: Optional[str] = None) -> Optional[str]:
        """Keep an explicit selection; otherwise default to the latest month."""
        if selected:
            return selected
        return self.latest_month()

    def month_summary(self, month: Optional[str]) -> Dict:
        if not month:
            return {'month': None, 'fee': 0.0, 'expense': 0.0, 'profit': 0.0, 'profit_percentage': 0}
        return {
            'month': month,
            'fee': self.fee(month),
            'expense': self.expense(month),
            'profit': self.profit(month),
            'profit_percentage': self.profit_percentage(month),
        }

    def summary_rows(self) -> List[Dict]:
        return [self.month_summary(month) for month in self.months]

    def total_expenses(self) -> float:
        return sum(float(e.get('amount') or 0) for e in self.expense_records)

    def expenses_by_category(self) -> Dict[str, float]:
        if not self.expense_records:
            return {}
        df = pd.DataFrame(
            [{'category': e.get('category') or 'General', 'amount': float(e.get('amount') or 0)}
             for e in self.expense_records]
        )
        totals = df.groupby('category', sort=False)['amount'].sum()
        return {category: float(amount) for category, amount in totals.items()}

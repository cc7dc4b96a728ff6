from __future__ import annotations

from typing import Iterable

from .statement_data import BalanceDevelopment, MonthlyBalanceRecord


class BalanceTracker:
    """Kontostandsentwicklung der Liegenschaft, rein informativ."""

    @staticmethod
    def monthly_rows(records: Iterable[MonthlyBalanceRecord], year: int) -> list[MonthlyBalanceRecord]:
        return sorted(
            (record for record in records if record.month.year == year),
            key=lambda record: record.month,
        )

    @classmethod
    def balance_development(
        cls, records: Iterable[MonthlyBalanceRecord], year: int
    ) -> BalanceDevelopment | None:
        rows = cls.monthly_rows(records, year)
        if not rows:
            return None
        return BalanceDevelopment(
            year=year,
            opening_balance=rows[0].opening_balance,
            closing_balance=rows[-1].closing_balance,
            months=tuple(rows),
        )

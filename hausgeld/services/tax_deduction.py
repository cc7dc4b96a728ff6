from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable

from ..choices import Umlageschluessel
from .distribution import DistributionAlgorithm
from .exceptions import EmptyPropertyError
from .statement_data import (
    ZERO,
    CostAccountSnapshot,
    PropertySnapshot,
    TaxDeduction,
    TaxDeductionItem,
    TransactionSnapshot,
    UnitSnapshot,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class _TaxGroup:
    account: CostAccountSnapshot
    transactions: list[TransactionSnapshot] = field(default_factory=list)

    @property
    def total(self) -> Decimal:
        return sum((abs(transaction.amount) for transaction in self.transactions), ZERO)

    def unit_transactions(self, unit_id: int) -> list[TransactionSnapshot]:
        return [transaction for transaction in self.transactions if transaction.unit_id == unit_id]

    def unit_total(self, unit_id: int) -> Decimal:
        return sum((abs(transaction.amount) for transaction in self.unit_transactions(unit_id)), ZERO)

    @property
    def labour_percentage(self) -> Decimal:
        return self._labour_percentage(self.transactions)

    def labour_percentage_for(self, unit_id: int) -> Decimal:
        """Lohnanteil nur aus den Zahlungen, die der Einheit direkt zugeordnet sind."""
        return self._labour_percentage(self.unit_transactions(unit_id))

    @staticmethod
    def _labour_percentage(transactions: list[TransactionSnapshot]) -> Decimal:
        """Lohnanteil als Faktor 0..1, gewichtet mit dem Zahlbetrag.

        Zahlungen ohne Rechnung zählen nur im Nenner.
        """
        denominator = sum((abs(transaction.amount) for transaction in transactions), ZERO)
        if denominator == 0:
            return ZERO
        numerator = ZERO
        for transaction in transactions:
            invoice = transaction.invoice
            if invoice is None or invoice.labour is None:
                continue
            if invoice.labour <= 0 or invoice.total <= 0:
                continue
            numerator += abs(transaction.amount) * invoice.labour / invoice.total
        return numerator / denominator


class TaxDeductionCalculator:
    """Steuerbegünstigte Handwerkerleistungen nach §35a EStG."""

    def __init__(self, distribution: type[DistributionAlgorithm] = DistributionAlgorithm):
        self.distribution = distribution

    @staticmethod
    def group(
        transactions: Iterable[TransactionSnapshot],
        *,
        year: int,
        deductible_accounts: Iterable[str],
    ) -> dict[str, _TaxGroup]:
        wanted = frozenset(deductible_accounts)
        groups: dict[str, _TaxGroup] = {}
        for transaction in transactions:
            account = transaction.account
            if account is None or account.number not in wanted:
                continue
            if not transaction.belongs_to_year(year):
                continue
            groups.setdefault(account.number, _TaxGroup(account=account)).transactions.append(transaction)
        return groups

    def calculate(
        self,
        transactions: Iterable[TransactionSnapshot],
        unit: UnitSnapshot,
        property_obj: PropertySnapshot,
        year: int,
        deductible_accounts: Iterable[str],
    ) -> TaxDeduction:
        groups = self.group(transactions, year=year, deductible_accounts=deductible_accounts)
        items = [self._item(groups[number], unit=unit, property_obj=property_obj) for number in sorted(groups)]
        return TaxDeduction(items=tuple(items))

    def _item(
        self,
        group: _TaxGroup,
        *,
        unit: UnitSnapshot,
        property_obj: PropertySnapshot,
    ) -> TaxDeductionItem:
        total = group.total
        percentage = group.labour_percentage
        anrechenbar = total * percentage
        account = group.account

        error: str | None = None
        if account.key == Umlageschluessel.FESTUMLAGE:
            base = group.unit_total(unit.id)
            anteil_kosten = base
            anteil_anrechenbar = base * group.labour_percentage_for(unit.id)
        else:
            try:
                anteil_kosten = self._share(total, account, unit, property_obj)
                anteil_anrechenbar = self._share(anrechenbar, account, unit, property_obj)
            except EmptyPropertyError:
                raise
            except Exception as exc:
                logger.warning(
                    "§35a-Anteil für Kostenkonto %s (Einheit %s) nicht berechenbar: %s",
                    account.number,
                    unit.number,
                    exc,
                )
                anteil_kosten = ZERO
                anteil_anrechenbar = ZERO
                error = str(exc)

        return TaxDeductionItem(
            kostenkonto=account.number,
            beschreibung=account.description,
            umlageschluessel=account.key,
            gesamtkosten=total,
            lohnanteil=percentage,
            anrechenbar=anrechenbar,
            anteil_kosten=anteil_kosten,
            anteil_anrechenbar=anteil_anrechenbar,
            error=error,
        )

    def _share(
        self,
        amount: Decimal,
        account: CostAccountSnapshot,
        unit: UnitSnapshot,
        property_obj: PropertySnapshot,
    ) -> Decimal:
        return self.distribution.share_for(amount, account.key, unit.mea_share, unit, property_obj)

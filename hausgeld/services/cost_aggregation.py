from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from ..choices import Kostenkategorie, Umlageschluessel
from .distribution import DistributionAlgorithm
from .exceptions import EmptyPropertyError
from .statement_data import (
    ZERO,
    CostAccountSnapshot,
    CostBreakdown,
    CostLine,
    CostSection,
    PropertySnapshot,
    TransactionSnapshot,
    UnitSnapshot,
)

logger = logging.getLogger(__name__)

UMLAGEFAEHIG = Kostenkategorie.umlagefaehig()
NICHT_UMLAGEFAEHIG = frozenset({Kostenkategorie.NICHT_UMLAGEFAEHIG})
RUECKLAGEN = frozenset({Kostenkategorie.RUECKLAGENZUFUEHRUNG})


@dataclass(slots=True)
class _AccountGroup:
    account: CostAccountSnapshot
    total: Decimal = ZERO
    unit_total: Decimal = ZERO
    count: int = 0

    def add(self, transaction: TransactionSnapshot, unit_id: int | None) -> None:
        # Ausgaben (negativ) erhöhen die Kosten, Erstattungen (positiv) mindern sie.
        cost = -transaction.amount
        self.total += cost
        self.count += 1
        if unit_id is not None and transaction.unit_id == unit_id:
            self.unit_total += cost


class CostAggregator:
    """Gruppiert die Zahlungen eines Jahres je Kostenkonto und verteilt sie."""

    def __init__(self, distribution: type[DistributionAlgorithm] = DistributionAlgorithm):
        self.distribution = distribution

    @staticmethod
    def is_relevant(
        transaction: TransactionSnapshot,
        *,
        year: int,
        categories: Iterable[Kostenkategorie],
    ) -> bool:
        account = transaction.account
        if account is None or not account.is_active:
            return False
        if account.category == Kostenkategorie.EINNAHME or account.category not in categories:
            return False
        # 01*/02* kommen ausschließlich aus der Heiz-/Wasserkostenabrechnung.
        if account.key in Umlageschluessel.externally_resolved():
            return False
        return transaction.belongs_to_year(year)

    def group(
        self,
        transactions: Iterable[TransactionSnapshot],
        *,
        unit: UnitSnapshot | None,
        year: int,
        categories: Iterable[Kostenkategorie],
    ) -> dict[str, _AccountGroup]:
        wanted = frozenset(categories)
        unit_id = unit.id if unit else None
        groups: dict[str, _AccountGroup] = {}
        for transaction in transactions:
            if not self.is_relevant(transaction, year=year, categories=wanted):
                continue
            account = transaction.account
            assert account is not None
            group = groups.get(account.number)
            if group is None:
                group = groups[account.number] = _AccountGroup(account=account)
            group.add(transaction, unit_id)
        return groups

    def aggregate(
        self,
        transactions: Iterable[TransactionSnapshot],
        unit: UnitSnapshot | None,
        property_obj: PropertySnapshot,
        year: int,
        categories: Iterable[Kostenkategorie],
    ) -> list[CostLine]:
        groups = self.group(transactions, unit=unit, year=year, categories=categories)
        lines: list[CostLine] = []
        for number in sorted(groups):
            group = groups[number]
            anteil, error = self._unit_share(group, unit=unit, property_obj=property_obj)
            lines.append(
                CostLine(
                    kostenkonto=group.account.number,
                    beschreibung=group.account.description,
                    umlageschluessel=group.account.key,
                    kategorie=group.account.category,
                    total=group.total,
                    anteil=anteil,
                    count=group.count,
                    error=error,
                )
            )
        return lines

    def _unit_share(
        self,
        group: _AccountGroup,
        *,
        unit: UnitSnapshot | None,
        property_obj: PropertySnapshot,
    ) -> tuple[Decimal, str | None]:
        if unit is None:
            return ZERO, None
        if group.account.key == Umlageschluessel.FESTUMLAGE:
            return group.unit_total, None
        try:
            share = self.distribution.share_for(
                group.total,
                group.account.key,
                unit.mea_share,
                unit,
                property_obj,
            )
        except EmptyPropertyError:
            raise
        except Exception as exc:
            logger.warning(
                "Verteilung für Kostenkonto %s (Einheit %s) fehlgeschlagen: %s",
                group.account.number,
                unit.number,
                exc,
            )
            return ZERO, str(exc)
        return share, None

    def calculate_cost_breakdown(
        self,
        transactions: Iterable[TransactionSnapshot],
        unit: UnitSnapshot | None,
        property_obj: PropertySnapshot,
        year: int,
    ) -> CostBreakdown:
        items = tuple(transactions)
        return CostBreakdown(
            umlagefaehig=CostSection(
                tuple(self.aggregate(items, unit, property_obj, year, UMLAGEFAEHIG))
            ),
            nicht_umlagefaehig=CostSection(
                tuple(self.aggregate(items, unit, property_obj, year, NICHT_UMLAGEFAEHIG))
            ),
            ruecklagen=CostSection(
                tuple(self.aggregate(items, unit, property_obj, year, RUECKLAGEN))
            ),
        )

    def calculate_total_costs_for_property(
        self,
        transactions: Iterable[TransactionSnapshot],
        property_obj: PropertySnapshot,
        year: int,
    ) -> CostBreakdown:
        return self.calculate_cost_breakdown(transactions, None, property_obj, year)

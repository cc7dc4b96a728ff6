from __future__ import annotations

from decimal import Decimal
from typing import Callable, Iterable

from ..choices import Zahlungskategorie
from .statement_data import (
    ZERO,
    AdvancePaymentSchedule,
    FinalBalance,
    PaymentBalance,
    PaymentDetail,
    PropertyPaymentTotals,
    PropertySnapshot,
    TransactionSnapshot,
    UnitSnapshot,
)


class PaymentReconciler:
    """Hausgeld-Vorschuss Soll gegen Ist je Einheit und für die Liegenschaft."""

    @staticmethod
    def soll(schedule: AdvancePaymentSchedule | None) -> Decimal:
        if schedule is None:
            return ZERO
        return schedule.yearly_amount

    @staticmethod
    def owner_payments(
        unit: UnitSnapshot, year: int, payments: Iterable[TransactionSnapshot]
    ) -> list[TransactionSnapshot]:
        selected = [
            payment
            for payment in payments
            if payment.unit_id == unit.id and payment.amount > 0 and payment.belongs_to_year(year)
        ]
        return sorted(selected, key=lambda payment: (payment.date, payment.id))

    @classmethod
    def reconcile(
        cls,
        unit: UnitSnapshot,
        year: int,
        schedule: AdvancePaymentSchedule | None,
        payments: Iterable[TransactionSnapshot],
    ) -> PaymentBalance:
        selected = cls.owner_payments(unit, year, payments)
        return PaymentBalance(
            soll=cls.soll(schedule),
            ist=sum((payment.amount for payment in selected), ZERO),
            count=len(selected),
            details=tuple(
                PaymentDetail(
                    date=payment.date,
                    description=payment.description or "Zahlung",
                    amount=payment.amount,
                    category=payment.payment_category,
                )
                for payment in selected
            ),
        )

    @classmethod
    def reconcile_property(
        cls,
        property_obj: PropertySnapshot,
        year: int,
        *,
        schedule_for: Callable[[UnitSnapshot], AdvancePaymentSchedule | None],
        payments_for: Callable[[UnitSnapshot], Iterable[TransactionSnapshot]],
    ) -> PropertyPaymentTotals:
        soll = ZERO
        ist = ZERO
        monthly = ZERO
        per_category: dict[Zahlungskategorie, Decimal] = {}
        for unit in property_obj.units:
            schedule = schedule_for(unit)
            balance = cls.reconcile(unit, year, schedule, payments_for(unit))
            soll += balance.soll
            ist += balance.ist
            if schedule is not None:
                monthly += schedule.monthly_amount
            for detail in balance.details:
                if detail.category == Zahlungskategorie.HAUSGELD:
                    continue
                per_category[detail.category] = per_category.get(detail.category, ZERO) + detail.amount

        return PropertyPaymentTotals(
            soll=soll,
            ist=ist,
            monthly_soll=monthly,
            unit_count=property_obj.unit_count,
            category_totals=tuple(
                (category, per_category[category])
                for category in Zahlungskategorie
                if category in per_category
            ),
        )

    @staticmethod
    def final_balance(gesamtkosten: Decimal, soll: Decimal, ist: Decimal) -> FinalBalance:
        """Abrechnungsspitze minus Zahlungsdifferenz, also Gesamtkosten minus Ist."""
        return FinalBalance(gesamtkosten=gesamtkosten, soll=soll, ist=ist)

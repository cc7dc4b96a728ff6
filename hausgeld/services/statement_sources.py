from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Protocol

from django.db.models import Prefetch, Q

from ..choices import Kostenkategorie, Umlageschluessel, Zahlungskategorie
from ..models import HeizWasserkosten, Kostenkonto, MonatsSaldo, Property, Unit, Vorauszahlung, Zahlung
from .statement_data import (
    AdvancePaymentSchedule,
    CostAccountSnapshot,
    ExternalCostRecord,
    InvoiceSnapshot,
    MonthlyBalanceRecord,
    PropertySnapshot,
    TransactionSnapshot,
    UnitSnapshot,
)


class TransactionSource(Protocol):
    def get_transactions_for_property_and_year(
        self, property_obj: PropertySnapshot, year: int
    ) -> list[TransactionSnapshot]:
        ...

    def get_unit_payments_for_year(self, unit: UnitSnapshot, year: int) -> list[TransactionSnapshot]:
        ...


class ConfigurationSource(Protocol):
    def get_advance_payment_schedule(self, unit: UnitSnapshot, year: int) -> AdvancePaymentSchedule | None:
        ...

    def get_tax_deductible_account_numbers(self) -> frozenset[str]:
        ...


class ExternalMeteringSource(Protocol):
    def get_unit_cost_record(self, unit: UnitSnapshot, year: int) -> ExternalCostRecord | None:
        ...

    def get_property_cost_total(self, property_obj: PropertySnapshot, year: int) -> ExternalCostRecord | None:
        ...

    def get_unit_cost_records(self, property_obj: PropertySnapshot, year: int) -> list[ExternalCostRecord]:
        ...


class BalanceHistorySource(Protocol):
    def get_monthly_balances(self, property_obj: PropertySnapshot, year: int) -> list[MonthlyBalanceRecord]:
        ...


class PropertySource(Protocol):
    def get_property(self, property_id: int) -> PropertySnapshot | None:
        ...

    def get_property_for_unit(self, unit_id: int) -> PropertySnapshot | None:
        ...


class StatementSources(
    TransactionSource,
    ConfigurationSource,
    ExternalMeteringSource,
    BalanceHistorySource,
    PropertySource,
    Protocol,
):
    pass


def _choice(choices_cls, value):
    try:
        return choices_cls(value)
    except ValueError:
        # Unbekannte Werte bleiben erhalten und werden bei der Verteilung gemeldet.
        return value


class DjangoStatementSources:
    """Liefert die Eingangsdaten der Abrechnung aus der Datenbank."""

    def __init__(self, *, extra_tax_deductible_accounts: Iterable[str] = ()):
        self.extra_tax_deductible_accounts = frozenset(extra_tax_deductible_accounts)

    # --- Stammdaten ---------------------------------------------------------

    @staticmethod
    def unit_snapshot(unit: Unit) -> UnitSnapshot:
        return UnitSnapshot.build(
            id=unit.pk,
            number=unit.number,
            property_id=unit.property_id,
            mea=unit.mea,
            hebeanlage=unit.hebeanlage,
            description=unit.description,
            owner_name=unit.owner_name,
            address=unit.address,
        )

    @classmethod
    def property_snapshot(cls, property_obj: Property, units: Iterable[Unit]) -> PropertySnapshot:
        return PropertySnapshot(
            id=property_obj.pk,
            name=property_obj.name,
            street_address=property_obj.street_address,
            zip_code=property_obj.zip_code,
            city=property_obj.city,
            units=tuple(cls.unit_snapshot(unit) for unit in units),
        )

    def get_property(self, property_id: int) -> PropertySnapshot | None:
        property_obj = (
            Property.objects.filter(pk=property_id)
            .prefetch_related(
                Prefetch("units", queryset=Unit.objects.order_by("number", "id"), to_attr="ordered_units")
            )
            .first()
        )
        if property_obj is None:
            return None
        return self.property_snapshot(property_obj, property_obj.ordered_units)

    def get_property_for_unit(self, unit_id: int) -> PropertySnapshot | None:
        property_id = Unit.objects.filter(pk=unit_id).values_list("property_id", flat=True).first()
        if property_id is None:
            return None
        return self.get_property(property_id)

    # --- Zahlungen ----------------------------------------------------------

    @staticmethod
    def _year_filter(year: int) -> Q:
        return Q(abrechnungsjahr=year) | Q(abrechnungsjahr__isnull=True, datum__year=year)

    @staticmethod
    def account_snapshot(account: Kostenkonto) -> CostAccountSnapshot:
        return CostAccountSnapshot(
            number=account.nummer,
            description=account.bezeichnung,
            category=_choice(Kostenkategorie, account.kategorie),
            key=_choice(Umlageschluessel, account.umlageschluessel),
            is_active=account.is_active,
            tax_deductible=account.steuerlich_absetzbar,
        )

    @classmethod
    def transaction_snapshot(cls, zahlung: Zahlung) -> TransactionSnapshot:
        invoice = None
        if zahlung.rechnung is not None:
            invoice = InvoiceSnapshot(
                total=zahlung.rechnung.betrag_mit_steuern,
                labour=zahlung.rechnung.arbeits_fahrtkosten,
                service_date=zahlung.rechnung.datum_leistung,
                number=zahlung.rechnung.rechnungsnummer,
            )
        return TransactionSnapshot(
            id=zahlung.pk,
            date=zahlung.datum,
            description=zahlung.bezeichnung,
            amount=zahlung.betrag,
            account=cls.account_snapshot(zahlung.kostenkonto) if zahlung.kostenkonto else None,
            unit_id=zahlung.einheit_id,
            invoice=invoice,
            statement_year_override=zahlung.abrechnungsjahr,
            payment_category=_choice(Zahlungskategorie, zahlung.kategorie),
        )

    def _zahlungen(self, year: int):
        return (
            Zahlung.objects.filter(ist_simulation=False)
            .filter(self._year_filter(year))
            .select_related("kostenkonto", "rechnung")
            .order_by("datum", "id")
        )

    def get_transactions_for_property_and_year(
        self, property_obj: PropertySnapshot, year: int
    ) -> list[TransactionSnapshot]:
        queryset = self._zahlungen(year).filter(liegenschaft_id=property_obj.id)
        return [self.transaction_snapshot(zahlung) for zahlung in queryset]

    def get_unit_payments_for_year(self, unit: UnitSnapshot, year: int) -> list[TransactionSnapshot]:
        queryset = self._zahlungen(year).filter(einheit_id=unit.id, betrag__gt=0)
        return [self.transaction_snapshot(zahlung) for zahlung in queryset]

    # --- Konfiguration ------------------------------------------------------

    def get_advance_payment_schedule(self, unit: UnitSnapshot, year: int) -> AdvancePaymentSchedule | None:
        schedule = (
            Vorauszahlung.objects.filter(einheit_id=unit.id, jahr=year, is_active=True)
            .order_by("-id")
            .first()
        )
        if schedule is None:
            return None
        return AdvancePaymentSchedule(
            monthly_amount=schedule.monatsbetrag,
            yearly_override=schedule.jahresbetrag,
        )

    def get_tax_deductible_account_numbers(self) -> frozenset[str]:
        flagged = Kostenkonto.objects.filter(steuerlich_absetzbar=True, is_active=True).values_list(
            "nummer", flat=True
        )
        return self.extra_tax_deductible_accounts | frozenset(flagged)

    # --- Heiz-/Wasserkosten -------------------------------------------------

    @staticmethod
    def external_record(record: HeizWasserkosten) -> ExternalCostRecord:
        return ExternalCostRecord(
            property_id=record.liegenschaft_id,
            year=record.jahr,
            heating=record.heizkosten,
            water=record.wasserkosten,
            other=record.sonstige_kosten,
            unit_id=record.einheit_id,
            is_property_total=record.ist_gesamt,
        )

    def get_unit_cost_record(self, unit: UnitSnapshot, year: int) -> ExternalCostRecord | None:
        record = HeizWasserkosten.objects.filter(einheit_id=unit.id, jahr=year, ist_gesamt=False).first()
        return self.external_record(record) if record else None

    def get_property_cost_total(self, property_obj: PropertySnapshot, year: int) -> ExternalCostRecord | None:
        record = HeizWasserkosten.objects.filter(
            liegenschaft_id=property_obj.id, jahr=year, ist_gesamt=True
        ).first()
        return self.external_record(record) if record else None

    def get_unit_cost_records(self, property_obj: PropertySnapshot, year: int) -> list[ExternalCostRecord]:
        queryset = HeizWasserkosten.objects.filter(
            liegenschaft_id=property_obj.id, jahr=year, ist_gesamt=False
        ).order_by("einheit_id")
        return [self.external_record(record) for record in queryset]

    # --- Kontostände --------------------------------------------------------

    def get_monthly_balances(self, property_obj: PropertySnapshot, year: int) -> list[MonthlyBalanceRecord]:
        queryset = MonatsSaldo.objects.filter(liegenschaft_id=property_obj.id, monat__year=year).order_by("monat")
        return [
            MonthlyBalanceRecord(
                month=saldo.monat,
                opening_balance=saldo.anfangssaldo,
                closing_balance=saldo.endsaldo,
                turnover=saldo.umsatzsumme,
                transaction_count=saldo.anzahl_transaktionen,
            )
            for saldo in queryset
        ]


@dataclass(slots=True)
class SnapshotStatementSources:
    """Quellen über bereits geladene Snapshots, etwa für Simulationen oder Tests."""

    properties: list[PropertySnapshot]
    transactions: list[TransactionSnapshot] = field(default_factory=list)
    schedules: dict[tuple[int, int], AdvancePaymentSchedule] = field(default_factory=dict)
    tax_deductible_accounts: frozenset[str] = frozenset()
    external_records: list[ExternalCostRecord] = field(default_factory=list)
    monthly_balances: dict[int, list[MonthlyBalanceRecord]] = field(default_factory=dict)
    transaction_properties: dict[int, int] = field(default_factory=dict)

    def get_property(self, property_id: int) -> PropertySnapshot | None:
        for property_obj in self.properties:
            if property_obj.id == property_id:
                return property_obj
        return None

    def get_property_for_unit(self, unit_id: int) -> PropertySnapshot | None:
        for property_obj in self.properties:
            if property_obj.unit_by_id(unit_id) is not None:
                return property_obj
        return None

    def _property_id_of(self, transaction: TransactionSnapshot) -> int | None:
        if transaction.id in self.transaction_properties:
            return self.transaction_properties[transaction.id]
        if transaction.unit_id is not None:
            owner = self.get_property_for_unit(transaction.unit_id)
            return owner.id if owner else None
        if len(self.properties) == 1:
            return self.properties[0].id
        return None

    def get_transactions_for_property_and_year(
        self, property_obj: PropertySnapshot, year: int
    ) -> list[TransactionSnapshot]:
        return [
            transaction
            for transaction in self.transactions
            if transaction.belongs_to_year(year) and self._property_id_of(transaction) == property_obj.id
        ]

    def get_unit_payments_for_year(self, unit: UnitSnapshot, year: int) -> list[TransactionSnapshot]:
        return [
            transaction
            for transaction in self.transactions
            if transaction.unit_id == unit.id and transaction.amount > 0 and transaction.belongs_to_year(year)
        ]

    def get_advance_payment_schedule(self, unit: UnitSnapshot, year: int) -> AdvancePaymentSchedule | None:
        return self.schedules.get((unit.id, year))

    def get_tax_deductible_account_numbers(self) -> frozenset[str]:
        return self.tax_deductible_accounts

    def get_unit_cost_record(self, unit: UnitSnapshot, year: int) -> ExternalCostRecord | None:
        for record in self.external_records:
            if not record.is_property_total and record.unit_id == unit.id and record.year == year:
                return record
        return None

    def get_property_cost_total(self, property_obj: PropertySnapshot, year: int) -> ExternalCostRecord | None:
        for record in self.external_records:
            if record.is_property_total and record.property_id == property_obj.id and record.year == year:
                return record
        return None

    def get_unit_cost_records(self, property_obj: PropertySnapshot, year: int) -> list[ExternalCostRecord]:
        return [
            record
            for record in self.external_records
            if not record.is_property_total and record.property_id == property_obj.id and record.year == year
        ]

    def get_monthly_balances(self, property_obj: PropertySnapshot, year: int) -> list[MonthlyBalanceRecord]:
        return [
            record
            for record in self.monthly_balances.get(property_obj.id, [])
            if record.month.year == year
        ]

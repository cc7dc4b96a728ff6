from __future__ import annotations

from typing import Iterable

from ..choices import PruefungsStufe
from .statement_data import (
    ZERO,
    ExternalCostRecord,
    ExternalCosts,
    ExternalCostTotals,
    PropertySnapshot,
    UnitSnapshot,
    ValidationIssue,
)


class ExternalCostResolver:
    """Heiz- und Wasserkosten aus der externen Verbrauchsabrechnung (01*/02*).

    Fehlende Datensätze sind kein Fehler, sie ergeben Nullwerte.
    """

    @staticmethod
    def _records_for_year(
        records: Iterable[ExternalCostRecord], *, property_obj: PropertySnapshot, year: int
    ) -> list[ExternalCostRecord]:
        return [
            record
            for record in records
            if record.property_id == property_obj.id and record.year == year
        ]

    @staticmethod
    def _unit_record(
        records: Iterable[ExternalCostRecord], unit_id: int
    ) -> ExternalCostRecord | None:
        for record in records:
            if not record.is_property_total and record.unit_id == unit_id:
                return record
        return None

    @staticmethod
    def _total_record(records: Iterable[ExternalCostRecord]) -> ExternalCostRecord | None:
        for record in records:
            if record.is_property_total:
                return record
        return None

    @classmethod
    def resolve(
        cls,
        unit: UnitSnapshot,
        property_obj: PropertySnapshot,
        year: int,
        records: Iterable[ExternalCostRecord],
    ) -> ExternalCosts:
        relevant = cls._records_for_year(records, property_obj=property_obj, year=year)
        unit_record = cls._unit_record(relevant, unit.id)
        if unit_record is None:
            return ExternalCosts()

        total_record = cls._total_record(relevant)
        if total_record is not None:
            heating_total = total_record.heating
            water_total = total_record.water_and_other
        else:
            unit_records = [record for record in relevant if not record.is_property_total]
            heating_total = sum((record.heating for record in unit_records), ZERO)
            water_total = sum((record.water_and_other for record in unit_records), ZERO)

        return ExternalCosts(
            heating_total=heating_total,
            heating_unit_share=unit_record.heating,
            water_total=water_total,
            water_unit_share=unit_record.water_and_other,
        )

    @classmethod
    def property_costs(
        cls,
        property_obj: PropertySnapshot,
        year: int,
        records: Iterable[ExternalCostRecord],
    ) -> ExternalCosts:
        """Objektspalte der Abrechnung: Gesamtwerte ohne Einheitenbezug."""
        relevant = cls._records_for_year(records, property_obj=property_obj, year=year)
        total_record = cls._total_record(relevant)
        if total_record is not None:
            return ExternalCosts(
                heating_total=total_record.heating,
                water_total=total_record.water_and_other,
            )
        totals = cls.totals_for_property(property_obj, year, relevant)
        return ExternalCosts(heating_total=totals.heating_total, water_total=totals.water_total)

    @classmethod
    def totals_for_property(
        cls,
        property_obj: PropertySnapshot,
        year: int,
        records: Iterable[ExternalCostRecord],
    ) -> ExternalCostTotals:
        relevant = cls._records_for_year(records, property_obj=property_obj, year=year)
        heating = ZERO
        water = ZERO
        for unit in property_obj.units:
            record = cls._unit_record(relevant, unit.id)
            if record is None:
                continue
            heating += record.heating
            water += record.water_and_other
        return ExternalCostTotals(heating_total=heating, water_total=water)

    @classmethod
    def validate(
        cls,
        property_obj: PropertySnapshot,
        year: int,
        records: Iterable[ExternalCostRecord],
    ) -> list[ValidationIssue]:
        relevant = cls._records_for_year(records, property_obj=property_obj, year=year)
        if cls._total_record(relevant) is None:
            return []

        missing = [
            unit.number
            for unit in property_obj.units
            if cls._unit_record(relevant, unit.id) is None
        ]
        if not missing:
            return []
        return [
            ValidationIssue(
                severity=PruefungsStufe.WARNUNG,
                code="external_costs_incomplete",
                message=(
                    "Heiz-/Wasserkosten fehlen für Einheiten: " + ", ".join(missing)
                ),
            )
        ]

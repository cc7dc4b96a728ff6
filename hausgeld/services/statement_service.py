from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Callable

from django.utils import timezone

from ..choices import Ausgabeformat, PruefungsStufe, Umlageschluessel
from .balance_tracker import BalanceTracker
from .cost_aggregation import CostAggregator
from .exceptions import StatementValidationError
from .external_costs import ExternalCostResolver
from .payment_reconciliation import PaymentReconciler
from .quality_checks import StatementQualityChecker
from .statement_config import StatementConfig
from .statement_data import (
    MEA_BASIS,
    AdvancePaymentSchedule,
    CostBreakdown,
    DistributionKeyRow,
    ExternalCostRecord,
    MonthlyBalanceRecord,
    PropertySnapshot,
    ReportData,
    StatementTotals,
    TransactionSnapshot,
    UnitSnapshot,
    ValidationIssue,
    format_number,
)
from .statement_pdf_service import StatementPdfService
from .statement_sources import DjangoStatementSources, StatementSources
from .statement_txt_renderer import StatementTextRenderer
from .tax_deduction import TaxDeductionCalculator

logger = logging.getLogger(__name__)

MIN_YEAR = 2000
SEE_RESULTS = "Beträge siehe Ergebnisliste"


@dataclass(frozen=True, slots=True)
class StatementInputs:
    """Einmal gelesener Datenstand für eine Einheit und ein Jahr."""

    unit: UnitSnapshot
    property_obj: PropertySnapshot
    year: int
    transactions: tuple[TransactionSnapshot, ...]
    payments: dict[int, tuple[TransactionSnapshot, ...]]
    schedules: dict[int, AdvancePaymentSchedule | None]
    external_records: tuple[ExternalCostRecord, ...]
    monthly_balances: tuple[MonthlyBalanceRecord, ...]
    tax_deductible_accounts: frozenset[str]

    @property
    def schedule(self) -> AdvancePaymentSchedule | None:
        return self.schedules.get(self.unit.id)


class HausgeldStatementService:
    """Einstieg für Vorprüfung und Erzeugung der Hausgeldabrechnung."""

    def __init__(
        self,
        *,
        sources: StatementSources | None = None,
        config: StatementConfig | None = None,
        today: Callable[[], date] | None = None,
    ):
        self.config = config or StatementConfig.from_settings()
        self.sources = sources or DjangoStatementSources(
            extra_tax_deductible_accounts=self.config.tax_deductible_accounts
        )
        self.today = today or timezone.localdate
        self.aggregator = CostAggregator()
        self.tax_calculator = TaxDeductionCalculator()

    @staticmethod
    def _unit_id(unit: UnitSnapshot | int | object) -> int:
        if isinstance(unit, UnitSnapshot):
            return unit.id
        return int(getattr(unit, "pk", unit))

    def _resolve_unit(self, unit: UnitSnapshot | int | object) -> tuple[UnitSnapshot | None, PropertySnapshot | None]:
        unit_id = self._unit_id(unit)
        property_obj = self.sources.get_property_for_unit(unit_id)
        if property_obj is None:
            return None, None
        return property_obj.unit_by_id(unit_id), property_obj

    # --- Vorprüfung ---------------------------------------------------------

    def validate(self, unit: UnitSnapshot | int | object, year: int) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        if not MIN_YEAR <= year <= self.today().year + 1:
            issues.append(
                ValidationIssue(
                    PruefungsStufe.FEHLER,
                    "invalid_year",
                    f"Abrechnungsjahr {year} liegt außerhalb von {MIN_YEAR} bis {self.today().year + 1}.",
                )
            )

        snapshot, property_obj = self._resolve_unit(unit)
        if snapshot is None or property_obj is None:
            issues.append(
                ValidationIssue(
                    PruefungsStufe.FEHLER,
                    "property_missing",
                    f"Einheit {self._unit_id(unit)} existiert nicht oder ist keiner Liegenschaft zugeordnet.",
                )
            )
            return issues

        issues.extend(self.unit_issues(snapshot))
        if self.sources.get_advance_payment_schedule(snapshot, year) is None:
            issues.append(
                ValidationIssue(
                    PruefungsStufe.WARNUNG,
                    "advance_payment_missing",
                    f"Für Einheit {snapshot.number} ist für {year} kein Hausgeld-Vorschuss hinterlegt.",
                )
            )
        issues.extend(
            ExternalCostResolver.validate(property_obj, year, self._external_records(property_obj, year))
        )
        return issues

    @staticmethod
    def unit_issues(unit: UnitSnapshot) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        if unit.property_id is None:
            issues.append(
                ValidationIssue(
                    PruefungsStufe.FEHLER,
                    "property_missing",
                    f"Einheit {unit.number} ist keiner Liegenschaft zugeordnet.",
                )
            )
        if not unit.mea_raw:
            issues.append(
                ValidationIssue(
                    PruefungsStufe.FEHLER,
                    "mea_missing",
                    f"Für Einheit {unit.number} ist kein Miteigentumsanteil hinterlegt.",
                )
            )
        elif unit.mea_error or unit.mea_share is None:
            issues.append(
                ValidationIssue(
                    PruefungsStufe.FEHLER,
                    "mea_malformed",
                    unit.mea_error or f"MEA '{unit.mea_raw}' von Einheit {unit.number} ist ungültig.",
                )
            )
        elif not 0 <= unit.mea_share <= 1:
            issues.append(
                ValidationIssue(
                    PruefungsStufe.FEHLER,
                    "mea_out_of_range",
                    f"MEA '{unit.mea_raw}' von Einheit {unit.number} ergibt keinen Anteil zwischen 0 und 1.",
                )
            )
        if unit.hebeanlage_raw and unit.hebeanlage_share is None:
            issues.append(
                ValidationIssue(
                    PruefungsStufe.WARNUNG,
                    "hebeanlage_malformed",
                    f"Hebeanlage-Anteil '{unit.hebeanlage_raw}' von Einheit {unit.number} ist ungültig "
                    "und wird mit 0 angesetzt.",
                )
            )
        return issues

    # --- Datenstand ---------------------------------------------------------

    def _external_records(self, property_obj: PropertySnapshot, year: int) -> list[ExternalCostRecord]:
        records = list(self.sources.get_unit_cost_records(property_obj, year))
        total = self.sources.get_property_cost_total(property_obj, year)
        if total is not None:
            records.append(total)
        return records

    def load_inputs(self, unit: UnitSnapshot | int | object, year: int) -> StatementInputs:
        snapshot, property_obj = self._resolve_unit(unit)
        if snapshot is None or property_obj is None:
            raise StatementValidationError(
                [
                    ValidationIssue(
                        PruefungsStufe.FEHLER,
                        "property_missing",
                        f"Einheit {self._unit_id(unit)} existiert nicht oder ist keiner Liegenschaft zugeordnet.",
                    )
                ]
            )
        return StatementInputs(
            unit=snapshot,
            property_obj=property_obj,
            year=year,
            transactions=tuple(self.sources.get_transactions_for_property_and_year(property_obj, year)),
            payments={
                member.id: tuple(self.sources.get_unit_payments_for_year(member, year))
                for member in property_obj.units
            },
            schedules={
                member.id: self.sources.get_advance_payment_schedule(member, year)
                for member in property_obj.units
            },
            external_records=tuple(self._external_records(property_obj, year)),
            monthly_balances=tuple(self.sources.get_monthly_balances(property_obj, year)),
            tax_deductible_accounts=frozenset(self.sources.get_tax_deductible_account_numbers())
            | frozenset(self.config.tax_deductible_accounts),
        )

    # --- Berechnung ---------------------------------------------------------

    def build_report_data(self, unit: UnitSnapshot | int | object, year: int) -> ReportData:
        return self.report_from_inputs(self.load_inputs(unit, year))

    def report_from_inputs(self, inputs: StatementInputs) -> ReportData:
        unit = inputs.unit
        property_obj = inputs.property_obj
        year = inputs.year

        costs = self.aggregator.calculate_cost_breakdown(inputs.transactions, unit, property_obj, year)
        external = ExternalCostResolver.resolve(unit, property_obj, year, inputs.external_records)
        property_external = ExternalCostResolver.property_costs(property_obj, year, inputs.external_records)

        payments = PaymentReconciler.reconcile(unit, year, inputs.schedule, inputs.payments.get(unit.id, ()))
        property_payments = PaymentReconciler.reconcile_property(
            property_obj,
            year,
            schedule_for=lambda member: inputs.schedules.get(member.id),
            payments_for=lambda member: inputs.payments.get(member.id, ()),
        )

        unit_totals = StatementTotals.for_unit(costs, external)
        property_totals = StatementTotals.for_property(costs, property_external)

        budget = None
        if self.config.budget is not None:
            budget = self.config.budget.project(statement_year=year, unit=unit)

        report = ReportData(
            unit=unit,
            property_obj=property_obj,
            year=year,
            created_on=self.today(),
            costs=costs,
            external_costs=external,
            payments=payments,
            property_payments=property_payments,
            tax_deduction=self.tax_calculator.calculate(
                inputs.transactions, unit, property_obj, year, inputs.tax_deductible_accounts
            ),
            unit_totals=unit_totals,
            property_totals=property_totals,
            final_balance=PaymentReconciler.final_balance(
                unit_totals.gesamtkosten, payments.soll, payments.ist
            ),
            property_final_balance=PaymentReconciler.final_balance(
                property_totals.gesamtkosten, property_payments.soll, property_payments.ist
            ),
            umlageschluessel=self.distribution_key_rows(unit, property_obj),
            balance=BalanceTracker.balance_development(inputs.monthly_balances, year),
            budget=budget,
        )
        if report.has_calculation_errors:
            logger.warning(
                "Hausgeldabrechnung %s für Einheit %s enthält Positionen mit Berechnungsfehlern.",
                year,
                unit.number,
            )
        return report

    @staticmethod
    def distribution_key_rows(unit: UnitSnapshot, property_obj: PropertySnapshot) -> tuple[DistributionKeyRow, ...]:
        rows = [
            DistributionKeyRow(Umlageschluessel.HEIZKOSTEN_EXTERN, "€ Festbetrag", SEE_RESULTS, ""),
            DistributionKeyRow(Umlageschluessel.WASSERKOSTEN_EXTERN, "€ Festbetrag", SEE_RESULTS, ""),
            DistributionKeyRow(
                Umlageschluessel.EINHEITEN,
                "Einheiten-anteilig",
                format_number(property_obj.unit_count),
                format_number(1),
            ),
            DistributionKeyRow(Umlageschluessel.FESTUMLAGE, "€ Festbetrag", SEE_RESULTS, ""),
            DistributionKeyRow(
                Umlageschluessel.MITEIGENTUMSANTEIL,
                "Anzahl anteilig",
                format_number(MEA_BASIS, 3),
                format_number((unit.mea_share or Decimal(0)) * MEA_BASIS, 3),
            ),
        ]
        if unit.hebeanlage_share is not None:
            numerator, denominator = unit.hebeanlage_raw.split("/", 1)
            rows.append(
                DistributionKeyRow(
                    Umlageschluessel.HEBEANLAGE,
                    "Spezial",
                    format_number(int(denominator)),
                    format_number(int(numerator)),
                )
            )
        return tuple(rows)

    def quality_check(self, unit: UnitSnapshot | int | object, year: int) -> list[ValidationIssue]:
        """Plausibilitätshinweise zur berechneten Abrechnung, ohne sie zu blockieren."""
        return StatementQualityChecker.check(self.build_report_data(unit, year))

    def calculate_total_costs(self, property_obj: PropertySnapshot | int, year: int) -> CostBreakdown:
        if not isinstance(property_obj, PropertySnapshot):
            loaded = self.sources.get_property(int(property_obj))
            if loaded is None:
                raise StatementValidationError(
                    [
                        ValidationIssue(
                            PruefungsStufe.FEHLER,
                            "property_missing",
                            f"Liegenschaft {property_obj} existiert nicht.",
                        )
                    ]
                )
            property_obj = loaded
        transactions = self.sources.get_transactions_for_property_and_year(property_obj, year)
        return self.aggregator.calculate_total_costs_for_property(transactions, property_obj, year)

    # --- Ausgabe ------------------------------------------------------------

    def render(self, report: ReportData, output_format: Ausgabeformat | str = Ausgabeformat.TXT) -> str | bytes:
        if output_format == Ausgabeformat.TXT:
            return StatementTextRenderer(self.config).render(report)
        if output_format == Ausgabeformat.PDF:
            return StatementPdfService.generate_statement_pdf(report=report, config=self.config)
        raise ValueError(f"Unbekanntes Ausgabeformat: {output_format}")

    def generate_statement(
        self,
        unit: UnitSnapshot | int | object,
        year: int,
        output_format: Ausgabeformat | str = Ausgabeformat.TXT,
    ) -> str | bytes:
        if output_format not in Ausgabeformat.values:
            raise ValueError(f"Unbekanntes Ausgabeformat: {output_format}")
        errors = [issue for issue in self.validate(unit, year) if issue.is_error]
        if errors:
            raise StatementValidationError(errors)
        report = self.build_report_data(unit, year)
        return self.render(report, output_format)

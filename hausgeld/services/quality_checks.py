from __future__ import annotations

import logging
from decimal import Decimal

from ..choices import PruefungsStufe
from .statement_data import ReportData, ValidationIssue, format_money, format_number

logger = logging.getLogger(__name__)

MIN_PAYMENTS = 10
MAX_PAYMENTS = 16
MAX_MEA_DEVIATION = Decimal("10")
TAX_REDUCTION_RATE = Decimal("0.20")
TAX_REDUCTION_LIMIT = Decimal("1200")
HEATING_LIMIT = Decimal("5000")
MAX_TAX_REDUCTION_PERCENT = Decimal("25")


class StatementQualityChecker:
    """Regelbasierte Plausibilitätsprüfung einer fertig berechneten Einzelabrechnung.

    Die Hinweise blockieren die Erstellung nicht, sie dienen der Durchsicht vor dem Versand.
    """

    @classmethod
    def check(cls, report: ReportData) -> list[ValidationIssue]:
        issues = [
            *cls.data_completeness(report),
            *cls.calculation_plausibility(report),
            *cls.compliance(report),
        ]
        if issues:
            logger.info(
                "Qualitätsprüfung %s für Einheit %s: %s Hinweis(e).",
                report.year,
                report.unit.number,
                len(issues),
            )
        return issues

    @staticmethod
    def tax_reduction(report: ReportData) -> Decimal:
        return report.tax_deduction.total_anrechenbar * TAX_REDUCTION_RATE

    @staticmethod
    def data_completeness(report: ReportData) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        external = report.external_costs
        if external.heating_unit_share == 0 and external.water_unit_share == 0:
            issues.append(
                ValidationIssue(
                    PruefungsStufe.FEHLER,
                    "external_costs_missing",
                    "Keine externen Kosten (Heizung/Wasser) vorhanden. "
                    "Bitte Heiz- und Wasserkostendaten nachtragen.",
                )
            )

        payments = report.payments
        if payments.ist == 0:
            issues.append(
                ValidationIssue(
                    PruefungsStufe.FEHLER,
                    "payments_missing",
                    "Keine Zahlungsdaten vorhanden (Ist = 0,00 €). Bitte Zahlungen erfassen.",
                )
            )
        elif payments.count < MIN_PAYMENTS:
            issues.append(
                ValidationIssue(
                    PruefungsStufe.WARNUNG,
                    "payment_count_low",
                    f"Zu wenige Zahlungen für Einheit {report.unit.number}: {payments.count} vorhanden, "
                    f"mindestens {MIN_PAYMENTS} erwartet.",
                )
            )
        elif payments.count > MAX_PAYMENTS:
            issues.append(
                ValidationIssue(
                    PruefungsStufe.WARNUNG,
                    "payment_count_high",
                    f"Ungewöhnlich viele Zahlungen für Einheit {report.unit.number}: {payments.count} vorhanden, "
                    f"normalerweise 12 bis {MAX_PAYMENTS}. Doppelbuchungen oder Zahlungen anderer Jahre prüfen.",
                )
            )
        return issues

    @classmethod
    def calculation_plausibility(cls, report: ReportData) -> list[ValidationIssue]:
        issues: list[ValidationIssue] = []
        property_costs = report.property_totals.gesamtkosten
        mea_share = report.unit.mea_share
        if property_costs > 0 and mea_share:
            actual = report.unit_totals.gesamtkosten / property_costs * 100
            expected = mea_share * 100
            if abs(actual - expected) > MAX_MEA_DEVIATION:
                issues.append(
                    ValidationIssue(
                        PruefungsStufe.FEHLER,
                        "cost_share_implausible",
                        f"Kostenanteil unplausibel: {format_number(actual, 1)} % statt erwartet "
                        f"{format_number(expected, 1)} % (MEA-Anteil). Umlageschlüssel und MEA prüfen.",
                    )
                )

        reduction = cls.tax_reduction(report)
        if reduction > TAX_REDUCTION_LIMIT:
            issues.append(
                ValidationIssue(
                    PruefungsStufe.FEHLER,
                    "tax_reduction_limit",
                    f"Steuerermäßigung überschreitet das gesetzliche Limit: {format_money(reduction)} € "
                    f"> {format_money(TAX_REDUCTION_LIMIT)} €.",
                )
            )

        heating = report.external_costs.heating_unit_share
        if heating > HEATING_LIMIT:
            issues.append(
                ValidationIssue(
                    PruefungsStufe.WARNUNG,
                    "heating_costs_high",
                    f"Heizkosten ungewöhnlich hoch: {format_money(heating)} €. Heizkostenabrechnung prüfen.",
                )
            )
        return issues

    @classmethod
    def compliance(cls, report: ReportData) -> list[ValidationIssue]:
        eligible = report.tax_deduction.total_anteil_kosten
        reduction = cls.tax_reduction(report)
        if eligible <= 0 or reduction <= 0:
            return []
        percentage = reduction / eligible * 100
        if percentage <= MAX_TAX_REDUCTION_PERCENT:
            return []
        return [
            ValidationIssue(
                PruefungsStufe.WARNUNG,
                "tax_reduction_ratio",
                f"Steuerermäßigung scheint zu hoch: {format_number(percentage, 1)} % der absetzbaren Kosten. "
                "Berechnung der Arbeitskosten prüfen.",
            )
        ]

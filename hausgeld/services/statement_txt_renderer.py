from __future__ import annotations

from decimal import Decimal

from .statement_config import StatementConfig
from .statement_data import (
    CostLine,
    CostSection,
    ReportData,
    format_date,
    format_money,
    format_number,
)

LINE_WIDTH = 120
SEPARATOR_LINE = "=" * 80
SUB_SEPARATOR = "-" * 70
ROW = "{:<45} {:>15} {:>15}"
CALC_ROW = "{:<30} {:>15} {:>15}"


def _signed(value: Decimal) -> str:
    prefix = "+" if value >= 0 else ""
    return f"{prefix}{format_money(value)}"


class StatementTextRenderer:
    """Einzelabrechnung als Klartext mit fester Spaltenbreite.

    Abschnitte ohne Eingangsdaten entfallen vollständig.
    """

    def __init__(self, config: StatementConfig):
        self.config = config

    def render(self, report: ReportData) -> str:
        sections = [
            self._header(report),
            self._owner_info(report),
            self._summary(report),
            self._calculation(report),
            self._distribution_keys(report),
            self._umlagefaehig(report),
            self._nicht_umlagefaehig(report),
            self._grand_total(report),
            self._payment_overview(report),
            self._ruecklagen(report),
            self._balance_development(report),
            self._budget(report),
            self._tax_deduction(report),
            self._footer(),
        ]
        lines: list[str] = []
        for section in sections:
            lines.extend(section)
        return "\n".join(lines) + "\n"

    # --- Kopf ---------------------------------------------------------------

    def _header(self, report: ReportData) -> list[str]:
        property_obj = report.property_obj
        objekt = ", ".join(part for part in (property_obj.name, property_obj.address) if part)
        return [
            SEPARATOR_LINE,
            self.config.header("main_title", year=report.year),
            SEPARATOR_LINE,
            "",
            f"Erstellung: {format_date(report.created_on)}",
            f"Objekt: {objekt}",
            f"Abrechnungszeitraum: {report.period_label}",
        ]

    def _owner_info(self, report: ReportData) -> list[str]:
        unit = report.unit
        address = unit.address or self.config.text("missing_address")
        recipient = ", ".join(part for part in (unit.owner_name, address) if part)
        return [
            "",
            self.config.header("owner_info"),
            "-" * 40,
            f"Eigentümer: {unit.label}",
            f"Empfänger-Adresse: {recipient}",
        ]

    def _summary(self, report: ReportData) -> list[str]:
        final = report.final_balance
        key = "result_nachzahlung" if final.ergebnis == "Nachzahlung" else "result_guthaben"
        return [
            "",
            self.config.header("summary"),
            "-" * 40,
            self.config.text(key, betrag=format_money(abs(final.saldo))),
        ]

    def _calculation(self, report: ReportData) -> list[str]:
        unit_final = report.final_balance
        property_final = report.property_final_balance
        payments = report.payments
        property_payments = report.property_payments
        return [
            "",
            self.config.header("calculation"),
            "-" * 62,
            CALC_ROW.format("Position", "Objekt gesamt", "Ihr Anteil"),
            "-" * 62,
            CALC_ROW.format(
                "Gesamtkosten",
                format_money(report.property_totals.gesamtkosten),
                format_money(report.unit_totals.gesamtkosten),
            ),
            CALC_ROW.format(
                "- Hausgeld-Vorschuss Soll",
                format_money(property_payments.soll),
                format_money(payments.soll),
            ),
            "-" * 62,
            CALC_ROW.format(
                "= Abrechnungsspitze",
                format_money(property_final.abrechnungsspitze),
                format_money(unit_final.abrechnungsspitze),
            )
            + f" ({unit_final.spitze_status})",
            "",
            CALC_ROW.format(
                "Hausgeld-Vorschuss Ist",
                format_money(property_payments.ist),
                format_money(payments.ist),
            ),
            CALC_ROW.format(
                "- Hausgeld-Vorschuss Soll",
                format_money(property_payments.soll),
                format_money(payments.soll),
            ),
            "-" * 62,
            CALC_ROW.format(
                "= Zahlungsdifferenz",
                format_money(property_final.zahlungsdifferenz),
                format_money(unit_final.zahlungsdifferenz),
            )
            + f" ({payments.status})",
            "",
            "{:<30} {:>31}".format(
                "= ABRECHNUNGS-SALDO",
                f"{format_money(unit_final.saldo)} ({unit_final.ergebnis})",
            ),
            "=" * 62,
        ]

    def _distribution_keys(self, report: ReportData) -> list[str]:
        if not report.umlageschluessel:
            return []
        row = "{:<4} {:<36} {:<20} {:<6} {:<5} {:<27} {:<15}"
        lines = [
            "",
            self.config.header("umlageschluessel"),
            "-" * LINE_WIDTH,
            row.format("Nr.", "Umlageschlüssel", "Umlage", "Jahr", "Tage", "Gesamtumlage", "Ihr Anteil"),
            "-" * LINE_WIDTH,
        ]
        for key_row in report.umlageschluessel:
            lines.append(
                row.format(
                    str(key_row.key),
                    key_row.bezeichnung,
                    key_row.umlage,
                    str(report.year),
                    "365",
                    key_row.gesamtumlage,
                    key_row.anteil,
                ).rstrip()
            )
        lines.append("=" * LINE_WIDTH)
        return lines

    # --- Kosten -------------------------------------------------------------

    @staticmethod
    def _cost_line(line: CostLine) -> list[str]:
        label = f"{line.kostenkonto} - {line.beschreibung} {str(line.umlageschluessel)}"
        rendered = [ROW.format(label, format_money(line.total), format_money(line.anteil))]
        if line.error:
            rendered.append(f"    ! Berechnungsfehler, Anteil mit 0,00 angesetzt: {line.error}")
        return rendered

    def _cost_table_head(self, title: str, first_column: str = "Kostenart") -> list[str]:
        return [
            "",
            title,
            "-" * 77,
            ROW.format(first_column, "Gesamtkosten", "Ihr Anteil"),
            "-" * 77,
        ]

    def _umlagefaehig(self, report: ReportData) -> list[str]:
        section = report.costs.umlagefaehig
        external = report.external_costs
        if not section.lines and not external.has_data:
            return []

        lines = self._cost_table_head(self.config.header("umlagefaehig"))
        if external.has_data:
            lines.extend(
                [
                    "HEIZUNG/WASSER/ABRECHNUNG:",
                    ROW.format(
                        "ext. berechn. Heizkosten 01*",
                        format_money(external.heating_total),
                        format_money(external.heating_unit_share),
                    ),
                    ROW.format(
                        "ext. berechn. Wasser-/sonst. Kosten 02*",
                        format_money(external.water_total),
                        format_money(external.water_unit_share),
                    ),
                    ROW.format(
                        "∑ Zwischensumme: Heizung/Wasser",
                        format_money(external.total),
                        format_money(external.unit_total),
                    ),
                    "",
                ]
            )
        if section.lines:
            lines.append("SONSTIGE UMLAGEFÄHIGE KOSTEN:")
            for line in section.lines:
                lines.extend(self._cost_line(line))
            lines.append("-" * 77)
            lines.append(
                ROW.format(
                    "∑ Zwischensumme: Sonstige",
                    format_money(section.total),
                    format_money(section.anteil),
                )
            )
        lines.extend(
            [
                "",
                ROW.format(
                    "∑ SUMME: umlagefähig (Mieter)",
                    format_money(report.property_totals.umlagefaehig),
                    format_money(report.unit_totals.umlagefaehig),
                ),
                "=" * 77,
            ]
        )
        return lines

    def _section_lines(self, title: str, section: CostSection, summary_label: str, first_column: str) -> list[str]:
        lines = self._cost_table_head(title, first_column)
        for line in section.lines:
            lines.extend(self._cost_line(line))
        lines.extend(
            [
                "-" * 77,
                ROW.format(summary_label, format_money(section.total), format_money(section.anteil)),
                "=" * 77,
            ]
        )
        return lines

    def _nicht_umlagefaehig(self, report: ReportData) -> list[str]:
        section = report.costs.nicht_umlagefaehig
        if not section.lines:
            return []
        return self._section_lines(
            self.config.header("nicht_umlagefaehig"),
            section,
            "∑ SUMME: nicht umlagefähig (Mieter)",
            "Kostenart",
        )

    def _grand_total(self, report: ReportData) -> list[str]:
        return [
            "",
            ROW.format(
                "∑ GESAMTSUMME ALLER KOSTEN",
                format_money(report.property_totals.gesamtkosten),
                format_money(report.unit_totals.gesamtkosten),
            ),
            "(ohne Rücklagenzuführung, BGH V ZR 44/09)",
            SEPARATOR_LINE,
        ]

    def _ruecklagen(self, report: ReportData) -> list[str]:
        section = report.costs.ruecklagen
        if not section.lines:
            return []
        return self._section_lines(
            self.config.header("ruecklagen"),
            section,
            "∑ SUMME: Rücklagenzuführung",
            "Art der Rücklagenzuführung",
        )

    # --- Zahlungen und Konten -----------------------------------------------

    def _payment_overview(self, report: ReportData) -> list[str]:
        payments = report.payments
        if not payments.details:
            return []
        row = "{:<12} {:<45} {:>15}"
        lines = [
            "",
            self.config.header("payment_overview", year=report.year),
            SUB_SEPARATOR,
            f"Debitor: {report.unit.label}",
            f"Zeitraum: {report.period_label}",
            SUB_SEPARATOR,
            row.format("Datum", "Beschreibung", "Betrag"),
            SUB_SEPARATOR,
        ]
        for detail in payments.details:
            lines.append(row.format(format_date(detail.date), detail.description[:45], format_money(detail.amount)))
        lines.append(SUB_SEPARATOR)
        lines.append("{:<58} {:>15}".format("JAHRESSUMME:", format_money(payments.ist)))
        for category, amount in report.property_payments.category_totals:
            lines.append("{:<58} {:>15}".format(f"Objekt gesamt {category.label}:", format_money(amount)))
        lines.append("=" * 74)
        return lines

    def _balance_development(self, report: ReportData) -> list[str]:
        balance = report.balance
        if balance is None:
            return []
        lines = [
            "",
            self.config.header("balance_development", year=balance.year),
            SUB_SEPARATOR,
            "{:<36} {:>15} €".format(f"Kontostand 31.12.{balance.year - 1}:", format_money(balance.opening_balance)),
            "{:<36} {:>15} €".format(f"Kontostand 31.12.{balance.year}:", format_money(balance.closing_balance)),
            "{:<36} {:>15} €".format("Veränderung:", _signed(balance.change)),
            SUB_SEPARATOR.replace("-", "="),
        ]
        if balance.months:
            lines.extend(
                [
                    "",
                    self.config.header("monthly_balance", year=balance.year),
                    "-" * 74,
                    "Monat   | Anfangssaldo     | Umsätze          | Endsaldo         | Transaktionen",
                    "-" * 74,
                ]
            )
            for month in balance.months:
                lines.append(
                    "{:<7} | {:>14} € | {:>14} € | {:>14} € | {:>5}".format(
                        month.month.strftime("%m/%Y"),
                        format_money(month.opening_balance),
                        format_money(month.turnover),
                        format_money(month.closing_balance),
                        month.transaction_count,
                    )
                )
            lines.append("=" * 74)
        return lines

    def _budget(self, report: ReportData) -> list[str]:
        budget = report.budget
        if budget is None:
            return []
        amount_row = "{:<52} {:>15} €"
        lines = [
            "",
            self.config.header("wirtschaftsplan", year=budget.year),
            "=" * 80,
            "",
            "VERMÖGENSSTAND:",
            SUB_SEPARATOR,
            amount_row.format(f"Kontostand WEG-Hausgeldkonto ({budget.balance_date}):", format_money(budget.hausgeld_konto)),
            amount_row.format(f"Kontostand Rücklagenkonto ({budget.balance_date}):", format_money(budget.ruecklagen_konto)),
            SUB_SEPARATOR,
            amount_row.format("GESAMTVERMÖGEN WEG:", format_money(budget.gesamtvermoegen)),
            SUB_SEPARATOR.replace("-", "="),
            "",
            f"WIRTSCHAFTSPLAN {budget.year} - GEPLANTE AUSGABEN:",
            SUB_SEPARATOR,
            "1. UMLAGEFÄHIGE KOSTEN (auf Mieter umlegbar):",
        ]
        lines.extend(amount_row.format(line.bezeichnung, format_money(line.betrag)) for line in budget.umlagefaehig)
        lines.append(amount_row.format("Zwischensumme umlagefähig:", format_money(budget.umlagefaehig_total)))
        lines.append("")
        lines.append("2. NICHT UMLAGEFÄHIGE KOSTEN:")
        lines.extend(
            amount_row.format(line.bezeichnung, format_money(line.betrag)) for line in budget.nicht_umlagefaehig
        )
        lines.append(
            amount_row.format("Zwischensumme nicht umlagefähig:", format_money(budget.nicht_umlagefaehig_total))
        )
        lines.extend(
            [
                "",
                amount_row.format(f"GESAMTAUSGABEN {budget.year}:", format_money(budget.gesamtausgaben)),
                SUB_SEPARATOR.replace("-", "="),
                "",
                f"GEPLANTE EINNAHMEN {budget.year}:",
                SUB_SEPARATOR,
                amount_row.format(
                    f"Hausgeld-Vorschüsse (12 × {format_money(budget.monthly_income)} €)",
                    format_money(budget.yearly_income),
                ),
                amount_row.format(
                    f"Nachzahlungen aus Abrechnung {report.year}",
                    format_money(budget.nachzahlungen_vorjahr),
                ),
                SUB_SEPARATOR,
                amount_row.format(f"GESAMTEINNAHMEN {budget.year}:", format_money(budget.gesamteinnahmen)),
                amount_row.format("SALDO (Einnahmen - Ausgaben):", format_money(budget.saldo)),
                SUB_SEPARATOR.replace("-", "="),
                "",
                f"HAUSGELD-VORSCHUSS {budget.year} - IHR ANTEIL ({format_number(budget.unit_share * 100, 1)} %):",
                SUB_SEPARATOR,
                amount_row.format("Monatlicher Vorschuss WEG gesamt:", format_money(budget.monthly_income)),
                amount_row.format("Ihr monatlicher Vorschuss:", format_money(budget.monthly_unit_advance)),
                SUB_SEPARATOR.replace("-", "="),
                "",
            ]
        )
        lines.extend(self.config.text_lines("balance_notice"))
        return lines

    # --- §35a und Abschluss -------------------------------------------------

    def _tax_deduction(self, report: ReportData) -> list[str]:
        tax = report.tax_deduction
        if not tax.items:
            return []
        row = "{:<45} {:>15} {:>15} {:>20} {:>22}"
        lines = [
            "",
            self.config.header("tax_deductible"),
            "-" * LINE_WIDTH,
            row.format(
                "Handwerkerleistungen",
                "Gesamtkosten",
                "anrechenbar",
                "Ihr Anteil (Kosten)",
                "Ihr Anteil (anrechb.)",
            ),
            "-" * LINE_WIDTH,
        ]
        for item in tax.items:
            lines.append(
                row.format(
                    f"{item.kostenkonto} - {item.beschreibung} {str(item.umlageschluessel)}",
                    format_money(item.gesamtkosten),
                    format_money(item.anrechenbar),
                    format_money(item.anteil_kosten),
                    format_money(item.anteil_anrechenbar),
                )
            )
            if item.error:
                lines.append(f"    ! Berechnungsfehler, Anteil mit 0,00 angesetzt: {item.error}")
        lines.extend(
            [
                "-" * LINE_WIDTH,
                row.format(
                    "SUMME Handwerkerleistungen",
                    format_money(tax.total_gesamtkosten),
                    format_money(tax.total_anrechenbar_objekt),
                    format_money(tax.total_anteil_kosten),
                    format_money(tax.total_anrechenbar),
                ),
                "=" * LINE_WIDTH,
                "",
                self.config.text("tax_deductible_info", betrag=format_money(tax.total_anrechenbar)),
                "",
            ]
        )
        lines.extend(self.config.text_lines("tax_notice"))
        return lines

    def _footer(self) -> list[str]:
        return [
            "",
            SEPARATOR_LINE,
            self.config.header("end"),
            SEPARATOR_LINE,
        ]

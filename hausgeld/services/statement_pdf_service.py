from __future__ import annotations

import logging

from django.conf import settings
from django.template.loader import render_to_string

from .exceptions import StatementPdfGenerationError
from .statement_config import StatementConfig
from .statement_data import CostLine, CostSection, ReportData, format_date, format_money, format_number

STATEMENT_CSS = """
@page { size: A4; margin: 18mm 16mm 20mm 16mm; }
body { font-family: 'DejaVu Sans', sans-serif; font-size: 9pt; color: #1d2330; }
h1 { font-size: 14pt; margin: 0 0 4mm 0; }
h2 { font-size: 10.5pt; margin: 7mm 0 2mm 0; border-bottom: 1px solid #1d2330; }
.meta td { padding: 1px 8px 1px 0; }
.statement-table { width: 100%; border-collapse: collapse; margin: 2mm 0; }
.statement-table th, .statement-table td { border-bottom: 1px solid #ccd3de; padding: 3px 5px; }
.statement-table th { text-align: left; background: #eef1f6; }
.statement-table tr.sum td { font-weight: bold; border-top: 1px solid #1d2330; }
.text-right { text-align: right; }
.error { color: #a12020; font-size: 8pt; }
.result { font-size: 11pt; font-weight: bold; margin: 3mm 0; }
.notice { font-size: 8pt; color: #4a5263; }
"""


class StatementPdfService:
    """Erzeugt die Einzelabrechnung als PDF über WeasyPrint (HTML -> PDF)."""

    logger = logging.getLogger(__name__)

    @staticmethod
    def _cost_rows(section: CostSection) -> list[dict[str, object]]:
        return [StatementPdfService._cost_row(line) for line in section.lines]

    @staticmethod
    def _cost_row(line: CostLine) -> dict[str, object]:
        return {
            "label": f"{line.kostenkonto} - {line.beschreibung}",
            "key": str(line.umlageschluessel),
            "total": format_money(line.total),
            "anteil": format_money(line.anteil),
            "error": line.error or "",
        }

    @classmethod
    def build_payload(cls, *, report: ReportData, config: StatementConfig) -> dict[str, object]:
        unit_final = report.final_balance
        property_final = report.property_final_balance
        result_key = "result_nachzahlung" if unit_final.ergebnis == "Nachzahlung" else "result_guthaben"
        external = report.external_costs
        headers = {key: config.header(key, year=report.year) for key in config.section_headers}
        if report.budget is not None:
            headers["wirtschaftsplan"] = config.header("wirtschaftsplan", year=report.budget.year)
        payload: dict[str, object] = {
            "title": config.header("main_title", year=report.year),
            "created_on": format_date(report.created_on),
            "property_name": report.property_obj.name,
            "property_address": report.property_obj.address,
            "period": report.period_label,
            "unit_label": report.unit.label,
            "owner_name": report.unit.owner_name,
            "owner_address": report.unit.address or config.text("missing_address"),
            "result_text": config.text(result_key, betrag=format_money(abs(unit_final.saldo))),
            "headers": headers,
            "calculation": [
                (label, format_money(objekt), format_money(anteil))
                for label, objekt, anteil in (
                    ("Gesamtkosten", report.property_totals.gesamtkosten, report.unit_totals.gesamtkosten),
                    ("- Hausgeld-Vorschuss Soll", report.property_payments.soll, report.payments.soll),
                    ("= Abrechnungsspitze", property_final.abrechnungsspitze, unit_final.abrechnungsspitze),
                    ("Hausgeld-Vorschuss Ist", report.property_payments.ist, report.payments.ist),
                    ("= Zahlungsdifferenz", property_final.zahlungsdifferenz, unit_final.zahlungsdifferenz),
                )
            ],
            "saldo": format_money(unit_final.saldo),
            "ergebnis": unit_final.ergebnis,
            "key_rows": [
                {
                    "key": str(row.key),
                    "bezeichnung": row.bezeichnung,
                    "umlage": row.umlage,
                    "gesamtumlage": row.gesamtumlage,
                    "anteil": row.anteil,
                }
                for row in report.umlageschluessel
            ],
            "external": (
                {
                    "heating_total": format_money(external.heating_total),
                    "heating_unit_share": format_money(external.heating_unit_share),
                    "water_total": format_money(external.water_total),
                    "water_unit_share": format_money(external.water_unit_share),
                }
                if external.has_data
                else None
            ),
            "umlagefaehig": cls._cost_rows(report.costs.umlagefaehig),
            "umlagefaehig_sum": (
                format_money(report.property_totals.umlagefaehig),
                format_money(report.unit_totals.umlagefaehig),
            ),
            "nicht_umlagefaehig": cls._cost_rows(report.costs.nicht_umlagefaehig),
            "nicht_umlagefaehig_sum": (
                format_money(report.property_totals.nicht_umlagefaehig),
                format_money(report.unit_totals.nicht_umlagefaehig),
            ),
            "gesamtsumme": (
                format_money(report.property_totals.gesamtkosten),
                format_money(report.unit_totals.gesamtkosten),
            ),
            "ruecklagen": cls._cost_rows(report.costs.ruecklagen),
            "ruecklagen_sum": (
                format_money(report.property_totals.ruecklagen),
                format_money(report.unit_totals.ruecklagen),
            ),
            "payments": [
                {
                    "date": format_date(detail.date),
                    "description": detail.description,
                    "amount": format_money(detail.amount),
                }
                for detail in report.payments.details
            ],
            "payments_total": format_money(report.payments.ist),
            "category_totals": [
                (str(category.label), format_money(amount))
                for category, amount in report.property_payments.category_totals
            ],
            "balance": None,
            "budget": None,
            "tax_items": [],
        }
        if report.balance is not None:
            balance = report.balance
            payload["balance"] = {
                "previous_year": balance.year - 1,
                "year": balance.year,
                "opening": format_money(balance.opening_balance),
                "closing": format_money(balance.closing_balance),
                "change": format_money(balance.change),
                "months": [
                    {
                        "month": month.month.strftime("%m/%Y"),
                        "opening": format_money(month.opening_balance),
                        "turnover": format_money(month.turnover),
                        "closing": format_money(month.closing_balance),
                        "count": month.transaction_count,
                    }
                    for month in balance.months
                ],
            }

        if report.budget is not None:
            budget = report.budget
            payload["budget"] = {
                "year": budget.year,
                "balance_date": budget.balance_date,
                "hausgeld_konto": format_money(budget.hausgeld_konto),
                "ruecklagen_konto": format_money(budget.ruecklagen_konto),
                "gesamtvermoegen": format_money(budget.gesamtvermoegen),
                "umlagefaehig": [(line.bezeichnung, format_money(line.betrag)) for line in budget.umlagefaehig],
                "nicht_umlagefaehig": [
                    (line.bezeichnung, format_money(line.betrag)) for line in budget.nicht_umlagefaehig
                ],
                "gesamtausgaben": format_money(budget.gesamtausgaben),
                "gesamteinnahmen": format_money(budget.gesamteinnahmen),
                "saldo": format_money(budget.saldo),
                "unit_share": format_number(budget.unit_share * 100, 1),
                "monthly_unit_advance": format_money(budget.monthly_unit_advance),
                "notice": config.text_lines("balance_notice"),
            }

        tax = report.tax_deduction
        if tax.items:
            payload["tax_items"] = [
                {
                    "label": f"{item.kostenkonto} - {item.beschreibung}",
                    "key": str(item.umlageschluessel),
                    "gesamtkosten": format_money(item.gesamtkosten),
                    "anrechenbar": format_money(item.anrechenbar),
                    "anteil_kosten": format_money(item.anteil_kosten),
                    "anteil_anrechenbar": format_money(item.anteil_anrechenbar),
                    "error": item.error or "",
                }
                for item in tax.items
            ]
            payload["tax_info"] = config.text("tax_deductible_info", betrag=format_money(tax.total_anrechenbar))
            payload["tax_notice"] = config.text_lines("tax_notice")
        return payload

    @classmethod
    def _render_html(cls, *, report: ReportData, config: StatementConfig) -> str:
        return render_to_string(
            "hausgeld/statement_pdf.html",
            {
                "payload": cls.build_payload(report=report, config=config),
                "statement_css": STATEMENT_CSS,
            },
        )

    @classmethod
    def generate_statement_pdf(cls, *, report: ReportData, config: StatementConfig) -> bytes:
        html = cls._render_html(report=report, config=config)

        try:
            from weasyprint import HTML
        except (ImportError, OSError) as exc:
            # OSError: WeasyPrint installiert, aber Pango/Cairo fehlen im System.
            raise StatementPdfGenerationError(
                "PDF-Erstellung fehlgeschlagen: WeasyPrint ist nicht verfügbar."
            ) from exc

        try:
            return HTML(string=html, base_url=str(settings.BASE_DIR)).write_pdf()
        except Exception as exc:
            cls.logger.exception("WeasyPrint-PDF-Erzeugung fehlgeschlagen.")
            raise StatementPdfGenerationError(f"PDF-Erstellung fehlgeschlagen: {exc}") from exc

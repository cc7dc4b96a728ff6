from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from types import MappingProxyType
from typing import Any, Mapping

from django.conf import settings

from .statement_data import ZERO, BudgetLine, BudgetProjection, UnitSnapshot

DEFAULT_SECTION_HEADERS: dict[str, str] = {
    "main_title": "HAUSGELDABRECHNUNG {year} - EINZELABRECHNUNG",
    "owner_info": "EIGENTÜMER INFORMATION:",
    "summary": "ABRECHNUNGSÜBERSICHT:",
    "calculation": "BERECHNUNG DES ANTEILS:",
    "umlageschluessel": "UMLAGESCHLÜSSEL:",
    "umlagefaehig": "1. UMLAGEFÄHIGE KOSTEN (Mieter):",
    "nicht_umlagefaehig": "2. NICHT UMLAGEFÄHIGE KOSTEN (Mieter):",
    "ruecklagen": "3. RÜCKLAGENZUFÜHRUNG:",
    "tax_deductible": "STEUERBEGÜNSTIGTE LEISTUNGEN nach §35a EStG:",
    "payment_overview": "ZAHLUNGSÜBERSICHT {year}:",
    "balance_development": "KONTOSTANDSENTWICKLUNG {year}:",
    "monthly_balance": "MONATLICHE KONTOENTWICKLUNG {year}:",
    "wirtschaftsplan": "VERMÖGENSÜBERSICHT UND WIRTSCHAFTSPLAN {year}",
    "end": "ENDE DER HAUSGELDABRECHNUNG",
}

DEFAULT_STANDARD_TEXTS: dict[str, Any] = {
    "tax_deductible_info": (
        "Ihr steuerlich absetzbarer Betrag (100% der Arbeits-/Fahrtkosten inkl. MwSt.): {betrag} EUR"
    ),
    "tax_notice": (
        "HINWEIS: Diese Beträge können Sie in Ihrer Steuererklärung als haushaltsnahe",
        "Dienstleistungen geltend machen (20% davon, max. 1.200 EUR Steuerermäßigung pro Jahr).",
        "",
        "Bitte reichen Sie die detaillierte Abrechnung zusammen mit den Handwerkerrechnungen",
        "beim Finanzamt ein.",
    ),
    "balance_notice": (
        "Hinweis: Der aktuelle Kontostand deckt den Mehrbedarf vollständig,",
        "daher keine Erhöhung der Hausgeld-Vorschüsse.",
    ),
    "result_nachzahlung": "Ergebnis: Nachzahlung in Höhe von {betrag} €",
    "result_guthaben": "Ergebnis: Guthaben in Höhe von {betrag} €",
    "missing_address": "Keine Adresse hinterlegt",
}


def _decimal(value: Any) -> Decimal:
    if value in (None, ""):
        return ZERO
    return Decimal(str(value))


def _budget_lines(values: Mapping[str, Any] | None) -> tuple[BudgetLine, ...]:
    return tuple(
        BudgetLine(bezeichnung=str(label), betrag=_decimal(amount))
        for label, amount in (values or {}).items()
    )


@dataclass(frozen=True, slots=True)
class BudgetPlan:
    """Wirtschaftsplan des Folgejahres aus der Konfiguration."""

    year: int | None
    balance_date: str
    hausgeld_konto: Decimal
    ruecklagen_konto: Decimal
    umlagefaehig: tuple[BudgetLine, ...]
    nicht_umlagefaehig: tuple[BudgetLine, ...]
    monthly_income: Decimal
    nachzahlungen_vorjahr: Decimal

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> BudgetPlan:
        balances = data.get("bank_balances") or {}
        expenses = data.get("planned_expenses") or {}
        income = data.get("planned_income") or {}
        year = data.get("year")
        return cls(
            year=int(year) if year else None,
            balance_date=str(balances.get("balance_date") or ""),
            hausgeld_konto=_decimal(balances.get("hausgeld_konto")),
            ruecklagen_konto=_decimal(balances.get("ruecklagen_konto")),
            umlagefaehig=_budget_lines(expenses.get("umlagefaehig")),
            nicht_umlagefaehig=_budget_lines(expenses.get("nicht_umlagefaehig")),
            monthly_income=_decimal(income.get("monthly_total")),
            nachzahlungen_vorjahr=_decimal(income.get("nachzahlungen_vorjahr")),
        )

    def project(self, *, statement_year: int, unit: UnitSnapshot) -> BudgetProjection:
        return BudgetProjection(
            year=self.year or statement_year + 1,
            balance_date=self.balance_date,
            hausgeld_konto=self.hausgeld_konto,
            ruecklagen_konto=self.ruecklagen_konto,
            umlagefaehig=self.umlagefaehig,
            nicht_umlagefaehig=self.nicht_umlagefaehig,
            monthly_income=self.monthly_income,
            nachzahlungen_vorjahr=self.nachzahlungen_vorjahr,
            unit_share=unit.mea_share or ZERO,
        )


@dataclass(frozen=True, slots=True)
class StatementConfig:
    tax_deductible_accounts: frozenset[str]
    section_headers: Mapping[str, str]
    standard_texts: Mapping[str, Any]
    budget: BudgetPlan | None = None

    @classmethod
    def build(
        cls,
        *,
        tax_deductible_accounts: frozenset[str] | set[str] | list[str] | tuple[str, ...] = (),
        section_headers: Mapping[str, str] | None = None,
        standard_texts: Mapping[str, Any] | None = None,
        wirtschaftsplan: Mapping[str, Any] | None = None,
    ) -> StatementConfig:
        return cls(
            tax_deductible_accounts=frozenset(str(number) for number in tax_deductible_accounts),
            section_headers=MappingProxyType({**DEFAULT_SECTION_HEADERS, **(section_headers or {})}),
            standard_texts=MappingProxyType({**DEFAULT_STANDARD_TEXTS, **(standard_texts or {})}),
            budget=BudgetPlan.from_mapping(wirtschaftsplan) if wirtschaftsplan else None,
        )

    @classmethod
    def from_settings(cls) -> StatementConfig:
        raw: Mapping[str, Any] = getattr(settings, "HAUSGELD_STATEMENT", None) or {}
        return cls.build(
            tax_deductible_accounts=tuple(raw.get("tax_deductible_accounts") or ()),
            section_headers=raw.get("section_headers"),
            standard_texts=raw.get("standard_texts"),
            wirtschaftsplan=raw.get("wirtschaftsplan"),
        )

    def header(self, key: str, **values: Any) -> str:
        return self.section_headers[key].format(**values)

    def text(self, key: str, **values: Any) -> str:
        return str(self.standard_texts[key]).format(**values)

    def text_lines(self, key: str) -> tuple[str, ...]:
        value = self.standard_texts.get(key) or ()
        if isinstance(value, str):
            return (value,)
        return tuple(value)

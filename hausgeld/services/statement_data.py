from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from ..choices import Kostenkategorie, PruefungsStufe, Umlageschluessel, Zahlungskategorie

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
MEA_BASIS = Decimal("1000")

_HEBEANLAGE_PATTERN = re.compile(r"^(\d+)/(\d+)$")


def quantize_cent(value: Decimal | str | int | None) -> Decimal:
    return Decimal(value or ZERO).quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(value: Decimal | str | int | None) -> str:
    amount = quantize_cent(value)
    return f"{amount:,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")


def format_number(value: Decimal | int, places: int = 2) -> str:
    quantum = Decimal(1).scaleb(-places)
    amount = Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP)
    return f"{amount:,.{places}f}".replace(",", "X").replace(".", ",").replace("X", ".")


def format_date(value: date | None) -> str:
    if value is None:
        return ""
    return value.strftime("%d.%m.%Y")


def parse_mea(raw: str | None) -> Decimal | None:
    """MEA als Anteil zwischen 0 und 1.

    "290/1000" wird als Bruch gelesen, "290" als Absolutwert bezogen auf 1000.
    Leere Werte ergeben None, unlesbare Werte einen ValueError.
    """
    value = (raw or "").strip()
    if not value:
        return None
    try:
        if "/" in value:
            numerator, denominator = value.split("/", 1)
            numerator_value = Decimal(numerator.strip())
            denominator_value = Decimal(denominator.strip())
        else:
            numerator_value = Decimal(value)
            denominator_value = MEA_BASIS
    except InvalidOperation as exc:
        raise ValueError(f"MEA '{value}' ist kein gültiger Bruch.") from exc
    if not (numerator_value.is_finite() and denominator_value.is_finite()):
        raise ValueError(f"MEA '{value}' ist kein gültiger Bruch.")
    if denominator_value == 0:
        raise ValueError(f"MEA '{value}': Nenner ist 0.")
    return numerator_value / denominator_value


def parse_hebeanlage(raw: str | None) -> Decimal | None:
    match = _HEBEANLAGE_PATTERN.match((raw or "").strip())
    if not match:
        return None
    denominator = Decimal(match.group(2))
    if denominator <= 0:
        return None
    return Decimal(match.group(1)) / denominator


# --- Eingangsdaten -----------------------------------------------------------


@dataclass(frozen=True, slots=True)
class UnitSnapshot:
    id: int
    number: str
    property_id: int | None
    description: str = ""
    owner_name: str = ""
    mea_raw: str = ""
    mea_share: Decimal | None = None
    mea_error: str | None = None
    hebeanlage_raw: str = ""
    hebeanlage_share: Decimal | None = None
    address: str = ""

    @classmethod
    def build(
        cls,
        *,
        id: int,
        number: str,
        property_id: int | None,
        mea: str = "",
        hebeanlage: str = "",
        description: str = "",
        owner_name: str = "",
        address: str = "",
    ) -> UnitSnapshot:
        mea_share: Decimal | None = None
        mea_error: str | None = None
        try:
            mea_share = parse_mea(mea)
        except ValueError as exc:
            mea_error = str(exc)
        return cls(
            id=id,
            number=number,
            property_id=property_id,
            description=description or "",
            owner_name=owner_name or "",
            mea_raw=(mea or "").strip(),
            mea_share=mea_share,
            mea_error=mea_error,
            hebeanlage_raw=(hebeanlage or "").strip(),
            hebeanlage_share=parse_hebeanlage(hebeanlage),
            address=address or "",
        )

    @property
    def label(self) -> str:
        return " ".join(part for part in (self.number, self.description, self.owner_name) if part)


@dataclass(frozen=True, slots=True)
class PropertySnapshot:
    id: int
    name: str
    street_address: str = ""
    zip_code: str = ""
    city: str = ""
    units: tuple[UnitSnapshot, ...] = ()

    @property
    def unit_count(self) -> int:
        return len(self.units)

    @property
    def address(self) -> str:
        town = f"{self.zip_code} {self.city}".strip()
        return ", ".join(part for part in (self.street_address, town) if part)

    def unit_by_id(self, unit_id: int) -> UnitSnapshot | None:
        for unit in self.units:
            if unit.id == unit_id:
                return unit
        return None


@dataclass(frozen=True, slots=True)
class CostAccountSnapshot:
    number: str
    description: str
    category: Kostenkategorie
    key: Umlageschluessel | str = Umlageschluessel.MITEIGENTUMSANTEIL
    is_active: bool = True
    tax_deductible: bool = False


@dataclass(frozen=True, slots=True)
class InvoiceSnapshot:
    total: Decimal
    labour: Decimal | None = None
    service_date: date | None = None
    number: str = ""


@dataclass(frozen=True, slots=True)
class TransactionSnapshot:
    id: int
    date: date
    description: str
    amount: Decimal
    account: CostAccountSnapshot | None = None
    unit_id: int | None = None
    invoice: InvoiceSnapshot | None = None
    statement_year_override: int | None = None
    payment_category: Zahlungskategorie = Zahlungskategorie.HAUSGELD

    @property
    def statement_year(self) -> int:
        if self.statement_year_override:
            return self.statement_year_override
        return self.date.year

    def belongs_to_year(self, year: int) -> bool:
        return self.statement_year == year


@dataclass(frozen=True, slots=True)
class AdvancePaymentSchedule:
    monthly_amount: Decimal
    yearly_override: Decimal | None = None

    @property
    def yearly_amount(self) -> Decimal:
        if self.yearly_override is not None:
            return self.yearly_override
        return self.monthly_amount * 12


@dataclass(frozen=True, slots=True)
class ExternalCostRecord:
    property_id: int
    year: int
    heating: Decimal = ZERO
    water: Decimal = ZERO
    other: Decimal | None = None
    unit_id: int | None = None
    is_property_total: bool = False

    @property
    def water_and_other(self) -> Decimal:
        return self.water + (self.other or ZERO)


@dataclass(frozen=True, slots=True)
class MonthlyBalanceRecord:
    month: date
    opening_balance: Decimal
    closing_balance: Decimal
    turnover: Decimal = ZERO
    transaction_count: int = 0


# --- Ergebnisse --------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ValidationIssue:
    severity: PruefungsStufe
    code: str
    message: str

    @property
    def is_error(self) -> bool:
        return self.severity == PruefungsStufe.FEHLER


@dataclass(frozen=True, slots=True)
class CostLine:
    kostenkonto: str
    beschreibung: str
    umlageschluessel: Umlageschluessel | str
    kategorie: Kostenkategorie
    total: Decimal
    anteil: Decimal
    count: int
    error: str | None = None


@dataclass(frozen=True, slots=True)
class CostSection:
    lines: tuple[CostLine, ...] = ()

    @property
    def total(self) -> Decimal:
        return sum((line.total for line in self.lines), ZERO)

    @property
    def anteil(self) -> Decimal:
        return sum((line.anteil for line in self.lines), ZERO)

    @property
    def has_errors(self) -> bool:
        return any(line.error for line in self.lines)


@dataclass(frozen=True, slots=True)
class CostBreakdown:
    umlagefaehig: CostSection
    nicht_umlagefaehig: CostSection
    ruecklagen: CostSection

    @property
    def gesamtkosten(self) -> Decimal:
        # Rücklagenzuführung gehört nicht zu den Gesamtkosten (BGH V ZR 44/09).
        return self.umlagefaehig.anteil + self.nicht_umlagefaehig.anteil

    @property
    def gesamtkosten_objekt(self) -> Decimal:
        return self.umlagefaehig.total + self.nicht_umlagefaehig.total


@dataclass(frozen=True, slots=True)
class ExternalCosts:
    heating_total: Decimal = ZERO
    heating_unit_share: Decimal = ZERO
    water_total: Decimal = ZERO
    water_unit_share: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.heating_total + self.water_total

    @property
    def unit_total(self) -> Decimal:
        return self.heating_unit_share + self.water_unit_share

    @property
    def has_data(self) -> bool:
        return any((self.heating_total, self.heating_unit_share, self.water_total, self.water_unit_share))


@dataclass(frozen=True, slots=True)
class ExternalCostTotals:
    heating_total: Decimal = ZERO
    water_total: Decimal = ZERO

    @property
    def grand_total(self) -> Decimal:
        return self.heating_total + self.water_total


@dataclass(frozen=True, slots=True)
class StatementTotals:
    umlagefaehig: Decimal
    nicht_umlagefaehig: Decimal
    ruecklagen: Decimal

    @property
    def gesamtkosten(self) -> Decimal:
        return self.umlagefaehig + self.nicht_umlagefaehig

    @classmethod
    def for_unit(cls, costs: CostBreakdown, external: ExternalCosts) -> StatementTotals:
        return cls(
            umlagefaehig=costs.umlagefaehig.anteil + external.unit_total,
            nicht_umlagefaehig=costs.nicht_umlagefaehig.anteil,
            ruecklagen=costs.ruecklagen.anteil,
        )

    @classmethod
    def for_property(cls, costs: CostBreakdown, external: ExternalCosts) -> StatementTotals:
        return cls(
            umlagefaehig=costs.umlagefaehig.total + external.total,
            nicht_umlagefaehig=costs.nicht_umlagefaehig.total,
            ruecklagen=costs.ruecklagen.total,
        )


@dataclass(frozen=True, slots=True)
class PaymentDetail:
    date: date
    description: str
    amount: Decimal
    category: Zahlungskategorie


def deckungs_status(differenz: Decimal) -> str:
    return "Überdeckung" if differenz >= 0 else "Unterdeckung"


@dataclass(frozen=True, slots=True)
class PaymentBalance:
    soll: Decimal
    ist: Decimal
    count: int = 0
    details: tuple[PaymentDetail, ...] = ()

    @property
    def differenz(self) -> Decimal:
        return self.ist - self.soll

    @property
    def status(self) -> str:
        return deckungs_status(self.differenz)


@dataclass(frozen=True, slots=True)
class PropertyPaymentTotals:
    soll: Decimal
    ist: Decimal
    monthly_soll: Decimal = ZERO
    unit_count: int = 0
    category_totals: tuple[tuple[Zahlungskategorie, Decimal], ...] = ()

    @property
    def differenz(self) -> Decimal:
        return self.ist - self.soll

    @property
    def status(self) -> str:
        return deckungs_status(self.differenz)


@dataclass(frozen=True, slots=True)
class FinalBalance:
    gesamtkosten: Decimal
    soll: Decimal
    ist: Decimal

    @property
    def abrechnungsspitze(self) -> Decimal:
        return self.gesamtkosten - self.soll

    @property
    def zahlungsdifferenz(self) -> Decimal:
        return self.ist - self.soll

    @property
    def saldo(self) -> Decimal:
        # Nicht über Spitze und Differenz rechnen, sonst rundet der Decimal-Kontext zwischendurch.
        return self.gesamtkosten - self.ist

    @property
    def ergebnis(self) -> str:
        return "Nachzahlung" if self.saldo > 0 else "Guthaben"

    @property
    def spitze_status(self) -> str:
        return "Unterdeckung" if self.abrechnungsspitze >= 0 else "Überdeckung"


@dataclass(frozen=True, slots=True)
class TaxDeductionItem:
    kostenkonto: str
    beschreibung: str
    umlageschluessel: Umlageschluessel | str
    gesamtkosten: Decimal
    lohnanteil: Decimal
    anrechenbar: Decimal
    anteil_kosten: Decimal
    anteil_anrechenbar: Decimal
    error: str | None = None


@dataclass(frozen=True, slots=True)
class TaxDeduction:
    items: tuple[TaxDeductionItem, ...] = ()

    @property
    def total_anrechenbar(self) -> Decimal:
        return sum((item.anteil_anrechenbar for item in self.items), ZERO)

    @property
    def total_gesamtkosten(self) -> Decimal:
        return sum((item.gesamtkosten for item in self.items), ZERO)

    @property
    def total_anrechenbar_objekt(self) -> Decimal:
        return sum((item.anrechenbar for item in self.items), ZERO)

    @property
    def total_anteil_kosten(self) -> Decimal:
        return sum((item.anteil_kosten for item in self.items), ZERO)


@dataclass(frozen=True, slots=True)
class BalanceDevelopment:
    year: int
    opening_balance: Decimal
    closing_balance: Decimal
    months: tuple[MonthlyBalanceRecord, ...] = ()

    @property
    def change(self) -> Decimal:
        return self.closing_balance - self.opening_balance


@dataclass(frozen=True, slots=True)
class DistributionKeyRow:
    key: Umlageschluessel
    umlage: str
    gesamtumlage: str
    anteil: str

    @property
    def bezeichnung(self) -> str:
        return str(self.key.label)


@dataclass(frozen=True, slots=True)
class BudgetLine:
    bezeichnung: str
    betrag: Decimal


@dataclass(frozen=True, slots=True)
class BudgetProjection:
    year: int
    balance_date: str
    hausgeld_konto: Decimal
    ruecklagen_konto: Decimal
    umlagefaehig: tuple[BudgetLine, ...]
    nicht_umlagefaehig: tuple[BudgetLine, ...]
    monthly_income: Decimal
    nachzahlungen_vorjahr: Decimal
    unit_share: Decimal

    @property
    def gesamtvermoegen(self) -> Decimal:
        return self.hausgeld_konto + self.ruecklagen_konto

    @property
    def umlagefaehig_total(self) -> Decimal:
        return sum((line.betrag for line in self.umlagefaehig), ZERO)

    @property
    def nicht_umlagefaehig_total(self) -> Decimal:
        return sum((line.betrag for line in self.nicht_umlagefaehig), ZERO)

    @property
    def gesamtausgaben(self) -> Decimal:
        return self.umlagefaehig_total + self.nicht_umlagefaehig_total

    @property
    def yearly_income(self) -> Decimal:
        return self.monthly_income * 12

    @property
    def gesamteinnahmen(self) -> Decimal:
        return self.yearly_income + self.nachzahlungen_vorjahr

    @property
    def saldo(self) -> Decimal:
        return self.gesamteinnahmen - self.gesamtausgaben

    @property
    def monthly_unit_advance(self) -> Decimal:
        return self.monthly_income * self.unit_share


@dataclass(frozen=True, slots=True)
class ReportData:
    unit: UnitSnapshot
    property_obj: PropertySnapshot
    year: int
    created_on: date
    costs: CostBreakdown
    external_costs: ExternalCosts
    payments: PaymentBalance
    property_payments: PropertyPaymentTotals
    tax_deduction: TaxDeduction
    unit_totals: StatementTotals
    property_totals: StatementTotals
    final_balance: FinalBalance
    property_final_balance: FinalBalance
    umlageschluessel: tuple[DistributionKeyRow, ...] = ()
    balance: BalanceDevelopment | None = None
    budget: BudgetProjection | None = None

    @property
    def period_label(self) -> str:
        return f"01.01.{self.year} - 31.12.{self.year}"

    @property
    def has_calculation_errors(self) -> bool:
        return (
            self.costs.umlagefaehig.has_errors
            or self.costs.nicht_umlagefaehig.has_errors
            or self.costs.ruecklagen.has_errors
            or any(item.error for item in self.tax_deduction.items)
        )

from __future__ import annotations

from datetime import date
from decimal import Decimal

from django.test import SimpleTestCase

from .choices import Kostenkategorie, PruefungsStufe, Umlageschluessel, Zahlungskategorie
from .services.cost_aggregation import NICHT_UMLAGEFAEHIG, CostAggregator
from .services.distribution import DistributionAlgorithm
from .services.exceptions import DistributionValidationError, EmptyPropertyError, StatementValidationError
from .services.external_costs import ExternalCostResolver
from .services.payment_reconciliation import PaymentReconciler
from .services.quality_checks import StatementQualityChecker
from .services.statement_config import StatementConfig
from .services.statement_data import (
    AdvancePaymentSchedule,
    CostAccountSnapshot,
    ExternalCostRecord,
    InvoiceSnapshot,
    MonthlyBalanceRecord,
    PropertySnapshot,
    TransactionSnapshot,
    UnitSnapshot,
    format_money,
    parse_hebeanlage,
    parse_mea,
    quantize_cent,
)
from .services.statement_service import HausgeldStatementService
from .services.statement_sources import SnapshotStatementSources
from .services.statement_txt_renderer import StatementTextRenderer
from .services.tax_deduction import TaxDeductionCalculator

YEAR = 2024

VERSICHERUNG = CostAccountSnapshot(
    number="4000",
    description="Gebäudeversicherung",
    category=Kostenkategorie.UMLAGEFAEHIG_SONSTIGE,
    key=Umlageschluessel.MITEIGENTUMSANTEIL,
)
VERWALTUNG = CostAccountSnapshot(
    number="4100",
    description="Verwaltergebühr",
    category=Kostenkategorie.NICHT_UMLAGEFAEHIG,
    key=Umlageschluessel.EINHEITEN,
)
RUECKLAGE = CostAccountSnapshot(
    number="4900",
    description="Erhaltungsrücklage",
    category=Kostenkategorie.RUECKLAGENZUFUEHRUNG,
    key=Umlageschluessel.MITEIGENTUMSANTEIL,
)


def _tx(tx_id, amount, *, account=None, unit_id=None, day=date(YEAR, 3, 1), **extra):
    return TransactionSnapshot(
        id=tx_id,
        date=day,
        description=extra.pop("description", f"Buchung {tx_id}"),
        amount=Decimal(amount),
        account=account,
        unit_id=unit_id,
        **extra,
    )


class StatementEngineTestMixin:
    def build_property(self, *, mea_a="500/1000", mea_b="500/1000", hebeanlage_a=""):
        self.unit_a = UnitSnapshot.build(
            id=1,
            number="1",
            property_id=1,
            mea=mea_a,
            hebeanlage=hebeanlage_a,
            owner_name="Anna Beispiel",
            address="Musterweg 1, 10115 Berlin",
        )
        self.unit_b = UnitSnapshot.build(id=2, number="2", property_id=1, mea=mea_b, owner_name="Bernd Muster")
        self.property = PropertySnapshot(
            id=1,
            name="WEG Musterweg",
            street_address="Musterweg 1",
            zip_code="10115",
            city="Berlin",
            units=(self.unit_a, self.unit_b),
        )
        return self.property

    def build_three_unit_property(self, meas=("1/3", "1/3", "1/3")):
        units = tuple(
            UnitSnapshot.build(id=index, number=str(index), property_id=1, mea=mea, owner_name=f"Eigentümer {index}")
            for index, mea in enumerate(meas, start=1)
        )
        self.unit_a = units[0]
        self.property = PropertySnapshot(
            id=1,
            name="WEG Dreiklang",
            street_address="Dreiweg 3",
            zip_code="10115",
            city="Berlin",
            units=units,
        )
        return self.property

    def scenario_transactions(self):
        return [
            _tx(1, "-1000.00", account=VERSICHERUNG),
            _tx(2, "-300.00", account=VERWALTUNG, day=date(YEAR, 5, 2)),
            _tx(10, "300.00", unit_id=1, day=date(YEAR, 1, 3), description="Hausgeld Januar-Juni"),
            _tx(11, "300.00", unit_id=1, day=date(YEAR, 7, 3), description="Hausgeld Juli-Dezember"),
            _tx(20, "600.00", unit_id=2, day=date(YEAR, 1, 5)),
        ]

    def build_service(self, *, transactions=None, config=None, **source_kwargs):
        if not hasattr(self, "property"):
            self.build_property()
        schedules = source_kwargs.pop(
            "schedules",
            {
                (1, YEAR): AdvancePaymentSchedule(monthly_amount=Decimal("50.00")),
                (2, YEAR): AdvancePaymentSchedule(monthly_amount=Decimal("50.00")),
            },
        )
        self.sources = SnapshotStatementSources(
            properties=[self.property],
            transactions=list(self.scenario_transactions() if transactions is None else transactions),
            schedules=schedules,
            **source_kwargs,
        )
        return HausgeldStatementService(
            sources=self.sources,
            config=config or StatementConfig.build(),
            today=lambda: date(2025, 2, 15),
        )


class ParsingTests(SimpleTestCase):
    def test_parse_mea_accepts_fraction_and_absolute_value(self):
        self.assertEqual(parse_mea("290/1000"), Decimal("0.29"))
        self.assertEqual(parse_mea("290"), Decimal("0.29"))
        self.assertIsNone(parse_mea("  "))

    def test_parse_mea_rejects_garbage_and_zero_denominator(self):
        with self.assertRaises(ValueError):
            parse_mea("abc")
        with self.assertRaises(ValueError):
            parse_mea("5/0")
        with self.assertRaises(ValueError):
            parse_mea("NaN")

    def test_parse_hebeanlage(self):
        self.assertEqual(parse_hebeanlage("3/6"), Decimal("0.5"))
        self.assertIsNone(parse_hebeanlage("3:6"))
        self.assertIsNone(parse_hebeanlage("1/0"))

    def test_format_money_uses_german_separators(self):
        self.assertEqual(format_money(Decimal("1234.565")), "1.234,57")
        self.assertEqual(format_money(Decimal("-0.5")), "-0,50")
        self.assertEqual(format_money(None), "0,00")


class DistributionAlgorithmTests(StatementEngineTestMixin, SimpleTestCase):
    def setUp(self):
        self.build_property(hebeanlage_a="2/6")

    def test_keys_distribute_as_expected(self):
        share = DistributionAlgorithm.share_for
        mea = self.unit_a.mea_share
        self.assertEqual(share(Decimal("300"), "03*", mea, self.unit_a, self.property), Decimal("150"))
        self.assertEqual(share(Decimal("80"), "04*", mea, self.unit_a, self.property), Decimal("80"))
        self.assertEqual(share(Decimal("1000"), "05*", mea, self.unit_a, self.property), Decimal("500"))
        self.assertEqual(
            quantize_cent(share(Decimal("600"), "06*", mea, self.unit_a, self.property)),
            Decimal("200.00"),
        )
        self.assertEqual(share(Decimal("600"), "06*", None, self.unit_b, self.property), Decimal("0"))

    def test_external_keys_are_never_distributed_here(self):
        for key in ("01*", "02*"):
            self.assertEqual(
                DistributionAlgorithm.share_for(Decimal("999"), key, None, self.unit_a, self.property),
                Decimal("0"),
            )

    def test_unit_shares_sum_to_total(self):
        for key in ("03*", "05*"):
            shares = [
                DistributionAlgorithm.share_for(Decimal("1234.56"), key, unit.mea_share, unit, self.property)
                for unit in self.property.units
            ]
            self.assertEqual(sum(shares), Decimal("1234.56"))

    def test_validation_collects_all_problems(self):
        with self.assertRaises(DistributionValidationError) as ctx:
            DistributionAlgorithm.validate(total_cost=Decimal("NaN"), key="07*", mea_share=Decimal("1.5"))
        self.assertEqual(len(ctx.exception.problems), 3)

    def test_mea_key_requires_mea(self):
        with self.assertRaises(DistributionValidationError):
            DistributionAlgorithm.share_for(Decimal("100"), "05*", None, self.unit_a, self.property)

    def test_empty_property_raises(self):
        empty = PropertySnapshot(id=9, name="Leerstand")
        with self.assertRaises(EmptyPropertyError):
            DistributionAlgorithm.share_for(Decimal("300"), "03*", None, None, empty)


class CostAggregatorTests(StatementEngineTestMixin, SimpleTestCase):
    def setUp(self):
        self.build_property()
        self.aggregator = CostAggregator()

    def test_breakdown_for_unit(self):
        costs = self.aggregator.calculate_cost_breakdown(self.scenario_transactions(), self.unit_a, self.property, YEAR)

        self.assertEqual(costs.umlagefaehig.total, Decimal("1000.00"))
        self.assertEqual(costs.umlagefaehig.anteil, Decimal("500"))
        self.assertEqual(costs.nicht_umlagefaehig.anteil, Decimal("150"))
        self.assertEqual(costs.gesamtkosten, Decimal("650"))

    def test_reserve_is_listed_but_excluded_from_total_costs(self):
        transactions = self.scenario_transactions() + [_tx(3, "-400.00", account=RUECKLAGE)]
        costs = self.aggregator.calculate_cost_breakdown(transactions, self.unit_a, self.property, YEAR)

        self.assertEqual(costs.ruecklagen.anteil, Decimal("200"))
        self.assertEqual(costs.gesamtkosten, Decimal("650"))

    def test_refund_reduces_account_total(self):
        transactions = self.scenario_transactions() + [_tx(4, "200.00", account=VERSICHERUNG)]
        costs = self.aggregator.calculate_cost_breakdown(transactions, self.unit_a, self.property, YEAR)

        line = costs.umlagefaehig.lines[0]
        self.assertEqual(line.total, Decimal("800.00"))
        self.assertEqual(line.count, 2)
        self.assertEqual(line.anteil, Decimal("400"))

    def test_fixed_levy_uses_unit_linked_amounts_only(self):
        festumlage = CostAccountSnapshot(
            number="4200",
            description="Stellplatzreinigung",
            category=Kostenkategorie.NICHT_UMLAGEFAEHIG,
            key=Umlageschluessel.FESTUMLAGE,
        )
        transactions = [
            _tx(5, "-80.00", account=festumlage, unit_id=1),
            _tx(6, "-40.00", account=festumlage, unit_id=2),
        ]
        lines = self.aggregator.aggregate(transactions, self.unit_a, self.property, YEAR, NICHT_UMLAGEFAEHIG)

        self.assertEqual(lines[0].total, Decimal("120.00"))
        self.assertEqual(lines[0].anteil, Decimal("80.00"))

    def test_skips_inactive_income_external_and_other_year(self):
        skipped = [
            _tx(7, "-50.00", account=CostAccountSnapshot("4001", "Alt", Kostenkategorie.UMLAGEFAEHIG_SONSTIGE, is_active=False)),
            _tx(8, "500.00", account=CostAccountSnapshot("3000", "Zinsen", Kostenkategorie.EINNAHME)),
            _tx(9, "-70.00", account=CostAccountSnapshot("4010", "Heizung", Kostenkategorie.UMLAGEFAEHIG_HEIZUNG, "01*")),
            _tx(12, "-90.00", account=VERSICHERUNG, day=date(YEAR - 1, 12, 30)),
        ]
        costs = self.aggregator.calculate_cost_breakdown(skipped, self.unit_a, self.property, YEAR)

        self.assertEqual(costs.umlagefaehig.lines, ())
        self.assertEqual(costs.nicht_umlagefaehig.lines, ())

    def test_statement_year_override_moves_transaction(self):
        moved = _tx(13, "-90.00", account=VERSICHERUNG, day=date(YEAR - 1, 12, 30), statement_year_override=YEAR)
        costs = self.aggregator.calculate_cost_breakdown([moved], self.unit_a, self.property, YEAR)

        self.assertEqual(costs.umlagefaehig.total, Decimal("90.00"))

    def test_invalid_key_marks_line_and_keeps_others(self):
        broken = CostAccountSnapshot("4500", "Sonderposten", Kostenkategorie.UMLAGEFAEHIG_SONSTIGE, "07*")
        transactions = self.scenario_transactions() + [_tx(14, "-100.00", account=broken)]
        with self.assertLogs("hausgeld.services.cost_aggregation", level="WARNING"):
            costs = self.aggregator.calculate_cost_breakdown(transactions, self.unit_a, self.property, YEAR)

        by_number = {line.kostenkonto: line for line in costs.umlagefaehig.lines}
        self.assertEqual(by_number["4500"].anteil, Decimal("0"))
        self.assertIn("07*", by_number["4500"].error)
        self.assertIsNone(by_number["4000"].error)
        self.assertEqual(by_number["4000"].anteil, Decimal("500"))
        self.assertTrue(costs.umlagefaehig.has_errors)

    def test_missing_mea_marks_only_mea_lines(self):
        self.build_property(mea_a="")
        with self.assertLogs("hausgeld.services.cost_aggregation", level="WARNING"):
            costs = self.aggregator.calculate_cost_breakdown(
                self.scenario_transactions(), self.unit_a, self.property, YEAR
            )

        self.assertEqual(costs.umlagefaehig.anteil, Decimal("0"))
        self.assertIn("05*", costs.umlagefaehig.lines[0].error)
        self.assertEqual(costs.nicht_umlagefaehig.anteil, Decimal("150"))

    def test_empty_property_is_not_swallowed(self):
        empty = PropertySnapshot(id=9, name="Leerstand")
        with self.assertRaises(EmptyPropertyError):
            self.aggregator.aggregate(self.scenario_transactions(), self.unit_a, empty, YEAR, NICHT_UMLAGEFAEHIG)

    def test_property_totals_have_no_unit_share(self):
        costs = self.aggregator.calculate_total_costs_for_property(self.scenario_transactions(), self.property, YEAR)

        self.assertEqual(costs.gesamtkosten_objekt, Decimal("1300.00"))
        self.assertEqual(costs.gesamtkosten, Decimal("0"))


class ExternalCostResolverTests(StatementEngineTestMixin, SimpleTestCase):
    def setUp(self):
        self.build_property()
        self.records = [
            ExternalCostRecord(1, YEAR, heating=Decimal("300"), water=Decimal("100"), other=Decimal("20"), unit_id=1),
            ExternalCostRecord(1, YEAR, heating=Decimal("200"), water=Decimal("80"), unit_id=2),
            ExternalCostRecord(1, YEAR, heating=Decimal("520"), water=Decimal("200"), is_property_total=True),
        ]

    def test_resolve_uses_total_record_and_unit_record(self):
        costs = ExternalCostResolver.resolve(self.unit_a, self.property, YEAR, self.records)

        self.assertEqual(costs.heating_total, Decimal("520"))
        self.assertEqual(costs.heating_unit_share, Decimal("300"))
        self.assertEqual(costs.water_total, Decimal("200"))
        self.assertEqual(costs.water_unit_share, Decimal("120"))

    def test_total_falls_back_to_sum_of_unit_records(self):
        costs = ExternalCostResolver.resolve(self.unit_a, self.property, YEAR, self.records[:2])

        self.assertEqual(costs.heating_total, Decimal("500"))
        self.assertEqual(costs.water_total, Decimal("200"))
        totals = ExternalCostResolver.totals_for_property(self.property, YEAR, self.records)
        self.assertEqual(totals.grand_total, Decimal("700"))

    def test_missing_data_degrades_to_zero(self):
        costs = ExternalCostResolver.resolve(self.unit_a, self.property, YEAR, [])

        self.assertFalse(costs.has_data)
        self.assertEqual(costs.unit_total, Decimal("0"))

    def test_validate_warns_about_units_without_record(self):
        issues = ExternalCostResolver.validate(self.property, YEAR, [self.records[0], self.records[2]])

        self.assertEqual([issue.code for issue in issues], ["external_costs_incomplete"])
        self.assertEqual(issues[0].severity, PruefungsStufe.WARNUNG)
        self.assertIn("2", issues[0].message)


class HausgeldStatementServiceTests(StatementEngineTestMixin, SimpleTestCase):
    def test_reference_scenario(self):
        service = self.build_service()
        report = service.build_report_data(self.unit_a, YEAR)

        self.assertEqual(report.unit_totals.gesamtkosten, Decimal("650"))
        self.assertEqual(report.payments.soll, Decimal("600.00"))
        self.assertEqual(report.payments.ist, Decimal("600.00"))
        self.assertEqual(report.payments.count, 2)
        self.assertEqual(report.payments.status, "Überdeckung")
        self.assertEqual(report.final_balance.abrechnungsspitze, Decimal("50"))
        self.assertEqual(report.final_balance.zahlungsdifferenz, Decimal("0"))
        self.assertEqual(report.final_balance.saldo, Decimal("50"))
        self.assertEqual(report.final_balance.ergebnis, "Nachzahlung")
        self.assertEqual(report.final_balance.saldo, report.unit_totals.gesamtkosten - report.payments.ist)
        self.assertEqual(report.property_totals.gesamtkosten, Decimal("1300.00"))
        self.assertEqual(report.property_payments.soll, Decimal("1200.00"))
        self.assertEqual(report.property_final_balance.saldo, Decimal("100.00"))

    def test_overpayment_gives_credit(self):
        transactions = self.scenario_transactions() + [
            _tx(30, "100.00", unit_id=1, day=date(YEAR, 9, 1), payment_category=Zahlungskategorie.SONDERUMLAGE),
        ]
        service = self.build_service(transactions=transactions)
        report = service.build_report_data(self.unit_a, YEAR)

        self.assertEqual(report.payments.ist, Decimal("700.00"))
        self.assertEqual(report.final_balance.saldo, Decimal("-50"))
        self.assertEqual(report.final_balance.ergebnis, "Guthaben")
        self.assertEqual(
            report.property_payments.category_totals,
            ((Zahlungskategorie.SONDERUMLAGE, Decimal("100.00")),),
        )

    def test_report_is_idempotent(self):
        service = self.build_service()
        transactions = self.scenario_transactions()
        self.assertEqual(
            service.aggregator.calculate_cost_breakdown(transactions, self.unit_a, self.property, YEAR),
            service.aggregator.calculate_cost_breakdown(transactions, self.unit_a, self.property, YEAR),
        )
        self.assertEqual(service.build_report_data(self.unit_a, YEAR), service.build_report_data(self.unit_a, YEAR))

    def test_external_costs_enter_levy_totals_only(self):
        records = [
            ExternalCostRecord(1, YEAR, heating=Decimal("300"), water=Decimal("100"), unit_id=1),
            ExternalCostRecord(1, YEAR, heating=Decimal("200"), water=Decimal("80"), unit_id=2),
        ]
        service = self.build_service(external_records=records)
        report = service.build_report_data(self.unit_a, YEAR)

        self.assertEqual(report.unit_totals.umlagefaehig, Decimal("900"))
        self.assertEqual(report.unit_totals.gesamtkosten, Decimal("1050"))
        self.assertEqual(report.property_totals.umlagefaehig, Decimal("1680.00"))

    def test_tax_deduction_applies_labour_percentage(self):
        reinigung = CostAccountSnapshot(
            number="4300",
            description="Treppenhausreinigung",
            category=Kostenkategorie.UMLAGEFAEHIG_SONSTIGE,
            key=Umlageschluessel.MITEIGENTUMSANTEIL,
        )
        transactions = [
            _tx(40, "-1000.00", account=reinigung, invoice=InvoiceSnapshot(total=Decimal("1000.00"), labour=Decimal("400.00"))),
            _tx(41, "-500.00", account=reinigung),
        ]
        service = self.build_service(transactions=transactions, tax_deductible_accounts=frozenset({"4300"}))
        tax = service.build_report_data(self.unit_a, YEAR).tax_deduction

        item = tax.items[0]
        self.assertEqual(item.gesamtkosten, Decimal("1500.00"))
        self.assertEqual(quantize_cent(item.anrechenbar), Decimal("400.00"))
        self.assertEqual(quantize_cent(item.anteil_kosten), Decimal("750.00"))
        self.assertEqual(quantize_cent(tax.total_anrechenbar), Decimal("200.00"))

    def test_balance_development(self):
        balances = {
            1: [
                MonthlyBalanceRecord(date(YEAR, 12, 1), Decimal("1100.00"), Decimal("1234.56")),
                MonthlyBalanceRecord(date(YEAR, 1, 1), Decimal("1000.00"), Decimal("1050.00")),
                MonthlyBalanceRecord(date(YEAR - 1, 12, 1), Decimal("900.00"), Decimal("1000.00")),
            ]
        }
        service = self.build_service(monthly_balances=balances)
        balance = service.build_report_data(self.unit_a, YEAR).balance

        self.assertEqual(balance.opening_balance, Decimal("1000.00"))
        self.assertEqual(balance.closing_balance, Decimal("1234.56"))
        self.assertEqual(balance.change, Decimal("234.56"))
        self.assertEqual(len(balance.months), 2)

    def test_distribution_key_legend(self):
        self.build_property(hebeanlage_a="2/6")
        rows = {row.key: row for row in self.build_service().build_report_data(self.unit_a, YEAR).umlageschluessel}

        self.assertEqual(rows[Umlageschluessel.MITEIGENTUMSANTEIL].gesamtumlage, "1.000,000")
        self.assertEqual(rows[Umlageschluessel.MITEIGENTUMSANTEIL].anteil, "500,000")
        self.assertEqual(rows[Umlageschluessel.EINHEITEN].gesamtumlage, "2,00")
        self.assertEqual(rows[Umlageschluessel.HEBEANLAGE].gesamtumlage, "6,00")
        self.assertEqual(rows[Umlageschluessel.HEBEANLAGE].anteil, "2,00")

    def test_budget_projection_from_config(self):
        config = StatementConfig.build(
            wirtschaftsplan={
                "bank_balances": {"balance_date": "31.12.2024", "hausgeld_konto": "2500.00", "ruecklagen_konto": "8000"},
                "planned_expenses": {
                    "umlagefaehig": {"Versicherung": "1100.00"},
                    "nicht_umlagefaehig": {"Verwaltung": "320.00"},
                },
                "planned_income": {"monthly_total": "100.00", "nachzahlungen_vorjahr": "150.00"},
            }
        )
        budget = self.build_service(config=config).build_report_data(self.unit_a, YEAR).budget

        self.assertEqual(budget.year, YEAR + 1)
        self.assertEqual(budget.gesamtvermoegen, Decimal("10500.00"))
        self.assertEqual(budget.gesamtausgaben, Decimal("1420.00"))
        self.assertEqual(budget.gesamteinnahmen, Decimal("1350.00"))
        self.assertEqual(budget.monthly_unit_advance, Decimal("50.000"))

    def test_validate_passes_for_complete_data(self):
        self.assertEqual(self.build_service().validate(self.unit_a, YEAR), [])

    def test_validate_reports_errors_and_warnings(self):
        self.build_property(mea_a="", hebeanlage_a="2-6")
        service = self.build_service(schedules={})
        codes = {issue.code: issue.severity for issue in service.validate(self.unit_a, 1999)}

        self.assertEqual(codes["invalid_year"], PruefungsStufe.FEHLER)
        self.assertEqual(codes["mea_missing"], PruefungsStufe.FEHLER)
        self.assertEqual(codes["hebeanlage_malformed"], PruefungsStufe.WARNUNG)
        self.assertEqual(codes["advance_payment_missing"], PruefungsStufe.WARNUNG)

    def test_validate_rejects_out_of_range_mea(self):
        self.build_property(mea_a="1200/1000")
        codes = [issue.code for issue in self.build_service().validate(self.unit_a, YEAR)]
        self.assertEqual(codes, ["mea_out_of_range"])

    def test_unknown_unit(self):
        service = self.build_service()
        codes = [issue.code for issue in service.validate(999, YEAR)]

        self.assertEqual(codes, ["property_missing"])
        with self.assertRaises(StatementValidationError):
            service.build_report_data(999, YEAR)

    def test_generate_refuses_on_validation_errors(self):
        self.build_property(mea_a="abc")
        service = self.build_service()
        with self.assertRaises(StatementValidationError) as ctx:
            service.generate_statement(self.unit_a, YEAR)
        self.assertEqual([issue.code for issue in ctx.exception.issues], ["mea_malformed"])

    def test_generate_rejects_unknown_format(self):
        with self.assertRaises(ValueError):
            self.build_service().generate_statement(self.unit_a, YEAR, "docx")

    def test_calculate_total_costs_by_property_id(self):
        costs = self.build_service().calculate_total_costs(1, YEAR)

        self.assertEqual(costs.gesamtkosten_objekt, Decimal("1300.00"))
        with self.assertRaises(StatementValidationError):
            self.build_service().calculate_total_costs(42, YEAR)


class StatementTextRendererTests(StatementEngineTestMixin, SimpleTestCase):
    def test_generate_text_statement(self):
        text = self.build_service().generate_statement(self.unit_a, YEAR)

        self.assertIn("HAUSGELDABRECHNUNG 2024 - EINZELABRECHNUNG", text)
        self.assertIn("Erstellung: 15.02.2025", text)
        self.assertIn("Abrechnungszeitraum: 01.01.2024 - 31.12.2024", text)
        self.assertIn("Ergebnis: Nachzahlung in Höhe von 50,00 €", text)
        self.assertIn("4000 - Gebäudeversicherung 05*", text)
        self.assertIn("1.300,00", text)
        self.assertIn("JAHRESSUMME:", text)
        self.assertTrue(text.rstrip().endswith("=" * 80))

    def test_absent_sections_are_omitted(self):
        text = self.build_service().generate_statement(self.unit_a, YEAR)

        self.assertNotIn("HEIZUNG/WASSER/ABRECHNUNG", text)
        self.assertNotIn("3. RÜCKLAGENZUFÜHRUNG", text)
        self.assertNotIn("KONTOSTANDSENTWICKLUNG", text)
        self.assertNotIn("VERMÖGENSÜBERSICHT", text)
        self.assertNotIn("§35a", text)

    def test_optional_sections_are_rendered_when_present(self):
        transactions = self.scenario_transactions() + [_tx(3, "-400.00", account=RUECKLAGE)]
        service = self.build_service(
            transactions=transactions,
            external_records=[ExternalCostRecord(1, YEAR, heating=Decimal("300"), water=Decimal("100"), unit_id=1)],
            monthly_balances={1: [MonthlyBalanceRecord(date(YEAR, 1, 1), Decimal("1000.00"), Decimal("1234.56"))]},
            tax_deductible_accounts=frozenset({"4000"}),
        )
        text = service.generate_statement(self.unit_a, YEAR)

        self.assertIn("HEIZUNG/WASSER/ABRECHNUNG:", text)
        self.assertIn("3. RÜCKLAGENZUFÜHRUNG:", text)
        self.assertIn("KONTOSTANDSENTWICKLUNG 2024:", text)
        self.assertIn("1.234,56", text)
        self.assertIn("STEUERBEGÜNSTIGTE LEISTUNGEN nach §35a EStG:", text)

    def test_calculation_error_is_annotated(self):
        broken = CostAccountSnapshot("4500", "Sonderposten", Kostenkategorie.UMLAGEFAEHIG_SONSTIGE, "07*")
        service = self.build_service(transactions=self.scenario_transactions() + [_tx(14, "-100.00", account=broken)])
        with self.assertLogs("hausgeld", level="WARNING"):
            report = service.build_report_data(self.unit_a, YEAR)
        text = StatementTextRenderer(service.config).render(report)

        self.assertTrue(report.has_calculation_errors)
        self.assertIn("Berechnungsfehler", text)
        self.assertIn("4500 - Sonderposten 07*", text)

    def test_custom_section_headers(self):
        config = StatementConfig.build(section_headers={"main_title": "ABRECHNUNG {year}"})
        text = self.build_service(config=config).generate_statement(self.unit_a, YEAR)

        self.assertIn("ABRECHNUNG 2024", text)
        self.assertNotIn("EINZELABRECHNUNG", text)


class ConservationTests(StatementEngineTestMixin, SimpleTestCase):
    def assert_conserved(self, shares, total):
        rounded = sum((quantize_cent(share) for share in shares), Decimal("0"))
        self.assertLessEqual(abs(rounded - total), Decimal("0.01") * len(shares))

    def test_unit_count_key_over_three_units(self):
        self.build_three_unit_property()
        shares = [
            DistributionAlgorithm.share_for(Decimal("1000.00"), "03*", unit.mea_share, unit, self.property)
            for unit in self.property.units
        ]

        self.assert_conserved(shares, Decimal("1000.00"))
        self.assertEqual(quantize_cent(shares[0]), Decimal("333.33"))

    def test_uneven_mea_over_three_units(self):
        self.build_three_unit_property(meas=("290/1000", "410/1000", "300/1000"))
        shares = [
            DistributionAlgorithm.share_for(Decimal("1234.56"), "05*", unit.mea_share, unit, self.property)
            for unit in self.property.units
        ]

        self.assert_conserved(shares, Decimal("1234.56"))
        self.assertEqual([quantize_cent(share) for share in shares], [Decimal("358.02"), Decimal("506.17"), Decimal("370.37")])

    def test_aggregated_unit_shares_match_property_totals(self):
        self.build_three_unit_property(meas=("290/1000", "410/1000", "300/1000"))
        transactions = [
            _tx(1, "-1000.00", account=VERWALTUNG),
            _tx(2, "-1234.56", account=VERSICHERUNG),
        ]
        aggregator = CostAggregator()
        breakdowns = [
            aggregator.calculate_cost_breakdown(transactions, unit, self.property, YEAR)
            for unit in self.property.units
        ]

        self.assert_conserved([breakdown.nicht_umlagefaehig.anteil for breakdown in breakdowns], Decimal("1000.00"))
        self.assert_conserved([breakdown.umlagefaehig.anteil for breakdown in breakdowns], Decimal("1234.56"))

    def test_saldo_equals_costs_minus_payments_exactly(self):
        self.build_three_unit_property()
        service = self.build_service(transactions=[_tx(1, "-100.00", account=VERSICHERUNG)])
        report = service.build_report_data(self.unit_a, YEAR)

        self.assertEqual(report.payments.soll, Decimal("600.00"))
        self.assertEqual(report.payments.ist, Decimal("0"))
        self.assertEqual(report.final_balance.saldo, report.unit_totals.gesamtkosten - report.payments.ist)
        self.assertEqual(quantize_cent(report.final_balance.saldo), Decimal("33.33"))

    def test_final_balance_keeps_display_fields(self):
        gesamtkosten = Decimal("100") / Decimal("3")
        final = PaymentReconciler.final_balance(gesamtkosten, Decimal("600.00"), Decimal("0.00"))

        self.assertEqual(final.saldo, gesamtkosten)
        self.assertEqual(final.zahlungsdifferenz, Decimal("-600.00"))
        self.assertEqual(quantize_cent(final.abrechnungsspitze), Decimal("-566.67"))
        self.assertEqual(final.ergebnis, "Nachzahlung")


class TaxDeductionCalculatorTests(StatementEngineTestMixin, SimpleTestCase):
    def setUp(self):
        self.build_property()
        self.calculator = TaxDeductionCalculator()

    def test_fixed_levy_labour_share_follows_unit_invoices(self):
        winterdienst = CostAccountSnapshot(
            number="4200",
            description="Winterdienst",
            category=Kostenkategorie.UMLAGEFAEHIG_SONSTIGE,
            key=Umlageschluessel.FESTUMLAGE,
        )
        transactions = [
            _tx(50, "-80.00", account=winterdienst, unit_id=1, invoice=InvoiceSnapshot(total=Decimal("80.00"), labour=Decimal("40.00"))),
            _tx(51, "-40.00", account=winterdienst, unit_id=2),
        ]

        item_a = self.calculator.calculate(transactions, self.unit_a, self.property, YEAR, {"4200"}).items[0]
        item_b = self.calculator.calculate(transactions, self.unit_b, self.property, YEAR, {"4200"}).items[0]

        self.assertEqual(item_a.gesamtkosten, Decimal("120.00"))
        self.assertEqual(item_a.anteil_kosten, Decimal("80.00"))
        self.assertEqual(quantize_cent(item_a.anteil_anrechenbar), Decimal("40.00"))
        self.assertEqual(item_b.anteil_kosten, Decimal("40.00"))
        self.assertEqual(quantize_cent(item_b.anteil_anrechenbar), Decimal("0.00"))
        self.assertIsNone(item_a.error)

    def test_invalid_key_is_logged_and_counts_as_zero(self):
        altbestand = CostAccountSnapshot(
            number="4600",
            description="Altbestand Handwerker",
            category=Kostenkategorie.UMLAGEFAEHIG_SONSTIGE,
            key="07*",
        )
        transactions = [
            _tx(60, "-200.00", account=altbestand, invoice=InvoiceSnapshot(total=Decimal("200.00"), labour=Decimal("100.00"))),
            _tx(61, "-1000.00", account=VERSICHERUNG, invoice=InvoiceSnapshot(total=Decimal("1000.00"), labour=Decimal("100.00"))),
        ]

        with self.assertLogs("hausgeld.services.tax_deduction", level="WARNING") as logs:
            tax = self.calculator.calculate(transactions, self.unit_a, self.property, YEAR, {"4000", "4600"})

        items = {item.kostenkonto: item for item in tax.items}
        self.assertIn("4600", logs.output[0])
        self.assertIn("07*", items["4600"].error)
        self.assertEqual(items["4600"].anteil_kosten, Decimal("0"))
        self.assertEqual(items["4600"].anteil_anrechenbar, Decimal("0"))
        self.assertIsNone(items["4000"].error)
        self.assertEqual(quantize_cent(items["4000"].anteil_anrechenbar), Decimal("50.00"))

    def test_configured_accounts_apply_to_custom_sources(self):
        service = self.build_service(config=StatementConfig.build(tax_deductible_accounts={"4000"}))
        tax = service.build_report_data(self.unit_a, YEAR).tax_deduction

        self.assertEqual([item.kostenkonto for item in tax.items], ["4000"])
        self.assertEqual(self.sources.get_tax_deductible_account_numbers(), frozenset())


class StatementQualityCheckTests(StatementEngineTestMixin, SimpleTestCase):
    def monthly_payments(self, unit_id, count, amount="50.00"):
        return [
            _tx(100 * unit_id + index, amount, unit_id=unit_id, day=date(YEAR, min(index, 12), 3))
            for index in range(1, count + 1)
        ]

    def external_records(self, heating_a="300", heating_b="300"):
        return [
            ExternalCostRecord(1, YEAR, heating=Decimal(heating_a), water=Decimal("100"), unit_id=1),
            ExternalCostRecord(1, YEAR, heating=Decimal(heating_b), water=Decimal("100"), unit_id=2),
        ]

    def complete_transactions(self, payments_a=12):
        return (
            self.scenario_transactions()[:2]
            + self.monthly_payments(1, payments_a)
            + self.monthly_payments(2, 12)
        )

    def codes(self, service):
        return [issue.code for issue in service.quality_check(self.unit_a, YEAR)]

    def test_plausible_statement_has_no_findings(self):
        service = self.build_service(transactions=self.complete_transactions(), external_records=self.external_records())
        self.assertEqual(self.codes(service), [])

    def test_reference_scenario_lacks_external_costs_and_payments(self):
        issues = self.build_service().quality_check(self.unit_a, YEAR)

        self.assertEqual([issue.code for issue in issues], ["external_costs_missing", "payment_count_low"])
        self.assertEqual(issues[0].severity, PruefungsStufe.FEHLER)
        self.assertEqual(issues[1].severity, PruefungsStufe.WARNUNG)

    def test_missing_and_excess_payments(self):
        service = self.build_service(
            transactions=self.scenario_transactions()[:2], external_records=self.external_records()
        )
        self.assertEqual(self.codes(service), ["payments_missing"])

        service = self.build_service(
            transactions=self.complete_transactions(payments_a=17), external_records=self.external_records()
        )
        self.assertEqual(self.codes(service), ["payment_count_high"])

    def test_high_heating_costs_distort_cost_share(self):
        service = self.build_service(
            transactions=self.complete_transactions(),
            external_records=self.external_records(heating_a="6000", heating_b="0"),
        )
        codes = self.codes(service)

        self.assertIn("cost_share_implausible", codes)
        self.assertIn("heating_costs_high", codes)

    def test_tax_reduction_above_legal_limit(self):
        sanierung = CostAccountSnapshot(
            number="4300",
            description="Fassadensanierung",
            category=Kostenkategorie.UMLAGEFAEHIG_SONSTIGE,
            key=Umlageschluessel.MITEIGENTUMSANTEIL,
        )
        transactions = self.complete_transactions() + [
            _tx(70, "-20000.00", account=sanierung, invoice=InvoiceSnapshot(total=Decimal("20000.00"), labour=Decimal("20000.00"))),
        ]
        service = self.build_service(
            transactions=transactions,
            external_records=self.external_records(),
            tax_deductible_accounts=frozenset({"4300"}),
        )
        report = service.build_report_data(self.unit_a, YEAR)

        self.assertEqual(quantize_cent(StatementQualityChecker.tax_reduction(report)), Decimal("2000.00"))
        self.assertEqual([issue.code for issue in StatementQualityChecker.check(report)], ["tax_reduction_limit"])

    def test_tax_reduction_ratio_flags_inconsistent_invoices(self):
        reparatur = CostAccountSnapshot(
            number="4300",
            description="Reparatur",
            category=Kostenkategorie.UMLAGEFAEHIG_SONSTIGE,
            key=Umlageschluessel.MITEIGENTUMSANTEIL,
        )
        transactions = self.complete_transactions() + [
            _tx(71, "-100.00", account=reparatur, invoice=InvoiceSnapshot(total=Decimal("100.00"), labour=Decimal("200.00"))),
        ]
        service = self.build_service(
            transactions=transactions,
            external_records=self.external_records(),
            tax_deductible_accounts=frozenset({"4300"}),
        )
        report = service.build_report_data(self.unit_a, YEAR)

        self.assertEqual(StatementQualityChecker.calculation_plausibility(report), [])
        self.assertEqual([issue.code for issue in StatementQualityChecker.compliance(report)], ["tax_reduction_ratio"])

from datetime import date
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase, override_settings

from .choices import Kostenkategorie, Umlageschluessel, Zahlungskategorie
from .models import (
    HeizWasserkosten,
    Kostenkonto,
    MonatsSaldo,
    Property,
    Rechnung,
    Unit,
    Vorauszahlung,
    Zahlung,
)
from .services.statement_service import HausgeldStatementService
from .services.statement_sources import DjangoStatementSources


class HausgeldFixtureMixin:
    def create_property(self, name="WEG Lindenhof"):
        return Property.objects.create(
            name=name,
            zip_code="10115",
            city="Berlin",
            street_address="Lindenstraße 4",
        )

    def create_base_data(self):
        self.property = self.create_property()
        self.unit_a = Unit.objects.create(
            property=self.property, number="1", owner_name="Anna Beispiel", mea="500/1000"
        )
        self.unit_b = Unit.objects.create(
            property=self.property, number="2", owner_name="Bernd Muster", mea="500"
        )
        self.versicherung = Kostenkonto.objects.create(
            nummer="4000",
            bezeichnung="Gebäudeversicherung",
            kategorie=Kostenkategorie.UMLAGEFAEHIG_SONSTIGE,
            umlageschluessel=Umlageschluessel.MITEIGENTUMSANTEIL,
        )
        self.verwaltung = Kostenkonto.objects.create(
            nummer="4100",
            bezeichnung="Verwaltergebühr",
            kategorie=Kostenkategorie.NICHT_UMLAGEFAEHIG,
            umlageschluessel=Umlageschluessel.EINHEITEN,
        )
        for unit in (self.unit_a, self.unit_b):
            Vorauszahlung.objects.create(einheit=unit, jahr=2024, monatsbetrag=Decimal("50.00"))

    def create_zahlung(self, betrag, *, datum=date(2024, 3, 1), **extra):
        return Zahlung.objects.create(
            liegenschaft=extra.pop("liegenschaft", self.property),
            datum=datum,
            bezeichnung=extra.pop("bezeichnung", "Buchung"),
            betrag=Decimal(betrag),
            **extra,
        )

    def create_scenario_payments(self):
        self.create_zahlung("-1000.00", kostenkonto=self.versicherung)
        self.create_zahlung("-300.00", kostenkonto=self.verwaltung)
        self.create_zahlung("600.00", einheit=self.unit_a, bezeichnung="Hausgeld 2024")
        self.create_zahlung("600.00", einheit=self.unit_b, bezeichnung="Hausgeld 2024")


class HausgeldModelTests(HausgeldFixtureMixin, TestCase):
    def setUp(self):
        self.create_base_data()

    def test_unit_history_created_on_update(self):
        self.unit_a.owner_name = "Anna Neu"
        self.unit_a.save()
        self.assertEqual(self.unit_a.history.count(), 2)

    def test_zahlung_history_and_effective_year(self):
        zahlung = self.create_zahlung("-10.00", datum=date(2023, 12, 30), kostenkonto=self.versicherung)
        self.assertEqual(zahlung.effektives_jahr, 2023)
        zahlung.abrechnungsjahr = 2024
        zahlung.save()
        self.assertEqual(zahlung.effektives_jahr, 2024)
        self.assertEqual(zahlung.history.count(), 2)

    def test_zahlung_clean_rejects_foreign_unit(self):
        other = self.create_property(name="WEG Nachbar")
        zahlung = Zahlung(liegenschaft=other, datum=date(2024, 1, 1), bezeichnung="X", betrag=Decimal("1"), einheit=self.unit_a)
        with self.assertRaises(ValidationError):
            zahlung.clean()

    def test_rechnung_clean_rejects_labour_above_total(self):
        rechnung = Rechnung(betrag_mit_steuern=Decimal("100.00"), arbeits_fahrtkosten=Decimal("150.00"))
        with self.assertRaises(ValidationError):
            rechnung.clean()

    def test_heizwasserkosten_requires_unit_for_single_values(self):
        record = HeizWasserkosten(liegenschaft=self.property, jahr=2024, ist_gesamt=False)
        with self.assertRaises(ValidationError):
            record.clean()

    def test_monatssaldo_normalizes_month(self):
        saldo = MonatsSaldo.objects.create(
            liegenschaft=self.property,
            monat=date(2024, 3, 17),
            anfangssaldo=Decimal("100.00"),
            endsaldo=Decimal("150.00"),
        )
        self.assertEqual(saldo.monat, date(2024, 3, 1))


class DjangoStatementSourcesTests(HausgeldFixtureMixin, TestCase):
    def setUp(self):
        self.create_base_data()
        self.sources = DjangoStatementSources(extra_tax_deductible_accounts={"4300"})
        self.snapshot = self.sources.get_property(self.property.pk)

    def test_property_snapshot_contains_parsed_units(self):
        self.assertEqual([unit.number for unit in self.snapshot.units], ["1", "2"])
        self.assertEqual(self.snapshot.units[0].mea_share, Decimal("0.5"))
        self.assertEqual(self.snapshot.units[1].mea_share, Decimal("0.5"))
        self.assertEqual(self.sources.get_property_for_unit(self.unit_b.pk), self.snapshot)
        self.assertIsNone(self.sources.get_property_for_unit(999999))

    def test_year_assignment_and_simulation_filter(self):
        self.create_zahlung("-10.00", datum=date(2023, 12, 28), abrechnungsjahr=2024, kostenkonto=self.versicherung)
        self.create_zahlung("-20.00", datum=date(2024, 1, 2), abrechnungsjahr=2023, kostenkonto=self.versicherung)
        self.create_zahlung("-30.00", datum=date(2024, 2, 1), kostenkonto=self.versicherung)
        self.create_zahlung("-40.00", datum=date(2024, 2, 1), kostenkonto=self.versicherung, ist_simulation=True)

        amounts = sorted(tx.amount for tx in self.sources.get_transactions_for_property_and_year(self.snapshot, 2024))

        self.assertEqual(amounts, [Decimal("-30.00"), Decimal("-10.00")])

    def test_unit_payments_are_positive_only(self):
        self.create_zahlung("600.00", einheit=self.unit_a, kategorie=Zahlungskategorie.SONDERUMLAGE)
        self.create_zahlung("-15.00", einheit=self.unit_a, kostenkonto=self.versicherung)

        payments = self.sources.get_unit_payments_for_year(self.snapshot.units[0], 2024)

        self.assertEqual([payment.amount for payment in payments], [Decimal("600.00")])
        self.assertEqual(payments[0].payment_category, Zahlungskategorie.SONDERUMLAGE)

    def test_unknown_distribution_key_is_kept(self):
        konto = Kostenkonto.objects.create(
            nummer="4500",
            bezeichnung="Altbestand",
            kategorie=Kostenkategorie.UMLAGEFAEHIG_SONSTIGE,
            umlageschluessel="07*",
        )
        self.create_zahlung("-50.00", kostenkonto=konto)

        transaction = self.sources.get_transactions_for_property_and_year(self.snapshot, 2024)[0]

        self.assertEqual(transaction.account.key, "07*")
        self.assertNotIsInstance(transaction.account.key, Umlageschluessel)

    def test_tax_deductible_accounts_union(self):
        Kostenkonto.objects.create(
            nummer="4400",
            bezeichnung="Gartenpflege",
            kategorie=Kostenkategorie.UMLAGEFAEHIG_SONSTIGE,
            steuerlich_absetzbar=True,
        )
        self.assertEqual(self.sources.get_tax_deductible_account_numbers(), frozenset({"4300", "4400"}))

    def test_advance_payment_schedule(self):
        Vorauszahlung.objects.filter(einheit=self.unit_b).update(jahresbetrag=Decimal("580.00"))

        schedule_a = self.sources.get_advance_payment_schedule(self.snapshot.units[0], 2024)
        schedule_b = self.sources.get_advance_payment_schedule(self.snapshot.units[1], 2024)

        self.assertEqual(schedule_a.yearly_amount, Decimal("600.00"))
        self.assertEqual(schedule_b.yearly_amount, Decimal("580.00"))
        self.assertIsNone(self.sources.get_advance_payment_schedule(self.snapshot.units[0], 2025))

    def test_external_cost_records(self):
        HeizWasserkosten.objects.create(
            liegenschaft=self.property, einheit=self.unit_a, jahr=2024, heizkosten=Decimal("300"), wasserkosten=Decimal("90")
        )
        HeizWasserkosten.objects.create(
            liegenschaft=self.property, jahr=2024, ist_gesamt=True, heizkosten=Decimal("610"), wasserkosten=Decimal("180")
        )

        unit_record = self.sources.get_unit_cost_record(self.snapshot.units[0], 2024)
        total_record = self.sources.get_property_cost_total(self.snapshot, 2024)

        self.assertEqual(unit_record.heating, Decimal("300.00"))
        self.assertTrue(total_record.is_property_total)
        self.assertEqual(len(self.sources.get_unit_cost_records(self.snapshot, 2024)), 1)
        self.assertIsNone(self.sources.get_unit_cost_record(self.snapshot.units[1], 2024))

    def test_monthly_balances(self):
        for month, end in ((2, "1200.00"), (1, "1100.00")):
            MonatsSaldo.objects.create(
                liegenschaft=self.property,
                monat=date(2024, month, 1),
                anfangssaldo=Decimal("1000.00"),
                endsaldo=Decimal(end),
            )
        balances = self.sources.get_monthly_balances(self.snapshot, 2024)
        self.assertEqual([record.month.month for record in balances], [1, 2])


@override_settings(HAUSGELD_STATEMENT={"tax_deductible_accounts": [], "wirtschaftsplan": None})
class HausgeldStatementDatabaseTests(HausgeldFixtureMixin, TestCase):
    def setUp(self):
        self.create_base_data()
        self.create_scenario_payments()
        self.service = HausgeldStatementService(today=lambda: date(2025, 1, 15))

    def test_report_from_database(self):
        report = self.service.build_report_data(self.unit_a, 2024)

        self.assertEqual(report.unit_totals.gesamtkosten, Decimal("650"))
        self.assertEqual(report.payments.ist, Decimal("600.00"))
        self.assertEqual(report.final_balance.saldo, Decimal("50"))
        self.assertEqual(report.final_balance.ergebnis, "Nachzahlung")
        self.assertIsNone(report.budget)

    def test_generate_text_statement_from_database(self):
        text = self.service.generate_statement(self.unit_a.pk, 2024)
        self.assertIn("Ergebnis: Nachzahlung in Höhe von 50,00 €", text)

    def test_simulation_payments_do_not_change_result(self):
        self.create_zahlung("-5000.00", kostenkonto=self.versicherung, ist_simulation=True)
        report = self.service.build_report_data(self.unit_a, 2024)
        self.assertEqual(report.unit_totals.gesamtkosten, Decimal("650"))

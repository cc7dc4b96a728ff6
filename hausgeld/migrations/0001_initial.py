from decimal import Decimal

import django.core.validators
import django.db.models.deletion
import simple_history.models
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Property",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255, verbose_name="Name")),
                (
                    "zip_code",
                    models.CharField(
                        max_length=20,
                        validators=[
                            django.core.validators.RegexValidator(
                                message="Die Postleitzahl darf nur aus Zahlen bestehen (4 bis 5 Ziffern).",
                                regex="^\\d{4,5}$",
                            )
                        ],
                        verbose_name="Postleitzahl",
                    ),
                ),
                ("city", models.CharField(max_length=100, verbose_name="Stadt")),
                ("street_address", models.CharField(max_length=255, verbose_name="Straße und Hausnummer")),
                ("notes", models.TextField(blank=True, verbose_name="Notizen")),
            ],
            options={
                "verbose_name": "Liegenschaft",
                "verbose_name_plural": "Liegenschaften",
            },
        ),
        migrations.CreateModel(
            name="Kostenkonto",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("nummer", models.CharField(max_length=20, unique=True, verbose_name="Kontonummer")),
                ("bezeichnung", models.CharField(max_length=255, verbose_name="Bezeichnung")),
                (
                    "kategorie",
                    models.CharField(
                        choices=[
                            ("umlagefaehig_heizung", "Umlagefähig (Heizung)"),
                            ("umlagefaehig_sonstige", "Umlagefähig (Sonstige)"),
                            ("nicht_umlagefaehig", "Nicht umlagefähig"),
                            ("ruecklagenzufuehrung", "Rücklagenzuführung"),
                            ("einnahme", "Einnahme"),
                        ],
                        max_length=30,
                        verbose_name="Kategorie",
                    ),
                ),
                (
                    "umlageschluessel",
                    models.CharField(
                        choices=[
                            ("01*", "ext. berechn. Heizkosten"),
                            ("02*", "ext. berechn. Wasser-/sonst. Kosten"),
                            ("03*", "Anzahl Einheit"),
                            ("04*", "Festumlage"),
                            ("05*", "Miteigentumsanteil"),
                            ("06*", "Hebeanlage"),
                        ],
                        default="05*",
                        max_length=3,
                        verbose_name="Umlageschlüssel",
                    ),
                ),
                (
                    "steuerlich_absetzbar",
                    models.BooleanField(default=False, verbose_name="Steuerlich absetzbar (§35a EStG)"),
                ),
                ("is_active", models.BooleanField(default=True, verbose_name="Aktiv")),
            ],
            options={
                "verbose_name": "Kostenkonto",
                "verbose_name_plural": "Kostenkonten",
                "ordering": ["nummer"],
            },
        ),
        migrations.CreateModel(
            name="Rechnung",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("rechnungsnummer", models.CharField(blank=True, max_length=100, verbose_name="Rechnungsnummer")),
                ("information", models.CharField(blank=True, max_length=255, verbose_name="Information")),
                (
                    "betrag_mit_steuern",
                    models.DecimalField(decimal_places=2, max_digits=12, verbose_name="Betrag inkl. Steuern"),
                ),
                (
                    "arbeits_fahrtkosten",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Lohnanteil nach §35a EStG inkl. MwSt.",
                        max_digits=12,
                        null=True,
                        validators=[django.core.validators.MinValueValidator(Decimal("0.00"))],
                        verbose_name="Arbeits- und Fahrtkosten",
                    ),
                ),
                ("datum_leistung", models.DateField(blank=True, null=True, verbose_name="Leistungsdatum")),
            ],
            options={
                "verbose_name": "Rechnung",
                "verbose_name_plural": "Rechnungen",
            },
        ),
        migrations.CreateModel(
            name="Unit",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("number", models.CharField(max_length=50, verbose_name="Einheitsnummer")),
                ("description", models.CharField(blank=True, max_length=255, verbose_name="Bezeichnung")),
                ("owner_name", models.CharField(blank=True, max_length=255, verbose_name="Eigentümer")),
                (
                    "mea",
                    models.CharField(
                        blank=True,
                        help_text="Bruch wie 290/1000 oder Absolutwert bezogen auf 1000.",
                        max_length=30,
                        validators=[
                            django.core.validators.RegexValidator(
                                message="Miteigentumsanteil als Bruch (z. B. 290/1000) oder Zahl angeben.",
                                regex="^\\d+(?:\\.\\d+)?(?:/\\d+(?:\\.\\d+)?)?$",
                            )
                        ],
                        verbose_name="Miteigentumsanteil (MEA)",
                    ),
                ),
                (
                    "hebeanlage",
                    models.CharField(
                        blank=True,
                        help_text="Verteilungsbruch für die Hebeanlage, z. B. 2/6.",
                        max_length=10,
                        validators=[
                            django.core.validators.RegexValidator(
                                message="Hebeanlage-Anteil als Bruch angeben (z. B. 2/6).",
                                regex="^\\d+/\\d+$",
                            )
                        ],
                        verbose_name="Hebeanlage-Anteil",
                    ),
                ),
                ("address", models.TextField(blank=True, verbose_name="Empfänger-Adresse")),
                (
                    "property",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="units",
                        to="hausgeld.property",
                        verbose_name="Liegenschaft",
                    ),
                ),
            ],
            options={
                "verbose_name": "Einheit",
                "verbose_name_plural": "Einheiten",
                "ordering": ["property_id", "number"],
            },
        ),
        migrations.AddConstraint(
            model_name="unit",
            constraint=models.UniqueConstraint(fields=("property", "number"), name="uniq_unit_property_number"),
        ),
        migrations.CreateModel(
            name="HistoricalUnit",
            fields=[
                ("id", models.BigIntegerField(auto_created=True, blank=True, db_index=True, verbose_name="ID")),
                ("number", models.CharField(max_length=50, verbose_name="Einheitsnummer")),
                ("description", models.CharField(blank=True, max_length=255, verbose_name="Bezeichnung")),
                ("owner_name", models.CharField(blank=True, max_length=255, verbose_name="Eigentümer")),
                (
                    "mea",
                    models.CharField(
                        blank=True,
                        help_text="Bruch wie 290/1000 oder Absolutwert bezogen auf 1000.",
                        max_length=30,
                        validators=[
                            django.core.validators.RegexValidator(
                                message="Miteigentumsanteil als Bruch (z. B. 290/1000) oder Zahl angeben.",
                                regex="^\\d+(?:\\.\\d+)?(?:/\\d+(?:\\.\\d+)?)?$",
                            )
                        ],
                        verbose_name="Miteigentumsanteil (MEA)",
                    ),
                ),
                (
                    "hebeanlage",
                    models.CharField(
                        blank=True,
                        help_text="Verteilungsbruch für die Hebeanlage, z. B. 2/6.",
                        max_length=10,
                        validators=[
                            django.core.validators.RegexValidator(
                                message="Hebeanlage-Anteil als Bruch angeben (z. B. 2/6).",
                                regex="^\\d+/\\d+$",
                            )
                        ],
                        verbose_name="Hebeanlage-Anteil",
                    ),
                ),
                ("address", models.TextField(blank=True, verbose_name="Empfänger-Adresse")),
                ("history_id", models.AutoField(primary_key=True, serialize=False)),
                ("history_date", models.DateTimeField(db_index=True)),
                ("history_change_reason", models.CharField(max_length=100, null=True)),
                (
                    "history_type",
                    models.CharField(
                        choices=[("+", "Created"), ("~", "Changed"), ("-", "Deleted")],
                        max_length=1,
                    ),
                ),
                (
                    "history_user",
                    models.ForeignKey(
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "property",
                    models.ForeignKey(
                        blank=True,
                        db_constraint=False,
                        null=True,
                        on_delete=django.db.models.deletion.DO_NOTHING,
                        related_name="+",
                        to="hausgeld.property",
                        verbose_name="Liegenschaft",
                    ),
                ),
            ],
            options={
                "verbose_name": "historical Einheit",
                "verbose_name_plural": "historical Einheiten",
                "ordering": ("-history_date", "-history_id"),
                "get_latest_by": ("history_date", "history_id"),
            },
            bases=(simple_history.models.HistoricalChanges, models.Model),
        ),
        migrations.CreateModel(
            name="Vorauszahlung",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("jahr", models.PositiveIntegerField(verbose_name="Jahr")),
                (
                    "monatsbetrag",
                    models.DecimalField(
                        decimal_places=2,
                        max_digits=12,
                        validators=[django.core.validators.MinValueValidator(Decimal("0.00"))],
                        verbose_name="Monatlicher Vorschuss",
                    ),
                ),
                (
                    "jahresbetrag",
                    models.DecimalField(
                        blank=True,
                        decimal_places=2,
                        help_text="Überschreibt Monatsbetrag × 12, falls gesetzt.",
                        max_digits=12,
                        null=True,
                        validators=[django.core.validators.MinValueValidator(Decimal("0.00"))],
                        verbose_name="Jahresbetrag (abweichend)",
                    ),
                ),
                ("is_active", models.BooleanField(default=True, verbose_name="Aktiv")),
                (
                    "einheit",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="vorauszahlungen",
                        to="hausgeld.unit",
                        verbose_name="Einheit",
                    ),
                ),
            ],
            options={
                "verbose_name": "Hausgeld-Vorschuss",
                "verbose_name_plural": "Hausgeld-Vorschüsse",
                "ordering": ["einheit_id", "-jahr"],
            },
        ),
        migrations.AddConstraint(
            model_name="vorauszahlung",
            constraint=models.UniqueConstraint(
                condition=models.Q(("is_active", True)),
                fields=("einheit", "jahr"),
                name="uniq_vorauszahlung_einheit_jahr_aktiv",
            ),
        ),
        migrations.CreateModel(
            name="Zahlung",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("datum", models.DateField(verbose_name="Datum")),
                ("bezeichnung", models.CharField(max_length=255, verbose_name="Bezeichnung")),
                (
                    "betrag",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Negativ = Ausgabe, positiv = Einnahme/Erstattung.",
                        max_digits=12,
                        verbose_name="Betrag",
                    ),
                ),
                (
                    "kategorie",
                    models.CharField(
                        choices=[
                            ("hausgeld", "Hausgeld-Vorschuss"),
                            ("sonderumlage", "Sonderumlage"),
                            ("nachzahlung", "Nachzahlung Vorjahr"),
                            ("sonstige", "Sonstige"),
                        ],
                        default="hausgeld",
                        max_length=20,
                        verbose_name="Zahlungskategorie",
                    ),
                ),
                (
                    "abrechnungsjahr",
                    models.PositiveIntegerField(
                        blank=True,
                        help_text="Ordnet die Zahlung abweichend vom Datum einem Abrechnungsjahr zu.",
                        null=True,
                        verbose_name="Abrechnungsjahr",
                    ),
                ),
                ("ist_simulation", models.BooleanField(default=False, verbose_name="Simulation")),
                (
                    "einheit",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="zahlungen",
                        to="hausgeld.unit",
                        verbose_name="Einheit",
                    ),
                ),
                (
                    "kostenkonto",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="zahlungen",
                        to="hausgeld.kostenkonto",
                        verbose_name="Kostenkonto",
                    ),
                ),
                (
                    "liegenschaft",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="zahlungen",
                        to="hausgeld.property",
                        verbose_name="Liegenschaft",
                    ),
                ),
                (
                    "rechnung",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="zahlungen",
                        to="hausgeld.rechnung",
                        verbose_name="Rechnung",
                    ),
                ),
            ],
            options={
                "verbose_name": "Zahlung",
                "verbose_name_plural": "Zahlungen",
                "ordering": ["datum", "id"],
                "indexes": [
                    models.Index(fields=["liegenschaft", "datum"], name="zahlung_lgs_datum_idx"),
                    models.Index(fields=["abrechnungsjahr"], name="zahlung_abrjahr_idx"),
                ],
            },
        ),
        migrations.CreateModel(
            name="HistoricalZahlung",
            fields=[
                ("id", models.BigIntegerField(auto_created=True, blank=True, db_index=True, verbose_name="ID")),
                ("datum", models.DateField(verbose_name="Datum")),
                ("bezeichnung", models.CharField(max_length=255, verbose_name="Bezeichnung")),
                (
                    "betrag",
                    models.DecimalField(
                        decimal_places=2,
                        help_text="Negativ = Ausgabe, positiv = Einnahme/Erstattung.",
                        max_digits=12,
                        verbose_name="Betrag",
                    ),
                ),
                (
                    "kategorie",
                    models.CharField(
                        choices=[
                            ("hausgeld", "Hausgeld-Vorschuss"),
                            ("sonderumlage", "Sonderumlage"),
                            ("nachzahlung", "Nachzahlung Vorjahr"),
                            ("sonstige", "Sonstige"),
                        ],
                        default="hausgeld",
                        max_length=20,
                        verbose_name="Zahlungskategorie",
                    ),
                ),
                (
                    "abrechnungsjahr",
                    models.PositiveIntegerField(
                        blank=True,
                        help_text="Ordnet die Zahlung abweichend vom Datum einem Abrechnungsjahr zu.",
                        null=True,
                        verbose_name="Abrechnungsjahr",
                    ),
                ),
                ("ist_simulation", models.BooleanField(default=False, verbose_name="Simulation")),
                ("history_id", models.AutoField(primary_key=True, serialize=False)),
                ("history_date", models.DateTimeField(db_index=True)),
                ("history_change_reason", models.CharField(max_length=100, null=True)),
                (
                    "history_type",
                    models.CharField(
                        choices=[("+", "Created"), ("~", "Changed"), ("-", "Deleted")],
                        max_length=1,
                    ),
                ),
                (
                    "einheit",
                    models.ForeignKey(
                        blank=True,
                        db_constraint=False,
                        null=True,
                        on_delete=django.db.models.deletion.DO_NOTHING,
                        related_name="+",
                        to="hausgeld.unit",
                        verbose_name="Einheit",
                    ),
                ),
                (
                    "history_user",
                    models.ForeignKey(
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="+",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "kostenkonto",
                    models.ForeignKey(
                        blank=True,
                        db_constraint=False,
                        null=True,
                        on_delete=django.db.models.deletion.DO_NOTHING,
                        related_name="+",
                        to="hausgeld.kostenkonto",
                        verbose_name="Kostenkonto",
                    ),
                ),
                (
                    "liegenschaft",
                    models.ForeignKey(
                        blank=True,
                        db_constraint=False,
                        null=True,
                        on_delete=django.db.models.deletion.DO_NOTHING,
                        related_name="+",
                        to="hausgeld.property",
                        verbose_name="Liegenschaft",
                    ),
                ),
                (
                    "rechnung",
                    models.ForeignKey(
                        blank=True,
                        db_constraint=False,
                        null=True,
                        on_delete=django.db.models.deletion.DO_NOTHING,
                        related_name="+",
                        to="hausgeld.rechnung",
                        verbose_name="Rechnung",
                    ),
                ),
            ],
            options={
                "verbose_name": "historical Zahlung",
                "verbose_name_plural": "historical Zahlungen",
                "ordering": ("-history_date", "-history_id"),
                "get_latest_by": ("history_date", "history_id"),
            },
            bases=(simple_history.models.HistoricalChanges, models.Model),
        ),
        migrations.CreateModel(
            name="HeizWasserkosten",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("jahr", models.PositiveIntegerField(verbose_name="Jahr")),
                ("ist_gesamt", models.BooleanField(default=False, verbose_name="Gesamtwert Liegenschaft")),
                (
                    "heizkosten",
                    models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12, verbose_name="Heizkosten"),
                ),
                (
                    "wasserkosten",
                    models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12, verbose_name="Wasserkosten"),
                ),
                (
                    "sonstige_kosten",
                    models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True, verbose_name="Sonstige Kosten"),
                ),
                (
                    "einheit",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="heiz_wasserkosten",
                        to="hausgeld.unit",
                        verbose_name="Einheit",
                    ),
                ),
                (
                    "liegenschaft",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="heiz_wasserkosten",
                        to="hausgeld.property",
                        verbose_name="Liegenschaft",
                    ),
                ),
            ],
            options={
                "verbose_name": "Heiz- und Wasserkosten",
                "verbose_name_plural": "Heiz- und Wasserkosten",
            },
        ),
        migrations.AddConstraint(
            model_name="heizwasserkosten",
            constraint=models.UniqueConstraint(
                condition=models.Q(("ist_gesamt", True)),
                fields=("liegenschaft", "jahr"),
                name="uniq_heizwasser_gesamt_jahr",
            ),
        ),
        migrations.AddConstraint(
            model_name="heizwasserkosten",
            constraint=models.UniqueConstraint(
                condition=models.Q(("ist_gesamt", False)),
                fields=("einheit", "jahr"),
                name="uniq_heizwasser_einheit_jahr",
            ),
        ),
        migrations.CreateModel(
            name="MonatsSaldo",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("monat", models.DateField(help_text="Erster Tag des Monats.", verbose_name="Monat")),
                ("anfangssaldo", models.DecimalField(decimal_places=2, max_digits=12, verbose_name="Anfangssaldo")),
                ("endsaldo", models.DecimalField(decimal_places=2, max_digits=12, verbose_name="Endsaldo")),
                (
                    "umsatzsumme",
                    models.DecimalField(decimal_places=2, default=Decimal("0.00"), max_digits=12, verbose_name="Umsatzsumme"),
                ),
                ("anzahl_transaktionen", models.PositiveIntegerField(default=0, verbose_name="Anzahl Transaktionen")),
                (
                    "liegenschaft",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="monatssalden",
                        to="hausgeld.property",
                        verbose_name="Liegenschaft",
                    ),
                ),
            ],
            options={
                "verbose_name": "Monatssaldo",
                "verbose_name_plural": "Monatssalden",
                "ordering": ["liegenschaft_id", "monat"],
            },
        ),
        migrations.AddConstraint(
            model_name="monatssaldo",
            constraint=models.UniqueConstraint(
                fields=("liegenschaft", "monat"),
                name="uniq_monatssaldo_liegenschaft_monat",
            ),
        ),
    ]

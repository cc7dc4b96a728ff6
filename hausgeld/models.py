from builtins import property as builtin_property
from datetime import date
from decimal import Decimal

from django.core.exceptions import ValidationError
from django.core.validators import MinValueValidator, RegexValidator
from django.db import models
from django.utils.translation import gettext_lazy as _
from simple_history.models import HistoricalRecords

from .choices import Kostenkategorie, Umlageschluessel, Zahlungskategorie

# Validator für die Postleitzahl (4 bis 5 Ziffern)
zip_validator = RegexValidator(
    regex=r'^\d{4,5}$',
    message=_("Die Postleitzahl darf nur aus Zahlen bestehen (4 bis 5 Ziffern).")
)

# MEA als Bruch ("290/1000") oder als Absolutwert bezogen auf 1000 ("290")
mea_validator = RegexValidator(
    regex=r'^\d+(?:\.\d+)?(?:/\d+(?:\.\d+)?)?$',
    message=_("Miteigentumsanteil als Bruch (z. B. 290/1000) oder Zahl angeben."),
)

hebeanlage_validator = RegexValidator(
    regex=r'^\d+/\d+$',
    message=_("Hebeanlage-Anteil als Bruch angeben (z. B. 2/6)."),
)


class Property(models.Model):
    name = models.CharField(max_length=255, verbose_name=_("Name"))
    zip_code = models.CharField(
        max_length=20,
        validators=[zip_validator],
        verbose_name=_("Postleitzahl")
    )
    city = models.CharField(max_length=100, verbose_name=_("Stadt"))
    street_address = models.CharField(max_length=255, verbose_name=_("Straße und Hausnummer"))
    notes = models.TextField(blank=True, verbose_name=_("Notizen"))

    class Meta:
        verbose_name = _("Liegenschaft")
        verbose_name_plural = _("Liegenschaften")

    def __str__(self) -> str:
        return f"{self.name} ({self.city})"

    @builtin_property
    def address(self) -> str:
        return f"{self.street_address}, {self.zip_code} {self.city}".strip(", ")


class Unit(models.Model):
    property = models.ForeignKey(
        Property,
        on_delete=models.CASCADE,
        related_name="units",
        verbose_name=_("Liegenschaft"),
    )
    number = models.CharField(max_length=50, verbose_name=_("Einheitsnummer"))
    description = models.CharField(max_length=255, blank=True, verbose_name=_("Bezeichnung"))
    owner_name = models.CharField(max_length=255, blank=True, verbose_name=_("Eigentümer"))
    mea = models.CharField(
        max_length=30,
        blank=True,
        validators=[mea_validator],
        verbose_name=_("Miteigentumsanteil (MEA)"),
        help_text=_("Bruch wie 290/1000 oder Absolutwert bezogen auf 1000."),
    )
    hebeanlage = models.CharField(
        max_length=10,
        blank=True,
        validators=[hebeanlage_validator],
        verbose_name=_("Hebeanlage-Anteil"),
        help_text=_("Verteilungsbruch für die Hebeanlage, z. B. 2/6."),
    )
    address = models.TextField(blank=True, verbose_name=_("Empfänger-Adresse"))
    history = HistoricalRecords()

    class Meta:
        verbose_name = _("Einheit")
        verbose_name_plural = _("Einheiten")
        ordering = ["property_id", "number"]
        constraints = [
            models.UniqueConstraint(
                fields=["property", "number"],
                name="uniq_unit_property_number",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.number} {self.owner_name} ({self.property.name})".strip()


class Vorauszahlung(models.Model):
    einheit = models.ForeignKey(
        Unit,
        on_delete=models.CASCADE,
        related_name="vorauszahlungen",
        verbose_name=_("Einheit"),
    )
    jahr = models.PositiveIntegerField(verbose_name=_("Jahr"))
    monatsbetrag = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal("0.00"))],
        verbose_name=_("Monatlicher Vorschuss"),
    )
    jahresbetrag = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal("0.00"))],
        verbose_name=_("Jahresbetrag (abweichend)"),
        help_text=_("Überschreibt Monatsbetrag × 12, falls gesetzt."),
    )
    is_active = models.BooleanField(default=True, verbose_name=_("Aktiv"))

    class Meta:
        verbose_name = _("Hausgeld-Vorschuss")
        verbose_name_plural = _("Hausgeld-Vorschüsse")
        ordering = ["einheit_id", "-jahr"]
        constraints = [
            models.UniqueConstraint(
                fields=["einheit", "jahr"],
                condition=models.Q(is_active=True),
                name="uniq_vorauszahlung_einheit_jahr_aktiv",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.einheit.number} · {self.jahr} · {self.monatsbetrag}"


class Kostenkonto(models.Model):
    nummer = models.CharField(max_length=20, unique=True, verbose_name=_("Kontonummer"))
    bezeichnung = models.CharField(max_length=255, verbose_name=_("Bezeichnung"))
    kategorie = models.CharField(
        max_length=30,
        choices=Kostenkategorie.choices,
        verbose_name=_("Kategorie"),
    )
    umlageschluessel = models.CharField(
        max_length=3,
        choices=Umlageschluessel.choices,
        default=Umlageschluessel.MITEIGENTUMSANTEIL,
        verbose_name=_("Umlageschlüssel"),
    )
    steuerlich_absetzbar = models.BooleanField(
        default=False,
        verbose_name=_("Steuerlich absetzbar (§35a EStG)"),
    )
    is_active = models.BooleanField(default=True, verbose_name=_("Aktiv"))

    class Meta:
        verbose_name = _("Kostenkonto")
        verbose_name_plural = _("Kostenkonten")
        ordering = ["nummer"]

    def __str__(self) -> str:
        return f"{self.nummer} {self.bezeichnung}"


class Rechnung(models.Model):
    rechnungsnummer = models.CharField(max_length=100, blank=True, verbose_name=_("Rechnungsnummer"))
    information = models.CharField(max_length=255, blank=True, verbose_name=_("Information"))
    betrag_mit_steuern = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        verbose_name=_("Betrag inkl. Steuern"),
    )
    arbeits_fahrtkosten = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal("0.00"))],
        verbose_name=_("Arbeits- und Fahrtkosten"),
        help_text=_("Lohnanteil nach §35a EStG inkl. MwSt."),
    )
    datum_leistung = models.DateField(null=True, blank=True, verbose_name=_("Leistungsdatum"))

    class Meta:
        verbose_name = _("Rechnung")
        verbose_name_plural = _("Rechnungen")

    def __str__(self) -> str:
        return f"{self.rechnungsnummer or self.pk} · {self.betrag_mit_steuern}"

    def clean(self):
        super().clean()
        if self.arbeits_fahrtkosten is None or self.betrag_mit_steuern is None:
            return
        if self.arbeits_fahrtkosten > self.betrag_mit_steuern:
            raise ValidationError(
                {
                    "arbeits_fahrtkosten": _(
                        "Arbeits- und Fahrtkosten dürfen den Rechnungsbetrag nicht übersteigen."
                    )
                }
            )


class Zahlung(models.Model):
    liegenschaft = models.ForeignKey(
        Property,
        on_delete=models.PROTECT,
        related_name="zahlungen",
        verbose_name=_("Liegenschaft"),
    )
    datum = models.DateField(verbose_name=_("Datum"))
    bezeichnung = models.CharField(max_length=255, verbose_name=_("Bezeichnung"))
    betrag = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        verbose_name=_("Betrag"),
        help_text=_("Negativ = Ausgabe, positiv = Einnahme/Erstattung."),
    )
    kostenkonto = models.ForeignKey(
        Kostenkonto,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="zahlungen",
        verbose_name=_("Kostenkonto"),
    )
    einheit = models.ForeignKey(
        Unit,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name="zahlungen",
        verbose_name=_("Einheit"),
    )
    rechnung = models.ForeignKey(
        Rechnung,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="zahlungen",
        verbose_name=_("Rechnung"),
    )
    kategorie = models.CharField(
        max_length=20,
        choices=Zahlungskategorie.choices,
        default=Zahlungskategorie.HAUSGELD,
        verbose_name=_("Zahlungskategorie"),
    )
    abrechnungsjahr = models.PositiveIntegerField(
        null=True,
        blank=True,
        verbose_name=_("Abrechnungsjahr"),
        help_text=_("Ordnet die Zahlung abweichend vom Datum einem Abrechnungsjahr zu."),
    )
    ist_simulation = models.BooleanField(default=False, verbose_name=_("Simulation"))
    history = HistoricalRecords()

    class Meta:
        verbose_name = _("Zahlung")
        verbose_name_plural = _("Zahlungen")
        ordering = ["datum", "id"]
        indexes = [
            models.Index(fields=["liegenschaft", "datum"], name="zahlung_lgs_datum_idx"),
            models.Index(fields=["abrechnungsjahr"], name="zahlung_abrjahr_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.datum} · {self.bezeichnung} · {self.betrag}"

    @builtin_property
    def effektives_jahr(self) -> int:
        if self.abrechnungsjahr:
            return self.abrechnungsjahr
        return self.datum.year

    def clean(self):
        super().clean()
        if self.einheit_id and self.liegenschaft_id and self.einheit.property_id != self.liegenschaft_id:
            raise ValidationError(
                {"einheit": _("Die Einheit gehört nicht zur gewählten Liegenschaft.")}
            )


class HeizWasserkosten(models.Model):
    liegenschaft = models.ForeignKey(
        Property,
        on_delete=models.CASCADE,
        related_name="heiz_wasserkosten",
        verbose_name=_("Liegenschaft"),
    )
    einheit = models.ForeignKey(
        Unit,
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="heiz_wasserkosten",
        verbose_name=_("Einheit"),
    )
    jahr = models.PositiveIntegerField(verbose_name=_("Jahr"))
    ist_gesamt = models.BooleanField(
        default=False,
        verbose_name=_("Gesamtwert Liegenschaft"),
    )
    heizkosten = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        verbose_name=_("Heizkosten"),
    )
    wasserkosten = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        verbose_name=_("Wasserkosten"),
    )
    sonstige_kosten = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        null=True,
        blank=True,
        verbose_name=_("Sonstige Kosten"),
    )

    class Meta:
        verbose_name = _("Heiz- und Wasserkosten")
        verbose_name_plural = _("Heiz- und Wasserkosten")
        constraints = [
            models.UniqueConstraint(
                fields=["liegenschaft", "jahr"],
                condition=models.Q(ist_gesamt=True),
                name="uniq_heizwasser_gesamt_jahr",
            ),
            models.UniqueConstraint(
                fields=["einheit", "jahr"],
                condition=models.Q(ist_gesamt=False),
                name="uniq_heizwasser_einheit_jahr",
            ),
        ]

    def __str__(self) -> str:
        scope = "Gesamt" if self.ist_gesamt else (self.einheit.number if self.einheit else "-")
        return f"{self.liegenschaft.name} · {self.jahr} · {scope}"

    def clean(self):
        super().clean()
        if not self.ist_gesamt and self.einheit_id is None:
            raise ValidationError({"einheit": _("Für Einzelwerte ist eine Einheit erforderlich.")})


class MonatsSaldo(models.Model):
    liegenschaft = models.ForeignKey(
        Property,
        on_delete=models.CASCADE,
        related_name="monatssalden",
        verbose_name=_("Liegenschaft"),
    )
    monat = models.DateField(
        verbose_name=_("Monat"),
        help_text=_("Erster Tag des Monats."),
    )
    anfangssaldo = models.DecimalField(max_digits=12, decimal_places=2, verbose_name=_("Anfangssaldo"))
    endsaldo = models.DecimalField(max_digits=12, decimal_places=2, verbose_name=_("Endsaldo"))
    umsatzsumme = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        default=Decimal("0.00"),
        verbose_name=_("Umsatzsumme"),
    )
    anzahl_transaktionen = models.PositiveIntegerField(default=0, verbose_name=_("Anzahl Transaktionen"))

    class Meta:
        verbose_name = _("Monatssaldo")
        verbose_name_plural = _("Monatssalden")
        ordering = ["liegenschaft_id", "monat"]
        constraints = [
            models.UniqueConstraint(
                fields=["liegenschaft", "monat"],
                name="uniq_monatssaldo_liegenschaft_monat",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.liegenschaft.name} · {self.monat:%m.%Y}"

    def save(self, *args, **kwargs):
        if self.monat:
            self.monat = date(self.monat.year, self.monat.month, 1)
        super().save(*args, **kwargs)

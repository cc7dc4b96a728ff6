from django.db import models
from django.utils.translation import gettext_lazy as _


class Umlageschluessel(models.TextChoices):
    HEIZKOSTEN_EXTERN = "01*", _("ext. berechn. Heizkosten")
    WASSERKOSTEN_EXTERN = "02*", _("ext. berechn. Wasser-/sonst. Kosten")
    EINHEITEN = "03*", _("Anzahl Einheit")
    FESTUMLAGE = "04*", _("Festumlage")
    MITEIGENTUMSANTEIL = "05*", _("Miteigentumsanteil")
    HEBEANLAGE = "06*", _("Hebeanlage")

    @classmethod
    def externally_resolved(cls) -> frozenset["Umlageschluessel"]:
        return frozenset({cls.HEIZKOSTEN_EXTERN, cls.WASSERKOSTEN_EXTERN})


class Kostenkategorie(models.TextChoices):
    UMLAGEFAEHIG_HEIZUNG = "umlagefaehig_heizung", _("Umlagefähig (Heizung)")
    UMLAGEFAEHIG_SONSTIGE = "umlagefaehig_sonstige", _("Umlagefähig (Sonstige)")
    NICHT_UMLAGEFAEHIG = "nicht_umlagefaehig", _("Nicht umlagefähig")
    RUECKLAGENZUFUEHRUNG = "ruecklagenzufuehrung", _("Rücklagenzuführung")
    EINNAHME = "einnahme", _("Einnahme")

    @classmethod
    def umlagefaehig(cls) -> frozenset["Kostenkategorie"]:
        return frozenset({cls.UMLAGEFAEHIG_HEIZUNG, cls.UMLAGEFAEHIG_SONSTIGE})


class Zahlungskategorie(models.TextChoices):
    HAUSGELD = "hausgeld", _("Hausgeld-Vorschuss")
    SONDERUMLAGE = "sonderumlage", _("Sonderumlage")
    NACHZAHLUNG = "nachzahlung", _("Nachzahlung Vorjahr")
    SONSTIGE = "sonstige", _("Sonstige")


class PruefungsStufe(models.TextChoices):
    FEHLER = "error", _("Fehler")
    WARNUNG = "warning", _("Warnung")


class Ausgabeformat(models.TextChoices):
    TXT = "txt", _("Text")
    PDF = "pdf", _("PDF")

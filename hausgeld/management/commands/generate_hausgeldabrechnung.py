from __future__ import annotations

from pathlib import Path

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError
from django.template import TemplateDoesNotExist, TemplateSyntaxError

from hausgeld.choices import Ausgabeformat
from hausgeld.models import Property, Unit
from hausgeld.services.exceptions import HausgeldError, StatementValidationError
from hausgeld.services.statement_service import HausgeldStatementService


class Command(BaseCommand):
    help = "Erstellt Hausgeldabrechnungen (Einzelabrechnungen) je Einheit einer Liegenschaft."

    def add_arguments(self, parser):
        parser.add_argument("--liegenschaft-id", type=int, required=True, help="ID der Liegenschaft")
        parser.add_argument("--jahr", type=int, required=True, help="Abrechnungsjahr")
        parser.add_argument(
            "--format",
            choices=Ausgabeformat.values,
            default=Ausgabeformat.TXT,
            help="Ausgabeformat (txt oder pdf)",
        )
        parser.add_argument("--einheit", type=str, help="Nur diese Einheitsnummer abrechnen")
        parser.add_argument("--output-dir", type=str, help="Zielverzeichnis für die Abrechnungen")
        parser.add_argument(
            "--validate-only",
            action="store_true",
            help="Nur Vorprüfung durchführen, keine Dateien schreiben.",
        )
        parser.add_argument(
            "--verbose-errors",
            action="store_true",
            help="Warnungen der Vorprüfung ebenfalls ausgeben.",
        )
        parser.add_argument(
            "--quality-check",
            action="store_true",
            help="Erstellte Abrechnungen zusätzlich auf Plausibilität prüfen.",
        )

    def handle(self, *args, **options):
        property_id = int(options["liegenschaft_id"])
        year = int(options["jahr"])
        output_format = str(options.get("format") or Ausgabeformat.TXT)
        validate_only = bool(options.get("validate_only"))
        verbose = bool(options.get("verbose_errors"))
        quality_check = bool(options.get("quality_check"))

        property_obj = Property.objects.filter(pk=property_id).first()
        if property_obj is None:
            raise CommandError(f"Liegenschaft mit ID {property_id} wurde nicht gefunden.")

        units = list(self._resolve_units(property_obj=property_obj, unit_number=options.get("einheit")))
        output_dir = self._resolve_output_dir(options.get("output_dir"))
        service = HausgeldStatementService()

        generated = 0
        failed = 0
        for unit in units:
            issues = service.validate(unit, year)
            errors = [issue for issue in issues if issue.is_error]
            for issue in issues:
                if issue.is_error or verbose:
                    style = self.style.ERROR if issue.is_error else self.style.WARNING
                    self.stdout.write(style(f"- Einheit {unit.number}: [{issue.code}] {issue.message}"))

            if errors:
                failed += 1
                continue
            if validate_only:
                self.stdout.write(self.style.SUCCESS(f"Einheit {unit.number}: Vorprüfung ohne Fehler."))
                continue

            try:
                content = service.generate_statement(unit, year, output_format)
            except StatementValidationError as exc:
                failed += 1
                self.stdout.write(self.style.ERROR(f"Einheit {unit.number}: {exc}"))
                continue
            except (HausgeldError, TemplateDoesNotExist, TemplateSyntaxError) as exc:
                failed += 1
                self.stdout.write(self.style.ERROR(f"Einheit {unit.number}: Erstellung fehlgeschlagen: {exc}"))
                continue

            path = output_dir / self.build_filename(
                year=year, property_id=property_obj.pk, unit_number=unit.number, output_format=output_format
            )
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                if isinstance(content, bytes):
                    path.write_bytes(content)
                else:
                    path.write_text(content, encoding="utf-8")
            except OSError as exc:
                failed += 1
                self.stdout.write(self.style.ERROR(f"Einheit {unit.number}: Datei {path} nicht schreibbar: {exc}"))
                continue
            generated += 1
            self.stdout.write(self.style.SUCCESS(f"Einheit {unit.number}: {path}"))
            if quality_check:
                for issue in service.quality_check(unit, year):
                    self.stdout.write(
                        self.style.WARNING(f"- Einheit {unit.number}: Qualität [{issue.code}] {issue.message}")
                    )

        self.stdout.write(
            f"Hausgeldabrechnung {year} für {property_obj.name}: "
            f"Einheiten: {len(units)} | erstellt: {generated} | fehlgeschlagen: {failed}"
        )
        if validate_only:
            if failed:
                raise CommandError(f"Vorprüfung für {failed} Einheit(en) fehlgeschlagen.")
            return
        if generated == 0:
            raise CommandError("Es wurde keine Hausgeldabrechnung erstellt.")

    @staticmethod
    def build_filename(*, year: int, property_id: int, unit_number: str, output_format: str) -> str:
        safe_number = "".join(char if char.isalnum() or char in "-_" else "_" for char in unit_number)
        return f"hausgeldabrechnung_{year}_{property_id}_{safe_number}.{output_format}"

    @staticmethod
    def _resolve_units(*, property_obj: Property, unit_number: str | None):
        units = Unit.objects.filter(property=property_obj).order_by("number", "id")
        number = (unit_number or "").strip()
        if number:
            units = units.filter(number=number)
            if not units.exists():
                raise CommandError(f"Einheit {number} gehört nicht zur Liegenschaft {property_obj.pk}.")
        elif not units.exists():
            raise CommandError(f"Liegenschaft {property_obj.pk} hat keine Einheiten.")
        return units

    @staticmethod
    def _resolve_output_dir(output_dir: str | None) -> Path:
        raw_path = (output_dir or "").strip()
        path = Path(raw_path).expanduser() if raw_path else Path(settings.HAUSGELD_OUTPUT_DIR)
        if not path.is_absolute():
            path = Path.cwd() / path
        return path

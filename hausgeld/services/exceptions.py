from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from .statement_data import ValidationIssue


class HausgeldError(Exception):
    """Basisklasse aller Fehler der Hausgeldabrechnung."""


class StatementValidationError(HausgeldError):
    """Vorprüfung fehlgeschlagen, die Abrechnung wird nicht erzeugt."""

    def __init__(self, issues: Sequence[ValidationIssue]):
        self.issues = tuple(issues)
        messages = "; ".join(issue.message for issue in self.issues)
        super().__init__(f"Hausgeldabrechnung nicht erstellbar: {messages}")


class DistributionValidationError(HausgeldError, ValueError):
    def __init__(self, problems: Sequence[str]):
        self.problems = tuple(problems)
        super().__init__("Ungültige Verteilungsparameter: " + "; ".join(self.problems))


class EmptyPropertyError(HausgeldError):
    """Liegenschaft ohne Einheiten, eine Verteilung nach Einheiten ist unmöglich."""


class StatementRenderError(HausgeldError):
    pass


class StatementPdfGenerationError(StatementRenderError, RuntimeError):
    """Eindeutiger Fehler für fehlgeschlagene Hausgeld-PDF-Erstellung."""

from __future__ import annotations

import re
from decimal import Decimal
from typing import assert_never

from ..choices import Umlageschluessel
from .exceptions import DistributionValidationError, EmptyPropertyError
from .statement_data import ZERO, PropertySnapshot, UnitSnapshot

KEY_PATTERN = re.compile(r"^0[1-6]\*$")


class DistributionAlgorithm:
    """Verteilt einen Gesamtbetrag nach Umlageschlüssel auf eine Einheit.

    Ergebnisse bleiben ungerundet; gerundet wird erst bei der Ausgabe.
    """

    @staticmethod
    def coerce_key(key: Umlageschluessel | str) -> Umlageschluessel:
        if isinstance(key, Umlageschluessel):
            return key
        if not isinstance(key, str) or not KEY_PATTERN.match(key):
            raise DistributionValidationError([f"Unbekannter Umlageschlüssel: {key!r}"])
        return Umlageschluessel(key)

    @classmethod
    def validate(
        cls,
        *,
        total_cost: Decimal,
        key: Umlageschluessel | str,
        mea_share: Decimal | None,
    ) -> Umlageschluessel:
        problems: list[str] = []
        resolved: Umlageschluessel | None = None

        if not isinstance(total_cost, Decimal) or not total_cost.is_finite():
            problems.append(f"Gesamtbetrag ist keine endliche Zahl: {total_cost!r}")
        try:
            resolved = cls.coerce_key(key)
        except DistributionValidationError as exc:
            problems.extend(exc.problems)
        if mea_share is not None and not (ZERO <= mea_share <= 1):
            problems.append(f"Miteigentumsanteil {mea_share} liegt nicht zwischen 0 und 1.")
        if resolved == Umlageschluessel.MITEIGENTUMSANTEIL and mea_share is None:
            problems.append("Für 05* ist ein Miteigentumsanteil erforderlich.")

        if problems or resolved is None:
            raise DistributionValidationError(problems)
        return resolved

    @classmethod
    def share_for(
        cls,
        total_cost: Decimal,
        key: Umlageschluessel | str,
        mea_share: Decimal | None,
        unit: UnitSnapshot | None,
        property_obj: PropertySnapshot | None,
    ) -> Decimal:
        resolved = cls.validate(total_cost=total_cost, key=key, mea_share=mea_share)

        if resolved is Umlageschluessel.HEIZKOSTEN_EXTERN:
            return ZERO
        elif resolved is Umlageschluessel.WASSERKOSTEN_EXTERN:
            return ZERO
        elif resolved is Umlageschluessel.EINHEITEN:
            return cls._equal_share(total_cost, property_obj)
        elif resolved is Umlageschluessel.FESTUMLAGE:
            # Betrag ist bereits auf die Einheit gefiltert.
            return total_cost
        elif resolved is Umlageschluessel.MITEIGENTUMSANTEIL:
            assert mea_share is not None
            return total_cost * mea_share
        elif resolved is Umlageschluessel.HEBEANLAGE:
            if unit is None or unit.hebeanlage_share is None:
                return ZERO
            return total_cost * unit.hebeanlage_share
        else:
            assert_never(resolved)

    @staticmethod
    def _equal_share(total_cost: Decimal, property_obj: PropertySnapshot | None) -> Decimal:
        if property_obj is None:
            raise DistributionValidationError(["Für 03* wird die Liegenschaft benötigt."])
        if property_obj.unit_count == 0:
            raise EmptyPropertyError(
                f"Liegenschaft '{property_obj.name}' hat keine Einheiten, 03* ist nicht verteilbar."
            )
        return total_cost / property_obj.unit_count

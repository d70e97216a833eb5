"""Unit taxonomy and conversions for ingredient quantities.

Every unit belongs to exactly one family. Mass routes through grams and volume
through millilitres using fixed factors; count units (``each``, ``slices``) are
their own base and only compare with themselves. Crossing between mass and
volume needs an ingredient density in grams per millilitre.
"""

from __future__ import annotations

import math
import re
from enum import Enum
from typing import Final, Optional

from .errors import IncompatibleUnits, MissingDensity, UnknownUnit

__all__ = [
    "COUNT_UNITS",
    "Family",
    "MASS_TO_G",
    "UNIT_CHOICES",
    "VOLUME_TO_ML",
    "base_unit",
    "convert_between_units",
    "from_base",
    "resolve_unit",
    "to_base",
    "unit_factor",
    "unit_family",
    "units_by_family",
    "usable_density",
]


class Family(str, Enum):
    MASS = "mass"
    VOLUME = "volume"
    COUNT = "count"


MASS_TO_G: Final[dict[str, float]] = {
    "g": 1.0,
    "kg": 1000.0,
    "mg": 1 / 1000,
    "lb": 453.59237,
    "oz": 28.349523125,
    # approximate item weights for "2 large onions" style lines
    "large": 100.0,
    "medium": 60.0,
    "small": 30.0,
}

# Metric culinary measures, UK imperial for fl oz / pint / quart / gallon.
VOLUME_TO_ML: Final[dict[str, float]] = {
    "ml": 1.0,
    "l": 1000.0,
    "tsp": 5.0,
    "tbsp": 15.0,
    "cup": 250.0,
    "floz": 28.4130625,
    "pint": 568.26125,
    "quart": 1136.5225,
    "gallon": 4546.09,
    "pinch": 0.5,
    "dash": 0.25,
}

COUNT_UNITS: Final[tuple[str, ...]] = ("each", "slices")

_BASE_UNITS: Final[dict[Family, str]] = {Family.MASS: "g", Family.VOLUME: "ml"}

UNIT_FAMILY: Final[dict[str, Family]] = {
    **{unit: Family.MASS for unit in MASS_TO_G},
    **{unit: Family.VOLUME for unit in VOLUME_TO_ML},
    **{unit: Family.COUNT for unit in COUNT_UNITS},
}

UNIT_CHOICES: Final[list[str]] = list(UNIT_FAMILY)

_CANONICAL_RE = re.compile(r"[\s.]+")
_PLURAL_SUFFIX_RE = re.compile(r"\(s?\)")


def _canonical_unit(text: str) -> str:
    return _CANONICAL_RE.sub("", _PLURAL_SUFFIX_RE.sub("", text.strip().lower()))


_ALIAS_CANDIDATES = {
    "g": "g", "gram": "g", "grams": "g", "gr": "g",
    "kg": "kg", "kgs": "kg", "kilo": "kg", "kilos": "kg", "kilogram": "kg", "kilograms": "kg",
    "mg": "mg", "milligram": "mg", "milligrams": "mg",
    "lb": "lb", "lbs": "lb", "pound": "lb", "pounds": "lb",
    "oz": "oz", "ounce": "oz", "ounces": "oz",
    "large": "large", "lg": "large",
    "medium": "medium", "med": "medium",
    "small": "small", "sm": "small",
    "ml": "ml", "millilitre": "ml", "millilitres": "ml", "milliliter": "ml", "milliliters": "ml",
    "l": "l", "ltr": "l", "litre": "l", "litres": "l", "liter": "l", "liters": "l",
    "tsp": "tsp", "teaspoon": "tsp", "teaspoons": "tsp",
    "tbsp": "tbsp", "tablespoon": "tbsp", "tablespoons": "tbsp",
    "cup": "cup", "cups": "cup",
    "floz": "floz", "fl oz": "floz", "fluid ounce": "floz", "fluid ounces": "floz",
    "pint": "pint", "pints": "pint", "pt": "pint",
    "quart": "quart", "quarts": "quart", "qt": "quart",
    "gallon": "gallon", "gallons": "gallon", "gal": "gallon",
    "pinch": "pinch", "pinches": "pinch",
    "dash": "dash", "dashes": "dash",
    "each": "each", "ea": "each", "ct": "each", "unit": "each", "units": "each",
    "pc": "each", "pcs": "each", "piece": "each", "pieces": "each",
    "slice": "slices", "slices": "slices", "slc": "slices",
}

_UNIT_ALIASES: Final[dict[str, str]] = {
    _canonical_unit(alias): unit for alias, unit in _ALIAS_CANDIDATES.items()
}


def resolve_unit(text) -> str:
    """Return the canonical unit for ``text`` or raise :class:`UnknownUnit`."""

    if not isinstance(text, str) or not text.strip():
        raise UnknownUnit(text)
    unit = _UNIT_ALIASES.get(_canonical_unit(text))
    if unit is None:
        raise UnknownUnit(text)
    return unit


def unit_family(unit: str) -> Family:
    return UNIT_FAMILY[resolve_unit(unit)]


def base_unit(unit: str) -> str:
    """Return ``g``, ``ml`` or, for count units, the unit itself."""

    canonical = resolve_unit(unit)
    return _BASE_UNITS.get(UNIT_FAMILY[canonical], canonical)


def unit_factor(unit: str) -> float:
    """Multiplier taking one ``unit`` into its family's base unit."""

    canonical = resolve_unit(unit)
    family = UNIT_FAMILY[canonical]
    if family is Family.MASS:
        return MASS_TO_G[canonical]
    if family is Family.VOLUME:
        return VOLUME_TO_ML[canonical]
    return 1.0


def to_base(quantity: float, unit: str) -> tuple[float, str]:
    """Convert ``quantity`` of ``unit`` into its family's base unit."""

    return quantity * unit_factor(unit), base_unit(unit)


def from_base(amount: float, unit: str) -> float:
    """Inverse of :func:`to_base` for the target ``unit``."""

    return amount / unit_factor(unit)


def usable_density(density) -> Optional[float]:
    """Return ``density`` as a float, or ``None`` when it cannot bridge families."""

    if density is None:
        return None
    try:
        value = float(density)
    except (TypeError, ValueError):
        return None
    if math.isnan(value) or value <= 0:
        return None
    return value


def convert_between_units(
    quantity: float,
    from_unit: str,
    to_unit: str,
    density_g_per_ml: Optional[float] = None,
) -> float:
    """Convert ``quantity`` from ``from_unit`` to ``to_unit``.

    Same-family conversions use the fixed factors. Mass to volume (and back)
    needs ``density_g_per_ml`` and raises :class:`MissingDensity` without it.
    Count units only convert to themselves; anything else raises
    :class:`IncompatibleUnits`.
    """

    source = resolve_unit(from_unit)
    target = resolve_unit(to_unit)
    if source == target:
        return quantity

    source_family = UNIT_FAMILY[source]
    target_family = UNIT_FAMILY[target]
    if Family.COUNT in (source_family, target_family):
        raise IncompatibleUnits(source, target)

    amount, _ = to_base(quantity, source)
    if source_family is not target_family:
        density = usable_density(density_g_per_ml)
        if density is None:
            raise MissingDensity(source, target)
        if source_family is Family.MASS:
            amount = amount / density
        else:
            amount = amount * density
    return from_base(amount, target)


def units_by_family() -> dict[Family, list[str]]:
    grouped: dict[Family, list[str]] = {family: [] for family in Family}
    for unit, family in UNIT_FAMILY.items():
        grouped[family].append(unit)
    return grouped

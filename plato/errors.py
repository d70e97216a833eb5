"""Domain errors raised by the unit conversion and costing engine."""

from __future__ import annotations

__all__ = [
    "CostingError",
    "IncompatibleUnits",
    "InvalidPackQuantity",
    "MissingDensity",
    "RecipeCycleError",
    "UnknownUnit",
]


class CostingError(ValueError):
    """Base class for predictable costing failures caused by incomplete data."""

    @property
    def kind(self) -> str:
        return type(self).__name__


class InvalidPackQuantity(CostingError):
    def __init__(self, pack_quantity) -> None:
        self.pack_quantity = pack_quantity
        super().__init__(f"Pack quantity must be greater than zero (got {pack_quantity!r})")


class MissingDensity(CostingError):
    def __init__(self, from_unit: str, to_unit: str, ingredient: str | None = None) -> None:
        self.from_unit = from_unit
        self.to_unit = to_unit
        self.ingredient = ingredient
        subject = f" for {ingredient!r}" if ingredient else ""
        super().__init__(f"Converting {from_unit} to {to_unit} needs a density{subject}")


class IncompatibleUnits(CostingError):
    def __init__(self, from_unit: str, to_unit: str) -> None:
        self.from_unit = from_unit
        self.to_unit = to_unit
        super().__init__(f"Cannot convert {from_unit} to {to_unit}")


class UnknownUnit(CostingError):
    def __init__(self, unit) -> None:
        self.unit = unit
        super().__init__(f"Unknown unit {unit!r}")


class RecipeCycleError(ValueError):
    """Raised when a recipe uses itself, directly or through sub-recipes."""

    def __init__(self, path: list) -> None:
        self.path = list(path)
        chain = " -> ".join(str(step) for step in self.path)
        super().__init__(f"Sub-recipe cycle detected: {chain}")

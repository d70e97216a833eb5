"""Centralised constants shared across the kitchen costing application."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Final


__all__ = [
    "DATA_ROOT",
    "DATA_SUBDIRS",
    "IMPORT_LOG_TABLE",
    "INGREDIENTS_TABLE",
    "INGREDIENT_COLUMNS",
    "RECIPES_TABLE",
    "RECIPE_COLUMNS",
    "RECIPE_LINES_TABLE",
    "RECIPE_LINE_COLUMNS",
    "LINE_TYPES",
    "TZ_NAME",
]


DATA_ROOT: Final[Path] = Path(os.getenv("PLATO_DATA_DIR", "data"))
DATA_SUBDIRS: Final[tuple[str, ...]] = ("recipes", "imports")

# Logical table names, relative to ``DATA_ROOT``.
INGREDIENTS_TABLE: Final[str] = "ingredients"
RECIPES_TABLE: Final[str] = "recipes/recipes"
RECIPE_LINES_TABLE: Final[str] = "recipes/recipe_lines"
IMPORT_LOG_TABLE: Final[str] = "imports/import_log"

# -- Schemas -----------------------------------------------------------------

INGREDIENT_COLUMNS: Final[tuple[str, ...]] = (
    "ingredient_id",
    "name",
    "supplier",
    "pack_quantity",
    "pack_unit",
    "pack_price",
    "currency",
    "density_g_per_ml",
    "allergens",
    "notes",
    "last_price_update",
)

RECIPE_COLUMNS: Final[tuple[str, ...]] = (
    "recipe_id",
    "name",
    "category",
    "yield_qty",
    "yield_uom",
    "menu_price",
    "notes",
)

# ``line_type`` is INGREDIENT or RECIPE; ``ref`` holds the ingredient name or
# sub-recipe id respectively.
RECIPE_LINE_COLUMNS: Final[tuple[str, ...]] = (
    "recipe_id",
    "line_id",
    "line_type",
    "ref",
    "qty",
    "uom",
    "prep_note",
)

LINE_TYPES: Final[tuple[str, ...]] = ("INGREDIENT", "RECIPE")

TZ_NAME: Final[str] = os.getenv("TZ", "Europe/London")

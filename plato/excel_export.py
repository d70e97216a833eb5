from __future__ import annotations

"""Helpers for composing a multi-sheet costing workbook."""

from datetime import datetime
from io import BytesIO
from typing import Tuple

import pandas as pd

from .costing import compute_recipe_costs, ingredient_cost_table

SHEET_INGREDIENTS = "Ingredient Costs"
SHEET_RECIPES = "Recipes"
SHEET_LINES = "Recipe Lines"
SHEET_SUMMARY = "Recipe Cost Summary"
SHEET_PROBLEMS = "Costing Problems"


def _sheet(writer: pd.ExcelWriter, name: str, df: pd.DataFrame | None) -> None:
    """Write a DataFrame to the workbook with frozen headers and auto-filter."""
    safe_df = df if df is not None else pd.DataFrame()
    safe_df.to_excel(writer, sheet_name=name, index=False)
    worksheet = writer.sheets[name]
    worksheet.freeze_panes(1, 0)
    worksheet.autofilter(0, 0, max(0, len(safe_df)), max(0, len(safe_df.columns) - 1))


def costing_problems(lines: pd.DataFrame, ingredient_costs: pd.DataFrame) -> pd.DataFrame:
    """Collect every line or ingredient the engine could not price."""

    frames = []
    if not ingredient_costs.empty:
        bad = ingredient_costs[ingredient_costs["cost_error"].notna()]
        frames.append(
            pd.DataFrame(
                {
                    "source": "ingredient",
                    "recipe_id": "",
                    "item": bad["name"],
                    "problem": bad["cost_error"],
                }
            )
        )
    if not lines.empty:
        bad = lines[lines["cost_error"].notna()]
        frames.append(
            pd.DataFrame(
                {
                    "source": "recipe line",
                    "recipe_id": bad["recipe_id"],
                    "item": bad["name"],
                    "problem": bad["cost_error"],
                }
            )
        )
    frames = [frame for frame in frames if not frame.empty]
    if not frames:
        return pd.DataFrame(columns=["source", "recipe_id", "item", "problem"])
    return pd.concat(frames, ignore_index=True)


def export_workbook(
    ingredients: pd.DataFrame | None,
    recipes: pd.DataFrame | None,
    recipe_lines: pd.DataFrame | None,
    *,
    reference_densities: bool = False,
) -> Tuple[str, bytes]:
    """Build the export workbook in-memory and return the filename + bytes."""
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    filename = f"Recipe_Costing_{timestamp}.xlsx"

    ingredient_costs = ingredient_cost_table(ingredients)
    lines, summary = compute_recipe_costs(
        recipes, recipe_lines, ingredients, reference_densities=reference_densities
    )

    buffer = BytesIO()
    with pd.ExcelWriter(buffer, engine="xlsxwriter") as writer:
        _sheet(writer, SHEET_INGREDIENTS, ingredient_costs)
        _sheet(writer, SHEET_RECIPES, recipes)
        _sheet(writer, SHEET_LINES, lines)
        _sheet(writer, SHEET_SUMMARY, summary)
        _sheet(writer, SHEET_PROBLEMS, costing_problems(lines, ingredient_costs))

    buffer.seek(0)
    return filename, buffer.getvalue()


__all__ = [
    "costing_problems",
    "export_workbook",
]

"""Reference densities (grams per millilitre) for common kitchen ingredients."""

from __future__ import annotations

from typing import Final, Mapping, Optional

__all__ = ["INGREDIENT_DENSITIES", "get_ingredient_density"]


INGREDIENT_DENSITIES: Final[dict[str, float]] = {
    # -- Baking ------------------------------------------------------------
    "flour": 0.6,
    "plain flour": 0.6,
    "all-purpose flour": 0.6,
    "bread flour": 0.6,
    "cake flour": 0.5,
    "self-raising flour": 0.6,
    "whole wheat flour": 0.6,
    "sugar": 0.85,
    "granulated sugar": 0.85,
    "caster sugar": 0.85,
    "brown sugar": 0.8,
    "icing sugar": 0.6,
    "powdered sugar": 0.6,
    "baking powder": 0.8,
    "baking soda": 0.87,
    "bicarbonate of soda": 0.87,
    "salt": 1.2,
    "table salt": 1.2,
    "sea salt": 1.1,
    "cocoa powder": 0.4,
    "cornstarch": 0.6,
    "corn flour": 0.6,
    "coconut flour": 0.4,
    "almond flour": 0.4,
    "ground almonds": 0.4,
    # -- Dairy -------------------------------------------------------------
    "milk": 1.03,
    "whole milk": 1.03,
    "skim milk": 1.03,
    "butter": 0.91,
    "margarine": 0.91,
    "cream": 1.0,
    "heavy cream": 1.0,
    "double cream": 1.0,
    "single cream": 1.0,
    "yogurt": 1.05,
    "greek yogurt": 1.05,
    "cream cheese": 1.0,
    "sour cream": 1.0,
    # -- Oils and fats -----------------------------------------------------
    "vegetable oil": 0.92,
    "olive oil": 0.92,
    "coconut oil": 0.92,
    "sunflower oil": 0.92,
    "rapeseed oil": 0.92,
    "sesame oil": 0.92,
    # -- Nuts and seeds ----------------------------------------------------
    "almonds": 0.6,
    "walnuts": 0.6,
    "pecans": 0.6,
    "hazelnuts": 0.6,
    "peanuts": 0.6,
    "cashews": 0.6,
    "pistachios": 0.6,
    "sesame seeds": 0.6,
    "poppy seeds": 0.6,
    "chia seeds": 0.6,
    "flax seeds": 0.6,
    # -- Spices and herbs --------------------------------------------------
    "cinnamon": 0.4,
    "ginger": 0.4,
    "nutmeg": 0.4,
    "cloves": 0.4,
    "cardamom": 0.4,
    "vanilla": 0.4,
    "paprika": 0.4,
    "cumin": 0.4,
    "coriander": 0.4,
    "oregano": 0.1,
    "basil": 0.1,
    "thyme": 0.1,
    "rosemary": 0.1,
    "parsley": 0.1,
    # -- Syrups, spreads, liquids -----------------------------------------
    "honey": 1.4,
    "maple syrup": 1.3,
    "molasses": 1.4,
    "golden syrup": 1.4,
    "jam": 1.3,
    "jelly": 1.3,
    "peanut butter": 1.0,
    "almond butter": 1.0,
    "tahini": 1.0,
    "water": 1.0,
    "vinegar": 1.0,
    "balsamic vinegar": 1.0,
    "lemon juice": 1.0,
    "lime juice": 1.0,
    "orange juice": 1.0,
    "tomato paste": 1.2,
    "tomato puree": 1.0,
    "coconut milk": 1.0,
    "coconut cream": 1.0,
}


def get_ingredient_density(
    name: str | None, table: Optional[Mapping[str, float]] = None
) -> Optional[float]:
    """Look up a reference density by ingredient name (case-insensitive)."""

    if not name:
        return None
    if table is None:
        lookup = INGREDIENT_DENSITIES
    else:
        lookup = {str(key).strip().lower(): value for key, value in table.items()}
    return lookup.get(str(name).strip().lower())

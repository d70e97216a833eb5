"""Ingredient usage costing and recipe cost roll-ups.

``compute_usage_cost`` is the pure engine: it prices a recipe-line quantity
against an ingredient's pack, bridging mass and volume with the ingredient's
density where needed. Predictable data problems raise a
:class:`~plato.errors.CostingError` subclass; :func:`try_usage_cost` and the
DataFrame helpers turn those into values so pages can degrade gracefully.
"""

from __future__ import annotations

import dataclasses
import logging
import math
from dataclasses import dataclass, field
from typing import Mapping, Optional, Sequence

import pandas as pd

from .currency import MISSING, format_currency
from .densities import get_ingredient_density
from .errors import (
    CostingError,
    IncompatibleUnits,
    InvalidPackQuantity,
    MissingDensity,
    RecipeCycleError,
    UnknownUnit,
)
from .units import Family, UNIT_FAMILY, convert_between_units, resolve_unit, to_base, usable_density
from .utils import normalize_ingredients, normalise_key

logger = logging.getLogger(__name__)

INVALID_INPUT = "InvalidInput"
UNKNOWN_INGREDIENT = "UnknownIngredient"
UNKNOWN_RECIPE = "UnknownRecipe"


@dataclass(frozen=True)
class Usage:
    quantity: float
    unit: str

    @classmethod
    def from_values(cls, quantity, unit) -> "Usage":
        """Build a validated usage from loose form/CSV values."""

        usage = cls(quantity=_as_float(quantity), unit=resolve_unit(unit))
        validate_usage(usage)
        return usage


@dataclass(frozen=True)
class Ingredient:
    pack_quantity: float
    pack_unit: str
    pack_price: float
    density_g_per_ml: Optional[float] = None
    name: str = ""
    ingredient_id: object = None

    @classmethod
    def from_values(
        cls,
        pack_quantity,
        pack_unit,
        pack_price,
        density_g_per_ml=None,
        *,
        name: str = "",
        ingredient_id: object = None,
    ) -> "Ingredient":
        ingredient = cls(
            pack_quantity=_as_float(pack_quantity),
            pack_unit=resolve_unit(pack_unit),
            pack_price=_as_float(pack_price),
            density_g_per_ml=usable_density(density_g_per_ml),
            name=str(name or ""),
            ingredient_id=ingredient_id,
        )
        validate_ingredient(ingredient)
        return ingredient


@dataclass(frozen=True)
class CostResult:
    """Outcome of costing one usage: either ``cost`` or ``error`` is set."""

    cost: Optional[float] = None
    error: Optional[CostingError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def error_kind(self) -> Optional[str]:
        return self.error.kind if self.error is not None else None

    def value_or(self, default: float = 0.0) -> float:
        return self.cost if self.error is None and self.cost is not None else default

    def display(self, currency: str | None = None, fallback: str = MISSING) -> str:
        if self.error is not None:
            return fallback
        return format_currency(self.cost, currency)


def _as_float(value) -> float:
    if value is None or value == "":
        return math.nan
    try:
        return float(value)
    except (TypeError, ValueError):
        return math.nan


def validate_usage(usage: Usage) -> None:
    quantity = _as_float(usage.quantity)
    if math.isnan(quantity) or quantity < 0:
        raise ValueError(f"Usage quantity must be a non-negative number (got {usage.quantity!r})")


def validate_ingredient(ingredient: Ingredient) -> None:
    price = _as_float(ingredient.pack_price)
    if math.isnan(price) or price < 0:
        raise ValueError(f"Pack price must be a non-negative number (got {ingredient.pack_price!r})")


def cost_per_base_unit(pack_price: float, pack_quantity: float, pack_unit: str) -> float:
    """Price of one g, ml or count unit of the pack."""

    if not _as_float(pack_quantity) > 0:
        raise InvalidPackQuantity(pack_quantity)
    pack_amount, _ = to_base(float(pack_quantity), pack_unit)
    return pack_price / pack_amount


def compute_usage_cost(usage: Usage, ingredient: Ingredient) -> float:
    """Return the cost of ``usage`` given the ingredient's pack details.

    Raises :class:`InvalidPackQuantity`, :class:`UnknownUnit`,
    :class:`IncompatibleUnits` or :class:`MissingDensity`. No rounding is
    applied.
    """

    if not _as_float(ingredient.pack_quantity) > 0:
        raise InvalidPackQuantity(ingredient.pack_quantity)

    usage_unit = resolve_unit(usage.unit)
    pack_unit = resolve_unit(ingredient.pack_unit)

    usage_amount, usage_base = to_base(usage.quantity, usage_unit)
    pack_amount, pack_base = to_base(float(ingredient.pack_quantity), pack_unit)

    if usage_base != pack_base:
        usage_family = UNIT_FAMILY[usage_unit]
        pack_family = UNIT_FAMILY[pack_unit]
        if Family.COUNT in (usage_family, pack_family):
            raise IncompatibleUnits(usage_unit, pack_unit)
        density = usable_density(ingredient.density_g_per_ml)
        if density is None:
            raise MissingDensity(usage_unit, pack_unit, ingredient.name or None)
        if usage_family is Family.MASS:
            usage_amount = usage_amount / density
        else:
            usage_amount = usage_amount * density

    price_per_base = ingredient.pack_price / pack_amount
    return usage_amount * price_per_base


def with_reference_density(
    ingredient: Ingredient, densities: Optional[Mapping[str, float]] = None
) -> Ingredient:
    """Fill a missing density from the reference table, matched by name."""

    if usable_density(ingredient.density_g_per_ml) is not None:
        return ingredient
    density = get_ingredient_density(ingredient.name, densities)
    if density is None:
        return ingredient
    return dataclasses.replace(ingredient, density_g_per_ml=density)


def compute_usage_cost_with_density(
    usage: Usage, ingredient: Ingredient, densities: Optional[Mapping[str, float]] = None
) -> float:
    return compute_usage_cost(usage, with_reference_density(ingredient, densities))


def try_usage_cost(
    usage: Usage, ingredient: Ingredient, *, reference_densities: bool = False
) -> CostResult:
    """Cost ``usage`` and return domain failures as a :class:`CostResult`."""

    if reference_densities:
        ingredient = with_reference_density(ingredient)
    try:
        return CostResult(cost=compute_usage_cost(usage, ingredient))
    except CostingError as exc:
        logger.debug("Costing %r failed: %s", ingredient.name or ingredient.pack_unit, exc)
        return CostResult(error=exc)


def cost_per_output_unit(total_cost: float, yield_quantity: float) -> float:
    if not yield_quantity or yield_quantity <= 0:
        return total_cost
    return total_cost / yield_quantity


def cost_per_serving(total_cost: float, servings: float) -> Optional[float]:
    if servings is None or pd.isna(servings) or servings <= 0:
        return None
    return total_cost / servings


def food_cost_percentage(cost_per_serving: float, selling_price: float) -> Optional[float]:
    if selling_price is None or pd.isna(selling_price) or selling_price <= 0:
        return None
    return cost_per_serving / selling_price * 100


# -- Recipe roll-ups -----------------------------------------------------------


@dataclass(frozen=True)
class RecipeItem:
    ref: object
    quantity: float
    unit: str
    line_id: object = None


@dataclass
class Recipe:
    recipe_id: object
    name: str = ""
    yield_quantity: float = 1.0
    yield_unit: str = "each"
    menu_price: float = 0.0
    ingredients: list[RecipeItem] = field(default_factory=list)
    sub_recipes: list[RecipeItem] = field(default_factory=list)


@dataclass
class LineCost:
    ref: object
    name: str
    quantity: float
    unit: str
    cost: float
    cost_per_unit: Optional[float]
    line_id: object = None
    error: Optional[str] = None
    message: str = ""


@dataclass
class CostBreakdown:
    recipe_id: object
    name: str
    ingredient_costs: list[LineCost]
    sub_recipe_costs: list[LineCost]
    total_cost: float
    cost_per_output_unit: float

    @property
    def lines(self) -> list[LineCost]:
        return self.ingredient_costs + self.sub_recipe_costs

    @property
    def problems(self) -> list[LineCost]:
        return [line for line in self.lines if line.error]


def _problem(item: RecipeItem, name: str, kind: str, message: str) -> LineCost:
    return LineCost(
        ref=item.ref,
        name=name,
        quantity=item.quantity,
        unit=item.unit,
        cost=0.0,
        cost_per_unit=None,
        line_id=item.line_id,
        error=kind,
        message=message,
    )


def _quantity_in_yield_unit(quantity: float, unit: str, yield_unit: str) -> float:
    if normalise_key(unit) == normalise_key(yield_unit):
        return quantity
    return convert_between_units(quantity, unit, yield_unit)


def calculate_recipe_cost(
    recipe: Recipe,
    ingredients: Mapping[object, Ingredient],
    recipes: Mapping[object, Recipe],
    *,
    strict: bool = True,
    reference_densities: bool = False,
    _path: Sequence[object] = (),
) -> CostBreakdown:
    """Cost every line of ``recipe``, recursing into sub-recipes.

    Lines that fail with a :class:`CostingError` are kept in the breakdown with
    a zero cost and their error kind. Unknown ingredient or sub-recipe ids raise
    ``KeyError`` when ``strict``; otherwise they are recorded as problems too.
    A recipe that reaches itself raises :class:`RecipeCycleError` regardless of
    ``strict``.
    """

    path = list(_path) + [recipe.recipe_id]
    if recipe.recipe_id in _path:
        raise RecipeCycleError(path)

    ingredient_costs: list[LineCost] = []
    for item in recipe.ingredients:
        ingredient = ingredients.get(item.ref)
        if ingredient is None:
            if strict:
                raise KeyError(f"Ingredient {item.ref!r} not found")
            ingredient_costs.append(
                _problem(item, str(item.ref), UNKNOWN_INGREDIENT, f"Ingredient {item.ref!r} not found")
            )
            continue

        name = ingredient.name or str(item.ref)
        usage = Usage(quantity=item.quantity, unit=item.unit)
        try:
            validate_usage(usage)
            validate_ingredient(ingredient)
        except ValueError as exc:
            ingredient_costs.append(_problem(item, name, INVALID_INPUT, str(exc)))
            continue

        result = try_usage_cost(usage, ingredient, reference_densities=reference_densities)
        if not result.ok:
            ingredient_costs.append(_problem(item, name, result.error_kind, str(result.error)))
            continue

        try:
            per_unit = cost_per_base_unit(ingredient.pack_price, ingredient.pack_quantity, ingredient.pack_unit)
        except CostingError:
            per_unit = None
        ingredient_costs.append(
            LineCost(
                ref=item.ref,
                name=name,
                quantity=item.quantity,
                unit=item.unit,
                cost=result.cost,
                cost_per_unit=per_unit,
                line_id=item.line_id,
            )
        )

    sub_recipe_costs: list[LineCost] = []
    for item in recipe.sub_recipes:
        sub_recipe = recipes.get(item.ref)
        if sub_recipe is None:
            if strict:
                raise KeyError(f"Sub-recipe {item.ref!r} not found")
            sub_recipe_costs.append(
                _problem(item, str(item.ref), UNKNOWN_RECIPE, f"Sub-recipe {item.ref!r} not found")
            )
            continue

        try:
            validate_usage(Usage(quantity=item.quantity, unit=item.unit))
        except ValueError as exc:
            sub_recipe_costs.append(_problem(item, sub_recipe.name, INVALID_INPUT, str(exc)))
            continue

        sub_breakdown = calculate_recipe_cost(
            sub_recipe,
            ingredients,
            recipes,
            strict=strict,
            reference_densities=reference_densities,
            _path=path,
        )
        per_unit = cost_per_output_unit(sub_breakdown.total_cost, sub_recipe.yield_quantity)
        try:
            quantity = _quantity_in_yield_unit(item.quantity, item.unit, sub_recipe.yield_unit)
        except CostingError as exc:
            sub_recipe_costs.append(_problem(item, sub_recipe.name, exc.kind, str(exc)))
            continue

        sub_recipe_costs.append(
            LineCost(
                ref=item.ref,
                name=sub_recipe.name,
                quantity=item.quantity,
                unit=item.unit,
                cost=per_unit * quantity,
                cost_per_unit=per_unit,
                line_id=item.line_id,
            )
        )

    total = sum(line.cost for line in ingredient_costs) + sum(line.cost for line in sub_recipe_costs)
    return CostBreakdown(
        recipe_id=recipe.recipe_id,
        name=recipe.name,
        ingredient_costs=ingredient_costs,
        sub_recipe_costs=sub_recipe_costs,
        total_cost=total,
        cost_per_output_unit=cost_per_output_unit(total, recipe.yield_quantity),
    )


def format_cost_breakdown(breakdown: CostBreakdown, currency: str | None = None) -> str:
    """Plain-text summary used for printing and the export notes sheet."""

    out = [f"Total Recipe Cost: {format_currency(breakdown.total_cost, currency)}"]
    out.append(f"Cost per output unit: {format_currency(breakdown.cost_per_output_unit, currency)}")
    out.append("")

    sections = (("Ingredient Costs:", breakdown.ingredient_costs), ("Sub-Recipe Costs:", breakdown.sub_recipe_costs))
    for title, lines in sections:
        if not lines:
            continue
        out.append(title)
        for line in lines:
            cost = MISSING if line.error else format_currency(line.cost, currency)
            suffix = f" ({line.error})" if line.error else ""
            out.append(f"  • {line.name}: {line.quantity:g} {line.unit} = {cost}{suffix}")
        out.append("")

    return "\n".join(out)


# -- DataFrame helpers used by the Streamlit pages -----------------------------


def ingredient_cost_table(ingredients: pd.DataFrame | None) -> pd.DataFrame:
    """Return the ingredient master with ``base_unit``/``cost_per_base`` columns."""

    df = normalize_ingredients(ingredients)
    base_units: list[Optional[str]] = []
    per_base: list[Optional[float]] = []
    errors: list[Optional[str]] = []
    for _, row in df.iterrows():
        try:
            _, base = to_base(1.0, row["pack_unit"])
            price = cost_per_base_unit(row["pack_price"], row["pack_quantity"], row["pack_unit"])
        except CostingError as exc:
            base_units.append(None)
            per_base.append(None)
            errors.append(exc.kind)
            continue
        pack_price = _as_float(row["pack_price"])
        if math.isnan(pack_price) or pack_price < 0:
            base_units.append(base)
            per_base.append(None)
            errors.append(INVALID_INPUT)
            continue
        base_units.append(base)
        per_base.append(price)
        errors.append(None)

    df["base_unit"] = base_units
    df["cost_per_base"] = pd.to_numeric(pd.Series(per_base, index=df.index, dtype=object), errors="coerce")
    df["cost_error"] = pd.Series(errors, index=df.index, dtype=object)
    return df


def _ingredient_index(ingredients: pd.DataFrame) -> dict[str, Ingredient]:
    index: dict[str, Ingredient] = {}
    for _, row in ingredients.iterrows():
        ingredient = Ingredient(
            pack_quantity=row["pack_quantity"],
            pack_unit=row["pack_unit"],
            pack_price=row["pack_price"],
            density_g_per_ml=usable_density(row["density_g_per_ml"]),
            name=row["name"],
            ingredient_id=row["ingredient_id"],
        )
        index[row["ingredient_key"]] = ingredient
        id_key = normalise_key(row["ingredient_id"])
        if id_key:
            index.setdefault(id_key, ingredient)
    return index


def _prepare_lines(recipe_lines: pd.DataFrame | None) -> pd.DataFrame:
    columns = ["recipe_id", "line_id", "line_type", "ref", "qty", "uom", "prep_note"]
    if recipe_lines is None or recipe_lines.empty:
        return pd.DataFrame(columns=columns)

    lines = recipe_lines.copy()
    if "ref" not in lines.columns:
        lines["ref"] = lines.get("ingredient", "")
    for col in ("recipe_id", "ref", "uom", "prep_note"):
        if col not in lines.columns:
            lines[col] = ""
        lines[col] = lines[col].fillna("").astype(str).str.strip()

    if "line_type" not in lines.columns:
        lines["line_type"] = "INGREDIENT"
    lines["line_type"] = lines["line_type"].fillna("INGREDIENT").astype(str).str.upper().str.strip()
    lines.loc[lines["line_type"] == "", "line_type"] = "INGREDIENT"

    if "line_id" not in lines.columns:
        lines["line_id"] = lines.groupby("recipe_id").cumcount() + 1

    if "qty" not in lines.columns:
        lines["qty"] = pd.NA
    lines["qty"] = pd.to_numeric(lines["qty"], errors="coerce")
    return lines.reset_index(drop=True)


def _resolve_yield_unit(value) -> tuple[str, Optional[str]]:
    """Canonical yield unit, falling back to ``each`` with the error kind."""

    text = "" if value is None or pd.isna(value) else str(value).strip()
    if not text:
        return "each", None
    try:
        return resolve_unit(text), None
    except UnknownUnit as exc:
        logger.warning("Yield unit %r is not recognised; costing per each", text)
        return "each", exc.kind


def _prepare_recipes(recipes: pd.DataFrame | None) -> pd.DataFrame:
    columns = ["recipe_id", "name", "menu_price", "yield_qty", "yield_uom", "yield_error"]
    if recipes is None or recipes.empty:
        return pd.DataFrame(columns=columns)

    slim = recipes.copy()
    for col in columns:
        if col not in slim.columns:
            slim[col] = 0.0 if col in {"menu_price", "yield_qty"} else ""
    slim["recipe_id"] = slim["recipe_id"].fillna("").astype(str).str.strip()
    slim["name"] = slim["name"].fillna("").astype(str)
    resolved = [_resolve_yield_unit(value) for value in slim["yield_uom"]]
    slim["yield_uom"] = [unit for unit, _ in resolved]
    slim["yield_error"] = pd.Series([kind for _, kind in resolved], index=slim.index, dtype=object)
    slim["menu_price"] = pd.to_numeric(slim["menu_price"], errors="coerce").fillna(0.0)
    slim["yield_qty"] = pd.to_numeric(slim["yield_qty"], errors="coerce").fillna(0.0)
    return slim


def _build_recipes(recipes: pd.DataFrame, lines: pd.DataFrame) -> dict[str, Recipe]:
    built: dict[str, Recipe] = {}
    for _, row in recipes.iterrows():
        built[row["recipe_id"]] = Recipe(
            recipe_id=row["recipe_id"],
            name=row["name"],
            yield_quantity=float(row["yield_qty"]),
            yield_unit=row["yield_uom"],
            menu_price=float(row["menu_price"]),
        )

    id_by_name = {normalise_key(recipe.name): recipe_id for recipe_id, recipe in built.items() if recipe.name}

    for idx, row in lines.iterrows():
        recipe = built.get(row["recipe_id"])
        if recipe is None:
            recipe = built.setdefault(row["recipe_id"], Recipe(recipe_id=row["recipe_id"], name=row["recipe_id"]))
        if row["line_type"] == "RECIPE":
            ref = row["ref"] if row["ref"] in built else id_by_name.get(normalise_key(row["ref"]), row["ref"])
            item = RecipeItem(ref=ref, quantity=row["qty"], unit=row["uom"], line_id=idx)
            recipe.sub_recipes.append(item)
        else:
            item = RecipeItem(ref=normalise_key(row["ref"]), quantity=row["qty"], unit=row["uom"], line_id=idx)
            recipe.ingredients.append(item)
    return built


def compute_recipe_costs(
    recipes: pd.DataFrame | None,
    recipe_lines: pd.DataFrame | None,
    ingredients: pd.DataFrame | None,
    *,
    reference_densities: bool = False,
) -> tuple[pd.DataFrame, pd.DataFrame]:
    """Compute costed recipe lines and per-recipe profitability summaries.

    Costing failures never raise here: the affected line gets a ``NaN``
    ``line_cost`` and its error kind in ``cost_error``, and is excluded from the
    recipe total.
    """

    summary_columns = [
        "recipe_id",
        "name",
        "menu_price",
        "recipe_cost",
        "cost_per_serving",
        "margin",
        "margin_pct",
        "food_cost_pct",
        "yield_qty",
        "yield_uom",
        "yield_error",
        "problem_lines",
    ]

    lines = _prepare_lines(recipe_lines)
    recipes_slim = _prepare_recipes(recipes)
    ingredient_table = ingredient_cost_table(ingredients)
    index = _ingredient_index(ingredient_table)
    built = _build_recipes(recipes_slim, lines)
    yield_errors = dict(zip(recipes_slim["recipe_id"], recipes_slim["yield_error"]))

    line_results: dict[tuple[str, object], LineCost] = {}
    summary_rows = []
    for recipe_id, recipe in built.items():
        try:
            breakdown = calculate_recipe_cost(
                recipe, index, built, strict=False, reference_densities=reference_densities
            )
        except RecipeCycleError as exc:
            logger.warning("Skipping recipe %s: %s", recipe_id, exc)
            for item in recipe.ingredients + recipe.sub_recipes:
                line_results[(recipe_id, item.line_id)] = _problem(item, str(item.ref), "RecipeCycleError", str(exc))
            breakdown = None

        for line in breakdown.lines if breakdown else []:
            line_results[(recipe_id, line.line_id)] = line

        total = breakdown.total_cost if breakdown else 0.0
        serving = cost_per_serving(total, recipe.yield_quantity)
        serving_cost = serving if serving is not None else total
        margin = recipe.menu_price - serving_cost
        summary_rows.append(
            {
                "recipe_id": recipe_id,
                "name": recipe.name,
                "menu_price": recipe.menu_price,
                "recipe_cost": total,
                "cost_per_serving": serving,
                "margin": margin,
                "margin_pct": (margin / recipe.menu_price * 100) if recipe.menu_price > 0 else None,
                "food_cost_pct": food_cost_percentage(serving_cost, recipe.menu_price),
                "yield_qty": recipe.yield_quantity,
                "yield_uom": recipe.yield_unit,
                "yield_error": yield_errors.get(recipe_id),
                "problem_lines": len(breakdown.problems) if breakdown else len(recipe.ingredients + recipe.sub_recipes),
            }
        )

    costs: list[Optional[float]] = []
    cost_errors: list[Optional[str]] = []
    names: list[str] = []
    for idx, row in lines.iterrows():
        result = line_results.get((row["recipe_id"], idx))
        if result is None or result.error:
            costs.append(None)
            cost_errors.append(result.error if result is not None else UNKNOWN_RECIPE)
        else:
            costs.append(result.cost)
            cost_errors.append(None)
        names.append(result.name if result is not None else row["ref"])

    lines = lines.copy()
    lines["name"] = names
    lines["line_cost"] = pd.to_numeric(pd.Series(costs, index=lines.index, dtype=object), errors="coerce")
    lines["cost_error"] = pd.Series(cost_errors, index=lines.index, dtype=object)

    summary = pd.DataFrame(summary_rows, columns=summary_columns)
    for col in ("cost_per_serving", "margin_pct", "food_cost_pct"):
        summary[col] = pd.to_numeric(summary[col], errors="coerce")
    return lines, summary

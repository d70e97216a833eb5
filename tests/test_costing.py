import math

import pandas as pd
import pytest

from plato import costing
from plato.costing import Ingredient, Recipe, RecipeItem, Usage
from plato.errors import (
    CostingError,
    IncompatibleUnits,
    InvalidPackQuantity,
    MissingDensity,
    RecipeCycleError,
    UnknownUnit,
)

FLOUR = Ingredient(pack_quantity=1000, pack_unit="g", pack_price=2.50, name="flour")
MILK = Ingredient(pack_quantity=1000, pack_unit="ml", pack_price=3.00, density_g_per_ml=1.03, name="milk")
EGGS = Ingredient(pack_quantity=12, pack_unit="each", pack_price=6.00, name="eggs")


def test_same_unit_usage():
    assert costing.compute_usage_cost(Usage(500, "g"), FLOUR) == pytest.approx(1.25)


def test_scaled_unit_usage():
    assert costing.compute_usage_cost(Usage(1, "kg"), FLOUR) == pytest.approx(2.50)


def test_mass_usage_against_volume_pack():
    # 250 g of milk is 250 / 1.03 ml
    assert costing.compute_usage_cost(Usage(250, "g"), MILK) == pytest.approx(0.72815, rel=1e-4)


def test_count_usage():
    assert costing.compute_usage_cost(Usage(3, "each"), EGGS) == pytest.approx(1.50)


def test_whole_pack_costs_pack_price():
    assert costing.compute_usage_cost(Usage(1000, "g"), FLOUR) == pytest.approx(FLOUR.pack_price)
    assert costing.compute_usage_cost(Usage(1, "l"), MILK) == pytest.approx(MILK.pack_price)


def test_equivalent_quantities_cost_the_same():
    grams = costing.compute_usage_cost(Usage(1000, "g"), FLOUR)
    kilos = costing.compute_usage_cost(Usage(1, "kg"), FLOUR)
    assert grams == pytest.approx(kilos)


def test_cost_is_linear_in_quantity():
    one = costing.compute_usage_cost(Usage(120, "g"), FLOUR)
    three = costing.compute_usage_cost(Usage(360, "g"), FLOUR)
    assert three == pytest.approx(3 * one)
    assert costing.compute_usage_cost(Usage(0, "g"), FLOUR) == 0


def test_volume_usage_against_mass_pack_uses_density():
    butter = Ingredient(pack_quantity=250, pack_unit="g", pack_price=2.00, density_g_per_ml=0.91)
    # 1 tbsp = 15 ml = 13.65 g
    assert costing.compute_usage_cost(Usage(1, "tbsp"), butter) == pytest.approx(13.65 * 2.00 / 250)


def test_density_round_trip_matches_direct_cost():
    ml_cost = costing.compute_usage_cost(Usage(100, "ml"), MILK)
    grams = 100 * MILK.density_g_per_ml
    assert costing.compute_usage_cost(Usage(grams, "g"), MILK) == pytest.approx(ml_cost)


def test_missing_density_is_a_domain_error():
    cream = Ingredient(pack_quantity=500, pack_unit="ml", pack_price=2.0, name="cream")
    with pytest.raises(MissingDensity) as excinfo:
        costing.compute_usage_cost(Usage(100, "g"), cream)
    assert excinfo.value.ingredient == "cream"
    assert excinfo.value.kind == "MissingDensity"


@pytest.mark.parametrize("pack_quantity", [0, -5, float("nan")])
def test_invalid_pack_quantity(pack_quantity):
    ingredient = Ingredient(pack_quantity=pack_quantity, pack_unit="g", pack_price=1.0)
    with pytest.raises(InvalidPackQuantity):
        costing.compute_usage_cost(Usage(10, "g"), ingredient)


def test_unknown_unit():
    with pytest.raises(UnknownUnit):
        costing.compute_usage_cost(Usage(1, "handful"), FLOUR)


@pytest.mark.parametrize("usage_unit, pack", [("slices", EGGS), ("g", EGGS), ("each", FLOUR)])
def test_count_units_are_incompatible(usage_unit, pack):
    with pytest.raises(IncompatibleUnits):
        costing.compute_usage_cost(Usage(1, usage_unit), pack)


def test_negative_inputs_are_validation_errors():
    with pytest.raises(ValueError) as excinfo:
        Usage.from_values(-1, "g")
    assert not isinstance(excinfo.value, CostingError)
    with pytest.raises(ValueError) as excinfo:
        Ingredient.from_values(1000, "g", -2.5)
    assert not isinstance(excinfo.value, CostingError)


def test_from_values_resolves_units_and_densities():
    ingredient = Ingredient.from_values("1000", "Grams", "2.5", float("nan"), name="flour")
    assert ingredient.pack_unit == "g"
    assert ingredient.pack_quantity == 1000.0
    assert ingredient.density_g_per_ml is None
    assert Usage.from_values("2", "Cups").unit == "cup"


def test_try_usage_cost_returns_errors_as_values():
    cream = Ingredient(pack_quantity=500, pack_unit="ml", pack_price=2.0, name="cream")
    result = costing.try_usage_cost(Usage(100, "g"), cream)
    assert not result.ok
    assert result.error_kind == "MissingDensity"
    assert result.value_or() == 0.0
    assert result.display("GBP") == "—"

    ok = costing.try_usage_cost(Usage(500, "g"), FLOUR)
    assert ok.ok
    assert ok.display("GBP") == "£1.25"


def test_reference_densities_fill_gaps():
    cream = Ingredient(pack_quantity=500, pack_unit="ml", pack_price=2.0, name="Double Cream")
    result = costing.try_usage_cost(Usage(100, "g"), cream, reference_densities=True)
    assert result.cost == pytest.approx(0.40)
    custom = costing.compute_usage_cost_with_density(Usage(100, "g"), cream, {"double cream": 0.5})
    assert custom == pytest.approx(0.80)


def test_cost_per_base_unit():
    assert costing.cost_per_base_unit(2.5, 1, "kg") == pytest.approx(0.0025)
    with pytest.raises(InvalidPackQuantity):
        costing.cost_per_base_unit(2.5, 0, "kg")


def test_serving_helpers():
    assert costing.cost_per_output_unit(10, 4) == 2.5
    assert costing.cost_per_output_unit(10, 0) == 10
    assert costing.cost_per_serving(10, 0) is None
    assert costing.food_cost_percentage(3, 10) == pytest.approx(30)
    assert costing.food_cost_percentage(3, 0) is None


def _kitchen():
    ingredients = {
        "pasta": Ingredient(1000, "g", 2.0, name="pasta"),
        "milk": Ingredient(1000, "ml", 1.0, density_g_per_ml=1.03, name="milk"),
        "cream": Ingredient(500, "ml", 2.0, name="cream"),
    }
    sauce = Recipe(
        recipe_id="sauce",
        name="White sauce",
        yield_quantity=500,
        yield_unit="ml",
        ingredients=[RecipeItem("milk", 500, "ml", line_id=1)],
    )
    dish = Recipe(
        recipe_id="dish",
        name="Pasta bake",
        yield_quantity=2,
        menu_price=5.0,
        ingredients=[RecipeItem("pasta", 200, "g", line_id=1), RecipeItem("cream", 100, "g", line_id=2)],
        sub_recipes=[RecipeItem("sauce", 0.25, "l", line_id=3)],
    )
    return ingredients, {"sauce": sauce, "dish": dish}


def test_recipe_breakdown_rolls_up_sub_recipes():
    ingredients, recipes = _kitchen()
    breakdown = costing.calculate_recipe_cost(recipes["dish"], ingredients, recipes)

    assert [line.name for line in breakdown.ingredient_costs] == ["pasta", "cream"]
    assert breakdown.ingredient_costs[0].cost == pytest.approx(0.40)
    assert breakdown.sub_recipe_costs[0].cost == pytest.approx(0.25)
    assert breakdown.total_cost == pytest.approx(0.65)
    assert breakdown.cost_per_output_unit == pytest.approx(0.325)

    problems = breakdown.problems
    assert len(problems) == 1
    assert problems[0].error == "MissingDensity"
    assert problems[0].cost == 0.0


def test_recipe_breakdown_unknown_refs():
    ingredients, recipes = _kitchen()
    recipes["dish"].ingredients.append(RecipeItem("saffron", 1, "g", line_id=4))
    with pytest.raises(KeyError):
        costing.calculate_recipe_cost(recipes["dish"], ingredients, recipes)

    breakdown = costing.calculate_recipe_cost(recipes["dish"], ingredients, recipes, strict=False)
    assert breakdown.problems[-1].error == "UnknownIngredient"


def test_recipe_cycle_detected():
    ingredients, recipes = _kitchen()
    recipes["sauce"].sub_recipes.append(RecipeItem("dish", 1, "each"))
    with pytest.raises(RecipeCycleError) as excinfo:
        costing.calculate_recipe_cost(recipes["dish"], ingredients, recipes, strict=False)
    assert excinfo.value.path == ["dish", "sauce", "dish"]
    assert "dish -> sauce -> dish" in str(excinfo.value)


def test_format_cost_breakdown():
    ingredients, recipes = _kitchen()
    text = costing.format_cost_breakdown(
        costing.calculate_recipe_cost(recipes["dish"], ingredients, recipes), "GBP"
    )
    assert text.startswith("Total Recipe Cost: £0.65")
    assert "cream: 100 g = — (MissingDensity)" in text
    assert "Sub-Recipe Costs:" in text


def _frames():
    ingredients = pd.DataFrame(
        {
            "name": ["Pasta", "Milk", "Cream"],
            "pack_quantity": [1000, 1000, 500],
            "pack_unit": ["g", "ml", "ml"],
            "pack_price": [2.0, 1.0, 2.0],
            "density_g_per_ml": [None, 1.03, None],
        }
    )
    recipes = pd.DataFrame(
        {
            "recipe_id": ["R1", "R2"],
            "name": ["Pasta bake", "Sauce"],
            "yield_qty": [2, 500],
            "yield_uom": ["each", "ml"],
            "menu_price": [5.0, 0.0],
        }
    )
    lines = pd.DataFrame(
        {
            "recipe_id": ["R1", "R1", "R1", "R2"],
            "line_type": ["INGREDIENT", "RECIPE", "INGREDIENT", "INGREDIENT"],
            "ref": ["pasta", "Sauce", "Cream", "Milk"],
            "qty": [200, 250, 100, 500],
            "uom": ["g", "ml", "g", "ml"],
        }
    )
    return ingredients, recipes, lines


def test_compute_recipe_costs_lines_and_summary():
    ingredients, recipes, lines = _frames()
    costed, summary = costing.compute_recipe_costs(recipes, lines, ingredients)

    assert list(costed["line_cost"].iloc[:2]) == pytest.approx([0.40, 0.25])
    assert math.isnan(costed.loc[2, "line_cost"])
    assert costed.loc[2, "cost_error"] == "MissingDensity"
    assert costed.loc[1, "name"] == "Sauce"

    dish = summary.set_index("recipe_id").loc["R1"]
    assert dish["recipe_cost"] == pytest.approx(0.65)
    assert dish["cost_per_serving"] == pytest.approx(0.325)
    assert dish["margin"] == pytest.approx(4.675)
    assert dish["food_cost_pct"] == pytest.approx(6.5)
    assert dish["problem_lines"] == 1

    sauce = summary.set_index("recipe_id").loc["R2"]
    assert math.isnan(sauce["food_cost_pct"])


def test_compute_recipe_costs_with_reference_densities():
    ingredients, recipes, lines = _frames()
    costed, summary = costing.compute_recipe_costs(recipes, lines, ingredients, reference_densities=True)
    assert costed.loc[2, "line_cost"] == pytest.approx(0.40)
    assert summary.set_index("recipe_id").loc["R1", "recipe_cost"] == pytest.approx(1.05)


def test_compute_recipe_costs_cycle_marks_lines():
    ingredients, recipes, _ = _frames()
    lines = pd.DataFrame(
        {
            "recipe_id": ["R1", "R2"],
            "line_type": ["RECIPE", "RECIPE"],
            "ref": ["R2", "R1"],
            "qty": [1, 1],
            "uom": ["ml", "each"],
        }
    )
    costed, summary = costing.compute_recipe_costs(recipes, lines, ingredients)
    assert list(costed["cost_error"]) == ["RecipeCycleError", "RecipeCycleError"]
    assert list(summary["recipe_cost"]) == [0.0, 0.0]


def test_compute_recipe_costs_handles_empty_inputs():
    costed, summary = costing.compute_recipe_costs(None, None, None)
    assert costed.empty
    assert summary.empty
    assert "food_cost_pct" in summary.columns


def test_ingredient_cost_table_reports_bad_packs():
    table = costing.ingredient_cost_table(
        pd.DataFrame(
            {
                "name": ["Flour", "Ghost", "Mystery"],
                "pack_quantity": [1, 0, 5],
                "pack_unit": ["kg", "g", "bushel"],
                "pack_price": [2.5, 1.0, 1.0],
            }
        )
    )
    assert table.loc[0, "base_unit"] == "g"
    assert table.loc[0, "cost_per_base"] == pytest.approx(0.0025)
    assert list(table["cost_error"]) == [None, "InvalidPackQuantity", "UnknownUnit"]


def test_cost_error_columns_keep_none_for_clean_rows():
    ingredients, recipes, lines = _frames()
    costed, _ = costing.compute_recipe_costs(recipes, lines, ingredients)
    assert costed["cost_error"].dtype == object
    assert costed.loc[0, "cost_error"] is None
    table = costing.ingredient_cost_table(ingredients)
    assert table["cost_error"].dtype == object
    assert table.loc[0, "cost_error"] is None


@pytest.mark.parametrize("price", [None, "", -1.0])
def test_ingredient_cost_table_reports_bad_prices(price):
    table = costing.ingredient_cost_table(
        pd.DataFrame({"name": ["Flour"], "pack_quantity": [1000], "pack_unit": ["g"], "pack_price": [price]})
    )
    assert table.loc[0, "base_unit"] == "g"
    assert math.isnan(table.loc[0, "cost_per_base"])
    assert table.loc[0, "cost_error"] == "InvalidInput"


def test_free_text_yield_unit_costs_per_each():
    ingredients = pd.DataFrame({"name": ["Flour"], "pack_quantity": [1000], "pack_unit": ["g"], "pack_price": [2.0]})
    recipes = pd.DataFrame(
        {
            "recipe_id": ["R1", "R2"],
            "name": ["Dough", "Pizza"],
            "yield_qty": [4, 1],
            "yield_uom": ["portions", "each"],
            "menu_price": [0.0, 8.0],
        }
    )
    lines = pd.DataFrame(
        {
            "recipe_id": ["R1", "R2"],
            "line_type": ["INGREDIENT", "RECIPE"],
            "ref": ["Flour", "R1"],
            "qty": [1000, 1],
            "uom": ["g", "each"],
        }
    )
    costed, summary = costing.compute_recipe_costs(recipes, lines, ingredients)

    assert costed.loc[1, "cost_error"] is None
    assert costed.loc[1, "line_cost"] == pytest.approx(0.50)
    dough = summary.set_index("recipe_id").loc["R1"]
    assert dough["yield_uom"] == "each"
    assert dough["yield_error"] == "UnknownUnit"
    assert summary.set_index("recipe_id").loc["R2", "yield_error"] is None


def test_yield_unit_aliases_are_resolved():
    ingredients = pd.DataFrame({"name": ["Milk"], "pack_quantity": [1], "pack_unit": ["l"], "pack_price": [1.0]})
    recipes = pd.DataFrame(
        {"recipe_id": ["S", "D"], "name": ["Sauce", "Dish"], "yield_qty": [1, 1], "yield_uom": ["Litres", "each"]}
    )
    lines = pd.DataFrame(
        {
            "recipe_id": ["S", "D"],
            "line_type": ["INGREDIENT", "RECIPE"],
            "ref": ["Milk", "S"],
            "qty": [1, 250],
            "uom": ["l", "ml"],
        }
    )
    costed, summary = costing.compute_recipe_costs(recipes, lines, ingredients)
    assert summary.set_index("recipe_id").loc["S", "yield_uom"] == "l"
    assert costed.loc[1, "line_cost"] == pytest.approx(0.25)


USAGE_CASES = [
    (Usage(500, "g"), FLOUR),
    (Usage(2, "cup"), Ingredient(1000, "g", 2.5, density_g_per_ml=0.6, name="flour")),
    (Usage(250, "g"), MILK),
    (Usage(3, "tbsp"), MILK),
    (Usage(1.5, "lb"), MILK),
    (Usage(3, "each"), EGGS),
    (Usage(0, "ml"), MILK),
]


@pytest.mark.parametrize("usage, ingredient", USAGE_CASES)
def test_costing_is_repeatable_and_never_negative(usage, ingredient):
    first = costing.compute_usage_cost(usage, ingredient)
    second = costing.compute_usage_cost(usage, ingredient)
    assert first == second
    assert first >= 0

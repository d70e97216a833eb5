from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional

import pandas as pd

from . import settings
from .constants import INGREDIENT_COLUMNS
from .errors import UnknownUnit
from .units import resolve_unit, usable_density
from .utils import iso_now, next_numeric_id, normalise_key, normalize_ingredients

logger = logging.getLogger(__name__)

_NUMBER_RE = re.compile(r"[$£€¥,\s]")

# Pack/size strings like '6 x 1kg', '6/5 lb', '12x330ml'
PACK_RE = re.compile(
    r"""
    ^\s*
    (?P<pack_count>\d+)\s*[/x×*]\s*
    (?P<unit_qty>\d*\.?\d+)\s*
    (?P<unit_uom>[a-z][a-z .()]*?)
    \s*$
    """,
    re.IGNORECASE | re.VERBOSE,
)

# Single unit pattern for cases like "500g", "2.5 kg", "200 ct"
SINGLE_UNIT_RE = re.compile(
    r"""
    ^\s*
    (?P<unit_qty>\d*\.?\d+)\s*
    (?P<unit_uom>[a-z][a-z .()]*?)
    \s*$
    """,
    re.IGNORECASE | re.VERBOSE,
)

IMPORT_FIELDS = ("name", "supplier", "pack_size", "pack_quantity", "pack_unit", "pack_price",
                 "currency", "density_g_per_ml", "allergens", "notes")


def parse_number(value: Any) -> Optional[float]:
    """Parse prices and quantities such as ``"£1,250.50"``; ``None`` if unusable."""

    if value is None:
        return None
    if isinstance(value, (int, float)):
        return None if isinstance(value, float) and math.isnan(value) else float(value)
    cleaned = _NUMBER_RE.sub("", str(value))
    if not cleaned:
        return None
    try:
        return float(cleaned)
    except ValueError:
        return None


def parse_packsize(s: str | None) -> tuple[int | None, float | None, str | None]:
    if s is None:
        return None, None, None
    text = str(s).strip().lower()
    if not text:
        return None, None, None

    m = PACK_RE.match(text)
    if m:
        pack = int(m.group("pack_count"))
    else:
        m = SINGLE_UNIT_RE.match(text)
        pack = 1
    if not m:
        return None, None, None

    try:
        unit = resolve_unit(m.group("unit_uom"))
    except UnknownUnit:
        return None, None, None
    return pack, float(m.group("unit_qty")), unit


def parse_allergens(value: Any) -> str:
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return ""
    parts = [part.strip() for part in re.split(r"[,;|]", str(value))]
    return ", ".join(part for part in parts if part)


@dataclass
class ImportResult:
    imported: int = 0
    failed: int = 0
    skipped: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.failed == 0

    def errors_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.errors, columns=["row", "error", "data"])


def _clean_text(value: Any) -> str:
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return ""
    return str(value).strip()


def _map_row(raw: Mapping[str, Any], column_mapping: Mapping[str, str]) -> dict[str, Any]:
    mapped: dict[str, Any] = {}
    for ours, theirs in column_mapping.items():
        if theirs and theirs in raw:
            mapped[ours] = raw[theirs]
    return mapped


def _ingredient_record(mapped: Mapping[str, Any]) -> dict[str, Any]:
    """Validate one mapped import row; raises ``ValueError`` with a user-facing reason."""

    name = _clean_text(mapped.get("name"))
    if not name:
        raise ValueError("Name is required")

    pack_quantity = parse_number(mapped.get("pack_quantity"))
    unit_text = _clean_text(mapped.get("pack_unit"))
    pack_count, unit_qty, size_unit = parse_packsize(_clean_text(mapped.get("pack_size")))
    if pack_count is not None:
        if pack_quantity is None:
            pack_quantity = pack_count * unit_qty
        if not unit_text:
            unit_text = size_unit

    if pack_quantity is None or pack_quantity <= 0:
        raise ValueError("Invalid pack quantity")

    pack_price = parse_number(mapped.get("pack_price"))
    if pack_price is None or pack_price < 0:
        raise ValueError("Invalid pack price")

    try:
        pack_unit = resolve_unit(unit_text or "g")
    except UnknownUnit as exc:
        raise ValueError(f"Invalid or unsupported unit {unit_text!r}") from exc

    density = usable_density(parse_number(mapped.get("density_g_per_ml")))
    currency = _clean_text(mapped.get("currency")).upper() or settings.DEFAULT_CURRENCY

    return {
        "name": name,
        "supplier": _clean_text(mapped.get("supplier")),
        "pack_quantity": pack_quantity,
        "pack_unit": pack_unit,
        "pack_price": pack_price,
        "currency": currency,
        "density_g_per_ml": density,
        "allergens": parse_allergens(mapped.get("allergens")),
        "notes": _clean_text(mapped.get("notes")),
        "last_price_update": iso_now(),
    }


def import_ingredients(
    rows: pd.DataFrame,
    column_mapping: Mapping[str, str],
    existing: pd.DataFrame | None = None,
    *,
    update_existing: bool = False,
) -> tuple[pd.DataFrame, ImportResult]:
    """Merge uploaded price-list rows into the ingredient master.

    ``column_mapping`` maps our field names (see ``IMPORT_FIELDS``) to the
    uploaded file's column headers. Rows naming an ingredient that already
    exists are skipped unless ``update_existing`` is set. Invalid rows are
    counted and reported, never raised.
    """

    master = normalize_ingredients(existing)
    master = master.drop(columns=["ingredient_key"]).reset_index(drop=True)
    result = ImportResult()
    if rows is None or rows.empty:
        return master, result

    position = {normalise_key(name): idx for idx, name in master["name"].items()}
    next_id = next_numeric_id(master["ingredient_id"])
    new_records: list[dict[str, Any]] = []

    for row_number, (_, raw) in enumerate(rows.iterrows(), start=1):
        mapped = _map_row(raw.to_dict(), column_mapping)
        try:
            record = _ingredient_record(mapped)
        except ValueError as exc:
            result.failed += 1
            result.errors.append({"row": row_number, "error": str(exc), "data": mapped})
            logger.warning("Import row %d rejected: %s", row_number, exc)
            continue

        key = normalise_key(record["name"])
        if key in position:
            if not update_existing:
                result.skipped += 1
                continue
            idx = position[key]
            if isinstance(idx, int) and idx >= len(master):
                new_records[idx - len(master)].update(record)
            else:
                for column, value in record.items():
                    master.at[idx, column] = value
            result.imported += 1
            continue

        record["ingredient_id"] = str(next_id)
        next_id += 1
        position[key] = len(master) + len(new_records)
        new_records.append(record)
        result.imported += 1

    if new_records:
        master = pd.concat([master, pd.DataFrame(new_records)], ignore_index=True)

    logger.info(
        "Ingredient import: %d imported, %d skipped, %d failed",
        result.imported,
        result.skipped,
        result.failed,
    )
    return master.loc[:, list(INGREDIENT_COLUMNS)], result

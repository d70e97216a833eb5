"""File-backed tables for the ingredient master and recipes."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterable, Iterator

import pandas as pd
import streamlit as st
from filelock import FileLock, Timeout
from zoneinfo import ZoneInfo

from . import constants, settings, utils
from .constants import (
    DATA_SUBDIRS,
    IMPORT_LOG_TABLE,
    INGREDIENTS_TABLE,
    RECIPE_LINES_TABLE,
    RECIPES_TABLE,
    TZ_NAME,
)

__all__ = [
    "append_table",
    "ensure_data_dirs",
    "get_metrics",
    "read_table",
    "record_import",
    "toast_err",
    "toast_info",
    "toast_ok",
    "write_table",
]

logger = logging.getLogger(__name__)

TZ = ZoneInfo(TZ_NAME)


def ensure_data_dirs() -> None:
    for sub in DATA_SUBDIRS:
        (constants.DATA_ROOT / sub).mkdir(parents=True, exist_ok=True)


def _resolve(path: str | Path) -> Path:
    """Resolve a logical table path (relative to ``DATA_ROOT``) to a CSV file."""

    if isinstance(path, Path):
        candidate = path
    else:
        slug = str(path).strip()
        candidate = Path(slug if slug.endswith(".csv") else f"{slug}.csv")

    if not candidate.is_absolute():
        candidate = constants.DATA_ROOT / candidate

    candidate.parent.mkdir(parents=True, exist_ok=True)
    return candidate


def _lock_for(csv_path: Path) -> FileLock:
    """Return a :class:`FileLock` guarding ``csv_path``."""

    return FileLock(str(csv_path.with_suffix(csv_path.suffix + ".lock")), timeout=settings.LOCK_TIMEOUT)


@contextmanager
def _locked(csv_path: Path) -> Iterator[None]:
    lock = _lock_for(csv_path)
    try:
        with lock:
            yield
    except Timeout as exc:
        logger.error("Timed out waiting for lock on %s", csv_path)
        raise Timeout(f"Timed out waiting to write {csv_path}") from exc


def _timestamp() -> datetime:
    return datetime.now(tz=TZ)


def _atomic_write(target: Path, df: pd.DataFrame, **kwargs) -> None:
    temp_path = target.with_suffix(target.suffix + ".tmp")
    df.to_csv(temp_path, index=False, **kwargs)
    temp_path.replace(target)


@st.cache_data(show_spinner=False)
def read_table(path: str | Path, **kwargs) -> pd.DataFrame:
    """Read a CSV file stored within the data directory."""

    csv_path = _resolve(path)
    if not csv_path.exists():
        return pd.DataFrame()
    try:
        return pd.read_csv(csv_path, **kwargs)
    except pd.errors.EmptyDataError:
        return pd.DataFrame()


def write_table(path: str | Path, df: pd.DataFrame, **kwargs) -> Path:
    """Persist ``df`` to the given logical path and clear associated caches."""

    csv_path = _resolve(path)
    with _locked(csv_path):
        _atomic_write(csv_path, df, **kwargs)
    logger.info("Wrote %d rows to %s", len(df), csv_path)
    utils.clear_data_caches()
    return csv_path


def append_table(path: str | Path, rows: Iterable[Dict[str, object]]) -> Path:
    """Append ``rows`` to a CSV file, creating it if required."""

    csv_path = _resolve(path)
    frame = pd.DataFrame(rows)
    with _locked(csv_path):
        if csv_path.exists():
            try:
                existing = pd.read_csv(csv_path)
            except pd.errors.EmptyDataError:
                existing = pd.DataFrame()
            if not existing.empty:
                frame = pd.concat([existing, frame], ignore_index=True)
        _atomic_write(csv_path, frame)
    utils.clear_data_caches()
    return csv_path


def toast_ok(message: str) -> None:
    st.success(message, icon="✅")


def toast_err(message: str) -> None:
    st.error(message, icon="❌")


def toast_info(message: str) -> None:
    st.info(message, icon="ℹ️")


@st.cache_data(show_spinner=False)
def get_metrics() -> Dict[str, str]:
    """Return key dashboard metrics derived from the data store."""

    ingredients = utils.normalize_ingredients(read_table(INGREDIENTS_TABLE))
    recipes = read_table(RECIPES_TABLE)
    lines = read_table(RECIPE_LINES_TABLE)

    missing_density = 0
    if not ingredients.empty:
        missing_density = int(ingredients["density_g_per_ml"].isna().sum())

    last_update = "Never"
    if not ingredients.empty:
        stamps = pd.to_datetime(ingredients["last_price_update"], errors="coerce").dropna()
        if not stamps.empty:
            last_update = stamps.max().strftime("%b %d, %Y")

    return {
        "ingredients": f"{len(ingredients):,}",
        "recipes": f"{len(recipes):,}",
        "recipe_lines": f"{len(lines):,}",
        "missing_density": f"{missing_density:,}",
        "last_price_update": last_update,
    }


def record_import(source: str, imported: int, skipped: int, failed: int) -> Path:
    """Append one row to the ingredient import history."""

    return append_table(
        IMPORT_LOG_TABLE,
        [
            {
                "imported_at": _timestamp().isoformat(timespec="seconds"),
                "source": source,
                "imported": imported,
                "skipped": skipped,
                "failed": failed,
            }
        ],
    )

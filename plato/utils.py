"""Utility helpers shared across Streamlit pages."""

from __future__ import annotations

import logging
import math
import re
from datetime import datetime
from typing import Optional

import pandas as pd
import streamlit as st
from zoneinfo import ZoneInfo

from . import settings
from .constants import INGREDIENT_COLUMNS, TZ_NAME

TZ = ZoneInfo(TZ_NAME)
ISO_DATE = "%Y-%m-%d"
ISO_DATETIME = "%Y-%m-%d %H:%M:%S"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_MONEY_RE = re.compile(r"[^0-9.\-]+")
_CANONICAL_RE = re.compile(r"[^a-z0-9]+")


def _canonical_name(column: str) -> str:
    return _CANONICAL_RE.sub("", str(column).strip().lower())


_ALIAS_CANDIDATES = {
    "ingredient_id": "ingredient_id",
    "id": "ingredient_id",
    "sku": "ingredient_id",
    "item_number": "ingredient_id",
    "name": "name",
    "ingredient": "name",
    "ingredient_name": "name",
    "description": "name",
    "item description": "name",
    "supplier": "supplier",
    "vendor": "supplier",
    "pack_quantity": "pack_quantity",
    "pack qty": "pack_quantity",
    "case_pack": "pack_quantity",
    "quantity": "pack_quantity",
    "pack_unit": "pack_unit",
    "unit": "pack_unit",
    "uom": "pack_unit",
    "pack_uom": "pack_unit",
    "pack_price": "pack_price",
    "price": "pack_price",
    "case_price": "pack_price",
    "case_cost": "pack_price",
    "cost": "pack_price",
    "currency": "currency",
    "density": "density_g_per_ml",
    "density_g_per_ml": "density_g_per_ml",
    "density (g/ml)": "density_g_per_ml",
    "g/ml": "density_g_per_ml",
    "allergens": "allergens",
    "notes": "notes",
    "last_price_update": "last_price_update",
    "price_date": "last_price_update",
}

_COLUMN_ALIASES = {_canonical_name(alias): target for alias, target in _ALIAS_CANDIDATES.items()}

_NUMERIC_COLUMNS = ("pack_quantity", "pack_price", "density_g_per_ml")
_STRING_COLUMNS = (
    "ingredient_id",
    "name",
    "supplier",
    "pack_unit",
    "currency",
    "allergens",
    "notes",
    "last_price_update",
)


def configure_logging(level: str | None = None) -> None:
    """Install a single stream handler on the root logger."""

    logging.basicConfig(level=(level or settings.LOG_LEVEL), format=LOG_FORMAT)


def iso_today() -> str:
    return datetime.now(tz=TZ).strftime(ISO_DATE)


def iso_now() -> str:
    """Return an ISO timestamp for the current timezone-aware moment."""

    return datetime.now(tz=TZ).strftime(ISO_DATETIME)


def normalise_key(value) -> str:
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return ""
    return str(value).strip().casefold()


def to_float(value, default: float = 0.0) -> float:
    if value is None:
        return default
    if isinstance(value, (int, float)):
        return default if isinstance(value, float) and math.isnan(value) else float(value)
    string = str(value).strip()
    if not string:
        return default
    string = _MONEY_RE.sub("", string)
    try:
        return float(string)
    except ValueError:
        return default


def page_setup(title: str) -> None:
    """Configure Streamlit for a mobile-friendly experience."""

    configure_logging()
    st.set_page_config(
        page_title=f"Plato Costing - {title}",
        page_icon="🍳",
        layout="wide",
        initial_sidebar_state="collapsed",
    )

    st.markdown(
        """
        <style>
        .stButton > button,
        .stNumberInput input,
        .stSelectbox div[data-baseweb="select"] > div,
        .stTextInput input {
            height: 48px;
            font-size: 1.05rem;
            border-radius: 10px;
        }

        #MainMenu {visibility: hidden;}
        footer {visibility: hidden;}
        </style>
        """,
        unsafe_allow_html=True,
    )

    st.title(title)


def load_file_to_dataframe(uploaded_file, sheet_name: str | None = None) -> Optional[pd.DataFrame]:
    if uploaded_file is None:
        return None

    try:
        content = uploaded_file.getvalue()
        cache_key = f"upload::{hash(content)}::{sheet_name or 'default'}"
        if cache_key in st.session_state:
            return st.session_state[cache_key]

        with st.spinner("📂 Loading file..."):
            if uploaded_file.name.endswith(".csv"):
                frame = pd.read_csv(uploaded_file)
            elif uploaded_file.name.endswith((".xlsx", ".xls")):
                frame = pd.read_excel(uploaded_file, sheet_name=sheet_name or 0)
            else:
                st.error("Unsupported file format. Please upload CSV or Excel files.")
                return None

        st.session_state[cache_key] = frame
        return frame
    except Exception as exc:  # pragma: no cover - UI feedback only
        logging.getLogger(__name__).exception("Failed to read upload %s", getattr(uploaded_file, "name", "?"))
        st.error(f"Error reading file: {exc}")
        return None


def clear_data_caches() -> None:
    st.cache_data.clear()
    if hasattr(st, "session_state"):
        for key in list(st.session_state.keys()):
            if "cache" in str(key).lower():
                st.session_state.pop(key, None)


def rename_ingredient_columns(frame: pd.DataFrame) -> pd.DataFrame:
    rename_map: dict[str, str] = {}
    for column in frame.columns:
        alias = _COLUMN_ALIASES.get(_canonical_name(column))
        if alias and alias not in rename_map.values() and alias not in frame.columns.difference([column]):
            rename_map[column] = alias
    return frame.rename(columns=rename_map)


def next_numeric_id(ids: pd.Series) -> int:
    """One past the largest numeric id in ``ids``; 1 when there is none."""

    numeric = pd.to_numeric(ids, errors="coerce").dropna()
    return int(numeric.max()) + 1 if not numeric.empty else 1


def normalize_ingredients(df: pd.DataFrame | None) -> pd.DataFrame:
    """Return a normalised ingredient master safe for costing.

    Column aliases are mapped onto the canonical schema. Missing or blank pack
    quantities and prices stay ``NaN`` so costing reports them instead of
    guessing.
    """

    base_columns = list(INGREDIENT_COLUMNS) + ["ingredient_key"]
    if df is None or df.empty:
        return pd.DataFrame(columns=base_columns)

    frame = rename_ingredient_columns(df.copy())
    for column in INGREDIENT_COLUMNS:
        if column not in frame.columns:
            frame[column] = pd.NA

    for column in _STRING_COLUMNS:
        frame[column] = frame[column].fillna("").astype(str).str.strip()

    for column in _NUMERIC_COLUMNS:
        frame[column] = frame[column].apply(lambda value: to_float(value, math.nan)).astype(float)

    missing_id = frame["ingredient_id"] == ""
    if missing_id.any():
        start = next_numeric_id(frame.loc[~missing_id, "ingredient_id"])
        frame.loc[missing_id, "ingredient_id"] = [str(start + offset) for offset in range(int(missing_id.sum()))]

    frame["currency"] = frame["currency"].str.upper().where(frame["currency"] != "", settings.DEFAULT_CURRENCY)
    frame["ingredient_key"] = frame["name"].map(normalise_key)

    ordered = [col for col in base_columns if col in frame.columns]
    remaining = [col for col in frame.columns if col not in ordered]
    return frame.loc[:, ordered + remaining]


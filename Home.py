"""Landing page for Plato kitchen costing."""

from __future__ import annotations

import streamlit as st

from plato.db import ensure_data_dirs, get_metrics
from plato.utils import configure_logging

configure_logging()
ensure_data_dirs()

st.set_page_config(page_title="Plato Costing", layout="wide")

st.markdown(
    """
    <style>
      .metric-card {background:#ffffff;border-radius:16px;padding:1.25rem;box-shadow:0 6px 14px rgba(0,0,0,0.08);text-align:center;}
      .metric-card h4 {margin:0;font-size:0.95rem;color:#6c757d;text-transform:uppercase;letter-spacing:0.06em;}
      .metric-card span {display:block;font-size:2rem;font-weight:700;color:#0f9b8e;margin-top:0.35rem;}
      @media (max-width:768px){
        .metric-card span {font-size:1.5rem;}
      }
    </style>
    """,
    unsafe_allow_html=True,
)

st.title("🍳 Plato Costing")
st.caption("Ingredient packs in, costed recipes out.")

metrics = get_metrics()
metric_cols = st.columns(4)
metric_labels = [
    ("Ingredients", metrics["ingredients"]),
    ("Recipes", metrics["recipes"]),
    ("Missing density", metrics["missing_density"]),
    ("Last price update", metrics["last_price_update"]),
]
for col, (label, value) in zip(metric_cols, metric_labels):
    with col:
        st.markdown(
            f"<div class='metric-card'><h4>{label}</h4><span>{value}</span></div>",
            unsafe_allow_html=True,
        )

st.markdown("### Quick actions")

tiles = [
    ("🥫", "Ingredients", "Packs, prices and densities", "pages/1_🥫_Ingredients.py"),
    ("👨‍🍳", "Recipes", "Build and cost dishes", "pages/2_👨‍🍳_Recipes.py"),
    ("⚖️", "Unit Converter", "Check a conversion or a line cost", "pages/3_⚖️_Unit_Converter.py"),
    ("⬇️", "Export", "Download the costing workbook", "pages/4_⬇️_Export.py"),
]

for i in range(0, len(tiles), 2):
    cols = st.columns(2)
    for col, tile in zip(cols, tiles[i : i + 2]):
        emoji, title, subtitle, target = tile
        with col:
            st.page_link(target, label=f"{emoji} {title}")
            st.caption(subtitle)

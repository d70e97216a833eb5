from __future__ import annotations
import os
from dotenv import load_dotenv

load_dotenv()

DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "GBP").strip().upper() or "GBP"
FOOD_COST_TARGET_PCT = float(os.getenv("FOOD_COST_TARGET_PCT", "30"))
LOCK_TIMEOUT = float(os.getenv("PLATO_DATA_LOCK_TIMEOUT", "5"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

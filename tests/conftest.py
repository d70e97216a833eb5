import pytest

from plato import constants, settings


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Keep tests off the real data directory and away from local .env overrides."""

    monkeypatch.setattr(settings, "DEFAULT_CURRENCY", "GBP")
    monkeypatch.setattr(constants, "DATA_ROOT", tmp_path / "data")
    return tmp_path / "data"

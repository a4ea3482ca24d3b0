"""
Pytest configuration and fixtures for valuation engine tests.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Generator
from unittest.mock import patch

import pytest

from ve.config import Settings, clear_settings_cache
from ve.service import ValuationService
from ve.workspace.store import ValuationStore


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test outputs."""
    return tmp_path


@pytest.fixture
def mock_env_vars(temp_dir: Path) -> Generator[dict[str, str], None, None]:
    """Provide mock environment variables for testing."""
    env_vars = {
        "DATABASE_PATH": str(temp_dir / "data" / "valuations.db"),
        "OUTPUT_DIR": str(temp_dir / "output"),
        "LOG_LEVEL": "DEBUG",
        "CORS_ORIGINS": "http://localhost:5173, http://127.0.0.1:5173",
        "DEFAULT_PROJECTION_YEARS": "5",
    }

    with patch.dict(os.environ, env_vars, clear=False):
        clear_settings_cache()
        yield env_vars


@pytest.fixture
def mock_settings(mock_env_vars: dict[str, str]) -> Generator[Settings, None, None]:
    """Provide a Settings instance backed by the temp directory."""
    from ve.config import get_settings

    settings = get_settings()
    settings.ensure_directories()
    yield settings
    clear_settings_cache()


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Automatically reset settings cache before and after each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def dcf_data() -> dict[str, Any]:
    """Three-year DCF with constant cash flows (wire keys)."""
    return {
        "projectionYears": 3,
        "revenues": [1000, 1000, 1000],
        "costs": [400, 400, 400],
        "operatingExpenses": [100, 100, 100],
        "capex": [50, 50, 50],
        "workingCapitalChange": [0, 0, 0],
        "costOfEquity": 0.12,
        "costOfDebt": 0.06,
        "taxRate": 0.34,
        "debtWeight": 0.3,
        "equityWeight": 0.7,
        "terminalGrowthRate": 0.025,
        "netDebt": 0,
    }


@pytest.fixture
def multiples_data() -> dict[str, Any]:
    """Multiples input with all four pairs complete (wire keys)."""
    return {
        "peLuMultiple": 10.0,
        "netIncome": 100_000.0,
        "evEbitdaMultiple": 6.0,
        "ebitda": 200_000.0,
        "pvVpMultiple": 1.5,
        "bookValue": 800_000.0,
        "evRevenueMultiple": 1.2,
        "revenue": 1_000_000.0,
        "liquidityDiscount": 0.1,
        "controlPremium": 0.2,
        "comparablesSources": "Listed peers, sector report",
    }


@pytest.fixture
def store(temp_dir: Path) -> Generator[ValuationStore, None, None]:
    """Provide an initialized valuation store."""
    store = ValuationStore(temp_dir / "valuations.db")
    store.init()
    yield store
    store.close()


@pytest.fixture
def service(store: ValuationStore) -> ValuationService:
    """Provide a valuation service over the temp store."""
    return ValuationService(store)

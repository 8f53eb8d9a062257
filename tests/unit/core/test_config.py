"""Unit tests for core config parsing."""

from __future__ import annotations

import os

import pytest

from core.config import OdmConfig
from core.errors import OdmConfigError


def test_from_env_reads_data_root(monkeypatch: pytest.MonkeyPatch) -> None:
    """Config should resolve data root from environment."""
    monkeypatch.setenv("ODM_DATA_ROOT", "./.tmp-odm")

    config = OdmConfig.from_env()

    assert config.data_root.name == ".tmp-odm"


def test_from_env_raises_for_invalid_worker_count(monkeypatch: pytest.MonkeyPatch) -> None:
    """Config should fail for non-numeric worker count."""
    monkeypatch.setenv("ODM_MAX_WORKERS", "many")

    with pytest.raises(OdmConfigError):
        OdmConfig.from_env()

    assert os.getenv("ODM_MAX_WORKERS") == "many"


def test_from_env_rejects_zero_timeout(monkeypatch: pytest.MonkeyPatch) -> None:
    """Network timeout must be positive."""
    monkeypatch.setenv("ODM_NETWORK_TIMEOUT", "0")

    with pytest.raises(OdmConfigError):
        OdmConfig.from_env()


def test_from_env_treats_empty_llm_url_as_disabled(monkeypatch: pytest.MonkeyPatch) -> None:
    """An empty refinement URL disables refinement."""
    monkeypatch.setenv("ODM_LLM_URL", "")

    config = OdmConfig.from_env()

    assert config.llm_url is None

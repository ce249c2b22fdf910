"""Tests for settings resolution and wire models."""

from __future__ import annotations

import math
from pathlib import Path

import pytest

from semantic_find.config import SearchSettings, SegmenterOptions, resolve_cache_path
from semantic_find.models import BackendRequest, BackendStatus, ModelStatus


def test_defaults_match_documented_values() -> None:
    settings = SearchSettings()

    assert settings.similarity_threshold == 0.3
    assert settings.top_k == 10
    assert settings.batch_size == 5
    assert settings.min_query_length == 3
    assert settings.segmenter == SegmenterOptions(min_chunk_length=50, max_chunk_length=100)


def test_from_env_applies_environment_then_overrides(monkeypatch) -> None:
    monkeypatch.setenv("SEMANTIC_FIND_TOP_K", "4")
    monkeypatch.setenv("SEMANTIC_FIND_MAX_CHUNK_LENGTH", "200")
    monkeypatch.setenv("SEMANTIC_FIND_SIMILARITY_THRESHOLD", "0.5")
    monkeypatch.setenv("SEMANTIC_FIND_BACKEND_URL", "http://localhost:8000")

    settings = SearchSettings.from_env(top_k=2)

    assert settings.top_k == 2
    assert settings.segmenter.max_chunk_length == 200
    assert settings.similarity_threshold == 0.5
    assert settings.backend_url == "http://localhost:8000"


def test_invalid_settings_raise() -> None:
    with pytest.raises(ValueError, match="top_k"):
        SearchSettings(top_k=0)
    with pytest.raises(ValueError, match="batch_size"):
        SearchSettings(batch_size=0)


def test_resolve_cache_path_precedence(monkeypatch, tmp_path: Path) -> None:
    env_path = tmp_path / "env" / "pages.duckdb"
    monkeypatch.setenv("SEMANTIC_FIND_CACHE_DB_PATH", str(env_path))

    assert resolve_cache_path() == str(env_path.resolve())
    assert env_path.parent.is_dir()

    override = tmp_path / "override.duckdb"
    assert resolve_cache_path(str(override)) == str(override.resolve())


def test_backend_status_maps_to_model_state() -> None:
    assert BackendStatus(ready=True).to_model_state().progress == 100
    assert BackendStatus(error="no GPU").to_model_state().status == ModelStatus.FAILED
    assert BackendStatus().to_model_state().status == ModelStatus.UNLOADED

    loading = BackendStatus(loading=True, progress=140).to_model_state()
    assert (loading.status, loading.progress) == (ModelStatus.LOADING, 99)
    assert BackendStatus(loading=True, progress=math.nan).to_model_state().progress == 0
    assert BackendStatus(loading=True, progress=math.inf).to_model_state().progress == 0


def test_backend_request_omits_empty_fields() -> None:
    status = BackendRequest(id="1", type="GET_MODEL_STATUS").to_message()
    embed = BackendRequest(id="2", type="GENERATE_EMBEDDING", text="hello").to_message()

    assert status == {"id": "1", "type": "GET_MODEL_STATUS", "target": "model_host"}
    assert embed["text"] == "hello"

"""Tests for the CLI commands against a temporary project."""

import json
from collections.abc import Generator
from pathlib import Path

import pytest
from typer.testing import CliRunner

from knowdex.config import get_settings
from knowdex.interfaces.api import deps

from .main import app

runner = CliRunner()


def _clear_singletons() -> None:
    get_settings.cache_clear()
    for getter in (
        deps.get_vector_store,
        deps.get_embedder,
        deps.get_embedding_cache,
        deps.get_funnel,
        deps.get_pipeline,
    ):
        getter.cache_clear()


@pytest.fixture
def project(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Generator[Path, None, None]:
    recipes = tmp_path / "recipes"
    recipes.mkdir()
    (recipes / "singleton.md").write_text(
        "---\ntitle: Singleton\nlanguage: swift\ntags: [pattern]\n---\n"
        "Use a static let for a shared instance.\n",
        encoding="utf-8",
    )
    (recipes / "network.md").write_text(
        "---\ntitle: Network request\n---\nBuild a URLSession data task.\n",
        encoding="utf-8",
    )

    monkeypatch.setenv("KNOWDEX_PROJECT_ROOT", str(tmp_path))
    monkeypatch.setenv("KNOWDEX_EMBEDDING_PROVIDER", "none")
    _clear_singletons()
    yield tmp_path
    _clear_singletons()


def test_index_then_search(project: Path) -> None:
    result = runner.invoke(app, ["index"])
    assert result.exit_code == 0, result.output
    assert "Full rebuild" in result.output
    assert (project / ".knowdex" / "context" / "index" / "manifest.json").exists()

    result = runner.invoke(app, ["search", "singleton", "--scenario", "lint"])
    assert result.exit_code == 0, result.output
    assert "Singleton" in result.output
    assert "scenario: lint" in result.output


def test_second_index_is_incremental(project: Path) -> None:
    assert runner.invoke(app, ["index"]).exit_code == 0
    _clear_singletons()

    result = runner.invoke(app, ["index"])
    assert result.exit_code == 0, result.output
    assert "Incremental" in result.output


def test_dry_run_writes_nothing(project: Path) -> None:
    result = runner.invoke(app, ["index", "--dry-run"])

    assert result.exit_code == 0, result.output
    assert "Dry run" in result.output
    assert not (project / ".knowdex" / "context" / "index" / "manifest.json").exists()


def test_search_empty_index(project: Path) -> None:
    result = runner.invoke(app, ["search", "anything"])
    assert result.exit_code == 0
    assert "index is empty" in result.output


def test_stats(project: Path) -> None:
    runner.invoke(app, ["index"])
    result = runner.invoke(app, ["stats"])

    assert result.exit_code == 0, result.output
    assert "Items" in result.output
    assert "Index version" in result.output


def test_cache_cleanup(project: Path) -> None:
    result = runner.invoke(app, ["cache-cleanup"])
    assert result.exit_code == 0, result.output
    assert "Removed 0 expired cache entries" in result.output


def test_version() -> None:
    result = runner.invoke(app, ["version"])
    assert result.exit_code == 0
    assert "Knowdex v" in result.output


def test_stats_uses_cache_config_file(project: Path) -> None:
    cache_dir = project / ".knowdex" / "cache" / "embeddings"
    cache_dir.mkdir(parents=True)
    (cache_dir / "cache-config.json").write_text(
        json.dumps({"maxSize": 5, "ttlSeconds": 60, "enabled": True})
    )

    result = runner.invoke(app, ["stats"])

    assert result.exit_code == 0, result.output
    assert "0/5" in result.output


def test_missing_cache_config_is_written_from_settings(
    project: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv("KNOWDEX_CACHE_MAX_SIZE", "50")
    monkeypatch.setenv("KNOWDEX_CACHE_TTL_SECONDS", "3600")
    _clear_singletons()

    result = runner.invoke(app, ["cache-cleanup"])

    assert result.exit_code == 0, result.output
    config_path = project / ".knowdex" / "cache" / "embeddings" / "cache-config.json"
    assert json.loads(config_path.read_text()) == {
        "maxSize": 50,
        "ttlSeconds": 3600,
        "enabled": True,
    }


def test_cache_disabled_by_config_file(project: Path) -> None:
    cache_dir = project / ".knowdex" / "cache" / "embeddings"
    cache_dir.mkdir(parents=True)
    (cache_dir / "cache-config.json").write_text(json.dumps({"enabled": False}))

    result = runner.invoke(app, ["cache-cleanup"])

    assert result.exit_code == 0, result.output
    assert "Embedding cache is disabled" in result.output

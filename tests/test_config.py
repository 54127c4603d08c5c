from __future__ import annotations

import logging

import pytest

from porcitrack import config, logging_config


@pytest.fixture(autouse=True)
def _reset_configured(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(logging_config, "_CONFIGURED", False)


def test_build_config_defaults(monkeypatch, tmp_path):
    for name in ("PORCITRACK_DATABASE_URL", "PORCITRACK_CORS_ORIGINS", "PORCITRACK_LOG_FILE",
                 "LINEAGE_MAX_GENERATIONS", "LINEAGE_UNIQUE_PARENT_LABELS"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("APPDATA", str(tmp_path))

    settings = config.build_config()
    assert settings["SQLALCHEMY_DATABASE_URI"] == f"sqlite:///{tmp_path / 'PorciTrack' / 'database.db'}"
    assert (tmp_path / "PorciTrack").is_dir()
    assert settings["CORS_ORIGINS"] == ["http://localhost:3000"]
    assert settings["LINEAGE_MAX_GENERATIONS"] == 3
    assert settings["LINEAGE_UNIQUE_PARENT_LABELS"] is False
    assert settings["LOG_FILE"] is None


def test_build_config_reads_environment(monkeypatch):
    monkeypatch.setenv("PORCITRACK_DATABASE_URL", "sqlite://")
    monkeypatch.setenv("PORCITRACK_CORS_ORIGINS", "http://a.test, http://b.test,")
    monkeypatch.setenv("LINEAGE_MAX_GENERATIONS", "5")
    monkeypatch.setenv("LINEAGE_UNIQUE_PARENT_LABELS", "yes")

    settings = config.build_config()
    assert settings["SQLALCHEMY_DATABASE_URI"] == "sqlite://"
    assert settings["CORS_ORIGINS"] == ["http://a.test", "http://b.test"]
    assert settings["LINEAGE_MAX_GENERATIONS"] == 5
    assert settings["LINEAGE_UNIQUE_PARENT_LABELS"] is True


def test_build_config_rejects_non_integer_cap(monkeypatch):
    monkeypatch.setenv("PORCITRACK_DATABASE_URL", "sqlite://")
    monkeypatch.setenv("LINEAGE_MAX_GENERATIONS", "three")
    with pytest.raises(ValueError):
        config.build_config()


@pytest.mark.parametrize("raw", ["0", "-2", str(config.MAX_GENERATIONS_LIMIT + 1)])
def test_build_config_rejects_out_of_range_cap(monkeypatch, raw):
    monkeypatch.setenv("PORCITRACK_DATABASE_URL", "sqlite://")
    monkeypatch.setenv("LINEAGE_MAX_GENERATIONS", raw)
    with pytest.raises(ValueError, match="between 1 and"):
        config.build_config()


def test_build_config_accepts_cap_at_the_limit(monkeypatch):
    monkeypatch.setenv("PORCITRACK_DATABASE_URL", "sqlite://")
    monkeypatch.setenv("LINEAGE_MAX_GENERATIONS", str(config.MAX_GENERATIONS_LIMIT))
    assert config.build_config()["LINEAGE_MAX_GENERATIONS"] == config.MAX_GENERATIONS_LIMIT


def test_map_level():
    assert logging_config._map_level("debug") == logging.DEBUG
    assert logging_config._map_level(logging.WARNING) == logging.WARNING
    assert logging_config._map_level("chatty") == logging.INFO


def test_configure_logging_runs_once(monkeypatch, tmp_path):
    calls = []
    monkeypatch.setattr(logging_config.logging, "basicConfig", lambda **kwargs: calls.append(kwargs))

    log_file = tmp_path / "logs" / "porcitrack.log"
    logging_config.configure_logging("WARNING", str(log_file))
    logging_config.configure_logging("DEBUG")

    assert len(calls) == 1
    assert calls[0]["level"] == logging.WARNING
    assert calls[0]["filename"] == log_file
    assert log_file.parent.is_dir()


def test_app_uses_configured_generation_cap(monkeypatch):
    from porcitrack import create_app, db

    monkeypatch.setenv("PORCITRACK_DATABASE_URL", "sqlite://")
    monkeypatch.setenv("LINEAGE_MAX_GENERATIONS", "2")
    app = create_app({"TESTING": True})
    assert app.config["LINEAGE_MAX_GENERATIONS"] == 2
    with app.app_context():
        db.drop_all()

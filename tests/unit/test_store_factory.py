"""Tests for the store factory and CLI entry point."""

import json
import os
from pathlib import Path
from unittest.mock import patch

import pytest

import clinicstore.__main__ as cli
import clinicstore.factory as factory
from clinicstore.config.settings import StoreSettings
from clinicstore.factory import build_store, build_store_from_env
from clinicstore.schemas.enums import DECLARED_COLLECTIONS, Collection


@pytest.fixture(autouse=True)
def _no_logging_config(monkeypatch):
    """Keep the CLI from reconfiguring structlog for the rest of the session."""
    monkeypatch.setattr(cli, "configure_logging", lambda **_: None)


class TestBuildStore:
    def test_persisted_store(self, tmp_path):
        settings = StoreSettings(data_dir=tmp_path, db_file="clinic.json")
        with build_store(settings) as store:
            store.insert(Collection.BOOKINGS, {"a": 1})
        data = json.loads((tmp_path / "clinic.json").read_text())
        assert len(data["bookings"]) == 1

    def test_memory_only_store(self, tmp_path):
        settings = StoreSettings(data_dir=tmp_path, persist=False)
        with build_store(settings) as store:
            store.insert(Collection.BOOKINGS, {"a": 1})
        assert list(tmp_path.iterdir()) == []

    def test_background_flush_store(self, tmp_path):
        settings = StoreSettings(data_dir=tmp_path, background_flush=True)
        with build_store(settings) as store:
            store.insert(Collection.BOOKINGS, {"a": 1})
        data = json.loads((tmp_path / "database.json").read_text())
        assert len(data["bookings"]) == 1

    def test_background_store_closes_at_exit(self, tmp_path, monkeypatch):
        registered = []
        monkeypatch.setattr(factory.atexit, "register", registered.append)
        settings = StoreSettings(data_dir=tmp_path, background_flush=True)
        store = build_store(settings)
        assert registered == [store.close]
        store.insert(Collection.BOOKINGS, {"a": 1})
        registered[0]()
        data = json.loads((tmp_path / "database.json").read_text())
        assert len(data["bookings"]) == 1

    def test_sync_store_registers_nothing_at_exit(self, tmp_path, monkeypatch):
        registered = []
        monkeypatch.setattr(factory.atexit, "register", registered.append)
        with build_store(StoreSettings(data_dir=tmp_path)):
            pass
        assert registered == []

    def test_from_env(self, tmp_path):
        env = {"CLINICSTORE_DATA_DIR": str(tmp_path), "CLINICSTORE_STRICT_COLLECTIONS": "false"}
        with patch.dict(os.environ, env):
            store = build_store_from_env()
        store.insert("custom", {"a": 1})
        assert "custom" in json.loads((tmp_path / "database.json").read_text())


class TestCli:
    def test_status_missing_file(self, tmp_path, capsys):
        code = cli.main(["--data-dir", str(tmp_path), "status"])
        out = json.loads(capsys.readouterr().out)
        assert code == 1
        assert out["file_exists"] is False
        assert out["missing"] == list(DECLARED_COLLECTIONS)

    def test_migrate_creates_file(self, tmp_path, capsys):
        code = cli.main(["--data-dir", str(tmp_path), "migrate"])
        assert code == 0
        assert "Created" in capsys.readouterr().out
        assert set(json.loads((tmp_path / "database.json").read_text())) == set(DECLARED_COLLECTIONS)

    def test_migrate_adds_missing(self, tmp_path, capsys):
        (tmp_path / "database.json").write_text(json.dumps({"users": []}))
        code = cli.main(["--data-dir", str(tmp_path), "migrate"])
        out = capsys.readouterr().out
        assert code == 0
        assert "Added collections" in out
        assert "bookings" in out

    def test_migrate_up_to_date(self, tmp_path, capsys):
        (tmp_path / "database.json").write_text(json.dumps({n: [] for n in DECLARED_COLLECTIONS}))
        assert cli.main(["--data-dir", str(tmp_path), "migrate"]) == 0
        assert "up to date" in capsys.readouterr().out

    def test_status_complete(self, tmp_path, capsys):
        cli.main(["--data-dir", str(tmp_path), "migrate"])
        capsys.readouterr()
        assert cli.main(["--data-dir", str(tmp_path), "status"]) == 0
        assert json.loads(capsys.readouterr().out)["is_complete"] is True

    def test_stats(self, tmp_path, capsys):
        code = cli.main(["--data-dir", str(tmp_path), "--db-file", "x.json", "stats"])
        out = capsys.readouterr().out
        assert code == 0
        assert "users" in out
        assert "total" in out
        assert Path(tmp_path / "x.json").exists()

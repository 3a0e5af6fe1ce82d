import json
import tempfile
from pathlib import Path

import config_paths


def test_load_config_defaults_without_json():
    with tempfile.TemporaryDirectory() as tmp:
        cfg_dir = Path(tmp) / "dataman"
        cfg_dir.mkdir(parents=True, exist_ok=True)
        # point module paths to temp
        orig_dir = config_paths.CONFIG_DIR
        orig_json = config_paths.CONFIG_JSON
        try:
            config_paths.CONFIG_DIR = str(cfg_dir)
            config_paths.CONFIG_JSON = str(cfg_dir / "config.json")
            cfg = config_paths.load_config()
            assert cfg["PAGE_SIZE"] == 50
            assert cfg["POLL_TIMEOUT_MS"] == 3000
            assert cfg["BACKUP_STEP_DELAY"] == 0.25
            assert cfg["DEV_DB_PATH"] is None
            assert cfg["HISTORY_MAX"] == 100
            assert cfg["LOG_PATH"] == str(cfg_dir / "dataman.log")
        finally:
            config_paths.CONFIG_DIR = orig_dir
            config_paths.CONFIG_JSON = orig_json


def test_load_config_reads_json_overrides():
    with tempfile.TemporaryDirectory() as tmp:
        cfg_dir = Path(tmp) / "dataman"
        cfg_dir.mkdir(parents=True, exist_ok=True)
        cfg_path = cfg_dir / "config.json"
        cfg_path.write_text(
            json.dumps(
                {
                    "page_size": 20,
                    "poll_timeout_ms": 500,
                    "backup_step_delay": 0,
                    "dev_db_path": str(Path(tmp) / "db.sqlite"),
                    "log_path": str(Path(tmp) / "x.log"),
                    "history_max": 5,
                }
            )
        )

        orig_dir = config_paths.CONFIG_DIR
        orig_json = config_paths.CONFIG_JSON
        try:
            config_paths.CONFIG_DIR = str(cfg_dir)
            config_paths.CONFIG_JSON = str(cfg_path)
            cfg = config_paths.load_config()
            assert cfg["PAGE_SIZE"] == 20
            assert cfg["POLL_TIMEOUT_MS"] == 500
            assert cfg["BACKUP_STEP_DELAY"] == 0.0
            assert cfg["DEV_DB_PATH"] == str(Path(tmp) / "db.sqlite")
            assert cfg["LOG_PATH"] == str(Path(tmp) / "x.log")
            assert cfg["HISTORY_MAX"] == 5
        finally:
            config_paths.CONFIG_DIR = orig_dir
            config_paths.CONFIG_JSON = orig_json


def test_invalid_values_fall_back(tmp_path, monkeypatch):
    cfg_path = tmp_path / "config.json"
    cfg_path.write_text(json.dumps({"page_size": 0, "poll_timeout_ms": "fast", "history_max": True, "backup_step_delay": -1}))
    monkeypatch.setattr(config_paths, "CONFIG_DIR", str(tmp_path))
    monkeypatch.setattr(config_paths, "CONFIG_JSON", str(cfg_path))
    cfg = config_paths.load_config()
    assert cfg["PAGE_SIZE"] == 50
    assert cfg["POLL_TIMEOUT_MS"] == 3000
    assert cfg["HISTORY_MAX"] == 100
    assert cfg["BACKUP_STEP_DELAY"] == 0.25


def test_malformed_json_is_ignored(tmp_path, monkeypatch):
    cfg_path = tmp_path / "config.json"
    cfg_path.write_text("{not json")
    monkeypatch.setattr(config_paths, "CONFIG_DIR", str(tmp_path))
    monkeypatch.setattr(config_paths, "CONFIG_JSON", str(cfg_path))
    assert config_paths.load_config()["PAGE_SIZE"] == 50


def test_ensure_config_dirs_creates_history(tmp_path, monkeypatch):
    cfg_dir = tmp_path / "dataman"
    monkeypatch.setattr(config_paths, "CONFIG_DIR", str(cfg_dir))
    monkeypatch.setattr(config_paths, "HISTORY_PATH", str(cfg_dir / "history.log"))
    config_paths.ensure_config_dirs()
    assert (cfg_dir / "history.log").exists()

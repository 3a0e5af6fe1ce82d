import json
import os

HOME = os.path.expanduser("~")
XDG_CONFIG_HOME = os.environ.get("XDG_CONFIG_HOME")
CONFIG_HOME = XDG_CONFIG_HOME if XDG_CONFIG_HOME else os.path.join(HOME, ".config")
CONFIG_DIR = os.path.join(CONFIG_HOME, "dataman")
HISTORY_PATH = os.path.join(CONFIG_DIR, "history.log")
CONFIG_JSON = os.path.join(CONFIG_DIR, "config.json")

# default settings
PAGE_SIZE_DEFAULT = 50
POLL_TIMEOUT_MS_DEFAULT = 3000
BACKUP_STEP_DELAY_DEFAULT = 0.25
HISTORY_MAX_DEFAULT = 100


def ensure_config_dirs():
    os.makedirs(CONFIG_DIR, exist_ok=True)
    if not os.path.exists(HISTORY_PATH):
        try:
            with open(HISTORY_PATH, "w", encoding="utf-8") as f:
                f.write("")
        except OSError:
            pass


def _positive_int(value, default):
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        return default
    return value


def _non_negative_number(value, default):
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value < 0:
        return default
    return float(value)


def _path_or(value, default):
    if isinstance(value, str) and value.strip():
        return os.path.expanduser(value.strip())
    return default


def load_config():
    cfg = {
        "PAGE_SIZE": PAGE_SIZE_DEFAULT,
        "POLL_TIMEOUT_MS": POLL_TIMEOUT_MS_DEFAULT,
        "BACKUP_STEP_DELAY": BACKUP_STEP_DELAY_DEFAULT,
        "DEV_DB_PATH": None,
        "LOG_PATH": os.path.join(CONFIG_DIR, "dataman.log"),
        "HISTORY_MAX": HISTORY_MAX_DEFAULT,
    }

    if os.path.exists(CONFIG_JSON):
        try:
            with open(CONFIG_JSON, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError):
            data = None
        if isinstance(data, dict):
            cfg["PAGE_SIZE"] = _positive_int(data.get("page_size"), cfg["PAGE_SIZE"])
            cfg["POLL_TIMEOUT_MS"] = _positive_int(data.get("poll_timeout_ms"), cfg["POLL_TIMEOUT_MS"])
            cfg["BACKUP_STEP_DELAY"] = _non_negative_number(
                data.get("backup_step_delay"), cfg["BACKUP_STEP_DELAY"]
            )
            cfg["DEV_DB_PATH"] = _path_or(data.get("dev_db_path"), None)
            cfg["LOG_PATH"] = _path_or(data.get("log_path"), cfg["LOG_PATH"])
            cfg["HISTORY_MAX"] = _positive_int(data.get("history_max"), cfg["HISTORY_MAX"])

    return cfg

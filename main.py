import curses
import logging
import os
import sys

from _version import __version__
from config_paths import HISTORY_PATH, ensure_config_dirs, load_config
from controller import Controller
from database import Database
from errors import DatamanError
from file_type_handler import FileTypeHandler
from history_manager import HistoryManager

# Make ESC snappy
os.environ.setdefault("ESCDELAY", "25")

USAGE = "dataman - terminal table browser backed by SQLite\n\nUsage:\n  dataman <path>\n  dataman -v\n  dataman -h\n"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(log_path, level_name=None):
    """Send logs to a file; the terminal belongs to curses."""
    level_name = (level_name or os.environ.get("DATAMAN_LOG") or "WARNING").upper()
    level = getattr(logging, level_name, None)
    if not isinstance(level, int):
        level = logging.WARNING

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    try:
        os.makedirs(os.path.dirname(log_path) or ".", exist_ok=True)
        handler = logging.FileHandler(log_path, encoding="utf-8")
    except OSError:
        handler = logging.NullHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(level)
    return handler


def load(path, config):
    database = Database(config)
    try:
        FileTypeHandler(path).load_into(database)
    except (DatamanError, OSError):
        database.close()
        raise
    return database


def main(argv=None):
    args = sys.argv[1:] if argv is None else list(argv)

    if "-v" in args or "-V" in args:
        print(__version__)
        return 0

    if "-h" in args or "--help" in args:
        print(USAGE)
        return 0

    if len(args) != 1:
        print(USAGE, file=sys.stderr)
        return 2

    ensure_config_dirs()
    config = load_config()
    configure_logging(config["LOG_PATH"])
    logger = logging.getLogger(__name__)

    path = args[0]
    try:
        database = load(path, config)
    except (DatamanError, OSError) as exc:
        logger.error("load failed: %s", exc)
        print(f"Load failed: {exc}", file=sys.stderr)
        return 1

    history = HistoryManager(HISTORY_PATH, max_items=config["HISTORY_MAX"])
    history.load()
    controller = Controller(database, config, history=history)
    try:
        curses.wrapper(controller.run)
    finally:
        database.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())

import curses
import logging
from dataclasses import dataclass

from commands import Command, Direction, ImmediateCommand, Move, QueueableCommand

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class KeyEvent:
    key: str
    ctrl: bool = False


_ARROWS = {
    "up": Direction.UP,
    "down": Direction.DOWN,
    "left": Direction.LEFT,
    "right": Direction.RIGHT,
}

_CHAR_COMMANDS = {
    "r": QueueableCommand.REGEX_TRANSFORM,
    "e": QueueableCommand.EDIT,
    "w": ImmediateCommand.SORT,
    "a": QueueableCommand.SAVE,
    "q": QueueableCommand.SQL_QUERY,
    "f": QueueableCommand.REGEX_FILTER,
    "/": QueueableCommand.EXACT_SEARCH,
    "#": ImmediateCommand.TEXT_TO_INT,
    "$": ImmediateCommand.INT_TO_TEXT,
    "X": ImmediateCommand.DELETE_COLUMN,
    "R": QueueableCommand.RENAME_COLUMN,
    "T": QueueableCommand.RENAME_TABLE,
    "D": ImmediateCommand.DELETE_TABLE,
    "m": QueueableCommand.MATH_OPERATION,
}

_CTRL_CHAR_COMMANDS = {
    "c": ImmediateCommand.QUIT,
    "s": QueueableCommand.SAVE,
}

_PLAIN_MODIFIER_SENSITIVE = {
    "c": ImmediateCommand.COPY,
    "s": ImmediateCommand.SORT,
}


def resolve(event: KeyEvent) -> Command:
    key = event.key
    if key in _ARROWS:
        if event.ctrl and key == "left":
            return ImmediateCommand.PREV_TABLE
        if event.ctrl and key == "right":
            return ImmediateCommand.NEXT_TABLE
        return Move(_ARROWS[key])

    if key in _PLAIN_MODIFIER_SENSITIVE:
        if event.ctrl:
            return _CTRL_CHAR_COMMANDS[key]
        return _PLAIN_MODIFIER_SENSITIVE[key]

    if not event.ctrl and key in _CHAR_COMMANDS:
        return _CHAR_COMMANDS[key]

    logger.debug("unmapped key: %r (ctrl=%s)", key, event.ctrl)
    return ImmediateCommand.NONE


# curses key codes

_NAMED_CODES = {
    curses.KEY_UP: "up",
    curses.KEY_DOWN: "down",
    curses.KEY_LEFT: "left",
    curses.KEY_RIGHT: "right",
    curses.KEY_HOME: "home",
    curses.KEY_END: "end",
    curses.KEY_BACKSPACE: "backspace",
    curses.KEY_ENTER: "enter",
    127: "backspace",
    10: "enter",
    13: "enter",
    9: "tab",
    27: "esc",
}

# xterm-style names for Ctrl+arrow; the numeric codes differ per terminfo
_CTRL_ARROW_NAMES = {
    b"kUP5": "up",
    b"kDN5": "down",
    b"kLFT5": "left",
    b"kRIT5": "right",
}


def key_event_from_code(ch: int):
    """Translate a curses getch() code into a KeyEvent, or None for no input."""
    if ch == -1:
        return None
    if ch in _NAMED_CODES:
        return KeyEvent(_NAMED_CODES[ch])
    if ch == 8:  # Ctrl+H doubles as backspace on many terminals
        return KeyEvent("backspace")
    if 1 <= ch <= 26:
        return KeyEvent(chr(ch + 96), ctrl=True)
    if 32 <= ch < 127 or 160 <= ch < 256:
        return KeyEvent(chr(ch))
    try:
        name = curses.keyname(ch)
    except (ValueError, curses.error):
        name = b""
    if name in _CTRL_ARROW_NAMES:
        return KeyEvent(_CTRL_ARROW_NAMES[name], ctrl=True)
    logger.debug("untranslated key code %s (%r)", ch, name)
    return KeyEvent(f"<{ch}>")


def key_event_from_wide(wch):
    """Translate a get_wch() result, which yields str for text and int for keys."""
    if isinstance(wch, str):
        if len(wch) == 1 and ord(wch) < 32 or wch == "\x7f":
            return key_event_from_code(ord(wch))
        return KeyEvent(wch)
    return key_event_from_code(wch)

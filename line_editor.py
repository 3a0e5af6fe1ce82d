import curses
from typing import List, Optional

from key_resolver import KeyEvent


class LineEditor:
    """Single-line argument buffer shown in the command bar while a command collects input."""

    def __init__(self):
        self.active = False
        self.prompt = ""
        self.buffer = ""
        self.cursor = 0
        self.hscroll = 0
        self.history: List[str] = []
        self.history_idx: Optional[int] = None
        self._draft = ""

    def start(self, prompt: str, initial: str = "", history: Optional[List[str]] = None):
        self.active = True
        self.prompt = prompt
        self.set_buffer(initial)
        self.history = list(history or [])
        self.history_idx = None
        self._draft = ""

    def stop(self):
        self.active = False
        self.prompt = ""
        self.set_buffer("")
        self.history = []
        self.history_idx = None

    def set_buffer(self, text: str):
        self.buffer = text or ""
        self.cursor = len(self.buffer)
        self.hscroll = 0

    def take(self) -> str:
        text = self.buffer
        self.set_buffer("")
        self.history_idx = None
        return text

    # ---------- key handling ----------
    def handle_key(self, event: KeyEvent):
        """Apply one key; returns 'submit', 'cancel', 'external' or None."""
        if not self.active:
            return None

        key = event.key
        if key == "enter":
            return "submit"
        if key == "esc" or (event.ctrl and key == "c"):
            return "cancel"
        if key == "tab":
            return "external"

        if key == "backspace":
            if self.cursor > 0:
                self.buffer = self.buffer[: self.cursor - 1] + self.buffer[self.cursor :]
                self.cursor -= 1
            return None

        if event.ctrl:
            if key == "a":
                self.cursor = 0
            elif key == "e":
                self.cursor = len(self.buffer)
            elif key == "p":
                self._history_prev()
            elif key == "n":
                self._history_next()
            return None

        if key == "left":
            self.cursor = max(0, self.cursor - 1)
            return None
        if key == "right":
            self.cursor = min(len(self.buffer), self.cursor + 1)
            return None
        if key == "home":
            self.cursor = 0
            return None
        if key == "end":
            self.cursor = len(self.buffer)
            return None

        if len(key) == 1 and key.isprintable():
            self.buffer = self.buffer[: self.cursor] + key + self.buffer[self.cursor :]
            self.cursor += 1
        return None

    def _history_prev(self):
        if not self.history:
            return
        if self.history_idx is None:
            self._draft = self.buffer
            self.history_idx = len(self.history) - 1
        elif self.history_idx > 0:
            self.history_idx -= 1
        self.buffer = self.history[self.history_idx]
        self.cursor = len(self.buffer)

    def _history_next(self):
        if self.history_idx is None:
            return
        if self.history_idx < len(self.history) - 1:
            self.history_idx += 1
            self.buffer = self.history[self.history_idx]
        else:
            self.history_idx = None
            self.buffer = self._draft
        self.cursor = len(self.buffer)

    # ---------- rendering ----------
    def draw(self, win):
        prompt = f"{self.prompt}: " if self.prompt else ""
        h, w = win.getmaxyx()
        text_w = max(1, w - len(prompt) - 1)

        if self.cursor < self.hscroll:
            self.hscroll = self.cursor
        elif self.cursor > self.hscroll + text_w:
            self.hscroll = self.cursor - text_w

        visible = self.buffer[self.hscroll : self.hscroll + text_w].replace("\n", " ")
        win.erase()
        try:
            win.addnstr(0, 0, prompt, len(prompt))
            win.addnstr(0, len(prompt), visible, text_w)
            win.move(0, len(prompt) + (self.cursor - self.hscroll))
        except curses.error:
            pass
        win.refresh()

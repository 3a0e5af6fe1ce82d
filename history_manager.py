import logging
import os
from typing import List

logger = logging.getLogger(__name__)


class HistoryManager:
    """SQL statements that ran successfully, oldest first, one per line on disk."""

    def __init__(self, history_path: str, max_items: int = 100):
        self.history_path = history_path
        self.max_items = max_items
        self.history: List[str] = []

    def load(self) -> List[str]:
        if os.path.exists(self.history_path):
            try:
                with open(self.history_path, 'r', encoding='utf-8') as f:
                    data = [l.rstrip('\n') for l in f if l.strip()]
                self.history = data[-self.max_items:]
            except OSError as exc:
                logger.warning("could not read history %s: %s", self.history_path, exc)
                self.history = []
            return self.history

        self.history = []
        return self.history

    @staticmethod
    def _fold(entry: str) -> str:
        return " ".join(entry.splitlines()).strip()

    def record(self, entry: str) -> None:
        entry = self._fold(entry or "")
        if not entry:
            return
        self.history.append(entry)
        if len(self.history) > self.max_items:
            self.history = self.history[-self.max_items:]
        try:
            with open(self.history_path, 'a', encoding='utf-8') as f:
                f.write(entry + '\n')
        except OSError as exc:
            logger.warning("could not append history %s: %s", self.history_path, exc)

    @property
    def items(self) -> List[str]:
        return list(self.history)

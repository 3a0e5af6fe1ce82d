from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Union


class Direction(Enum):
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class ImmediateCommand(Enum):
    NONE = ("None", False)
    COPY = ("Copy", True)
    SORT = ("Sort", True)
    NEXT_TABLE = ("Next Table", True)
    PREV_TABLE = ("Prev Table", True)
    TEXT_TO_INT = ("Text to Int", True)
    INT_TO_TEXT = ("Int to Text", True)
    DELETE_COLUMN = ("Delete Column", True)
    DELETE_TABLE = ("Delete Table", True)
    ILLEGAL_OPERATION = ("Illegal Operation", False)
    QUIT = ("Quit", False)

    def __init__(self, label, refresh):
        self.label = label
        self.requires_view_refresh = refresh


class QueueableCommand(Enum):
    """Commands that need typed arguments before they can run."""

    REGEX_TRANSFORM = ("Regex Transform", True, 2)
    REGEX_FILTER = ("Regex Filter", True, 1)
    EDIT = ("Edit", True, 1)
    SQL_QUERY = ("Sql Query", True, 1)
    SAVE = ("Save", False, 1)
    EXACT_SEARCH = ("Exact Search", True, 1)
    RENAME_COLUMN = ("Rename Column", True, 1)
    RENAME_TABLE = ("Rename Table", True, 1)
    MATH_OPERATION = ("Math Operation", True, 1)

    def __init__(self, label, refresh, max_inputs):
        self.label = label
        self.requires_view_refresh = refresh
        self.max_inputs = max_inputs

    @property
    def takes_pattern(self) -> bool:
        return self in (QueueableCommand.REGEX_TRANSFORM, QueueableCommand.REGEX_FILTER)


@dataclass(frozen=True)
class Move:
    direction: Direction
    requires_view_refresh = False

    @property
    def label(self) -> str:
        return f"Move {self.direction.label}"


Command = Union[ImmediateCommand, QueueableCommand, Move]


@dataclass
class QueuedCommand:
    command: QueueableCommand
    inputs: List[str] = field(default_factory=list)

    def __post_init__(self):
        if not isinstance(self.command, QueueableCommand):
            raise TypeError(f"{self.command!r} does not take arguments")

    def push(self, text: str):
        if len(self.inputs) >= self.command.max_inputs:
            raise ValueError(f"{self.command.label} takes at most {self.command.max_inputs} inputs")
        self.inputs.append(text)

    @property
    def first(self) -> Optional[str]:
        return self.inputs[0] if self.inputs else None

    @property
    def second(self) -> Optional[str]:
        return self.inputs[1] if len(self.inputs) > 1 else None


@dataclass
class PreviousCommand:
    command: Command = ImmediateCommand.NONE
    message: Optional[str] = None

    def __str__(self):
        if self.message:
            return f"{self.command.label}: {self.message}"
        return self.command.label

from enum import Enum, auto

from errors import InvalidTransition


class InputMode(Enum):
    NORMAL = auto()
    EDITING = auto()
    ABORT = auto()
    FINISH = auto()
    EXTERNAL_EDITOR = auto()


class InputEvent(Enum):
    START_EDITING = auto()
    ABORT_EDITING = auto()
    FINISH_EDITING = auto()
    USE_EXTERNAL_EDITOR = auto()
    EXIT_EXTERNAL_EDITOR = auto()
    RESET = auto()


_TRANSITIONS = {
    (InputMode.NORMAL, InputEvent.START_EDITING): InputMode.EDITING,
    (InputMode.EDITING, InputEvent.ABORT_EDITING): InputMode.ABORT,
    (InputMode.EDITING, InputEvent.FINISH_EDITING): InputMode.FINISH,
    (InputMode.EDITING, InputEvent.USE_EXTERNAL_EDITOR): InputMode.EXTERNAL_EDITOR,
    (InputMode.EXTERNAL_EDITOR, InputEvent.EXIT_EXTERNAL_EDITOR): InputMode.EDITING,
    (InputMode.ABORT, InputEvent.RESET): InputMode.NORMAL,
    (InputMode.FINISH, InputEvent.RESET): InputMode.NORMAL,
}


class InputStateMachine:
    """Gatekeeper for whether keys are commands, argument text, or a pending commit."""

    def __init__(self):
        self.state = InputMode.NORMAL

    def can(self, event: InputEvent) -> bool:
        return (self.state, event) in _TRANSITIONS

    def transition(self, event: InputEvent) -> InputMode:
        target = _TRANSITIONS.get((self.state, event))
        if target is None:
            # state is left untouched
            raise InvalidTransition(self.state, event)
        self.state = target
        return target

    @property
    def is_collecting_input(self) -> bool:
        return self.state in (InputMode.EDITING, InputMode.EXTERNAL_EDITOR)

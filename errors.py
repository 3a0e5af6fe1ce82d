class DatamanError(Exception):
    """Base class for failures surfaced on the status line."""


class IngestError(DatamanError):
    pass


class PatternError(DatamanError):
    def __init__(self, pattern, err):
        self.pattern = pattern
        super().__init__(f"Regex parsing error: {err}")


class EngineError(DatamanError):
    def __init__(self, err):
        self.original = err
        super().__init__(f"Sqlite error: {err}")


class InvalidTransition(DatamanError):
    def __init__(self, state, event):
        self.state = state
        self.event = event
        super().__init__(f"Invalid state change: {event.name} while {state.name}")


class UnsupportedOperation(DatamanError):
    pass


class TableNavigationError(DatamanError):
    pass

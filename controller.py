import curses
import logging
import re
import sqlite3
import subprocess
import time
from typing import Optional

from commands import (
    Direction,
    ImmediateCommand,
    Move,
    PreviousCommand,
    QueueableCommand,
    QueuedCommand,
)
from errors import DatamanError, InvalidTransition, PatternError, TableNavigationError, UnsupportedOperation
from external_editor import ExternalEditor
from file_type_handler import FileTypeHandler
from grid_pane import GridPane
from input_state import InputEvent, InputMode, InputStateMachine
from key_resolver import KeyEvent, key_event_from_wide, resolve
from line_editor import LineEditor
from regex_functions import capture_group_count
from screen_layout import ScreenLayout
from status_bar import render_status
from view_cache import ViewCache

logger = logging.getLogger(__name__)

RECOVERABLE_ERRORS = (DatamanError, sqlite3.Error, re.error, ValueError, OSError)
ABORTED_MESSAGE = "Aborted input"


class Controller:
    def __init__(self, database, config: Optional[dict] = None, editor=None, history=None):
        self.database = database
        self.config = config or {}
        self.view = ViewCache(page_size=self.config.get("PAGE_SIZE", 50))
        self.machine = InputStateMachine()
        self.line = LineEditor()
        self.editor = editor if editor is not None else ExternalEditor()
        self.history = history

        self.queued: Optional[QueuedCommand] = None
        self.previous = PreviousCommand()
        self.quit_requested = False

        self.status_msg = None
        self.status_msg_until = 0

        self.stdscr = None
        self.layout = None
        self.grid = None

        self._immediate_handlers = {
            ImmediateCommand.NONE: lambda: None,
            ImmediateCommand.QUIT: self._quit,
            ImmediateCommand.COPY: self._copy,
            ImmediateCommand.SORT: self._sort,
            ImmediateCommand.NEXT_TABLE: self._next_table,
            ImmediateCommand.PREV_TABLE: self._prev_table,
            ImmediateCommand.TEXT_TO_INT: self._text_to_int,
            ImmediateCommand.INT_TO_TEXT: self._int_to_text,
            ImmediateCommand.DELETE_COLUMN: self._delete_column,
            ImmediateCommand.DELETE_TABLE: self._delete_table,
        }
        self._queued_handlers = {
            QueueableCommand.REGEX_TRANSFORM: self._regex_transform,
            QueueableCommand.REGEX_FILTER: self._regex_filter,
            QueueableCommand.EDIT: self._edit,
            QueueableCommand.SQL_QUERY: self._sql_query,
            QueueableCommand.SAVE: self._save,
            QueueableCommand.EXACT_SEARCH: self._exact_search,
            QueueableCommand.RENAME_COLUMN: self._rename_column,
            QueueableCommand.RENAME_TABLE: self._rename_table,
            QueueableCommand.MATH_OPERATION: self._math_operation,
        }

    # ---------------- helpers ----------------

    def _set_status(self, msg, seconds=3):
        self.status_msg = msg
        self.status_msg_until = time.time() + seconds

    def _transition(self, event: InputEvent) -> bool:
        try:
            self.machine.transition(event)
            return True
        except InvalidTransition as exc:
            logger.error("%s", exc)
            self.previous = PreviousCommand(ImmediateCommand.ILLEGAL_OPERATION, str(exc))
            return False

    def _header(self) -> str:
        header = self.view.current_header
        if header is None:
            raise DatamanError("No column selected")
        return header

    def read_view(self):
        """Current headers and rows, querying the store only when the cache is dirty."""
        try:
            return self.view.read(self.database.fetch_page)
        except DatamanError as exc:
            logger.warning("view refresh failed: %s", exc)
            self.database.refresh_tables()
            self.view.reset()
            self.previous = PreviousCommand(ImmediateCommand.ILLEGAL_OPERATION, str(exc))
            if not self.database.tables:
                return [], []
            return self.view.read(self.database.fetch_page)

    # ---------------- key dispatch ----------------

    def handle_key(self, event: KeyEvent):
        self.read_view()
        if self.machine.is_collecting_input:
            self._handle_editing_key(event)
        else:
            self._handle_normal_key(event)
        self._settle()

    def _handle_normal_key(self, event: KeyEvent):
        command = resolve(event)
        if isinstance(command, QueueableCommand):
            self._begin(command)
            return
        self._run_immediate(command)

    def _begin(self, command: QueueableCommand):
        if not self._transition(InputEvent.START_EDITING):
            return
        self.queued = QueuedCommand(command)
        history = self.history.items if (self.history is not None and command is QueueableCommand.SQL_QUERY) else None
        self.line.start(command.label, initial=self._prefill(command), history=history)

    def _prefill(self, command: QueueableCommand) -> str:
        if command is QueueableCommand.EDIT:
            value = self.view.current_value
            return "" if value is None else str(value)
        if command is QueueableCommand.RENAME_COLUMN:
            return self.view.current_header or ""
        if command is QueueableCommand.RENAME_TABLE:
            return self.database.current_table if self.database.tables else ""
        return ""

    def _handle_editing_key(self, event: KeyEvent):
        result = self.line.handle_key(event)
        if result == "cancel":
            self._transition(InputEvent.ABORT_EDITING)
        elif result == "external":
            self._use_external_editor()
        elif result == "submit":
            self._submit()

    def _use_external_editor(self):
        if not self._transition(InputEvent.USE_EXTERNAL_EDITOR):
            return
        try:
            text = self.editor.edit(self.line.buffer)
        finally:
            self._transition(InputEvent.EXIT_EXTERNAL_EDITOR)
        self.line.set_buffer(text)

    def _submit(self):
        queued = self.queued
        text = self.line.buffer
        groups = 0
        if queued.command.takes_pattern and not queued.inputs:
            try:
                groups = capture_group_count(text)
            except PatternError as exc:
                # stay in editing so the pattern can be fixed
                self._set_status(str(exc), 5)
                return
        queued.push(self.line.take())

        if queued.command is QueueableCommand.REGEX_TRANSFORM and len(queued.inputs) == 1 and groups > 0:
            self.line.prompt = "Transformation"
            return
        self._transition(InputEvent.FINISH_EDITING)

    def _settle(self):
        state = self.machine.state
        if state is InputMode.FINISH:
            try:
                self._execute_queued(self.queued)
            finally:
                self.queued = None
                self.line.stop()
                self._transition(InputEvent.RESET)
        elif state is InputMode.ABORT:
            if self.queued is not None:
                self.previous = PreviousCommand(self.queued.command, ABORTED_MESSAGE)
            self.status_msg = None
            self.queued = None
            self.line.stop()
            self._transition(InputEvent.RESET)

    # ---------------- execution ----------------

    def _run(self, command, fn):
        try:
            message = fn()
        except TableNavigationError as exc:
            logger.debug("%s", exc)
            return
        except RECOVERABLE_ERRORS as exc:
            logger.warning("%s failed: %s", command.label, exc)
            self.previous = PreviousCommand(ImmediateCommand.ILLEGAL_OPERATION, str(exc))
            self.view.invalidate()
            return
        if command.requires_view_refresh:
            self.view.invalidate()
        self.previous = PreviousCommand(command, message)

    def _run_immediate(self, command):
        if command is ImmediateCommand.NONE:
            return
        if isinstance(command, Move):
            self._run(command, lambda: self._move(command.direction))
            return
        self._run(command, self._immediate_handlers[command])

    def _execute_queued(self, queued: QueuedCommand):
        handler = self._queued_handlers[queued.command]
        self._run(queued.command, lambda: handler(queued))

    # ---------------- immediate commands ----------------

    def _quit(self):
        self.quit_requested = True

    def _move(self, direction: Direction):
        if direction is Direction.UP:
            self.view.move_up()
        elif direction is Direction.DOWN:
            self.view.move_down()
        elif direction is Direction.LEFT:
            self.view.move_left()
        else:
            self.view.move_right()

    def _copy(self):
        self.database.copy_column(self._header())

    def _sort(self):
        self.database.toggle_sort(self._header())
        self.view.jump_to(0)
        order = self.database.order
        return f"{order.column} {'ascending' if order.ascending else 'descending'}"

    def _next_table(self):
        self.database.next_table()
        self.view.reset()
        return self.database.current_table

    def _prev_table(self):
        self.database.prev_table()
        self.view.reset()
        return self.database.current_table

    def _text_to_int(self):
        self.database.text_to_int(self._header())

    def _int_to_text(self):
        self.database.int_to_text(self._header())

    def _delete_column(self):
        header = self._header()
        self.database.delete_column(header)
        return f"Dropped {header}"

    def _delete_table(self):
        table = self.database.current_table
        self.database.delete_table()
        self.view.reset()
        return f"Dropped {table}"

    # ---------------- queued commands ----------------

    def _regex_transform(self, queued: QueuedCommand):
        pattern = queued.first
        if queued.second is not None and capture_group_count(pattern) > 0:
            raise UnsupportedOperation("Capture group transform is not supported")
        self.database.regex_transform(self._header(), pattern)

    def _regex_filter(self, queued: QueuedCommand):
        new_table = self.database.regex_filter(self._header(), queued.first)
        self.view.reset()
        return f"Created {new_table}"

    def _edit(self, queued: QueuedCommand):
        if not self.view.rows:
            raise DatamanError("No row selected")
        self.database.update_cell(self._header(), self.view.absolute_row, queued.first)

    def _sql_query(self, queued: QueuedCommand):
        statement = queued.first or ""
        if not statement.strip():
            raise DatamanError("Query required")
        before = self.database.current_table if self.database.tables else None
        self.database.run_script(statement)
        if self.history is not None:
            self.history.record(statement)
        if not self.database.tables or self.database.current_table != before:
            self.view.reset()

    def _save(self, queued: QueuedCommand):
        path = (queued.first or "").strip()
        if not path:
            raise DatamanError("Path required")
        if path.lower().endswith(".csv"):
            FileTypeHandler(path).write_table(self.database)
        else:
            self.database.backup(path)
        return f"Saved {path}"

    def _exact_search(self, queued: QueuedCommand):
        rank = self.database.exact_search(self._header(), queued.first, self.view.absolute_row + 1)
        if rank is None:
            return "No match found"
        self.view.jump_to(rank - 1)
        return "Match found"

    def _rename_column(self, queued: QueuedCommand):
        new_name = (queued.first or "").strip()
        if not new_name:
            raise DatamanError("Column name required")
        self.database.rename_column(self._header(), new_name)

    def _rename_table(self, queued: QueuedCommand):
        new_name = (queued.first or "").strip()
        if not new_name:
            raise DatamanError("Table name required")
        self.database.rename_table(new_name)
        self.view.reset()

    def _math_operation(self, queued: QueuedCommand):
        self.database.math_operation(self._header(), queued.first)

    # ---------------- terminal ----------------

    def status_text(self) -> str:
        if self.status_msg and time.time() < self.status_msg_until:
            return self.status_msg
        return str(self.previous)

    def _run_interactive_in_terminal(self, argv):
        if not argv:
            return 1
        try:
            curses.def_prog_mode()
            curses.endwin()
        except curses.error:
            pass

        try:
            result = subprocess.run(argv).returncode
        except FileNotFoundError:
            result = 127

        try:
            curses.reset_prog_mode()
            curses.raw()
            self.stdscr.timeout(self.config.get("POLL_TIMEOUT_MS", 3000))
            self.stdscr.clear()
            self.stdscr.refresh()
        except curses.error:
            pass
        return result

    def redraw(self):
        headers, rows = self.read_view()
        try:
            curses.curs_set(1 if self.line.active else 0)
        except curses.error:
            pass

        self.grid.draw(self.layout.table_win, headers, rows, self.view, self.database.order)

        sw = self.layout.status_win
        sw.erase()
        _, w = sw.getmaxyx()
        context = {
            "mode": self.machine.state.name,
            "message": self.status_text(),
            "table": self.database.current_table if self.database.tables else "",
            "table_pos": (self.database.table_idx + 1, len(self.database.tables)),
            "page_index": self.view.page_index + 1,
            "page_total": self.view.page_count,
            "total_rows": self.view.total_rows,
            "row": self.view.absolute_row,
        }
        try:
            sw.addnstr(0, 0, render_status(context, w), w)
        except curses.error:
            pass
        sw.refresh()

        cw = self.layout.cmd_win
        if self.line.active:
            self.line.draw(cw)
        else:
            cw.erase()
            cw.refresh()

    def run(self, stdscr):
        self.stdscr = stdscr
        curses.raw()
        self.stdscr.timeout(self.config.get("POLL_TIMEOUT_MS", 3000))
        self.stdscr.keypad(True)
        self.layout = ScreenLayout(stdscr)
        self.grid = GridPane()
        if isinstance(self.editor, ExternalEditor):
            self.editor.run_interactive = self._run_interactive_in_terminal

        self.stdscr.clear()
        self.stdscr.refresh()
        while not self.quit_requested:
            self.redraw()
            try:
                wch = self.stdscr.get_wch()
            except curses.error:
                # poll timeout; loop round to redraw
                continue
            if wch == curses.KEY_RESIZE:
                self.layout = ScreenLayout(stdscr)
                continue
            event = key_event_from_wide(wch)
            if event is None:
                continue
            self.handle_key(event)

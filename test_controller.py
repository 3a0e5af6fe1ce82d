import pytest

from commands import ImmediateCommand, QueueableCommand
from controller import Controller
from database import Database
from history_manager import HistoryManager
from input_state import InputEvent, InputMode
from key_resolver import KeyEvent
from query_builder import OrderSpec


class FakeEditor:
    def __init__(self, result):
        self.result = result
        self.seen = []

    def edit(self, text):
        self.seen.append(text)
        return self.result


@pytest.fixture
def db():
    database = Database({"BACKUP_STEP_DELAY": 0})
    database.create_table_from_rows(
        "fruit", ["name", "qty"], [("apple", "3"), ("banana", "1"), ("avocado", "2")]
    )
    yield database
    database.close()


@pytest.fixture
def controller(db):
    ctl = Controller(db, {"PAGE_SIZE": 2}, editor=FakeEditor("SELECT 1"))
    ctl.read_view()
    return ctl


def press(ctl, key, ctrl=False):
    ctl.handle_key(KeyEvent(key, ctrl))


def type_text(ctl, text):
    for ch in text:
        press(ctl, ch)


def run_command(ctl, key, *inputs):
    press(ctl, key)
    for text in inputs:
        type_text(ctl, text)
        press(ctl, "enter")


def assert_settled(ctl):
    assert ctl.machine.state is InputMode.NORMAL
    assert ctl.queued is None
    assert not ctl.line.active


def test_successful_command_settles_to_normal(controller):
    run_command(controller, "q", "CREATE TABLE extra (a)")
    assert_settled(controller)
    assert controller.previous.command is QueueableCommand.SQL_QUERY
    assert controller.database.tables == ["fruit", "extra"]


def test_failed_sql_rolls_back_and_reports(controller):
    run_command(controller, "q", "DELETE FROM fruit; CREATE TABLE x (a); INSERT INTO nope VALUES (1)")
    assert_settled(controller)
    assert controller.previous.command is ImmediateCommand.ILLEGAL_OPERATION
    assert "nope" in controller.previous.message
    assert controller.database.tables == ["fruit"]
    assert controller.database.count() == 3


def test_invalid_transition_becomes_illegal_operation(controller):
    assert controller._transition(InputEvent.FINISH_EDITING) is False
    assert controller.machine.state is InputMode.NORMAL
    assert controller.previous.command is ImmediateCommand.ILLEGAL_OPERATION
    assert "FINISH_EDITING" in controller.previous.message


def test_clean_view_is_not_requeried(controller, monkeypatch):
    calls = []
    original = controller.database.fetch_page

    def counting(limit, offset):
        calls.append((limit, offset))
        return original(limit, offset)

    monkeypatch.setattr(controller.database, "fetch_page", counting)
    first = controller.read_view()
    second = controller.read_view()
    assert calls == []
    assert first == second
    press(controller, "down")
    assert calls == []
    press(controller, "down")
    controller.read_view()
    assert calls == [(2, 2)]


def test_regex_filter_creates_table_and_switches(controller):
    press(controller, "right")
    run_command(controller, "f", "^a")
    assert_settled(controller)
    db = controller.database
    assert db.current_table == "fruitRegexFiltered"
    headers, rows = controller.read_view()
    assert controller.view.total_rows == 2
    assert sorted(r[1] for r in rows) == ["apple", "avocado"]


def test_regex_transform_without_groups_needs_one_input(controller):
    press(controller, "right")
    run_command(controller, "r", "n.*")
    assert_settled(controller)
    headers, _ = controller.read_view()
    assert "derivedname" in headers


def test_regex_transform_with_groups_collects_second_input(controller):
    press(controller, "right")
    run_command(controller, "r", "(n)(a)")
    assert controller.machine.state is InputMode.EDITING
    assert controller.queued.inputs == ["(n)(a)"]
    type_text(controller, "$2")
    press(controller, "enter")
    assert_settled(controller)
    assert controller.previous.command is ImmediateCommand.ILLEGAL_OPERATION
    assert "not supported" in controller.previous.message


def test_invalid_pattern_is_caught_before_the_engine(controller):
    press(controller, "right")
    run_command(controller, "f", "(")
    assert controller.machine.state is InputMode.EDITING
    assert controller.queued.inputs == []
    assert controller.status_msg.startswith("Regex parsing error")
    assert controller.database.tables == ["fruit"]
    press(controller, "esc")
    assert_settled(controller)


def test_rename_sorted_column_keeps_ordering(controller):
    press(controller, "right")
    press(controller, "s")
    assert controller.database.order == OrderSpec("name", True)
    press(controller, "R")
    assert controller.line.buffer == "name"
    for _ in range(4):
        press(controller, "backspace")
    type_text(controller, "title")
    press(controller, "enter")
    assert controller.database.order == OrderSpec("title", True)
    headers, rows = controller.read_view()
    assert headers == ["id", "title", "qty"]
    assert rows[0][1] == "apple"


def test_delete_sorted_column_clears_ordering(controller):
    press(controller, "right")
    press(controller, "s")
    press(controller, "X")
    assert controller.database.order.column is None
    headers, rows = controller.read_view()
    assert headers == ["id", "qty"]
    assert [r[0] for r in rows] == [1, 2]


def test_sort_toggles_direction(controller):
    press(controller, "right")
    press(controller, "w")
    press(controller, "w")
    assert controller.database.order == OrderSpec("name", False)
    _, rows = controller.read_view()
    assert rows[0][1] == "banana"


def test_exact_search_without_match_is_not_an_error(controller):
    press(controller, "right")
    before = (controller.view.row_offset, controller.view.selection)
    run_command(controller, "/", "kiwi")
    assert_settled(controller)
    assert controller.previous.command is QueueableCommand.EXACT_SEARCH
    assert controller.previous.message == "No match found"
    assert (controller.view.row_offset, controller.view.selection) == before


def test_exact_search_moves_to_match_on_later_page(controller):
    press(controller, "right")
    run_command(controller, "/", "avocado")
    assert controller.previous.message == "Match found"
    controller.read_view()
    assert controller.view.row_offset == 2
    assert controller.view.absolute_row == 2
    assert controller.view.current_value == "avocado"


def test_edit_prefills_and_updates_selected_cell(controller):
    press(controller, "right")
    press(controller, "down")
    press(controller, "e")
    assert controller.line.buffer == "banana"
    for _ in range(6):
        press(controller, "backspace")
    type_text(controller, "cherry")
    press(controller, "enter")
    assert_settled(controller)
    _, rows = controller.read_view()
    assert rows[1][1] == "cherry"


def test_math_operation_adds_real_column(controller):
    press(controller, "right")
    press(controller, "right")
    run_command(controller, "m", "x * 2")
    assert controller.previous.command is QueueableCommand.MATH_OPERATION
    values = [r[0] for r in controller.database.conn.execute('SELECT "math_qty" FROM fruit ORDER BY id')]
    assert values == [6.0, 2.0, 4.0]


def test_math_operation_rejects_bad_expression(controller):
    press(controller, "right")
    run_command(controller, "m", "y + 1")
    assert controller.previous.command is ImmediateCommand.ILLEGAL_OPERATION
    assert "math_name" not in controller.database.headers()


def test_cast_commands_add_typed_columns(controller):
    press(controller, "right")
    press(controller, "right")
    press(controller, "#")
    press(controller, "$")
    headers, _ = controller.read_view()
    assert "INT_qty" in headers
    assert "TEXT_qty" in headers


def test_copy_duplicates_column(controller):
    press(controller, "right")
    press(controller, "c")
    headers, _ = controller.read_view()
    assert headers[-1] == "derivedname"


def test_ctrl_c_aborts_editing_but_quits_from_normal(controller):
    press(controller, "q")
    type_text(controller, "select")
    press(controller, "c", ctrl=True)
    assert_settled(controller)
    assert not controller.quit_requested
    press(controller, "c", ctrl=True)
    assert controller.quit_requested


def test_external_editor_replaces_buffer(controller):
    press(controller, "q")
    type_text(controller, "sel")
    press(controller, "tab")
    assert controller.editor.seen == ["sel"]
    assert controller.machine.state is InputMode.EDITING
    assert controller.line.buffer == "SELECT 1"
    press(controller, "enter")
    assert_settled(controller)


def test_table_navigation_at_ends_is_silent(controller):
    press(controller, "right", ctrl=True)
    assert controller.previous.command is ImmediateCommand.NONE
    run_command(controller, "q", "CREATE TABLE second (a)")
    press(controller, "right", ctrl=True)
    assert controller.database.current_table == "second"
    assert controller.view.row_offset == 0
    press(controller, "left", ctrl=True)
    assert controller.database.current_table == "fruit"


def test_delete_table_refused_for_last_table(controller):
    press(controller, "D")
    assert controller.previous.command is ImmediateCommand.ILLEGAL_OPERATION
    assert controller.database.tables == ["fruit"]


def test_rename_table_prefills_current_name(controller):
    press(controller, "T")
    assert controller.line.buffer == "fruit"
    type_text(controller, "s")
    press(controller, "enter")
    assert controller.database.current_table == "fruits"


def test_save_to_csv_and_backup(controller, tmp_path):
    csv_path = tmp_path / "out.csv"
    run_command(controller, "a", str(csv_path))
    assert controller.previous.message == f"Saved {csv_path}"
    assert csv_path.read_text(encoding="utf-8").splitlines()[0] == "name,qty"

    db_path = tmp_path / "out.sqlite"
    press(controller, "s", ctrl=True)
    type_text(controller, str(db_path))
    press(controller, "enter")
    assert db_path.exists()


def test_sql_history_is_recorded_and_offered(db, tmp_path):
    history = HistoryManager(str(tmp_path / "history.log"))
    ctl = Controller(db, {"PAGE_SIZE": 2}, editor=FakeEditor(""), history=history)
    ctl.read_view()
    run_command(ctl, "q", "CREATE TABLE t1 (a)")
    run_command(ctl, "q", "CREATE TABLE nope (")
    assert history.items == ["CREATE TABLE t1 (a)"]
    press(ctl, "q")
    press(ctl, "p", ctrl=True)
    assert ctl.line.buffer == "CREATE TABLE t1 (a)"


def test_unmapped_key_keeps_previous_outcome(controller):
    press(controller, "right")
    run_command(controller, "/", "kiwi")
    press(controller, "z")
    assert controller.previous.message == "No match found"


def test_sql_dropping_current_table_clears_ordering(controller):
    run_command(controller, "q", "CREATE TABLE other (a)")
    press(controller, "right")
    press(controller, "s")
    assert controller.database.order == OrderSpec("name", True)
    run_command(controller, "q", "DROP TABLE fruit")
    assert_settled(controller)
    assert controller.database.current_table == "other"
    assert controller.database.order == OrderSpec()
    assert controller.view.column_idx == 0


def test_sql_dropping_sorted_column_clears_ordering(controller):
    press(controller, "right")
    press(controller, "s")
    run_command(controller, "q", 'ALTER TABLE fruit DROP COLUMN "name"')
    assert controller.database.order == OrderSpec()
    headers, rows = controller.read_view()
    assert headers == ["id", "qty"]
    assert [r[0] for r in rows] == [1, 2]


def test_abort_is_recorded_as_previous_outcome(controller):
    press(controller, "q")
    type_text(controller, "select")
    press(controller, "esc")
    assert_settled(controller)
    assert controller.previous.command is QueueableCommand.SQL_QUERY
    assert controller.previous.message == "Aborted input"
    assert controller.status_text() == "Sql Query: Aborted input"

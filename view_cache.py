from typing import Callable, List, Tuple

Fetch = Callable[[int, int], Tuple[List[str], List[tuple], int]]


class ViewCache:
    """Window of the current table: one page of rows plus cursor position.

    ``row_offset`` is the absolute index of the first cached row and
    ``selection`` the cursor row within the page. While ``dirty`` is False the
    cached headers and rows are returned as-is.
    """

    def __init__(self, page_size: int = 50):
        self.page_size = max(1, int(page_size))
        self.headers: List[str] = []
        self.rows: List[tuple] = []
        self.total_rows = 0
        self.row_offset = 0
        self.selection = 0
        self.column_idx = 0
        self.dirty = True

    def invalidate(self):
        self.dirty = True

    def reset(self):
        self.row_offset = 0
        self.selection = 0
        self.column_idx = 0
        self.dirty = True

    def read(self, fetch: Fetch) -> Tuple[List[str], List[tuple]]:
        if self.dirty:
            headers, rows, total = fetch(self.page_size, self.row_offset)
            self.headers = list(headers)
            self.rows = list(rows)
            self.total_rows = max(0, int(total))
            self.dirty = False
            if not self.rows and self.row_offset > 0 and self.total_rows > 0:
                # page vanished under us (rows deleted); step back to the last page
                self.row_offset = ((self.total_rows - 1) // self.page_size) * self.page_size
                self.dirty = True
                return self.read(fetch)
            self._clamp()
        return self.headers, self.rows

    def _clamp(self):
        self.selection = max(0, min(self.selection, len(self.rows) - 1))
        self.column_idx = max(0, min(self.column_idx, len(self.headers) - 1))

    # ---------- position ----------
    @property
    def absolute_row(self) -> int:
        return self.row_offset + self.selection

    @property
    def current_header(self):
        if 0 <= self.column_idx < len(self.headers):
            return self.headers[self.column_idx]
        return None

    @property
    def current_value(self):
        if 0 <= self.selection < len(self.rows):
            row = self.rows[self.selection]
            if 0 <= self.column_idx < len(row):
                return row[self.column_idx]
        return None

    @property
    def page_index(self) -> int:
        return self.row_offset // self.page_size

    @property
    def page_count(self) -> int:
        if self.total_rows == 0:
            return 1
        return (self.total_rows - 1) // self.page_size + 1

    def jump_to(self, row: int):
        row = max(0, int(row))
        offset = (row // self.page_size) * self.page_size
        if offset != self.row_offset:
            self.row_offset = offset
            self.dirty = True
        self.selection = row - offset

    # ---------- navigation ----------
    def move_left(self):
        self.column_idx = max(0, self.column_idx - 1)

    def move_right(self):
        self.column_idx = max(0, min(len(self.headers) - 1, self.column_idx + 1))

    def move_down(self):
        if self.selection + 1 < len(self.rows):
            self.selection += 1
        elif self.absolute_row + 1 < self.total_rows:
            self.row_offset += self.page_size
            self.selection = 0
            self.dirty = True

    def move_up(self):
        if self.selection > 0:
            self.selection -= 1
        elif self.row_offset > 0:
            self.row_offset = max(0, self.row_offset - self.page_size)
            self.selection = self.page_size - 1
            self.dirty = True

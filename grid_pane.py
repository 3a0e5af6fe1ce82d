import curses


def format_cell(value) -> str:
    if value is None:
        return ""
    return str(value).replace("\n", " ")


class GridPane:
    PAIR_CELL_TEXT = 1
    PAIR_HEADER = 2
    MAX_COL_WIDTH = 40

    def __init__(self):
        try:
            curses.start_color()
            curses.use_default_colors()
            curses.init_pair(self.PAIR_CELL_TEXT, curses.COLOR_WHITE, -1)
            curses.init_pair(self.PAIR_HEADER, curses.COLOR_CYAN, -1)
        except curses.error:
            pass
        self.col_offset = 0
        self.row_scroll = 0
        self.rendered_col_widths = {}

    @classmethod
    def column_widths(cls, headers, rows):
        widths = []
        for c, name in enumerate(headers):
            max_len = len(str(name)) + 2  # room for the sort marker
            for row in rows:
                if c < len(row):
                    max_len = max(max_len, len(format_cell(row[c])))
            widths.append(min(cls.MAX_COL_WIDTH, max_len + 2))
        return widths

    def adjust_col_viewport(self, widths, curr_col, avail_w):
        """Shift col_offset so curr_col is visible; returns how many columns fit."""
        if not widths:
            self.col_offset = 0
            return 0

        self.col_offset = max(0, min(self.col_offset, len(widths) - 1))
        if curr_col < self.col_offset:
            self.col_offset = curr_col

        def _fit(offset):
            used = 0
            count = 0
            for cw in widths[offset:]:
                if used + cw + 1 > avail_w:
                    break
                used += cw + 1
                count += 1
            return max(1, count)

        visible = _fit(self.col_offset)
        while curr_col >= self.col_offset + visible and self.col_offset < curr_col:
            self.col_offset += 1
            visible = _fit(self.col_offset)
        return visible

    @staticmethod
    def _header_label(name, order) -> str:
        label = str(name)
        if order is not None and order.column == name:
            label += " ^" if order.ascending else " v"
        return label

    def draw(self, win, headers, rows, view, order=None):
        win.erase()
        try:
            win.bkgd(" ", curses.color_pair(self.PAIR_CELL_TEXT))
        except curses.error:
            pass
        h, w = win.getmaxyx()

        widths = self.column_widths(headers, rows)
        last_row = view.row_offset + max(len(rows) - 1, 0)
        row_w = max(3, len(str(last_row)) + 1)
        avail_w = max(1, w - (row_w + 1))
        max_cols = self.adjust_col_viewport(widths, view.column_idx, avail_w)
        visible_cols = tuple(range(self.col_offset, min(len(headers), self.col_offset + max_cols)))

        self.rendered_col_widths = {}
        x = row_w + 1
        for c in visible_cols:
            eff_cw = min(widths[c], max(1, w - x - 1))
            self.rendered_col_widths[c] = eff_cw
            label = self._header_label(headers[c], order)[:eff_cw].rjust(eff_cw)
            attr = curses.A_BOLD | curses.color_pair(self.PAIR_HEADER)
            if c == view.column_idx:
                attr |= curses.A_UNDERLINE
            try:
                win.addnstr(0, x, label, eff_cw, attr)
            except curses.error:
                pass
            x += eff_cw + 1

        base_y = 1
        body_h = max(1, h - base_y - 1)
        if view.selection < self.row_scroll:
            self.row_scroll = view.selection
        elif view.selection >= self.row_scroll + body_h:
            self.row_scroll = view.selection - body_h + 1
        self.row_scroll = max(0, min(self.row_scroll, max(0, len(rows) - 1)))

        for i in range(self.row_scroll, len(rows)):
            row = rows[i]
            y = base_y + i - self.row_scroll
            if y >= h - 1:
                break
            try:
                win.addnstr(y, 0, str(view.row_offset + i).rjust(row_w), row_w)
            except curses.error:
                pass
            x = row_w + 1
            for c in visible_cols:
                eff_cw = self.rendered_col_widths[c]
                text = format_cell(row[c] if c < len(row) else None)[:eff_cw].rjust(eff_cw)
                attr = curses.color_pair(self.PAIR_CELL_TEXT)
                if i == view.selection and c == view.column_idx:
                    attr |= curses.A_REVERSE
                try:
                    win.addnstr(y, x, text, eff_cw, attr)
                except curses.error:
                    pass
                x += eff_cw + 1

        win.refresh()

import curses


class ScreenLayout:
    def __init__(self, stdscr):
        self.stdscr = stdscr
        self.H, self.W = stdscr.getmaxyx()

        # layout: table (main), status bar (1 line), command bar (1 line)
        self.status_h = 1
        self.cmd_h = 1

        self.table_h = max(1, self.H - self.status_h - self.cmd_h)

        self.table_win = curses.newwin(self.table_h, self.W, 0, 0)
        # grid pane must never own cursor
        self.table_win.leaveok(True)

        self.status_win = curses.newwin(self.status_h, self.W, self.table_h, 0)
        self.status_win.leaveok(True)

        self.cmd_win = curses.newwin(self.cmd_h, self.W, self.table_h + self.status_h, 0)

import logging
import os
import shlex
import subprocess
import tempfile

logger = logging.getLogger(__name__)

DEFAULT_EDITOR = "vi"


def editor_argv(path: str):
    editor = os.environ.get("VISUAL") or os.environ.get("EDITOR") or DEFAULT_EDITOR
    return shlex.split(editor) + [path]


class ExternalEditor:
    """Round-trips a buffer through $VISUAL / $EDITOR on a temp file.

    ``run_interactive`` runs an argv with the terminal handed over and returns
    its exit code; the controller supplies one that suspends curses.
    """

    def __init__(self, run_interactive=None):
        self.run_interactive = run_interactive or _run_plain

    def edit(self, text: str) -> str:
        """Return the edited text, or ``text`` unchanged when the editor fails."""
        tmp = tempfile.NamedTemporaryFile(mode="w+", suffix=".sql", delete=False, encoding="utf-8")
        tmp_path = tmp.name
        try:
            tmp.write(text or "")
            tmp.flush()
        finally:
            tmp.close()

        try:
            rc = self.run_interactive(editor_argv(tmp_path))
            if rc not in (0, None):
                logger.warning("editor exited with %s; keeping buffer", rc)
                return text
            with open(tmp_path, "r", encoding="utf-8") as fh:
                new_text = fh.read()
        except OSError as exc:
            logger.warning("external edit failed: %s", exc)
            return text
        finally:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass

        return new_text.rstrip("\n")


def _run_plain(argv):
    try:
        return subprocess.run(argv).returncode
    except FileNotFoundError:
        return 127

import logging
import re

from errors import PatternError, UnsupportedOperation

logger = logging.getLogger(__name__)


def compile_pattern(pattern: str):
    """Compile a user pattern, raising PatternError on bad syntax."""
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise PatternError(pattern, exc) from exc


def capture_group_count(pattern: str) -> int:
    return compile_pattern(pattern).groups


class CachedPattern:
    """Holds the most recently compiled pattern; recompiles only when the source changes."""

    def __init__(self):
        self.source = None
        self.compiled = None
        self.compile_count = 0

    def get(self, pattern: str):
        if self.compiled is None or pattern != self.source:
            self.compiled = re.compile(pattern)
            self.source = pattern
            self.compile_count += 1
        return self.compiled


class RegexFunctionRegistry:
    """Scalar functions exposed to SQLite for regex matching and extraction."""

    def __init__(self):
        self.match_cache = CachedPattern()
        self.extract_cache = CachedPattern()

    # ---------- scalar functions ----------
    def regexp(self, pattern, value):
        if not isinstance(pattern, str) or not isinstance(value, str):
            return False
        try:
            compiled = self.match_cache.get(pattern)
        except re.error:
            logger.warning("regexp called with invalid pattern %r", pattern)
            return False
        return compiled.search(value) is not None

    def transform_no_capture_group(self, pattern, value):
        if not isinstance(pattern, str) or not isinstance(value, str):
            return None
        try:
            compiled = self.extract_cache.get(pattern)
        except re.error:
            logger.warning("transform called with invalid pattern %r", pattern)
            return None
        match = compiled.search(value)
        return match.group(0) if match else None

    def transform_with_capture_group(self, pattern, value, template):
        raise UnsupportedOperation("Capture group transform is not supported")

    # ---------- installation ----------
    def install(self, conn):
        conn.create_function("REGEXP", 2, self.regexp, deterministic=True)
        conn.create_function(
            "regexp_transform_no_capture_group", 2, self.transform_no_capture_group, deterministic=True
        )
        conn.create_function(
            "regexp_transform_with_capture_group", 3, self.transform_with_capture_group, deterministic=True
        )
        logger.debug("registered regex functions on %r", conn)

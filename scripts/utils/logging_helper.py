"""A basic logging helper."""
import logging
import sys
from contextlib import contextmanager
from typing import Iterable, Iterator


def setup_logging(level=logging.INFO):
    """Configures basic logging."""
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


class LevelFilter(logging.Filter):
    """Drop records below *level* coming from the named loggers or their children."""

    def __init__(self, names: Iterable[str], level: int):
        super().__init__()
        self.names = tuple(names)
        self.level = level

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno >= self.level:
            return True
        return not any(
            record.name == name or record.name.startswith(name + ".") for name in self.names
        )


@contextmanager
def quiet_loggers(names: Iterable[str], level: int = logging.WARNING) -> Iterator[None]:
    """Filter out records below *level* from the named loggers while the block runs.

    Each call attaches its own filter to the named loggers and to the root
    handlers present on entry, and removes only that filter on exit. Logger
    levels are never touched, so overlapping blocks do not undo each other.

    Args:
        names: Logger names to quiet (e.g. ``"pyproj"``).
        level: Minimum level let through while the block runs.
    """
    names = tuple(names)
    level_filter = LevelFilter(names, level)
    # Child loggers skip the parent's logger filters, so the root handlers get one too
    targets = [logging.getLogger(name) for name in names] + list(logging.getLogger().handlers)
    for target in targets:
        target.addFilter(level_filter)
    try:
        yield
    finally:
        for target in targets:
            target.removeFilter(level_filter)

from __future__ import annotations

import logging
import sys
import threading
import weakref

from nicegui import ui

_LEVEL_COLORS = {
    "TRACE": "\033[32m",  # green
    "DEBUG": "\033[36m",  # cyan
    "INFO": "\033[37m",  # light gray
    "WARNING": "\033[33m",  # yellow
    "ERROR": "\033[31m",  # red
    "CRITICAL": "\033[41m",  # red background
}
_RESET = "\033[0m"
_DIM = "\033[2m"

# Below DEBUG; used for per-tick poll chatter
TRACE = 5
logging.addLevelName(TRACE, "TRACE")


class AnsiColorFormatter(logging.Formatter):
    """Compact timestamped formatter with ANSI-colored level names on a TTY."""

    def __init__(self, colored: bool = True) -> None:
        super().__init__(
            fmt="%(asctime)s %(levelname)s %(name)s: %(message)s", datefmt="%H:%M:%S"
        )
        self.colored = colored and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        if not self.colored:
            return base
        level = record.levelname.upper()
        color = _LEVEL_COLORS.get(level, "")
        ts, sep, rest = base.partition(" ")
        if not sep:
            return base
        if color:
            rest = rest.replace(level, f"{color}{level}{_RESET}", 1)
        return f"{_DIM}{ts}{_RESET} {rest}"


# ---- NiceGUI event log sink ----

# Record attribute naming the panel session a record belongs to
SCOPE_ATTR = "panel_scope"

_ui_log_targets: dict[weakref.ref, str | None] = {}
_ui_lock = threading.Lock()


def scoped_logger(logger: logging.Logger, scope: str | None) -> logging.LoggerAdapter:
    """Tag every record from `logger` with `scope` so only that session's log shows it."""
    return logging.LoggerAdapter(logger, {SCOPE_ATTR: scope})


class NiceGuiLogHandler(logging.Handler):
    """
    Mirror log records into registered ui.log widgets (the page's event log).

    Records tagged with a scope only reach widgets attached with the same
    scope; untagged records reach every widget.
    """

    def __init__(self, level: int = logging.INFO) -> None:
        super().__init__(level=level)
        self.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(message)s", "%H:%M:%S")
        )

    def emit(self, record: logging.LogRecord) -> None:
        if not _ui_log_targets:
            return
        record_scope = getattr(record, SCOPE_ATTR, None)
        msg = self.format(record)
        with _ui_lock:
            for ref, scope in list(_ui_log_targets.items()):
                widget = ref()
                if widget is None or getattr(widget, "is_deleted", False):
                    _ui_log_targets.pop(ref, None)
                    continue
                if record_scope is not None and scope != record_scope:
                    continue
                try:
                    widget.push(msg)
                except Exception:
                    # Client gone mid-push
                    _ui_log_targets.pop(ref, None)


def attach_ui_log(log_widget: ui.log, scope: str | None = None) -> None:
    """Register a ui.log widget as a sink for untagged records and those tagged `scope`."""
    with _ui_lock:
        _ui_log_targets[weakref.ref(log_widget)] = scope


def configure_logging(
    level: int = logging.INFO, use_color: bool = True, add_ui_handler: bool = True
) -> logging.Logger:
    """
    Configure the root logger with:
      - ANSI-colored console handler (stderr)
      - optional NiceGUI handler feeding the per-page event logs
    Idempotent across multiple calls; a repeated call only adjusts the level.
    """
    logger = logging.getLogger()
    logger.setLevel(level)

    if not any(type(h) is logging.StreamHandler for h in logger.handlers):
        console = logging.StreamHandler(stream=sys.stderr)
        console.setFormatter(AnsiColorFormatter(colored=use_color))
        logger.addHandler(console)

    if add_ui_handler and not any(
        isinstance(h, NiceGuiLogHandler) for h in logger.handlers
    ):
        logger.addHandler(NiceGuiLogHandler(level=max(level, logging.INFO)))

    for h in logger.handlers:
        if type(h) is logging.StreamHandler:
            h.setLevel(level)

    # roslibpy/autobahn/twisted are chatty at DEBUG
    for name in ("roslibpy", "autobahn", "twisted"):
        logging.getLogger(name).setLevel(max(level, logging.INFO))

    return logger

import logging
import sys

logger = logging.getLogger("sgrid")

__all__ = ["logger", "setlevel", "set_color"]


class DuplicateFilter(logging.Filter):
    """Drop a record when it repeats the previous one verbatim; warnings and above always pass."""

    def filter(self, record):
        if record.levelno >= logging.WARNING:
            return True
        key = (record.module, record.levelno, record.msg, record.args)
        if key == getattr(self, "last_log", None):
            return False
        self.last_log = key
        return True


class BlankLineFormatter(logging.Formatter):

    def format(self, record):
        if record.msg == "" and not record.args:
            return ""
        return super().format(record)


_RESET = "\033[0m"

_DEFAULT_PALETTE = {
    logging.DEBUG: "\033[36m",
    logging.INFO: "\033[32m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[35m",
}

ufstring = "%(name)-5s: [%(levelname)-8s] %(asctime)s %(message)s"

# None -> follow the handler stream's isatty()
_config = {"colors_enabled": None}
_color_palette = dict(_DEFAULT_PALETTE)


class ColoredFormatter(BlankLineFormatter):
    """Wrap each formatted line in the ANSI color of its level."""

    def __init__(self, fmt=None, stream=None):
        super().__init__(fmt)
        self._stream = stream

    def _colors_on(self):
        enabled = _config["colors_enabled"]
        if enabled is not None:
            return bool(enabled)
        isatty = getattr(self._stream, "isatty", None)
        return bool(isatty and isatty())

    def format(self, record):
        base = super().format(record)
        if not base or not self._colors_on():
            return base
        return f"{_color_palette.get(record.levelno, '')}{base}{_RESET}"


def _ensure_handler():
    for h in logger.handlers:
        if isinstance(h, logging.StreamHandler):
            return h
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ColoredFormatter(ufstring, stream=sys.stdout))
    logger.addHandler(handler)
    return handler


logger.setLevel(logging.INFO)
logger.addFilter(DuplicateFilter())
_ensure_handler()


def setlevel(level: int | str = logging.INFO) -> None:
    """
    Set the level of the ``sgrid`` logger.

    Parameters
    ----------
    level : int or str, optional
        A :mod:`logging` level number or its name (case-insensitive),
        e.g. ``"debug"``. Default is ``logging.INFO``.

    Raises
    ------
    ValueError
        If ``level`` is a string that names no logging level.
    """
    if isinstance(level, str):
        name = level.upper()
        resolved = logging.getLevelName(name)
        if not isinstance(resolved, int):
            raise ValueError(f"Unknown logging level: {level}")
        level = resolved
    logger.setLevel(level)


def set_color(enabled: bool | None = True, palette: dict | None = None) -> None:
    """
    Force colored output on or off and optionally override level colors.

    Parameters
    ----------
    enabled : bool or None, optional
        ``True``/``False`` to force colors, ``None`` to follow the TTY state.
    palette : dict or None, optional
        Mapping of logging level numbers to ANSI color codes, overlaid on the
        default palette.
    """
    _config["colors_enabled"] = enabled
    _color_palette.clear()
    _color_palette.update(_DEFAULT_PALETTE)
    if palette:
        _color_palette.update(palette)

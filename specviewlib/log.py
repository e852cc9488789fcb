"""Debug tracing for the cache and render scheduler.

``dbg()`` messages go to the ``specview.trace`` logger, but only while
the environment variable ``SPECVIEW_DEBUG`` is ``1`` or ``true``.  The
first enabled message attaches a stderr handler, so tracing works without
any logging setup in the host program.
"""

from __future__ import annotations

import logging
import os
import sys

trace_log = logging.getLogger("specview.trace")
_handler: logging.Handler | None = None


def enabled() -> bool:
    return os.environ.get("SPECVIEW_DEBUG", "").strip().lower() in ("1", "true")


def _ensure_handler() -> None:
    global _handler
    if _handler is None:
        _handler = logging.StreamHandler()
        _handler.setFormatter(logging.Formatter(
            "[%(asctime)s.%(msecs)03d %(origin)s] %(message)s", datefmt="%H:%M:%S"))
        trace_log.addHandler(_handler)
        trace_log.setLevel(logging.DEBUG)


def dbg(msg: str) -> None:
    """Trace *msg*, tagged with the calling module (e.g. ``scheduler``)."""
    if not enabled():
        return
    _ensure_handler()
    origin = sys._getframe(1).f_globals.get("__name__", "?").rsplit(".", 1)[-1]
    trace_log.debug(msg, extra={"origin": origin})

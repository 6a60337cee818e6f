"""Textual integration for refractx. Opt-in — requires textual.

context_for(app, on_write) builds an ObservationContext whose wrappers call
on_write(target, key) after every write, so widgets can refresh from observed
state. Guard + NoMatches + thread-marshal are enforced here, not at callsites.

Pause state is owned by this module and keyed by id(app), so multiple apps
work in tests: an id is present exactly while inside a pause() block.
"""

import logging
import threading
from contextlib import contextmanager

from textual.css.query import NoMatches

from refractx.handlers import CollectionHandlers, PlainHandlers
from refractx.reactive import ObservationContext

logger = logging.getLogger("refractx.textual")

_paused_apps: set[int] = set()


@contextmanager
def pause(app):
    """Suspend write notifications during widget replacement."""
    key = id(app)
    _paused_apps.add(key)
    try:
        yield
    finally:
        _paused_apps.discard(key)


def is_safe(app) -> bool:
    """Is the widget tree in a queryable state?"""
    return app.is_running and id(app) not in _paused_apps


def context_for(app, on_write, *, warn: bool = __debug__) -> ObservationContext:
    """An ObservationContext whose writes notify ``on_write`` safely.

    Notifications are dropped while the app is not running or paused,
    marshaled through call_from_thread when the write happens off the
    thread that built the context, and NoMatches from widget queries is
    swallowed.

    Usage:
        ctx = context_for(app, lambda target, key: app.refresh_bindings())
        state = ctx.observe({"status": "idle"})
        state["status"] = "busy"  # on_write(raw dict, "status")
    """
    _main = threading.get_ident()

    def _guarded(target, key):
        if not is_safe(app):
            return
        if threading.get_ident() != _main:
            app.call_from_thread(_safe, target, key)
        else:
            _safe(target, key)

    def _safe(target, key):
        try:
            on_write(target, key)
        except NoMatches:
            logger.debug("No widget matched for write to %r", key)

    class _Plain(PlainHandlers):
        def trigger(self, target, key):
            _guarded(target, key)

    class _Collection(CollectionHandlers):
        def trigger(self, target, key):
            _guarded(target, key)

    return ObservationContext(plain=_Plain, collection=_Collection, warn=warn)

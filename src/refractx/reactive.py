"""Observation context — canonical wrappers per raw value and mode.

An ObservationContext owns every piece of observation state:

- one WrapperCache per mode (raw <-> mutable wrapper, raw <-> readonly wrapper);
- the forced-readonly and non-observable marking sets;
- the dependency registry (raw -> key -> set of subscribers), seeded here
  and filled by whatever effect system the handler sets feed.

Exactly one wrapper exists per (raw value, mode). Nothing in here raises
for ineligible input: it is handed back unchanged.

The module-level functions act on the current context, held in a
ContextVar so tests and embedders can swap in a fresh one with
use_context().
"""

from __future__ import annotations

import contextvars
import logging
import threading
from contextlib import contextmanager
from typing import Callable, Iterator, TypeVar

from refractx._anchor import _MISSING, Pins, WeakIdentityDict, WeakIdentitySet, WrapperCache
from refractx.classify import TargetKind, has_host_sentinel, is_composite, target_kind
from refractx.handlers import CollectionHandlers, Handlers, PlainHandlers
from refractx.proxy import Observed

logger = logging.getLogger("refractx.reactive")

T = TypeVar("T")

Dep = set
KeyToDepMap = dict
HandlerFactory = Callable[..., Handlers]


class ObservationContext:
    """Owner of all wrapper caches, marks and dependency bookkeeping."""

    def __init__(
        self,
        *,
        plain: HandlerFactory = PlainHandlers,
        collection: HandlerFactory = CollectionHandlers,
        is_host_internal: Callable[[object], bool] = has_host_sentinel,
        warn: bool = __debug__,
    ) -> None:
        self._lock = threading.RLock()
        self._pins = Pins()
        self.mutable = WrapperCache()
        self.readonly = WrapperCache()
        self.readonly_values = WeakIdentitySet(self._pins)
        self.non_observable = WeakIdentitySet(self._pins)
        self.target_map = WeakIdentityDict(self._pins)
        self.is_host_internal = is_host_internal
        self.warn = warn
        self._mutable_handlers = (plain(self, readonly=False), collection(self, readonly=False))
        self._readonly_handlers = (plain(self, readonly=True), collection(self, readonly=True))

    def can_observe(self, value: object) -> bool:
        return (
            is_composite(value)
            and target_kind(value) is not TargetKind.INVALID
            and not self.is_host_internal(value)
            and value not in self.non_observable
        )

    def observe(self, target: T) -> T:
        """Return the mutable wrapper for target, creating it on first use."""
        # A readonly wrapper is never escalated to a mutable one.
        if self.readonly.is_wrapper(target):
            return target
        if target in self.readonly_values:
            return self.observe_readonly(target)
        return self._canonicalize(target, self.mutable, self._mutable_handlers)

    def observe_readonly(self, target: T) -> T:
        """Return the readonly wrapper for target, creating it on first use."""
        raw = self.mutable.raw_for(target, _MISSING)
        if raw is not _MISSING:
            target = raw
        return self._canonicalize(target, self.readonly, self._readonly_handlers)

    def _canonicalize(self, target, cache: WrapperCache, handlers: tuple[Handlers, Handlers]):
        if not is_composite(target):
            if self.warn:
                logger.warning("value cannot be made observable: %r", target)
            return target
        with self._lock:
            observed = cache.wrapper_for(target)
            if observed is not None:
                return observed
            # target is already a wrapper of this mode
            if cache.is_wrapper(target):
                return target
            if not self.can_observe(target):
                return target
            plain, collection = handlers
            kind = target_kind(target)
            observed = Observed(target, collection if kind is TargetKind.COLLECTION else plain)
            cache.add(target, observed)
            self.target_map.setdefault(target, KeyToDepMap)
        return observed

    def is_observed(self, value: object) -> bool:
        return self.mutable.is_wrapper(value) or self.readonly.is_wrapper(value)

    def is_readonly(self, value: object) -> bool:
        return self.readonly.is_wrapper(value)

    def to_raw(self, observed: T) -> T:
        raw = self.mutable.raw_for(observed, _MISSING)
        if raw is _MISSING:
            raw = self.readonly.raw_for(observed, observed)
        return raw

    def mark_readonly(self, value: T) -> T:
        """Make observe(value) hand out the readonly wrapper. Returns value."""
        if self._markable(value):
            self.readonly_values.add(value)
        return value

    def mark_non_observable(self, value: T) -> T:
        """Exclude value from observation for good. Returns value."""
        if self._markable(value):
            self.non_observable.add(value)
        return value

    def _markable(self, value: object) -> bool:
        if is_composite(value):
            return True
        if self.warn:
            logger.warning("value cannot be marked: %r", value)
        return False

    def dependencies(self, value: object) -> KeyToDepMap | None:
        """The key -> subscribers map for an observed value or its raw value."""
        return self.target_map.get(self.to_raw(value))

    def sweep(self) -> int:
        """Release bookkeeping for values that refuse weak references and
        are no longer referenced anywhere else. Returns the count released."""
        with self._lock:
            released = self._pins.sweep()
        logger.debug("Swept %d unreferenced values", released)
        return released


# ─── Current context ─────────────────────────────────────────────────────────

_default_context = ObservationContext()

_current_context: contextvars.ContextVar[ObservationContext] = contextvars.ContextVar(
    "current_context", default=_default_context
)


def current_context() -> ObservationContext:
    return _current_context.get()


@contextmanager
def use_context(context: ObservationContext) -> Iterator[ObservationContext]:
    """Route the module-level functions to ``context`` inside the block.

    Usage:
        with use_context(ObservationContext(warn=False)) as ctx:
            state = observe({"count": 0})
            assert ctx.is_observed(state)
    """
    token = _current_context.set(context)
    try:
        yield context
    finally:
        _current_context.reset(token)


def observe(target: T) -> T:
    return _current_context.get().observe(target)


def observe_readonly(target: T) -> T:
    return _current_context.get().observe_readonly(target)


def is_observed(value: object) -> bool:
    return _current_context.get().is_observed(value)


def is_readonly(value: object) -> bool:
    return _current_context.get().is_readonly(value)


def to_raw(observed: T) -> T:
    return _current_context.get().to_raw(observed)


def mark_readonly(value: T) -> T:
    return _current_context.get().mark_readonly(value)


def mark_non_observable(value: T) -> T:
    return _current_context.get().mark_non_observable(value)


def can_observe(value: object) -> bool:
    return _current_context.get().can_observe(value)

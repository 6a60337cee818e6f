"""Data anchor — identity-keyed containers that hold all observation state.

Most observable Python values (list, dict, set, SimpleNamespace) are either
unhashable or refuse weak references, so every container here is keyed by
id(). Entries are kept honest in two ways:

- keys that support weak references carry a weakref whose callback evicts
  the entry when the key is collected;
- other keys are pinned in a shared Pins table and evicted by Pins.sweep()
  once nothing outside the table references them.
"""

from __future__ import annotations

import functools
import sys
import weakref
from typing import Callable

_MISSING = object()

_getrefcount = getattr(sys, "getrefcount", None)

# type -> supports weak references
_weakrefable: dict[type, bool] = {}


def weakrefable(obj: object) -> bool:
    cls = type(obj)
    try:
        return _weakrefable[cls]
    except KeyError:
        pass
    try:
        weakref.ref(obj)
    except TypeError:
        result = False
    else:
        result = True
    _weakrefable[cls] = result
    return result


def _held_refcount(objects: dict[int, object], ident: int) -> int:
    # Pins.sweep() calibrates against a throwaway table through this same path.
    return _getrefcount(objects[ident])


class Pins:
    """Strong holds for keys that cannot be weakly referenced."""

    def __init__(self) -> None:
        self._objects: dict[int, object] = {}
        self._evictors: list[Callable[[int, object], None]] = []

    def on_evict(self, evictor: Callable[[int, object], None]) -> None:
        self._evictors.append(evictor)

    def pin(self, obj: object) -> None:
        self._objects[id(obj)] = obj

    def holds(self, obj: object) -> bool:
        return self._objects.get(id(obj), _MISSING) is obj

    def sweep(self) -> int:
        """Release pinned objects referenced by nothing but this table.

        Returns the number of objects released. A no-op on interpreters
        without reference counts.
        """
        if _getrefcount is None:
            return 0
        baseline = _held_refcount({0: []}, 0)
        released = [
            ident for ident in list(self._objects)
            if _held_refcount(self._objects, ident) <= baseline
        ]
        for ident in released:
            del self._objects[ident]
            for evict in self._evictors:
                evict(ident, None)
        return len(released)

    def __len__(self) -> int:
        return len(self._objects)


class WeakIdentityDict:
    """Mapping keyed by object identity that never keeps its keys alive.

    Keys that refuse weak references are pinned in ``pins`` until swept.
    """

    def __init__(self, pins: Pins) -> None:
        self._pins = pins
        # ident -> (weakref to key, or None when pinned; value)
        self._entries: dict[int, tuple[weakref.ref | None, object]] = {}
        pins.on_evict(self._drop)

    def _drop(self, ident: int, ref: weakref.ref | None) -> None:
        entry = self._entries.get(ident)
        if entry is not None and entry[0] is ref:
            del self._entries[ident]

    def _lookup(self, key: object) -> object:
        entry = self._entries.get(id(key))
        if entry is None:
            return _MISSING
        ref, value = entry
        alive = ref() is key if ref is not None else self._pins.holds(key)
        return value if alive else _MISSING

    def __contains__(self, key: object) -> bool:
        return self._lookup(key) is not _MISSING

    def __getitem__(self, key: object) -> object:
        value = self._lookup(key)
        if value is _MISSING:
            raise KeyError(key)
        return value

    def get(self, key: object, default: object = None) -> object:
        value = self._lookup(key)
        return default if value is _MISSING else value

    def __setitem__(self, key: object, value: object) -> None:
        ident = id(key)
        if weakrefable(key):
            ref = weakref.ref(key, functools.partial(self._drop, ident))
        else:
            ref = None
            self._pins.pin(key)
        self._entries[ident] = (ref, value)

    def setdefault(self, key: object, factory: Callable[[], object]) -> object:
        """Return the value for key, storing factory() first if absent."""
        value = self._lookup(key)
        if value is _MISSING:
            value = factory()
            self[key] = value
        return value

    def __len__(self) -> int:
        return len(self._entries)


class WeakIdentitySet(WeakIdentityDict):
    """Membership set keyed by object identity."""

    def add(self, value: object) -> None:
        if value not in self:
            self[value] = True


class WrapperCache:
    """The raw<->wrapper pair of mappings for one observation mode.

    Wrappers are held only weakly; a live wrapper keeps its raw value alive,
    so an id() hit on a live entry always names the same raw object.
    """

    def __init__(self) -> None:
        self._by_raw: dict[int, weakref.ref] = {}
        self._by_wrapper: dict[int, tuple[weakref.ref, object]] = {}

    def add(self, raw: object, wrapper: object) -> None:
        raw_id, wrapper_id = id(raw), id(wrapper)
        ref = weakref.ref(wrapper, functools.partial(self._evict, raw_id, wrapper_id))
        self._by_raw[raw_id] = ref
        self._by_wrapper[wrapper_id] = (ref, raw)

    def _evict(self, raw_id: int, wrapper_id: int, ref: weakref.ref) -> None:
        if self._by_raw.get(raw_id) is ref:
            del self._by_raw[raw_id]
        entry = self._by_wrapper.get(wrapper_id)
        if entry is not None and entry[0] is ref:
            del self._by_wrapper[wrapper_id]

    def wrapper_for(self, raw: object) -> object | None:
        ref = self._by_raw.get(id(raw))
        return ref() if ref is not None else None

    def raw_for(self, wrapper: object, default: object = None) -> object:
        entry = self._by_wrapper.get(id(wrapper))
        if entry is None or entry[0]() is not wrapper:
            return default
        return entry[1]

    def is_wrapper(self, value: object) -> bool:
        return self.raw_for(value, _MISSING) is not _MISSING

    def __len__(self) -> int:
        return len(self._by_wrapper)

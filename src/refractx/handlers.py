"""Handler sets — the traps an Observed wrapper forwards every operation to.

The defaults forward to the raw target. Reads call track(target, key) and
writes call trigger(target, key); both are no-ops here and exist for an
effect system to override. Values read back are wrapped in the handler's
own mode, values written are stored raw. Read-only sets refuse writes.

A write triggers every key whose value it changed, then ITERATE if it
changed anything. Reads that see the whole content (iteration, slices,
values(), equality) track ITERATE plus each key they look at, so they are
notified by single-key writes as well.

Two flavors, picked by the context from the target's kind:
- PlainHandlers: attribute access on namespaces, index access on lists.
- CollectionHandlers: keyed access and methods on dicts and sets.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Iterable, Iterator, TYPE_CHECKING

from refractx.classify import is_composite

if TYPE_CHECKING:
    from refractx.reactive import ObservationContext

logger = logging.getLogger("refractx.handlers")

_MISSING = object()


class _IterateKey:
    __slots__ = ()

    def __repr__(self) -> str:
        return "ITERATE"


# Key for structural reads and writes: iteration, length, membership, add/remove.
ITERATE = _IterateKey()

LIST_MUTATORS = frozenset({
    "append", "extend", "insert", "pop", "remove", "clear", "sort", "reverse",
})

LIST_READERS = frozenset({"count", "index"})

COLLECTION_MUTATORS = frozenset({
    "add", "discard", "remove", "pop", "popitem", "clear", "update", "setdefault",
    "difference_update", "intersection_update", "symmetric_difference_update",
})

MAPPING_READERS = frozenset({"get", "values", "items", "copy"})

# Mutators whose positional arguments are iterables of values to store.
BULK_MUTATORS = frozenset({
    "extend", "update",
    "difference_update", "intersection_update", "symmetric_difference_update",
})


def _changed(old: object, new: object) -> bool:
    return old is not new and old != new


class Handlers:
    """Forwarding trap set. ``receiver`` is the Observed the call came through."""

    def __init__(self, context: ObservationContext | None = None, readonly: bool = False) -> None:
        self.context = context
        self.readonly = readonly

    # --- Hooks ---

    def track(self, target: object, key: object) -> None:
        """A read of ``key`` on ``target`` happened."""

    def trigger(self, target: object, key: object) -> None:
        """A write to ``key`` on ``target`` happened."""

    def track_contents(self, target: object) -> None:
        """A read of everything ``target`` holds happened."""
        self.track(target, ITERATE)

    # --- Helpers ---

    def wrap(self, value: object) -> object:
        if self.context is None or not is_composite(value):
            return value
        if self.readonly:
            return self.context.observe_readonly(value)
        return self.context.observe(value)

    def unwrap(self, value: object) -> object:
        return value if self.context is None else self.context.to_raw(value)

    def unwrap_each(self, values: Iterable[object], pairs: bool = False) -> object:
        """Raw copy of a bulk argument: its items, or its key/value pairs."""
        values = self.unwrap(values)
        if not pairs:
            return [self.unwrap(value) for value in values]
        if hasattr(values, "keys"):
            return {self.unwrap(key): self.unwrap(values[key]) for key in values.keys()}
        return [(self.unwrap(key), self.unwrap(value)) for key, value in values]

    def refuse(self, target: object, key: object) -> None:
        logger.warning("Write to %r failed: target is readonly: %r", key, target)

    def snapshot(self, target: object) -> object:
        """State of target before a multi-key write, for changed_keys()."""
        return None

    def changed_keys(self, target: object, before: object) -> Iterable[object]:
        return ()

    def trigger_changes(self, target: object, before: object) -> None:
        keys = list(self.changed_keys(target, before))
        for key in keys:
            self.trigger(target, key)
        if keys:
            self.trigger(target, ITERATE)

    def instrument(self, target: object, name: str):
        """Return target's mutating method ``name`` routed through this set."""
        method = getattr(target, name)
        pairs = isinstance(target, Mapping)

        def mutator(*args, **kwargs):
            if self.readonly:
                self.refuse(target, name)
                return None
            if name in BULK_MUTATORS:
                args = [self.unwrap_each(arg, pairs) for arg in args]
            else:
                args = [self.unwrap(arg) for arg in args]
            kwargs = {key: self.unwrap(value) for key, value in kwargs.items()}
            before = self.snapshot(target)
            result = method(*args, **kwargs)
            self.trigger_changes(target, before)
            return self.wrap(result)

        mutator.__name__ = name
        return mutator

    # --- Attribute traps ---

    def get(self, target: object, name: str, receiver: object) -> object:
        value = getattr(target, name)
        if callable(value):
            self.track(target, ITERATE)
            return value
        self.track(target, name)
        return self.wrap(value)

    def set(self, target: object, name: str, value: object, receiver: object) -> None:
        if self.readonly:
            self.refuse(target, name)
            return
        value = self.unwrap(value)
        old = getattr(target, name, _MISSING)
        setattr(target, name, value)
        if old is _MISSING:
            self.trigger(target, name)
            self.trigger(target, ITERATE)
        elif _changed(old, value):
            self.trigger(target, name)

    def delete(self, target: object, name: str, receiver: object) -> None:
        if self.readonly:
            self.refuse(target, name)
            return
        delattr(target, name)
        self.trigger(target, name)
        self.trigger(target, ITERATE)

    # --- Item traps ---

    def get_item(self, target, key: object, receiver: object) -> object:
        self.track(target, key)
        return self.wrap(target[key])

    def set_item(self, target, key: object, value: object, receiver: object) -> None:
        if self.readonly:
            self.refuse(target, key)
            return
        value = self.unwrap(value)
        old = target[key] if key in target else _MISSING
        target[key] = value
        if old is _MISSING:
            self.trigger(target, key)
            self.trigger(target, ITERATE)
        elif _changed(old, value):
            self.trigger(target, key)

    def delete_item(self, target, key: object, receiver: object) -> None:
        if self.readonly:
            self.refuse(target, key)
            return
        del target[key]
        self.trigger(target, key)
        self.trigger(target, ITERATE)

    # --- Structural traps ---

    def has(self, target, item: object, receiver: object) -> bool:
        self.track(target, ITERATE)
        return item in target

    def iterate(self, target, receiver: object) -> Iterator[object]:
        self.track(target, ITERATE)
        return iter(target)

    def length(self, target, receiver: object) -> int:
        self.track(target, ITERATE)
        return len(target)

    def truth(self, target: object, receiver: object) -> bool:
        self.track(target, ITERATE)
        return bool(target)

    def equals(self, target: object, other: object, receiver: object) -> bool:
        self.track_contents(target)
        return target == self.unwrap(other)


class PlainHandlers(Handlers):
    """Namespaces and lists.

    List indices are tracked and triggered in their non-negative form, so a
    read of ``lst[2]`` and a write to ``lst[-1]`` on a three-item list meet
    on the same key.
    """

    def track_contents(self, target: object) -> None:
        self.track(target, ITERATE)
        keys = range(len(target)) if type(target) is list else list(vars(target))
        for key in keys:
            self.track(target, key)

    def snapshot(self, target: object) -> object:
        return list(target) if type(target) is list else None

    def changed_keys(self, target, before) -> Iterable[object]:
        # Everything from the first differing index on has moved or changed.
        if before is None:
            return ()
        shared = min(len(before), len(target))
        start = next((i for i in range(shared) if _changed(before[i], target[i])), shared)
        return range(start, max(len(before), len(target)))

    def _index(self, target, key: object) -> object:
        if type(target) is list and isinstance(key, int) and -len(target) <= key < 0:
            return key + len(target)
        return key

    def get(self, target: object, name: str, receiver: object) -> object:
        if type(target) is list:
            if name in LIST_MUTATORS:
                return self.instrument(target, name)
            if name in LIST_READERS:
                return self._reader(target, name)
            if name == "copy":
                return self._copy(target, receiver)
        return super().get(target, name, receiver)

    def _reader(self, target: list, name: str):
        method = getattr(target, name)

        def reader(*args):
            self.track_contents(target)
            return method(*[self.unwrap(arg) for arg in args])

        reader.__name__ = name
        return reader

    def _copy(self, target: list, receiver: object):
        def copy():
            return self.get_item(target, slice(None), receiver)

        return copy

    def get_item(self, target, key: object, receiver: object) -> object:
        if isinstance(key, slice):
            indices = range(len(target))[key]
            self.track(target, ITERATE)
            for index in indices:
                self.track(target, index)
            return [self.wrap(target[index]) for index in indices]
        return super().get_item(target, self._index(target, key), receiver)

    def set_item(self, target, key: object, value: object, receiver: object) -> None:
        if self.readonly:
            self.refuse(target, key)
            return
        if isinstance(key, slice):
            before = self.snapshot(target)
            target[key] = self.unwrap_each(value)
            self.trigger_changes(target, before)
            return
        # A list index is never a new key: out-of-range raises from the list.
        key = self._index(target, key)
        value = self.unwrap(value)
        old = target[key]
        target[key] = value
        if _changed(old, value):
            self.trigger(target, key)

    def delete_item(self, target, key: object, receiver: object) -> None:
        if self.readonly:
            self.refuse(target, key)
            return
        before = self.snapshot(target)
        del target[key]
        self.trigger_changes(target, before)

    def has(self, target, item: object, receiver: object) -> bool:
        self.track_contents(target)
        return self.unwrap(item) in target

    def iterate(self, target, receiver: object) -> Iterator[object]:
        self.track(target, ITERATE)
        for index, item in enumerate(list(target)):
            self.track(target, index)
            yield self.wrap(item)


class CollectionHandlers(Handlers):
    """Dicts, sets and their weak variants. Keys are always stored raw."""

    def track_contents(self, target: object) -> None:
        self.track(target, ITERATE)
        if isinstance(target, Mapping):
            for key in list(target):
                self.track(target, key)

    def snapshot(self, target: object) -> object:
        return dict(target) if isinstance(target, Mapping) else set(target)

    def changed_keys(self, target, before) -> Iterable[object]:
        if isinstance(before, dict):
            keys = [
                key for key, old in before.items()
                if key not in target or _changed(old, target[key])
            ]
            keys.extend(key for key in target if key not in before)
            return keys
        after = set(target)
        return [*(before - after), *(after - before)]

    def get(self, target: object, name: str, receiver: object) -> object:
        if name in COLLECTION_MUTATORS:
            return self.instrument(target, name)
        if name in MAPPING_READERS and isinstance(target, Mapping):
            return self._mapping_reader(target, name)
        return super().get(target, name, receiver)

    def _entries(self, target) -> list[tuple[object, object]]:
        self.track_contents(target)
        return [(key, self.wrap(value)) for key, value in list(target.items())]

    def _mapping_reader(self, target, name: str):
        if name == "get":
            def get(key, default=None):
                key = self.unwrap(key)
                self.track(target, key)
                return self.wrap(target.get(key, default))

            return get
        if name == "values":
            def values():
                return [value for _, value in self._entries(target)]

            return values
        if name == "items":
            def items():
                return self._entries(target)

            return items

        def copy():
            result = target.copy()
            result.update(self._entries(target))
            return result

        return copy

    def get_item(self, target, key: object, receiver: object) -> object:
        return super().get_item(target, self.unwrap(key), receiver)

    def set_item(self, target, key: object, value: object, receiver: object) -> None:
        super().set_item(target, self.unwrap(key), value, receiver)

    def delete_item(self, target, key: object, receiver: object) -> None:
        super().delete_item(target, self.unwrap(key), receiver)

    def has(self, target, item: object, receiver: object) -> bool:
        item = self.unwrap(item)
        self.track(target, item)
        return item in target

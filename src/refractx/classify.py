"""Observability classifier — which values may be wrapped, and how.

Kinds are decided by the exact runtime type, never by isinstance or duck
typing: a dict subclass or an arbitrary class instance is not observable.
"""

from __future__ import annotations

import enum
import numbers
import types
import weakref


class TargetKind(enum.Enum):
    INVALID = 0
    COMMON = 1  # attribute / index access, plain handler set
    COLLECTION = 2  # keyed and set-like containers, collection handler set


_KINDS: dict[type, TargetKind] = {
    types.SimpleNamespace: TargetKind.COMMON,
    list: TargetKind.COMMON,
    dict: TargetKind.COLLECTION,
    set: TargetKind.COLLECTION,
    weakref.WeakKeyDictionary: TargetKind.COLLECTION,
    weakref.WeakSet: TargetKind.COLLECTION,
}

# Attributes a host framework sets on its own internal node objects.
HOST_SENTINELS = ("_is_host_component", "_is_host_node")


# Never containers.
_SCALARS = (
    str, bytes, numbers.Number,
    types.FunctionType, types.BuiltinFunctionType, types.MethodType, type,
)


def is_composite(value: object) -> bool:
    """Anything but None, strings, bytes, numbers (bool included), functions and classes."""
    return not (value is None or isinstance(value, _SCALARS))


def target_kind(value: object) -> TargetKind:
    return _KINDS.get(type(value), TargetKind.INVALID)


def has_host_sentinel(value: object, names: tuple[str, ...] = HOST_SENTINELS) -> bool:
    """True if value carries any truthy host-framework sentinel attribute."""
    return any(getattr(value, name, False) for name in names)

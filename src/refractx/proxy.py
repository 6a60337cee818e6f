"""Observed — the wrapper handed out in place of a raw value.

An Observed owns nothing but its raw target and a handler set. Every
attribute, item, membership, iteration, length and equality operation is
forwarded to a trap on the handler set, which decides what to track and
what to refuse. Own state lives in name-mangled slots so it never shadows
target attributes.
"""

from __future__ import annotations

from typing import Iterator, TYPE_CHECKING

if TYPE_CHECKING:
    from refractx.handlers import Handlers


class Observed:
    """Interception wrapper over a raw value."""

    __slots__ = ("__target", "__handlers", "__weakref__")

    def __init__(self, target: object, handlers: Handlers) -> None:
        object.__setattr__(self, "_Observed__target", target)
        object.__setattr__(self, "_Observed__handlers", handlers)

    # --- Attributes ---

    def __getattr__(self, name: str) -> object:
        return self.__handlers.get(self.__target, name, self)

    def __setattr__(self, name: str, value: object) -> None:
        self.__handlers.set(self.__target, name, value, self)

    def __delattr__(self, name: str) -> None:
        self.__handlers.delete(self.__target, name, self)

    # --- Items ---

    def __getitem__(self, key: object) -> object:
        return self.__handlers.get_item(self.__target, key, self)

    def __setitem__(self, key: object, value: object) -> None:
        self.__handlers.set_item(self.__target, key, value, self)

    def __delitem__(self, key: object) -> None:
        self.__handlers.delete_item(self.__target, key, self)

    # --- Structure ---

    def __contains__(self, item: object) -> bool:
        return self.__handlers.has(self.__target, item, self)

    def __iter__(self) -> Iterator[object]:
        return self.__handlers.iterate(self.__target, self)

    def __len__(self) -> int:
        return self.__handlers.length(self.__target, self)

    def __bool__(self) -> bool:
        return self.__handlers.truth(self.__target, self)

    def __eq__(self, other: object) -> bool:
        return self.__handlers.equals(self.__target, other, self)

    # Equal wrappers stay distinct cache and weakref keys.
    __hash__ = object.__hash__

    def __repr__(self) -> str:
        mode = ", readonly" if self.__handlers.readonly else ""
        return f"Observed({self.__target!r}{mode})"

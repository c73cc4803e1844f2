"""Process-wide keyed data store.

A single long-lived mapping created once per ``App`` and shared by every
request. Handlers reach it through ``ctx.data(key, default, update)``::

    async def hits(ctx):
        await ctx.data("hits", 0)                       # initialise once
        return await ctx.data("hits", 0, lambda n: n + 1)

Semantics of ``get_or_put(key, default, update)``:

- key absent  -> store ``default`` and return it (``default`` is applied
  at most once per key; ``None`` is a legitimate stored value)
- key present, ``update`` given -> await ``update(current)``, then store
  and return the new value. Readers see the old value until the update
  completes. If the update raises, nothing is written and the caller
  gets ``DataUpdateError``.
- key present, no ``update`` -> return the current value

There is no locking. Two overlapping async updates of the same key both
read the value current at their start, and the one that finishes last
wins.
"""

from collections.abc import Iterator, Mapping
from typing import Any

from perch._internal.invoke import invoke
from perch._internal.types import Updater
from perch.errors import DataUpdateError


class DataStore:
    """Keyed values with get-or-default and update-closure semantics."""

    __slots__ = ("_values",)

    def __init__(self, initial: Mapping[Any, Any] | None = None) -> None:
        self._values: dict[Any, Any] = dict(initial or {})

    async def get_or_put(
        self,
        key: Any,
        default: Any = None,
        update: Updater | None = None,
    ) -> Any:
        """Return the value for *key*, initialising or updating it first."""
        if key not in self._values:
            self._values[key] = default
            return default
        if update is None:
            return self._values[key]
        try:
            new_value = await invoke(update, self._values[key])
        except Exception as exc:
            raise DataUpdateError(key, exc) from exc
        self._values[key] = new_value
        return new_value

    def peek(self, key: Any, default: Any = None) -> Any:
        """Read *key* without initialising it."""
        return self._values.get(key, default)

    def snapshot(self) -> dict[Any, Any]:
        """Shallow copy of the current contents."""
        return dict(self._values)

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[Any]:
        return iter(self._values)

    def __repr__(self) -> str:
        return f"<DataStore keys={len(self._values)}>"


class DataAccessor:
    """The ``ctx.data`` callable: a thin binding to one shared store."""

    __slots__ = ("store",)

    def __init__(self, store: DataStore) -> None:
        self.store = store

    async def __call__(
        self,
        key: Any,
        default: Any = None,
        update: Updater | None = None,
    ) -> Any:
        return await self.store.get_or_put(key, default, update)

"""Row-to-dataclass mapping with light type coercion.

SQLite hands back whatever affinity the column had, so a field annotated
``int`` may arrive as ``"45"``. Coercion covers ``int``, ``float``,
``bool`` and ``str`` (including their ``X | None`` forms); anything else
is passed through.
"""

import dataclasses
import types
from typing import Any, get_args, get_origin

_COERCIBLE: dict[type, Any] = {
    int: lambda v: int(v) if v != "" else 0,
    float: lambda v: float(v) if v != "" else 0.0,
    bool: lambda v: bool(int(v)) if isinstance(v, str) else bool(v),
    str: str,
}


def _target_types(cls: type) -> dict[str, type | None]:
    targets: dict[str, type | None] = {}
    for f in dataclasses.fields(cls):
        annotation = f.type
        if get_origin(annotation) is types.UnionType:
            args = [a for a in get_args(annotation) if a is not type(None)]
            annotation = args[0] if len(args) == 1 else None
        targets[f.name] = annotation if annotation in _COERCIBLE else None
    return targets


def _coerce(value: Any, target: type | None) -> Any:
    if target is None or value is None or isinstance(value, target):
        return value
    return _COERCIBLE[target](value)


def map_rows[T](cls: type[T], rows: list[dict[str, Any]]) -> list[T]:
    """Map dict rows onto dataclass instances, ignoring extra columns.

    Raises ``TypeError`` if *cls* is not a dataclass or a required field
    is missing from a row.
    """
    if not dataclasses.is_dataclass(cls):
        msg = f"{cls.__name__} is not a dataclass; perch.data maps rows onto dataclasses"
        raise TypeError(msg)
    targets = _target_types(cls)
    return [
        cls(**{k: _coerce(v, targets[k]) for k, v in row.items() if k in targets})
        for row in rows
    ]


def map_row[T](cls: type[T], row: dict[str, Any]) -> T:
    return map_rows(cls, [row])[0]

"""Query string of a request, decoded once."""

from collections.abc import Iterator, Mapping
from urllib.parse import parse_qsl


class QueryParams(Mapping[str, str]):
    """Read-only view of ``?a=1&b=2``.

    Indexing gives the first value of a repeated key; ``get_list`` gives
    all of them. Blank values (``?flag=``) are kept as ``""``.
    """

    __slots__ = ("_raw", "_values")

    def __init__(self, query_string: bytes = b"") -> None:
        self._raw = query_string
        self._values: dict[str, list[str]] = {}
        for key, value in parse_qsl(query_string.decode("latin-1"), keep_blank_values=True):
            self._values.setdefault(key, []).append(value)

    def __getitem__(self, key: str) -> str:
        return self._values[key][0]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"QueryParams({self._raw!r})"

    def get_list(self, key: str) -> list[str]:
        return list(self._values.get(key, ()))

    def get_int(self, key: str, default: int | None = None) -> int | None:
        """First value of *key* as an int; *default* when absent or not a number.

        Handy for paging arguments such as ``?limit=10&offset=20``.
        """
        try:
            return int(self[key])
        except (KeyError, ValueError):
            return default

    @property
    def raw(self) -> bytes:
        return self._raw

"""Wrapper around the session payload returned by the Access Watch API.

The API decides what a session contains; the client only relies on the
``blocked`` flag and passes everything else through untouched.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Iterator


@dataclass(frozen=True, slots=True, eq=False)
class Session(Mapping):
    """Read-only view of a classified visitor session.

    Example::

        session = await aw.resolve_session(request)
        if session.blocked:
            return PlainTextResponse("Forbidden", status_code=403)
        robot = session.get("robot")
    """

    _data: Mapping[str, Any]

    @classmethod
    def from_cached(cls, value: Any) -> "Session | None":
        """Build a ``Session`` from a cache value, or ``None`` on a miss.

        Caches that only hold strings may hand back the JSON text.
        """
        if value is None:
            return None
        if isinstance(value, Session):
            return value
        if isinstance(value, (bytes, bytearray)):
            value = bytes(value).decode("utf-8")
        if isinstance(value, str):
            if not value:
                return None
            value = json.loads(value)
        if isinstance(value, Mapping):
            return cls(value)
        return None

    @property
    def blocked(self) -> bool:
        """``True`` if the API wants requests matching this session blocked."""
        return isinstance(self._data, Mapping) and bool(self._data.get("blocked"))

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"Session({self.to_json()})"

    def to_dict(self) -> dict[str, Any]:
        return dict(self._data)

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"), default=str)

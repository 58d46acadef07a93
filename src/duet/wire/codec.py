"""Payload codec — closed-type JSON encoding for render and event payloads.

The supported value set is deliberately small and explicit::

    None, bool, int, float, str,
    list / tuple (ordered sequence),
    dict with str keys,
    and any nesting of the above.

Anything else (objects, sets, bytes, enum members, non-finite floats, cyclic
structures) is rejected with ``UnsupportedTypeError`` instead of being passed
through untyped.  The wire format is compact UTF-8 JSON so a browser-side
script can consume it with ``JSON.parse``.

Precision:
    ints are arbitrary precision and floats use Python's shortest
    round-tripping repr, so ``decode(encode(v)) == v`` holds exactly.
    ``1`` and ``1.0`` stay distinct on the wire.

"""

from __future__ import annotations

import json
import math
from collections.abc import Mapping, Sequence
from enum import Enum
from typing import Any, Literal

from duet._errors import UnsupportedTypeError

_SEPARATORS = (",", ":")


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _check(value: Any, active: set[int], path: str) -> None:
    """Walk *value* and raise if anything falls outside the supported set.

    ``active`` holds the ids of the containers on the current descent path;
    meeting one again means the structure is cyclic.  Shared (acyclic)
    sub-structures are fine and are encoded once per occurrence.

    """
    if value is None or isinstance(value, str | bool):
        if isinstance(value, Enum):
            raise UnsupportedTypeError(f"enum member at {path}: {value!r}")
        return

    if isinstance(value, int):
        if isinstance(value, Enum):
            raise UnsupportedTypeError(f"enum member at {path}: {value!r}")
        return

    if isinstance(value, float):
        if not math.isfinite(value):
            raise UnsupportedTypeError(f"non-finite number at {path}: {value!r}")
        return

    if isinstance(value, list | tuple):
        marker = id(value)
        if marker in active:
            raise UnsupportedTypeError(f"cyclic structure at {path}")
        active.add(marker)
        for index, item in enumerate(value):
            _check(item, active, f"{path}[{index}]")
        active.discard(marker)
        return

    if isinstance(value, dict):
        marker = id(value)
        if marker in active:
            raise UnsupportedTypeError(f"cyclic structure at {path}")
        active.add(marker)
        for key, item in value.items():
            if not isinstance(key, str) or isinstance(key, Enum):
                raise UnsupportedTypeError(
                    f"mapping key at {path} must be str, got {type(key).__name__}"
                )
            _check(item, active, f"{path}.{key}")
        active.discard(marker)
        return

    raise UnsupportedTypeError(f"unsupported type at {path}: {type(value).__name__}")


def validate(value: Any) -> None:
    """Raise ``UnsupportedTypeError`` unless *value* is encodable."""
    try:
        _check(value, set(), "$")
    except RecursionError as exc:
        raise UnsupportedTypeError("structure nested too deeply") from exc


def _dumps(value: Any, *, sort_keys: bool = False) -> bytes:
    try:
        text = json.dumps(
            value,
            ensure_ascii=False,
            allow_nan=False,
            separators=_SEPARATORS,
            sort_keys=sort_keys,
        )
    except (ValueError, RecursionError) as exc:
        # Integers past the interpreter's str-conversion digit limit land here.
        raise UnsupportedTypeError(f"cannot encode value: {exc}") from exc
    return text.encode("utf-8")


# ---------------------------------------------------------------------------
# Encode / decode
# ---------------------------------------------------------------------------


def encode(value: Any) -> bytes:
    """Encode a supported value to wire bytes.

    Raises:
        UnsupportedTypeError: If *value* (or anything nested in it) is outside
            the supported set, the structure is cyclic or too deep, or an
            integer is too long to convert to text.

    """
    validate(value)
    return _dumps(value)


def _reject_constant(token: str) -> Any:
    raise UnsupportedTypeError(f"non-finite number on the wire: {token}")


def decode(data: bytes | bytearray | str) -> Any:
    """Decode wire bytes back into a supported value.

    Raises:
        UnsupportedTypeError: If the bytes are not valid UTF-8 JSON, carry
            ``NaN`` / ``Infinity`` tokens, nest too deeply, or hold an integer
            too long to convert.

    """
    if isinstance(data, bytes | bytearray):
        try:
            text = bytes(data).decode("utf-8")
        except UnicodeDecodeError as exc:
            raise UnsupportedTypeError(f"payload is not UTF-8: {exc}") from exc
    elif isinstance(data, str):
        text = data
    else:
        raise UnsupportedTypeError(f"cannot decode {type(data).__name__}")

    try:
        return json.loads(text, parse_constant=_reject_constant)
    except json.JSONDecodeError as exc:
        raise UnsupportedTypeError(f"malformed payload: {exc}") from exc
    except (ValueError, RecursionError) as exc:
        raise UnsupportedTypeError(f"cannot decode payload: {exc}") from exc


# ---------------------------------------------------------------------------
# Codec-level equality
# ---------------------------------------------------------------------------


def canonical(value: Any) -> bytes:
    """Encode *value* with sorted mapping keys.

    Two values are codec-equal when their canonical encodings match.  Unlike
    ``==``, this keeps ``True``/``1`` and ``1``/``1.0`` apart.

    """
    validate(value)
    return _dumps(value, sort_keys=True)


def same_payload(a: bytes, b: bytes) -> bool:
    """Return True if two wire payloads decode to codec-equal values."""
    if a == b:
        return True
    return canonical(decode(a)) == canonical(decode(b))


# ---------------------------------------------------------------------------
# Tabular helpers
# ---------------------------------------------------------------------------


def to_records(columns: Mapping[str, Sequence[Any]]) -> list[dict[str, Any]]:
    """Turn a column-oriented table into a list of row records.

    ``{"x": [1, 2], "y": ["a", "b"]}`` becomes
    ``[{"x": 1, "y": "a"}, {"x": 2, "y": "b"}]``, the shape most drawing
    scripts iterate over.

    Raises:
        UnsupportedTypeError: If the columns have different lengths.

    """
    names = list(columns)
    if not names:
        return []
    lengths = {name: len(columns[name]) for name in names}
    if len(set(lengths.values())) > 1:
        raise UnsupportedTypeError(f"ragged table columns: {lengths}")
    size = lengths[names[0]]
    return [{name: columns[name][row] for name in names} for row in range(size)]


def encode_table(
    columns: Mapping[str, Sequence[Any]],
    orient: Literal["rows", "columns"] = "rows",
) -> bytes:
    """Encode a column-oriented table as row records or as columns."""
    if orient == "rows":
        return encode(to_records(columns))
    if orient == "columns":
        return encode({name: list(values) for name, values in columns.items()})
    raise ValueError(f"orient must be 'rows' or 'columns', got {orient!r}")

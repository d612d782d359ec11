"""Serialization of RPC messages and persisted state.

Values are turned into self-contained byte frames so that a message never
shares objects with its sender.  Two common mistakes are reported: private
(underscore) dataclass fields, which are never transmitted, and decoding
into a target that already holds non-default values.
"""

from __future__ import annotations

import base64
import dataclasses
import json
import logging
import struct
import threading
from enum import Enum
from typing import Any, BinaryIO

logger = logging.getLogger(__name__)

_HEADER = struct.Struct(">I")

_lock = threading.Lock()
_error_count = 0
_checked: set[type] = set()
_names_by_type: dict[type, str] = {}
_types_by_name: dict[str, type] = {}


class LabGobError(ValueError):
    """Raised when a frame cannot be decoded."""


def error_count() -> int:
    """Number of problems reported so far."""
    with _lock:
        return _error_count


def _bump_errors() -> int:
    """Count one more problem and return the count before it."""
    global _error_count
    with _lock:
        previous = _error_count
        _error_count += 1
    return previous


def _is_record_type(cls: type) -> bool:
    return dataclasses.is_dataclass(cls) or issubclass(cls, Enum)


def _bind(name: str, cls: type) -> None:
    with _lock:
        known = _names_by_type.get(cls)
        if known is not None and known != name:
            raise ValueError(f"type {cls.__qualname__} already registered as {known!r}")
        other = _types_by_name.get(name)
        if other is not None and other is not cls:
            raise ValueError(f"name {name!r} already registered for another type")
        _names_by_type[cls] = name
        _types_by_name[name] = cls


def _type_name(cls: type) -> str:
    with _lock:
        name = _names_by_type.get(cls)
        if name is None:
            name = f"{cls.__module__}.{cls.__qualname__}"
            _names_by_type[cls] = name
            _types_by_name[name] = cls
        return name


def _lookup(name: str) -> type:
    with _lock:
        cls = _types_by_name.get(name)
    if cls is None:
        raise LabGobError(f"type not registered: {name}")
    return cls


def _check_type(cls: type) -> None:
    with _lock:
        if cls in _checked:
            return
        _checked.add(cls)
    if not dataclasses.is_dataclass(cls):
        return
    for f in dataclasses.fields(cls):
        if f.name.startswith("_"):
            logger.error(
                "labgob error: private field %s of %s in RPC or persist/snapshot "
                "is never transmitted and will break your Raft",
                f.name,
                cls.__name__,
            )
            _bump_errors()


def _check_value(value: Any) -> None:
    if isinstance(value, Enum):
        return
    if isinstance(value, type):
        _check_type(value)
        return
    if dataclasses.is_dataclass(value):
        _check_type(type(value))
        for f in dataclasses.fields(value):
            if not f.name.startswith("_"):
                _check_value(getattr(value, f.name))
    elif isinstance(value, (list, tuple)):
        for item in value:
            _check_value(item)
    elif isinstance(value, dict):
        for key, item in value.items():
            _check_value(key)
            _check_value(item)


def _check_default(value: Any, depth: int = 2, name: str = "") -> None:
    if depth > 3 or value is None or isinstance(value, Enum):
        return
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        for f in dataclasses.fields(value):
            child = f"{name}.{f.name}" if name else f.name
            _check_default(getattr(value, f.name), depth + 1, child)
        return
    if isinstance(value, (bool, int, float, str)) and value:
        if _bump_errors() < 1:
            logger.warning(
                "labgob warning: Decoding into a non-default variable/field %s may not work",
                name or type(value).__name__,
            )


def register(value: Any) -> None:
    """Register the type of *value* (or the class itself) under its default name."""
    cls = value if isinstance(value, type) else type(value)
    if not _is_record_type(cls):
        raise TypeError(f"only dataclasses and enums can be registered, not {cls.__name__}")
    _check_value(value)
    _bind(f"{cls.__module__}.{cls.__qualname__}", cls)


def register_name(name: str, value: Any) -> None:
    """Register the type of *value* (or the class itself) under *name*."""
    cls = value if isinstance(value, type) else type(value)
    if not _is_record_type(cls):
        raise TypeError(f"only dataclasses and enums can be registered, not {cls.__name__}")
    _check_value(value)
    _bind(name, cls)


def _encode(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, Enum):
        return {"e": _type_name(type(value)), "v": _encode(value.value)}
    if isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (bytes, bytearray)):
        return {"b": base64.b64encode(bytes(value)).decode("ascii")}
    if isinstance(value, list):
        return {"l": [_encode(item) for item in value]}
    if isinstance(value, tuple):
        return {"t": [_encode(item) for item in value]}
    if isinstance(value, dict):
        return {"d": [[_encode(k), _encode(v)] for k, v in value.items()]}
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {
            "s": _type_name(type(value)),
            "f": {
                f.name: _encode(getattr(value, f.name))
                for f in dataclasses.fields(value)
                if not f.name.startswith("_")
            },
        }
    raise TypeError(f"cannot encode value of type {type(value).__name__}")


def _build(cls: type, payload: dict[str, Any]) -> Any:
    obj = object.__new__(cls)
    for f in dataclasses.fields(cls):
        if f.name in payload:
            item = _decode(payload[f.name])
        elif f.default is not dataclasses.MISSING:
            item = f.default
        elif f.default_factory is not dataclasses.MISSING:
            item = f.default_factory()
        else:
            item = None
        object.__setattr__(obj, f.name, item)
    return obj


def _decode(node: Any) -> Any:
    if node is None or isinstance(node, (bool, int, float, str)):
        return node
    if not isinstance(node, dict) or not node:
        raise LabGobError("malformed frame")
    if "l" in node:
        return [_decode(item) for item in node["l"]]
    if "t" in node:
        return tuple(_decode(item) for item in node["t"])
    if "d" in node:
        return {_decode(k): _decode(v) for k, v in node["d"]}
    if "b" in node:
        return base64.b64decode(node["b"])
    if "e" in node:
        return _lookup(node["e"])(_decode(node["v"]))
    if "s" in node:
        cls = _lookup(node["s"])
        if not dataclasses.is_dataclass(cls):
            raise LabGobError(f"{node['s']} is not a record type")
        return _build(cls, node.get("f", {}))
    raise LabGobError("malformed frame")


class LabEncoder:
    """Writes length-prefixed frames to a binary stream."""

    def __init__(self, writer: BinaryIO) -> None:
        self._writer = writer

    def encode(self, value: Any) -> None:
        """Serialize *value* and write it as one frame."""
        _check_value(value)
        payload = json.dumps(_encode(value), separators=(",", ":")).encode("utf-8")
        self._writer.write(_HEADER.pack(len(payload)) + payload)


class LabDecoder:
    """Reads frames written by LabEncoder."""

    def __init__(self, reader: BinaryIO) -> None:
        self._reader = reader

    def decode(self) -> Any:
        """Read the next frame and return the value; EOFError at end of stream."""
        header = self._reader.read(_HEADER.size)
        if not header:
            raise EOFError("no more frames")
        if len(header) < _HEADER.size:
            raise LabGobError("truncated frame header")
        (size,) = _HEADER.unpack(header)
        payload = self._reader.read(size)
        if len(payload) < size:
            raise LabGobError("truncated frame")
        try:
            tree = json.loads(payload.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise LabGobError(f"bad frame: {exc}") from exc
        return _decode(tree)

    def decode_into(self, target: Any) -> Any:
        """Decode the next frame into a mutable *target* and return it."""
        is_record = dataclasses.is_dataclass(target) and not isinstance(target, type)
        if not (is_record or isinstance(target, (list, dict))):
            raise TypeError(f"cannot decode into a {type(target).__name__}")
        _check_value(target)
        _check_default(target)
        value = self.decode()
        if is_record:
            if type(value) is not type(target):
                raise TypeError(
                    f"frame holds {type(value).__name__}, target is {type(target).__name__}"
                )
            for f in dataclasses.fields(target):
                object.__setattr__(target, f.name, getattr(value, f.name))
        elif isinstance(target, list):
            if not isinstance(value, (list, tuple)):
                raise TypeError(f"frame holds {type(value).__name__}, target is list")
            target[:] = value
        else:
            if not isinstance(value, dict):
                raise TypeError(f"frame holds {type(value).__name__}, target is dict")
            target.clear()
            target.update(value)
        return target
"""Little-endian byte encoding shared by every serializable container.

Nested payloads use fixed-width fields: ``size_t`` is written as ``<Q``,
``int`` as ``<i`` and ``double`` as ``<d``. Top-level blobs additionally
carry a schema header (magic, schema version, kind tag) so that data
written by an incompatible layout is rejected instead of misread.
"""

from __future__ import annotations

import struct

import numpy as np

MAGIC = b"PFT1"
SCHEMA_VERSION = 1

_SIZE = struct.Struct("<Q")
_INT = struct.Struct("<i")
_DOUBLE = struct.Struct("<d")
_HEADER = struct.Struct("<4sIc")

KIND_GENERIC = b"G"
KIND_PIECEWISE = b"P"
KIND_QUASIMATRIX = b"Q"
KIND_QMARRAY = b"M"
KIND_FUNCTION_TRAIN = b"F"


class ByteWriter:
    """Append-only buffer for the nested payload layout."""

    def __init__(self) -> None:
        self._buf = bytearray()

    def write_size(self, value: int) -> None:
        if value < 0:
            raise ValueError(f"size_t field must be non-negative, got {value}")
        self._buf += _SIZE.pack(int(value))

    def write_int(self, value: int) -> None:
        self._buf += _INT.pack(int(value))

    def write_double(self, value: float) -> None:
        self._buf += _DOUBLE.pack(float(value))

    def write_doubles(self, values) -> None:
        arr = np.ascontiguousarray(values, dtype="<f8")
        self._buf += arr.tobytes()

    def getvalue(self) -> bytes:
        return bytes(self._buf)


class ByteReader:
    """Cursor over a serialized payload; raises ValueError on truncation."""

    def __init__(self, data: bytes, offset: int = 0) -> None:
        self._data = memoryview(data)
        self.offset = offset

    def _take(self, nbytes: int) -> memoryview:
        end = self.offset + nbytes
        if end > len(self._data):
            raise ValueError(
                f"Truncated payload: need {nbytes} bytes at offset "
                f"{self.offset}, only {len(self._data) - self.offset} left"
            )
        chunk = self._data[self.offset:end]
        self.offset = end
        return chunk

    def read_size(self) -> int:
        return _SIZE.unpack(self._take(_SIZE.size))[0]

    def read_int(self) -> int:
        return _INT.unpack(self._take(_INT.size))[0]

    def read_double(self) -> float:
        return _DOUBLE.unpack(self._take(_DOUBLE.size))[0]

    def read_doubles(self, n: int) -> np.ndarray:
        raw = self._take(8 * n)
        return np.frombuffer(raw, dtype="<f8").astype(float)

    def at_end(self) -> bool:
        return self.offset == len(self._data)

    def finish(self) -> None:
        """Raise ValueError if bytes remain after the decoded payload."""
        if not self.at_end():
            raise ValueError(
                f"Trailing data: {len(self._data) - self.offset} bytes after "
                f"offset {self.offset}"
            )



def pack(kind: bytes, body: bytes) -> bytes:
    """Prefix *body* with the schema header for *kind*."""
    return _HEADER.pack(MAGIC, SCHEMA_VERSION, kind) + body


def unpack(data: bytes, kind: bytes) -> ByteReader:
    """Validate the schema header and return a reader positioned after it.

    Raises
    ------
    ValueError
        If the magic, schema version or kind tag does not match.
    """
    if len(data) < _HEADER.size:
        raise ValueError("Payload too short to hold a schema header")
    magic, version, found = _HEADER.unpack_from(data, 0)
    if magic != MAGIC:
        raise ValueError(f"Bad magic {magic!r}; not a pyfunctrain payload")
    if version != SCHEMA_VERSION:
        raise ValueError(
            f"Unsupported schema version {version} (expected {SCHEMA_VERSION})"
        )
    if found != kind:
        raise ValueError(f"Payload holds kind {found!r}, expected {kind!r}")
    return ByteReader(data, _HEADER.size)


def frame(blob: bytes) -> bytes:
    """Prefix *blob* with its total size as a ``size_t``."""
    return _SIZE.pack(len(blob)) + blob


def unframe(data: bytes) -> bytes:
    """Inverse of :func:`frame`; checks the declared size."""
    if len(data) < _SIZE.size:
        raise ValueError("File too short to hold a size prefix")
    (size,) = _SIZE.unpack_from(data, 0)
    blob = data[_SIZE.size:]
    if len(blob) != size:
        raise ValueError(f"Size prefix says {size} bytes, found {len(blob)}")
    return blob

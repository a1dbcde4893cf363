"""Tests for the shared byte encoding."""

from __future__ import annotations

import struct

import numpy as np
import pytest

from pyfunctrain._serialize import (
    KIND_FUNCTION_TRAIN,
    KIND_QMARRAY,
    MAGIC,
    SCHEMA_VERSION,
    ByteReader,
    ByteWriter,
    frame,
    pack,
    unframe,
    unpack,
)


class TestFieldLayout:
    """Fixed-width little-endian fields."""

    def test_widths_and_order(self):
        w = ByteWriter()
        w.write_size(3)
        w.write_int(-2)
        w.write_double(1.5)
        w.write_doubles([0.25, -4.0])
        data = w.getvalue()
        assert len(data) == 8 + 4 + 8 + 16
        assert data[:8] == struct.pack("<Q", 3)
        assert data[8:12] == struct.pack("<i", -2)

        r = ByteReader(data)
        assert r.read_size() == 3
        assert r.read_int() == -2
        assert r.read_double() == 1.5
        np.testing.assert_array_equal(r.read_doubles(2), [0.25, -4.0])
        assert r.at_end()

    def test_negative_size_rejected(self):
        with pytest.raises(ValueError, match="non-negative"):
            ByteWriter().write_size(-1)

    def test_truncation(self):
        r = ByteReader(b"\x00" * 5)
        with pytest.raises(ValueError, match="Truncated"):
            r.read_size()


class TestSchemaHeader:
    """Magic, schema version and kind tag."""

    def test_pack_unpack(self):
        blob = pack(KIND_QMARRAY, b"\x01\x02")
        assert blob.startswith(MAGIC)
        r = unpack(blob, KIND_QMARRAY)
        assert r.offset == 9

    def test_bad_version(self):
        blob = struct.pack("<4sIc", MAGIC, SCHEMA_VERSION + 1, KIND_QMARRAY)
        with pytest.raises(ValueError, match="schema version"):
            unpack(blob, KIND_QMARRAY)

    def test_wrong_kind(self):
        with pytest.raises(ValueError, match="kind"):
            unpack(pack(KIND_QMARRAY, b""), KIND_FUNCTION_TRAIN)

    def test_too_short(self):
        with pytest.raises(ValueError, match="too short"):
            unpack(b"PF", KIND_QMARRAY)


class TestFrame:
    """Size-prefixed file framing."""

    def test_roundtrip(self):
        blob = b"abcdef"
        framed = frame(blob)
        assert framed[:8] == struct.pack("<Q", 6)
        assert unframe(framed) == blob

    def test_size_mismatch(self):
        with pytest.raises(ValueError, match="Size prefix"):
            unframe(struct.pack("<Q", 10) + b"abc")


class TestTrailingData:
    """Decoders consume the whole payload."""

    def test_finish_accepts_exact_payload(self):
        r = ByteReader(struct.pack("<Q", 7))
        assert r.read_size() == 7
        r.finish()

    def test_finish_rejects_leftover(self):
        r = ByteReader(struct.pack("<Qi", 7, 1))
        r.read_size()
        with pytest.raises(ValueError, match="Trailing data: 4 bytes"):
            r.finish()

"""Function-valued vectors and matrices.

:class:`Quasimatrix` is an ordered sequence of univariate functions and
:class:`Qmarray` an ``nrows x ncols`` grid of them, stored column-major
(entry ``(r, c)`` at index ``c * nrows + r``). Qmarrays are the cores of
a :class:`~pyfunctrain.function_train.FunctionTrain`.

Both containers own their entries: constructors, setters and extractors
deep-copy, so no two containers ever share a function object.
"""

from __future__ import annotations

import math
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from pyfunctrain._options import AdaptOpts
from pyfunctrain._serialize import (
    KIND_QMARRAY,
    KIND_QUASIMATRIX,
    ByteReader,
    ByteWriter,
    pack,
    unpack,
)
from pyfunctrain.generic import (
    FunctionClass,
    GenericFunction,
    array_orth,
    array_orth1d_columns,
    array_orth1d_rows,
    daxpby,
    inner,
    lin_comb,
)


# ======================================================================
# Quasimatrix
# ======================================================================

class Quasimatrix:
    """Ordered sequence of :class:`GenericFunction` (a function-valued vector).

    Parameters
    ----------
    funcs : sequence of GenericFunction
        Entries; each is deep-copied.
    """

    def __init__(self, funcs: Sequence[GenericFunction]):
        self.funcs = [f.copy() for f in funcs]

    @classmethod
    def _adopt(cls, funcs: List[GenericFunction]) -> "Quasimatrix":
        qm = cls.__new__(cls)
        qm.funcs = funcs
        return qm

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def approx1d(cls, fs: Sequence[Callable[[float], float]], fc, lb: float,
                 ub: float, opts: Optional[AdaptOpts] = None) -> "Quasimatrix":
        """Approximate each callable in *fs* on ``[lb, ub]``."""
        return cls._adopt([
            GenericFunction.approximate1d(f, fc, lb, ub, opts) for f in fs
        ])

    @classmethod
    def approx_from_fiber_cuts(cls, fcuts, fc, lb: float, ub: float,
                               opts: Optional[AdaptOpts] = None) -> "Quasimatrix":
        """Approximate a sequence of :class:`~pyfunctrain.generic.FiberCut`."""
        return cls.approx1d(fcuts, fc, lb, ub, opts)

    @classmethod
    def orth1d(cls, n: int, fc, lb: float = -1.0, ub: float = 1.0,
               ptype: str = "legendre") -> "Quasimatrix":
        """*n* orthonormal functions of class *fc*."""
        return cls._adopt(array_orth(n, fc, lb, ub, ptype))

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    @property
    def n(self) -> int:
        return len(self.funcs)

    def __len__(self) -> int:
        return len(self.funcs)

    def __getitem__(self, index: int) -> GenericFunction:
        return self.funcs[index]

    def set_func(self, index: int, f: GenericFunction) -> None:
        """Replace entry *index* with a copy of *f*."""
        self.funcs[index] = f.copy()

    def eval(self, x: float) -> np.ndarray:
        """Vector of all entries evaluated at *x*."""
        return np.array([f.eval(x) for f in self.funcs])

    # ------------------------------------------------------------------
    # Algebra
    # ------------------------------------------------------------------

    def _check_len(self, other: "Quasimatrix") -> None:
        if self.n != other.n:
            raise ValueError(f"Length mismatch: {self.n} vs {other.n}")

    def inner(self, other: "Quasimatrix") -> float:
        """``sum_i inner(self[i], other[i])``."""
        self._check_len(other)
        return sum(inner(a, b) for a, b in zip(self.funcs, other.funcs))

    def norm(self) -> float:
        return math.sqrt(max(self.inner(self), 0.0))

    @staticmethod
    def daxpby(a: float, x: Optional["Quasimatrix"], b: float,
               y: Optional["Quasimatrix"]) -> "Quasimatrix":
        """Entrywise ``a * x + b * y``; either operand may be ``None``."""
        if x is None and y is None:
            raise ValueError("daxpby needs at least one operand")
        if x is not None and y is not None:
            x._check_len(y)
        n = x.n if x is not None else y.n
        return Quasimatrix._adopt([
            daxpby(a, None if x is None else x.funcs[i],
                   b, None if y is None else y.funcs[i])
            for i in range(n)
        ])

    def qmm(self, matrix) -> "Quasimatrix":
        """Right-multiply by an ``n x k`` numeric matrix.

        Entry *j* of the result is ``sum_i matrix[i, j] * self[i]``.
        """
        matrix = np.asarray(matrix, dtype=float)
        if matrix.ndim != 2 or matrix.shape[0] != self.n:
            raise ValueError(
                f"Expected a matrix with {self.n} rows, got shape {matrix.shape}"
            )
        return Quasimatrix._adopt([
            lin_comb(matrix[:, j], self.funcs) for j in range(matrix.shape[1])
        ])

    def absmax(self) -> Tuple[int, float, float]:
        """Return ``(index, location, |value|)`` of the largest entry magnitude."""
        if not self.funcs:
            raise ValueError("absmax of an empty Quasimatrix is undefined")
        best = (0,) + tuple(self.funcs[0].absmax())
        for i, f in enumerate(self.funcs[1:], start=1):
            loc, val = f.absmax()
            if val > best[2]:
                best = (i, loc, val)
        return best

    def copy(self) -> "Quasimatrix":
        return Quasimatrix(self.funcs)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def write(self, writer: ByteWriter) -> None:
        writer.write_size(self.n)
        for f in self.funcs:
            f.write(writer)

    @classmethod
    def read(cls, reader: ByteReader) -> "Quasimatrix":
        n = reader.read_size()
        return cls._adopt([GenericFunction.read(reader) for _ in range(n)])

    def serialize(self) -> bytes:
        writer = ByteWriter()
        self.write(writer)
        return pack(KIND_QUASIMATRIX, writer.getvalue())

    @classmethod
    def deserialize(cls, data: bytes) -> "Quasimatrix":
        reader = unpack(data, KIND_QUASIMATRIX)
        out = cls.read(reader)
        reader.finish()
        return out

    def __repr__(self) -> str:
        return f"Quasimatrix(n={self.n})"


# ======================================================================
# Qmarray
# ======================================================================

class Qmarray:
    """``nrows x ncols`` matrix of univariate functions, column-major.

    Parameters
    ----------
    nrows, ncols : int
        Shape.
    funcs : sequence of GenericFunction
        ``nrows * ncols`` entries in column-major order; each is deep-copied.

    Examples
    --------
    >>> qm = Qmarray.zeros(2, 3, FunctionClass.POLYNOMIAL, -1.0, 1.0)
    >>> qm.eval(0.2).shape
    (2, 3)
    """

    def __init__(self, nrows: int, ncols: int, funcs: Sequence[GenericFunction]):
        self._check_shape(nrows, ncols, funcs)
        self.nrows = nrows
        self.ncols = ncols
        self.funcs = [f.copy() for f in funcs]

    @staticmethod
    def _check_shape(nrows: int, ncols: int, funcs) -> None:
        if nrows < 1 or ncols < 1:
            raise ValueError(f"Invalid shape ({nrows}, {ncols})")
        if len(funcs) != nrows * ncols:
            raise ValueError(
                f"Expected {nrows * ncols} functions for shape "
                f"({nrows}, {ncols}), got {len(funcs)}"
            )

    @classmethod
    def _adopt(cls, nrows: int, ncols: int,
               funcs: List[GenericFunction]) -> "Qmarray":
        cls._check_shape(nrows, ncols, funcs)
        qm = cls.__new__(cls)
        qm.nrows = nrows
        qm.ncols = ncols
        qm.funcs = funcs
        return qm

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def zeros(cls, nrows: int, ncols: int, fc, lb: float = -1.0,
              ub: float = 1.0, ptype: str = "legendre") -> "Qmarray":
        return cls._adopt(nrows, ncols, [
            GenericFunction.constant(0.0, fc, lb, ub, ptype)
            for _ in range(nrows * ncols)
        ])

    @classmethod
    def poly_randu(cls, nrows: int, ncols: int, maxorder: int,
                   lb: float = -1.0, ub: float = 1.0,
                   rng: Optional[np.random.Generator] = None) -> "Qmarray":
        """Random polynomial entries of degree *maxorder*."""
        rng = rng if rng is not None else np.random.default_rng()
        return cls._adopt(nrows, ncols, [
            GenericFunction.poly_randu(maxorder, lb, ub, rng)
            for _ in range(nrows * ncols)
        ])

    @classmethod
    def approx1d(cls, nrows: int, ncols: int,
                 fs: Sequence[Callable[[float], float]], fc, lb: float,
                 ub: float, opts: Optional[AdaptOpts] = None) -> "Qmarray":
        """Approximate the column-major callables *fs* entry by entry."""
        if len(fs) != nrows * ncols:
            raise ValueError(f"Expected {nrows * ncols} callables, got {len(fs)}")
        return cls._adopt(nrows, ncols, [
            GenericFunction.approximate1d(f, fc, lb, ub, opts) for f in fs
        ])

    @classmethod
    def from_fiber_cuts(cls, nrows: int, ncols: int, fcuts, fc, lb: float,
                        ub: float, opts: Optional[AdaptOpts] = None) -> "Qmarray":
        return cls.approx1d(nrows, ncols, fcuts, fc, lb, ub, opts)

    @classmethod
    def orth1d_columns(cls, nrows: int, ncols: int, fc, lb: float = -1.0,
                       ub: float = 1.0, ptype: str = "legendre") -> "Qmarray":
        """Qmarray whose columns are orthonormal quasimatrices."""
        return cls._adopt(nrows, ncols,
                          array_orth1d_columns(nrows, ncols, fc, lb, ub, ptype))

    @classmethod
    def orth1d_rows(cls, nrows: int, ncols: int, fc, lb: float = -1.0,
                    ub: float = 1.0, ptype: str = "legendre") -> "Qmarray":
        """Qmarray whose rows are orthonormal quasimatrices."""
        return cls._adopt(nrows, ncols,
                          array_orth1d_rows(nrows, ncols, fc, lb, ub, ptype))

    # ------------------------------------------------------------------
    # Access
    # ------------------------------------------------------------------

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.nrows, self.ncols)

    def _index(self, row: int, col: int) -> int:
        if not (0 <= row < self.nrows and 0 <= col < self.ncols):
            raise IndexError(
                f"Entry ({row}, {col}) out of range for shape {self.shape}"
            )
        return col * self.nrows + row

    def get(self, row: int, col: int) -> GenericFunction:
        """Stored entry ``(row, col)`` (not a copy)."""
        return self.funcs[self._index(row, col)]

    def set(self, row: int, col: int, f: GenericFunction) -> None:
        """Replace entry ``(row, col)`` with a copy of *f*."""
        self.funcs[self._index(row, col)] = f.copy()

    def extract_column(self, col: int) -> Quasimatrix:
        """Deep copy of column *col*."""
        self._index(0, col)
        start = col * self.nrows
        return Quasimatrix(self.funcs[start:start + self.nrows])

    def extract_row(self, row: int) -> Quasimatrix:
        """Deep copy of row *row*."""
        self._index(row, 0)
        return Quasimatrix(self.funcs[row::self.nrows])

    def extract_ncols(self, n: int) -> "Qmarray":
        """Deep copy of the first *n* columns."""
        if not 1 <= n <= self.ncols:
            raise ValueError(f"n must be in [1, {self.ncols}], got {n}")
        return Qmarray(self.nrows, n, self.funcs[:n * self.nrows])

    def set_column(self, col: int, qm: Quasimatrix) -> None:
        """Copy the quasimatrix *qm* into column *col*."""
        self.set_column_gf(col, qm.funcs)

    def set_column_gf(self, col: int, funcs: Sequence[GenericFunction]) -> None:
        if len(funcs) != self.nrows:
            raise ValueError(f"Column needs {self.nrows} functions, got {len(funcs)}")
        for row, f in enumerate(funcs):
            self.set(row, col, f)

    def set_row(self, row: int, qm: Quasimatrix) -> None:
        """Copy the quasimatrix *qm* into row *row*."""
        if qm.n != self.ncols:
            raise ValueError(f"Row needs {self.ncols} functions, got {qm.n}")
        for col, f in enumerate(qm.funcs):
            self.set(row, col, f)

    def eval(self, x: float) -> np.ndarray:
        """Numeric ``nrows x ncols`` matrix of the entries at *x*."""
        vals = np.array([f.eval(x) for f in self.funcs])
        return vals.reshape(self.ncols, self.nrows).T

    @property
    def lb(self) -> float:
        return self.funcs[0].lb

    @property
    def ub(self) -> float:
        return self.funcs[0].ub

    def copy(self) -> "Qmarray":
        return Qmarray(self.nrows, self.ncols, self.funcs)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def write(self, writer: ByteWriter) -> None:
        """Append ``nrows, ncols`` then the column-major entries."""
        writer.write_size(self.nrows)
        writer.write_size(self.ncols)
        for f in self.funcs:
            f.write(writer)

    @classmethod
    def read(cls, reader: ByteReader) -> "Qmarray":
        nrows = reader.read_size()
        ncols = reader.read_size()
        funcs = [GenericFunction.read(reader) for _ in range(nrows * ncols)]
        return cls._adopt(nrows, ncols, funcs)

    def serialize(self) -> bytes:
        writer = ByteWriter()
        self.write(writer)
        return pack(KIND_QMARRAY, writer.getvalue())

    @classmethod
    def deserialize(cls, data: bytes) -> "Qmarray":
        reader = unpack(data, KIND_QMARRAY)
        out = cls.read(reader)
        reader.finish()
        return out

    def __repr__(self) -> str:
        return f"Qmarray(nrows={self.nrows}, ncols={self.ncols})"

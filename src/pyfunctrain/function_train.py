"""Function trains: tensor-train products of univariate function matrices.

A :class:`FunctionTrain` of dimension *d* holds cores
``G_0, ..., G_{d-1}``, where ``G_k`` is a :class:`~pyfunctrain.qmarray.Qmarray`
of shape ``ranks[k] x ranks[k+1]`` and ``ranks[0] == ranks[d] == 1``:

    f(x_0, ..., x_{d-1}) = G_0(x_0) G_1(x_1) ... G_{d-1}(x_{d-1})

The closed-form constructors build exact low-rank trains for separable
structure (products, sums, affine and quadratic forms) without sampling.

References
----------
- Oseledets (2011), "Tensor-Train Decomposition", SIAM J. Sci. Comput.
  33(5):2295–2317.
- Gorodetsky, Karaman & Marzouk (2019), "A continuous analogue of the
  tensor-train decomposition", Comput. Methods Appl. Mech. Eng. 347.
"""

from __future__ import annotations

import os
import warnings
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from pyfunctrain._options import AdaptOpts
from pyfunctrain._serialize import (
    KIND_FUNCTION_TRAIN,
    ByteWriter,
    frame,
    pack,
    unframe,
    unpack,
)
from pyfunctrain.generic import FunctionClass, GenericFunction
from pyfunctrain.qmarray import Qmarray


# ======================================================================
# Module-level helpers
# ======================================================================

def _normalize_bds(dim: int, bds) -> List[Tuple[float, float]]:
    """Expand *bds* to one ``(lb, ub)`` pair per dimension."""
    if dim < 1:
        raise ValueError(f"dim must be >= 1, got {dim}")
    if bds is None:
        return [(-1.0, 1.0)] * dim
    arr = np.asarray(bds, dtype=float)
    if arr.shape == (2,):
        return [(float(arr[0]), float(arr[1]))] * dim
    if arr.shape == (dim, 2):
        return [(float(lo), float(hi)) for lo, hi in arr]
    raise ValueError(
        f"bds must be [lb, ub] or a ({dim}, 2) array, got shape {arr.shape}"
    )


def _const_like(a: float, f: GenericFunction) -> GenericFunction:
    """Constant *a* with the class, domain and basis of *f*."""
    if f.fc == FunctionClass.LINELM:
        return GenericFunction.constant(a, f.fc, f.lb, f.ub)
    return GenericFunction.constant(a, f.fc, f.lb, f.ub, f.payload.ptype)


# ======================================================================
# FunctionTrain
# ======================================================================

class FunctionTrain:
    """Chain of Qmarray cores representing a multivariate function.

    Parameters
    ----------
    cores : sequence of Qmarray
        Cores in order; each is deep-copied. Shapes must chain
        (``cores[k].ncols == cores[k+1].nrows``) and the outer ranks must
        be 1.

    Examples
    --------
    >>> ft = FunctionTrain.linear([1.0, 2.0, 3.0], [-1.0, 1.0])
    >>> round(ft.eval([0.1, 0.2, 0.3]), 12)
    1.4
    """

    def __init__(self, cores: Sequence[Qmarray]):
        self._check_cores(cores)
        self.cores = [core.copy() for core in cores]

    @staticmethod
    def _check_cores(cores: Sequence[Qmarray]) -> None:
        if len(cores) == 0:
            raise ValueError("A function train needs at least one core")
        if cores[0].nrows != 1 or cores[-1].ncols != 1:
            raise ValueError(
                f"Outer ranks must be 1, got {cores[0].nrows} and {cores[-1].ncols}"
            )
        for k in range(len(cores) - 1):
            if cores[k].ncols != cores[k + 1].nrows:
                raise ValueError(
                    f"Rank mismatch between core {k} ({cores[k].shape}) "
                    f"and core {k + 1} ({cores[k + 1].shape})"
                )

    @classmethod
    def _adopt(cls, cores: List[Qmarray]) -> "FunctionTrain":
        cls._check_cores(cores)
        ft = cls.__new__(cls)
        ft.cores = cores
        return ft

    # ------------------------------------------------------------------
    # Closed-form constructors
    # ------------------------------------------------------------------

    @classmethod
    def rankone(cls, dim: int, f: Callable[[float, int], float], bds=None,
                fc=FunctionClass.POLYNOMIAL,
                opts: Optional[AdaptOpts] = None) -> "FunctionTrain":
        """Product ``prod_k f(x_k, k)``; every rank is 1.

        Parameters
        ----------
        dim : int
            Number of variables.
        f : callable
            ``f(x, which)`` giving the factor for dimension *which*.
        bds : [lb, ub] or sequence of [lb, ub], optional
            Domain, shared or per dimension. Defaults to ``[-1, 1]``.
        fc : FunctionClass, optional
            Class of the factors.
        opts : AdaptOpts, optional
            Approximation options for the factors.
        """
        bds = _normalize_bds(dim, bds)
        cores = []
        for k, (lb, ub) in enumerate(bds):
            gf = GenericFunction.approximate1d(lambda x, k=k: f(x, k), fc, lb, ub, opts)
            cores.append(Qmarray._adopt(1, 1, [gf]))
        return cls._adopt(cores)

    @classmethod
    def initsum(cls, funcs: Sequence[GenericFunction]) -> "FunctionTrain":
        """Additive separable sum ``sum_k funcs[k](x_k)`` with ranks 2.

        Cores are ``[f_0, 1]``, ``[[1, 0], [f_k, 1]]`` and ``[1, f_{d-1}]^T``.
        """
        dim = len(funcs)
        if dim == 0:
            raise ValueError("initsum needs at least one function")
        if dim == 1:
            return cls._adopt([Qmarray._adopt(1, 1, [funcs[0].copy()])])

        cores = [Qmarray._adopt(1, 2, [funcs[0].copy(), _const_like(1.0, funcs[0])])]
        for f in funcs[1:-1]:
            cores.append(Qmarray._adopt(2, 2, [
                _const_like(1.0, f), f.copy(),
                _const_like(0.0, f), _const_like(1.0, f),
            ]))
        last = funcs[-1]
        cores.append(Qmarray._adopt(2, 1, [_const_like(1.0, last), last.copy()]))
        return cls._adopt(cores)

    @classmethod
    def initsum2(cls, dim: int, f: Callable[[float, int], float], bds=None,
                 fc=FunctionClass.POLYNOMIAL,
                 opts: Optional[AdaptOpts] = None) -> "FunctionTrain":
        """Sum ``sum_k f(x_k, k)`` with factors approximated per dimension."""
        bds = _normalize_bds(dim, bds)
        funcs = [
            GenericFunction.approximate1d(lambda x, k=k: f(x, k), fc, lb, ub, opts)
            for k, (lb, ub) in enumerate(bds)
        ]
        return cls.initsum(funcs)

    @classmethod
    def linear2(cls, coeffs: Sequence[float], offsets: Sequence[float], bds=None,
                fc=FunctionClass.POLYNOMIAL,
                ptype: str = "legendre") -> "FunctionTrain":
        """Affine function ``sum_k (coeffs[k] * x_k + offsets[k])``."""
        if len(coeffs) != len(offsets):
            raise ValueError(
                f"Got {len(coeffs)} coefficients and {len(offsets)} offsets"
            )
        bds = _normalize_bds(len(coeffs), bds)
        funcs = [
            GenericFunction.linear(c, a, fc, lb, ub, ptype)
            for c, a, (lb, ub) in zip(coeffs, offsets, bds)
        ]
        return cls.initsum(funcs)

    @classmethod
    def linear(cls, coeffs: Sequence[float], bds=None,
               fc=FunctionClass.POLYNOMIAL,
               ptype: str = "legendre") -> "FunctionTrain":
        """Linear function ``sum_k coeffs[k] * x_k``."""
        return cls.linear2(coeffs, [0.0] * len(coeffs), bds, fc, ptype)

    @classmethod
    def constant(cls, a: float, dim: int, bds=None,
                 fc=FunctionClass.POLYNOMIAL,
                 ptype: str = "legendre") -> "FunctionTrain":
        """Constant *a*: the first core holds *a*, every other core holds 1."""
        bds = _normalize_bds(dim, bds)
        cores = []
        for k, (lb, ub) in enumerate(bds):
            val = a if k == 0 else 1.0
            cores.append(Qmarray._adopt(1, 1, [
                GenericFunction.constant(val, fc, lb, ub, ptype)
            ]))
        return cls._adopt(cores)

    @classmethod
    def quadratic(cls, qm, m: Sequence[float], bds=None,
                  fc=FunctionClass.POLYNOMIAL,
                  ptype: str = "legendre") -> "FunctionTrain":
        """Quadratic form ``(x - m)^T Q (x - m)``.

        Ranks are ``1, d+1, d, ..., 3, 1``: the running row vector carries
        the accumulated value, one pending cross-term multiplier per
        remaining dimension and a trailing 1.

        Parameters
        ----------
        qm : array-like of shape (d, d)
            Coefficient matrix ``Q`` (need not be symmetric).
        m : sequence of float
            Center, length *d*.
        """
        qm = np.asarray(qm, dtype=float)
        dim = len(m)
        if qm.shape != (dim, dim):
            raise ValueError(f"Q must have shape ({dim}, {dim}), got {qm.shape}")
        bds = _normalize_bds(dim, bds)

        def quad(a, k):
            lb, ub = bds[k]
            return GenericFunction.quadratic(a, m[k], fc, lb, ub, ptype)

        def lin(c, k):
            lb, ub = bds[k]
            return GenericFunction.linear(c, -c * m[k], fc, lb, ub, ptype)

        def const(a, k):
            lb, ub = bds[k]
            return GenericFunction.constant(a, fc, lb, ub, ptype)

        if dim == 1:
            return cls._adopt([Qmarray._adopt(1, 1, [quad(qm[0, 0], 0)])])

        first = [quad(qm[0, 0], 0)]
        first += [lin(qm[0, kk] + qm[kk, 0], 0) for kk in range(1, dim)]
        first.append(const(1.0, 0))
        cores = [Qmarray._adopt(1, dim + 1, first)]

        for k in range(1, dim - 1):
            nrows = dim - k + 2
            ncols = dim - k + 1
            funcs = []
            for col in range(ncols):
                for row in range(nrows):
                    if col == 0:
                        if row == 0:
                            gf = const(1.0, k)
                        elif row == 1:
                            gf = lin(1.0, k)
                        elif row == nrows - 1:
                            gf = quad(qm[k, k], k)
                        else:
                            gf = const(0.0, k)
                    elif row == col + 1:
                        gf = const(1.0, k)
                    elif row == nrows - 1:
                        gf = lin(qm[k, k + col] + qm[k + col, k], k)
                    else:
                        gf = const(0.0, k)
                    funcs.append(gf)
            cores.append(Qmarray._adopt(nrows, ncols, funcs))

        k = dim - 1
        cores.append(Qmarray._adopt(3, 1, [
            const(1.0, k), lin(1.0, k), quad(qm[k, k], k),
        ]))
        return cls._adopt(cores)

    @classmethod
    def quadratic_aligned(cls, coeffs: Sequence[float], m: Sequence[float],
                          bds=None, fc=FunctionClass.POLYNOMIAL,
                          ptype: str = "legendre") -> "FunctionTrain":
        """Axis-aligned quadratic ``sum_k coeffs[k] * (x_k - m[k])**2``."""
        if len(coeffs) != len(m):
            raise ValueError(f"Got {len(coeffs)} coefficients and {len(m)} centers")
        bds = _normalize_bds(len(coeffs), bds)
        funcs = [
            GenericFunction.quadratic(c, mk, fc, lb, ub, ptype)
            for c, mk, (lb, ub) in zip(coeffs, m, bds)
        ]
        return cls.initsum(funcs)

    @classmethod
    def poly_randu(cls, dim: int, ranks: Sequence[int], maxorder: int,
                   bds=None,
                   rng: Optional[np.random.Generator] = None) -> "FunctionTrain":
        """Random polynomial train with the given *ranks* (length ``dim + 1``)."""
        if len(ranks) != dim + 1:
            raise ValueError(f"Expected {dim + 1} ranks, got {len(ranks)}")
        bds = _normalize_bds(dim, bds)
        rng = rng if rng is not None else np.random.default_rng()
        cores = [
            Qmarray.poly_randu(ranks[k], ranks[k + 1], maxorder, lb, ub, rng)
            for k, (lb, ub) in enumerate(bds)
        ]
        return cls._adopt(cores)

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def dim(self) -> int:
        return len(self.cores)

    @property
    def ranks(self) -> List[int]:
        """``[1, r_1, ..., r_{d-1}, 1]``."""
        return [self.cores[0].nrows] + [core.ncols for core in self.cores]

    @property
    def bds(self) -> List[Tuple[float, float]]:
        """Per-dimension domain, read from each core's first entry."""
        return [(core.lb, core.ub) for core in self.cores]

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def eval(self, x: Sequence[float]) -> float:
        """Evaluate the chained core product at one point."""
        x = np.asarray(x, dtype=float).ravel()
        if len(x) != self.dim:
            raise ValueError(f"Expected {self.dim} coordinates, got {len(x)}")
        out = self.cores[0].eval(x[0])
        for k in range(1, self.dim):
            out = out @ self.cores[k].eval(x[k])
        return float(out[0, 0])

    def __call__(self, x: Sequence[float]) -> float:
        return self.eval(x)

    def eval_batch(self, points: np.ndarray) -> np.ndarray:
        """Evaluate at each row of an ``(N, dim)`` array."""
        points = np.atleast_2d(np.asarray(points, dtype=float))
        if points.shape[1] != self.dim:
            raise ValueError(
                f"points must have {self.dim} columns, got {points.shape[1]}"
            )
        return np.array([self.eval(p) for p in points])

    def copy(self) -> "FunctionTrain":
        return FunctionTrain(self.cores)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def serialize(self) -> bytes:
        """Encode as ``dim, ranks[0..dim]`` followed by every core."""
        writer = ByteWriter()
        writer.write_size(self.dim)
        for r in self.ranks:
            writer.write_size(r)
        for core in self.cores:
            core.write(writer)
        return pack(KIND_FUNCTION_TRAIN, writer.getvalue())

    @classmethod
    def deserialize(cls, data: bytes) -> "FunctionTrain":
        """Decode :meth:`serialize` output and check the rank chain.

        Raises
        ------
        ValueError
            If the payload is malformed or the stored ranks disagree with
            the core shapes.
        """
        reader = unpack(data, KIND_FUNCTION_TRAIN)
        dim = reader.read_size()
        ranks = [reader.read_size() for _ in range(dim + 1)]
        cores = [Qmarray.read(reader) for _ in range(dim)]
        reader.finish()
        found = [cores[0].nrows] + [core.ncols for core in cores] if cores else []
        if found != ranks:
            raise ValueError(f"Stored ranks {ranks} do not match cores {found}")
        return cls._adopt(cores)

    def save(self, path: str | os.PathLike) -> bool:
        """Write a size-prefixed :meth:`serialize` blob to *path*.

        Returns
        -------
        bool
            ``False`` (with a warning) if the file cannot be opened.
        """
        try:
            fh = open(os.fspath(path), "wb")
        except OSError as exc:
            warnings.warn(f"Cannot open {path} for writing: {exc}",
                          UserWarning, stacklevel=2)
            return False
        with fh:
            fh.write(frame(self.serialize()))
        return True

    @classmethod
    def load(cls, path: str | os.PathLike) -> Optional["FunctionTrain"]:
        """Read a file written by :meth:`save`.

        Returns
        -------
        FunctionTrain or None
            ``None`` (with a warning) if the file cannot be opened.
        """
        try:
            fh = open(os.fspath(path), "rb")
        except OSError as exc:
            warnings.warn(f"Cannot open {path} for reading: {exc}",
                          UserWarning, stacklevel=2)
            return None
        with fh:
            data = fh.read()
        return cls.deserialize(unframe(data))

    def __getstate__(self) -> dict:
        """Return picklable state tagged with the library version."""
        from pyfunctrain._version import __version__

        state = self.__dict__.copy()
        state["_pyfunctrain_version"] = __version__
        return state

    def __setstate__(self, state: dict) -> None:
        from pyfunctrain._version import __version__

        saved_version = state.pop("_pyfunctrain_version", None)
        if saved_version is not None and saved_version != __version__:
            warnings.warn(
                f"This object was saved with pyfunctrain {saved_version}, "
                f"but you are loading it with {__version__}. "
                f"Evaluation results may differ if internal data layout changed.",
                UserWarning,
                stacklevel=2,
            )
        self.__dict__.update(state)

    # ------------------------------------------------------------------
    # Printing
    # ------------------------------------------------------------------

    def __repr__(self) -> str:
        return f"FunctionTrain(dim={self.dim}, ranks={self.ranks})"

    def __str__(self) -> str:
        domain_str = " x ".join(f"[{lo}, {hi}]" for lo, hi in self.bds)
        classes = sorted({f.fc.name for core in self.cores for f in core.funcs})
        lines = [
            f"FunctionTrain ({self.dim}D)",
            f"  Ranks:   {self.ranks}",
            f"  Domain:  {domain_str}",
            f"  Classes: {', '.join(classes)}",
        ]
        return "\n".join(lines)

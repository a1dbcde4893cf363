"""Polymorphic one-dimensional functions.

A :class:`GenericFunction` pairs a :class:`FunctionClass` tag with the
backend object that carries the data:

============  =======================================================
POLYNOMIAL    :class:`~pyfunctrain.orthopoly.OrthPolyExpansion`
PIECEWISE     :class:`~pyfunctrain.piecewise.PiecewisePoly`
LINELM        :class:`~pyfunctrain.linelm.LinElemExp`
============  =======================================================

Binary operations resolve the class of their result through the
promotion table in :mod:`pyfunctrain._algebra`: a polynomial combined
with a piecewise polynomial is wrapped as a single-leaf piecewise
polynomial first, and linear elements never mix with other classes.

The module also provides :class:`FiberCut`, which turns a multivariate
function into a univariate one by freezing all but one coordinate.
"""

from __future__ import annotations

import math
import warnings
from typing import Callable, List, Optional, Sequence, Tuple

import numpy as np

from pyfunctrain._algebra import (
    FunctionClass,
    _is_scalar,
    check_implemented,
    promote,
)
from pyfunctrain._options import AdaptOpts
from pyfunctrain._serialize import (
    KIND_GENERIC,
    ByteReader,
    ByteWriter,
    pack,
    unpack,
)
from pyfunctrain.linelm import LinElemExp
from pyfunctrain.orthopoly import (
    OrthPolyExpansion,
    check_ptype,
    ptype_code,
    ptype_from_code,
)
from pyfunctrain.piecewise import PiecewisePoly

_PAYLOAD_TYPES = {
    FunctionClass.POLYNOMIAL: OrthPolyExpansion,
    FunctionClass.PIECEWISE: PiecewisePoly,
    FunctionClass.LINELM: LinElemExp,
}

# Largest negative self inner product still attributed to rounding.
NORM_TOL = 1e-12


class GenericFunction:
    """One-dimensional function over a bounded interval.

    Parameters
    ----------
    fc : FunctionClass or int
        Backend class tag.
    payload : OrthPolyExpansion, PiecewisePoly or LinElemExp
        Backend object; its type must agree with *fc*.
    dim : int, optional
        Input dimension. Only 1 is supported.

    Examples
    --------
    >>> import math
    >>> g = GenericFunction.approximate1d(math.sin, FunctionClass.POLYNOMIAL, -1, 1)
    >>> abs(g(0.5) - math.sin(0.5)) < 1e-12
    True
    """

    def __init__(self, fc, payload, dim: int = 1):
        fc = check_implemented(fc)
        expected = _PAYLOAD_TYPES[fc]
        if not isinstance(payload, expected):
            raise TypeError(
                f"{fc.name} requires a {expected.__name__} payload, "
                f"got {type(payload).__name__}"
            )
        if dim != 1:
            raise ValueError(f"Only one-dimensional functions are supported, got dim={dim}")
        self.dim = dim
        self.fc = fc
        self.payload = payload

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def approximate1d(cls, f: Callable[[float], float], fc, lb: float, ub: float,
                      opts: Optional[AdaptOpts] = None, verbose: bool = False,
                      **kwargs) -> "GenericFunction":
        """Approximate *f* on ``[lb, ub]`` with the backend of class *fc*.

        PIECEWISE uses :meth:`PiecewisePoly.approx1_adapt`, POLYNOMIAL uses
        :meth:`OrthPolyExpansion.approx_adapt` and LINELM samples *f* on a
        uniform grid.

        Parameters
        ----------
        f : callable
            Scalar function of one variable.
        fc : FunctionClass
            Backend class.
        lb, ub : float
            Domain bounds.
        opts : AdaptOpts, optional
            Approximation options; defaults when omitted.
        verbose : bool, optional
            Print a one-line summary of the result.
        **kwargs
            Individual option overrides applied on top of *opts*.

        Returns
        -------
        GenericFunction
        """
        fc = check_implemented(fc)
        opts = opts if opts is not None else AdaptOpts()
        if kwargs:
            opts = opts.updated(**kwargs)

        if fc == FunctionClass.PIECEWISE:
            payload = PiecewisePoly.approx1_adapt(
                f, lb, ub, verbose=verbose, **opts.piecewise_kwargs()
            )
            summary = f"{payload.nregions} regions"
        elif fc == FunctionClass.POLYNOMIAL:
            payload = OrthPolyExpansion.approx_adapt(f, lb, ub, **opts.poly_kwargs())
            summary = f"{payload.num_poly} coefficients"
        else:
            payload = LinElemExp.approx(f, lb, ub, **opts.linelm_kwargs())
            summary = f"{payload.num_nodes} nodes"

        if verbose:
            print(f"  {fc.name} approximation on [{lb}, {ub}]: {summary}")
        return cls(fc, payload)

    @classmethod
    def constant(cls, a: float, fc, lb: float = -1.0, ub: float = 1.0,
                 ptype: str = "legendre") -> "GenericFunction":
        """Constant function ``a``."""
        fc = check_implemented(fc)
        if fc == FunctionClass.POLYNOMIAL:
            return cls(fc, OrthPolyExpansion.constant(a, lb, ub, ptype))
        if fc == FunctionClass.PIECEWISE:
            return cls(fc, PiecewisePoly.constant(a, lb, ub, ptype))
        return cls(fc, LinElemExp.constant(a, lb, ub))

    @classmethod
    def linear(cls, slope: float, offset: float, fc, lb: float = -1.0,
               ub: float = 1.0, ptype: str = "legendre") -> "GenericFunction":
        """Affine function ``slope * x + offset``."""
        fc = check_implemented(fc)
        if fc == FunctionClass.POLYNOMIAL:
            return cls(fc, OrthPolyExpansion.linear(slope, offset, lb, ub, ptype))
        if fc == FunctionClass.PIECEWISE:
            return cls(fc, PiecewisePoly.linear(slope, offset, lb, ub, ptype))
        return cls(fc, LinElemExp.linear(slope, offset, lb, ub))

    @classmethod
    def quadratic(cls, a: float, offset: float, fc, lb: float = -1.0,
                  ub: float = 1.0, ptype: str = "legendre") -> "GenericFunction":
        """Shifted parabola ``a * (x - offset)**2``.

        Raises
        ------
        ValueError
            For LINELM, which cannot represent a parabola exactly.
        """
        fc = check_implemented(fc)
        if fc == FunctionClass.POLYNOMIAL:
            return cls(fc, OrthPolyExpansion.quadratic(a, offset, lb, ub, ptype))
        if fc == FunctionClass.PIECEWISE:
            return cls(fc, PiecewisePoly.quadratic(
                a, -2.0 * a * offset, a * offset * offset, lb, ub, ptype
            ))
        raise ValueError("Quadratic functions are not available for LINELM")

    @classmethod
    def genorder(cls, order: int, fc, lb: float = -1.0, ub: float = 1.0,
                 ptype: str = "legendre") -> "GenericFunction":
        """Orthonormal polynomial of degree *order* (POLYNOMIAL or PIECEWISE)."""
        fc = check_implemented(fc)
        poly = OrthPolyExpansion.genorder(order, lb, ub, ptype)
        if fc == FunctionClass.POLYNOMIAL:
            return cls(fc, poly)
        if fc == FunctionClass.PIECEWISE:
            return cls(fc, PiecewisePoly(poly))
        raise ValueError("Use array_orth for LINELM orthonormal bases")

    @classmethod
    def create_nodal(cls, nodes, values) -> "GenericFunction":
        """Linear element function through ``(nodes[i], values[i])``."""
        return cls(FunctionClass.LINELM, LinElemExp.from_values(nodes, values))

    @classmethod
    def poly_randu(cls, order: int, lb: float = -1.0, ub: float = 1.0,
                   rng: Optional[np.random.Generator] = None,
                   ptype: str = "legendre") -> "GenericFunction":
        """Polynomial of degree *order* with coefficients uniform in [-1, 1]."""
        rng = rng if rng is not None else np.random.default_rng()
        coeffs = rng.uniform(-1.0, 1.0, order + 1)
        return cls(FunctionClass.POLYNOMIAL,
                   OrthPolyExpansion(coeffs, lb, ub, ptype))

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def lb(self) -> float:
        return self.payload.lb

    @property
    def ub(self) -> float:
        return self.payload.ub

    @property
    def sub_type(self) -> int:
        """Backend discriminant written to byte streams."""
        if self.fc == FunctionClass.LINELM:
            return 0
        return ptype_code(self.payload.ptype)

    def eval(self, x):
        """Evaluate at a scalar or an array of points."""
        return self.payload.eval(x)

    def __call__(self, x):
        return self.eval(x)

    # ------------------------------------------------------------------
    # Calculus
    # ------------------------------------------------------------------

    def integral(self) -> float:
        """Definite integral over ``[lb, ub]``."""
        return self.payload.integrate()

    def norm(self) -> float:
        """L2 norm ``sqrt(inner(self, self))``.

        Raises
        ------
        RuntimeError
            If the self inner product is negative beyond rounding, which
            indicates a backend defect rather than bad input.
        """
        val = inner(self, self)
        if val < -NORM_TOL:
            raise RuntimeError(f"Negative self inner product {val:.3e} in norm()")
        return math.sqrt(max(val, 0.0))

    def deriv(self) -> "GenericFunction":
        """Derivative as a new function of the same class."""
        return GenericFunction(self.fc, self.payload.deriv())

    def real_roots(self) -> np.ndarray:
        return self.payload.real_roots()

    def max(self) -> Tuple[float, float]:
        """Return ``(location, value)`` of the maximum."""
        return self.payload.max()

    def min(self) -> Tuple[float, float]:
        """Return ``(location, value)`` of the minimum."""
        return self.payload.min()

    def absmax(self) -> Tuple[float, float]:
        """Return ``(location, |value|)`` of the maximum magnitude."""
        return self.payload.absmax()

    # ------------------------------------------------------------------
    # In-place algebra
    # ------------------------------------------------------------------

    def scale(self, a: float) -> None:
        """Multiply by *a* in place."""
        self.payload.scale(a)

    def flip_sign(self) -> None:
        self.payload.flip_sign()

    def axpy(self, a: float, x: "GenericFunction") -> int:
        """In-place update ``self <- a * x + self``.

        Returns
        -------
        int
            0 on success, 1 when the class has no in-place update
            (PIECEWISE). A warning is emitted on failure.

        Raises
        ------
        ValueError
            If *x* and ``self`` belong to different classes.
        """
        if x.fc != self.fc:
            raise ValueError(
                f"axpy requires matching classes, got {x.fc.name} and {self.fc.name}"
            )
        if self.fc == FunctionClass.PIECEWISE:
            warnings.warn(
                "axpy is not implemented for PIECEWISE functions; use daxpby",
                UserWarning,
                stacklevel=2,
            )
            return 1
        self.payload.axpy(a, x.payload)
        return 0

    def copy(self) -> "GenericFunction":
        """Deep copy."""
        return GenericFunction(self.fc, self.payload.copy(), self.dim)

    # ------------------------------------------------------------------
    # Operators
    # ------------------------------------------------------------------

    def __add__(self, other):
        if not isinstance(other, GenericFunction):
            return NotImplemented
        return daxpby(1.0, self, 1.0, other)

    def __sub__(self, other):
        if not isinstance(other, GenericFunction):
            return NotImplemented
        return daxpby(1.0, self, -1.0, other)

    def __mul__(self, other):
        if isinstance(other, GenericFunction):
            return prod(self, other)
        if not _is_scalar(other):
            return NotImplemented
        out = self.copy()
        out.scale(float(other))
        return out

    def __rmul__(self, scalar):
        return self.__mul__(scalar)

    def __truediv__(self, scalar):
        if not _is_scalar(scalar):
            return NotImplemented
        return self.__mul__(1.0 / scalar)

    def __neg__(self):
        out = self.copy()
        out.flip_sign()
        return out

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def write(self, writer: ByteWriter) -> None:
        """Append ``dim, class, sub_type`` and the backend payload."""
        writer.write_size(self.dim)
        writer.write_int(int(self.fc))
        writer.write_int(self.sub_type)
        self.payload.write(writer)

    @classmethod
    def read(cls, reader: ByteReader) -> "GenericFunction":
        dim = reader.read_size()
        code = reader.read_int()
        sub_type = reader.read_int()
        try:
            fc = FunctionClass(code)
        except ValueError:
            raise ValueError(f"Unknown function class code {code}") from None
        fc = check_implemented(fc)
        if fc != FunctionClass.LINELM:
            ptype_from_code(sub_type)
        payload = _PAYLOAD_TYPES[fc].read(reader)
        return cls(fc, payload, dim)

    def serialize(self) -> bytes:
        writer = ByteWriter()
        self.write(writer)
        return pack(KIND_GENERIC, writer.getvalue())

    @classmethod
    def deserialize(cls, data: bytes) -> "GenericFunction":
        reader = unpack(data, KIND_GENERIC)
        out = cls.read(reader)
        reader.finish()
        return out

    # ------------------------------------------------------------------
    # Printing
    # ------------------------------------------------------------------

    def __repr__(self) -> str:
        return f"GenericFunction({self.fc.name}, domain=[{self.lb}, {self.ub}])"


# ======================================================================
# Binary operations with class promotion
# ======================================================================

def _payload_as(gf: GenericFunction, fc: FunctionClass):
    """Payload of *gf* converted to class *fc* (copy only when needed)."""
    if gf.fc == fc:
        return gf.payload
    if gf.fc == FunctionClass.POLYNOMIAL and fc == FunctionClass.PIECEWISE:
        return PiecewisePoly(gf.payload.copy())
    raise ValueError(f"Cannot convert {gf.fc.name} to {fc.name}")


def _promoted(a: GenericFunction, b: GenericFunction):
    fc = promote(a.fc, b.fc)
    if a.fc != b.fc and (a.lb, a.ub) != (b.lb, b.ub):
        raise ValueError(
            f"Cannot combine {a.fc.name} on [{a.lb}, {a.ub}] with "
            f"{b.fc.name} on [{b.lb}, {b.ub}]: domains differ"
        )
    return fc, _payload_as(a, fc), _payload_as(b, fc)


def daxpby(a: float, x: Optional[GenericFunction], b: float,
           y: Optional[GenericFunction]) -> GenericFunction:
    """Return the new function ``a * x + b * y``.

    Either operand may be ``None``. Operands of different classes are
    promoted first; see :func:`pyfunctrain._algebra.promote`.
    Promotion requires both operands to share a domain.
    """
    if x is None and y is None:
        raise ValueError("daxpby needs at least one operand")
    if x is None or y is None:
        out = (y if x is None else x).copy()
        out.scale(b if x is None else a)
        return out
    fc, px, py = _promoted(x, y)
    return GenericFunction(fc, _PAYLOAD_TYPES[fc].daxpby(a, px, b, py))


def prod(a: GenericFunction, b: GenericFunction) -> GenericFunction:
    """Pointwise product, with the same promotion rule as :func:`daxpby`."""
    fc, pa, pb = _promoted(a, b)
    if fc == FunctionClass.PIECEWISE:
        return GenericFunction(fc, PiecewisePoly.prod(pa, pb))
    return GenericFunction(fc, pa.prod(pb))


def inner(a: GenericFunction, b: GenericFunction) -> float:
    """L2 inner product over the common domain."""
    _, pa, pb = _promoted(a, b)
    return pa.inner(pb)


def norm2diff(a: GenericFunction, b: GenericFunction) -> float:
    """L2 norm of ``a - b``."""
    return daxpby(1.0, a, -1.0, b).norm()


def lin_comb(coeffs: Sequence[float],
             funcs: Sequence[GenericFunction]) -> GenericFunction:
    """Return ``sum_i coeffs[i] * funcs[i]``, folded left to right."""
    if len(coeffs) != len(funcs):
        raise ValueError(f"Got {len(coeffs)} coefficients for {len(funcs)} functions")
    if len(funcs) == 0:
        raise ValueError("lin_comb needs at least one function")
    out = None
    for c, f in zip(coeffs, funcs):
        out = daxpby(c, f, 1.0, out)
    return out


def _same_polynomial_space(funcs: Sequence[GenericFunction]) -> bool:
    first = funcs[0]
    if first.fc != FunctionClass.POLYNOMIAL:
        return False
    return all(
        f.fc == FunctionClass.POLYNOMIAL
        and f.payload.ptype == first.payload.ptype
        and f.lb == first.lb and f.ub == first.ub
        for f in funcs
    )


def lin_comb2(n: int, coeffs: Sequence[float], funcs: Sequence[GenericFunction],
              inc_c: int = 1, inc_f: int = 1) -> GenericFunction:
    """Strided linear combination ``sum_i coeffs[i*inc_c] * funcs[i*inc_f]``.

    Polynomials sharing a basis and a domain are combined by summing
    coefficient arrays directly.
    """
    if n < 1:
        raise ValueError(f"n must be >= 1, got {n}")
    cs = [coeffs[i * inc_c] for i in range(n)]
    fs = [funcs[i * inc_f] for i in range(n)]
    if not _same_polynomial_space(fs):
        return lin_comb(cs, fs)

    length = max(f.payload.num_poly for f in fs)
    total = np.zeros(length)
    for c, f in zip(cs, fs):
        total[:f.payload.num_poly] += c * f.payload.coeffs
    first = fs[0].payload
    poly = OrthPolyExpansion(total, first.lb, first.ub, first.ptype).round()
    return GenericFunction(FunctionClass.POLYNOMIAL, poly)


def sum_prod(a_funcs: Sequence[GenericFunction],
             b_funcs: Sequence[GenericFunction]) -> GenericFunction:
    """Return ``sum_i a_funcs[i] * b_funcs[i]``."""
    if len(a_funcs) != len(b_funcs):
        raise ValueError(f"Length mismatch: {len(a_funcs)} vs {len(b_funcs)}")
    prods = [prod(a, b) for a, b in zip(a_funcs, b_funcs)]
    return lin_comb([1.0] * len(prods), prods)


def array_orth(n: int, fc, lb: float = -1.0, ub: float = 1.0,
               ptype: str = "legendre") -> List[GenericFunction]:
    """Return *n* functions of class *fc* orthonormal on ``[lb, ub]``."""
    fc = check_implemented(fc)
    if fc == FunctionClass.LINELM:
        return [GenericFunction(fc, le) for le in LinElemExp.orth_basis(n, lb, ub)]
    ptype = check_ptype(ptype)
    return [GenericFunction.genorder(k, fc, lb, ub, ptype) for k in range(n)]


def _zero_like(gf: GenericFunction) -> GenericFunction:
    if gf.fc == FunctionClass.LINELM:
        nodes = gf.payload.nodes
        return GenericFunction.create_nodal(nodes, np.zeros(len(nodes)))
    return GenericFunction.constant(0.0, gf.fc, gf.lb, gf.ub, gf.payload.ptype)


def array_orth1d_columns(nrows: int, ncols: int, fc, lb: float = -1.0,
                         ub: float = 1.0,
                         ptype: str = "legendre") -> List[GenericFunction]:
    """Column-major ``nrows x ncols`` array with orthonormal columns.

    Column *j* holds basis function ``j // nrows`` in row ``j % nrows``
    and zeros elsewhere.
    """
    funcs = array_orth(ncols, fc, lb, ub, ptype)
    zero = _zero_like(funcs[0])
    out: List[GenericFunction] = [None] * (nrows * ncols)
    onnon = 0
    onorder = 0
    for jj in range(ncols):
        for kk in range(nrows):
            src = funcs[onorder] if kk == onnon else zero
            out[jj * nrows + kk] = src.copy()
        onnon += 1
        if onnon == nrows:
            onorder += 1
            onnon = 0
    return out


def array_orth1d_rows(nrows: int, ncols: int, fc, lb: float = -1.0,
                      ub: float = 1.0,
                      ptype: str = "legendre") -> List[GenericFunction]:
    """Column-major ``nrows x ncols`` array with orthonormal rows.

    Row *i* holds basis function ``i // ncols`` in column ``i % ncols``
    and zeros elsewhere.
    """
    funcs = array_orth(nrows, fc, lb, ub, ptype)
    zero = _zero_like(funcs[0])
    out: List[GenericFunction] = [None] * (nrows * ncols)
    onnon = 0
    onorder = 0
    for jj in range(nrows):
        for kk in range(ncols):
            src = funcs[onorder] if kk == onnon else zero
            out[kk * nrows + jj] = src.copy()
        onnon += 1
        if onnon == ncols:
            onorder += 1
            onnon = 0
    return out


# ======================================================================
# Fiber cuts
# ======================================================================

class FiberCut:
    """Univariate slice of a multivariate function.

    Calling the object with a scalar *x* evaluates the underlying function
    at the stored point with coordinate *dimcut* replaced by *x*.

    Parameters
    ----------
    f : callable
        ``f(x, y)`` for a bivariate cut, otherwise ``f(point)`` taking a
        1-D array of length *totdim*.
    totdim : int
        Number of inputs of *f*.
    dimcut : int
        Index of the free coordinate.
    vals : sequence of float
        Fixed coordinate values; the entry at *dimcut* is ignored.
    bivariate : bool, optional
        Call *f* with two positional scalars instead of an array.
    """

    def __init__(self, f: Callable, totdim: int, dimcut: int,
                 vals: Sequence[float], bivariate: bool = False):
        if totdim < 2:
            raise ValueError(f"totdim must be >= 2, got {totdim}")
        if not 0 <= dimcut < totdim:
            raise ValueError(f"dimcut {dimcut} out of range [0, {totdim - 1}]")
        vals = np.array(vals, dtype=float).ravel()
        if len(vals) != totdim:
            raise ValueError(f"Expected {totdim} fixed values, got {len(vals)}")
        if bivariate and totdim != 2:
            raise ValueError("bivariate cuts require totdim == 2")
        self.f = f
        self.totdim = totdim
        self.dimcut = dimcut
        self.vals = vals
        self.bivariate = bivariate

    @classmethod
    def init2d(cls, f: Callable[[float, float], float], dimcut: int,
               val: float) -> "FiberCut":
        """Cut of ``f(x, y)`` with the other coordinate fixed to *val*."""
        return cls(f, 2, dimcut, [val, val], bivariate=True)

    @classmethod
    def ndinit(cls, f: Callable[[np.ndarray], float], totdim: int, dimcut: int,
               vals: Sequence[float]) -> "FiberCut":
        return cls(f, totdim, dimcut, vals)

    def __call__(self, x: float) -> float:
        if self.bivariate:
            val = self.vals[1 - self.dimcut]
            if self.dimcut == 0:
                return self.f(x, val)
            return self.f(val, x)
        point = self.vals.copy()
        point[self.dimcut] = x
        return self.f(point)

    def __repr__(self) -> str:
        return f"FiberCut(totdim={self.totdim}, dimcut={self.dimcut})"


def fiber_cut_array_2d(f: Callable[[float, float], float], dimcut: int,
                       vals: Sequence[float]) -> List[FiberCut]:
    """One bivariate cut per fixed value in *vals*."""
    return [FiberCut.init2d(f, dimcut, v) for v in vals]


def fiber_cut_array_nd(f: Callable[[np.ndarray], float], totdim: int,
                       dimcut: int, vals: Sequence[Sequence[float]]) -> List[FiberCut]:
    """One n-D cut per fixed point in *vals*."""
    return [FiberCut.ndinit(f, totdim, dimcut, v) for v in vals]

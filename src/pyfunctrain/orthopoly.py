"""Orthogonal polynomial expansions on a bounded interval.

An :class:`OrthPolyExpansion` stores the coefficients of a Legendre or
Chebyshev series over a physical domain ``[lb, ub]``. All algebra is
delegated to the series classes in :mod:`numpy.polynomial`, which handle
the affine map between ``[lb, ub]`` and the reference window ``[-1, 1]``.

Coefficients are obtained by interpolation at Chebyshev Type I points,
which is numerically stable for both bases.

References
----------
- Trefethen (2013), "Approximation Theory and Approximation Practice",
  SIAM, Chapters 3–4.
- Boyd (2001), "Chebyshev and Fourier Spectral Methods", Dover, Chapter 2.
"""

from __future__ import annotations

import math
from typing import Callable, Optional, Tuple

import numpy as np
from numpy.polynomial import Chebyshev, Legendre, Polynomial
from numpy.polynomial.chebyshev import chebpts1
from numpy.polynomial.polyutils import trimcoef

from pyfunctrain._calculus import _optimize_1d, _real_roots_in

_SERIES = {"legendre": Legendre, "chebyshev": Chebyshev}
_PTYPE_CODES = {"legendre": 0, "chebyshev": 1}
_PTYPE_NAMES = {code: name for name, code in _PTYPE_CODES.items()}

# Trailing coefficients below this are treated as zero by round().
ROUND_EPS = 10.0 * np.finfo(float).eps


def check_ptype(ptype: str) -> str:
    """Normalize and validate a polynomial family name."""
    name = str(ptype).lower()
    if name not in _SERIES:
        raise ValueError(
            f"ptype must be one of {sorted(_SERIES)}, got {ptype!r}"
        )
    return name


def ptype_code(ptype: str) -> int:
    """Integer discriminant written to byte streams for *ptype*."""
    return _PTYPE_CODES[check_ptype(ptype)]


def ptype_from_code(code: int) -> str:
    if code not in _PTYPE_NAMES:
        raise ValueError(f"Unknown polynomial type code {code}")
    return _PTYPE_NAMES[code]


def _sample(f: Callable, x: np.ndarray) -> np.ndarray:
    return np.array([f(float(xi)) for xi in x], dtype=float)


class OrthPolyExpansion:
    """Finite orthogonal polynomial series on ``[lb, ub]``.

    Parameters
    ----------
    coeffs : array-like
        Series coefficients, lowest degree first. Must be non-empty.
    lb, ub : float
        Domain bounds with ``lb < ub``.
    ptype : {'legendre', 'chebyshev'}
        Polynomial family.

    Examples
    --------
    >>> import math
    >>> p = OrthPolyExpansion.approx_adapt(math.sin, -1.0, 1.0)
    >>> round(p.eval(0.5), 10) == round(math.sin(0.5), 10)
    True
    """

    def __init__(self, coeffs, lb: float = -1.0, ub: float = 1.0,
                 ptype: str = "legendre"):
        coeffs = np.array(coeffs, dtype=float).ravel()
        if coeffs.size == 0:
            raise ValueError("coeffs must contain at least one entry")
        if not lb < ub:
            raise ValueError(f"Invalid domain [{lb}, {ub}]: need lb < ub")
        self.coeffs = coeffs
        self.lb = float(lb)
        self.ub = float(ub)
        self.ptype = check_ptype(ptype)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def _from_series(cls, series, ptype: str) -> "OrthPolyExpansion":
        lb, ub = series.domain
        return cls(series.coef, lb, ub, ptype)

    @classmethod
    def _from_power(cls, power_coeffs, lb: float, ub: float,
                    ptype: str) -> "OrthPolyExpansion":
        ptype = check_ptype(ptype)
        series = Polynomial(power_coeffs).convert(
            domain=[lb, ub], kind=_SERIES[ptype], window=[-1, 1]
        )
        return cls._from_series(series, ptype).round()

    @classmethod
    def constant(cls, a: float, lb: float = -1.0, ub: float = 1.0,
                 ptype: str = "legendre") -> "OrthPolyExpansion":
        """Constant function ``a``."""
        return cls([a], lb, ub, ptype)

    @classmethod
    def linear(cls, slope: float, offset: float, lb: float = -1.0,
               ub: float = 1.0, ptype: str = "legendre") -> "OrthPolyExpansion":
        """Affine function ``slope * x + offset``."""
        return cls._from_power([offset, slope], lb, ub, ptype)

    @classmethod
    def quadratic(cls, a: float, offset: float, lb: float = -1.0,
                  ub: float = 1.0, ptype: str = "legendre") -> "OrthPolyExpansion":
        """Shifted parabola ``a * (x - offset)**2``."""
        return cls._from_power([a * offset * offset, -2.0 * a * offset, a],
                               lb, ub, ptype)

    @classmethod
    def from_power_coeffs(cls, coeffs, lb: float = -1.0, ub: float = 1.0,
                          ptype: str = "legendre") -> "OrthPolyExpansion":
        """Convert monomial coefficients ``c0 + c1*x + c2*x**2 + ...``."""
        return cls._from_power(coeffs, lb, ub, ptype)

    @classmethod
    def genorder(cls, order: int, lb: float = -1.0, ub: float = 1.0,
                 ptype: str = "legendre") -> "OrthPolyExpansion":
        """Basis function *order* of the unit-weight orthonormal family.

        The returned polynomials satisfy
        ``integral(p_i * p_j, lb, ub) == delta_ij`` regardless of *ptype*;
        *ptype* only selects the storage basis.
        """
        if order < 0:
            raise ValueError(f"order must be non-negative, got {order}")
        ptype = check_ptype(ptype)
        scale = math.sqrt((2.0 * order + 1.0) / (ub - lb))
        series = Legendre.basis(order, domain=[lb, ub]) * scale
        if ptype != "legendre":
            series = series.convert(domain=[lb, ub], kind=_SERIES[ptype],
                                    window=[-1, 1])
        return cls._from_series(series, ptype)

    @classmethod
    def approx(cls, f: Callable[[float], float], num: int, lb: float = -1.0,
               ub: float = 1.0, ptype: str = "legendre") -> "OrthPolyExpansion":
        """Interpolate *f* with *num* coefficients at Chebyshev points.

        Parameters
        ----------
        f : callable
            Scalar function of one variable.
        num : int
            Number of coefficients (polynomial order + 1).
        lb, ub : float
            Domain bounds.
        ptype : str
            Polynomial family.

        Returns
        -------
        OrthPolyExpansion
            Unrounded interpolant.
        """
        if num < 1:
            raise ValueError(f"num must be >= 1, got {num}")
        ptype = check_ptype(ptype)
        ref = chebpts1(num) if num > 1 else np.array([0.0])
        x = 0.5 * (lb + ub) + 0.5 * (ub - lb) * ref
        y = _sample(f, x)
        series = _SERIES[ptype].fit(x, y, num - 1, domain=[lb, ub],
                                    window=[-1, 1])
        return cls._from_series(series, ptype)

    @classmethod
    def approx_adapt(cls, f: Callable[[float], float], lb: float = -1.0,
                     ub: float = 1.0, ptype: str = "legendre",
                     start_num: int = 8, coeffs_check: int = 2,
                     tol: float = 1e-14, max_num: int = 60) -> "OrthPolyExpansion":
        """Adaptively interpolate *f*, doubling the order until converged.

        Convergence is declared when the trailing *coeffs_check*
        coefficients are all below ``tol`` relative to the largest
        coefficient (or absolutely, for functions of magnitude below one).

        Parameters
        ----------
        f : callable
            Scalar function of one variable.
        lb, ub : float
            Domain bounds.
        ptype : str
            Polynomial family.
        start_num : int
            Initial number of coefficients.
        coeffs_check : int
            Number of trailing coefficients inspected.
        tol : float
            Convergence threshold.
        max_num : int
            Hard cap on the number of coefficients.

        Returns
        -------
        OrthPolyExpansion
            Rounded interpolant.
        """
        if coeffs_check < 1:
            raise ValueError(f"coeffs_check must be >= 1, got {coeffs_check}")
        num = max(1, min(start_num, max_num))
        while True:
            poly = cls.approx(f, num, lb, ub, ptype)
            ref = max(1.0, float(np.max(np.abs(poly.coeffs))))
            tail = np.abs(poly.coeffs[-min(coeffs_check, num):])
            if np.all(tail < tol * ref) or num >= max_num:
                break
            num = min(2 * num, max_num)
        return poly.round()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def series(self):
        """The equivalent :mod:`numpy.polynomial` series object."""
        return _SERIES[self.ptype](self.coeffs, domain=[self.lb, self.ub],
                                   window=[-1, 1])

    @property
    def num_poly(self) -> int:
        """Number of stored coefficients."""
        return len(self.coeffs)

    def eval(self, x):
        """Evaluate at a scalar or an array of points."""
        if np.ndim(x) == 0:
            return float(self.series(float(x)))
        return self.series(np.asarray(x, dtype=float))

    def __call__(self, x):
        return self.eval(x)

    # ------------------------------------------------------------------
    # Calculus
    # ------------------------------------------------------------------

    def integrate(self) -> float:
        """Definite integral over ``[lb, ub]``."""
        anti = self.series.integ()
        return float(anti(self.ub) - anti(self.lb))

    def _check_same_domain(self, other: "OrthPolyExpansion") -> None:
        if not isinstance(other, OrthPolyExpansion):
            raise TypeError(
                f"Expected an OrthPolyExpansion, got {type(other).__name__}"
            )
        if self.lb != other.lb or self.ub != other.ub:
            raise ValueError(
                f"Domain mismatch: [{self.lb}, {self.ub}] vs "
                f"[{other.lb}, {other.ub}]"
            )

    def _series_as_mine(self, other: "OrthPolyExpansion"):
        series = other.series
        if other.ptype != self.ptype:
            series = series.convert(domain=[self.lb, self.ub],
                                    kind=_SERIES[self.ptype], window=[-1, 1])
        return series

    def prod(self, other: "OrthPolyExpansion") -> "OrthPolyExpansion":
        """Exact pointwise product, in the basis of ``self``."""
        self._check_same_domain(other)
        series = self.series * self._series_as_mine(other)
        return OrthPolyExpansion._from_series(series, self.ptype).round()

    def inner(self, other: "OrthPolyExpansion") -> float:
        """L2 inner product ``integral(self * other)`` over the domain."""
        self._check_same_domain(other)
        series = self.series * self._series_as_mine(other)
        anti = series.integ()
        return float(anti(self.ub) - anti(self.lb))

    def norm(self) -> float:
        return math.sqrt(max(self.inner(self), 0.0))

    def deriv(self) -> "OrthPolyExpansion":
        """First derivative as a new expansion."""
        if self.num_poly == 1:
            return OrthPolyExpansion([0.0], self.lb, self.ub, self.ptype)
        return OrthPolyExpansion._from_series(self.series.deriv(), self.ptype)

    def real_roots(self) -> np.ndarray:
        """Sorted real roots inside ``[lb, ub]``."""
        coeffs = trimcoef(self.coeffs, 0.0) if np.any(self.coeffs) else [0.0]
        if len(coeffs) < 2:
            return np.array([], dtype=float)
        raw = _SERIES[self.ptype](coeffs, domain=[self.lb, self.ub],
                                  window=[-1, 1]).roots()
        return _real_roots_in(raw, self.lb, self.ub)

    def _extremum(self, mode: str) -> Tuple[float, float]:
        critical = self.deriv().real_roots()
        return _optimize_1d(self.series, critical, self.lb, self.ub, mode)

    def max(self) -> Tuple[float, float]:
        """Return ``(location, value)`` of the maximum."""
        return self._extremum("max")

    def min(self) -> Tuple[float, float]:
        """Return ``(location, value)`` of the minimum."""
        return self._extremum("min")

    def absmax(self) -> Tuple[float, float]:
        """Return ``(location, |value|)`` of the maximum magnitude."""
        return self._extremum("absmax")

    # ------------------------------------------------------------------
    # Algebra
    # ------------------------------------------------------------------

    def scale(self, a: float) -> None:
        """Multiply by *a* in place."""
        self.coeffs = self.coeffs * a

    def flip_sign(self) -> None:
        self.coeffs = -self.coeffs

    def axpy(self, a: float, x: "OrthPolyExpansion") -> None:
        """In-place update ``self <- a * x + self``."""
        self._check_same_domain(x)
        other = self._series_as_mine(x).coef * a
        n = max(len(other), self.num_poly)
        out = np.zeros(n)
        out[:self.num_poly] += self.coeffs
        out[:len(other)] += other
        self.coeffs = out

    @staticmethod
    def daxpby(a: float, x: Optional["OrthPolyExpansion"], b: float,
               y: Optional["OrthPolyExpansion"]) -> "OrthPolyExpansion":
        """Return the new expansion ``a * x + b * y``.

        Either operand may be ``None``, in which case its term is dropped.
        """
        if x is None and y is None:
            raise ValueError("daxpby needs at least one operand")
        if x is None:
            out = y.copy()
            out.scale(b)
            return out
        out = x.copy()
        out.scale(a)
        if y is not None:
            out.axpy(b, y)
        return out.round()

    def round(self, thresh: float = ROUND_EPS) -> "OrthPolyExpansion":
        """Drop trailing coefficients with magnitude below *thresh* (in place).

        Returns ``self`` so calls can be chained.
        """
        if np.all(np.abs(self.coeffs) <= thresh):
            self.coeffs = np.zeros(1)
        else:
            self.coeffs = trimcoef(self.coeffs, thresh)
        return self

    def copy(self) -> "OrthPolyExpansion":
        return OrthPolyExpansion(self.coeffs.copy(), self.lb, self.ub, self.ptype)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def write(self, writer) -> None:
        """Append ``ptype, lb, ub, ncoeffs, coeffs`` to *writer*."""
        writer.write_int(ptype_code(self.ptype))
        writer.write_double(self.lb)
        writer.write_double(self.ub)
        writer.write_size(self.num_poly)
        writer.write_doubles(self.coeffs)

    @classmethod
    def read(cls, reader) -> "OrthPolyExpansion":
        ptype = ptype_from_code(reader.read_int())
        lb = reader.read_double()
        ub = reader.read_double()
        n = reader.read_size()
        return cls(reader.read_doubles(n), lb, ub, ptype)

    # ------------------------------------------------------------------
    # Printing
    # ------------------------------------------------------------------

    def __repr__(self) -> str:
        return (
            f"OrthPolyExpansion(ptype={self.ptype!r}, "
            f"domain=[{self.lb}, {self.ub}], "
            f"num_poly={self.num_poly})"
        )

"""Piecewise polynomials with adaptive, discontinuity-aware construction.

A :class:`PiecewisePoly` is a recursive tree. Leaves hold one
:class:`~pyfunctrain.orthopoly.OrthPolyExpansion` over their sub-interval;
interior nodes hold an ordered list of children whose domains partition
the parent's domain left to right.

Construction strategies:

- :meth:`PiecewisePoly.approx1` -- fixed grid of equal (or user-given)
  sub-intervals, one fixed-order leaf each.
- :meth:`PiecewisePoly.approx1_adapt` -- fixed grid, then any leaf whose
  highest coefficients have not decayed is replaced by a recursive
  adaptive fit of the same sub-interval.
- :meth:`PiecewisePoly.approx2` -- locate jumps by polynomial annihilation
  first, then fit smooth pieces between them.

Jump detection follows the minmod polynomial annihilation edge detector.

References
----------
- Archibald, Gelb & Yoon (2005), "Polynomial fitting for edge detection
  in irregularly sampled signals and images", SIAM J. Numer. Anal. 43(1).
- Gorodetsky, Karaman & Marzouk (2016), "Function-train: a continuous
  analogue of the tensor-train decomposition", arXiv:1510.09088.
"""

from __future__ import annotations

import math
from typing import Callable, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from pyfunctrain._calculus import _dedup_sorted
from pyfunctrain._serialize import (
    KIND_PIECEWISE,
    ByteReader,
    ByteWriter,
    pack,
    unpack,
)
from pyfunctrain.orthopoly import OrthPolyExpansion, check_ptype

_DBL_EPSILON = np.finfo(float).eps

# Stencils up to 9 points (annihilation order 8).
_FACTORIAL = [math.factorial(k) for k in range(9)]


# ======================================================================
# Jump detection by polynomial annihilation
# ======================================================================

def eval_coeff(l: int, stencil: Sequence[float]) -> float:
    """Annihilation coefficient ``m! / prod_{i != l} (s_l - s_i)``.

    Parameters
    ----------
    l : int
        Index of the stencil point.
    stencil : sequence of float
        Distinct stencil points; ``m = len(stencil) - 1 <= 8``.
    """
    m = len(stencil) - 1
    if m >= len(_FACTORIAL):
        raise ValueError(f"Stencil of {m + 1} points exceeds the supported 9")
    out = float(_FACTORIAL[m])
    for i, s in enumerate(stencil):
        if i != l:
            out /= (stencil[l] - s)
    return out


def eval_jump(x: float, stencil: Sequence[float], vals: Sequence[float]) -> float:
    """Normalized annihilation jump estimate at *x* over one stencil."""
    den = 0.0
    out = 0.0
    mag = 0.0
    for i, s in enumerate(stencil):
        c = eval_coeff(i, stencil)
        if s > x:
            den += c
        out += c * vals[i]
        mag += abs(c)
    # coefficients scale like m! / h**m, so compare relative to their size
    if abs(den) <= _DBL_EPSILON * mag:
        raise ValueError(
            f"Degenerate stencil around x={x}: all points lie on one side of x"
        )
    return out / den


def get_stencil(x: float, total: Sequence[float], nstencil: int) -> int:
    """Start index of the *nstencil*-point window of *total* around *x*.

    The window starts from the two points bracketing *x* and grows one
    point at a time toward whichever neighbour is closer to *x*.

    Raises
    ------
    ValueError
        If *x* is not strictly inside ``total`` or the stencil is too wide.
    """
    ntotal = len(total)
    if nstencil > ntotal:
        raise ValueError(f"Stencil of {nstencil} points exceeds {ntotal} samples")
    if not total[0] < x < total[ntotal - 1]:
        raise ValueError(
            f"x={x} must lie strictly inside [{total[0]}, {total[ntotal - 1]}]"
        )

    ii = int(np.searchsorted(total, x, side="left"))
    if ii == 1:
        return 0
    if ii == ntotal - 1:
        return ntotal - nstencil

    f = ii - 1
    b = ii
    ninc = 2
    while ninc < nstencil:
        if f == 0:
            b += 1
        elif b == ntotal - 1:
            f -= 1
        elif total[b + 1] - x < x - total[f - 1]:
            b += 1
        else:
            f -= 1
        ninc += 1
    return f


def minmod_eval(x: float, total: Sequence[float], vals: Sequence[float],
                minm: int, maxm: int) -> float:
    """Minmod of the jump estimates for orders ``minm..maxm``.

    Returns 0 as soon as two orders disagree in sign; otherwise the
    estimate with the smallest magnitude.
    """
    total = np.asarray(total, dtype=float)
    vals = np.asarray(vals, dtype=float)

    start = get_stencil(x, total, minm + 1)
    jump = eval_jump(x, total[start:start + minm + 1], vals[start:start + minm + 1])
    sign = -1 if jump < 0.0 else 1
    for m in range(minm + 1, maxm + 1):
        start = get_stencil(x, total, m + 1)
        newjump = eval_jump(x, total[start:start + m + 1], vals[start:start + m + 1])
        newsign = -1 if newjump < 0.0 else 1
        if newsign != sign:
            return 0.0
        if sign > 0:
            jump = min(jump, newjump)
        else:
            jump = max(jump, newjump)
    return jump


def minmod_disc_exists(x: float, total: Sequence[float], vals: Sequence[float],
                       minm: int, maxm: int) -> bool:
    """True if the minmod jump at *x* exceeds the grid's order of magnitude.

    The threshold is ``10**floor(log10(h))`` where *h* is the smallest
    distance from ``total[0]`` to any other sample.
    """
    jump = minmod_eval(x, total, vals, minm, maxm)
    total = np.asarray(total, dtype=float)
    h = float(np.min(total[1:] - total[0]))
    oom = math.floor(math.log10(h))
    return abs(jump) > 10.0 ** oom


def locate_jumps(f: Callable[[float], float], lb: float, ub: float,
                 nsplit: int = 10, tol: float = 1e-10) -> List[float]:
    """Locate discontinuities of *f* on ``[lb, ub]``.

    Samples *f* on ``nsplit + 1`` equispaced points, tests the midpoint of
    every cell with :func:`minmod_disc_exists` and recursively subdivides
    the flagged cells until they are narrower than *tol*. Each surviving
    cell contributes its midpoint as an edge.

    Parameters
    ----------
    f : callable
        Scalar function of one variable.
    lb, ub : float
        Search interval.
    nsplit : int, optional
        Number of cells per refinement level; at least 5.
    tol : float, optional
        Resolution at which a flagged cell becomes an edge.

    Returns
    -------
    list of float
        Edge locations in ascending order.
    """
    minm, maxm = 2, 5
    if nsplit < maxm:
        raise ValueError(f"nsplit must be >= {maxm}, got {nsplit}")
    if tol <= 0:
        raise ValueError(f"tol must be positive, got {tol}")

    edges: List[float] = []

    def _locate(a: float, b: float) -> None:
        if b - a < tol:
            edges.append(0.5 * (a + b))
            return
        pts = np.linspace(a, b, nsplit + 1)
        vals = np.array([f(float(p)) for p in pts])
        for ii in range(nsplit):
            x = 0.5 * (pts[ii] + pts[ii + 1])
            if minmod_disc_exists(x, pts, vals, minm, maxm):
                _locate(float(pts[ii]), float(pts[ii + 1]))

    _locate(float(lb), float(ub))
    return edges


# ======================================================================
# PiecewisePoly
# ======================================================================

class PiecewisePoly:
    """Recursive piecewise polynomial.

    Exactly one of *ope* (leaf) or *branches* (interior) must be given.

    Parameters
    ----------
    ope : OrthPolyExpansion, optional
        Polynomial held by a leaf.
    branches : sequence of PiecewisePoly, optional
        Children of an interior node, ordered left to right.

    Examples
    --------
    >>> import math
    >>> p = PiecewisePoly.approx1_adapt(math.exp, -1.0, 1.0)
    >>> abs(p.eval(0.3) - math.exp(0.3)) < 1e-10
    True
    """

    def __init__(self, ope: Optional[OrthPolyExpansion] = None,
                 branches: Optional[Sequence["PiecewisePoly"]] = None):
        if (ope is None) == (branches is None):
            raise ValueError("Give exactly one of ope (leaf) or branches (interior)")
        if branches is not None:
            branches = list(branches)
            if len(branches) == 0:
                raise ValueError("An interior node needs at least one branch")
        self.ope = ope
        self.branches = branches

    # ------------------------------------------------------------------
    # Simple constructors
    # ------------------------------------------------------------------

    @classmethod
    def constant(cls, a: float, lb: float = -1.0, ub: float = 1.0,
                 ptype: str = "legendre") -> "PiecewisePoly":
        return cls(OrthPolyExpansion.constant(a, lb, ub, ptype))

    @classmethod
    def linear(cls, slope: float, offset: float, lb: float = -1.0,
               ub: float = 1.0, ptype: str = "legendre") -> "PiecewisePoly":
        """Single leaf holding ``slope * x + offset``."""
        return cls(OrthPolyExpansion.linear(slope, offset, lb, ub, ptype))

    @classmethod
    def quadratic(cls, a: float, b: float, c: float, lb: float = -1.0,
                  ub: float = 1.0, ptype: str = "legendre") -> "PiecewisePoly":
        """Single leaf holding ``a * x**2 + b * x + c``."""
        return cls(OrthPolyExpansion.from_power_coeffs([c, b, a], lb, ub, ptype))

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    @property
    def is_leaf(self) -> bool:
        return self.ope is not None

    @property
    def lb(self) -> float:
        """Lower bound of the leftmost leaf."""
        if self.is_leaf:
            return self.ope.lb
        return self.branches[0].lb

    @property
    def ub(self) -> float:
        """Upper bound of the rightmost leaf."""
        if self.is_leaf:
            return self.ope.ub
        return self.branches[-1].ub

    @property
    def ptype(self) -> str:
        """Polynomial family of the leftmost leaf."""
        return next(self.leaves()).ope.ptype

    @property
    def nregions(self) -> int:
        """Number of leaves."""
        if self.is_leaf:
            return 1
        return sum(branch.nregions for branch in self.branches)

    def leaves(self) -> Iterator["PiecewisePoly"]:
        """Iterate over leaves from left to right."""
        if self.is_leaf:
            yield self
        else:
            for branch in self.branches:
                yield from branch.leaves()

    def boundaries(self) -> np.ndarray:
        """Sorted break points: ``lb`` followed by every leaf's upper bound."""
        return np.array([self.lb] + [leaf.ub for leaf in self.leaves()])

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def _eval_scalar(self, x: float) -> float:
        node = self
        while not node.is_leaf:
            for branch in node.branches:
                if x <= branch.ub:
                    node = branch
                    break
            else:
                node = node.branches[-1]
        return node.ope.eval(x)

    def _eval_array(self, x: np.ndarray) -> np.ndarray:
        if self.is_leaf:
            return self.ope.eval(x)
        ubs = np.array([branch.ub for branch in self.branches])
        idx = np.minimum(np.searchsorted(ubs, x, side="left"), len(ubs) - 1)
        out = np.empty(x.shape)
        for i in np.unique(idx):
            mask = idx == i
            out[mask] = self.branches[i]._eval_array(x[mask])
        return out

    def eval(self, x):
        """Evaluate at a scalar or an array of points.

        An interior node dispatches *x* to its first child with
        ``x <= child.ub``; points beyond the last child go to the last child.
        """
        if np.ndim(x) == 0:
            return self._eval_scalar(float(x))
        x = np.asarray(x, dtype=float)
        return self._eval_array(x.ravel()).reshape(x.shape)

    def __call__(self, x):
        return self.eval(x)

    # ------------------------------------------------------------------
    # Approximation
    # ------------------------------------------------------------------

    @classmethod
    def approx1(cls, f: Callable[[float], float], lb: float, ub: float,
                ptype: str = "legendre", maxorder: int = 7, nregions: int = 5,
                pts: Optional[Sequence[float]] = None) -> "PiecewisePoly":
        """Fit one order-*maxorder* leaf on each sub-interval of a fixed grid.

        Parameters
        ----------
        f : callable
            Scalar function of one variable.
        lb, ub : float
            Domain bounds.
        ptype : str, optional
            Polynomial family of the leaves.
        maxorder : int, optional
            Polynomial order of every leaf before rounding.
        nregions : int, optional
            Number of equal sub-intervals. Ignored when *pts* is given.
        pts : sequence of float, optional
            Explicit increasing break points, ``pts[0] == lb`` and
            ``pts[-1] == ub``.

        Returns
        -------
        PiecewisePoly
            A single leaf when there is one region, otherwise an interior
            node with one leaf per region.
        """
        ptype = check_ptype(ptype)
        num = maxorder + 1
        if pts is not None:
            pts = np.asarray(pts, dtype=float)
            if len(pts) < 2 or np.any(np.diff(pts) <= 0):
                raise ValueError("pts must hold at least 2 increasing break points")
        elif nregions < 1:
            raise ValueError(f"nregions must be >= 1, got {nregions}")
        else:
            pts = np.linspace(lb, ub, nregions + 1)

        leaves = [
            cls(OrthPolyExpansion.approx(f, num, pts[i], pts[i + 1], ptype).round())
            for i in range(len(pts) - 1)
        ]
        if len(leaves) == 1:
            return leaves[0]
        return cls(branches=leaves)

    @classmethod
    def approx1_adapt(cls, f: Callable[[float], float], lb: float, ub: float,
                      ptype: str = "legendre", maxorder: int = 7,
                      nregions: int = 5, pts: Optional[Sequence[float]] = None,
                      minsize: float = 1e-5, coeff_check: int = 2,
                      epsilon: float = 1e-8, verbose: bool = False,
                      _depth: int = 0) -> "PiecewisePoly":
        """Fixed-grid fit followed by recursive refinement of unresolved leaves.

        A leaf is refined when it kept all ``maxorder + 1`` coefficients
        after rounding, any of its last *coeff_check* coefficients exceeds
        *epsilon*, and its width is at least *minsize*. Refinement replaces
        the leaf by an adaptive fit of the same sub-interval.
        A single region (``nregions=1``) gives one leaf with no refinement.

        Parameters
        ----------
        f : callable
            Scalar function of one variable.
        lb, ub : float
            Domain bounds.
        ptype, maxorder, nregions, pts
            See :meth:`approx1`. *pts* applies to the top level only.
        minsize : float, optional
            Leaves narrower than this are never refined.
        coeff_check : int, optional
            Number of trailing coefficients inspected.
        epsilon : float, optional
            Coefficient threshold for convergence.
        verbose : bool, optional
            Print every refinement.

        Returns
        -------
        PiecewisePoly
        """
        p = cls.approx1(f, lb, ub, ptype=ptype, maxorder=maxorder,
                        nregions=nregions, pts=pts)
        if p.is_leaf:
            return p

        num = maxorder + 1
        for i, branch in enumerate(p.branches):
            coeffs = branch.ope.coeffs
            if len(coeffs) < num:
                continue
            check = min(coeff_check, len(coeffs))
            refine = bool(np.any(np.abs(coeffs[-check:]) > epsilon))
            if branch.ub - branch.lb < minsize:
                refine = False
            if refine:
                if verbose:
                    print(f"  Refining [{branch.lb:.6g}, {branch.ub:.6g}] "
                          f"at depth {_depth + 1}")
                p.branches[i] = cls.approx1_adapt(
                    f, branch.lb, branch.ub, ptype=ptype, maxorder=maxorder,
                    nregions=nregions, minsize=minsize,
                    coeff_check=coeff_check, epsilon=epsilon,
                    verbose=verbose, _depth=_depth + 1,
                )
        return p

    @classmethod
    def approx2(cls, f: Callable[[float], float], lb: float, ub: float,
                ptype: str = "legendre", maxorder: int = 30,
                minsize: float = 1e-13, coeff_check: int = 4,
                epsilon: float = 1e-10, verbose: bool = False) -> "PiecewisePoly":
        """Discontinuity-aware fit: split at detected jumps, then fit pieces.

        Edges are found with :func:`locate_jumps` (``nsplit=maxorder``,
        ``tol=minsize``). Each edge *e* contributes the break points
        ``e - minsize`` and ``e + minsize``; every resulting piece is fitted
        with an adaptive polynomial of at most ``maxorder + 1`` coefficients.
        """
        ptype = check_ptype(ptype)
        edges = locate_jumps(f, lb, ub, nsplit=maxorder, tol=minsize)
        if verbose:
            print(f"  Located {len(edges)} edge(s): {edges}")

        nodes = [float(lb)]
        for e in edges:
            for candidate in (e - minsize, e + minsize):
                if nodes[-1] < candidate < ub:
                    nodes.append(candidate)
        nodes.append(float(ub))

        leaves = [
            cls(OrthPolyExpansion.approx_adapt(
                f, nodes[i], nodes[i + 1], ptype, start_num=6,
                coeffs_check=coeff_check, tol=epsilon, max_num=maxorder + 1,
            ))
            for i in range(len(nodes) - 1)
        ]
        if len(leaves) == 1:
            return leaves[0]
        return cls(branches=leaves)

    # ------------------------------------------------------------------
    # Calculus
    # ------------------------------------------------------------------

    def integrate(self) -> float:
        if self.is_leaf:
            return self.ope.integrate()
        return sum(branch.integrate() for branch in self.branches)

    def inner(self, other: "PiecewisePoly") -> float:
        """``integral(self * other)`` via an adaptive product."""
        return PiecewisePoly.prod(self, other).integrate()

    def norm(self) -> float:
        return math.sqrt(max(self.inner(self), 0.0))

    def deriv(self) -> "PiecewisePoly":
        """Derivative with the same tree structure."""
        if self.is_leaf:
            return PiecewisePoly(self.ope.deriv())
        return PiecewisePoly(branches=[branch.deriv() for branch in self.branches])

    def real_roots(self) -> np.ndarray:
        """Sorted real roots; a root on a shared break point is reported once."""
        roots = np.concatenate([leaf.ope.real_roots() for leaf in self.leaves()])
        if len(roots) == 0:
            return roots
        return _dedup_sorted(np.sort(roots), 1e-10 * (self.ub - self.lb + 1))

    def _extremum(self, mode: str) -> Tuple[float, float]:
        best = None
        for leaf in self.leaves():
            loc, val = getattr(leaf.ope, mode)()
            if best is None:
                best = (loc, val)
            elif mode == "min" and val < best[1]:
                best = (loc, val)
            elif mode != "min" and val > best[1]:
                best = (loc, val)
        return best

    def max(self) -> Tuple[float, float]:
        """Return ``(location, value)`` of the maximum."""
        return self._extremum("max")

    def min(self) -> Tuple[float, float]:
        """Return ``(location, value)`` of the minimum."""
        return self._extremum("min")

    def absmax(self) -> Tuple[float, float]:
        """Return ``(location, |value|)`` of the maximum magnitude."""
        return self._extremum("absmax")

    @staticmethod
    def check_discontinuity(left: "PiecewisePoly", right: "PiecewisePoly",
                            numcheck: int, tol: float) -> bool:
        """True if *left* and *right* disagree at their shared boundary.

        Values are compared first (relative when ``|left| >= 1``), then up
        to *numcheck* successive derivatives.
        """
        if numcheck == -1:
            return False
        ubl = left.ub
        lbr = right.lb
        if abs(ubl - lbr) >= 100 * _DBL_EPSILON:
            raise ValueError(f"Pieces are not adjacent: {ubl} vs {lbr}")

        val1 = left.eval(ubl)
        val2 = right.eval(lbr)
        diff = abs(val1 - val2)
        if abs(val1) >= 1.0:
            diff /= abs(val1)
        if diff < tol:
            return PiecewisePoly.check_discontinuity(
                left.deriv(), right.deriv(), numcheck - 1, tol
            )
        return True

    # ------------------------------------------------------------------
    # Algebra
    # ------------------------------------------------------------------

    def scale(self, a: float) -> None:
        """Multiply every leaf by *a* in place."""
        for leaf in self.leaves():
            leaf.ope.scale(a)

    def flip_sign(self) -> None:
        for leaf in self.leaves():
            leaf.ope.flip_sign()

    def copy(self) -> "PiecewisePoly":
        if self.is_leaf:
            return PiecewisePoly(self.ope.copy())
        return PiecewisePoly(branches=[branch.copy() for branch in self.branches])

    @staticmethod
    def _operand_domain(x, y) -> Tuple[float, float]:
        if x is None:
            return y.lb, y.ub
        if y is None:
            return x.lb, x.ub
        return min(x.lb, y.lb), max(x.ub, y.ub)

    @staticmethod
    def daxpby(a: float, x: Optional["PiecewisePoly"], b: float,
               y: Optional["PiecewisePoly"], ptype: str = "legendre",
               maxorder: int = 7, nregions: int = 5, minsize: float = 1e-3,
               coeff_check: int = 2, epsilon: float = 1e-8) -> "PiecewisePoly":
        """Adaptive refit of ``a * x(t) + b * y(t)`` over the union domain.

        The operands' partitions are not merged; the combination is treated
        as a black-box function. Use :meth:`match` and
        :meth:`matched_daxpby` for an exact, partition-preserving result.
        Either operand may be ``None``.
        """
        if x is None and y is None:
            raise ValueError("daxpby needs at least one operand")
        lb, ub = PiecewisePoly._operand_domain(x, y)

        def combo(t: float) -> float:
            out = 0.0
            if x is not None:
                out += a * x.eval(t)
            if y is not None:
                out += b * y.eval(t)
            return out

        return PiecewisePoly.approx1_adapt(
            combo, lb, ub, ptype=ptype, maxorder=maxorder, nregions=nregions,
            minsize=minsize, coeff_check=coeff_check, epsilon=epsilon,
        )

    @staticmethod
    def prod(a: "PiecewisePoly", b: "PiecewisePoly", ptype: str = "legendre",
             maxorder: int = 7, nregions: int = 5, minsize: float = 1e-3,
             coeff_check: int = 2, epsilon: float = 1e-7) -> "PiecewisePoly":
        """Adaptive refit of the pointwise product ``a(t) * b(t)``."""
        lb, ub = PiecewisePoly._operand_domain(a, b)
        return PiecewisePoly.approx1_adapt(
            lambda t: a.eval(t) * b.eval(t), lb, ub, ptype=ptype,
            maxorder=maxorder, nregions=nregions, minsize=minsize,
            coeff_check=coeff_check, epsilon=epsilon,
        )

    # ------------------------------------------------------------------
    # Partition matching
    # ------------------------------------------------------------------

    def _finer_grid(self, nodes: np.ndarray) -> "PiecewisePoly":
        if len(nodes) == 2 and self.lb == nodes[0] and self.ub == nodes[1]:
            return self.copy()
        leaves = [
            PiecewisePoly(OrthPolyExpansion.approx_adapt(
                self.eval, float(nodes[i]), float(nodes[i + 1]), "legendre",
                start_num=8, coeffs_check=2, tol=1e-14,
            ))
            for i in range(len(nodes) - 1)
        ]
        if len(leaves) == 1:
            return leaves[0]
        return PiecewisePoly(branches=leaves)

    @staticmethod
    def match(a: "PiecewisePoly",
              b: "PiecewisePoly") -> Tuple["PiecewisePoly", "PiecewisePoly"]:
        """Refit *a* and *b* onto a common partition of their shared domain.

        The break points of both trees that fall inside the intersection of
        the two domains are merged; nodes closer than machine epsilon are
        treated as one.

        Returns
        -------
        (aa, bb) : (PiecewisePoly, PiecewisePoly)
            Trees with identical :meth:`boundaries`.
        """
        ba = a.boundaries()
        bb = b.boundaries()
        lb = max(ba[0], bb[0])
        ub = min(ba[-1], bb[-1])
        if not lb < ub:
            raise ValueError(
                f"Domains [{ba[0]}, {ba[-1]}] and [{bb[0]}, {bb[-1]}] do not overlap"
            )
        both = np.concatenate([ba, bb])
        interior = both[(both > lb) & (both < ub)]
        nodes = np.concatenate([[lb], np.sort(interior), [ub]])
        nodes = _dedup_sorted(nodes, _DBL_EPSILON)
        if nodes[-1] != ub:
            nodes[-1] = ub
        return a._finer_grid(nodes), b._finer_grid(nodes)

    @staticmethod
    def _check_matched(x: "PiecewisePoly", y: "PiecewisePoly") -> None:
        if x.is_leaf != y.is_leaf or (
            not x.is_leaf and len(x.branches) != len(y.branches)
        ):
            raise ValueError("Operands do not share a partition; call match() first")

    @staticmethod
    def matched_daxpby(a: float, x: Optional["PiecewisePoly"], b: float,
                       y: Optional["PiecewisePoly"]) -> "PiecewisePoly":
        """Exact ``a * x + b * y`` for trees with identical partitions."""
        if x is None and y is None:
            raise ValueError("daxpby needs at least one operand")
        if x is None or y is None:
            out = (y if x is None else x).copy()
            out.scale(b if x is None else a)
            return out
        PiecewisePoly._check_matched(x, y)
        if x.is_leaf:
            return PiecewisePoly(OrthPolyExpansion.daxpby(a, x.ope, b, y.ope))
        return PiecewisePoly(branches=[
            PiecewisePoly.matched_daxpby(a, xc, b, yc)
            for xc, yc in zip(x.branches, y.branches)
        ])

    @staticmethod
    def matched_prod(x: "PiecewisePoly", y: "PiecewisePoly") -> "PiecewisePoly":
        """Exact product for trees with identical partitions."""
        PiecewisePoly._check_matched(x, y)
        if x.is_leaf:
            return PiecewisePoly(x.ope.prod(y.ope))
        return PiecewisePoly(branches=[
            PiecewisePoly.matched_prod(xc, yc)
            for xc, yc in zip(x.branches, y.branches)
        ])

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def write(self, writer: ByteWriter) -> None:
        """Append ``is_leaf`` then the leaf payload or the children."""
        writer.write_int(1 if self.is_leaf else 0)
        if self.is_leaf:
            self.ope.write(writer)
        else:
            writer.write_size(len(self.branches))
            for branch in self.branches:
                branch.write(writer)

    @classmethod
    def read(cls, reader: ByteReader) -> "PiecewisePoly":
        is_leaf = reader.read_int()
        if is_leaf == 1:
            return cls(OrthPolyExpansion.read(reader))
        if is_leaf != 0:
            raise ValueError(f"Corrupt piecewise payload: is_leaf={is_leaf}")
        n = reader.read_size()
        return cls(branches=[cls.read(reader) for _ in range(n)])

    def serialize(self) -> bytes:
        writer = ByteWriter()
        self.write(writer)
        return pack(KIND_PIECEWISE, writer.getvalue())

    @classmethod
    def deserialize(cls, data: bytes) -> "PiecewisePoly":
        reader = unpack(data, KIND_PIECEWISE)
        out = cls.read(reader)
        reader.finish()
        return out

    # ------------------------------------------------------------------
    # Printing
    # ------------------------------------------------------------------

    def __repr__(self) -> str:
        kind = "leaf" if self.is_leaf else "interior"
        return (
            f"PiecewisePoly({kind}, domain=[{self.lb}, {self.ub}], "
            f"nregions={self.nregions})"
        )

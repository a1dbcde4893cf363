"""Tests for piecewise polynomials and jump detection."""

from __future__ import annotations

import math

import numpy as np
import pytest

from conftest import random_points, sin3_plus_sq, step
from pyfunctrain import PiecewisePoly, locate_jumps
from pyfunctrain.piecewise import eval_coeff, eval_jump, get_stencil, minmod_eval


def _kink(x):
    return abs(x - 0.1)


class TestStructure:
    """Tree bookkeeping: leaves, regions and break points."""

    def test_nregions_matches_leaves(self, pw_sin_fine):
        assert pw_sin_fine.nregions == 4
        assert pw_sin_fine.nregions == len(list(pw_sin_fine.leaves()))

    def test_boundaries(self, pw_sin_fine):
        b = pw_sin_fine.boundaries()
        assert len(b) == pw_sin_fine.nregions + 1
        assert np.all(np.diff(b) > 0)
        assert b[0] == pw_sin_fine.lb == -1.0
        assert b[-1] == pw_sin_fine.ub == 1.0

    def test_adaptive_boundaries_nested(self):
        p = PiecewisePoly.approx1_adapt(_kink, -1.0, 1.0)
        b = p.boundaries()
        assert p.nregions > 5
        assert len(b) == p.nregions + 1
        assert np.all(np.diff(b) > 0)

    def test_leaf_or_branches_required(self):
        with pytest.raises(ValueError, match="exactly one"):
            PiecewisePoly()

    def test_explicit_pts(self):
        p = PiecewisePoly.approx1(math.sin, 0.0, 1.0, pts=[0.0, 0.2, 1.0])
        np.testing.assert_allclose(p.boundaries(), [0.0, 0.2, 1.0])

    def test_single_region_is_leaf(self):
        p = PiecewisePoly.approx1(math.sin, 0.0, 1.0, nregions=1)
        assert p.is_leaf

    def test_adapt_single_region_is_leaf(self):
        p = PiecewisePoly.approx1_adapt(math.sin, 0.0, 1.0, nregions=1)
        assert p.is_leaf
        assert abs(p.eval(0.4) - math.sin(0.4)) < 1e-6


class TestApproximation:
    """Accuracy of the adaptive builders."""

    def test_order_50_legendre(self):
        p = PiecewisePoly.approx1_adapt(sin3_plus_sq, -1.0, 1.0,
                                        ptype="legendre", maxorder=50)
        xs = random_points(1000)
        exact = np.array([sin3_plus_sq(x) for x in xs])
        assert np.max(np.abs(p.eval(xs) - exact)) < 1e-13

    def test_scalar_and_array_eval_agree(self, pw_sin_fine):
        xs = random_points(20)
        vec = pw_sin_fine.eval(xs)
        for x, v in zip(xs, vec):
            assert pw_sin_fine.eval(x) == pytest.approx(v, abs=1e-15)

    def test_kink_refined(self):
        p = PiecewisePoly.approx1_adapt(_kink, -1.0, 1.0, minsize=1e-3)
        for x in [-0.8, -0.3, 0.5, 0.95]:
            assert abs(p.eval(x) - _kink(x)) < 1e-8

    def test_verbose_prints(self, capsys):
        PiecewisePoly.approx1_adapt(_kink, -1.0, 1.0, verbose=True)
        assert "Refining" in capsys.readouterr().out

    def test_approx2_splits_at_jump(self):
        p = PiecewisePoly.approx2(step, -1.0, 1.0)
        b = p.boundaries()
        assert np.min(np.abs(b - 0.3)) < 1e-6
        for x in [-0.9, 0.0, 0.29, 0.31, 0.8]:
            assert abs(p.eval(x) - step(x)) < 1e-10


class TestJumpDetection:
    """Polynomial annihilation helpers."""

    def test_eval_coeff_two_points(self):
        # m = 1: 1! / (s_0 - s_1)
        assert eval_coeff(0, [0.0, 0.5]) == pytest.approx(-2.0)
        assert eval_coeff(1, [0.0, 0.5]) == pytest.approx(2.0)

    def test_stencil_brackets_point(self):
        total = np.linspace(0.0, 1.0, 11)
        start = get_stencil(0.55, total, 4)
        window = total[start:start + 4]
        assert window[0] < 0.55 < window[-1]

    def test_stencil_rejects_outside(self):
        with pytest.raises(ValueError, match="strictly inside"):
            get_stencil(1.5, np.linspace(0.0, 1.0, 5), 3)

    def test_minmod_smooth_is_small(self):
        total = np.linspace(0.0, 1.0, 11)
        vals = total ** 2
        assert abs(minmod_eval(0.55, total, vals, 2, 5)) < 1e-10

    def test_locate_jumps(self):
        edges = locate_jumps(step, -1.0, 1.0, nsplit=10, tol=1e-8)
        assert len(edges) >= 1
        assert min(abs(e - 0.3) for e in edges) < 1e-8

    def test_locate_jumps_smooth(self):
        assert locate_jumps(math.sin, -1.0, 1.0) == []

    def test_nsplit_too_small(self):
        with pytest.raises(ValueError, match="nsplit"):
            locate_jumps(step, -1.0, 1.0, nsplit=3)

    def test_eval_jump_scale_invariant(self):
        vals = [0.0, 1.0, 1.0, 1.0]
        unit = eval_jump(-0.9, [-1.0, -0.8, -0.6, -0.4], vals)
        wide = eval_jump(-9e5, [-1e6, -8e5, -6e5, -4e5], vals)
        assert np.isfinite(wide)
        assert wide == pytest.approx(unit, rel=1e-10)

    def test_eval_jump_one_sided_stencil(self):
        with pytest.raises(ValueError, match="one side"):
            eval_jump(0.5, [0.0, 0.1, 0.2], [0.0, 0.0, 0.0])

    def test_locate_jumps_wide_domain(self):
        # a unit jump is below the 1e5 threshold set by the coarse spacing
        assert locate_jumps(lambda x: 1.0 if x > 3e5 else 0.0, -1e6, 1e6) == []

        def tall_step(x):
            return 1e6 if x > 3e5 else 0.0

        edges = locate_jumps(tall_step, -1e6, 1e6, nsplit=10, tol=1e-2)
        assert len(edges) >= 1
        assert min(abs(e - 3e5) for e in edges) < 1e-2

    def test_check_discontinuity(self):
        left = PiecewisePoly.linear(1.0, 0.0, -1.0, 0.0)
        smooth = PiecewisePoly.linear(1.0, 0.0, 0.0, 1.0)
        jump = PiecewisePoly.constant(1.0, 0.0, 1.0)
        assert not PiecewisePoly.check_discontinuity(left, smooth, 2, 1e-10)
        assert PiecewisePoly.check_discontinuity(left, jump, 2, 1e-10)


class TestCalculus:
    """Integrals, inner products, derivatives and extrema."""

    def test_integrate(self, pw_sin_fine):
        assert pw_sin_fine.integrate() == pytest.approx(2.0 / 3.0, abs=1e-10)

    def test_inner_symmetric_and_norm(self, pw_sin_fine):
        other = PiecewisePoly.approx1(math.cos, -1.0, 1.0, nregions=3)
        assert pw_sin_fine.inner(other) == pytest.approx(other.inner(pw_sin_fine), abs=1e-8)
        assert pw_sin_fine.norm() >= 0.0

    def test_deriv_keeps_structure(self, pw_sin_fine):
        d = pw_sin_fine.deriv()
        np.testing.assert_array_equal(d.boundaries(), pw_sin_fine.boundaries())
        assert d.eval(0.2) == pytest.approx(3.0 * math.cos(0.6) + 0.4, abs=1e-5)

    def test_root_on_break_reported_once(self):
        p = PiecewisePoly.approx1(lambda x: x - 0.2, -1.0, 1.0, nregions=5)
        roots = p.real_roots()
        assert len(roots) == 1
        assert roots[0] == pytest.approx(0.2, abs=1e-10)

    def test_extrema(self):
        p = PiecewisePoly.approx1(lambda x: 1.0 - (x - 0.3) ** 2, -1.0, 1.0, nregions=4)
        loc, val = p.max()
        assert loc == pytest.approx(0.3, abs=1e-8)
        assert val == pytest.approx(1.0, abs=1e-12)
        loc, val = p.min()
        assert loc == -1.0
        loc, val = p.absmax()
        assert val == pytest.approx(1.0, abs=1e-12)


class TestAlgebra:
    """Refitting combinators and exact matched combinators."""

    def test_daxpby_cancels(self, pw_sin_fine):
        z = PiecewisePoly.daxpby(1.0, pw_sin_fine, -1.0, pw_sin_fine)
        assert np.max(np.abs(z.eval(random_points(1000)))) < 1e-12

    def test_daxpby_values(self, pw_sin_fine):
        other = PiecewisePoly.approx1(math.exp, -1.0, 1.0, nregions=3)
        z = PiecewisePoly.daxpby(2.0, pw_sin_fine, 0.5, other)
        for x in [-0.7, 0.1, 0.6]:
            expected = 2.0 * pw_sin_fine.eval(x) + 0.5 * other.eval(x)
            assert z.eval(x) == pytest.approx(expected, abs=1e-7)

    def test_prod_values(self):
        a = PiecewisePoly.approx1(math.sin, -1.0, 1.0, nregions=3)
        b = PiecewisePoly.approx1(math.cos, -1.0, 1.0, nregions=2)
        c = PiecewisePoly.prod(a, b)
        for x in [-0.5, 0.2, 0.9]:
            assert c.eval(x) == pytest.approx(a.eval(x) * b.eval(x), abs=1e-6)

    def test_match(self):
        a = PiecewisePoly.approx1(sin3_plus_sq, -1.0, 1.0, nregions=3)
        b = PiecewisePoly.approx1(math.exp, -1.0, 1.0, nregions=4)
        aa, bb = PiecewisePoly.match(a, b)
        np.testing.assert_array_equal(aa.boundaries(), bb.boundaries())
        assert aa.nregions == bb.nregions == 6
        for x in [-0.9, -0.4, 0.1, 0.45, 0.8]:
            assert aa.eval(x) == pytest.approx(a.eval(x), abs=1e-10)
            assert bb.eval(x) == pytest.approx(b.eval(x), abs=1e-10)

    def test_match_disjoint(self):
        a = PiecewisePoly.constant(1.0, -1.0, 0.0)
        b = PiecewisePoly.constant(1.0, 0.5, 1.0)
        with pytest.raises(ValueError, match="overlap"):
            PiecewisePoly.match(a, b)

    def test_matched_ops(self):
        a = PiecewisePoly.approx1(math.sin, -1.0, 1.0, nregions=2)
        b = PiecewisePoly.approx1(math.cos, -1.0, 1.0, nregions=3)
        aa, bb = PiecewisePoly.match(a, b)
        s = PiecewisePoly.matched_daxpby(1.0, aa, -2.0, bb)
        p = PiecewisePoly.matched_prod(aa, bb)
        for x in [-0.8, 0.0, 0.7]:
            assert s.eval(x) == pytest.approx(aa.eval(x) - 2.0 * bb.eval(x), abs=1e-13)
            assert p.eval(x) == pytest.approx(aa.eval(x) * bb.eval(x), abs=1e-13)

    def test_matched_requires_shared_partition(self):
        a = PiecewisePoly.approx1(math.sin, -1.0, 1.0, nregions=2)
        b = PiecewisePoly.approx1(math.sin, -1.0, 1.0, nregions=3)
        with pytest.raises(ValueError, match="match"):
            PiecewisePoly.matched_prod(a, b)

    def test_scale_in_place(self, pw_sin_fine):
        before = pw_sin_fine.eval(0.4)
        copy = pw_sin_fine.copy()
        pw_sin_fine.scale(-2.0)
        assert pw_sin_fine.eval(0.4) == pytest.approx(-2.0 * before)
        assert copy.eval(0.4) == pytest.approx(before)


class TestSerialization:
    """Tagged byte round trip of the tree."""

    def test_roundtrip(self):
        p = PiecewisePoly.approx1_adapt(_kink, -1.0, 1.0)
        q = PiecewisePoly.deserialize(p.serialize())
        np.testing.assert_array_equal(q.boundaries(), p.boundaries())
        xs = random_points(50)
        np.testing.assert_array_equal(q.eval(xs), p.eval(xs))

    def test_wrong_kind_rejected(self):
        from pyfunctrain import GenericFunction, FunctionClass

        blob = GenericFunction.constant(1.0, FunctionClass.POLYNOMIAL).serialize()
        with pytest.raises(ValueError, match="kind"):
            PiecewisePoly.deserialize(blob)

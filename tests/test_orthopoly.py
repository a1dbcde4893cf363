"""Tests for orthogonal polynomial expansions."""

from __future__ import annotations

import math

import numpy as np
import pytest

from conftest import random_points, sin3_plus_sq
from pyfunctrain import OrthPolyExpansion
from pyfunctrain._serialize import ByteReader, ByteWriter


class TestConstruction:
    """Closed-form constructors reproduce their formulas."""

    def test_constant(self):
        p = OrthPolyExpansion.constant(2.5, 0.0, 3.0)
        assert p.num_poly == 1
        assert p.eval(1.7) == pytest.approx(2.5)

    def test_linear(self):
        p = OrthPolyExpansion.linear(2.0, 1.0, -1.0, 1.0)
        assert p.eval(0.5) == pytest.approx(2.0)
        assert p.num_poly == 2

    def test_quadratic(self):
        p = OrthPolyExpansion.quadratic(3.0, 0.5, -1.0, 1.0, "chebyshev")
        assert p.eval(0.0) == pytest.approx(0.75)
        assert p.eval(0.5) == pytest.approx(0.0, abs=1e-14)

    def test_power_coeffs_on_shifted_domain(self):
        p = OrthPolyExpansion.from_power_coeffs([1.0, -2.0, 0.5], 2.0, 5.0)
        for x in [2.0, 3.3, 5.0]:
            assert p.eval(x) == pytest.approx(1.0 - 2.0 * x + 0.5 * x * x)

    def test_empty_coeffs_rejected(self):
        with pytest.raises(ValueError, match="at least one"):
            OrthPolyExpansion([], -1.0, 1.0)

    def test_bad_domain_rejected(self):
        with pytest.raises(ValueError, match="[Dd]omain"):
            OrthPolyExpansion([1.0], 1.0, 1.0)

    def test_unknown_ptype(self):
        with pytest.raises(ValueError, match="ptype"):
            OrthPolyExpansion([1.0], -1.0, 1.0, "hermite")


class TestOrthonormality:
    """genorder produces an orthonormal family in either storage basis."""

    @pytest.mark.parametrize("ptype", ["legendre", "chebyshev"])
    def test_gram_matrix_is_identity(self, ptype):
        polys = [OrthPolyExpansion.genorder(k, 0.0, 2.0, ptype) for k in range(6)]
        gram = np.array([[a.inner(b) for b in polys] for a in polys])
        np.testing.assert_allclose(gram, np.eye(6), atol=1e-12)

    def test_negative_order(self):
        with pytest.raises(ValueError, match="non-negative"):
            OrthPolyExpansion.genorder(-1)


class TestApproximation:
    """Interpolation and adaptive interpolation accuracy."""

    def test_order_50_legendre(self):
        p = OrthPolyExpansion.approx(sin3_plus_sq, 51, -1.0, 1.0, "legendre")
        xs = random_points(1000)
        err = np.max(np.abs(p.eval(xs) - np.array([sin3_plus_sq(x) for x in xs])))
        assert err < 1e-13

    @pytest.mark.parametrize("ptype", ["legendre", "chebyshev"])
    def test_adaptive_converges(self, ptype):
        p = OrthPolyExpansion.approx_adapt(math.exp, -2.0, 1.0, ptype)
        xs = random_points(200, -2.0, 1.0)
        np.testing.assert_allclose(p.eval(xs), np.exp(xs), atol=1e-12)
        assert p.num_poly < 60

    def test_adaptive_respects_cap(self):
        p = OrthPolyExpansion.approx_adapt(abs, -1.0, 1.0, max_num=16)
        assert p.num_poly <= 16

    def test_polynomial_is_exact_and_short(self):
        p = OrthPolyExpansion.approx_adapt(lambda x: x ** 3 - x, -1.0, 1.0)
        assert p.num_poly == 4


class TestCalculus:
    """Integration, derivatives, roots and extrema."""

    def test_integrate(self):
        p = OrthPolyExpansion.from_power_coeffs([0.0, 0.0, 1.0], -1.0, 1.0)
        assert p.integrate() == pytest.approx(2.0 / 3.0)

    def test_inner_symmetric(self):
        a = OrthPolyExpansion.approx_adapt(math.sin, 0.0, 1.0)
        b = OrthPolyExpansion.approx_adapt(math.exp, 0.0, 1.0, "chebyshev")
        assert a.inner(b) == pytest.approx(b.inner(a), abs=1e-14)

    def test_norm(self):
        p = OrthPolyExpansion.constant(3.0, 0.0, 4.0)
        assert p.norm() == pytest.approx(6.0)

    def test_deriv(self):
        p = OrthPolyExpansion.approx_adapt(sin3_plus_sq, -1.0, 1.0)
        dp = p.deriv()
        for x in [-0.9, -0.2, 0.4, 0.8]:
            assert dp.eval(x) == pytest.approx(3.0 * math.cos(3.0 * x) + 2.0 * x, abs=1e-10)

    def test_deriv_of_constant(self):
        dp = OrthPolyExpansion.constant(4.0).deriv()
        assert dp.eval(0.3) == 0.0

    def test_real_roots(self):
        p = OrthPolyExpansion.from_power_coeffs([-0.25, 0.0, 1.0], -1.0, 1.0)
        np.testing.assert_allclose(p.real_roots(), [-0.5, 0.5], atol=1e-12)

    def test_roots_outside_domain_dropped(self):
        p = OrthPolyExpansion.linear(1.0, -3.0, -1.0, 1.0)
        assert len(p.real_roots()) == 0

    def test_max_interior(self):
        p = OrthPolyExpansion.quadratic(-1.0, 0.3, -1.0, 1.0)
        loc, val = p.max()
        assert loc == pytest.approx(0.3, abs=1e-10)
        assert val == pytest.approx(0.0, abs=1e-12)

    def test_min_at_endpoint(self):
        p = OrthPolyExpansion.linear(1.0, 0.0, -1.0, 1.0)
        loc, val = p.min()
        assert loc == -1.0
        assert val == pytest.approx(-1.0)

    def test_absmax(self):
        p = OrthPolyExpansion.from_power_coeffs([0.0, -1.0, 0.0, 1.0], -1.0, 1.0)
        _, val = p.absmax()
        assert val == pytest.approx(2.0 / (3.0 * math.sqrt(3.0)), rel=1e-10)


class TestAlgebra:
    """In-place updates, daxpby and products."""

    def test_scale_and_flip(self):
        p = OrthPolyExpansion.linear(1.0, 1.0)
        p.scale(3.0)
        p.flip_sign()
        assert p.eval(0.5) == pytest.approx(-4.5)

    def test_axpy_mixed_basis(self):
        a = OrthPolyExpansion.linear(1.0, 0.0, ptype="legendre")
        b = OrthPolyExpansion.quadratic(1.0, 0.0, ptype="chebyshev")
        a.axpy(2.0, b)
        assert a.ptype == "legendre"
        assert a.eval(0.5) == pytest.approx(0.5 + 2.0 * 0.25)

    def test_axpy_domain_mismatch(self):
        a = OrthPolyExpansion.constant(1.0, -1.0, 1.0)
        b = OrthPolyExpansion.constant(1.0, 0.0, 1.0)
        with pytest.raises(ValueError, match="[Dd]omain"):
            a.axpy(1.0, b)

    def test_daxpby_cancels(self):
        p = OrthPolyExpansion.approx_adapt(math.cos, -1.0, 1.0)
        z = OrthPolyExpansion.daxpby(1.0, p, -1.0, p)
        assert z.num_poly == 1
        assert np.all(z.eval(random_points(50)) == 0.0)

    def test_daxpby_with_none(self):
        p = OrthPolyExpansion.linear(1.0, 2.0)
        q = OrthPolyExpansion.daxpby(2.0, p, 1.0, None)
        assert q.eval(1.0) == pytest.approx(6.0)
        r = OrthPolyExpansion.daxpby(1.0, None, -1.0, p)
        assert r.eval(1.0) == pytest.approx(-3.0)
        with pytest.raises(ValueError):
            OrthPolyExpansion.daxpby(1.0, None, 1.0, None)

    def test_prod_exact(self):
        a = OrthPolyExpansion.linear(1.0, 1.0, 0.0, 2.0)
        b = OrthPolyExpansion.linear(1.0, -1.0, 0.0, 2.0, "chebyshev")
        c = a.prod(b)
        assert c.num_poly == 3
        assert c.eval(1.5) == pytest.approx(1.5 ** 2 - 1.0)

    def test_round(self):
        p = OrthPolyExpansion([1.0, 0.5, 1e-17])
        assert p.round() is p
        assert p.num_poly == 2
        z = OrthPolyExpansion([1e-18, 1e-18]).round()
        assert z.num_poly == 1 and z.coeffs[0] == 0.0

    def test_copy_is_independent(self):
        p = OrthPolyExpansion.linear(1.0, 0.0)
        q = p.copy()
        q.scale(5.0)
        assert p.eval(1.0) == pytest.approx(1.0)


class TestSerialization:
    """Nested byte layout round-trips."""

    def test_write_read(self):
        p = OrthPolyExpansion.approx_adapt(math.sin, 0.5, 2.0, "chebyshev")
        writer = ByteWriter()
        p.write(writer)
        data = writer.getvalue()
        assert len(data) == 4 + 8 + 8 + 8 + 8 * p.num_poly
        reader = ByteReader(data)
        q = OrthPolyExpansion.read(reader)
        assert reader.at_end()
        assert q.ptype == "chebyshev"
        assert (q.lb, q.ub) == (0.5, 2.0)
        np.testing.assert_array_equal(q.coeffs, p.coeffs)

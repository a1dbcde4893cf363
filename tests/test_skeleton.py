"""Tests for skeleton (cross) decompositions."""

from __future__ import annotations

import math
import pickle
import tempfile

import numpy as np
import pytest

from conftest import xy_plus_one
from pyfunctrain import AdaptOpts, FunctionClass, SkeletonDecomp


PIVX = [-0.5, 0.5]
PIVY = [-0.5, 0.5]
BOUNDS = [[-1.0, 1.0], [-1.0, 1.0]]


@pytest.fixture
def skd():
    return SkeletonDecomp.from_pivots(xy_plus_one, PIVX, PIVY, BOUNDS)


class TestSkeletonBuild:
    """Construction from pivots."""

    def test_rank(self, skd):
        assert skd.rank == 2
        assert skd.skeleton.shape == (2, 2)

    def test_reproduces_pivots(self, skd):
        for px in PIVX:
            for py in PIVY:
                assert abs(skd.eval(px, py) - xy_plus_one(px, py)) <= 1e-10

    def test_rank_two_function_is_exact(self, skd):
        rng = np.random.default_rng(11)
        for x, y in rng.uniform(-1.0, 1.0, (20, 2)):
            assert skd(x, y) == pytest.approx(xy_plus_one(x, y), abs=1e-10)

    def test_pivot_count_mismatch(self):
        with pytest.raises(ValueError, match="pivot"):
            SkeletonDecomp.from_pivots(xy_plus_one, [0.0], [0.0, 0.5], BOUNDS)

    def test_per_axis_classes(self):
        def f(x, y):
            return math.sin(x) * math.cos(y)

        skd = SkeletonDecomp.from_pivots(
            f, [0.3], [0.2], [[0.0, 1.0], [-1.0, 1.0]],
            fc=(FunctionClass.POLYNOMIAL, FunctionClass.PIECEWISE),
            opts=(None, AdaptOpts(maxorder=9)),
        )
        assert skd.xqm[0].fc == FunctionClass.POLYNOMIAL
        assert skd.yqm[0].fc == FunctionClass.PIECEWISE
        assert skd(0.7, -0.4) == pytest.approx(f(0.7, -0.4), abs=1e-9)

    def test_singular_core_uses_pseudo_inverse(self):
        skd = SkeletonDecomp.from_pivots(xy_plus_one, [0.0, 0.0], [0.0, 0.5], BOUNDS)
        assert np.all(np.isfinite(skd.skeleton))

    def test_inconsistent_parts(self, skd):
        with pytest.raises(ValueError, match="Inconsistent"):
            SkeletonDecomp(skd.xqm, skd.yqm, np.eye(3))


class TestSkeletonPersistence:
    """Copies and pickling."""

    def test_copy_independent(self, skd):
        c = skd.copy()
        c.skeleton[0, 0] = 100.0
        assert skd(0.1, 0.2) == pytest.approx(xy_plus_one(0.1, 0.2), abs=1e-10)

    def test_pickle_roundtrip(self, skd):
        back = pickle.loads(pickle.dumps(skd))
        assert back(0.3, -0.2) == pytest.approx(skd(0.3, -0.2), abs=1e-15)

    def test_save_load(self, skd, tmp_path):
        path = tmp_path / "skd.pkl"
        skd.save(path)
        loaded = SkeletonDecomp.load(path)
        assert loaded.rank == 2
        assert loaded(0.3, -0.2) == pytest.approx(0.94, abs=1e-12)

    def test_load_wrong_type(self):
        with tempfile.NamedTemporaryFile(suffix=".pkl", delete=False) as f:
            pickle.dump({"not": "a skeleton"}, f)
            path = f.name
        with pytest.raises(TypeError, match="SkeletonDecomp"):
            SkeletonDecomp.load(path)

    def test_version_mismatch_warns(self, skd):
        state = skd.__getstate__()
        state["_pyfunctrain_version"] = "0.0.0"
        fresh = SkeletonDecomp.__new__(SkeletonDecomp)
        with pytest.warns(UserWarning, match="0.0.0"):
            fresh.__setstate__(state)
        assert fresh.rank == 2

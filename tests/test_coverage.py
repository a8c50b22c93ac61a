"""Tests for coverage scaling and count override"""

import pytest

from riplanner.core.models import total_instances
from riplanner.pipeline.coverage import apply_count_override, apply_coverage

from conftest import make_ec2_rec, make_rds_rec, make_sp_rec


class TestApplyCoverage:
    """Test apply_coverage"""

    def test_full_coverage_unchanged(self):
        recs = [make_rds_rec(count=7)]
        assert apply_coverage(recs, 100) == recs

    def test_zero_coverage_empty(self):
        assert apply_coverage([make_rds_rec(count=7)], 0) == []

    def test_floor(self):
        result = apply_coverage([make_rds_rec(count=7)], 50)
        assert result[0].count == 3

    def test_low_coverage_drops_single_instance(self):
        assert apply_coverage([make_rds_rec(count=1)], 20) == []

    def test_money_scales_with_count(self):
        rec = make_rds_rec(count=10, estimated_savings=100.0, upfront_cost=50.0)
        scaled = apply_coverage([rec], 50)[0]
        assert scaled.estimated_savings == pytest.approx(50.0)
        assert scaled.upfront_cost == pytest.approx(25.0)

    def test_savings_plan_scales_commitment(self):
        result = apply_coverage([make_sp_rec(hourly_commitment=10.0, estimated_savings=200.0)], 50)
        assert len(result) == 1
        assert result[0].hourly_commitment == pytest.approx(5.0)
        assert result[0].estimated_savings == pytest.approx(100.0)

    def test_savings_plan_kept_at_small_commitment(self):
        result = apply_coverage([make_sp_rec(hourly_commitment=0.02)], 1)
        assert len(result) == 1
        assert result[0].hourly_commitment == pytest.approx(0.0002)

    def test_preserves_order(self):
        recs = [make_rds_rec(count=10, region="us-west-2"), make_ec2_rec(count=4), make_rds_rec(count=6)]
        assert [r.count for r in apply_coverage(recs, 50)] == [5, 2, 3]

    def test_monotonic(self):
        recs = [make_rds_rec(count=c) for c in (1, 3, 7, 10, 25)]
        full = total_instances(apply_coverage(recs, 100))
        half = total_instances(apply_coverage(recs, 50))
        none = total_instances(apply_coverage(recs, 0))
        assert full >= half >= none == 0

    def test_input_not_mutated(self):
        recs = [make_rds_rec(count=10)]
        apply_coverage(recs, 50)
        assert recs[0].count == 10


class TestCountOverride:
    """Test apply_count_override"""

    def test_override_replaces_every_count(self):
        recs = [make_rds_rec(count=10), make_ec2_rec(count=1)]
        assert [r.count for r in apply_count_override(recs, 2)] == [2, 2]

    def test_override_disabled(self):
        recs = [make_rds_rec(count=10)]
        assert apply_count_override(recs, 0) == recs

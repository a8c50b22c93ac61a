"""Tests for the extended support exclusion"""

from datetime import datetime, timedelta, timezone

from riplanner.core.models import (
    EngineLifecycle,
    EngineVersionSupportInfo,
    EXTENDED_SUPPORT,
    InstanceEngineVersion,
    STANDARD_SUPPORT,
)
from riplanner.pipeline.extended_support import (
    EngineVersionIndex,
    apply_extended_support_exclusion,
    is_in_extended_support,
)

from conftest import FIXED_NOW, make_cache_rec, make_rds_rec


def support_info(engine, major, extended_start):
    return EngineVersionSupportInfo(engine=engine, major_version=major, lifecycles=[
        EngineLifecycle(name=STANDARD_SUPPORT, start_date=extended_start - timedelta(days=2000),
                        end_date=extended_start),
        EngineLifecycle(name=EXTENDED_SUPPORT, start_date=extended_start,
                        end_date=extended_start + timedelta(days=1000)),
    ])


def build_index(instances):
    lifecycles = [
        support_info("mysql", "5.7", datetime(2024, 3, 1, tzinfo=timezone.utc)),
        support_info("mysql", "8.0", datetime(2026, 8, 1, tzinfo=timezone.utc)),
        support_info("postgres", "11", datetime(2024, 3, 1, tzinfo=timezone.utc)),
        support_info("aurora-mysql", "5.7", datetime(2024, 11, 1, tzinfo=timezone.utc)),
    ]
    return EngineVersionIndex.build(instances, lifecycles)


def instance(version, engine="mysql", instance_class="db.t3.medium", region="us-east-1"):
    return InstanceEngineVersion(instance_class=instance_class, engine=engine,
                                 engine_version=version, region=region)


class TestIsInExtendedSupport:
    """Test is_in_extended_support"""

    def test_after_start(self):
        index = build_index([])
        assert is_in_extended_support("mysql", "5.7.44", index.lifecycles, FIXED_NOW)

    def test_before_start(self):
        index = build_index([])
        assert not is_in_extended_support("mysql", "8.0.35", index.lifecycles, FIXED_NOW)

    def test_exactly_at_start(self):
        index = build_index([])
        start = datetime(2024, 3, 1, tzinfo=timezone.utc)
        assert is_in_extended_support("mysql", "5.7.44", index.lifecycles, start)

    def test_postgres_engine_spellings(self):
        index = build_index([])
        assert is_in_extended_support("postgres", "11.22", index.lifecycles, FIXED_NOW)
        assert is_in_extended_support("postgresql", "11.22", index.lifecycles, FIXED_NOW)

    def test_aurora_mysql_internal_version(self):
        index = build_index([])
        assert is_in_extended_support("aurora-mysql", "5.7.mysql_aurora.2.11.2", index.lifecycles, FIXED_NOW)

    def test_unknown_version(self):
        index = build_index([])
        assert not is_in_extended_support("mysql", "9.1.0", index.lifecycles, FIXED_NOW)
        assert not is_in_extended_support("mysql", "", index.lifecycles, FIXED_NOW)

    def test_naive_now(self):
        index = build_index([])
        assert is_in_extended_support("mysql", "5.7.44", index.lifecycles, datetime(2025, 1, 1))


class TestApplyExtendedSupportExclusion:
    """Test apply_extended_support_exclusion"""

    def test_subtracts_matching_instances(self):
        index = build_index([instance("5.7.44"), instance("8.0.35")])
        result = apply_extended_support_exclusion([make_rds_rec(count=3)], index, FIXED_NOW)
        assert result[0].count == 2

    def test_drops_when_all_in_extended_support(self):
        index = build_index([instance("5.7.44"), instance("5.7.43")])
        assert apply_extended_support_exclusion([make_rds_rec(count=2)], index, FIXED_NOW) == []

    def test_other_region_ignored(self):
        index = build_index([instance("5.7.44", region="eu-west-1")])
        result = apply_extended_support_exclusion([make_rds_rec(count=3)], index, FIXED_NOW)
        assert result[0].count == 3

    def test_other_engine_and_class_ignored(self):
        index = build_index([
            instance("11.22", engine="postgres"),
            instance("5.7.44", instance_class="db.r5.large"),
        ])
        result = apply_extended_support_exclusion([make_rds_rec(count=3)], index, FIXED_NOW)
        assert result[0].count == 3

    def test_non_database_untouched(self):
        index = build_index([instance("5.7.44", instance_class="cache.r6g.large")])
        recs = [make_cache_rec(count=3)]
        assert apply_extended_support_exclusion(recs, index, FIXED_NOW) == recs

    def test_index_counts(self):
        index = build_index([instance("5.7.44"), instance("8.0.35"), instance("11.1", engine="postgres")])
        assert len(index) == 3
        assert index.count_extended_support(make_rds_rec(count=3), FIXED_NOW) == 1

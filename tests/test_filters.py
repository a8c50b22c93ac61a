"""Tests for the filter stage"""

import pytest

from riplanner.core.config import PipelineConfig
from riplanner.core.models import Recommendation, ServiceType
from riplanner.pipeline.filters import (
    apply_filters,
    should_include,
    should_include_account,
    should_include_engine,
)

from conftest import make_cache_rec, make_ec2_rec, make_rds_rec, make_sp_rec


class TestShouldInclude:
    """Test per-recommendation inclusion"""

    def test_no_filters_includes_everything(self, pipeline_config):
        assert should_include(make_rds_rec(), pipeline_config)
        assert should_include(make_ec2_rec(), pipeline_config)

    def test_region_include_and_exclude(self):
        config = PipelineConfig(include_regions=["us-east-1"])
        assert should_include(make_rds_rec(region="us-east-1"), config)
        assert not should_include(make_rds_rec(region="eu-west-1"), config)

        config = PipelineConfig(exclude_regions=["us-east-1"])
        assert not should_include(make_rds_rec(region="us-east-1"), config)

    def test_instance_type_filters(self):
        config = PipelineConfig(exclude_instance_types=["db.t3.medium"])
        assert not should_include(make_rds_rec(resource_type="db.t3.medium"), config)
        assert should_include(make_rds_rec(resource_type="db.r6g.large"), config)

    def test_engine_filters_compare_normalized(self):
        config = PipelineConfig(include_engines=["Aurora PostgreSQL"])
        assert should_include(make_rds_rec(engine="aurora-postgresql"), config)
        assert not should_include(make_rds_rec(engine="mysql"), config)

        config = PipelineConfig(exclude_engines=["postgres"])
        assert not should_include(make_rds_rec(engine="postgresql"), config)

    def test_missing_engine_rejected_only_by_include_list(self):
        rec = make_ec2_rec()
        assert should_include_engine(rec, PipelineConfig(exclude_engines=["mysql"]))
        assert not should_include_engine(rec, PipelineConfig(include_engines=["mysql"]))

    def test_engine_from_description(self):
        rec = Recommendation(service=ServiceType.ELASTICACHE, region="us-east-1",
                             resource_type="cache.t4g.micro", count=3, description="Redis cache.t4g.micro 3x")
        assert should_include(rec, PipelineConfig(include_engines=["redis"]))
        assert not should_include(rec, PipelineConfig(exclude_engines=["redis"]))


class TestAccountFilter:
    """Test account name matching"""

    def test_exact_and_substring_case_insensitive(self):
        config = PipelineConfig(include_accounts=["Prod"])
        assert should_include_account("prod", config)
        assert should_include_account("payments-production", config)
        assert not should_include_account("staging", config)

    def test_exclude(self):
        config = PipelineConfig(exclude_accounts=["sandbox"])
        assert not should_include_account("team-Sandbox-1", config)
        assert should_include_account("prod", config)

    def test_empty_account_name(self):
        assert should_include_account("", PipelineConfig())
        assert not should_include_account("", PipelineConfig(exclude_accounts=["sandbox"]))
        assert not should_include_account("", PipelineConfig(include_accounts=["prod"]))


class TestApplyFilters:
    """Test apply_filters"""

    def test_preserves_order(self):
        config = PipelineConfig(exclude_regions=["eu-west-1"])
        recs = [
            make_rds_rec(count=1, region="us-east-1"),
            make_rds_rec(count=2, region="eu-west-1"),
            make_rds_rec(count=3, region="us-west-2"),
        ]
        assert [r.count for r in apply_filters(recs, config)] == [1, 3]

    def test_idempotent(self):
        config = PipelineConfig(include_engines=["mysql", "redis"], exclude_regions=["eu-west-1"])
        recs = [
            make_rds_rec(engine="mysql"),
            make_rds_rec(engine="postgres"),
            make_cache_rec(engine="redis", region="eu-west-1"),
            make_cache_rec(engine="redis"),
            make_ec2_rec(),
        ]
        once = apply_filters(recs, config)
        assert apply_filters(once, config) == once

    def test_current_region_keeps_savings_plans(self, pipeline_config):
        recs = [make_rds_rec(region="us-east-1"), make_rds_rec(region="eu-west-1"), make_sp_rec()]
        result = apply_filters(recs, pipeline_config, current_region="eu-west-1")
        assert [r.service for r in result] == [ServiceType.RDS, ServiceType.SAVINGS_PLANS]
        assert result[0].region == "eu-west-1"

    def test_does_not_mutate_input(self, pipeline_config):
        recs = [make_rds_rec(region="us-east-1")]
        apply_filters(recs, PipelineConfig(exclude_regions=["us-east-1"]))
        assert len(recs) == 1


class TestConfigConflicts:
    """Include/exclude conflicts are configuration errors"""

    @pytest.mark.parametrize("include,exclude,value", [
        ("include_regions", "exclude_regions", ["us-east-1"]),
        ("include_instance_types", "exclude_instance_types", ["db.t3.medium"]),
        ("include_engines", "exclude_engines", ["mysql"]),
        ("include_accounts", "exclude_accounts", ["prod"]),
    ])
    def test_conflict_rejected(self, include, exclude, value):
        with pytest.raises(ValueError):
            PipelineConfig(**{include: value, exclude: value})

    def test_engine_conflict_detected_after_normalization(self):
        with pytest.raises(ValueError):
            PipelineConfig(include_engines=["postgres"], exclude_engines=["PostgreSQL"])

    def test_account_conflict_case_insensitive(self):
        with pytest.raises(ValueError):
            PipelineConfig(include_accounts=["Prod"], exclude_accounts=["prod"])

"""Tests for the multi-service orchestrator"""

import pytest
from unittest.mock import MagicMock

from riplanner.core.config import Settings
from riplanner.core.exceptions import AWSError
from riplanner.core.models import ServiceType
from riplanner.orchestrator import CANCELLED_BY_USER, PlanOrchestrator

from conftest import FakeServiceClient, make_commitment, make_ec2_rec, make_rds_rec, make_sp_rec


class FakeSource:
    """Recommendation source keyed by service"""

    def __init__(self, by_service=None, errors=None):
        self.by_service = by_service or {}
        self.errors = errors or {}
        self.queries = []

    def get_recommendations(self, query):
        self.queries.append(query)
        if query.service in self.errors:
            raise self.errors[query.service]
        return list(self.by_service.get(query.service, []))


def make_settings(**sections):
    defaults = {
        "pipeline": {"coverage": 100},
        "aws": {"regions": ["us-east-1", "eu-west-1"], "services": ["rds"]},
    }
    defaults.update(sections)
    return Settings(**defaults)


def make_orchestrator(settings, source, clients=None, **kwargs):
    clients = clients if clients is not None else {}

    def factory(service, region):
        key = (service, region)
        if key not in clients:
            clients[key] = FakeServiceClient(service, region)
        return clients[key]

    return PlanOrchestrator(settings, source, factory, **kwargs), clients


class TestRun:
    """Test PlanOrchestrator.run"""

    def test_dry_run_per_region(self, fixed_clock):
        source = FakeSource({ServiceType.RDS: [
            make_rds_rec(count=4, region="us-east-1"),
            make_rds_rec(count=2, region="eu-west-1"),
            make_rds_rec(count=9, region="ap-south-1"),
        ]})
        orchestrator, clients = make_orchestrator(make_settings(), source, clock=fixed_clock)
        summary = orchestrator.run()

        assert summary.dry_run
        assert [(r.region, r.count) for r in summary.plan] == [("us-east-1", 4), ("eu-west-1", 2)]
        assert summary.successful == 2
        assert all(r.commitment_id.startswith("dryrun-") for r in summary.results)
        stats = summary.services[ServiceType.RDS]
        assert stats.regions_processed == ["us-east-1", "eu-west-1"]
        assert stats.recommendations_found == 3
        assert stats.instances == 6
        assert all(c.purchased == [] for c in clients.values())

    def test_each_region_reconciles_against_its_own_client(self, fixed_clock):
        clients = {
            (ServiceType.RDS, "us-east-1"): FakeServiceClient(commitments=[make_commitment(count=3)]),
            (ServiceType.RDS, "eu-west-1"): FakeServiceClient(region="eu-west-1"),
        }
        source = FakeSource({ServiceType.RDS: [
            make_rds_rec(count=4, region="us-east-1"),
            make_rds_rec(count=4, region="eu-west-1"),
        ]})
        orchestrator, _ = make_orchestrator(make_settings(), source, clients, clock=fixed_clock)
        summary = orchestrator.run()
        assert [r.count for r in summary.plan] == [1, 4]

    def test_source_error_skips_service(self, fixed_clock):
        source = FakeSource(
            {ServiceType.EC2: [make_ec2_rec(count=2)]},
            errors={ServiceType.RDS: AWSError("Cost Explorer unavailable")},
        )
        settings = make_settings(aws={"regions": ["us-east-1"], "services": ["rds", "ec2"]})
        orchestrator, _ = make_orchestrator(settings, source, clock=fixed_clock)
        summary = orchestrator.run()
        assert [r.service for r in summary.plan] == [ServiceType.EC2]
        assert summary.errors[0]["service"] == "rds"

    def test_region_discovery_fallbacks(self, fixed_clock):
        recs = [make_rds_rec(region="us-west-2"), make_rds_rec(region="eu-west-1"), make_rds_rec(region="eu-west-1")]
        settings = make_settings(aws={"services": ["rds"]})

        orchestrator, _ = make_orchestrator(settings, FakeSource(), region_provider=lambda: ["sa-east-1"])
        assert orchestrator.resolve_regions(ServiceType.RDS, recs) == ["sa-east-1"]

        failing = MagicMock(side_effect=AWSError("denied"))
        orchestrator, _ = make_orchestrator(settings, FakeSource(), region_provider=failing)
        assert orchestrator.resolve_regions(ServiceType.RDS, recs) == ["eu-west-1", "us-west-2"]

        orchestrator, _ = make_orchestrator(make_settings(), FakeSource())
        assert orchestrator.resolve_regions(ServiceType.RDS, recs) == ["us-east-1", "eu-west-1"]
        assert orchestrator.resolve_regions(ServiceType.SAVINGS_PLANS, recs) == ["us-east-1"]

    def test_savings_plans_processed_once(self, fixed_clock):
        source = FakeSource({ServiceType.SAVINGS_PLANS: [make_sp_rec(hourly_commitment=4.0)]})
        settings = make_settings(aws={"regions": ["us-east-1", "eu-west-1"], "services": ["savingsplans"]},
                                 pipeline={"coverage": 50})
        orchestrator, clients = make_orchestrator(settings, source, clock=fixed_clock)
        summary = orchestrator.run()
        assert len(summary.plan) == 1
        assert summary.plan[0].hourly_commitment == pytest.approx(2.0)
        assert list(clients) == [(ServiceType.SAVINGS_PLANS, "us-east-1")]

    def test_account_names_resolved(self, fixed_clock):
        source = FakeSource({ServiceType.RDS: [
            make_rds_rec(account="111", region="us-east-1"),
            make_rds_rec(account="222", region="us-east-1"),
        ]})
        settings = make_settings(pipeline={"coverage": 100, "exclude_accounts": ["sandbox"]})
        names = {"111": "production", "222": "sandbox-dev"}
        orchestrator, _ = make_orchestrator(settings, source, account_resolver=names.get, clock=fixed_clock)
        summary = orchestrator.run()
        assert [r.account_name for r in summary.plan] == ["production"]

    def test_regions_without_recommendations_skipped(self, fixed_clock):
        source = FakeSource({ServiceType.RDS: [make_rds_rec(count=2, region="us-east-1")]})
        settings = make_settings(aws={"services": ["rds"]})
        provider = lambda: ["ap-south-1", "eu-west-1", "sa-east-1", "us-east-1"]
        orchestrator, clients = make_orchestrator(settings, source, region_provider=provider, clock=fixed_clock)
        summary = orchestrator.run()

        assert list(clients) == [(ServiceType.RDS, "us-east-1")]
        assert summary.services[ServiceType.RDS].regions_processed == ["us-east-1"]
        assert summary.services[ServiceType.RDS].failed_regions == []
        assert summary.total_instances == 2

    def test_max_instances_shared_across_regions(self, fixed_clock):
        source = FakeSource({ServiceType.RDS: [
            make_rds_rec(count=4, region="us-east-1"),
            make_rds_rec(count=4, region="eu-west-1"),
        ]})
        settings = make_settings(pipeline={"coverage": 100, "max_instances": 6})
        orchestrator, _ = make_orchestrator(settings, source, clock=fixed_clock)
        summary = orchestrator.run()
        assert [r.count for r in summary.plan] == [4, 2]

    def test_max_instances_exhausted_skips_later_regions(self, fixed_clock):
        source = FakeSource({ServiceType.RDS: [
            make_rds_rec(count=4, region="us-east-1"),
            make_rds_rec(count=4, region="eu-west-1"),
        ]})
        settings = make_settings(pipeline={"coverage": 100, "max_instances": 4})
        orchestrator, clients = make_orchestrator(settings, source, clock=fixed_clock)
        summary = orchestrator.run()
        assert [r.count for r in summary.plan] == [4]
        assert (ServiceType.RDS, "eu-west-1") not in clients


class TestPurchase:
    """Test purchasing and confirmation"""

    def test_purchase_with_confirmation(self, fixed_clock):
        source = FakeSource({ServiceType.RDS: [
            make_rds_rec(count=4, region="us-east-1"),
            make_rds_rec(count=2, region="eu-west-1"),
        ]})
        confirm = MagicMock(return_value=True)
        settings = make_settings(purchase={"dry_run": False})
        orchestrator, clients = make_orchestrator(settings, source, confirm=confirm, clock=fixed_clock)
        summary = orchestrator.run()

        confirm.assert_called_once()
        assert summary.successful == 2
        assert clients[(ServiceType.RDS, "us-east-1")].purchased[0].count == 4
        assert clients[(ServiceType.RDS, "eu-west-1")].purchased[0].count == 2

    def test_declined_confirmation(self, fixed_clock):
        source = FakeSource({ServiceType.RDS: [
            make_rds_rec(count=4, region="us-east-1"),
            make_rds_rec(count=2, region="eu-west-1"),
        ]})
        confirm = MagicMock(return_value=False)
        settings = make_settings(purchase={"dry_run": False})
        orchestrator, clients = make_orchestrator(settings, source, confirm=confirm, clock=fixed_clock)
        summary = orchestrator.run()

        confirm.assert_called_once()
        assert summary.failed == 2
        assert all(r.error == CANCELLED_BY_USER for r in summary.results)
        assert all(c.purchased == [] for c in clients.values())

    def test_skip_confirmation(self, fixed_clock):
        source = FakeSource({ServiceType.RDS: [make_rds_rec(count=4, region="us-east-1")]})
        confirm = MagicMock()
        settings = make_settings(purchase={"dry_run": False, "skip_confirmation": True})
        orchestrator, _ = make_orchestrator(settings, source, confirm=confirm, clock=fixed_clock)
        assert orchestrator.run().successful == 1
        confirm.assert_not_called()

    def test_summary_to_dict(self, fixed_clock):
        source = FakeSource({ServiceType.RDS: [make_rds_rec(count=4, region="us-east-1", estimated_savings=40.0)]})
        orchestrator, _ = make_orchestrator(make_settings(), source, clock=fixed_clock)
        data = orchestrator.run().to_dict()
        assert data["plan_size"] == 1
        assert data["total_instances"] == 4
        assert data["total_savings"] == 40.0
        assert data["services"][0]["service"] == "rds"


class TestRunFromRecommendations:
    """Test PlanOrchestrator.run_from_recommendations"""

    def test_coverage_defaults_to_full(self, fixed_clock):
        settings = make_settings(pipeline={})
        assert settings.pipeline.coverage == 80
        orchestrator, _ = make_orchestrator(settings, FakeSource(), clock=fixed_clock)
        summary = orchestrator.run_from_recommendations([make_rds_rec(count=10)])
        assert summary.plan[0].count == 10

    def test_explicit_coverage_applies(self, fixed_clock):
        settings = make_settings(pipeline={"coverage": 50})
        orchestrator, _ = make_orchestrator(settings, FakeSource(), clock=fixed_clock)
        summary = orchestrator.run_from_recommendations([make_rds_rec(count=10)], coverage_explicit=True)
        assert summary.plan[0].count == 5

    def test_account_names_resolved_for_file_input(self, fixed_clock):
        settings = make_settings(pipeline={"include_accounts": ["prod"]})
        resolver = MagicMock(return_value="prod-main")
        orchestrator, _ = make_orchestrator(settings, FakeSource(), account_resolver=resolver, clock=fixed_clock)
        rec = make_rds_rec(count=4, account="111111111111", account_name="")

        summary = orchestrator.run_from_recommendations([rec])

        assert summary.total_instances == 4
        assert summary.plan[0].account_name == "prod-main"
        resolver.assert_called_once_with("111111111111")

    def test_grouped_by_service_and_region(self, fixed_clock):
        orchestrator, clients = make_orchestrator(make_settings(), FakeSource(), clock=fixed_clock)
        recs = [
            make_rds_rec(count=1, region="us-east-1"),
            make_ec2_rec(count=2, region="us-east-1"),
            make_rds_rec(count=3, region="eu-west-1"),
            make_rds_rec(count=4, region="us-east-1"),
            make_sp_rec(),
        ]
        summary = orchestrator.run_from_recommendations(recs)
        assert list(clients) == [
            (ServiceType.RDS, "us-east-1"),
            (ServiceType.EC2, "us-east-1"),
            (ServiceType.RDS, "eu-west-1"),
            (ServiceType.SAVINGS_PLANS, "us-east-1"),
        ]
        assert summary.services[ServiceType.RDS].instances == 8
        assert summary.plan_size == 5

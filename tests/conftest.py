"""Pytest configuration and fixtures"""

import pytest
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import List
from unittest.mock import MagicMock
import yaml

from riplanner.core.base import ServiceClient
from riplanner.core.config import PipelineConfig, Settings
from riplanner.core.models import (
    CacheDetails,
    Commitment,
    CommitmentState,
    ComputeDetails,
    DatabaseDetails,
    PurchaseResult,
    Recommendation,
    SavingsPlanDetails,
    ServiceType,
)

FIXED_NOW = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def make_rds_rec(count=10, region="us-east-1", resource_type="db.t3.medium", engine="mysql",
                 account="111111111111", account_name="", estimated_savings=100.0, **kwargs) -> Recommendation:
    return Recommendation(
        service=ServiceType.RDS,
        region=region,
        resource_type=resource_type,
        count=count,
        account=account,
        account_name=account_name,
        estimated_savings=estimated_savings,
        details=DatabaseDetails(engine=engine),
        **kwargs
    )


def make_ec2_rec(count=4, region="us-east-1", resource_type="m5.large", **kwargs) -> Recommendation:
    return Recommendation(
        service=ServiceType.EC2,
        region=region,
        resource_type=resource_type,
        count=count,
        details=ComputeDetails(),
        **kwargs
    )


def make_cache_rec(count=3, region="us-east-1", resource_type="cache.r6g.large", engine="redis",
                   **kwargs) -> Recommendation:
    return Recommendation(
        service=ServiceType.ELASTICACHE,
        region=region,
        resource_type=resource_type,
        count=count,
        details=CacheDetails(engine=engine),
        **kwargs
    )


def make_sp_rec(hourly_commitment=10.0, plan_type="Compute", estimated_savings=200.0, **kwargs) -> Recommendation:
    return Recommendation(
        service=ServiceType.SAVINGS_PLANS,
        region="",
        resource_type=plan_type,
        count=1,
        estimated_savings=estimated_savings,
        details=SavingsPlanDetails(plan_type=plan_type, hourly_commitment=hourly_commitment),
        **kwargs
    )


def make_commitment(count=8, hours_ago=1, resource_type="db.t3.medium", region="us-east-1",
                    engine="mysql", state=CommitmentState.ACTIVE,
                    service=ServiceType.RDS) -> Commitment:
    return Commitment(
        service=service,
        region=region,
        resource_type=resource_type,
        count=count,
        state=state,
        start_date=FIXED_NOW - timedelta(hours=hours_ago),
        engine=engine,
    )


class FakeServiceClient(ServiceClient):
    """In-memory purchase client"""

    def __init__(self, service=ServiceType.RDS, region="us-east-1",
                 commitments: List[Commitment] = None, error: Exception = None):
        super().__init__(service, region)
        self.commitments = commitments or []
        self.error = error
        self.purchased: List[Recommendation] = []

    def get_existing_commitments(self) -> List[Commitment]:
        if self.error:
            raise self.error
        return list(self.commitments)

    def purchase(self, rec: Recommendation) -> PurchaseResult:
        self.purchased.append(rec)
        return PurchaseResult(recommendation=rec, success=True,
                              commitment_id=f"ri-{len(self.purchased)}", cost=rec.upfront_cost)


@pytest.fixture
def fixed_clock():
    """Clock pinned to FIXED_NOW"""
    return lambda: FIXED_NOW


@pytest.fixture
def pipeline_config():
    return PipelineConfig()


@pytest.fixture
def test_settings():
    """Settings for a single region dry run"""
    return Settings(
        pipeline={"coverage": 100},
        aws={"regions": ["us-east-1"], "services": ["rds"]},
        logging={"level": "DEBUG", "console": False},
    )


@pytest.fixture
def temp_config_file(tmp_path):
    """Create temporary config file"""
    path = tmp_path / "config.yaml"
    config = {
        "pipeline": {"coverage": 50, "max_instances": 20},
        "purchase": {"term": "1yr", "payment_option": "all-upfront"},
        "aws": {"regions": ["us-east-1", "eu-west-1"], "services": ["rds", "ec2"]},
    }
    path.write_text(yaml.dump(config))
    return path


@pytest.fixture
def mock_session():
    """AWSSession stand-in handing out one MagicMock boto3 client per service"""
    session = MagicMock()
    clients = {}

    def get_client(service, region=None):
        if service not in clients:
            clients[service] = MagicMock(name=f"{service}-client")
        return clients[service]

    session.get_client.side_effect = get_client
    session.clients = clients
    return session


@pytest.fixture
def no_sleep_limiter():
    from riplanner.providers.aws import RateLimiter
    return RateLimiter(sleep=lambda delay: None)


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset singleton instances between tests"""
    import riplanner.core.config as config_module
    config_module.settings = None
    yield
    config_module.settings = None


@pytest.fixture
def csv_path(tmp_path) -> Path:
    return tmp_path / "recommendations.csv"


def pytest_configure(config):
    """Configure pytest"""
    config.addinivalue_line(
        "markers", "unit: mark test as unit test"
    )
    config.addinivalue_line(
        "markers", "aws: mark test as AWS-specific"
    )

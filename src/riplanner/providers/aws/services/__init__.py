from typing import Optional

from ....core.models import ServiceType
from ..client import AWSSession
from ..ratelimit import RateLimiter
from .base import AWSServiceClient
from .ec2 import EC2Client
from .elasticache import ElastiCacheClient
from .memorydb import MemoryDBClient
from .opensearch import OpenSearchClient
from .rds import RDSClient
from .redshift import RedshiftClient
from .savingsplans import SavingsPlansClient

SERVICE_CLIENTS = {
    ServiceType.EC2: EC2Client,
    ServiceType.RDS: RDSClient,
    ServiceType.ELASTICACHE: ElastiCacheClient,
    ServiceType.MEMORYDB: MemoryDBClient,
    ServiceType.OPENSEARCH: OpenSearchClient,
    ServiceType.REDSHIFT: RedshiftClient,
    ServiceType.SAVINGS_PLANS: SavingsPlansClient,
}


def create_service_client(service: ServiceType, session: AWSSession, region: str,
                          rate_limiter: Optional[RateLimiter] = None) -> AWSServiceClient:
    """Region-scoped purchase client for a service"""
    return SERVICE_CLIENTS[service](session, region, rate_limiter)


__all__ = [
    'AWSServiceClient', 'EC2Client', 'ElastiCacheClient', 'MemoryDBClient',
    'OpenSearchClient', 'RDSClient', 'RedshiftClient', 'SavingsPlansClient',
    'SERVICE_CLIENTS', 'create_service_client',
]

from typing import List

from ....core.exceptions import PurchaseError
from ....core.models import CacheDetails, Commitment, PurchaseResult, Recommendation, ServiceType
from .base import AWSServiceClient


class ElastiCacheClient(AWSServiceClient):
    """Reserved cache nodes"""

    boto_service = "elasticache"

    def __init__(self, session, region, rate_limiter=None):
        super().__init__(ServiceType.ELASTICACHE, session, region, rate_limiter)

    def list_commitments(self) -> List[Commitment]:
        commitments = []
        for node in self.paginate('describe_reserved_cache_nodes', 'ReservedCacheNodes'):
            commitments.append(Commitment(
                service=self.service,
                region=self.region,
                resource_type=node.get('CacheNodeType', ''),
                count=node.get('CacheNodeCount', 0),
                state=self.parse_state(node.get('State')),
                start_date=node['StartTime'],
                commitment_id=node.get('ReservedCacheNodeId', ''),
                engine=node.get('ProductDescription', ''),
            ))
        return commitments

    def find_offering(self, rec: Recommendation) -> str:
        if not isinstance(rec.details, CacheDetails):
            raise PurchaseError("invalid service details for ElastiCache")

        response = self.call(
            'describe_reserved_cache_nodes_offerings',
            CacheNodeType=rec.resource_type,
            ProductDescription=rec.engine,
            Duration=str(rec.term.seconds),
            OfferingType=rec.payment_option.label,
        )
        offerings = response.get('ReservedCacheNodesOfferings', [])
        if not offerings:
            raise PurchaseError(f"no offerings found for {rec.resource_type} {rec.engine} {rec.term.value}")
        return offerings[0]['ReservedCacheNodesOfferingId']

    def buy(self, rec: Recommendation, offering_id: str, reservation_id: str) -> PurchaseResult:
        response = self.call(
            'purchase_reserved_cache_nodes_offering',
            ReservedCacheNodesOfferingId=offering_id,
            ReservedCacheNodeId=reservation_id,
            CacheNodeCount=rec.count,
            Tags=self.purchase_tags(rec),
        )
        node = response.get('ReservedCacheNode')
        if not node:
            return PurchaseResult(recommendation=rec, success=False, error="Purchase response was empty")
        return PurchaseResult(
            recommendation=rec,
            success=True,
            commitment_id=node.get('ReservedCacheNodeId', reservation_id),
            cost=node.get('FixedPrice', 0.0),
        )

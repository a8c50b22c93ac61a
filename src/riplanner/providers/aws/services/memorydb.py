from typing import List

from ....core.exceptions import PurchaseError
from ....core.models import Commitment, PurchaseResult, Recommendation, ServiceType
from .base import AWSServiceClient


class MemoryDBClient(AWSServiceClient):
    """Reserved MemoryDB nodes"""

    boto_service = "memorydb"

    def __init__(self, session, region, rate_limiter=None):
        super().__init__(ServiceType.MEMORYDB, session, region, rate_limiter)

    def list_commitments(self) -> List[Commitment]:
        commitments = []
        request = {}
        while True:
            response = self.call('describe_reserved_nodes', **request)
            for node in response.get('ReservedNodes', []):
                commitments.append(Commitment(
                    service=self.service,
                    region=self.region,
                    resource_type=node.get('NodeType', ''),
                    count=node.get('NodeCount', 0),
                    state=self.parse_state(node.get('State')),
                    start_date=node['StartTime'],
                    commitment_id=node.get('ReservationId', ''),
                    engine="redis",
                ))
            token = response.get('NextToken')
            if not token:
                break
            request['NextToken'] = token
        return commitments

    def find_offering(self, rec: Recommendation) -> str:
        response = self.call(
            'describe_reserved_nodes_offerings',
            NodeType=rec.resource_type,
            Duration=str(rec.term.seconds),
            OfferingType=rec.payment_option.label,
        )
        offerings = response.get('ReservedNodesOfferings', [])
        if not offerings:
            raise PurchaseError(f"no offerings found for {rec.resource_type} {rec.term.value}")
        return offerings[0]['ReservedNodesOfferingId']

    def buy(self, rec: Recommendation, offering_id: str, reservation_id: str) -> PurchaseResult:
        response = self.call(
            'purchase_reserved_nodes_offering',
            ReservedNodesOfferingId=offering_id,
            ReservationId=reservation_id,
            NodeCount=rec.count,
            Tags=self.purchase_tags(rec),
        )
        node = response.get('ReservedNode')
        if not node:
            return PurchaseResult(recommendation=rec, success=False, error="Purchase response was empty")
        return PurchaseResult(
            recommendation=rec,
            success=True,
            commitment_id=node.get('ReservationId', reservation_id),
            cost=node.get('FixedPrice', 0.0),
        )

from typing import List

from ....core.exceptions import PurchaseError
from ....core.models import Commitment, PurchaseResult, Recommendation, ServiceType
from .base import AWSServiceClient


class RedshiftClient(AWSServiceClient):
    """Reserved Redshift nodes"""

    boto_service = "redshift"

    def __init__(self, session, region, rate_limiter=None):
        super().__init__(ServiceType.REDSHIFT, session, region, rate_limiter)

    def list_commitments(self) -> List[Commitment]:
        commitments = []
        for node in self.paginate('describe_reserved_nodes', 'ReservedNodes'):
            commitments.append(Commitment(
                service=self.service,
                region=self.region,
                resource_type=node.get('NodeType', ''),
                count=node.get('NodeCount', 0),
                state=self.parse_state(node.get('State')),
                start_date=node['StartTime'],
                commitment_id=node.get('ReservedNodeId', ''),
            ))
        return commitments

    def find_offering(self, rec: Recommendation) -> str:
        for offering in self.paginate('describe_reserved_node_offerings', 'ReservedNodeOfferings'):
            if (offering.get('NodeType') == rec.resource_type
                    and offering.get('Duration') == rec.term.seconds
                    and offering.get('OfferingType') == rec.payment_option.label):
                return offering['ReservedNodeOfferingId']
        raise PurchaseError(f"no offerings found for {rec.resource_type} {rec.term.value} {rec.payment_option.value}")

    def buy(self, rec: Recommendation, offering_id: str, reservation_id: str) -> PurchaseResult:
        response = self.call(
            'purchase_reserved_node_offering',
            ReservedNodeOfferingId=offering_id,
            NodeCount=rec.count,
        )
        node = response.get('ReservedNode')
        if not node:
            return PurchaseResult(recommendation=rec, success=False, error="Purchase response was empty")
        return PurchaseResult(
            recommendation=rec,
            success=True,
            commitment_id=node.get('ReservedNodeId', ''),
            cost=node.get('FixedPrice', 0.0),
        )

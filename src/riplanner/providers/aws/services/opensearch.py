from typing import List

from ....core.exceptions import PurchaseError
from ....core.models import Commitment, PurchaseResult, Recommendation, ServiceType
from .base import AWSServiceClient


def search_instance_type(resource_type: str) -> str:
    """Cost Explorer drops the '.search' suffix the OpenSearch API uses"""
    if resource_type.endswith(".search"):
        return resource_type
    return f"{resource_type}.search"


class OpenSearchClient(AWSServiceClient):
    """Reserved OpenSearch instances"""

    boto_service = "opensearch"

    def __init__(self, session, region, rate_limiter=None):
        super().__init__(ServiceType.OPENSEARCH, session, region, rate_limiter)

    def list_commitments(self) -> List[Commitment]:
        commitments = []
        for ri in self.paginate('describe_reserved_instances', 'ReservedInstances'):
            commitments.append(Commitment(
                service=self.service,
                region=self.region,
                resource_type=ri.get('InstanceType', '').replace('.search', ''),
                count=ri.get('InstanceCount', 0),
                state=self.parse_state(ri.get('State')),
                start_date=ri['StartTime'],
                commitment_id=ri.get('ReservedInstanceId', ''),
            ))
        return commitments

    def find_offering(self, rec: Recommendation) -> str:
        instance_type = search_instance_type(rec.resource_type)
        payment = rec.payment_option.value.replace("-", "_").upper()
        for offering in self.paginate('describe_reserved_instance_offerings', 'ReservedInstanceOfferings'):
            if (offering.get('InstanceType') == instance_type
                    and offering.get('Duration') == rec.term.seconds
                    and offering.get('PaymentOption') == payment):
                return offering['ReservedInstanceOfferingId']
        raise PurchaseError(f"no offerings found for {instance_type} {rec.term.value} {rec.payment_option.value}")

    def buy(self, rec: Recommendation, offering_id: str, reservation_id: str) -> PurchaseResult:
        response = self.call(
            'purchase_reserved_instance_offering',
            ReservedInstanceOfferingId=offering_id,
            ReservationName=reservation_id[:64],
            InstanceCount=rec.count,
        )
        ri_id = response.get('ReservedInstanceId')
        if not ri_id:
            return PurchaseResult(recommendation=rec, success=False, error="Purchase response was empty")
        return PurchaseResult(recommendation=rec, success=True, commitment_id=ri_id, cost=rec.upfront_cost)

from typing import List

from ....core.exceptions import PurchaseError
from ....core.models import Commitment, ComputeDetails, PurchaseResult, Recommendation, ServiceType
from .base import AWSServiceClient

# Cost Explorer reports "Shared", the offerings API wants "default"
TENANCY = {"shared": "default", "default": "default", "dedicated": "dedicated", "host": "host"}


class EC2Client(AWSServiceClient):
    """Standard Reserved Instances"""

    boto_service = "ec2"

    def __init__(self, session, region, rate_limiter=None):
        super().__init__(ServiceType.EC2, session, region, rate_limiter)

    def list_commitments(self) -> List[Commitment]:
        response = self.call(
            'describe_reserved_instances',
            Filters=[{'Name': 'state', 'Values': ['active', 'payment-pending']}],
        )
        return [
            Commitment(
                service=self.service,
                region=self.region,
                resource_type=ri.get('InstanceType', ''),
                count=ri.get('InstanceCount', 0),
                state=self.parse_state(ri.get('State')),
                start_date=ri['Start'],
                end_date=ri.get('End'),
                commitment_id=ri.get('ReservedInstancesId', ''),
            )
            for ri in response.get('ReservedInstances', [])
        ]

    def find_offering(self, rec: Recommendation) -> str:
        details = rec.details if isinstance(rec.details, ComputeDetails) else ComputeDetails()
        response = self.call(
            'describe_reserved_instances_offerings',
            InstanceType=rec.resource_type,
            ProductDescription=details.platform,
            InstanceTenancy=TENANCY.get(details.tenancy.lower(), "default"),
            OfferingClass='standard',
            OfferingType=rec.payment_option.label,
            MinDuration=rec.term.seconds,
            MaxDuration=rec.term.seconds,
            IncludeMarketplace=False,
        )
        offerings = response.get('ReservedInstancesOfferings', [])
        if not offerings:
            raise PurchaseError(f"no offerings found for {rec.resource_type} {details.describe()} {rec.term.value}")
        return offerings[0]['ReservedInstancesOfferingId']

    def buy(self, rec: Recommendation, offering_id: str, reservation_id: str) -> PurchaseResult:
        response = self.call(
            'purchase_reserved_instances_offering',
            ReservedInstancesOfferingId=offering_id,
            InstanceCount=rec.count,
        )
        ri_id = response.get('ReservedInstancesId')
        if not ri_id:
            return PurchaseResult(recommendation=rec, success=False, error="Purchase response was empty")
        return PurchaseResult(recommendation=rec, success=True, commitment_id=ri_id, cost=rec.upfront_cost)

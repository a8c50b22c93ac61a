from typing import List

from ....core.exceptions import PurchaseError
from ....core.models import Commitment, DatabaseDetails, PurchaseResult, Recommendation, ServiceType
from .base import AWSServiceClient

# Canonical engine -> ProductDescription accepted by the offerings API
OFFERING_ENGINES = {
    "aurora-mysql": "aurora-mysql",
    "aurora-postgresql": "aurora-postgresql",
    "mysql": "mysql",
    "postgresql": "postgresql",
    "mariadb": "mariadb",
    "oracle": "oracle-se2",
    "sqlserver": "sqlserver-se",
}


class RDSClient(AWSServiceClient):
    """Reserved DB instances"""

    boto_service = "rds"

    def __init__(self, session, region, rate_limiter=None):
        super().__init__(ServiceType.RDS, session, region, rate_limiter)

    def list_commitments(self) -> List[Commitment]:
        commitments = []
        for ri in self.paginate('describe_reserved_db_instances', 'ReservedDBInstances'):
            commitments.append(Commitment(
                service=self.service,
                region=self.region,
                resource_type=ri.get('DBInstanceClass', ''),
                count=ri.get('DBInstanceCount', 0),
                state=self.parse_state(ri.get('State')),
                start_date=ri['StartTime'],
                commitment_id=ri.get('ReservedDBInstanceId', ''),
                engine=ri.get('ProductDescription', ''),
            ))
        return commitments

    def find_offering(self, rec: Recommendation) -> str:
        if not isinstance(rec.details, DatabaseDetails):
            raise PurchaseError("invalid service details for RDS")

        engine = OFFERING_ENGINES.get(rec.engine, rec.engine)
        response = self.call(
            'describe_reserved_db_instances_offerings',
            DBInstanceClass=rec.resource_type,
            ProductDescription=engine,
            MultiAZ=rec.details.multi_az,
            Duration=str(rec.term.seconds),
            OfferingType=rec.payment_option.label,
            MaxRecords=100,
        )
        offerings = response.get('ReservedDBInstancesOfferings', [])
        if not offerings:
            raise PurchaseError(
                f"no offerings found for {rec.resource_type} {engine} {rec.details.describe()} {rec.term.value}"
            )
        return offerings[0]['ReservedDBInstancesOfferingId']

    def buy(self, rec: Recommendation, offering_id: str, reservation_id: str) -> PurchaseResult:
        response = self.call(
            'purchase_reserved_db_instances_offering',
            ReservedDBInstancesOfferingId=offering_id,
            ReservedDBInstanceId=reservation_id,
            DBInstanceCount=rec.count,
            Tags=self.purchase_tags(rec),
        )
        ri = response.get('ReservedDBInstance')
        if not ri:
            return PurchaseResult(recommendation=rec, success=False, error="Purchase response was empty")
        return PurchaseResult(
            recommendation=rec,
            success=True,
            commitment_id=ri.get('ReservedDBInstanceId', reservation_id),
            cost=ri.get('FixedPrice', 0.0),
        )

import uuid
from datetime import datetime
from typing import Any, List

from ....core.exceptions import PurchaseError
from ....core.models import Commitment, PurchaseResult, Recommendation, SavingsPlanDetails, ServiceType
from ..client import GLOBAL_REGION
from .base import AWSServiceClient


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


class SavingsPlansClient(AWSServiceClient):
    """Account-level Savings Plans"""

    boto_service = "savingsplans"

    def __init__(self, session, region=GLOBAL_REGION, rate_limiter=None):
        super().__init__(ServiceType.SAVINGS_PLANS, session, GLOBAL_REGION, rate_limiter)

    def list_commitments(self) -> List[Commitment]:
        commitments = []
        request = {'states': ['active', 'payment-pending', 'queued']}
        while True:
            response = self.call('describe_savings_plans', **request)
            for plan in response.get('savingsPlans', []):
                commitments.append(Commitment(
                    service=self.service,
                    region="",
                    resource_type=plan.get('savingsPlanType', ''),
                    count=1,
                    state=self.parse_state(plan.get('state')),
                    start_date=_parse_timestamp(plan['start']),
                    end_date=_parse_timestamp(plan['end']) if plan.get('end') else None,
                    commitment_id=plan.get('savingsPlanId', ''),
                ))
            token = response.get('nextToken')
            if not token:
                break
            request['nextToken'] = token
        return commitments

    def find_offering(self, rec: Recommendation) -> str:
        if not isinstance(rec.details, SavingsPlanDetails):
            raise PurchaseError("invalid service details for Savings Plans")

        response = self.call(
            'describe_savings_plans_offerings',
            planTypes=[rec.details.plan_type],
            durations=[rec.term.seconds],
            paymentOptions=[rec.payment_option.label],
            currencies=['USD'],
        )
        offerings = response.get('searchResults', [])
        if not offerings:
            raise PurchaseError(f"no offerings found for {rec.details.plan_type} {rec.term.value} {rec.payment_option.value}")
        return offerings[0]['offeringId']

    def buy(self, rec: Recommendation, offering_id: str, reservation_id: str) -> PurchaseResult:
        request = {
            'savingsPlanOfferingId': offering_id,
            'commitment': f"{rec.hourly_commitment:.3f}",
            'clientToken': str(uuid.uuid4()),
            'tags': {tag['Key']: tag['Value'] for tag in self.purchase_tags(rec) if tag['Value']},
        }
        if rec.upfront_cost > 0:
            request['upfrontPaymentAmount'] = f"{rec.upfront_cost:.2f}"

        response = self.call('create_savings_plan', **request)
        plan_id = response.get('savingsPlanId')
        if not plan_id:
            return PurchaseResult(recommendation=rec, success=False, error="Purchase response was empty")
        return PurchaseResult(recommendation=rec, success=True, commitment_id=plan_id, cost=rec.upfront_cost)

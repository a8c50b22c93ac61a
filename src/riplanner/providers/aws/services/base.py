import logging
import re
from abc import abstractmethod
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from ....core.base import ServiceClient
from ....core.exceptions import DataCollectionError, PurchaseError
from ....core.models import (
    Commitment,
    CommitmentState,
    PurchaseResult,
    Recommendation,
    ServiceType,
    utc_now,
)
from ..client import AWSSession
from ..ratelimit import RateLimiter

TOOL_TAG = "reservation-planner"


def _sanitize(value: str) -> str:
    return re.sub(r"[^a-z0-9-]+", "-", value.lower()).strip("-")


class AWSServiceClient(ServiceClient):
    """
    Shared plumbing of the per-service reservation clients.

    Subclasses find an offering matching the recommendation and buy it; this
    class turns every failure into an unsuccessful PurchaseResult.
    """

    boto_service: str = ""

    def __init__(self, service: ServiceType, session: AWSSession, region: str,
                 rate_limiter: Optional[RateLimiter] = None):
        super().__init__(service, region)
        self.session = session
        self.rate_limiter = rate_limiter or RateLimiter()
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    def client(self):
        return self.session.get_client(self.boto_service, region=self.region)

    def call(self, operation: str, **kwargs) -> Dict[str, Any]:
        return self.rate_limiter.call(getattr(self.client, operation), **kwargs)

    def paginate(self, operation: str, result_key: str, **kwargs) -> Iterator[Dict[str, Any]]:
        """Drain a boto3 paginator"""
        paginator = self.client.get_paginator(operation)
        for page in paginator.paginate(**kwargs):
            for item in page.get(result_key, []):
                yield item

    def get_existing_commitments(self) -> List[Commitment]:
        try:
            commitments = [c for c in self.list_commitments() if c.count > 0]
        except (ClientError, BotoCoreError) as e:
            raise DataCollectionError(f"Failed to list existing {self.service.display_name} reservations: {e}") from e
        self.logger.debug(f"Found {len(commitments)} existing {self.service.display_name} reservations in {self.region}")
        return commitments

    @abstractmethod
    def list_commitments(self) -> List[Commitment]:
        """Every reservation in scope, any state"""
        pass

    @abstractmethod
    def find_offering(self, rec: Recommendation) -> str:
        """Offering id matching the recommendation. Raises PurchaseError when none exists"""
        pass

    @abstractmethod
    def buy(self, rec: Recommendation, offering_id: str, reservation_id: str) -> PurchaseResult:
        pass

    def purchase(self, rec: Recommendation) -> PurchaseResult:
        if rec.service is not self.service:
            return PurchaseResult(recommendation=rec, success=False,
                                  error=f"Invalid service type for {self.service.display_name} purchase")

        try:
            offering_id = self.find_offering(rec)
            reservation_id = self.reservation_id(rec)
            self.logger.info(
                f"Purchasing {rec.count}x {rec.resource_type} (offering {offering_id}, reservation {reservation_id})",
                extra={'service': self.service.value, 'region': self.region}
            )
            return self.buy(rec, offering_id, reservation_id)
        except (ClientError, BotoCoreError, PurchaseError) as e:
            self.logger.error(f"Failed to purchase {rec.label()}: {e}")
            return PurchaseResult(recommendation=rec, success=False, error=str(e))

    def reservation_id(self, rec: Recommendation, now: Optional[datetime] = None) -> str:
        """Descriptive id: service, account alias, engine, type, region, count and timestamp"""
        now = now or utc_now()
        parts = [self.service.value]
        if rec.account_name and rec.account_name != "unknown":
            parts.append(_sanitize(rec.account_name)[:15])
        if rec.engine:
            parts.append(_sanitize(rec.engine))
        parts.extend([
            rec.resource_type.replace(".", "-"),
            rec.region,
            f"{rec.count}x",
            now.strftime("%Y%m%d-%H%M%S"),
        ])
        return "-".join(p for p in parts if p)

    def purchase_tags(self, rec: Recommendation) -> List[Dict[str, str]]:
        tags = {
            "Purpose": "Reserved Instance Purchase",
            "ResourceType": rec.resource_type,
            "Region": rec.region,
            "PurchaseDate": utc_now().strftime("%Y-%m-%d"),
            "Tool": TOOL_TAG,
            "PaymentOption": rec.payment_option.value,
            "Term": f"{rec.term.months}-months",
        }
        if rec.engine:
            tags["Engine"] = rec.engine
        return [{"Key": k, "Value": v} for k, v in tags.items()]

    @staticmethod
    def parse_state(value: Optional[str]) -> CommitmentState:
        # Redshift spells it "pending-payment"
        if value and value.lower() == "pending-payment":
            return CommitmentState.PAYMENT_PENDING
        return CommitmentState.parse(value)

import logging
import threading
import uuid
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from ..exceptions import PurchaseError
from ..logging import get_audit_logger
from ..models import PurchaseResult, Recommendation
from .sources import ServiceClient

logger = logging.getLogger(__name__)


@dataclass
class ExecutionSummary:
    """Outcome of executing one purchase plan"""
    results: List[PurchaseResult] = field(default_factory=list)

    @property
    def successful(self) -> List[PurchaseResult]:
        return [r for r in self.results if r.success]

    @property
    def failed(self) -> List[PurchaseResult]:
        return [r for r in self.results if not r.success]

    @property
    def total_cost(self) -> float:
        return sum(r.cost for r in self.successful)


class PurchaseExecutor:
    """
    Executes a final plan item by item.

    Each purchase stands alone: a failure is recorded and the next item is
    attempted. There is no retry and no rollback of earlier purchases.
    """

    def __init__(self, client: ServiceClient, dry_run: bool = True,
                 cancel_event: Optional[threading.Event] = None,
                 on_result: Optional[Callable[[PurchaseResult], None]] = None):
        self.client = client
        self.dry_run = dry_run
        self.cancel_event = cancel_event or threading.Event()
        self.on_result = on_result

    def execute_plan(self, recommendations: List[Recommendation]) -> ExecutionSummary:
        summary = ExecutionSummary()

        for rec in recommendations:
            if self.cancel_event.is_set():
                logger.warning(f"Purchase cancelled, {len(recommendations) - len(summary.results)} item(s) not attempted")
                break

            result = self._execute_one(rec)
            summary.results.append(result)
            self._audit(result)
            if self.on_result:
                self.on_result(result)

        return summary

    def _execute_one(self, rec: Recommendation) -> PurchaseResult:
        if not rec.is_purchasable:
            return PurchaseResult(recommendation=rec, success=False, error="nothing to purchase",
                                  dry_run=self.dry_run)

        if self.dry_run:
            return PurchaseResult(
                recommendation=rec,
                success=True,
                commitment_id=f"dryrun-{rec.service.value}-{uuid.uuid4().hex[:12]}",
                cost=rec.upfront_cost,
                dry_run=True,
            )

        try:
            return self.client.purchase(rec)
        except PurchaseError as e:
            logger.error(f"Purchase failed for {rec.label()}: {e}")
            return PurchaseResult(recommendation=rec, success=False, error=str(e))

    def _audit(self, result: PurchaseResult) -> None:
        rec = result.recommendation
        outcome = "success" if result.success else f"failed: {result.error}"
        get_audit_logger().log_purchase(
            service=rec.service.value,
            region=rec.region,
            resource_type=rec.resource_type,
            count=rec.count,
            result=outcome,
            commitment_id=result.commitment_id,
            details={"dry_run": result.dry_run},
        )

"""
Reconciliation of recommendations against recently purchased commitments.

Only commitments bought within the lookback window count as duplicates.
Older commitments are steady-state capacity, often in another account, and
must not suppress new recommendations that happen to share a resource type.
"""

import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from ..core.base import CommitmentSource
from ..core.models import RECONCILABLE_STATES, Commitment, Recommendation, as_utc, utc_now

logger = logging.getLogger(__name__)

STAGE = "duplicates"


def reconciliation_key(resource_type: str, region: str, engine: str) -> str:
    return f"{resource_type}|{region}|{engine}"


class DuplicateChecker:
    """
    Subtracts recent commitments from matching recommendations.

    Each call to ``adjust`` builds its own counter, so one checker can serve
    concurrent (service, region) pipelines.
    """

    def __init__(self, lookback_hours: int = 24, clock: Optional[Callable[[], datetime]] = None):
        self.lookback_hours = lookback_hours
        self.clock = clock or utc_now

    def recent_commitments(self, commitments: List[Commitment]) -> List[Commitment]:
        """Active or payment-pending commitments that started after the cutoff"""
        cutoff = as_utc(self.clock()) - timedelta(hours=self.lookback_hours)
        return [
            c for c in commitments
            if c.state in RECONCILABLE_STATES and as_utc(c.start_date) > cutoff
        ]

    def build_counter(self, commitments: List[Commitment]) -> Dict[str, int]:
        counter: Dict[str, int] = defaultdict(int)
        for c in self.recent_commitments(commitments):
            key = reconciliation_key(c.resource_type, c.region, c.normalized_engine)
            counter[key] += c.count
            logger.debug(f"Recent commitment {key} count={c.count} started {c.start_date.isoformat()}",
                         extra={'stage': STAGE, 'key': key})
        return counter

    def reconcile(self, recommendations: List[Recommendation],
                  commitments: List[Commitment]) -> List[Recommendation]:
        """Reconcile against an already fetched commitment snapshot"""
        counter = self.build_counter(commitments)
        if not counter:
            return list(recommendations)

        result = []
        for rec in recommendations:
            key = reconciliation_key(rec.resource_type, rec.region, rec.engine)
            existing = counter.get(key, 0)

            if existing <= 0:
                result.append(rec)
                continue

            if existing >= rec.count:
                counter[key] = existing - rec.count
                logger.info(
                    f"Skipping {rec.label()}: {existing} recently purchased covers {rec.count} recommended",
                    extra={'stage': STAGE, 'key': key, 'before': rec.count, 'after': 0}
                )
                continue

            adjusted = rec.with_count(rec.count - existing)
            counter[key] = 0
            logger.info(
                f"Reducing {rec.label()} by {existing} recently purchased",
                extra={'stage': STAGE, 'key': key, 'before': rec.count, 'after': adjusted.count}
            )
            result.append(adjusted)

        if len(result) < len(recommendations):
            logger.info(f"Kept {len(result)} of {len(recommendations)} recommendations after duplicate check",
                        extra={'stage': STAGE})
        return result

    def adjust(self, recommendations: List[Recommendation], source: CommitmentSource) -> List[Recommendation]:
        """
        Fetch commitments from ``source`` and reconcile.

        A failing source never blocks purchases: the input is returned unchanged.
        """
        try:
            commitments = source.get_existing_commitments()
        except Exception as e:
            logger.warning(f"Could not fetch existing commitments, skipping duplicate check: {e}",
                           extra={'stage': STAGE})
            return list(recommendations)

        logger.debug(f"Found {len(commitments)} existing commitments", extra={'stage': STAGE})
        return self.reconcile(recommendations, commitments)

import logging
from typing import List

from ..core.models import Recommendation

logger = logging.getLogger(__name__)


def apply_instance_limit(recommendations: List[Recommendation], max_instances: int) -> List[Recommendation]:
    """
    Cap the running instance total at ``max_instances``, walking the list in order.

    The item that crosses the ceiling is truncated, everything after it is
    dropped. ``max_instances <= 0`` means no limit.
    """
    if max_instances <= 0:
        return list(recommendations)

    result = []
    remaining = max_instances
    for index, rec in enumerate(recommendations):
        if remaining <= 0:
            dropped = len(recommendations) - index
            logger.info(
                f"Instance limit of {max_instances} reached, dropping {dropped} recommendation(s)",
                extra={'stage': 'limit', 'before': dropped, 'after': 0}
            )
            break

        if rec.count > remaining:
            logger.info(
                f"Truncating {rec.label()} to stay within instance limit",
                extra={'stage': 'limit', 'key': rec.label(), 'before': rec.count, 'after': remaining}
            )
            rec = rec.with_count(remaining)

        result.append(rec)
        remaining -= rec.count

    return result

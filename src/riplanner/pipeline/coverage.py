"""Coverage scaling and fixed count override"""

import logging
import math
from dataclasses import replace
from typing import List

from ..core.models import Recommendation, SavingsPlanDetails

logger = logging.getLogger(__name__)


def _scale_savings_plan(rec: Recommendation, factor: float) -> Recommendation:
    details = rec.details
    if isinstance(details, SavingsPlanDetails):
        details = replace(details, hourly_commitment=details.hourly_commitment * factor)
    return replace(
        rec,
        details=details,
        estimated_savings=rec.estimated_savings * factor,
        estimated_cost=rec.estimated_cost * factor,
        upfront_cost=rec.upfront_cost * factor,
    )


def apply_coverage(recommendations: List[Recommendation], coverage: float) -> List[Recommendation]:
    """
    Scale every recommendation to ``coverage`` percent of its recommended size.

    Count based items get floor(count * coverage / 100) and are dropped at 0.
    Savings Plans scale their hourly commitment and savings linearly instead.
    """
    if coverage >= 100:
        return list(recommendations)
    if coverage <= 0:
        return []

    factor = coverage / 100.0
    result = []
    for rec in recommendations:
        if rec.is_savings_plan:
            scaled = _scale_savings_plan(rec, factor)
            if not scaled.is_purchasable:
                logger.debug(f"Dropping {rec.label()}: no hourly commitment left at {coverage}% coverage",
                             extra={'stage': 'coverage', 'key': rec.label()})
                continue
            result.append(scaled)
            continue

        new_count = math.floor(rec.count * coverage / 100)
        if new_count <= 0:
            logger.debug(
                f"Dropping {rec.label()}: {rec.count} at {coverage}% coverage rounds to 0",
                extra={'stage': 'coverage', 'key': rec.label(), 'before': rec.count, 'after': 0}
            )
            continue

        ratio = new_count / rec.count
        result.append(replace(
            rec,
            count=new_count,
            estimated_savings=rec.estimated_savings * ratio,
            estimated_cost=rec.estimated_cost * ratio,
            upfront_cost=rec.upfront_cost * ratio,
        ))
    return result


def apply_count_override(recommendations: List[Recommendation], override_count: int) -> List[Recommendation]:
    """Replace every count with ``override_count``. A value <= 0 disables the override"""
    if override_count <= 0:
        return list(recommendations)

    result = []
    for rec in recommendations:
        if rec.count != override_count:
            logger.debug(
                f"Overriding count of {rec.label()}",
                extra={'stage': 'override', 'key': rec.label(), 'before': rec.count, 'after': override_count}
            )
        result.append(rec.with_count(override_count))
    return result

"""Include/exclude filtering of recommendations by region, instance type, engine and account"""

import logging
from typing import Iterable, List, Optional

from ..core.config import PipelineConfig
from ..core.engines import normalize_engine_name
from ..core.models import Recommendation

logger = logging.getLogger(__name__)

STAGE = "filter"


def _include_exact(value: str, include: List[str], exclude: List[str]) -> bool:
    if include and value not in include:
        return False
    if value in exclude:
        return False
    return True


def _matches_account(account: str, patterns: Iterable[str]) -> bool:
    """Exact or substring match, case-insensitive"""
    account = account.lower()
    for pattern in patterns:
        pattern = pattern.lower()
        if pattern == account or pattern in account:
            return True
    return False


def should_include_region(region: str, config: PipelineConfig) -> bool:
    return _include_exact(region, config.include_regions, config.exclude_regions)


def should_include_instance_type(resource_type: str, config: PipelineConfig) -> bool:
    return _include_exact(resource_type, config.include_instance_types, config.exclude_instance_types)


def should_include_engine(rec: Recommendation, config: PipelineConfig) -> bool:
    engine = rec.engine
    if not engine:
        # Without engine information only an include list can reject the item
        return not config.include_engines

    if config.include_engines and engine not in {normalize_engine_name(e) for e in config.include_engines}:
        return False
    if engine in {normalize_engine_name(e) for e in config.exclude_engines}:
        return False
    return True


def should_include_account(account_name: str, config: PipelineConfig) -> bool:
    if not account_name:
        # An unresolved account cannot be matched against a filter
        return not config.has_account_filters

    if config.include_accounts and not _matches_account(account_name, config.include_accounts):
        return False
    if config.exclude_accounts and _matches_account(account_name, config.exclude_accounts):
        return False
    return True


def should_include(rec: Recommendation, config: PipelineConfig) -> bool:
    """Decide inclusion of a single recommendation. Pure"""
    return (
        should_include_region(rec.region, config)
        and should_include_instance_type(rec.resource_type, config)
        and should_include_engine(rec, config)
        and should_include_account(rec.account_name, config)
    )


def apply_filters(recommendations: List[Recommendation], config: PipelineConfig,
                  current_region: Optional[str] = None) -> List[Recommendation]:
    """
    Keep the recommendations that pass every filter, in input order.

    When ``current_region`` is given, recommendations for other regions are
    dropped too, except Savings Plans which are account-level.
    """
    result = []
    for rec in recommendations:
        if current_region and rec.region != current_region and not rec.is_savings_plan:
            continue
        if not should_include(rec, config):
            logger.debug(
                f"Filtered out {rec.label()}",
                extra={'stage': STAGE, 'key': rec.label(), 'before': rec.count, 'after': 0}
            )
            continue
        result.append(rec)
    return result

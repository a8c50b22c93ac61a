import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from ..core.base import CommitmentSource
from ..core.config import PipelineConfig
from ..core.exceptions import DataCollectionError
from ..core.logging import get_performance_logger
from ..core.models import DatabaseDetails, Recommendation, total_instances, total_savings
from .coverage import apply_count_override, apply_coverage
from .duplicates import DuplicateChecker
from .extended_support import EngineVersionIndex, apply_extended_support_exclusion
from .filters import apply_filters
from .limits import apply_instance_limit

logger = logging.getLogger(__name__)

STAGES = ["filter", "coverage", "override", "duplicates", "extended-support", "limit"]


@dataclass
class StageReport:
    """Before/after sizes of one stage"""
    stage: str
    recommendations_before: int
    recommendations_after: int
    instances_before: int
    instances_after: int
    skipped: bool = False
    reason: str = ""

    @property
    def removed_instances(self) -> int:
        return self.instances_before - self.instances_after


@dataclass
class PipelineResult:
    recommendations: List[Recommendation]
    stages: List[StageReport] = field(default_factory=list)

    @property
    def plan_size(self) -> int:
        return len(self.recommendations)

    @property
    def total_instances(self) -> int:
        return total_instances(self.recommendations)

    @property
    def total_savings(self) -> float:
        return total_savings(self.recommendations)

    def stage(self, name: str) -> Optional[StageReport]:
        for report in self.stages:
            if report.stage == name:
                return report
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "plan_size": self.plan_size,
            "total_instances": self.total_instances,
            "total_savings": self.total_savings,
            "stages": [report.__dict__ for report in self.stages],
        }


class RecommendationPipeline:
    """
    Runs the adjustment stages in production order:
    filter, coverage, override, duplicates, extended-support, limit.

    ``engine_version_loader`` is called at most once per pipeline instance; if
    it raises DataCollectionError the extended-support stage is skipped.
    """

    def __init__(self, config: PipelineConfig,
                 engine_version_loader: Optional[Callable[[], EngineVersionIndex]] = None,
                 duplicate_checker: Optional[DuplicateChecker] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.config = config
        self.clock = clock
        self.engine_version_loader = engine_version_loader
        self.duplicate_checker = duplicate_checker or DuplicateChecker(config.lookback_hours, clock=clock)
        self.perf = get_performance_logger()
        self._index: Optional[EngineVersionIndex] = None
        self._index_loaded = False

    def engine_versions(self) -> Optional[EngineVersionIndex]:
        if not self._index_loaded:
            self._index_loaded = True
            if self.engine_version_loader is not None:
                try:
                    with self.perf.timer("engine_version_lookup"):
                        self._index = self.engine_version_loader()
                except DataCollectionError as e:
                    logger.warning(f"Engine version lookup failed, extended support exclusion disabled: {e}",
                                   extra={'stage': 'extended-support'})
                    self._index = None
        return self._index

    def run(self, recommendations: List[Recommendation],
            commitment_source: Optional[CommitmentSource] = None,
            current_region: Optional[str] = None,
            max_instances: Optional[int] = None) -> PipelineResult:
        """
        Run every stage over ``recommendations``.

        ``max_instances`` overrides the configured ceiling for this run, so a
        caller can share one budget across several regions.
        """
        config = self.config
        result = PipelineResult(recommendations=list(recommendations))

        def step(name: str, func: Callable[[List[Recommendation]], List[Recommendation]],
                 skip_reason: str = "") -> None:
            before = result.recommendations
            if skip_reason:
                after = before
            else:
                with self.perf.timer(f"stage:{name}", stage=name):
                    after = [rec for rec in func(before) if rec.is_purchasable]
            report = StageReport(
                stage=name,
                recommendations_before=len(before),
                recommendations_after=len(after),
                instances_before=total_instances(before),
                instances_after=total_instances(after),
                skipped=bool(skip_reason),
                reason=skip_reason,
            )
            result.stages.append(report)
            result.recommendations = after
            logger.debug(
                f"Stage {name}: {report.recommendations_before} -> {report.recommendations_after} recommendations",
                extra={'stage': name, 'before': report.instances_before, 'after': report.instances_after}
            )

        step("filter", lambda recs: apply_filters(recs, config, current_region))

        step("coverage", lambda recs: apply_coverage(recs, config.coverage),
             "" if config.coverage < 100 else "coverage is 100%")

        step("override", lambda recs: apply_count_override(recs, config.override_count),
             "" if config.override_count > 0 else "no override")

        step("duplicates", lambda recs: self.duplicate_checker.adjust(recs, commitment_source),
             "" if commitment_source is not None else "no commitment source")

        index = None
        if config.include_extended_support:
            extended_reason = "extended support instances included"
        elif not any(isinstance(rec.details, DatabaseDetails) for rec in result.recommendations):
            extended_reason = "no database recommendations"
        else:
            index = self.engine_versions()
            extended_reason = "" if index is not None else "engine versions unavailable"
        now = self.clock() if self.clock else None
        step("extended-support", lambda recs: apply_extended_support_exclusion(recs, index, now),
             extended_reason)

        limit = config.max_instances if max_instances is None else max_instances
        step("limit", lambda recs: apply_instance_limit(recs, limit),
             "" if limit > 0 else "no limit")

        logger.info(
            f"Plan has {result.plan_size} recommendations, {result.total_instances} instances, "
            f"${result.total_savings:,.2f}/month estimated savings",
            extra={'region': current_region or ''}
        )
        return result

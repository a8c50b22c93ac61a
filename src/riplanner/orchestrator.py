"""
Multi-service driver.

For every selected service the orchestrator fetches recommendations, runs the
adjustment pipeline once per region with that region's purchase client as the
commitment source, and hands each final plan to the purchase executor.
"""

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from .collectors import EngineVersionCollector
from .core.base import (
    CollectorConfig,
    PurchaseExecutor,
    RecommendationQuery,
    RecommendationSource,
    ServiceClient,
)
from .core.config import Settings
from .core.exceptions import RIPlannerError
from .core.models import PurchaseResult, Recommendation, ServiceType, total_instances, total_savings
from .pipeline import EngineVersionIndex, PipelineResult, RecommendationPipeline
from .providers.aws import (
    GLOBAL_REGION,
    AccountAliasCache,
    AWSSession,
    CostExplorerRecommendationSource,
    RDSInventorySource,
    RDSLifecycleSource,
    RateLimiter,
    create_service_client,
)

CANCELLED_BY_USER = "purchase cancelled by user"


@dataclass
class ServiceStats:
    """Per-service totals of one run"""
    service: ServiceType
    regions_processed: List[str] = field(default_factory=list)
    failed_regions: List[str] = field(default_factory=list)
    recommendations_found: int = 0
    recommendations_selected: int = 0
    instances: int = 0
    estimated_savings: float = 0.0
    successful: int = 0
    failed: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "service": self.service.value,
            "regions_processed": list(self.regions_processed),
            "failed_regions": list(self.failed_regions),
            "recommendations_found": self.recommendations_found,
            "recommendations_selected": self.recommendations_selected,
            "instances": self.instances,
            "estimated_savings": self.estimated_savings,
            "successful": self.successful,
            "failed": self.failed,
        }


@dataclass
class RunSummary:
    """Result of a complete planning run"""
    started_at: datetime
    dry_run: bool
    completed_at: Optional[datetime] = None
    plan: List[Recommendation] = field(default_factory=list)
    results: List[PurchaseResult] = field(default_factory=list)
    services: Dict[ServiceType, ServiceStats] = field(default_factory=dict)
    pipeline_results: List[PipelineResult] = field(default_factory=list)
    errors: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def plan_size(self) -> int:
        return len(self.plan)

    @property
    def total_instances(self) -> int:
        return total_instances(self.plan)

    @property
    def total_savings(self) -> float:
        return total_savings(self.plan)

    @property
    def successful(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)

    def stats_for(self, service: ServiceType) -> ServiceStats:
        if service not in self.services:
            self.services[service] = ServiceStats(service=service)
        return self.services[service]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "dry_run": self.dry_run,
            "plan_size": self.plan_size,
            "total_instances": self.total_instances,
            "total_savings": self.total_savings,
            "successful": self.successful,
            "failed": self.failed,
            "services": [stats.to_dict() for stats in self.services.values()],
            "errors": self.errors,
        }


class PlanOrchestrator:
    """
    Drives recommendation fetching, the pipeline and purchasing per service and region.

    ``max_instances`` is one budget for the whole run: each region's pipeline
    receives whatever the earlier regions left over.
    """

    def __init__(self, settings: Settings,
                 recommendation_source: RecommendationSource,
                 client_factory: Callable[[ServiceType, str], ServiceClient],
                 region_provider: Optional[Callable[[], List[str]]] = None,
                 account_resolver: Optional[Callable[[str], str]] = None,
                 engine_version_loader: Optional[Callable[[], EngineVersionIndex]] = None,
                 confirm: Optional[Callable[[List[Recommendation]], bool]] = None,
                 cancel_event: Optional[threading.Event] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        self.settings = settings
        self.recommendation_source = recommendation_source
        self.client_factory = client_factory
        self.region_provider = region_provider
        self.account_resolver = account_resolver
        self.engine_version_loader = engine_version_loader
        self.confirm = confirm
        self.cancel_event = cancel_event or threading.Event()
        self.clock = clock
        self.logger = logging.getLogger(__name__)
        self._confirmed: Optional[bool] = None
        self._remaining: Optional[int] = None

    @property
    def dry_run(self) -> bool:
        return self.settings.purchase.dry_run

    def _pipeline(self, coverage: Optional[float] = None) -> RecommendationPipeline:
        config = self.settings.pipeline
        if coverage is not None:
            config = config.model_copy(update={"coverage": coverage})
        return RecommendationPipeline(config, engine_version_loader=self.engine_version_loader, clock=self.clock)

    def _start(self) -> RunSummary:
        self._confirmed = None
        max_instances = self.settings.pipeline.max_instances
        self._remaining = max_instances if max_instances > 0 else None
        return RunSummary(started_at=datetime.now(), dry_run=self.dry_run)

    def run(self) -> RunSummary:
        """Fetch, adjust and (optionally) purchase for every selected service"""
        summary = self._start()
        pipeline = self._pipeline()

        for service in self.settings.aws.selected_services():
            if self.cancel_event.is_set():
                self.logger.warning("Run cancelled, remaining services skipped")
                break
            self.logger.info(f"Processing {service.display_name}", extra={'service': service.value})
            self._process_service(service, pipeline, summary)

        summary.completed_at = datetime.now()
        return summary

    def run_from_recommendations(self, recommendations: List[Recommendation],
                                 coverage_explicit: bool = False) -> RunSummary:
        """
        Run the pipeline over recommendations read from a file.

        The file already reflects a deliberate choice, so coverage is 100%
        unless it was set explicitly for this run.
        """
        summary = self._start()
        coverage = None if coverage_explicit else 100.0
        if coverage is not None:
            self.logger.info("Using 100% coverage for CSV input")
        pipeline = self._pipeline(coverage)
        recommendations = self._resolve_account_names(recommendations)

        groups: "OrderedDict[Tuple[ServiceType, str], List[Recommendation]]" = OrderedDict()
        for rec in recommendations:
            groups.setdefault((rec.service, rec.region), []).append(rec)

        for (service, region), recs in groups.items():
            if self.cancel_event.is_set():
                self.logger.warning("Run cancelled, remaining groups skipped")
                break
            stats = summary.stats_for(service)
            stats.recommendations_found += len(recs)
            self._process_region(service, region or GLOBAL_REGION, recs, pipeline, summary, stats,
                                 current_region=None)

        summary.completed_at = datetime.now()
        return summary

    def resolve_regions(self, service: ServiceType,
                        recommendations: Optional[List[Recommendation]] = None) -> List[str]:
        """
        Configured regions, else every enabled region, else the regions the
        recommendations mention. Savings Plans are account-wide.
        """
        if service is ServiceType.SAVINGS_PLANS:
            return [GLOBAL_REGION]

        if self.settings.aws.regions:
            return list(self.settings.aws.regions)

        if self.region_provider is not None:
            try:
                regions = self.region_provider()
                if regions:
                    return list(regions)
            except RIPlannerError as e:
                self.logger.warning(f"Could not list regions, discovering from recommendations: {e}")

        discovered = sorted({rec.region for rec in recommendations or [] if rec.region})
        self.logger.info(f"Discovered {len(discovered)} regions with {service.display_name} recommendations",
                         extra={'service': service.value})
        return discovered

    def _query(self, service: ServiceType) -> RecommendationQuery:
        purchase = self.settings.purchase
        return RecommendationQuery(
            service=service,
            term=purchase.term,
            payment_option=purchase.payment_option,
            lookback_days=purchase.lookback_days,
            include_sp_types=list(purchase.include_sp_types),
            exclude_sp_types=list(purchase.exclude_sp_types),
        )

    def _process_service(self, service: ServiceType, pipeline: RecommendationPipeline,
                         summary: RunSummary) -> None:
        stats = summary.stats_for(service)
        try:
            recommendations = self.recommendation_source.get_recommendations(self._query(service))
        except RIPlannerError as e:
            self.logger.error(f"Failed to get {service.display_name} recommendations: {e}",
                              extra={'service': service.value})
            summary.errors.append({"service": service.value, "error": str(e)})
            return

        recommendations = self._resolve_account_names(recommendations)
        stats.recommendations_found += len(recommendations)

        if service is ServiceType.SAVINGS_PLANS:
            self._process_region(service, GLOBAL_REGION, recommendations, pipeline, summary, stats,
                                 current_region=None)
            return

        for region in self.resolve_regions(service, recommendations):
            if self.cancel_event.is_set():
                break
            if self._remaining is not None and self._remaining <= 0:
                self.logger.info("Instance limit reached, remaining regions skipped")
                break
            in_region = [rec for rec in recommendations if rec.region == region]
            if not in_region:
                self.logger.debug(f"No {service.display_name} recommendations in {region}",
                                  extra={'service': service.value, 'region': region})
                continue
            self._process_region(service, region, in_region, pipeline, summary, stats,
                                 current_region=region)

    def _resolve_account_names(self, recommendations: List[Recommendation]) -> List[Recommendation]:
        if self.account_resolver is None:
            return recommendations
        resolved = []
        for rec in recommendations:
            if rec.account and not rec.account_name:
                rec = replace(rec, account_name=self.account_resolver(rec.account))
            resolved.append(rec)
        return resolved

    def _process_region(self, service: ServiceType, region: str, recommendations: List[Recommendation],
                        pipeline: RecommendationPipeline, summary: RunSummary, stats: ServiceStats,
                        current_region: Optional[str]) -> None:
        if self._remaining is not None and self._remaining <= 0:
            self.logger.info(f"Instance limit reached, skipping {service.display_name} in {region}")
            return

        try:
            client = self.client_factory(service, region)
        except RIPlannerError as e:
            self.logger.error(f"Could not create {service.display_name} client for {region}: {e}",
                              extra={'service': service.value, 'region': region})
            stats.failed_regions.append(region)
            summary.errors.append({"service": service.value, "region": region, "error": str(e)})
            return

        result = pipeline.run(recommendations, commitment_source=client,
                              current_region=current_region, max_instances=self._remaining or 0)
        stats.regions_processed.append(region)
        summary.pipeline_results.append(result)

        plan = result.recommendations
        if self._remaining is not None:
            self._remaining -= result.total_instances
        if not plan:
            return

        summary.plan.extend(plan)
        stats.recommendations_selected += len(plan)
        stats.instances += result.total_instances
        stats.estimated_savings += result.total_savings

        results = self._execute(client, plan)
        summary.results.extend(results)
        stats.successful += sum(1 for r in results if r.success)
        stats.failed += sum(1 for r in results if not r.success)

    def _execute(self, client: ServiceClient, plan: List[Recommendation]) -> List[PurchaseResult]:
        if not self.dry_run and not self._purchase_confirmed(plan):
            return [PurchaseResult(recommendation=rec, success=False, error=CANCELLED_BY_USER) for rec in plan]

        executor = PurchaseExecutor(client, dry_run=self.dry_run, cancel_event=self.cancel_event)
        return executor.execute_plan(plan).results

    def _purchase_confirmed(self, plan: List[Recommendation]) -> bool:
        """Asked once, before the first real purchase of the run"""
        if self._confirmed is None:
            if self.settings.purchase.skip_confirmation or self.confirm is None:
                self._confirmed = True
            else:
                self._confirmed = bool(self.confirm(plan))
                if not self._confirmed:
                    self.logger.warning("Purchase cancelled by user")
        return self._confirmed


def build_aws_orchestrator(settings: Settings,
                           confirm: Optional[Callable[[List[Recommendation]], bool]] = None,
                           cancel_event: Optional[threading.Event] = None) -> PlanOrchestrator:
    """Wire a PlanOrchestrator to boto3 sessions built from ``settings``"""
    cancel_event = cancel_event or threading.Event()
    session = AWSSession(profile=settings.aws.profile)
    rate_limiter = RateLimiter(cancel_event=cancel_event)

    inventory_profile = settings.aws.inventory_profile
    inventory_session = session if inventory_profile == settings.aws.profile else AWSSession(inventory_profile)
    regions: Any = list(settings.aws.regions) or session.get_regions
    collector = EngineVersionCollector(
        RDSInventorySource(inventory_session),
        RDSLifecycleSource(inventory_session, GLOBAL_REGION),
        regions,
        config=CollectorConfig(regions=list(settings.aws.regions), max_workers=settings.aws.max_workers),
        cancel_event=cancel_event,
    )

    alias_cache = AccountAliasCache(session)

    def client_factory(service: ServiceType, region: str) -> ServiceClient:
        return create_service_client(service, session, region, rate_limiter)

    return PlanOrchestrator(
        settings,
        recommendation_source=CostExplorerRecommendationSource(session, rate_limiter),
        client_factory=client_factory,
        region_provider=session.get_regions,
        account_resolver=alias_cache.get_account_alias,
        engine_version_loader=collector.collect,
        confirm=confirm,
        cancel_event=cancel_event,
    )

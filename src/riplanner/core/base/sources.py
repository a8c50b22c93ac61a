"""Interfaces of the collaborators that feed the recommendation pipeline"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional

from ..models import (
    Commitment,
    EngineVersionSupportInfo,
    InstanceEngineVersion,
    PaymentOption,
    PurchaseResult,
    Recommendation,
    ServiceType,
    Term,
)


@dataclass
class RecommendationQuery:
    """Parameters of one recommendation lookup"""
    service: ServiceType
    term: Term = Term.THREE_YEARS
    payment_option: PaymentOption = PaymentOption.NO_UPFRONT
    lookback_days: int = 7
    region: Optional[str] = None
    include_sp_types: List[str] = field(default_factory=list)
    exclude_sp_types: List[str] = field(default_factory=list)


class RecommendationSource(ABC):
    """Supplies raw purchase recommendations"""

    @abstractmethod
    def get_recommendations(self, query: RecommendationQuery) -> List[Recommendation]:
        """Fetch recommendations. Raises ProviderError when the lookup fails"""
        pass


class CommitmentSource(ABC):
    """Supplies commitments already held in one account/region scope"""

    @abstractmethod
    def get_existing_commitments(self) -> List[Commitment]:
        pass


class InventorySource(ABC):
    """Lists running database instances, one region at a time"""

    @abstractmethod
    def list_running_instances(self, region: str, cancel_event=None) -> List[InstanceEngineVersion]:
        """Drain every page for the region. Stops paging once cancel_event is set"""
        pass


class LifecycleSource(ABC):
    """Provider-published support windows of engine major versions"""

    @abstractmethod
    def get_major_version_lifecycles(self, engine: str) -> List[EngineVersionSupportInfo]:
        pass


class ServiceClient(CommitmentSource):
    """Region-scoped client that can both list and buy commitments for one service"""

    def __init__(self, service: ServiceType, region: str):
        self.service = service
        self.region = region

    @abstractmethod
    def purchase(self, recommendation: Recommendation) -> PurchaseResult:
        """Buy one recommendation. Failures are reported in the result, not raised"""
        pass

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(service={self.service.value}, region={self.region})"

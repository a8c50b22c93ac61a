from .sources import (
    RecommendationQuery, RecommendationSource, CommitmentSource,
    InventorySource, LifecycleSource, ServiceClient,
)
from .collector import BaseCollector, CollectorConfig
from .executor import PurchaseExecutor, ExecutionSummary

__all__ = [
    'RecommendationQuery', 'RecommendationSource', 'CommitmentSource',
    'InventorySource', 'LifecycleSource', 'ServiceClient',
    'BaseCollector', 'CollectorConfig',
    'PurchaseExecutor', 'ExecutionSummary',
]

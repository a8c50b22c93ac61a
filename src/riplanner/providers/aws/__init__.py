from .client import AWSSession, AccountAliasCache, GLOBAL_REGION
from .ratelimit import RateLimiter
from .recommendations import CostExplorerRecommendationSource, normalize_region_name
from .inventory import RDSInventorySource, RDSLifecycleSource, LIFECYCLE_ENGINES
from .services import create_service_client, AWSServiceClient

__all__ = [
    'AWSSession', 'AccountAliasCache', 'GLOBAL_REGION', 'RateLimiter',
    'CostExplorerRecommendationSource', 'normalize_region_name',
    'RDSInventorySource', 'RDSLifecycleSource', 'LIFECYCLE_ENGINES',
    'create_service_client', 'AWSServiceClient',
]

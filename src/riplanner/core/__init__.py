from .exceptions import (
    RIPlannerError, ConfigurationError, ValidationError,
    DataCollectionError, PurchaseError, ProviderError, AWSError,
)
from .models import (
    ServiceType, ServiceCategory, Term, PaymentOption, CommitmentState,
    ComputeDetails, DatabaseDetails, CacheDetails, SearchDetails,
    DataWarehouseDetails, SavingsPlanDetails,
    Recommendation, Commitment, InstanceEngineVersion, EngineLifecycle,
    EngineVersionSupportInfo, PurchaseResult,
)

__all__ = [
    'RIPlannerError', 'ConfigurationError', 'ValidationError',
    'DataCollectionError', 'PurchaseError', 'ProviderError', 'AWSError',
    'ServiceType', 'ServiceCategory', 'Term', 'PaymentOption', 'CommitmentState',
    'ComputeDetails', 'DatabaseDetails', 'CacheDetails', 'SearchDetails',
    'DataWarehouseDetails', 'SavingsPlanDetails',
    'Recommendation', 'Commitment', 'InstanceEngineVersion', 'EngineLifecycle',
    'EngineVersionSupportInfo', 'PurchaseResult',
]

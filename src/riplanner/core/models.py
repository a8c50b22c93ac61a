"""Data model shared by the pipeline, the providers and the reporting layer"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, ClassVar, Dict, Iterable, List, Optional, Union

from .engines import engine_from_description, normalize_engine_name


class ServiceCategory(str, Enum):
    """Provider-neutral service families"""
    COMPUTE = "compute"
    RELATIONAL_DB = "relational-db"
    CACHE = "cache"
    SEARCH = "search"
    DATA_WAREHOUSE = "data-warehouse"
    SAVINGS_PLAN = "savings-plan"


class ServiceType(str, Enum):
    """Services that sell committed-use discounts"""
    EC2 = "ec2"
    RDS = "rds"
    ELASTICACHE = "elasticache"
    MEMORYDB = "memorydb"
    OPENSEARCH = "opensearch"
    REDSHIFT = "redshift"
    SAVINGS_PLANS = "savingsplans"

    @property
    def category(self) -> ServiceCategory:
        return _SERVICE_CATEGORIES[self]

    @property
    def display_name(self) -> str:
        return _SERVICE_DISPLAY_NAMES[self]

    @classmethod
    def parse(cls, value: Union[str, "ServiceType"]) -> "ServiceType":
        """Parse a service name, accepting the aliases used on the command line"""
        if isinstance(value, ServiceType):
            return value
        key = value.strip().lower()
        aliases = {"elasticsearch": cls.OPENSEARCH, "sp": cls.SAVINGS_PLANS, "savings-plans": cls.SAVINGS_PLANS}
        if key in aliases:
            return aliases[key]
        return cls(key)


_SERVICE_CATEGORIES = {
    ServiceType.EC2: ServiceCategory.COMPUTE,
    ServiceType.RDS: ServiceCategory.RELATIONAL_DB,
    ServiceType.ELASTICACHE: ServiceCategory.CACHE,
    ServiceType.MEMORYDB: ServiceCategory.CACHE,
    ServiceType.OPENSEARCH: ServiceCategory.SEARCH,
    ServiceType.REDSHIFT: ServiceCategory.DATA_WAREHOUSE,
    ServiceType.SAVINGS_PLANS: ServiceCategory.SAVINGS_PLAN,
}

_SERVICE_DISPLAY_NAMES = {
    ServiceType.EC2: "EC2",
    ServiceType.RDS: "RDS",
    ServiceType.ELASTICACHE: "ElastiCache",
    ServiceType.MEMORYDB: "MemoryDB",
    ServiceType.OPENSEARCH: "OpenSearch",
    ServiceType.REDSHIFT: "Redshift",
    ServiceType.SAVINGS_PLANS: "Savings Plans",
}


class Term(str, Enum):
    """Commitment length"""
    ONE_YEAR = "1yr"
    THREE_YEARS = "3yr"

    @property
    def years(self) -> int:
        return 3 if self is Term.THREE_YEARS else 1

    @property
    def months(self) -> int:
        return self.years * 12

    @property
    def seconds(self) -> int:
        return 94608000 if self is Term.THREE_YEARS else 31536000

    @classmethod
    def parse(cls, value: Union[str, int, "Term"]) -> "Term":
        if isinstance(value, Term):
            return value
        key = str(value).strip().lower().replace(" ", "")
        if key in ("3", "3yr", "3y", "threeyears", "94608000"):
            return cls.THREE_YEARS
        if key in ("1", "1yr", "1y", "oneyear", "31536000"):
            return cls.ONE_YEAR
        raise ValueError(f"Invalid term: {value}. Must be 1yr or 3yr")


class PaymentOption(str, Enum):
    """Upfront payment structure"""
    ALL_UPFRONT = "all-upfront"
    PARTIAL_UPFRONT = "partial-upfront"
    NO_UPFRONT = "no-upfront"

    @property
    def label(self) -> str:
        """Spelling used by the reservation offering APIs ('All Upfront')"""
        return self.value.replace("-", " ").title()

    @classmethod
    def parse(cls, value: Union[str, "PaymentOption"]) -> "PaymentOption":
        if isinstance(value, PaymentOption):
            return value
        key = value.strip().lower().replace(" ", "").replace("-", "").replace("_", "")
        for option in cls:
            if option.value.replace("-", "") == key:
                return option
        raise ValueError(
            f"Invalid payment option: {value}. Must be one of: all-upfront, partial-upfront, no-upfront"
        )


class CommitmentState(str, Enum):
    ACTIVE = "active"
    PAYMENT_PENDING = "payment-pending"
    PAYMENT_FAILED = "payment-failed"
    QUEUED = "queued"
    RETIRED = "retired"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "CommitmentState":
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.UNKNOWN


RECONCILABLE_STATES = frozenset({CommitmentState.ACTIVE, CommitmentState.PAYMENT_PENDING})


# Service-specific details. A closed set of variants, one per ServiceCategory.

@dataclass(frozen=True)
class ComputeDetails:
    platform: str = "Linux/UNIX"
    tenancy: str = "default"
    scope: str = "Region"

    category: ClassVar[ServiceCategory] = ServiceCategory.COMPUTE

    def extract_engine(self) -> Optional[str]:
        return None

    def describe(self) -> str:
        return f"{self.platform}/{self.tenancy}"


@dataclass(frozen=True)
class DatabaseDetails:
    engine: str = ""
    multi_az: bool = False

    category: ClassVar[ServiceCategory] = ServiceCategory.RELATIONAL_DB

    def extract_engine(self) -> Optional[str]:
        return normalize_engine_name(self.engine) or None

    def describe(self) -> str:
        return f"{self.engine}/{'multi-az' if self.multi_az else 'single-az'}"


@dataclass(frozen=True)
class CacheDetails:
    engine: str = ""

    category: ClassVar[ServiceCategory] = ServiceCategory.CACHE

    def extract_engine(self) -> Optional[str]:
        return normalize_engine_name(self.engine) or None

    def describe(self) -> str:
        return self.engine


@dataclass(frozen=True)
class SearchDetails:
    category: ClassVar[ServiceCategory] = ServiceCategory.SEARCH

    def extract_engine(self) -> Optional[str]:
        return None

    def describe(self) -> str:
        return ""


@dataclass(frozen=True)
class DataWarehouseDetails:
    number_of_nodes: int = 1

    category: ClassVar[ServiceCategory] = ServiceCategory.DATA_WAREHOUSE

    def extract_engine(self) -> Optional[str]:
        return None

    def describe(self) -> str:
        return "single-node" if self.number_of_nodes == 1 else "multi-node"


@dataclass(frozen=True)
class SavingsPlanDetails:
    plan_type: str = "Compute"
    hourly_commitment: float = 0.0

    category: ClassVar[ServiceCategory] = ServiceCategory.SAVINGS_PLAN

    def extract_engine(self) -> Optional[str]:
        return None

    def describe(self) -> str:
        return f"{self.plan_type} ${self.hourly_commitment:.3f}/hr"


ServiceDetails = Union[
    ComputeDetails, DatabaseDetails, CacheDetails,
    SearchDetails, DataWarehouseDetails, SavingsPlanDetails,
]


@dataclass(frozen=True)
class Recommendation:
    """A candidate purchase unit"""

    service: ServiceType
    region: str
    resource_type: str
    count: int
    term: Term = Term.THREE_YEARS
    payment_option: PaymentOption = PaymentOption.NO_UPFRONT
    account: str = ""
    account_name: str = ""
    estimated_savings: float = 0.0
    estimated_cost: float = 0.0
    on_demand_cost: float = 0.0
    upfront_cost: float = 0.0
    savings_percentage: float = 0.0
    details: Optional[ServiceDetails] = None
    description: str = ""

    def __post_init__(self):
        if self.count < 0:
            raise ValueError(f"Recommendation count must be >= 0, got {self.count}")
        if self.details is not None and self.details.category is not self.service.category:
            raise ValueError(
                f"{type(self.details).__name__} cannot describe a {self.service.value} recommendation"
            )

    @property
    def engine(self) -> str:
        """Normalized engine: details first, then the description, else ''"""
        if self.details is not None:
            return self.details.extract_engine() or ""
        return engine_from_description(self.description)

    @property
    def hourly_commitment(self) -> float:
        if isinstance(self.details, SavingsPlanDetails):
            return self.details.hourly_commitment
        return 0.0

    @property
    def is_savings_plan(self) -> bool:
        return self.service is ServiceType.SAVINGS_PLANS

    @property
    def is_purchasable(self) -> bool:
        """Whether this item may reach the purchase stage"""
        if self.is_savings_plan:
            return self.hourly_commitment > 0
        return self.count > 0

    def with_count(self, count: int) -> "Recommendation":
        return replace(self, count=count)

    def label(self) -> str:
        """Short human readable identifier used in log messages"""
        parts = [self.service.value, self.region or "global", self.resource_type]
        if self.engine:
            parts.append(self.engine)
        if self.account_name or self.account:
            parts.append(self.account_name or self.account)
        return "/".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "service": self.service.value,
            "region": self.region,
            "resource_type": self.resource_type,
            "count": self.count,
            "term": self.term.value,
            "payment_option": self.payment_option.value,
            "account": self.account,
            "account_name": self.account_name,
            "engine": self.engine,
            "details": self.details.describe() if self.details else "",
            "hourly_commitment": self.hourly_commitment,
            "estimated_savings": self.estimated_savings,
            "estimated_cost": self.estimated_cost,
        }


@dataclass(frozen=True)
class Commitment:
    """An existing, already purchased commitment"""

    service: ServiceType
    region: str
    resource_type: str
    count: int
    state: CommitmentState
    start_date: datetime
    commitment_id: str = ""
    engine: str = ""
    end_date: Optional[datetime] = None
    account: str = ""

    @property
    def normalized_engine(self) -> str:
        return normalize_engine_name(self.engine)


@dataclass(frozen=True)
class InstanceEngineVersion:
    """A running database instance, as seen by the inventory lookup"""
    instance_class: str
    engine: str
    engine_version: str
    region: str
    instance_id: str = ""


@dataclass(frozen=True)
class EngineLifecycle:
    """One support window of a major engine version"""
    name: str
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


STANDARD_SUPPORT = "open-source-rds-standard-support"
EXTENDED_SUPPORT = "open-source-rds-extended-support"


@dataclass
class EngineVersionSupportInfo:
    """Lifecycle windows for one (engine, major version) pair"""
    engine: str
    major_version: str
    lifecycles: List[EngineLifecycle] = field(default_factory=list)

    def extended_support_start(self) -> Optional[datetime]:
        for lifecycle in self.lifecycles:
            if lifecycle.name == EXTENDED_SUPPORT and lifecycle.start_date is not None:
                return lifecycle.start_date
        return None


@dataclass
class PurchaseResult:
    """Outcome of one purchase attempt"""
    recommendation: Recommendation
    success: bool
    commitment_id: str = ""
    error: Optional[str] = None
    cost: float = 0.0
    dry_run: bool = False
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        data = self.recommendation.to_dict()
        data.update({
            "success": self.success,
            "commitment_id": self.commitment_id,
            "error": self.error or "",
            "cost": self.cost,
            "dry_run": self.dry_run,
            "timestamp": self.timestamp.isoformat(),
        })
        return data


def total_instances(recommendations: Iterable[Recommendation]) -> int:
    return sum(rec.count for rec in recommendations)


def total_savings(recommendations: Iterable[Recommendation]) -> float:
    return sum(rec.estimated_savings for rec in recommendations)


def as_utc(value: datetime) -> datetime:
    """Treat naive timestamps as UTC so they compare with boto3's aware ones"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)

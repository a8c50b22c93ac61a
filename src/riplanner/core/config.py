"""Configuration management for the reservation planner"""

import re
import yaml
import json
from pathlib import Path
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import logging

from .engines import normalize_engine_name
from .exceptions import ConfigurationError
from .models import PaymentOption, ServiceType, Term

logger = logging.getLogger(__name__)

INSTANCE_TYPE_PATTERN = re.compile(r'^[a-z0-9][a-z0-9-]*(\.[a-z0-9-]+)+$')

SAVINGS_PLAN_TYPES = ["Compute", "EC2Instance", "SageMaker", "Database"]


def _clean_list(values: Optional[List[str]]) -> List[str]:
    if not values:
        return []
    if isinstance(values, str):
        values = values.split(",")
    return [v.strip() for v in values if v and v.strip()]


class PipelineConfig(BaseModel):
    """Options consumed by the recommendation adjustment pipeline"""
    coverage: float = Field(default=80.0, ge=0, le=100)
    override_count: int = Field(default=0, ge=0)
    max_instances: int = Field(default=0, ge=0)
    lookback_hours: int = Field(default=24, gt=0)
    include_extended_support: bool = False

    include_regions: List[str] = Field(default_factory=list)
    exclude_regions: List[str] = Field(default_factory=list)
    include_instance_types: List[str] = Field(default_factory=list)
    exclude_instance_types: List[str] = Field(default_factory=list)
    include_engines: List[str] = Field(default_factory=list)
    exclude_engines: List[str] = Field(default_factory=list)
    include_accounts: List[str] = Field(default_factory=list)
    exclude_accounts: List[str] = Field(default_factory=list)

    @field_validator(
        'include_regions', 'exclude_regions', 'include_engines', 'exclude_engines',
        'include_accounts', 'exclude_accounts', mode='before'
    )
    @classmethod
    def split_lists(cls, v: Any) -> List[str]:
        return _clean_list(v)

    @field_validator('include_instance_types', 'exclude_instance_types', mode='before')
    @classmethod
    def validate_instance_types(cls, v: Any) -> List[str]:
        """Instance types look like 'm5.large', 'db.t3.medium' or 'cache.r6g.xlarge'"""
        values = _clean_list(v)
        for value in values:
            if not INSTANCE_TYPE_PATTERN.match(value):
                raise ValueError(
                    f"Invalid instance type format: {value}. "
                    "Expected format: m5.large, db.t3.medium, cache.r6g.xlarge"
                )
        return values

    @model_validator(mode='after')
    def check_conflicts(self) -> "PipelineConfig":
        """An entry may not be both included and excluded in the same dimension"""
        dimensions = [
            ("region", self.include_regions, self.exclude_regions, lambda v: v),
            ("instance type", self.include_instance_types, self.exclude_instance_types, lambda v: v),
            ("engine", self.include_engines, self.exclude_engines, normalize_engine_name),
            ("account", self.include_accounts, self.exclude_accounts, lambda v: v.lower()),
        ]
        for name, include, exclude, key in dimensions:
            excluded = {key(v) for v in exclude}
            for value in include:
                if key(value) in excluded:
                    raise ValueError(f"{name} '{value}' cannot be both included and excluded")
        return self

    @property
    def has_account_filters(self) -> bool:
        return bool(self.include_accounts or self.exclude_accounts)


class PurchaseConfig(BaseModel):
    """What to buy and how"""
    term: Term = Term.THREE_YEARS
    payment_option: PaymentOption = PaymentOption.NO_UPFRONT
    lookback_days: int = 7
    dry_run: bool = True
    skip_confirmation: bool = False
    include_sp_types: List[str] = Field(default_factory=list)
    exclude_sp_types: List[str] = Field(default_factory=list)

    @field_validator('term', mode='before')
    @classmethod
    def parse_term(cls, v: Any) -> Term:
        return Term.parse(v)

    @field_validator('payment_option', mode='before')
    @classmethod
    def parse_payment_option(cls, v: Any) -> PaymentOption:
        return PaymentOption.parse(v)

    @field_validator('lookback_days')
    @classmethod
    def validate_lookback_days(cls, v: int) -> int:
        if v not in (7, 30, 60):
            raise ValueError(f"lookback_days must be one of 7, 30, 60, got: {v}")
        return v

    @field_validator('include_sp_types', 'exclude_sp_types', mode='before')
    @classmethod
    def validate_sp_types(cls, v: Any) -> List[str]:
        values = _clean_list(v)
        lookup = {t.lower(): t for t in SAVINGS_PLAN_TYPES}
        result = []
        for value in values:
            if value.lower() not in lookup:
                raise ValueError(
                    f"Invalid Savings Plan type: {value}. Must be one of: {', '.join(SAVINGS_PLAN_TYPES)}"
                )
            result.append(lookup[value.lower()])
        return result


class AWSConfig(BaseModel):
    """AWS-specific configuration"""
    profile: Optional[str] = None
    validation_profile: Optional[str] = None
    regions: List[str] = Field(default_factory=list)
    services: List[ServiceType] = Field(default_factory=lambda: [ServiceType.RDS])
    all_services: bool = False
    max_workers: int = Field(default=10, gt=0)

    @field_validator('regions', mode='before')
    @classmethod
    def split_regions(cls, v: Any) -> List[str]:
        return _clean_list(v)

    @field_validator('services', mode='before')
    @classmethod
    def parse_services(cls, v: Any) -> List[ServiceType]:
        if isinstance(v, str):
            v = _clean_list(v)
        return [ServiceType.parse(s) for s in v or []]

    @property
    def inventory_profile(self) -> Optional[str]:
        """Profile used for inventory and lifecycle lookups"""
        return self.validation_profile or self.profile

    def selected_services(self) -> List[ServiceType]:
        if self.all_services:
            return list(ServiceType)
        return list(self.services)


class LoggingConfig(BaseModel):
    """Logging configuration"""
    level: str = "INFO"
    file: Optional[Path] = None
    audit_file: Optional[Path] = None
    console: bool = True
    structured: bool = False

    @field_validator('level')
    @classmethod
    def validate_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log level: {v}")
        return level


class ReportingConfig(BaseModel):
    """Reporting configuration"""
    output_dir: Path = Path("./reports")
    csv_output: Optional[Path] = None
    csv_input: Optional[Path] = None

    @field_validator('csv_input')
    @classmethod
    def validate_csv_input(cls, v: Optional[Path]) -> Optional[Path]:
        if v is not None and v.suffix.lower() != ".csv":
            raise ValueError(f"input file must have .csv extension: {v}")
        return v


class Settings(BaseSettings):
    """Main application settings"""
    app_name: str = "reservation-planner"
    version: str = "0.1.0"
    debug: bool = False

    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    purchase: PurchaseConfig = Field(default_factory=PurchaseConfig)
    aws: AWSConfig = Field(default_factory=AWSConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    reporting: ReportingConfig = Field(default_factory=ReportingConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="RIPLANNER_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    @classmethod
    def from_yaml(cls, path: Path) -> "Settings":
        """Load settings from YAML file"""
        if not path.exists():
            logger.warning(f"Configuration file {path} not found, using defaults")
            return cls()

        with open(path, 'r') as f:
            data = yaml.safe_load(f)

        return cls(**data if data else {})

    @classmethod
    def from_json(cls, path: Path) -> "Settings":
        """Load settings from JSON file"""
        if not path.exists():
            logger.warning(f"Configuration file {path} not found, using defaults")
            return cls()

        with open(path, 'r') as f:
            data = json.load(f)

        return cls(**data)

    def to_yaml(self, path: Path) -> None:
        """Save settings to YAML file"""
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            yaml.dump(self.model_dump(mode="json", exclude_unset=True), f, default_flow_style=False)

    def to_json(self, path: Path) -> None:
        """Save settings to JSON file"""
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            json.dump(self.model_dump(mode="json", exclude_unset=True), f, indent=2)

    def warnings(self) -> List[str]:
        """Valid but suspicious combinations"""
        messages = []
        services = self.aws.selected_services()
        if (self.purchase.term is Term.THREE_YEARS
                and self.purchase.payment_option is PaymentOption.NO_UPFRONT
                and ServiceType.RDS in services):
            messages.append(
                "AWS does not offer 3-year no-upfront Reserved Instances for RDS. "
                "No RDS recommendations will be found with this combination."
            )
        return messages


def _load_file(path: Path) -> Settings:
    if path.suffix in (".yaml", ".yml"):
        return Settings.from_yaml(path)
    return Settings.from_json(path)


def _merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_settings(path: Optional[Path] = None, overrides: Optional[Dict[str, Any]] = None) -> Settings:
    """
    Load and validate settings.

    Values in ``overrides`` (nested dicts keyed like the settings sections) win
    over the file. Any validation failure is raised as ConfigurationError.
    """
    try:
        if path is not None:
            path = Path(path)
            if not path.exists():
                raise ConfigurationError(f"Configuration file does not exist: {path}")
            base = _load_file(path)
        else:
            base = get_settings()

        if overrides:
            data = _merge(base.model_dump(exclude_unset=True), overrides)
            loaded = Settings(**data)
        else:
            loaded = base
    except ValidationError as e:
        errors = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigurationError(f"Invalid configuration: {errors}") from e
    except (yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"Could not parse configuration file {path}: {e}") from e

    for message in loaded.warnings():
        logger.warning(message)

    return loaded


# Global settings instance
settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get global settings instance"""
    global settings
    if settings is None:
        # Try to load from default locations
        config_paths = [
            Path.home() / ".riplanner" / "config.yaml",
            Path.home() / ".riplanner" / "config.json",
            Path("./config.yaml"),
            Path("./config.json"),
        ]

        for path in config_paths:
            if path.exists():
                settings = _load_file(path)
                logger.info(f"Loaded configuration from {path}")
                break
        else:
            settings = Settings()
            logger.debug("Using default configuration")

    return settings


def reload_settings(path: Optional[Path] = None) -> Settings:
    """Reload settings from file"""
    global settings

    if path:
        settings = _load_file(path)
    else:
        settings = None
        settings = get_settings()

    return settings

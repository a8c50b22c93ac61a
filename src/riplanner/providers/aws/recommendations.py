"""Purchase recommendations from AWS Cost Explorer"""

import logging
from typing import Any, Dict, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from ...core.base import RecommendationQuery, RecommendationSource
from ...core.exceptions import AWSError, ValidationError
from ...core.models import (
    CacheDetails,
    ComputeDetails,
    DatabaseDetails,
    DataWarehouseDetails,
    Recommendation,
    SavingsPlanDetails,
    SearchDetails,
    ServiceType,
    Term,
)
from .client import GLOBAL_REGION, AWSSession
from .ratelimit import RateLimiter

logger = logging.getLogger(__name__)

COST_EXPLORER_SERVICES = {
    ServiceType.RDS: "Amazon Relational Database Service",
    ServiceType.ELASTICACHE: "Amazon ElastiCache",
    ServiceType.EC2: "Amazon Elastic Compute Cloud - Compute",
    ServiceType.OPENSEARCH: "Amazon OpenSearch Service",
    ServiceType.REDSHIFT: "Amazon Redshift",
    ServiceType.MEMORYDB: "Amazon MemoryDB Service",
}

SAVINGS_PLAN_TYPES = {
    "Compute": "COMPUTE_SP",
    "EC2Instance": "EC2_INSTANCE_SP",
    "SageMaker": "SAGEMAKER_SP",
    "Database": "DATABASE_SP",
}

LOOKBACK_PERIODS = {7: "SEVEN_DAYS", 30: "THIRTY_DAYS", 60: "SIXTY_DAYS"}

# Cost Explorer sometimes reports region display names instead of codes
REGION_NAMES = {
    "US East (N. Virginia)": "us-east-1",
    "US East (Ohio)": "us-east-2",
    "US West (N. California)": "us-west-1",
    "US West (Oregon)": "us-west-2",
    "EU (Ireland)": "eu-west-1",
    "EU (Frankfurt)": "eu-central-1",
    "EU (London)": "eu-west-2",
    "EU (Paris)": "eu-west-3",
    "EU (Stockholm)": "eu-north-1",
    "EU (Milan)": "eu-south-1",
    "Europe (Milan)": "eu-south-1",
    "Europe (Spain)": "eu-south-2",
    "Europe (Zurich)": "eu-central-2",
    "Asia Pacific (Singapore)": "ap-southeast-1",
    "Asia Pacific (Sydney)": "ap-southeast-2",
    "Asia Pacific (Jakarta)": "ap-southeast-3",
    "Asia Pacific (Melbourne)": "ap-southeast-4",
    "Asia Pacific (Tokyo)": "ap-northeast-1",
    "Asia Pacific (Seoul)": "ap-northeast-2",
    "Asia Pacific (Osaka)": "ap-northeast-3",
    "Asia Pacific (Mumbai)": "ap-south-1",
    "Asia Pacific (Hyderabad)": "ap-south-2",
    "Asia Pacific (Hong Kong)": "ap-east-1",
    "South America (Sao Paulo)": "sa-east-1",
    "Canada (Central)": "ca-central-1",
    "Middle East (Bahrain)": "me-south-1",
    "Middle East (UAE)": "me-central-1",
    "Africa (Cape Town)": "af-south-1",
    "Israel (Tel Aviv)": "il-central-1",
}


def normalize_region_name(region: Optional[str]) -> str:
    if not region:
        return ""
    return REGION_NAMES.get(region, region)


def _to_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def _parse_quantity(value: Any) -> int:
    if value is None:
        raise ValidationError("recommended quantity not found")
    try:
        return int(float(value))
    except (TypeError, ValueError) as e:
        raise ValidationError(f"failed to parse quantity '{value}'") from e


def filtered_plan_types(include: List[str], exclude: List[str]) -> List[str]:
    """Savings Plan types to query, in a stable order"""
    include_set = {t.lower() for t in include}
    exclude_set = {t.lower() for t in exclude}
    return [
        name for name in SAVINGS_PLAN_TYPES
        if (not include_set or name.lower() in include_set) and name.lower() not in exclude_set
    ]


class CostExplorerRecommendationSource(RecommendationSource):
    """Reads RI and Savings Plans purchase recommendations for every linked account"""

    def __init__(self, session: AWSSession, rate_limiter: Optional[RateLimiter] = None):
        self.session = session
        self.rate_limiter = rate_limiter or RateLimiter()

    @property
    def client(self):
        return self.session.get_client('ce', region=GLOBAL_REGION)

    def get_recommendations(self, query: RecommendationQuery) -> List[Recommendation]:
        if query.service is ServiceType.SAVINGS_PLANS:
            return self._get_savings_plans_recommendations(query)

        request = {
            "Service": COST_EXPLORER_SERVICES[query.service],
            "PaymentOption": query.payment_option.value.replace("-", "_").upper(),
            "TermInYears": "THREE_YEARS" if query.term is Term.THREE_YEARS else "ONE_YEAR",
            "LookbackPeriodInDays": LOOKBACK_PERIODS.get(query.lookback_days, "SEVEN_DAYS"),
            "AccountScope": "LINKED",
        }

        recommendations = []
        while True:
            try:
                response = self.rate_limiter.call(self.client.get_reservation_purchase_recommendation, **request)
            except (ClientError, BotoCoreError) as e:
                raise AWSError(f"Failed to get {query.service.display_name} recommendations: {e}") from e

            for aws_rec in response.get('Recommendations', []):
                for index, detail in enumerate(aws_rec.get('RecommendationDetails', [])):
                    try:
                        recommendations.append(self.parse_recommendation_detail(detail, query))
                    except ValidationError as e:
                        logger.warning(f"Failed to parse recommendation detail {index}: {e}",
                                       extra={'service': query.service.value})

            token = response.get('NextPageToken')
            if not token:
                break
            request['NextPageToken'] = token

        if query.region:
            recommendations = [r for r in recommendations if r.region == query.region]

        logger.info(f"Found {len(recommendations)} {query.service.display_name} recommendations",
                    extra={'service': query.service.value, 'region': query.region or ''})
        return recommendations

    def parse_recommendation_detail(self, detail: Dict[str, Any], query: RecommendationQuery) -> Recommendation:
        """Convert one RecommendationDetails entry. Raises ValidationError when it cannot be parsed"""
        count = _parse_quantity(detail.get('RecommendedNumberOfInstancesToPurchase'))
        instance_details = detail.get('InstanceDetails') or {}
        resource_type, region, details = self._parse_service_details(query.service, instance_details, count)

        return Recommendation(
            service=query.service,
            region=region,
            resource_type=resource_type,
            count=count,
            term=query.term,
            payment_option=query.payment_option,
            account=detail.get('AccountId', ''),
            estimated_savings=_to_float(detail.get('EstimatedMonthlySavingsAmount')),
            savings_percentage=_to_float(detail.get('EstimatedMonthlySavingsPercentage')),
            estimated_cost=_to_float(detail.get('RecurringStandardMonthlyCost')),
            upfront_cost=_to_float(detail.get('UpfrontCost')),
            on_demand_cost=_to_float(detail.get('EstimatedMonthlyOnDemandCost')),
            details=details,
        )

    def _parse_service_details(self, service: ServiceType, instance_details: Dict[str, Any], count: int):
        if service is ServiceType.RDS:
            rds = self._require(instance_details, 'RDSInstanceDetails', service)
            details = DatabaseDetails(
                engine=rds.get('DatabaseEngine', ''),
                multi_az=rds.get('DeploymentOption') == 'Multi-AZ',
            )
            return rds.get('InstanceType', ''), normalize_region_name(rds.get('Region')), details

        if service is ServiceType.ELASTICACHE:
            cache = self._require(instance_details, 'ElastiCacheInstanceDetails', service)
            details = CacheDetails(engine=cache.get('ProductDescription', ''))
            return cache.get('NodeType', ''), normalize_region_name(cache.get('Region')), details

        if service is ServiceType.MEMORYDB:
            memorydb = self._require(instance_details, 'MemoryDBInstanceDetails', service)
            details = CacheDetails(engine="redis")
            return memorydb.get('NodeType', ''), normalize_region_name(memorydb.get('Region')), details

        if service is ServiceType.EC2:
            ec2 = self._require(instance_details, 'EC2InstanceDetails', service)
            details = ComputeDetails(
                platform=ec2.get('Platform', 'Linux/UNIX'),
                tenancy=ec2.get('Tenancy') or 'shared',
                scope='availability-zone' if ec2.get('AvailabilityZone') else 'region',
            )
            return ec2.get('InstanceType', ''), normalize_region_name(ec2.get('Region')), details

        if service is ServiceType.OPENSEARCH:
            search = self._require(instance_details, 'ESInstanceDetails', service)
            resource_type = ''
            if search.get('InstanceClass') and search.get('InstanceSize'):
                resource_type = f"{search['InstanceClass']}.{search['InstanceSize']}"
            return resource_type, normalize_region_name(search.get('Region')), SearchDetails()

        if service is ServiceType.REDSHIFT:
            redshift = self._require(instance_details, 'RedshiftInstanceDetails', service)
            details = DataWarehouseDetails(number_of_nodes=count)
            return redshift.get('NodeType', ''), normalize_region_name(redshift.get('Region')), details

        raise ValidationError(f"unsupported service: {service.value}")

    @staticmethod
    def _require(instance_details: Dict[str, Any], key: str, service: ServiceType) -> Dict[str, Any]:
        value = instance_details.get(key)
        if not value:
            raise ValidationError(f"{service.display_name} instance details not found")
        return value

    def _get_savings_plans_recommendations(self, query: RecommendationQuery) -> List[Recommendation]:
        recommendations = []

        for plan_type in filtered_plan_types(query.include_sp_types, query.exclude_sp_types):
            request = {
                "SavingsPlansType": SAVINGS_PLAN_TYPES[plan_type],
                "PaymentOption": query.payment_option.value.replace("-", "_").upper(),
                "TermInYears": "THREE_YEARS" if query.term is Term.THREE_YEARS else "ONE_YEAR",
                "LookbackPeriodInDays": LOOKBACK_PERIODS.get(query.lookback_days, "SEVEN_DAYS"),
                "AccountScope": "LINKED",
            }
            try:
                response = self.rate_limiter.call(self.client.get_savings_plans_purchase_recommendation, **request)
            except (ClientError, BotoCoreError) as e:
                logger.warning(f"Failed to get {plan_type} Savings Plans recommendations: {e}",
                               extra={'service': ServiceType.SAVINGS_PLANS.value})
                continue

            sp_rec = response.get('SavingsPlansPurchaseRecommendation') or {}
            for detail in sp_rec.get('SavingsPlansPurchaseRecommendationDetails', []):
                recommendations.append(self.parse_savings_plan_detail(detail, query, plan_type))

        return recommendations

    def parse_savings_plan_detail(self, detail: Dict[str, Any], query: RecommendationQuery,
                                  plan_type: str) -> Recommendation:
        return Recommendation(
            service=ServiceType.SAVINGS_PLANS,
            region="",
            resource_type=plan_type,
            count=1,
            term=query.term,
            payment_option=query.payment_option,
            account=detail.get('AccountId', ''),
            estimated_savings=_to_float(detail.get('EstimatedMonthlySavingsAmount')),
            savings_percentage=_to_float(detail.get('EstimatedSavingsPercentage')),
            upfront_cost=_to_float(detail.get('UpfrontCost')),
            details=SavingsPlanDetails(
                plan_type=plan_type,
                hourly_commitment=_to_float(detail.get('HourlyCommitmentToPurchase')),
            ),
        )

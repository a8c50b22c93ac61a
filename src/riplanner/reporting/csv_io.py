"""
CSV import and export of recommendations and purchase results.

The details columns flatten the service-specific details so a plan written by
``write_recommendations_csv`` can be edited by hand and read back.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import pandas as pd

from ..core.exceptions import ValidationError
from ..core.models import (
    CacheDetails,
    ComputeDetails,
    DatabaseDetails,
    DataWarehouseDetails,
    PaymentOption,
    PurchaseResult,
    Recommendation,
    SavingsPlanDetails,
    SearchDetails,
    ServiceCategory,
    ServiceType,
    Term,
)

logger = logging.getLogger(__name__)

RECOMMENDATION_COLUMNS = [
    "Service", "Region", "ResourceType", "Count", "Account", "AccountName",
    "Term", "PaymentOption", "EstimatedSavings", "EstimatedCost", "UpfrontCost",
    "Engine", "MultiAZ", "Platform", "Tenancy", "PlanType", "HourlyCommitment",
]

RESULT_COLUMNS = RECOMMENDATION_COLUMNS + [
    "Success", "CommitmentId", "Error", "Cost", "DryRun", "Timestamp",
]

REQUIRED_COLUMNS = ["Service", "Region", "ResourceType", "Count"]

TRUE_VALUES = {"true", "yes", "y", "1", "multi-az"}


def _float(value: str, column: str) -> float:
    if not value:
        return 0.0
    try:
        return float(value)
    except ValueError as e:
        raise ValueError(f"invalid {column} '{value}'") from e


def _count(value: str, service: ServiceType) -> int:
    if not value:
        if service is ServiceType.SAVINGS_PLANS:
            return 1
        raise ValueError("Count is required")
    try:
        count = int(float(value))
    except ValueError as e:
        raise ValueError(f"invalid Count '{value}'") from e
    if count < 0:
        raise ValueError(f"Count must be >= 0, got {count}")
    return count


def _details(service: ServiceType, row: Dict[str, str], count: int):
    category = service.category
    if category is ServiceCategory.COMPUTE:
        return ComputeDetails(
            platform=row.get("Platform") or "Linux/UNIX",
            tenancy=row.get("Tenancy") or "default",
        )
    if category is ServiceCategory.RELATIONAL_DB:
        return DatabaseDetails(
            engine=row.get("Engine", ""),
            multi_az=row.get("MultiAZ", "").lower() in TRUE_VALUES,
        )
    if category is ServiceCategory.CACHE:
        default_engine = "redis" if service is ServiceType.MEMORYDB else ""
        return CacheDetails(engine=row.get("Engine") or default_engine)
    if category is ServiceCategory.SEARCH:
        return SearchDetails()
    if category is ServiceCategory.DATA_WAREHOUSE:
        return DataWarehouseDetails(number_of_nodes=count)
    return SavingsPlanDetails(
        plan_type=row.get("PlanType") or row.get("ResourceType") or "Compute",
        hourly_commitment=_float(row.get("HourlyCommitment", ""), "HourlyCommitment"),
    )


def parse_row(row: Dict[str, str], term: Term = Term.THREE_YEARS,
              payment_option: PaymentOption = PaymentOption.NO_UPFRONT) -> Recommendation:
    """Build a Recommendation from one CSV row. Raises ValueError on bad values"""
    service = ServiceType.parse(row["Service"])
    count = _count(row["Count"], service)
    return Recommendation(
        service=service,
        region=row.get("Region", ""),
        resource_type=row["ResourceType"],
        count=count,
        term=Term.parse(row["Term"]) if row.get("Term") else term,
        payment_option=PaymentOption.parse(row["PaymentOption"]) if row.get("PaymentOption") else payment_option,
        account=row.get("Account", ""),
        account_name=row.get("AccountName", ""),
        estimated_savings=_float(row.get("EstimatedSavings", ""), "EstimatedSavings"),
        estimated_cost=_float(row.get("EstimatedCost", ""), "EstimatedCost"),
        upfront_cost=_float(row.get("UpfrontCost", ""), "UpfrontCost"),
        details=_details(service, row, count),
    )


def read_recommendations_csv(path: Union[str, Path], term: Term = Term.THREE_YEARS,
                             payment_option: PaymentOption = PaymentOption.NO_UPFRONT) -> List[Recommendation]:
    """
    Read recommendations from ``path``.

    ``term`` and ``payment_option`` apply to rows that leave those columns
    empty. A row that cannot be parsed raises ValidationError naming its line.
    """
    path = Path(path)
    if not path.exists():
        raise ValidationError(f"CSV file not found: {path}")

    try:
        df = pd.read_csv(path, dtype=str, keep_default_na=False)
    except (pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise ValidationError(f"Could not read CSV file {path}: {e}") from e

    df.columns = [str(c).strip() for c in df.columns]
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValidationError(f"CSV file {path} is missing required columns: {', '.join(missing)}")

    recommendations = []
    for index, raw in enumerate(df.to_dict(orient="records")):
        row = {key: str(value).strip() for key, value in raw.items()}
        # header is line 1
        line = index + 2
        try:
            recommendations.append(parse_row(row, term, payment_option))
        except (ValueError, KeyError) as e:
            raise ValidationError(f"Invalid recommendation on row {line} of {path}: {e}") from e

    logger.info(f"Read {len(recommendations)} recommendations from {path}")
    return recommendations


def recommendation_row(rec: Recommendation) -> Dict[str, Any]:
    details = rec.details
    return {
        "Service": rec.service.value,
        "Region": rec.region,
        "ResourceType": rec.resource_type,
        "Count": rec.count,
        "Account": rec.account,
        "AccountName": rec.account_name,
        "Term": rec.term.value,
        "PaymentOption": rec.payment_option.value,
        "EstimatedSavings": round(rec.estimated_savings, 2),
        "EstimatedCost": round(rec.estimated_cost, 2),
        "UpfrontCost": round(rec.upfront_cost, 2),
        "Engine": rec.engine,
        "MultiAZ": details.multi_az if isinstance(details, DatabaseDetails) else "",
        "Platform": details.platform if isinstance(details, ComputeDetails) else "",
        "Tenancy": details.tenancy if isinstance(details, ComputeDetails) else "",
        "PlanType": details.plan_type if isinstance(details, SavingsPlanDetails) else "",
        "HourlyCommitment": details.hourly_commitment if isinstance(details, SavingsPlanDetails) else "",
    }


def _write(rows: List[Dict[str, Any]], columns: List[str], path: Union[str, Path]) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    pd.DataFrame(rows, columns=columns).to_csv(path, index=False)
    return path


def write_recommendations_csv(recommendations: List[Recommendation], path: Union[str, Path]) -> Path:
    path = _write([recommendation_row(rec) for rec in recommendations], RECOMMENDATION_COLUMNS, path)
    logger.info(f"Wrote {len(recommendations)} recommendations to {path}")
    return path


def write_purchase_results_csv(results: List[PurchaseResult], path: Union[str, Path],
                               timestamp_format: Optional[str] = None) -> Path:
    """One row per purchase attempt, recommendation columns first"""
    rows = []
    for result in results:
        row = recommendation_row(result.recommendation)
        row.update({
            "Success": result.success,
            "CommitmentId": result.commitment_id,
            "Error": result.error or "",
            "Cost": round(result.cost, 2),
            "DryRun": result.dry_run,
            "Timestamp": (result.timestamp.strftime(timestamp_format) if timestamp_format
                          else result.timestamp.isoformat()),
        })
        rows.append(row)

    path = _write(rows, RESULT_COLUMNS, path)
    logger.info(f"Wrote {len(results)} purchase results to {path}")
    return path

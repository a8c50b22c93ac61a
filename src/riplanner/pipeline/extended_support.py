"""
Exclusion of database instances whose major version is in extended support.

Such instances are expected to be upgraded or retired, so reserving capacity
for them over a multi-year term would be wasted.
"""

import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from ..core.engines import extract_major_version, lifecycle_key, normalize_engine_name
from ..core.models import (
    DatabaseDetails,
    EngineVersionSupportInfo,
    InstanceEngineVersion,
    Recommendation,
    as_utc,
    utc_now,
)

logger = logging.getLogger(__name__)

STAGE = "extended-support"


class EngineVersionIndex:
    """Running instances by instance class plus lifecycle windows by 'engine:major'"""

    def __init__(self,
                 instances: Optional[Dict[str, List[InstanceEngineVersion]]] = None,
                 lifecycles: Optional[Dict[str, EngineVersionSupportInfo]] = None):
        self.instances: Dict[str, List[InstanceEngineVersion]] = instances or {}
        self.lifecycles: Dict[str, EngineVersionSupportInfo] = lifecycles or {}

    @classmethod
    def build(cls, instances: Iterable[InstanceEngineVersion],
              lifecycles: Iterable[EngineVersionSupportInfo]) -> "EngineVersionIndex":
        by_class: Dict[str, List[InstanceEngineVersion]] = defaultdict(list)
        for instance in instances:
            by_class[instance.instance_class].append(instance)

        by_key = {lifecycle_key(info.engine, info.major_version): info for info in lifecycles}
        return cls(dict(by_class), by_key)

    def __len__(self) -> int:
        return sum(len(v) for v in self.instances.values())

    def is_in_extended_support(self, engine: str, full_version: str,
                               now: Optional[datetime] = None) -> bool:
        return is_in_extended_support(engine, full_version, self.lifecycles, now)

    def matching_instances(self, rec: Recommendation) -> List[InstanceEngineVersion]:
        """Running instances of the same class, engine and region as the recommendation"""
        engine = rec.engine
        return [
            instance for instance in self.instances.get(rec.resource_type, [])
            if instance.region == rec.region and normalize_engine_name(instance.engine) == engine
        ]

    def count_extended_support(self, rec: Recommendation, now: Optional[datetime] = None) -> int:
        count = 0
        for instance in self.matching_instances(rec):
            if self.is_in_extended_support(instance.engine, instance.engine_version, now):
                logger.info(
                    f"{instance.engine} {instance.instance_class} in {instance.region} runs "
                    f"{instance.engine_version}, which is in extended support",
                    extra={'stage': STAGE, 'key': rec.label(), 'region': instance.region}
                )
                count += 1
        return count


def is_in_extended_support(engine: str, full_version: str,
                           lifecycles: Dict[str, EngineVersionSupportInfo],
                           now: Optional[datetime] = None) -> bool:
    """True when ``now`` is on or after the extended support start of the version's major"""
    major = extract_major_version(engine, full_version)
    if not major:
        return False

    info = lifecycles.get(lifecycle_key(engine, major))
    if info is None:
        return False

    start = info.extended_support_start()
    if start is None:
        return False

    now = as_utc(now or utc_now())
    return now >= as_utc(start)


def apply_extended_support_exclusion(recommendations: List[Recommendation], index: EngineVersionIndex,
                                     now: Optional[datetime] = None) -> List[Recommendation]:
    """Subtract running extended-support instances from database recommendations"""
    now = now or utc_now()
    result = []
    for rec in recommendations:
        if not isinstance(rec.details, DatabaseDetails):
            result.append(rec)
            continue

        excluded = index.count_extended_support(rec, now)
        if excluded == 0:
            result.append(rec)
            continue

        new_count = max(0, rec.count - excluded)
        logger.info(
            f"Excluding {excluded} extended support instance(s) from {rec.label()}",
            extra={'stage': STAGE, 'key': rec.label(), 'before': rec.count, 'after': new_count}
        )
        if new_count > 0:
            result.append(rec.with_count(new_count))

    return result

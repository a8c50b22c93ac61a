"""
RDS engine-version collector.

Builds the inputs of the extended-support exclusion: every running DB
instance grouped by instance class, and the lifecycle windows of each
engine major version.
"""

import logging
import threading
from collections import defaultdict
from typing import Callable, Dict, List, Optional, Union

from ..core.base import BaseCollector, CollectorConfig, InventorySource, LifecycleSource
from ..core.exceptions import DataCollectionError
from ..core.logging import get_performance_logger
from ..core.models import EngineVersionSupportInfo, InstanceEngineVersion
from ..pipeline.extended_support import EngineVersionIndex
from ..providers.aws.inventory import LIFECYCLE_ENGINES

logger = logging.getLogger(__name__)


class EngineVersionCollector(BaseCollector):
    """Collects running instances across regions in parallel, then lifecycles per engine family"""

    def __init__(self, inventory: InventorySource, lifecycle: LifecycleSource,
                 regions: Union[List[str], Callable[[], List[str]]],
                 config: Optional[CollectorConfig] = None,
                 cancel_event: Optional[threading.Event] = None,
                 engines: Optional[List[str]] = None):
        super().__init__(config, cancel_event)
        self.inventory = inventory
        self.lifecycle = lifecycle
        self.regions = regions
        self.engines = engines or list(LIFECYCLE_ENGINES)
        self.perf = get_performance_logger()

    def resolve_regions(self) -> List[str]:
        if callable(self.regions):
            try:
                return list(self.regions())
            except Exception as e:
                raise DataCollectionError(f"Could not list regions for inventory: {e}") from e
        return list(self.regions)

    def collect_instances(self) -> Dict[str, List[InstanceEngineVersion]]:
        regions = self.resolve_regions()
        instances: Dict[str, List[InstanceEngineVersion]] = defaultdict(list)

        def worker(region: str):
            return lambda cancel_event: self.inventory.list_running_instances(region, cancel_event)

        def merge(region: str, found: List[InstanceEngineVersion]) -> None:
            for instance in found:
                instances[instance.instance_class].append(instance)
            logger.debug(f"Found {len(found)} DB instances in {region}", extra={'region': region})

        with self.perf.timer("rds_inventory", regions=len(regions)):
            succeeded = self.collect_parallel({region: worker(region) for region in regions}, merge)

        if regions and succeeded == 0:
            raise DataCollectionError("RDS inventory failed in every region")

        logger.info(f"Found {sum(len(v) for v in instances.values())} running DB instances "
                    f"across {succeeded} of {len(regions)} regions")
        return dict(instances)

    def collect_lifecycles(self) -> List[EngineVersionSupportInfo]:
        infos: List[EngineVersionSupportInfo] = []
        failures = 0
        for engine in self.engines:
            if self.cancelled:
                break
            try:
                infos.extend(self.lifecycle.get_major_version_lifecycles(engine))
            except Exception as e:
                failures += 1
                logger.warning(f"Failed to describe major engine versions for {engine}: {e}")

        if self.engines and failures == len(self.engines):
            raise DataCollectionError("Engine lifecycle lookup failed for every engine")
        return infos

    def collect(self) -> EngineVersionIndex:
        """Both maps, or DataCollectionError when either lookup is unavailable"""
        instances = self.collect_instances()
        lifecycles = self.collect_lifecycles()
        index = EngineVersionIndex.build(
            (i for group in instances.values() for i in group),
            lifecycles,
        )
        logger.info(f"Loaded {len(index.lifecycles)} engine lifecycle entries")
        return index

"""RDS running-instance inventory and engine lifecycle lookups"""

import logging
import threading
from typing import List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from ...core.base import InventorySource, LifecycleSource
from ...core.exceptions import AWSError
from ...core.models import EngineLifecycle, EngineVersionSupportInfo, InstanceEngineVersion
from .client import GLOBAL_REGION, AWSSession

logger = logging.getLogger(__name__)

# Engine families that publish open source RDS lifecycles
LIFECYCLE_ENGINES = ["mysql", "postgres", "aurora-mysql", "aurora-postgresql"]


class RDSInventorySource(InventorySource):
    """Lists DB instances of one region, draining every page"""

    def __init__(self, session: AWSSession):
        self.session = session

    def list_running_instances(self, region: str,
                               cancel_event: Optional[threading.Event] = None) -> List[InstanceEngineVersion]:
        instances = []
        try:
            client = self.session.get_client('rds', region=region)
            for page in client.get_paginator('describe_db_instances').paginate():
                for db in page.get('DBInstances', []):
                    instances.append(InstanceEngineVersion(
                        instance_class=db.get('DBInstanceClass', ''),
                        engine=db.get('Engine', ''),
                        engine_version=db.get('EngineVersion', ''),
                        region=region,
                        instance_id=db.get('DBInstanceIdentifier', ''),
                    ))
                if cancel_event is not None and cancel_event.is_set():
                    logger.info(f"Inventory of {region} cancelled after {len(instances)} instances",
                                extra={'region': region})
                    break
        except (ClientError, BotoCoreError) as e:
            raise AWSError(f"Failed to describe RDS instances in {region}: {e}") from e
        return instances


class RDSLifecycleSource(LifecycleSource):
    """Support windows from describe_db_major_engine_versions"""

    def __init__(self, session: AWSSession, region: str = GLOBAL_REGION):
        self.session = session
        self.region = region

    def get_major_version_lifecycles(self, engine: str) -> List[EngineVersionSupportInfo]:
        request = {'Engine': engine}
        infos = []
        try:
            client = self.session.get_client('rds', region=self.region)
            while True:
                response = client.describe_db_major_engine_versions(**request)
                for version in response.get('DBMajorEngineVersions', []):
                    infos.append(EngineVersionSupportInfo(
                        engine=version.get('Engine', engine),
                        major_version=version.get('MajorEngineVersion', ''),
                        lifecycles=[
                            EngineLifecycle(
                                name=lc.get('LifecycleSupportName', ''),
                                start_date=lc.get('LifecycleSupportStartDate'),
                                end_date=lc.get('LifecycleSupportEndDate'),
                            )
                            for lc in version.get('SupportedEngineLifecycles', [])
                        ],
                    ))
                marker = response.get('Marker')
                if not marker:
                    break
                request['Marker'] = marker
        except (ClientError, BotoCoreError) as e:
            raise AWSError(f"Failed to describe major engine versions for {engine}: {e}") from e
        return infos

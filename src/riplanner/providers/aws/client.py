import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError
import logging
import threading
from typing import Dict, List, Any, Optional

from ...core.exceptions import AWSError

# Cost Explorer, Organizations and Savings Plans are global endpoints
GLOBAL_REGION = "us-east-1"

# Transport-level retries. Throttling on the planner's own call sites is retried by RateLimiter
RETRY_CONFIG = Config(retries={'max_attempts': 3, 'mode': 'adaptive'})


class AWSSession:
    """boto3 session with a per-(service, region) client cache"""

    def __init__(self, profile: Optional[str] = None, session: Optional[boto3.Session] = None):
        self.profile = profile
        self.session = session
        self.clients: Dict[str, Any] = {}
        self._lock = threading.Lock()
        self.logger = logging.getLogger(__name__)

    def authenticate(self) -> str:
        """Create the session and return the caller's account id"""
        try:
            if self.session is None:
                if self.profile:
                    self.session = boto3.Session(profile_name=self.profile)
                else:
                    self.session = boto3.Session()

            identity = self.get_client('sts', region=GLOBAL_REGION).get_caller_identity()
            self.logger.info(f"Authenticated as: {identity['Arn']}")
            return identity['Account']

        except NoCredentialsError as e:
            raise AWSError("No AWS credentials found") from e
        except (ClientError, BotoCoreError) as e:
            raise AWSError(f"AWS authentication failed: {e}") from e

    def get_client(self, service: str, region: Optional[str] = None):
        """Get or create a boto3 client for a service"""
        if self.session is None:
            self.session = boto3.Session(profile_name=self.profile) if self.profile else boto3.Session()

        region = region or self.session.region_name or GLOBAL_REGION
        client_key = f"{service}_{region}"

        with self._lock:
            if client_key not in self.clients:
                self.clients[client_key] = self.session.client(service, region_name=region, config=RETRY_CONFIG)
            return self.clients[client_key]

    def get_regions(self) -> List[str]:
        """Get list of enabled AWS regions"""
        try:
            ec2_client = self.get_client('ec2', region=GLOBAL_REGION)
            response = ec2_client.describe_regions()
            return sorted(region['RegionName'] for region in response['Regions'])
        except (ClientError, BotoCoreError) as e:
            raise AWSError(f"Failed to describe regions: {e}") from e


class AccountAliasCache:
    """Resolves account ids to Organizations account names, caching every answer"""

    def __init__(self, session: AWSSession):
        self.session = session
        self.cache: Dict[str, str] = {}
        self._lock = threading.Lock()
        self.logger = logging.getLogger(__name__)

    def get_account_alias(self, account_id: str) -> str:
        """Friendly name of the account, or the id itself when it cannot be resolved"""
        if not account_id:
            return ""

        with self._lock:
            if account_id in self.cache:
                return self.cache[account_id]

        alias = self._fetch_account_alias(account_id)

        with self._lock:
            self.cache[account_id] = alias
        return alias

    def _fetch_account_alias(self, account_id: str) -> str:
        try:
            client = self.session.get_client('organizations', region=GLOBAL_REGION)
            response = client.describe_account(AccountId=account_id)
        except (ClientError, BotoCoreError) as e:
            # Not the management account, missing permission, or no organization
            self.logger.info(f"Could not fetch account alias for {account_id}: {e} (using ID)")
            return account_id

        return response.get('Account', {}).get('Name') or account_id

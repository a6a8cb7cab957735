"""
Salesforce extractor: SOQL query results -> CSV in a pipeline source prefix
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import httpx

from core.exceptions import AuthenticationError, ConfigurationError
from ingestion.extractors.base import BaseExtractor

logger = logging.getLogger(__name__)

TOKEN_LIFETIME_SECONDS = 3600
TOKEN_REFRESH_MARGIN_SECONDS = 60


@dataclass(frozen=True)
class SalesforceQuery:
    """SOQL query plus the mapping of its records onto pipeline CSV columns"""

    name: str
    soql: str
    map_record: Callable[[Dict[str, Any]], Dict[str, Any]]
    env_key: str
    file_prefix: str


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _related(record: Dict[str, Any], relation: str, field: str) -> str:
    return _text((record.get(relation) or {}).get(field))


def map_dental_group(record: Dict[str, Any]) -> Dict[str, Any]:
    billing = record.get("Centralized_Billing__c")
    return {
        "dentalgroupid": _text(record.get("Corporate_ID__c")),
        "name": _text(record.get("Name")),
        "address": _text(record.get("ShippingStreet")),
        "address2": "",
        "city": _text(record.get("ShippingCity")),
        "state": _text(record.get("ShippingState")),
        "zip": _text(record.get("ShippingPostalCode")),
        "accounttype": _text(record.get("Practice_Type__c")),
        "centralizedbilling": "" if billing is None else str(billing).lower(),
        "saleschannel": _text(record.get("Sales_Channel__c")),
        "salesrep": _related(record, "Owner", "Name"),
    }


def map_dental_practice(record: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "practiceid": _text(record.get("Practice_ID__c")),
        "dentalgroupid": _related(record, "Parent", "Corporate_ID__c"),
        "dentalgroupname": _related(record, "Parent", "Name"),
        "address": _text(record.get("ShippingStreet")),
        "address2": "",
        "city": _text(record.get("ShippingCity")),
        "state": _text(record.get("ShippingState")),
        "zip": _text(record.get("ShippingPostalCode")),
        "phone": _text(record.get("Phone")),
        "clinicalemail": _text(record.get("Clinical_Email__c")),
        "billingemail": _text(record.get("Billing_Email__c")),
        "incisiveemail": _text(record.get("Incisive_Email__c")),
        "feeschedule": _text(record.get("Fee_Schedule__c")),
        "status": _text(record.get("Status__c")),
    }


DENTAL_GROUPS_QUERY = SalesforceQuery(
    name="dental-groups",
    soql=(
        "SELECT Corporate_ID__c, Name, ShippingStreet, ShippingCity, ShippingState, "
        "ShippingPostalCode, Practice_Type__c, Centralized_Billing__c, Sales_Channel__c, Owner.Name "
        "FROM Account WHERE Corporate_ID__c != null ORDER BY Name"
    ),
    map_record=map_dental_group,
    env_key="DENTAL_GROUPS_SOURCEPATH",
    file_prefix="dental-groups",
)

DENTAL_PRACTICES_QUERY = SalesforceQuery(
    name="dental-practices",
    soql=(
        "SELECT Id, Practice_ID__c, Parent.Corporate_ID__c, Parent.Name, ShippingStreet, "
        "ShippingCity, ShippingState, ShippingPostalCode, Phone, Clinical_Email__c, "
        "Billing_Email__c, Incisive_Email__c, Fee_Schedule__c, Status__c "
        "FROM Account WHERE Corporate_ID__c = null AND Parent.Corporate_ID__c != null ORDER BY Name"
    ),
    map_record=map_dental_practice,
    env_key="DENTAL_PRACTICES_SOURCEPATH",
    file_prefix="dental-practices",
)

QUERIES = {q.name: q for q in (DENTAL_GROUPS_QUERY, DENTAL_PRACTICES_QUERY)}


class SalesforceExtractor(BaseExtractor):
    """
    Runs one registered SOQL query and uploads the mapped records.

    Authenticates with an OAuth2 token request against ``SF_LOGIN_URL``,
    caches the token for its lifetime and follows ``nextRecordsUrl`` until
    the query reports ``done``.
    """

    def __init__(self, query: SalesforceQuery, storage, config=None, **kwargs):
        super().__init__(storage, config=config, **kwargs)
        self.query = query
        self.name = query.name
        self.env_key = query.env_key
        self.file_prefix = query.file_prefix

        self.access_token: Optional[str] = None
        self.instance_url: Optional[str] = None
        self.token_expiry: float = 0.0

    def is_authenticated(self) -> bool:
        return bool(self.access_token) and time.time() < self.token_expiry - TOKEN_REFRESH_MARGIN_SECONDS

    async def authenticate(self, client: httpx.AsyncClient) -> None:
        if not self.config.SF_CLIENT_ID or not self.config.SF_CLIENT_SECRET:
            raise ConfigurationError(
                "Salesforce credentials not configured",
                context={"setting": "SF_CLIENT_ID/SF_CLIENT_SECRET", "extractor": self.name},
            )

        token_url = f"{self.config.SF_LOGIN_URL.rstrip('/')}/services/oauth2/token"
        logger.info(f"SalesforceExtractor: Authenticating to {self.config.SF_LOGIN_URL}")

        response = await self._request_with_retry(
            client,
            "POST",
            token_url,
            data={
                "grant_type": "client_credentials",
                "client_id": self.config.SF_CLIENT_ID,
                "client_secret": self.config.SF_CLIENT_SECRET,
            },
        )
        data = self._json(response)

        if not data.get("access_token") or not data.get("instance_url"):
            raise AuthenticationError(
                "Salesforce token response missing access_token or instance_url",
                context={"extractor": self.name, "api_url": token_url},
            )

        self.access_token = data["access_token"]
        self.instance_url = data["instance_url"].rstrip("/")
        self.token_expiry = time.time() + TOKEN_LIFETIME_SECONDS
        logger.info(f"SalesforceExtractor: Authentication successful ({self.instance_url})")

    async def run_query(self, client: httpx.AsyncClient, soql: str) -> List[Dict[str, Any]]:
        """Execute a SOQL query, following pagination to the last batch"""
        if not self.is_authenticated():
            await self.authenticate(client)

        headers = {"Authorization": f"Bearer {self.access_token}"}
        url = f"{self.instance_url}/services/data/v{self.config.SF_API_VERSION}/query"
        params: Optional[Dict[str, str]] = {"q": soql}
        records: List[Dict[str, Any]] = []

        while url:
            response = await self._request_with_retry(client, "GET", url, headers=headers, params=params)
            data = self._json(response)
            batch = data.get("records", [])
            records.extend(batch)
            logger.info(f"SalesforceExtractor: Query batch retrieved ({len(batch)}, total {len(records)})")

            next_url = data.get("nextRecordsUrl")
            if data.get("done", True) or not next_url:
                break
            url = f"{self.instance_url}{next_url}"
            params = None

        return records

    async def fetch_rows(self, client: httpx.AsyncClient) -> List[Dict[str, Any]]:
        records = await self.run_query(client, self.query.soql)
        return [self.query.map_record(record) for record in records]

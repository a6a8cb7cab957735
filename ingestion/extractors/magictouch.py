"""
MagicTouch extractor: lab cases -> orders CSV, one row per case product
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import httpx

from core.exceptions import AuthenticationError, ConfigurationError
from ingestion.extractors.base import BaseExtractor
from ingestion.transformers.values import parse_date

logger = logging.getLogger(__name__)

MAGICTOUCH_LAB_ID = 2
CUSTOMER_TYPE = "Incisive"
INCREMENTAL_DAYS = 7


def _format_date(value: Any) -> str:
    parsed = parse_date(value)
    if parsed is None:
        return "" if value is None else str(value)
    return parsed.isoformat()


def _items(data: Any) -> List[Dict[str, Any]]:
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        return data.get("data", data.get("results", []))
    return []


class MagicTouchExtractor(BaseExtractor):
    """
    Pulls cases and customers from the MagicTouch lab API.

    ``EXPORT_MODE`` INC fetches cases from the last seven days, FULL
    fetches all. Output goes to the orders pipeline's source prefix.
    """

    name = "magictouch-orders"
    env_key = "SOURCEPATH"
    file_prefix = "magictouch-orders"

    def __init__(self, storage, config=None, now: Optional[datetime] = None, **kwargs):
        super().__init__(storage, config=config, **kwargs)
        self.now = now
        self.token: Optional[str] = None

    @property
    def base_url(self) -> str:
        if not self.config.MAGICTOUCH_BASE_URL:
            raise ConfigurationError(
                "MagicTouch base URL not configured",
                context={"setting": "MAGICTOUCH_BASE_URL", "extractor": self.name},
            )
        return self.config.MAGICTOUCH_BASE_URL.rstrip("/")

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"}

    async def authenticate(self, client: httpx.AsyncClient) -> None:
        if not self.config.MAGICTOUCH_USER_ID or not self.config.MAGICTOUCH_PASSWORD:
            raise ConfigurationError(
                "MagicTouch credentials not configured",
                context={"setting": "MAGICTOUCH_USER_ID/MAGICTOUCH_PASSWORD", "extractor": self.name},
            )

        response = await self._request_with_retry(
            client,
            "POST",
            f"{self.base_url}/api/auth/login",
            json={"userId": self.config.MAGICTOUCH_USER_ID, "password": self.config.MAGICTOUCH_PASSWORD},
        )
        self.token = self._json(response).get("token")
        if not self.token:
            raise AuthenticationError(
                "MagicTouch login response has no token",
                context={"extractor": self.name},
            )
        logger.info("MagicTouchExtractor: Authentication successful")

    def case_params(self) -> Dict[str, str]:
        params = {"customerType": CUSTOMER_TYPE}
        if self.config.EXPORT_MODE.upper() != "FULL":
            now = self.now or datetime.now(timezone.utc)
            params["fromDate"] = (now - timedelta(days=INCREMENTAL_DAYS)).date().isoformat()
        return params

    async def fetch_cases(self, client: httpx.AsyncClient) -> List[Dict[str, Any]]:
        response = await self._request_with_retry(
            client, "GET", f"{self.base_url}/api/cases", headers=self._headers(), params=self.case_params()
        )
        return _items(self._json(response))

    async def fetch_customers(self, client: httpx.AsyncClient) -> Dict[str, Dict[str, Any]]:
        """Customers keyed by customerID, used for phone lookup"""
        response = await self._request_with_retry(
            client,
            "GET",
            f"{self.base_url}/api/customers",
            headers=self._headers(),
            params={"customerType": CUSTOMER_TYPE},
        )
        return {str(c.get("customerID")): c for c in _items(self._json(response))}

    @staticmethod
    def map_cases_to_rows(cases: List[Dict[str, Any]], customers: Dict[str, Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Flatten cases into orders rows; a case without products still yields one row"""
        rows: List[Dict[str, Any]] = []

        for case in cases:
            customer = customers.get(str(case.get("customerID")), {})
            address = ", ".join(
                str(part) for part in (
                    case.get("shipAddress1"),
                    case.get("shipCity"),
                    case.get("shipState"),
                    case.get("shipZipCode"),
                ) if part
            )
            patient = " ".join(str(p) for p in (case.get("patientFirst"), case.get("patientLast")) if p)

            base_row = {
                "labid": MAGICTOUCH_LAB_ID,
                "submissiondate": _format_date(case.get("submissionDate")),
                "shippingdate": _format_date(case.get("shipDate")),
                "casedate": _format_date(case.get("dateIn")),
                "caseid": case.get("caseNumber"),
                "patientname": patient,
                "customerid": case.get("customerID"),
                "customername": case.get("doctorName") or customer.get("customerName") or "",
                "address": address,
                "phonenumber": customer.get("officePhone") or "",
                "casestatus": case.get("status"),
                "holdreason": case.get("holdReason") or "",
                "estimatecompletedate": _format_date(case.get("estimatedDeliveryDate")),
                "requestedreturndate": _format_date(case.get("dueDate")),
                "trackingnumber": case.get("trackingNumber") or "",
                "estimatedshipdate": _format_date(case.get("dueDate")),
                "holddate": _format_date(case.get("holdDate")),
                "deliverystatus": "",
                "notes": case.get("workOrderNotes") or "",
                "onhold": "Yes" if case.get("status") == "On Hold" else "No",
                "shade": case.get("shade") or "",
                "mold": case.get("mold") or "",
                "doctorpreferences": case.get("customerPreferences") or "",
                "productpreferences": case.get("productPreferences") or "",
                "comments": case.get("webComments") or "",
                "casetotal": case.get("totalCharge") or 0,
            }

            products = case.get("caseProducts") or []
            if not products:
                rows.append({
                    **base_row,
                    "productid": "",
                    "productdescription": "",
                    "quantity": "",
                    "productprice": "",
                })
                continue

            for product in products:
                rows.append({
                    **base_row,
                    "productid": product.get("productID") or "",
                    "productdescription": product.get("invoiceDescription") or "",
                    "quantity": product.get("quantity") or 0,
                    "productprice": product.get("unitPrice") or 0,
                })

        return rows

    async def fetch_rows(self, client: httpx.AsyncClient) -> List[Dict[str, Any]]:
        logger.info(f"MagicTouchExtractor: export mode {self.config.EXPORT_MODE}")
        await self.authenticate(client)

        cases = await self.fetch_cases(client)
        logger.info(f"MagicTouchExtractor: {len(cases)} cases fetched")
        if not cases:
            return []

        customers = await self.fetch_customers(client)
        logger.info(f"MagicTouchExtractor: {len(customers)} customers fetched")
        return self.map_cases_to_rows(cases, customers)

"""Client for the external customer-management API.

Used only as a best-effort source of customer identity: every failure
(network, HTTP status, bad JSON) is logged and reported as "unknown
customer" so order flows never depend on the API being up.
"""

from dataclasses import dataclass

import requests
import structlog

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CustomerProfile:
    customer_id: str
    username: str
    name: str = ""
    surname: str = ""
    email: str = ""

    @property
    def display_name(self) -> str:
        full = f"{self.name} {self.surname}".strip()
        return full or self.username

    @classmethod
    def from_api(cls, record: dict) -> "CustomerProfile":
        # The API has answered in both camelCase and PascalCase over time
        def pick(*keys):
            for key in keys:
                if record.get(key) not in (None, ""):
                    return str(record[key])
            return ""

        return cls(
            customer_id=pick("id", "Id", "customerId", "CustomerId", "rowKey", "RowKey"),
            username=pick("username", "Username"),
            name=pick("name", "Name"),
            surname=pick("surname", "Surname"),
            email=pick("email", "Email"),
        )


class CustomerDirectory:
    def __init__(self, base_url: str | None = None, timeout: float = 5.0, session: requests.Session | None = None):
        self.base_url = base_url.rstrip("/") if base_url else None
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def enabled(self) -> bool:
        return self.base_url is not None

    def _get_json(self, path: str):
        response = self.session.get(f"{self.base_url}/{path}", timeout=self.timeout)
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return response.json()

    def get(self, customer_id: str) -> CustomerProfile | None:
        if not self.enabled:
            return None
        try:
            record = self._get_json(f"customers/{customer_id}")
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Customer lookup failed", customer_id=customer_id, error=str(exc))
            return None
        return CustomerProfile.from_api(record) if isinstance(record, dict) else None

    def find_by_username(self, username: str) -> CustomerProfile | None:
        """Match ``username`` case-insensitively against the API's customer list."""
        if not self.enabled or not username:
            return None
        try:
            records = self._get_json("customers") or []
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Customer lookup failed", username=username, error=str(exc))
            return None

        for record in records:
            if not isinstance(record, dict):
                continue
            profile = CustomerProfile.from_api(record)
            if profile.username.lower() == username.lower():
                return profile
        return None

"""
Host-user lookup used to auto-provision enrollments.

The gateway only knows device PINs. When a PIN has no enrollment yet, it asks
an ``EmployeeResolver`` whether the host application has a user whose
``employee_field`` (default ``employee_code``) equals that PIN.
"""

from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional

import requests

from iclock_gateway.shared.logger import app_logger


class EmployeeResolver(ABC):
    """Resolve a host user id from an employee-identifying field"""

    @abstractmethod
    def resolve(self, field_name: str, value: str) -> Optional[str]:
        raise NotImplementedError


class NullEmployeeResolver(EmployeeResolver):
    """Default: the host application exposes no users, nothing is auto-provisioned"""

    def resolve(self, field_name: str, value: str) -> Optional[str]:
        return None


class StaticEmployeeResolver(EmployeeResolver):
    """In-memory mapping, keyed by field value"""

    def __init__(self, users: Dict[str, str], field_name: str = "employee_code"):
        self.users = dict(users)
        self.field_name = field_name

    def resolve(self, field_name: str, value: str) -> Optional[str]:
        if field_name != self.field_name:
            return None
        return self.users.get(value)


class CallableEmployeeResolver(EmployeeResolver):
    """Adapter for a plain ``fn(field_name, value) -> user id`` function"""

    def __init__(self, fn: Callable[[str, str], Optional[str]]):
        self.fn = fn

    def resolve(self, field_name: str, value: str) -> Optional[str]:
        user_id = self.fn(field_name, value)
        return None if user_id is None else str(user_id)


class ExternalApiEmployeeResolver(EmployeeResolver):
    """
    Look the user up on the host application's HTTP API.

    ``GET {base_url}/users/lookup?field=<field_name>&value=<value>`` with an
    ``x-api-key`` header; a 2xx JSON body with an ``id`` (or ``data.id``)
    resolves the user, a 404 means no such user.
    """

    def __init__(self, base_url: str, api_key: str, timeout: int = 10):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout

    def resolve(self, field_name: str, value: str) -> Optional[str]:
        url = f"{self.base_url}/users/lookup"
        headers = {"x-api-key": self.api_key, "Accept": "application/json"}

        app_logger.info(
            f"External API Request -> GET {url} field={field_name} value={value}"
        )

        try:
            response = requests.get(
                url,
                params={"field": field_name, "value": value},
                headers=headers,
                timeout=self.timeout,
            )
            if response.status_code == 404:
                return None
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            app_logger.error(f"HTTP error during user lookup for {field_name}={value}: {e}")
            return None
        except ValueError as e:
            app_logger.error(f"Invalid JSON from user lookup for {field_name}={value}: {e}")
            return None

        if isinstance(data, dict) and isinstance(data.get("data"), dict):
            data = data["data"]

        user_id = data.get("id") if isinstance(data, dict) else None
        return None if user_id is None else str(user_id)


def build_employee_resolver(config_mapping) -> EmployeeResolver:
    """Pick the HTTP resolver when EXTERNAL_API_URL/KEY are configured"""
    base_url = config_mapping.get("EXTERNAL_API_URL")
    api_key = config_mapping.get("EXTERNAL_API_KEY")
    if base_url and api_key:
        return ExternalApiEmployeeResolver(base_url, api_key)
    return NullEmployeeResolver()

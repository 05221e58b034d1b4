"""
HTTP client for the Furniture Store API

One client, one retry policy. Idempotent requests (GET, PUT, DELETE) are
retried on transport errors and on 502/503/504 with exponential backoff;
POST is sent exactly once. Failures raise ApiError carrying the server's
status code and detail. Nothing is ever substituted for a failed response.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

import httpx

logger = logging.getLogger(__name__)

IDEMPOTENT_METHODS = frozenset({"GET", "PUT", "DELETE", "HEAD", "OPTIONS"})


class ApiError(Exception):
    def __init__(self, status_code: Optional[int], detail: str):
        super().__init__(f"{status_code}: {detail}" if status_code else detail)
        self.status_code = status_code
        self.detail = detail


@dataclass(frozen=True)
class RetryPolicy:
    attempts: int = 3
    backoff: float = 0.5
    max_backoff: float = 5.0
    timeout: float = 10.0
    retry_statuses: Tuple[int, ...] = (502, 503, 504)

    def __post_init__(self):
        if self.attempts < 1:
            raise ValueError(f"attempts must be at least 1, got {self.attempts}")

    def retryable(self, error: "ApiError") -> bool:
        """Transport failures and the configured statuses are worth another try."""
        return error.status_code is None or error.status_code in self.retry_statuses

    def delay(self, attempt: int) -> float:
        """Seconds to wait after the given (1-based) failed attempt."""
        return min(self.backoff * (2 ** (attempt - 1)), self.max_backoff)


class StoreClient:
    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        policy: Optional[RetryPolicy] = None,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.policy = policy or RetryPolicy()
        self.token = token
        self._sleep = sleep
        self._http = httpx.Client(base_url=base_url.rstrip("/"), timeout=self.policy.timeout, transport=transport)

    def close(self) -> None:
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def _headers(self) -> Dict[str, str]:
        if self.token:
            return {"Authorization": f"Bearer {self.token}"}
        return {}

    def request(self, method: str, path: str, **kwargs) -> Any:
        method = method.upper()
        attempts = self.policy.attempts if method in IDEMPOTENT_METHODS else 1
        last_error: Optional[ApiError] = None

        for attempt in range(1, attempts + 1):
            try:
                response = self._http.request(method, path, headers=self._headers(), **kwargs)
            except httpx.TransportError as e:
                last_error = ApiError(None, f"{type(e).__name__}: {e}")
            else:
                if response.is_success:
                    return response.json() if response.content else None
                last_error = ApiError(response.status_code, _detail(response))
                if not self.policy.retryable(last_error):
                    raise last_error

            if attempt < attempts:
                wait = self.policy.delay(attempt)
                logger.warning("%s %s failed (%s), retry %d/%d in %.2fs",
                               method, path, last_error, attempt, attempts - 1, wait)
                self._sleep(wait)

        raise last_error

    def get(self, path: str, **params) -> Any:
        return self.request("GET", path, params={k: v for k, v in params.items() if v is not None})

    def post(self, path: str, json: Optional[dict] = None) -> Any:
        return self.request("POST", path, json=json)

    def put(self, path: str, json: Optional[dict] = None) -> Any:
        return self.request("PUT", path, json=json)

    def delete(self, path: str) -> Any:
        return self.request("DELETE", path)

    # Auth
    def login(self, email: str, password: str) -> dict:
        data = self.post("/auth/login", {"email": email, "password": password})
        self.token = data["token"]
        return data

    def register(self, name: str, email: str, password: str, **extra) -> dict:
        data = self.post("/auth/register", {"name": name, "email": email, "password": password, **extra})
        self.token = data["token"]
        return data

    def me(self) -> dict:
        return self.get("/auth/me")

    # Catalogue
    def list_products(self, **filters) -> dict:
        return self.get("/products", **filters)

    def get_product(self, product_id: str) -> dict:
        return self.get(f"/products/{product_id}")

    def create_product(self, data: dict) -> dict:
        return self.post("/products", data)

    def update_product(self, product_id: str, changes: dict) -> dict:
        return self.put(f"/products/{product_id}", changes)

    def delete_product(self, product_id: str) -> dict:
        return self.delete(f"/products/{product_id}")

    def list_categories(self) -> list:
        return self.get("/categories")

    def create_category(self, data: dict) -> dict:
        return self.post("/categories", data)

    def update_category(self, category_id: str, changes: dict) -> dict:
        return self.put(f"/categories/{category_id}", changes)

    def delete_category(self, category_id: str) -> dict:
        return self.delete(f"/categories/{category_id}")

    # Orders and payments
    def create_order(self, items: list, shipping_address: dict, payment_method: str = "cod") -> dict:
        return self.post("/orders", {"items": items, "shipping_address": shipping_address, "payment_method": payment_method})

    def my_orders(self) -> list:
        return self.get("/orders/mine")

    def get_order(self, order_id: str) -> dict:
        return self.get(f"/orders/{order_id}")

    def update_order_status(self, order_id: str, status: str) -> dict:
        return self.put(f"/orders/{order_id}/status", {"status": status})

    def get_payment_settings(self) -> dict:
        return self.get("/payment-settings")

    def create_payment_request(self, order_id: str, payment_method: str, **extra) -> dict:
        return self.post("/payment-requests", {"order_id": order_id, "payment_method": payment_method, **extra})

    def update_payment_request_status(self, request_id: str, status: str, notes: Optional[str] = None) -> dict:
        body = {"status": status}
        if notes is not None:
            body["notes"] = notes
        return self.put(f"/payment-requests/{request_id}/status", body)

    def send_contact_message(self, data: dict) -> dict:
        return self.post("/contact", data)


def _detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict) and "detail" in body:
        detail = body["detail"]
        return detail if isinstance(detail, str) else str(detail)
    return str(body)

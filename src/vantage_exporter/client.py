"""Vantage public API client with OAuth2 client-credentials auth."""

import logging
import os
import time
from typing import Any, Dict, List, Optional

import httpx
from pydantic import TypeAdapter, ValidationError

from .errors import (
    VantageDecodeError,
    VantageStatusError,
    VantageTransportError,
)
from .metrics import upstream_request_duration_seconds, upstream_requests_total
from .schemas import Skill, Transaction, TransactionDetail, TransactionPage


logger = logging.getLogger(__name__)

TOKEN_PATH = "/auth2/connect/token"
SKILLS_PATH = "/api/publicapi/v1/skills"
ACTIVE_TRANSACTIONS_PATH = "/api/publicapi/v1/transactions/active"
COMPLETED_TRANSACTIONS_PATH = "/api/publicapi/v1/transactions/completed"
TRANSACTION_PATH = "/api/publicapi/v1/transactions/{transaction_id}"

TOKEN_SCOPE = "global.wildcard openid permissions"
PAGE_LIMIT = 100
LIST_TIMEOUT = 30.0
DETAIL_TIMEOUT = 10.0

_skills_adapter = TypeAdapter(List[Skill])


class VantageClient:
    """Blocking Vantage API client.

    A fresh bearer token is requested for every API call; tokens are never
    cached. The underlying ``httpx.Client`` is shared and safe to use from
    the server's worker threads.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = (
            base_url or os.getenv("VANTAGE_BASE_URL", "https://vantage-us.abbyy.com")
        ).rstrip("/")
        self.client_id = (
            client_id if client_id is not None else os.getenv("VANTAGE_CLIENT_ID", "")
        )
        self.client_secret = (
            client_secret
            if client_secret is not None
            else os.getenv("VANTAGE_CLIENT_SECRET", "")
        )

        self.client = httpx.Client(
            transport=transport,
            timeout=LIST_TIMEOUT,
            headers={
                "Accept": "application/json",
                "User-Agent": "vantage-exporter/1.0",
            },
        )

    def close(self):
        """Close the HTTP client."""
        self.client.close()

    def _send(
        self, endpoint: str, method: str, url: str, timeout: float, **kwargs: Any
    ) -> httpx.Response:
        start_time = time.time()
        try:
            response = self.client.request(method, url, timeout=timeout, **kwargs)
        except httpx.HTTPError as e:
            upstream_requests_total.labels(endpoint=endpoint, status="error").inc()
            raise VantageTransportError(f"{method} {url} failed: {e}") from e
        finally:
            upstream_request_duration_seconds.labels(endpoint=endpoint).observe(
                time.time() - start_time
            )

        upstream_requests_total.labels(
            endpoint=endpoint, status=str(response.status_code)
        ).inc()
        return response

    def get_token(self) -> str:
        """Exchange the client credentials for a bearer token."""
        data = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "scope": TOKEN_SCOPE,
        }
        response = self._send(
            "token", "POST", self.base_url + TOKEN_PATH, LIST_TIMEOUT, data=data
        )
        if response.status_code != 200:
            raise VantageStatusError(response.status_code, response.text, "token")

        try:
            token = response.json().get("access_token")
        except (ValueError, AttributeError) as e:
            raise VantageDecodeError(f"failed to parse token response: {e}") from e
        if not token:
            raise VantageDecodeError("token response has no access_token")
        return token

    def _get(
        self,
        endpoint: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        timeout: float = LIST_TIMEOUT,
    ) -> bytes:
        """Authenticated GET returning the raw body of a 200 response."""
        token = self.get_token()
        response = self._send(
            endpoint,
            "GET",
            self.base_url + path,
            timeout,
            params=params,
            headers={"Authorization": f"Bearer {token}"},
        )
        logger.debug(f"{endpoint} API response status: {response.status_code}")

        if response.status_code != 200:
            raise VantageStatusError(response.status_code, response.text, endpoint)
        return response.content

    def get_skills(self) -> List[Skill]:
        body = self._get("skills", SKILLS_PATH)
        if not body.strip():
            logger.warning("Empty response from skills API")
            return []

        try:
            skills = _skills_adapter.validate_json(body)
        except ValidationError as e:
            raise VantageDecodeError(f"failed to parse skills JSON: {e}") from e

        logger.info(f"Found {len(skills)} skills")
        return skills

    def _get_transactions(self, endpoint: str, path: str) -> List[Transaction]:
        body = self._get(endpoint, path, params={"Limit": PAGE_LIMIT})
        if not body.strip():
            logger.warning(f"Empty response from {endpoint} transactions API")
            return []

        try:
            page = TransactionPage.model_validate_json(body)
        except ValidationError as e:
            raise VantageDecodeError(
                f"failed to parse {endpoint} transactions JSON: {e}"
            ) from e

        logger.info(f"Found {len(page.items)} {endpoint} transactions")
        return page.items

    def get_active_transactions(self) -> List[Transaction]:
        return self._get_transactions("active", ACTIVE_TRANSACTIONS_PATH)

    def get_completed_transactions(self) -> List[Transaction]:
        return self._get_transactions("completed", COMPLETED_TRANSACTIONS_PATH)

    def get_transaction_detail(self, transaction_id: str) -> TransactionDetail:
        """Fetch documents and source files of a single transaction."""
        path = TRANSACTION_PATH.format(transaction_id=transaction_id)
        body = self._get("detail", path, timeout=DETAIL_TIMEOUT)

        try:
            return TransactionDetail.model_validate_json(body)
        except ValidationError as e:
            raise VantageDecodeError(
                f"failed to parse transaction detail JSON: {e}"
            ) from e

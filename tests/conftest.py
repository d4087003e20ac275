import json
from typing import Any, Dict, List, Optional, Tuple

import httpx
import pytest

from vantage_exporter.client import VantageClient


BASE_URL = "https://vantage.example.com"


class FakeVantage:
    """In-memory stand-in for the Vantage public API.

    Routes are keyed by path; a route value is either a JSON-serializable
    payload (served with 200), raw bytes, or a ``(status, body)`` tuple.
    """

    def __init__(self):
        self.routes: Dict[str, Any] = {
            "/auth2/connect/token": {"access_token": "test-token"},
            "/api/publicapi/v1/skills": [],
            "/api/publicapi/v1/transactions/active": {"items": [], "totalItemCount": 0},
            "/api/publicapi/v1/transactions/completed": {
                "items": [],
                "totalItemCount": 0,
            },
        }
        self.requests: List[httpx.Request] = []
        self.failures: Dict[str, Exception] = {}

    def calls(self, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path in self.failures:
            raise self.failures[path]
        if path not in self.routes:
            return httpx.Response(404, text="not found")

        route = self.routes[path]
        if isinstance(route, tuple):
            status, body = route
            return httpx.Response(status, content=body)
        if isinstance(route, bytes):
            return httpx.Response(200, content=route)
        return httpx.Response(200, content=json.dumps(route).encode())


@pytest.fixture
def fake_vantage():
    return FakeVantage()


@pytest.fixture
def client(fake_vantage):
    vantage_client = VantageClient(
        base_url=BASE_URL,
        client_id="client-id",
        client_secret="client-secret",
        transport=httpx.MockTransport(fake_vantage.handler),
    )
    yield vantage_client
    vantage_client.close()


def make_transaction(
    transaction_id: str,
    skill_id: str,
    status: str = "Processing",
    skill_version: int = 1,
    create_time: Optional[str] = "2025-08-27T17:43:44Z",
    page_count: int = 0,
    document_count: int = 0,
    stage: Optional[Tuple[str, str]] = None,
    reviewer: Optional[Tuple[str, str]] = None,
) -> Dict[str, Any]:
    tx = {
        "transactionId": transaction_id,
        "skillId": skill_id,
        "skillVersion": skill_version,
        "status": status,
        "createTimeUtc": create_time,
        "documentCount": document_count,
        "pageCount": page_count,
        "transactionParameters": [
            {"isReadOnly": True, "key": "Channel", "value": "api"}
        ],
        "fileParameters": [],
    }
    if stage is not None:
        tx["stage"] = {"type": stage[0], "name": stage[1]}
    if reviewer is not None:
        tx["manualReviewOperatorName"] = reviewer[0]
        tx["manualReviewOperatorEmail"] = reviewer[1]
    return tx


def page(*transactions: Dict[str, Any]) -> Dict[str, Any]:
    return {"items": list(transactions), "totalItemCount": len(transactions)}

"""Tests for the REST order client.

Feature: order-sync
"""

import json
from unittest.mock import MagicMock, patch

import pytest
import requests
from hypothesis import given, settings
from hypothesis import strategies as st

from ordersync.models.config import RetryConfig
from ordersync.models.order import (
    ListOrder,
    ListOrderBy,
    OrderRecord,
    OrderStatus,
    Owner,
    RestOwnerListDescriptor,
)
from ordersync.remote.rest_client import OrderRestClient
from ordersync.sync.models import SyncErrorKind

BASE_URL = "https://orders.example.com/api/"
OWNER = Owner(local_id=2, remote_id=55)


def make_response(status_code: int, body=None, raw: bytes | None = None) -> requests.Response:
    response = requests.Response()
    response.status_code = status_code
    response.url = BASE_URL
    if raw is not None:
        response._content = raw
    else:
        response._content = json.dumps(body).encode() if body is not None else b""
    return response


def make_client(*responses) -> tuple[OrderRestClient, MagicMock]:
    session = MagicMock()
    session.headers = {}
    session.get.side_effect = list(responses)
    return OrderRestClient(BASE_URL, "token-1", timeout_seconds=5, session=session), session


@pytest.fixture
def no_backoff_sleep():
    with patch("ordersync.utils.retry.time.sleep") as sleep:
        yield sleep


def test_client_sends_bearer_token() -> None:
    _, session = make_client()

    assert session.headers["Authorization"] == "Bearer token-1"


def test_list_request_parameters() -> None:
    client, session = make_client(make_response(200, {"orders": []}))
    descriptor = RestOwnerListDescriptor(
        owner=OWNER, order_by=ListOrderBy.ID, order=ListOrder.ASC, page_size=30
    )

    client.fetch_order_list(descriptor, offset=60)

    args, kwargs = session.get.call_args
    assert args[0] == "https://orders.example.com/api/buyers/55/orders"
    assert kwargs["params"] == {
        "offset": 60,
        "number": 30,
        "order_by": "id",
        "order": "ASC",
        "fields": "ID,modified,status",
        "status": "delivering,receiving,finished",
    }
    assert kwargs["timeout"] == 5


@given(count=st.integers(min_value=0, max_value=10), page_size=st.integers(1, 10))
@settings(max_examples=30)
def test_can_load_more_when_page_is_full(count: int, page_size: int) -> None:
    body = {
        "orders": [
            {"ID": i, "modified": f"2024-01-0{i % 9 + 1}", "status": "finished"}
            for i in range(1, count + 1)
        ]
    }
    client, _ = make_client(make_response(200, body))
    descriptor = RestOwnerListDescriptor(owner=OWNER, page_size=page_size)

    response = client.fetch_order_list(descriptor, offset=0)

    assert response.error is None
    assert [item.remote_order_id for item in response.items] == list(range(1, count + 1))
    assert response.can_load_more == (count == page_size)
    assert response.loaded_more is False


def test_list_items_are_parsed() -> None:
    body = {"orders": [{"ID": "17", "modified": "2024-05-01 10:00:00", "status": "receiving"}]}
    client, _ = make_client(make_response(200, body))

    response = client.fetch_order_list(RestOwnerListDescriptor(owner=OWNER), offset=20)

    item = response.items[0]
    assert item.remote_order_id == 17
    assert item.last_modified == "2024-05-01 10:00:00"
    assert item.status == "RECEIVING"
    assert response.loaded_more is True


@pytest.mark.parametrize(
    "response",
    [
        make_response(200, {"items": []}),
        make_response(200, {"orders": [{"ID": 1}]}),
        make_response(200, raw=b"<html>not json</html>"),
    ],
)
def test_malformed_list_is_invalid_response(response) -> None:
    client, _ = make_client(response)

    result = client.fetch_order_list(RestOwnerListDescriptor(owner=OWNER), offset=0)

    assert result.items == []
    assert result.error.kind == SyncErrorKind.INVALID_RESPONSE


@pytest.mark.parametrize("body", [["not", "an", "order"], "order", 42, None])
def test_non_object_order_body_is_invalid_response(body) -> None:
    raw = b"null" if body is None else None
    client, _ = make_client(make_response(200, body, raw=raw))
    cached = OrderRecord(local_id=1, remote_id=3, local_owner_id=2)

    response = client.fetch_order(cached, OWNER)

    assert response.order == cached
    assert response.error.kind == SyncErrorKind.INVALID_RESPONSE


@pytest.mark.parametrize("body", [["orders"], "orders", 7, {"orders": ["17"]}])
def test_non_object_list_body_is_invalid_response(body) -> None:
    client, _ = make_client(make_response(200, body))

    result = client.fetch_order_list(RestOwnerListDescriptor(owner=OWNER), offset=0)

    assert result.items == []
    assert result.error.kind == SyncErrorKind.INVALID_RESPONSE


def test_error_body_is_decoded() -> None:
    client, _ = make_client(
        make_response(403, {"error": "unknown_order", "message": "Order not visible"})
    )

    result = client.fetch_order_list(RestOwnerListDescriptor(owner=OWNER), offset=0)

    assert result.error.kind == SyncErrorKind.UNKNOWN_ORDER
    assert result.error.message == "Order not visible"


def test_unrecognized_error_code_is_generic() -> None:
    client, _ = make_client(make_response(400, {"error": "rest_forbidden"}))

    result = client.fetch_order_list(RestOwnerListDescriptor(owner=OWNER), offset=0)

    assert result.error.kind == SyncErrorKind.GENERIC_ERROR
    assert result.error.message == "HTTP 400"


def test_fetch_order_merges_identity_and_extras() -> None:
    body = {
        "ID": 900,
        "modified": "t9",
        "status": "FINISHED",
        "date": "2024-02-02",
        "item_title": "Lamp",
        "item_price": "12.50",
        "item_quantity": 2,
        "shipping_carrier": "postal",
    }
    client, session = make_client(make_response(200, body))
    cached = OrderRecord(local_id=41, remote_id=900, local_owner_id=OWNER.local_id)

    response = client.fetch_order(cached, OWNER)

    assert session.get.call_args.args[0] == "https://orders.example.com/api/buyers/55/orders/900"
    assert response.error is None
    order = response.order
    assert order.local_id == 41
    assert order.local_owner_id == OWNER.local_id
    assert order.remote_id == 900
    assert order.last_modified == "t9"
    assert order.date_created == "2024-02-02"
    assert order.item_quantity == 2
    assert order.extra == {"shipping_carrier": "postal"}


def test_fetch_order_404_is_unknown_order() -> None:
    client, _ = make_client(make_response(404))
    cached = OrderRecord(local_id=1, remote_id=3, local_owner_id=2)

    response = client.fetch_order(cached, OWNER)

    assert response.order == cached
    assert response.error.kind == SyncErrorKind.UNKNOWN_ORDER


def test_fetch_order_without_remote_id_skips_the_request() -> None:
    client, session = make_client()
    cached = OrderRecord(local_id=1, remote_id=None, local_owner_id=2)

    response = client.fetch_order(cached, OWNER)

    session.get.assert_not_called()
    assert response.error.kind == SyncErrorKind.UNKNOWN_ORDER


def test_server_errors_are_retried(no_backoff_sleep) -> None:
    client, session = make_client(
        make_response(503),
        make_response(200, {"orders": [{"ID": 1, "modified": "t", "status": "s"}]}),
    )

    result = client.fetch_order_list(RestOwnerListDescriptor(owner=OWNER), offset=0)

    assert result.error is None
    assert session.get.call_count == 2
    assert no_backoff_sleep.call_count == 1


def test_persistent_connection_failure_is_generic_error(no_backoff_sleep) -> None:
    session = MagicMock()
    session.headers = {}
    session.get.side_effect = requests.exceptions.ConnectionError("connection refused")
    client = OrderRestClient(BASE_URL, "token", session=session)

    result = client.fetch_order(OrderRecord(local_id=1, remote_id=3, local_owner_id=2), OWNER)

    assert result.error.kind == SyncErrorKind.GENERIC_ERROR
    assert "connection refused" in result.error.message
    assert session.get.call_count == 4


def test_exhausted_server_errors_are_generic_error(no_backoff_sleep) -> None:
    session = MagicMock()
    session.headers = {}
    session.get.side_effect = [make_response(503), make_response(503)]
    client = OrderRestClient(BASE_URL, "token", retry=RetryConfig(max_retries=1), session=session)

    result = client.fetch_order_list(RestOwnerListDescriptor(owner=OWNER), offset=0)

    assert result.error.kind == SyncErrorKind.GENERIC_ERROR
    assert result.error.message == "HTTP 503"
    assert session.get.call_count == 2


def test_rate_limited_requests_wait_with_configured_delays(no_backoff_sleep) -> None:
    session = MagicMock()
    session.headers = {}
    session.get.side_effect = [
        make_response(429),
        make_response(429),
        make_response(200, {"orders": []}),
    ]
    retry = RetryConfig(max_retries=3, base_delay=0.5, max_delay=0.75)
    client = OrderRestClient(BASE_URL, "token", retry=retry, session=session)

    result = client.fetch_order_list(RestOwnerListDescriptor(owner=OWNER), offset=0)

    assert result.error is None
    assert [c.args[0] for c in no_backoff_sleep.call_args_list] == [0.5, 0.75]


def test_client_errors_are_not_retried(no_backoff_sleep) -> None:
    client, session = make_client(make_response(400, {"error": "invalid_order"}))

    client.fetch_order_list(RestOwnerListDescriptor(owner=OWNER), offset=0)

    assert session.get.call_count == 1
    no_backoff_sleep.assert_not_called()


def test_requested_statuses_are_sent() -> None:
    client, session = make_client(make_response(200, {"orders": []}))
    descriptor = RestOwnerListDescriptor(owner=OWNER, status_list=(OrderStatus.FINISHED,))

    client.fetch_order_list(descriptor, offset=0)

    assert session.get.call_args.kwargs["params"]["status"] == "finished"


def test_unrecognized_status_is_kept_verbatim() -> None:
    body = {"orders": [{"ID": 3, "modified": "t", "status": "on-hold"}]}
    client, _ = make_client(make_response(200, body))

    response = client.fetch_order_list(RestOwnerListDescriptor(owner=OWNER), offset=0)

    assert response.items[0].status == "on-hold"

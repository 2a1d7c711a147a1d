"""REST client for the remote order API."""

from typing import Any

import requests
import structlog
from requests.exceptions import ConnectionError, RequestException, Timeout

from ordersync.models.config import RetryConfig
from ordersync.models.order import (
    OrderListDescriptor,
    OrderListItem,
    OrderRecord,
    OrderStatus,
    Owner,
)
from ordersync.sync.models import (
    FetchOrderListResponse,
    FetchOrderResponse,
    SyncError,
    SyncErrorKind,
)
from ordersync.utils.retry import call_with_backoff

log = structlog.stdlib.get_logger()

LIST_FIELDS = "ID,modified,status"

# Wire field -> OrderRecord field
_ORDER_FIELDS = {
    "ID": "remote_id",
    "modified": "last_modified",
    "status": "status",
    "date": "date_created",
    "item_title": "item_title",
    "item_price": "item_price",
    "item_quantity": "item_quantity",
}


class OrderApiError(Exception):
    """Raised inside the client when a request fails; never leaves the client."""

    def __init__(self, error: SyncError):
        super().__init__(error.message)
        self.error = error


class OrderRestClient:
    """Fetches order list pages and single orders over HTTP.

    Transient failures (connection errors, timeouts, 5xx and 429 responses)
    are retried with exponential backoff. Whatever still fails is reported in
    the response's error field; no exception leaves the client.
    """

    def __init__(
        self,
        base_url: str,
        auth_token: str,
        timeout_seconds: float = 30.0,
        retry: RetryConfig | None = None,
        session: requests.Session | None = None,
    ):
        """
        Initialize the REST client.

        Args:
            base_url: Base URL of the order API
            auth_token: Bearer token sent with every request
            timeout_seconds: Per-request timeout
            retry: Backoff for transient failures (defaults if None)
            session: Optional requests session (a new one is created if None)
        """
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout_seconds
        self._retry = retry or RetryConfig()
        self._session = session or requests.Session()
        self._session.headers.update(
            {"Authorization": f"Bearer {auth_token}", "Accept": "application/json"}
        )
        log.info("order_rest_client_initialized", base_url=self._base_url)

    def fetch_order_list(
        self, descriptor: OrderListDescriptor, offset: int
    ) -> FetchOrderListResponse:
        """
        Fetch one page of order summaries.

        Args:
            descriptor: The list to fetch
            offset: Index of the first order of the page

        Returns:
            The page; can_load_more is True when the page came back full
        """
        owner = descriptor.owner
        params = {
            "offset": offset,
            "number": descriptor.page_size,
            "order_by": descriptor.order_by.value,
            "order": descriptor.order.value.upper(),
            "fields": LIST_FIELDS,
            "status": ",".join(status.value.lower() for status in descriptor.status_list),
        }
        log.info("fetching_order_list_page", owner_id=owner.remote_id, offset=offset)

        try:
            payload = self._get_json(f"/buyers/{owner.remote_id}/orders", params)
            items = [self._parse_list_item(raw) for raw in payload["orders"]]
        except OrderApiError as e:
            return FetchOrderListResponse(
                descriptor=descriptor, loaded_more=offset > 0, error=e.error
            )
        except (KeyError, TypeError, ValueError) as e:
            log.warning("invalid_order_list_response", owner_id=owner.remote_id, error=str(e))
            return FetchOrderListResponse(
                descriptor=descriptor,
                loaded_more=offset > 0,
                error=SyncError(
                    kind=SyncErrorKind.INVALID_RESPONSE,
                    message=f"Malformed order list response: {e}",
                ),
            )

        log.info("order_list_page_fetched", owner_id=owner.remote_id, count=len(items))
        return FetchOrderListResponse(
            descriptor=descriptor,
            items=items,
            loaded_more=offset > 0,
            can_load_more=len(items) == descriptor.page_size,
        )

    def fetch_order(self, order: OrderRecord, owner: Owner) -> FetchOrderResponse:
        """
        Fetch the full record of one order.

        The returned order keeps the local ID and owner of the order passed
        in, so it can be merged straight into the cache.

        Args:
            order: Cached order to refresh
            owner: Owner of the order

        Returns:
            The remote order, or the order passed in together with an error
        """
        if order.remote_id is None:
            return FetchOrderResponse(
                order=order,
                error=SyncError(
                    kind=SyncErrorKind.UNKNOWN_ORDER, message="Order has no remote ID"
                ),
            )

        try:
            payload = self._get_json(f"/buyers/{owner.remote_id}/orders/{order.remote_id}")
            fetched = self._parse_order(payload, order, owner)
        except OrderApiError as e:
            return FetchOrderResponse(order=order, error=e.error)
        except (KeyError, TypeError, ValueError) as e:
            log.warning("invalid_order_response", remote_id=order.remote_id, error=str(e))
            return FetchOrderResponse(
                order=order,
                error=SyncError(
                    kind=SyncErrorKind.INVALID_RESPONSE, message=f"Malformed order response: {e}"
                ),
            )

        return FetchOrderResponse(order=fetched)

    def _get(self, path: str, params: dict[str, Any] | None = None) -> requests.Response:
        url = f"{self._base_url}{path}"
        return call_with_backoff(
            lambda: self._session.get(url, params=params, timeout=self._timeout),
            self._retry,
            retry_on=(ConnectionError, Timeout),
            transient_reason=_transient_status,
            operation=path,
        )

    def _get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        try:
            response = self._get(path, params)
        except RequestException as e:
            log.error("order_api_request_failed", path=path, error=str(e))
            raise OrderApiError(
                SyncError(kind=SyncErrorKind.GENERIC_ERROR, message=str(e))
            ) from e

        if response.status_code >= 400:
            raise OrderApiError(self._error_from_response(response))

        try:
            return response.json()
        except ValueError as e:
            raise OrderApiError(
                SyncError(kind=SyncErrorKind.INVALID_RESPONSE, message=f"Response is not JSON: {e}")
            ) from e

    @staticmethod
    def _error_from_response(response: requests.Response) -> SyncError:
        try:
            body = response.json()
        except ValueError:
            body = None

        code = None
        message = f"HTTP {response.status_code}"
        if isinstance(body, dict):
            code = body.get("error")
            message = body.get("message") or message

        if code is None and response.status_code == 404:
            return SyncError(kind=SyncErrorKind.UNKNOWN_ORDER, message=message)

        log.warning(
            "order_api_error_response",
            status_code=response.status_code,
            error_code=code,
            message=message,
        )
        return SyncError.from_code(code, message)

    @staticmethod
    def _parse_list_item(raw: dict[str, Any]) -> OrderListItem:
        return OrderListItem(
            remote_order_id=int(raw["ID"]),
            last_modified=str(raw["modified"]),
            status=_normalize_status(raw["status"]),
        )

    @staticmethod
    def _parse_order(payload: dict[str, Any], order: OrderRecord, owner: Owner) -> OrderRecord:
        if not isinstance(payload, dict):
            raise TypeError(f"Expected an order object, got {type(payload).__name__}")

        fields: dict[str, Any] = {}
        extra: dict[str, Any] = {}
        for key, value in payload.items():
            if key in _ORDER_FIELDS:
                fields[_ORDER_FIELDS[key]] = value
            else:
                extra[key] = value

        if "remote_id" not in fields:
            raise KeyError("ID")
        if fields.get("status") is not None:
            fields["status"] = _normalize_status(fields["status"])

        return OrderRecord(
            local_id=order.local_id,
            local_owner_id=owner.local_id,
            remote_id=int(fields.pop("remote_id")),
            extra=extra,
            **{key: value for key, value in fields.items() if value is not None},
        )


def _transient_status(response: requests.Response) -> str | None:
    if response.status_code >= 500 or response.status_code == 429:
        return f"HTTP {response.status_code}"
    return None


def _normalize_status(raw: Any) -> str:
    """Known statuses in their canonical spelling; anything else verbatim."""
    status = OrderStatus.from_string(str(raw))
    return status.value if status != OrderStatus.UNKNOWN else str(raw)

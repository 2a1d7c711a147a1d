"""Data models for synchronization commands, responses and events."""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from ordersync.models.order import (
    OrderListDescriptor,
    OrderListItem,
    OrderRecord,
    Owner,
)


class SyncErrorKind(str, Enum):
    """Error kinds reported for order fetches."""

    UNKNOWN_ORDER = "UNKNOWN_ORDER"
    INVALID_RESPONSE = "INVALID_RESPONSE"
    GENERIC_ERROR = "GENERIC_ERROR"

    @classmethod
    def from_string(cls, value: str | None) -> "SyncErrorKind":
        """Decode an upstream error code.

        Matching is case-insensitive against the member names. Unrecognized
        codes, empty strings and None all decode to GENERIC_ERROR.
        """
        if value is not None:
            for kind in cls:
                if value.upper() == kind.name:
                    return kind
        return cls.GENERIC_ERROR


class SyncError(BaseModel):
    """An order-level error carried as a value."""

    model_config = ConfigDict(frozen=True)

    kind: SyncErrorKind = Field(default=SyncErrorKind.GENERIC_ERROR)
    message: str = Field(default="")

    @classmethod
    def from_code(cls, code: str | None, message: str = "") -> "SyncError":
        return cls(kind=SyncErrorKind.from_string(code), message=message)


class ListErrorKind(str, Enum):
    """Error kinds reported to list consumers."""

    GENERIC_ERROR = "GENERIC_ERROR"


class ListError(BaseModel):
    """A list-level error. The originating order error kind is not kept."""

    model_config = ConfigDict(frozen=True)

    kind: ListErrorKind = Field(default=ListErrorKind.GENERIC_ERROR)
    message: str = Field(default="")


class RecordUpdated(BaseModel):
    """Cause of an order change: a single record was refreshed."""

    model_config = ConfigDict(frozen=True)

    type: Literal["record_updated"] = "record_updated"
    local_id: int
    remote_id: int | None


OrderChangeCause = RecordUpdated


class OrderChangedEvent(BaseModel):
    """Published whenever a single-order sync completes."""

    cause: OrderChangeCause
    rows_affected: int = Field(default=0, ge=0)
    error: SyncError | None = None

    @property
    def is_error(self) -> bool:
        return self.error is not None


class ListReconciledEvent(BaseModel):
    """Result of one reconciliation pass over a list page."""

    descriptor: OrderListDescriptor
    remote_ids: list[int] = Field(default_factory=list)
    loaded_more: bool = False
    can_load_more: bool = False
    error: ListError | None = None


class FetchOrderListResponse(BaseModel):
    """One page returned by the list endpoint."""

    descriptor: OrderListDescriptor
    items: list[OrderListItem] = Field(default_factory=list)
    loaded_more: bool = False
    can_load_more: bool = False
    error: SyncError | None = None


class FetchOrderResponse(BaseModel):
    """A full order returned by the single-order endpoint."""

    order: OrderRecord
    error: SyncError | None = None


# Commands routed through the ActionRouter


class FetchOrderList(BaseModel):
    """Request one page of an order list."""

    descriptor: OrderListDescriptor
    offset: int = Field(default=0, ge=0)


class FetchedOrderList(BaseModel):
    """A list page has arrived from the remote source."""

    descriptor: OrderListDescriptor
    items: list[OrderListItem] = Field(default_factory=list)
    loaded_more: bool = False
    can_load_more: bool = False
    error: SyncError | None = None
    generation: int | None = None


class FetchOrder(BaseModel):
    """Request the full record of one order."""

    order: OrderRecord
    owner: Owner


class FetchedOrder(BaseModel):
    """A full order record (or an error) has arrived from the remote source."""

    order: OrderRecord
    owner: Owner
    error: SyncError | None = None


Command = FetchOrderList | FetchedOrderList | FetchOrder | FetchedOrder

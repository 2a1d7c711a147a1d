"""Pydantic models for orders, owners and order list descriptors."""

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class OrderStatus(str, Enum):
    """Order lifecycle states reported by the remote source."""

    DELIVERING = "DELIVERING"
    RECEIVING = "RECEIVING"
    FINISHED = "FINISHED"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_string(cls, value: str | None) -> "OrderStatus":
        """Case-insensitive lookup, UNKNOWN for anything unrecognized."""
        if value:
            for status in cls:
                if value.upper() == status.name:
                    return status
        return cls.UNKNOWN


DEFAULT_ORDER_STATUS_LIST: tuple[OrderStatus, ...] = (
    OrderStatus.DELIVERING,
    OrderStatus.RECEIVING,
    OrderStatus.FINISHED,
)


class ListOrderBy(str, Enum):
    """Field an order list is sorted by."""

    DATE = "date"
    ID = "id"


class ListOrder(str, Enum):
    """Sort direction of an order list."""

    ASC = "asc"
    DESC = "desc"


class Owner(BaseModel):
    """The buyer account that owns a set of orders."""

    model_config = ConfigDict(frozen=True)

    local_id: int = Field(default=..., ge=1, description="Local buyer identifier")
    remote_id: int = Field(default=..., description="Buyer identifier on the remote source")
    uses_rest_api: bool = Field(
        default=True, description="True if the buyer's orders are served by the REST API"
    )
    name: str | None = Field(default=None, description="Display name")


class OrderRecord(BaseModel):
    """A full order record as held in the local cache."""

    local_id: int = Field(default=0, ge=0, description="Local primary key, 0 until stored")
    remote_id: int | None = Field(default=None, description="Remote identifier, None until synced")
    local_owner_id: int = Field(default=..., description="Local identifier of the owning buyer")
    last_modified: str = Field(default="", description="Opaque last-modified marker")
    status: str = Field(default=OrderStatus.UNKNOWN.value, description="Order status")
    date_created: str = Field(default="", description="Creation timestamp")
    item_title: str = Field(default="", description="Title of the ordered item")
    item_price: str = Field(default="", description="Price as reported by the remote source")
    item_quantity: int = Field(default=0, ge=0, description="Number of items ordered")
    is_locally_changed: bool = Field(
        default=False, description="True if the record has unsynced local edits"
    )
    extra: dict[str, Any] = Field(
        default_factory=dict, description="Remaining business fields, opaque to the sync engine"
    )

    model_config = {
        "json_schema_extra": {
            "example": {
                "local_id": 12,
                "remote_id": 4021,
                "local_owner_id": 1,
                "last_modified": "2024-01-15T14:30:00Z",
                "status": "DELIVERING",
                "date_created": "2024-01-10T09:00:00Z",
                "item_title": "Ceramic mug",
                "item_price": "12.50",
                "item_quantity": 2,
            }
        }
    }


class OrderListItem(BaseModel):
    """Lightweight order summary returned by the list endpoint."""

    model_config = ConfigDict(frozen=True)

    remote_order_id: int = Field(default=..., description="Remote order identifier")
    last_modified: str = Field(default=..., description="Opaque last-modified marker")
    status: str = Field(default=..., description="Order status")


class LocalId(BaseModel):
    """Identifies an order by its local primary key."""

    model_config = ConfigDict(frozen=True)

    value: int


class RemoteId(BaseModel):
    """Identifies an order by its remote identifier."""

    model_config = ConfigDict(frozen=True)

    value: int


LocalOrRemoteId = LocalId | RemoteId


class ListPartitionKey(BaseModel):
    """Groups list consumers that must be invalidated together."""

    model_config = ConfigDict(frozen=True)

    kind: str
    owner_id: int

    def __str__(self) -> str:
        return f"{self.kind}:{self.owner_id}"


REST_OWNER_KIND = "rest_owner"


def calculate_partition_key(owner_local_id: int) -> ListPartitionKey:
    """Partition key shared by every REST order list of the given owner."""
    return ListPartitionKey(kind=REST_OWNER_KIND, owner_id=owner_local_id)


class OrderListDescriptor(BaseModel):
    """Shape of an order list query.

    Subclasses are the supported protocol variants. Code that dispatches on a
    descriptor matches on the concrete subclass.
    """

    model_config = ConfigDict(frozen=True)

    kind: str
    owner: Owner
    order_by: ListOrderBy = ListOrderBy.DATE
    order: ListOrder = ListOrder.DESC
    page_size: int = Field(default=20, ge=1, le=100)
    status_list: tuple[OrderStatus, ...] = Field(
        default=DEFAULT_ORDER_STATUS_LIST,
        min_length=1,
        description="Statuses requested from the remote source",
    )

    @field_validator("status_list")
    @classmethod
    def known_statuses_only(cls, value: tuple[OrderStatus, ...]) -> tuple[OrderStatus, ...]:
        if OrderStatus.UNKNOWN in value:
            raise ValueError("UNKNOWN cannot be requested from the remote source")
        return tuple(dict.fromkeys(value))

    @property
    def partition_key(self) -> ListPartitionKey:
        return ListPartitionKey(kind=self.kind, owner_id=self.owner.local_id)

    @property
    def unique_key(self) -> str:
        """Stable key identifying this exact query."""
        return (
            f"{self.kind}:{self.owner.local_id}:{self.order_by.value}:"
            f"{self.order.value}:{self.page_size}:"
            f"{','.join(status.value for status in self.status_list)}"
        )


class RestOwnerListDescriptor(OrderListDescriptor):
    """Orders of one buyer, listed through the REST API."""

    kind: Literal["rest_owner"] = REST_OWNER_KIND

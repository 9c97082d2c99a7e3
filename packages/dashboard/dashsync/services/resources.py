"""CRUD services for the dashboard resources served by the PHP backend.

Each resource is described by a ``ResourceSpec``: where to list it, where to
save and delete it, which identifier aliases its records use, and which
update kind other dashboards should hear about after a mutation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from pydantic import BaseModel, Field

from ..api.client import ApiResult, BackendClient
from ..api.session import ApiSession
from ..config import get_settings
from ..events.bus import UpdateBus
from ..events.types import UpdateKind
from ..exceptions import UnknownResourceError
from ..normalizer import EmptyPolicy, is_usable, normalize, pick

logger = logging.getLogger(__name__)

RecordMapper = Callable[[dict[str, Any], ApiSession], dict[str, Any]]


def _as_int(value: Any, default: Optional[int] = None) -> Optional[int]:
    if value is None or isinstance(value, bool) or value in ("", "null"):
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def map_category(record: dict[str, Any], session: ApiSession) -> dict[str, Any]:
    category_id = pick(record, "category_id", "id")
    return {
        "id": category_id,
        "category_id": category_id,
        "name": record.get("name") or "",
        "description": record.get("description") or "",
        "kid": record.get("kid") or 0,
        "kitchen_id": pick(record, "kitchen_id"),
        "kitchen_name": record.get("kitchen_name") or "-",
        "terminal": record.get("terminal") or session.terminal,
    }


def map_kitchen(record: dict[str, Any], session: ApiSession) -> dict[str, Any]:
    kitchen_id = pick(record, "kitchen_id", "id")
    return {
        "id": kitchen_id,
        "kitchen_id": kitchen_id,
        "title": pick(record, "title", "name", default=""),
        "code": record.get("code") or "",
        "terminal": record.get("terminal") or session.terminal,
    }


def map_hall(record: dict[str, Any], session: ApiSession) -> dict[str, Any]:
    hall_id = pick(record, "hall_id", "id", "HallID")
    branch_id = _as_int(pick(record, "branch_id", "branch_ID"))
    return {
        "id": hall_id,
        "hall_id": hall_id,
        "name": pick(record, "name", "hall_name", "Name", default=""),
        "capacity": _as_int(record.get("capacity"), 0),
        "terminal": record.get("terminal") or session.terminal,
        "branch_id": branch_id,
        "branch_name": pick(record, "branch_name", "branch_Name")
        or (f"Branch {branch_id}" if branch_id is not None else "Unknown Branch"),
        "created_at": record.get("created_at") or "",
        "updated_at": record.get("updated_at") or "",
    }


def map_table(record: dict[str, Any], session: ApiSession) -> dict[str, Any]:
    table_id = pick(record, "table_id", "id", "TableID")
    branch_id = _as_int(pick(record, "branch_id", "branch_ID"))
    return {
        "id": table_id,
        "table_id": table_id,
        "table_number": pick(record, "table_number", "table_name", "number", default=""),
        "hall_id": pick(record, "hall_id", "HallID"),
        "hall_name": pick(record, "hall_name", "hall_Name", default=""),
        "capacity": _as_int(pick(record, "capacity", "Capacity"), 0),
        "status": str(pick(record, "status", "Status", default="available")).lower(),
        "terminal": record.get("terminal") or session.terminal,
        "branch_id": branch_id,
        "branch_name": pick(record, "branch_name", "branch_Name")
        or (f"Branch {branch_id}" if branch_id is not None else "Unknown Branch"),
    }


def map_branch(record: dict[str, Any], session: ApiSession) -> dict[str, Any]:
    branch_id = _as_int(pick(record, "branch_id", "id", "ID", "branchId"))
    return {
        "id": branch_id,
        "branch_id": branch_id,
        "branch_name": pick(record, "branch_name", "name", "title", default=f"Branch {branch_id}"),
        "branch_code": record.get("branch_code") or "",
        "address": record.get("address") or "",
        "phone": record.get("phone") or "",
        "email": record.get("email") or "",
        "status": record.get("status") or "Active",
    }


def map_dish(record: dict[str, Any], session: ApiSession) -> dict[str, Any]:
    dish_id = pick(record, "dish_id", "id")
    is_available = _as_int(record.get("is_available"), 1)
    return {
        "id": dish_id,
        "dish_id": dish_id,
        "name": record.get("name") or "",
        "barcode": record.get("barcode") or "",
        "description": record.get("description") or "",
        "price": record.get("price"),
        "qnty": record.get("qnty") or "1",
        "category_id": record.get("category_id"),
        "category_name": pick(record, "catname", "category_name", default=""),
        "is_available": is_available,
        "is_frequent": _as_int(record.get("is_frequent"), 1),
        "status": "active" if is_available == 1 else "inactive",
        "discount": record.get("discount") or 0,
        "terminal": record.get("terminal") or session.terminal,
    }


def map_user(record: dict[str, Any], session: ApiSession) -> dict[str, Any]:
    return {
        "id": pick(record, "id", "user_id"),
        "username": record.get("username") or "",
        "fullname": pick(record, "fullname", "full_name", "name", default=""),
        "role": record.get("role") or "",
        "branch_id": _as_int(record.get("branch_id")),
        "status": record.get("status") or "Active",
        "terminal": record.get("terminal") or session.terminal,
        "created_at": record.get("created_at") or "",
    }


def _as_float(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def map_customer(record: dict[str, Any], session: ApiSession) -> dict[str, Any]:
    return {
        "id": pick(record, "id", "customer_id"),
        "customer_id": pick(record, "customer_id", "id"),
        "customer_name": pick(record, "name", "customer_name", default=""),
        "phone": pick(record, "phone", "mobileNo", default=""),
        "email": record.get("email") or "",
        "address": record.get("address") or "",
        "credit_limit": _as_float(pick(record, "credit_limit", "credit")),
        "balance": _as_float(record.get("balance")),
        "branch_id": _as_int(record.get("branch_id")),
        "created_at": record.get("created_at") or "",
    }


def map_expense(record: dict[str, Any], session: ApiSession) -> dict[str, Any]:
    expense_id = pick(record, "id", "expense_id")
    title = pick(record, "title", "expense_title", default="")
    return {
        "id": expense_id,
        "expense_id": expense_id,
        "title": title,
        "amount": _as_float(record.get("amount")),
        "description": record.get("description") or "",
        "branch_id": _as_int(record.get("branch_id"), session.branch_id),
        "branch_name": record.get("branch_name") or "",
        "created_at": record.get("created_at") or "",
    }


def map_printer(record: dict[str, Any], session: ApiSession) -> dict[str, Any]:
    printer_id = pick(record, "printer_id", "id")
    return {
        "id": printer_id,
        "printer_id": printer_id,
        "name": record.get("name") or "",
        "type": record.get("type") or "receipt",
        "ip_address": record.get("ip_address") or "",
        "port": str(record.get("port") or "9100"),
        "status": record.get("status") or "active",
        "terminal": record.get("terminal") or session.terminal,
    }


@dataclass(frozen=True)
class ResourceSpec:
    name: str
    label: str
    list_endpoint: str
    manage_endpoint: str
    id_field: str
    id_aliases: tuple[str, ...]
    mapper: RecordMapper
    candidate_keys: tuple[str, ...] = ()
    delete_endpoint: Optional[str] = None
    delete_method: str = "DELETE"
    delete_id_field: Optional[str] = None
    delete_body: dict[str, Any] = field(default_factory=dict)
    list_method: str = "POST"
    list_body: dict[str, Any] = field(default_factory=dict)
    branch_scoped: bool = False
    update_kind: Optional[UpdateKind] = None


RESOURCES: dict[str, ResourceSpec] = {
    spec.name: spec
    for spec in (
        ResourceSpec(
            name="categories",
            label="category",
            list_endpoint="/get_categories.php",
            manage_endpoint="/category_management.php",
            id_field="category_id",
            id_aliases=("category_id", "id"),
            candidate_keys=("categories",),
            mapper=map_category,
            update_kind=UpdateKind.CATEGORY_UPDATED,
        ),
        ResourceSpec(
            name="kitchens",
            label="kitchen",
            list_endpoint="/get_kitchens.php",
            manage_endpoint="/kitchen_management.php",
            id_field="kitchen_id",
            id_aliases=("kitchen_id", "id"),
            candidate_keys=("kitchens",),
            mapper=map_kitchen,
        ),
        ResourceSpec(
            name="halls",
            label="hall",
            list_endpoint="/get_halls.php",
            manage_endpoint="/hall_management.php",
            id_field="hall_id",
            id_aliases=("hall_id", "id", "HallID"),
            candidate_keys=("halls",),
            mapper=map_hall,
            branch_scoped=True,
            update_kind=UpdateKind.TABLE_UPDATED,
        ),
        ResourceSpec(
            name="tables",
            label="table",
            list_endpoint="/get_tables.php",
            manage_endpoint="/table_management.php",
            id_field="table_id",
            id_aliases=("table_id", "id", "TableID"),
            candidate_keys=("tables",),
            mapper=map_table,
            branch_scoped=True,
            update_kind=UpdateKind.TABLE_UPDATED,
        ),
        ResourceSpec(
            name="branches",
            label="branch",
            list_endpoint="/branch_management.php",
            manage_endpoint="/branch_management.php",
            id_field="branch_id",
            id_aliases=("branch_id", "id", "ID", "branchId"),
            candidate_keys=("branches",),
            mapper=map_branch,
            list_body={"action": "get"},
        ),
        ResourceSpec(
            name="dishes",
            label="menu item",
            list_endpoint="/get_products.php",
            manage_endpoint="/dishes_management.php",
            id_field="dish_id",
            id_aliases=("dish_id", "id"),
            candidate_keys=("dishes", "products"),
            mapper=map_dish,
            branch_scoped=True,
            update_kind=UpdateKind.DISH_UPDATED,
        ),
        ResourceSpec(
            name="users",
            label="user",
            list_endpoint="/get_users_accounts.php",
            manage_endpoint="/createaccount.php",
            id_field="id",
            id_aliases=("id", "user_id"),
            candidate_keys=("users", "accounts"),
            mapper=map_user,
            delete_endpoint="/delete_users.php",
            delete_method="POST",
        ),
        ResourceSpec(
            name="customers",
            label="customer",
            list_endpoint="/customer_management.php",
            manage_endpoint="/customer_management.php",
            id_field="id",
            id_aliases=("id", "customer_id"),
            candidate_keys=("customers",),
            mapper=map_customer,
            list_method="GET",
            branch_scoped=True,
        ),
        ResourceSpec(
            name="expenses",
            label="expense",
            list_endpoint="/expense_management.php",
            manage_endpoint="/expense_management.php",
            id_field="id",
            id_aliases=("id", "expense_id"),
            candidate_keys=("expenses",),
            mapper=map_expense,
            list_body={"action": "get"},
            delete_method="POST",
            delete_body={"action": "delete"},
            branch_scoped=True,
        ),
        ResourceSpec(
            name="printers",
            label="printer",
            list_endpoint="/get_printers.php",
            manage_endpoint="/printer_management.php",
            id_field="printer_id",
            id_aliases=("printer_id", "id"),
            candidate_keys=("printers",),
            mapper=map_printer,
        ),
    )
}


def get_resource(name: str) -> ResourceSpec:
    try:
        return RESOURCES[name]
    except KeyError:
        raise UnknownResourceError(name, available=sorted(RESOURCES)) from None


class ResourceListing(BaseModel):
    items: list[dict[str, Any]] = Field(default_factory=list)
    error: Optional[str] = None
    empty_warning: bool = False
    dropped: int = 0


class MutationOutcome(BaseModel):
    success: bool
    message: str
    identifier: Any = None


def mutation_succeeded(result: ApiResult) -> bool:
    """Explicit success flag or status, or a backend message that says it worked."""
    if not result.success or not isinstance(result.data, dict):
        return False
    if result.body_success or result.data.get("status") == "success":
        return True
    message = result.data.get("message")
    return isinstance(message, str) and "success" in message.lower()


class ResourceService:
    def __init__(
        self,
        client: BackendClient,
        spec: ResourceSpec | str,
        bus: Optional[UpdateBus] = None,
        *,
        empty_policy: EmptyPolicy | str | None = None,
    ) -> None:
        self.client = client
        self.spec = get_resource(spec) if isinstance(spec, str) else spec
        self.bus = bus
        self.empty_policy = empty_policy or get_settings().empty_policy

    @property
    def session(self) -> ApiSession:
        return self.client.session

    def _scope(self, body: dict[str, Any]) -> dict[str, Any]:
        scoped = {"terminal": self.session.terminal}
        if self.spec.branch_scoped and self.session.branch_id is not None:
            scoped["branch_id"] = self.session.branch_id
        scoped.update(body)
        return scoped

    async def list(self, **filters: Any) -> ResourceListing:
        spec = self.spec
        body = self._scope({**spec.list_body, **filters})
        if spec.list_method == "GET":
            result = await self.client.get(spec.list_endpoint, body)
        else:
            result = await self.client.post(spec.list_endpoint, body)

        if result.status == 0:
            return ResourceListing(error=result.message("Network error"))

        normalized = normalize(
            result,
            spec.candidate_keys,
            id_aliases=spec.id_aliases,
            empty_policy=self.empty_policy,
        )
        if normalized.is_error_shape:
            return ResourceListing(error=normalized.error_message or f"Failed to load {spec.name}")
        if not normalized.items and not result.success:
            return ResourceListing(error=result.message(f"Failed to load {spec.name}"))

        items = [spec.mapper(record, self.session) for record in normalized.items]
        logger.debug("Fetched %s %s", len(items), spec.name)
        return ResourceListing(
            items=items,
            empty_warning=normalized.empty_warning,
            dropped=normalized.dropped,
        )

    async def save(self, fields: dict[str, Any]) -> MutationOutcome:
        """Create when the identifier is empty, update otherwise."""
        spec = self.spec
        identifier = fields.get(spec.id_field)
        creating = not is_usable(identifier)
        body = self._scope({**fields, spec.id_field: "" if creating else identifier})
        result = await self.client.post(spec.manage_endpoint, body)
        if not mutation_succeeded(result):
            return MutationOutcome(success=False, message=result.message(f"Failed to save {spec.label}"))

        if creating and isinstance(result.data, dict):
            identifier = pick(result.data, spec.id_field, "id", "insert_id", default=identifier)
        self._announce({spec.id_field: identifier, "action": "created" if creating else "updated"})
        return MutationOutcome(
            success=True,
            message=result.message(f"{spec.label.capitalize()} saved successfully!"),
            identifier=identifier,
        )

    async def delete(self, identifier: Any) -> MutationOutcome:
        spec = self.spec
        endpoint = spec.delete_endpoint or spec.manage_endpoint
        body = {**spec.delete_body, spec.delete_id_field or spec.id_field: identifier}
        if spec.delete_method == "DELETE":
            result = await self.client.delete(endpoint, body)
        else:
            result = await self.client.post(endpoint, body)
        if not mutation_succeeded(result):
            return MutationOutcome(
                success=False,
                message=result.message(f"Failed to delete {spec.label}"),
                identifier=identifier,
            )
        self._announce({spec.id_field: identifier, "action": "deleted"})
        return MutationOutcome(
            success=True,
            message=result.message(f"{spec.label.capitalize()} deleted successfully!"),
            identifier=identifier,
        )

    def _announce(self, payload: dict[str, Any]) -> None:
        if self.bus is None or self.spec.update_kind is None:
            return
        self.bus.publish(self.spec.update_kind, payload)


__all__ = [
    "MutationOutcome",
    "RESOURCES",
    "ResourceListing",
    "ResourceService",
    "ResourceSpec",
    "get_resource",
    "mutation_succeeded",
]

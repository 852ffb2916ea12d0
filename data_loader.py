import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client

from config import (
    get_supabase_config,
    PRODUCTS_TABLE,
    CATEGORIES_TABLE,
    UNITS_TABLE,
    LOGS_TABLE,
    LOG_TIMESTAMP_COLUMN,
    LOG_IDENTITY_COLUMN,
    CSV_CONFLICT_KEY,
    RECENT_ACTIVITY_LIMIT,
)

logger = logging.getLogger(__name__)

Filter = Tuple[str, str, Any]

SUPPORTED_FILTER_OPS = ("eq", "neq", "gt", "gte", "lt", "lte", "ilike")


class GatewayError(Exception):
    """A request to the remote data store failed."""

    def __init__(self, message: str, table: str = "", operation: str = ""):
        super().__init__(message)
        self.message = message
        self.table = table
        self.operation = operation


def create_supabase_client() -> Client:
    """Create a Supabase client.

    Each browser session needs its own client because the client carries the
    signed-in user's auth state.
    """
    config = get_supabase_config()
    return create_client(config['url'], config['key'])


class DataGateway:
    """Request/response access to the remote tables."""

    def __init__(self, client):
        self.client = client

    def _apply_filters(self, query, filters: Iterable[Filter]):
        for column, op, value in filters:
            if op not in SUPPORTED_FILTER_OPS:
                raise ValueError(f"Unsupported filter operator: {op}")
            query = getattr(query, op)(column, value)
        return query

    def _execute(self, query, table: str, operation: str):
        try:
            return query.execute()
        except APIError as e:
            message = e.message or str(e)
        except httpx.HTTPError as e:
            message = str(e) or e.__class__.__name__

        logger.error("%s on %s failed: %s", operation, table, message)
        raise GatewayError(message, table=table, operation=operation)

    def select(self, table: str, columns: str = "*", filters: Sequence[Filter] = (),
               order_by: Optional[str] = None, descending: bool = False,
               limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Return the rows of a table matching all filters."""
        query = self._apply_filters(self.client.table(table).select(columns), filters)
        if order_by:
            query = query.order(order_by, desc=descending)
        if limit is not None:
            query = query.limit(limit)

        response = self._execute(query, table, "select")
        return list(response.data or [])

    def count(self, table: str, filters: Sequence[Filter] = ()) -> int:
        """Return the exact number of matching rows without transferring them."""
        query = self.client.table(table).select("*", count="exact", head=True)
        query = self._apply_filters(query, filters)
        response = self._execute(query, table, "count")
        return int(response.count or 0)

    def insert(self, table: str, rows: List[Dict[str, Any]]) -> None:
        self._execute(self.client.table(table).insert(rows), table, "insert")

    def update(self, table: str, row_id: Any, values: Dict[str, Any]) -> None:
        self._execute(self.client.table(table).update(values).eq("id", row_id), table, "update")

    def upsert(self, table: str, rows: List[Dict[str, Any]], on_conflict: str) -> None:
        self._execute(self.client.table(table).upsert(rows, on_conflict=on_conflict), table, "upsert")

    def delete(self, table: str, row_id: Any) -> None:
        self._execute(self.client.table(table).delete().eq("id", row_id), table, "delete")


class ProductManager:
    """Manages product catalog operations."""

    def __init__(self, gateway: DataGateway):
        self.gateway = gateway

    def list_products(self) -> List[Dict[str, Any]]:
        return self.gateway.select(PRODUCTS_TABLE, order_by="created_at", descending=True)

    def count_products(self) -> int:
        return self.gateway.count(PRODUCTS_TABLE)

    def create_product(self, values: Dict[str, Any]) -> None:
        self.gateway.insert(PRODUCTS_TABLE, [values])
        logger.info("Created product %s", values.get("barcode"))

    def update_product(self, product_id: Any, values: Dict[str, Any]) -> None:
        self.gateway.update(PRODUCTS_TABLE, product_id, values)
        logger.info("Updated product %s", product_id)

    def delete_product(self, product_id: Any) -> None:
        self.gateway.delete(PRODUCTS_TABLE, product_id)
        logger.info("Deleted product %s", product_id)

    def upsert_products(self, rows: List[Dict[str, Any]]) -> None:
        """Insert new barcodes and overwrite existing ones."""
        self.gateway.upsert(PRODUCTS_TABLE, rows, on_conflict=CSV_CONFLICT_KEY)
        logger.info("Upserted %d products", len(rows))


class MasterDataManager:
    """Manages a name-only lookup table (categories or units)."""

    def __init__(self, gateway: DataGateway, table: str):
        self.gateway = gateway
        self.table = table

    def list_entries(self) -> List[Dict[str, Any]]:
        return self.gateway.select(self.table, order_by="name")

    def list_names(self) -> List[str]:
        return [row["name"] for row in self.list_entries() if row.get("name")]

    def add(self, name: str) -> None:
        name = (name or "").strip()
        if not name:
            raise ValueError("Name must not be empty")

        self.gateway.insert(self.table, [{"name": name}])
        logger.info("Added %s entry %r", self.table, name)

    def delete(self, entry_id: Any) -> None:
        self.gateway.delete(self.table, entry_id)
        logger.info("Deleted %s entry %s", self.table, entry_id)


def category_manager(gateway: DataGateway) -> MasterDataManager:
    return MasterDataManager(gateway, CATEGORIES_TABLE)


def unit_manager(gateway: DataGateway) -> MasterDataManager:
    return MasterDataManager(gateway, UNITS_TABLE)


class ScanLogManager:
    """Read access to the onboarding scan logs."""

    def __init__(self, gateway: DataGateway):
        self.gateway = gateway

    @staticmethod
    def _window_filters(since: Optional[datetime], until: Optional[datetime]) -> List[Filter]:
        filters = []
        if since is not None:
            filters.append((LOG_TIMESTAMP_COLUMN, "gte", since.isoformat()))
        if until is not None:
            filters.append((LOG_TIMESTAMP_COLUMN, "lt", until.isoformat()))
        return filters

    def list_logs(self, since: Optional[datetime] = None,
                  until: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """Return all logs in the half-open range [since, until)."""
        return self.gateway.select(LOGS_TABLE, filters=self._window_filters(since, until))

    def count_logs(self, since: Optional[datetime] = None,
                   until: Optional[datetime] = None) -> int:
        return self.gateway.count(LOGS_TABLE, filters=self._window_filters(since, until))

    def recent_logs(self, limit: int = RECENT_ACTIVITY_LIMIT) -> List[Dict[str, Any]]:
        return self.gateway.select(
            LOGS_TABLE,
            order_by=LOG_TIMESTAMP_COLUMN,
            descending=True,
            limit=limit,
        )

    def list_identities(self) -> List[Dict[str, Any]]:
        return self.gateway.select(LOGS_TABLE, columns=LOG_IDENTITY_COLUMN)

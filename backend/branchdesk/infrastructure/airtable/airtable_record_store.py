"""Airtable record store: implements the RecordStore interface.

Talks to the Airtable REST API (https://api.airtable.com/v0) with httpx.
Every call is a fresh round-trip: there is no retry and no cache, and the
store gives no read-after-write guarantee beyond its own.
"""

import logging
import time
from typing import Any
from urllib.parse import quote

import httpx

from branchdesk.application.interfaces.record_store import RecordStore, SortSpec
from branchdesk.domain.entities import Record, TableName
from branchdesk.domain.exceptions import (
    BackendError,
    BackendRejected,
    BackendUnavailable,
    RecordNotFound,
)

logger = logging.getLogger(__name__)

# Statuses that mean "try again later" rather than "this request is wrong"
_UNAVAILABLE_STATUSES = frozenset({408, 429, 500, 502, 503, 504})


class AirtableRecordStore(RecordStore):
    """Infrastructure adapter: connects to one Airtable base.

    Pass a shared ``httpx.AsyncClient`` to reuse pooled connections across
    requests; without one, a short-lived client is opened per call.
    """

    def __init__(
        self,
        api_key: str,
        base_id: str,
        base_url: str = "https://api.airtable.com/v0",
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._api_key = api_key
        self._base_id = base_id
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._http_client = http_client

    def _get_headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }

    def _table_url(self, table: TableName, record_id: str | None = None) -> str:
        url = f"{self._base_url}/{self._base_id}/{quote(table.value, safe='')}"
        if record_id is not None:
            url += f"/{quote(record_id, safe='')}"
        return url

    async def _get_client(self) -> httpx.AsyncClient:
        """Return the injected client or create a new one."""
        if self._http_client is not None:
            return self._http_client
        return httpx.AsyncClient(timeout=self._timeout)

    # ── RecordStore operations ───────────────────────────────────────

    async def create(self, table: TableName, fields: dict[str, Any]) -> Record:
        data = await self._request(
            "create",
            table,
            "POST",
            self._table_url(table),
            json={"records": [{"fields": fields}]},
        )
        return self._first_record("create", table, data)

    async def find(
        self,
        table: TableName,
        filter_formula: str | None = None,
        sort: SortSpec | None = None,
    ) -> list[Record]:
        base_params = self._build_select_params(filter_formula, sort)
        records: list[Record] = []
        offset: str | None = None

        # Airtable pages results; keep following the offset cursor
        while True:
            params = list(base_params)
            if offset:
                params.append(("offset", offset))
            data = await self._request(
                "find", table, "GET", self._table_url(table), params=params
            )
            page = data.get("records", [])
            if not isinstance(page, list):
                raise _malformed("find", table, "'records' is not a list")
            records.extend(self._to_record("find", table, item) for item in page)
            offset = data.get("offset")
            if not offset:
                break

        logger.debug("find %s → %d record(s)", table.value, len(records))
        return records

    async def update(self, table: TableName, record_id: str, fields: dict[str, Any]) -> Record:
        data = await self._request(
            "update",
            table,
            "PATCH",
            self._table_url(table),
            json={"records": [{"id": record_id, "fields": fields}]},
            record_id=record_id,
        )
        return self._first_record("update", table, data)

    async def delete(self, table: TableName, record_id: str) -> dict[str, Any]:
        data = await self._request(
            "delete",
            table,
            "DELETE",
            self._table_url(table, record_id),
            record_id=record_id,
        )
        return {"id": data.get("id", record_id), "deleted": bool(data.get("deleted", True))}

    async def find_by_id(self, table: TableName, record_id: str) -> Record:
        data = await self._request(
            "find_by_id",
            table,
            "GET",
            self._table_url(table, record_id),
            record_id=record_id,
        )
        return self._to_record("find_by_id", table, data)

    # ── Internals ────────────────────────────────────────────────────

    @staticmethod
    def _build_select_params(
        filter_formula: str | None, sort: SortSpec | None
    ) -> list[tuple[str, str]]:
        params: list[tuple[str, str]] = []
        if filter_formula and filter_formula.strip():
            params.append(("filterByFormula", filter_formula))
        for i, spec in enumerate(sort or []):
            params.append((f"sort[{i}][field]", spec["field"]))
            params.append((f"sort[{i}][direction]", spec.get("direction", "asc")))
        return params

    async def _request(
        self,
        operation: str,
        table: TableName,
        method: str,
        url: str,
        *,
        record_id: str | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        client = await self._get_client()
        should_close = self._http_client is None
        start = time.perf_counter()

        try:
            response = await client.request(method, url, headers=self._get_headers(), **kwargs)
        except httpx.TimeoutException as exc:
            raise BackendUnavailable(operation, table.value, f"timed out: {exc}") from exc
        except httpx.TransportError as exc:
            raise BackendUnavailable(operation, table.value, f"unreachable: {exc}") from exc
        finally:
            if should_close:
                await client.aclose()

        elapsed_ms = int((time.perf_counter() - start) * 1000)
        logger.debug(
            "%s %s %s → %d (%dms)", operation, table.value, method, response.status_code, elapsed_ms
        )

        if response.status_code >= 400:
            raise self._store_error(operation, table, response, record_id)
        try:
            body = response.json()
        except ValueError:
            raise _malformed(operation, table, "body is not JSON", response.status_code) from None
        if not isinstance(body, dict):
            raise _malformed(operation, table, "body is not an object", response.status_code)
        return body

    @staticmethod
    def _store_error(
        operation: str,
        table: TableName,
        response: httpx.Response,
        record_id: str | None,
    ) -> BackendError:
        """Translate an error response into the domain taxonomy."""
        message = f"HTTP {response.status_code}"
        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict) and "error" in body:
            error = body["error"]
            if isinstance(error, dict):
                message = error.get("message") or error.get("type") or message
            elif isinstance(error, str):
                message = error

        status_code = response.status_code
        if status_code in _UNAVAILABLE_STATUSES:
            return BackendUnavailable(operation, table.value, message, status_code=status_code)
        if status_code == 404 and record_id is not None:
            return RecordNotFound(operation, table.value, record_id, message)
        return BackendRejected(operation, table.value, message, status_code=status_code)

    @classmethod
    def _first_record(cls, operation: str, table: TableName, data: dict[str, Any]) -> Record:
        """The single record echoed back by a create or update."""
        records = data.get("records")
        if not isinstance(records, list) or not records:
            raise _malformed(operation, table, "no record in response")
        return cls._to_record(operation, table, records[0])

    @staticmethod
    def _to_record(operation: str, table: TableName, data: Any) -> Record:
        """Normalize an Airtable record payload into a domain Record."""
        if not isinstance(data, dict) or not isinstance(data.get("id"), str):
            raise _malformed(operation, table, "record without an id")
        fields = data.get("fields") or {}
        if not isinstance(fields, dict):
            raise _malformed(operation, table, "record fields are not an object")
        return Record(
            id=data["id"],
            table=table,
            fields=dict(fields),
            created_time=data.get("createdTime"),
        )


def _malformed(
    operation: str, table: TableName, reason: str, status_code: int | None = None
) -> BackendRejected:
    return BackendRejected(
        operation, table.value, f"malformed store response: {reason}", status_code=status_code
    )

"""HTTP client for the hosted data store.

Speaks PostgREST-style endpoints: table routes under `table_prefix` and RPC
functions under `rpc_prefix`. Failures are classified here, once, from
status codes, RPC error codes and httpx exception types.

Usage:
    async with HttpRemoteStore("https://xyz.supabase.co", api_key="...") as remote:
        result = await remote.update_with_version(
            "academic_records", record_id, {"score": 90}, expected_version=3,
            actor_id=actor_id,
        )
"""

import time
from typing import Any

import httpx

from portalsync.audit.models import AuditAction, AuditRecord
from portalsync.config.models import BULK_INSERT_ACTION, RateLimitPolicy, RemoteConfig
from portalsync.errors import (
    ErrorKind,
    FieldError,
    MutationError,
    RemoteStoreError,
    SessionExpiredError,
    kind_from_code,
    kind_from_status,
    wrap_transport_error,
)
from portalsync.observability.logging import get_logger
from portalsync.observability.metrics import REMOTE_ERRORS, REMOTE_LATENCY
from portalsync.ratelimit.limiter import RateLimiter
from portalsync.records.models import VersionedEntity
from portalsync.remote.base import RemoteStore
from portalsync.remote.models import (
    BulkInsertResult,
    RecordError,
    UpdateConflict,
    UpdateFailed,
    UpdateNotFound,
    UpdateResult,
    UpdateSucceeded,
)

logger = get_logger(__name__)

AUDIT_TABLE = "audit_logs"


def _entity_from_row(table: str, row: dict[str, Any]) -> VersionedEntity:
    data = dict(row)
    record_id = str(data.pop("id"))
    version = int(data.pop("version", 1) or 1)
    updated_at = data.pop("updated_at", None)
    fields: dict[str, Any] = {"table": table, "id": record_id, "version": version, "data": data}
    if updated_at:
        fields["updated_at"] = updated_at
    return VersionedEntity(**fields)


def _audit_from_row(row: dict[str, Any]) -> AuditRecord:
    return AuditRecord(
        id=row["id"],
        created_at=row["created_at"],
        actor_id=str(row.get("user_id") or "system"),
        actor_label=row.get("user_email"),
        table_name=row["table_name"],
        record_id=str(row["record_id"]),
        action=AuditAction(str(row["action"]).lower()),
        before_state=row.get("old_data"),
        after_state=row.get("new_data"),
    )


def _field_errors(raw: list[dict[str, Any]] | None) -> list[FieldError]:
    return [
        FieldError(field=str(item.get("field", "record")), message=str(item.get("message", "")))
        for item in raw or []
    ]


def _record_errors(raw: list[dict[str, Any]] | None) -> list[RecordError]:
    return [
        RecordError(
            record_ref=str(item.get("record_ref") or item.get("student_id") or "?"),
            field_errors=_field_errors(item.get("errors")),
        )
        for item in raw or []
    ]


def _rate_limited(count: int, message: str | None) -> BulkInsertResult:
    return BulkInsertResult(
        success=False,
        inserted=0,
        failed=count,
        error_code="RATE_LIMIT",
        message=message,
    )


class HttpRemoteStore(RemoteStore):
    """RemoteStore backed by the hosted store's REST and RPC endpoints."""

    def __init__(
        self,
        base_url: str,
        *,
        api_key: str | None = None,
        access_token: str | None = None,
        timeout: float = 30.0,
        rpc_prefix: str = "/rest/v1/rpc",
        table_prefix: str = "/rest/v1",
        advisory_limiter: RateLimiter | None = None,
        bulk_policy: RateLimitPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Base URL of the hosted store
            api_key: Project API key
            access_token: Session JWT of the signed-in user
            timeout: Request timeout in seconds
            rpc_prefix: Path prefix of RPC functions
            table_prefix: Path prefix of table routes
            advisory_limiter: Local limiter consulted before bulk inserts
            bulk_policy: Budget used for the advisory pre-check
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._access_token = access_token
        self._rpc_prefix = rpc_prefix.rstrip("/")
        self._table_prefix = table_prefix.rstrip("/")
        self._advisory_limiter = advisory_limiter
        self._bulk_policy = bulk_policy or RateLimitPolicy(max_requests=10, window_minutes=60)
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_config(
        cls,
        config: RemoteConfig,
        *,
        access_token: str | None = None,
        advisory_limiter: RateLimiter | None = None,
        bulk_policy: RateLimitPolicy | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> "HttpRemoteStore":
        """Create a client from the `remote` settings section."""
        return cls(
            config.base_url,
            api_key=config.api_key.get_secret_value() if config.api_key else None,
            access_token=access_token,
            timeout=config.timeout_seconds,
            rpc_prefix=config.rpc_prefix,
            table_prefix=config.table_prefix,
            advisory_limiter=advisory_limiter,
            bulk_policy=bulk_policy,
            transport=transport,
        )

    async def __aenter__(self) -> "HttpRemoteStore":
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()

    def set_access_token(self, token: str | None) -> None:
        """Swap the session token, e.g. after re-login."""
        self._access_token = token

    def _headers(self, prefer: str | None = None) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            headers["apikey"] = self._api_key
        bearer = self._access_token or self._api_key
        if bearer:
            headers["Authorization"] = f"Bearer {bearer}"
        if prefer:
            headers["Prefer"] = prefer
        return headers

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
        prefer: str | None = None,
    ) -> Any:
        """Make a request and return the decoded JSON body.

        Raises:
            SessionExpiredError: On 401 / auth error codes
            RemoteStoreError: On any other failure, classified
        """
        started = time.perf_counter()
        try:
            response = await self._client.request(
                method,
                path,
                headers=self._headers(prefer),
                json=json,
                params=params,
            )
        except httpx.HTTPError as exc:
            error = wrap_transport_error(exc)
            REMOTE_ERRORS.labels(operation=operation, kind=error.kind.value).inc()
            logger.warning("remote_transport_error", operation=operation, kind=error.kind.value)
            raise error from exc
        finally:
            REMOTE_LATENCY.labels(operation=operation).observe(time.perf_counter() - started)

        if response.status_code >= 400:
            raise self._error_from_response(operation, response)

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    def _error_from_response(self, operation: str, response: httpx.Response) -> RemoteStoreError:
        code: str | None = None
        message = response.text
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            code = body.get("code")
            message = body.get("message") or body.get("error") or message

        kind = kind_from_code(code) or kind_from_status(response.status_code)
        REMOTE_ERRORS.labels(operation=operation, kind=kind.value).inc()
        logger.warning(
            "remote_request_failed",
            operation=operation,
            status_code=response.status_code,
            code=code,
            kind=kind.value,
        )
        if kind is ErrorKind.UNAUTHORIZED:
            return SessionExpiredError(message, status_code=response.status_code)
        return RemoteStoreError(message, kind, status_code=response.status_code, code=code)

    def _table_path(self, table: str) -> str:
        return f"{self._table_prefix}/{table}"

    def _rpc_path(self, name: str) -> str:
        return f"{self._rpc_prefix}/{name}"

    async def get(self, table: str, record_id: str) -> VersionedEntity | None:
        rows = await self._request(
            "get",
            "GET",
            self._table_path(table),
            params={"id": f"eq.{record_id}", "select": "*"},
        )
        if not rows:
            return None
        return _entity_from_row(table, rows[0])

    async def insert(
        self,
        table: str,
        fields: dict[str, Any],
        *,
        actor_id: str,
        record_id: str | None = None,
    ) -> VersionedEntity:
        payload = {k: v for k, v in fields.items() if k != "version"}
        if record_id is not None:
            payload["id"] = record_id
        rows = await self._request(
            "insert",
            "POST",
            self._table_path(table),
            json=payload,
            prefer="return=representation",
        )
        logger.info("remote_insert", table=table, actor_id=actor_id)
        return _entity_from_row(table, rows[0])

    async def delete(self, table: str, record_id: str, *, actor_id: str) -> VersionedEntity:
        rows = await self._request(
            "delete",
            "DELETE",
            self._table_path(table),
            params={"id": f"eq.{record_id}"},
            prefer="return=representation",
        )
        if not rows:
            raise RemoteStoreError(
                f"{table}/{record_id} not found", ErrorKind.NOT_FOUND, code="NOT_FOUND"
            )
        logger.info("remote_delete", table=table, record_id=record_id, actor_id=actor_id)
        return _entity_from_row(table, rows[0])

    async def restore(self, entity: VersionedEntity, *, actor_id: str) -> VersionedEntity:
        payload = {**entity.data, "id": entity.id, "version": entity.version + 1}
        rows = await self._request(
            "restore",
            "POST",
            self._table_path(entity.table),
            json=payload,
            prefer="return=representation",
        )
        logger.info("remote_restore", table=entity.table, record_id=entity.id, actor_id=actor_id)
        return _entity_from_row(entity.table, rows[0])

    async def update_with_version(
        self,
        table: str,
        record_id: str,
        fields: dict[str, Any],
        expected_version: int,
        *,
        actor_id: str,
    ) -> UpdateResult:
        try:
            body = await self._request(
                "update_with_version",
                "POST",
                self._rpc_path("update_with_version"),
                json={
                    "p_table": table,
                    "p_record_id": record_id,
                    "p_fields": fields,
                    "p_expected_version": expected_version,
                    "p_actor_id": actor_id,
                },
            )
        except SessionExpiredError:
            raise
        except RemoteStoreError as exc:
            return UpdateFailed(error=exc.to_error())

        body = body or {}
        if body.get("success"):
            return UpdateSucceeded(
                new_version=int(body["new_version"]),
                previous=body.get("previous") or {},
            )

        code = body.get("code")
        if code == "CONFLICT":
            return UpdateConflict(current_version=int(body["current_version"]))
        if code == "NOT_FOUND":
            return UpdateNotFound()
        kind = kind_from_code(code) or ErrorKind.SERVER_ERROR
        return UpdateFailed(error=MutationError.of(kind, detail=body.get("error"), code=code))

    async def bulk_insert(
        self,
        table: str,
        records: list[dict[str, Any]],
        actor_id: str,
    ) -> BulkInsertResult:
        """Bulk insert through the RPC, after an optional advisory pre-check.

        A failed pre-check returns the RATE_LIMIT outcome without a round
        trip. A passing pre-check is no guarantee: the remote may still
        answer RATE_LIMIT, and its answer wins.
        """
        if self._advisory_limiter is not None:
            allowed = await self._advisory_limiter.check(
                actor_id,
                BULK_INSERT_ACTION,
                self._bulk_policy.max_requests,
                self._bulk_policy.window_minutes,
            )
            if not allowed:
                return _rate_limited(len(records), MutationError.of(ErrorKind.RATE_LIMIT).message)

        try:
            body = await self._request(
                "bulk_insert",
                "POST",
                self._rpc_path("bulk_insert"),
                json={"p_table": table, "p_records": records, "p_actor_id": actor_id},
            )
        except RemoteStoreError as exc:
            # 429 or a RATE_LIMIT error body: same outcome as a denied check
            if exc.kind is ErrorKind.RATE_LIMIT:
                return _rate_limited(len(records), exc.message)
            raise
        body = body or {}
        if body.get("code") == "RATE_LIMIT":
            return _rate_limited(len(records), body.get("error"))

        return BulkInsertResult(
            success=bool(body.get("success")),
            inserted=int(body.get("inserted", 0)),
            failed=int(body.get("failed", len(body.get("errors") or []))),
            errors=_record_errors(body.get("errors")),
            warnings=_record_errors(body.get("warnings")),
            error_code=body.get("code"),
            message=body.get("error"),
            inserted_ids=[str(i) for i in body.get("inserted_ids") or []],
        )

    async def check_rate_limit(
        self,
        actor_id: str,
        action_type: str,
        max_requests: int,
        window_minutes: int,
    ) -> bool:
        allowed = await self._request(
            "check_rate_limit",
            "POST",
            self._rpc_path("check_rate_limit"),
            json={
                "p_user_id": actor_id,
                "p_action_type": action_type,
                "p_max_requests": max_requests,
                "p_window_minutes": window_minutes,
            },
        )
        return bool(allowed)

    async def query_audit_log(
        self,
        table_name: str,
        record_id: str | None = None,
        limit: int = 50,
    ) -> list[AuditRecord]:
        params: dict[str, Any] = {
            "table_name": f"eq.{table_name}",
            "order": "created_at.desc",
            "limit": limit,
        }
        if record_id is not None:
            params["record_id"] = f"eq.{record_id}"
        rows = await self._request("query_audit_log", "GET", self._table_path(AUDIT_TABLE), params=params)
        return [_audit_from_row(row) for row in rows or []]

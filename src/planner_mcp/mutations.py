"""
ETag-guarded writes.

Every Planner write follows the same sequence: read the resource's current
@odata.etag, build the delta, send it with If-Match. The read and the write
are not a transaction. If the resource changes in between, Graph rejects the
write (412) and the failure is surfaced as MutationConflictError. Nothing
here retries, because a retry would reapply a change decided on stale state.

Task and task details share an id but have independent ETags, so a token
always records which kind and id it was read from.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, Union

from planner_mcp.errors import MutationConflictError, TokenFetchError, TransportError
from planner_mcp.graph import execute
from planner_mcp.locator import locate


ETAG_FIELD = "@odata.etag"

# Resources that carry their own ETag and accept guarded writes
GUARDED_KINDS = frozenset({"task", "taskDetails", "bucket"})


@dataclass(frozen=True)
class ConcurrencyToken:
    kind: str
    resource_id: str
    value: str


def _require_guarded_kind(kind: str) -> None:
    if kind not in GUARDED_KINDS:
        raise ValueError(f"{kind!r} is not a guarded resource kind (expected one of {sorted(GUARDED_KINDS)})")


async def fetch_token(client, kind: str, resource_id: str) -> ConcurrencyToken:
    """
    Read the current ETag of a task, task details record or bucket.

    Raises:
        ValueError: If kind has no ETag of its own (e.g. plan)
        TokenFetchError: If the GET fails or the ETag is missing
    """
    _require_guarded_kind(kind)
    url = locate(kind, resource_id)
    try:
        text = await execute(client, "GET", url)
    except TransportError as e:
        raise TokenFetchError(f"Could not read ETag for {kind} {resource_id}: {e}") from e

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise TokenFetchError(f"Could not read ETag for {kind} {resource_id}: invalid JSON ({e})") from e

    etag = data.get(ETAG_FIELD) if isinstance(data, dict) else None
    if not etag or not isinstance(etag, str):
        raise TokenFetchError(
            f"{kind} {resource_id} has no {ETAG_FIELD}; it may have been deleted"
        )
    return ConcurrencyToken(kind, resource_id, etag)


def check_token(token: ConcurrencyToken, kind: str, resource_id: str) -> None:
    """Refuse to guard a write with a token read from another resource."""
    if token.kind != kind or token.resource_id != resource_id:
        raise ValueError(
            f"ETag read from {token.kind} {token.resource_id} cannot guard a write to {kind} {resource_id}"
        )


def _result(text: str, success_message: str) -> str:
    # Graph answers most PATCH/DELETE calls with 204 No Content
    return text if text and text.strip() else success_message


async def guarded_patch(
    client,
    kind: str,
    resource_id: str,
    delta: Union[Dict[str, Any], Any],
    success_message: str,
) -> str:
    """
    PATCH a delta onto a resource, guarded by its current ETag.

    Args:
        client: Graph REST client
        kind: task, taskDetails or bucket
        resource_id: Resource id
        delta: A delta variant (anything with to_payload()) or a merged dict
        success_message: Returned when Graph sends no content

    Returns:
        Graph's response body, or success_message when it is empty

    Raises:
        TokenFetchError: ETag could not be read (propagated unchanged)
        MutationConflictError: The write was rejected
    """
    token = await fetch_token(client, kind, resource_id)
    payload = delta if isinstance(delta, dict) else delta.to_payload()
    check_token(token, kind, resource_id)
    try:
        text = await execute(client, "PATCH", locate(kind, resource_id), payload, {"If-Match": token.value})
    except TransportError as e:
        raise MutationConflictError(str(e), status_code=e.status_code) from e
    return _result(text, success_message)


async def guarded_delete(
    client,
    kind: str,
    resource_id: str,
    success_message: str,
) -> str:
    """DELETE a resource, guarded by its current ETag."""
    token = await fetch_token(client, kind, resource_id)
    check_token(token, kind, resource_id)
    try:
        text = await execute(client, "DELETE", locate(kind, resource_id), None, {"If-Match": token.value})
    except TransportError as e:
        raise MutationConflictError(str(e), status_code=e.status_code) from e
    return _result(text, success_message)

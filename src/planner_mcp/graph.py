"""
Authenticated access to Microsoft Graph.

GraphRestClient is the only object that touches credentials or the network.
Everything else receives it (or a test double with the same request()
signature) as an argument and goes through execute().
"""

import asyncio
import json
import sys
import time
from typing import Any, Dict, Optional, Sequence

import httpx
from azure.core.credentials import AccessToken, TokenCredential
from azure.identity import AzureCliCredential, DeviceCodeCredential, TokenCachePersistenceOptions

from planner_mcp.config import Settings, load_settings
from planner_mcp.errors import TransportError


# Token cache name for device code logins (persisted by msal-extensions)
TOKEN_CACHE_NAME = "planner_mcp_cache"

# Refresh access tokens this many seconds before they expire
TOKEN_REFRESH_MARGIN = 300

# Characters that would end or split a header line
_HEADER_BREAKERS = ("\r", "\n", "\0")

# Global REST client and initialization lock
_rest_client = None
_rest_client_lock = asyncio.Lock()


def _device_code_prompt(verification_uri: str, user_code: str, expires_on: Any) -> None:
    # stdout belongs to the MCP protocol, so the prompt goes to stderr
    print(
        f"🔐 Authentication required: open {verification_uri} and enter code {user_code}",
        file=sys.stderr,
        flush=True,
    )


def build_credential(settings: Settings) -> TokenCredential:
    """
    Create the azure-identity credential selected by configuration.

    Args:
        settings: Loaded configuration

    Returns:
        AzureCliCredential (reuses `az login`) or a DeviceCodeCredential
        with a persistent token cache
    """
    if settings.credential == "device_code":
        return DeviceCodeCredential(
            client_id=settings.client_id,
            tenant_id=settings.tenant_id,
            prompt_callback=_device_code_prompt,
            cache_persistence_options=TokenCachePersistenceOptions(name=TOKEN_CACHE_NAME),
        )
    return AzureCliCredential()


class GraphRestClient:
    """
    Authenticated REST client for Microsoft Graph.

    Attaches a bearer token to every request and returns the raw response
    text for 2xx responses. Anything else raises TransportError.
    Response bodies are read in full with no size limit.
    """

    def __init__(
        self,
        credential: TokenCredential,
        scopes: Sequence[str],
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._credential = credential
        self._scopes = tuple(scopes)
        self._access_token: Optional[AccessToken] = None
        self._http = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def _bearer_token(self) -> str:
        token = self._access_token
        if token is None or token.expires_on - TOKEN_REFRESH_MARGIN <= time.time():
            # azure-identity credentials are synchronous (az subprocess, msal)
            token = await asyncio.to_thread(self._credential.get_token, *self._scopes)
            self._access_token = token
        return token.token

    async def request(
        self,
        method: str,
        url: str,
        content: Optional[bytes] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> str:
        """
        Send one request to Graph.

        Raises:
            TransportError: On credential failure, network failure or non-2xx status
        """
        try:
            access_token = await self._bearer_token()
        except Exception as e:
            raise TransportError(None, f"Could not acquire access token: {type(e).__name__}: {e}")

        send_headers: Dict[str, Any] = {"Authorization": f"Bearer {access_token}"}
        for name, value in (headers or {}).items():
            # httpx only encodes str header values as ASCII
            send_headers[name] = value if value.isascii() else value.encode("utf-8")

        try:
            response = await self._http.request(method, url, content=content, headers=send_headers)
        except httpx.HTTPError as e:
            raise TransportError(None, f"{method} {url} -> {type(e).__name__}: {e}")

        if not response.is_success:
            raise TransportError(
                response.status_code,
                f"{method} {url} -> {response.status_code} {response.text}",
            )
        return response.text

    async def aclose(self) -> None:
        await self._http.aclose()


async def execute(
    client,
    method: str,
    url: str,
    body: Optional[Any] = None,
    extra_headers: Optional[Dict[str, str]] = None,
) -> str:
    """
    Execute an authenticated Graph request.

    Args:
        client: GraphRestClient (or any object with the same request() coroutine)
        method: HTTP method
        url: Absolute URL from locate()
        body: JSON-serializable body, sent as UTF-8 application/json
        extra_headers: Merged last, e.g. {"If-Match": etag}

    Returns:
        Raw response text (may be empty)

    Raises:
        TransportError: On any non-2xx response or transport failure
    """
    headers: Dict[str, str] = {}
    content = None
    if body is not None:
        content = json.dumps(body, ensure_ascii=False).encode("utf-8")
        headers["Content-Type"] = "application/json"

    for name, value in (extra_headers or {}).items():
        if any(ch in value for ch in _HEADER_BREAKERS):
            raise TransportError(None, f"Header {name} contains a line break or NUL and cannot be sent")
        headers[name] = value

    print(f"→ {method} {url}", file=sys.stderr, flush=True)
    try:
        return await client.request(method, url, content=content, headers=headers)
    except TransportError as e:
        print(f"❌ {method} {url} failed: {e}", file=sys.stderr, flush=True)
        raise


async def get_json(client, url: str) -> Dict[str, Any]:
    """GET a resource and decode its JSON body."""
    text = await execute(client, "GET", url)
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise TransportError(None, f"GET {url} returned invalid JSON: {e}")


async def post_json(client, url: str, body: Any) -> Dict[str, Any]:
    """POST a body and decode the JSON response. An empty response decodes to {}."""
    text = await execute(client, "POST", url, body)
    if not text.strip():
        return {}
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise TransportError(None, f"POST {url} returned invalid JSON: {e}")


async def get_rest_client() -> GraphRestClient:
    """
    Get or create the process-wide Graph REST client.

    Uses an async lock so concurrent first calls create a single client.
    The client carries credentials only, never Planner state.
    """
    global _rest_client

    if _rest_client is not None:
        return _rest_client

    async with _rest_client_lock:
        if _rest_client is not None:
            return _rest_client

        settings = load_settings()
        print(
            f"🔐 Initializing Graph REST client ({settings.credential} credential)...",
            file=sys.stderr,
            flush=True,
        )
        _rest_client = GraphRestClient(
            build_credential(settings),
            settings.scopes,
            timeout=settings.api_timeout,
        )
        return _rest_client

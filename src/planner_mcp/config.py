"""
Configuration for the Planner MCP server.

Values come from the process environment, optionally seeded from a .env file
in the working directory. Nothing here is persisted.
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from dotenv import load_dotenv


# Microsoft Graph root for every Planner, group and conversation endpoint
GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"

# Default scope for az-cli and device code tokens
DEFAULT_SCOPES = "https://graph.microsoft.com/.default"

# API timeout configuration
DEFAULT_API_TIMEOUT = 60.0  # Timeout for Graph API calls in seconds

CREDENTIAL_KINDS = ("cli", "device_code")
TOOLSET_NAMES = ("full", "tasks", "readonly")


@dataclass(frozen=True)
class Settings:
    credential: str = "cli"
    client_id: Optional[str] = None
    tenant_id: Optional[str] = None
    scopes: Tuple[str, ...] = (DEFAULT_SCOPES,)
    toolset: str = "full"
    api_timeout: float = DEFAULT_API_TIMEOUT


def load_settings(env_file: Optional[Path] = None) -> Settings:
    """
    Build Settings from the environment.

    Args:
        env_file: Optional .env path (defaults to ./.env when it exists)

    Returns:
        Settings: Validated configuration

    Raises:
        ValueError: If a variable holds an unsupported value
    """
    env_path = env_file or Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(dotenv_path=env_path)

    credential = os.getenv("PLANNER_MCP_CREDENTIAL", "cli").strip().lower()
    if credential not in CREDENTIAL_KINDS:
        raise ValueError(
            f"PLANNER_MCP_CREDENTIAL must be one of {', '.join(CREDENTIAL_KINDS)}, "
            f"got {credential!r}"
        )

    client_id = os.getenv("CLIENT_ID") or None
    tenant_id = os.getenv("TENANT_ID") or None
    if credential == "device_code" and (not client_id or not tenant_id):
        raise ValueError(
            "Missing required environment variables. "
            "CLIENT_ID and TENANT_ID must be set when PLANNER_MCP_CREDENTIAL=device_code"
        )

    toolset = os.getenv("PLANNER_MCP_TOOLSET", "full").strip().lower()
    if toolset not in TOOLSET_NAMES:
        raise ValueError(
            f"PLANNER_MCP_TOOLSET must be one of {', '.join(TOOLSET_NAMES)}, got {toolset!r}"
        )

    raw_timeout = os.getenv("PLANNER_MCP_TIMEOUT", str(DEFAULT_API_TIMEOUT))
    try:
        api_timeout = float(raw_timeout)
    except ValueError:
        raise ValueError(f"PLANNER_MCP_TIMEOUT must be a number of seconds, got {raw_timeout!r}")
    if api_timeout <= 0:
        raise ValueError(f"PLANNER_MCP_TIMEOUT must be positive, got {raw_timeout!r}")

    scopes = tuple(os.getenv("PLANNER_MCP_SCOPES", DEFAULT_SCOPES).split())

    return Settings(
        credential=credential,
        client_id=client_id,
        tenant_id=tenant_id,
        scopes=scopes or (DEFAULT_SCOPES,),
        toolset=toolset,
        api_timeout=api_timeout,
    )

"""Run the Planner MCP server over STDIO."""

import sys

from planner_mcp import __version__
from planner_mcp.config import load_settings
from planner_mcp.server import SERVER_NAME, TOOLSETS, create_server


def main() -> None:
    settings = load_settings()
    mcp = create_server(settings.toolset)

    # Log startup to stderr (stdout is reserved for MCP protocol)
    print("=" * 60, file=sys.stderr, flush=True)
    print("Microsoft Planner MCP Server", file=sys.stderr, flush=True)
    print("=" * 60, file=sys.stderr, flush=True)
    print(f"Server: {SERVER_NAME} {__version__}", file=sys.stderr, flush=True)
    print(f"Tool set: {settings.toolset} ({len(TOOLSETS[settings.toolset])} tools)", file=sys.stderr, flush=True)
    print(f"Credential: {settings.credential}", file=sys.stderr, flush=True)
    print("Transport: STDIO", file=sys.stderr, flush=True)
    print("=" * 60, file=sys.stderr, flush=True)
    print(file=sys.stderr, flush=True)

    mcp.run()


if __name__ == "__main__":
    main()

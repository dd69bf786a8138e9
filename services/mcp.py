"""Tool server registry: load enabled servers from the static config and fetch their tools."""
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

from langchain_core.tools import BaseTool
from langchain_mcp_adapters.client import MultiServerMCPClient
from pydantic import ValidationError

from schemas.mcp import ToolServerConfig

logger = logging.getLogger(__name__)

TOOL_NAME_SEPARATOR = "__"


def get_config_path() -> Path:
    return Path(os.getenv("MCP_CONFIG_PATH", os.path.join(os.getcwd(), "mcp-config.json")))


def to_connection(server: ToolServerConfig) -> Optional[Dict[str, Any]]:
    """Convert a server entry into a MultiServerMCPClient connection, or None if incomplete."""
    if server.type == "stdio" and server.command:
        connection: Dict[str, Any] = {"transport": "stdio", "command": server.command, "args": server.args or []}
        if server.env is not None:
            connection["env"] = server.env
        return connection

    if server.type == "http" and server.url:
        connection = {"transport": "streamable_http", "url": server.url}
        if server.headers is not None:
            connection["headers"] = server.headers
        return connection

    return None


def get_mcp_server_configs(config_path: Optional[Path] = None) -> Dict[str, Dict[str, Any]]:
    """
    Load enabled tool servers from the config file.

    Returns:
        dict: Connection settings keyed by server name; empty when the file is
        missing or invalid
    """
    config_path = config_path or get_config_path()
    try:
        if not config_path.exists():
            logger.warning(f"{config_path} not found, no tool servers will be loaded")
            return {}

        raw = json.loads(config_path.read_text(encoding="utf-8"))
        if not isinstance(raw, dict) or not isinstance(raw.get("servers"), list):
            logger.error(f"Invalid tool config {config_path}: servers array not found")
            return {}

        configs: Dict[str, Dict[str, Any]] = {}
        for entry in raw["servers"]:
            if not isinstance(entry, dict):
                continue
            try:
                server = ToolServerConfig.model_validate(entry)
            except ValidationError as e:
                logger.error(f"Skipping invalid tool server entry {entry.get('name')!r}: {e}")
                continue

            if not server.enabled:
                continue

            connection = to_connection(server)
            if connection is None:
                logger.warning(f"Skipping tool server {server.name}: missing command or url")
                continue
            configs[server.name] = connection

        logger.info(f"Loaded {len(configs)} enabled tool server(s)")
        return configs
    except Exception as e:
        logger.error(f"Failed to load tool config: {e}")
        return {}


def create_mcp_client(config_path: Optional[Path] = None) -> Optional[MultiServerMCPClient]:
    """Create a client for every enabled server, or None when none are enabled."""
    servers = get_mcp_server_configs(config_path)
    if not servers:
        return None

    try:
        return MultiServerMCPClient(servers)
    except Exception as e:
        logger.error(f"Failed to create tool server client: {e}")
        return None


async def get_mcp_tools(config_path: Optional[Path] = None) -> List[BaseTool]:
    """
    Fetch tools from every enabled server.

    A server that cannot be reached contributes no tools. Tool names are
    prefixed with the server name so servers cannot shadow each other.
    """
    client = create_mcp_client(config_path)
    if client is None:
        return []

    tools: List[BaseTool] = []
    for server_name in client.connections:
        try:
            server_tools = await client.get_tools(server_name=server_name)
        except Exception as e:
            logger.error(f"Failed to load tools from server {server_name}: {e}")
            continue

        for server_tool in server_tools:
            server_tool.name = f"{server_name}{TOOL_NAME_SEPARATOR}{server_tool.name}"
        tools.extend(server_tools)

    logger.info(f"Loaded {len(tools)} tool(s) from tool servers")
    return tools

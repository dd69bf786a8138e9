"""Built-in tools that a request can enable by name."""
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence
import logging

from langchain_core.tools import BaseTool, tool

logger = logging.getLogger(__name__)


@tool
def get_current_time_utc() -> str:
    """Return the current time in UTC (ISO8601)."""
    return datetime.now(timezone.utc).isoformat()


def get_registered_tools() -> Sequence[BaseTool]:
    """Return all built-in tools."""
    return (get_current_time_utc,)


def get_tools_by_name() -> Dict[str, BaseTool]:
    return {t.name: t for t in get_registered_tools()}


def select_tools(names: Optional[Sequence[str]]) -> List[BaseTool]:
    """Pick built-in tools by name, ignoring names that are not registered."""
    if not names:
        return []
    registry = get_tools_by_name()
    selected = []
    for name in names:
        if name in registry:
            selected.append(registry[name])
        else:
            logger.warning(f"Unknown built-in tool requested: {name}")
    return selected

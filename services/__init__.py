from .minio import minio_service
from .uploads import UploadService
from .mcp import get_mcp_server_configs, get_mcp_tools
from .memory import create_memory_saver, hydrate_memory_from_history, get_history
from .agent import create_agent
from .streaming import AgentTurn, TurnOutcome, start_turn, resume_turn, stream_response

__all__ = ["minio_service", "UploadService", "get_mcp_server_configs", "get_mcp_tools",
           "create_memory_saver", "hydrate_memory_from_history", "get_history",
           "create_agent", "AgentTurn", "TurnOutcome", "start_turn", "resume_turn", "stream_response"]

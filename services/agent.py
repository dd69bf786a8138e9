"""Agent factory: a fresh, memory-hydrated agent graph per request."""
import os
import logging
from typing import Any, Optional, Sequence

from langchain.chat_models import init_chat_model
from langchain_core.language_models import BaseChatModel

from dtos.chat_request import AgentOptions
from graph import build_agent_graph
from services.mcp import get_mcp_tools
from services.memory import create_memory_saver, hydrate_memory_from_history
from services.tools import select_tools

logger = logging.getLogger(__name__)


def default_model_provider() -> str:
    return os.getenv("DEFAULT_MODEL_PROVIDER", "openai")


def default_model_name() -> str:
    return os.getenv("DEFAULT_MODEL_NAME", "gpt-4o-mini")


def create_chat_model(model: Optional[str] = None, temperature: float = 1) -> BaseChatModel:
    """
    Create a chat model from an identifier.

    ``"provider:model"`` selects the provider explicitly; a bare model name uses
    the default provider.
    """
    if model and ":" in model:
        provider, model_name = model.split(":", 1)
    else:
        provider, model_name = default_model_provider(), model or default_model_name()
    return init_chat_model(model_name, model_provider=provider, temperature=temperature)


async def create_agent(
    options: Optional[AgentOptions] = None,
    thread_id: Optional[str] = None,
    history: Optional[Sequence[Any]] = None,
    llm: Optional[BaseChatModel] = None,
):
    """
    Build a compiled agent graph with its own checkpoint store.

    Never cached: each call loads tools, creates a saver and hydrates it from
    ``history`` so no state leaks between requests.
    """
    options = options or AgentOptions()
    llm = llm or create_chat_model(options.model)

    config_tools = select_tools(options.tools)
    mcp_tools = await get_mcp_tools()
    all_tools = [*config_tools, *mcp_tools]

    saver = create_memory_saver()
    if thread_id and history:
        await hydrate_memory_from_history(saver, thread_id, history)

    return build_agent_graph(
        llm=llm,
        tools=all_tools,
        checkpointer=saver,
        prompt=options.system_prompt,
        approve_all_tools=options.approve_all_tools,
    )

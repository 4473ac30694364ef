"""Chat model construction and message helpers shared by the agents."""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Iterable

from langchain_anthropic import ChatAnthropic
from langchain_core.messages import AIMessage, AnyMessage, BaseMessage, HumanMessage, SystemMessage

from backend.core import config

logger = logging.getLogger(__name__)


@dataclass
class AgentReply:
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)


def build_chat_model(temperature: float) -> ChatAnthropic:
    if not config.ANTHROPIC_API_KEY:
        raise RuntimeError("ANTHROPIC_API_KEY is not configured.")
    return ChatAnthropic(
        model=config.LLM_MODEL_NAME,
        api_key=config.ANTHROPIC_API_KEY,
        temperature=temperature,
        max_tokens=config.LLM_MAX_TOKENS,
    )


def format_history(history: Iterable[dict[str, str]]) -> list[AnyMessage]:
    """Turn stored ``{"role", "content"}`` pairs into LangChain messages.

    System entries are skipped; the agent supplies its own system prompt.
    """
    messages: list[AnyMessage] = []
    for entry in history:
        role = entry.get("role")
        content = entry.get("content", "")
        if role == "user":
            messages.append(HumanMessage(content=content))
        elif role == "assistant":
            messages.append(AIMessage(content=content))
    return messages


def message_text(message: BaseMessage | Any) -> str:
    content = getattr(message, "content", message)
    if isinstance(content, list):
        # Anthropic may return content blocks
        return "".join(
            block.get("text", "") if isinstance(block, dict) else str(block)
            for block in content
        )
    return str(content)


def invoke_model(model, system_prompt: str, history: Iterable[dict[str, str]], user_input: str, operation: str) -> str:
    messages = [SystemMessage(content=system_prompt), *format_history(history), HumanMessage(content=user_input)]
    t0 = time.perf_counter()
    response = model.invoke(messages)
    logger.debug("%s responded in %.0fms", operation, (time.perf_counter() - t0) * 1000)
    return message_text(response)

"""Base utilities for oracle agents.

This module provides common utilities for creating and running agents
using the OpenAI Agents SDK.
"""

import logging
import os
from typing import Any, Optional

# Disable tracing to avoid noisy 503 errors from telemetry
os.environ.setdefault("OPENAI_AGENTS_DISABLE_TRACING", "1")

from agents import Agent, Runner

from signaltrader.errors import ExternalSourceError

logger = logging.getLogger(__name__)

# Default model to use for agents
DEFAULT_MODEL = "gpt-5.2"


def get_model(override: Optional[str] = None) -> str:
    """Get the model to use for agents.

    Args:
        override: Model configured explicitly. Takes precedence.

    Returns:
        Model name string. Falls back to OPENAI_MODEL, then the default.
    """
    return override or os.environ.get("OPENAI_MODEL", DEFAULT_MODEL)


def create_agent(
    name: str,
    instructions: str,
    model: Optional[str] = None,
) -> Agent:
    """Create an agent with the specified configuration.

    Args:
        name: Name of the agent.
        instructions: System instructions for the agent.
        model: Optional model override. Uses default if not specified.

    Returns:
        Configured Agent instance.
    """
    return Agent(
        name=name,
        instructions=instructions,
        model=get_model(model),
    )


def _get_model_info(model: str) -> tuple[str, str]:
    """Get model display name and reasoning level.

    Args:
        model: Model name string.

    Returns:
        Tuple of (display_name, reasoning_level).
    """
    o_series = {
        "o1": ("o1", "high"),
        "o1-mini": ("o1-mini", "medium"),
        "o3": ("o3", "very high"),
        "o3-mini": ("o3-mini", "medium"),
        "o4-mini": ("o4-mini", "medium"),
    }

    if model in o_series:
        return o_series[model]

    if model.startswith("gpt-5"):
        return (model, "medium")

    if model.startswith("gpt-4"):
        return (model, "standard")

    return (model, "unknown")


def run_agent_sync(
    agent: Agent,
    message: str,
    context: Optional[dict[str, Any]] = None,
) -> str:
    """Run an agent synchronously and return the response.

    Args:
        agent: The agent to run.
        message: User message to send to the agent.
        context: Optional context dictionary to pass to the agent.

    Returns:
        Agent's response as a string.

    Raises:
        ExternalSourceError: If the agent run fails or returns nothing.
    """
    display_name, reasoning = _get_model_info(str(agent.model))
    logger.debug("Agent: %s | Model: %s | Reasoning: %s", agent.name, display_name, reasoning)

    try:
        result = Runner.run_sync(agent, message, context=context)
    except Exception as e:
        raise ExternalSourceError(f"Agent {agent.name} failed: {e}") from e

    output = result.final_output
    if output is None or not str(output).strip():
        raise ExternalSourceError(f"Agent {agent.name} returned an empty response")
    return str(output)

"""Agent module for continuous remote-surface control.

This module provides:
- AgentLoop: Observe -> Decide -> Act engine
- ConversationWindow: Bounded history sent to the decision service
- Prompts: System prompts for the pointer and touch families
"""

from surface_pilot.domain.agent.agent_loop import AgentLoop
from surface_pilot.domain.agent.conversation import ConversationWindow, Turn
from surface_pilot.domain.agent.prompts import build_system_prompt

__all__ = [
    "AgentLoop",
    "ConversationWindow",
    "Turn",
    "build_system_prompt",
]

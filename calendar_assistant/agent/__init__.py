"""
Calendar chat agent: tool-calling orchestration over Google Calendar
"""

from .assistant_config import AssistantConfigCache
from .clarification import ClarificationGate
from .orchestrator import ConversationOrchestrator, submit_message
from .streams import StreamChannel, StreamChannelSet
from .thread_store import InMemoryThreadStore
from .tool_dispatcher import ToolDispatcher

__all__ = [
    "AssistantConfigCache",
    "ClarificationGate",
    "ConversationOrchestrator",
    "InMemoryThreadStore",
    "StreamChannel",
    "StreamChannelSet",
    "ToolDispatcher",
    "submit_message",
]

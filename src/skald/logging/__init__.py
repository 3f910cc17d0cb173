"""
Conversation logging for Skald.

Provides JSONL logging of the agent loop for debugging and analysis, and a
reader to load those logs back.
"""

from skald.logging.conversation_logger import ConversationLogger
from skald.logging.reader import LogReader

__all__ = [
    "ConversationLogger",
    "LogReader",
]

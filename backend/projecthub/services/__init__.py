"""
Services module for ProjectHub.
"""
from .conversations import append_event, list_conversations, Conversation

__all__ = [
    "append_event",
    "list_conversations",
    "Conversation",
]

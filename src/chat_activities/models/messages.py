"""
Chat message models.

Messages are produced once by the chat parser and never mutated.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from .base import FrozenCamelModel


class Message(FrozenCamelModel):
    """
    A single parsed chat message.

    Ids are stable and monotonic within one transcript, which is what makes
    id distance usable as a proxy for conversational closeness.
    """

    id: int = Field(description="Stable, monotonic message id within the transcript", ge=0)
    sender: str = Field(description="Display name of the sender")
    timestamp: datetime = Field(description="When the message was sent")
    content: str = Field(description="Message text")
    urls: Optional[List[str]] = Field(default=None, description="URLs found in the message")


class SourceMessage(FrozenCamelModel):
    """A message that mentioned an activity."""

    message_id: int = Field(ge=0)
    sender: str
    timestamp: datetime
    content: str
    context: Optional[str] = None

"""Markdown rendering of reconciled conversations."""

from datetime import datetime

from cursor_history.models import ASSISTANT, Conversation
from cursor_history.timestamps import parse_instant

EMPTY_ASSISTANT_PLACEHOLDER = "_[No text content available]_"


def format_display_time(instant: str) -> str:
    """Render an ISO instant in local time using the locale's format."""
    dt: datetime = parse_instant(instant).astimezone()
    return dt.strftime("%x %X")


def conversation_to_markdown(conversation: Conversation) -> str:
    """Render one conversation as a Markdown document.

    Args:
        conversation: Reconciled conversation

    Returns:
        Markdown text with a title heading, timestamps, optional summary
        and one section per message
    """
    lines = [
        f"# {conversation.title}\n\n",
        f"_Created: {format_display_time(conversation.created_at)}_\n",
        f"_Last Updated: {format_display_time(conversation.last_updated_at)}_\n\n---\n\n",
    ]

    if conversation.summary:
        lines.append(f"**Summary:** {conversation.summary}\n\n")

    for message in conversation.messages:
        lines.append(f"### {message.role.capitalize()}\n\n")
        if message.content:
            lines.append(f"{message.content}\n\n")
        elif message.role == ASSISTANT:
            # Unreachable for reconciled data, empty bubbles are dropped
            lines.append(f"{EMPTY_ASSISTANT_PLACEHOLDER}\n\n")
        lines.append("---\n\n")

    return "".join(lines)

"""Decoder for legacy chat-tab bubbles.

Older Cursor versions keep the whole chat panel in the workspace database
under ``workbench.panel.aichat.view.aichat.chatdata``:

- tabs: Array of chat tabs
  - tabId: Tab identifier
  - chatTitle: Title, possibly multi-line
  - lastSendTime: Unix timestamp (seconds or milliseconds)
  - bubbles: Array of messages
    - type: "user" or "ai" (sometimes a number)
    - role: Present on some records instead of type
    - text / content: Message text
    - id / bubbleId: Bubble identifier
"""

from cursor_history.decoders.base import BubbleDecoder, first_text
from cursor_history.models import ASSISTANT, LEGACY_CHAT, USER


class ChatTabBubbleDecoder(BubbleDecoder):
    """Decoder for bubbles embedded in legacy chat tabs."""

    source_name = LEGACY_CHAT

    def infer_role(self, raw: dict) -> str:
        if raw.get("role") == USER or raw.get("type") == USER:
            return USER
        return ASSISTANT

    def extract_content(self, raw: dict) -> str:
        return first_text(raw, "content", "text")

    def extract_id(self, raw: dict) -> str | None:
        return first_text(raw, "id", "bubbleId") or None

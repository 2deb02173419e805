"""Decoder for bubbles in the global key/value store.

Newer Cursor versions store each composer message as its own row in the
global ``cursorDiskKV`` table, keyed ``bubbleId:<composerId>:<bubbleId>``:

- bubbleId: Bubble identifier
- type: 1 for user, 0 or 2 for assistant
- text: Plain message text
- richText: Serialized editor state, used when text is empty

Unknown type codes are read as assistant messages.
"""

from cursor_history.decoders.base import BubbleDecoder, first_text, is_type_code
from cursor_history.models import ASSISTANT, GLOBAL_BUBBLE, USER

USER_TYPE = 1


class GlobalBubbleDecoder(BubbleDecoder):
    """Decoder for per-bubble rows of the global store."""

    source_name = GLOBAL_BUBBLE

    def infer_role(self, raw: dict) -> str:
        if is_type_code(raw.get("type"), USER_TYPE):
            return USER
        return ASSISTANT

    def extract_content(self, raw: dict) -> str:
        return first_text(raw, "text", "richText")

    def extract_id(self, raw: dict) -> str | None:
        return first_text(raw, "bubbleId") or None

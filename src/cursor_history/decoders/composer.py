"""Decoder for messages embedded in composer bodies.

Composer bodies live in the global database under ``composerData:<id>``.
Some generations inline their messages:

- messages / conversation: Array of messages
  - role: "user" or "assistant" (not always present)
  - type: 1 for user, 2 for assistant
  - content / text: Message text
  - id / bubbleId: Bubble identifier
"""

from cursor_history.decoders.base import BubbleDecoder, first_text, is_type_code
from cursor_history.models import ASSISTANT, COMPOSER_MESSAGE, USER

USER_TYPE = 1


class ComposerMessageDecoder(BubbleDecoder):
    """Decoder for messages inlined in a composer body."""

    source_name = COMPOSER_MESSAGE

    def infer_role(self, raw: dict) -> str:
        if raw.get("role") == USER or is_type_code(raw.get("type"), USER_TYPE):
            return USER
        return ASSISTANT

    def extract_content(self, raw: dict) -> str:
        return first_text(raw, "content", "text")

    def extract_id(self, raw: dict) -> str | None:
        return first_text(raw, "id", "bubbleId") or None

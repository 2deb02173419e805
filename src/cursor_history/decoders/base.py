"""Base bubble decoder interface and registry."""

from abc import ABC, abstractmethod

from cursor_history.models import ChatBubble

# Re-export ChatBubble for convenient access from decoders
__all__ = ["BubbleDecoder", "ChatBubble", "DecoderRegistry", "first_text", "is_type_code"]


def first_text(raw: dict, *fields: str) -> str:
    """Return the first non-empty string among the given fields.

    Args:
        raw: Raw record
        *fields: Field names in order of preference

    Returns:
        The first non-empty string value, or empty string
    """
    for name in fields:
        value = raw.get(name)
        if isinstance(value, str) and value:
            return value
    return ""


def is_type_code(value: object, code: int) -> bool:
    """Check a raw numeric type discriminator, never matching booleans."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return value == code


class BubbleDecoder(ABC):
    """Base class for per-source bubble decoders.

    Subclasses must set the `source_name` class attribute and implement
    `infer_role()`, `extract_content()` and `extract_id()`. The shared
    `decode()` turns a raw record into at most one ChatBubble and drops
    records without visible content.
    """

    source_name: str

    @abstractmethod
    def infer_role(self, raw: dict) -> str:
        """Return "user" or "assistant" for a raw record."""

    @abstractmethod
    def extract_content(self, raw: dict) -> str:
        """Return the message text of a raw record, or empty string."""

    @abstractmethod
    def extract_id(self, raw: dict) -> str | None:
        """Return the source-local identifier of a raw record, if any."""

    def decode(self, raw: object, fallback_id: str | None = None) -> ChatBubble | None:
        """Decode one raw record into a canonical bubble.

        Args:
            raw: Raw record as loaded from JSON
            fallback_id: Identifier to use when the record carries none

        Returns:
            ChatBubble, or None if the record is not an object or its
            content is empty or whitespace-only
        """
        if not isinstance(raw, dict):
            return None

        content = self.extract_content(raw)
        if not content.strip():
            return None

        original_type = raw.get("type")
        if isinstance(original_type, bool) or not isinstance(original_type, (int, float, str)):
            original_type = None

        return ChatBubble(
            role=self.infer_role(raw),
            content=content,
            id=self.extract_id(raw) or fallback_id,
            original_type=original_type,
            original_source=self.source_name,
        )


class DecoderRegistry:
    """Registry of decoders by source name."""

    _decoders: dict[str, BubbleDecoder] = {}

    @classmethod
    def register(cls, decoder: BubbleDecoder) -> None:
        """Register a decoder."""
        cls._decoders[decoder.source_name] = decoder

    @classmethod
    def get(cls, source_name: str) -> BubbleDecoder | None:
        """Get decoder by source name."""
        return cls._decoders.get(source_name)

    @classmethod
    def all_sources(cls) -> list[str]:
        """List all registered source names."""
        return list(cls._decoders.keys())

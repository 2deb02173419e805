"""Canonical data models."""

from dataclasses import dataclass, field

# Source tags recorded on every bubble
LEGACY_CHAT = "legacy-chat"
COMPOSER_MESSAGE = "composer-message"
GLOBAL_BUBBLE = "global-bubble"

USER = "user"
ASSISTANT = "assistant"


@dataclass(frozen=True)
class ChatBubble:
    """A normalized message from any of the three chat sources."""

    role: str  # user, assistant
    content: str
    id: str | None = None  # Source-local bubble identifier
    original_type: int | float | str | None = None  # Raw type discriminator
    original_source: str | None = None  # legacy-chat, composer-message, global-bubble

    @property
    def dedup_key(self) -> tuple[str, str]:
        """Identity used for deduplication; ids differ across sources."""
        return (self.role, self.content)

    def to_dict(self) -> dict:
        """Convert to the conversation query format."""
        doc: dict = {"role": self.role, "content": self.content}
        if self.id is not None:
            doc["id"] = self.id
        if self.original_type is not None:
            doc["originalType"] = self.original_type
        if self.original_source is not None:
            doc["originalSource"] = self.original_source
        return doc


@dataclass
class Conversation:
    """One logical chat, unified across legacy tabs and composers."""

    id: str  # tabId or composerId
    title: str
    created_at: str  # ISO-8601 instant
    last_updated_at: str  # ISO-8601 instant
    summary: str | None = None
    messages: list[ChatBubble] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to the conversation query format."""
        doc: dict = {
            "id": self.id,
            "name": self.title,
            "messages": [message.to_dict() for message in self.messages],
            "createdAt": self.created_at,
            "lastUpdatedAt": self.last_updated_at,
        }
        if self.summary is not None:
            doc["summary"] = self.summary
        return doc

"""Reconciliation of legacy chat tabs, composers and global bubbles.

A Reconciliation owns every map built while reconciling one workspace. The
sources must be ingested in order:

1. ingest_chat_tabs()       workspace ``chatdata`` blob
2. index_composers()        workspace ``composer.composerData`` blob
   ingest_composers()       ``composerData:<id>`` bodies from the global store
3. ingest_global_bubbles()  ``bubbleId:<composerId>:<bubbleId>`` rows

and finalize() then produces the deduplicated, ordered conversation list.
The engine performs no I/O; reconciler.fetch feeds it.
"""

import json
from dataclasses import dataclass, field

from cursor_history.decoders import BubbleDecoder, DecoderRegistry
from cursor_history.logging import get_logger
from cursor_history.models import COMPOSER_MESSAGE, GLOBAL_BUBBLE, LEGACY_CHAT, ChatBubble, Conversation
from cursor_history.reconciler.ordering import order_conversation_messages, sort_conversations
from cursor_history.timestamps import normalize_timestamp

logger = get_logger("reconciler")

COMPOSER_KEY_PREFIX = "composerData"
BUBBLE_KEY_PREFIX = "bubbleId"

# Field precedence when a composer body updates an existing conversation.
# Each conversation field takes the first present composer path; when none
# is present the field keeps its current value.
COMPOSER_MERGE_PRECEDENCE: dict[str, tuple[str, ...]] = {
    "title": ("name",),
    "summary": ("latestConversationSummary.summary.summary",),
    "last_updated_at": ("lastUpdatedAt", "createdAt"),
    "created_at": ("createdAt",),
}

# Field precedence when a composer body creates a new conversation
COMPOSER_CREATE_PRECEDENCE: dict[str, tuple[str, ...]] = {
    "title": ("name",),
    "summary": ("latestConversationSummary.summary.summary", "name"),
    "last_updated_at": ("lastUpdatedAt", "createdAt"),
    "created_at": ("createdAt", "lastUpdatedAt"),
}

TIMESTAMP_FIELDS = frozenset({"created_at", "last_updated_at"})


def composer_key(composer_id: str) -> str:
    """Global store key of a composer body."""
    return f"{COMPOSER_KEY_PREFIX}:{composer_id}"


def fallback_title(conversation_id: str) -> str:
    """Synthetic title for conversations that carry none."""
    return f"Chat {conversation_id[:8]}"


def lookup(record: dict, path: str) -> object:
    """Resolve a dotted path in nested dicts, returning None when absent."""
    value: object = record
    for part in path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def first_present(record: dict, paths: tuple[str, ...]) -> object:
    """Return the first truthy value among dotted paths, or None."""
    for path in paths:
        value = lookup(record, path)
        if value:
            return value
    return None


def _decoder(source_name: str) -> BubbleDecoder:
    decoder = DecoderRegistry.get(source_name)
    if decoder is None:
        raise LookupError(f"No decoder registered for {source_name}")
    return decoder


@dataclass
class ScanTally:
    """Outcome counts of one global bubble scan."""

    admitted: int = 0
    foreign: int = 0
    empty: int = 0
    malformed: int = 0


@dataclass
class Reconciliation:
    """Per-run reconciliation state for a single workspace."""

    conversations: dict[str, Conversation] = field(default_factory=dict)
    staged: dict[str, list[ChatBubble]] = field(default_factory=dict)
    order_hints: dict[str, dict[str, int]] = field(default_factory=dict)
    workspace_composer_ids: set[str] = field(default_factory=set)
    composer_index: dict[str, dict] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self._tab_decoder = _decoder(LEGACY_CHAT)
        self._composer_decoder = _decoder(COMPOSER_MESSAGE)
        self._bubble_decoder = _decoder(GLOBAL_BUBBLE)

    def _stage(self, conversation_id: str, bubble: ChatBubble) -> None:
        self.staged.setdefault(conversation_id, []).append(bubble)

    # Phase 1: legacy chat tabs

    def ingest_chat_tabs(self, chat_data: dict) -> int:
        """Create a provisional conversation for every legacy chat tab.

        Args:
            chat_data: Parsed ``chatdata`` blob

        Returns:
            Number of tabs ingested
        """
        count = 0
        for tab in chat_data.get("tabs") or []:
            if not isinstance(tab, dict):
                continue
            tab_id = tab.get("tabId")
            if not isinstance(tab_id, str) or not tab_id:
                logger.debug("Skipping chat tab without tabId")
                continue

            bubbles = []
            for raw in tab.get("bubbles") or []:
                bubble = self._tab_decoder.decode(raw)
                if bubble:
                    bubbles.append(bubble)
            self.staged[tab_id] = bubbles

            chat_title = tab.get("chatTitle")
            title = chat_title.split("\n")[0] if isinstance(chat_title, str) else ""
            last_send = normalize_timestamp(tab.get("lastSendTime"))
            self.conversations[tab_id] = Conversation(
                id=tab_id,
                title=title or fallback_title(tab_id),
                created_at=last_send,
                last_updated_at=last_send,
            )
            count += 1

        logger.debug("Ingested chat tabs: count=%d", count)
        return count

    # Phase 2: composers

    def index_composers(self, metadata: dict) -> list[str]:
        """Record the composers that belong to this workspace.

        Args:
            metadata: Parsed ``composer.composerData`` blob

        Returns:
            Composer ids in metadata order
        """
        composer_ids: list[str] = []
        for entry in metadata.get("allComposers") or []:
            if not isinstance(entry, dict):
                continue
            composer_id = entry.get("composerId")
            if not isinstance(composer_id, str) or not composer_id:
                continue
            self.workspace_composer_ids.add(composer_id)
            self.composer_index[composer_id] = entry
            composer_ids.append(composer_id)

        logger.debug("Indexed workspace composers: count=%d", len(composer_ids))
        return composer_ids

    def composer_keys(self) -> list[str]:
        """Global store keys of every indexed composer body."""
        return [composer_key(composer_id) for composer_id in self.composer_index]

    def ingest_composers(self, bodies: list[dict]) -> int:
        """Merge composer bodies into the conversation registry.

        Args:
            bodies: Parsed ``composerData:<id>`` values

        Returns:
            Number of composer bodies ingested
        """
        count = 0
        for body in bodies:
            if not isinstance(body, dict):
                continue
            composer_id = body.get("composerId")
            if not isinstance(composer_id, str) or not composer_id:
                logger.debug("Skipping composer body without composerId")
                continue

            self._capture_order_hints(composer_id, body)

            staged = self.staged.setdefault(composer_id, [])
            for raw in self._composer_messages(body):
                bubble = self._composer_decoder.decode(raw)
                if bubble:
                    staged.append(bubble)

            existing = self.conversations.get(composer_id)
            if existing is not None:
                self._merge_composer(existing, body)
            else:
                self.conversations[composer_id] = self._conversation_from_composer(composer_id, body)
            count += 1

        logger.debug("Ingested composer bodies: count=%d", count)
        return count

    def _capture_order_hints(self, composer_id: str, body: dict) -> None:
        headers = body.get("fullConversationHeadersOnly")
        if not isinstance(headers, list) or not headers:
            return
        hints: dict[str, int] = {}
        for position, header in enumerate(headers):
            if isinstance(header, dict) and isinstance(header.get("bubbleId"), str):
                hints[header["bubbleId"]] = position
        self.order_hints[composer_id] = hints

    @staticmethod
    def _composer_messages(body: dict) -> list:
        for name in ("messages", "conversation"):
            value = body.get(name)
            if isinstance(value, list) and value:
                return value
        return []

    @staticmethod
    def _merge_composer(conversation: Conversation, body: dict) -> None:
        for attr, paths in COMPOSER_MERGE_PRECEDENCE.items():
            value = first_present(body, paths)
            if value is None:
                continue
            if attr in TIMESTAMP_FIELDS:
                value = normalize_timestamp(value)
            elif not isinstance(value, str):
                continue
            setattr(conversation, attr, value)

    @staticmethod
    def _conversation_from_composer(composer_id: str, body: dict) -> Conversation:
        values = {
            attr: first_present(body, paths)
            for attr, paths in COMPOSER_CREATE_PRECEDENCE.items()
        }
        title = values["title"] if isinstance(values["title"], str) else None
        summary = values["summary"] if isinstance(values["summary"], str) else None
        return Conversation(
            id=composer_id,
            title=title or fallback_title(composer_id),
            summary=summary,
            created_at=normalize_timestamp(values["created_at"]),
            last_updated_at=normalize_timestamp(values["last_updated_at"]),
        )

    # Phase 3: global bubbles

    def ingest_global_bubbles(self, rows: list[tuple[str, str | bytes]]) -> ScanTally:
        """Attribute global store bubbles to this workspace's composers.

        Rows whose composer is not part of the workspace are discarded; the
        global store holds bubbles of every workspace. A row that fails to
        decode or parse is counted and skipped without aborting the scan.

        Args:
            rows: (key, value) pairs from the ``bubbleId:%`` scan

        Returns:
            ScanTally with per-outcome counts
        """
        tally = ScanTally()
        for key, value in rows:
            parts = key.split(":")
            if len(parts) < 2:
                tally.malformed += 1
                continue
            composer_id = parts[1]
            if composer_id not in self.workspace_composer_ids:
                tally.foreign += 1
                continue

            try:
                if isinstance(value, bytes):
                    value = value.decode("utf-8")
                data = json.loads(value)
            except (TypeError, UnicodeDecodeError, ValueError):
                tally.malformed += 1
                logger.debug("Skipping malformed bubble: key=%s", key)
                continue

            bubble = self._bubble_decoder.decode(
                data,
                fallback_id=parts[2] if len(parts) > 2 and parts[2] else None,
            )
            if bubble is None:
                tally.empty += 1
                continue

            self._stage(composer_id, bubble)
            self._touch_from_index(composer_id)
            tally.admitted += 1

        logger.debug(
            "Scanned global bubbles: admitted=%d foreign=%d empty=%d malformed=%d",
            tally.admitted,
            tally.foreign,
            tally.empty,
            tally.malformed,
        )
        return tally

    def _touch_from_index(self, composer_id: str) -> None:
        meta = self.composer_index.get(composer_id, {})
        conversation = self.conversations.get(composer_id)
        if conversation is None:
            name = meta.get("name")
            self.conversations[composer_id] = Conversation(
                id=composer_id,
                title=name if isinstance(name, str) and name else fallback_title(composer_id),
                created_at=normalize_timestamp(meta.get("createdAt") or None),
                last_updated_at=normalize_timestamp(meta.get("lastUpdatedAt") or None),
            )
        elif meta.get("lastUpdatedAt"):
            conversation.last_updated_at = normalize_timestamp(meta["lastUpdatedAt"])

    # Consolidation

    def finalize(self) -> list[Conversation]:
        """Deduplicate, order, drop empty conversations and sort.

        Returns:
            Conversations with at least one message, most recently
            updated first
        """
        results: list[Conversation] = []
        for conversation_id, conversation in self.conversations.items():
            conversation.messages = order_conversation_messages(
                self.staged.get(conversation_id, []),
                self.order_hints.get(conversation_id),
            )
            if conversation.messages:
                results.append(conversation)
        return sort_conversations(results)

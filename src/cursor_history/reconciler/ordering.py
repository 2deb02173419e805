"""Deduplication and ordering of staged bubbles and conversations."""

from cursor_history.models import ChatBubble, Conversation
from cursor_history.timestamps import parse_instant


def dedupe_bubbles(bubbles: list[ChatBubble]) -> list[ChatBubble]:
    """Keep the first occurrence of every (role, content) pair.

    Bubble ids are ignored. Two distinct messages with identical role and
    text collapse into one.
    """
    seen: set[tuple[str, str]] = set()
    unique: list[ChatBubble] = []
    for bubble in bubbles:
        key = bubble.dedup_key
        if key in seen:
            continue
        seen.add(key)
        unique.append(bubble)
    return unique


def apply_order_hints(
    bubbles: list[ChatBubble],
    hints: dict[str, int] | None,
) -> list[ChatBubble]:
    """Order bubbles by their hinted position.

    Hinted bubbles come first, by hint value. Bubbles without a hint follow
    in their staging order. Without hints the staging order is kept as is.

    Args:
        bubbles: Bubbles in staging order
        hints: Mapping of bubble id to position, possibly empty

    Returns:
        New list in final order
    """
    if not hints:
        return list(bubbles)

    def sort_key(bubble: ChatBubble) -> tuple[int, int]:
        if bubble.id is not None and bubble.id in hints:
            return (0, hints[bubble.id])
        return (1, 0)

    # list.sort is stable, so unhinted bubbles keep their relative order
    return sorted(bubbles, key=sort_key)


def order_conversation_messages(
    bubbles: list[ChatBubble],
    hints: dict[str, int] | None = None,
) -> list[ChatBubble]:
    """Deduplicate staged bubbles, then apply order hints."""
    return apply_order_hints(dedupe_bubbles(bubbles), hints)


def sort_conversations(conversations: list[Conversation]) -> list[Conversation]:
    """Sort conversations by last update, most recent first."""
    return sorted(
        conversations,
        key=lambda conversation: parse_instant(conversation.last_updated_at),
        reverse=True,
    )

"""Decoders turning raw per-source records into canonical bubbles."""

from .base import BubbleDecoder, ChatBubble, DecoderRegistry, first_text, is_type_code
from .chat_tab import ChatTabBubbleDecoder
from .composer import ComposerMessageDecoder
from .global_bubble import GlobalBubbleDecoder

__all__ = [
    "BubbleDecoder",
    "ChatBubble",
    "ChatTabBubbleDecoder",
    "ComposerMessageDecoder",
    "DecoderRegistry",
    "GlobalBubbleDecoder",
    "first_text",
    "is_type_code",
]

# Register decoders
DecoderRegistry.register(ChatTabBubbleDecoder())
DecoderRegistry.register(ComposerMessageDecoder())
DecoderRegistry.register(GlobalBubbleDecoder())

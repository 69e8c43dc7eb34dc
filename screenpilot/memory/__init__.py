from .messages import HistoryItem, Message, MessageHistory, MessageRole, TextPart

__all__ = ["HistoryItem", "Message", "MessageHistory", "MessageRole", "TextPart"]

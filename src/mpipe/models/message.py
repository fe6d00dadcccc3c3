from dataclasses import dataclass


@dataclass(frozen=True)
class ChatMessage:
    """Standard message format sent to every provider"""

    role: str
    content: str

    @classmethod
    def system(cls, content: str) -> "ChatMessage":
        return cls("system", content)

    @classmethod
    def user(cls, content: str) -> "ChatMessage":
        return cls("user", content)

    def to_api_format(self) -> dict:
        """Convert to the chat-completions wire format"""
        return {"role": self.role, "content": self.content or ""}

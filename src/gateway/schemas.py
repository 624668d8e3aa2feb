"""Request bodies for the HTTP gateway.

Field names are camelCase to match the mobile client's JSON.
"""

from typing import Annotated, List, Optional

from pydantic import AfterValidator, BaseModel, Field

from .notify import ChatNotification


def _not_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be blank")
    return value


NonBlankStr = Annotated[str, Field(min_length=1), AfterValidator(_not_blank)]


class DetectIntentRequest(BaseModel):
    sessionId: NonBlankStr
    query: NonBlankStr
    languageCode: Optional[str] = None


class ChatNotificationRequest(BaseModel):
    recipientToken: NonBlankStr
    senderName: NonBlankStr
    messageText: NonBlankStr
    chatRoomId: Optional[str] = None
    postTitle: Optional[str] = None

    def to_notification(self) -> ChatNotification:
        return ChatNotification(
            recipient_token=self.recipientToken,
            sender_name=self.senderName,
            message_text=self.messageText,
            chat_room_id=self.chatRoomId,
            post_title=self.postTitle,
        )


class BatchNotificationRequest(BaseModel):
    notifications: List[ChatNotificationRequest] = Field(min_length=1)


class CompletionProbeRequest(BaseModel):
    query: str = "How to grow tomatoes?"
    kbText: str = "Tomatoes need full sun and regular watering."

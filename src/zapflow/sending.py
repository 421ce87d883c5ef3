"""
Outbound send — identity gate in front of the gateway plus delivery-state patches.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

from zapflow.content import build_agent_header
from zapflow.errors import SendError
from zapflow.identity import require_phone_number
from zapflow.media.hydrator import SnapshotCallback
from zapflow.models.conversation import AuthorRole, Conversation, Message, MessageType
from zapflow.models.delivery import DeliveryStatus

logger = logging.getLogger(__name__)


class TextGateway(Protocol):
    async def send_text(self, number: str, text: str) -> dict[str, Any]: ...


def _provider_id(response: dict[str, Any]) -> Optional[str]:
    key = response.get("key")
    if isinstance(key, dict) and isinstance(key.get("id"), str) and key["id"]:
        return key["id"]
    return None


class OutboundSender:
    def __init__(self, gateway: TextGateway, replace_conversation: SnapshotCallback):
        self._gateway = gateway
        self._replace_conversation = replace_conversation

    async def send_text(
        self,
        conversation: Conversation,
        text: str,
        *,
        agent_name: Optional[str] = None,
        department: Optional[str] = None,
    ) -> Conversation:
        """Send `text` to the conversation's contact and return the final snapshot.

        Raises UnresolvableIdentityError before any network call when the
        conversation has no sendable number, SendError when the gateway fails.
        """
        number = require_phone_number(conversation)
        body = f"{build_agent_header(agent_name, department)}{text}" if agent_name else text

        message = Message(
            id=str(uuid.uuid4()),
            content=body,
            sender=AuthorRole.AGENT,
            type=MessageType.TEXT,
            status=DeliveryStatus.PENDING,
            timestamp=datetime.now(timezone.utc),
        )
        snapshot = conversation.append_message(message)
        self._replace_conversation(snapshot)

        try:
            response = await self._gateway.send_text(number, body)
        except Exception as e:
            logger.error("send failed for conversation %s: %s", conversation.id, e)
            snapshot = snapshot.patch_message(message.id, status=DeliveryStatus.ERROR)
            self._replace_conversation(snapshot)
            raise SendError(f"Failed to send message: {e}", details={"conversation_id": conversation.id}) from e

        snapshot = snapshot.patch_message(
            message.id,
            status=DeliveryStatus.SENT,
            provider_message_id=_provider_id(response),
        )
        self._replace_conversation(snapshot)
        return snapshot

import logging
import time
import uuid

from p2pchat.core.models import ChatMessage
from p2pchat.utils.error_codes import ChatClientError, ValidationRejection

logger = logging.getLogger(__name__)


class ChatComposer:
    def __init__(self, coordinator, clock=time.time):
        self.coordinator = coordinator
        self.clock = clock
        self.draft = ""

    @property
    def enabled(self) -> bool:
        return self.coordinator.session.chat_open

    def build_message(self, text: str) -> ChatMessage:
        session = self.coordinator.session
        return ChatMessage(
            id=str(uuid.uuid4()),
            sender=session.self_peer_id,
            recipient=session.active_peer,
            timestamp=int(self.clock() * 1000),
            content=text,
        )

    async def compose(self, text: str):
        if not self.enabled:
            raise ValidationRejection("Select a peer before sending")
        if not text:
            self.draft = ""
            return None

        peer_id = self.coordinator.session.active_peer
        message = self.build_message(text)
        try:
            await self.coordinator.gateway.send_message(peer_id, message)
        except ChatClientError as e:
            # Send failures are not surfaced; history shows what the backend kept
            logger.warning("send_message to %s failed: %s", peer_id, e)
        finally:
            self.draft = ""

        await self.coordinator.refresh_history(peer_id)
        return message

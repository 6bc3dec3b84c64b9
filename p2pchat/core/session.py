import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from p2pchat.core.models import ChatMessage
from p2pchat.network.transport import EVENT_MESSAGE_RECEIVED
from p2pchat.utils.error_codes import ChatClientError

logger = logging.getLogger(__name__)

_STOP = object()


@dataclass
class Session:
    self_peer_id: Optional[str] = None
    active_peer: Optional[str] = None
    chat_open: bool = False
    peers: List[str] = field(default_factory=list)
    messages: List[ChatMessage] = field(default_factory=list)


class SessionCoordinator:
    """
    Owns the Session for the lifetime of the chat UI.

    Push events never touch the session directly: the subscription handler
    only queues a trigger, and the coordinator's own loop picks it up and
    reads `session.active_peer` at that moment.
    """

    def __init__(self, gateway, ui_callback=None):
        self.gateway = gateway
        self.ui_callback = ui_callback
        self.session = Session()
        self._triggers = asyncio.Queue()
        self._unsubscribe = None
        self._loop_task = None

    def _notify(self, event_type, data=None):
        if self.ui_callback:
            self.ui_callback(event_type, data)

    async def mount(self):
        self.session.self_peer_id = await self.gateway.get_self_peer_id()
        self._unsubscribe = await self.gateway.subscribe(
            EVENT_MESSAGE_RECEIVED, self._on_message_received
        )
        self._loop_task = asyncio.create_task(self._run())
        logger.info("Session mounted as %s", self.session.self_peer_id)

    def unmount(self):
        if self._unsubscribe is None:
            return
        self._unsubscribe()
        self._unsubscribe = None
        # Lets the loop finish whatever refresh it is awaiting
        self._triggers.put_nowait(_STOP)

    async def wait_closed(self):
        if self._loop_task:
            await self._loop_task

    def _on_message_received(self, payload):
        # The payload is not routed on; it is only a signal
        self._triggers.put_nowait(EVENT_MESSAGE_RECEIVED)

    async def _run(self):
        while True:
            trigger = await self._triggers.get()
            if trigger is _STOP:
                break

            peer_id = self.session.active_peer
            if not peer_id:
                logger.debug("%s with no open conversation", trigger)
                continue
            try:
                await self.refresh_history(peer_id)
            except ChatClientError as e:
                logger.warning("History refresh for %s failed: %s", peer_id, e)
            except Exception:
                logger.exception("Handling %s for %s failed", trigger, peer_id)

    async def discover_peer(self, query: str) -> list:
        peers = await self.gateway.find_peer(query)
        # Each lookup is a full snapshot
        self.session.peers = list(peers)
        self._notify("PEERS", self.session.peers)
        return self.session.peers

    async def select_conversation(self, peer_id: str):
        self.session.active_peer = peer_id
        self.session.chat_open = True
        self._notify("SELECTED", peer_id)
        await self.refresh_history(peer_id)

    async def refresh_history(self, peer_id: str) -> list:
        messages = await self.gateway.get_history_message(peer_id)
        # No ordering between overlapping refreshes; the last response wins
        self.session.messages = list(messages)
        self._notify("HISTORY", self.session.messages)
        return self.session.messages

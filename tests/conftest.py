import asyncio
from collections import defaultdict

import pytest

from p2pchat.core.models import ChatMessage
from p2pchat.utils.error_codes import ValidationRejection

SELF_ID = "12D3KooWSelf"
PEER_A = "12D3KooWPeerA"
PEER_B = "12D3KooWPeerB"


def make_message(sender, recipient, content, timestamp=1_700_000_000_000, message_id=None):
    return ChatMessage(
        id=message_id or f"{sender}-{timestamp}",
        sender=sender,
        recipient=recipient,
        timestamp=timestamp,
        content=content,
    )


class FakeGateway:
    """In-memory stand-in for BackendGateway with the same command methods."""

    def __init__(self):
        self.calls = []
        self.first_run = True
        self.self_peer_id = SELF_ID
        self.directory = {}
        self.histories = defaultdict(list)
        self.stored_config = None
        self.saved_configs = []
        self.sent = []
        self.failures = {}
        self.gates = {}
        self.subscribers = defaultdict(list)
        self.unsubscribe_count = 0

    def fail(self, command, error):
        self.failures[command] = error

    def gate(self, command, *args):
        event = asyncio.Event()
        self.gates[(command,) + args] = event
        return event

    async def _call(self, command, *args):
        self.calls.append((command,) + args)
        gate = self.gates.get((command,) + args)
        if gate is not None:
            await gate.wait()
        if command in self.failures:
            raise self.failures[command]

    def count(self, command):
        return sum(1 for call in self.calls if call[0] == command)

    async def get_first_run(self):
        await self._call("get_first_run")
        return self.first_run

    async def setup_password(self, password):
        await self._call("setup_password")
        if not password:
            raise ValidationRejection("Password must not be empty")

    async def load_config(self):
        await self._call("load_config")
        if self.stored_config is None:
            return {}
        return {"network": self.stored_config}

    async def save_config(self, config):
        await self._call("save_config")
        self.saved_configs.append(config)
        self.stored_config = config.to_wire()

    async def get_self_peer_id(self):
        await self._call("get_self_peer_id")
        return self.self_peer_id

    async def find_peer(self, peer_id):
        await self._call("find_peer", peer_id)
        return list(self.directory.get(peer_id, []))

    async def get_history_message(self, peer_id):
        await self._call("get_history_message", peer_id)
        return list(self.histories[peer_id])

    async def send_message(self, peer_id, message):
        await self._call("send_message", peer_id)
        self.sent.append((peer_id, message))
        self.histories[peer_id].append(message)

    async def subscribe(self, event, handler):
        self.subscribers[event].append(handler)

        def unsubscribe():
            self.subscribers[event].remove(handler)
            self.unsubscribe_count += 1

        return unsubscribe

    def emit(self, event, payload=None):
        for handler in list(self.subscribers[event]):
            handler(payload)


async def settle(rounds=5):
    """Lets queued callbacks and tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def gateway():
    return FakeGateway()

import asyncio
import json
import logging
import uuid
from collections import defaultdict

import websockets

from p2pchat.core.models import ChatMessage, NetworkConfig
from p2pchat.utils.error_codes import (
    BackendCommandError,
    ConnectivityError,
    ProtocolError,
    ValidationRejection,
)
from p2pchat.utils.validators import validate_password

logger = logging.getLogger(__name__)

DEFAULT_BACKEND_URI = "ws://localhost:8765"

EVENT_MESSAGE_RECEIVED = "message-received"


class BackendGateway:
    """
    Websocket client for the DHT node's command and push-event surface.

    Every command is a COMMAND frame answered by a RESPONSE frame with the
    same id. EVENT frames are fanned out to subscribers. Nothing here
    retries or times out.
    """

    def __init__(self, uri=DEFAULT_BACKEND_URI):
        self.uri = uri
        self.websocket = None
        self._pending = {}
        self._subscribers = defaultdict(list)
        self._listen_task = None

    @property
    def connected(self) -> bool:
        return self.websocket is not None

    async def connect(self) -> bool:
        try:
            self.websocket = await websockets.connect(self.uri)
        except (OSError, asyncio.TimeoutError, websockets.exceptions.WebSocketException) as e:
            logger.error("Connection to %s failed: %s", self.uri, e)
            return False

        logger.info("Connected to backend at %s", self.uri)
        # Start listening loop
        self._listen_task = asyncio.create_task(self.listen())
        return True

    async def listen(self):
        try:
            async for message in self.websocket:
                try:
                    data = json.loads(message)
                except ValueError:
                    # Covers bad JSON and binary frames that are not UTF-8
                    logger.warning("Dropping non-JSON frame from backend")
                    continue
                if not isinstance(data, dict):
                    logger.warning("Dropping non-object frame from backend")
                    continue

                msg_type = data.get("type")
                if msg_type == "RESPONSE":
                    if not isinstance(data.get("id"), str):
                        logger.warning("Dropping response without a string id")
                        continue
                    self._resolve(data)
                elif msg_type == "EVENT":
                    if not isinstance(data.get("event"), str):
                        logger.warning("Dropping event without a string name")
                        continue
                    self._dispatch(data.get("event"), data.get("payload"))
                else:
                    logger.debug("Ignoring frame of type %r", msg_type)
        except websockets.exceptions.ConnectionClosed as e:
            logger.warning("Backend connection closed: %s", e)
        finally:
            self.websocket = None
            self._fail_pending(ConnectivityError("Backend connection closed"))

    def _resolve(self, data: dict):
        command, future = self._pending.get(data.get("id"), (None, None))
        if future is None or future.done():
            logger.debug("Response for unknown request %r", data.get("id"))
            return

        if data.get("ok"):
            future.set_result(data.get("result"))
        else:
            future.set_exception(
                BackendCommandError(command, str(data.get("error", "unknown error")))
            )

    def _dispatch(self, event, payload):
        handlers = list(self._subscribers.get(event, ()))
        if not handlers:
            logger.debug("No subscriber for event %r", event)
        for handler in handlers:
            try:
                handler(payload)
            except Exception:
                logger.exception("Subscriber for %r failed", event)

    def _fail_pending(self, error: Exception):
        for _command, future in self._pending.values():
            if not future.done():
                future.set_exception(error)
        self._pending.clear()

    async def invoke(self, command: str, **args):
        if self.websocket is None:
            raise ConnectivityError("Backend not connected")

        request_id = uuid.uuid4().hex
        future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = (command, future)
        try:
            await self.websocket.send(json.dumps({
                "type": "COMMAND",
                "id": request_id,
                "command": command,
                "args": args,
            }))
        except websockets.exceptions.ConnectionClosed as e:
            self._pending.pop(request_id, None)
            raise ConnectivityError(f"Backend connection closed: {e}") from e

        try:
            return await future
        finally:
            self._pending.pop(request_id, None)

    async def subscribe(self, event: str, handler):
        """
        Registers `handler(payload)` for a push event and returns a plain
        callable that removes it again. Calling the remover twice is harmless.
        """
        self._subscribers[event].append(handler)

        def unsubscribe():
            try:
                self._subscribers[event].remove(handler)
            except ValueError:
                pass

        return unsubscribe

    async def disconnect(self):
        if self.websocket:
            await self.websocket.close()
        if self._listen_task:
            await self._listen_task
            self._listen_task = None

    # Backend commands

    async def get_first_run(self) -> bool:
        return bool(await self.invoke("get_first_run"))

    async def setup_password(self, password: str):
        if not validate_password(password):
            raise ValidationRejection("Password must not be empty")
        try:
            await self.invoke("setup_password", password=password)
        except BackendCommandError as e:
            raise ValidationRejection(e.message) from e

    async def load_config(self) -> dict:
        result = await self.invoke("load_config")
        if not isinstance(result, dict):
            raise ProtocolError("load_config must return an object")
        return result

    async def save_config(self, config: NetworkConfig):
        await self.invoke("save_config", config={"network": config.to_wire()})

    async def get_self_peer_id(self) -> str:
        return str(await self.invoke("get_self_peer_id"))

    async def find_peer(self, peer_id: str) -> list:
        result = await self.invoke("find_peer", peerId=peer_id)
        if result is None:
            return []
        if not isinstance(result, list):
            raise ProtocolError("find_peer must return a list")
        return [str(peer) for peer in result]

    async def get_history_message(self, peer_id: str) -> list:
        result = await self.invoke("get_history_message", peerId=peer_id)
        if result is None:
            return []
        if not isinstance(result, list):
            raise ProtocolError("get_history_message must return a list")
        return [ChatMessage.from_wire(item) for item in result]

    async def send_message(self, peer_id: str, message: ChatMessage):
        await self.invoke("send_message", peerId=peer_id, message=message.to_wire())

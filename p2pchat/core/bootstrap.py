"""
Onboarding flow that runs before the chat session is usable.

    INITIALIZING --(first run)--> NEW_USER -> PASSWORD_SETUP -> NETWORK_SETUP -> READY
                 +--(returning)--> RETURNING_USER -> READY

The splash timer and the first-run query are joined, never raced, so the
splash is shown for at least `splash_duration` seconds.
"""
import asyncio
import logging
from dataclasses import dataclass

from p2pchat.core.models import (
    DEFAULT_IP_VERSION,
    DEFAULT_LISTEN_IP,
    DEFAULT_LISTEN_PORT,
    IpVersion,
    NetworkConfig,
)
from p2pchat.core.state_machine import BootstrapState, StateMachine
from p2pchat.utils.error_codes import ChatClientError, ValidationRejection
from p2pchat.utils.validators import validate_ip_address, validate_password, validate_port

logger = logging.getLogger(__name__)

SPLASH_DURATION = 1.8


@dataclass
class NetworkForm:
    """Editable network settings. Ports are kept as text until confirmation."""

    ip_version: IpVersion = DEFAULT_IP_VERSION
    listen_ip: str = DEFAULT_LISTEN_IP[DEFAULT_IP_VERSION]
    listen_port: str = str(DEFAULT_LISTEN_PORT)
    bootstrap_ip: str = ""
    bootstrap_port: str = ""
    bootstrap_peer_id: str = ""

    @classmethod
    def from_config(cls, config: NetworkConfig) -> "NetworkForm":
        return cls(
            ip_version=config.ip_version,
            listen_ip=config.listen_ip,
            listen_port=str(config.listen_port),
            bootstrap_ip=config.bootstrap_ip or "",
            bootstrap_port="" if config.bootstrap_port is None else str(config.bootstrap_port),
            bootstrap_peer_id=config.bootstrap_peer_id or "",
        )

    def select_ip_version(self, ip_version):
        # Switching version always resets the address to that version's wildcard
        self.ip_version = IpVersion(ip_version)
        self.listen_ip = DEFAULT_LISTEN_IP[self.ip_version]

    def to_config(self) -> NetworkConfig:
        if not validate_ip_address(self.listen_ip, self.ip_version.value):
            raise ValidationRejection(
                f"Listen address {self.listen_ip!r} is not a valid {self.ip_version.value} address"
            )
        if not validate_port(self.listen_port):
            raise ValidationRejection(f"Listen port {self.listen_port!r} must be 1-65535")

        bootstrap_port = None
        if self.bootstrap_port.strip():
            if not validate_port(self.bootstrap_port):
                raise ValidationRejection(f"Bootstrap port {self.bootstrap_port!r} must be 1-65535")
            bootstrap_port = int(self.bootstrap_port)

        return NetworkConfig(
            ip_version=self.ip_version,
            listen_ip=self.listen_ip.strip(),
            listen_port=int(self.listen_port),
            bootstrap_ip=self.bootstrap_ip.strip() or None,
            bootstrap_port=bootstrap_port,
            bootstrap_peer_id=self.bootstrap_peer_id.strip() or None,
        )


class BootstrapController:
    def __init__(self, gateway, ui_callback=None, splash_duration=SPLASH_DURATION):
        self.gateway = gateway
        self.ui_callback = ui_callback
        self.splash_duration = splash_duration
        self.state_machine = StateMachine(on_transition=self._on_transition)
        self.first_run = None
        self.form = NetworkForm()
        self.submitting = False
        self.pending_save = None
        self._ready = asyncio.Event()

    @property
    def state(self) -> BootstrapState:
        return self.state_machine.current_state

    @property
    def is_ready(self) -> bool:
        return self._ready.is_set()

    def _on_transition(self, new_state: BootstrapState):
        if new_state is BootstrapState.READY:
            self._ready.set()
        if self.ui_callback:
            self.ui_callback(new_state.name)

    async def initialize(self):
        # 1. Splash timer and first-run query, both must finish
        first_run, _ = await asyncio.gather(
            self._determine_first_run(),
            asyncio.sleep(self.splash_duration),
        )
        self.first_run = first_run

        # 2. Route
        if first_run:
            self.state_machine.transition_to(BootstrapState.NEW_USER)
            self.state_machine.transition_to(BootstrapState.PASSWORD_SETUP)
        else:
            self.state_machine.transition_to(BootstrapState.RETURNING_USER)
            self.state_machine.transition_to(BootstrapState.READY)

    async def _determine_first_run(self) -> bool:
        try:
            return bool(await self.gateway.get_first_run())
        except Exception as e:
            # Never skip onboarding because the backend could not answer
            logger.warning("First-run check failed, assuming first run: %s", e)
            return True

    async def submit_password(self, password: str) -> bool:
        if self.state is not BootstrapState.PASSWORD_SETUP:
            return False
        if not validate_password(password) or self.submitting:
            return False

        self.submitting = True
        try:
            await self.gateway.setup_password(password)
        except ChatClientError as e:
            logger.info("Password setup rejected: %s", e)
            return False
        finally:
            self.submitting = False

        await self._enter_network_setup()
        return True

    async def _enter_network_setup(self):
        self.state_machine.transition_to(BootstrapState.NETWORK_SETUP)
        try:
            stored = await self.gateway.load_config()
            if stored.get("network") is not None:
                self.form = NetworkForm.from_config(NetworkConfig.from_wire(stored["network"]))
        except ChatClientError as e:
            logger.warning("Could not load stored network config, keeping defaults: %s", e)

    def select_ip_version(self, ip_version):
        self.form.select_ip_version(ip_version)

    def confirm_network_setup(self) -> NetworkConfig:
        """
        Validates the form, hands the full config to the backend and moves
        to READY straight away. Persistence runs in the background.
        """
        if self.state is not BootstrapState.NETWORK_SETUP:
            raise ValidationRejection(f"Network setup is not open (state {self.state.name})")

        config = self.form.to_config()
        if not config.bootstrap_is_consistent():
            logger.warning("Bootstrap contact is incomplete: %s", config.to_wire())

        self.pending_save = asyncio.ensure_future(self._save_config(config))
        self.state_machine.transition_to(BootstrapState.READY)
        return config

    async def _save_config(self, config: NetworkConfig):
        try:
            await self.gateway.save_config(config)
        except ChatClientError as e:
            logger.error("Saving network config failed: %s", e)

    async def wait_ready(self):
        await self._ready.wait()

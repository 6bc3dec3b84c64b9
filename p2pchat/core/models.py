from dataclasses import dataclass
from enum import Enum
from typing import Optional

from p2pchat.utils.error_codes import ProtocolError


class IpVersion(Enum):
    IPV4 = "ipv4"
    IPV6 = "ipv6"


DEFAULT_IP_VERSION = IpVersion.IPV4
DEFAULT_LISTEN_IP = {
    IpVersion.IPV4: "0.0.0.0",
    IpVersion.IPV6: "::",
}
DEFAULT_LISTEN_PORT = 8000

BOOTSTRAP_FIELDS = ("bootstrap_ip", "bootstrap_port", "bootstrap_peer_id")


def _optional_port(value, field_name):
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise ProtocolError(f"{field_name} must be an integer, got {value!r}")
    return value


@dataclass
class NetworkConfig:
    ip_version: IpVersion = DEFAULT_IP_VERSION
    listen_ip: str = DEFAULT_LISTEN_IP[DEFAULT_IP_VERSION]
    listen_port: int = DEFAULT_LISTEN_PORT
    bootstrap_ip: Optional[str] = None
    bootstrap_port: Optional[int] = None
    bootstrap_peer_id: Optional[str] = None

    def bootstrap_is_consistent(self) -> bool:
        """True when the bootstrap contact is either complete or entirely absent."""
        present = [getattr(self, name) is not None for name in BOOTSTRAP_FIELDS]
        return all(present) or not any(present)

    def has_bootstrap_contact(self) -> bool:
        return all(getattr(self, name) is not None for name in BOOTSTRAP_FIELDS)

    def to_wire(self) -> dict:
        # Bootstrap fields are always written, as null when unset.
        return {
            "ip_version": self.ip_version.value,
            "listen_ip": self.listen_ip,
            "listen_port": self.listen_port,
            "bootstrap_ip": self.bootstrap_ip,
            "bootstrap_port": self.bootstrap_port,
            "bootstrap_peer_id": self.bootstrap_peer_id,
        }

    @classmethod
    def from_wire(cls, data: dict) -> "NetworkConfig":
        """
        Builds a config from a (possibly partial) wire mapping.
        Missing keys keep the built-in defaults; null and absent
        bootstrap fields are the same thing.
        """
        if not isinstance(data, dict):
            raise ProtocolError(f"network config must be an object, got {type(data).__name__}")

        config = cls()
        if data.get("ip_version") is not None:
            try:
                config.ip_version = IpVersion(data["ip_version"])
            except ValueError:
                raise ProtocolError(f"Unknown ip_version {data['ip_version']!r}")
        if data.get("listen_ip") is not None:
            config.listen_ip = str(data["listen_ip"])
        if data.get("listen_port") is not None:
            config.listen_port = _optional_port(data["listen_port"], "listen_port")
        if data.get("bootstrap_ip") is not None:
            config.bootstrap_ip = str(data["bootstrap_ip"])
        config.bootstrap_port = _optional_port(data.get("bootstrap_port"), "bootstrap_port")
        if data.get("bootstrap_peer_id") is not None:
            config.bootstrap_peer_id = str(data["bootstrap_peer_id"])
        return config


@dataclass
class ChatMessage:
    id: str
    sender: str
    recipient: str
    timestamp: int
    content: str

    def to_wire(self) -> dict:
        return {
            "id": self.id,
            "from": self.sender,
            "to": self.recipient,
            "timestamp": self.timestamp,
            "content": self.content,
        }

    @classmethod
    def from_wire(cls, data: dict) -> "ChatMessage":
        try:
            return cls(
                id=str(data["id"]),
                sender=str(data["from"]),
                recipient=str(data["to"]),
                timestamp=int(data["timestamp"]),
                content=str(data["content"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ProtocolError(f"Malformed chat message: {e}")

from dataclasses import dataclass

from rich.table import Table

from p2pchat.utils.error_codes import NotFoundError


@dataclass
class PeerEntry:
    index: int
    peer_id: str
    active: bool = False


class PeerDirectoryView:
    """Read-only rows over the coordinator's last lookup."""

    def __init__(self, coordinator):
        self.coordinator = coordinator

    def entries(self) -> list:
        session = self.coordinator.session
        return [
            PeerEntry(index=i, peer_id=peer, active=(peer == session.active_peer))
            for i, peer in enumerate(session.peers, start=1)
        ]

    def resolve(self, choice) -> str:
        """Accepts a 1-based row number or a peer id from the current rows."""
        rows = self.entries()
        if isinstance(choice, int) or str(choice).isdigit():
            index = int(choice)
            for row in rows:
                if row.index == index:
                    return row.peer_id
            raise NotFoundError(f"No peer at row {index}")
        for row in rows:
            if row.peer_id == choice:
                return row.peer_id
        raise NotFoundError(f"Peer {choice} is not in the directory")

    async def select(self, choice):
        peer_id = self.resolve(choice)
        await self.coordinator.select_conversation(peer_id)
        return peer_id

    def render(self) -> Table:
        table = Table(title="Kademlia Buckets", expand=False)
        table.add_column("#", style="dim", justify="right")
        table.add_column("Peer ID", overflow="fold")
        for row in self.entries():
            style = "bold cyan" if row.active else None
            table.add_row(str(row.index), row.peer_id, style=style)
        if not table.rows:
            table.caption = "No peers found"
        return table

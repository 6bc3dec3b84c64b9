import asyncio
from datetime import datetime

from prompt_toolkit import PromptSession
from prompt_toolkit.patch_stdout import patch_stdout
from rich.console import Console
from rich.panel import Panel
from rich.text import Text
from rich.theme import Theme

from p2pchat.config import ClientSettings
from p2pchat.core.bootstrap import BootstrapController
from p2pchat.core.composer import ChatComposer
from p2pchat.core.models import IpVersion
from p2pchat.core.session import SessionCoordinator
from p2pchat.core.state_machine import BootstrapState
from p2pchat.network.transport import BackendGateway
from p2pchat.ui.directory import PeerDirectoryView
from p2pchat.utils.error_codes import ChatClientError, ValidationRejection
from p2pchat.utils.validators import validate_peer_query


custom_theme = Theme({
    "info": "dim cyan",
    "warning": "magenta",
    "danger": "bold red",
    "success": "bold green",
    "chat_peer": "green",
    "chat_self": "cyan",
    "encrypted": "dim white"
})

console = Console(theme=custom_theme)

HELP_TEXT = """[bold]/find <peer id>[/bold]  look up a peer in the DHT
[bold]/peers[/bold]           show the last lookup
[bold]/open <n|peer>[/bold]   open a conversation
[bold]/history[/bold]         reload the open conversation
[bold]/whoami[/bold]          show your peer id
[bold]/quit[/bold]            leave
Anything else is sent to the open conversation."""


class ChatClientCLI:
    def __init__(self, settings: ClientSettings = None, gateway=None):
        self.settings = settings or ClientSettings()
        self.gateway = gateway or BackendGateway(self.settings.backend_uri)
        self.session = PromptSession()
        self.coordinator = None
        self.composer = None
        self.directory = None
        self.running = True

    def bootstrap_callback(self, event_type, data=None):
        if event_type == "PASSWORD_SETUP":
            console.print("[info]First run: choose a password to protect your local data.[/info]")
        elif event_type == "NETWORK_SETUP":
            console.print("[info]Network setup. Press Enter to keep a value.[/info]")
        elif event_type == "READY":
            console.print("[success]Ready.[/success]")

    def ui_callback(self, event_type, data=None):
        # Called from the coordinator when its state is replaced
        if event_type == "PEERS":
            console.print(self.directory.render())
        elif event_type == "SELECTED":
            console.print(f"[info]Conversation with {data}[/info]")
        elif event_type == "HISTORY":
            self.render_history(data)

    def render_history(self, messages):
        me = self.coordinator.session.self_peer_id
        window = messages[-self.settings.history_window:]
        body = Text()
        for message in window:
            stamp = datetime.fromtimestamp(message.timestamp / 1000).strftime("%H:%M")
            if message.sender == me:
                body.append(f"{stamp} You: ", style="chat_self")
            else:
                body.append(f"{stamp} Peer: ", style="chat_peer")
            body.append(message.content + "\n")
        if not window:
            body.append("No messages yet.", style="encrypted")
        console.print(Panel(body, title=self.coordinator.session.active_peer, expand=False))

    async def run(self):
        console.clear()
        console.print(Panel.fit("[bold white]P2P CHAT[/bold white]\n[dim]Kademlia peer discovery, end-to-end encrypted.[/dim]", style="blue"))

        if not await self.gateway.connect():
            console.print(f"[danger]Failed to start: backend unreachable at {self.settings.backend_uri}[/danger]")
            return

        try:
            # 1. Onboarding
            await self.bootstrap()

            # 2. Session
            self.coordinator = SessionCoordinator(self.gateway, self.ui_callback)
            self.composer = ChatComposer(self.coordinator)
            self.directory = PeerDirectoryView(self.coordinator)
            await self.coordinator.mount()
            console.print(f"[info]You are {self.coordinator.session.self_peer_id}. Type /help for commands.[/info]")

            # 3. Chat Loop
            with patch_stdout():
                while self.running:
                    try:
                        line = await self.session.prompt_async("> ")
                    except (EOFError, KeyboardInterrupt):
                        break
                    await self.handle_line(line.strip())
        except ChatClientError as e:
            console.print(f"[danger]Error: {e}[/danger]")
        finally:
            if self.coordinator:
                self.coordinator.unmount()
            await self.gateway.disconnect()

    async def bootstrap(self):
        controller = BootstrapController(
            self.gateway, self.bootstrap_callback, splash_duration=self.settings.splash_duration
        )
        with console.status("Starting..."):
            await controller.initialize()

        while controller.state is BootstrapState.PASSWORD_SETUP:
            password = await self.session.prompt_async("Create password: ", is_password=True)
            await controller.submit_password(password)
            del password

        while controller.state is BootstrapState.NETWORK_SETUP:
            await self.prompt_network_form(controller)
            try:
                controller.confirm_network_setup()
            except ValidationRejection as e:
                console.print(f"[warning]{e.message}[/warning]")

        await controller.wait_ready()

    async def prompt_network_form(self, controller):
        form = controller.form
        while True:
            version = await self.session.prompt_async("IP version (ipv4/ipv6): ", default=form.ip_version.value)
            version = version.strip().lower()
            if version in (v.value for v in IpVersion):
                break
            console.print("[warning]Use ipv4 or ipv6.[/warning]")
        if version != form.ip_version.value:
            controller.select_ip_version(version)

        form.listen_ip = (await self.session.prompt_async("Listen address: ", default=form.listen_ip)).strip()
        form.listen_port = (await self.session.prompt_async("Listen port: ", default=form.listen_port)).strip()
        form.bootstrap_ip = (await self.session.prompt_async("Bootstrap address (optional): ", default=form.bootstrap_ip)).strip()
        form.bootstrap_port = (await self.session.prompt_async("Bootstrap port (optional): ", default=form.bootstrap_port)).strip()
        form.bootstrap_peer_id = (await self.session.prompt_async("Bootstrap peer id (optional): ", default=form.bootstrap_peer_id)).strip()

    async def handle_line(self, text: str):
        if not text:
            return
        command, _, arg = text.partition(" ")
        arg = arg.strip()
        try:
            if command == "/quit":
                self.running = False
            elif command == "/help":
                console.print(Panel(HELP_TEXT, expand=False))
            elif command == "/whoami":
                console.print(f"[info]{self.coordinator.session.self_peer_id}[/info]")
            elif command == "/find":
                if not validate_peer_query(arg):
                    console.print("[warning]Usage: /find <peer id>[/warning]")
                    return
                await self.coordinator.discover_peer(arg)
            elif command == "/peers":
                console.print(self.directory.render())
            elif command == "/open":
                if not arg:
                    console.print("[warning]Usage: /open <row number or peer id>[/warning]")
                    return
                await self.directory.select(arg)
            elif command == "/history":
                if not self.coordinator.session.active_peer:
                    console.print("[warning]No conversation open.[/warning]")
                    return
                await self.coordinator.refresh_history(self.coordinator.session.active_peer)
            elif command.startswith("/"):
                console.print(f"[warning]Unknown command {command}. Try /help.[/warning]")
            else:
                self.composer.draft = text
                await self.composer.compose(text)
        except ValidationRejection as e:
            console.print(f"[warning]{e.message}[/warning]")
        except ChatClientError as e:
            console.print(f"[danger]Error: {e}[/danger]")

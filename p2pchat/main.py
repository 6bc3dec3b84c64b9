import argparse
import asyncio

from p2pchat.config import ClientSettings, configure_logging
from p2pchat.ui.cli import ChatClientCLI, console


def parse_args(argv=None, settings=None):
    settings = settings or ClientSettings.from_env()
    parser = argparse.ArgumentParser(prog="p2pchat", description="Terminal client for the p2pchat DHT node.")
    parser.add_argument("--backend", default=settings.backend_uri, help="websocket URI of the backend node")
    parser.add_argument("--splash", type=float, default=settings.splash_duration, help="minimum splash time in seconds")
    parser.add_argument("--log-level", default=settings.log_level)
    parser.add_argument("--log-file", default=settings.log_file, help="log to this file instead of the console")
    parser.add_argument("--history", type=int, default=settings.history_window, help="messages shown per conversation")
    args = parser.parse_args(argv)

    settings.backend_uri = args.backend
    settings.splash_duration = args.splash
    settings.log_level = args.log_level.upper()
    settings.log_file = args.log_file
    settings.history_window = args.history
    return settings


def main(argv=None):
    settings = parse_args(argv)
    configure_logging(settings, console)
    cli = ChatClientCLI(settings)
    try:
        asyncio.run(cli.run())
    except KeyboardInterrupt:
        pass
    except Exception as e:
        print(f"Fatal Error: {e}")


if __name__ == "__main__":
    main()

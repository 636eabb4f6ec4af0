# =============================================================================
# Realtime Screen Share - Session Client Entry Point
# =============================================================================
# Entry point for the session client process. Starts a screen-sharing session
# against the realtime API, streams the model's text responses to the
# terminal, and prints the cost/usage report when the session ends.
#
# Interactive commands (one per line on stdin):
#   start      start a new session (retry after a failure)
#   stop       stop the current session and print its report
#   fps <n>    change the capture rate
#   quit       stop and exit
# =============================================================================

import argparse
import asyncio
import logging
import math
import sys
import threading
from typing import Optional

from client.broker import BrokerClient
from client.session import SessionController, Transcript
from config import get_config
from shared.errors import ScreenShareError

logger = logging.getLogger(__name__)

_HELP = "Commands: start | stop | fps <n> | quit"


class ClientApp:
    """
    Terminal front end for the session client.

    Args:
        config:   The global Config instance.
        prompt:   Read interactive commands from stdin.
        duration: Stop automatically after this many seconds (None = run
                  until quit or Ctrl+C).
    """

    def __init__(self, config, prompt: bool = True, duration: Optional[float] = None):
        self._config = config
        self._prompt = prompt
        self._duration = duration
        self._broker = BrokerClient(config.broker_url, timeout=config.http_timeout_seconds)
        self._controller = SessionController(config, self._broker, Transcript())

    async def _start_session(self) -> bool:
        print("Starting...")
        try:
            await self._controller.start()
        except ScreenShareError as exc:
            print(f"Error - type 'start' to retry: {exc}")
            return False
        print(f"Session active - sharing screen at {self._config.capture_fps:g} FPS\n")
        return True

    async def _read_commands(self) -> None:
        """Feed stdin lines to the event loop from a daemon thread."""
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue = asyncio.Queue()

        def _reader():
            for line in sys.stdin:
                loop.call_soon_threadsafe(queue.put_nowait, line.strip())
            loop.call_soon_threadsafe(queue.put_nowait, None)

        threading.Thread(target=_reader, daemon=True).start()

        print(_HELP)
        while True:
            line = await queue.get()
            if line is None or line in ("quit", "exit"):
                return
            await self._handle_command(line)

    async def _handle_command(self, line: str) -> None:
        command, _, argument = line.partition(" ")
        if command == "start":
            await self._start_session()
        elif command == "stop":
            if await self._controller.stop() is None:
                print("Session stopped (no billable responses).")
        elif command == "fps":
            try:
                self._controller.set_fps(float(argument))
            except ValueError:
                print("Usage: fps <positive number>")
            else:
                print(f"Capture rate set to {self._config.capture_fps:g} FPS")
        elif command:
            print(_HELP)

    async def run(self) -> int:
        """
        Run the client until quit, the duration elapses, or Ctrl+C.

        Returns:
            int: Process exit code.
        """
        print("\n" + "=" * 60)
        print("  Realtime Screen Share — Session Client")
        print("=" * 60)
        print(f"  Broker      : {self._config.broker_url}")
        print(f"  Model       : {self._config.realtime_model}")
        print(f"  Monitor     : {self._config.capture_monitor}")
        print(f"  Capture FPS : {self._config.capture_fps:g}")
        print(f"  Single-flight: {self._config.single_flight}")
        print("=" * 60 + "\n")

        if not await asyncio.to_thread(self._broker.is_healthy):
            logger.warning("Broker at %s is not responding to /health", self._config.broker_url)

        try:
            started = await self._start_session()
            if not started and not self._prompt:
                return 1

            waiters = []
            if self._prompt:
                waiters.append(asyncio.create_task(self._read_commands()))
            if self._duration is not None:
                waiters.append(asyncio.create_task(asyncio.sleep(self._duration)))
            if not waiters:
                waiters.append(asyncio.create_task(asyncio.Event().wait()))

            done, pending = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
            for task in pending:
                task.cancel()
            for task in done:
                task.result()
        finally:
            await self._controller.stop()
            self._broker.close()
            logger.info("Session client stopped.")
        return 0


def main():
    """CLI entry point for the session client."""
    parser = argparse.ArgumentParser(
        description="Realtime Screen Share — Session Client",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--fps", type=float, default=None,
        help="Screenshots per second (overrides config)",
    )
    parser.add_argument(
        "--monitor", type=int, default=None,
        help="Monitor index to capture (1 = primary)",
    )
    parser.add_argument(
        "--server-url", type=str, default=None,
        help="Broker base URL (e.g., http://127.0.0.1:3000)",
    )
    parser.add_argument(
        "--duration", type=float, default=None,
        help="Stop the session after this many seconds",
    )
    parser.add_argument(
        "--single-flight", action="store_true",
        help="Skip frames while a response is outstanding",
    )
    parser.add_argument(
        "--no-prompt", action="store_true",
        help="Do not read interactive commands from stdin",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    config = get_config()
    if args.fps is not None:
        if not math.isfinite(args.fps) or args.fps <= 0:
            parser.error("--fps must be a finite positive number")
        config.capture_fps = args.fps
    if args.monitor is not None:
        config.capture_monitor = args.monitor
    if args.server_url is not None:
        config.broker_url = args.server_url
    if args.single_flight:
        config.single_flight = True

    app = ClientApp(config, prompt=not args.no_prompt, duration=args.duration)
    try:
        sys.exit(asyncio.run(app.run()))
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received. Shutting down...")


if __name__ == "__main__":
    main()

# =============================================================================
# Realtime Screen Share - Server Entry Point
# =============================================================================
# CLI entry point for starting the credential broker with uvicorn.
# =============================================================================

import argparse
import logging

import uvicorn

from config import get_config


def main():
    """Parse CLI arguments, apply overrides, and start the server."""
    parser = argparse.ArgumentParser(
        description="Realtime Screen Share — Credential Broker",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("--host", type=str, default=None, help="Server bind address")
    parser.add_argument("--port", type=int, default=None, help="Server bind port (overrides PORT)")
    parser.add_argument("--static-dir", type=str, default=None, help="Directory of static assets")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    config = get_config()

    if args.host is not None:
        config.server_host = args.host
    if args.port is not None:
        config.server_port = args.port
    if args.static_dir is not None:
        config.static_dir = args.static_dir

    config.broker_url = f"http://{config.server_host}:{config.server_port}"

    print("\n" + "=" * 60)
    print("  Realtime Screen Share — Credential Broker")
    print("=" * 60)
    print(f"  Model      : {config.realtime_model}")
    print(f"  Voice      : {config.voice}")
    print(f"  Static dir : {config.static_dir}")
    print(f"  API key    : {'set' if config.openai_api_key else 'MISSING (set OPENAI_API_KEY)'}")
    print(f"  Listening  : {config.broker_url}")
    print("=" * 60 + "\n")

    uvicorn.run(
        "server.app:app",
        host=config.server_host,
        port=config.server_port,
        log_level="info",
    )


if __name__ == "__main__":
    main()

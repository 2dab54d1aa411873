#!/usr/bin/env python3
"""
Simple DeFi Token Entry Point

  python run.py deploy   Deploy a ledger and report its address and deployer
  python run.py serve    Start the FastAPI server (default)
"""

import argparse
import sys

from token_ledger.api import TokenSystem, run_server
from token_ledger.config import get_config
from token_ledger.logging_config import setup_logging


def deploy() -> TokenSystem:
    """Deploy a token ledger and print where it lives"""
    system = TokenSystem()
    ledger = system.ledger

    print("Simple DeFi Token Contract Address:", system.address)
    print("Deployer:", system.deployer)
    print("Deployer token balance:", system.format_amount(ledger.balance_of(system.deployer)), ledger.symbol())
    return system


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Simple DeFi Token ledger")
    parser.add_argument("command", nargs="?", choices=["deploy", "serve"], default="serve")
    parser.add_argument("--host", default=None)
    parser.add_argument("--port", type=int, default=None)
    parser.add_argument("--debug", action="store_true")
    args = parser.parse_args(argv)

    try:
        config = get_config()
        setup_logging(config.log_level, "sdft", config.log_format, config.log_file)
        if args.command == "deploy":
            deploy()
        else:
            print("🪙 Starting Simple DeFi Token ledger...")
            print(f"🔥 Auto-burn rate: {config.burn_rate_percent}%")
            print(f"🌐 API available at: http://localhost:{args.port or config.api_port}")
            run_server(
                host=args.host or config.api_host,
                port=args.port or config.api_port,
                debug=args.debug
            )
    except KeyboardInterrupt:
        print("\n👋 Shutting down Simple DeFi Token ledger...")
    except Exception as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""Isnad CLI — run the auth server or prove agenthood from the command line.

Usage:
    harbor-isnad serve --port 4002
    harbor-isnad authenticate http://relay.example:4002 12D3KooW...
    harbor-isnad solve challenge.json
"""

import argparse
import json
import logging
import sys

from harbor_isnad.config import IsnadSettings
from harbor_isnad.errors import HandshakeError


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def cmd_serve(args):
    """Start the auth server."""
    from harbor_isnad.server import run_auth_server

    settings = IsnadSettings.from_env()
    if args.host:
        settings.host = args.host
    if args.port:
        settings.port = args.port
    run_auth_server(settings)


def cmd_authenticate(args):
    """Run the handshake against a relay and print the token."""
    from harbor_isnad.client import authenticate_with_relay

    timeout = args.timeout or IsnadSettings.from_env().client_timeout
    try:
        token = authenticate_with_relay(args.auth_url, args.peer_id, timeout=timeout)
    except HandshakeError as e:
        print(f"Authentication failed: {e}", file=sys.stderr)
        return 1
    print(json.dumps(token.to_wire(), indent=2))
    return 0


def cmd_solve(args):
    """Solve a challenge read from a file (or stdin) and print the response."""
    from harbor_isnad.protocol import Challenge
    from harbor_isnad.solver import solve_challenge

    if args.path == "-":
        raw = json.load(sys.stdin)
    else:
        with open(args.path, encoding="utf-8") as f:
            raw = json.load(f)
    # Accept both the bare challenge and the {"challenge": ...} envelope.
    challenge = Challenge.model_validate(raw.get("challenge", raw))
    print(json.dumps(solve_challenge(challenge).to_wire(), indent=2))
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="harbor-isnad",
        description="Isnad reverse-CAPTCHA agent verification",
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    sub = parser.add_subparsers(dest="command", help="Available commands")

    # harbor-isnad serve
    p_serve = sub.add_parser("serve", help="Run the auth server")
    p_serve.add_argument("--host", default="", help="Bind address (default from ISNAD_HOST)")
    p_serve.add_argument("--port", type=int, default=0, help="Port (default from ISNAD_PORT)")
    p_serve.set_defaults(func=cmd_serve)

    # harbor-isnad authenticate
    p_auth = sub.add_parser("authenticate", help="Obtain a token from a relay")
    p_auth.add_argument("auth_url", help="Relay auth base URL, e.g. http://127.0.0.1:4002")
    p_auth.add_argument("peer_id", help="This agent's peer id")
    p_auth.add_argument("--timeout", type=float, default=0.0, help="HTTP timeout in seconds")
    p_auth.set_defaults(func=cmd_authenticate)

    # harbor-isnad solve
    p_solve = sub.add_parser("solve", help="Solve a challenge JSON file offline")
    p_solve.add_argument("path", help="Challenge JSON file, or - for stdin")
    p_solve.set_defaults(func=cmd_solve)

    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 0
    _configure_logging(args.log_level)
    return args.func(args) or 0


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""
admin_auth.py - Admin credential helper for scripts and debugging

Uses the same settings as the running server (environment / .env) to issue
or inspect admin credentials without going through the login endpoint.

Usage:
    python scripts/admin_auth.py token
    python scripts/admin_auth.py verify <token>
    python scripts/admin_auth.py basic

Commands:
    token       Print a fresh signed session token for the configured admin
    verify      Check a session token and print its subject and expiry
    basic       Print an ``Authorization: Basic ...`` header for curl

Flags:
    --json      Output results as JSON
"""

import argparse
import base64
import json
import sys
from datetime import datetime, timezone

from gastronomique.auth import TokenSigningError, issue_token, verify_token
from gastronomique.config import load_settings


def _format_ts(ts: int) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


def cmd_token(args: argparse.Namespace) -> int:
    settings = load_settings()
    try:
        token = issue_token(settings, settings.admin_username)
    except TokenSigningError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1

    if args.json:
        print(json.dumps({"cookie": settings.cookie_name, "token": token}))
    else:
        print(f"{settings.cookie_name}={token}")
    return 0


def cmd_verify(args: argparse.Namespace) -> int:
    settings = load_settings()
    payload = verify_token(settings, args.token)

    if args.json:
        result = {"valid": payload is not None}
        if payload is not None:
            result.update(
                subject=payload.subject,
                issued_at=payload.issued_at,
                expires_at=payload.expires_at,
            )
        print(json.dumps(result))
    elif payload is None:
        print("❌ Token is invalid or expired")
    else:
        print(f"✅ Valid token for '{payload.subject}'")
        print(f"   issued:  {_format_ts(payload.issued_at)}")
        print(f"   expires: {_format_ts(payload.expires_at)}")

    return 0 if payload is not None else 1


def cmd_basic(args: argparse.Namespace) -> int:
    settings = load_settings()
    raw = f"{settings.admin_username}:{settings.admin_password}".encode("utf-8")
    header = f"Basic {base64.b64encode(raw).decode('ascii')}"

    if args.json:
        print(json.dumps({"Authorization": header}))
    else:
        print(f"Authorization: {header}")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Admin credential helper")
    parser.add_argument("--json", action="store_true", help="Output results as JSON")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("token", help="Issue a signed session token").set_defaults(func=cmd_token)

    verify = sub.add_parser("verify", help="Verify a session token")
    verify.add_argument("token")
    verify.set_defaults(func=cmd_verify)

    sub.add_parser("basic", help="Print a Basic auth header").set_defaults(func=cmd_basic)

    args = parser.parse_args()
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())

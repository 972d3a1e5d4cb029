"""Generate a tenant bearer token for local testing.

Usage:
    JWT_SECRET=... uv run python scripts/generate_token.py <client_id> [client_name] [expires_in_seconds]

Requires:
    - JWT_SECRET set to the same value the gateway runs with

This script is for local/staging validation only.
"""

from __future__ import annotations

import os
import sys


def main() -> None:
    if len(sys.argv) < 2:
        print("Usage: uv run python scripts/generate_token.py <client_id> [client_name] [expires_in_seconds]")
        sys.exit(2)

    if not os.environ.get("JWT_SECRET"):
        print("ERROR: JWT_SECRET not set")
        sys.exit(1)

    client_id = sys.argv[1]
    client_name = sys.argv[2] if len(sys.argv) > 2 else client_id
    expires_in = None
    if len(sys.argv) > 3:
        try:
            expires_in = int(sys.argv[3])
        except ValueError:
            print(f"ERROR: expires_in must be an integer, got {sys.argv[3]!r}")
            sys.exit(2)

    # Import after env validation
    from evogate.api.auth import issue_token

    token = issue_token(client_id, client_name, expires_in=expires_in)

    print(f"client_id:   {client_id}")
    print(f"client_name: {client_name}")
    print()
    print(f"Authorization: Bearer {token}")


if __name__ == "__main__":
    main()

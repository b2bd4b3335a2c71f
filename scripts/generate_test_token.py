#!/usr/bin/env python3
"""Generate a JWT access token for an existing user id, for manual API testing."""
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from assistflow.api.deps import issue_smoke_token

if len(sys.argv) < 2:
    print("usage: generate_test_token.py <user-id> [email]")
    sys.exit(1)

token = issue_smoke_token(sys.argv[1], email=sys.argv[2] if len(sys.argv) > 2 else None)
print(f"Access Token:\n{token}")

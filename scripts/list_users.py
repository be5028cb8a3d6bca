"""
List Firebase Auth accounts, optionally with the tenant claims they carry.
"""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from imob_api.auth import AuthClient, AuthUser
from imob_api.dependencies import get_auth_client

logger = logging.getLogger(__name__)


def describe_user(user: AuthUser) -> dict:
    created = (
        datetime.fromtimestamp(user.created_at / 1000, tz=timezone.utc).isoformat()
        if user.created_at
        else ""
    )
    return {
        "uid": user.uid,
        "email": user.email,
        "name": user.display_name,
        "phone": user.phone_number or "",
        "verified": user.email_verified,
        "disabled": user.disabled,
        "created": created,
        "tenant_id": user.custom_claims.get("tenant_id", ""),
        "role": user.custom_claims.get("role", ""),
    }


def list_users(auth: AuthClient) -> list[dict]:
    return [describe_user(user) for user in auth.list_users()]


def main() -> int:
    parser = argparse.ArgumentParser(description="List Firebase Auth users")
    parser.add_argument("--tenant-id", default=None, help="Only users whose claims name this tenant")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(message)s")
    users = list_users(get_auth_client())
    if args.tenant_id:
        users = [user for user in users if user["tenant_id"] == args.tenant_id]
    for user in users:
        logger.info(
            "%(uid)s  %(email)s  %(name)s  tenant=%(tenant_id)s role=%(role)s "
            "verified=%(verified)s disabled=%(disabled)s created=%(created)s",
            user,
        )
    logger.info("Total users: %d", len(users))
    return 0


if __name__ == "__main__":
    sys.exit(main())

#!/usr/bin/env python3
"""
Create the initial admin account on a fresh device from environment variables.

This performs the same first-run setup as the login screen, then pushes the
new account to the remote store if one is configured.

Usage:
    python scripts/create_initial_admin.py

Environment variables (from .env.development or .env.production):
    INITIAL_ADMIN_NAME - Name for the admin account (defaults to "Admin")
    INITIAL_ADMIN_PIN - 4-digit PIN for the admin account
    REMOTE_DATABASE_URL - Optional remote store connection URL
"""

import asyncio
import sys
import os

# Add the project root to the path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.exceptions import ValidationError
from app.sync.session import get_sync_session


async def create_initial_admin():
    """Create the initial admin if the device has no accounts yet."""
    session = get_sync_session()
    settings = session.settings

    if not settings.initial_admin_pin:
        print("Error: INITIAL_ADMIN_PIN must be set")
        print("Please configure it in your .env.development or .env.production file")
        sys.exit(1)

    if not session.is_first_run:
        print(f"Device already has {len(session.users)} account(s); nothing to do")
        return

    try:
        admin = session.setup_admin(settings.initial_admin_name, settings.initial_admin_pin)
    except ValidationError as e:
        print(f"Error: {e.message}")
        sys.exit(1)

    print(f"Successfully created admin account: {admin.name}")

    if await session.flush():
        print("Pushed account to the remote store")
    elif session.status.remote_configured:
        print(f"Warning: remote push failed ({session.status.message}); run a manual push later")


if __name__ == "__main__":
    asyncio.run(create_initial_admin())

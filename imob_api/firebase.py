"""
Firebase Admin SDK initialization shared by the document store and auth client.
"""

from __future__ import annotations

import logging
from typing import Optional

import firebase_admin
from firebase_admin import credentials

logger = logging.getLogger(__name__)


def get_firebase_app(
    project_id: Optional[str] = None,
    credentials_path: Optional[str] = None,
) -> firebase_admin.App:
    """Return the default Firebase app, initializing it on first use."""
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass

    if credentials_path:
        cred = credentials.Certificate(credentials_path)
    else:
        cred = credentials.ApplicationDefault()
    options = {"projectId": project_id} if project_id else None
    logger.info("Initializing Firebase app for project %s", project_id or "<default>")
    return firebase_admin.initialize_app(cred, options)

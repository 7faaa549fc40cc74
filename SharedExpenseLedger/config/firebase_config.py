"""
Firebase Config Module

Lazily initialises the Firebase Admin SDK and hands out a shared Firestore
client.

Callers treat a ``None`` return as "store unavailable" and raise
``RuntimeError("Firestore is not available")`` themselves.

Functions:
    get_db: Return the Firestore client, initialising it on first use.
"""

import firebase_admin
from firebase_admin import credentials, firestore

from config.settings import get_firebase_credentials_path, get_firebase_project_id
from logging_setup import get_logger


_logger = get_logger("shared_expense_ledger.config.firebase")

_db = None


def _build_credentials():
    path = get_firebase_credentials_path()
    if path:
        return credentials.Certificate(path)
    # Falls back to GOOGLE_APPLICATION_CREDENTIALS / metadata server
    return credentials.ApplicationDefault()


def get_db():
    """
    Return the shared Firestore client.

    Returns:
        google.cloud.firestore.Client | None: The client, or None when the
        SDK could not be initialised (missing credentials, bad project).
    """
    global _db
    if _db is not None:
        return _db

    try:
        try:
            app = firebase_admin.get_app()
        except ValueError:
            options = {}
            project_id = get_firebase_project_id()
            if project_id:
                options["projectId"] = project_id
            app = firebase_admin.initialize_app(_build_credentials(), options or None)
        _db = firestore.client(app)
    except Exception as e:
        _logger.error("Could not initialise Firestore: %s", e)
        return None

    _logger.info("Firestore client initialised")
    return _db

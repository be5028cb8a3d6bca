"""
Shared setup for the API tests: in-memory backends, a fresh app per test and
helpers to seed tenants and signed-in users.
"""

import os
import unittest
from unittest.mock import patch

from fastapi.testclient import TestClient

from imob_api import dependencies
from imob_api.app import create_app
from imob_api.config import get_settings
from imob_api.services import properties, tenants, users
from imob_api.services.invitations import user_claims
from shared.firebase_constants import tenant_path

TEST_ENV = {
    "USE_IN_MEMORY_BACKENDS": "true",
    "RATE_LIMIT_ENABLED": "false",
    "FIREBASE_PROJECT_ID": "",
    "DATABASE_URL": "",
    "REDIS_URL": "",
    "STORAGE_BUCKET": "",
}

_BACKENDS = (
    "_document_store",
    "_auth_client",
    "_batch_ledger",
    "_queue_client",
    "_storage_client",
    "_mailer",
)


def reset_backends() -> None:
    for name in _BACKENDS:
        setattr(dependencies, name, None)


class ApiTestCase(unittest.TestCase):
    env_overrides: dict = {}

    def setUp(self):
        env = patch.dict(os.environ, {**TEST_ENV, **self.env_overrides})
        env.start()
        self.addCleanup(env.stop)
        get_settings.cache_clear()
        self.addCleanup(get_settings.cache_clear)
        reset_backends()
        self.addCleanup(reset_backends)

        self.client = TestClient(create_app())
        self.store = dependencies.get_document_store()
        self.auth = dependencies.get_auth_client()
        self.ledger = dependencies.get_batch_ledger()
        self.queue = dependencies.get_queue_client()
        self.storage = dependencies.get_storage_client()
        self.mailer = dependencies.get_mailer()

    def create_tenant(self, name="Imobiliária Teste", **data):
        return tenants.create_tenant(self.store, {"name": name, **data})

    def make_platform_admin(self, tenant_id):
        self.store.update(tenant_path(tenant_id), {"is_platform_admin": True})

    def sign_in(self, tenant_id, role="admin", *, name=None, email=None, **data):
        """Creates an auth user plus user document; returns (user, headers)."""
        email = email or f"{role}.{len(self.auth.users)}@example.com"
        auth_user = self.auth.create_user(email=email, password="senha-segura")
        if role in ("broker", "broker_admin"):
            data.setdefault("creci", "12345-F/SP")
        user = users.create_user(
            self.store,
            tenant_id,
            {"name": name or role.title(), "email": email, "role": role, **data},
            firebase_uid=auth_user.uid,
        )
        self.auth.set_custom_user_claims(auth_user.uid, user_claims(tenant_id, user.id, role))
        token = self.auth.issue_id_token(auth_user.uid)
        return user, {"Authorization": f"Bearer {token}"}

    def create_property(self, tenant_id, **data):
        payload = {"title": "Apartamento em Moema", "sale_price": 850000, **data}
        return properties.create_property(self.store, tenant_id, payload)

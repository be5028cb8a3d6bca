import unittest
from unittest import mock

import requests

from imob_api.auth import SIGN_IN_URL, FirebaseAuthClient
from imob_api.errors import AuthenticationError, ImobError
from imob_api.services import accounts, users
from imob_api.services.common import get_tenant
from imob_api.tests.fixtures import ApiTestCase

VALID_CPF = "529.982.247-25"
VALID_CNPJ = "11.222.333/0001-81"


def signup_payload(**overrides):
    payload = {
        "email": "Joao@Example.com",
        "password": "senha-segura",
        "name": "João Silva",
        "phone": "(11) 98765-4321",
        "tenant_name": "João Silva Imóveis",
        "tenant_type": "pf",
        "document": VALID_CPF,
        "tenant_creci": "12345-F",
    }
    payload.update(overrides)
    return payload


class SignupTests(ApiTestCase):
    def test_independent_broker_signup(self):
        response = self.client.post("/api/v1/auth/signup", json=signup_payload())
        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["user"]["role"], "broker_admin")
        self.assertEqual(body["user"]["email"], "joao@example.com")

        tenant = get_tenant(self.store, body["tenant_id"])
        self.assertEqual(tenant.tenant_type, "pf")
        self.assertEqual(tenant.business_type, "corretor_autonomo")
        self.assertEqual(tenant.document, "52998224725")
        self.assertEqual(tenant.creci, "12345-F")
        self.assertTrue(tenant.slug.startswith("joao-silva-imoveis-"))

        user = users.get_user(self.store, body["tenant_id"], body["broker_id"])
        self.assertEqual(user.phone, "+5511987654321")
        self.assertEqual(user.creci, "12345-F")

        auth_user = self.auth.get_user_by_email("joao@example.com")
        self.assertEqual(
            auth_user.custom_claims,
            {
                "tenant_id": body["tenant_id"],
                "role": "broker_admin",
                "user_id": body["broker_id"],
                "broker_id": body["broker_id"],
            },
        )
        self.assertEqual(body["firebase_token"], f"custom-token-{auth_user.uid}")

    def test_company_signup_without_broker_admin(self):
        response = self.client.post(
            "/api/v1/auth/signup",
            json=signup_payload(
                tenant_type="pj",
                document=VALID_CNPJ,
                business_type="incorporadora",
                tenant_creci=None,
            ),
        )
        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body["user"]["role"], "admin")
        tenant = get_tenant(self.store, body["tenant_id"])
        self.assertEqual(tenant.document_type, "cnpj")

    def test_signup_rules(self):
        cases = [
            (signup_payload(tenant_creci="12345-J"), "Corretor autônomo requer CRECI-F (Pessoa Física)"),
            (
                signup_payload(tenant_type="pj", document=VALID_CNPJ, business_type="imobiliaria", tenant_creci=None),
                "CRECI-J é obrigatório para imobiliária",
            ),
            (
                signup_payload(
                    tenant_type="pj",
                    document=VALID_CNPJ,
                    business_type="imobiliaria",
                    tenant_creci="54321-J",
                    is_user_broker=True,
                    user_creci="54321-J",
                ),
                "Admin corretor precisa de CRECI-F individual",
            ),
            (signup_payload(document="111.111.111-11"), "invalid CPF"),
            (signup_payload(password="curta"), "password must be at least 8 characters"),
            (signup_payload(tenant_type="xx"), "tenant_type must be 'pf' or 'pj'"),
        ]
        for payload, error in cases:
            with self.subTest(error=error):
                response = self.client.post("/api/v1/auth/signup", json=payload)
                self.assertEqual(response.status_code, 400)
                self.assertEqual(response.json()["error"], error)
        self.assertEqual(self.auth.users, {})

    def test_duplicate_email_conflicts(self):
        self.client.post("/api/v1/auth/signup", json=signup_payload())
        response = self.client.post("/api/v1/auth/signup", json=signup_payload())
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["error"], "Email already registered")


class SignupRollbackTests(ApiTestCase):
    def fail_on(self, collection_suffix):
        create = self.store.create

        def flaky_create(collection_path, data, doc_id=None):
            if collection_path.endswith(collection_suffix):
                raise RuntimeError("firestore unavailable")
            return create(collection_path, data, doc_id=doc_id)

        return mock.patch.object(self.store, "create", side_effect=flaky_create)

    def test_tenant_failure_removes_auth_user(self):
        with self.fail_on("tenants"):
            with self.assertRaises(RuntimeError):
                accounts.signup(self.store, self.auth, signup_payload())
        self.assertIsNone(self.auth.get_user_by_email("joao@example.com"))
        self.assertEqual(self.store.query("tenants"), [])

    def test_user_failure_removes_tenant_and_auth_user(self):
        with self.fail_on("/users"):
            with self.assertRaises(RuntimeError):
                accounts.signup(self.store, self.auth, signup_payload())
        self.assertIsNone(self.auth.get_user_by_email("joao@example.com"))
        self.assertEqual(self.store.query("tenants"), [])

        response = self.client.post("/api/v1/auth/signup", json=signup_payload())
        self.assertEqual(response.status_code, 201)


class LoginTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.signup = self.client.post("/api/v1/auth/signup", json=signup_payload()).json()

    def test_login_and_refresh(self):
        response = self.client.post(
            "/api/v1/auth/login", json={"email": "joao@example.com", "password": "senha-segura"}
        )
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["tenant_id"], self.signup["tenant_id"])
        self.assertFalse(body["is_platform_admin"])
        self.assertEqual(body["broker"]["id"], self.signup["broker_id"])
        self.assertEqual(body["broker"]["role"], "broker_admin")

        uid = self.auth.get_user_by_email("joao@example.com").uid
        headers = {"Authorization": f"Bearer {self.auth.issue_id_token(uid)}"}
        response = self.client.post("/api/v1/auth/refresh", headers=headers)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["broker_id"], self.signup["broker_id"])

    def test_wrong_password(self):
        response = self.client.post(
            "/api/v1/auth/login", json={"email": "joao@example.com", "password": "WRONG-guess"}
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"], "Invalid credentials")
        self.assertNotIn("firebase_token", response.json())

    def test_unknown_email(self):
        response = self.client.post(
            "/api/v1/auth/login", json={"email": "nobody@example.com", "password": "x"}
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()["error"], "Invalid credentials")

    def test_inactive_user_and_tenant(self):
        users.set_user_active(self.store, self.signup["tenant_id"], self.signup["broker_id"], False)
        response = self.client.post(
            "/api/v1/auth/login", json={"email": "joao@example.com", "password": "senha-segura"}
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["error"], "Account is inactive")

        users.set_user_active(self.store, self.signup["tenant_id"], self.signup["broker_id"], True)
        self.store.update(f"tenants/{self.signup['tenant_id']}", {"is_active": False})
        response = self.client.post(
            "/api/v1/auth/login", json={"email": "joao@example.com", "password": "senha-segura"}
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["error"], "Tenant account is inactive")


class FirebasePasswordCheckTests(unittest.TestCase):
    def setUp(self):
        self.client = FirebaseAuthClient(web_api_key="web-key")

    def response(self, status_code, payload):
        response = mock.Mock(status_code=status_code, ok=status_code < 400)
        response.json.return_value = payload
        return response

    @mock.patch("imob_api.auth.requests.post")
    def test_valid_credentials_return_uid(self, post):
        post.return_value = self.response(200, {"localId": "uid-1", "idToken": "t"})
        self.assertEqual(self.client.verify_password("a@example.com", "senha-segura"), "uid-1")
        post.assert_called_once_with(
            SIGN_IN_URL,
            params={"key": "web-key"},
            json={"email": "a@example.com", "password": "senha-segura", "returnSecureToken": True},
            timeout=10,
        )

    @mock.patch("imob_api.auth.requests.post")
    def test_rejected_credentials(self, post):
        post.return_value = self.response(400, {"error": {"message": "INVALID_PASSWORD"}})
        with self.assertRaises(AuthenticationError):
            self.client.verify_password("a@example.com", "errada")

    @mock.patch("imob_api.auth.requests.post")
    def test_network_failure(self, post):
        post.side_effect = requests.ConnectionError("down")
        with self.assertRaises(ImobError) as ctx:
            self.client.verify_password("a@example.com", "senha-segura")
        self.assertNotIsInstance(ctx.exception, AuthenticationError)

    def test_missing_web_api_key(self):
        with self.assertRaises(ImobError):
            FirebaseAuthClient().verify_password("a@example.com", "senha-segura")


if __name__ == "__main__":
    unittest.main()

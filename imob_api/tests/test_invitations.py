import unittest
from datetime import timedelta
from unittest import mock

from imob_api.documents import utc_now
from imob_api.services import invitations, users
from imob_api.tests.fixtures import ApiTestCase
from shared.types import BROKER_PERMISSIONS


class InvitationFlowTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.tenant = self.create_tenant()
        _, self.headers = self.sign_in(self.tenant.id, name="Paula Admin")
        self.base = f"/api/v1/admin/{self.tenant.id}/users"

    def invite(self, **data):
        body = {"email": "Novo@Example.com", "name": "Novo Corretor", "role": "broker", "creci": "12345-F", **data}
        return self.client.post(f"{self.base}/invite", json=body, headers=self.headers)

    def token_for(self, invitation_id):
        return invitations.get_invitation(self.store, self.tenant.id, invitation_id).token

    def test_invite_sends_email(self):
        response = self.invite()
        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertEqual(body["message"], "Invitation sent to novo@example.com")

        self.assertEqual(len(self.mailer.sent), 1)
        sent = self.mailer.sent[0]
        self.assertEqual(sent["to_email"], "novo@example.com")
        self.assertIn("Imobiliária Teste", sent["subject"])
        token = self.token_for(body["invitation_id"])
        self.assertIn(f"/auth/accept-invitation?token={token}", sent["text_body"])
        self.assertIn("Paula Admin", sent["text_body"])

    def test_list_hides_token(self):
        self.invite()
        response = self.client.get(f"{self.base}/invitations", headers=self.headers)
        data = response.json()["data"]
        self.assertEqual(len(data), 1)
        self.assertNotIn("token", data[0])
        self.assertEqual(data[0]["status"], "pending")

    def test_invite_rules(self):
        self.assertEqual(self.invite(creci=None).status_code, 400)
        self.assertEqual(self.invite(role="owner").status_code, 400)
        self.assertEqual(self.invite().status_code, 201)
        response = self.invite()
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json()["error"], "a pending invitation already exists for this email")

        self.sign_in(self.tenant.id, "manager", email="gerente@example.com")
        response = self.invite(email="gerente@example.com", role="manager")
        self.assertEqual(response.status_code, 409)

    def test_verify_and_accept(self):
        invitation_id = self.invite().json()["invitation_id"]
        token = self.token_for(invitation_id)

        response = self.client.get(f"/api/v1/invitations/{token}/verify")
        body = response.json()
        self.assertTrue(body["valid"])
        self.assertEqual(body["invitation"]["tenant_name"], "Imobiliária Teste")
        self.assertEqual(body["invitation"]["role"], "broker")

        response = self.client.post(f"/api/v1/invitations/{token}/accept", json={"password": "curta"})
        self.assertEqual(response.status_code, 400)
        self.assertIsNone(self.auth.get_user_by_email("novo@example.com"))

        response = self.client.post(
            f"/api/v1/invitations/{token}/accept", json={"password": "senha-segura"}
        )
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["tenant_id"], self.tenant.id)

        user = users.get_user(self.store, self.tenant.id, body["user_id"])
        self.assertEqual(user.email, "novo@example.com")
        self.assertEqual(user.creci, "12345-F")
        self.assertEqual(user.permissions, BROKER_PERMISSIONS)
        auth_user = self.auth.get_user_by_email("novo@example.com")
        self.assertEqual(user.firebase_uid, auth_user.uid)
        self.assertEqual(auth_user.custom_claims["user_id"], user.id)
        self.assertEqual(body["firebase_token"], f"custom-token-{auth_user.uid}")

        response = self.client.get(f"/api/v1/invitations/{token}/verify")
        self.assertEqual(response.json(), {"valid": False, "message": "Invitation is accepted"})
        response = self.client.post(
            f"/api/v1/invitations/{token}/accept", json={"password": "senha-segura"}
        )
        self.assertEqual(response.status_code, 400)

    def test_accept_failure_removes_auth_user(self):
        invitation_id = self.invite().json()["invitation_id"]
        token = self.token_for(invitation_id)

        with mock.patch.object(
            invitations, "create_user", side_effect=RuntimeError("firestore unavailable")
        ):
            with self.assertRaises(RuntimeError):
                invitations.accept_invitation(self.store, self.auth, token, "senha-segura")
        self.assertIsNone(self.auth.get_user_by_email("novo@example.com"))
        self.assertEqual(invitations.get_invitation(self.store, self.tenant.id, invitation_id).status, "pending")

        response = self.client.post(
            f"/api/v1/invitations/{token}/accept", json={"password": "senha-segura"}
        )
        self.assertEqual(response.status_code, 200)

    def test_expired_invitation(self):
        invitation_id = self.invite().json()["invitation_id"]
        token = self.token_for(invitation_id)
        self.store.update(
            f"tenants/{self.tenant.id}/user_invitations/{invitation_id}",
            {"expires_at": utc_now() - timedelta(minutes=1)},
        )
        response = self.client.get(f"/api/v1/invitations/{token}/verify")
        self.assertEqual(response.json(), {"valid": False, "message": "Invitation has expired"})
        self.assertEqual(
            invitations.get_invitation(self.store, self.tenant.id, invitation_id).status, "expired"
        )

    def test_unknown_token(self):
        response = self.client.get("/api/v1/invitations/nope/verify")
        self.assertEqual(response.json(), {"valid": False, "message": "Invalid invitation token"})

    def test_cancel_and_resend(self):
        invitation_id = self.invite().json()["invitation_id"]
        old_token = self.token_for(invitation_id)

        response = self.client.post(f"{self.base}/invitations/{invitation_id}/resend", headers=self.headers)
        self.assertEqual(response.json()["message"], "Invitation resent to novo@example.com")
        self.assertNotIn("token", response.json()["data"])
        self.assertNotEqual(self.token_for(invitation_id), old_token)
        self.assertEqual(len(self.mailer.sent), 2)

        response = self.client.delete(f"{self.base}/invitations/{invitation_id}", headers=self.headers)
        self.assertEqual(response.json()["message"], "Invitation cancelled successfully")
        response = self.client.delete(f"{self.base}/invitations/{invitation_id}", headers=self.headers)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "Cannot cancel cancelled invitation")


if __name__ == "__main__":
    unittest.main()

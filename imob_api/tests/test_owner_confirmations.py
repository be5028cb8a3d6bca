import unittest
from datetime import timedelta

from imob_api.documents import utc_now
from imob_api.services import activity_log, owner_confirmations, owners, properties
from imob_api.tests.fixtures import ApiTestCase


class OwnerConfirmationTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.tenant = self.create_tenant()
        _, self.headers = self.sign_in(self.tenant.id)
        self.owner = owners.create_owner(
            self.store,
            self.tenant.id,
            {"name": "João Silva Santos", "phone": "11987651234", "email": "joao@example.com"},
        )
        self.prop = self.create_property(
            self.tenant.id, reference="AP-001", owner_id=self.owner.id, status="pending_confirmation"
        )

    def create_link(self, **body):
        response = self.client.post(
            f"/api/v1/{self.tenant.id}/properties/{self.prop.id}/confirmation-links",
            json=body,
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 201)
        return response.json()["data"]

    def submit(self, token, **body):
        return self.client.post(
            f"/api/v1/owner-confirmations/{token}/submit?tenant_id={self.tenant.id}", json=body
        )

    def test_link_is_emailed_and_only_hash_is_stored(self):
        link = self.create_link()
        self.assertTrue(link["email_sent"])
        self.assertTrue(
            link["confirm_url"].startswith(f"http://localhost:3000/confirmar/{link['token']}")
        )
        self.assertIn(link["confirm_url"], self.mailer.sent[0]["text_body"])

        stored = self.store.get(
            f"tenants/{self.tenant.id}/owner_confirmation_tokens/{link['token_id']}"
        ).data
        self.assertNotIn("token", stored)
        self.assertEqual(stored["token_hash"], owner_confirmations.hash_token(link["token"]))

    def test_link_without_email(self):
        link = self.create_link(send_email=False, delivery_hint="whatsapp")
        self.assertFalse(link["email_sent"])
        self.assertEqual(self.mailer.sent, [])

    def test_page_masks_owner(self):
        link = self.create_link(send_email=False)
        response = self.client.get(f"/confirmar/{link['token']}?tenant_id={self.tenant.id}")
        self.assertEqual(response.status_code, 200)
        data = response.json()["data"]
        self.assertEqual(
            data["owner"],
            {"name": "João S.", "phone": "(11) 9****-1234", "email": "j***@example.com"},
        )
        self.assertEqual(data["property"]["reference"], "AP-001")
        self.assertEqual(data["property"]["status"], "pending_confirmation")
        self.assertFalse(data["already_used"])

        response = self.client.get(f"/confirmar/{link['token']}")
        self.assertEqual(response.status_code, 400)
        response = self.client.get(f"/confirmar/wrong?tenant_id={self.tenant.id}")
        self.assertEqual(response.status_code, 404)

    def test_confirm_price_is_single_use(self):
        link = self.create_link(send_email=False)
        response = self.submit(link["token"], action="confirm_price")
        self.assertEqual(response.status_code, 400)

        response = self.submit(link["token"], action="confirm_price", price_amount=900000)
        self.assertEqual(response.json(), {"success": True, "message": "Obrigado! Informação atualizada com sucesso."})

        prop = properties.get_property(self.store, self.tenant.id, self.prop.id)
        self.assertEqual(prop.status, "available")
        self.assertEqual(prop.sale_price, 900000)
        self.assertEqual(prop.price_amount, 900000)
        self.assertIsNotNone(prop.last_confirmed_at)

        response = self.submit(link["token"], action="confirm_available")
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json()["error"], "token not found, expired, or already used")

        response = self.client.get(f"/confirmar/{link['token']}?tenant_id={self.tenant.id}")
        self.assertTrue(response.json()["data"]["already_used"])

        logs = activity_log.list_activity_logs(self.store, self.tenant.id, event_type="owner_confirm_price")
        self.assertEqual(len(logs), 1)
        self.assertEqual(logs[0].actor_type, "owner")
        self.assertEqual(logs[0].actor_id, self.owner.id)

    def test_confirm_unavailable(self):
        link = self.create_link(send_email=False)
        self.assertEqual(self.submit(link["token"], action="confirm_unavailable").status_code, 200)
        prop = properties.get_property(self.store, self.tenant.id, self.prop.id)
        self.assertEqual(prop.status, "unavailable")

    def test_expired_token(self):
        link = self.create_link(send_email=False)
        self.store.update(
            f"tenants/{self.tenant.id}/owner_confirmation_tokens/{link['token_id']}",
            {"expires_at": utc_now() - timedelta(seconds=1)},
        )
        self.assertEqual(self.submit(link["token"], action="confirm_available").status_code, 404)
        response = self.client.get(f"/confirmar/{link['token']}?tenant_id={self.tenant.id}")
        self.assertEqual(response.status_code, 404)

    def test_wrong_tenant(self):
        link = self.create_link(send_email=False)
        other = self.create_tenant("Outra Imobiliária")
        response = self.client.post(
            f"/api/v1/owner-confirmations/{link['token']}/submit?tenant_id={other.id}",
            json={"action": "confirm_available"},
        )
        self.assertEqual(response.status_code, 404)

    def test_broker_cannot_create_links(self):
        _, broker_headers = self.sign_in(self.tenant.id, "broker")
        response = self.client.post(
            f"/api/v1/{self.tenant.id}/properties/{self.prop.id}/confirmation-links",
            json={},
            headers=broker_headers,
        )
        self.assertEqual(response.status_code, 403)


if __name__ == "__main__":
    unittest.main()

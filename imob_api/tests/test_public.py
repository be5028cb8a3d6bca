import unittest
from urllib.parse import unquote

from imob_api.services import activity_log, leads, property_broker_roles, users
from imob_api.tests.fixtures import ApiTestCase


class PublicCatalogueTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.tenant = self.create_tenant(phone="11 3333-4444")
        self.other = self.create_tenant("Outra Imobiliária")
        self.visible = self.create_property(
            self.tenant.id,
            reference="AP-001",
            visibility="public",
            city="São Paulo",
            bedrooms=3,
            owner_id="owner-1",
            external_id="ext-1",
            featured=True,
        )
        self.cheap = self.create_property(
            self.other.id, title="Kitnet", visibility="public", sale_price=200000, bedrooms=1
        )
        self.private = self.create_property(self.tenant.id, title="Privado")
        self.sold_out = self.create_property(
            self.tenant.id, title="Indisponível", visibility="public", status="unavailable"
        )

    def test_lists_only_public_available_properties(self):
        response = self.client.get("/api/v1/public/properties")
        self.assertEqual(response.status_code, 200)
        ids = {prop["id"] for prop in response.json()["data"]}
        self.assertEqual(ids, {self.visible.id, self.cheap.id})
        for prop in response.json()["data"]:
            self.assertNotIn("owner_id", prop)
            self.assertNotIn("external_id", prop)
        tenants = {prop["id"]: prop["tenant_id"] for prop in response.json()["data"]}
        self.assertEqual(tenants[self.cheap.id], self.other.id)

    def test_filters(self):
        response = self.client.get("/api/v1/public/properties?max_price=500000")
        self.assertEqual([prop["id"] for prop in response.json()["data"]], [self.cheap.id])
        response = self.client.get("/api/v1/public/properties?bedrooms=2")
        self.assertEqual([prop["id"] for prop in response.json()["data"]], [self.visible.id])
        response = self.client.get(f"/api/v1/public/properties?tenant_id={self.other.id}")
        self.assertEqual([prop["id"] for prop in response.json()["data"]], [self.cheap.id])
        response = self.client.get("/api/v1/public/properties?property_type=castle")
        self.assertEqual(response.status_code, 400)

    def test_featured(self):
        response = self.client.get("/api/v1/public/properties/featured")
        self.assertEqual([prop["id"] for prop in response.json()["data"]], [self.visible.id])

    def test_property_detail(self):
        response = self.client.get(f"/api/v1/public/properties/{self.visible.id}")
        self.assertEqual(response.json()["data"]["reference"], "AP-001")
        self.assertNotIn("owner_id", response.json()["data"])

        for hidden in (self.private, self.sold_out):
            response = self.client.get(f"/api/v1/public/properties/{hidden.id}")
            self.assertEqual(response.status_code, 404)
            self.assertEqual(response.json()["error"], "Public property not found")

    def test_broker_profile_and_listings(self):
        broker = users.create_broker(
            self.store,
            self.tenant.id,
            {"name": "Ana", "email": "ana@example.com", "creci": "12345-F/SP", "bio": "Moema"},
        )
        self.store.update(
            f"tenants/{self.tenant.id}/properties/{self.visible.id}", {"captador_id": broker.id}
        )
        response = self.client.get(f"/api/v1/public/brokers/{broker.id}")
        profile = response.json()["data"]
        self.assertEqual(profile["bio"], "Moema")
        self.assertNotIn("permissions", profile)
        self.assertNotIn("firebase_uid", profile)

        response = self.client.get(f"/api/v1/public/brokers/{broker.id}/properties")
        self.assertEqual([prop["id"] for prop in response.json()["data"]], [self.visible.id])

        admin, _ = self.sign_in(self.tenant.id)
        self.assertEqual(self.client.get(f"/api/v1/public/brokers/{admin.id}").status_code, 404)


class PublicLeadTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.tenant = self.create_tenant(phone="11 3333-4444")
        self.prop = self.create_property(self.tenant.id, reference="AP-001", visibility="public")

    def test_whatsapp_lead_falls_back_to_tenant_phone(self):
        response = self.client.post(f"/api/v1/public/properties/{self.prop.id}/leads/whatsapp")
        self.assertEqual(response.status_code, 201)
        body = response.json()
        self.assertTrue(body["whatsapp_url"].startswith("https://wa.me/551133334444?text="))
        self.assertEqual(body["message"], "Olá! Tenho interesse no imóvel Apartamento em Moema (ref. AP-001).")
        self.assertEqual(unquote(body["whatsapp_url"].split("text=")[1]), body["message"])

        lead = leads.get_lead(self.store, self.tenant.id, body["lead_id"])
        self.assertEqual(lead.channel, "whatsapp")
        self.assertEqual(lead.name, "Lead via WhatsApp")
        self.assertEqual(lead.phone, "WhatsApp")
        self.assertTrue(lead.consent_given)
        self.assertEqual(lead.consent_ip, "testclient")

    def test_whatsapp_number_prefers_originating_broker(self):
        primary = users.create_broker(
            self.store,
            self.tenant.id,
            {"name": "Bruno", "email": "bruno@example.com", "creci": "22222-F", "phone": "11 97777-6666"},
        )
        originating = users.create_broker(
            self.store,
            self.tenant.id,
            {"name": "Ana", "email": "ana@example.com", "creci": "11111-F", "phone": "11 98888-7777"},
        )
        property_broker_roles.assign_broker(
            self.store, self.tenant.id, self.prop.id, primary.id, "listing_broker", is_primary=True
        )
        response = self.client.post(
            f"/api/v1/public/properties/{self.prop.id}/leads/whatsapp",
            json={"name": "Visitante", "utm_source": "google"},
        )
        self.assertIn("wa.me/5511977776666", response.json()["whatsapp_url"])

        property_broker_roles.assign_broker(
            self.store, self.tenant.id, self.prop.id, originating.id, "originating_broker"
        )
        response = self.client.post(f"/api/v1/public/properties/{self.prop.id}/leads/whatsapp")
        self.assertIn("wa.me/5511988887777", response.json()["whatsapp_url"])

        tracked = leads.list_leads(self.store, self.tenant.id, channel="whatsapp")
        self.assertIn("google", [lead.utm_source for lead in tracked])

    def test_form_lead(self):
        url = f"/api/v1/public/properties/{self.prop.id}/leads/form"
        response = self.client.post(url, json={"name": "Carlos", "email": "carlos@example.com"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "consent_given must be true (LGPD compliance)")

        response = self.client.post(url, json={"name": "Carlos", "consent_given": True})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["error"], "email or phone is required")

        response = self.client.post(
            url,
            json={"name": " Carlos ", "email": "carlos@example.com", "consent_given": True},
            headers={"X-Forwarded-For": "203.0.113.9, 10.0.0.1"},
        )
        self.assertEqual(response.status_code, 201)
        lead = leads.get_lead(self.store, self.tenant.id, response.json()["lead_id"])
        self.assertEqual(lead.name, "Carlos")
        self.assertEqual(lead.channel, "form")
        self.assertEqual(lead.consent_ip, "203.0.113.9")

    def test_signed_in_team_member_is_credited(self):
        member, member_headers = self.sign_in(self.tenant.id, "broker")
        outsider_tenant = self.create_tenant("Outra Imobiliária")
        _, outsider_headers = self.sign_in(outsider_tenant.id)
        callers = [member_headers, outsider_headers, {"Authorization": "Bearer expired"}]

        # Lead events are deduplicated per property, so each caller gets its own.
        for index, headers in enumerate(callers):
            prop = self.create_property(self.tenant.id, reference=f"CASA-{index}", visibility="public")
            url = f"/api/v1/public/properties/{prop.id}/leads/whatsapp"
            self.assertEqual(self.client.post(url, headers=headers).status_code, 201)

        logs = activity_log.list_activity_logs(
            self.store, self.tenant.id, event_type="lead_created_whatsapp"
        )
        actors = sorted((str(log.actor_type), log.actor_id or "") for log in logs)
        self.assertEqual(actors, [("system", ""), ("system", ""), ("user", member.id)])

    def test_private_property_rejects_leads(self):
        hidden = self.create_property(self.tenant.id, title="Privado")
        response = self.client.post(f"/api/v1/public/properties/{hidden.id}/leads/whatsapp")
        self.assertEqual(response.status_code, 404)


if __name__ == "__main__":
    unittest.main()

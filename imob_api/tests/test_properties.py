import unittest

from imob_api.errors import NotFoundError
from imob_api.services import properties, property_broker_roles
from imob_api.tests.fixtures import ApiTestCase


class PropertyRoutesTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.tenant = self.create_tenant()
        _, self.headers = self.sign_in(self.tenant.id)
        self.base = f"/api/v1/{self.tenant.id}/properties"

    def test_create_defaults(self):
        response = self.client.post(
            self.base,
            json={
                "reference": "AP-001",
                "property_type": "apartment",
                "neighborhood": "Moema",
                "sale_price": 850000,
                "images": ["https://cdn.example.com/1.jpg", "https://cdn.example.com/2.jpg"],
            },
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 201)
        prop = response.json()["data"]
        self.assertEqual(prop["title"], "Apartamento à venda em Moema")
        self.assertEqual(prop["slug"], "apartamento-a-venda-em-moema-ap-001")
        self.assertEqual(prop["status"], "available")
        self.assertEqual(prop["visibility"], "private")
        self.assertEqual(prop["price_amount"], 850000)
        self.assertEqual(prop["cover_image_url"], "https://cdn.example.com/1.jpg")

    def test_rental_price_amount(self):
        response = self.client.post(
            self.base,
            json={"title": "Casa", "transaction_type": "rent", "sale_price": 1, "rental_price": 4500},
            headers=self.headers,
        )
        self.assertEqual(response.json()["data"]["price_amount"], 4500)

    def test_slugs_are_unique_per_tenant(self):
        first = self.create_property(self.tenant.id)
        second = self.create_property(self.tenant.id)
        self.assertEqual(first.slug, "apartamento-em-moema")
        self.assertEqual(second.slug, "apartamento-em-moema-2")

        response = self.client.post(
            self.base, json={"title": "Outro", "slug": "apartamento-em-moema"}, headers=self.headers
        )
        self.assertEqual(response.status_code, 409)

    def test_invalid_values(self):
        cases = [
            ({"title": "X", "status": "sold"}, "invalid status"),
            ({"title": "X", "sale_price": -1}, "sale_price cannot be negative"),
            ({"title": "X", "bedrooms": -2}, "bedrooms cannot be negative"),
        ]
        for body, error in cases:
            with self.subTest(body=body):
                response = self.client.post(self.base, json=body, headers=self.headers)
                self.assertEqual(response.status_code, 400)
                self.assertTrue(response.json()["error"].startswith(error))

    def test_update_recomputes_price(self):
        prop = self.create_property(self.tenant.id)
        response = self.client.put(
            f"{self.base}/{prop.id}",
            json={"sale_price": 900000, "visibility": "public"},
            headers=self.headers,
        )
        data = response.json()["data"]
        self.assertEqual(data["price_amount"], 900000)
        self.assertEqual(data["visibility"], "public")

        response = self.client.put(f"{self.base}/{prop.id}", json={"title": "  "}, headers=self.headers)
        self.assertEqual(response.status_code, 400)

    def test_list_filters_and_reference(self):
        self.create_property(self.tenant.id, reference="AP-001", city="São Paulo")
        self.create_property(self.tenant.id, title="Casa", reference="CA-002", city="Campinas", status="unavailable")

        response = self.client.get(f"{self.base}?city=Campinas", headers=self.headers)
        self.assertEqual([p["reference"] for p in response.json()["data"]], ["CA-002"])

        response = self.client.get(f"{self.base}?status=available", headers=self.headers)
        self.assertEqual(response.json()["count"], 1)

        response = self.client.get(f"{self.base}?status=bogus", headers=self.headers)
        self.assertEqual(response.status_code, 400)

        response = self.client.get(f"{self.base}/by-reference/CA-002", headers=self.headers)
        self.assertEqual(response.json()["data"]["title"], "Casa")
        response = self.client.get(f"{self.base}/by-reference/NOPE", headers=self.headers)
        self.assertEqual(response.status_code, 404)

    def test_delete(self):
        prop = self.create_property(self.tenant.id)
        response = self.client.delete(f"{self.base}/{prop.id}", headers=self.headers)
        self.assertEqual(response.json()["message"], "Property deleted successfully")
        self.assertEqual(self.client.get(f"{self.base}/{prop.id}", headers=self.headers).status_code, 404)

    def test_broker_permissions(self):
        _, broker_headers = self.sign_in(self.tenant.id, "broker")
        response = self.client.post(self.base, json={"title": "Do corretor"}, headers=broker_headers)
        self.assertEqual(response.status_code, 201)
        prop_id = response.json()["data"]["id"]

        response = self.client.put(f"{self.base}/{prop_id}", json={"title": "X"}, headers=broker_headers)
        self.assertEqual(response.status_code, 403)
        response = self.client.delete(f"{self.base}/{prop_id}", headers=broker_headers)
        self.assertEqual(response.status_code, 403)

        _, manager_headers = self.sign_in(self.tenant.id, "manager")
        response = self.client.put(f"{self.base}/{prop_id}", json={"title": "X"}, headers=manager_headers)
        self.assertEqual(response.status_code, 200)
        response = self.client.post(self.base, json={"title": "Y"}, headers=manager_headers)
        self.assertEqual(response.status_code, 403)

    def test_tenant_isolation(self):
        other = self.create_tenant("Outra Imobiliária")
        foreign = self.create_property(other.id)
        response = self.client.get(f"{self.base}/{foreign.id}", headers=self.headers)
        self.assertEqual(response.status_code, 404)

    def test_lookup_by_id_across_tenants(self):
        other = self.create_tenant("Outra Imobiliária")
        foreign = self.create_property(other.id, title="Casa no Lago")
        self.create_property(self.tenant.id)

        found = properties.find_property_any_tenant(self.store, foreign.id)
        self.assertEqual((found.id, found.tenant_id, found.title), (foreign.id, other.id, "Casa no Lago"))
        stored = self.store.get(f"tenants/{other.id}/properties/{foreign.id}")
        self.assertEqual(stored.data["property_id"], foreign.id)

        with self.assertRaises(NotFoundError):
            properties.find_property_any_tenant(self.store, "missing")


class BrokerRoleRoutesTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.tenant = self.create_tenant()
        _, self.headers = self.sign_in(self.tenant.id)
        self.ana, _ = self.sign_in(self.tenant.id, "broker", name="Ana")
        self.bruno, _ = self.sign_in(self.tenant.id, "broker", name="Bruno")
        self.prop = self.create_property(self.tenant.id)
        self.base = f"/api/v1/{self.tenant.id}"

    def assign(self, broker_id, role, **extra):
        return self.client.post(
            f"{self.base}/properties/{self.prop.id}/brokers",
            json={"broker_id": broker_id, "role": role, **extra},
            headers=self.headers,
        )

    def test_first_role_becomes_primary(self):
        response = self.assign(self.ana.id, "originating_broker", commission_percentage=60)
        self.assertEqual(response.status_code, 201)
        self.assertTrue(response.json()["data"]["is_primary"])

        response = self.assign(self.bruno.id, "co_broker", commission_percentage=40)
        self.assertFalse(response.json()["data"]["is_primary"])

        response = self.client.get(
            f"{self.base}/properties/{self.prop.id}/commission-split", headers=self.headers
        )
        self.assertEqual(response.json()["data"], {self.ana.id: 60.0, self.bruno.id: 40.0})

    def test_single_originating_broker(self):
        self.assign(self.ana.id, "originating_broker")
        response = self.assign(self.bruno.id, "originating_broker")
        self.assertEqual(response.status_code, 409)
        response = self.assign(self.ana.id, "originating_broker")
        self.assertEqual(response.status_code, 409)

    def test_validation(self):
        self.assertEqual(self.assign(self.ana.id, "owner").status_code, 400)
        self.assertEqual(
            self.assign(self.ana.id, "co_broker", commission_percentage=120).status_code, 400
        )
        manager, _ = self.sign_in(self.tenant.id, "manager")
        self.assertEqual(self.assign(manager.id, "co_broker").status_code, 404)

    def test_originating_role_is_locked(self):
        role_id = self.assign(self.ana.id, "originating_broker").json()["data"]["id"]
        response = self.client.put(
            f"{self.base}/property-broker-roles/{role_id}", json={"role": "co_broker"}, headers=self.headers
        )
        self.assertEqual(response.status_code, 400)
        response = self.client.delete(f"{self.base}/property-broker-roles/{role_id}", headers=self.headers)
        self.assertEqual(response.status_code, 400)

        response = self.client.put(
            f"{self.base}/property-broker-roles/{role_id}",
            json={"commission_percentage": 50},
            headers=self.headers,
        )
        self.assertEqual(response.json()["data"]["commission_percentage"], 50.0)

    def test_primary_moves_and_succession(self):
        originating = self.assign(self.ana.id, "originating_broker").json()["data"]["id"]
        listing = self.assign(self.bruno.id, "listing_broker").json()["data"]["id"]

        response = self.client.post(
            f"{self.base}/property-broker-roles/{listing}/primary", headers=self.headers
        )
        self.assertTrue(response.json()["data"]["is_primary"])
        self.assertFalse(property_broker_roles.get_role(self.store, self.tenant.id, originating).is_primary)

        response = self.client.delete(f"{self.base}/property-broker-roles/{listing}", headers=self.headers)
        self.assertEqual(response.json()["message"], "Broker removed from property")
        primary = property_broker_roles.get_primary_broker(self.store, self.tenant.id, self.prop.id)
        self.assertEqual(primary.id, originating)

    def test_listings_by_property_and_broker(self):
        self.assign(self.ana.id, "originating_broker")
        second = properties.create_property(self.store, self.tenant.id, {"title": "Casa"})
        property_broker_roles.assign_broker(
            self.store, self.tenant.id, second.id, self.ana.id, "listing_broker"
        )

        response = self.client.get(f"{self.base}/properties/{self.prop.id}/brokers", headers=self.headers)
        self.assertEqual(response.json()["count"], 1)
        response = self.client.get(f"{self.base}/brokers/{self.ana.id}/property-roles", headers=self.headers)
        self.assertEqual(
            sorted(role["property_id"] for role in response.json()["data"]),
            sorted([self.prop.id, second.id]),
        )


if __name__ == "__main__":
    unittest.main()

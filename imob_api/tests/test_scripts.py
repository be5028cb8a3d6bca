import unittest

from imob_api.documents import InMemoryDocumentStore
from imob_api.services import properties, property_broker_roles, tenants, users
from scripts.add_tenant_id_to_users import add_tenant_id
from scripts.migrate_broker_roles import migrate_broker_roles
from scripts.migrate_brokers_to_users import map_broker_role, migrate_brokers_to_users
from scripts.migrate_captador import captadores_by_reference, migrate_captador
from scripts.update_properties_visibility import update_visibility
from shared.firebase_constants import BROKERS_COLLECTION, USERS_COLLECTION, tenant_collection
from shared.types import BrokerPropertyRole


class MaintenanceScriptTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryDocumentStore()
        self.tenant = tenants.create_tenant(self.store, {"name": "Imobiliária Teste"})
        self.prop = properties.create_property(
            self.store, self.tenant.id, {"title": "Casa", "reference": "CA-001"}
        )

    def test_update_visibility(self):
        self.assertEqual(update_visibility(self.store, dry_run=True), (1, 1))
        self.assertEqual(properties.get_property(self.store, self.tenant.id, self.prop.id).visibility, "private")
        self.assertEqual(update_visibility(self.store), (1, 1))
        self.assertEqual(update_visibility(self.store), (1, 0))

    def test_migrate_captador(self):
        captadores = captadores_by_reference(
            [
                {"reference": "CA-001", "captador_name": " Ana  Lima "},
                {"reference": "", "captador_name": "Sem referência"},
            ]
        )
        self.assertEqual(captadores, {"CA-001": "Ana Lima"})
        self.assertEqual(migrate_captador(self.store, captadores), (1, 0))
        self.assertEqual(
            properties.get_property(self.store, self.tenant.id, self.prop.id).captador_name, "Ana Lima"
        )
        self.assertEqual(migrate_captador(self.store, captadores), (0, 1))

    def test_migrate_broker_roles(self):
        broker = users.create_broker(
            self.store, self.tenant.id, {"name": "Ana", "email": "ana@example.com", "creci": "12345-F"}
        )
        self.store.update(
            f"{tenant_collection(self.tenant.id, 'properties')}/{self.prop.id}", {"captador_id": broker.id}
        )
        summary = migrate_broker_roles(self.store)
        self.assertEqual((summary.created, summary.skipped, summary.errors), (1, 0, 0))
        roles = property_broker_roles.list_property_roles(self.store, self.tenant.id, self.prop.id)
        self.assertEqual([role.role for role in roles], [BrokerPropertyRole.ORIGINATING])

        summary = migrate_broker_roles(self.store)
        self.assertEqual((summary.created, summary.skipped), (0, 1))

    def test_migrate_brokers_to_users(self):
        brokers = tenant_collection(self.tenant.id, BROKERS_COLLECTION)
        self.store.create(brokers, {"name": "Licenciado", "creci": "12345-F/SP", "role": "broker"})
        self.store.create(brokers, {"name": "Secretária", "creci": "pendente", "role": "broker"})

        self.assertEqual(migrate_brokers_to_users(self.store), (2, 1, 1))
        self.assertEqual(len(self.store.query(brokers)), 1)
        migrated = self.store.query(tenant_collection(self.tenant.id, USERS_COLLECTION))
        self.assertEqual([doc.data["role"] for doc in migrated], ["manager"])
        self.assertEqual(migrated[0].data["tenant_id"], self.tenant.id)

        self.assertEqual(map_broker_role("broker_admin"), "admin")
        self.assertEqual(map_broker_role(""), "admin")

    def test_add_tenant_id(self):
        path = tenant_collection(self.tenant.id, USERS_COLLECTION)
        self.store.create(path, {"name": "Sem tenant"}, doc_id="u1")
        self.store.create(path, {"name": "Com tenant", "tenant_id": self.tenant.id}, doc_id="u2")
        self.assertEqual(add_tenant_id(self.store), (1, 1))
        self.assertEqual(self.store.get(f"{path}/u1").data["tenant_id"], self.tenant.id)


if __name__ == "__main__":
    unittest.main()

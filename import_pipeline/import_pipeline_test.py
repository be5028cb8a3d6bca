# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

import unittest

from imob_api.documents import InMemoryDocumentStore
from imob_api.services import owners, properties, property_broker_roles, tenants, users
from import_pipeline.import_pipeline import merge_records, run_import
from import_pipeline.normalize import FILE_FORMAT_ERROR, OWNER_ERROR, VALIDATION_ERROR, FeedError
from import_pipeline.spreadsheet_test import make_xlsx
from shared.types import BrokerPropertyRole, PropertyStatus, PropertyVisibility

FEED = """<Imoveis>
  <Imovel>
    <CodigoImovel>AP-001</CodigoImovel>
    <TituloImovel>Apartamento em Moema</TituloImovel>
    <TipoImovel>Apartamento</TipoImovel>
    <PrecoVenda>850.000,00</PrecoVenda>
  </Imovel>
  <Imovel>
    <CodigoImovel>CA-002</CodigoImovel>
    <TituloImovel>Casa no Morumbi</TituloImovel>
    <TipoImovel>Casa</TipoImovel>
    <PrecoLocacao>7.500,00</PrecoLocacao>
  </Imovel>
  <Imovel>
    <TituloImovel>Sem referência</TituloImovel>
  </Imovel>
</Imoveis>
""".encode("utf-8")

SHEET_HEADER = ("Referência", "Proprietário", "Telefone", "Email", "Captador")


class RunImportTest(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryDocumentStore()
        self.tenant = tenants.create_tenant(self.store, {"name": "Imobiliária Teste"})
        self.broker = users.create_broker(
            self.store,
            self.tenant.id,
            {"name": "João Silva", "email": "joao@example.com", "creci": "12345-F/SP"},
        )

    def test_union_import_creates_properties_owners_and_roles(self):
        sheet = make_xlsx(
            [
                SHEET_HEADER,
                ("AP-001", "Maria Souza", "11987654321", "maria@example.com", "joao silva"),
            ]
        )
        progress = []
        summary = run_import(
            self.store,
            self.tenant.id,
            xml_bytes=FEED,
            xls_bytes=sheet,
            source="union",
            batch_id="batch-1",
            on_progress=lambda done, total: progress.append((done, total)),
        )

        self.assertEqual(summary.total_records, 3)
        self.assertEqual(summary.created, 2)
        self.assertEqual(summary.matched_existing, 0)
        self.assertEqual(summary.errors, 1)
        self.assertEqual(summary.issues[0].error_type, VALIDATION_ERROR)
        self.assertEqual(progress[-1], (3, 3))

        prop = properties.get_property_by_reference(self.store, self.tenant.id, "AP-001")
        self.assertEqual(prop.visibility, PropertyVisibility.PRIVATE)
        self.assertEqual(prop.status, PropertyStatus.AVAILABLE)
        self.assertEqual(prop.sale_price, 850000.0)
        self.assertEqual(prop.import_batch_id, "batch-1")
        self.assertEqual(prop.captador_id, self.broker.id)
        self.assertEqual(prop.captador_name, "João Silva")

        owner = owners.get_owner(self.store, self.tenant.id, prop.owner_id)
        self.assertEqual(owner.name, "Maria Souza")
        self.assertEqual(owner.consent_origin, "import")

        role = property_broker_roles.get_originating_broker(self.store, self.tenant.id, prop.id)
        self.assertEqual(role.broker_id, self.broker.id)
        self.assertEqual(role.role, BrokerPropertyRole.ORIGINATING)

        rental = properties.get_property_by_reference(self.store, self.tenant.id, "CA-002")
        self.assertEqual(rental.rental_price, 7500.0)
        self.assertEqual(rental.transaction_type, "rent")
        self.assertEqual(rental.owner_id, "")

    def test_reimport_updates_existing_property(self):
        run_import(self.store, self.tenant.id, xml_bytes=FEED)
        prop = properties.get_property_by_reference(self.store, self.tenant.id, "AP-001")
        properties.update_property(
            self.store, self.tenant.id, prop.id, {"visibility": "public", "status": "unavailable"}
        )

        summary = run_import(self.store, self.tenant.id, xml_bytes=FEED.replace(b"850.000,00", b"900.000,00"))
        self.assertEqual(summary.created, 0)
        self.assertEqual(summary.matched_existing, 2)

        updated = properties.get_property(self.store, self.tenant.id, prop.id)
        self.assertEqual(updated.sale_price, 900000.0)
        self.assertEqual(updated.visibility, PropertyVisibility.PUBLIC)
        self.assertEqual(updated.status, PropertyStatus.UNAVAILABLE)

    def test_other_source_uses_rows_as_records(self):
        sheet = make_xlsx(
            [
                ("Referência", "Título", "Tipo", "Preço Venda", "Proprietário", "Telefone"),
                ("T-1", "Terreno em Cotia", "Terreno", "120.000", "Ana", "11 98888-7777"),
                ("T-2", "Terreno em Ibiúna", "Terreno", 95000, "Ana", "11 98888-7777"),
            ]
        )
        summary = run_import(self.store, self.tenant.id, xls_bytes=sheet, source="other")
        self.assertEqual(summary.created, 2)
        first = properties.get_property_by_reference(self.store, self.tenant.id, "T-1")
        second = properties.get_property_by_reference(self.store, self.tenant.id, "T-2")
        self.assertEqual(first.sale_price, 120000.0)
        self.assertEqual(first.property_type, "land")
        # Same phone: the owner is reused.
        self.assertEqual(first.owner_id, second.owner_id)

    def test_invalid_owner_contact_is_reported_but_property_saved(self):
        sheet = make_xlsx([SHEET_HEADER, ("AP-001", "Maria", "123", None, None)])
        summary = run_import(self.store, self.tenant.id, xml_bytes=FEED, xls_bytes=sheet)
        self.assertEqual(summary.created, 2)
        owner_issues = [i for i in summary.issues if i.error_type == OWNER_ERROR]
        self.assertEqual(len(owner_issues), 1)
        self.assertEqual(owner_issues[0].record_reference, "AP-001")
        self.assertEqual(owner_issues[0].row_number, 2)

    def test_bad_spreadsheet_is_not_fatal_with_xml(self):
        summary = run_import(self.store, self.tenant.id, xml_bytes=FEED, xls_bytes=b"garbage")
        self.assertEqual(summary.created, 2)
        self.assertIn(FILE_FORMAT_ERROR, [i.error_type for i in summary.issues])

    def test_bad_spreadsheet_alone_is_fatal(self):
        with self.assertRaises(FeedError):
            run_import(self.store, self.tenant.id, xls_bytes=b"garbage")


class MergeRecordsTest(unittest.TestCase):
    def test_union_merge_prefers_xml_values(self):
        merged = merge_records(
            [{"reference": "A", "title": "XML title"}],
            [
                {"reference": "A", "title": "Sheet title", "owner_name": "Ana", "row_number": 2},
                {"reference": "B", "owner_name": "Bia", "row_number": 3},
            ],
            "union",
        )
        self.assertEqual(
            merged,
            [
                {"reference": "A", "title": "XML title", "owner_name": "Ana", "row_number": 2},
                {"reference": "B", "owner_name": "Bia", "row_number": 3},
            ],
        )

    def test_other_keeps_everything(self):
        merged = merge_records([{"reference": "A"}], [{"reference": "A", "row_number": 2}], "other")
        self.assertEqual(len(merged), 2)


if __name__ == "__main__":
    unittest.main()

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

from import_pipeline.normalize import (
    VALIDATION_ERROR,
    RecordError,
    map_property_type,
    map_transaction_type,
    normalize_record,
    parse_br_number,
    parse_int,
)
from shared.types import PropertyType, TransactionType


class ParseNumberTest(unittest.TestCase):
    def test_brazilian_formats(self):
        self.assertEqual(parse_br_number("R$ 1.234.567,89"), 1234567.89)
        self.assertEqual(parse_br_number("450.000"), 450000.0)
        self.assertEqual(parse_br_number("72,5 m²"), 72.5)
        self.assertEqual(parse_br_number("1500"), 1500.0)
        self.assertEqual(parse_br_number("12.5"), 12.5)
        self.assertEqual(parse_br_number("100 m2"), 100.0)
        self.assertEqual(parse_br_number("85,5m2"), 85.5)
        self.assertEqual(parse_br_number("R$ 2.500,00/mês"), 2500.0)

    def test_numbers_pass_through(self):
        self.assertEqual(parse_br_number(350000), 350000.0)
        self.assertEqual(parse_br_number(72.5), 72.5)

    def test_empty_values(self):
        self.assertIsNone(parse_br_number(None))
        self.assertIsNone(parse_br_number(""))
        self.assertIsNone(parse_br_number("sob consulta"))

    def test_parse_int_truncates(self):
        self.assertEqual(parse_int("3"), 3)
        self.assertEqual(parse_int(2.0), 2)
        self.assertIsNone(parse_int(None))


class TypeMappingTest(unittest.TestCase):
    def test_property_types(self):
        self.assertEqual(map_property_type("Apartamento Padrão"), PropertyType.APARTMENT)
        self.assertEqual(map_property_type("Cobertura"), PropertyType.APARTMENT)
        self.assertEqual(map_property_type("Casa em Condomínio"), PropertyType.HOUSE)
        self.assertEqual(map_property_type("Lote em Condomínio"), PropertyType.CONDO_LOT)
        self.assertEqual(map_property_type("Lote"), PropertyType.BUILDING_LOT)
        self.assertEqual(map_property_type("Terreno"), PropertyType.LAND)
        self.assertEqual(map_property_type("Sala Comercial"), PropertyType.COMMERCIAL)
        self.assertEqual(map_property_type("Lançamento"), PropertyType.NEW_DEVELOPMENT)
        self.assertEqual(map_property_type("Residential / Home"), PropertyType.HOUSE)
        self.assertEqual(map_property_type("apartment"), PropertyType.APARTMENT)
        self.assertIsNone(map_property_type(""))

    def test_unknown_property_type(self):
        with self.assertRaises(RecordError) as ctx:
            map_property_type("Iate")
        self.assertEqual(ctx.exception.error_type, VALIDATION_ERROR)

    def test_transaction_types(self):
        self.assertEqual(map_transaction_type("Venda"), TransactionType.SALE)
        self.assertEqual(map_transaction_type("Locação"), TransactionType.RENT)
        self.assertEqual(map_transaction_type("For Rent"), TransactionType.RENT)
        self.assertEqual(map_transaction_type("Venda/Aluguel"), TransactionType.BOTH)

    def test_transaction_type_from_prices(self):
        self.assertEqual(map_transaction_type("", None, 2500.0), TransactionType.RENT)
        self.assertEqual(map_transaction_type("", 500000.0, 2500.0), TransactionType.BOTH)
        self.assertEqual(map_transaction_type(None), TransactionType.SALE)


class NormalizeRecordTest(unittest.TestCase):
    def test_full_record(self):
        record = normalize_record(
            {
                "reference": "AP-001",
                "title": "  Apartamento   em Moema ",
                "property_type": "Apartamento",
                "transaction_type": "Venda",
                "sale_price": "R$ 850.000,00",
                "bedrooms": "3",
                "area_sqm": "98,5",
                "images": ["https://cdn.test/1.jpg", "https://cdn.test/2.jpg"],
                "owner_name": "Maria Souza",
                "owner_phone": "(11) 98765-4321",
                "captador_name": "João Silva",
                "row_number": 4,
            }
        )
        self.assertEqual(record.reference, "AP-001")
        self.assertEqual(record.property["title"], "Apartamento em Moema")
        self.assertEqual(record.property["property_type"], "apartment")
        self.assertEqual(record.property["transaction_type"], "sale")
        self.assertEqual(record.property["sale_price"], 850000.0)
        self.assertEqual(record.property["bedrooms"], 3)
        self.assertEqual(record.property["area_sqm"], 98.5)
        self.assertEqual(record.property["cover_image_url"], "https://cdn.test/1.jpg")
        self.assertEqual(record.owner, {"name": "Maria Souza", "phone": "(11) 98765-4321"})
        self.assertEqual(record.captador_name, "João Silva")
        self.assertEqual(record.row_number, 4)

    def test_numeric_reference_from_sheet(self):
        record = normalize_record({"reference": 1234.0, "title": "Casa"})
        self.assertEqual(record.reference, "1234")

    def test_missing_reference(self):
        with self.assertRaises(RecordError) as ctx:
            normalize_record({"title": "Casa"})
        self.assertEqual(ctx.exception.error_type, VALIDATION_ERROR)

    def test_missing_title(self):
        with self.assertRaises(RecordError):
            normalize_record({"reference": "X1"})
        record = normalize_record({"reference": "X1"}, require_title=False)
        self.assertNotIn("title", record.property)

    def test_area_with_unit_suffix(self):
        record = normalize_record({"reference": "X1", "title": "Casa", "area_sqm": "120 m2"})
        self.assertEqual(record.property["area_sqm"], 120.0)

    def test_negative_price_is_rejected(self):
        with self.assertRaises(RecordError):
            normalize_record({"reference": "X1", "title": "Casa", "sale_price": "-10"})


if __name__ == "__main__":
    unittest.main()

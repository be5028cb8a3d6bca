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

import io
import unittest

import openpyxl

from import_pipeline.normalize import FILE_FORMAT_ERROR, PARSE_ERROR, FeedError
from import_pipeline.spreadsheet import map_headers, parse_spreadsheet


def make_xlsx(rows) -> bytes:
    workbook = openpyxl.Workbook()
    sheet = workbook.active
    for row in rows:
        sheet.append(list(row))
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


class SpreadsheetTest(unittest.TestCase):
    def test_map_headers(self):
        self.assertEqual(
            map_headers(["Referência", "Captador", "Telefone", "Coluna X", None]),
            ["reference", "captador_name", "owner_phone", "", ""],
        )

    def test_parses_rows(self):
        content = make_xlsx(
            [
                ("Referência", "Proprietário", "Telefone", "E-mail", "Captador", "Preço Venda"),
                ("AP-001", "Maria Souza", 11987654321, "maria@example.com", "João Silva", 850000),
                (None, None, None, None, None, None),
                (1234, "Carlos", "(11) 3333-4444", None, None, None),
            ]
        )
        rows = parse_spreadsheet(content)
        self.assertEqual(len(rows), 2)
        self.assertEqual(
            rows[0],
            {
                "reference": "AP-001",
                "owner_name": "Maria Souza",
                "owner_phone": "11987654321",
                "owner_email": "maria@example.com",
                "captador_name": "João Silva",
                "sale_price": 850000,
                "row_number": 2,
            },
        )
        self.assertEqual(rows[1]["reference"], "1234")
        self.assertEqual(rows[1]["owner_phone"], "(11) 3333-4444")
        self.assertEqual(rows[1]["row_number"], 4)

    def test_header_only(self):
        self.assertEqual(parse_spreadsheet(make_xlsx([("Referência", "Captador")])), [])

    def test_missing_reference_column(self):
        with self.assertRaises(FeedError) as ctx:
            parse_spreadsheet(make_xlsx([("Nome", "Telefone"), ("A", "B")]))
        self.assertEqual(ctx.exception.error_type, PARSE_ERROR)

    def test_legacy_xls_is_rejected(self):
        with self.assertRaises(FeedError) as ctx:
            parse_spreadsheet(b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1" + b"\x00" * 64)
        self.assertEqual(ctx.exception.error_type, FILE_FORMAT_ERROR)

    def test_garbage_is_rejected(self):
        with self.assertRaises(FeedError) as ctx:
            parse_spreadsheet(b"not a spreadsheet")
        self.assertEqual(ctx.exception.error_type, FILE_FORMAT_ERROR)


if __name__ == "__main__":
    unittest.main()

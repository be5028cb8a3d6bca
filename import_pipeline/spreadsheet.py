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
import logging
import zipfile
from typing import List

import openpyxl

from import_pipeline.normalize import FILE_FORMAT_ERROR, PARSE_ERROR, FeedError
from shared.string_utils import normalize_header

logger = logging.getLogger(__name__)

OLE2_MAGIC = b"\xd0\xcf\x11\xe0"

HEADER_ALIASES = {
    "reference": ("referencia", "ref", "codigo", "codigo_imovel", "cod_imovel", "reference"),
    "title": ("titulo", "title"),
    "description": ("descricao", "description"),
    "property_type": ("tipo", "tipo_imovel", "property_type"),
    "transaction_type": ("transacao", "finalidade", "transaction_type"),
    "sale_price": ("preco_venda", "valor_venda", "sale_price"),
    "rental_price": ("preco_locacao", "valor_locacao", "preco_aluguel", "valor_aluguel", "rental_price"),
    "street": ("endereco", "logradouro", "rua", "street"),
    "number": ("numero", "number"),
    "neighborhood": ("bairro", "neighborhood"),
    "city": ("cidade", "city"),
    "state": ("estado", "uf", "state"),
    "zip_code": ("cep", "zip_code"),
    "bedrooms": ("quartos", "dormitorios", "bedrooms"),
    "bathrooms": ("banheiros", "bathrooms"),
    "suites": ("suites",),
    "parking_spaces": ("vagas", "garagem", "parking_spaces"),
    "area_sqm": ("area", "area_util", "area_privativa", "area_sqm"),
    "total_area_sqm": ("area_total", "total_area_sqm"),
    "captador_name": ("captador", "corretor", "corretor_captador", "captador_name"),
    "owner_name": ("proprietario", "nome_proprietario", "owner_name"),
    "owner_phone": ("telefone", "telefone_proprietario", "celular", "fone", "owner_phone"),
    "owner_email": ("email", "email_proprietario", "e_mail", "owner_email"),
}
HEADER_TO_FIELD = {alias: name for name, aliases in HEADER_ALIASES.items() for alias in aliases}
TEXT_FIELDS = {"reference", "owner_phone", "zip_code", "number"}


def _cell_text(value) -> str:
    """Excel stores codes and phones as numbers; 1234.0 -> '1234'."""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def map_headers(header_row) -> List[str]:
    """Returns the canonical field for each column ("" for unknown columns)."""
    return [HEADER_TO_FIELD.get(normalize_header(cell), "") for cell in header_row]


def parse_spreadsheet(content: bytes) -> List[dict]:
    """
    Reads the first worksheet of an .xlsx file.

    The first row holds the headers. Blank rows are skipped and every record
    keeps the sheet row it came from in `row_number`.

    Args:
        content (bytes): Raw file contents.

    Returns:
        List[dict]: Raw records keyed by canonical field names.

    Raises:
        FeedError: For legacy .xls files and unreadable workbooks.
    """
    if content.startswith(OLE2_MAGIC):
        raise FeedError(
            FILE_FORMAT_ERROR, "legacy .xls files are not supported; save the sheet as .xlsx"
        )
    try:
        workbook = openpyxl.load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except (zipfile.BadZipFile, KeyError, ValueError, OSError) as exc:
        raise FeedError(FILE_FORMAT_ERROR, f"invalid spreadsheet file: {exc}") from exc

    try:
        sheet = workbook.worksheets[0]
        rows = sheet.iter_rows(values_only=True)
        header_row = next(rows, None)
        if header_row is None:
            return []
        fields = map_headers(header_row)
        if "reference" not in fields:
            raise FeedError(PARSE_ERROR, "spreadsheet has no reference column")

        records = []
        for row_number, row in enumerate(rows, start=2):
            record: dict = {}
            for field_name, value in zip(fields, row):
                if not field_name or value is None or field_name in record:
                    continue
                if field_name in TEXT_FIELDS or isinstance(value, str):
                    value = _cell_text(value)
                    if not value:
                        continue
                record[field_name] = value
            if not record:
                continue
            record["row_number"] = row_number
            records.append(record)
    finally:
        workbook.close()
    logger.info("Parsed %d rows from spreadsheet", len(records))
    return records

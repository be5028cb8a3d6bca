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

import re
from dataclasses import dataclass, field
from typing import Any, Optional

from shared.string_utils import collapse_whitespace, strip_accents
from shared.types import PropertyType, TransactionType

PARSE_ERROR = "parse_error"
FILE_FORMAT_ERROR = "file_format"
VALIDATION_ERROR = "validation_error"
OWNER_ERROR = "owner_error"
SAVE_ERROR = "save_error"

# First numeric token; unit suffixes such as "m2" are left out.
_NUMBER_TOKEN = re.compile(r"-?\d[\d.,]*")

# Checked in order: the first matching keyword wins, so the more specific
# labels ("lote em condominio") come before the generic ones ("lote").
PROPERTY_TYPE_KEYWORDS = (
    (("lote em condominio", "lote de condominio", "condominio de lotes", "condo lot"), PropertyType.CONDO_LOT),
    (("lancamento", "empreendimento", "new development", "na planta"), PropertyType.NEW_DEVELOPMENT),
    (("apartamento", "apto", "cobertura", "kitnet", "studio", "loft", "flat", "apartment"), PropertyType.APARTMENT),
    (("casa", "sobrado", "chacara", "sitio", "house", "home", "residencia"), PropertyType.HOUSE),
    (("sala", "loja", "galpao", "comercial", "escritorio", "predio", "commercial", "office", "retail"), PropertyType.COMMERCIAL),
    (("lote", "building lot"), PropertyType.BUILDING_LOT),
    (("terreno", "area", "land", "fazenda"), PropertyType.LAND),
)
SALE_KEYWORDS = ("venda", "vender", "sale", "sell", "compra")
RENT_KEYWORDS = ("aluguel", "locacao", "alugar", "rent", "lease")

PROPERTY_TEXT_FIELDS = (
    "external_id",
    "title",
    "description",
    "street",
    "number",
    "neighborhood",
    "city",
    "state",
    "zip_code",
)
PRICE_FIELDS = ("sale_price", "rental_price")
COUNT_FIELDS = ("bedrooms", "bathrooms", "suites", "parking_spaces")
AREA_FIELDS = ("area_sqm", "total_area_sqm")


@dataclass
class ImportIssue:
    """One problem found while importing; stored as a batch error."""

    error_type: str
    error_message: str
    record_reference: Optional[str] = None
    row_number: Optional[int] = None


class FeedError(Exception):
    """A whole input file could not be read. Fatal for the batch."""

    def __init__(self, error_type: str, message: str):
        super().__init__(message)
        self.error_type = error_type
        self.message = message


class RecordError(Exception):
    """A single record is unusable. The batch carries on with the others."""

    def __init__(self, error_type: str, message: str):
        super().__init__(message)
        self.error_type = error_type
        self.message = message


@dataclass
class NormalizedRecord:
    reference: str
    property: dict
    owner: dict = field(default_factory=dict)
    captador_name: str = ""
    row_number: Optional[int] = None


def clean_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return collapse_whitespace(str(value))


def _keyword_text(value: Any) -> str:
    return strip_accents(clean_text(value)).lower()


def map_property_type(label: Any) -> Optional[PropertyType]:
    """
    Maps a feed label such as "Apartamento Padrão" or "Residential / Home".

    Returns:
        The PropertyType, or None when the label is empty.

    Raises:
        RecordError: If the label matches no known type.
    """
    text = _keyword_text(label)
    if not text:
        return None
    try:
        return PropertyType(text)
    except ValueError:
        pass
    for keywords, property_type in PROPERTY_TYPE_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return property_type
    raise RecordError(VALIDATION_ERROR, f"unknown property type: {clean_text(label)}")


def map_transaction_type(
    label: Any, sale_price: Optional[float] = None, rental_price: Optional[float] = None
) -> TransactionType:
    """Label first ("Venda", "For Rent", "Venda/Locação"); prices decide when it is empty."""
    text = _keyword_text(label)
    is_sale = any(keyword in text for keyword in SALE_KEYWORDS)
    is_rent = any(keyword in text for keyword in RENT_KEYWORDS)
    if not text:
        is_sale = bool(sale_price)
        is_rent = bool(rental_price)
    if is_sale and is_rent:
        return TransactionType.BOTH
    if is_rent:
        return TransactionType.RENT
    return TransactionType.SALE


def parse_br_number(value: Any) -> Optional[float]:
    """
    Parses Brazilian formatted numbers.

    "R$ 1.234.567,89" -> 1234567.89, "450.000" -> 450000.0, "72,5 m²" -> 72.5,
    "100 m2" -> 100.0.
    Numbers coming from spreadsheets are returned as floats unchanged.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    match = _NUMBER_TOKEN.search(str(value))
    if not match:
        return None
    text = match.group(0).rstrip(".,")
    if "," in text:
        text = text.replace(".", "").replace(",", ".")
    elif text.count(".") > 1:
        text = text.replace(".", "")
    elif "." in text and len(text.rsplit(".", 1)[1]) == 3:
        text = text.replace(".", "")
    try:
        return float(text)
    except ValueError:
        return None


def parse_int(value: Any) -> Optional[int]:
    number = parse_br_number(value)
    return int(number) if number is not None else None


def record_reference(raw: dict) -> str:
    return clean_text(raw.get("reference"))


def normalize_record(raw: dict, *, require_title: bool = True) -> NormalizedRecord:
    """
    Turns a raw feed or spreadsheet record into property, owner and captador data.

    Args:
        raw (dict): Canonical keys as produced by xml_feed and spreadsheet.
        require_title (bool): False when the record only updates an existing
            property.

    Raises:
        RecordError: When the reference or title is missing, or a value is invalid.
    """
    reference = record_reference(raw)
    if not reference:
        raise RecordError(VALIDATION_ERROR, "record has no reference")

    prop: dict = {"reference": reference}
    for name in PROPERTY_TEXT_FIELDS:
        text = clean_text(raw.get(name)) if name != "description" else str(raw.get(name) or "").strip()
        if text:
            prop[name] = text
    if require_title and not prop.get("title"):
        raise RecordError(VALIDATION_ERROR, "record has no title")

    for name in PRICE_FIELDS + AREA_FIELDS:
        number = parse_br_number(raw.get(name))
        if number is not None:
            if number < 0:
                raise RecordError(VALIDATION_ERROR, f"{name} cannot be negative")
            prop[name] = number
    for name in COUNT_FIELDS:
        count = parse_int(raw.get(name))
        if count is not None:
            if count < 0:
                raise RecordError(VALIDATION_ERROR, f"{name} cannot be negative")
            prop[name] = count

    property_type = map_property_type(raw.get("property_type"))
    if property_type:
        prop["property_type"] = property_type.value
    if raw.get("transaction_type") or any(name in prop for name in PRICE_FIELDS):
        prop["transaction_type"] = map_transaction_type(
            raw.get("transaction_type"), prop.get("sale_price"), prop.get("rental_price")
        ).value

    images = [url for url in raw.get("images") or [] if url]
    if images:
        prop["images"] = images
        prop["cover_image_url"] = raw.get("cover_image_url") or images[0]

    owner = {
        key: clean_text(raw.get(f"owner_{key}"))
        for key in ("name", "phone", "email")
        if clean_text(raw.get(f"owner_{key}"))
    }
    return NormalizedRecord(
        reference=reference,
        property=prop,
        owner=owner,
        captador_name=clean_text(raw.get("captador_name")),
        row_number=raw.get("row_number"),
    )

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

import logging
import xml.etree.ElementTree as ET
from typing import List, Optional

from bs4 import BeautifulSoup

from import_pipeline.normalize import PARSE_ERROR, FeedError

logger = logging.getLogger(__name__)

LISTING_TAGS = {"imovel", "listing", "property"}
MEDIA_TAGS = {"fotos", "media", "photos", "imagens", "fotosimovel"}
PRIMARY_FLAGS = {"principal", "primary"}

# Portal feeds (VivaReal/ZAP style and the Brazilian "Union" export) name the
# same field differently; every alias maps to one canonical key.
FIELD_ALIASES = {
    "reference": ("codigoimovel", "codigo", "referencia", "listingid", "reference", "ref"),
    "external_id": ("id", "idimovel", "externalid"),
    "title": ("titulo", "tituloimovel", "title"),
    "description": ("descricao", "observacao", "description"),
    "property_type": ("tipoimovel", "subtipoimovel", "tipo", "propertytype"),
    "transaction_type": ("transacao", "finalidade", "transactiontype"),
    "sale_price": ("precovenda", "valorvenda", "listprice", "saleprice"),
    "rental_price": ("precolocacao", "valorlocacao", "precoaluguel", "rentalprice"),
    "street": ("endereco", "logradouro", "address", "street"),
    "number": ("numero", "streetnumber"),
    "neighborhood": ("bairro", "neighborhood"),
    "city": ("cidade", "city"),
    "state": ("estado", "uf", "state"),
    "zip_code": ("cep", "postalcode", "zipcode"),
    "bedrooms": ("quartos", "qtddormitorios", "dormitorios", "bedrooms"),
    "bathrooms": ("banheiros", "qtdbanheiros", "bathrooms"),
    "suites": ("suites", "qtdsuites"),
    "parking_spaces": ("vagas", "qtdvagas", "garagem", "garage", "parkingspaces"),
    "area_sqm": ("areautil", "areaprivativa", "livingarea", "area"),
    "total_area_sqm": ("areatotal", "lotarea", "totalarea"),
    "owner_name": ("proprietario", "nomeproprietario"),
    "owner_phone": ("telefoneproprietario", "foneproprietario"),
    "owner_email": ("emailproprietario",),
    "captador_name": ("captador", "corretor", "agente"),
}
TAG_TO_FIELD = {alias: name for name, aliases in FIELD_ALIASES.items() for alias in aliases}


def _local_name(tag) -> str:
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1].lower()


def _text(element: ET.Element) -> str:
    return "".join(element.itertext()).strip()


def clean_description(value: str) -> str:
    """Feeds often carry HTML in descriptions; keep the readable text only."""
    if "<" not in value:
        return value.strip()
    return BeautifulSoup(value, "html.parser").get_text(" ", strip=True)


def _is_url(value: str) -> bool:
    return value.startswith("http://") or value.startswith("https://")


def _listing_elements(root: ET.Element) -> List[ET.Element]:
    """Topmost listing elements; nested <property> tags inside a listing are fields."""
    found = []

    def walk(element: ET.Element):
        for child in element:
            if _local_name(child.tag) in LISTING_TAGS:
                found.append(child)
            else:
                walk(child)

    if _local_name(root.tag) in LISTING_TAGS:
        return [root]
    walk(root)
    return found


def _media_url(item: ET.Element) -> str:
    for node in item.iter():
        url = (node.text or "").strip()
        if not _is_url(url):
            url = (node.get("url") or node.get("src") or "").strip()
        if _is_url(url):
            return url
    return ""


def _is_primary(item: ET.Element) -> bool:
    """`<Foto principal="1">` or a `<Principal>1</Principal>` child marks the cover."""
    flags = [value for key, value in item.attrib.items() if _local_name(key) in PRIMARY_FLAGS]
    flags += [_text(node) for node in item.iter() if _local_name(node.tag) in PRIMARY_FLAGS]
    return any(flag.strip().lower() in ("1", "true", "sim") for flag in flags)


def _parse_media(container: ET.Element, images: List[str]) -> Optional[str]:
    cover = None
    for item in container:
        url = _media_url(item)
        if not url or url in images:
            continue
        images.append(url)
        if cover is None and _is_primary(item):
            cover = url
    return cover


def parse_listing(element: ET.Element) -> dict:
    """
    Flattens one listing element into canonical record keys.

    The first occurrence of a field wins. Tags inside media containers are
    only used for images.
    """
    record: dict = {}
    images: List[str] = []
    cover = None

    def walk(node: ET.Element):
        nonlocal cover
        for child in node:
            name = _local_name(child.tag)
            if name in MEDIA_TAGS:
                found = _parse_media(child, images)
                cover = cover or found
                continue
            field_name = TAG_TO_FIELD.get(name)
            if field_name and field_name not in record and len(child) == 0:
                value = _text(child)
                if value:
                    record[field_name] = value
                    continue
            walk(child)

    walk(element)
    if "reference" not in record and element.get("id"):
        record["reference"] = element.get("id")
    if record.get("description"):
        record["description"] = clean_description(record["description"])
    if images:
        record["images"] = images
        record["cover_image_url"] = cover or images[0]
    return record


def parse_xml_feed(content: bytes) -> List[dict]:
    """
    Parses a listings feed.

    Args:
        content (bytes): Raw XML file contents.

    Returns:
        List[dict]: One raw record per listing, in document order.

    Raises:
        FeedError: If the file is not well-formed XML.
    """
    try:
        root = ET.fromstring(content)
    except ET.ParseError as exc:
        raise FeedError(PARSE_ERROR, f"invalid XML file: {exc}") from exc
    records = [parse_listing(element) for element in _listing_elements(root)]
    logger.info("Parsed %d listings from XML feed", len(records))
    return records

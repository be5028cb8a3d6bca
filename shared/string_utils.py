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
import unicodedata

MAX_SLUG_LENGTH = 50


def strip_accents(value: str) -> str:
    normalized = unicodedata.normalize("NFKD", value or "")
    return "".join(ch for ch in normalized if not unicodedata.combining(ch))


def generate_slug(name: str) -> str:
    """
    Builds a URL slug from a display name.

    Args:
        name (str): e.g. "Imobiliária São José"

    Returns:
        str: e.g. "imobiliaria-sao-jose", at most 50 characters.
    """
    slug = strip_accents(name).lower()
    slug = re.sub(r"[^a-z0-9]+", "-", slug).strip("-")
    return slug[:MAX_SLUG_LENGTH].strip("-")


def normalize_slug(slug: str) -> str:
    slug = strip_accents(slug).lower()
    slug = re.sub(r"[^a-z0-9-]+", "-", slug)
    slug = re.sub(r"-{2,}", "-", slug)
    return slug.strip("-")


def normalize_header(value) -> str:
    """Spreadsheet header to snake_case ascii: 'Preço Venda' -> 'preco_venda'."""
    text = strip_accents(str(value or "")).lower().strip()
    return re.sub(r"[^a-z0-9]+", "_", text).strip("_")


def collapse_whitespace(value: str) -> str:
    return re.sub(r"\s+", " ", value or "").strip()


def mask_name(name: str) -> str:
    """'João Silva Santos' -> 'João S.'"""
    parts = collapse_whitespace(name).split(" ")
    if not parts or not parts[0]:
        return ""
    if len(parts) == 1:
        return parts[0]
    return f"{parts[0]} {parts[-1][0]}."


def mask_email(email: str) -> str:
    """'joao@example.com' -> 'j***@example.com'"""
    if "@" not in (email or ""):
        return ""
    local, domain = email.split("@", 1)
    return f"{local[:1]}***@{domain}"


def mask_phone(phone: str) -> str:
    """'11987651234' -> '(11) 9****-1234'"""
    digits = re.sub(r"\D", "", phone or "")
    if len(digits) >= 12 and digits.startswith("55"):
        digits = digits[2:]
    if len(digits) < 10:
        return ""
    return f"({digits[:2]}) {digits[2]}****-{digits[-4:]}"

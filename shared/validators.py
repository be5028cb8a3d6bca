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


"""Validation and normalization of Brazilian documents, CRECI, phones and emails.

Every `validate_*` function returns the normalized value or raises ValueError
with a message that is safe to show to API callers.
"""

import re
from typing import Optional

_NON_DIGITS = re.compile(r"\D+")
_EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
# 12345-F, 12345-J, 12345-F/SP
_CRECI_PATTERN = re.compile(r"^(\d{3,6})-([FJ])(?:/([A-Z]{2}))?$")
_CRECI_PLACEHOLDERS = {"-", "N/A", "NA", "PENDENTE", "PENDING"}

MIN_PASSWORD_LENGTH = 8


def only_digits(value: Optional[str]) -> str:
    return _NON_DIGITS.sub("", value or "")


def is_valid_cpf(value: str) -> bool:
    digits = only_digits(value)
    if len(digits) != 11 or len(set(digits)) == 1:
        return False
    for size in (9, 10):
        total = sum(int(digits[i]) * (size + 1 - i) for i in range(size))
        check = (total * 10) % 11
        if check == 10:
            check = 0
        if check != int(digits[size]):
            return False
    return True


def is_valid_cnpj(value: str) -> bool:
    digits = only_digits(value)
    if len(digits) != 14 or len(set(digits)) == 1:
        return False
    weights_first = [5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2]
    weights_second = [6] + weights_first
    for weights in (weights_first, weights_second):
        size = len(weights)
        total = sum(int(digits[i]) * weights[i] for i in range(size))
        remainder = total % 11
        check = 0 if remainder < 2 else 11 - remainder
        if check != int(digits[size]):
            return False
    return True


def validate_cpf(value: str) -> str:
    if not is_valid_cpf(value):
        raise ValueError("invalid CPF")
    return only_digits(value)


def validate_cnpj(value: str) -> str:
    if not is_valid_cnpj(value):
        raise ValueError("invalid CNPJ")
    return only_digits(value)


def validate_document(document: str, document_type: str) -> str:
    if document_type == "cpf":
        return validate_cpf(document)
    if document_type == "cnpj":
        return validate_cnpj(document)
    raise ValueError("invalid document_type: must be 'cpf' or 'cnpj'")


def detect_document_type(document: str) -> Optional[str]:
    """Returns 'cpf' or 'cnpj' for a valid document, None otherwise."""
    if is_valid_cpf(document):
        return "cpf"
    if is_valid_cnpj(document):
        return "cnpj"
    return None


def normalize_creci(value: Optional[str]) -> str:
    return re.sub(r"\s+", "", value or "").upper()


def validate_creci(value: str) -> str:
    normalized = normalize_creci(value)
    if not _CRECI_PATTERN.match(normalized):
        raise ValueError("invalid CRECI format (expected 12345-F or 12345-F/UF)")
    return normalized


def creci_kind(value: str) -> Optional[str]:
    """Returns 'F' for an individual broker license, 'J' for a company one."""
    match = _CRECI_PATTERN.match(normalize_creci(value))
    return match.group(2) if match else None


def is_valid_creci(value: Optional[str]) -> bool:
    """Legacy check used on stored broker documents: full 'NNNNN-F/UF' form."""
    trimmed = (value or "").strip()
    if not trimmed or trimmed.upper() in _CRECI_PLACEHOLDERS:
        return False
    if len(trimmed) < 8:
        return False
    return "-F/" in trimmed or "-J/" in trimmed


def validate_email(value: str) -> str:
    normalized = (value or "").strip().lower()
    if not _EMAIL_PATTERN.match(normalized):
        raise ValueError("invalid email")
    return normalized


def _national_digits(value: str) -> str:
    digits = only_digits(value)
    if len(digits) in (12, 13) and digits.startswith("55"):
        digits = digits[2:]
    return digits


def validate_phone(value: str) -> str:
    """Returns the 10 or 11 national digits (area code included)."""
    digits = _national_digits(value)
    if len(digits) not in (10, 11):
        raise ValueError("invalid phone: expected area code and number")
    return digits


def normalize_phone_e164(value: str) -> str:
    return f"+55{validate_phone(value)}"


def format_phone_br(value: str) -> str:
    digits = only_digits(value)[:11]
    if len(digits) == 11:
        return f"({digits[:2]}) {digits[2:7]}-{digits[7:]}"
    if len(digits) == 10:
        return f"({digits[:2]}) {digits[2:6]}-{digits[6:]}"
    return digits


def validate_password(value: str) -> str:
    if len(value or "") < MIN_PASSWORD_LENGTH:
        raise ValueError(
            f"password must be at least {MIN_PASSWORD_LENGTH} characters"
        )
    return value

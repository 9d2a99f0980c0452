"""Brazilian document helpers: CPF/CNPJ check digits and display formatting."""

import re
from typing import List, Optional

CPF_LENGTH = 11
CNPJ_LENGTH = 14

_CNPJ_FIRST_WEIGHTS = [5, 4, 3, 2, 9, 8, 7, 6, 5, 4, 3, 2]
_CNPJ_SECOND_WEIGHTS = [6] + _CNPJ_FIRST_WEIGHTS

_NON_DIGITS = re.compile(r"\D")


def clean_document(value: Optional[str]) -> str:
    """Strip everything but digits."""
    if not value:
        return ""
    return _NON_DIGITS.sub("", str(value))


def _digits(value: str) -> List[int]:
    return [int(ch) for ch in value]


def _cpf_check_digit(digits: List[int]) -> int:
    # weights run from len+1 down to 2
    weight = len(digits) + 1
    total = sum(d * (weight - i) for i, d in enumerate(digits))
    remainder = 11 - (total % 11)
    return 0 if remainder >= 10 else remainder


def _cnpj_check_digit(digits: List[int], weights: List[int]) -> int:
    total = sum(d * w for d, w in zip(digits, weights))
    remainder = total % 11
    return 0 if remainder < 2 else 11 - remainder


def validate_cpf(value: Optional[str]) -> bool:
    """Return True for a CPF with valid check digits (punctuation ignored)."""
    cpf = clean_document(value)
    if len(cpf) != CPF_LENGTH or cpf == cpf[0] * CPF_LENGTH:
        return False
    digits = _digits(cpf)
    if _cpf_check_digit(digits[:9]) != digits[9]:
        return False
    return _cpf_check_digit(digits[:10]) == digits[10]


def validate_cnpj(value: Optional[str]) -> bool:
    """Return True for a CNPJ with valid check digits (punctuation ignored)."""
    cnpj = clean_document(value)
    if len(cnpj) != CNPJ_LENGTH or cnpj == cnpj[0] * CNPJ_LENGTH:
        return False
    digits = _digits(cnpj)
    if _cnpj_check_digit(digits[:12], _CNPJ_FIRST_WEIGHTS) != digits[12]:
        return False
    return _cnpj_check_digit(digits[:13], _CNPJ_SECOND_WEIGHTS) == digits[13]


def get_document_type(value: Optional[str]) -> str:
    """Return ``"CPF"``, ``"CNPJ"`` or ``"INVALID"``."""
    cleaned = clean_document(value)
    if len(cleaned) == CPF_LENGTH and validate_cpf(cleaned):
        return "CPF"
    if len(cleaned) == CNPJ_LENGTH and validate_cnpj(cleaned):
        return "CNPJ"
    return "INVALID"


def validate_document(value: Optional[str]) -> bool:
    return get_document_type(value) != "INVALID"


def format_cpf(value: Optional[str]) -> str:
    cpf = clean_document(value)
    if len(cpf) != CPF_LENGTH:
        return value or ""
    return f"{cpf[:3]}.{cpf[3:6]}.{cpf[6:9]}-{cpf[9:]}"


def format_cnpj(value: Optional[str]) -> str:
    cnpj = clean_document(value)
    if len(cnpj) != CNPJ_LENGTH:
        return value or ""
    return f"{cnpj[:2]}.{cnpj[2:5]}.{cnpj[5:8]}/{cnpj[8:12]}-{cnpj[12:]}"


def format_document(value: Optional[str]) -> str:
    """Format as CPF or CNPJ depending on length; other input is returned as-is."""
    cleaned = clean_document(value)
    if len(cleaned) == CPF_LENGTH:
        return format_cpf(cleaned)
    if len(cleaned) == CNPJ_LENGTH:
        return format_cnpj(cleaned)
    return value or ""


def is_valid_phone(value: Optional[str]) -> bool:
    return len(clean_document(value)) in (10, 11)


def format_phone(value: Optional[str]) -> str:
    """``(11) 9999-9999`` for landlines, ``(11) 99999-9999`` for mobiles."""
    phone = clean_document(value)
    if len(phone) == 10:
        return f"({phone[:2]}) {phone[2:6]}-{phone[6:]}"
    if len(phone) == 11:
        return f"({phone[:2]}) {phone[2:7]}-{phone[7:]}"
    return value or ""


def format_zip_code(value: Optional[str]) -> str:
    zip_code = clean_document(value)
    if len(zip_code) != 8:
        return value or ""
    return f"{zip_code[:5]}-{zip_code[5:]}"

"""
CPF (Brazilian taxpayer id) helpers.

Customers identify themselves by CPF on the storefront; orders store the
normalized 11-digit form and the customer order history is keyed by it.
"""

import re

_NON_DIGITS = re.compile(r"\D")


def remove_cpf_punctuation(cpf: str) -> str:
    """Strip dots, dashes and spaces: '529.982.247-25' -> '52998224725'."""
    return _NON_DIGITS.sub("", cpf or "")


def _check_digit(digits: str) -> int:
    weight = len(digits) + 1
    total = sum(int(d) * (weight - i) for i, d in enumerate(digits))
    remainder = total % 11
    return 0 if remainder < 2 else 11 - remainder


def is_valid_cpf(cpf: str) -> bool:
    """Validate length and both check digits of a CPF (punctuation allowed)."""
    digits = remove_cpf_punctuation(cpf)
    if len(digits) != 11 or digits == digits[0] * 11:
        return False

    first = _check_digit(digits[:9])
    second = _check_digit(digits[:9] + str(first))
    return digits[9:] == f"{first}{second}"

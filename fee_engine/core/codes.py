"""
Human-facing identifiers: payment link short codes and receipt numbers.
"""

import secrets
import string

SHORT_CODE_LENGTH = 8


def generate_short_code(length: int = SHORT_CODE_LENGTH) -> str:
    """
    Random code for public payment URLs (/pay/<code>).

    Uppercase letters and digits without look-alikes (0/O, 1/I), drawn with secrets.
    """
    alphabet = "".join(c for c in string.ascii_uppercase + string.digits if c not in "0O1I")
    return "".join(secrets.choice(alphabet) for _ in range(length))


def format_receipt_number(prefix: str, year: int, sequence: int) -> str:
    """RCT-2026-00042"""
    prefix = (prefix or "RCT").strip().upper()
    return f"{prefix}-{year}-{sequence:05d}"

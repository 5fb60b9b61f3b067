import re
from typing import Optional

DEFAULT_DIAL_CODE = "961"

# Longest first so "961" wins over "96x" style prefixes.
KNOWN_DIAL_CODES = sorted(
    ["961", "1", "61", "44", "971", "966", "974", "965", "973", "33", "90"],
    key=len,
    reverse=True,
)

_DIGIT_TABLE = str.maketrans(
    "٠١٢٣٤٥٦٧٨٩۰۱۲۳۴۵۶۷۸۹０１２３４５６７８９",
    "0123456789" * 3,
)


def extract_digits(value: str) -> str:
    return re.sub(r"\D", "", (value or "").translate(_DIGIT_TABLE))


def normalize_phone(raw_phone: str, default_dial_code: str = DEFAULT_DIAL_CODE) -> Optional[str]:
    """Normalize a phone number to international digits, or None if it is not plausible."""
    digits = extract_digits(raw_phone)
    if not digits:
        return None

    normalized = digits[2:] if digits.startswith("00") else digits
    dial_code = extract_digits(default_dial_code) or DEFAULT_DIAL_CODE

    if normalized.startswith("961"):
        return normalized if 10 <= len(normalized) <= 11 else None

    if any(normalized.startswith(code) for code in KNOWN_DIAL_CODES):
        return normalized if 10 <= len(normalized) <= 15 else None

    if normalized.startswith("0"):
        normalized = normalized[1:]

    if 7 <= len(normalized) <= 8:
        return f"{dial_code}{normalized}"

    if 10 <= len(normalized) <= 15:
        return normalized

    return None


def customer_phone_key(phone: Optional[str]) -> str:
    """Key used to match trips to a customer; falls back to the trimmed raw text."""
    return normalize_phone(phone or "") or (phone or "").strip()

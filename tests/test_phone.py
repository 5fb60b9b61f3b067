import pytest

from dispatchquote.utils.phone import customer_phone_key, extract_digits, normalize_phone


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("+961 3 123 456", "9613123456"),
        ("00961 71 123 456", "96171123456"),
        ("03 123 456", "9613123456"),
        ("71123456", "96171123456"),
        ("+1 (415) 555-0100", "14155550100"),
        ("+44 20 7946 0958", "442079460958"),
    ],
)
def test_normalize_phone(raw, expected):
    assert normalize_phone(raw) == expected


def test_normalize_phone_maps_unicode_digits():
    assert extract_digits("٠٣ ١٢٣ ٤٥٦") == "03123456"
    assert normalize_phone("٠٣ ١٢٣ ٤٥٦") == "9613123456"
    assert normalize_phone("０３１２３４５６") == "9613123456"


def test_normalize_phone_rejects_implausible_numbers():
    assert normalize_phone("") is None
    assert normalize_phone("12") is None
    assert normalize_phone("961123") is None


def test_customer_phone_key_falls_back_to_trimmed_text():
    assert customer_phone_key("  walk-in  ") == "walk-in"
    assert customer_phone_key(None) == ""
    assert customer_phone_key("+961 3 123 456") == customer_phone_key("03123456")

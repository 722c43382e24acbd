import pytest

from tokenvm.addresses import PUBLIC_KEY_LEN, AddressError, address, parse_address

HRP = "token"
KEY = bytes(range(PUBLIC_KEY_LEN))


def test_round_trip():
    assert parse_address(address(KEY, HRP), HRP) == KEY


@pytest.mark.parametrize("key", [bytes(PUBLIC_KEY_LEN), b"\xff" * PUBLIC_KEY_LEN, KEY[::-1]])
def test_round_trip_various_keys(key):
    assert parse_address(address(key, HRP), HRP) == key


def test_address_shape():
    text = address(KEY, HRP)
    assert text.startswith(HRP + "1")
    assert text == text.lower()
    # 32 bytes become 52 five-bit groups, plus 6 checksum characters
    assert len(text) == len(HRP) + 1 + 52 + 6


def test_different_keys_give_different_addresses():
    assert address(KEY, HRP) != address(bytes(PUBLIC_KEY_LEN), HRP)


def test_upper_case_address_accepted():
    assert parse_address(address(KEY, HRP).upper(), HRP) == KEY


def test_mixed_case_rejected():
    text = address(KEY, HRP)
    mixed = text[:-1] + text[-1].upper() if text[-1].isalpha() else text[0].upper() + text[1:]
    with pytest.raises(AddressError):
        parse_address(mixed, HRP)


def test_bad_checksum_rejected():
    text = address(KEY, HRP)
    replacement = "q" if text[-1] != "q" else "p"
    with pytest.raises(AddressError):
        parse_address(text[:-1] + replacement, HRP)


def test_wrong_hrp_rejected():
    with pytest.raises(AddressError):
        parse_address(address(KEY, "other"), HRP)


def test_valid_bech32_with_wrong_payload_size_rejected():
    with pytest.raises(AddressError):
        parse_address("A12UEL5L", "a")


def test_short_public_key_rejected():
    with pytest.raises(AddressError):
        address(KEY[:-1], HRP)


def test_garbage_rejected():
    with pytest.raises(AddressError):
        parse_address("not-an-address", HRP)


def test_address_error_is_value_error():
    with pytest.raises(ValueError):
        parse_address("", HRP)
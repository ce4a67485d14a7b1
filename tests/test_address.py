"""Tests for wallet address normalization."""

import logging

import pytest

from blockchat.utils.address import normalize_address
from blockchat.utils.address import short_address
from tests.helpers.addresses import ALICE
from tests.helpers.addresses import BOB


@pytest.mark.parametrize(
    "spelling",
    [
        ALICE,
        ALICE.lower(),
        "0x" + ALICE[2:].upper(),
        ALICE[2:].lower(),
    ],
)
def test_spellings_of_same_address_share_a_key(spelling):
    assert normalize_address(spelling) == ALICE.lower()


def test_distinct_addresses_get_distinct_keys():
    assert normalize_address(ALICE) != normalize_address(BOB)


@pytest.mark.parametrize("raw", [ALICE, BOB.upper(), "Not-A-Wallet", "0x1234"])
def test_normalization_is_idempotent(raw):
    once = normalize_address(raw)
    assert normalize_address(once) == once


@pytest.mark.parametrize("raw", [None, "", 42, ["0xabc"], {"address": ALICE}])
def test_missing_or_non_string_input_has_no_key(raw):
    assert normalize_address(raw) is None


def test_malformed_address_falls_back_to_lowercase(caplog):
    with caplog.at_level(logging.WARNING, logger="blockchat.utils.address"):
        assert normalize_address("Satoshi.ETH") == "satoshi.eth"

    assert "Address normalization failed" in caplog.text


def test_bad_checksum_falls_back_but_still_matches():
    """Mixed case that is not a valid checksum is rejected as a checksum but
    still lands on the same key through the lowercase fallback."""
    tampered = ALICE[:3] + ALICE[3].swapcase() + ALICE[4:]
    assert tampered != ALICE

    assert normalize_address(tampered) == ALICE.lower()


def test_valid_address_does_not_warn(caplog):
    with caplog.at_level(logging.WARNING, logger="blockchat.utils.address"):
        normalize_address(ALICE)

    assert caplog.text == ""


def test_short_address():
    assert short_address(ALICE.lower()) == ALICE.lower()[:10] + "..."
    assert short_address("0xabc") == "0xabc"

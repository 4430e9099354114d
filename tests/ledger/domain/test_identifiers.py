"""Tests for bank account identifier encoding."""

import pytest

from duesledger.ledger.domain.enums import IdentifierMode
from duesledger.ledger.domain.identifiers import encode_identifier, hash_iban, normalize_iban

pytestmark = pytest.mark.unit


class TestIdentifiers:
    def test_hash_iban_known_value(self):
        assert hash_iban("DE12345678901234567890", "Eris Discordia") == "448a2be23338"

    def test_hash_depends_on_account_holder(self):
        iban = "DE12345678901234567890"
        assert hash_iban(iban, "Eris Discordia") != hash_iban(iban, "Malaclypse")

    def test_normalize_iban(self):
        assert normalize_iban(" de12 3456\t7890 ") == "DE1234567890"

    def test_encode_plain(self):
        token = encode_identifier("de12 3456 7890", "Eris", IdentifierMode.PLAIN)
        assert token == "DE1234567890"

    def test_encode_hashed_normalizes_first(self):
        spaced = encode_identifier("DE12 3456 7890 1234 5678 90", "Eris Discordia", IdentifierMode.HASHED)
        assert spaced == "448a2be23338"

    @pytest.mark.parametrize("iban", [None, "", "   "])
    def test_encode_missing_iban(self, iban):
        assert encode_identifier(iban, "Eris", IdentifierMode.HASHED) is None

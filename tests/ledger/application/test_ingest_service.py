"""Tests for IngestService."""

from datetime import date

import pytest

from duesledger.ledger.application.services.ingest_service import IngestService
from duesledger.ledger.domain.enums import IdentifierMode
from duesledger.ledger.domain.identifiers import hash_iban
from duesledger.ledger.domain.money import Money
from duesledger.ledger.domain.value_objects import BankRecord

pytestmark = pytest.mark.integration


def _record(**overrides) -> BankRecord:
    values = {
        "date": date(2024, 2, 1),
        "account_name": "Eris Discordia",
        "iban": "DE02 1203 0000 0000 2020 51",
        "amount": "10.00",
        "description": "Mitgliedsbeitrag",
    }
    values.update(overrides)
    return BankRecord(**values)


class TestIngestService:
    def test_records_are_inserted_in_order(self, store):
        result = IngestService(store).ingest(
            [_record(description="first"), _record(description="second", amount="-2.50")]
        )

        assert result.success_count == 2
        assert result.error_count == 0
        first, second = result.inserted
        assert first.id < second.id
        assert second.amount == Money.parse("-2.50")

    def test_hashed_identifier(self, store):
        (transaction,) = IngestService(store).ingest([_record()]).inserted

        assert transaction.account_identifier == hash_iban("DE02120300000000202051", "Eris Discordia")

    def test_plain_identifier(self, store):
        service = IngestService(store, identifier_mode=IdentifierMode.PLAIN)

        (transaction,) = service.ingest([_record(iban="de02 1203 0000 0000 2020 51")]).inserted

        assert transaction.account_identifier == "DE02120300000000202051"

    def test_missing_iban_has_no_identifier(self, store):
        (transaction,) = IngestService(store).ingest([_record(iban=None)]).inserted

        assert transaction.account_identifier is None

    def test_text_fields_are_stripped(self, store):
        (transaction,) = IngestService(store).ingest(
            [_record(account_name="  Eris  ", description=" Beitrag \n")]
        ).inserted

        assert transaction.account_name == "Eris"
        assert transaction.description == "Beitrag"

    @pytest.mark.parametrize(
        "overrides",
        [
            {"amount": "12.345"},
            {"amount": "ten euros"},
            {"amount": None},
            {"date": "2024-02-01"},
            {"member_id": 404},
        ],
    )
    def test_malformed_record_is_rejected_alone(self, store, overrides):
        bad = _record(**overrides)

        result = IngestService(store).ingest([_record(), bad, _record()])

        assert result.success_count == 2
        assert [record for record, _ in result.rejected] == [bad]
        assert result.rejected[0][1]

    def test_explicit_member(self, store, create_member):
        member = create_member()

        (transaction,) = IngestService(store).ingest([_record(member_id=member.id)]).inserted

        assert transaction.member_id == member.id

    def test_nothing_accepted(self, store):
        result = IngestService(store).ingest([_record(amount="x")])

        assert result.inserted == []
        assert store.unattributed_transactions() == []

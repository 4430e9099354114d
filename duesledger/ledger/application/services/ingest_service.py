"""Ingest bank records as transactions.

The bank statement producer yields :class:`BankRecord` items. Each record is
validated on its own: a malformed one is rejected with its error and the
others are inserted, in record order, in one store transaction.
"""

from collections.abc import Iterable
from datetime import date
from typing import Any

from ....exceptions import ValidationError
from ....utils.logging import get_logger
from ... import metrics
from ...domain.enums import IdentifierMode
from ...domain.identifiers import encode_identifier
from ...domain.money import Money
from ...domain.value_objects import BankRecord, IngestResult
from ...infrastructure.store import SqlAlchemyLedgerStore

logger = get_logger(__name__)


class IngestService:
    """Turn raw bank records into append-only transactions.

    Args:
        store: Ledger store
        identifier_mode: How IBANs become account identifiers
    """

    def __init__(
        self,
        store: SqlAlchemyLedgerStore,
        identifier_mode: IdentifierMode = IdentifierMode.HASHED,
    ) -> None:
        self.store = store
        self.identifier_mode = identifier_mode

    def ingest(self, records: Iterable[BankRecord]) -> IngestResult:
        result = IngestResult()
        known_members = set(self.store.member_ids())

        accepted: list[dict[str, Any]] = []
        for record in records:
            try:
                accepted.append(self._to_row(record, known_members))
            except ValidationError as e:
                logger.warning("bank_record_rejected", error=e.message, context=e.context)
                result.rejected.append((record, e.message))

        if accepted:
            result.inserted = self.store.append_transactions(accepted)

        metrics.record_ingest("success", result.success_count)
        metrics.record_ingest("error", result.error_count)
        logger.info(
            "bank_records_ingested",
            inserted=result.success_count,
            rejected=result.error_count,
        )
        return result

    def _to_row(self, record: BankRecord, known_members: set[int]) -> dict[str, Any]:
        if not isinstance(record.date, date):
            raise ValidationError("Booking date is missing or not a date", field="date", value=record.date)

        amount = Money.parse(record.amount)

        if record.member_id is not None and record.member_id not in known_members:
            raise ValidationError("Unknown member", field="member_id", value=record.member_id)

        account_name = (record.account_name or "").strip()
        return {
            "member_id": record.member_id,
            "date": record.date,
            "account_name": account_name,
            "account_identifier": encode_identifier(record.iban, account_name, self.identifier_mode),
            "amount": amount,
            "description": (record.description or "").strip(),
        }

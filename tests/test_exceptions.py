"""Tests for the exception hierarchy."""

import pytest
from sqlalchemy.exc import IntegrityError

from duesledger.exceptions import (
    AmbiguousMatch,
    AmbiguousSplit,
    BusinessLogicError,
    ConcurrentModification,
    DatabaseError,
    DatabaseIntegrityError,
    DuesLedgerError,
    InvalidAmount,
    InvalidInterval,
    MatchError,
    RecordNotFoundError,
    ValidationError,
    wrap_exception,
)

pytestmark = pytest.mark.unit


class TestHierarchy:
    @pytest.mark.parametrize(
        "error_class,parent",
        [
            (InvalidAmount, ValidationError),
            (InvalidInterval, ValidationError),
            (RecordNotFoundError, DatabaseError),
            (DatabaseIntegrityError, DatabaseError),
            (ConcurrentModification, DatabaseError),
            (AmbiguousMatch, MatchError),
            (AmbiguousSplit, MatchError),
            (MatchError, BusinessLogicError),
            (BusinessLogicError, DuesLedgerError),
            (DatabaseError, DuesLedgerError),
            (ValidationError, DuesLedgerError),
        ],
    )
    def test_subclass(self, error_class, parent):
        assert issubclass(error_class, parent)


class TestContext:
    def test_str_includes_context(self):
        error = DuesLedgerError("Something failed", context={"member_id": 3})
        assert str(error) == "Something failed (member_id=3)"

    def test_validation_context(self):
        error = InvalidAmount("Bad amount", field="amount", value="x" * 200, constraint="> 0")

        assert error.context["field"] == "amount"
        assert len(error.context["value"]) == 100
        assert error.context["constraint"] == "> 0"

    def test_match_error_carries_transaction(self):
        error = AmbiguousMatch("Ambiguous", transaction_id=12, identifier="abc", member_ids=[1, 2])

        assert error.transaction_id == 12
        assert error.context == {"transaction_id": 12, "identifier": "abc", "member_ids": [1, 2]}

    def test_concurrent_modification_context(self):
        error = ConcurrentModification("Lost", member_id=5, expected_cursor="2024-02-01#7")
        assert error.context == {"member_id": 5, "expected_cursor": "2024-02-01#7"}

    def test_record_not_found_context(self):
        error = RecordNotFoundError("Missing", entity_type="Member", entity_id=9)
        assert error.context == {"entity_type": "Member", "entity_id": "9"}


def test_wrap_exception():
    original = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))

    wrapped = wrap_exception(
        original, "Binding already exists", exception_class=DatabaseIntegrityError, member_id=3
    )

    assert isinstance(wrapped, DatabaseIntegrityError)
    assert wrapped.original_error is original
    assert wrapped.context == {"member_id": 3}
    assert str(wrapped) == "Binding already exists (member_id=3) [caused by: IntegrityError]"

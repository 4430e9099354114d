"""Tests for AccountNameSuggester."""

from unittest.mock import Mock

import pytest

from duesledger.ledger.matchers.account_name import AccountNameSuggester

pytestmark = pytest.mark.unit


def _member(member_id: int, name: str) -> Mock:
    member = Mock()
    member.id = member_id
    member.name = name
    return member


class TestAccountNameSuggester:
    def test_contained_name_has_full_confidence(self):
        transaction = Mock()
        transaction.account_name = "DISCORDIA, ERIS / ERIS DISCORDIA"

        suggestions = AccountNameSuggester().suggest(
            transaction, [_member(1, "Eris Discordia"), _member(2, "Hagbard Celine")]
        )

        assert [s.member_id for s in suggestions] == [1]
        assert suggestions[0].confidence == 1.0

    def test_similar_name_is_suggested(self):
        transaction = Mock()
        transaction.account_name = "Discordia Eris"

        suggestions = AccountNameSuggester().suggest(transaction, [_member(1, "Eris Discordia")])

        assert len(suggestions) == 1
        assert 0.8 <= suggestions[0].confidence <= 1.0

    def test_dissimilar_names_are_not_suggested(self):
        transaction = Mock()
        transaction.account_name = "Stadtwerke Ingolstadt"

        assert AccountNameSuggester().suggest(transaction, [_member(1, "Eris Discordia")]) == []

    def test_missing_account_name(self):
        transaction = Mock()
        transaction.account_name = ""

        assert AccountNameSuggester().suggest(transaction, [_member(1, "Eris")]) == []

    def test_limit_and_order(self):
        transaction = Mock()
        transaction.account_name = "Family Doe"

        members = [_member(i, "Doe") for i in (4, 2, 3, 1)]
        suggestions = AccountNameSuggester(limit=2).suggest(transaction, members)

        assert [s.member_id for s in suggestions] == [1, 2]

    def test_invalid_similarity(self):
        with pytest.raises(ValueError):
            AccountNameSuggester(min_similarity=120)

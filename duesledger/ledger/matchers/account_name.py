"""Account holder name suggester.

Proposes members for an unmatched transaction by comparing the bank's
account holder name with member names. Suggestions are only shown for manual
review; reconciliation never attributes by name.
"""

import re
from collections.abc import Iterable
from typing import TYPE_CHECKING

from rapidfuzz import fuzz

from ..domain.value_objects import BindingSuggestion

if TYPE_CHECKING:
    from ..domain.models import BankTransaction, Member

_NON_WORD = re.compile(r"[^\w\s]")


class AccountNameSuggester:
    """Suggest members whose name resembles the transaction's account name.

    Confidence Scoring:
    - Member name contained in the account name (or vice versa) → 1.0
    - Otherwise token set similarity / 100, if >= ``min_similarity``

    Example:
        >>> suggester = AccountNameSuggester()
        >>> [s.member_name for s in suggester.suggest(transaction, members)]
        ['Eris Discordia']
    """

    def __init__(self, min_similarity: float = 80.0, limit: int = 3) -> None:
        if not 0 <= min_similarity <= 100:
            raise ValueError(f"min_similarity must be between 0-100, got {min_similarity}")
        self.min_similarity = min_similarity
        self.limit = limit

    def suggest(
        self, transaction: "BankTransaction", members: Iterable["Member"]
    ) -> list[BindingSuggestion]:
        account_name = self._normalize(transaction.account_name)
        if not account_name:
            return []

        suggestions = []
        for member in members:
            name = self._normalize(member.name)
            if not name:
                continue

            if name in account_name or account_name in name:
                suggestions.append(
                    BindingSuggestion(member.id, member.name, 1.0, "Name contained in account name")
                )
                continue

            similarity = fuzz.token_set_ratio(name, account_name)
            if similarity >= self.min_similarity:
                suggestions.append(
                    BindingSuggestion(
                        member.id,
                        member.name,
                        round(similarity / 100, 2),
                        f"Account name similarity {similarity:.0f}%",
                    )
                )

        suggestions.sort(key=lambda s: (-s.confidence, s.member_id))
        return suggestions[: self.limit]

    @staticmethod
    def _normalize(text: str | None) -> str:
        """Lowercase, strip punctuation and collapse whitespace."""
        if not text:
            return ""
        return " ".join(_NON_WORD.sub(" ", text.lower()).split())

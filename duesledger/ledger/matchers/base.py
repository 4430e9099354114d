"""Base interface for transaction attribution strategies.

Implements the Strategy pattern so the reconciler can be given a different
attribution algorithm (e.g. in tests) without changing the fold.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from fnmatch import fnmatchcase
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..domain.models import BankTransaction, IdentifierBinding
    from ..domain.value_objects import MatchResult

GLOB_CHARACTERS = frozenset("*?[")


class IAttributionMatcher(ABC):
    """Abstract base class for attribution strategies.

    A strategy is a pure function of its inputs: it never reads or writes the
    store. Configuration errors are raised as
    :class:`~duesledger.exceptions.MatchError` subclasses.
    """

    @abstractmethod
    def attribute(
        self, transaction: "BankTransaction", bindings: Sequence["IdentifierBinding"]
    ) -> "MatchResult":
        """Resolve a transaction to zero, one or many (member, amount) pairs.

        Args:
            transaction: The bank transaction to attribute
            bindings: Candidate bindings; those for other identifiers are ignored

        Returns:
            MatchResult whose attributions sum to the transaction amount,
            or an UNMATCHED result with no attributions.
        """

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}>"


def subject_matches(pattern: str | None, description: str | None) -> bool:
    """Whether a binding's ``match_subject`` is found in a transaction description.

    Case-insensitive. A pattern containing ``*``, ``?`` or ``[`` is a glob
    searched anywhere in the description (``"beitrag*2024"`` matches
    ``"Mitgliedsbeitrag Maerz 2024"``); any other pattern is a plain substring.
    A None pattern never matches; catch-all handling is up to the caller.
    """
    if pattern is None:
        return False
    text = (description or "").lower()
    needle = pattern.strip().lower()
    if not needle:
        return False
    if GLOB_CHARACTERS.intersection(needle):
        return fnmatchcase(text, f"*{needle}*")
    return needle in text

"""Transaction attribution strategies using Strategy pattern.

Available Strategies:
- BindingMatcher: Identifier bindings with subject patterns and split amounts
- AccountNameSuggester: Member suggestions by account holder name (review only)

Usage:
    >>> from duesledger.ledger.matchers import BindingMatcher
    >>> result = BindingMatcher().attribute(transaction, bindings)
    >>> result.outcome
    <MatchOutcome.SPLIT: 'split'>
"""

__all__ = [
    "IAttributionMatcher",
    "BindingMatcher",
    "AccountNameSuggester",
    "subject_matches",
]

from .account_name import AccountNameSuggester
from .base import IAttributionMatcher, subject_matches
from .binding import BindingMatcher

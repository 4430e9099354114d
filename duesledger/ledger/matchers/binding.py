"""Identifier binding matcher.

Resolves a bank transaction to members through the bindings registered for
its counterparty account identifier, in priority order:

1. Explicit attribution: a transaction carrying ``member_id`` goes entirely
   to that member.
2. Identifier lookup: only bindings whose identifier equals the transaction's
   account identifier are candidates, ordered by member id. The first
   candidate is the designated recipient of rounding remainders.
3. Subject disambiguation: bindings whose ``match_subject`` is found in the
   description win; catch-all bindings (no subject) apply only when no
   pattern binding matches.
4. Split rules: a single applicable binding with ``split_amount`` receives it
   (clamped to the transaction amount) and the remainder goes to the other
   bindings of the identifier, disambiguated the same way. Several applicable
   split bindings must add up to the full amount.
5. Nothing applicable: UNMATCHED, left for manual review.
"""

from collections.abc import Sequence
from typing import TYPE_CHECKING

from ...exceptions import AmbiguousMatch, AmbiguousSplit
from ..domain.enums import AttributionKind, MatchOutcome
from ..domain.money import Money
from ..domain.value_objects import Attribution, MatchResult
from .base import IAttributionMatcher, subject_matches

if TYPE_CHECKING:
    from ..domain.models import BankTransaction, IdentifierBinding


class BindingMatcher(IAttributionMatcher):
    """Attribute transactions using identifier bindings.

    Example:
        >>> matcher = BindingMatcher()
        >>> result = matcher.attribute(transaction, bindings)
        >>> [(a.member_id, str(a.amount)) for a in result.attributions]
        [(1, '20.00'), (2, '30.00')]
    """

    def attribute(
        self, transaction: "BankTransaction", bindings: Sequence["IdentifierBinding"]
    ) -> MatchResult:
        amount = Money.parse(transaction.amount)

        if transaction.member_id is not None:
            return MatchResult(
                transaction=transaction,
                outcome=MatchOutcome.MANUAL,
                attributions=(
                    Attribution(transaction.member_id, amount, AttributionKind.MANUAL),
                ),
                reason="Explicit member attribution",
            )

        identifier = transaction.account_identifier
        if identifier is None:
            return self._unmatched(transaction, "Transaction has no account identifier")

        candidates = sorted(
            (b for b in bindings if b.identifier == identifier),
            key=lambda b: b.member_id,
        )
        if not candidates:
            return self._unmatched(transaction, "No binding for account identifier")

        applicable = self._applicable(candidates, transaction.description)
        if not applicable:
            return self._unmatched(transaction, "No binding subject found in description")

        splitters = [b for b in applicable if b.split_amount is not None]
        if len(splitters) > 1:
            return self._fixed_splits(transaction, amount, splitters)
        if len(splitters) == 1:
            return self._split_with_remainder(transaction, amount, splitters[0], candidates)

        if len(applicable) == 1:
            binding = applicable[0]
            return MatchResult(
                transaction=transaction,
                outcome=MatchOutcome.MATCHED,
                attributions=(Attribution(binding.member_id, amount, binding=binding),),
                reason=self._describe(binding),
            )

        if any(b.is_catch_all for b in applicable):
            raise AmbiguousMatch(
                "Several catch-all bindings share the account identifier",
                transaction_id=transaction.id,
                member_ids=[b.member_id for b in applicable],
            )

        # The description names several members explicitly: equal shares
        shares = amount.split(len(applicable))
        return MatchResult(
            transaction=transaction,
            outcome=MatchOutcome.SPLIT,
            attributions=tuple(
                Attribution(b.member_id, share, AttributionKind.SHARE, binding=b)
                for b, share in zip(applicable, shares, strict=True)
            ),
            reason=f"Description matches {len(applicable)} member subjects, equal shares",
        )

    def _applicable(
        self, candidates: list["IdentifierBinding"], description: str | None
    ) -> list["IdentifierBinding"]:
        """Pattern bindings found in the description, else the catch-alls."""
        by_subject = [b for b in candidates if subject_matches(b.match_subject, description)]
        if by_subject:
            return by_subject
        return [b for b in candidates if b.is_catch_all]

    def _fixed_splits(
        self,
        transaction: "BankTransaction",
        amount: Money,
        splitters: list["IdentifierBinding"],
    ) -> MatchResult:
        declared = Money.sum(abs(b.split_amount) for b in splitters)
        if declared != abs(amount):
            raise AmbiguousSplit(
                f"Split amounts add up to {declared}, transaction amount is {amount}",
                transaction_id=transaction.id,
                member_ids=[b.member_id for b in splitters],
            )
        return MatchResult(
            transaction=transaction,
            outcome=MatchOutcome.SPLIT,
            attributions=tuple(
                Attribution(
                    b.member_id,
                    abs(b.split_amount).with_sign_of(amount),
                    AttributionKind.SPLIT,
                    binding=b,
                )
                for b in splitters
            ),
            reason=f"Fixed split among {len(splitters)} members",
        )

    def _split_with_remainder(
        self,
        transaction: "BankTransaction",
        amount: Money,
        splitter: "IdentifierBinding",
        candidates: list["IdentifierBinding"],
    ) -> MatchResult:
        carved = min(abs(splitter.split_amount), abs(amount)).with_sign_of(amount)
        remainder = amount - carved

        rest = [b for b in candidates if b is not splitter]
        recipients = self._remainder_recipients(transaction, rest) if remainder else []

        if not recipients:
            # Nobody else can take the remainder: the split member keeps the whole amount
            return MatchResult(
                transaction=transaction,
                outcome=MatchOutcome.MATCHED,
                attributions=(
                    Attribution(splitter.member_id, amount, AttributionKind.SPLIT, binding=splitter),
                ),
                reason=self._describe(splitter),
            )

        attributions = [Attribution(splitter.member_id, carved, AttributionKind.SPLIT, binding=splitter)]
        for binding, share in zip(recipients, remainder.split(len(recipients)), strict=True):
            attributions.append(
                Attribution(binding.member_id, share, AttributionKind.REMAINDER, binding=binding)
            )
        return MatchResult(
            transaction=transaction,
            outcome=MatchOutcome.SPLIT,
            attributions=tuple(attributions),
            reason=f"Split {carved} to member {splitter.member_id}, remainder {remainder}",
        )

    def _remainder_recipients(
        self, transaction: "BankTransaction", rest: list["IdentifierBinding"]
    ) -> list["IdentifierBinding"]:
        """Bindings that receive what is left after a split amount was carved out."""
        if len(rest) <= 1:
            return rest
        by_subject = [b for b in rest if subject_matches(b.match_subject, transaction.description)]
        if by_subject:
            return by_subject
        catch_alls = [b for b in rest if b.is_catch_all]
        if len(catch_alls) > 1:
            raise AmbiguousMatch(
                "Remainder of a split transfer matches several catch-all bindings",
                transaction_id=transaction.id,
                member_ids=[b.member_id for b in catch_alls],
            )
        return catch_alls

    @staticmethod
    def _unmatched(transaction: "BankTransaction", reason: str) -> MatchResult:
        return MatchResult(transaction=transaction, outcome=MatchOutcome.UNMATCHED, reason=reason)

    @staticmethod
    def _describe(binding: "IdentifierBinding") -> str:
        if binding.match_subject is None:
            return "Identifier match"
        return f"Identifier and subject '{binding.match_subject}' match"

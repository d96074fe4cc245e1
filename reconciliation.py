"""Pairing of transactions, e.g. the two legs of a transfer.

A link is symmetric: both sides carry ``is_reconciled`` and point at each
other. No transaction ever has more than one counterpart, so unlinking
cascades one level at most.
"""

import logging
from decimal import Decimal
from typing import Optional

from errors import (
    AlreadyReconciledError,
    NotReconciledError,
    SameKindLinkError,
    SelfLinkError,
    StoreError,
)
from models import Transaction, TransactionType
from store import RecordStore, TransactionFilters


logger = logging.getLogger(__name__)

UNLINKED = {
    "is_reconciled": False,
    "linked_transaction_id": None,
    "residual_amount": None,
}


def _snapshot(txn: Transaction) -> dict[str, object]:
    return {
        "is_reconciled": txn.is_reconciled,
        "linked_transaction_id": txn.linked_transaction_id,
        "residual_amount": txn.residual_amount,
    }


def effective_amount(
    transaction: Transaction, counterpart: Optional[Transaction] = None
) -> Decimal:
    """Amount of ``transaction`` still unmatched by its counterpart."""
    amount = abs(Decimal(transaction.amount))
    if not transaction.is_reconciled or counterpart is None:
        return amount
    if transaction.residual_amount is not None:
        return abs(Decimal(transaction.residual_amount))
    return max(Decimal("0"), amount - abs(Decimal(counterpart.amount)))


def is_parent(transaction: Transaction, counterpart: Transaction) -> bool:
    """Whether ``transaction`` is the primary row of the pair.

    Larger absolute amount wins, then the earlier date, then the earlier
    creation timestamp, then the lexicographically smaller id.
    """
    amount = abs(Decimal(transaction.amount))
    other_amount = abs(Decimal(counterpart.amount))
    if amount != other_amount:
        return amount > other_amount
    if transaction.date != counterpart.date:
        return transaction.date < counterpart.date
    if (
        transaction.created_at is not None
        and counterpart.created_at is not None
        and transaction.created_at != counterpart.created_at
    ):
        return transaction.created_at < counterpart.created_at
    return str(transaction.id) < str(counterpart.id)


def primary_of(a: Transaction, b: Transaction) -> Transaction:
    return a if is_parent(a, b) else b


def remaining_amount(
    transaction: Transaction, counterpart: Optional[Transaction] = None
) -> Decimal:
    """What is left of ``transaction`` once its pair is netted.

    The parent keeps the difference; the child is fully consumed.
    """
    amount = abs(Decimal(transaction.amount))
    if not transaction.is_reconciled or counterpart is None:
        return amount
    if not is_parent(transaction, counterpart):
        return Decimal("0")
    return max(Decimal("0"), amount - abs(Decimal(counterpart.amount)))


def has_available_amount(
    transaction: Transaction, counterpart: Optional[Transaction] = None
) -> bool:
    if not transaction.is_reconciled or counterpart is None:
        return False
    return remaining_amount(transaction, counterpart) > 0


def check_linkable(a: Transaction, b: Transaction) -> None:
    if a.id == b.id:
        raise SelfLinkError("A transaction cannot be linked to itself")
    if a.is_reconciled or b.is_reconciled:
        raise AlreadyReconciledError(
            "One or both transactions are already reconciled"
        )
    if (
        a.type == b.type
        and a.type != TransactionType.transfer
        and b.type != TransactionType.transfer
    ):
        raise SameKindLinkError(
            f"Cannot link two {TransactionType(a.type).value} transactions"
        )


class ReconciliationLinker:
    def __init__(self, store: RecordStore) -> None:
        self.store = store

    def link(self, a: Transaction, b: Transaction) -> None:
        check_linkable(a, b)
        a_id, b_id = a.id, b.id
        before = _snapshot(a)
        self.store.update_transaction(
            a_id, {"is_reconciled": True, "linked_transaction_id": b_id}
        )
        try:
            self.store.update_transaction(
                b_id, {"is_reconciled": True, "linked_transaction_id": a_id}
            )
        except StoreError:
            self.store.update_transaction(a_id, before)
            raise
        logger.info(f"reconciliation_link: a={a_id} b={b_id}")

    def unlink(self, transaction_id: str) -> None:
        txn = self.store.get_transaction(transaction_id)
        if txn is None:
            raise ValueError("Transaction not found")
        counterpart_id = txn.linked_transaction_id
        if not counterpart_id:
            raise NotReconciledError("Transaction is not reconciled")

        # All reads happen before the first write so only the counterpart
        # write can need compensating.
        clear_counterpart = False
        if self.store.get_transaction(counterpart_id) is not None:
            still_linked = [
                other
                for other in self.store.find_transactions(
                    TransactionFilters(linked_to=counterpart_id)
                )
                if other.id != transaction_id
            ]
            clear_counterpart = not still_linked

        before = _snapshot(txn)
        self.store.update_transaction(transaction_id, UNLINKED)
        if clear_counterpart:
            try:
                self.store.update_transaction(counterpart_id, UNLINKED)
            except StoreError:
                self.store.update_transaction(transaction_id, before)
                raise
        logger.info(
            f"reconciliation_unlink: transaction={transaction_id} "
            f"counterpart={counterpart_id}"
        )

"""Per-card transaction statistics for the credit-limit dataset."""

from __future__ import annotations

import ibis
import ibis.expr.types as ir

AGGREGATE_COLUMNS = [
    "total_transactions",
    "avg_transaction_amount",
    "max_transaction_amount",
    "min_transaction_amount",
    "total_spent",
    "total_refunded",
    "num_refunds",
    "avg_errors",
    "total_errors",
]


def aggregate_card_transactions(transactions: ir.Table) -> ir.Table:
    """Group normalized transactions by ``card_id``.

    Expects ``amount``, ``is_refund`` and ``has_error`` to be derived already.
    Amount statistics ignore null amounts. Spent and refunded totals are 0,
    not null, for cards with no positive or negative amounts.

    Cards with no transactions do not appear; joining onto the card table
    null-fills them.
    """
    t = transactions
    amount = t.amount

    return t.group_by("card_id").agg(
        total_transactions=t.count(),
        avg_transaction_amount=amount.mean(),
        max_transaction_amount=amount.max(),
        min_transaction_amount=amount.min(),
        total_spent=ibis.coalesce(amount.sum(where=amount > 0), 0.0),
        total_refunded=ibis.coalesce(amount.abs().sum(where=amount < 0), 0.0),
        num_refunds=ibis.coalesce(t.is_refund.sum(), 0),
        avg_errors=t.has_error.mean(),
        total_errors=ibis.coalesce(t.has_error.sum(), 0),
    )

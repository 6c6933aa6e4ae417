"""Join sequences assembling the two output datasets.

Both outputs are chains of left joins, so every row of the driving table
survives each step and unmatched right-side columns are null. The right
key column is consumed by the join, colliding right-side columns get a
suffix, and left columns are never renamed.

Row order is restored from ``schema.ROW_ID`` of the driving table after
execution; the expressions here carry that column through untouched.
"""

from __future__ import annotations

from collections.abc import Sequence

import ibis.expr.types as ir

import finprep.normalize as normalize
import finprep.schema as schema

_JOIN_KEY = "__join_key"

TRANSACTION_COLUMNS = [
    "id",
    "date",
    "client_id",
    "card_id",
    "amount",
    "mcc",
    "use_chip",
    "merchant_id",
    "merchant_city",
    "merchant_state",
    "zip",
    "is_refund",
    "has_error",
    *(column for column, _ in normalize.ERROR_CATEGORIES),
    "error_count",
]

MCC_COLUMNS = ["description"]

CARD_COLUMNS = [
    "card_brand",
    "card_type",
    "card_number",
    "expires",
    "cvv",
    "has_chip",
    "num_cards_issued",
    "credit_limit",
    "acct_open_date",
    "year_pin_last_changed",
]

USER_COLUMNS = [
    "current_age",
    "retirement_age",
    "birth_year",
    "birth_month",
    "gender",
    "address",
    "latitude",
    "longitude",
    "per_capita_income",
    "yearly_income",
    "total_debt",
    "credit_score",
    "num_credit_cards",
    "debt_to_income_ratio",
]

TARGET_COLUMN = "target"


def left_join(
    left: ir.Table,
    right: ir.Table,
    left_key: str,
    right_key: str,
    suffix: str,
) -> ir.Table:
    """Left join ``right`` onto ``left`` where left_key == right_key.

    Args:
        left: Driving table; all its rows and column names are kept.
        right: Lookup table, expected unique on ``right_key``.
        left_key: Join column in ``left``.
        right_key: Join column in ``right``; not present in the result.
        suffix: Appended to right-side columns whose names exist in ``left``.
    """
    if schema.ROW_ID in right.columns:
        right = right.drop(schema.ROW_ID)

    renames = {
        f"{name}{suffix}": name
        for name in right.columns
        if name != right_key and name in left.columns
    }
    renames[_JOIN_KEY] = right_key
    right = right.rename(**renames)

    joined = left.left_join(right, left[left_key] == right[_JOIN_KEY])
    return joined.drop(_JOIN_KEY)


def order_columns(
    table: ir.Table,
    blocks: Sequence[Sequence[str]],
    trailing: Sequence[str] = (),
) -> ir.Table:
    """Reorder columns: listed blocks first, then unlisted, then ``trailing``.

    Listed columns absent from the table are skipped. The row-id column
    always goes last so it can be stripped after sorting.
    """
    present = set(table.columns)
    listed = [name for block in blocks for name in block if name in present]
    tail = [name for name in trailing if name in present]
    placed = {*listed, *tail, schema.ROW_ID}
    rest = [name for name in table.columns if name not in placed]

    ordered = [*listed, *rest, *tail]
    if schema.ROW_ID in present:
        ordered.append(schema.ROW_ID)
    return table.select(ordered)


def build_fraud_detection(
    transactions: ir.Table,
    fraud_labels: ir.Table,
    mcc_codes: ir.Table,
    cards: ir.Table,
    users: ir.Table,
) -> ir.Table:
    """One row per labeled transaction with merchant, card and user context.

    Transactions without a usable label are excluded. The card join brings
    a second ``client_id`` (suffixed ``_card``) which is discarded in favour
    of the transaction's own.
    """
    data = left_join(transactions, fraud_labels, "id", "transaction_id", "_label")
    data = data.filter(data[TARGET_COLUMN].notnull())
    data = left_join(data, mcc_codes, "mcc", "mcc_code", "_mcc")
    data = left_join(data, cards, "card_id", "id", "_card")
    data = left_join(data, users, "client_id", "id", "_user")

    if "client_id_card" in data.columns:
        data = data.drop("client_id_card")

    return order_columns(
        data,
        [TRANSACTION_COLUMNS, MCC_COLUMNS, CARD_COLUMNS, USER_COLUMNS],
        trailing=[TARGET_COLUMN],
    )


def build_credit_limit(
    cards: ir.Table,
    users: ir.Table,
    card_aggregates: ir.Table,
) -> ir.Table:
    """One row per card with a known credit limit, plus owner and usage data."""
    data = left_join(cards, users, "client_id", "id", "_user")
    data = left_join(data, card_aggregates, "id", "card_id", "_txn")
    return data.filter(data.credit_limit.notnull())

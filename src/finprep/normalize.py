"""Per-table cleaning rules.

Every function takes an Ibis table expression and returns a new one; the
pipeline threads the results from stage to stage. The steps per table run
in a fixed order: deduplicate, coerce types, filter, derive features.

Row-level defects (unparsable currency or dates) become null and the row
is kept. Optional columns that are absent from a source are left alone.
"""

from __future__ import annotations

import ibis
import ibis.expr.types as ir

import finprep.schema as schema

# (flag column, phrase searched case-insensitively in the raw errors text)
ERROR_CATEGORIES: list[tuple[str, str]] = [
    ("error_bad_expiration", "Bad Expiration"),
    ("error_bad_card_number", "Bad Card Number"),
    ("error_insufficient_balance", "Insufficient Balance"),
    ("error_bad_pin", "Bad PIN"),
    ("error_bad_cvv", "Bad CVV"),
    ("error_bad_zipcode", "Bad Zipcode"),
    ("error_technical_glitch", "Technical Glitch"),
]

USER_CURRENCY_COLUMNS = ["per_capita_income", "yearly_income", "total_debt"]
CARD_DATE_COLUMNS = ["expires", "acct_open_date"]

_NON_NUMERIC = r"[^0-9.\-]"
_MONTH_YEAR = r"^(0?[1-9]|1[0-2])/([0-9]{4})$"


# ---------------------------------------------------------------------------
# Column coercions
# ---------------------------------------------------------------------------


def parse_currency(column: ir.Value) -> ir.FloatingValue:
    """'$1,234.50' -> 1234.5, '-$45.00' -> -45.0, '' or garbage -> null."""
    digits = column.cast("string").re_replace(_NON_NUMERIC, "")
    return digits.nullif("").try_cast("float64")


def parse_month_year(column: ir.Value) -> ir.DateValue:
    """'03/2019' -> 2019-03-01. Anything not MM/YYYY becomes null.

    Month and year fall back to a valid placeholder on non-matching rows so
    the date constructor never sees an impossible date.
    """
    text = column.cast("string").strip()
    valid = text.re_search(_MONTH_YEAR)
    month = ibis.ifelse(valid, text.re_extract(_MONTH_YEAR, 1).try_cast("int32"), 1)
    year = ibis.ifelse(valid, text.re_extract(_MONTH_YEAR, 2).try_cast("int32"), 1970)
    return ibis.ifelse(valid, ibis.date(year, month, 1), ibis.null().cast("date"))


def parse_date(column: ir.Value) -> ir.DateValue:
    """Timestamp or ISO text to a calendar date; unparsable text -> null."""
    dtype = column.type()
    if dtype.is_date():
        return column
    if dtype.is_timestamp():
        return column.cast("date")
    return column.cast("string").strip().try_cast("timestamp").cast("date")


def yes_no_to_binary(column: ir.Value) -> ir.IntegerValue:
    """'Yes'/'YES' -> 1, any other text -> 0, null stays null."""
    return (column.cast("string").strip().upper() == "YES").cast("int32")


def _flag(condition: ir.BooleanValue) -> ir.IntegerValue:
    """1 where condition holds, 0 otherwise (including null)."""
    return ibis.ifelse(condition, 1, 0).cast("int32")


# ---------------------------------------------------------------------------
# Table operations
# ---------------------------------------------------------------------------


def deduplicate(table: ir.Table, key: str) -> ir.Table:
    """Keep the first row per key, first meaning lowest source position."""
    rank = ibis.row_number().over(group_by=table[key], order_by=table[schema.ROW_ID])
    ranked = table.mutate(__dedup_rank=rank)
    return ranked.filter(ranked["__dedup_rank"] == 0).drop("__dedup_rank")


def normalize_users(users: ir.Table) -> ir.Table:
    users = deduplicate(users, "id")

    converted = {
        name: parse_currency(users[name])
        for name in USER_CURRENCY_COLUMNS
        if name in users.columns
    }
    if converted:
        users = users.mutate(**converted)

    if "yearly_income" in users.columns and "total_debt" in users.columns:
        users = users.mutate(
            debt_to_income_ratio=ibis.ifelse(
                users.yearly_income > 0,
                users.total_debt / users.yearly_income,
                ibis.null().cast("float64"),
            )
        )
    return users


def normalize_cards(cards: ir.Table) -> ir.Table:
    """Clean the card table.

    ``credit_limit`` is the regression target: a non-positive parsed value
    is a data-entry defect and the row is dropped. A null limit is kept
    here and excluded later by the credit-limit dataset.

    ``card_on_dark_web`` is converted to 0/1 and then dropped.
    """
    cards = deduplicate(cards, "id")

    converted = {
        name: parse_month_year(cards[name])
        for name in CARD_DATE_COLUMNS
        if name in cards.columns
    }
    if converted:
        cards = cards.mutate(**converted)

    cards = cards.mutate(credit_limit=parse_currency(cards.credit_limit))
    cards = cards.filter(cards.credit_limit.isnull() | (cards.credit_limit > 0))

    if "card_on_dark_web" in cards.columns:
        cards = cards.mutate(card_on_dark_web=yes_no_to_binary(cards.card_on_dark_web))
        cards = cards.drop("card_on_dark_web")

    if "has_chip" in cards.columns:
        cards = cards.mutate(has_chip=yes_no_to_binary(cards.has_chip))

    return cards


def normalize_transactions(transactions: ir.Table) -> ir.Table:
    """Clean the transaction table and derive refund and error features."""
    t = deduplicate(transactions, "id")

    if "date" in t.columns:
        t = t.mutate(date=parse_date(t.date))

    trimmed = {
        name: t[name].cast("string").strip()
        for name in ("merchant_city", "merchant_state")
        if name in t.columns
    }
    if trimmed:
        t = t.mutate(**trimmed)

    t = t.mutate(amount=parse_currency(t.amount))
    t = t.mutate(is_refund=(t.amount < 0).cast("int32"))

    text = t.errors.cast("string")
    t = t.mutate(
        errors=ibis.ifelse(text.strip() == "", ibis.null().cast("string"), text)
    )
    lowered = t.errors.lower()
    flags = {
        column: _flag(lowered.contains(phrase.lower()))
        for column, phrase in ERROR_CATEGORIES
    }
    commas = t.errors.length() - t.errors.replace(",", "").length()
    t = t.mutate(
        has_error=_flag(t.errors.notnull()),
        **flags,
        error_count=ibis.ifelse(t.errors.isnull(), 0, commas + 1).cast("int32"),
    )

    return t


def normalize_fraud_labels(labels: ir.Table) -> ir.Table:
    """Keep only the two admissible targets, exactly 'No' or 'Yes'.

    Other values (including other casings) become null, so those rows
    count as unlabeled downstream.
    """
    labels = deduplicate(labels, "transaction_id")
    target = labels.target.cast("string").strip()
    return labels.mutate(
        target=ibis.ifelse(
            target.isin(schema.TARGET_VALUES), target, ibis.null().cast("string")
        )
    )


def normalize_mcc_codes(mcc_codes: ir.Table) -> ir.Table:
    """Convert codes to integers to match ``transactions.mcc``."""
    mcc_codes = mcc_codes.mutate(
        mcc_code=mcc_codes.mcc_code.cast("string").strip().try_cast("int64")
    )
    return deduplicate(mcc_codes, "mcc_code")

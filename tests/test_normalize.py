"""Tests for finprep.normalize cleaning rules."""

from __future__ import annotations

import datetime

import pyarrow as pa
import pytest

import finprep.normalize as normalize
import finprep.pipeline as pipeline
import finprep.settings as settings
import finprep.sources as sources

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


@pytest.fixture
def raw(financial_dir):
    return sources.load_sources(settings.SourcesSettings(directory=str(financial_dir)))


def _register(conn, name: str, data: pa.Table | dict):
    if isinstance(data, dict):
        data = sources.with_row_ids(pa.table(data))
    return conn.create_table(name, obj=data, overwrite=True)


def _rows(conn, expr) -> list[dict]:
    return pipeline.finalize(conn.to_pyarrow(expr)).to_pylist()


def _by_id(rows: list[dict], key: str = "id") -> dict:
    return {row[key]: row for row in rows}


def _values(conn, values: list, fn) -> list:
    t = _register(conn, "values", {"x": pa.array(values, type=pa.string())})
    return [row["v"] for row in _rows(conn, t.mutate(v=fn(t.x)))]


# ---------------------------------------------------------------------------
# Column coercions
# ---------------------------------------------------------------------------


class TestParseCurrency:
    def test_values(self, conn):
        result = _values(
            conn,
            ["$1,234.50", "-$45.00", "$-77.00", "$29278", "", None, "abc"],
            normalize.parse_currency,
        )
        assert result == [1234.5, -45.0, -77.0, 29278.0, None, None, None]


class TestParseMonthYear:
    def test_values(self, conn):
        result = _values(
            conn,
            ["03/2019", "12/2022", "3/2019", " 09/2002 ", "13/2019", "bad", None],
            normalize.parse_month_year,
        )
        assert result == [
            datetime.date(2019, 3, 1),
            datetime.date(2022, 12, 1),
            datetime.date(2019, 3, 1),
            datetime.date(2002, 9, 1),
            None,
            None,
            None,
        ]


class TestParseDate:
    def test_text(self, conn):
        result = _values(
            conn,
            ["2010-01-01 00:01:00", "2019-10-31 23:59:00", "not a date", None],
            normalize.parse_date,
        )
        assert result == [
            datetime.date(2010, 1, 1),
            datetime.date(2019, 10, 31),
            None,
            None,
        ]

    def test_timestamp(self, conn):
        t = _register(
            conn,
            "stamps",
            {"x": pa.array([datetime.datetime(2010, 1, 1, 0, 1)], type=pa.timestamp("us"))},
        )
        rows = _rows(conn, t.mutate(v=normalize.parse_date(t.x)))
        assert rows[0]["v"] == datetime.date(2010, 1, 1)


class TestYesNoToBinary:
    def test_values(self, conn):
        result = _values(
            conn,
            ["YES", "Yes", " yes ", "NO", "No", "maybe", None],
            normalize.yes_no_to_binary,
        )
        assert result == [1, 1, 1, 0, 0, 0, None]


# ---------------------------------------------------------------------------
# Deduplication
# ---------------------------------------------------------------------------


class TestDeduplicate:
    def test_keeps_first_occurrence(self, conn):
        t = _register(conn, "dupes", {"id": [1, 2, 1, 3, 2], "name": ["a", "b", "c", "d", "e"]})
        rows = _rows(conn, normalize.deduplicate(t, "id"))
        assert [(r["id"], r["name"]) for r in rows] == [(1, "a"), (2, "b"), (3, "d")]

    def test_no_helper_column_left(self, conn):
        t = _register(conn, "dupes", {"id": [1, 1]})
        assert "__dedup_rank" not in normalize.deduplicate(t, "id").columns


# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------


class TestNormalizeUsers:
    def test_dedup(self, conn, raw):
        rows = _rows(conn, normalize.normalize_users(_register(conn, "users", raw.users)))
        assert [r["id"] for r in rows] == [825, 1746, 1718, 2000]
        assert _by_id(rows)[1746]["current_age"] == 53

    def test_currency(self, conn, raw):
        rows = _by_id(_rows(conn, normalize.normalize_users(_register(conn, "users", raw.users))))
        assert rows[825]["per_capita_income"] == 29278.0
        assert rows[825]["yearly_income"] == 59696.0
        assert rows[825]["total_debt"] == 127613.0
        assert rows[2000]["total_debt"] == 1000.0

    def test_debt_to_income_ratio(self, conn, raw):
        rows = _by_id(_rows(conn, normalize.normalize_users(_register(conn, "users", raw.users))))
        assert rows[825]["debt_to_income_ratio"] == pytest.approx(127613 / 59696)
        # zero income -> no ratio
        assert rows[2000]["debt_to_income_ratio"] is None

    def test_ratio_skipped_without_debt(self, conn):
        t = _register(conn, "users", {"id": [1], "yearly_income": ["$100"]})
        result = normalize.normalize_users(t)
        assert "debt_to_income_ratio" not in result.columns
        assert _rows(conn, result)[0]["yearly_income"] == 100.0


class TestNormalizeCards:
    @pytest.fixture
    def rows(self, conn, raw):
        return _rows(conn, normalize.normalize_cards(_register(conn, "cards", raw.cards)))

    def test_dedup_and_zero_limit_dropped(self, rows):
        assert [r["id"] for r in rows] == [4524, 2731, 5000, 6000]
        # first 4524 row wins
        assert _by_id(rows)[4524]["card_number"] == 4344676511950444

    def test_credit_limit(self, rows):
        by_id = _by_id(rows)
        assert by_id[4524]["credit_limit"] == 24295.0
        assert by_id[2731]["credit_limit"] == 21968.0
        assert by_id[6000]["credit_limit"] is None

    def test_month_year_dates(self, rows):
        by_id = _by_id(rows)
        assert by_id[4524]["expires"] == datetime.date(2022, 12, 1)
        assert by_id[4524]["acct_open_date"] == datetime.date(2002, 9, 1)
        assert by_id[5000]["expires"] is None
        assert by_id[5000]["acct_open_date"] is None

    def test_has_chip_binary(self, rows):
        by_id = _by_id(rows)
        assert by_id[4524]["has_chip"] == 1
        assert by_id[6000]["has_chip"] == 0

    def test_dark_web_dropped(self, rows):
        assert "card_on_dark_web" not in rows[0]

    def test_negative_limit_dropped(self, conn):
        t = _register(
            conn,
            "cards",
            {"id": [1, 2], "client_id": [9, 9], "credit_limit": ["-$5", "$5"]},
        )
        rows = _rows(conn, normalize.normalize_cards(t))
        assert [r["id"] for r in rows] == [2]


class TestNormalizeTransactions:
    @pytest.fixture
    def rows(self, conn, raw):
        t = _register(conn, "transactions", raw.transactions)
        return _by_id(_rows(conn, normalize.normalize_transactions(t)))

    def test_dedup(self, rows):
        assert list(rows) == [7475327, 7475328, 7475329, 7475331, 7475332, 7475333]
        assert rows[7475328]["amount"] == 14.57

    def test_amount_and_refund(self, rows):
        assert rows[7475327]["amount"] == -77.0
        assert rows[7475327]["is_refund"] == 1
        assert rows[7475332]["amount"] == -45.0
        assert rows[7475332]["is_refund"] == 1
        assert rows[7475333]["amount"] == 1250.5
        assert rows[7475333]["is_refund"] == 0

    def test_date_and_trimmed_text(self, rows):
        assert rows[7475327]["date"] == datetime.date(2010, 1, 1)
        assert rows[7475327]["merchant_city"] == "Beulah"
        assert rows[7475331]["merchant_state"] is None

    def test_error_flags(self, rows):
        row = rows[7475329]
        assert row["has_error"] == 1
        assert row["error_bad_pin"] == 1
        assert row["error_bad_cvv"] == 1
        assert row["error_technical_glitch"] == 0
        assert row["error_count"] == 2

        assert rows[7475331]["error_technical_glitch"] == 1
        assert rows[7475331]["error_count"] == 1

    def test_no_errors(self, rows):
        for transaction_id in (7475327, 7475333):
            row = rows[transaction_id]
            assert row["errors"] is None
            assert row["has_error"] == 0
            assert row["error_count"] == 0
            assert all(row[c] == 0 for c, _ in normalize.ERROR_CATEGORIES)

    def test_error_match_ignores_case(self, conn):
        t = _register(
            conn,
            "transactions",
            {
                "id": [1],
                "client_id": [1],
                "card_id": [1],
                "amount": ["$5.00"],
                "mcc": [5411],
                "errors": ["bad pin,INSUFFICIENT BALANCE,Bad Zipcode"],
            },
        )
        row = _rows(conn, normalize.normalize_transactions(t))[0]
        assert row["error_bad_pin"] == 1
        assert row["error_insufficient_balance"] == 1
        assert row["error_bad_zipcode"] == 1
        assert row["error_bad_expiration"] == 0
        assert row["error_count"] == 3


class TestNormalizeFraudLabels:
    def test_targets(self, conn, raw):
        t = _register(conn, "labels", raw.fraud_labels)
        rows = _rows(conn, normalize.normalize_fraud_labels(t))
        assert [(r["transaction_id"], r["target"]) for r in rows] == [
            (7475327, "No"),
            (7475328, "No"),
            (7475329, "Yes"),
            (7475331, None),
            (7475332, "Yes"),
        ]

    def test_other_casing_is_null(self, conn):
        t = _register(conn, "labels", {"transaction_id": [1, 2], "target": ["yes", " No "]})
        rows = _rows(conn, normalize.normalize_fraud_labels(t))
        assert [r["target"] for r in rows] == [None, "No"]


class TestNormalizeMccCodes:
    def test_codes_become_integers(self, conn, raw):
        t = _register(conn, "mcc", raw.mcc_codes)
        rows = _rows(conn, normalize.normalize_mcc_codes(t))
        assert [r["mcc_code"] for r in rows] == [5499, 5311, 4829, 4784, 5411]

    def test_dedup_after_conversion(self, conn):
        t = _register(
            conn,
            "mcc",
            {"mcc_code": ["5499", " 5499", "x"], "description": ["a", "b", "c"]},
        )
        rows = _rows(conn, normalize.normalize_mcc_codes(t))
        assert [(r["mcc_code"], r["description"]) for r in rows] == [(5499, "a"), (None, "c")]


class TestCleanedTableProperties:
    """Invariants that hold for every row of the cleaned fixture tables."""

    @pytest.fixture
    def cleaned(self, conn, raw):
        return {
            "users": _rows(conn, normalize.normalize_users(_register(conn, "u", raw.users))),
            "cards": _rows(conn, normalize.normalize_cards(_register(conn, "c", raw.cards))),
            "transactions": _rows(
                conn, normalize.normalize_transactions(_register(conn, "t", raw.transactions))
            ),
            "fraud_labels": _rows(
                conn, normalize.normalize_fraud_labels(_register(conn, "f", raw.fraud_labels))
            ),
        }

    @pytest.mark.parametrize(
        "table, key",
        [
            ("users", "id"),
            ("cards", "id"),
            ("transactions", "id"),
            ("fraud_labels", "transaction_id"),
        ],
    )
    def test_keys_unique(self, cleaned, table, key):
        keys = [row[key] for row in cleaned[table]]
        assert len(keys) == len(set(keys))

    def test_credit_limit_null_or_positive(self, cleaned):
        assert all(
            row["credit_limit"] is None or row["credit_limit"] > 0
            for row in cleaned["cards"]
        )

    def test_refund_and_error_flags_consistent(self, cleaned):
        for row in cleaned["transactions"]:
            if row["amount"] is not None:
                assert row["is_refund"] == int(row["amount"] < 0)
            assert row["has_error"] == int(row["errors"] is not None)
            if row["has_error"] == 0:
                assert row["error_count"] == 0
            else:
                assert row["error_count"] >= 1

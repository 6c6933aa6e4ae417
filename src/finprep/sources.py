"""Loaders for the raw financial exports.

Reads the four CSV tables and the MCC JSON reference into PyArrow tables.
Each loaded row is tagged with its position in the source file
(``schema.ROW_ID``) so that deduplication can keep the first occurrence
and outputs can follow the source order.

Any load failure is fatal: there is no partial-load recovery.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

import pyarrow as pa
import pyarrow.csv as pacsv

import finprep.errors as errors
import finprep.schema as schema

if TYPE_CHECKING:
    import finprep.settings as settings_mod

logger = logging.getLogger(__name__)

# settings field name -> (schema, display name)
CSV_SOURCES: dict[str, tuple[type[schema.Schema], str]] = {
    "users": (schema.UsersSchema, "users"),
    "cards": (schema.CardsSchema, "cards"),
    "transactions": (schema.TransactionsSchema, "transactions"),
    "fraud_labels": (schema.FraudLabelsSchema, "fraud labels"),
}


@dataclass(frozen=True)
class SourceTables:
    """The five raw inputs, plus the optional columns each one lacked."""

    users: pa.Table
    cards: pa.Table
    transactions: pa.Table
    fraud_labels: pa.Table
    mcc_codes: pa.Table
    missing_columns: dict[str, list[str]] = field(default_factory=dict)

    def row_counts(self) -> dict[str, int]:
        return {
            "users": self.users.num_rows,
            "cards": self.cards.num_rows,
            "transactions": self.transactions.num_rows,
            "fraud_labels": self.fraud_labels.num_rows,
            "mcc_codes": self.mcc_codes.num_rows,
        }


def with_row_ids(table: pa.Table) -> pa.Table:
    """Append the source-position column (0-based)."""
    return table.append_column(
        schema.ROW_ID, pa.array(range(table.num_rows), type=pa.int64())
    )


def check_columns(
    name: str,
    columns: list[str],
    table_schema: type[schema.Schema],
) -> list[str]:
    """Compare loaded columns against the expected schema.

    Returns:
        Names of optional expected columns that are absent.

    Raises:
        MissingColumnError: If a required column is absent.
    """
    present = set(columns)
    missing_required = [c for c in table_schema.required_names() if c not in present]
    if missing_required:
        raise errors.MissingColumnError(name, missing_required)

    missing = [c for c in table_schema.field_names() if c not in present]
    for column in missing:
        logger.warning(
            "Source '%s' has no '%s' column; transforms using it are skipped",
            name,
            column,
        )
    return missing


def fill_null_types(table: pa.Table, table_schema: type[schema.Schema]) -> pa.Table:
    """Give columns with no values at all a concrete type.

    PyArrow reads an all-empty column (or any column of a header-only file)
    as the ``null`` type, which DuckDB cannot store. Such columns take the
    schema's ``dtype`` for that column, or ``string`` if it is not declared.
    """
    if not any(pa.types.is_null(f.type) for f in table.schema):
        return table

    dtypes = {name: f.dtype for name, f in table_schema.fields()}
    fields = [
        pa.field(f.name, pa.type_for_alias(dtypes.get(f.name, "string")))
        if pa.types.is_null(f.type)
        else f
        for f in table.schema
    ]
    return table.cast(pa.schema(fields))


def load_csv(name: str, path: Path, table_schema: type[schema.Schema]) -> tuple[pa.Table, list[str]]:
    """Read a comma-delimited file with a header row.

    Empty fields are read as null. Column types are inferred by PyArrow;
    currency and ``MM/YYYY`` columns stay text for the normalizer.

    Returns:
        Tuple of (table with row ids, missing optional columns).
    """
    if not path.is_file():
        raise errors.SourceNotFoundError(name, str(path))

    try:
        table = pacsv.read_csv(
            str(path),
            convert_options=pacsv.ConvertOptions(strings_can_be_null=True),
        )
    except (pa.ArrowInvalid, OSError) as e:
        raise errors.SourceParseError(name, str(path), str(e)) from e

    missing = check_columns(name, table.column_names, table_schema)
    table = fill_null_types(table, table_schema)
    logger.info(
        "Loaded %s: %s rows, %d columns", name, f"{table.num_rows:,}", table.num_columns
    )
    return with_row_ids(table), missing


def load_mcc_codes(path: Path) -> pa.Table:
    """Read the MCC reference: a JSON object of code -> description.

    Codes stay text here; the normalizer converts them to integers so they
    join against ``transactions.mcc``.
    """
    name = "mcc codes"
    if not path.is_file():
        raise errors.SourceNotFoundError(name, str(path))

    try:
        with path.open(encoding="utf-8") as f:
            mapping = json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise errors.SourceParseError(name, str(path), f"Malformed JSON: {e}") from e

    if not isinstance(mapping, dict):
        raise errors.SourceParseError(
            name,
            str(path),
            f"Expected a JSON object mapping code to description, got {type(mapping).__name__}",
        )

    table = pa.table(
        {
            "mcc_code": pa.array([str(k) for k in mapping], type=pa.string()),
            "description": pa.array(
                [None if v is None else str(v) for v in mapping.values()],
                type=pa.string(),
            ),
        }
    )
    logger.info("Loaded %s: %s codes", name, f"{table.num_rows:,}")
    return with_row_ids(table)


def load_sources(settings: settings_mod.SourcesSettings) -> SourceTables:
    """Load every input named in ``settings``.

    Raises:
        SourceNotFoundError: If a file is missing.
        SourceParseError: If a file cannot be parsed.
        MissingColumnError: If a key column is absent.
    """
    tables: dict[str, pa.Table] = {}
    missing_columns: dict[str, list[str]] = {}

    for field_name, (table_schema, display) in CSV_SOURCES.items():
        table, missing = load_csv(display, settings.path(field_name), table_schema)
        tables[field_name] = table
        if missing:
            missing_columns[field_name] = missing

    return SourceTables(
        users=tables["users"],
        cards=tables["cards"],
        transactions=tables["transactions"],
        fraud_labels=tables["fraud_labels"],
        mcc_codes=load_mcc_codes(settings.path("mcc_codes")),
        missing_columns=missing_columns,
    )

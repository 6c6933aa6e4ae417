"""Pipeline driver: load, normalize, join, aggregate, validate, write.

The driver owns every intermediate table and threads it explicitly from
stage to stage. Normalized tables are materialized on the DuckDB
connection once, so their row counts and both downstream branches read
stored rows instead of recomputing the cleaning rules.

Nothing is written until both outputs are computed and validated: a
failure at any stage leaves the output directory untouched.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

import pyarrow as pa
import pyarrow.compute as pc
import pydantic as pdt

import finprep.aggregate as aggregate
import finprep.errors as errors
import finprep.joins as joins
import finprep.normalize as normalize
import finprep.quality as quality
import finprep.schema as schema
import finprep.settings as settings_mod
import finprep.sources as sources
import finprep.writer as writer

if TYPE_CHECKING:
    import ibis.expr.types as ir

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StageCount:
    """Row count of a table after a pipeline stage."""

    stage: str
    rows: int


@dataclass
class PipelineResult:
    """Outputs and diagnostics of a pipeline run."""

    fraud_detection: pa.Table
    credit_limit: pa.Table
    stage_counts: list[StageCount] = field(default_factory=list)
    missing_columns: dict[str, list[str]] = field(default_factory=dict)
    validations: list[quality.TableValidationResult] = field(default_factory=list)
    written: list[Path] = field(default_factory=list)

    @property
    def fraud_rate(self) -> float | None:
        """Share of fraud-detection rows labeled exactly 'Yes'."""
        rows = self.fraud_detection.num_rows
        if rows == 0:
            return None
        target = self.fraud_detection.column(joins.TARGET_COLUMN)
        frauds = pc.sum(pc.equal(target, "Yes")).as_py() or 0
        return frauds / rows

    @property
    def validation_passed(self) -> bool:
        return all(v.passed for v in self.validations)

    def rows_after(self, stage: str) -> int | None:
        for count in self.stage_counts:
            if count.stage == stage:
                return count.rows
        return None


def finalize(data: pa.Table) -> pa.Table:
    """Restore source order and remove the row-id column."""
    if schema.ROW_ID not in data.column_names:
        return data
    return data.sort_by(schema.ROW_ID).drop_columns([schema.ROW_ID])


class Pipeline(pdt.BaseModel, strict=True, frozen=True, extra="forbid"):
    """One-shot batch transform from raw exports to the two datasets.

    Example:
        result = Pipeline(settings=load_settings()).run()
        result.credit_limit.num_rows
    """

    settings: settings_mod.FinprepSettings = pdt.Field(
        default_factory=settings_mod.FinprepSettings
    )

    def load(self) -> sources.SourceTables:
        """Load all inputs. Any failure aborts the run."""
        return sources.load_sources(self.settings.sources)

    def transform(self, raw: sources.SourceTables) -> PipelineResult:
        """Normalize, aggregate and join the raw tables into both outputs."""
        backend = self.settings.compute
        conn = backend.connect()
        counts: list[StageCount] = []

        def stage(name: str, expr: ir.Table) -> ir.Table:
            table = backend.register(conn, name, expr)
            rows = backend.count(conn, table)
            counts.append(StageCount(stage=name, rows=rows))
            logger.info("Cleaned %s: %s rows", name, f"{rows:,}")
            return table

        try:
            users = stage(
                "users",
                normalize.normalize_users(backend.register(conn, "raw_users", raw.users)),
            )
            cards = stage(
                "cards",
                normalize.normalize_cards(backend.register(conn, "raw_cards", raw.cards)),
            )
            transactions = stage(
                "transactions",
                normalize.normalize_transactions(
                    backend.register(conn, "raw_transactions", raw.transactions)
                ),
            )
            fraud_labels = stage(
                "fraud_labels",
                normalize.normalize_fraud_labels(
                    backend.register(conn, "raw_fraud_labels", raw.fraud_labels)
                ),
            )
            mcc_codes = stage(
                "mcc_codes",
                normalize.normalize_mcc_codes(
                    backend.register(conn, "raw_mcc_codes", raw.mcc_codes)
                ),
            )

            card_aggregates = stage(
                "card_aggregates",
                aggregate.aggregate_card_transactions(transactions),
            )

            fraud_detection = finalize(
                backend.execute(
                    conn,
                    joins.build_fraud_detection(
                        transactions, fraud_labels, mcc_codes, cards, users
                    ),
                )
            )
            credit_limit = finalize(
                backend.execute(
                    conn,
                    joins.build_credit_limit(cards, users, card_aggregates),
                )
            )
        finally:
            conn.disconnect()

        for name, data in (
            ("fraud_detection", fraud_detection),
            ("credit_limit", credit_limit),
        ):
            counts.append(StageCount(stage=name, rows=data.num_rows))
            logger.info(
                "Built %s: %s rows, %d columns",
                name,
                f"{data.num_rows:,}",
                data.num_columns,
            )

        return PipelineResult(
            fraud_detection=fraud_detection,
            credit_limit=credit_limit,
            stage_counts=counts,
            missing_columns=dict(raw.missing_columns),
        )

    def validate(self, result: PipelineResult) -> list[quality.TableValidationResult]:
        """Check output constraints.

        Raises:
            QualityError: On the first failing table when on_violation is "fail".
        """
        validations = [
            quality.validate_table(
                "fraud_detection", result.fraud_detection, schema.FraudDetectionSchema
            ),
            quality.validate_table(
                "credit_limit", result.credit_limit, schema.CreditLimitSchema
            ),
        ]
        for validation in validations:
            if validation.passed:
                continue
            if self.settings.quality.on_violation == "fail":
                raise errors.QualityError(
                    validation.table_name, validation.failure_messages()
                )
            for message in validation.failure_messages():
                logger.warning("Quality check failed on '%s': %s", validation.table_name, message)
        return validations

    def run(self, write: bool = True) -> PipelineResult:
        """Execute the whole pipeline.

        Args:
            write: Persist the outputs. False computes and validates only.

        Raises:
            FinprepError: Source, quality or write failures.
        """
        raw = self.load()
        result = self.transform(raw)

        rate = result.fraud_rate
        if rate is not None:
            logger.info("Fraud rate: %.2f%%", rate * 100)

        if self.settings.quality.enabled:
            result.validations = self.validate(result)

        if write:
            result.written = writer.write_outputs(
                self.settings.outputs,
                result.fraud_detection,
                result.credit_limit,
            )
        return result

    def check(self) -> sources.SourceTables:
        """Load the sources only, reporting counts and schema drift."""
        raw = self.load()
        for name, rows in raw.row_counts().items():
            logger.info("Source %s: %s rows", name, f"{rows:,}")
        return raw
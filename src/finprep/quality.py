"""Constraint checks for the output datasets.

Evaluates Field constraints (not_null, unique, gt, allowed_values) against
PyArrow tables with PyArrow compute. The pipeline runs these after both
outputs are computed and before either is written, so a failing run
leaves no partial output behind.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import pyarrow as pa
import pyarrow.compute as pc

import finprep.schema as schema


@dataclass(frozen=True)
class ConstraintResult:
    """Result of a single constraint check."""

    field_name: str
    constraint: str  # "present", "not_null", "unique", "gt", "allowed_values"
    passed: bool
    expected: str
    actual: str
    rows_checked: int
    rows_failed: int


@dataclass(frozen=True)
class TableValidationResult:
    """Complete validation result for a table."""

    table_name: str
    results: list[ConstraintResult]
    rows_checked: int

    @property
    def passed(self) -> bool:
        return all(r.passed for r in self.results)

    @property
    def failures(self) -> list[ConstraintResult]:
        return [r for r in self.results if not r.passed]

    def failure_messages(self) -> list[str]:
        return [
            f"{r.field_name} {r.constraint}: expected {r.expected}, got {r.actual}"
            for r in self.failures
        ]


class PyArrowConstraintChecker:
    """Constraint checker using PyArrow compute for in-memory validation."""

    def check_not_null(self, column: Any, field_name: str, rows_checked: int) -> ConstraintResult:
        null_count = column.null_count
        pct = (null_count / rows_checked * 100) if rows_checked > 0 else 0

        return ConstraintResult(
            field_name=field_name,
            constraint="not_null",
            passed=null_count == 0,
            expected="no nulls",
            actual=f"{null_count} nulls ({pct:.1f}%)",
            rows_checked=rows_checked,
            rows_failed=null_count,
        )

    def check_unique(self, column: Any, field_name: str, rows_checked: int) -> ConstraintResult:
        valid = pc.drop_null(column)
        distinct = pc.count_distinct(valid).as_py()
        duplicates = len(valid) - distinct

        return ConstraintResult(
            field_name=field_name,
            constraint="unique",
            passed=duplicates == 0,
            expected="no duplicate values",
            actual=f"{duplicates} duplicates",
            rows_checked=rows_checked,
            rows_failed=duplicates,
        )

    def check_gt(
        self,
        column: Any,
        threshold: float,
        field_name: str,
        rows_checked: int,
    ) -> ConstraintResult:
        valid = pc.drop_null(column)
        if len(valid) == 0:
            return ConstraintResult(
                field_name=field_name,
                constraint="gt",
                passed=True,
                expected=f"> {threshold}",
                actual="no non-null values",
                rows_checked=rows_checked,
                rows_failed=0,
            )

        min_val = pc.min(valid).as_py()
        rows_failed = pc.sum(pc.less_equal(valid, threshold)).as_py()

        return ConstraintResult(
            field_name=field_name,
            constraint="gt",
            passed=rows_failed == 0,
            expected=f"> {threshold}",
            actual=f"min={min_val}",
            rows_checked=rows_checked,
            rows_failed=rows_failed,
        )

    def check_allowed_values(
        self,
        column: Any,
        values: list,
        field_name: str,
        rows_checked: int,
    ) -> ConstraintResult:
        valid = pc.drop_null(column)
        if len(valid) == 0:
            rows_failed = 0
        else:
            value_set = pa.array(values, type=valid.type)
            rows_failed = pc.sum(pc.invert(pc.is_in(valid, value_set=value_set))).as_py()

        return ConstraintResult(
            field_name=field_name,
            constraint="allowed_values",
            passed=rows_failed == 0,
            expected=f"in {values}",
            actual=f"{rows_failed} invalid values",
            rows_checked=rows_checked,
            rows_failed=rows_failed,
        )


def validate_table(
    table_name: str,
    data: pa.Table,
    table_schema: type[schema.Schema],
    checker: PyArrowConstraintChecker | None = None,
) -> TableValidationResult:
    """Check every constrained field of ``table_schema`` against ``data``.

    A constrained column missing from ``data`` fails a "present" check.
    """
    checker = checker or PyArrowConstraintChecker()
    rows = data.num_rows
    results: list[ConstraintResult] = []

    for name, field in table_schema.fields():
        if not field.has_constraints:
            continue

        if name not in data.column_names:
            results.append(
                ConstraintResult(
                    field_name=name,
                    constraint="present",
                    passed=False,
                    expected="column present",
                    actual="column missing",
                    rows_checked=rows,
                    rows_failed=rows,
                )
            )
            continue

        column = data.column(name)
        if field.not_null:
            results.append(checker.check_not_null(column, name, rows))
        if field.unique:
            results.append(checker.check_unique(column, name, rows))
        if field.gt is not None:
            results.append(checker.check_gt(column, field.gt, name, rows))
        if field.allowed_values is not None:
            results.append(
                checker.check_allowed_values(column, field.allowed_values, name, rows)
            )

    return TableValidationResult(table_name=table_name, results=results, rows_checked=rows)

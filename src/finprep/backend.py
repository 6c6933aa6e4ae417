"""DuckDB compute backend -- wraps an Ibis DuckDB connection.

Ibis is the compute abstraction: the normalizer, joiner and aggregator
build backend-agnostic expressions, and the backend handles the
connection, table registration and execution. Results come back as
PyArrow tables.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal

import pyarrow as pa
import pydantic as pdt

if TYPE_CHECKING:
    import ibis
    import ibis.expr.types as ir


class DuckDBBackend(pdt.BaseModel, strict=True, frozen=True, extra="forbid"):
    """In-process DuckDB engine.

    Configuration examples:
        In memory (default):
            DuckDBBackend()

        Bounded resources:
            DuckDBBackend(threads=4, memory_limit="8GB")

        Spill to a database file:
            DuckDBBackend(database=".finprep/work.duckdb")
    """

    kind: Literal["duckdb"] = "duckdb"
    database: str = ":memory:"
    threads: int | None = None
    memory_limit: str | None = None

    def connect(self) -> "ibis.BaseBackend":
        """Create an Ibis DuckDB connection with the configured limits."""
        import ibis

        config: dict[str, object] = {}
        if self.threads is not None:
            config["threads"] = self.threads
        if self.memory_limit is not None:
            config["memory_limit"] = self.memory_limit

        return ibis.duckdb.connect(database=self.database, **config)

    def register(
        self,
        conn: "ibis.BaseBackend",
        name: str,
        data: pa.Table | "ir.Table",
    ) -> "ir.Table":
        """Store a PyArrow table or an expression result as a named table.

        Registering an expression materializes it, so later stages read
        the stored rows instead of recomputing the whole chain.
        """
        return conn.create_table(name, obj=data, overwrite=True)

    def execute(self, conn: "ibis.BaseBackend", expr: "ir.Table") -> pa.Table:
        return conn.to_pyarrow(expr)

    def count(self, conn: "ibis.BaseBackend", expr: "ir.Table") -> int:
        return int(conn.execute(expr.count()))

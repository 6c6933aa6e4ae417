"""Format classes for writing and reading the output datasets.

Each format owns its serialization logic; the writer only resolves paths.
Parquet is the serialized table format, CSV the plain delimited rendering.
"""

from __future__ import annotations

import abc
from pathlib import Path
from typing import Literal

import pyarrow as pa
import pyarrow.csv as pacsv
import pyarrow.parquet as pq
import pydantic as pdt
from typing_extensions import override


class BaseFormat(abc.ABC, pdt.BaseModel, frozen=True, strict=True, extra="forbid"):
    """Abstract base for output formats.

    Writes always replace whatever exists at the path and create the
    parent directory first.
    """

    kind: str
    suffix: str

    @abc.abstractmethod
    def read(self, path: Path) -> pa.Table:
        """Read a table previously written by this format."""
        ...

    @abc.abstractmethod
    def write(self, path: Path, data: pa.Table) -> None:
        """Write ``data`` to ``path``, overwriting any existing file."""
        ...


class ParquetFormat(BaseFormat):
    """Parquet columnar storage. Preserves column types exactly."""

    kind: Literal["parquet"] = "parquet"
    suffix: str = ".parquet"

    compression: Literal["snappy", "gzip", "zstd", "none"] = "snappy"

    @override
    def read(self, path: Path) -> pa.Table:
        return pq.read_table(str(path))

    @override
    def write(self, path: Path, data: pa.Table) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        pq.write_table(
            data,
            str(path),
            compression=self.compression if self.compression != "none" else None,
        )


class CsvFormat(BaseFormat):
    """Comma-delimited text with a header row.

    Types are re-inferred on read, so dates come back as date columns
    only when PyArrow recognizes them and integer-valued floats may come
    back as integers.
    """

    kind: Literal["csv"] = "csv"
    suffix: str = ".csv"

    delimiter: str = ","

    @override
    def read(self, path: Path) -> pa.Table:
        return pacsv.read_csv(
            str(path),
            parse_options=pacsv.ParseOptions(delimiter=self.delimiter),
            convert_options=pacsv.ConvertOptions(strings_can_be_null=True),
        )

    @override
    def write(self, path: Path, data: pa.Table) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        pacsv.write_csv(
            data,
            str(path),
            write_options=pacsv.WriteOptions(delimiter=self.delimiter),
        )

"""Persist the two output datasets."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

import pyarrow as pa

import finprep.errors as errors
import finprep.formats as formats

if TYPE_CHECKING:
    import finprep.settings as settings_mod

logger = logging.getLogger(__name__)


def write_table(fmt: formats.BaseFormat, path: Path, data: pa.Table) -> Path:
    """Write one table, replacing any existing file.

    Raises:
        WriteError: If the directory cannot be created or the write fails.
    """
    try:
        fmt.write(path=path, data=data)
    except OSError as e:
        raise errors.WriteError(str(path), str(e)) from e
    logger.info("Wrote %s rows to %s", f"{data.num_rows:,}", path)
    return path


def write_outputs(
    outputs: settings_mod.OutputSettings,
    fraud_detection: pa.Table,
    credit_limit: pa.Table,
) -> list[Path]:
    """Write the fraud dataset (serialized) and the credit dataset (serialized + CSV).

    Returns:
        Paths written, in write order.
    """
    return [
        write_table(outputs.format, outputs.path("fraud_detection"), fraud_detection),
        write_table(outputs.format, outputs.path("credit_limit"), credit_limit),
        write_table(formats.CsvFormat(), outputs.path("credit_limit_csv"), credit_limit),
    ]

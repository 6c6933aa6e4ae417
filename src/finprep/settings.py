"""Configuration loading and validation for finprep runs.

Configuration is read from finprep.yaml (via OmegaConf) and validated with
Pydantic. The file is optional: the defaults reproduce the fixed layout of
``Financial/`` inputs and ``CleanedDataSet/`` outputs relative to the
working directory.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

import omegaconf as oc
import pydantic as pdt
import pydantic_settings as pdts

import finprep.backend as backend
import finprep.errors as errors
import finprep.formats as formats

DEFAULT_CONFIG_PATH = Path("finprep.yaml")


class Section(pdt.BaseModel, strict=True, frozen=True, extra="forbid"):
    """Base class for one configuration section."""

    pass


class SourcesSettings(Section):
    """Where the raw exports live. File names are relative to ``directory``."""

    directory: str = "Financial"
    users: str = "users_data.csv"
    cards: str = "cards_data.csv"
    transactions: str = "transactions_data.csv"
    fraud_labels: str = "train_fraud_labels.csv"
    mcc_codes: str = "mcc_codes.json"

    def path(self, name: str) -> Path:
        """Resolve a source file by its settings field name."""
        return Path(self.directory) / getattr(self, name)


class OutputSettings(Section):
    """Where the cleaned datasets are written."""

    directory: str = "CleanedDataSet"
    fraud_detection: str = "fraud_detection_data.parquet"
    credit_limit: str = "credit_limit_data.parquet"
    credit_limit_csv: str = "credit_limit_data.csv"
    format: formats.ParquetFormat = pdt.Field(default_factory=formats.ParquetFormat)

    def path(self, name: str) -> Path:
        return Path(self.directory) / getattr(self, name)


class QualitySettings(Section):
    """Output constraint checks run before writing."""

    enabled: bool = True
    on_violation: Literal["warn", "fail"] = "fail"


class FinprepSettings(pdts.BaseSettings):
    """Root configuration.

    Environment variables override fields section by section, e.g.
    FINPREP_SOURCES__DIRECTORY=/data/raw.

    Example finprep.yaml:
        sources:
          directory: Financial
        outputs:
          directory: CleanedDataSet
          format:
            kind: parquet
            compression: zstd
        compute:
          kind: duckdb
          threads: 4
        quality:
          on_violation: warn
    """

    model_config = pdts.SettingsConfigDict(
        env_prefix="FINPREP_",
        env_nested_delimiter="__",
        strict=True,
        frozen=True,
        extra="forbid",
    )

    sources: SourcesSettings = pdt.Field(default_factory=SourcesSettings)
    outputs: OutputSettings = pdt.Field(default_factory=OutputSettings)
    compute: backend.DuckDBBackend = pdt.Field(default_factory=backend.DuckDBBackend)
    quality: QualitySettings = pdt.Field(default_factory=QualitySettings)

    def with_directories(
        self,
        input_dir: str | None = None,
        output_dir: str | None = None,
    ) -> FinprepSettings:
        """Return a copy with the input and/or output directory replaced."""
        update: dict[str, object] = {}
        if input_dir is not None:
            update["sources"] = self.sources.model_copy(update={"directory": input_dir})
        if output_dir is not None:
            update["outputs"] = self.outputs.model_copy(update={"directory": output_dir})
        return self.model_copy(update=update) if update else self

    def without_quality(self) -> FinprepSettings:
        return self.model_copy(
            update={"quality": self.quality.model_copy(update={"enabled": False})}
        )


def load_settings(path: Path | str | None = None) -> FinprepSettings:
    """Load and validate configuration.

    Args:
        path: Path to a YAML file. When None, ``finprep.yaml`` in the
            working directory is used if present, otherwise defaults.

    Returns:
        Validated FinprepSettings instance.

    Raises:
        ConfigNotFoundError: If an explicit path doesn't exist.
        ConfigValidationError: If the file fails parsing or validation.
    """
    if path is None:
        if not DEFAULT_CONFIG_PATH.exists():
            return FinprepSettings()
        path = DEFAULT_CONFIG_PATH

    path = Path(path)
    if not path.exists():
        raise errors.ConfigNotFoundError(str(path))

    try:
        config = oc.OmegaConf.load(path)
        config_dict = oc.OmegaConf.to_container(config, resolve=True) or {}
        if not isinstance(config_dict, dict):
            raise errors.ConfigValidationError(
                path=str(path),
                details="  - (root): expected a mapping of sections",
            )
        return FinprepSettings.model_validate(config_dict)
    except pdt.ValidationError as e:
        raise errors.ConfigValidationError(
            path=str(path),
            details=_format_validation_errors(e),
        ) from e
    except oc.errors.OmegaConfBaseException as e:
        raise errors.ConfigValidationError(
            path=str(path),
            details=str(e),
        ) from e


def _format_validation_errors(error: pdt.ValidationError) -> str:
    """Format Pydantic validation errors into readable messages."""
    messages = []
    for err in error.errors():
        loc = ".".join(str(x) for x in err["loc"])
        msg = err["msg"]
        messages.append(f"  - {loc}: {msg}")
    return "\n".join(messages)

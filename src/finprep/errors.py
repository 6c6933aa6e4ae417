"""Structured errors following the context + cause + fix pattern.

Every finprep error says what was being attempted, why it failed and
how to resolve it, so a failed batch run points straight at the input
or setting that needs attention.
"""

from __future__ import annotations


class FinprepError(Exception):
    """Base error with structured messaging."""

    def __init__(self, context: str, cause: str, fix: str) -> None:
        self.context = context
        self.cause = cause
        self.fix = fix
        message = f"{context}\n\nCause: {cause}\n\nFix: {fix}"
        super().__init__(message)

    def to_dict(self) -> dict:
        """Serialize error to structured dict for JSON output."""
        return {
            "error": True,
            "code": type(self).__name__,
            "context": self.context,
            "cause": self.cause,
            "fix": self.fix,
        }


class ConfigurationError(FinprepError):
    """Configuration file or settings related errors."""

    pass


class ConfigNotFoundError(ConfigurationError):
    """Configuration file not found."""

    def __init__(self, path: str) -> None:
        super().__init__(
            context=f"Loading configuration from '{path}'",
            cause="Configuration file not found",
            fix=f"Create a finprep.yaml file at '{path}' or omit --config to use the default paths",
        )


class ConfigValidationError(ConfigurationError):
    """Configuration validation failed."""

    def __init__(self, path: str, details: str) -> None:
        super().__init__(
            context=f"Validating configuration from '{path}'",
            cause=details,
            fix="Check the configuration file matches the expected schema (sources, outputs, compute, quality).",
        )


class SourceError(FinprepError):
    """Input source loading errors. Always fatal."""

    pass


class SourceNotFoundError(SourceError):
    """An input file does not exist."""

    def __init__(self, name: str, path: str) -> None:
        super().__init__(
            context=f"Loading source '{name}' from '{path}'",
            cause="Input file not found",
            fix=f"Place the file at '{path}' or point sources.directory at the folder holding the raw data",
        )


class SourceParseError(SourceError):
    """An input file exists but cannot be parsed."""

    def __init__(self, name: str, path: str, details: str) -> None:
        super().__init__(
            context=f"Parsing source '{name}' from '{path}'",
            cause=details,
            fix="Check the file is a valid export (comma-delimited CSV with a header row, or a JSON object for MCC codes)",
        )


class MissingColumnError(SourceError):
    """A required key column is absent from an input table."""

    def __init__(self, name: str, columns: list[str]) -> None:
        missing = ", ".join(columns)
        super().__init__(
            context=f"Checking columns of source '{name}'",
            cause=f"Required column(s) missing: {missing}",
            fix="Key columns cannot be skipped. Re-export the source with its original header row.",
        )


class QualityError(FinprepError):
    """Output table failed its quality constraints."""

    def __init__(self, table_name: str, failures: list[str]) -> None:
        super().__init__(
            context=f"Validating output table '{table_name}'",
            cause="Constraint(s) failed: " + "; ".join(failures),
            fix="Inspect the cleaning rules for the listed columns, or set quality.on_violation to 'warn'",
        )


class WriteError(FinprepError):
    """Writing an output file failed."""

    def __init__(self, path: str, details: str) -> None:
        super().__init__(
            context=f"Writing output to '{path}'",
            cause=details,
            fix="Check the output directory is writable and has free space",
        )

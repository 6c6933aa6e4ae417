from . import _compat as _compat  # noqa: F401  -- Python 3.14 sqlglot workaround

from .errors import FinprepError
from .pipeline import Pipeline, PipelineResult
from .settings import FinprepSettings, load_settings

__all__ = [
    # pipeline
    "Pipeline",
    "PipelineResult",
    # settings
    "FinprepSettings",
    "load_settings",
    # errors
    "FinprepError",
]

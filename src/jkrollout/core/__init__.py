"""jkrollout.core -- errors, results, logging and settings shared by every layer.

Architecture::

    errors.py      Typed error hierarchy (RolloutError) with exit-code routing
    result.py      Result[T] envelope (Ok / Err) used to chain provisioning steps
    logging.py     structlog configuration, get_logger(), LogContext
    settings.py    RolloutSettings (pydantic-settings, JKROLLOUT_* env vars)
"""

from jkrollout.core.errors import (
    ErrorCategory,
    ErrorContext,
    ExitCode,
    RolloutError,
    exit_code_for,
)
from jkrollout.core.result import Err, Ok, Result

__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "ExitCode",
    "RolloutError",
    "exit_code_for",
    "Ok",
    "Err",
    "Result",
]

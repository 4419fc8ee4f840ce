"""
Structured error types for jkrollout.

Provides a typed hierarchy of provisioning errors with the metadata the CLI
needs to classify a failure, pick a process exit code, and show the captured
diagnostic output of the external command that failed.

Every failure in a provisioning run is one of these types. Errors are carried
as values inside ``Err`` (see :mod:`jkrollout.core.result`) and only turned
into a process exit code at the CLI boundary.

Manifesto:
    - **Typed Error Hierarchy:** One class per failure cause, grouped by category
    - **Exit Codes by Category:** Automation branches on the exit code alone
    - **Diagnostics Travel With The Error:** stderr/install logs are attached
    - **Error Chaining:** The underlying OSError / TimeoutExpired is kept as cause

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                        RolloutError                              │
        │      (category, exit_code, diagnostic, context, cause)           │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  RUNTIME (3)             DETECTION (3)      INSTALL (3)          │
        │  RuntimeInvocationError  DetectionError     InstallVerification  │
        │                                               └ UnsupportedImage │
        │                                                                  │
        │  CONFLICT (2)            FILESYSTEM (4)     VALIDATION (1)       │
        │  KernelConflictError     ImageNotFound      InvalidKernelName    │
        │                          OverlayCreate      InvalidOption        │
        │                          StagingWrite       SCHEDULER (3)        │
        │                          Rename             BatchSubmitError     │
        │                          KernelNotFound                          │
        └─────────────────────────────────────────────────────────────────┘

Examples:
    >>> error = KernelConflictError("pytorch-2-9-1", "/home/u/.local/share/jupyter/kernels/pytorch-2-9-1")
    >>> error.exit_code
    2
    >>> error.category
    <ErrorCategory.CONFLICT: 'CONFLICT'>

    >>> error = RuntimeInvocationError("apptainer exec failed", diagnostic="FATAL: image corrupt")
    >>> error.summary()
    'RuntimeInvocationError: apptainer exec failed'

Tags:
    error-handling, exception-hierarchy, exit-codes, jkrollout

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any


class ErrorCategory(str, Enum):
    """
    Error categories used for classification and exit-code routing.

    Attributes:
        RUNTIME: External container runtime failed, was missing, or timed out
        DETECTION: Shim capability check was inconclusive
        INSTALL: Shim install failed or did not verify
        CONFLICT: Kernel slug already taken
        FILESYSTEM: Image, overlay, staging, or rename failures
        VALIDATION: Bad user input (display name, options)
        SCHEDULER: Batch scheduler submission failed
        INTERNAL: Bugs, unexpected state
    """

    RUNTIME = "RUNTIME"
    DETECTION = "DETECTION"
    INSTALL = "INSTALL"
    CONFLICT = "CONFLICT"
    FILESYSTEM = "FILESYSTEM"
    VALIDATION = "VALIDATION"
    SCHEDULER = "SCHEDULER"
    INTERNAL = "INTERNAL"


class ExitCode(IntEnum):
    """Process exit codes, one per failure family."""

    OK = 0
    INVALID = 1
    CONFLICT = 2
    PROVISION = 3
    FILESYSTEM = 4


_CATEGORY_EXIT_CODES: dict[ErrorCategory, ExitCode] = {
    ErrorCategory.RUNTIME: ExitCode.PROVISION,
    ErrorCategory.DETECTION: ExitCode.PROVISION,
    ErrorCategory.INSTALL: ExitCode.PROVISION,
    ErrorCategory.SCHEDULER: ExitCode.PROVISION,
    ErrorCategory.CONFLICT: ExitCode.CONFLICT,
    ErrorCategory.FILESYSTEM: ExitCode.FILESYSTEM,
    ErrorCategory.VALIDATION: ExitCode.INVALID,
    ErrorCategory.INTERNAL: ExitCode.INVALID,
}


@dataclass
class ErrorContext:
    """
    Structured metadata attached to a provisioning error.

    Only the fields relevant to a failure are set; ``to_dict()`` drops the
    rest so structured log lines stay short.

    Attributes:
        image: Image path being provisioned
        slug: Kernel slug
        overlay: Overlay directory path
        path: Filesystem path involved in the failure
        command: argv of the external command that failed
        exit_code: Exit code of the external command
        metadata: Additional key-value pairs
    """

    image: str | None = None
    slug: str | None = None
    overlay: str | None = None
    path: str | None = None
    command: list[str] | None = None
    exit_code: int | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for logging."""
        result: dict[str, Any] = {}
        for key in ["image", "slug", "overlay", "path", "command", "exit_code"]:
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.metadata:
            result.update(self.metadata)
        return result


class RolloutError(Exception):
    """
    Base exception for all jkrollout errors.

    Every RolloutError carries:
    - **category:** ErrorCategory used for exit-code routing
    - **diagnostic:** Captured output of the failing external command, if any
    - **context:** ErrorContext with structured metadata
    - **cause:** Underlying exception (OSError, TimeoutExpired, ...)

    Subclasses set ``default_category`` and, where the caller can do
    something about it, ``recoverable = True``.

    Examples:
        >>> error = RolloutError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    recoverable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        diagnostic: str | None = None,
        context: ErrorContext | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.diagnostic = diagnostic
        self.context = context or ErrorContext()
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    @property
    def exit_code(self) -> int:
        return int(_CATEGORY_EXIT_CODES.get(self.category, ExitCode.INVALID))

    def summary(self) -> str:
        """One-line classification for terminal output."""
        return f"{self.__class__.__name__}: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "exit_code": self.exit_code,
            "recoverable": self.recoverable,
        }
        context_dict = self.context.to_dict()
        if context_dict:
            result["context"] = context_dict
        if self.diagnostic:
            result["diagnostic"] = self.diagnostic
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# RUNTIME / DETECTION / INSTALL ERRORS
# =============================================================================


class RuntimeInvocationError(RolloutError):
    """
    The container runtime command failed, timed out, or could not be started.

    ``reason`` is one of ``"failed"``, ``"timed out"`` or ``"not found"``.
    ``invocation`` holds the completed call (stdout, stderr, exit code) when
    the command ran to completion. Never retried automatically.
    """

    default_category = ErrorCategory.RUNTIME

    def __init__(
        self,
        message: str,
        *,
        reason: str = "failed",
        invocation: Any = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.reason = reason
        self.invocation = invocation

    @property
    def timed_out(self) -> bool:
        return self.reason == "timed out"

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["reason"] = self.reason
        return result


class DetectionError(RolloutError):
    """Shim capability check was inconclusive (distinct from "absent")."""

    default_category = ErrorCategory.DETECTION


class InstallVerificationError(RolloutError):
    """Shim install failed, or the shim is still absent after installing."""

    default_category = ErrorCategory.INSTALL


class UnsupportedImageError(InstallVerificationError):
    """Image has no interpreter or package manager usable for the shim install."""


# =============================================================================
# CONFLICT ERRORS
# =============================================================================


class KernelConflictError(RolloutError):
    """Kernel slug already exists and ``force`` was not given."""

    default_category = ErrorCategory.CONFLICT
    recoverable = True

    def __init__(self, slug: str, path: str, message: str | None = None, **kwargs: Any):
        self.slug = slug
        self.path = path
        super().__init__(
            message or f"Kernel '{slug}' already exists at {path} (use --force or another name)",
            **kwargs,
        )
        self.context.slug = slug
        self.context.path = path


# =============================================================================
# FILESYSTEM ERRORS
# =============================================================================


class FilesystemError(RolloutError):
    """Filesystem fault; surfaced with the underlying OS error."""

    default_category = ErrorCategory.FILESYSTEM


class ImageNotFoundError(FilesystemError):
    """Image file does not exist or is not readable."""

    def __init__(self, image: str, message: str | None = None, **kwargs: Any):
        self.image = image
        super().__init__(message or f"Image not found or not readable: {image}", **kwargs)
        self.context.image = image


class OverlayCreateError(FilesystemError):
    """Overlay (or bind source) directory could not be created or is not writable."""


class StagingWriteError(FilesystemError):
    """Writing the staged kernel directory failed (disk full, permissions)."""


class RenameError(FilesystemError):
    """Atomic rename of the staging directory onto the target failed."""


class KernelNotFoundError(FilesystemError):
    """No kernel with the given slug exists in the kernel directory."""

    def __init__(self, slug: str, message: str | None = None, **kwargs: Any):
        self.slug = slug
        super().__init__(message or f"Kernel not found: {slug}", **kwargs)
        self.context.slug = slug


# =============================================================================
# VALIDATION / SCHEDULER ERRORS
# =============================================================================


class InvalidKernelNameError(RolloutError):
    """Display name does not produce a usable slug."""

    default_category = ErrorCategory.VALIDATION

    def __init__(self, display_name: str, message: str | None = None, **kwargs: Any):
        self.display_name = display_name
        super().__init__(
            message or f"Display name {display_name!r} has no alphanumeric characters",
            **kwargs,
        )


class InvalidOptionError(RolloutError):
    """A command-line option value is out of range or malformed."""

    default_category = ErrorCategory.VALIDATION


class BatchSubmitError(RolloutError):
    """sbatch rejected the job or could not be run."""

    default_category = ErrorCategory.SCHEDULER


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def exit_code_for(error: Exception) -> int:
    """Map any exception to a process exit code."""
    if isinstance(error, RolloutError):
        return error.exit_code
    return int(ExitCode.INVALID)


__all__ = [
    "ErrorCategory",
    "ExitCode",
    "ErrorContext",
    "RolloutError",
    "RuntimeInvocationError",
    "DetectionError",
    "InstallVerificationError",
    "UnsupportedImageError",
    "KernelConflictError",
    "FilesystemError",
    "ImageNotFoundError",
    "OverlayCreateError",
    "StagingWriteError",
    "RenameError",
    "KernelNotFoundError",
    "InvalidKernelNameError",
    "InvalidOptionError",
    "BatchSubmitError",
    "exit_code_for",
]

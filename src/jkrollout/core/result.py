"""
Result envelope for provisioning steps.

Every provisioning step (invoke runtime, detect shim, install shim, write
kernel spec) returns ``Ok[T]`` on success or ``Err[T]`` carrying a
:class:`~jkrollout.core.errors.RolloutError`. Steps are composed with
``flat_map`` so the first failure short-circuits the rest of the run and the
CLI maps the error to an exit code in one place.

Manifesto:
    - **Explicit over Implicit:** A step's failure modes are part of its return type
    - **Early exit:** An Err flows through the remaining steps untouched
    - **No half-configured kernels:** Nothing after a failed step runs

Architecture:
    ::

        check_image ──► resolve_overlay ──► ensure_shim ──► write_kernel_spec
             │                │                  │                 │
             └── Err ─────────┴──── Err ─────────┴────── Err ──────┴──► CLI exit code

Usage:
    from jkrollout.core.result import Result, Ok, Err

    result = (
        check_image(path)
        .flat_map(lambda image: installer.ensure_shim(image, overlay))
        .flat_map(lambda _: writer.write_kernel_spec(request))
    )
    match result:
        case Ok(path):
            print(path)
        case Err(error):
            raise typer.Exit(exit_code_for(error))

Tags:
    result-pattern, error-handling, functional-programming, jkrollout
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

from jkrollout.core.errors import RolloutError


T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """
    Successful result containing a value.

    Examples:
        >>> Ok(10).map(lambda x: x * 2).unwrap()
        20
        >>> Ok(5).flat_map(lambda x: Err(ValueError("no"))).is_err()
        True
    """

    value: T

    def is_ok(self) -> bool:
        return True

    def is_err(self) -> bool:
        return False

    def unwrap(self) -> T:
        """Get the value. Safe for Ok."""
        return self.value

    def map(self, f: Callable[[T], U]) -> Result[U]:
        """Transform the value if Ok."""
        return Ok(f(self.value))

    def flat_map(self, f: Callable[[T], Result[U]]) -> Result[U]:
        """Chain to another Result-returning function."""
        return f(self.value)

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[T]):
    """
    Failed result containing an error.

    ``map`` and ``flat_map`` return the same error unchanged, so a failed
    step aborts the rest of the chain without raising.

    Examples:
        >>> Err(ValueError("x")).map(lambda x: x * 2).is_err()
        True
        >>> Err(ValueError("x")).flat_map(lambda x: Ok(x)).error
        ValueError('x')
    """

    error: Exception

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> T:
        """Raise the error. Use only when you're sure it's Ok."""
        raise self.error

    def map(self, f: Callable[[T], U]) -> Result[U]:
        """No-op for Err."""
        return Err(self.error)

    def flat_map(self, f: Callable[[T], Result[U]]) -> Result[U]:
        """No-op for Err."""
        return Err(self.error)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        if isinstance(self.error, RolloutError):
            return {"ok": False, "error": self.error.to_dict()}
        return {
            "ok": False,
            "error": {
                "error_type": type(self.error).__name__,
                "message": str(self.error),
            },
        }

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


# Type alias for Result
Result = Ok[T] | Err[T]


def try_result_with(
    f: Callable[[], T],
    error_mapper: Callable[[Exception], Exception] | None = None,
    *,
    catch: tuple[type[Exception], ...] = (Exception,),
) -> Result[T]:
    """
    Execute ``f`` and map the exceptions listed in ``catch`` to an Err.

    Bridges OS-level calls (``os.rename``, ``Path.mkdir``) into the Result
    chain. Exceptions outside ``catch`` propagate as usual.

    Examples:
        >>> from jkrollout.core.errors import StagingWriteError
        >>> result = try_result_with(
        ...     lambda: 1 / 0,
        ...     lambda e: StagingWriteError(f"write failed: {e}", cause=e),
        ...     catch=(ZeroDivisionError,),
        ... )
        >>> type(result.error).__name__
        'StagingWriteError'

    Args:
        f: Zero-argument callable that may raise
        error_mapper: Optional function turning the caught exception into a RolloutError
        catch: Exception types to convert

    Returns:
        Ok with the return value, or Err with the (mapped) exception
    """
    try:
        return Ok(f())
    except catch as e:
        if error_mapper is not None:
            return Err(error_mapper(e))
        return Err(e)


__all__ = [
    "Result",
    "Ok",
    "Err",
    "try_result_with",
]

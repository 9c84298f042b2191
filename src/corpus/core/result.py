"""
Result envelope for consistent success/failure handling.

Every public store and backend operation returns ``Ok[T]`` on success or
``Err[T]`` carrying a ``CorpusError`` on failure. Expected conditions
(missing versions, undecodable bytes, storage faults) never surface as
exceptions, so a caller cannot forget to handle them.

Manifesto:
    - **Explicit over Implicit:** No hidden exceptions that callers might miss
    - **Functional composition:** Chain with map/flat_map without nested
      try/except blocks
    - **Errors keep their type:** ``Err.error`` is a ``CorpusError`` whose
      ``kind`` drives the caller's branch

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────┐
        │                     Result[T]                                │
        ├─────────────────┬─────────────────┬─────────────────────────┤
        │     Ok[T]       │     Err[T]      │     Utilities           │
        ├─────────────────┼─────────────────┼─────────────────────────┤
        │ • value: T      │ • error: Exc    │ • try_result()          │
        │ • map()         │ • map_err()     │ • try_result_with()     │
        │ • flat_map()    │ • unwrap_or()   │ • collect_results()     │
        │ • unwrap()      │ • inspect_err() │                         │
        └─────────────────┴─────────────────┴─────────────────────────┘

Examples:
    >>> from corpus.core.result import Ok, Err, Result
    >>> match Ok(5).map(lambda x: x * 2):
    ...     case Ok(value):
    ...         print(value)
    ...     case Err(error):
    ...         print(error)
    10

    >>> Err(ValueError("oops")).map(lambda x: x * 2).unwrap_or(0)
    0

Guardrails:
    ❌ DON'T: Use unwrap() without checking is_ok() first
    ✅ DO: Use pattern matching or unwrap_or() for safe extraction

Tags:
    result-pattern, error-handling, corpus
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

from corpus.core.errors import CorpusError

T = TypeVar("T")
U = TypeVar("U")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """
    Successful result containing a value.

    Immutable (frozen dataclass). ``map`` and ``flat_map`` transform the value
    while staying inside the Result context.

    Examples:
        >>> Ok(10).map(lambda x: x + 1).unwrap()
        11
        >>> Ok(3).flat_map(lambda x: Err(ValueError("odd"))).is_err()
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

    def unwrap_or(self, default: T) -> T:
        return self.value

    def map(self, f: Callable[[T], U]) -> Result[U]:
        """Transform the value if Ok."""
        return Ok(f(self.value))

    def flat_map(self, f: Callable[[T], Result[U]]) -> Result[U]:
        """Chain to another Result-returning function."""
        return f(self.value)

    def map_err(self, f: Callable[[Exception], Exception]) -> Result[T]:
        return self

    def inspect_err(self, f: Callable[[Exception], None]) -> Result[T]:
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {"ok": True, "value": self.value}

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[T]):
    """
    Failed result containing an error.

    Short-circuits ``map`` and ``flat_map``: the same error flows through a
    chain unchanged until someone inspects it.

    Examples:
        >>> err = Err(ValueError("something went wrong"))
        >>> err.is_err()
        True
        >>> err.unwrap_or("default")
        'default'
    """

    error: Exception

    def is_ok(self) -> bool:
        return False

    def is_err(self) -> bool:
        return True

    def unwrap(self) -> T:
        """Raise the error. Use only when you're sure it's Ok."""
        raise self.error

    def unwrap_or(self, default: T) -> T:
        return default

    def map(self, f: Callable[[T], U]) -> Result[U]:
        """No-op for Err."""
        return Err(self.error)

    def flat_map(self, f: Callable[[T], Result[U]]) -> Result[U]:
        """No-op for Err."""
        return Err(self.error)

    def map_err(self, f: Callable[[Exception], Exception]) -> Result[T]:
        """Transform the error."""
        return Err(f(self.error))

    def inspect_err(self, f: Callable[[Exception], None]) -> Result[T]:
        """Call f with error for side effects, return self."""
        f(self.error)
        return self

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for serialization."""
        if isinstance(self.error, CorpusError):
            return {"ok": False, "error": self.error.to_dict()}
        return {
            "ok": False,
            "error": {
                "type": type(self.error).__name__,
                "message": str(self.error),
            },
        }

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


# Type alias for Result
Result = Ok[T] | Err[T]


# =============================================================================
# RESULT CONSTRUCTORS AND UTILITIES
# =============================================================================


def try_result(f: Callable[[], T]) -> Result[T]:
    """
    Execute a function and wrap its outcome in a Result.

    Bridge between exception-throwing third-party code and Result-returning
    code.

    Examples:
        >>> import json
        >>> try_result(lambda: json.loads('{"a": 1}')).unwrap()
        {'a': 1}
        >>> try_result(lambda: json.loads('invalid')).is_err()
        True
    """
    try:
        return Ok(f())
    except Exception as e:
        return Err(e)


def try_result_with(
    f: Callable[[], T],
    error_mapper: Callable[[Exception], Exception] | None = None,
) -> Result[T]:
    """
    Like ``try_result`` but converts the exception with ``error_mapper``.

    Examples:
        >>> from corpus.core.errors import InvalidContentError
        >>> r = try_result_with(lambda: int("x"), lambda e: InvalidContentError(str(e)))
        >>> r.error.kind.value
        'invalid_content'
    """
    try:
        return Ok(f())
    except Exception as e:
        if error_mapper:
            return Err(error_mapper(e))
        return Err(e)


def collect_results(results: list[Result[T]]) -> Result[list[T]]:
    """
    Collect a list of Results into a Result of list. First error wins.

    Examples:
        >>> collect_results([Ok(1), Ok(2), Ok(3)]).unwrap()
        [1, 2, 3]
        >>> collect_results([Ok(1), Err(ValueError("a")), Err(ValueError("b"))]).error.args[0]
        'a'
        >>> collect_results([]).unwrap()
        []
    """
    values: list[T] = []
    for result in results:
        if isinstance(result, Err):
            return Err(result.error)
        values.append(result.value)
    return Ok(values)


__all__ = [
    "Ok",
    "Err",
    "Result",
    "try_result",
    "try_result_with",
    "collect_results",
]

# Centralized error handling utilities
"""
Error taxonomy for the analysis pipeline.

This module defines:
- Exception classes for each failure the accelerator pipeline can report
- A decorator / context manager that turns library exceptions into them
- A helper for rendering errors for callers
"""

import functools
import traceback
from typing import Any, Callable, Optional, Type, TypeVar, Union
from enum import Enum

from .logger import get_logger

logger = get_logger(__name__)

# Type variable for generic function signatures
F = TypeVar('F', bound=Callable[..., Any])


class ErrorCategory(Enum):
    """Categories of errors for consistent handling."""
    USER_INPUT = "user_input"        # Caller passed an unusable image
    RESOURCE = "resource"            # Buffer / texture allocation
    GPU = "gpu"                      # Encoding or execution on the accelerator
    CANCELLED = "cancelled"          # Caller withdrew the request
    FATAL = "fatal"                  # Pipeline unusable for the process lifetime


class AnalysisError(Exception):
    """Base exception for all pipeline errors."""

    category = ErrorCategory.GPU

    def __init__(
        self,
        message: str,
        category: Optional[ErrorCategory] = None,
        original_error: Optional[BaseException] = None,
        user_message: Optional[str] = None,
    ):
        super().__init__(message)
        if category is not None:
            self.category = category
        self.original_error = original_error
        self.user_message = user_message or message

    @property
    def is_fatal(self) -> bool:
        return self.category is ErrorCategory.FATAL

    def __str__(self) -> str:
        if self.original_error:
            return f"{self.args[0]} (caused by: {type(self.original_error).__name__})"
        return self.args[0]


class AcceleratorUnavailable(AnalysisError):
    """No compatible compute device could be acquired."""

    category = ErrorCategory.FATAL

    def __init__(self, message: str, attempted: tuple = (), **kwargs):
        kwargs.setdefault(
            "user_message",
            "Image analysis is unavailable on this device.",
        )
        super().__init__(message, **kwargs)
        self.attempted = tuple(attempted)


class KernelCompilationFailed(AnalysisError):
    """A kernel program could not be built on the acquired device."""

    category = ErrorCategory.FATAL

    def __init__(self, message: str, kernel: Optional[str] = None, **kwargs):
        kwargs.setdefault(
            "user_message",
            "Image analysis is unavailable on this device.",
        )
        super().__init__(message, **kwargs)
        self.kernel = kernel


class InvalidImage(AnalysisError):
    """The caller's pixel buffer is empty or has an unusable shape."""

    category = ErrorCategory.USER_INPUT

    def __init__(self, message: str, shape: Optional[tuple] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.shape = shape


class BufferAllocationFailed(AnalysisError):
    """Input or output image buffer could not be allocated."""

    category = ErrorCategory.RESOURCE

    def __init__(self, message: str, size: Optional[tuple] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.size = size


class DispatchEncodingFailed(AnalysisError):
    """Recording the kernel dispatch into a command buffer failed."""

    category = ErrorCategory.GPU


class ComputationFailed(AnalysisError):
    """The accelerator reported a failure while executing or reading back."""

    category = ErrorCategory.GPU


class AnalysisCancelled(AnalysisError):
    """A queued analysis was cancelled before its next dispatch started."""

    category = ErrorCategory.CANCELLED


class _TranslateErrors:
    """Callable that works both as decorator and as context manager."""

    def __init__(self, error_cls: Type[AnalysisError], step: str, **error_kwargs: Any):
        self.error_cls = error_cls
        self.step = step
        self.error_kwargs = error_kwargs

    def _wrap(self, exc: BaseException) -> AnalysisError:
        logger.error("%s failed: %s", self.step, exc)
        logger.debug("Full traceback:\n%s", traceback.format_exc())
        return self.error_cls(
            f"{self.step} failed: {exc}",
            original_error=exc,
            **self.error_kwargs,
        )

    def __call__(self, func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except AnalysisError:
                raise
            except Exception as e:
                raise self._wrap(e) from e

        return wrapper  # type: ignore

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None or issubclass(exc_type, AnalysisError):
            return False
        if not issubclass(exc_type, Exception):
            return False
        raise self._wrap(exc_val) from exc_val


def translate_errors(
    error_cls: Type[AnalysisError],
    step: str,
    **error_kwargs: Any,
) -> _TranslateErrors:
    """
    Re-raise any non-pipeline exception as ``error_cls``.

    Pipeline errors pass through untouched so that an inner, more specific
    error is never re-labelled by an outer step.

    Example:
        with translate_errors(BufferAllocationFailed, "allocating output", size=(w, h)):
            texture = device.create_texture(...)

        @translate_errors(KernelCompilationFailed, "compiling shader")
        def compile(...):
            ...
    """
    return _TranslateErrors(error_cls, step, **error_kwargs)


def format_user_error(error: Union[Exception, str], context: Optional[str] = None) -> str:
    """
    Format an error message for user display.

    Args:
        error: The error or error message.
        context: Optional context about what operation failed.

    Returns:
        User-friendly error message.
    """
    if isinstance(error, AnalysisError):
        return error.user_message

    error_str = str(error)

    if "out of memory" in error_str.lower():
        return "Not enough memory to complete this operation. Try with a smaller image."

    # Generic fallback
    if context:
        return f"Error {context}: {error_str}"
    return f"An error occurred: {error_str}"

# This file makes the 'utils' directory a Python package.

from .errors import (
    AnalysisError,
    AcceleratorUnavailable,
    KernelCompilationFailed,
    InvalidImage,
    BufferAllocationFailed,
    DispatchEncodingFailed,
    ComputationFailed,
    AnalysisCancelled,
    ErrorCategory,
    translate_errors,
    format_user_error,
)
from .gpu_device import AcceleratorContext

__all__ = [
    # Errors
    'AnalysisError',
    'AcceleratorUnavailable',
    'KernelCompilationFailed',
    'InvalidImage',
    'BufferAllocationFailed',
    'DispatchEncodingFailed',
    'ComputationFailed',
    'AnalysisCancelled',
    'ErrorCategory',
    'translate_errors',
    'format_user_error',
    # Accelerator
    'AcceleratorContext',
]

"""
Infrastructure Monitoring Module

Structured logging for the authentication service: JSON or text output,
correlation IDs, and masking of passwords, codes and tokens.
"""

from .logging import (
    SensitiveDataConfig,
    SensitiveDataMasker,
    correlation_context,
    get_correlation_id,
    setup_structured_logging,
)

__all__ = [
    "setup_structured_logging",
    "get_correlation_id",
    "correlation_context",
    "SensitiveDataConfig",
    "SensitiveDataMasker",
]

"""Resilience infrastructure for API calls with retry and error reporting."""

from replydraft.resilience.retry import report_final_failure, resilient_api_call

__all__ = [
    "report_final_failure",
    "resilient_api_call",
]

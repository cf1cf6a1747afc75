"""
Integration tests for BatchFlow.

End-to-end batches run through BatchRunner and run_batch with real sleeps.

Test Modules:
    - test_batch_scenarios: timeouts, failures, progress, ids, output
"""

__all__ = [
    "test_batch_scenarios",
]

"""Batch job lifecycle: registry, submission, polling, reconciliation, quarantine."""

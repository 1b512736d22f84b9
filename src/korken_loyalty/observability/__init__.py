"""Process-local telemetry counters."""

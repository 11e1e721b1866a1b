"""Error telemetry and session analytics."""

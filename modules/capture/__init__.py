"""Frame capture and preprocessing."""

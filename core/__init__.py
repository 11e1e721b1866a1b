"""Core types, channels and the per-frame pipeline."""

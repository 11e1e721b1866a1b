"""
LSA Sign Interpreter modules.

Modules:
    - capture: Frame acquisition and preprocessing
    - detection: Hand gesture and facial expression extraction
    - recognition: Gesture/expression fusion and grammar smoothing
    - output: Result sinks
    - intelligence: Error telemetry and session analytics
    - utils: Configuration, logging, performance monitoring
"""

__version__ = "1.0.0"

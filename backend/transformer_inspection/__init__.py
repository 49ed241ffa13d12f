"""
Transformer inspection backend.

Anomaly lifecycle for inspection images: detector import, reviewer edits,
and the append-only anomaly audit log.
"""

__version__ = "0.1.0"

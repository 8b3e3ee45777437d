"""Ingestion layer.

Turns toll provider results and persisted rows into canonical notice
models, and owns the week-numbering rules used to bucket them.
"""

__all__: list[str] = []

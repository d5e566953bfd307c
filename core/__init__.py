"""Core (UI-agnostic) sales dashboard logic.

This package contains:
- streaming CSV ingestion (tokenizer, line splitter, coordinator, byte sources)
- month / supplier aggregation and the immutable result snapshot
- run replacement for callers that restart loads
- selection and filter normalization
- page compute functions (JSON-serializable payloads)
- chart helpers (Altair -> Vega-Lite spec dict)
"""

"""HTTP API over the core dashboard payloads."""

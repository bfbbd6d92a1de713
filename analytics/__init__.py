"""Analytics dashboard logic, independent of any UI.

This package contains:
- the data store (httpx fetches, envelope unwrapping, fallback datasets)
- table filters, sort and pagination
- per-screen compute functions (JSON-serializable payloads)
- chart helpers (shaped series + Altair -> Vega-Lite spec dict)
- export to csv / tsv / json
"""

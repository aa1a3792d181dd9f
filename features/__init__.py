"""
Features package — each sub-package encapsulates a self-contained feature.

Convention:
  features/<feature_name>/
    __init__.py      — public API re-exports
    db.py            — database layer (if applicable)
    store.py         — persistence interface and implementations (if applicable)
    ...              — any other feature-specific modules

  guides/  — change mapping, guide forest, layer scheduling, update context, registry
  runs/    — run-state stores, Postgres backing and per-run events
"""

"""
Service layer.

``stats_aggregator`` and ``query_engine`` are pure functions over
already loaded records.  ``roster_store`` owns the in‑memory roster and
talks to the record source and action gateway implemented by
``profile_service``.
"""

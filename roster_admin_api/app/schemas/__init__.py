"""
Pydantic schema definitions for records and API payloads.

Source records (profiles, trips, bookings), the derived roster entry and
the query configuration live in ``roster``.  Schemas are kept separate
from the database layer so the roster engine never depends on storage
details.
"""

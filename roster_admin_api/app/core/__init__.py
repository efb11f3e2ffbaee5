"""Configuration, logging, time helpers and database access."""

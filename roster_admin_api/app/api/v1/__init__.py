"""Version 1 of the Roster Admin API."""

"""
Top‑level package for the Roster Admin API.

This file makes ``roster_admin_api`` a Python package so that modules
within ``app`` can be imported using fully qualified names like
``roster_admin_api.app.main``.  Without this marker file, test
collection from the repository root would not be able to resolve the
package.

The package provides no public exports; all functionality lives in
submodules under ``app``.
"""

__all__ = []

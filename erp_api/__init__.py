"""
Flask JSON API over the inventory, procurement and payables services.

Architecture: API layer. Imports from erp_modules and erp_kernel; nothing
below imports from here.
"""

from erp_api.app import create_app

__all__ = ["create_app"]

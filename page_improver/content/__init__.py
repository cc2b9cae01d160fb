"""
Page content: store, MDX transforms and section handling.
"""

from .store import ContentStore, make_edit_log_entry

__all__ = ['ContentStore', 'make_edit_log_entry']

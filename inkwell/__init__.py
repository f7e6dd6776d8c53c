"""
Inkwell - query and authorization core for a small content-management API.

Users, categories and posts live in PostgreSQL. This package owns the
repositories that query them, the credential engine that issues and
validates bearer tokens, and the role-based gate in front of every
operation. HTTP routing is left to the host application.
"""

__version__ = "0.1.0"

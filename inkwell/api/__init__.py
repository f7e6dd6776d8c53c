"""HTTP adapter: error rendering and auth dependencies, no routes."""

from inkwell.api.app import create_app
from inkwell.api.dependencies import get_actor, get_core, require_user
from inkwell.api.errors import STATUS_BY_KIND, install_error_handlers

__all__ = [
    "create_app",
    "get_actor",
    "get_core",
    "require_user",
    "STATUS_BY_KIND",
    "install_error_handlers",
]

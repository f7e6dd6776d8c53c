"""Category service: public reads, admin-only writes."""

from __future__ import annotations

from inkwell.auth.gate import Operation
from inkwell.core.models import Category
from inkwell.services.base import EntityService


class CategoryService(EntityService[Category]):
    operations = {
        "search": Operation.CATEGORIES_SEARCH,
        "find": Operation.CATEGORIES_FIND,
        "create": Operation.CATEGORIES_CREATE,
        "update": Operation.CATEGORIES_UPDATE,
        "delete": Operation.CATEGORIES_DELETE,
    }

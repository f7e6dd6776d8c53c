"""
Seed data loader.

Reads the reference rows that initialization inserts when missing:
the user roles and the default categories. Seed data comes from a YAML
file when one is configured, and from built-in defaults otherwise.

Example seed file:

    roles:
      - Admin
      - Editor
      - Author
      - Commenter
    categories:
      - name: Uncategorized
        description: Posts without a category
"""

from __future__ import annotations

from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator

from inkwell.auth.roles import ROLE_HIERARCHY, Role
from inkwell.config import get_settings


class CategorySeed(BaseModel):
    """A category inserted at startup if absent."""

    name: str = Field(min_length=1)
    description: str | None = None


class SeedData(BaseModel):
    """
    Reference rows for initialization.

    Role ids are assigned from list position, starting at 1.
    """

    roles: list[Role] = Field(default_factory=lambda: list(ROLE_HIERARCHY))
    categories: list[CategorySeed] = Field(
        default_factory=lambda: [
            CategorySeed(name="Uncategorized", description="Posts without a category"),
        ]
    )

    @field_validator("roles")
    @classmethod
    def _all_roles_present(cls, roles: list[Role]) -> list[Role]:
        missing = [role.value for role in ROLE_HIERARCHY if role not in roles]
        if missing:
            raise ValueError(f"Seed roles missing: {missing}")
        if len(set(roles)) != len(roles):
            raise ValueError("Seed roles must be unique")
        return roles

    def role_rows(self) -> list[tuple[int, str]]:
        """(id, name) pairs for the roles table."""
        return [(index + 1, role.value) for index, role in enumerate(self.roles)]


def load_seed(path: Path | str | None = None) -> SeedData:
    """
    Load seed data.

    Args:
        path: YAML file to read. Defaults to the configured ``seed_file``.

    Returns:
        Parsed seed data, or the built-in defaults when no file is configured.
    """
    if not path:
        path = get_settings().seed_file

    if not path:
        return SeedData()

    path = Path(path)
    with open(path) as f:
        data = yaml.safe_load(f) or {}

    return SeedData.model_validate(data)

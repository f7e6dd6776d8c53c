"""Tests for settings and seed loading."""

import pytest
from pydantic import ValidationError

from inkwell.auth.roles import ROLE_HIERARCHY
from inkwell.config import Settings
from inkwell.config_loader import SeedData, load_seed


def test_settings_from_environment(monkeypatch):
    monkeypatch.setenv("INKWELL_DATABASE_POOL_MAX_SIZE", "25")
    monkeypatch.setenv("INKWELL_PASSWORD_HASH_ITERATIONS", "5000")
    monkeypatch.setenv("INKWELL_ENVIRONMENT", "production")

    settings = Settings()

    assert settings.database_pool_max_size == 25
    assert settings.password_hash_iterations == 5000
    assert settings.is_production


def test_default_seed():
    seed = load_seed("")

    assert seed.roles == list(ROLE_HIERARCHY)
    assert seed.role_rows() == [(1, "Admin"), (2, "Editor"), (3, "Author"), (4, "Commenter")]
    assert [c.name for c in seed.categories] == ["Uncategorized"]


def test_seed_from_yaml(tmp_path):
    path = tmp_path / "seed.yaml"
    path.write_text(
        "roles: [Admin, Editor, Author, Commenter]\n"
        "categories:\n"
        "  - name: News\n"
        "    description: Current events\n"
        "  - name: Travel\n"
    )

    seed = load_seed(path)

    assert [(c.name, c.description) for c in seed.categories] == [
        ("News", "Current events"),
        ("Travel", None),
    ]


def test_seed_must_list_every_role():
    with pytest.raises(ValidationError):
        SeedData(roles=["Admin", "Editor"])


def test_seed_rejects_duplicate_roles():
    with pytest.raises(ValidationError):
        SeedData(roles=["Admin", "Editor", "Author", "Commenter", "Admin"])

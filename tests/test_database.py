"""
Gastronomique - Content Store Tests

Tests for gastronomique/database.py against a temporary SQLite file:
- Generic CRUD (insert, get, get by slug, update, delete, count)
- Constraint handling (unique slugs, foreign keys, cascades)
- Query helpers (featured, search, filter, details, tags, view counters)
"""

import pytest

from gastronomique.database import (
    ConflictError,
    NotFoundError,
    count_rows,
    delete_row,
    delete_rows_by_recipe,
    filter_recipes,
    get_all_categories,
    get_all_recipes,
    get_async_connection,
    get_featured_recipes,
    get_ingredients_by_recipe,
    get_recipe_with_details,
    get_recipes_by_tag,
    get_row,
    get_row_by_slug,
    get_steps_by_recipe,
    get_tags_by_recipe,
    increment_article_views,
    increment_recipe_views,
    insert_row,
    insert_rows,
    list_rows,
    search_recipes,
    set_recipe_tags,
    update_row,
)
from tests.conftest import run


def _recipe(**overrides):
    data = {"name": "Tom Yum Goong", "slug": "tom-yum-goong", "prep_time": 15, "cook_time": 20}
    data.update(overrides)
    return run(insert_row("recipes", data))


# ===========================================================================
# Generic CRUD
# ===========================================================================


class TestGenericCrud:
    """Test the per-entity list/get/create/update/delete operations."""

    def test_insert_returns_stored_row(self, db):
        row = run(insert_row("categories", {"name": "Soups", "slug": "soups"}))
        assert row["id"] > 0
        assert row["name"] == "Soups"
        assert row["sort_order"] == 0
        assert row["created_at"]

    def test_insert_ignores_unknown_columns(self, db):
        row = run(
            insert_row("tags", {"name": "Spicy", "slug": "spicy", "view_count": 99, "id": 500})
        )
        assert row["id"] != 500
        assert "view_count" not in row

    def test_insert_without_writable_fields(self, db):
        with pytest.raises(ValueError):
            run(insert_row("tags", {"bogus": 1}))

    def test_unknown_table_rejected(self, db):
        with pytest.raises(ValueError):
            run(list_rows("users; DROP TABLE recipes"))

    def test_get_and_get_by_slug(self, db):
        created = run(insert_row("tags", {"name": "Vegan", "slug": "vegan"}))
        assert run(get_row("tags", created["id"]))["slug"] == "vegan"
        assert run(get_row_by_slug("tags", "vegan"))["id"] == created["id"]
        assert run(get_row_by_slug("tags", "missing")) is None
        assert run(get_row("tags", 9999)) is None

    def test_get_by_slug_requires_slug_column(self, db):
        with pytest.raises(ValueError):
            run(get_row_by_slug("ingredients", "x"))

    def test_duplicate_slug_conflict(self, db):
        run(insert_row("categories", {"name": "A", "slug": "same"}))
        with pytest.raises(ConflictError):
            run(insert_row("categories", {"name": "B", "slug": "same"}))
        assert run(count_rows("categories")) == 1

    def test_update_returns_row(self, db):
        created = run(insert_row("categories", {"name": "Old", "slug": "old"}))
        updated = run(update_row("categories", created["id"], {"name": "New"}))
        assert updated["name"] == "New"
        assert updated["slug"] == "old"

    def test_update_missing_row(self, db):
        assert run(update_row("categories", 4242, {"name": "Ghost"})) is None

    def test_update_without_fields(self, db):
        created = run(insert_row("tags", {"name": "x", "slug": "x"}))
        with pytest.raises(ValueError):
            run(update_row("tags", created["id"], {}))
        with pytest.raises(ValueError):
            run(update_row("tags", created["id"], {"not_a_column": 1}))

    def test_update_to_duplicate_slug_conflict(self, db):
        run(insert_row("tags", {"name": "a", "slug": "a"}))
        b = run(insert_row("tags", {"name": "b", "slug": "b"}))
        with pytest.raises(ConflictError):
            run(update_row("tags", b["id"], {"slug": "a"}))

    def test_delete(self, db):
        created = run(insert_row("tags", {"name": "gone", "slug": "gone"}))
        assert run(delete_row("tags", created["id"])) is True
        assert run(delete_row("tags", created["id"])) is False
        assert run(get_row("tags", created["id"])) is None

    def test_insert_rows_is_atomic(self, db):
        recipe = _recipe()
        with pytest.raises(ConflictError):
            run(
                insert_rows(
                    "ingredients",
                    [
                        {"recipe_id": recipe["id"], "name": "Shrimp"},
                        {"recipe_id": 9999, "name": "Orphan"},
                    ],
                )
            )
        assert run(get_ingredients_by_recipe(recipe["id"])) == []

    def test_featured_is_boolean(self, db):
        row = _recipe(featured=True)
        assert row["featured"] is True
        assert _recipe(slug="plain")["featured"] is False


# ===========================================================================
# Relationships
# ===========================================================================


class TestRelationships:
    """Foreign keys and cascades."""

    def test_connections_enforce_foreign_keys(self, db):
        async def pragma():
            async with get_async_connection() as conn:
                cursor = await conn.execute("PRAGMA foreign_keys")
                (enabled,) = await cursor.fetchone()
                return enabled

        assert run(pragma()) == 1

    def test_ingredient_needs_existing_recipe(self, db):
        with pytest.raises(ConflictError):
            run(insert_row("ingredients", {"recipe_id": 123, "name": "Salt"}))

    def test_recipe_delete_cascades(self, db):
        recipe = _recipe()
        run(insert_row("ingredients", {"recipe_id": recipe["id"], "name": "Lemongrass"}))
        run(
            insert_row(
                "steps", {"recipe_id": recipe["id"], "step_number": 1, "instruction": "Boil"}
            )
        )
        run(insert_row("recipe_images", {"recipe_id": recipe["id"], "image_url": "/a.jpg"}))

        assert run(delete_row("recipes", recipe["id"])) is True
        assert run(count_rows("ingredients")) == 0
        assert run(count_rows("steps")) == 0
        assert run(count_rows("recipe_images")) == 0

    def test_category_in_use_cannot_be_deleted(self, db):
        category = run(insert_row("categories", {"name": "Soups", "slug": "soups"}))
        _recipe(category_id=category["id"])
        with pytest.raises(ConflictError):
            run(delete_row("categories", category["id"]))

    def test_delete_rows_by_recipe(self, db):
        recipe = _recipe()
        other = _recipe(slug="other")
        run(
            insert_rows(
                "steps",
                [
                    {"recipe_id": recipe["id"], "step_number": 1, "instruction": "a"},
                    {"recipe_id": recipe["id"], "step_number": 2, "instruction": "b"},
                    {"recipe_id": other["id"], "step_number": 1, "instruction": "c"},
                ],
            )
        )
        assert run(delete_rows_by_recipe("steps", recipe["id"])) == 2
        assert len(run(get_steps_by_recipe(other["id"]))) == 1

    def test_delete_rows_by_recipe_rejects_unowned_table(self, db):
        with pytest.raises(ValueError):
            run(delete_rows_by_recipe("tags", 1))


# ===========================================================================
# Query helpers
# ===========================================================================


class TestQueries:
    """Public read helpers."""

    def test_categories_sorted_by_sort_order(self, db):
        run(insert_row("categories", {"name": "Second", "slug": "second", "sort_order": 2}))
        run(insert_row("categories", {"name": "First", "slug": "first", "sort_order": 1}))
        assert [c["slug"] for c in run(get_all_categories())] == ["first", "second"]

    def test_recipes_newest_first_with_limit(self, db):
        for i in range(3):
            _recipe(slug=f"r{i}", name=f"Recipe {i}")
        assert [r["slug"] for r in run(get_all_recipes())] == ["r2", "r1", "r0"]
        assert len(run(get_all_recipes(2))) == 2

    def test_featured(self, db):
        _recipe(slug="plain")
        _recipe(slug="star", featured=True)
        assert [r["slug"] for r in run(get_featured_recipes())] == ["star"]

    def test_search(self, db):
        _recipe(name="Green Curry", slug="green-curry")
        _recipe(name="Pad Thai", slug="pad-thai")
        assert [r["slug"] for r in run(search_recipes("curry"))] == ["green-curry"]
        assert run(search_recipes("   ")) == []

    def test_filter(self, db):
        soups = run(insert_row("categories", {"name": "Soups", "slug": "soups"}))
        quick = _recipe(
            slug="quick", category_id=soups["id"], prep_time=5, cook_time=5, difficulty="easy"
        )
        _recipe(slug="slow", category_id=soups["id"], prep_time=60, cook_time=120, difficulty="hard")
        _recipe(slug="untimed", prep_time=None, cook_time=None, difficulty="easy")
        spicy = run(insert_row("tags", {"name": "Spicy", "slug": "spicy"}))
        run(set_recipe_tags(quick["id"], [spicy["id"]]))

        def slugs(**kwargs):
            return sorted(r["slug"] for r in run(filter_recipes(**kwargs)))

        assert slugs() == ["quick", "slow", "untimed"]
        assert slugs(category_id=soups["id"]) == ["quick", "slow"]
        assert slugs(difficulty="easy") == ["quick", "untimed"]
        assert slugs(max_time=30) == ["quick", "untimed"]
        assert slugs(tag_ids=[spicy["id"]]) == ["quick"]
        assert slugs(category_id=soups["id"], difficulty="hard", max_time=30) == []

    def test_recipe_with_details(self, db):
        category = run(insert_row("categories", {"name": "Soups", "slug": "soups"}))
        recipe = _recipe(category_id=category["id"])
        rid = recipe["id"]
        run(
            insert_rows(
                "ingredients",
                [
                    {"recipe_id": rid, "name": "Chili", "sort_order": 2},
                    {"recipe_id": rid, "name": "Shrimp", "sort_order": 1},
                ],
            )
        )
        run(
            insert_rows(
                "steps",
                [
                    {"recipe_id": rid, "step_number": 2, "instruction": "Simmer"},
                    {"recipe_id": rid, "step_number": 1, "instruction": "Boil"},
                ],
            )
        )
        run(insert_row("recipe_images", {"recipe_id": rid, "image_url": "/g.jpg"}))

        detail = run(get_recipe_with_details("tom-yum-goong"))
        assert detail["category"]["slug"] == "soups"
        assert [i["name"] for i in detail["ingredients"]] == ["Shrimp", "Chili"]
        assert [s["instruction"] for s in detail["steps"]] == ["Boil", "Simmer"]
        assert detail["gallery"][0]["image_url"] == "/g.jpg"
        assert detail["tags"] == []
        assert run(get_recipe_with_details("missing")) is None

    def test_set_recipe_tags_replaces(self, db):
        recipe = _recipe()
        a = run(insert_row("tags", {"name": "A", "slug": "a"}))
        b = run(insert_row("tags", {"name": "B", "slug": "b"}))

        assert run(set_recipe_tags(recipe["id"], [a["id"], a["id"], b["id"]])) == [a["id"], b["id"]]
        assert [t["slug"] for t in run(get_tags_by_recipe(recipe["id"]))] == ["a", "b"]

        run(set_recipe_tags(recipe["id"], [b["id"]]))
        assert [t["slug"] for t in run(get_tags_by_recipe(recipe["id"]))] == ["b"]
        assert [r["id"] for r in run(get_recipes_by_tag(b["id"]))] == [recipe["id"]]
        assert run(get_recipes_by_tag(a["id"])) == []

        run(set_recipe_tags(recipe["id"], []))
        assert run(get_tags_by_recipe(recipe["id"])) == []

    def test_set_recipe_tags_unknown_recipe(self, db):
        with pytest.raises(NotFoundError):
            run(set_recipe_tags(9999, []))

    def test_set_recipe_tags_unknown_tag_keeps_old_tags(self, db):
        recipe = _recipe()
        tag = run(insert_row("tags", {"name": "A", "slug": "a"}))
        run(set_recipe_tags(recipe["id"], [tag["id"]]))
        with pytest.raises(ConflictError):
            run(set_recipe_tags(recipe["id"], [tag["id"], 9999]))
        assert [t["id"] for t in run(get_tags_by_recipe(recipe["id"]))] == [tag["id"]]

    def test_view_counters(self, db):
        recipe = _recipe()
        article = run(
            insert_row("articles", {"title": "Thai herbs", "slug": "herbs", "content": "..."})
        )
        run(increment_recipe_views(recipe["id"]))
        run(increment_recipe_views(recipe["id"]))
        run(increment_article_views(article["id"]))
        assert run(get_row("recipes", recipe["id"]))["view_count"] == 2
        assert run(get_row("articles", article["id"]))["view_count"] == 1

"""
Gastronomique - SQLite Content Store

Embedded SQLite database holding categories, recipes (with ingredients,
steps, tags and gallery images) and articles.  Uses aiosqlite for async
operations within FastAPI and plain sqlite3 for the sync schema setup.

Every entity goes through the same small set of generic operations
(``list_rows``, ``get_row``, ``get_row_by_slug``, ``insert_row``,
``update_row``, ``delete_row``); the query helpers further down build the
public read views on top of them.
"""

import sqlite3
from contextlib import asynccontextmanager
from typing import Any, Dict, Iterable, List, Optional, Sequence

import aiosqlite
from loguru import logger

from gastronomique.config import DB_PATH

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------
SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS categories (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    slug TEXT NOT NULL UNIQUE,
    description TEXT,
    icon TEXT,
    image_url TEXT,
    sort_order INTEGER DEFAULT 0,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS recipes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    category_id INTEGER REFERENCES categories(id),
    name TEXT NOT NULL,
    slug TEXT NOT NULL UNIQUE,
    description TEXT,
    image_url TEXT,
    prep_time INTEGER,
    cook_time INTEGER,
    servings INTEGER,
    difficulty TEXT,
    tips TEXT,
    video_url TEXT,
    featured INTEGER DEFAULT 0,
    view_count INTEGER DEFAULT 0,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS ingredients (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    recipe_id INTEGER NOT NULL REFERENCES recipes(id) ON DELETE CASCADE,
    name TEXT NOT NULL,
    amount REAL,
    unit TEXT,
    notes TEXT,
    group_name TEXT,
    sort_order INTEGER DEFAULT 0
);

CREATE TABLE IF NOT EXISTS steps (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    recipe_id INTEGER NOT NULL REFERENCES recipes(id) ON DELETE CASCADE,
    step_number INTEGER NOT NULL,
    instruction TEXT NOT NULL,
    image_url TEXT,
    duration INTEGER,
    tips TEXT
);

CREATE TABLE IF NOT EXISTS tags (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT NOT NULL,
    slug TEXT NOT NULL UNIQUE,
    color TEXT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS recipe_tags (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    recipe_id INTEGER NOT NULL REFERENCES recipes(id) ON DELETE CASCADE,
    tag_id INTEGER NOT NULL REFERENCES tags(id) ON DELETE CASCADE
);

CREATE TABLE IF NOT EXISTS articles (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    category_id INTEGER REFERENCES categories(id),
    title TEXT NOT NULL,
    slug TEXT NOT NULL UNIQUE,
    excerpt TEXT,
    content TEXT NOT NULL,
    image_url TEXT,
    author TEXT,
    featured INTEGER DEFAULT 0,
    view_count INTEGER DEFAULT 0,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS recipe_images (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    recipe_id INTEGER NOT NULL REFERENCES recipes(id) ON DELETE CASCADE,
    image_url TEXT NOT NULL,
    caption TEXT,
    sort_order INTEGER DEFAULT 0
);

CREATE INDEX IF NOT EXISTS idx_recipes_category ON recipes(category_id);
CREATE INDEX IF NOT EXISTS idx_recipes_name ON recipes(name COLLATE NOCASE);
CREATE INDEX IF NOT EXISTS idx_articles_category ON articles(category_id);
CREATE INDEX IF NOT EXISTS idx_ingredients_recipe ON ingredients(recipe_id);
CREATE INDEX IF NOT EXISTS idx_steps_recipe ON steps(recipe_id);
CREATE INDEX IF NOT EXISTS idx_recipe_tags_recipe ON recipe_tags(recipe_id);
CREATE INDEX IF NOT EXISTS idx_recipe_tags_tag ON recipe_tags(tag_id);
CREATE INDEX IF NOT EXISTS idx_recipe_images_recipe ON recipe_images(recipe_id);
"""

# Writable columns per table.  Anything else in a payload is ignored.
ENTITY_COLUMNS: Dict[str, set] = {
    "categories": {"name", "slug", "description", "icon", "image_url", "sort_order"},
    "recipes": {
        "category_id",
        "name",
        "slug",
        "description",
        "image_url",
        "prep_time",
        "cook_time",
        "servings",
        "difficulty",
        "tips",
        "video_url",
        "featured",
    },
    "ingredients": {
        "recipe_id",
        "name",
        "amount",
        "unit",
        "notes",
        "group_name",
        "sort_order",
    },
    "steps": {"recipe_id", "step_number", "instruction", "image_url", "duration", "tips"},
    "tags": {"name", "slug", "color"},
    "articles": {
        "category_id",
        "title",
        "slug",
        "excerpt",
        "content",
        "image_url",
        "author",
        "featured",
    },
    "recipe_images": {"recipe_id", "image_url", "caption", "sort_order"},
}

# Tables whose updated_at column is refreshed on every update
_TOUCH_ON_UPDATE = {"categories", "recipes", "articles"}

_BOOLEAN_COLUMNS = {"featured"}


class NotFoundError(Exception):
    """Raised when a row that must exist does not."""


class ConflictError(Exception):
    """Raised when a write violates a UNIQUE or FOREIGN KEY constraint."""


def _check_table(table: str) -> None:
    if table not in ENTITY_COLUMNS:
        raise ValueError(f"Unknown entity table: {table}")


# ---------------------------------------------------------------------------
# Initialization
# ---------------------------------------------------------------------------
def init_db() -> None:
    """Initialize the SQLite database and create tables."""
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    try:
        with sqlite3.connect(str(DB_PATH)) as conn:
            conn.executescript(SCHEMA_SQL)
            conn.commit()
        logger.success(f"✅ Database initialized at {DB_PATH}")
    except Exception as e:
        logger.critical(f"❌ Failed to initialize database: {e}")
        raise


# ---------------------------------------------------------------------------
# Async context manager (for use in FastAPI routes)
# ---------------------------------------------------------------------------
@asynccontextmanager
async def get_async_connection():
    """Async context manager for an aiosqlite connection with row factory."""
    db = await aiosqlite.connect(str(DB_PATH))
    db.row_factory = aiosqlite.Row
    await db.execute("PRAGMA foreign_keys = ON")
    try:
        yield db
    finally:
        await db.close()


# ---------------------------------------------------------------------------
# Helper: convert sqlite3.Row / aiosqlite.Row to plain dict
# ---------------------------------------------------------------------------
def row_to_dict(row) -> Dict[str, Any]:
    """Convert a database row to a plain dictionary."""
    if row is None:
        return {}
    data = dict(row)
    for column in _BOOLEAN_COLUMNS:
        if column in data and data[column] is not None:
            data[column] = bool(data[column])
    return data


def _filter_fields(table: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    allowed = ENTITY_COLUMNS[table]
    return {k: v for k, v in fields.items() if k in allowed}


async def _fetch_all(sql: str, params: Sequence[Any] = ()) -> List[Dict[str, Any]]:
    async with get_async_connection() as db:
        cursor = await db.execute(sql, params)
        rows = await cursor.fetchall()
        return [row_to_dict(r) for r in rows]


async def _fetch_one(sql: str, params: Sequence[Any] = ()) -> Optional[Dict[str, Any]]:
    async with get_async_connection() as db:
        cursor = await db.execute(sql, params)
        row = await cursor.fetchone()
        return row_to_dict(row) if row else None


# ---------------------------------------------------------------------------
# Generic CRUD operations (async)
# ---------------------------------------------------------------------------
async def list_rows(table: str, order_by: str = "id ASC") -> List[Dict[str, Any]]:
    """Return every row of *table*."""
    _check_table(table)
    return await _fetch_all(f"SELECT * FROM {table} ORDER BY {order_by}")


async def get_row(table: str, row_id: int) -> Optional[Dict[str, Any]]:
    """Fetch a single row by id."""
    _check_table(table)
    return await _fetch_one(f"SELECT * FROM {table} WHERE id = ?", (row_id,))


async def get_row_by_slug(table: str, slug: str) -> Optional[Dict[str, Any]]:
    """Fetch a single row by its unique slug."""
    _check_table(table)
    if "slug" not in ENTITY_COLUMNS[table]:
        raise ValueError(f"Entity table {table} has no slug column")
    return await _fetch_one(f"SELECT * FROM {table} WHERE slug = ? LIMIT 1", (slug,))


async def count_rows(table: str) -> int:
    """Return the number of rows in *table*."""
    _check_table(table)
    async with get_async_connection() as db:
        cursor = await db.execute(f"SELECT COUNT(*) FROM {table}")
        (count,) = await cursor.fetchone()
        return count


async def insert_row(table: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """Insert a row and return it as stored."""
    rows = await insert_rows(table, [data])
    return rows[0]


async def insert_rows(table: str, items: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Insert several rows in one transaction and return them as stored."""
    _check_table(table)
    created: List[Dict[str, Any]] = []

    async with get_async_connection() as db:
        try:
            for item in items:
                fields = _filter_fields(table, item)
                if not fields:
                    raise ValueError(f"No writable fields for {table}")
                columns = ", ".join(fields)
                placeholders = ", ".join("?" for _ in fields)
                cursor = await db.execute(
                    f"INSERT INTO {table} ({columns}) VALUES ({placeholders})",
                    list(fields.values()),
                )
                cursor = await db.execute(
                    f"SELECT * FROM {table} WHERE id = ?", (cursor.lastrowid,)
                )
                created.append(row_to_dict(await cursor.fetchone()))
            await db.commit()
        except sqlite3.IntegrityError as e:
            await db.rollback()
            logger.warning(f"⚠️ Insert into {table} rejected: {e}")
            raise ConflictError(str(e)) from e

    if created:
        logger.success(
            f"✅ {len(created)} row(s) added to {table} "
            f"(ids={[row['id'] for row in created]})"
        )
    return created


async def update_row(table: str, row_id: int, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Update specific fields of a row.

    Returns the updated row, or None if no row has that id.  Raises
    ``ValueError`` when none of the given fields are writable.
    """
    _check_table(table)
    filtered = _filter_fields(table, fields)
    if not filtered:
        raise ValueError("No fields to update")

    assignments = [f"{k} = ?" for k in filtered]
    if table in _TOUCH_ON_UPDATE:
        assignments.append("updated_at = CURRENT_TIMESTAMP")
    set_clause = ", ".join(assignments)
    values = list(filtered.values()) + [row_id]

    async with get_async_connection() as db:
        try:
            cursor = await db.execute(
                f"UPDATE {table} SET {set_clause} WHERE id = ?",
                values,
            )
            await db.commit()
        except sqlite3.IntegrityError as e:
            await db.rollback()
            logger.warning(f"⚠️ Update of {table} id={row_id} rejected: {e}")
            raise ConflictError(str(e)) from e

        if cursor.rowcount == 0:
            return None

        cursor = await db.execute(f"SELECT * FROM {table} WHERE id = ?", (row_id,))
        row = await cursor.fetchone()

    logger.info(f"✏️ {table} id={row_id} updated: {list(filtered.keys())}")
    return row_to_dict(row)


async def delete_row(table: str, row_id: int) -> bool:
    """Delete a row by id. Returns True if a row was deleted."""
    _check_table(table)
    async with get_async_connection() as db:
        try:
            cursor = await db.execute(f"DELETE FROM {table} WHERE id = ?", (row_id,))
            await db.commit()
        except sqlite3.IntegrityError as e:
            await db.rollback()
            logger.warning(f"⚠️ Delete of {table} id={row_id} rejected: {e}")
            raise ConflictError(str(e)) from e

        deleted = cursor.rowcount > 0
        if deleted:
            logger.info(f"🗑️ {table} id={row_id} deleted")
        else:
            logger.warning(f"⚠️ {table} id={row_id} not found for deletion")
        return deleted


async def delete_rows_by_recipe(table: str, recipe_id: int) -> int:
    """Delete every row of *table* belonging to a recipe. Returns the count."""
    _check_table(table)
    if "recipe_id" not in ENTITY_COLUMNS[table]:
        raise ValueError(f"Entity table {table} is not owned by recipes")
    async with get_async_connection() as db:
        cursor = await db.execute(f"DELETE FROM {table} WHERE recipe_id = ?", (recipe_id,))
        await db.commit()
        logger.info(f"🗑️ {cursor.rowcount} {table} row(s) removed for recipe id={recipe_id}")
        return cursor.rowcount


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------
async def get_all_categories() -> List[Dict[str, Any]]:
    return await list_rows("categories", order_by="sort_order ASC, id ASC")


async def get_category_by_slug(slug: str) -> Optional[Dict[str, Any]]:
    return await get_row_by_slug("categories", slug)


async def get_category_by_id(category_id: int) -> Optional[Dict[str, Any]]:
    return await get_row("categories", category_id)


# ---------------------------------------------------------------------------
# Recipes
# ---------------------------------------------------------------------------
_NEWEST_FIRST = "created_at DESC, id DESC"


async def get_all_recipes(limit: Optional[int] = None) -> List[Dict[str, Any]]:
    """All recipes, newest first, optionally limited."""
    if limit:
        return await _fetch_all(
            f"SELECT * FROM recipes ORDER BY {_NEWEST_FIRST} LIMIT ?", (limit,)
        )
    return await list_rows("recipes", order_by=_NEWEST_FIRST)


async def get_featured_recipes(limit: int = 6) -> List[Dict[str, Any]]:
    return await _fetch_all(
        f"SELECT * FROM recipes WHERE featured = 1 ORDER BY {_NEWEST_FIRST} LIMIT ?",
        (limit,),
    )


async def get_recipes_by_category(
    category_id: int, limit: Optional[int] = None
) -> List[Dict[str, Any]]:
    sql = f"SELECT * FROM recipes WHERE category_id = ? ORDER BY {_NEWEST_FIRST}"
    if limit:
        return await _fetch_all(f"{sql} LIMIT ?", (category_id, limit))
    return await _fetch_all(sql, (category_id,))


async def get_recipe_by_slug(slug: str) -> Optional[Dict[str, Any]]:
    return await get_row_by_slug("recipes", slug)


async def search_recipes(query: str) -> List[Dict[str, Any]]:
    """Case-insensitive substring search on recipe names."""
    if not query or not query.strip():
        return []
    pattern = f"%{query.strip()}%"
    return await _fetch_all(
        f"SELECT * FROM recipes WHERE name LIKE ? ORDER BY {_NEWEST_FIRST}",
        (pattern,),
    )


async def filter_recipes(
    category_id: Optional[int] = None,
    tag_ids: Optional[Sequence[int]] = None,
    difficulty: Optional[str] = None,
    max_time: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """
    Filter recipes by any combination of criteria.

    - ``category_id``: exact category match
    - ``tag_ids``: recipe carries at least one of the tags
    - ``difficulty``: exact match (easy / medium / hard)
    - ``max_time``: prep + cook time (missing values count as 0) at most this
    """
    clauses: List[str] = []
    params: List[Any] = []

    if category_id is not None:
        clauses.append("category_id = ?")
        params.append(category_id)
    if tag_ids:
        placeholders = ", ".join("?" for _ in tag_ids)
        clauses.append(
            f"id IN (SELECT recipe_id FROM recipe_tags WHERE tag_id IN ({placeholders}))"
        )
        params.extend(tag_ids)
    if difficulty:
        clauses.append("difficulty = ?")
        params.append(difficulty)
    if max_time is not None:
        clauses.append("COALESCE(prep_time, 0) + COALESCE(cook_time, 0) <= ?")
        params.append(max_time)

    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    return await _fetch_all(
        f"SELECT * FROM recipes {where} ORDER BY {_NEWEST_FIRST}", params
    )


async def get_recipe_with_details(slug: str) -> Optional[Dict[str, Any]]:
    """A recipe together with its category, ingredients, steps, tags and gallery."""
    recipe = await get_recipe_by_slug(slug)
    if not recipe:
        return None

    recipe_id = recipe["id"]
    category = (
        await get_category_by_id(recipe["category_id"]) if recipe.get("category_id") else None
    )
    return {
        **recipe,
        "category": category,
        "ingredients": await get_ingredients_by_recipe(recipe_id),
        "steps": await get_steps_by_recipe(recipe_id),
        "tags": await get_tags_by_recipe(recipe_id),
        "gallery": await get_images_by_recipe(recipe_id),
    }


async def increment_recipe_views(recipe_id: int) -> None:
    async with get_async_connection() as db:
        await db.execute(
            "UPDATE recipes SET view_count = COALESCE(view_count, 0) + 1 WHERE id = ?",
            (recipe_id,),
        )
        await db.commit()


# ---------------------------------------------------------------------------
# Ingredients / steps / gallery
# ---------------------------------------------------------------------------
async def get_ingredients_by_recipe(recipe_id: int) -> List[Dict[str, Any]]:
    return await _fetch_all(
        "SELECT * FROM ingredients WHERE recipe_id = ? ORDER BY sort_order ASC, id ASC",
        (recipe_id,),
    )


async def get_steps_by_recipe(recipe_id: int) -> List[Dict[str, Any]]:
    return await _fetch_all(
        "SELECT * FROM steps WHERE recipe_id = ? ORDER BY step_number ASC, id ASC",
        (recipe_id,),
    )


async def get_images_by_recipe(recipe_id: int) -> List[Dict[str, Any]]:
    return await _fetch_all(
        "SELECT * FROM recipe_images WHERE recipe_id = ? ORDER BY sort_order ASC, id ASC",
        (recipe_id,),
    )


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------
async def get_all_tags() -> List[Dict[str, Any]]:
    return await list_rows("tags", order_by="name ASC")


async def get_tag_by_slug(slug: str) -> Optional[Dict[str, Any]]:
    return await get_row_by_slug("tags", slug)


async def get_tags_by_recipe(recipe_id: int) -> List[Dict[str, Any]]:
    return await _fetch_all(
        """
        SELECT t.id, t.name, t.slug, t.color
        FROM recipe_tags rt
        JOIN tags t ON t.id = rt.tag_id
        WHERE rt.recipe_id = ?
        ORDER BY t.name ASC
        """,
        (recipe_id,),
    )


async def get_recipes_by_tag(tag_id: int) -> List[Dict[str, Any]]:
    return await _fetch_all(
        f"""
        SELECT * FROM recipes
        WHERE id IN (SELECT recipe_id FROM recipe_tags WHERE tag_id = ?)
        ORDER BY {_NEWEST_FIRST}
        """,
        (tag_id,),
    )


async def set_recipe_tags(recipe_id: int, tag_ids: Sequence[int]) -> List[int]:
    """Replace the tag set of a recipe.  Returns the de-duplicated tag ids."""
    unique_ids = list(dict.fromkeys(tag_ids))

    async with get_async_connection() as db:
        cursor = await db.execute("SELECT id FROM recipes WHERE id = ?", (recipe_id,))
        if await cursor.fetchone() is None:
            raise NotFoundError(f"Recipe {recipe_id} not found")

        try:
            await db.execute("DELETE FROM recipe_tags WHERE recipe_id = ?", (recipe_id,))
            if unique_ids:
                await db.executemany(
                    "INSERT INTO recipe_tags (recipe_id, tag_id) VALUES (?, ?)",
                    [(recipe_id, tag_id) for tag_id in unique_ids],
                )
            await db.commit()
        except sqlite3.IntegrityError as e:
            await db.rollback()
            raise ConflictError(str(e)) from e

    logger.info(f"🏷️ Recipe id={recipe_id} tags set to {unique_ids}")
    return unique_ids


# ---------------------------------------------------------------------------
# Articles
# ---------------------------------------------------------------------------
async def get_all_articles(limit: Optional[int] = None) -> List[Dict[str, Any]]:
    if limit:
        return await _fetch_all(
            f"SELECT * FROM articles ORDER BY {_NEWEST_FIRST} LIMIT ?", (limit,)
        )
    return await list_rows("articles", order_by=_NEWEST_FIRST)


async def get_featured_articles(limit: int = 4) -> List[Dict[str, Any]]:
    return await _fetch_all(
        f"SELECT * FROM articles WHERE featured = 1 ORDER BY {_NEWEST_FIRST} LIMIT ?",
        (limit,),
    )


async def get_articles_by_category(
    category_id: int, limit: Optional[int] = None
) -> List[Dict[str, Any]]:
    sql = f"SELECT * FROM articles WHERE category_id = ? ORDER BY {_NEWEST_FIRST}"
    if limit:
        return await _fetch_all(f"{sql} LIMIT ?", (category_id, limit))
    return await _fetch_all(sql, (category_id,))


async def get_article_by_slug(slug: str) -> Optional[Dict[str, Any]]:
    return await get_row_by_slug("articles", slug)


async def increment_article_views(article_id: int) -> None:
    async with get_async_connection() as db:
        await db.execute(
            "UPDATE articles SET view_count = COALESCE(view_count, 0) + 1 WHERE id = ?",
            (article_id,),
        )
        await db.commit()

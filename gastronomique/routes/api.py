"""
Gastronomique - Public JSON API Routes

Read-only endpoints used by the public site:
- Categories (list, detail with recipes)
- Recipes (list, featured, search, filter, detail with ingredients/steps/tags/gallery)
- Tags (list, detail, recipes by tag)
- Articles (list, featured, detail)
- Health check

None of these routes require authentication; every write lives in
``gastronomique.routes.admin`` behind the admin gate.
"""

import time
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query

from gastronomique.config import (
    APP_VERSION,
    DB_PATH,
    FEATURED_ARTICLES_LIMIT,
    FEATURED_RECIPES_LIMIT,
    RECIPE_DIFFICULTIES,
)
from gastronomique.database import (
    filter_recipes,
    get_all_articles,
    get_all_categories,
    get_all_recipes,
    get_all_tags,
    get_article_by_slug,
    get_articles_by_category,
    get_category_by_id,
    get_category_by_slug,
    get_featured_articles,
    get_featured_recipes,
    get_recipe_with_details,
    get_recipes_by_category,
    get_recipes_by_tag,
    get_tag_by_slug,
    get_tags_by_recipe,
    increment_article_views,
    increment_recipe_views,
    search_recipes,
)
from gastronomique.utils import format_time, total_time

router = APIRouter(prefix="/api", tags=["API"])

# Track startup time for health check
_START_TIME = time.time()


def _with_time_label(recipe: Dict[str, Any]) -> Dict[str, Any]:
    """Attach the total prep + cook time and its display label to a recipe."""
    minutes = total_time(recipe.get("prep_time"), recipe.get("cook_time"))
    recipe["total_time"] = minutes
    recipe["total_time_label"] = format_time(minutes) if minutes else None
    return recipe


async def _attach_category(item: Dict[str, Any]) -> Dict[str, Any]:
    category_id = item.get("category_id")
    item["category"] = await get_category_by_id(category_id) if category_id else None
    return item


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------
@router.get("/health")
async def health_check():
    """Health check endpoint for the service."""
    uptime = round(time.time() - _START_TIME, 2)
    db_ok = DB_PATH.exists()

    return {
        "status": "ok" if db_ok else "degraded",
        "database": "ok" if db_ok else "missing",
        "uptime_seconds": uptime,
        "version": APP_VERSION,
    }


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------
@router.get("/categories")
async def api_list_categories():
    return await get_all_categories()


@router.get("/categories/{slug}")
async def api_get_category(slug: str):
    """A category together with its recipes."""
    category = await get_category_by_slug(slug)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")

    recipes = await get_recipes_by_category(category["id"])
    return {**category, "recipes": [_with_time_label(r) for r in recipes]}


# ---------------------------------------------------------------------------
# Recipes
# ---------------------------------------------------------------------------
@router.get("/recipes")
async def api_list_recipes(
    limit: Optional[int] = Query(None, ge=1, le=200),
    category_id: Optional[int] = Query(None),
):
    """List recipes, newest first, optionally restricted to a category."""
    if category_id:
        recipes = await get_recipes_by_category(category_id, limit)
    else:
        recipes = await get_all_recipes(limit)
    return [_with_time_label(r) for r in recipes]


@router.get("/recipes/featured")
async def api_featured_recipes(
    limit: int = Query(FEATURED_RECIPES_LIMIT, ge=1, le=50),
):
    """Featured recipes with their category and tags."""
    recipes = await get_featured_recipes(limit)
    result = []
    for recipe in recipes:
        await _attach_category(recipe)
        recipe["tags"] = await get_tags_by_recipe(recipe["id"])
        result.append(_with_time_label(recipe))
    return result


@router.get("/recipes/search")
async def api_search_recipes(q: str = Query("")):
    """Search recipes by name.  An empty query returns no results."""
    if not q.strip():
        return []
    return [_with_time_label(r) for r in await search_recipes(q)]


@router.get("/recipes/filter")
async def api_filter_recipes(
    category_id: Optional[int] = Query(None),
    tag_ids: Optional[List[int]] = Query(None),
    difficulty: Optional[str] = Query(None),
    max_time: Optional[int] = Query(None, ge=0),
):
    """Filter recipes by category, tags (any of), difficulty and total time."""
    if difficulty and difficulty not in RECIPE_DIFFICULTIES:
        raise HTTPException(
            status_code=400,
            detail=f"Invalid difficulty: {difficulty}. Allowed: {', '.join(RECIPE_DIFFICULTIES)}",
        )
    recipes = await filter_recipes(
        category_id=category_id,
        tag_ids=tag_ids,
        difficulty=difficulty,
        max_time=max_time,
    )
    return [_with_time_label(r) for r in recipes]


@router.get("/recipes/{slug}")
async def api_get_recipe(slug: str):
    """Full recipe detail.  Each read counts as one view."""
    recipe = await get_recipe_with_details(slug)
    if not recipe:
        raise HTTPException(status_code=404, detail="Recipe not found")

    await increment_recipe_views(recipe["id"])
    return _with_time_label(recipe)


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------
@router.get("/tags")
async def api_list_tags():
    return await get_all_tags()


@router.get("/tags/{slug}")
async def api_get_tag(slug: str):
    tag = await get_tag_by_slug(slug)
    if not tag:
        raise HTTPException(status_code=404, detail="Tag not found")
    return tag


@router.get("/tags/{slug}/recipes")
async def api_recipes_by_tag(slug: str):
    """A tag and the recipes carrying it (empty result for unknown tags)."""
    tag = await get_tag_by_slug(slug)
    if not tag:
        return {"tag": None, "recipes": []}
    recipes = await get_recipes_by_tag(tag["id"])
    return {"tag": tag, "recipes": [_with_time_label(r) for r in recipes]}


# ---------------------------------------------------------------------------
# Articles
# ---------------------------------------------------------------------------
@router.get("/articles")
async def api_list_articles(
    limit: Optional[int] = Query(None, ge=1, le=200),
    category_id: Optional[int] = Query(None),
):
    if category_id:
        return await get_articles_by_category(category_id, limit)
    return await get_all_articles(limit)


@router.get("/articles/featured")
async def api_featured_articles(
    limit: int = Query(FEATURED_ARTICLES_LIMIT, ge=1, le=50),
):
    """Featured articles with their category."""
    articles = await get_featured_articles(limit)
    return [await _attach_category(a) for a in articles]


@router.get("/articles/{slug}")
async def api_get_article(slug: str):
    """Article detail with category.  Each read counts as one view."""
    article = await get_article_by_slug(slug)
    if not article:
        raise HTTPException(status_code=404, detail="Article not found")

    await increment_article_views(article["id"])
    return await _attach_category(article)

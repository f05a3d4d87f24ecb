"""
Gastronomique - Admin API Routes

Two routers live here:

- ``session_router``: login, logout and the cookie-only session check used
  by the admin front-end route guard.  These are reachable without
  authentication.
- ``router``: every create/update/delete on the content store.  Its routes
  use ``AdminGateRoute`` and depend on ``require_admin``, so a request
  without a valid Basic header or session cookie is rejected before the
  body is read or any handler runs.
"""

from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel, Field

from gastronomique.auth import (
    AdminGateRoute,
    TokenSigningError,
    clear_session_cookie,
    get_current_user,
    get_settings,
    require_admin,
    set_session_cookie,
    validate_credentials,
)
from gastronomique.config import Settings
from gastronomique.database import (
    ConflictError,
    NotFoundError,
    count_rows,
    delete_row,
    delete_rows_by_recipe,
    get_row,
    insert_row,
    insert_rows,
    set_recipe_tags,
    update_row,
)
from gastronomique.utils import slugify, truncate

session_router = APIRouter(prefix="/api/admin", tags=["Admin session"])
router = APIRouter(
    prefix="/api/admin",
    tags=["Admin"],
    dependencies=[Depends(require_admin)],
    route_class=AdminGateRoute,
)

# Length of the excerpt derived from article content when none is given
EXCERPT_LENGTH = 160

Difficulty = Literal["easy", "medium", "hard"]


# ---------------------------------------------------------------------------
# Pydantic models
# ---------------------------------------------------------------------------
class CategoryCreate(BaseModel):
    name: str = Field(min_length=1)
    slug: Optional[str] = None
    description: Optional[str] = None
    icon: Optional[str] = None
    image_url: Optional[str] = None
    sort_order: Optional[int] = None


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    slug: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    icon: Optional[str] = None
    image_url: Optional[str] = None
    sort_order: Optional[int] = None


class RecipeCreate(BaseModel):
    category_id: Optional[int] = None
    name: str = Field(min_length=1)
    slug: Optional[str] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    prep_time: Optional[int] = Field(None, ge=0)
    cook_time: Optional[int] = Field(None, ge=0)
    servings: Optional[int] = Field(None, ge=0)
    difficulty: Optional[Difficulty] = None
    tips: Optional[str] = None
    video_url: Optional[str] = None
    featured: Optional[bool] = None


class RecipeUpdate(BaseModel):
    category_id: Optional[int] = None
    name: Optional[str] = Field(None, min_length=1)
    slug: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    image_url: Optional[str] = None
    prep_time: Optional[int] = Field(None, ge=0)
    cook_time: Optional[int] = Field(None, ge=0)
    servings: Optional[int] = Field(None, ge=0)
    difficulty: Optional[Difficulty] = None
    tips: Optional[str] = None
    video_url: Optional[str] = None
    featured: Optional[bool] = None


class RecipeTagsUpdate(BaseModel):
    tag_ids: List[int]


class IngredientCreate(BaseModel):
    recipe_id: int
    name: str = Field(min_length=1)
    amount: Optional[float] = None
    unit: Optional[str] = None
    notes: Optional[str] = None
    group_name: Optional[str] = None
    sort_order: Optional[int] = None


class IngredientUpdate(BaseModel):
    recipe_id: Optional[int] = None
    name: Optional[str] = Field(None, min_length=1)
    amount: Optional[float] = None
    unit: Optional[str] = None
    notes: Optional[str] = None
    group_name: Optional[str] = None
    sort_order: Optional[int] = None


class StepCreate(BaseModel):
    recipe_id: int
    step_number: int
    instruction: str = Field(min_length=1)
    image_url: Optional[str] = None
    duration: Optional[int] = Field(None, ge=0)
    tips: Optional[str] = None


class StepUpdate(BaseModel):
    recipe_id: Optional[int] = None
    step_number: Optional[int] = None
    instruction: Optional[str] = Field(None, min_length=1)
    image_url: Optional[str] = None
    duration: Optional[int] = Field(None, ge=0)
    tips: Optional[str] = None


class TagCreate(BaseModel):
    name: str = Field(min_length=1)
    slug: Optional[str] = None
    color: Optional[str] = None


class TagUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    slug: Optional[str] = Field(None, min_length=1)
    color: Optional[str] = None


class ArticleCreate(BaseModel):
    category_id: Optional[int] = None
    title: str = Field(min_length=1)
    slug: Optional[str] = None
    excerpt: Optional[str] = None
    content: str = Field(min_length=1)
    image_url: Optional[str] = None
    author: Optional[str] = None
    featured: Optional[bool] = None


class ArticleUpdate(BaseModel):
    category_id: Optional[int] = None
    title: Optional[str] = Field(None, min_length=1)
    slug: Optional[str] = Field(None, min_length=1)
    excerpt: Optional[str] = None
    content: Optional[str] = Field(None, min_length=1)
    image_url: Optional[str] = None
    author: Optional[str] = None
    featured: Optional[bool] = None


class RecipeImageCreate(BaseModel):
    recipe_id: int
    image_url: str = Field(min_length=1)
    caption: Optional[str] = None
    sort_order: Optional[int] = None


# Columns that are NOT NULL in the schema and therefore cannot be cleared
_REQUIRED_COLUMNS = {
    "name",
    "slug",
    "title",
    "content",
    "instruction",
    "recipe_id",
    "step_number",
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _with_slug(data: Dict[str, Any], source_field: str) -> Dict[str, Any]:
    """Fill in a missing slug from the name/title, rejecting an unusable one."""
    if not data.get("slug"):
        data["slug"] = slugify(data.get(source_field, ""))
    if not data["slug"]:
        raise HTTPException(
            status_code=400,
            detail=f"A slug is required when the {source_field} has no ASCII letters or digits",
        )
    return data


async def _create(table: str, data: Dict[str, Any], label: str) -> Dict[str, Any]:
    try:
        return await insert_row(table, data)
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=f"{label} conflicts with existing data: {e}")


async def _update(table: str, row_id: int, body: BaseModel, label: str) -> Dict[str, Any]:
    fields = body.model_dump(exclude_unset=True)
    cleared = [k for k, v in fields.items() if v is None and k in _REQUIRED_COLUMNS]
    if cleared:
        raise HTTPException(status_code=400, detail=f"Fields cannot be null: {', '.join(cleared)}")
    if not fields:
        raise HTTPException(status_code=400, detail="No fields to update")

    try:
        row = await update_row(table, row_id, fields)
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=f"{label} conflicts with existing data: {e}")

    if row is None:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return row


async def _delete(table: str, row_id: int, label: str) -> Dict[str, bool]:
    try:
        deleted = await delete_row(table, row_id)
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=f"{label} is still referenced: {e}")

    if not deleted:
        raise HTTPException(status_code=404, detail=f"{label} not found")
    return {"success": True}


async def _create_many(table: str, items: List[BaseModel], label: str) -> List[Dict[str, Any]]:
    if not items:
        return []
    try:
        return await insert_rows(table, [item.model_dump(exclude_none=True) for item in items])
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=f"{label} conflicts with existing data: {e}")


async def _require_recipe(recipe_id: int) -> None:
    if not await get_row("recipes", recipe_id):
        raise HTTPException(status_code=404, detail="Recipe not found")


# ---------------------------------------------------------------------------
# Session: login / logout / check
# ---------------------------------------------------------------------------
@session_router.post("/login")
async def admin_login(request: Request, settings: Settings = Depends(get_settings)):
    """Validate credentials and set the signed session cookie."""
    try:
        body = await request.json()
    except ValueError:
        body = None
    if not isinstance(body, dict):
        return JSONResponse(status_code=400, content={"error": settings.generic_error_message})

    username = body.get("username")
    password = body.get("password")

    if not validate_credentials(settings, username, password):
        logger.warning("🔒 Failed admin login attempt")
        return JSONResponse(status_code=401, content={"error": settings.login_error_message})

    response = JSONResponse(content={"success": True})
    try:
        set_session_cookie(response, settings, username)
    except TokenSigningError as e:
        logger.error("❌ Could not issue admin session: {}", e)
        return JSONResponse(status_code=500, content={"error": settings.generic_error_message})

    logger.info("🔓 Admin '{}' logged in", username)
    return response


@session_router.post("/logout")
async def admin_logout(request: Request, settings: Settings = Depends(get_settings)):
    """Clear the session cookie.  Always succeeds."""
    user = get_current_user(request, settings)
    if user:
        logger.info("🔒 Admin '{}' logged out", user)
    response = JSONResponse(content={"success": True})
    clear_session_cookie(response, settings)
    return response


@session_router.get("/check")
async def admin_check(request: Request, settings: Settings = Depends(get_settings)):
    """Report whether the session cookie is valid (cookie channel only)."""
    user = get_current_user(request, settings)
    if not user:
        return JSONResponse(status_code=401, content={"error": "Not authenticated"})
    return {"authenticated": True, "username": user}


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------
@router.get("/stats")
async def admin_stats():
    """Entity counts for the admin dashboard."""
    return {
        table: await count_rows(table)
        for table in ("categories", "recipes", "tags", "articles")
    }


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------
@router.post("/categories", status_code=201)
async def admin_create_category(body: CategoryCreate):
    data = _with_slug(body.model_dump(exclude_none=True), "name")
    return await _create("categories", data, "Category")


@router.put("/categories/{category_id}")
async def admin_update_category(category_id: int, body: CategoryUpdate):
    return await _update("categories", category_id, body, "Category")


@router.delete("/categories/{category_id}")
async def admin_delete_category(category_id: int):
    return await _delete("categories", category_id, "Category")


# ---------------------------------------------------------------------------
# Recipes
# ---------------------------------------------------------------------------
@router.post("/recipes", status_code=201)
async def admin_create_recipe(body: RecipeCreate):
    data = _with_slug(body.model_dump(exclude_none=True), "name")
    return await _create("recipes", data, "Recipe")


@router.put("/recipes/{recipe_id}")
async def admin_update_recipe(recipe_id: int, body: RecipeUpdate):
    return await _update("recipes", recipe_id, body, "Recipe")


@router.delete("/recipes/{recipe_id}")
async def admin_delete_recipe(recipe_id: int):
    return await _delete("recipes", recipe_id, "Recipe")


@router.put("/recipes/{recipe_id}/tags")
async def admin_set_recipe_tags(recipe_id: int, body: RecipeTagsUpdate):
    """Replace all tags of a recipe."""
    try:
        tag_ids = await set_recipe_tags(recipe_id, body.tag_ids)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Recipe not found")
    except ConflictError as e:
        raise HTTPException(status_code=409, detail=f"Unknown tag id: {e}")
    return {"success": True, "tag_ids": tag_ids}


@router.delete("/recipes/{recipe_id}/ingredients")
async def admin_delete_recipe_ingredients(recipe_id: int):
    await _require_recipe(recipe_id)
    removed = await delete_rows_by_recipe("ingredients", recipe_id)
    return {"success": True, "deleted": removed}


@router.delete("/recipes/{recipe_id}/steps")
async def admin_delete_recipe_steps(recipe_id: int):
    await _require_recipe(recipe_id)
    removed = await delete_rows_by_recipe("steps", recipe_id)
    return {"success": True, "deleted": removed}


# ---------------------------------------------------------------------------
# Ingredients
# ---------------------------------------------------------------------------
@router.post("/ingredients", status_code=201)
async def admin_create_ingredient(body: IngredientCreate):
    return await _create("ingredients", body.model_dump(exclude_none=True), "Ingredient")


@router.post("/ingredients/bulk", status_code=201)
async def admin_create_ingredients(body: List[IngredientCreate]):
    return await _create_many("ingredients", body, "Ingredient")


@router.put("/ingredients/{ingredient_id}")
async def admin_update_ingredient(ingredient_id: int, body: IngredientUpdate):
    return await _update("ingredients", ingredient_id, body, "Ingredient")


@router.delete("/ingredients/{ingredient_id}")
async def admin_delete_ingredient(ingredient_id: int):
    return await _delete("ingredients", ingredient_id, "Ingredient")


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------
@router.post("/steps", status_code=201)
async def admin_create_step(body: StepCreate):
    return await _create("steps", body.model_dump(exclude_none=True), "Step")


@router.post("/steps/bulk", status_code=201)
async def admin_create_steps(body: List[StepCreate]):
    return await _create_many("steps", body, "Step")


@router.put("/steps/{step_id}")
async def admin_update_step(step_id: int, body: StepUpdate):
    return await _update("steps", step_id, body, "Step")


@router.delete("/steps/{step_id}")
async def admin_delete_step(step_id: int):
    return await _delete("steps", step_id, "Step")


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------
@router.post("/tags", status_code=201)
async def admin_create_tag(body: TagCreate):
    data = _with_slug(body.model_dump(exclude_none=True), "name")
    return await _create("tags", data, "Tag")


@router.put("/tags/{tag_id}")
async def admin_update_tag(tag_id: int, body: TagUpdate):
    return await _update("tags", tag_id, body, "Tag")


@router.delete("/tags/{tag_id}")
async def admin_delete_tag(tag_id: int):
    return await _delete("tags", tag_id, "Tag")


# ---------------------------------------------------------------------------
# Articles
# ---------------------------------------------------------------------------
@router.post("/articles", status_code=201)
async def admin_create_article(body: ArticleCreate):
    data = _with_slug(body.model_dump(exclude_none=True), "title")
    if not data.get("excerpt"):
        data["excerpt"] = truncate(data["content"], EXCERPT_LENGTH)
    return await _create("articles", data, "Article")


@router.put("/articles/{article_id}")
async def admin_update_article(article_id: int, body: ArticleUpdate):
    return await _update("articles", article_id, body, "Article")


@router.delete("/articles/{article_id}")
async def admin_delete_article(article_id: int):
    return await _delete("articles", article_id, "Article")


# ---------------------------------------------------------------------------
# Recipe gallery images
# ---------------------------------------------------------------------------
@router.post("/recipe-images", status_code=201)
async def admin_create_recipe_image(body: RecipeImageCreate):
    return await _create("recipe_images", body.model_dump(exclude_none=True), "Recipe image")


@router.delete("/recipe-images/{image_id}")
async def admin_delete_recipe_image(image_id: int):
    return await _delete("recipe_images", image_id, "Recipe image")

"""
Categories and tags.

Categories form a tree through ``parent_id``.  A category can never be
moved under itself or one of its descendants.  Deleting a category either
removes its whole subtree or lifts its children up to its own parent.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.dtos import CreateCategoryDTO, CreateTagDTO, UpdateCategoryDTO, UpdateTagDTO
from app.exceptions import ValidationError
from app.models import Category, Tag
from app.policies import AuthContext, authorize
from app.repositories.taxonomy import CategoryRepository, TagRepository

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Categories
# ---------------------------------------------------------------------------

async def list_categories(db: AsyncSession) -> list[Category]:
    return await CategoryRepository(db).list_all()


async def get_category(db: AsyncSession, category_id: int) -> Category:
    return await CategoryRepository(db).get_or_fail(category_id)


async def _check_parent(repo: CategoryRepository, parent_id: int | None, category_id: int | None = None) -> None:
    if parent_id is None:
        return
    if category_id is not None:
        if parent_id == category_id:
            raise ValidationError.single("parent_id", "A category cannot be its own parent.")
        if parent_id in await repo.descendant_ids(category_id):
            raise ValidationError.single("parent_id", "A category cannot be moved under one of its descendants.")
    if await repo.get(parent_id) is None:
        raise ValidationError.single("parent_id", "The selected parent category is invalid.")


async def create_category(db: AsyncSession, ctx: AuthContext, dto: CreateCategoryDTO) -> Category:
    authorize(ctx.has_permission("manage_categories"))
    repo = CategoryRepository(db)
    if await repo.slug_exists(dto.slug):
        raise ValidationError.single("slug", "The slug has already been taken.")
    await _check_parent(repo, dto.parent_id)
    category = await repo.create(name=dto.name, slug=dto.slug, parent_id=dto.parent_id)
    logger.info("Category %s created", category.id)
    return category


async def update_category(
    db: AsyncSession, ctx: AuthContext, category_id: int, dto: UpdateCategoryDTO
) -> Category:
    authorize(ctx.has_permission("manage_categories"))
    repo = CategoryRepository(db)
    category = await repo.get_or_fail(category_id)
    changes = dto.changes()
    if "slug" in changes and await repo.slug_exists(changes["slug"], exclude_id=category.id):
        raise ValidationError.single("slug", "The slug has already been taken.")
    if "parent_id" in changes:
        await _check_parent(repo, changes["parent_id"], category.id)
    return await repo.update(category, changes)


async def delete_category(
    db: AsyncSession, ctx: AuthContext, category_id: int, delete_children: bool = False
) -> None:
    authorize(ctx.has_permission("manage_categories"))
    repo = CategoryRepository(db)
    category = await repo.get_or_fail(category_id)
    if delete_children:
        await repo.delete_ids(await repo.descendant_ids(category.id))
    else:
        await repo.reparent_children(category.id, category.parent_id)
    await repo.delete(category)
    logger.info("Category %s deleted (children %s)", category_id, "deleted" if delete_children else "re-parented")


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------

async def list_tags(db: AsyncSession) -> list[Tag]:
    return await TagRepository(db).list_all()


async def get_tag(db: AsyncSession, tag_id: int) -> Tag:
    return await TagRepository(db).get_or_fail(tag_id)


async def create_tag(db: AsyncSession, ctx: AuthContext, dto: CreateTagDTO) -> Tag:
    authorize(ctx.has_permission("manage_tags"))
    repo = TagRepository(db)
    if await repo.slug_exists(dto.slug):
        raise ValidationError.single("slug", "The slug has already been taken.")
    return await repo.create(name=dto.name, slug=dto.slug)


async def update_tag(db: AsyncSession, ctx: AuthContext, tag_id: int, dto: UpdateTagDTO) -> Tag:
    authorize(ctx.has_permission("manage_tags"))
    repo = TagRepository(db)
    tag = await repo.get_or_fail(tag_id)
    changes = dto.changes()
    if "slug" in changes and await repo.slug_exists(changes["slug"], exclude_id=tag.id):
        raise ValidationError.single("slug", "The slug has already been taken.")
    return await repo.update(tag, changes)


async def delete_tag(db: AsyncSession, ctx: AuthContext, tag_id: int) -> None:
    authorize(ctx.has_permission("manage_tags"))
    repo = TagRepository(db)
    await repo.delete(await repo.get_or_fail(tag_id))

from sqlalchemy import delete, select, update

from app.models import Category, Tag
from app.repositories.base import BaseRepository


class CategoryRepository(BaseRepository[Category]):
    model = Category
    label = "Category"

    async def get_by_slug(self, slug: str) -> Category | None:
        return await self.first(select(Category).where(Category.slug == slug))

    async def slug_exists(self, slug: str, exclude_id: int | None = None) -> bool:
        criteria = [Category.slug == slug]
        if exclude_id is not None:
            criteria.append(Category.id != exclude_id)
        return await self.exists(*criteria)

    async def list_all(self) -> list[Category]:
        return await self.all(select(Category).order_by(Category.name, Category.id))

    async def descendant_ids(self, category_id: int) -> set[int]:
        """Ids of every category below *category_id*, breadth first."""
        found: set[int] = set()
        frontier = {category_id}
        while frontier:
            rows = await self.db.execute(select(Category.id).where(Category.parent_id.in_(frontier)))
            frontier = set(rows.scalars()) - found - {category_id}
            found |= frontier
        return found

    async def reparent_children(self, category_id: int, new_parent_id: int | None) -> None:
        await self.db.execute(
            update(Category)
            .where(Category.parent_id == category_id)
            .values(parent_id=new_parent_id)
            .execution_options(synchronize_session=False)
        )

    async def delete_ids(self, ids) -> None:
        if ids:
            await self.db.execute(
                delete(Category).where(Category.id.in_(ids)).execution_options(synchronize_session=False)
            )


class TagRepository(BaseRepository[Tag]):
    model = Tag
    label = "Tag"

    async def get_by_slug(self, slug: str) -> Tag | None:
        return await self.first(select(Tag).where(Tag.slug == slug))

    async def slug_exists(self, slug: str, exclude_id: int | None = None) -> bool:
        criteria = [Tag.slug == slug]
        if exclude_id is not None:
            criteria.append(Tag.id != exclude_id)
        return await self.exists(*criteria)

    async def list_all(self) -> list[Tag]:
        return await self.all(select(Tag).order_by(Tag.name, Tag.id))

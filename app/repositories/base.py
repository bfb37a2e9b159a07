"""
Shared repository plumbing.

A repository wraps one mapped class: lookups, inserts, partial updates and
paginated reads.  Repositories flush but never commit; the transaction
boundary belongs to the ``get_db`` dependency.
"""
import math
from dataclasses import dataclass
from typing import Any, Generic, Sequence, TypeVar

from sqlalchemy import Select, asc, desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import Base
from app.exceptions import NotFoundError

ModelT = TypeVar("ModelT", bound=Base)
T = TypeVar("T")


@dataclass
class Page(Generic[T]):
    """One page of results plus the numbers needed to render pagination."""

    items: Sequence[T]
    total: int
    page: int
    per_page: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.per_page) if self.total > 0 else 0

    @property
    def first_item(self) -> int | None:
        return (self.page - 1) * self.per_page + 1 if self.items else None

    @property
    def last_item(self) -> int | None:
        return (self.page - 1) * self.per_page + len(self.items) if self.items else None


class BaseRepository(Generic[ModelT]):
    model: type[ModelT]
    label: str = "Resource"
    # Columns that are safe to sort by; guards against arbitrary attribute access.
    sortable: frozenset[str] = frozenset({"created_at"})

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def get(self, id: int, *options) -> ModelT | None:
        stmt = select(self.model).where(self.model.id == id)
        if options:
            # Reload relationships even when the instance is already in the
            # identity map with its collections unloaded.
            stmt = stmt.options(*options).execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.unique().scalar_one_or_none()

    async def get_or_fail(self, id: int, *options) -> ModelT:
        instance = await self.get(id, *options)
        if instance is None:
            raise NotFoundError(self.label)
        return instance

    async def first(self, stmt: Select) -> Any:
        return (await self.db.execute(stmt)).unique().scalars().first()

    async def all(self, stmt: Select | None = None) -> list[ModelT]:
        stmt = stmt if stmt is not None else select(self.model)
        return list((await self.db.execute(stmt)).unique().scalars().all())

    async def count(self, *criteria) -> int:
        stmt = select(func.count()).select_from(self.model)
        if criteria:
            stmt = stmt.where(*criteria)
        return (await self.db.execute(stmt)).scalar_one()

    async def exists(self, *criteria) -> bool:
        return await self.count(*criteria) > 0

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create(self, **values: Any) -> ModelT:
        instance = self.model(**values)
        self.db.add(instance)
        await self.db.flush()
        return instance

    async def update(self, instance: ModelT, values: dict[str, Any]) -> ModelT:
        for name, value in values.items():
            setattr(instance, name, value)
        await self.db.flush()
        return instance

    async def delete(self, instance: ModelT) -> None:
        await self.db.delete(instance)
        await self.db.flush()

    # ------------------------------------------------------------------
    # Pagination
    # ------------------------------------------------------------------

    def order_by(self, stmt: Select, sort_by: str, sort_order: str = "desc") -> Select:
        column = getattr(self.model, sort_by if sort_by in self.sortable else "created_at")
        order = desc(column) if sort_order == "desc" else asc(column)
        # id as a tie-breaker keeps pages stable when timestamps collide.
        return stmt.order_by(order, desc(self.model.id) if sort_order == "desc" else asc(self.model.id))

    async def paginate(self, stmt: Select, page: int, per_page: int, *options) -> Page[ModelT]:
        """
        Run *stmt* as one page.

        Two statements are issued: a COUNT over the filtered query with its
        ordering stripped, then the page itself with LIMIT/OFFSET.  Loader
        *options* are applied to the page query only.
        """
        count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
        total: int = (await self.db.execute(count_stmt)).scalar_one()

        page_stmt = stmt.offset((page - 1) * per_page).limit(per_page)
        if options:
            page_stmt = page_stmt.options(*options).execution_options(populate_existing=True)
        rows = await self.db.execute(page_stmt)
        items = rows.unique().scalars().all()
        return Page(items=list(items), total=total, page=page, per_page=per_page)

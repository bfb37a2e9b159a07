from sqlalchemy import or_, select
from sqlalchemy.orm import joinedload

from app.dtos import MediaFilters
from app.models import Media
from app.repositories.base import BaseRepository


class MediaRepository(BaseRepository[Media]):
    model = Media
    label = "Media"
    sortable = frozenset({"created_at", "name", "size"})

    async def paginate_library(self, filters: MediaFilters, page: int, per_page: int):
        stmt = select(Media)
        if filters.type is not None:
            stmt = stmt.where(Media.type == filters.type)
        if filters.search:
            term = f"%{filters.search}%"
            stmt = stmt.where(or_(Media.name.ilike(term), Media.file_name.ilike(term)))
        if filters.uploaded_by is not None:
            stmt = stmt.where(Media.uploaded_by == filters.uploaded_by)
        stmt = self.order_by(stmt, "created_at", "desc")
        return await self.paginate(stmt, page, per_page, joinedload(Media.uploader))

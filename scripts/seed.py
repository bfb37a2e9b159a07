"""Database seeder: roles and permissions, an administrator and sample content."""
import argparse
import asyncio
import random
import time
from datetime import timedelta

from app.database import Base, async_session, engine
from app.enums import ArticleStatus, CommentStatus, UserRole
from app.models import Article, Category, Comment, Tag, User
from app.permissions import sync_roles_and_permissions
from app.repositories.taxonomy import CategoryRepository
from app.repositories.users import UserRepository
from app.security import hash_password
from app.utils import slugify, utcnow

CATEGORIES = ["Engineering", "Product", "Design", "Culture"]
TAGS = ["python", "fastapi", "postgresql", "redis", "docker", "testing", "performance", "security"]


async def seed(small: bool = False, reset: bool = False, admin_email: str = "admin@example.com",
               admin_password: str = "password"):
    num_authors = 3 if small else 20
    num_articles = 20 if small else 500
    num_comments_per_article = 2 if small else 5

    start = time.perf_counter()

    async with engine.begin() as conn:
        if reset:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with async_session() as session:
        roles = await sync_roles_and_permissions(session)
        print(f"  Synced {len(roles)} roles")

        users = UserRepository(session)
        admin = await users.get_by_email(admin_email)
        if admin is None:
            admin = await users.create(name="Administrator", email=admin_email, password=hash_password(admin_password))
            await users.sync_roles(admin, [roles[UserRole.ADMINISTRATOR.value]])
            print(f"  Created administrator {admin_email}")

        if await CategoryRepository(session).count() > 0:
            await session.commit()
            print("  Sample content already present; use --reset to recreate it")
            return

        categories = []
        for name in CATEGORIES:
            category = Category(name=name, slug=slugify(name))
            session.add(category)
            categories.append(category)
        tags = []
        for name in TAGS:
            tag = Tag(name=name, slug=name)
            session.add(tag)
            tags.append(tag)
        await session.flush()

        authors = []
        for i in range(num_authors):
            author = await users.create(
                name=f"Author {i}",
                email=f"author_{i:04d}@example.com",
                password=hash_password("password"),
                bio=f"I am sample author number {i}.",
            )
            await users.sync_roles(author, [roles[UserRole.AUTHOR.value]])
            authors.append(author)
        print(f"  Created {len(authors)} authors")

        now = utcnow()
        total_comments = 0
        for i in range(num_articles):
            published = random.random() > 0.1
            title = f"Article {i}: Notes on {random.choice(TAGS)}"
            author = random.choice(authors)
            article = Article(
                title=title,
                slug=f"{slugify(title)}-{i}",
                content_markdown=f"This is the full content of article {i}. " * 20,
                excerpt=f"A short guide on {random.choice(TAGS)}.",
                status=ArticleStatus.PUBLISHED if published else ArticleStatus.DRAFT,
                published_at=now - timedelta(days=random.randint(0, 365)) if published else None,
                created_by=author.id,
                approved_by=author.id if published else None,
                categories=[random.choice(categories)],
                tags=random.sample(tags, k=random.randint(1, 3)),
            )
            session.add(article)
            await session.flush()

            for _ in range(random.randint(0, num_comments_per_article) if published else 0):
                commenter = random.choice(authors)
                session.add(
                    Comment(
                        article_id=article.id,
                        user_id=commenter.id,
                        content=f"Great article! Comment by {commenter.name}.",
                        status=CommentStatus.APPROVED,
                        approved_by=admin.id,
                        approved_at=now,
                    )
                )
                total_comments += 1
        await session.commit()

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")
    print(f"  Articles: {num_articles}")
    print(f"  Comments: {total_comments}")
    print(f"  Categories: {len(CATEGORIES)}  Tags: {len(TAGS)}")


def main():
    parser = argparse.ArgumentParser(description="Seed the blog database")
    parser.add_argument("--small", action="store_true", help="Use a small dataset (20 articles)")
    parser.add_argument("--reset", action="store_true", help="Drop all tables first")
    parser.add_argument("--admin-email", default="admin@example.com")
    parser.add_argument("--admin-password", default="password")
    args = parser.parse_args()
    asyncio.run(seed(small=args.small, reset=args.reset, admin_email=args.admin_email,
                     admin_password=args.admin_password))


if __name__ == "__main__":
    main()

"""Populate a development database with persons, drafts and published articles.

Articles go through the lifecycle service so slugs, tags and drafts are
created exactly as the API would create them.
"""
import argparse
import asyncio
import random
import time

from conduit.database import Base, async_session, engine
from conduit.schemas import ArticleCreate, CommentCreate, PersonCreate
from conduit.services import article_service, comment_service, favorite_service, person_service

TAGS = ["python", "fastapi", "postgresql", "redis", "docker", "kubernetes",
        "react", "typescript", "aws", "devops", "testing", "performance"]

TOPICS = ["Getting started with", "Scaling", "Debugging", "Testing", "Why I stopped using"]


async def seed(small: bool = False) -> None:
    num_persons = 5 if small else 25
    num_articles = 30 if small else 1000

    print(f"Seeding: {num_persons} persons, {num_articles} articles")
    start = time.perf_counter()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with async_session() as session:
        usernames = []
        for i in range(num_persons):
            profile = await person_service.create_person(
                session,
                PersonCreate(
                    username=f"person_{i:03d}",
                    email=f"person_{i:03d}@example.com",
                    bio=f"Person {i}, writes about software.",
                ),
            )
            usernames.append(profile["username"])

        drafts = 0
        for i in range(num_articles):
            author = random.choice(usernames)
            title = f"{random.choice(TOPICS)} {random.choice(TAGS)}"
            as_draft = random.random() < 0.2
            article = await article_service.create_article(
                session,
                author,
                ArticleCreate(
                    title=title,
                    description=f"Notes on {title.lower()}",
                    body=f"Article {i}. " * 40,
                    tag_list=random.sample(TAGS, k=random.randint(1, 3)),
                ),
                as_draft=as_draft,
            )
            if as_draft:
                drafts += 1
                continue
            for reader in random.sample(usernames, k=random.randint(0, 3)):
                await favorite_service.favorite(session, article["slug"], reader)
                await comment_service.add_comment(
                    session, article["slug"], reader, CommentCreate(body="Thanks for writing this!")
                )

        await session.commit()

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")
    print(f"  Persons: {num_persons}")
    print(f"  Published: {num_articles - drafts}")
    print(f"  Drafts: {drafts}")


def main():
    parser = argparse.ArgumentParser(description="Seed the Conduit database")
    parser.add_argument("--small", action="store_true", help="Use a small dataset (30 articles)")
    args = parser.parse_args()
    asyncio.run(seed(small=args.small))


if __name__ == "__main__":
    main()

"""Populate the board database with users, posts and comments for local runs."""
import asyncio
import argparse
import random
import time
from datetime import datetime, timezone, timedelta

from board.database import engine, async_session, Base
from board.models import User, Post, Comment
from board.security import hash_password

TOPICS = ["python", "fastapi", "postgresql", "redis", "docker", "caching",
          "testing", "performance", "security", "async", "sqlalchemy"]


async def seed(small: bool = False):
    num_users = 10 if small else 50
    num_posts = 100 if small else 5000
    max_comments_per_post = 2 if small else 8

    print(f"Seeding: {num_users} users, {num_posts} posts, up to {max_comments_per_post} comments each")
    start = time.perf_counter()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    # One hash for everyone; bcrypt per user would dominate the run time.
    password_hash = hash_password("password123")

    async with async_session() as session:
        users = [
            User(
                username=f"user_{i:04d}",
                email=f"user_{i:04d}@example.com",
                nickname=f"User {i}",
                password_hash=password_hash,
            )
            for i in range(num_users)
        ]
        session.add_all(users)
        await session.flush()
        print(f"  Created {len(users)} users")

        total_comments = 0
        batch_size = 500
        for batch_start in range(0, num_posts, batch_size):
            batch = []
            for i in range(batch_start, min(batch_start + batch_size, num_posts)):
                created = datetime.now(timezone.utc) - timedelta(days=random.randint(0, 365))
                topic = random.choice(TOPICS)
                batch.append(Post(
                    title=f"Post {i}: notes on {topic}",
                    content=f"<p>Thoughts about <b>{topic}</b>, part {i}.</p>" * 5,
                    view_count=random.randint(0, 5000),
                    created_at=created,
                    updated_at=created,
                    author_id=random.choice(users).id,
                ))
            session.add_all(batch)
            await session.flush()

            for post in batch:
                for _ in range(random.randint(0, max_comments_per_post)):
                    session.add(Comment(
                        content=f"Nice write-up on post {post.id}.",
                        post_id=post.id,
                        author_id=random.choice(users).id,
                    ))
                    total_comments += 1
            await session.flush()
            print(f"  Batch {batch_start}-{batch_start + len(batch)}: posts created")

        await session.commit()

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")
    print(f"  Users: {num_users}")
    print(f"  Posts: {num_posts}")
    print(f"  Comments: {total_comments}")


def main():
    parser = argparse.ArgumentParser(description="Seed the board database")
    parser.add_argument("--small", action="store_true", help="Use small dataset (100 posts)")
    args = parser.parse_args()
    asyncio.run(seed(small=args.small))


if __name__ == "__main__":
    main()

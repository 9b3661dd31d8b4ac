"""Database seeder: users, follow edges, posts, comments and likes."""
import asyncio
import argparse
import random
import time

from threads_api.database import engine, async_session, Base
from threads_api.exceptions import ConflictError
from threads_api.services import follow_service, post_service, user_service

TAGS = ["python", "fastapi", "postgresql", "redis", "travel", "food",
        "music", "photography", "books", "running", "coffee", "gaming"]

DEFAULT_PASSWORD = "password123"


async def seed(small: bool = False):
    num_users = 10 if small else 50
    num_posts = 50 if small else 2000
    follows_per_user = 3 if small else 15

    print(f"Seeding: {num_users} users, {num_posts} posts")
    start = time.perf_counter()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with async_session() as session:
        for i in range(num_users):
            await user_service.register(
                session,
                name=f"User {i}",
                username=f"user_{i:04d}",
                email=f"user_{i:04d}@example.com",
                password=DEFAULT_PASSWORD,
            )
        users = await user_service.get_users(session)
        print(f"  Created {len(users)} users (password: {DEFAULT_PASSWORD!r})")

        total_follows = 0
        for user in users:
            others = [u for u in users if u["id"] != user["id"]]
            for target in random.sample(others, k=min(follows_per_user, len(others))):
                try:
                    await follow_service.follow_user(session, user["id"], target["id"])
                    total_follows += 1
                except ConflictError:
                    pass
        print(f"  Created {total_follows} follow edges")

        total_comments = 0
        total_likes = 0
        for i in range(num_posts):
            author = random.choice(users)
            post = await post_service.create_post(
                session,
                content=f"Post {i} by {author['username']}: thoughts on {random.choice(TAGS)}.",
                tags=random.sample(TAGS, k=random.randint(0, 3)),
                img_url=f"https://picsum.photos/seed/{i}/600/400" if random.random() > 0.5 else None,
                author_id=author["id"],
            )
            for _ in range(random.randint(0, 3)):
                await post_service.add_comment(
                    session, "Nice one!", post["id"], random.choice(users)["username"]
                )
                total_comments += 1
            for liker in random.sample(users, k=random.randint(0, 5)):
                await post_service.add_like(session, post["id"], liker["username"])
                total_likes += 1

        await session.commit()

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")
    print(f"  Posts: {num_posts}")
    print(f"  Comments: {total_comments}")
    print(f"  Likes: {total_likes}")
    print("  Flush the feed cache key (FEED_CACHE_KEY) if the API is already running.")


def main():
    parser = argparse.ArgumentParser(description="Seed the threads database")
    parser.add_argument("--small", action="store_true", help="Use small dataset (50 posts)")
    args = parser.parse_args()
    asyncio.run(seed(small=args.small))


if __name__ == "__main__":
    main()

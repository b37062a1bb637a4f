"""Populate a development database with tutorials, comments and page views."""
import argparse
import asyncio
import random
import time
import uuid
from datetime import datetime, timedelta, timezone

from electrolab.auth import create_access_token
from electrolab.database import Base, async_session, engine
from electrolab.schemas import CategoryCreate, CommentCreate, PageViewCreate, TutorialCreate
from electrolab.services import analytics_service, comment_service, content_service

CATEGORIES = [
    ("Electronics 101", "bg-blue-500", "BookOpen"),
    ("Arduino Projects", "bg-green-500", "Cpu"),
    ("ESP32 Projects", "bg-purple-500", "Wifi"),
    ("ESP8266 Projects", "bg-orange-500", "Wifi"),
    ("Basic Electronics", "bg-yellow-500", "Zap"),
]

TOPICS = ["LED", "Servo Motor", "DHT22 Sensor", "I2C LCD", "PIR Sensor", "NRF24L01",
          "Ultrasonic Sensor", "Soil Moisture Sensor", "BME280", "Zener Diode"]

TAGS = ["arduino", "esp32", "esp8266", "sensors", "displays", "motors", "wireless",
        "beginner", "iot", "power"]

REFERRERS = [None, "https://www.google.com/", "https://www.youtube.com/",
             "https://www.reddit.com/r/arduino/", "https://duckduckgo.com/"]

USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0 Safari/537.36",
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1",
    "Mozilla/5.0 (X11; Linux x86_64; rv:121.0) Gecko/20100101 Firefox/121.0",
    "Mozilla/5.0 (iPad; CPU OS 17_0 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.0 Safari/604.1",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0 Safari/537.36 Edg/120.0",
]


async def seed(small: bool = False):
    per_category = 3 if small else 12
    num_sessions = 50 if small else 2000

    start = time.perf_counter()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    async with async_session() as session:
        tutorials = []
        for name, color, icon in CATEGORIES:
            category = await content_service.create_category(
                session, CategoryCreate(name=name, color=color, icon=icon)
            )
            for i in range(per_category):
                topic = random.choice(TOPICS)
                tutorial = await content_service.create_tutorial(
                    session,
                    TutorialCreate(
                        title=f"{topic} with {name.split()[0]} part {i + 1}",
                        description=f"Wire up and program a {topic} step by step.",
                        content=f"Parts list, wiring diagram and code for the {topic}. " * 10,
                        category_id=category.id,
                        difficulty=random.choice(["Beginner", "Intermediate", "Advanced"]),
                        tags=random.sample(TAGS, k=random.randint(1, 4)),
                        published=random.random() > 0.2,
                    ),
                )
                tutorials.append(tutorial)
        print(f"  Created {len(CATEGORIES)} categories, {len(tutorials)} tutorials")

        total_comments = 0
        for tutorial in tutorials:
            parent = None
            for n in range(random.randint(0, 4)):
                comment = await comment_service.create_comment(
                    session,
                    CommentCreate(
                        tutorial_id=tutorial.id,
                        parent_id=parent.id if parent and random.random() > 0.5 else None,
                        author_name=f"Maker {random.randint(1, 500)}",
                        author_email=f"maker{n}@example.com",
                        content="Worked first time, thanks! Which resistor value did you use?",
                    ),
                    approve=random.random() > 0.4,
                )
                parent = parent or comment
                total_comments += 1
        print(f"  Created {total_comments} comments")

        now = datetime.now(timezone.utc)
        published = [t for t in tutorials if t.published]
        total_views = 0
        for _ in range(num_sessions):
            session_id = uuid.uuid4().hex
            user_agent = random.choice(USER_AGENTS)
            moment = now - timedelta(days=random.randint(0, 45), minutes=random.randint(0, 1440))
            referrer = random.choice(REFERRERS)
            for _ in range(random.randint(1, 5)):
                tutorial = random.choice(published)
                await analytics_service.record_page_view(
                    session,
                    PageViewCreate(
                        page=f"/tutorial/{tutorial.slug}",
                        page_title=tutorial.title,
                        session_id=session_id,
                        referrer=referrer,
                        timestamp=moment,
                    ),
                    user_agent=user_agent,
                )
                await content_service.increment_view_count(session, tutorial.slug)
                moment += timedelta(seconds=random.randint(20, 600))
                referrer = None
                total_views += 1
        print(f"  Recorded {total_views} page views over {num_sessions} sessions")

        await session.commit()

    elapsed = time.perf_counter() - start
    print(f"\nSeeding complete in {elapsed:.1f}s")
    print(f"Admin token: {create_access_token('seed-admin')}")


def main():
    parser = argparse.ArgumentParser(description="Seed the content database")
    parser.add_argument("--small", action="store_true", help="Use a small dataset")
    args = parser.parse_args()
    asyncio.run(seed(small=args.small))


if __name__ == "__main__":
    main()

"""Locally generated placeholder knowledge points.

Used when the transcription provider is unconfigured or errors and the
fallback is enabled. Output depends only on the video id, so repeated
runs for the same video produce the same chapters.
"""

import hashlib
import random

from coursevault.services.analysis.types import KnowledgePointData

DEMO_VIDEO_ID = "BV1oJm5BQEfJ"

DEMO_CHAPTERS = (
    (5.2, 18.7, "Introducing the hydrostatic paradox"),
    (20.1, 35.6, "Demonstrating the hydrostatic paradox apparatus"),
    (37.2, 52.9, "Explaining the physics behind the hydrostatic paradox"),
    (55.1, 70.8, "Practical applications of the hydrostatic paradox"),
    (72.3, 85.5, "Key takeaways on the hydrostatic paradox"),
)

TOPICS = (
    "Introducing the basic concepts",
    "Explaining the core principles",
    "Demonstrating the experiment",
    "Analysing the experimental results",
    "Discussing practical applications",
    "Summarising the key points",
    "Comparing competing theories",
    "Historical background",
    "Future directions",
    "Answering common questions",
)


def _seed_for(external_video_id: str) -> int:
    # hash() is salted per process; sha256 is stable across restarts
    digest = hashlib.sha256(external_video_id.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big")


def placeholder_knowledge_points(external_video_id: str) -> list[KnowledgePointData]:
    """Build the placeholder chapter list for a video.

    The demo video returns its fixed five chapters. Any other id gets 5-8
    chapters of 10-30 seconds separated by 0-5 second gaps, rounded to 0.1s.
    """
    if external_video_id == DEMO_VIDEO_ID:
        return [
            KnowledgePointData(start_time=start, end_time=end, content=content)
            for start, end, content in DEMO_CHAPTERS
        ]

    rng = random.Random(_seed_for(external_video_id))
    points: list[KnowledgePointData] = []
    current = 0.0

    for _ in range(rng.randint(5, 8)):
        duration = rng.uniform(10, 30)
        start = round(current, 1)
        points.append(
            KnowledgePointData(
                start_time=start,
                end_time=max(start, round(current + duration, 1)),
                content=rng.choice(TOPICS),
            )
        )
        current += duration + rng.uniform(0, 5)

    return points


def format_timestamp(seconds: float) -> str:
    """Format seconds as MM:SS.cc (minutes are not wrapped at 60)."""
    if seconds < 0:
        raise ValueError("seconds must be >= 0")
    minutes = int(seconds // 60)
    secs = int(seconds % 60)
    centis = int(round((seconds % 1) * 100, 6))
    return f"{minutes:02d}:{secs:02d}.{centis:02d}"

"""First-run placeholder content so a fresh install never opens on an empty feed."""

from __future__ import annotations

import logging
import random
from datetime import timedelta

from letitout.db.time import utcnow
from letitout.repositories.local_store import LocalStore
from letitout.services.identity import HANDLE_ADJECTIVES, HANDLE_ANIMALS
from letitout.services.rooms import RoomSnapshot

logger = logging.getLogger(__name__)

SEED_DEVICE_ID = "seed"

SEED_TEXTS = (
    "Long day at work and nobody noticed how much I carried. Just needed to say it somewhere.",
    "I keep replaying a conversation from last week and wishing I had said something different.",
    "Feeling anxious about tomorrow for no reason I can name.",
    "Finally took a walk after a week of staying in. It helped a little.",
    "Miss someone I can't call anymore. Some days it hits harder than others.",
    "My family means well but every visit leaves me drained.",
    "Moved to a new city and the quiet evenings are louder than I expected.",
    "Snapped at someone I care about today and I feel awful about it.",
    "Deadlines stacking up and my brain feels like static.",
    "Grateful for one small good thing today: the coffee was perfect.",
    "It's strange to feel lonely in a room full of people.",
    "Trying to be patient with myself. Progress isn't a straight line.",
    "Told a friend how I actually feel and they listened. That was new.",
    "Can't sleep again. Writing this instead of scrolling.",
)


class SeedContentProvider:
    """Generates deterministic sample vents spread across the known rooms."""

    def __init__(self, store: LocalStore, vent_count: int = 12) -> None:
        self._store = store
        self._vent_count = vent_count

    async def seed(self, rooms: RoomSnapshot) -> int:
        """Insert sample vents into the local store and return how many were created."""
        room_ids = sorted(entry.id for entry in rooms.rooms)
        rng = random.Random("|".join(room_ids))
        now = utcnow()
        created = 0
        for index in range(self._vent_count):
            handle = (
                f"{rng.choice(HANDLE_ADJECTIVES)}{rng.choice(HANDLE_ANIMALS)}"
                f"{rng.randint(10, 99)}"
            )
            mood_before = rng.randint(2, 6)
            await self._store.create_vent(
                text=SEED_TEXTS[index % len(SEED_TEXTS)],
                room=rng.choice(room_ids) if room_ids else None,
                anonymous_handle=handle,
                device_id=SEED_DEVICE_ID,
                mood_before=mood_before,
                mood_after=min(10, mood_before + rng.randint(0, 3)),
                is_draft=False,
                created_at=now - timedelta(hours=index * 3 + rng.randint(0, 2)),
            )
            created += 1
        logger.info("Seeded %d placeholder vents", created)
        return created

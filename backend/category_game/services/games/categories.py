import random
from typing import Optional

from .errors import PersistenceFailure

# Preset categories for research consistency
PRESET_CATEGORIES = [
    'furniture', 'tools', 'games', 'clothing', 'vehicles', 'food',
    'animals', 'colors', 'sports', 'music', 'technology', 'books',
    'drinks', 'toys', 'plants', 'weather', 'emotions', 'professions',
]


def clean_category(text) -> str:
    return (text or '').strip().lower()


class CategorySelector:
    """Draws round categories from a game's persisted pool.

    Player and host submitted categories win over presets: while any of them
    is unused the draw is restricted to them.
    """

    def __init__(self, store, rng: Optional[random.Random] = None):
        self.store = store
        self.rng = rng or random.Random()

    def seed_presets(self, game_id: int) -> int:
        for text in PRESET_CATEGORIES:
            self.store.add_category(game_id, None, text, is_preset=True)
        return len(PRESET_CATEGORIES)

    def submit(self, game_id: int, player_db_id: Optional[int], text: str, is_preset: bool = False) -> Optional[int]:
        return self.store.add_category(game_id, player_db_id, text, is_preset=is_preset)

    def select_next(self, game_id: Optional[int]) -> Optional[str]:
        if game_id is None:
            return None
        try:
            available = self.store.available_categories(game_id)
            if not available:
                return None
            submitted = [c for c in available if not c.is_preset]
            pool = submitted or available
            chosen = self.rng.choice(pool)
            # Marked before returning so the next draw can never see it again
            self.store.mark_category_used(chosen.id)
        except PersistenceFailure:
            return None
        return chosen.category_text

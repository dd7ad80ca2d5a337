# sounds.py
# Audio feedback driven by session outcomes. Playback itself is delegated to a
# player callback so the game runs the same with or without a sound device.

from enum import Enum
from typing import Callable, Optional
import logging

from storage import MUTED_KEY, MemoryStore

logger = logging.getLogger(__name__)

class SoundCue(Enum):
    """Sounds the game can request."""
    MOVE = "move"
    MERGE = "merge"
    WIN = "win"
    GAME_OVER = "game_over"

VOLUMES = {
    SoundCue.MOVE: 0.2,
    SoundCue.MERGE: 0.4,
    SoundCue.WIN: 0.6,
    SoundCue.GAME_OVER: 0.5,
}

Player = Callable[[SoundCue, float], None]

def log_player(cue: SoundCue, volume: float) -> None:
    logger.debug("Sound %s at volume %.1f", cue.value, volume)

class SoundCues:
    """Plays cues unless muted. The mute flag is persisted in the store."""

    def __init__(self, store: Optional[MemoryStore] = None, player: Player = log_player):
        self.store = store if store is not None else MemoryStore()
        self.player = player
        self.muted = bool(self.store.get(MUTED_KEY, False))

    def toggle_mute(self) -> bool:
        self.muted = not self.muted
        self.store.set(MUTED_KEY, self.muted)
        return self.muted

    def play(self, cue: SoundCue) -> None:
        if self.muted:
            return
        self.player(cue, VOLUMES[cue])

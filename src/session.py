# session.py
# Game session controller: sequences move -> spawn -> terminal checks and keeps
# the score, best score, win flags and the single undo slot.

from dataclasses import dataclass
from typing import Callable, Optional, Tuple
import asyncio
import logging
import random

from core import (
    DIRECTION,
    GameProgressState,
    MoveResult,
    Tile,
    TileIdAllocator,
    can_move,
    has_won,
    initialize_tiles,
    move_tiles,
    spawn_tile,
    validate_tiles,
)
from sounds import SoundCue, SoundCues
from storage import MemoryStore, load_best_score, save_best_score

logger = logging.getLogger(__name__)

@dataclass(frozen=True)
class Snapshot:
    """Board and score before the last accepted move."""
    tiles: Tuple[Tile, ...]
    score: int

@dataclass
class SessionState:
    """Everything the presentation layer can query about a game."""
    tiles: Tuple[Tile, ...] = ()
    score: int = 0
    best_score: int = 0
    game_over: bool = False
    won: bool = False
    keep_playing: bool = False
    previous_state: Optional[Snapshot] = None

class GameSession:
    """
    Drives one game at a time. The new tile is spawned as part of `move`.

    Args:
        store (MemoryStore): Where the best score and mute flag persist. Without
                             one, nothing outlives the session.
        sounds (SoundCues): Audio collaborator; built on `store` when omitted.
        rng (random.Random): Random source for spawns.
        state (SessionState): Resume from this state instead of starting a new game.
    """

    def __init__(self, store: Optional[MemoryStore] = None, sounds: Optional[SoundCues] = None,
                 rng: Optional[random.Random] = None, state: Optional[SessionState] = None):
        self.store = store
        self.sounds = sounds if sounds is not None else SoundCues(store)
        self.rng = rng or random.Random()
        self.last_result: Optional[MoveResult] = None
        if state is None:
            best_score = load_best_score(store) if store is not None else 0
            self.state = SessionState(best_score=best_score)
            self.ids = TileIdAllocator()
            self.new_game()
        else:
            validate_tiles(state.tiles)
            self.state = state
            known = list(state.tiles)
            if state.previous_state is not None:
                known += state.previous_state.tiles
            # Ids of tiles that undo could bring back stay reserved as well.
            self.ids = TileIdAllocator(max((tile.id for tile in known), default=0) + 1)

    @property
    def can_undo(self) -> bool:
        return self.state.previous_state is not None

    @property
    def status(self) -> GameProgressState:
        # A win on a dead board is shown first; keep-playing then reveals the game over.
        if self.state.won and not self.state.keep_playing:
            return GameProgressState.GAME_WON
        if self.state.game_over:
            return GameProgressState.GAME_OVER
        return GameProgressState.IN_PROGRESS

    def accepts_moves(self) -> bool:
        return not (self.state.game_over or (self.state.won and not self.state.keep_playing))

    def move(self, direction: DIRECTION) -> bool:
        """
        Plays one move.
        Returns:
            bool: True if the move was accepted and changed the board. A rejected
                  or ineffective move leaves the session untouched.
        """
        if not self.accepts_moves():
            logger.debug("Move %s rejected in state %s", direction, self.status.name)
            return False

        result = move_tiles(self.state.tiles, direction, self.ids)
        if not result.moved:
            return False

        state = self.state
        state.previous_state = Snapshot(state.tiles, state.score)
        state.tiles = result.tiles
        state.score += result.score
        self.last_result = result
        if state.score > state.best_score:
            state.best_score = state.score
            if self.store is not None:
                save_best_score(self.store, state.best_score)

        self.sounds.play(SoundCue.MERGE if result.merged else SoundCue.MOVE)
        self._finish_move()
        return True

    def _finish_move(self) -> None:
        self._spawn_and_check()

    def _spawn_and_check(self) -> None:
        state = self.state
        state.tiles = spawn_tile(state.tiles, self.ids, self.rng)

        won = not state.won and not state.keep_playing and has_won(state.tiles)
        if won:
            state.won = True
            logger.info("Reached the winning tile with score %d", state.score)
        state.game_over = not can_move(state.tiles)
        if state.game_over:
            logger.info("Game over with score %d", state.score)

        if won:
            self.sounds.play(SoundCue.WIN)
        elif state.game_over:
            self.sounds.play(SoundCue.GAME_OVER)

    def new_game(self) -> None:
        """Starts over with two tiles. The best score is kept."""
        self.ids.reset()
        best_score = self.state.best_score
        self.state = SessionState(tiles=initialize_tiles(self.ids, self.rng), best_score=best_score)
        self.last_result = None
        logger.info("New game started (best score %d)", best_score)

    def undo(self) -> bool:
        """Restores the board and score from before the last move. One level only."""
        snapshot = self.state.previous_state
        if snapshot is None:
            return False
        self.state.tiles = snapshot.tiles
        self.state.score = snapshot.score
        self.state.game_over = False
        self.state.won = False
        self.state.previous_state = None
        self.last_result = None
        logger.info("Undid last move, score back to %d", snapshot.score)
        return True

    def keep_playing(self) -> bool:
        """Dismisses the win overlay for the rest of the game."""
        if not self.state.won:
            return False
        self.state.won = False
        self.state.keep_playing = True
        return True

    def toggle_mute(self) -> bool:
        return self.sounds.toggle_mute()

Scheduler = Callable[[float, Callable[[], None]], object]

def call_later(delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
    """Schedules `callback` on the running event loop."""
    return asyncio.get_running_loop().call_later(delay, callback)

class DeferredSpawnSession(GameSession):
    """
    Session whose new tile appears `delay` seconds after the move, leaving
    time for merge animations. Moves are rejected while a spawn is pending.
    New game and undo bump the spawn token, so a spawn scheduled before them
    does nothing when it fires.
    """

    def __init__(self, *args, delay: float = 0.1, scheduler: Scheduler = call_later, **kwargs):
        self.delay = delay
        self.scheduler = scheduler
        self._token = 0
        self._pending = False
        super().__init__(*args, **kwargs)

    @property
    def spawn_pending(self) -> bool:
        return self._pending

    def accepts_moves(self) -> bool:
        return not self._pending and super().accepts_moves()

    def _finish_move(self) -> None:
        self._token += 1
        token = self._token
        # Set before scheduling: a scheduler may run the callback right away.
        self._pending = True
        try:
            self.scheduler(self.delay, lambda: self._deferred_spawn(token))
        except Exception:
            self._invalidate_pending()
            raise

    def _deferred_spawn(self, token: int) -> None:
        if token != self._token:
            logger.debug("Dropping stale spawn %d (current %d)", token, self._token)
            return
        self._pending = False
        self._spawn_and_check()

    def _invalidate_pending(self) -> None:
        self._token += 1
        self._pending = False

    def new_game(self) -> None:
        self._invalidate_pending()
        super().new_game()

    def undo(self) -> bool:
        if self.state.previous_state is None:
            return False
        self._invalidate_pending()
        return super().undo()

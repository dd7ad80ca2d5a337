from contextlib import asynccontextmanager
from fastapi import FastAPI, HTTPException, Request
from pydantic import BaseModel, Field
from typing import List, Optional
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
import logging
import random

import core
from session import GameSession, SessionState, Snapshot
from settings import configure_logging, load_config

config = load_config()
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(config)
    yield

# Initialize the rate limiter
limiter = Limiter(key_func=get_remote_address)
app = FastAPI(
    title="2048 Game API",
    description="A stateless API for playing the 2048 game. "\
                "Keep the session state (tiles, score, best score, undo slot) on the client "\
                "and send it back with every command.",
    version="2.0.0",
    lifespan=lifespan,
)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# --- Pydantic Models for API requests and responses ---

class TileData(BaseModel):
    """A single tile with its identity and per-move animation hints."""
    id: int = Field(..., ge=1, description="Identity kept while the tile slides; new on merge.")
    value: int = Field(..., ge=2, description="Tile value, a power of two.")
    row: int = Field(..., ge=0, lt=core.BOARD_SIZE)
    col: int = Field(..., ge=0, lt=core.BOARD_SIZE)
    is_new: bool = Field(default=False, description="Spawned after the last move.")
    is_merged: bool = Field(default=False, description="Produced by a merge in the last move.")

class SnapshotData(BaseModel):
    """Undo slot: tiles and score before the last accepted move."""
    tiles: List[TileData]
    score: int = Field(..., ge=0)

class SessionStateData(BaseModel):
    """Session state as held by the client."""
    tiles: List[TileData] = Field(..., max_length=core.BOARD_SIZE * core.BOARD_SIZE)
    score: int = Field(..., ge=0, description="Current score of the game.")
    best_score: int = Field(default=0, ge=0, description="Best score across games.")
    game_over: bool = False
    won: bool = False
    keep_playing: bool = False
    previous_state: Optional[SnapshotData] = None

class GameStateData(SessionStateData):
    """Session state plus values derived from it."""
    board: List[List[int]] = Field(..., description="Value grid, 0 marks an empty cell.")
    progress: core.GameProgressState = Field(
        ...,
        description="Current progress state of the game (IN_PROGRESS, GAME_WON, GAME_OVER)."
    )
    can_undo: bool = Field(..., description="True if the undo slot is filled.")

class NewGameSettings(BaseModel):
    """Settings for creating a new game."""
    best_score: int = Field(default=0, ge=0, description="Best score carried over from earlier games.")
    seed: Optional[int] = Field(default=None, description="Seed for the initial tiles.")

class MoveRequestData(BaseModel):
    """Data required to make a move."""
    state: SessionStateData
    direction: core.DIRECTION = Field(..., description="Direction of the move (up, down, left, right).")

class CommandRequestData(BaseModel):
    """Data required for undo and keep-playing."""
    state: SessionStateData

class MoveResponseData(GameStateData):
    """Response after a move, including the new game state and move effectiveness."""
    move_was_effective: bool = Field(
        ...,
        description="True if the move was accepted and changed the board, False otherwise."
    )
    merged: bool = Field(default=False, description="True if at least one merge happened.")
    score_gained: int = Field(default=0, ge=0, description="Score added by this move.")
    message: Optional[str] = Field(
        default=None,
        description="An optional message, e.g., if a move was rejected, the game ended, or was won."
    )

class EngineMoveRequest(BaseModel):
    """A bare tile set to resolve a move on, without spawning."""
    tiles: List[TileData] = Field(..., max_length=core.BOARD_SIZE * core.BOARD_SIZE)
    direction: core.DIRECTION

class EngineMoveResponse(BaseModel):
    tiles: List[TileData]
    board: List[List[int]]
    score: int = Field(..., ge=0)
    moved: bool
    merged: bool

class EngineStatusRequest(BaseModel):
    tiles: List[TileData] = Field(..., max_length=core.BOARD_SIZE * core.BOARD_SIZE)

class EngineStatusResponse(BaseModel):
    has_won: bool
    can_move: bool
    progress: core.GameProgressState

# --- Conversions ---

def _to_tiles(tiles: List[TileData]) -> tuple:
    return core.validate_tiles(core.Tile(**tile.model_dump()) for tile in tiles)

def _from_tiles(tiles) -> List[TileData]:
    return [TileData.model_validate(tile, from_attributes=True) for tile in tiles]

def _to_state(data: SessionStateData) -> SessionState:
    previous = None
    if data.previous_state is not None:
        previous = Snapshot(_to_tiles(data.previous_state.tiles), data.previous_state.score)
    return SessionState(
        tiles=_to_tiles(data.tiles),
        score=data.score,
        best_score=max(data.best_score, data.score),
        game_over=data.game_over,
        won=data.won,
        keep_playing=data.keep_playing,
        previous_state=previous,
    )

def _state_fields(game: GameSession) -> dict:
    state = game.state
    previous = None
    if state.previous_state is not None:
        previous = SnapshotData(tiles=_from_tiles(state.previous_state.tiles), score=state.previous_state.score)
    return dict(
        tiles=_from_tiles(state.tiles),
        score=state.score,
        best_score=state.best_score,
        game_over=state.game_over,
        won=state.won,
        keep_playing=state.keep_playing,
        previous_state=previous,
        board=core.tiles_to_grid(state.tiles),
        progress=game.status,
        can_undo=game.can_undo,
    )

def _rng(seed: Optional[int] = None) -> random.Random:
    if seed is None:
        seed = config.seed
    return random.Random(seed)

def _resume(data: SessionStateData) -> GameSession:
    return GameSession(rng=_rng(), state=_to_state(data))

# --- API Endpoints ---

@app.post("/game/new", response_model=GameStateData, summary="Start a New 2048 Game")
@limiter.limit(config.rate_limit)
async def start_new_game(request: Request, settings: NewGameSettings):
    """
    Starts a new game on a 4x4 board with two random tiles.

    - **best_score**: Best score from earlier games; it is carried over unchanged.
    - **seed**: Optional seed making the initial tiles reproducible.
    """
    try:
        game = GameSession(rng=_rng(settings.seed), state=SessionState(best_score=settings.best_score))
        game.new_game()
        return GameStateData(**_state_fields(game))
    except Exception as e:
        logger.error("Unexpected error in /game/new: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail=f"An unexpected error occurred during game creation: {str(e)}")


@app.post("/game/move", response_model=MoveResponseData, summary="Make a Move in the Game")
@limiter.limit(config.rate_limit)
async def make_move(request: Request, request_data: MoveRequestData):
    """
    Processes a player's move.

    The API will:
    1. Reject the move if the game is over or a win is waiting for keep-playing.
    2. Slide and merge the tiles; an ineffective move changes nothing.
    3. Otherwise fill the undo slot, add the score, spawn a tile (2 or 4) and
       update the win and game-over flags.
    """
    try:
        game = _resume(request_data.state)
        accepted = game.accepts_moves()
        effective = game.move(request_data.direction)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Error processing move: {str(e)}")
    except Exception as e:
        logger.error("Unexpected error in /game/move: %s", e, exc_info=True)
        raise HTTPException(status_code=500, detail=f"An unexpected server error occurred while processing the move: {str(e)}")

    message: Optional[str] = None
    result = game.last_result if effective else None
    if not accepted:
        message = "Move rejected; the game is over or waiting for keep-playing."
    elif not effective:
        message = "Move was not effective; board state unchanged by slide."
    elif game.status == core.GameProgressState.GAME_WON:
        message = "Congratulations! You won!"
    elif game.status == core.GameProgressState.GAME_OVER:
        message = "Game Over. No more valid moves."

    return MoveResponseData(
        **_state_fields(game),
        move_was_effective=effective,
        merged=result.merged if result else False,
        score_gained=result.score if result else 0,
        message=message,
    )


@app.post("/game/undo", response_model=GameStateData, summary="Undo the Last Move")
@limiter.limit(config.rate_limit)
async def undo_move(request: Request, request_data: CommandRequestData):
    """Restores the tiles and score from the undo slot. Without a filled slot the state is returned as is."""
    try:
        game = _resume(request_data.state)
        game.undo()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid game state: {str(e)}")
    return GameStateData(**_state_fields(game))


@app.post("/game/keep-playing", response_model=GameStateData, summary="Continue After Winning")
@limiter.limit(config.rate_limit)
async def keep_playing(request: Request, request_data: CommandRequestData):
    """Dismisses the win and lets the game continue; no further win is reported for this game."""
    try:
        game = _resume(request_data.state)
        game.keep_playing()
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid game state: {str(e)}")
    return GameStateData(**_state_fields(game))


@app.post("/engine/move", response_model=EngineMoveResponse, summary="Resolve a Move Without Spawning")
@limiter.limit(config.rate_limit)
async def engine_move(request: Request, request_data: EngineMoveRequest):
    """Runs move resolution alone on the given tiles. No tile is spawned and no state is kept."""
    try:
        tiles = _to_tiles(request_data.tiles)
        ids = core.TileIdAllocator(max((tile.id for tile in tiles), default=0) + 1)
        result = core.move_tiles(tiles, request_data.direction, ids)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Error processing move: {str(e)}")
    return EngineMoveResponse(
        tiles=_from_tiles(result.tiles),
        board=core.tiles_to_grid(result.tiles),
        score=result.score,
        moved=result.moved,
        merged=result.merged,
    )


@app.post("/engine/status", response_model=EngineStatusResponse, summary="Check Win and Remaining Moves")
@limiter.limit(config.rate_limit)
async def engine_status(request: Request, request_data: EngineStatusRequest):
    try:
        tiles = _to_tiles(request_data.tiles)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Invalid tiles: {str(e)}")
    return EngineStatusResponse(
        has_won=core.has_won(tiles),
        can_move=core.can_move(tiles),
        progress=core.determine_game_status(tiles),
    )

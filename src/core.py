# core.py
# Stateless engine for the 2048 game: tiles, spawning, move resolution and
# terminal-state checks. Nothing in here holds game state between calls.

from dataclasses import dataclass, replace
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple
import logging
import random

logger = logging.getLogger(__name__)

BOARD_SIZE = 4
WIN_TILE = 2048
FOUR_PROBABILITY = 0.1

class GameProgressState(Enum):
    """Represents the current progress state of the game."""
    IN_PROGRESS = 1
    GAME_OVER = 2  # Lost
    GAME_WON = 3

class DIRECTION(Enum):
    """Represents the possible move directions."""
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"

# (row step, col step) for each direction
VECTORS: Dict[DIRECTION, Tuple[int, int]] = {
    DIRECTION.UP: (-1, 0),
    DIRECTION.DOWN: (1, 0),
    DIRECTION.LEFT: (0, -1),
    DIRECTION.RIGHT: (0, 1),
}

# --- Representation ---

@dataclass(frozen=True)
class Tile:
    """A numbered square with a stable identity across a move."""
    id: int
    value: int
    row: int
    col: int
    is_new: bool = False
    is_merged: bool = False

    @property
    def position(self) -> Tuple[int, int]:
        return self.row, self.col

    def settled(self) -> "Tile":
        """Returns a copy with the per-move animation flags cleared."""
        if not self.is_new and not self.is_merged:
            return self
        return replace(self, is_new=False, is_merged=False)

@dataclass(frozen=True)
class MoveResult:
    """Outcome of resolving one move."""
    tiles: Tuple[Tile, ...]
    score: int
    moved: bool
    merged: bool

class TileIdAllocator:
    """
    Hands out tile ids in increasing order.
    One allocator belongs to one game session and is reset on new game.
    """

    def __init__(self, next_id: int = 1):
        self.next_id = next_id

    def allocate(self) -> int:
        tile_id = self.next_id
        self.next_id += 1
        return tile_id

    def reset(self) -> None:
        self.next_id = 1

Grid = List[List[int]]

# --- Board Helper Functions ---

def _in_bounds(row: int, col: int) -> bool:
    return 0 <= row < BOARD_SIZE and 0 <= col < BOARD_SIZE

def validate_tiles(tiles: Iterable[Tile]) -> Tuple[Tile, ...]:
    """
    Checks that a tile set describes a legal settled board.
    Args:
        tiles (Iterable[Tile]): The tiles to check.
    Returns:
        Tuple[Tile, ...]: The tiles as a tuple.
    Raises:
        ValueError: If a tile is off the board, two tiles share a cell or an id,
                    or a value is not a power of two of at least 2.
    """
    tiles = tuple(tiles)
    cells = set()
    ids = set()
    for tile in tiles:
        if not _in_bounds(tile.row, tile.col):
            raise ValueError(f"Tile {tile.id} is outside the board at ({tile.row}, {tile.col}).")
        if tile.value < 2 or tile.value & (tile.value - 1):
            raise ValueError(f"Tile {tile.id} has invalid value {tile.value}.")
        if tile.position in cells:
            raise ValueError(f"More than one tile at ({tile.row}, {tile.col}).")
        if tile.id in ids:
            raise ValueError(f"Duplicate tile id {tile.id}.")
        cells.add(tile.position)
        ids.add(tile.id)
    return tiles

def get_empty_cells(tiles: Iterable[Tile]) -> List[Tuple[int, int]]:
    """
    Get coordinates of cells not covered by any tile.
    Args:
        tiles (Iterable[Tile]): The live tiles.
    Returns:
        List[Tuple[int, int]]: List of (row, col) tuples for empty cells, row-major.
    """
    occupied = {tile.position for tile in tiles}
    return [(row, col)
            for row in range(BOARD_SIZE)
            for col in range(BOARD_SIZE)
            if (row, col) not in occupied]

def tiles_to_grid(tiles: Iterable[Tile]) -> Grid:
    """Drops tile identity and returns the value grid (0 marks an empty cell)."""
    grid = [[0] * BOARD_SIZE for _ in range(BOARD_SIZE)]
    for tile in tiles:
        grid[tile.row][tile.col] = tile.value
    return grid

def tiles_from_grid(grid: Grid, ids: TileIdAllocator) -> Tuple[Tile, ...]:
    """
    Builds settled tiles from a value grid, allocating ids row-major.
    Raises:
        ValueError: If the grid is not 4 x 4.
    """
    if len(grid) != BOARD_SIZE or any(len(row) != BOARD_SIZE for row in grid):
        raise ValueError(f"Board must be {BOARD_SIZE}x{BOARD_SIZE}.")
    tiles = tuple(Tile(ids.allocate(), value, row, col)
                  for row, line in enumerate(grid)
                  for col, value in enumerate(line)
                  if value)
    return validate_tiles(tiles)

# --- Spawn Rule ---

def spawn_tile(tiles: Iterable[Tile], ids: TileIdAllocator,
               rng: Optional[random.Random] = None) -> Tuple[Tile, ...]:
    """
    Adds a new tile (90% chance of 2, 10% chance of 4) to a random empty cell.
    Flags left over from the previous move are cleared on the existing tiles.
    Args:
        tiles (Iterable[Tile]): The current tiles.
        ids (TileIdAllocator): Source of the new tile's id.
        rng (random.Random): Random source; a fresh unseeded one when omitted.
    Returns:
        Tuple[Tile, ...]: The new tile set. When the board is full the input is
                          returned unchanged.
    """
    tiles = tuple(tiles)
    empty_cells = get_empty_cells(tiles)
    if not empty_cells:
        return tiles

    rng = rng or random.Random()
    row, col = rng.choice(empty_cells)
    value = 4 if rng.random() < FOUR_PROBABILITY else 2
    new_tile = Tile(ids.allocate(), value, row, col, is_new=True)
    logger.debug("Spawned %d at (%d, %d) as tile %d", value, row, col, new_tile.id)
    return tuple(tile.settled() for tile in tiles) + (new_tile,)

def initialize_tiles(ids: TileIdAllocator, rng: Optional[random.Random] = None) -> Tuple[Tile, ...]:
    """Returns a fresh board holding two spawned tiles."""
    rng = rng or random.Random()
    tiles = spawn_tile((), ids, rng)
    return spawn_tile(tiles, ids, rng)

# --- Move Resolution (tile identity) ---

def _traversal(direction: DIRECTION) -> Tuple[List[int], List[int]]:
    """Row and column orders that visit the cells nearest the destination edge first."""
    d_row, d_col = VECTORS[direction]
    rows = list(range(BOARD_SIZE))
    cols = list(range(BOARD_SIZE))
    if d_row == 1:
        rows.reverse()
    if d_col == 1:
        cols.reverse()
    return rows, cols

def move_tiles(tiles: Iterable[Tile], direction: DIRECTION, ids: TileIdAllocator) -> MoveResult:
    """
    Slides every tile towards `direction`, merging equal pairs.
    A tile that slides keeps its id. A merge consumes both source tiles and
    creates a new tile with a fresh id and `is_merged` set. A cell that has
    received a merge cannot take a second one in the same move.
    Args:
        tiles (Iterable[Tile]): The settled tiles before the move.
        direction (DIRECTION): The direction to move.
        ids (TileIdAllocator): Source of ids for merged tiles.
    Returns:
        MoveResult: The new tiles, the score gained, and the moved/merged flags.
    Raises:
        ValueError: If an invalid direction is specified.
    """
    if direction not in VECTORS:
        raise ValueError("Invalid direction specified for move_tiles.")

    grid: List[List[Optional[Tile]]] = [[None] * BOARD_SIZE for _ in range(BOARD_SIZE)]
    for tile in tiles:
        grid[tile.row][tile.col] = tile.settled()
    merged_into = [[False] * BOARD_SIZE for _ in range(BOARD_SIZE)]

    d_row, d_col = VECTORS[direction]
    rows, cols = _traversal(direction)
    score = 0
    moved = False
    merged = False

    for row in rows:
        for col in cols:
            tile = grid[row][col]
            if tile is None:
                continue

            dest_row, dest_col = row, col
            partner: Optional[Tile] = None
            while True:
                next_row, next_col = dest_row + d_row, dest_col + d_col
                if not _in_bounds(next_row, next_col):
                    break
                occupant = grid[next_row][next_col]
                if occupant is None:
                    dest_row, dest_col = next_row, next_col
                    continue
                if occupant.value == tile.value and not merged_into[next_row][next_col]:
                    partner = occupant
                break

            if partner is not None:
                combined = Tile(ids.allocate(), tile.value * 2, partner.row, partner.col, is_merged=True)
                grid[row][col] = None
                grid[partner.row][partner.col] = combined
                merged_into[partner.row][partner.col] = True
                score += combined.value
                moved = merged = True
                logger.debug("Merged tiles %d and %d into %d (%d)", tile.id, partner.id, combined.id, combined.value)
            elif (dest_row, dest_col) != (row, col):
                grid[row][col] = None
                grid[dest_row][dest_col] = replace(tile, row=dest_row, col=dest_col)
                moved = True

    new_tiles = tuple(tile for line in grid for tile in line if tile is not None)
    return MoveResult(tiles=new_tiles, score=score, moved=moved, merged=merged)

# --- Move Resolution (value grid) ---

def _process_line_leftwise(line: List[int]) -> Tuple[List[int], int]:
    """
    Compresses a line towards index 0 and merges each equal pair once.
    Args:
        line (List[int]): The line to process (0 is empty).
    Returns:
        Tuple[List[int], int]: The processed line and the score from merges.
    """
    values = [value for value in line if value != 0]
    result: List[int] = []
    score = 0
    read_idx = 0
    while read_idx < len(values):
        if read_idx + 1 < len(values) and values[read_idx] == values[read_idx + 1]:
            merged_value = values[read_idx] * 2
            result.append(merged_value)
            score += merged_value
            read_idx += 2 # Skip the tile that was merged in
        else:
            result.append(values[read_idx])
            read_idx += 1
    result += [0] * (len(line) - len(result))
    return result, score

def transpose_board(board: Grid) -> Grid:
    """Swaps rows and columns."""
    return [list(column) for column in zip(*board)]

def reverse_rows(board: Grid) -> Grid:
    """Reverses each row."""
    return [row[::-1] for row in board]

# Steps that turn each direction into a leftward move; undone in reverse order.
_TO_LEFT = {
    DIRECTION.LEFT: (),
    DIRECTION.RIGHT: (reverse_rows,),
    DIRECTION.UP: (transpose_board,),
    DIRECTION.DOWN: (transpose_board, reverse_rows),
}

def process_move(board: Grid, direction: DIRECTION) -> Tuple[Grid, int, bool]:
    """
    Processes a move on a value grid, discarding tile identity.
    Args:
        board (Grid): The current board, 0 marks an empty cell.
        direction (DIRECTION): The direction to move.
    Returns:
        Tuple[Grid, int, bool]:
            - The new board after the move.
            - The score gained from this move.
            - A boolean indicating if the board changed.
    Raises:
        ValueError: If an invalid direction is specified.
    """
    if direction not in _TO_LEFT:
        raise ValueError("Invalid direction specified for process_move.")

    working = [list(row) for row in board]
    for step in _TO_LEFT[direction]:
        working = step(working)

    score_gained = 0
    for r_idx, line in enumerate(working):
        working[r_idx], line_score = _process_line_leftwise(line)
        score_gained += line_score

    for step in reversed(_TO_LEFT[direction]):
        working = step(working)

    return working, score_gained, working != [list(row) for row in board]

# --- Game State Checks ---

def has_won(tiles: Iterable[Tile]) -> bool:
    """Check if any tile has reached the winning value."""
    return any(tile.value == WIN_TILE for tile in tiles)

def can_move(tiles: Iterable[Tile]) -> bool:
    """
    Checks if any move is possible.
    Args:
        tiles (Iterable[Tile]): The live tiles.
    Returns:
        bool: True if a cell is empty or two horizontal or vertical neighbours
              share a value, False otherwise.
    """
    grid = tiles_to_grid(tiles)
    for row in range(BOARD_SIZE):
        for col in range(BOARD_SIZE):
            current = grid[row][col]
            if current == 0:
                return True
            if col < BOARD_SIZE - 1 and current == grid[row][col + 1]:
                return True
            if row < BOARD_SIZE - 1 and current == grid[row + 1][col]:
                return True
    return False

def determine_game_status(tiles: Iterable[Tile]) -> GameProgressState:
    """
    Determines the progress state from the board alone.
    Args:
        tiles (Iterable[Tile]): The live tiles.
    Returns:
        GameProgressState: GAME_WON if a 2048 tile exists, GAME_OVER if no move
                           is possible, IN_PROGRESS otherwise.
    """
    tiles = tuple(tiles)
    if has_won(tiles):
        return GameProgressState.GAME_WON
    if not can_move(tiles):
        return GameProgressState.GAME_OVER
    return GameProgressState.IN_PROGRESS

import random

from core import DIRECTION, GameProgressState, Tile, tiles_to_grid
from session import GameSession, SessionState, Snapshot
from sounds import SoundCue, SoundCues
from storage import BEST_SCORE_KEY, MUTED_KEY, MemoryStore
from conftest import ScriptedRandom

STUCK_BUT_ONE = [
    [2, 4, 2, 4],
    [4, 2, 4, 2],
    [2, 4, 2, 4],
    [8, 16, 8, 0],
]


class Recorder:
    def __init__(self):
        self.cues = []

    def __call__(self, cue, volume):
        self.cues.append(cue)


def session_for(grid, make_tiles, store=None, rng=None, **state):
    recorder = Recorder()
    game = GameSession(
        store=store,
        sounds=SoundCues(store, player=recorder),
        rng=rng or ScriptedRandom(),
        state=SessionState(tiles=make_tiles(grid), **state),
    )
    return game, recorder


def test_new_session_starts_with_two_tiles(store):
    store.set(BEST_SCORE_KEY, 512)
    game = GameSession(store=store, rng=random.Random(1))
    assert len(game.state.tiles) == 2
    assert game.state.score == 0
    assert game.state.best_score == 512
    assert not game.can_undo
    assert game.status == GameProgressState.IN_PROGRESS


def test_accepted_move_scores_snapshots_and_spawns(make_tiles, store):
    grid = [[2, 2, 0, 0], [0] * 4, [0] * 4, [0] * 4]
    game, recorder = session_for(grid, make_tiles, store=store)
    before = game.state.tiles

    assert game.move(DIRECTION.LEFT)
    assert game.state.score == 4
    assert game.state.best_score == 4
    assert store.get(BEST_SCORE_KEY) == 4
    assert game.state.previous_state == Snapshot(before, 0)
    assert len(game.state.tiles) == 2
    assert tiles_to_grid(game.state.tiles)[0] == [4, 2, 0, 0]
    assert [tile.is_new for tile in game.state.tiles].count(True) == 1
    assert game.last_result.merged
    assert recorder.cues == [SoundCue.MERGE]


def test_ineffective_move_is_a_no_op(make_tiles):
    grid = [[2, 4, 0, 0], [0] * 4, [0] * 4, [0] * 4]
    game, recorder = session_for(grid, make_tiles)
    before = game.state.tiles

    assert not game.move(DIRECTION.LEFT)
    assert game.state.tiles == before
    assert game.state.score == 0
    assert not game.can_undo
    assert recorder.cues == []


def test_best_score_only_rises(make_tiles, store):
    store.set(BEST_SCORE_KEY, 100)
    grid = [[2, 2, 0, 0], [0] * 4, [0] * 4, [0] * 4]
    game, _ = session_for(grid, make_tiles, store=store, best_score=100)
    game.move(DIRECTION.LEFT)
    assert game.state.best_score == 100
    assert store.get(BEST_SCORE_KEY) == 100


def test_undo_is_single_level(make_tiles):
    grid = [[2, 0, 0, 0], [0] * 4, [0] * 4, [0] * 4]
    game, _ = session_for(grid, make_tiles, rng=random.Random(9))

    assert game.move(DIRECTION.RIGHT)
    after_first = (game.state.tiles, game.state.score)
    assert game.move(DIRECTION.LEFT)

    assert game.undo()
    assert (game.state.tiles, game.state.score) == after_first
    assert not game.can_undo
    assert not game.undo()
    assert (game.state.tiles, game.state.score) == after_first


def test_stuck_board_ends_the_game(make_tiles):
    game, recorder = session_for(STUCK_BUT_ONE, make_tiles, rng=ScriptedRandom(four=True))

    assert game.move(DIRECTION.RIGHT)
    assert tiles_to_grid(game.state.tiles)[3] == [4, 8, 16, 8]
    assert game.state.game_over
    assert game.status == GameProgressState.GAME_OVER
    assert recorder.cues == [SoundCue.MOVE, SoundCue.GAME_OVER]

    assert not game.accepts_moves()
    assert not game.move(DIRECTION.LEFT)


def test_undo_recovers_from_game_over(make_tiles):
    game, _ = session_for(STUCK_BUT_ONE, make_tiles, rng=ScriptedRandom(four=True))
    game.move(DIRECTION.RIGHT)

    assert game.undo()
    assert not game.state.game_over
    assert tiles_to_grid(game.state.tiles) == STUCK_BUT_ONE
    assert game.move(DIRECTION.RIGHT)


def test_win_is_reported_once(make_tiles):
    grid = [[1024, 1024, 0, 0], [0] * 4, [0] * 4, [0] * 4]
    game, recorder = session_for(grid, make_tiles)

    assert game.move(DIRECTION.LEFT)
    assert game.state.won
    assert game.status == GameProgressState.GAME_WON
    assert recorder.cues == [SoundCue.MERGE, SoundCue.WIN]

    # Waiting for keep-playing: moves are full no-ops.
    before = game.state.tiles
    assert not game.move(DIRECTION.RIGHT)
    assert game.state.tiles == before

    assert game.keep_playing()
    assert game.state.keep_playing
    assert not game.state.won
    assert game.move(DIRECTION.RIGHT)
    assert not game.state.won
    assert game.status == GameProgressState.IN_PROGRESS
    assert SoundCue.WIN not in recorder.cues[2:]


def test_keep_playing_requires_a_win(make_tiles):
    game, _ = session_for([[2, 0, 0, 0], [0] * 4, [0] * 4, [0] * 4], make_tiles)
    assert not game.keep_playing()
    assert not game.state.keep_playing


def test_new_game_keeps_best_score_only(make_tiles):
    grid = [[1024, 1024, 0, 0], [0] * 4, [0] * 4, [0] * 4]
    game, _ = session_for(grid, make_tiles, rng=random.Random(4))
    game.move(DIRECTION.LEFT)
    game.keep_playing()

    game.new_game()
    state = game.state
    assert state.best_score == 2048
    assert state.score == 0
    assert len(state.tiles) == 2
    assert sorted(tile.id for tile in state.tiles) == [1, 2]
    assert not (state.won or state.game_over or state.keep_playing)
    assert state.previous_state is None
    assert game.last_result is None


def test_resumed_state_does_not_reuse_ids(make_tiles):
    grid = [[2, 2, 0, 0], [0] * 4, [0] * 4, [0] * 4]
    tiles = make_tiles(grid)
    previous = Snapshot(tuple(Tile(tile.id + 20, tile.value, tile.row, tile.col) for tile in tiles), 0)
    game = GameSession(rng=ScriptedRandom(), state=SessionState(tiles=tiles, previous_state=previous))
    game.move(DIRECTION.LEFT)
    assert sorted(tile.id for tile in game.state.tiles) == [23, 24]


def test_toggle_mute_persists(store):
    recorder = Recorder()
    game = GameSession(store=store, sounds=SoundCues(store, player=recorder), rng=random.Random(2))
    assert game.toggle_mute()
    assert store.get(MUTED_KEY) is True
    assert SoundCues(store).muted
    assert not game.toggle_mute()
    assert store.get(MUTED_KEY) is False


def test_muted_session_plays_nothing(make_tiles):
    store = MemoryStore({MUTED_KEY: True})
    grid = [[2, 2, 0, 0], [0] * 4, [0] * 4, [0] * 4]
    game, recorder = session_for(grid, make_tiles, store=store)
    game.move(DIRECTION.LEFT)
    assert recorder.cues == []


def test_win_on_a_dead_board_is_shown_before_game_over(make_tiles):
    grid = [[1024, 1024, 8, 16], [4, 2, 4, 8], [2, 4, 2, 4], [4, 2, 4, 2]]
    game, recorder = session_for(grid, make_tiles)

    assert game.move(DIRECTION.LEFT)
    assert tiles_to_grid(game.state.tiles)[0] == [2048, 8, 16, 2]
    assert game.state.won and game.state.game_over
    assert game.status == GameProgressState.GAME_WON
    assert recorder.cues == [SoundCue.MERGE, SoundCue.WIN]

    assert game.keep_playing()
    assert game.status == GameProgressState.GAME_OVER
    assert not game.accepts_moves()

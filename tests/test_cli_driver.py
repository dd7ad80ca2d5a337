import builtins
import random

import cli_driver
from core import DIRECTION, TileIdAllocator, tiles_from_grid
from session import DeferredSpawnSession, GameSession, SessionState
from settings import GameConfig
from sounds import SoundCue
from storage import JsonFileStore


def test_display_shows_board_and_scores(capsys):
    game = GameSession(rng=random.Random(6))
    cli_driver.display_session(game)
    out = capsys.readouterr().out
    assert "Score: 0" in out
    assert "Status: IN_PROGRESS" in out
    assert out.count(".") == 14


def test_display_prefers_the_win_on_a_dead_board(capsys):
    grid = [[2048, 8, 16, 2], [4, 2, 4, 8], [2, 4, 2, 4], [4, 2, 4, 2]]
    state = SessionState(tiles=tiles_from_grid(grid, TileIdAllocator()), won=True, game_over=True)
    cli_driver.display_session(GameSession(state=state))
    assert "Press K to keep playing" in capsys.readouterr().out


def play(monkeypatch, tmp_path, delay, keys):
    monkeypatch.setenv("GAME2048_STORE_PATH", str(tmp_path / "store.json"))
    monkeypatch.setenv("GAME2048_SEED", "1")
    monkeypatch.setenv("GAME2048_SPAWN_DELAY", delay)
    commands = iter(keys)
    monkeypatch.setattr(builtins, "input", lambda prompt: next(commands))
    cli_driver.main()


def test_main_plays_until_quit(monkeypatch, tmp_path, capsys):
    play(monkeypatch, tmp_path, "0", ["x", "m", "w", "a", "s", "d", "u", "k", "n", "q"])
    out = capsys.readouterr().out
    assert "Invalid input." in out
    assert "Sound muted." in out
    assert "Keep playing is only available after reaching 2048." in out
    assert "Quitting game." in out
    assert (tmp_path / "store.json").exists()


def test_main_with_spawn_delay_shows_each_move_before_its_new_tile(monkeypatch, tmp_path, capsys):
    play(monkeypatch, tmp_path, "0.001", ["a", "d", "q"])
    out = capsys.readouterr().out
    effective = 2 - out.count("Move did not change the board")
    # Start and final boards, plus the merged and the spawned board per effective move.
    assert out.count("Score:") == 2 + 2 * effective
    assert "Quitting game." in out


def test_build_session_follows_spawn_delay(tmp_path):
    store = JsonFileStore(tmp_path / "store.json")
    deferred = cli_driver.build_session(GameConfig(spawn_delay=0.2, seed=3), store)
    assert isinstance(deferred, DeferredSpawnSession)
    assert deferred.delay == 0.2
    assert isinstance(deferred.scheduler, cli_driver.SpawnQueue)

    immediate = cli_driver.build_session(GameConfig(spawn_delay=0, seed=3), store)
    assert type(immediate) is GameSession


def test_spawn_queue_releases_the_pending_tile(tmp_path):
    store = JsonFileStore(tmp_path / "store.json")
    game = cli_driver.build_session(GameConfig(spawn_delay=0.001, seed=5), store)
    direction = next(d for d in DIRECTION if game.move(d))
    tiles = len(game.state.tiles)

    assert game.spawn_pending
    assert not game.move(direction)
    game.scheduler.flush()
    assert not game.spawn_pending
    assert len(game.state.tiles) == tiles + 1
    assert any(tile.is_new for tile in game.state.tiles)


def test_terminal_bell_only_for_endings(capsys):
    cli_driver.terminal_bell(SoundCue.MOVE, 0.2)
    assert capsys.readouterr().out == ""
    cli_driver.terminal_bell(SoundCue.WIN, 0.6)
    assert capsys.readouterr().out == "\a"


def test_keys_cover_every_direction():
    assert set(cli_driver.DIRECTION_KEYS.values()) == set(DIRECTION)

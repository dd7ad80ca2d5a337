# cli_driver.py
# This file is intended to be run to play the 2048 game on the CLI

import random
import sys
import time

from core import DIRECTION, GameProgressState, tiles_to_grid
from session import DeferredSpawnSession, GameSession
from settings import GameConfig, configure_logging, load_config
from sounds import SoundCue, SoundCues
from storage import JsonFileStore

DIRECTION_KEYS = {'W': DIRECTION.UP, 'A': DIRECTION.LEFT, 'S': DIRECTION.DOWN, 'D': DIRECTION.RIGHT}

def terminal_bell(cue: SoundCue, volume: float) -> None:
    """Rings the bell for the two outcomes worth interrupting the player for."""
    if cue in (SoundCue.WIN, SoundCue.GAME_OVER):
        sys.stdout.write("\a")
        sys.stdout.flush()

class SpawnQueue:
    """Scheduler that holds deferred spawns until the driver has shown the merged board."""

    def __init__(self):
        self.callbacks = []

    def __call__(self, delay, callback):
        self.callbacks.append((delay, callback))

    def flush(self) -> None:
        callbacks, self.callbacks = self.callbacks, []
        for delay, callback in callbacks:
            time.sleep(delay)
            callback()

def build_session(config: GameConfig, store: JsonFileStore) -> GameSession:
    """Defers each new tile by `spawn_delay` seconds; a zero delay spawns it with the move."""
    sounds = SoundCues(store, player=terminal_bell)
    rng = random.Random(config.seed)
    if config.spawn_delay > 0:
        return DeferredSpawnSession(store=store, sounds=sounds, rng=rng,
                                    delay=config.spawn_delay, scheduler=SpawnQueue())
    return GameSession(store=store, sounds=sounds, rng=rng)

def main():
    config = load_config()
    configure_logging(config)
    store = JsonFileStore(config.store_path)
    game = build_session(config, store)
    display_session(game)

    while True:
        command = input("Move with W/A/S/D. U undo, N new game, K keep playing, M mute, Q quit: ").strip().upper()

        if command == 'Q':
            print("Quitting game.")
            break
        elif command == 'N':
            game.new_game()
        elif command == 'U':
            if not game.undo():
                print("Nothing to undo.")
        elif command == 'K':
            if not game.keep_playing():
                print("Keep playing is only available after reaching 2048.")
        elif command == 'M':
            print("Sound muted." if game.toggle_mute() else "Sound on.")
            continue
        elif command in DIRECTION_KEYS:
            if not game.accepts_moves():
                print("The game has ended. Undo, start a new game, or keep playing after a win.")
                continue
            if not game.move(DIRECTION_KEYS[command]):
                print("Move did not change the board. Try a different direction.")
                continue
            if isinstance(game, DeferredSpawnSession) and game.spawn_pending:
                display_session(game)
                game.scheduler.flush()
        else:
            print("Invalid input.")
            continue

        display_session(game)

    print("\n--- Final Board State ---")
    display_session(game)


# --- Display Function ---
def display_session(game: GameSession):
    """Prints the board, score, best score and game status to the console."""
    state = game.state
    print(f"\nScore: {state.score}    Best: {state.best_score}")
    progress = game.status
    status_message = {
        GameProgressState.IN_PROGRESS: f"Status: {progress.name}",
        GameProgressState.GAME_WON: "YOU WON! Press K to keep playing or N for a new game.",
        GameProgressState.GAME_OVER: f"GAME OVER! Final score: {state.score}. Press U to undo or N to try again."
    }
    print(status_message[progress])

    board = tiles_to_grid(state.tiles)
    for row in board:
        print("\t".join(str(value) if value else "." for value in row))
    print("-" * (len(board) * 6))

if __name__ == "__main__":
    main()

import argparse
import threading
from uuid import uuid4

import socketio

WORDS = ("CRANE", "STORM", "PLANT", "GHOST", "BRICK", "FLAME", "QUILT", "SHORE")


class PlayerClient:
    def __init__(self, url: str, username: str, timeout: float) -> None:
        self.username = username
        self.timeout = timeout
        self.events: dict[str, list] = {}
        self._signals: dict[str, threading.Event] = {}
        self.client = socketio.Client(reconnection=False)
        for name in ("room-data", "word-submitted", "all-words-submitted", "start-game", "game-progress", "error-message"):
            self.client.on(name, self._recorder(name))
        self.client.connect(url, auth={"username": username}, transports=["websocket"])

    def _recorder(self, name: str):
        def record(payload=None):
            self.events.setdefault(name, []).append(payload)
            self._signal(name).set()

        return record

    def _signal(self, name: str) -> threading.Event:
        return self._signals.setdefault(name, threading.Event())

    def expect(self, name: str) -> None:
        self._signal(name).clear()

    def wait_for(self, name: str) -> bool:
        return self._signal(name).wait(self.timeout)

    def send(self, event: str, payload: dict) -> dict | None:
        return self.client.call(event, payload, timeout=self.timeout)

    def close(self) -> None:
        self.client.disconnect()


def main() -> None:
    parser = argparse.ArgumentParser(description="Play one scripted round against a Word Swap server")
    parser.add_argument("--url", default="http://127.0.0.1:8000")
    parser.add_argument("--players", type=int, default=3)
    parser.add_argument("--timeout", type=float, default=5.0)
    args = parser.parse_args()

    count = max(2, min(args.players, len(WORDS)))
    room_code = uuid4().hex[:6].upper()
    marker = uuid4().hex[:4]
    players = [PlayerClient(args.url, f"smoke{index}_{marker}", args.timeout) for index in range(count)]
    print(f"room_code={room_code}")
    print(f"players={count}")

    try:
        for player in players:
            ack = player.send("join-room", {"roomCode": room_code, "username": player.username})
            print(f"join_{player.username}={bool(ack and ack.get('ok'))}")

        invalid = players[0].send("submit-word", {"roomCode": room_code, "username": players[0].username, "word": "hi"})
        print(f"invalid_word_rejected={bool(invalid and not invalid.get('ok'))}")

        for player, word in zip(players, WORDS):
            player.send("submit-word", {"roomCode": room_code, "username": player.username, "word": word})
        assigned = all(player.wait_for("all-words-submitted") for player in players)
        print(f"assignment_received={assigned}")
        if assigned:
            mapping = players[0].events["all-words-submitted"][-1]["assignedWords"]
            submitted = dict(zip((player.username for player in players), WORDS))
            self_assigned = [name for name, word in mapping.items() if submitted.get(name) == word]
            print(f"self_assignments={len(self_assigned)}")

        ack = players[0].send("start-game", {"roomCode": room_code})
        print(f"start_ok={bool(ack and ack.get('ok'))}")
        print(f"start_broadcast={all(player.wait_for('start-game') for player in players)}")

        players[0].expect("game-progress")
        players[1].send("player-finished", {"roomCode": room_code, "username": players[1].username, "success": True})
        if players[0].wait_for("game-progress"):
            print(f"progress={players[0].events['game-progress'][-1]}")
    finally:
        for player in players:
            player.close()
    print("done=true")


if __name__ == "__main__":
    main()

"""Rules for a single room session.

Every function here operates on the ``RoomSession`` it is given and keeps no
state of its own. Rejections are raised as ``SessionRuleError`` subclasses
and never leave the session partially mutated.
"""

from dataclasses import dataclass
import random
import re
import secrets

from wordswap.services.room_store import RoomPhase, RoomSession

WORD_LENGTH = 5
WORD_PATTERN = re.compile(rf"[A-Z]{{{WORD_LENGTH}}}")


class SessionRuleError(ValueError):
    pass


class InvalidWordError(SessionRuleError):
    pass


class PreconditionError(SessionRuleError):
    pass


class NotReadyError(PreconditionError):
    pass


class PhaseError(PreconditionError):
    pass


@dataclass
class SubmitOutcome:
    username: str
    submitted_count: int
    total_count: int
    assigned_words: dict[str, str] | None = None


@dataclass
class LeaveOutcome:
    removed: bool
    empty: bool
    host_changed: bool = False
    assigned_words: dict[str, str] | None = None


def normalize_word(raw_word: object) -> str:
    if not isinstance(raw_word, str):
        raise InvalidWordError("Word must be exactly 5 letters (A-Z).")
    word = raw_word.upper()
    if not WORD_PATTERN.fullmatch(word):
        raise InvalidWordError("Word must be exactly 5 letters (A-Z).")
    return word


def assign_words_circularly(
    players: list[str],
    words: dict[str, str],
    rng: random.Random | None = None,
) -> dict[str, str]:
    """Give each player the word of their predecessor in a random cycle.

    A Fisher-Yates shuffle of ``players`` is walked as a ring: the player at
    position ``i`` gives their word to the player at ``(i + 1) % n``. With
    more than one player nobody receives their own word.
    """
    rng = rng or secrets.SystemRandom()
    order = list(players)
    for i in range(len(order) - 1, 0, -1):
        j = rng.randint(0, i)
        order[i], order[j] = order[j], order[i]

    assigned: dict[str, str] = {}
    for index, giver in enumerate(order):
        receiver = order[(index + 1) % len(order)]
        assigned[receiver] = words[giver]
    return assigned


def _assign(session: RoomSession, rng: random.Random | None) -> dict[str, str]:
    session.assigned_words = assign_words_circularly(session.players, session.words, rng)
    session.phase = RoomPhase.ASSIGNED
    return dict(session.assigned_words)


def join(session: RoomSession, username: str) -> bool:
    if session.is_member(username):
        return False
    if session.phase == RoomPhase.PLAYING:
        raise PhaseError("Game already in progress")

    session.players.append(username)
    if session.phase == RoomPhase.ASSIGNED:
        # newcomer has no word yet, so the previous assignment is void
        session.assigned_words = {}
        session.phase = RoomPhase.COLLECTING
    elif session.phase == RoomPhase.FORMING and len(session.players) > 1:
        session.phase = RoomPhase.COLLECTING
    return True


def submit_word(
    session: RoomSession,
    username: str,
    raw_word: object,
    rng: random.Random | None = None,
) -> SubmitOutcome | None:
    if not session.is_member(username):
        return None
    word = normalize_word(raw_word)
    if session.phase == RoomPhase.PLAYING:
        raise PhaseError("Game already started")

    session.words[username] = word
    outcome = SubmitOutcome(
        username=username,
        submitted_count=len(session.words),
        total_count=len(session.players),
    )
    if session.all_submitted():
        outcome.assigned_words = _assign(session, rng)
    else:
        session.phase = RoomPhase.COLLECTING
    return outcome


def start_game(session: RoomSession, requested_by: str | None = None) -> dict[str, str]:
    if session.phase == RoomPhase.PLAYING:
        raise PhaseError("Game already started")
    if requested_by is not None and requested_by != session.host:
        raise PreconditionError("Only the host can start the game")
    if (
        session.phase != RoomPhase.ASSIGNED
        or len(session.words) != len(session.players)
        or not session.all_submitted()
    ):
        raise NotReadyError("Not all players have submitted words!")

    session.phase = RoomPhase.PLAYING
    return dict(session.assigned_words)


def record_result(session: RoomSession, username: str, success: bool) -> bool:
    if not session.is_member(username):
        return False
    if session.phase != RoomPhase.PLAYING:
        raise PhaseError("Game has not started")

    session.finished = [player for player in session.finished if player != username]
    session.failed = [player for player in session.failed if player != username]
    if success:
        session.finished.append(username)
    else:
        session.failed.append(username)
    return True


def leave(
    session: RoomSession,
    username: str,
    rng: random.Random | None = None,
) -> LeaveOutcome:
    if not session.is_member(username):
        return LeaveOutcome(removed=False, empty=not session.players)

    session.players = [player for player in session.players if player != username]
    session.words.pop(username, None)
    session.assigned_words.pop(username, None)
    session.finished = [player for player in session.finished if player != username]
    session.failed = [player for player in session.failed if player != username]

    outcome = LeaveOutcome(removed=True, empty=not session.players)
    if outcome.empty:
        return outcome

    if session.host == username:
        session.host = session.players[0]
        outcome.host_changed = True

    # an assignment made before the departure still hands out the leaver's word
    if session.phase in (RoomPhase.COLLECTING, RoomPhase.ASSIGNED) and session.all_submitted():
        outcome.assigned_words = _assign(session, rng)
    return outcome


def room_snapshot(session: RoomSession) -> dict:
    return {
        "roomCode": session.id,
        "host": session.host,
        "players": list(session.players),
    }


def progress_snapshot(session: RoomSession) -> dict:
    return {
        "finished": list(session.finished),
        "failed": list(session.failed),
    }

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


LOBBY = 'lobby'
SUBMITTING = 'submitting'
VOTING = 'voting'
RESULTS = 'results'
WAITING_FOR_CATEGORY = 'waiting-for-category'
ENDED = 'ended'

ROOM_CODE_ALPHABET = 'ABCDEFGHIJKLMNPQRSTUVWXYZ123456789'  # no O or 0


@dataclass
class TimerSettings:
    submission: int = 120
    voting_per_exemplar: int = 15
    voting_minimum: int = 30
    exemplar_result: int = 5
    summary: int = 15
    scoreboard: int = 10

    @classmethod
    def from_config(cls, config) -> 'TimerSettings':
        return cls(
            submission=int(config.get('SUBMISSION_DURATION_SEC', 120)),
            voting_per_exemplar=int(config.get('VOTING_PER_EXEMPLAR_SEC', 15)),
            voting_minimum=int(config.get('VOTING_MINIMUM_SEC', 30)),
            exemplar_result=int(config.get('RESULT_REVEAL_SEC', 5)),
            summary=int(config.get('SUMMARY_DURATION_SEC', 15)),
            scoreboard=int(config.get('SCOREBOARD_DURATION_SEC', 10)),
        )

    def voting_duration(self, submission_count: int) -> int:
        return max(self.voting_minimum, submission_count * self.voting_per_exemplar)


@dataclass
class Player:
    player_id: str
    nickname: str
    db_id: Optional[int] = None
    connection_id: Optional[str] = None
    score: int = 0
    has_submitted: bool = False
    has_voted: bool = False
    is_connected: bool = True
    disconnected_at: Optional[float] = None

    def reset_round(self) -> None:
        self.has_submitted = False
        self.has_voted = False

    def to_dict(self) -> dict:
        return {
            'nickname': self.nickname,
            'score': self.score,
            'hasSubmitted': self.has_submitted,
            'hasVoted': self.has_voted,
            'isConnected': self.is_connected,
        }


@dataclass
class Submission:
    player_id: str
    nickname: str
    exemplar: str
    db_id: Optional[int] = None
    votes: dict[str, bool] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {'exemplar': self.exemplar, 'submittedBy': self.nickname}


@dataclass
class RoundResult:
    exemplar: str
    submitted_by: str
    player_id: str
    votes: list[dict]
    yes_count: int
    no_count: int
    points: int

    @property
    def controversy(self) -> int:
        return abs(self.yes_count - self.no_count)

    def to_dict(self) -> dict:
        return {
            'exemplar': self.exemplar,
            'submittedBy': self.submitted_by,
            'votes': list(self.votes),
            'yesCount': self.yes_count,
            'noCount': self.no_count,
            'points': self.points,
        }


@dataclass
class Room:
    code: str
    created_at: float
    timer_settings: TimerSettings = field(default_factory=TimerSettings)
    phase: str = LOBBY
    category: str = ''
    round: int = 0
    game_id: Optional[int] = None
    round_db_id: Optional[int] = None
    gm_connection_id: Optional[str] = None
    gm_token: str = ''
    display_connection_id: Optional[str] = None
    players: dict[str, Player] = field(default_factory=dict)
    submissions: list[Submission] = field(default_factory=list)
    category_submissions: list[dict] = field(default_factory=list)
    # Exactly one of GameTimer / PhaseSequence, or None
    timer: Any = None
    timer_state: Optional[dict] = None
    results: list[RoundResult] = field(default_factory=list)
    result_index: int = -1
    display_stage: Optional[str] = None  # result, summary, scoreboard
    needs_more_categories: bool = False
    # Wall-clock deadline after which the room is deleted
    expires_at: Optional[float] = None

    def connected_players(self) -> list[Player]:
        return [p for p in self.players.values() if p.is_connected]

    def nickname_taken(self, nickname: str, exclude: Optional[Player] = None) -> bool:
        wanted = nickname.lower()
        return any(p.nickname.lower() == wanted for p in self.connected_players() if p is not exclude)

    def standings(self) -> list[dict]:
        ranked = sorted(self.players.values(), key=lambda p: p.score, reverse=True)
        return [{'nickname': p.nickname, 'score': p.score} for p in ranked]

    def public_state(self) -> dict:
        payload = {
            'code': self.code,
            'phase': self.phase,
            'category': self.category,
            'round': self.round,
            'players': [p.to_dict() for p in self.players.values()],
        }
        if self.timer_state and self.timer_state.get('is_active'):
            payload['timer'] = {
                'remaining': self.timer_state['remaining'],
                'phase': self.timer_state['phase'],
            }
        if self.phase == LOBBY:
            payload['categorySubmissions'] = list(self.category_submissions)
        elif self.phase == VOTING:
            payload['submissions'] = [s.to_dict() for s in self.submissions]
        elif self.phase == WAITING_FOR_CATEGORY:
            payload['needsMoreCategories'] = True
        elif self.phase == ENDED:
            payload['finalScores'] = self.standings()
        return payload

    def display_state(self) -> dict:
        payload = {
            'phase': self.phase,
            'round': self.round,
            'totalPlayers': len(self.players),
            'categorySubmissions': list(self.category_submissions),
            'players': [
                {'nickname': p.nickname, 'score': p.score, 'isConnected': p.is_connected}
                for p in self.players.values()
            ],
        }
        if self.phase == SUBMITTING:
            payload['category'] = self.category
            payload['submittedCount'] = sum(1 for p in self.players.values() if p.has_submitted)
        elif self.phase == VOTING:
            payload['category'] = self.category
            payload['votedCount'] = sum(1 for p in self.players.values() if p.has_voted)
            payload['submissions'] = [s.to_dict() for s in self.submissions]
        elif self.phase == RESULTS:
            payload['category'] = self.category
            payload['displayStage'] = self.display_stage
            payload['currentIndex'] = self.result_index
            payload['totalResults'] = len(self.results)
        elif self.phase == WAITING_FOR_CATEGORY:
            payload['needsMoreCategories'] = True
        elif self.phase == ENDED:
            payload['finalScores'] = self.standings()
        return payload

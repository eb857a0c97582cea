"""Persistence gateway: an append/update log of games for later analysis.

Every write commits immediately. A failing write is rolled back, logged and
re-raised as ``PersistenceFailure``; callers decide whether to carry on.
"""

import csv
from datetime import datetime, timezone
from functools import wraps

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import aliased

from category_game import db
from category_game.models import Category, Game, Player, Round, Submission, Vote
from .errors import PersistenceFailure

CSV_HEADER = [
    'room_code', 'game_start', 'game_end', 'round_number', 'category', 'submitter',
    'exemplar', 'points_earned', 'yes_votes', 'no_votes', 'voter_choice', 'voter_name',
]


def _utcnow():
    return datetime.now(timezone.utc)


def _guarded(fn):
    @wraps(fn)
    def wrapper(self, *args, **kwargs):
        try:
            return fn(self, *args, **kwargs)
        except SQLAlchemyError as exc:
            db.session.rollback()
            self.logger.warning(f"[persist-failed] {fn.__name__}: {exc}")
            raise PersistenceFailure(f"{fn.__name__} failed") from exc
    return wrapper


class GameStore:
    def __init__(self, logger):
        self.logger = logger

    # ---- games ----

    @_guarded
    def create_game(self, room_code, gm_id):
        game = Game(room_code=room_code, gm_id=gm_id, status='waiting')
        db.session.add(game)
        db.session.commit()
        self.logger.info(f"[db] game {room_code} created id={game.id}")
        return game.id

    @_guarded
    def set_game_status(self, game_id, status):
        game = db.session.get(Game, game_id)
        if game:
            game.status = status
            db.session.commit()

    @_guarded
    def finish_game(self, game_id, status, total_rounds):
        game = db.session.get(Game, game_id)
        if game:
            game.status = status
            game.total_rounds = total_rounds
            game.ended_at = _utcnow()
            db.session.commit()

    # ---- players ----

    @_guarded
    def add_player(self, game_id, player_uid, connection_id, nickname):
        player = Player(player_uid=player_uid, connection_id=connection_id, nickname=nickname,
                        game_id=game_id, is_connected=True)
        db.session.add(player)
        db.session.commit()
        return player.id

    @_guarded
    def find_player(self, game_id, player_uid):
        return Player.query.filter_by(player_uid=player_uid, game_id=game_id).first()

    @_guarded
    def set_player_connected(self, player_uid, connected, connection_id=None):
        player = Player.query.filter_by(player_uid=player_uid).first()
        if player:
            player.is_connected = connected
            player.connection_id = connection_id
            player.left_at = None if connected else _utcnow()
            db.session.commit()

    @_guarded
    def update_player_score(self, player_db_id, score):
        player = db.session.get(Player, player_db_id)
        if player:
            player.final_score = score
            db.session.commit()

    # ---- rounds ----

    @_guarded
    def start_round(self, game_id, round_number, category):
        rnd = Round(game_id=game_id, round_number=round_number, category=category)
        db.session.add(rnd)
        db.session.commit()
        self.logger.info(f"[db] round {round_number} started game={game_id} category={category!r}")
        return rnd.id

    @_guarded
    def close_submissions(self, round_id, total_submissions):
        rnd = db.session.get(Round, round_id)
        if rnd:
            rnd.submission_ended_at = _utcnow()
            rnd.total_submissions = total_submissions
            db.session.commit()

    @_guarded
    def close_voting(self, round_id, total_votes):
        rnd = db.session.get(Round, round_id)
        if rnd:
            rnd.voting_ended_at = _utcnow()
            rnd.total_votes = total_votes
            db.session.commit()

    @_guarded
    def mark_results_shown(self, round_id):
        rnd = db.session.get(Round, round_id)
        if rnd:
            rnd.results_shown_at = _utcnow()
            db.session.commit()

    # ---- submissions and votes ----

    @_guarded
    def log_submission(self, round_id, player_db_id, exemplar):
        submission = Submission(round_id=round_id, player_id=player_db_id, exemplar=exemplar)
        db.session.add(submission)
        db.session.commit()
        return submission.id

    @_guarded
    def log_vote(self, submission_id, voter_db_id, vote):
        db.session.add(Vote(submission_id=submission_id, voter_player_id=voter_db_id, vote=bool(vote)))
        db.session.commit()

    @_guarded
    def update_submission_results(self, submission_id, points, yes_count, no_count):
        submission = db.session.get(Submission, submission_id)
        if submission:
            submission.points_earned = points
            submission.yes_votes = yes_count
            submission.no_votes = no_count
            db.session.commit()

    # ---- categories ----

    @_guarded
    def add_category(self, game_id, player_db_id, text, is_preset=False):
        category = Category(game_id=game_id, submitted_by_player_id=player_db_id,
                            category_text=text, is_preset=is_preset)
        db.session.add(category)
        db.session.commit()
        return category.id

    @_guarded
    def available_categories(self, game_id):
        # Player submissions first, then presets
        return (
            Category.query
            .filter_by(game_id=game_id, was_used=False)
            .order_by(Category.is_preset.asc(), Category.submitted_at.asc(), Category.id.asc())
            .all()
        )

    @_guarded
    def mark_category_used(self, category_id):
        category = db.session.get(Category, category_id)
        if category:
            category.was_used = True
            db.session.commit()

    # ---- export ----

    def export_rows(self):
        voter = aliased(Player)
        query = (
            db.session.query(
                Game.room_code,
                Game.created_at,
                Game.ended_at,
                Round.round_number,
                Round.category,
                Player.nickname,
                Submission.exemplar,
                Submission.points_earned,
                Submission.yes_votes,
                Submission.no_votes,
                Vote.vote,
                voter.nickname,
            )
            .join(Round, Round.game_id == Game.id)
            .join(Submission, Submission.round_id == Round.id)
            .join(Player, Submission.player_id == Player.id)
            .outerjoin(Vote, Vote.submission_id == Submission.id)
            .outerjoin(voter, Vote.voter_player_id == voter.id)
            .order_by(Game.created_at, Round.round_number, Submission.exemplar, voter.nickname)
        )
        return query.all()

    def write_csv(self, stream):
        writer = csv.writer(stream)
        writer.writerow(CSV_HEADER)
        count = 0
        for row in self.export_rows():
            writer.writerow(['' if value is None else _csv_value(value) for value in row])
            count += 1
        self.logger.info(f"[export] wrote {count} rows")
        return count


def _csv_value(value):
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, bool):
        return int(value)
    return value

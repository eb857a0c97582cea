from category_game import db
from datetime import datetime, timezone


def _utcnow():
    return datetime.now(timezone.utc)


class Game(db.Model):
    __tablename__ = 'game'
    id = db.Column(db.Integer, primary_key=True)
    # Codes are only unique among live rooms, old games may reuse one
    room_code = db.Column(db.String(4), nullable=False, index=True)
    gm_id = db.Column(db.String(64), nullable=True)
    status = db.Column(db.String(32), default='waiting')  # waiting, active, completed, abandoned, interrupted
    total_rounds = db.Column(db.Integer, default=0)
    started_at = db.Column(db.DateTime, default=_utcnow)
    ended_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, default=_utcnow)
    players = db.relationship('Player', back_populates='game', lazy='dynamic')
    rounds = db.relationship('Round', back_populates='game', lazy='dynamic')


class Player(db.Model):
    __tablename__ = 'player'
    id = db.Column(db.Integer, primary_key=True)
    player_uid = db.Column(db.String(36), unique=True, nullable=False, index=True)
    connection_id = db.Column(db.String(64), nullable=True)
    nickname = db.Column(db.String(64), nullable=False)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    final_score = db.Column(db.Integer, default=0, nullable=False)
    is_connected = db.Column(db.Boolean, default=True, nullable=False)
    joined_at = db.Column(db.DateTime, default=_utcnow)
    left_at = db.Column(db.DateTime, nullable=True)
    game = db.relationship('Game', back_populates='players')


class Round(db.Model):
    __tablename__ = 'round'
    __table_args__ = (db.UniqueConstraint('game_id', 'round_number'),)
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    round_number = db.Column(db.Integer, nullable=False)
    category = db.Column(db.String(64), nullable=False)
    started_at = db.Column(db.DateTime, default=_utcnow)
    submission_ended_at = db.Column(db.DateTime, nullable=True)
    voting_ended_at = db.Column(db.DateTime, nullable=True)
    results_shown_at = db.Column(db.DateTime, nullable=True)
    total_submissions = db.Column(db.Integer, default=0)
    total_votes = db.Column(db.Integer, default=0)
    game = db.relationship('Game', back_populates='rounds')
    submissions = db.relationship('Submission', backref='round', lazy='dynamic')


class Submission(db.Model):
    __tablename__ = 'submission'
    __table_args__ = (db.UniqueConstraint('round_id', 'player_id'),)
    id = db.Column(db.Integer, primary_key=True)
    round_id = db.Column(db.Integer, db.ForeignKey('round.id'), nullable=False, index=True)
    player_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False, index=True)
    exemplar = db.Column(db.Text, nullable=False)
    submitted_at = db.Column(db.DateTime, default=_utcnow)
    points_earned = db.Column(db.Integer, default=0)
    yes_votes = db.Column(db.Integer, default=0)
    no_votes = db.Column(db.Integer, default=0)
    author = db.relationship('Player')
    votes = db.relationship('Vote', backref='submission', lazy='dynamic')


class Vote(db.Model):
    __tablename__ = 'vote'
    __table_args__ = (db.UniqueConstraint('submission_id', 'voter_player_id'),)
    id = db.Column(db.Integer, primary_key=True)
    submission_id = db.Column(db.Integer, db.ForeignKey('submission.id'), nullable=False, index=True)
    voter_player_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=False, index=True)
    vote = db.Column(db.Boolean, nullable=False)
    voted_at = db.Column(db.DateTime, default=_utcnow)

    voter = db.relationship('Player', foreign_keys=[voter_player_id])


class Category(db.Model):
    __tablename__ = 'category'
    id = db.Column(db.Integer, primary_key=True)
    game_id = db.Column(db.Integer, db.ForeignKey('game.id'), nullable=False, index=True)
    # Null means the host added it
    submitted_by_player_id = db.Column(db.Integer, db.ForeignKey('player.id'), nullable=True)
    category_text = db.Column(db.String(64), nullable=False)
    is_preset = db.Column(db.Boolean, default=False, nullable=False)
    was_used = db.Column(db.Boolean, default=False, nullable=False, index=True)
    submitted_at = db.Column(db.DateTime, default=_utcnow)

import os


def _flag(name, default):
    return os.environ.get(name, default).lower() in ('1', 'true', 'yes', 'on')


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///game_data.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    # Phase timers (seconds)
    SUBMISSION_DURATION_SEC = int(os.environ.get('SUBMISSION_DURATION_SEC', '120'))
    VOTING_PER_EXEMPLAR_SEC = int(os.environ.get('VOTING_PER_EXEMPLAR_SEC', '15'))
    VOTING_MINIMUM_SEC = int(os.environ.get('VOTING_MINIMUM_SEC', '30'))
    # Results presentation (seconds)
    RESULT_REVEAL_SEC = int(os.environ.get('RESULT_REVEAL_SEC', '5'))
    SUMMARY_DURATION_SEC = int(os.environ.get('SUMMARY_DURATION_SEC', '15'))
    SCOREBOARD_DURATION_SEC = int(os.environ.get('SCOREBOARD_DURATION_SEC', '10'))
    MIN_PLAYERS = int(os.environ.get('MIN_PLAYERS', '2'))
    # Grace periods (seconds)
    GM_GRACE_SEC = int(os.environ.get('GM_GRACE_SEC', '300'))
    PLAYER_GRACE_SEC = int(os.environ.get('PLAYER_GRACE_SEC', '600'))
    ENDED_ROOM_TTL_SEC = int(os.environ.get('ENDED_ROOM_TTL_SEC', '300'))
    CATEGORY_MAX_LENGTH = int(os.environ.get('CATEGORY_MAX_LENGTH', '50'))
    # Timer driver
    TICK_INTERVAL_SEC = float(os.environ.get('TICK_INTERVAL_SEC', '1.0'))
    TIMER_DRIVER_ENABLED = _flag('TIMER_DRIVER_ENABLED', '1')
    # Empty disables the CSV export
    EXPORT_PASSWORD = os.environ.get('EXPORT_PASSWORD', '')
    # Optional Cloud Storage mirror of the SQLite file
    GCS_BUCKET = os.environ.get('GCS_BUCKET')
    GOOGLE_CLOUD_PROJECT = os.environ.get('GOOGLE_CLOUD_PROJECT')
    STORAGE_SYNC_INTERVAL_SEC = float(os.environ.get('STORAGE_SYNC_INTERVAL_SEC', '300'))

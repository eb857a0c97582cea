"""Mirror of the SQLite database file in a Google Cloud Storage bucket.

Enabled only when ``GCS_BUCKET`` or ``GOOGLE_CLOUD_PROJECT`` is configured and
the store is a file-backed SQLite database. The file is downloaded once at
start-up, uploaded again at most every ``STORAGE_SYNC_INTERVAL_SEC`` after new
writes, and once more on shutdown. Sync failures are logged; the local file
stays authoritative.
"""

import os
from typing import Optional

from google.api_core.exceptions import GoogleAPIError
from google.auth.exceptions import DefaultCredentialsError
from google.cloud import storage
from sqlalchemy.engine import make_url

DB_OBJECT_NAME = 'game_data.db'
SQLITE_CONTENT_TYPE = 'application/x-sqlite3'


def bucket_name_from_config(config) -> Optional[str]:
    if config.get('GCS_BUCKET'):
        return config['GCS_BUCKET']
    if config.get('GOOGLE_CLOUD_PROJECT'):
        return f"{config['GOOGLE_CLOUD_PROJECT']}-category-game-db"
    return None


def sqlite_file_path(database_uri: str, instance_path: str) -> Optional[str]:
    url = make_url(database_uri)
    if url.get_backend_name() != 'sqlite' or not url.database or url.database == ':memory:':
        return None
    # Flask-SQLAlchemy resolves relative SQLite paths against the instance folder
    if os.path.isabs(url.database):
        return url.database
    return os.path.join(instance_path, url.database)


class StorageSync:
    def __init__(self, bucket, local_path: str, logger, interval: float = 300.0,
                 object_name: str = DB_OBJECT_NAME):
        self.bucket = bucket
        self.local_path = local_path
        self.logger = logger
        self.interval = interval
        self.object_name = object_name
        self.dirty = False
        self.last_upload: Optional[float] = None

    @classmethod
    def from_app(cls, app, client_factory=None) -> Optional['StorageSync']:
        config = app.config
        bucket_name = bucket_name_from_config(config)
        if not bucket_name:
            return None
        local_path = sqlite_file_path(config['SQLALCHEMY_DATABASE_URI'], app.instance_path)
        if local_path is None:
            app.logger.info("[storage-sync] store is not a SQLite file, sync disabled")
            return None
        try:
            client = (client_factory or storage.Client)()
        except DefaultCredentialsError as exc:
            app.logger.warning(f"[storage-sync] no credentials, using local storage only: {exc}")
            return None
        app.logger.info(f"[storage-sync] bucket={bucket_name} file={local_path}")
        return cls(client.bucket(bucket_name), local_path, app.logger,
                   interval=float(config.get('STORAGE_SYNC_INTERVAL_SEC', 300)))

    def download(self) -> bool:
        try:
            blob = self.bucket.blob(self.object_name)
            if not blob.exists():
                self.logger.info("[storage-sync] no database in bucket yet")
                return False
            os.makedirs(os.path.dirname(self.local_path) or '.', exist_ok=True)
            blob.download_to_filename(self.local_path)
        except (GoogleAPIError, OSError) as exc:
            self.logger.warning(f"[storage-sync] download failed: {exc}")
            return False
        self.logger.info(f"[storage-sync] downloaded {self.object_name} to {self.local_path}")
        return True

    def upload(self) -> bool:
        if not os.path.exists(self.local_path):
            return False
        try:
            blob = self.bucket.blob(self.object_name)
            blob.upload_from_filename(self.local_path, content_type=SQLITE_CONTENT_TYPE)
        except (GoogleAPIError, OSError) as exc:
            self.logger.error(f"[storage-sync] upload failed: {exc}")
            return False
        self.dirty = False
        self.logger.info(f"[storage-sync] uploaded {self.object_name}")
        return True

    def mark_dirty(self) -> None:
        self.dirty = True

    def upload_if_due(self, now: float) -> bool:
        if not self.dirty:
            return False
        if self.last_upload is not None and now - self.last_upload < self.interval:
            return False
        self.last_upload = now
        return self.upload()

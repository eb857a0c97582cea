import logging
import os

import pytest
from google.api_core.exceptions import ServiceUnavailable

from category_game import create_app
from category_game.services.games import storage_sync
from category_game.services.games.storage_sync import StorageSync, bucket_name_from_config, sqlite_file_path

logger = logging.getLogger('storage-sync-tests')


class FakeBlob:
    def __init__(self, bucket, name):
        self.bucket = bucket
        self.name = name

    def exists(self):
        return self.name in self.bucket.objects

    def download_to_filename(self, path):
        with open(path, 'wb') as fh:
            fh.write(self.bucket.objects[self.name])

    def upload_from_filename(self, path, content_type=None):
        if self.bucket.offline:
            raise ServiceUnavailable('bucket offline')
        with open(path, 'rb') as fh:
            self.bucket.objects[self.name] = fh.read()
        self.bucket.content_types.append(content_type)


class FakeBucket:
    def __init__(self, name='games'):
        self.name = name
        self.objects = {}
        self.content_types = []
        self.offline = False

    def blob(self, name):
        return FakeBlob(self, name)


class FakeClient:
    def __init__(self):
        self.buckets = {}

    def bucket(self, name):
        return self.buckets.setdefault(name, FakeBucket(name))


def test_bucket_name_prefers_explicit_bucket():
    assert bucket_name_from_config({'GCS_BUCKET': 'b', 'GOOGLE_CLOUD_PROJECT': 'p'}) == 'b'
    assert bucket_name_from_config({'GOOGLE_CLOUD_PROJECT': 'p'}) == 'p-category-game-db'
    assert bucket_name_from_config({}) is None


def test_only_sqlite_files_are_synced(tmp_path):
    assert sqlite_file_path('sqlite://', str(tmp_path)) is None
    assert sqlite_file_path('sqlite:///:memory:', str(tmp_path)) is None
    assert sqlite_file_path('postgresql://user:pw@db/games', str(tmp_path)) is None
    assert sqlite_file_path('sqlite:///game_data.db', str(tmp_path)) == os.path.join(str(tmp_path), 'game_data.db')
    absolute = str(tmp_path / 'abs.db')
    assert sqlite_file_path(f'sqlite:///{absolute}', '/elsewhere') == absolute


def test_download_copies_bucket_file(tmp_path):
    bucket = FakeBucket()
    local = tmp_path / 'instance' / 'game_data.db'
    sync = StorageSync(bucket, str(local), logger)
    assert sync.download() is False
    assert not local.exists()

    bucket.objects['game_data.db'] = b'sqlite bytes'
    assert sync.download() is True
    assert local.read_bytes() == b'sqlite bytes'


def test_upload_waits_for_writes_and_interval(tmp_path):
    bucket = FakeBucket()
    local = tmp_path / 'game_data.db'
    local.write_bytes(b'v1')
    sync = StorageSync(bucket, str(local), logger, interval=300)

    assert sync.upload_if_due(1000.0) is False
    sync.mark_dirty()
    assert sync.upload_if_due(1000.0) is True
    assert bucket.objects['game_data.db'] == b'v1'
    assert bucket.content_types == ['application/x-sqlite3']

    local.write_bytes(b'v2')
    sync.mark_dirty()
    assert sync.upload_if_due(1100.0) is False
    assert sync.upload_if_due(1300.0) is True
    assert bucket.objects['game_data.db'] == b'v2'


def test_failed_upload_is_logged_and_retried(tmp_path, caplog):
    bucket = FakeBucket()
    local = tmp_path / 'game_data.db'
    local.write_bytes(b'v1')
    sync = StorageSync(bucket, str(local), logger, interval=0)
    bucket.offline = True
    sync.mark_dirty()
    with caplog.at_level(logging.ERROR):
        assert sync.upload_if_due(10.0) is False
    assert '[storage-sync] upload failed' in caplog.text
    assert sync.dirty

    bucket.offline = False
    assert sync.upload_if_due(11.0) is True
    assert not sync.dirty


def test_app_downloads_on_start_and_uploads_on_shutdown(tmp_path, monkeypatch):
    client = FakeClient()
    client.bucket('games').objects['game_data.db'] = b''
    monkeypatch.setattr(storage_sync.storage, 'Client', lambda: client)
    db_path = tmp_path / 'game_data.db'

    class SyncConfig:
        TESTING = True
        SQLALCHEMY_DATABASE_URI = f'sqlite:///{db_path}'
        BCRYPT_LOG_ROUNDS = 4
        TIMER_DRIVER_ENABLED = False
        GCS_BUCKET = 'games'

    app = create_app(SyncConfig)
    service = app.extensions['category_game']
    assert db_path.exists()
    assert service.sync is not None

    db_path.write_bytes(b'after the game')
    service.shutdown()
    assert client.bucket('games').objects['game_data.db'] == b'after the game'


def test_persisted_writes_are_uploaded_on_tick(service, tmp_path):
    bucket = FakeBucket()
    local = tmp_path / 'game_data.db'
    local.write_bytes(b'rows')
    service.sync = StorageSync(bucket, str(local), logger, interval=300)

    service.tick()
    assert bucket.objects == {}
    service.create_room('gm')
    service.tick()
    assert bucket.objects['game_data.db'] == b'rows'


def test_app_without_bucket_has_no_sync(flask_app):
    assert flask_app.extensions['category_game'].sync is None


@pytest.mark.parametrize('uri', ['sqlite://', 'postgresql://user:pw@db/games'])
def test_non_file_store_disables_sync(uri, tmp_path):
    class App:
        config = {'GCS_BUCKET': 'games', 'SQLALCHEMY_DATABASE_URI': uri}
        instance_path = str(tmp_path)
        logger = logging.getLogger('storage-sync-tests')

    assert StorageSync.from_app(App, client_factory=FakeClient) is None

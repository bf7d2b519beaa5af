"""
Shared fixtures: a throwaway SQLite store, a data directory with one
source audio file, and settings pointing at both.
"""
import sqlite3

import pytest

from yomitan_local.adapters import FilesystemBlobBinding, LocalAudioStorage, SQLiteRelationalAdapter
from yomitan_local.core.config import HostSettings

SAMPLE_MP3 = b"ID3\x03\x00\x00\x00\x00\x00\x0f" + bytes(range(256))

HOST_ENV_VARS = [
    "PORT",
    "HOST",
    "DATA_DIR",
    "DATABASE_PATH",
    "ROUTER",
    "LOG_LEVEL",
    "LOG_FILE",
    "CORS_ORIGINS",
    "LOCAL_CONFIG_PATH",
    "AUTHENTICATION_ENABLED",
    "AWS_POLLY_ENABLED",
    "API_KEYS",
    "AWS_ACCESS_KEY_ID",
    "AWS_SECRET_ACCESS_KEY",
]

SCHEMA = """
CREATE TABLE entries (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    expression TEXT NOT NULL,
    reading TEXT,
    source TEXT NOT NULL,
    file TEXT NOT NULL,
    display TEXT
);
"""


@pytest.fixture
def db_path(tmp_path):
    """SQLite file with one entry for 猫 / ねこ."""
    path = tmp_path / "yomitan-audio.db"
    conn = sqlite3.connect(path)
    conn.executescript(SCHEMA)
    conn.execute(
        "INSERT INTO entries (expression, reading, source, file, display) VALUES (?, ?, ?, ?, ?)",
        ("猫", "ねこ", "nhk16", "neko.mp3", "NHK16 猫"),
    )
    conn.execute(
        "INSERT INTO entries (expression, reading, source, file, display) VALUES (?, ?, ?, ?, ?)",
        ("犬", "いぬ", "jpod", "inu.mp3", "JPod 犬"),
    )
    conn.commit()
    conn.close()
    return path


@pytest.fixture
def data_dir(tmp_path):
    """Data directory holding nhk16_files/neko.mp3 and no TTS cache yet."""
    root = tmp_path / "data"
    (root / "nhk16_files").mkdir(parents=True)
    (root / "nhk16_files" / "neko.mp3").write_bytes(SAMPLE_MP3)
    return root


@pytest.fixture
def settings(db_path, data_dir):
    return HostSettings(dataDir=str(data_dir), databasePath=str(db_path), router="routers:audio_router")


@pytest.fixture
def relational(db_path):
    adapter = SQLiteRelationalAdapter(db_path)
    yield adapter
    adapter.close()


@pytest.fixture
def storage(data_dir):
    return LocalAudioStorage(data_dir)


@pytest.fixture
def bucket(storage):
    return FilesystemBlobBinding(storage)

import threading
from unittest.mock import MagicMock

import putiopy
import pytest
import requests

from putiotools.cli import App, Config, Colorizer
from putiotools.client import FileRef, Transfer, DIRECTORY_CONTENT_TYPE


# A 4xx error as putiopy raises it: (response, error_type, message)
def api_error(message, status_code=400, error_type="BadRequest"):
    return putiopy.ClientError(MagicMock(status_code=status_code), error_type, message)


def make_file(file_id, name, size=0, is_dir=False, parent_id=0):
    content_type = DIRECTORY_CONTENT_TYPE if is_dir else "video/mp4"
    return FileRef(id=file_id, name=name, is_dir=is_dir, size=size,
                   content_type=content_type, parent_id=parent_id)


class FakeClient:
    """Stands in for PutioClient, recording every call it receives."""

    def __init__(self, files=(), listings=None, url_errors=(), user_id=42):
        self.files = {f.id: f for f in files}
        self.listings = listings or {}
        self.url_errors = set(url_errors)
        self.user_id = user_id
        self.calls = []
        self._lock = threading.Lock()

    def _record(self, *call):
        with self._lock:
            self.calls.append(call)

    def calls_to(self, name):
        return [call for call in self.calls if call[0] == name]

    def validate_token(self):
        return self.user_id

    def get_file(self, file_id):
        self._record('get_file', file_id)
        if file_id not in self.files:
            raise api_error("File not found", status_code=404, error_type="NotFound")
        return self.files[file_id]

    def list_files(self, folder_id=0):
        self._record('list_files', folder_id)
        return self.listings[folder_id]

    def delete_files(self, *file_ids):
        self._record('delete_files', file_ids)

    def move_files(self, target_folder, *file_ids):
        self._record('move_files', target_folder, file_ids)

    def get_download_url(self, file_id, force_cdn=False):
        self._record('get_download_url', file_id)
        if file_id in self.url_errors:
            raise api_error("No download url")
        return f"https://dl.example.com/{file_id}"

    def add_transfer(self, url, parent_id=0, callback_url=''):
        self._record('add_transfer', url)
        if 'rejected' in url:
            raise api_error("Invalid URL")
        if 'unreachable' in url:
            raise requests.ConnectionError("connection refused")
        return Transfer(id=1, name=url, status='IN_QUEUE', status_message='In queue')


@pytest.fixture
def client():
    files = [
        make_file(10, "  movie.mkv ", size=1_500_000),
        make_file(11, "notes.txt", size=999),
        make_file(20, "Archive", is_dir=True),
    ]
    listings = {
        0: (files, make_file(0, "Your Files", is_dir=True)),
        20: ([], make_file(20, "Archive", is_dir=True)),
    }
    return FakeClient(files=files, listings=listings)


@pytest.fixture
def app(client):
    return App(Config(token='secret'), client, Colorizer(False))

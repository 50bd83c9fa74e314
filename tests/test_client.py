from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest
import requests

from putiotools.auth import get_client, validate_client, TokenRequiredError, TokenInvalidError
from putiotools.client import PutioClient, PutioAPIError, api_error_message, api_error_status
from putiotools.ops import describe_error

from conftest import api_error


def make_client(*bodies):
    sdk = MagicMock()
    sdk.request.side_effect = list(bodies)
    return PutioClient(sdk), sdk


def file_json(file_id, name, content_type="video/mp4", size=100):
    return {"id": file_id, "name": name, "content_type": content_type, "size": size, "parent_id": 0}


def test_get_client_requires_token() -> None:
    with patch("putiotools.auth.putiopy.Client") as sdk_class:
        with pytest.raises(TokenRequiredError):
            get_client("", 5.0)
    sdk_class.assert_not_called()


def test_get_client_builds_sdk_with_single_attempt() -> None:
    with patch("putiotools.auth.putiopy.Client") as sdk_class:
        client = get_client("abc", 5.0)
    sdk_class.assert_called_once_with("abc", timeout=5.0, use_retry=False)
    assert client.sdk is sdk_class.return_value


def test_validate_client_returns_user_id() -> None:
    client, sdk = make_client({"result": "OK", "user_id": 7})
    assert validate_client(client) == 7
    assert sdk.request.call_args.args == ("/oauth2/validate",)


def test_validate_client_rejects_token_without_user() -> None:
    client, _ = make_client({"result": "OK"})
    with pytest.raises(TokenInvalidError):
        validate_client(client)


def test_get_file_uses_sdk_resource_and_parses_directory() -> None:
    client, sdk = make_client()
    sdk.File.get.return_value = SimpleNamespace(id=5, name="Movies", size=0, parent_id=0,
                                                content_type="application/x-directory")
    folder = client.get_file(5)
    sdk.File.get.assert_called_once_with(5)
    assert folder.id == 5
    assert folder.is_dir


def test_list_files_follows_cursor() -> None:
    client, sdk = make_client(
        {"files": [file_json(1, "a")], "parent": file_json(0, "Your Files", "application/x-directory"),
         "cursor": "next-page"},
        {"files": [file_json(2, "b")], "cursor": None},
    )
    files, parent = client.list_files(0)
    assert [f.id for f in files] == [1, 2]
    assert parent.name == "Your Files"
    first, second = sdk.request.call_args_list
    assert first.args == ("/files/list",)
    assert first.kwargs["params"] == {"parent_id": 0}
    assert second.args == ("/files/list/continue",)
    assert second.kwargs["method"] == "POST"
    assert second.kwargs["data"] == {"cursor": "next-page"}


def test_delete_files_sends_one_batched_request() -> None:
    client, sdk = make_client({"status": "OK"})
    client.delete_files(3, 1, 2)
    sdk.request.assert_called_once_with("/files/delete", method="POST", data={"file_ids": "3,1,2"})


def test_move_and_delete_without_ids_skip_request() -> None:
    client, sdk = make_client()
    client.delete_files()
    client.move_files(9)
    sdk.request.assert_not_called()


def test_move_files_posts_target_folder() -> None:
    client, sdk = make_client({"status": "OK"})
    client.move_files(9, 1, 2)
    sdk.request.assert_called_once_with("/files/move", method="POST",
                                        data={"file_ids": "1,2", "parent_id": 9})


def test_get_download_url() -> None:
    client, sdk = make_client({"url": "https://cdn.example.com/f/1"}, {"url": "https://dl.example.com/f/1"})
    assert client.get_download_url(1, force_cdn=True) == "https://cdn.example.com/f/1"
    assert sdk.request.call_args.args == ("/files/1/url",)
    assert sdk.request.call_args.kwargs["params"] == {"cdn": "true"}
    client.get_download_url(1)
    assert sdk.request.call_args.kwargs["params"] is None


def test_add_transfer_returns_status_message() -> None:
    client, sdk = make_client()
    sdk.Transfer.add_url.return_value = SimpleNamespace(id=4, name="a.iso", status="IN_QUEUE",
                                                        status_message="In queue")
    transfer = client.add_transfer("http://example.com/a.iso")
    assert transfer.status_message == "In queue"
    sdk.Transfer.add_url.assert_called_once_with("http://example.com/a.iso", parent_id=0, callback_url=None)


def test_add_transfer_passes_callback_url() -> None:
    client, sdk = make_client()
    sdk.Transfer.add_url.return_value = {"id": 4, "status_message": "In queue"}
    client.add_transfer("http://example.com/a.iso", parent_id=3, callback_url="http://hook.example.com")
    assert sdk.Transfer.add_url.call_args.kwargs == {"parent_id": 3, "callback_url": "http://hook.example.com"}


def test_service_errors_propagate_with_message_and_status() -> None:
    client, sdk = make_client()
    sdk.File.get.side_effect = api_error("File not found", status_code=404, error_type="NotFound")
    with pytest.raises(PutioAPIError) as excinfo:
        client.get_file(1)
    assert api_error_message(excinfo.value) == "File not found"
    assert api_error_status(excinfo.value) == 404
    assert describe_error(excinfo.value, 1) == "File not found for 1"


def test_api_error_message_falls_back_to_error_type() -> None:
    assert api_error_message(api_error(None, status_code=500, error_type="InternalServerError")) \
        == "InternalServerError"


def test_transport_errors_propagate_unchanged() -> None:
    client, sdk = make_client()
    sdk.File.get.side_effect = requests.ConnectTimeout("timed out")
    with pytest.raises(requests.ConnectTimeout):
        client.get_file(1)
    assert describe_error(requests.ConnectTimeout("timed out"), 1) == "error for 1"

import logging
from collections import namedtuple

import putiopy

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5.0
ROOT_FOLDER_ID = 0
DIRECTORY_CONTENT_TYPE = "application/x-directory"

FileRef = namedtuple('FileRef', 'id name is_dir size content_type parent_id')
Transfer = namedtuple('Transfer', 'id name status status_message')

# Errors the service itself reported (4xx as ClientError, 5xx as ServerError).
# They carry the service's message; anything else is a transport error.
PutioAPIError = putiopy.APIError


def api_error_message(err):
    return err.message or err.type

def api_error_status(err):
    response = err.response
    return getattr(response, 'status_code', None)

def _field(obj, name, default=None):
    if isinstance(obj, dict):
        return obj.get(name, default)
    return getattr(obj, name, default)

# Works on both the SDK's resource objects and the raw JSON dicts
def file_from_api(obj):
    content_type = _field(obj, 'content_type') or ''
    return FileRef(id=int(_field(obj, 'id')),
                   name=_field(obj, 'name') or '',
                   is_dir=content_type == DIRECTORY_CONTENT_TYPE,
                   size=int(_field(obj, 'size') or 0),
                   content_type=content_type,
                   parent_id=_field(obj, 'parent_id'))

def transfer_from_api(obj):
    return Transfer(id=_field(obj, 'id'),
                    name=_field(obj, 'name') or '',
                    status=_field(obj, 'status') or '',
                    status_message=_field(obj, 'status_message') or '')


class PutioClient:
    """Adapts a putiopy.Client to the handful of calls the commands make.

    Typed SDK resources are used where they exist; the rest goes through the
    SDK's own request() so auth, timeout and error mapping stay in one place.
    One instance is shared by the worker threads of a fan-out.
    """

    def __init__(self, sdk):
        self.sdk = sdk

    def _request(self, path, method='GET', **kwargs):
        log.debug("%s %s", method, path)
        return self.sdk.request(path, method=method, **kwargs)

    def validate_token(self):
        body = self._request('/oauth2/validate')
        return body.get('user_id')

    def get_file(self, file_id):
        return file_from_api(self.sdk.File.get(file_id))

    # Returns (files, parent). The SDK's File.list() drops the parent folder,
    # so the listing is requested directly, following the cursor put.io hands
    # back until the folder is exhausted.
    def list_files(self, folder_id=ROOT_FOLDER_ID):
        body = self._request('/files/list', params={'parent_id': folder_id})
        parent = file_from_api(body['parent'])
        files = [file_from_api(f) for f in body.get('files', [])]
        cursor = body.get('cursor')
        while cursor:
            body = self._request('/files/list/continue', method='POST', data={'cursor': cursor})
            files.extend(file_from_api(f) for f in body.get('files', []))
            cursor = body.get('cursor')
        return files, parent

    def delete_files(self, *file_ids):
        if not file_ids:
            return
        self._request('/files/delete', method='POST',
                      data={'file_ids': ','.join(str(i) for i in file_ids)})

    def move_files(self, target_folder, *file_ids):
        if not file_ids:
            return
        self._request('/files/move', method='POST',
                      data={'file_ids': ','.join(str(i) for i in file_ids),
                            'parent_id': target_folder})

    def get_download_url(self, file_id, force_cdn=False):
        params = {'cdn': 'true'} if force_cdn else None
        body = self._request(f'/files/{file_id}/url', params=params)
        return body['url']

    def add_transfer(self, url, parent_id=ROOT_FOLDER_ID, callback_url=''):
        transfer = self.sdk.Transfer.add_url(url, parent_id=parent_id,
                                             callback_url=callback_url or None)
        return transfer_from_api(transfer)

import logging
import re
from collections import namedtuple
from concurrent.futures import ThreadPoolExecutor, as_completed
from urllib.parse import urlsplit

from .client import PutioAPIError, ROOT_FOLDER_ID, api_error_message

log = logging.getLogger(__name__)

# One unit's outcome. `key` is the input that produced it, so results can be
# matched back to their inputs no matter what order they finish in.
OperationResult = namedtuple('OperationResult', 'key message error')

def describe_error(err, key):
    if isinstance(err, PutioAPIError):
        return f"{api_error_message(err)} for {key}"
    return f"error for {key}"

# Run func(key) for every key at once, one thread per key, and wait for all of
# them. Returns {key: OperationResult}. func returns the success message; any
# exception it raises is captured into that key's result and does not affect
# the other units.
def fan_out(keys, func):
    keys = list(dict.fromkeys(keys))
    results = {}
    if not keys:
        return results
    with ThreadPoolExecutor(max_workers=len(keys)) as executor:
        futures = {executor.submit(func, key): key for key in keys}
        for future in as_completed(futures):
            key = futures[future]
            try:
                results[key] = OperationResult(key, future.result(), None)
            except Exception as err:
                log.debug("%s failed: %r", key, err)
                results[key] = OperationResult(key, describe_error(err, key), err)
    return results

ID_RE = re.compile(r"[+-]?[0-9]+")
INT64_MIN, INT64_MAX = -2**63, 2**63 - 1

# Only plain base-10 64-bit integers are IDs: no whitespace, underscores or
# non-ASCII digits. Returns None for anything else.
def parse_id(id_):
    id_ = str(id_)
    if ID_RE.fullmatch(id_) and INT64_MIN <= int(id_) <= INT64_MAX:
        return int(id_)
    return None

def parse_ids(ids):
    parsed = []
    for id_ in ids:
        file_id = parse_id(id_)
        if file_id is None:
            log.info("Ignoring invalid file id %r", id_)
        else:
            parsed.append(file_id)
    return parsed

# Keep only URLs that parse and carry a scheme.
def valid_urls(urls):
    kept = []
    for url in urls:
        try:
            parts = urlsplit(url)
        except ValueError:
            parts = None
        if parts is None or not parts.scheme:
            log.info("Ignoring invalid URL %r", url)
            continue
        kept.append(parts.geturl())
    return kept

# Resolve file ids to names. IDs that fail to parse or to resolve are left out
# of the returned {id: name} map.
def get_file_names(client, ids):
    file_ids = parse_ids(ids)
    results = fan_out(file_ids, lambda file_id: client.get_file(file_id).name.strip())
    names = {}
    for file_id in file_ids:
        result = results.get(file_id)
        if result is None or file_id in names:
            continue
        if result.error is None:
            names[file_id] = result.message
        else:
            log.info("Could not resolve file %s: %s", file_id, result.message)
    return names

def get_download_urls(client, file_ids, force_cdn=False):
    return fan_out(file_ids, lambda file_id: client.get_download_url(file_id, force_cdn))

def add_transfers(client, urls, parent_id=ROOT_FOLDER_ID, callback_url=''):
    return fan_out(urls, lambda url: client.add_transfer(url, parent_id, callback_url).status_message)

import putiopy

from .client import PutioClient

class TokenRequiredError(Exception):
    def __init__(self):
        super().__init__("please provide put.io token via flags or PUTIO_TOKEN env-var")

class TokenInvalidError(Exception):
    def __init__(self):
        super().__init__("invalid put.io token")

# Every call gets its own deadline and a single attempt; a failure surfaces as-is.
def get_client(token, timeout):
    if not token:
        raise TokenRequiredError()
    sdk = putiopy.Client(token, timeout=timeout, use_retry=False)
    return PutioClient(sdk)

# Returns the user id the token belongs to. API errors (e.g. a 401) propagate.
def validate_client(client):
    user_id = client.validate_token()
    if user_id is None:
        raise TokenInvalidError()
    return user_id

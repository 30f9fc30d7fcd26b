"""
Identity resolution – Basic-auth credential parsing, registration and login.
"""

import base64
import binascii
from typing import Optional, Tuple

from werkzeug.security import check_password_hash, generate_password_hash

from prescription_api.config import USERS_COLLECTION
from prescription_api.database import RecordNotFound
from prescription_api.errors import InvalidCredentials, MalformedCredentials
from prescription_api.models import User, by_username

# Checked against on unknown usernames so both login failures cost one hash.
_UNKNOWN_USER_HASH = generate_password_hash("unknown-user-placeholder")


def parse_basic_auth(header: Optional[str]) -> Tuple[str, str]:
    """Split an ``Authorization: Basic ...`` header into (username, password)."""
    parts = (header or "").split(" ", 1)
    if len(parts) != 2 or parts[0] != "Basic":
        raise MalformedCredentials()

    try:
        creds = base64.b64decode(parts[1].strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        raise MalformedCredentials("Error decoding authentication credentials") from None

    username, sep, password = creds.partition(":")
    if not sep or not username:
        raise MalformedCredentials()
    return username, password


def register_user(store, header: Optional[str]) -> str:
    """Create a user from Basic-auth credentials and return the username.

    A duplicate username fails at the store as ``StoreFailure``.
    """
    username, password = parse_basic_auth(header)
    user = User(username=username, password_hash=generate_password_hash(password))
    store.insert({"username": user.username, "password_hash": user.password_hash},
                 USERS_COLLECTION)
    return user.username


def authenticate_user(store, header: Optional[str]) -> str:
    """Verify Basic-auth credentials against the stored hash.

    Unknown users and wrong passwords raise the same ``InvalidCredentials``.
    """
    username, password = parse_basic_auth(header)
    try:
        record = store.find_one(by_username(username), USERS_COLLECTION)
    except RecordNotFound:
        check_password_hash(_UNKNOWN_USER_HASH, password)
        raise InvalidCredentials() from None

    user = User(username=record["username"], password_hash=record["password_hash"])
    if not check_password_hash(user.password_hash, password):
        raise InvalidCredentials()
    return user.username

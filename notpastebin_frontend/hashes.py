"""
Note hash extraction from URL paths.

Every note-addressing route looks like ``/<prefix>/<hash>`` with an optional
trailing slash. The hash is whatever remains after dropping the prefix word and
its two surrounding slashes; only its length is checked here; whether it names
a real note is the backend's call.
"""

from notpastebin_frontend.exceptions import InvalidHashError

HASH_LENGTH = 32


def extract_hash(path: str, prefix: str) -> str:
    """
    Return the note hash carried by ``path`` under route ``prefix``.

    >>> extract_hash("/note/" + "a" * 32 + "/", "note") == "a" * 32
    True

    Raises:
        InvalidHashError: the candidate is not exactly HASH_LENGTH characters.
    """
    candidate = path
    if candidate.endswith("/"):
        candidate = candidate[:-1]
    candidate = candidate[len(prefix) + 2:]
    if len(candidate) != HASH_LENGTH:
        raise InvalidHashError(path=path)
    return candidate

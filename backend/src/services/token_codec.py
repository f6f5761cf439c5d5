"""
Secret generation, hashing and bearer parsing for API tokens.

A bearer has the shape ``<nano_id>.<secret>``. The nano-id is the owner's public
alias and narrows the lookup; the secret is 21 characters from a 62-symbol
alphabet. Only the SHA-256 digest of the secret is ever stored.
"""
import hashlib
import hmac
import secrets
from dataclasses import dataclass, field

from services.exceptions import InvalidAPIFormatError

# 62 symbols. The digit 5 is absent; issued bearers depend on this exact set.
SECRET_ALPHABET = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ123467890_"
SECRET_LENGTH = 21
BEARER_SEPARATOR = "."
MAX_CODENAME_LENGTH = 64

_ADJECTIVES = (
    "agile", "amber", "ancient", "bold", "brave", "bright", "calm", "clever",
    "cosmic", "crimson", "curious", "daring", "eager", "electric", "fearless",
    "gentle", "golden", "grand", "happy", "hidden", "humble", "jolly", "keen",
    "lively", "lucky", "mellow", "mighty", "misty", "nimble", "noble", "quiet",
    "rapid", "restless", "rustic", "silent", "silver", "sleepy", "snowy",
    "spry", "steady", "stormy", "sunny", "swift", "tidy", "velvet", "vivid",
    "wandering", "wild", "wise", "witty",
)

_ANIMALS = (
    "albatross", "alpaca", "badger", "beaver", "bison", "bobcat", "buffalo",
    "camel", "caribou", "cheetah", "cobra", "condor", "cougar", "coyote",
    "crane", "dingo", "dolphin", "eagle", "falcon", "ferret", "flamingo",
    "fox", "gazelle", "gecko", "heron", "ibis", "jackal", "jaguar", "koala",
    "lemur", "leopard", "lynx", "marmot", "meerkat", "mongoose", "narwhal",
    "ocelot", "orca", "otter", "panther", "pelican", "puffin", "raven",
    "salamander", "seal", "sparrow", "tapir", "toucan", "walrus", "wombat",
)


@dataclass(frozen=True)
class ParsedBearer:
    """The searchable parts of a bearer: owner alias and secret digest."""

    nano_id: str
    value_hash: bytes = field(repr=False)


def generate_secret() -> str:
    """Generate a new token secret from a cryptographically secure source."""
    return "".join(secrets.choice(SECRET_ALPHABET) for _ in range(SECRET_LENGTH))


def hash_secret(secret: str) -> bytes:
    """Return the SHA-256 digest of a secret."""
    return hashlib.sha256(secret.encode()).digest()


def hashes_match(candidate: bytes, stored: bytes) -> bool:
    """Compare two digests in constant time."""
    return hmac.compare_digest(candidate, stored)


def assemble_bearer(nano_id: str, secret: str) -> str:
    """
    Build the bearer string handed to the client.

    Without a nano-id the raw secret is returned; such a token exists but cannot
    be presented through the X-Api-Token header.
    """
    if not nano_id:
        return secret
    return f"{nano_id}{BEARER_SEPARATOR}{secret}"


def parse_bearer(bearer: str) -> ParsedBearer:
    """
    Split a bearer into its nano-id and the digest of its secret.

    The secret itself is not retained by the returned value.

    Raises:
        InvalidAPIFormatError: If the bearer is not exactly two non-empty
            dot-separated segments.
    """
    segments = bearer.split(BEARER_SEPARATOR)
    if len(segments) != 2 or not segments[0] or not segments[1]:
        raise InvalidAPIFormatError()

    nano_id, secret = segments
    value_hash = hash_secret(secret)
    # Drop every reference to the plaintext before returning.
    secret = ""
    segments.clear()

    return ParsedBearer(nano_id=nano_id, value_hash=value_hash)


def generate_codename() -> str:
    """Generate a human-readable "adjective-animal" label for a token."""
    codename = f"{secrets.choice(_ADJECTIVES)}-{secrets.choice(_ANIMALS)}"
    return codename[:MAX_CODENAME_LENGTH]

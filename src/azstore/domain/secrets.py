"""Pure functions for Key Vault secret identifiers and names.

A secret can be referenced either by its bare name or by its full Key Vault
identifier, ``https://<vault>.vault.azure.net/secrets/<name>[/<version>]``.
Key Vault only accepts alphanumerics and hyphens in names, up to 127
characters, so names coming from the host are cleaned before use.
"""

import hashlib
import logging
import re
from dataclasses import dataclass
from urllib.parse import urlparse

from azstore.constants import MAX_SECRET_NAME_LENGTH, SECRET_NAME_PREFIX_LENGTH

logger = logging.getLogger(__name__)

_INVALID_NAME_CHARACTERS = re.compile(r"[^a-zA-Z0-9-]+")


@dataclass(frozen=True)
class SecretID:
    vault_url: str
    name: str
    version: str = ""


def parse_secret_id(secret_id: str) -> SecretID | None:
    """Parse a Key Vault secret identifier.

    Returns None when the value is not URL-shaped or has fewer than two path
    components (``secrets/<name>``), in which case the caller treats it as a
    bare secret name.  A missing or empty version means "latest".
    """
    if not secret_id:
        logger.debug("unable to parse empty ID")
        return None
    try:
        parsed = urlparse(secret_id)
    except ValueError as exc:
        logger.debug("Unable to parse %s as secret ID: %s", secret_id, exc)
        return None
    if not parsed.scheme or not parsed.netloc:
        logger.debug("%s is not a URL, treating it as a secret name", secret_id)
        return None

    parts = parsed.path.strip("/").split("/")
    if len(parts) < 2 or not parts[1]:
        logger.debug("Unexpected ID format found for %s, unable to parse as secret ID", secret_id)
        return None

    return SecretID(
        vault_url=f"{parsed.scheme}://{parsed.netloc}",
        name=parts[1],
        version=parts[2] if len(parts) > 2 else "",
    )


def clean_secret_name(name: str) -> str:
    """Return a Key Vault safe version of ``name``.

    Every run of characters outside ``[A-Za-z0-9-]`` becomes a single hyphen,
    so ``MY_SECRET`` is stored as ``MY-SECRET``.  Names longer than 127
    characters keep at most the first 94 cleaned characters, followed by a
    hyphen and the upper-case MD5 of the original name.  The length of the
    original decides, so long names that clean down to the same short text
    still map to different secrets.
    """
    clean = _INVALID_NAME_CHARACTERS.sub("-", name)
    if len(name) > MAX_SECRET_NAME_LENGTH:
        digest = hashlib.md5(name.encode("utf-8")).hexdigest().upper()
        clean = f"{clean[:SECRET_NAME_PREFIX_LENGTH]}-{digest}"
    return clean

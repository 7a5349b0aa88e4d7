"""Pure parsing of Azure Storage connection strings."""

from azstore.constants import CONNECTION_STRING_ENV
from azstore.errors import MalformedConnectionStringError


def parse_connection_string(
    conn_string: str, env_var: str = CONNECTION_STRING_ENV
) -> tuple[str, str]:
    """Extract ``(account_name, account_key)`` from a connection string.

    The string is a ``;``-separated list of ``Key=Value`` fields, e.g.
    ``DefaultEndpointsProtocol=https;AccountName=x;AccountKey=y``.  Field
    order does not matter and unknown fields are ignored.  Only the first
    ``=`` separates a field's key from its value, because account keys are
    base64 and end with ``=`` padding.

    Raises MalformedConnectionStringError when either field is missing or empty.
    """
    fields: dict[str, str] = {}
    for part in conn_string.split(";"):
        key, sep, value = part.partition("=")
        if not sep:
            continue
        fields.setdefault(key.strip(), value)

    account_name = fields.get("AccountName", "")
    account_key = fields.get("AccountKey", "")
    if not account_name or not account_key:
        raise MalformedConnectionStringError(env_var)
    return account_name, account_key

"""Redaction for values that must never reach a log line or a repr."""


def redact(value: str | None) -> str:
    """Hide a secret entirely, keeping only whether it was set and its length.

    Args:
        value: Private key text, a passphrase, or None.

    Returns:
        ``"<unset>"`` for empty values, otherwise ``"<redacted N chars>"``.
    """
    if not value:
        return "<unset>"
    return f"<redacted {len(value)} chars>"

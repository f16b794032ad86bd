from __future__ import annotations

from urllib.parse import parse_qs, quote, urlsplit

__all__ = ["TOKEN_PARAM", "build_tokenized_url", "extract_token_param", "has_scheme"]

TOKEN_PARAM = "token"
# Characters encodeURIComponent leaves untouched.
_UNRESERVED = "-_.!~*'()"


def has_scheme(value: str) -> bool:
    return value.startswith(("http://", "https://"))


def build_tokenized_url(base_url: str, token_or_url: str | None) -> str:
    """Return the address to open for ``token_or_url``.

    Full URLs are used verbatim; a raw token is appended to ``base_url`` as the
    ``token`` query parameter. Empty input yields an empty string.
    """

    if not token_or_url:
        return ""
    if has_scheme(token_or_url):
        return token_or_url

    joiner = "&" if "?" in base_url else "?"
    return f"{base_url}{joiner}{TOKEN_PARAM}={quote(token_or_url, safe=_UNRESERVED)}"


def extract_token_param(tokenized_url: str | None) -> str:
    if not tokenized_url:
        return ""
    try:
        parts = urlsplit(tokenized_url)
    except ValueError:
        return ""
    if not parts.scheme or not parts.netloc:
        return ""

    values = parse_qs(parts.query, keep_blank_values=True).get(TOKEN_PARAM)
    return values[0] if values else ""

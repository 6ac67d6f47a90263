"""
Auth routing: decides which bearer token, if any, a download URL receives.

Matching is a case-sensitive substring test on the URL's host segment, so
`cdn-lfs.huggingface.co` and `huggingface.co.example` both count as Hugging
Face.
"""

from enum import Enum

from sd_provision.models.config import Credentials

HUGGINGFACE_MARKER = "huggingface.co"
CIVITAI_MARKER = "civitai.com"


class HostKind(Enum):
    HUGGINGFACE = "huggingface"
    CIVITAI = "civitai"
    OTHER = "other"


def url_host(url: str) -> str:
    """Returns the third '/'-delimited segment of a URL (the authority part)."""
    parts = url.split("/")
    return parts[2] if len(parts) > 2 else ""


def classify_host(url: str) -> HostKind:
    """Classifies a URL by the host that will receive the request."""
    host = url_host(url)
    if HUGGINGFACE_MARKER in host:
        return HostKind.HUGGINGFACE
    if CIVITAI_MARKER in host:
        return HostKind.CIVITAI
    return HostKind.OTHER


def token_for(kind: HostKind, credentials: Credentials) -> str | None:
    """Returns the token for a host kind, or None when the host gets no auth."""
    if kind is HostKind.HUGGINGFACE:
        return credentials.hf_token
    if kind is HostKind.CIVITAI:
        return credentials.civitai_token
    return None


def auth_headers(
    url: str, credentials: Credentials, omit_empty: bool = False
) -> dict[str, str]:
    """
    Builds the request headers carrying the bearer token for `url`.

    A matched host gets `Authorization: Bearer <token>` even when the token is
    empty, unless `omit_empty` is set.
    """
    token = token_for(classify_host(url), credentials)
    if token is None:
        return {}
    if omit_empty and not token:
        return {}
    return {"Authorization": f"Bearer {token}"}

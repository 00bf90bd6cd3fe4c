"""
HLS playlist rewriting module.
Rewrites playlists so every referenced URI carries the playlist's signature.
"""
import enum
import re
from urllib.parse import quote

from signed_playlist.errors import UnsafeReferenceError
from signed_playlist.signer import SignedResource

PLAYLIST_CONTENT_TYPE = "application/vnd.apple.mpegurl"
PROXY_PATH = "/api/proxy"

_LINE_SPLIT = re.compile(r"\r?\n")
_ABSOLUTE_URL = re.compile(r"^https?://", re.IGNORECASE)
_URI_ATTRIBUTE = re.compile(r'URI="?([^",]+)"?', re.IGNORECASE)
_QUOTED_URI_ATTRIBUTE = re.compile(r'URI="', re.IGNORECASE)


class LineKind(enum.Enum):
    BLANK = "blank"
    DIRECTIVE = "directive"
    DIRECTIVE_WITH_URI = "directive_with_uri"
    RESOURCE = "resource"


def classify_line(line: str) -> LineKind:
    """
    Classify one playlist line.

    Args:
        line: Raw line without its line ending

    Returns:
        BLANK for empty/whitespace lines, DIRECTIVE_WITH_URI for tags carrying a
        URI= attribute (e.g. #EXT-X-KEY, #EXT-X-MEDIA), DIRECTIVE for other
        tags and comments, RESOURCE for segment or variant references
    """
    stripped = line.strip()
    if not stripped:
        return LineKind.BLANK
    if stripped.startswith("#"):
        if _URI_ATTRIBUTE.search(stripped):
            return LineKind.DIRECTIVE_WITH_URI
        return LineKind.DIRECTIVE
    return LineKind.RESOURCE


def is_absolute_url(uri: str) -> bool:
    return bool(_ABSOLUTE_URL.match(uri))


def check_relative_reference(uri: str) -> None:
    """
    Reject relative references that step out of the signed directory.

    Raises:
        UnsafeReferenceError: If any path segment is ".."
    """
    path = uri.split("?", 1)[0].split("#", 1)[0]
    if ".." in path.split("/"):
        raise UnsafeReferenceError(f"Reference '{uri}' escapes the playlist directory")


def sign_reference(uri: str, signed: SignedResource, use_proxy: bool = False) -> str:
    """
    Compute the signed form of a playlist reference.

    Args:
        uri: Reference as written in the playlist (relative or absolute)
        signed: Signature obtained for the playlist's directory
        use_proxy: Route the signed URL through the same-origin proxy endpoint

    Returns:
        The signed absolute URL, or a /api/proxy link wrapping it
    """
    if is_absolute_url(uri):
        target = uri
    else:
        check_relative_reference(uri)
        target = signed.base_url + uri

    joiner = "&" if "?" in target else "?"
    signed_url = f"{target}{joiner}{signed.sig_query}"

    if use_proxy:
        # Encoded once here, decoded once by the proxy's query parsing
        return f"{PROXY_PATH}?url={quote(signed_url, safe='')}"
    return signed_url


def rewrite_line(line: str, signed: SignedResource, use_proxy: bool = False) -> str:
    """Rewrite a single line; tags without a URI attribute pass through untouched."""
    kind = classify_line(line)
    stripped = line.strip()

    if kind is LineKind.DIRECTIVE_WITH_URI:
        quote_char = '"' if _QUOTED_URI_ATTRIBUTE.search(stripped) else ""

        def replace_uri(match):
            new_uri = sign_reference(match.group(1), signed, use_proxy)
            return f"URI={quote_char}{new_uri}{quote_char}"

        return _URI_ATTRIBUTE.sub(replace_uri, stripped, count=1)

    if kind is LineKind.RESOURCE:
        return sign_reference(stripped, signed, use_proxy)

    return line


def rewrite_playlist(text: str, signed: SignedResource, use_proxy: bool = False) -> str:
    """
    Rewrite an HLS playlist so every URI carries the signature.

    The transform is single-pass: feeding its output back in appends the
    signature a second time.

    Args:
        text: Playlist content as fetched from the origin
        signed: Signature for the playlist's directory
        use_proxy: Emit /api/proxy links instead of signed CDN URLs

    Returns:
        Rewritten playlist content, lines joined with "\\n"

    Raises:
        UnsafeReferenceError: If a relative reference contains a ".." segment
    """
    lines = _LINE_SPLIT.split(text)
    return "\n".join(rewrite_line(line, signed, use_proxy) for line in lines)


def count_references(text: str) -> int:
    """Number of lines the rewriter signs (resource lines and URI-bearing tags)."""
    return sum(
        1
        for line in _LINE_SPLIT.split(text)
        if classify_line(line) in (LineKind.RESOURCE, LineKind.DIRECTIVE_WITH_URI)
    )

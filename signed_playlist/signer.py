"""
CloudFront signer scoped to a playlist's directory prefix.

One custom policy authorizes every object under the directory holding the
requested key, so the query string of the signed playlist URL can be reused
for all segments and renditions referenced by that playlist.
"""
import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from botocore.signers import CloudFrontSigner
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding

from signed_playlist.config import DEFAULT_SIGN_TTL_SECONDS, Settings
from signed_playlist.errors import ConfigurationError


@dataclass(frozen=True)
class SignedResource:
    url: str
    base_url: str
    sig_query: str
    expires: int


def strip_leading_slash(path: str) -> str:
    return path[1:] if path.startswith("/") else path


def dirname_of_key(key: str) -> str:
    """
    Return the directory prefix of a key, including the trailing slash.

    Args:
        key: Object key (e.g., "media/moon/master.m3u8")

    Returns:
        "media/moon/" for the example above, "" when the key has no slash
    """
    index = key.rfind("/")
    return key[: index + 1] if index >= 0 else ""


def build_policy(resource: str, expires: int) -> str:
    """Custom policy JSON allowing `resource` (may end in `*`) until `expires`."""
    policy = {
        "Statement": [
            {
                "Resource": resource,
                "Condition": {
                    "DateLessThan": {"AWS:EpochTime": expires},
                },
            }
        ]
    }
    return json.dumps(policy, separators=(",", ":"))


def query_of(url: str) -> str:
    """Everything after the first "?", or "" when the URL has no query."""
    _, sep, query = url.partition("?")
    return query if sep else ""


class PrefixSigner:
    """
    Signs object keys with a policy covering the key's whole directory.

    Private key material is re-read on every call; it is small and signing
    happens once per playlist request.
    """

    def __init__(self, settings: Settings):
        self.settings = settings

    def _load_private_key_pem(self) -> bytes:
        if self.settings.private_key:
            return self.settings.private_key.encode("utf-8")
        if self.settings.private_key_path:
            try:
                return Path(self.settings.private_key_path).read_bytes()
            except OSError as e:
                raise ConfigurationError(
                    f"Cannot read CloudFront private key at {self.settings.private_key_path}: {e}"
                ) from e
        raise ConfigurationError("Missing CloudFront signer envs")

    def _rsa_signer(self) -> Callable[[bytes], bytes]:
        pem = self._load_private_key_pem()
        try:
            private_key = serialization.load_pem_private_key(pem, password=None)
        except (ValueError, TypeError) as e:
            raise ConfigurationError(f"CloudFront private key is not a usable PEM key: {e}") from e

        def rsa_signer(message: bytes) -> bytes:
            # CloudFront only verifies RSA-SHA1 signatures
            return private_key.sign(message, padding.PKCS1v15(), hashes.SHA1())

        return rsa_signer

    def sign(self, path: str, ttl_seconds: int = DEFAULT_SIGN_TTL_SECONDS) -> SignedResource:
        """
        Sign `path` with a policy valid for its directory prefix.

        Args:
            path: Object key relative to the distribution root (e.g., "media/moon.m3u8")
            ttl_seconds: Lifetime of the signature in seconds

        Returns:
            SignedResource with the signed URL, directory base URL, reusable
            signature query and expiry epoch

        Raises:
            ConfigurationError: If domain, key pair id or private key is missing or unreadable
        """
        domain = self.settings.cloudfront_domain
        key_pair_id = self.settings.key_pair_id
        if not domain or not key_pair_id:
            raise ConfigurationError("Missing CloudFront signer envs")
        rsa_signer = self._rsa_signer()

        # "/media/a.m3u8" signs like "media/a.m3u8", never "https://{domain}//media/"
        key = strip_leading_slash(path)
        prefix = dirname_of_key(key)
        expires = int(time.time()) + int(ttl_seconds)
        policy = build_policy(f"https://{domain}/{prefix}*", expires)

        resource_url = f"https://{domain}/{key}"
        signer = CloudFrontSigner(key_pair_id, rsa_signer)
        signed_url = signer.generate_presigned_url(resource_url, policy=policy)

        return SignedResource(
            url=signed_url,
            base_url=f"https://{domain}/{prefix}",
            sig_query=query_of(signed_url),
            expires=expires,
        )

    def sign_url(self, path: str, ttl_seconds: int = DEFAULT_SIGN_TTL_SECONDS) -> str:
        return self.sign(path, ttl_seconds).url

"""Shared pytest fixtures for the signed playlist tests."""

from __future__ import annotations

import asyncio
from typing import Callable, List

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi.testclient import TestClient

from signed_playlist.config import Settings, get_settings
from signed_playlist.main import app, get_signer
from signed_playlist.origin import get_http_client
from signed_playlist.signer import SignedResource

DOMAIN = "d123456789.cloudfront.net"
KEY_PAIR_ID = "K123456789ABCDEF"


class FakeSigner:
    """Stands in for PrefixSigner; records every sign() call."""

    def __init__(self, signed: SignedResource) -> None:
        self.signed = signed
        self.calls: List[tuple] = []

    def sign(self, path: str, ttl_seconds: int = 600) -> SignedResource:
        self.calls.append((path, ttl_seconds))
        return self.signed

    def sign_url(self, path: str, ttl_seconds: int = 600) -> str:
        return self.sign(path, ttl_seconds).url


@pytest.fixture(scope="session")
def rsa_private_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def private_key_pem(rsa_private_key) -> str:
    return rsa_private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")


@pytest.fixture
def signer_settings(private_key_pem) -> Settings:
    return Settings(
        cloudfront_domain=DOMAIN,
        key_pair_id=KEY_PAIR_ID,
        private_key=private_key_pem,
    )


@pytest.fixture
def signed_resource() -> SignedResource:
    return SignedResource(
        url="https://example.com/video.m3u8?Policy=abc&Signature=def&Key-Pair-Id=ghi",
        base_url="https://example.com/",
        sig_query="Policy=abc&Signature=def&Key-Pair-Id=ghi",
        expires=1234567890,
    )


@pytest.fixture
def fake_signer(signed_resource) -> FakeSigner:
    return FakeSigner(signed_resource)


@pytest.fixture
def upstream():
    """Configurable MockTransport upstream; records the requests it receives."""

    state = {
        "handler": lambda request: httpx.Response(404),
        "requests": [],
    }

    def dispatch(request: httpx.Request) -> httpx.Response:
        state["requests"].append(request)
        return state["handler"](request)

    def set_handler(handler: Callable[[httpx.Request], httpx.Response]) -> None:
        state["handler"] = handler

    state["set_handler"] = set_handler
    client = httpx.AsyncClient(transport=httpx.MockTransport(dispatch))
    state["client"] = client
    yield state
    asyncio.run(client.aclose())


@pytest.fixture
def api_settings() -> dict:
    """Mutable settings overrides applied by the api_client fixture."""
    return {"use_proxy": False}


@pytest.fixture
def api_client(fake_signer, upstream, api_settings):
    app.dependency_overrides[get_signer] = lambda: fake_signer
    app.dependency_overrides[get_http_client] = lambda: upstream["client"]
    app.dependency_overrides[get_settings] = lambda: Settings(**api_settings)
    client = TestClient(app)
    yield client
    app.dependency_overrides.pop(get_signer, None)
    app.dependency_overrides.pop(get_http_client, None)
    app.dependency_overrides.pop(get_settings, None)

from __future__ import annotations

import datetime
import io

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

from envelope import RecipientKey


class CountingReader(io.RawIOBase):
    """Binary reader recording every requested read size."""

    def __init__(self, data: bytes):
        self._buf = io.BytesIO(data)
        self.requests: list[int] = []

    def readable(self) -> bool:
        return True

    def read(self, size: int = -1) -> bytes:
        self.requests.append(size)
        return self._buf.read(size)


class DictResolver:
    """Key resolver backed by plain dicts keyed on lowercase thumbprints."""

    def __init__(self, public=None, private=None):
        self.public = public or {}
        self.private = private or {}

    def resolve_public_key(self, identifier):
        return self.public.get(identifier)

    def resolve_private_key(self, identifier):
        return self.private.get(identifier)


def make_certificate(private_key, common_name: str = "Test Recipient") -> x509.Certificate:
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.datetime.now(datetime.timezone.utc)
    return (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=30))
        .sign(private_key, hashes.SHA256())
    )


@pytest.fixture(scope="session")
def rsa_keys():
    # 2048 for speed in tests
    return [rsa.generate_private_key(public_exponent=65537, key_size=2048) for _ in range(3)]


@pytest.fixture
def alice(rsa_keys) -> RecipientKey:
    return RecipientKey(bytes.fromhex("aa" * 20), rsa_keys[0])


@pytest.fixture
def bob(rsa_keys) -> RecipientKey:
    return RecipientKey(bytes.fromhex("bb" * 20), rsa_keys[1])


@pytest.fixture
def carol(rsa_keys) -> RecipientKey:
    return RecipientKey(bytes.fromhex("cc" * 20), rsa_keys[2])

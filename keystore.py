"""
Troll Bait Certificate Store
============================

Resolves certificate thumbprints to RSA keys for the envelope engine.

Certificates and private keys are read from a directory of PEM or DER files
(``*.pem``, ``*.crt``, ``*.cer``, ``*.der``, ``*.key``). A private key is
attached to the certificate whose public key it matches, regardless of which
file it came from. The store only looks keys up; it never creates, rotates
or deletes them.

Thumbprints are the lowercase hex SHA-1 digest of the DER certificate, the
same value the Windows certificate store displays.
"""

from __future__ import annotations

import logging
import os
import platform
import re
from pathlib import Path
from typing import Dict, List, Optional, Union

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization

import envelope

logger = logging.getLogger(__name__)

CERT_SUFFIXES = (".pem", ".crt", ".cer", ".der", ".key")

# Certificate dialogs pad thumbprints with spaces, colons and direction marks.
_THUMBPRINT_NOISE = re.compile(r"[\s:\u200e\u200f\ufeff]")


# ---------------------------------------------------------------------------
# Config directory
# ---------------------------------------------------------------------------

def _config_dir() -> Path:
    """Return the OS-appropriate certificate directory."""
    if platform.system() == "Windows":
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
    elif platform.system() == "Darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return base / "TrollBait" / "certificates"


# ---------------------------------------------------------------------------
# Loading helpers
# ---------------------------------------------------------------------------

def certificate_thumbprint(cert: x509.Certificate) -> str:
    """SHA-1 fingerprint of the DER certificate as lowercase hex."""
    return envelope.encode_hex(cert.fingerprint(hashes.SHA1()))


def normalize_thumbprint(value: str) -> str:
    """
    Strip separators copied along with a thumbprint and lowercase it.

    Raises ``envelope.FormatError`` if what remains is not hex.
    """
    cleaned = _THUMBPRINT_NOISE.sub("", value).lower()
    envelope.decode_hex(cleaned)
    return cleaned


def load_certificate(data: bytes) -> x509.Certificate:
    """Load a single X.509 certificate from PEM or DER bytes."""
    try:
        if b"-----BEGIN" in data:
            return x509.load_pem_x509_certificate(data)
        return x509.load_der_x509_certificate(data)
    except ValueError as exc:
        raise envelope.FormatError(f"Not a valid X.509 certificate: {exc}") from exc


def load_private_key(data: bytes, passphrase: Optional[str] = None):
    """Load a private key from PEM or DER bytes (optionally encrypted)."""
    pwd = passphrase.encode("utf-8") if passphrase else None
    try:
        if b"-----BEGIN" in data:
            return serialization.load_pem_private_key(data, password=pwd)
        return serialization.load_der_private_key(data, password=pwd)
    except (ValueError, TypeError) as exc:
        raise envelope.FormatError(f"Not a readable private key: {exc}") from exc


def _pem_sections(data: bytes, kind: bytes) -> List[bytes]:
    """Return every PEM block whose label ends with *kind*."""
    pattern = re.compile(
        rb"-----BEGIN ([A-Z ]*" + kind + rb")-----.*?-----END \1-----",
        re.DOTALL,
    )
    return [m.group(0) for m in pattern.finditer(data)]


def _public_der(key) -> bytes:
    return key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


# ---------------------------------------------------------------------------
# CertificateStore
# ---------------------------------------------------------------------------

class CertificateEntry:
    """A certificate known to the store, with its private key if available."""

    def __init__(
        self,
        certificate: x509.Certificate,
        private_key=None,
        path: Optional[Path] = None,
    ):
        self.certificate = certificate
        self.private_key = private_key
        self.path = path
        self.thumbprint = certificate_thumbprint(certificate)

    @property
    def subject(self) -> str:
        return self.certificate.subject.rfc4514_string()

    @property
    def has_private_key(self) -> bool:
        return self.private_key is not None

    @property
    def public_key(self):
        return self.certificate.public_key()

    def to_dict(self) -> dict:
        return {
            "thumbprint": self.thumbprint,
            "subject": self.subject,
            "not_valid_after": self.certificate.not_valid_after_utc.isoformat(),
            "has_private_key": self.has_private_key,
            "path": str(self.path) if self.path else "",
        }


class CertificateStore:
    """Thumbprint-indexed certificates and keys, loaded from a directory."""

    def __init__(
        self,
        directory: Optional[Union[str, Path]] = None,
        passphrase: Optional[str] = None,
    ):
        self._dir = Path(directory) if directory is not None else None
        self._passphrase = passphrase
        self._entries: Dict[str, CertificateEntry] = {}
        self._orphan_keys: list = []
        if self._dir is not None:
            self._load()

    @classmethod
    def default(cls, passphrase: Optional[str] = None) -> "CertificateStore":
        """Store backed by the per-user config directory."""
        return cls(_config_dir(), passphrase=passphrase)

    # ----- loading -----

    def _load(self) -> None:
        """Read every certificate and key file in the directory."""
        if not self._dir.is_dir():
            logger.info("Certificate directory %s does not exist", self._dir)
            return
        for path in sorted(self._dir.iterdir()):
            if path.suffix.lower() not in CERT_SUFFIXES or not path.is_file():
                continue
            try:
                self._load_file(path)
            except (OSError, envelope.FormatError) as exc:
                logger.warning("Skipping %s: %s", path, exc)
        logger.debug(
            "Loaded %d certificate(s) from %s", len(self._entries), self._dir
        )

    def _load_file(self, path: Path) -> None:
        data = path.read_bytes()
        if b"-----BEGIN" not in data:
            # DER: a certificate, otherwise a key
            try:
                self.add_certificate(load_certificate(data), path=path)
            except envelope.FormatError:
                self._attach_key(load_private_key(data, self._passphrase))
            return

        for block in _pem_sections(data, b"CERTIFICATE"):
            self.add_certificate(load_certificate(block), path=path)
        for block in _pem_sections(data, b"PRIVATE KEY"):
            self._attach_key(load_private_key(block, self._passphrase))

    def _attach_key(self, private_key) -> None:
        der = _public_der(private_key.public_key())
        attached = False
        for entry in self._entries.values():
            if _public_der(entry.public_key) == der:
                entry.private_key = private_key
                attached = True
        if not attached:
            # The certificate may live in a file not read yet.
            self._orphan_keys.append(private_key)

    # ----- operations -----

    def add_certificate(
        self,
        certificate: x509.Certificate,
        private_key=None,
        path: Optional[Path] = None,
    ) -> CertificateEntry:
        """Register a certificate (and optionally its private key)."""
        entry = self._entries.get(certificate_thumbprint(certificate))
        if entry is None:
            entry = CertificateEntry(certificate, path=path)
            self._entries[entry.thumbprint] = entry
        if private_key is not None:
            if _public_der(private_key.public_key()) != _public_der(entry.public_key):
                raise envelope.CryptoError(
                    f"Private key does not match certificate {entry.thumbprint}.",
                    identifier=entry.thumbprint,
                )
            entry.private_key = private_key
        elif entry.private_key is None:
            der = _public_der(entry.public_key)
            for key in self._orphan_keys:
                if _public_der(key.public_key()) == der:
                    entry.private_key = key
                    self._orphan_keys.remove(key)
                    break
        return entry

    def list_certificates(self) -> List[CertificateEntry]:
        """All known certificates, ordered by subject."""
        return sorted(self._entries.values(), key=lambda e: e.subject)

    def get(self, thumbprint: str) -> Optional[CertificateEntry]:
        """Look up an entry by thumbprint (any case, separators allowed)."""
        return self._entries.get(normalize_thumbprint(thumbprint))

    def __len__(self) -> int:
        return len(self._entries)

    # ----- envelope.KeyResolver -----

    def resolve_public_key(self, identifier: str):
        entry = self.get(identifier)
        return entry.public_key if entry else None

    def resolve_private_key(self, identifier: str):
        entry = self.get(identifier)
        return entry.private_key if entry else None

"""
Troll Bait Envelope Engine
==========================

Multi-recipient hybrid file encryption:
- AES-256-CBC (PKCS7 padding) protects the file contents
- RSA-OAEP (SHA-1) wraps the AES key and IV once per recipient
- Chunked streaming so memory stays bounded regardless of file size

Uses the ``cryptography`` library exclusively.

Format specification
--------------------
All integers are little-endian signed 32-bit.
::

    [HEADER: 14 bytes]
      0-9    Magic            b"Troll Bait"
      10-13  Recipient count

    [KEY BLOBS, repeated recipient count times]
      Identifier length | identifier (certificate thumbprint bytes)
      Wrapped key length | RSA-OAEP(AES key)
      Wrapped IV length  | RSA-OAEP(AES IV)

    [CIPHERTEXT]
      AES-256-CBC output, starting right after the last key blob
"""

from __future__ import annotations

import enum
import logging
import os
import re
import struct
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import (
    BinaryIO,
    Callable,
    Iterable,
    Iterator,
    List,
    Optional,
    Protocol,
    Sequence,
    Union,
)

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives import padding as sym_padding
from cryptography.hazmat.primitives.asymmetric import padding as asym_padding
from cryptography.hazmat.primitives.asymmetric.rsa import (
    RSAPrivateKey,
    RSAPublicKey,
)
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MAGIC: bytes = b"Troll Bait"

KEY_SIZE: int = 32    # AES-256 = 32 bytes
BLOCK_SIZE: int = 16  # AES block, also the CBC IV length
DEFAULT_CHUNK: int = 1024 * 1024     # 1 MiB streaming chunk
MAX_FIELD_LENGTH: int = 64 * 1024    # upper bound for any length-prefixed field

_INT32 = struct.Struct("<i")
_HEX_RE = re.compile(r"[0-9a-fA-F]*")

ProgressCallback = Callable[[int, int], None]
PathLike = Union[str, Path]
Identifier = Union[str, bytes]

# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ErrorKind(enum.Enum):
    """Tag identifying which family an :class:`EnvelopeError` belongs to."""

    FORMAT = "format"
    KEY_NOT_FOUND = "key_not_found"
    CRYPTO = "crypto"
    IO = "io"


class EnvelopeError(Exception):
    """Base exception for all envelope errors."""

    kind: ErrorKind

    def __init__(
        self,
        message: str,
        *,
        path: Optional[str] = None,
        identifier: Optional[str] = None,
    ):
        super().__init__(message)
        self.path = path
        self.identifier = identifier


class FormatError(EnvelopeError):
    """Malformed magic marker, truncated field or implausible length."""

    kind = ErrorKind.FORMAT


class KeyNotFoundError(EnvelopeError):
    """No usable key for an identifier, or no matching key blob."""

    kind = ErrorKind.KEY_NOT_FOUND


class CryptoError(EnvelopeError):
    """Wrap, unwrap or bulk cipher failure (wrong key, bad padding)."""

    kind = ErrorKind.CRYPTO


class EnvelopeIOError(EnvelopeError):
    """Underlying read or write failure."""

    kind = ErrorKind.IO


class ErrorPolicy(enum.Enum):
    """What file-level operations do when they fail."""

    RAISE = "raise"
    RETURN = "return"


# ---------------------------------------------------------------------------
# Hex codec
# ---------------------------------------------------------------------------


def encode_hex(data: bytes) -> str:
    """Encode bytes as lowercase hex, two characters per byte."""
    return bytes(data).hex()


def decode_hex(text: str) -> bytes:
    """
    Decode a hex string produced by :func:`encode_hex`.

    Raises
    ------
    FormatError
        If *text* has odd length or contains a non-hex character.
    """
    if len(text) % 2 != 0:
        raise FormatError(f"Hex string has odd length ({len(text)}).")
    if not _HEX_RE.fullmatch(text):
        raise FormatError("Hex string contains characters outside [0-9a-fA-F].")
    return bytes.fromhex(text)


def _coerce_identifier(identifier: Identifier) -> bytes:
    if isinstance(identifier, str):
        return decode_hex(identifier)
    return bytes(identifier)


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class KeyBlob:
    """One recipient's wrapped key material."""

    identifier: bytes
    wrapped_key: bytes
    wrapped_iv: bytes

    @property
    def thumbprint(self) -> str:
        return encode_hex(self.identifier)


@dataclass(frozen=True, repr=False)
class SymmetricSecret:
    """AES key and IV shared (in wrapped form) by every key blob of an envelope."""

    key: bytes
    iv: bytes

    @classmethod
    def generate(cls) -> "SymmetricSecret":
        """Generate a fresh random key and IV."""
        return cls(os.urandom(KEY_SIZE), os.urandom(BLOCK_SIZE))

    def __repr__(self) -> str:
        return "SymmetricSecret(<redacted>)"


@dataclass(frozen=True)
class RecipientKey:
    """An RSA key tied to the identifier stored in the recipient's key blob."""

    identifier: bytes
    key: object = field(repr=False)

    @classmethod
    def from_thumbprint(cls, thumbprint: str, key: object) -> "RecipientKey":
        return cls(decode_hex(thumbprint), key)

    @property
    def thumbprint(self) -> str:
        return encode_hex(self.identifier)


class KeyResolver(Protocol):
    """Looks up keys by certificate thumbprint; ``None`` means not found."""

    def resolve_public_key(self, identifier: str) -> Optional[object]:
        ...

    def resolve_private_key(self, identifier: str) -> Optional[object]:
        ...


@dataclass
class OperationResult:
    """Outcome of :func:`protect_file` or :func:`unprotect_file`."""

    ok: bool
    source: str
    destination: str
    bytes_processed: int = 0
    recipients: List[str] = field(default_factory=list)
    error: Optional[EnvelopeError] = None


# ---------------------------------------------------------------------------
# Envelope format
# ---------------------------------------------------------------------------


def _read_exact(source: BinaryIO, size: int) -> bytes:
    """Read *size* bytes, fewer only when the stream ends."""
    buf = bytearray()
    while len(buf) < size:
        part = source.read(size - len(buf))
        if not part:
            break
        buf.extend(part)
    return bytes(buf)


def _write_field(sink: BinaryIO, data: bytes, name: str) -> None:
    if len(data) > MAX_FIELD_LENGTH:
        raise FormatError(
            f"{name} is {len(data)} bytes; the limit is {MAX_FIELD_LENGTH}."
        )
    sink.write(_INT32.pack(len(data)))
    sink.write(data)


def _read_field(source: BinaryIO, name: str) -> bytes:
    raw = _read_exact(source, _INT32.size)
    if len(raw) != _INT32.size:
        raise FormatError(f"Truncated {name} length.")
    (length,) = _INT32.unpack(raw)
    # Checked before reading so a corrupt prefix cannot claim gigabytes.
    if length < 0 or length > MAX_FIELD_LENGTH:
        raise FormatError(f"Implausible {name} length {length}.")
    data = _read_exact(source, length)
    if len(data) != length:
        raise FormatError(f"Truncated {name}.")
    return data


def write_header(sink: BinaryIO, recipient_count: int) -> None:
    """Write the magic marker followed by the recipient count."""
    sink.write(MAGIC)
    sink.write(_INT32.pack(recipient_count))


def write_key_blob(sink: BinaryIO, blob: KeyBlob) -> None:
    """Write identifier, wrapped key and wrapped IV, each length-prefixed."""
    _write_field(sink, blob.identifier, "identifier")
    _write_field(sink, blob.wrapped_key, "wrapped key")
    _write_field(sink, blob.wrapped_iv, "wrapped IV")


def read_header(source: BinaryIO) -> int:
    """
    Validate the magic marker and return the recipient count.

    Raises
    ------
    FormatError
        If the marker is missing or wrong, or the count is unreadable.
    """
    marker = _read_exact(source, len(MAGIC))
    if marker != MAGIC:
        raise FormatError("invalid data")
    raw = _read_exact(source, _INT32.size)
    if len(raw) != _INT32.size:
        raise FormatError("invalid data")
    (count,) = _INT32.unpack(raw)
    if count < 0:
        raise FormatError(f"Negative recipient count {count}.")
    return count


def read_key_blob(source: BinaryIO) -> KeyBlob:
    """Read one key blob written by :func:`write_key_blob`."""
    identifier = _read_field(source, "identifier")
    wrapped_key = _read_field(source, "wrapped key")
    wrapped_iv = _read_field(source, "wrapped IV")
    return KeyBlob(identifier, wrapped_key, wrapped_iv)


def read_recipients(source: BinaryIO) -> List[KeyBlob]:
    """
    Read the header and every key blob, leaving *source* positioned at the
    first ciphertext byte.
    """
    count = read_header(source)
    return [read_key_blob(source) for _ in range(count)]


# ---------------------------------------------------------------------------
# Key wrapper
# ---------------------------------------------------------------------------


def _oaep() -> asym_padding.OAEP:
    return asym_padding.OAEP(
        mgf=asym_padding.MGF1(algorithm=hashes.SHA1()),
        algorithm=hashes.SHA1(),
        label=None,
    )


def wrap(recipient: RecipientKey, secret: SymmetricSecret) -> KeyBlob:
    """
    Encrypt the AES key and IV for one recipient.

    OAEP padding is randomised, so wrapping the same secret twice yields
    different blobs.

    Raises
    ------
    CryptoError
        If the recipient key is not RSA or cannot encrypt the secret.
    """
    key = recipient.key
    if isinstance(key, RSAPrivateKey):
        key = key.public_key()
    if not isinstance(key, RSAPublicKey):
        raise CryptoError(
            f"Recipient {recipient.thumbprint} does not hold an RSA key "
            f"({type(key).__name__}).",
            identifier=recipient.thumbprint,
        )
    try:
        wrapped_key = key.encrypt(secret.key, _oaep())
        wrapped_iv = key.encrypt(secret.iv, _oaep())
    except ValueError as exc:
        raise CryptoError(
            f"Unable to wrap key for recipient {recipient.thumbprint}: {exc}",
            identifier=recipient.thumbprint,
        ) from exc
    return KeyBlob(recipient.identifier, wrapped_key, wrapped_iv)


def unwrap(recipient: RecipientKey, blob: KeyBlob) -> SymmetricSecret:
    """
    Recover the AES key and IV from *blob* with the recipient's private key.

    Raises
    ------
    CryptoError
        Wrong private key, corrupted blob or unexpected secret length.
    """
    key = recipient.key
    if not isinstance(key, RSAPrivateKey):
        raise CryptoError(
            f"Recipient {recipient.thumbprint} has no RSA private key.",
            identifier=recipient.thumbprint,
        )
    try:
        aes_key = key.decrypt(blob.wrapped_key, _oaep())
        aes_iv = key.decrypt(blob.wrapped_iv, _oaep())
    except ValueError as exc:
        raise CryptoError(
            f"RSA decryption failed for recipient {recipient.thumbprint}: "
            "wrong private key or corrupted key blob.",
            identifier=recipient.thumbprint,
        ) from exc
    if len(aes_key) != KEY_SIZE or len(aes_iv) != BLOCK_SIZE:
        raise CryptoError(
            f"Unwrapped secret for {recipient.thumbprint} has the wrong size.",
            identifier=recipient.thumbprint,
        )
    return SymmetricSecret(aes_key, aes_iv)


# ---------------------------------------------------------------------------
# Bulk transform
# ---------------------------------------------------------------------------


@contextmanager
def _io_stage(action: str, path: Optional[str] = None) -> Iterator[None]:
    """Re-raise ``OSError`` from the wrapped block as :class:`EnvelopeIOError`."""
    try:
        yield
    except OSError as exc:
        where = f" {path}" if path else ""
        raise EnvelopeIOError(f"Failed to {action}{where}: {exc}", path=path) from exc


def _check_chunk_size(chunk_size: int) -> None:
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive (got {chunk_size}).")


def _encrypt_stream(
    source: BinaryIO,
    sink: BinaryIO,
    secret: SymmetricSecret,
    chunk_size: int,
    progress_callback: Optional[ProgressCallback],
    total: int,
) -> int:
    encryptor = Cipher(algorithms.AES(secret.key), modes.CBC(secret.iv)).encryptor()
    padder = sym_padding.PKCS7(BLOCK_SIZE * 8).padder()
    processed = 0

    while True:
        chunk = source.read(chunk_size)
        if not chunk:
            break
        sink.write(encryptor.update(padder.update(chunk)))
        processed += len(chunk)
        if progress_callback:
            progress_callback(processed, total)

    # An empty source still produces one full padding block.
    sink.write(encryptor.update(padder.finalize()) + encryptor.finalize())
    return processed


def _decrypt_stream(
    source: BinaryIO,
    sink: BinaryIO,
    secret: SymmetricSecret,
    chunk_size: int,
    progress_callback: Optional[ProgressCallback],
    total: int,
) -> int:
    decryptor = Cipher(algorithms.AES(secret.key), modes.CBC(secret.iv)).decryptor()
    unpadder = sym_padding.PKCS7(BLOCK_SIZE * 8).unpadder()
    processed = 0
    written = 0

    while True:
        chunk = source.read(chunk_size)
        if not chunk:
            break
        pt = unpadder.update(decryptor.update(chunk))
        sink.write(pt)
        processed += len(chunk)
        written += len(pt)
        if progress_callback:
            progress_callback(processed, total)

    try:
        tail = unpadder.update(decryptor.finalize()) + unpadder.finalize()
    except ValueError as exc:
        raise CryptoError(
            "Ciphertext is truncated or was not encrypted with this key."
        ) from exc
    sink.write(tail)
    return written + len(tail)


def _discard(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Could not remove partial output %s: %s", path, exc)


def _attach_path(exc: EnvelopeError, path: Path) -> None:
    if exc.path is None:
        exc.path = str(path)


# ---------------------------------------------------------------------------
# EnvelopeEngine
# ---------------------------------------------------------------------------


class EnvelopeEngine:
    """
    Protect / unprotect engine.

    All public methods are **static**; the class is a logical namespace.
    """

    # ------------------------------------------------------------------
    # Protect
    # ------------------------------------------------------------------

    @staticmethod
    def wrap_for_recipients(
        recipients: Sequence[RecipientKey],
        secret: SymmetricSecret,
    ) -> List[KeyBlob]:
        """Wrap *secret* once per distinct recipient, preserving first-seen order."""
        if not recipients:
            raise KeyNotFoundError("At least one recipient is required.")
        blobs = []
        seen = set()
        for recipient in recipients:
            if recipient.identifier in seen:
                logger.warning(
                    "Recipient %s listed more than once; wrapping it once.",
                    recipient.thumbprint,
                )
                continue
            seen.add(recipient.identifier)
            blobs.append(wrap(recipient, secret))
        logger.debug(
            "Wrapped secret for %d recipient(s): %s",
            len(blobs),
            ", ".join(b.thumbprint for b in blobs),
        )
        return blobs

    @staticmethod
    def write_envelope(
        source: BinaryIO,
        sink: BinaryIO,
        blobs: Sequence[KeyBlob],
        secret: SymmetricSecret,
        *,
        chunk_size: int = DEFAULT_CHUNK,
        progress_callback: Optional[ProgressCallback] = None,
        total: int = 0,
    ) -> int:
        """Emit header, key blobs and the encrypted body. Returns plaintext size."""
        _check_chunk_size(chunk_size)
        write_header(sink, len(blobs))
        for blob in blobs:
            write_key_blob(sink, blob)
        return _encrypt_stream(source, sink, secret, chunk_size, progress_callback, total)

    @staticmethod
    def protect_stream(
        source: BinaryIO,
        sink: BinaryIO,
        recipients: Sequence[RecipientKey],
        *,
        chunk_size: int = DEFAULT_CHUNK,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> List[KeyBlob]:
        """
        Encrypt *source* into *sink* for every recipient.

        Parameters
        ----------
        source, sink : binary file objects
        recipients : sequence of RecipientKey
            Public (or private) RSA keys with their identifiers.
        chunk_size : int
            Plaintext bytes read per iteration (default 1 MiB).
        progress_callback : callable(bytes_processed, total_bytes)
            ``total_bytes`` is 0 for plain streams.

        Returns
        -------
        list[KeyBlob]
            The key blobs written to the header.
        """
        _check_chunk_size(chunk_size)
        secret = SymmetricSecret.generate()
        blobs = EnvelopeEngine.wrap_for_recipients(recipients, secret)
        with _io_stage("write envelope"):
            EnvelopeEngine.write_envelope(
                source,
                sink,
                blobs,
                secret,
                chunk_size=chunk_size,
                progress_callback=progress_callback,
            )
        return blobs

    @staticmethod
    def protect_file(
        input_path: PathLike,
        output_path: PathLike,
        recipients: Iterable[Union[RecipientKey, Identifier]],
        *,
        resolver: Optional[KeyResolver] = None,
        chunk_size: int = DEFAULT_CHUNK,
        progress_callback: Optional[ProgressCallback] = None,
        error_policy: ErrorPolicy = ErrorPolicy.RAISE,
    ) -> OperationResult:
        """
        Encrypt a file for one or more recipients.

        Recipients given as thumbprints (hex string or bytes) are resolved
        through ``resolver.resolve_public_key``. Every key is resolved and
        wrapped before *output_path* is opened; if anything fails after that,
        the partial output is removed.
        """
        input_path = Path(input_path)
        output_path = Path(output_path)
        return _run(
            error_policy,
            input_path,
            output_path,
            lambda: _protect_file(
                input_path,
                output_path,
                recipients,
                resolver,
                chunk_size,
                progress_callback,
            ),
        )

    # ------------------------------------------------------------------
    # Unprotect
    # ------------------------------------------------------------------

    @staticmethod
    def open_envelope(
        source: BinaryIO,
        identifier: Identifier,
        private_key: object,
        path: Optional[str] = None,
    ) -> SymmetricSecret:
        """
        Parse header and key blobs, then unwrap the blob for *identifier*.

        Leaves *source* positioned at the first ciphertext byte. *path*, when
        given, names the envelope in errors.

        Raises
        ------
        FormatError
            Bad marker or malformed key blob.
        KeyNotFoundError
            No key blob carries *identifier*.
        CryptoError
            *private_key* cannot unwrap the matching blob.
        """
        target = _coerce_identifier(identifier)
        thumbprint = encode_hex(target)
        count = read_header(source)

        match: Optional[KeyBlob] = None
        for _ in range(count):
            blob = read_key_blob(source)
            if blob.identifier == target:
                if match is not None:
                    logger.warning(
                        "Envelope lists recipient %s more than once; using the last entry.",
                        thumbprint,
                    )
                match = blob

        if match is None:
            where = f" in {path}" if path else ""
            raise KeyNotFoundError(
                f"No key blob for recipient {thumbprint}{where}.",
                path=path,
                identifier=thumbprint,
            )
        return unwrap(RecipientKey(target, private_key), match)

    @staticmethod
    def unprotect_stream(
        source: BinaryIO,
        sink: BinaryIO,
        identifier: Identifier,
        private_key: object,
        *,
        chunk_size: int = DEFAULT_CHUNK,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> int:
        """
        Decrypt an envelope from *source* into *sink*.

        Returns the number of plaintext bytes written.
        """
        _check_chunk_size(chunk_size)
        with _io_stage("read envelope"):
            secret = EnvelopeEngine.open_envelope(source, identifier, private_key)
            return _decrypt_stream(source, sink, secret, chunk_size, progress_callback, 0)

    @staticmethod
    def unprotect_file(
        input_path: PathLike,
        output_path: PathLike,
        identifier: Optional[Identifier] = None,
        private_key: Optional[object] = None,
        *,
        resolver: Optional[KeyResolver] = None,
        chunk_size: int = DEFAULT_CHUNK,
        progress_callback: Optional[ProgressCallback] = None,
        error_policy: ErrorPolicy = ErrorPolicy.RAISE,
    ) -> OperationResult:
        """
        Decrypt an envelope file.

        Parameters
        ----------
        identifier : str or bytes, optional
            Thumbprint of the recipient key. When omitted, the first
            recipient in the file that *resolver* has a private key for is
            used.
        private_key : RSAPrivateKey, optional
            Resolved through ``resolver.resolve_private_key`` when omitted.

        The output file is created only after the secret is unwrapped.
        """
        input_path = Path(input_path)
        output_path = Path(output_path)
        return _run(
            error_policy,
            input_path,
            output_path,
            lambda: _unprotect_file(
                input_path,
                output_path,
                identifier,
                private_key,
                resolver,
                chunk_size,
                progress_callback,
            ),
        )

    # ------------------------------------------------------------------
    # Inspection
    # ------------------------------------------------------------------

    @staticmethod
    def list_recipients(input_path: PathLike) -> List[str]:
        """Return the recipient thumbprints stored in an envelope file."""
        input_path = Path(input_path)
        try:
            with _io_stage("read", str(input_path)):
                with open(input_path, "rb") as fin:
                    blobs = read_recipients(fin)
        except EnvelopeError as exc:
            _attach_path(exc, input_path)
            raise
        return [b.thumbprint for b in blobs]


# ---------------------------------------------------------------------------
# File-level implementation (module-private)
# ---------------------------------------------------------------------------


def _run(
    error_policy: ErrorPolicy,
    input_path: Path,
    output_path: Path,
    operation: Callable[[], OperationResult],
) -> OperationResult:
    try:
        return operation()
    except EnvelopeError as exc:
        _attach_path(exc, input_path)
        if error_policy is ErrorPolicy.RETURN:
            logger.error("%s -> %s failed: %s", input_path, output_path, exc)
            return OperationResult(
                ok=False,
                source=str(input_path),
                destination=str(output_path),
                error=exc,
            )
        raise


def _resolve_public(
    recipients: Iterable[Union[RecipientKey, Identifier]],
    resolver: Optional[KeyResolver],
) -> List[RecipientKey]:
    resolved = []
    for item in recipients:
        if isinstance(item, RecipientKey):
            resolved.append(item)
            continue
        identifier = _coerce_identifier(item)
        thumbprint = encode_hex(identifier)
        key = resolver.resolve_public_key(thumbprint) if resolver else None
        if key is None:
            raise KeyNotFoundError(
                f"No public key found for recipient {thumbprint}.",
                identifier=thumbprint,
            )
        resolved.append(RecipientKey(identifier, key))
    return resolved


def _protect_file(
    input_path: Path,
    output_path: Path,
    recipients: Iterable[Union[RecipientKey, Identifier]],
    resolver: Optional[KeyResolver],
    chunk_size: int,
    progress_callback: Optional[ProgressCallback],
) -> OperationResult:
    _check_chunk_size(chunk_size)
    handles = _resolve_public(recipients, resolver)
    secret = SymmetricSecret.generate()
    blobs = EnvelopeEngine.wrap_for_recipients(handles, secret)

    with _io_stage("read", str(input_path)):
        total = input_path.stat().st_size
        fin = open(input_path, "rb")

    created = False
    try:
        with fin:
            with _io_stage("write", str(output_path)):
                fout = open(output_path, "wb")
            created = True
            with fout, _io_stage("encrypt", str(input_path)):
                processed = EnvelopeEngine.write_envelope(
                    fin,
                    fout,
                    blobs,
                    secret,
                    chunk_size=chunk_size,
                    progress_callback=progress_callback,
                    total=total,
                )
    except BaseException:
        if created:
            _discard(output_path)
        raise

    logger.info(
        "Protected %s -> %s for %d recipient(s)", input_path, output_path, len(blobs)
    )
    return OperationResult(
        ok=True,
        source=str(input_path),
        destination=str(output_path),
        bytes_processed=processed,
        recipients=[b.thumbprint for b in blobs],
    )


def _select_recipient(input_path: Path, resolver: KeyResolver) -> str:
    for thumbprint in EnvelopeEngine.list_recipients(input_path):
        if resolver.resolve_private_key(thumbprint) is not None:
            logger.debug("Selected recipient %s for %s", thumbprint, input_path)
            return thumbprint
    raise KeyNotFoundError(
        f"No private key available for any recipient of {input_path}.",
        path=str(input_path),
    )


def _unprotect_file(
    input_path: Path,
    output_path: Path,
    identifier: Optional[Identifier],
    private_key: Optional[object],
    resolver: Optional[KeyResolver],
    chunk_size: int,
    progress_callback: Optional[ProgressCallback],
) -> OperationResult:
    _check_chunk_size(chunk_size)
    if identifier is None:
        if resolver is None:
            raise KeyNotFoundError("An identifier or a key resolver is required.")
        identifier = _select_recipient(input_path, resolver)
    thumbprint = encode_hex(_coerce_identifier(identifier))

    if private_key is None:
        private_key = resolver.resolve_private_key(thumbprint) if resolver else None
        if private_key is None:
            raise KeyNotFoundError(
                f"No private key found for recipient {thumbprint}.",
                identifier=thumbprint,
            )

    with _io_stage("read", str(input_path)):
        total = input_path.stat().st_size
        fin = open(input_path, "rb")

    created = False
    try:
        with fin:
            with _io_stage("read", str(input_path)):
                secret = EnvelopeEngine.open_envelope(
                    fin, thumbprint, private_key, path=str(input_path)
                )
                total -= fin.tell()
            with _io_stage("write", str(output_path)):
                fout = open(output_path, "wb")
            created = True
            with fout, _io_stage("decrypt", str(input_path)):
                written = _decrypt_stream(
                    fin, fout, secret, chunk_size, progress_callback, total
                )
    except BaseException:
        if created:
            _discard(output_path)
        raise

    logger.info("Unprotected %s -> %s as %s", input_path, output_path, thumbprint)
    return OperationResult(
        ok=True,
        source=str(input_path),
        destination=str(output_path),
        bytes_processed=written,
        recipients=[thumbprint],
    )


# ---------------------------------------------------------------------------
# Module-level convenience functions
# ---------------------------------------------------------------------------

_engine = EnvelopeEngine

protect_stream = _engine.protect_stream
protect_file = _engine.protect_file
unprotect_stream = _engine.unprotect_stream
unprotect_file = _engine.unprotect_file
list_recipients = _engine.list_recipients

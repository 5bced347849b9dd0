"""
Centralized cryptographic operations for the flx builder: key generation and
detached RSA-PSS signatures over an archive's SHA-256 digest.
"""

from pathlib import Path

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.asymmetric.utils import Prehashed

from .exceptions import SignatureVerificationError, SigningError

SIGNATURE_SUFFIX = ".sig"


def _pss() -> padding.PSS:
    return padding.PSS(
        mgf=padding.MGF1(hashes.SHA256()), salt_length=hashes.SHA256.digest_size
    )


def generate_keys() -> tuple[rsa.RSAPrivateKey, rsa.RSAPublicKey]:
    """Generates a new 4096-bit RSA key pair."""
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=4096)
    return private_key, private_key.public_key()


def write_key_pair(
    private_key_path: Path, public_key_path: Path, overwrite: bool = False
) -> None:
    if not overwrite and (private_key_path.exists() or public_key_path.exists()):
        raise SigningError(f"Signing key already exists at '{private_key_path.parent}'.")
    private_key, public_key = generate_keys()
    private_key_path.parent.mkdir(parents=True, exist_ok=True)
    public_key_path.parent.mkdir(parents=True, exist_ok=True)
    private_key_path.write_bytes(
        private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )
    )
    public_key_path.write_bytes(
        public_key.public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
    )


def load_private_key(path: Path) -> rsa.RSAPrivateKey:
    try:
        key = serialization.load_pem_private_key(path.read_bytes(), password=None)
    except (OSError, ValueError, TypeError) as e:
        raise SigningError(f"Could not load private key from '{path}': {e}") from e
    if not isinstance(key, rsa.RSAPrivateKey):
        raise SigningError(f"Private key at '{path}' is not an RSA key.")
    return key


def load_public_key(path: Path) -> rsa.RSAPublicKey:
    try:
        key = serialization.load_pem_public_key(path.read_bytes())
    except (OSError, ValueError) as e:
        raise SignatureVerificationError(
            f"Could not load public key from '{path}': {e}"
        ) from e
    if not isinstance(key, rsa.RSAPublicKey):
        raise SignatureVerificationError(f"Public key at '{path}' is not an RSA key.")
    return key


def archive_digest(archive_path: Path) -> bytes:
    digest = hashes.Hash(hashes.SHA256())
    with archive_path.open("rb") as f:
        for chunk in iter(lambda: f.read(64 * 1024), b""):
            digest.update(chunk)
    return digest.finalize()


def sign_payload_hash(payload_hash: bytes, private_key: rsa.RSAPrivateKey) -> bytes:
    """Signs a 32-byte hash using RSA-PSS."""
    if not isinstance(payload_hash, bytes) or len(payload_hash) != 32:
        raise SigningError("Payload hash must be a 32-byte SHA-256 hash.")

    return private_key.sign(payload_hash, _pss(), Prehashed(hashes.SHA256()))


def signature_path_for(archive_path: Path) -> Path:
    return archive_path.with_name(archive_path.name + SIGNATURE_SUFFIX)


def sign_archive(archive_path: Path, private_key_path: Path) -> Path:
    """Writes a detached signature next to the archive and returns its path."""
    signature = sign_payload_hash(
        archive_digest(archive_path), load_private_key(private_key_path)
    )
    sig_path = signature_path_for(archive_path)
    sig_path.write_bytes(signature)
    return sig_path


def verify_archive_signature(archive_path: Path, public_key_path: Path) -> None:
    sig_path = signature_path_for(archive_path)
    if not sig_path.is_file():
        raise SignatureVerificationError(f"Signature file not found at '{sig_path}'.")
    try:
        load_public_key(public_key_path).verify(
            sig_path.read_bytes(),
            archive_digest(archive_path),
            _pss(),
            Prehashed(hashes.SHA256()),
        )
    except InvalidSignature as e:
        raise SignatureVerificationError(
            f"Archive signature does not match '{archive_path.name}'."
        ) from e

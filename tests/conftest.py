"""Pytest fixtures for the entire flx-builder test suite."""

from pathlib import Path
from typing import Any, Callable

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
import pytest

from flx.builder.artifacts import Artifact, Artifacts
from flx.builder.config import BuildConfig, BuildPaths
from flx.builder.crypto import generate_keys
from flx.builder.models import KernelMode
from flx.builder.packaging.assets import ManifestAssetBundle

from fakes import FakeKernelCompiler


@pytest.fixture(scope="session")
def key_pair() -> tuple[rsa.RSAPrivateKey, rsa.RSAPublicKey]:
    """Generates a single RSA key pair for the entire test session."""
    return generate_keys()


@pytest.fixture(scope="session")
def private_key(key_pair: tuple[rsa.RSAPrivateKey, rsa.RSAPublicKey]) -> rsa.RSAPrivateKey:
    return key_pair[0]


@pytest.fixture(scope="session")
def public_key_pem(key_pair: tuple[rsa.RSAPrivateKey, rsa.RSAPublicKey]) -> bytes:
    return key_pair[1].public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


@pytest.fixture(scope="session")
def private_key_pem(private_key: rsa.RSAPrivateKey) -> bytes:
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


@pytest.fixture
def engine_dir(tmp_path: Path) -> Path:
    """A fake engine artifact directory containing the platform kernel."""
    root = tmp_path / "engine"
    artifacts = Artifacts(root)
    platform_dill = artifacts.get_artifact_path(Artifact.PLATFORM_KERNEL_DILL)
    platform_dill.parent.mkdir(parents=True)
    platform_dill.write_bytes(b"platform-kernel")
    artifacts.get_artifact_path(Artifact.FRONTEND_SERVER_SNAPSHOT).write_bytes(b"fe")
    return root


@pytest.fixture
def artifacts(engine_dir: Path) -> Artifacts:
    return Artifacts(engine_dir)


@pytest.fixture
def app_project(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """An application project with `lib/main.dart` and two assets; becomes the cwd."""
    project = tmp_path / "app"
    (project / "lib").mkdir(parents=True)
    (project / "lib" / "main.dart").write_text("void main() {}\n")
    (project / "assets" / "images").mkdir(parents=True)
    (project / "assets" / "images" / "logo.png").write_bytes(b"\x89PNG")
    (project / "assets" / "strings.json").write_text('{"hello": "world"}')
    monkeypatch.chdir(project)
    return project


@pytest.fixture
def fake_compiler() -> FakeKernelCompiler:
    return FakeKernelCompiler()


@pytest.fixture
def make_config(app_project: Path) -> Callable[..., BuildConfig]:
    def _make(**kwargs: Any) -> BuildConfig:
        kwargs.setdefault("mode", KernelMode())
        return BuildConfig(paths=BuildPaths.from_build_dir(app_project / "build"), **kwargs)

    return _make


@pytest.fixture
def asset_bundle(app_project: Path) -> ManifestAssetBundle:
    return ManifestAssetBundle(["assets/"], base_dir=app_project)

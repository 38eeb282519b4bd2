"""Shared pytest fixtures for Productshot tests."""

import io
import shutil
import tempfile
from pathlib import Path
from typing import Generator

import pytest
from PIL import Image

from productshot.core.config import ProductshotConfig
from productshot.core.credentials import CredentialPool
from productshot.core.dispatcher import RequestDispatcher
from productshot.core.payload import ImagePart, to_data_uri
from productshot.core.prompt_builder import PresetLibrary
from productshot.core.transport import GenerationResponse


class ScriptedTransport:
    """Fake transport answering from a per-credential script.

    Each script value is either a :class:`GenerationResponse` to return or an
    exception instance to raise.  Every call is recorded in ``calls``.
    """

    def __init__(self, script: dict):
        self.script = script
        self.calls: list[tuple[str, object]] = []
        self.closed = False

    async def generate(self, credential, payload):
        self.calls.append((credential, payload))
        result = self.script[credential]
        if isinstance(result, BaseException):
            raise result
        return result

    async def aclose(self) -> None:
        self.closed = True

    @property
    def credentials_tried(self) -> list[str]:
        return [credential for credential, _ in self.calls]


class SleepRecorder:
    """Awaitable stand-in for ``asyncio.sleep`` that records delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory

    Cleanup:
        Directory is removed after test completes
    """
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path) -> ProductshotConfig:
    """Create a test configuration that reads no real .env file.

    Args:
        temp_dir: Temporary directory from fixture

    Returns:
        ProductshotConfig instance for testing
    """
    return ProductshotConfig(
        _env_file=None,
        credential_sources=["TEST_PRODUCTSHOT_KEYS"],
        credentials_env_file=None,
        credentials_file=None,
        quota_cooldown=5.0,
        retry_after_margin=2.0,
        max_cooldown=60.0,
        transient_delay=1.0,
    )


@pytest.fixture
def presets(test_config: ProductshotConfig) -> PresetLibrary:
    """The bundled preset library."""
    return PresetLibrary.load(test_config.data_dir)


@pytest.fixture
def png_bytes() -> bytes:
    """A small real PNG image."""
    buffer = io.BytesIO()
    Image.new("RGB", (8, 8), color=(255, 0, 0)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def png_data_uri(png_bytes: bytes) -> str:
    return to_data_uri(png_bytes, "image/png")


@pytest.fixture
def product_image(png_bytes: bytes) -> ImagePart:
    return ImagePart(data=png_bytes, media_type="image/png")


@pytest.fixture
def image_response(png_bytes: bytes) -> GenerationResponse:
    """A successful generation response carrying PNG bytes."""
    return GenerationResponse(image=png_bytes, image_media_type="image/png")


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def make_pool():
    """Factory returning a pool loader for a fixed list of credentials."""

    def factory(*credentials: str):
        return lambda: CredentialPool(tuple(credentials), source="test")

    return factory


@pytest.fixture
def scripted_transport():
    """Factory for :class:`ScriptedTransport`."""
    return ScriptedTransport


@pytest.fixture
def test_client(monkeypatch, test_config: ProductshotConfig):
    """FastAPI TestClient running the app against the test configuration.

    The lifespan builds a real dispatcher from ``test_config``, whose
    credential source is unset, so generation fails with a configuration
    error until a test installs a scripted dispatcher.
    """
    from fastapi.testclient import TestClient

    from productshot.api import main as api_main

    monkeypatch.setattr(api_main, "config", test_config)
    with TestClient(api_main.app) as client:
        yield client


@pytest.fixture
def install_transport(test_client, sleep_recorder: SleepRecorder):
    """Swap the app's dispatcher for one driven by a scripted transport.

    The credential pool is the script's keys, in insertion order.
    """

    def install(script: dict) -> ScriptedTransport:
        transport = ScriptedTransport(script)
        test_client.app.state.dispatcher = RequestDispatcher(
            transport,
            lambda: CredentialPool(tuple(script), source="test"),
            sleep=sleep_recorder,
        )
        return transport

    return install

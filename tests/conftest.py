"""
Pytest configuration for Doc Facade tests.
"""

import os
from typing import Generator

import pytest

from docfacade.config import DocFacadeConfig
from docfacade.encryption import FieldEncryptionInterceptor, KeyRing, StaticKeyProvider
from docfacade.metadata import MetadataRegistry


@pytest.fixture(autouse=True)
def clean_environment() -> Generator[None, None, None]:
    """
    Run every test without DOCFACADE_* environment variables and with a
    fresh configuration, restoring the original environment afterward.
    """
    saved = {name: value for name, value in os.environ.items() if name.startswith("DOCFACADE_")}
    for name in saved:
        del os.environ[name]
    DocFacadeConfig._config = {}
    DocFacadeConfig._initialized = False

    yield

    for name in [n for n in os.environ if n.startswith("DOCFACADE_")]:
        del os.environ[name]
    os.environ.update(saved)
    DocFacadeConfig._config = {}
    DocFacadeConfig._initialized = False


@pytest.fixture
def dev_mode_env() -> Generator[None, None, None]:
    """Run the test in development mode."""
    os.environ["DOCFACADE_MODE"] = "DEV"
    DocFacadeConfig.initialize()
    yield


@pytest.fixture
def prod_mode_env() -> Generator[None, None, None]:
    """Run the test in production mode."""
    os.environ["DOCFACADE_MODE"] = "PROD"
    DocFacadeConfig.initialize()
    yield


@pytest.fixture
def key() -> bytes:
    """A random AES-256 key."""
    return os.urandom(32)


@pytest.fixture
def registry() -> MetadataRegistry:
    return MetadataRegistry()


@pytest.fixture
def key_ring(key: bytes) -> KeyRing:
    return KeyRing(StaticKeyProvider(key))


@pytest.fixture
def interceptor(registry: MetadataRegistry, key_ring: KeyRing) -> FieldEncryptionInterceptor:
    return FieldEncryptionInterceptor(registry, key_ring)

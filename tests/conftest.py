import pytest
from fakes import FakeBackend, FakeClock, FakeTokenProvider

from xc_drive.types.upload_settings import UploadSettings


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def token_provider():
    return FakeTokenProvider()


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def small_settings():
    """Byte-sized stand-ins for the 1 GiB / 100 MiB / 10 MiB defaults."""
    return UploadSettings(
        chunk_size=100,
        single_shot_threshold=100,
        fingerprint_prefix_size=10,
        retry_wait_min=0,
        retry_wait_max=0,
    )


@pytest.fixture
def content():
    # 250 bytes whose chunks are distinguishable
    return bytes(i % 251 for i in range(250))

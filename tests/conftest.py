from collections.abc import Iterator

import pytest

from threadline.util.log import Log, LogFormat, LogLevel


@pytest.fixture(autouse=True)
def quiet_logs() -> Iterator[None]:
    Log.configure(level=LogLevel.INFO, format=LogFormat.KV, console=False, file=False)
    try:
        yield
    finally:
        Log.configure(level=LogLevel.INFO, format=LogFormat.KV, console=False, file=False)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"

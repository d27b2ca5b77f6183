"""Pytest configuration for lumenhub tests."""

from typing import Any

import pytest

from lumenhub.config import ConnectionConfig, HubConfig, ProcessorConfig
from lumenhub.system import ConnectionInfo, Device, MutationObserver, System, Zone
from lumenhub.testing import RecordingBuilder, RecordingDriver


@pytest.fixture
def anyio_backend():
    """Use asyncio for async tests."""
    return "asyncio"


# =============================================================================
# Hub Fixtures
# =============================================================================


def make_hub(
    name: str,
    builder: RecordingBuilder,
    driver: RecordingDriver,
    zones: int = 2,
) -> Device:
    """Create a hub device with numbered zones at addresses "1".."n"."""
    return Device(
        name=name,
        id=name,
        model_number=builder.model_id,
        connection=ConnectionInfo(address=name, protocol=driver.kind),
        features=[
            Zone(address=str(i), name=f"{name} zone {i}", id=f"{name}-z{i}")
            for i in range(1, zones + 1)
        ],
    )


@pytest.fixture
def builder() -> RecordingBuilder:
    """Recording builder registered as model "stub-model"."""
    return RecordingBuilder()


@pytest.fixture
def driver() -> RecordingDriver:
    """Recording network driver registered as kind "recording"."""
    return RecordingDriver()


@pytest.fixture
def hub_config() -> HubConfig:
    """Configuration with short timeouts for fast tests."""
    return HubConfig(
        processor=ProcessorConfig(acquire_timeout=1.0),
        connections=ConnectionConfig(dial_timeout=1.0, shutdown_grace=1.0),
    )


@pytest.fixture
async def system(hub_config: HubConfig, builder: RecordingBuilder, driver: RecordingDriver):
    """A started System wired to the recording builder and driver."""
    system = System(config=hub_config)
    system.extensions.register_builder(builder)
    system.extensions.register_network(driver.kind, driver)
    await system.start()
    yield system
    await system.shutdown(grace=1.0)


@pytest.fixture
def hub_factory(builder: RecordingBuilder, driver: RecordingDriver):
    """Build unregistered hubs wired to the recording builder and driver."""

    def factory(name: str, zones: int = 2) -> Device:
        return make_hub(name, builder, driver, zones)

    return factory


@pytest.fixture
async def hub(system: System, builder: RecordingBuilder, driver: RecordingDriver) -> Device:
    """Registered hub "h1" with zones h1-z1 and h1-z2."""
    return await system.registry.add_device(make_hub("h1", builder, driver))


class MemoryObserver(MutationObserver):
    """MutationObserver that keeps the last saved state in memory."""

    def __init__(self, fail_with: Exception | None = None):
        self.saves: list[list[dict[str, Any]]] = []
        self.fail_with = fail_with

    async def save(self, system, recipes) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.saves.append(recipes.to_list())


@pytest.fixture
def observer() -> MemoryObserver:
    return MemoryObserver()


@pytest.fixture
def failing_observer() -> MemoryObserver:
    return MemoryObserver(fail_with=OSError("disk full"))

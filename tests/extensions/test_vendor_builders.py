"""Tests for the bundled Lutron and Flux WiFi builders, protocols and drivers."""

import pytest

from lumenhub.commands import (
    ButtonPress,
    ButtonRelease,
    SceneSet,
    ZoneSetLevel,
    ZoneTurnOff,
    ZoneTurnOn,
)
from lumenhub.connections import TcpDriver, parse_address
from lumenhub.exceptions import (
    ConfigurationError,
    DeviceRejectedError,
    DialError,
    ProtocolError,
    UnsupportedError,
)
from lumenhub.extensions.builtins.fluxwifi import (
    FluxWifiCommandBuilder,
    decode_state,
    encode_set_level as flux_set_level,
    frame,
)
from lumenhub.extensions.builtins.lutron import (
    LutronCommandBuilder,
    LutronDriver,
    parse_credentials,
)
from lumenhub.extensions.builtins.lutron.network import (
    LOGIN_PROMPT,
    PASSWORD_PROMPT,
    READY_PROMPT,
)
from lumenhub.system import ConnectionInfo
from lumenhub.testing import RecordingBuilder, RecordingTransport


async def emit(builder, command) -> list[bytes]:
    """Run the builder's emitter against a fresh transport and return the writes."""
    transport = RecordingTransport()
    await builder.build(command, None)(transport)
    return transport.writes


class ScriptedTransport(RecordingTransport):
    """Transport that answers read_until() from a list of canned prompts."""

    def __init__(self, prompts: list[bytes]):
        super().__init__("bridge")
        self.prompts = list(prompts)
        self.awaited: list[bytes] = []

    async def read_until(self, separator: bytes, timeout: float = 5.0) -> bytes:
        self.awaited.append(separator)
        if not self.prompts:
            raise DeviceRejectedError("bridge closed the connection")
        return self.prompts.pop(0)


STATE_REPLY = frame(bytes([0x81, 0x04, 0x23, 0x61, 0x21, 0x10, 0, 0, 0, 0x80, 0x04, 0, 0x0F]))


class TestTurnOnOffEquivalence:
    """ZoneTurnOn/Off produce the same bytes as SetLevel 100/0."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "builder",
        [RecordingBuilder(), LutronCommandBuilder(), FluxWifiCommandBuilder()],
        ids=["recording", "lutron", "fluxwifi"],
    )
    async def test_on_off_match_levels(self, builder):
        on = await emit(builder, ZoneTurnOn("z", zone_address="12"))
        full = await emit(builder, ZoneSetLevel("z", 100, zone_address="12"))
        off = await emit(builder, ZoneTurnOff("z", zone_address="12"))
        zero = await emit(builder, ZoneSetLevel("z", 0, zone_address="12"))

        assert on == full
        assert off == zero
        assert on != off


class TestLutronBuilder:
    """Tests for Lutron integration protocol output."""

    @pytest.mark.asyncio
    async def test_set_level(self):
        writes = await emit(LutronCommandBuilder(), ZoneSetLevel("z", 42.5, zone_address="12"))
        assert writes == [b"#OUTPUT,12,1,42.50\r\n"]

    @pytest.mark.asyncio
    async def test_button_press_and_release(self):
        builder = LutronCommandBuilder()

        assert await emit(builder, ButtonPress("kp", "3", device_address="7")) == [
            b"#DEVICE,7,3,3\r\n"
        ]
        assert await emit(builder, ButtonRelease("kp", "3", device_address="7")) == [
            b"#DEVICE,7,3,4\r\n"
        ]

    @pytest.mark.asyncio
    async def test_release_as_press(self):
        builder = LutronCommandBuilder(release_sends_press=True)

        assert await emit(builder, ButtonRelease("kp", "3", device_address="7")) == [
            b"#DEVICE,7,3,3\r\n"
        ]

    def test_scene_is_unsupported(self):
        with pytest.raises(UnsupportedError):
            LutronCommandBuilder().build(SceneSet("night"), None)

    def test_unknown_model(self):
        builder = LutronCommandBuilder("l-unknown")

        with pytest.raises(UnsupportedError, match="l-unknown"):
            builder.build(ZoneTurnOn("z", zone_address="1"), None)

    def test_vendor_created_once(self):
        builder = LutronCommandBuilder()
        assert builder.vendor is builder.vendor
        assert builder.vendor.name == "Smart Bridge Pro"


class TestLutronDriver:
    """Tests for the telnet login handshake."""

    @pytest.mark.parametrize(
        "token,expected",
        [
            (None, ("lutron", "integration")),
            ("admin", ("admin", "integration")),
            ("admin:secret", ("admin", "secret")),
        ],
    )
    def test_parse_credentials(self, token, expected):
        assert parse_credentials(token) == expected

    @pytest.mark.asyncio
    async def test_login_sequence(self):
        transport = ScriptedTransport([LOGIN_PROMPT, PASSWORD_PROMPT, READY_PROMPT])

        await LutronDriver().login(transport, "admin", "secret")

        assert transport.awaited == [LOGIN_PROMPT, PASSWORD_PROMPT, READY_PROMPT]
        assert transport.writes == [b"admin\r\n", b"secret\r\n"]

    @pytest.mark.asyncio
    async def test_dial_logs_in(self, monkeypatch):
        transport = ScriptedTransport([LOGIN_PROMPT, PASSWORD_PROMPT, READY_PROMPT])

        async def fake_dial(self, info, write_timeout=5.0):
            return transport

        monkeypatch.setattr(TcpDriver, "dial", fake_dial)

        result = await LutronDriver().dial(
            ConnectionInfo("192.168.1.20", network="lutron", auth_token="u:p")
        )

        assert result is transport
        assert transport.writes == [b"u\r\n", b"p\r\n"]

    @pytest.mark.asyncio
    async def test_failed_login_is_dial_error(self, monkeypatch):
        transport = ScriptedTransport([LOGIN_PROMPT])

        async def fake_dial(self, info, write_timeout=5.0):
            return transport

        monkeypatch.setattr(TcpDriver, "dial", fake_dial)

        with pytest.raises(DialError, match="login"):
            await LutronDriver().dial(ConnectionInfo("192.168.1.20", network="lutron"))

        assert transport.closed

    def test_default_port(self):
        assert LutronDriver.default_port == 23


class TestFluxWifi:
    """Tests for the Flux WiFi frame format and builder."""

    def test_level_frames(self):
        assert flux_set_level(0) == b"\x71\x24\x0f\xa4"
        assert flux_set_level(100).startswith(b"\x71\x23\x0f\xa3")
        white = flux_set_level(42.5)[4:]
        assert white[:7] == bytes([0x31, 0, 0, 0, 108, 0, 0x0F])
        assert white[7] == sum(white[:7]) & 0xFF

    @pytest.mark.asyncio
    async def test_zone_address_not_on_wire(self):
        builder = FluxWifiCommandBuilder()

        first = await emit(builder, ZoneSetLevel("z", 50, zone_address="1"))
        second = await emit(builder, ZoneSetLevel("z", 50, zone_address="9"))

        assert first == second

    def test_buttons_unsupported(self):
        with pytest.raises(UnsupportedError):
            FluxWifiCommandBuilder().build(ButtonPress("d", "1"), None)

    def test_decode_state(self):
        state = decode_state(STATE_REPLY)

        assert state.power_on
        assert state.warm_white == 0x80

    @pytest.mark.parametrize(
        "data",
        [
            STATE_REPLY[:5],
            bytes([0x80]) + STATE_REPLY[1:],
            STATE_REPLY[:-1] + bytes([(STATE_REPLY[-1] + 1) & 0xFF]),
        ],
        ids=["short", "wrong-type", "bad-checksum"],
    )
    def test_decode_rejects(self, data):
        with pytest.raises(ProtocolError):
            decode_state(data)

    @pytest.mark.asyncio
    async def test_health_check(self):
        builder = FluxWifiCommandBuilder(query_timeout=0.05)
        transport = RecordingTransport()
        transport.responses.put_nowait(STATE_REPLY)

        assert await builder.health_check(transport)
        assert transport.writes == [b"\x81\x8a\x8b\x96"]

        # No reply this time
        assert not await builder.health_check(transport)

    @pytest.mark.asyncio
    async def test_health_check_joins_split_reply(self):
        builder = FluxWifiCommandBuilder(query_timeout=0.5)
        transport = RecordingTransport()
        transport.responses.put_nowait(STATE_REPLY[:5])
        transport.responses.put_nowait(STATE_REPLY[5:])

        assert await builder.health_check(transport)

        # Half a reply, then silence
        transport.responses.put_nowait(STATE_REPLY[:5])
        builder.query_timeout = 0.05
        assert not await builder.health_check(transport)


class TestAddresses:
    """Tests for host:port parsing."""

    def test_parse_address(self):
        assert parse_address("192.168.1.20:23") == ("192.168.1.20", 23)
        assert parse_address("bridge.local", default_port=5577) == ("bridge.local", 5577)

    @pytest.mark.parametrize("address", ["bridge.local", "bridge.local:telnet"])
    def test_invalid_address(self, address):
        with pytest.raises(ConfigurationError):
            parse_address(address)

"""
Tests for the live log tap.
"""
import pytest

from relay.realtime.broadcaster import LogBroadcaster, NullLogSink
from relay.realtime.identity import Identity, logs_viewer_identity
from relay.realtime.registry import MembershipRegistry, Connection

from tests.fakes import FakeEmitter


class TestLogBroadcaster:

    def setup_method(self):
        self.registry = MembershipRegistry()
        self.emitter = FakeEmitter()
        self.broadcaster = LogBroadcaster(self.emitter, self.registry)

    @pytest.mark.anyio
    async def test_only_logs_viewers_receive_records(self):
        self.registry.add_connection(Connection("viewer", logs_viewer_identity()))
        self.registry.add_connection(Connection("rider", Identity(12, "user")))

        await self.broadcaster.log("SOCKET", "something happened", {"k": "v"})

        [record] = self.emitter.received("viewer", "server:log")
        assert record["type"] == "SOCKET"
        assert record["message"] == "something happened"
        assert record["data"] == {"k": "v"}
        assert "T" in record["timestamp"]
        assert self.emitter.received("rider") == []

    @pytest.mark.anyio
    async def test_no_viewers_nothing_emitted(self):
        await self.broadcaster.log("SERVER", "boot")
        assert self.emitter.sent == []

    @pytest.mark.anyio
    async def test_late_viewer_gets_no_replay(self):
        await self.broadcaster.log("SERVER", "before viewer")
        self.registry.add_connection(Connection("viewer", logs_viewer_identity()))
        await self.broadcaster.log("SERVER", "after viewer")

        messages = [r["message"] for r in self.emitter.received("viewer", "server:log")]
        assert messages == ["after viewer"]

    @pytest.mark.anyio
    async def test_record_written_to_process_log(self, caplog):
        caplog.set_level("INFO", logger="relay.api")
        await self.broadcaster.log("HTTP", "Rooms list requested", {"rooms": []})
        assert "Rooms list requested" in caplog.text

    @pytest.mark.anyio
    @pytest.mark.parametrize("kind,logger_name", [
        ("AUTH", "relay.auth"),
        ("SOCKET", "relay.socket"),
        ("SERVER", "relay.server"),
        ("HTTP", "relay.api"),
        ("UNKNOWN", "relay.server"),
    ])
    async def test_each_kind_written_to_its_domain_logger(self, caplog, kind, logger_name):
        caplog.set_level("INFO", logger="relay")
        await self.broadcaster.log(kind, "routed")

        [record] = [r for r in caplog.records if "routed" in r.getMessage()]
        assert record.name == logger_name


@pytest.mark.anyio
async def test_null_sink_accepts_records():
    assert await NullLogSink().log("AUTH", "ignored", {"a": 1}) is None

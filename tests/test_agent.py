import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from voxagent.bot.agent import VoxAgent
from voxagent.config.settings import VoxAgentConfig
from voxagent.plugins.base import VoxAgentPlugin
from voxagent.services.provider import AgentNotConnectedError
from voxagent.websocket_manager import WSClient


class RecordingPlugin(VoxAgentPlugin):
    name = "recording"

    def __init__(self):
        super().__init__()
        self.agent = None
        self.messages = []
        self.transcripts = []
        self.leads = []
        self.destroyed = False

    def initialize(self, agent):
        self.agent = agent

    def on_message(self, message):
        self.messages.append(message)

    def on_transcript(self, segment):
        self.transcripts.append(segment)

    def on_lead(self, lead):
        self.leads.append(lead)

    async def destroy(self):
        self.destroyed = True


def make_agent(provider, **kwargs):
    kwargs.setdefault("silence_timeout_ms", 0)
    return VoxAgent(provider=provider, **kwargs)


@pytest.mark.asyncio
class TestVoxAgent:

    async def test_connect_starts_conversation_with_system_prompt(self, provider):
        on_connect = MagicMock()
        agent = make_agent(provider, system_prompt="Be brief.", voice="echo", on_connect=on_connect)
        connected = MagicMock()
        agent.on("connect", connected)

        await agent.connect()

        assert agent.is_connected
        assert provider.initialized == 1 and provider.connected == 1
        assert provider.voice == "echo"
        messages = agent.conversation.messages
        assert [(m.role, m.content) for m in messages] == [("system", "Be brief.")]
        on_connect.assert_called_once_with(True)
        connected.assert_called_once_with(True)

    async def test_connect_failure_reports_and_raises(self, provider):
        provider.connect_error = RuntimeError("no route")
        on_error = MagicMock()
        agent = make_agent(provider, on_error=on_error)

        with pytest.raises(RuntimeError):
            await agent.connect()

        assert not agent.is_connected
        on_error.assert_called_once_with(provider.connect_error, "connect")

    async def test_send_text_requires_connection(self, provider):
        agent = make_agent(provider)

        with pytest.raises(AgentNotConnectedError):
            await agent.send_text("hello")
        assert provider.texts == []

    async def test_send_text_records_and_forwards(self, provider):
        agent = make_agent(provider)
        await agent.connect()

        await agent.send_text("hello")

        assert provider.texts == ["hello"]
        assert agent.conversation.messages[-1].content == "hello"
        assert agent.conversation.messages[-1].role == "user"

    async def test_transcript_flows_to_history_and_plugins(self, provider):
        on_transcript = MagicMock()
        agent = make_agent(provider, on_transcript=on_transcript)
        plugin = RecordingPlugin()
        agent.use(plugin)
        await agent.connect()

        provider.push_transcript("I need a quote")

        assert agent.get_transcript() == "user: I need a quote"
        on_transcript.assert_called_once()
        assert on_transcript.call_args.args[0] == "I need a quote"
        assert plugin.agent is agent
        assert [m.content for m in plugin.messages] == ["I need a quote"]
        assert len(plugin.transcripts) == 1

    async def test_only_final_responses_enter_history(self, provider):
        responses = MagicMock()
        agent = make_agent(provider)
        agent.on("response", responses)
        await agent.connect()

        provider.push_response("Hel", done=False)
        provider.push_response("lo", done=False)
        provider.push_response("Hello", done=True)

        assert responses.call_count == 3
        assert [m.content for m in agent.conversation.messages] == ["Hello"]

    async def test_lead_from_transcript(self, provider):
        on_lead = MagicMock()
        agent = make_agent(provider, on_lead=on_lead)
        plugin = RecordingPlugin()
        agent.use(plugin)
        leads = MagicMock()
        agent.on("lead", leads)
        await agent.connect()

        provider.push_transcript("My email is jane@example.com")

        leads.assert_called_once()
        lead, state = leads.call_args.args
        assert lead.email == "jane@example.com"
        assert state.messages[-1].content == "My email is jane@example.com"
        on_lead.assert_called_once()
        assert plugin.leads == [lead]
        assert agent.get_current_lead().email == "jane@example.com"

    async def test_lead_extraction_disabled(self, provider):
        agent = make_agent(provider, enable_lead_extraction=False)
        leads = MagicMock()
        agent.on("lead", leads)
        await agent.connect()

        provider.push_transcript("My email is jane@example.com")
        await agent.disconnect()

        leads.assert_not_called()

    async def test_disconnect_emits_final_lead_and_ends(self, provider):
        agent = make_agent(provider)
        leads = MagicMock()
        disconnected = MagicMock()
        agent.on("lead", leads)
        agent.on("disconnect", disconnected)
        await agent.connect()
        provider.push_transcript("My name is Jane Doe")
        leads.reset_mock()

        await agent.disconnect()

        leads.assert_called_once()
        assert leads.call_args.args[0].name == "Jane Doe"
        assert provider.disconnected == 1
        assert not agent.is_connected
        assert not agent.conversation.is_active
        disconnected.assert_called_once_with()

    async def test_audio_buffer_forwarded_when_connected(self, provider):
        agent = make_agent(provider, audio_config={"buffer_duration_ms": 10})
        await agent.connect()
        agent.audio_pipeline.start()

        # 10 ms at 24 kHz / 16-bit is 480 bytes
        agent.audio_pipeline.process_chunk(bytes(480))
        await asyncio.sleep(0)

        assert provider.audio == [bytes(480)]

    async def test_audio_dropped_when_disconnected(self, provider):
        agent = make_agent(provider, audio_config={"buffer_duration_ms": 10})
        agent.audio_pipeline.start()

        agent.audio_pipeline.process_chunk(bytes(480))
        await asyncio.sleep(0)

        assert provider.audio == []

    async def test_silence_timeout_is_reemitted(self, provider):
        agent = make_agent(provider, silence_timeout_ms=20)
        timeouts = MagicMock()
        agent.on("silenceTimeout", timeouts)
        await agent.connect()

        await asyncio.sleep(0.06)

        timeouts.assert_called_once()
        assert timeouts.call_args.args[0].is_active

    async def test_export_conversation(self, provider):
        agent = make_agent(provider)
        await agent.connect()
        await agent.send_text("export me")

        assert '"export me"' in agent.export_conversation()

    async def test_plugin_hook_failure_is_isolated(self, provider):
        agent = make_agent(provider)
        broken = RecordingPlugin()
        broken.on_message = MagicMock(side_effect=RuntimeError("boom"))
        healthy = RecordingPlugin()
        agent.use(broken).use(healthy)
        await agent.connect()

        await agent.send_text("still delivered")

        assert [m.content for m in healthy.messages] == ["still delivered"]


@pytest.mark.asyncio
class TestReconnect:

    async def test_provider_error_schedules_reconnect(self, provider):
        agent = make_agent(provider, reconnect_delay=0.01)
        errors = MagicMock()
        agent.on("error", errors)
        await agent.connect()

        error = RuntimeError("socket dropped")
        provider.push_error(error)

        errors.assert_called_once_with(error, "provider")
        assert agent.reconnect_attempts == 1
        await asyncio.sleep(0.05)
        assert provider.connected == 2
        assert agent.reconnect_attempts == 0

    async def test_reconnect_keeps_conversation(self, provider):
        agent = make_agent(provider, reconnect_delay=0.01)
        await agent.connect()
        await agent.send_text("before the drop")
        conversation_id = agent.conversation.id

        provider.push_error(RuntimeError("socket dropped"))
        await asyncio.sleep(0.05)

        assert agent.conversation.id == conversation_id
        assert agent.conversation.messages[-1].content == "before the drop"

    async def test_reconnect_stops_at_ceiling(self, provider):
        agent = make_agent(provider, reconnect_delay=0.001, max_reconnect_attempts=3)
        await agent.connect()
        provider.connect_error = RuntimeError("still down")

        provider.push_error(RuntimeError("socket dropped"))
        await asyncio.sleep(0.1)

        # The initial connect plus one attempt per allowed reconnect
        assert provider.connected == 1 + 3
        assert agent.reconnect_attempts == 3

    async def test_linear_backoff(self, provider):
        agent = make_agent(provider, reconnect_delay=2.0)
        await agent.connect()

        reconnect = MagicMock(side_effect=lambda delay: asyncio.sleep(0))
        with patch.object(agent, "_reconnect", new=reconnect):
            provider.push_error(RuntimeError("first"))
            await agent._reconnect_task
            provider.push_error(RuntimeError("second"))
            await agent._reconnect_task

        assert [c.args[0] for c in reconnect.call_args_list] == [2.0, 4.0]

    async def test_no_reconnect_when_disconnected(self, provider):
        agent = make_agent(provider, reconnect_delay=0.01)

        provider.push_error(RuntimeError("late error"))
        await asyncio.sleep(0.03)

        assert agent.reconnect_attempts == 0
        assert provider.connected == 0

    async def test_disconnect_cancels_pending_reconnect(self, provider):
        agent = make_agent(provider, reconnect_delay=0.05)
        await agent.connect()
        provider.push_error(RuntimeError("socket dropped"))

        await agent.disconnect()
        await asyncio.sleep(0.08)

        assert provider.connected == 1

    async def test_disconnect_during_inflight_reconnect(self, provider):
        agent = make_agent(provider, reconnect_delay=0.001)
        await agent.connect()
        connects = MagicMock()
        agent.on("connect", connects)

        release = asyncio.Event()
        entered = asyncio.Event()

        async def slow_connect():
            provider.connected += 1
            entered.set()
            await release.wait()

        provider.connect = slow_connect
        provider.push_error(RuntimeError("socket dropped"))
        await asyncio.wait_for(entered.wait(), timeout=1)

        await agent.disconnect()
        release.set()
        await asyncio.sleep(0.01)

        assert not agent.is_connected
        assert not agent.conversation_manager.is_active
        assert agent._reconnect_task is None
        connects.assert_not_called()

    async def test_disconnect_while_connect_pending_closes_provider(self, provider):
        agent = make_agent(provider)
        release = asyncio.Event()
        entered = asyncio.Event()

        async def slow_connect():
            provider.connected += 1
            entered.set()
            await release.wait()

        provider.connect = slow_connect
        connecting = asyncio.create_task(agent.connect())
        await asyncio.wait_for(entered.wait(), timeout=1)

        await agent.disconnect()
        release.set()
        await connecting

        assert not agent.is_connected
        assert not agent.conversation_manager.is_active
        # Once from disconnect() and once for the connection that finished late
        assert provider.disconnected == 2

    async def test_failed_reconnect_schedules_next_attempt(self, provider):
        agent = make_agent(provider, reconnect_delay=0.001, max_reconnect_attempts=2)
        await agent.connect()
        provider.connect_error = RuntimeError("still down")

        provider.push_error(RuntimeError("socket dropped"))
        await asyncio.sleep(0.05)

        assert provider.connected == 1 + 2
        assert agent._reconnect_task is None


@pytest.mark.asyncio
class TestClientLifecycle:

    def client(self, client_id="client-1"):
        return WSClient(id=client_id, websocket=AsyncMock())

    async def test_client_connect_starts_pipeline_and_conversation(self, provider):
        agent = make_agent(provider, system_prompt="Be brief.")
        await agent.connect()
        first_id = agent.conversation.id
        connected = MagicMock()
        agent.on("clientConnect", connected)

        client = self.client()
        agent._on_client_connect(client)

        connected.assert_called_once_with(client)
        assert agent.audio_pipeline.is_streaming
        assert agent.conversation.id != first_id
        assert agent.conversation.messages[0].content == "Be brief."

    async def test_client_audio_reaches_pipeline(self, provider):
        agent = make_agent(provider)
        await agent.connect()
        client = self.client()
        agent._on_client_connect(client)
        chunks = MagicMock()
        agent.audio_pipeline.on("chunk", chunks)

        agent._on_client_audio(client, b"\x00\x01")
        agent._on_client_audio(self.client("client-other"), b"\x02\x03")

        chunks.assert_called_once_with(b"\x00\x01")

    async def test_client_disconnect_extracts_lead_and_ends(self, provider):
        agent = make_agent(provider)
        leads = MagicMock()
        agent.on("lead", leads)
        await agent.connect()
        client = self.client()
        agent._on_client_connect(client)
        provider.push_transcript("This is Maria Lopez")
        leads.reset_mock()

        agent._on_client_disconnect(client)

        assert not agent.audio_pipeline.is_streaming
        assert not agent.conversation.is_active
        leads.assert_called_once()
        assert leads.call_args.args[0].name == "Maria Lopez"

    async def test_client_text_when_disconnected_is_dropped(self, provider):
        agent = make_agent(provider)

        await agent._on_client_text(self.client(), "hello")

        assert provider.texts == []


@pytest.mark.asyncio
async def test_stop_disconnects_and_destroys_plugins(provider):
    agent = make_agent(provider)
    plugin = RecordingPlugin()
    agent.use(plugin)
    await agent.connect()

    await agent.stop()

    assert plugin.destroyed
    assert provider.disconnected == 1


@pytest.mark.asyncio
async def test_listen_serves_until_stopped(provider):
    agent = make_agent(provider)

    with patch("voxagent.bot.agent.uvicorn.Server") as server_cls:
        server = server_cls.return_value
        server.started = True
        server.serve = AsyncMock()

        await agent.listen(8765, "127.0.0.1")

        assert agent.is_connected
        assert agent.websocket_manager is not None
        config = server_cls.call_args.args[0]
        assert config.port == 8765
        assert config.host == "127.0.0.1"

        await agent.stop()

    assert server.should_exit is True
    assert not agent.is_connected


def test_config_object_or_kwargs(provider):
    config = VoxAgentConfig(provider=provider, max_reconnect_attempts=2)

    assert VoxAgent(config).config.max_reconnect_attempts == 2
    assert VoxAgent(provider=provider).config.max_reconnect_attempts == 5


def test_kwargs_override_explicit_config(provider):
    config = VoxAgentConfig(provider=provider, max_reconnect_attempts=2, voice="echo")

    agent = VoxAgent(config, reconnect_delay=0.5, voice="alloy")

    assert agent.config.max_reconnect_attempts == 2
    assert agent.config.reconnect_delay == 0.5
    assert agent.config.voice == "alloy"
    assert agent.provider is provider
    assert config.voice == "echo"

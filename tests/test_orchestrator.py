import pytest
import asyncio
import json
from io import StringIO
from unittest.mock import AsyncMock, MagicMock
from rich.console import Console
from core.config import BotSettings
from core.logging_setup import BotLogger
from core.monitoring import CycleMonitor
from core.orchestrator import EXIT_NO_WALLETS, EXIT_OK, NodeScheduler, register_wallets
from core.proxy_manager import ProxyKind, ProxyManager
from core.wallet_manager import WalletProfile


@pytest.fixture
def settings(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    return BotSettings(
        wallets_file=str(tmp_path / "wallets.json"),
        proxies_file=str(tmp_path / "proxy.txt"),
        registered_wallets_file=str(tmp_path / "registered_wallets.txt"),
    )


@pytest.fixture
def log():
    return BotLogger(logger=MagicMock())


@pytest.fixture
def monitor():
    return CycleMonitor(console=Console(file=StringIO()))


def wallets(n):
    return [WalletProfile(address=f"0x{i}", private_key=f"0xkey{i}") for i in range(n)]


def fake_session(calls, running=True, points=100, fail_on=None):
    """Session double whose operations append their name to *calls*."""
    session = MagicMock()
    session.last_points = None

    def step(name, result):
        async def _run():
            calls.append(name)
            if name == fail_on:
                raise RuntimeError(f"{name} blew up")
            if name == "check_node_points":
                session.last_points = points
            return result
        return AsyncMock(side_effect=_run)

    session.daily_check_in = step("daily_check_in", True)
    session.check_node_status = step("check_node_status", running)
    session.stop_node = step("stop_node", True)
    session.connect_node = step("connect_node", True)
    session.check_node_points = step("check_node_points", True)
    return session


class SleepRecorder:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


class TestProcessWallet:
    @pytest.mark.asyncio
    async def test_sequence_when_node_running(self, settings, log, monitor):
        calls = []
        scheduler = NodeScheduler(
            settings, wallets(1), ProxyManager(), log=log, monitor=monitor,
            session_factory=lambda w, p: fake_session(calls, running=True),
            sleep=SleepRecorder(),
        )
        monitor.start_cycle()
        assert await scheduler.process_wallet(0, scheduler.wallets[0]) is True
        assert calls == [
            "daily_check_in", "check_node_status", "stop_node",
            "connect_node", "check_node_points",
        ]
        metrics = monitor.metrics[0]
        assert metrics.points == 100
        assert metrics.node_connected is True
        assert metrics.node_stopped is True

    @pytest.mark.asyncio
    async def test_stop_skipped_when_node_not_running(self, settings, log, monitor):
        calls = []
        scheduler = NodeScheduler(
            settings, wallets(1), ProxyManager(), log=log, monitor=monitor,
            session_factory=lambda w, p: fake_session(calls, running=False),
            sleep=SleepRecorder(),
        )
        monitor.start_cycle()
        await scheduler.process_wallet(0, scheduler.wallets[0])
        assert "stop_node" not in calls
        assert calls[-2:] == ["connect_node", "check_node_points"]
        assert monitor.metrics[0].node_stopped is None

    @pytest.mark.asyncio
    async def test_exception_abandons_wallet_and_waits(self, settings, log, monitor):
        calls = []
        sleep = SleepRecorder()
        scheduler = NodeScheduler(
            settings, wallets(1), ProxyManager(), log=log, monitor=monitor,
            session_factory=lambda w, p: fake_session(calls, fail_on="check_node_status"),
            sleep=sleep,
        )
        monitor.start_cycle()
        assert await scheduler.process_wallet(0, scheduler.wallets[0]) is False
        assert calls == ["daily_check_in", "check_node_status"]
        assert sleep.calls == [5]
        assert monitor.metrics[0].failed
        assert "blew up" in monitor.metrics[0].error

    @pytest.mark.asyncio
    async def test_session_factory_failure_is_contained(self, settings, log, monitor):
        def broken_factory(wallet, proxy):
            raise ValueError("Non-hexadecimal digit found")

        sleep = SleepRecorder()
        scheduler = NodeScheduler(
            settings, wallets(1), ProxyManager(), log=log, monitor=monitor,
            session_factory=broken_factory, sleep=sleep,
        )
        monitor.start_cycle()
        assert await scheduler.process_wallet(0, scheduler.wallets[0]) is False
        assert sleep.calls == [5]

    @pytest.mark.asyncio
    async def test_cancellation_propagates(self, settings, log, monitor):
        session = fake_session([])
        session.daily_check_in = AsyncMock(side_effect=asyncio.CancelledError())
        scheduler = NodeScheduler(
            settings, wallets(1), ProxyManager(), log=log, monitor=monitor,
            session_factory=lambda w, p: session, sleep=SleepRecorder(),
        )
        monitor.start_cycle()
        with pytest.raises(asyncio.CancelledError):
            await scheduler.process_wallet(0, scheduler.wallets[0])


class TestProxyPairing:
    @pytest.mark.asyncio
    async def test_round_robin_by_wallet_index(self, settings, log, monitor):
        seen = []

        def factory(wallet, proxy):
            seen.append((wallet.address, proxy.uri))
            return fake_session([])

        scheduler = NodeScheduler(
            settings, wallets(3), ProxyManager(["http://a:1", "socks5://b:2"]),
            log=log, monitor=monitor, session_factory=factory, sleep=SleepRecorder(),
        )
        await scheduler.run_cycle()
        assert seen == [("0x0", "http://a:1"), ("0x1", "socks5://b:2"), ("0x2", "http://a:1")]

    @pytest.mark.asyncio
    async def test_malformed_proxy_port_does_not_end_cycle(self, settings, log, monitor):
        calls = []
        scheduler = NodeScheduler(
            settings, wallets(2),
            ProxyManager(["http://user:pw@1.2.3.4:notaport", "http://5.6.7.8:8080"]),
            log=log, monitor=monitor,
            session_factory=lambda w, p: fake_session(calls), sleep=SleepRecorder(),
        )
        assert await scheduler.run(max_cycles=1) == EXIT_OK
        assert calls.count("check_node_points") == 2
        assert monitor.metrics[0].proxy == "http://***@1.2.3.4:notaport"
        assert monitor.failed_count == 0

    @pytest.mark.asyncio
    async def test_proxy_selection_failure_takes_failed_path(self, settings, log, monitor):
        proxy_manager = ProxyManager(["http://a:1"])
        proxy_manager.proxy_for = MagicMock(side_effect=[ValueError("bad proxy"), proxy_manager.proxy_for(1)])
        sleep = SleepRecorder()
        calls = []
        scheduler = NodeScheduler(
            settings, wallets(2), proxy_manager, log=log, monitor=monitor,
            session_factory=lambda w, p: fake_session(calls), sleep=sleep,
        )
        assert await scheduler.run(max_cycles=1) == EXIT_OK
        assert monitor.metrics[0].failed
        assert "bad proxy" in monitor.metrics[0].error
        assert sleep.calls == [5]
        assert calls.count("check_node_points") == 1

    def test_no_proxies_is_direct(self, settings, log):
        scheduler = NodeScheduler(settings, wallets(2), ProxyManager(), log=log)
        assert scheduler.select_proxy(1).kind is ProxyKind.NONE


class TestRun:
    @pytest.mark.asyncio
    async def test_no_wallets_exits_before_any_request(self, settings, log, monitor):
        factory = MagicMock()
        scheduler = NodeScheduler(
            settings, [], ProxyManager(), log=log, monitor=monitor,
            session_factory=factory, sleep=SleepRecorder(),
        )
        assert await scheduler.run() == EXIT_NO_WALLETS
        factory.assert_not_called()

    @pytest.mark.asyncio
    async def test_failed_wallet_does_not_stop_cycle(self, settings, log, monitor):
        calls = []
        sessions = iter([
            fake_session(calls, fail_on="daily_check_in"),
            fake_session(calls),
        ])
        scheduler = NodeScheduler(
            settings, wallets(2), ProxyManager(), log=log, monitor=monitor,
            session_factory=lambda w, p: next(sessions), sleep=SleepRecorder(),
        )
        assert await scheduler.run(max_cycles=1) == EXIT_OK
        assert calls.count("daily_check_in") == 2
        assert calls[-1] == "check_node_points"
        assert monitor.failed_count == 1

    @pytest.mark.asyncio
    async def test_cycles_sleep_for_interval(self, settings, log, monitor):
        sleep = SleepRecorder()
        scheduler = NodeScheduler(
            settings, wallets(2), ProxyManager(), log=log, monitor=monitor,
            session_factory=lambda w, p: fake_session([]), sleep=sleep,
        )
        assert await scheduler.run(max_cycles=3) == EXIT_OK
        assert monitor.cycle == 3
        assert sleep.calls == [3600, 3600]

    @pytest.mark.asyncio
    async def test_stop_ends_loop_after_current_wallet(self, settings, log, monitor):
        processed = []
        scheduler = None

        def factory(wallet, proxy):
            processed.append(wallet.address)
            scheduler.stop()
            return fake_session([])

        scheduler = NodeScheduler(
            settings, wallets(3), ProxyManager(), log=log, monitor=monitor,
            session_factory=factory, sleep=SleepRecorder(),
        )
        assert await scheduler.run() == EXIT_OK
        assert processed == ["0x0"]
        assert scheduler.stopped

    def test_from_settings_loads_files(self, settings, log, tmp_path):
        (tmp_path / "wallets.json").write_text(json.dumps([
            {"address": "0x1", "privateKey": "0xa"},
        ]), encoding="utf-8")
        (tmp_path / "proxy.txt").write_text("http://a:1\n", encoding="utf-8")
        scheduler = NodeScheduler.from_settings(settings, log=log)
        assert [w.address for w in scheduler.wallets] == ["0x1"]
        assert scheduler.proxy_manager.proxies == ["http://a:1"]


class TestRegisterWallets:
    @pytest.mark.asyncio
    async def test_registers_and_appends_lines(self, settings, log):
        signers = []

        def factory(signer, proxy):
            signers.append(signer)
            session = MagicMock()
            session.check_invite = AsyncMock(return_value=True)
            session.register_wallet = AsyncMock(return_value=True)
            return session

        count = await register_wallets(settings, 2, ProxyManager(), log=log, session_factory=factory)

        assert count == 2
        with open(settings.registered_wallets_file, encoding="utf-8") as fh:
            records = [json.loads(line) for line in fh]
        assert [r["address"] for r in records] == [s.address for s in signers]
        assert all(r["privateKey"].startswith("0x") for r in records)

    @pytest.mark.asyncio
    async def test_rejected_invite_skips_registration(self, settings, log, tmp_path):
        session = MagicMock()
        session.check_invite = AsyncMock(return_value=False)
        session.register_wallet = AsyncMock(return_value=True)

        count = await register_wallets(
            settings, 1, ProxyManager(), log=log, session_factory=lambda s, p: session,
        )

        assert count == 0
        session.register_wallet.assert_not_awaited()
        assert not (tmp_path / "registered_wallets.txt").exists()

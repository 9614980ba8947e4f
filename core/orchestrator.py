"""Wallet cycle orchestration for the LayerEdge node bot.

:class:`NodeScheduler` walks the wallet list strictly one wallet at a
time, pairs wallet *i* with proxy ``i % len(proxies)`` and runs the
per-wallet sequence:

1. daily check-in
2. node status
3. stop node (only if it was running; this claims the points)
4. start node (always)
5. points lookup

After the last wallet it sleeps for the cycle interval and starts over.
Nothing below the scheduler raises past it; :meth:`NodeScheduler.run`
returns an exit code instead of terminating the process.

Key exports:
    NodeScheduler: The run loop.
    EXIT_OK / EXIT_NO_WALLETS: Exit codes returned by ``run``.
"""

import asyncio
import json
import logging
from typing import Awaitable, Callable, List, Optional

from core.config import BotSettings
from core.logging_setup import BotLogger
from core.monitoring import CycleMonitor
from core.proxy_manager import Proxy, ProxyManager
from core.utils import append_line, delay
from core.wallet_manager import WalletProfile, WalletSigner, load_wallets
from nodes.layeredge import LayerEdgeSession

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_NO_WALLETS = 1

SessionFactory = Callable[[WalletProfile, Proxy], LayerEdgeSession]


class NodeScheduler:
    """
    Sequential run loop over all configured wallets.

    Attributes:
        wallets: Loaded :class:`WalletProfile` entries.
        proxy_manager: Round-robin proxy source.
        monitor: :class:`CycleMonitor` collecting per-wallet results.
    """

    def __init__(
        self,
        settings: BotSettings,
        wallets: List[WalletProfile],
        proxy_manager: ProxyManager,
        log: Optional[BotLogger] = None,
        session_factory: Optional[SessionFactory] = None,
        sleep: Callable[[float], Awaitable[None]] = delay,
        monitor: Optional[CycleMonitor] = None,
    ):
        """
        Initialize the scheduler.

        Args:
            settings: Global configuration object.
            wallets: Wallets to process, in order.
            proxy_manager: Source of per-wallet proxies.
            log: Logging capability; built from settings when omitted.
            session_factory: Builds a session for (wallet, proxy).
            sleep: Delay primitive (seconds).
            monitor: Cycle result collector.
        """
        self.settings = settings
        self.wallets = list(wallets)
        self.proxy_manager = proxy_manager
        self.log = log or BotLogger(verbose=settings.verbose)
        self.session_factory = session_factory or self._default_session
        self.sleep = sleep
        self.monitor = monitor or CycleMonitor()
        self._stop_event = asyncio.Event()

    @classmethod
    def from_settings(
        cls, settings: BotSettings, log: Optional[BotLogger] = None, **kwargs
    ) -> "NodeScheduler":
        """Load wallets and proxies from the files named in *settings*."""
        proxy_manager = ProxyManager.from_file(settings.proxies_file)
        wallets = load_wallets(settings.wallets_file)
        return cls(settings, wallets, proxy_manager, log=log, **kwargs)

    def _default_session(self, wallet: WalletProfile, proxy: Proxy) -> LayerEdgeSession:
        return LayerEdgeSession.from_settings(
            self.settings, WalletSigner(wallet.private_key), proxy=proxy, log=self.log,
        )

    def select_proxy(self, index: int) -> Proxy:
        """Proxy for wallet *index*: ``proxies[index % n]`` or direct."""
        return self.proxy_manager.proxy_for(index)

    def stop(self) -> None:
        """Finish the current wallet, then leave the loop."""
        self._stop_event.set()

    @property
    def stopped(self) -> bool:
        return self._stop_event.is_set()

    async def process_wallet(self, index: int, wallet: WalletProfile) -> bool:
        """Run the full sequence for one wallet.

        Returns:
            ``False`` if the sequence was abandoned after an unexpected
            exception, ``True`` otherwise.
        """
        address = wallet.address

        try:
            metrics = self.monitor.start_wallet(index, address)
            proxy = self.select_proxy(index)
            metrics.proxy = proxy.masked()

            self.log.verbose(f"Processing wallet {index + 1}/{len(self.wallets)}", address)
            session = self.session_factory(wallet, proxy)

            self.log.progress(address, "Wallet processing started", "start")
            self.log.info("Wallet details", f"Address: {address}, Proxy: {metrics.proxy}")

            self.log.progress(address, "Daily check-in", "processing")
            metrics.checked_in = await session.daily_check_in()

            self.log.progress(address, "Checking node status", "processing")
            metrics.node_running = await session.check_node_status()

            if metrics.node_running:
                self.log.progress(address, "Claiming node points", "processing")
                metrics.node_stopped = await session.stop_node()

            self.log.progress(address, "Reconnecting node", "processing")
            metrics.node_connected = await session.connect_node()

            self.log.progress(address, "Checking node points", "processing")
            if await session.check_node_points():
                metrics.points = session.last_points

            self.log.progress(address, "Wallet processing complete", "success")
            self.monitor.finish_wallet(index)
            return True
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.log.error(f"Failed to process wallet {address}", "", e)
            self.log.progress(address, "Wallet processing failed", "failed")
            self.monitor.mark_failed(index, e)
            await self.sleep(self.settings.wallet_failure_delay_seconds)
            return False

    async def run_cycle(self) -> int:
        """Process every wallet once.

        Returns:
            Number of wallets whose sequence failed.
        """
        self.monitor.start_cycle()
        for index, wallet in enumerate(self.wallets):
            if self.stopped:
                break
            await self.process_wallet(index, wallet)
        self.monitor.display()
        return self.monitor.failed_count

    async def run(self, max_cycles: Optional[int] = None) -> int:
        """Main loop.

        Runs until :meth:`stop` is called or *max_cycles* passes have
        completed (``None`` means forever).

        Returns:
            :data:`EXIT_NO_WALLETS` if there is nothing to do,
            :data:`EXIT_OK` otherwise.
        """
        if not self.proxy_manager.proxies:
            self.log.warn("No proxies configured", "running without proxies")

        if not self.wallets:
            self.log.error("No wallets configured", self.settings.wallets_file)
            return EXIT_NO_WALLETS

        self.log.info(
            "Configuration loaded",
            f"Wallets: {len(self.wallets)}, Proxies: {len(self.proxy_manager)}",
        )

        cycles = 0
        while not self.stopped:
            await self.run_cycle()
            cycles += 1
            if max_cycles is not None and cycles >= max_cycles:
                break
            if self.stopped:
                break
            interval = self.settings.cycle_interval_seconds
            self.log.warn("Cycle complete", f"waiting {interval}s before the next cycle...")
            await self.sleep(interval)

        logger.info("Scheduler stopped after %d cycle(s)", cycles)
        return EXIT_OK


async def register_wallets(
    settings: BotSettings,
    count: int,
    proxy_manager: ProxyManager,
    log: Optional[BotLogger] = None,
    session_factory: Optional[Callable[[WalletSigner, Proxy], LayerEdgeSession]] = None,
) -> int:
    """Generate *count* fresh wallets and register them with the referral code.

    Each registered wallet is appended as one JSON line to
    ``settings.registered_wallets_file``.

    Returns:
        Number of wallets registered.
    """
    log = log or BotLogger(verbose=settings.verbose)
    make_session = session_factory or (
        lambda signer, proxy: LayerEdgeSession.from_settings(
            settings, signer, proxy=proxy, log=log,
        )
    )

    registered = 0
    for index in range(count):
        signer = WalletSigner()
        session = make_session(signer, proxy_manager.proxy_for(index))
        log.progress(signer.address, f"Registering wallet {index + 1}/{count}", "start")

        if not await session.check_invite():
            log.progress(signer.address, "Referral code rejected", "failed")
            continue
        if not await session.register_wallet():
            log.progress(signer.address, "Registration failed", "failed")
            continue

        record = json.dumps(signer.to_profile().to_record())
        if append_line(settings.registered_wallets_file, record):
            registered += 1
            log.progress(signer.address, "Wallet registered", "success")

    log.info("Registration finished", f"{registered}/{count} wallets")
    return registered

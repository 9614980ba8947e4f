"""
Core module for the LayerEdge node bot.

This package contains the request executor, configuration, proxy and wallet
handling, the wallet cycle scheduler, and logging/monitoring helpers.

Submodules:
    config: Application settings (``BotSettings``) via Pydantic.
    requester: ``RequestExecutor`` retry engine (500 -> exponential, else fixed 2 s).
    orchestrator: ``NodeScheduler`` sequential wallet cycle loop and wallet registration.
    proxy_manager: ``Proxy`` tagged variant and round-robin ``ProxyManager``.
    wallet_manager: ``WalletSigner`` (EIP-191 signing) and ``wallets.json`` loading.
    monitoring: ``CycleMonitor`` per-wallet results and Rich summary table.
    logging_setup: Compressed rotating file + safe console logging, ``BotLogger``.
    utils: Delay primitive and line-oriented file helpers.
"""

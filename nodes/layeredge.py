"""LayerEdge light-node session.

:class:`LayerEdgeSession` wraps one wallet against the LayerEdge referral
API.  Signed actions build a message from a fixed template containing the
wallet address and a millisecond timestamp; the server verifies the
signature against that exact string, so the templates below are part of
the wire format.  The server checks the English wording used by the
LayerEdge dashboard, not a translated one.

Every public operation returns ``bool`` and never raises: failures are
logged and reported as ``False``.
"""

import re
import time
from typing import Any, Awaitable, Callable, Dict, Optional

from core.config import BotSettings, DEFAULT_USER_AGENT
from core.logging_setup import BotLogger
from core.proxy_manager import NO_PROXY, Proxy
from core.requester import RequestExecutor, RequestOutcome, RequestSpec, RetryPolicy
from core.wallet_manager import WalletSigner


DEFAULT_API_BASE = "https://referralapi.layeredge.io/api"
DEFAULT_REF_CODE = "knYyWnsE"
DEFAULT_POLICY = RetryPolicy(max_attempts=30, base_backoff_ms=2000)

ACTIVATION_TEMPLATE = "Node activation request for {address} at {timestamp}"
DEACTIVATION_TEMPLATE = "Node deactivation request for {address} at {timestamp}"
DAILY_CLAIM_TEMPLATE = "I am claiming my daily node point for {address} at {timestamp}"

NODE_ACTION_SUCCESS = "node action executed successfully"
ALREADY_CLAIMED_STATUS = 405
# Best effort: "...come back after 24 hours!" -> "24 hours"
COOLDOWN_PATTERN = re.compile(r"after\s+([^!.]+)", re.IGNORECASE)


def _data(body: Any) -> Dict[str, Any]:
    """The nested ``data`` object of a response body, or ``{}``."""
    if isinstance(body, dict) and isinstance(body.get("data"), dict):
        return body["data"]
    return {}


def parse_cooldown(message: Optional[str], default: str = "24 hours") -> str:
    """Extract the cooldown description from an "already claimed" message."""
    if not message:
        return default
    match = COOLDOWN_PATTERN.search(message)
    return match.group(1).strip() if match else default


class LayerEdgeSession:
    """One wallet's view of the LayerEdge API.

    Attributes:
        signer: :class:`WalletSigner` owning the private key.
        proxy: Fixed :class:`Proxy` for every request of this session.
        headers: Browser-like default headers.
        last_points: ``nodePoints`` from the last successful
            :meth:`check_node_points`, else ``None``.
    """

    def __init__(
        self,
        signer: WalletSigner,
        proxy: Proxy = NO_PROXY,
        log: Optional[BotLogger] = None,
        executor: Optional[RequestExecutor] = None,
        ref_code: str = DEFAULT_REF_CODE,
        api_base: str = DEFAULT_API_BASE,
        user_agent: str = DEFAULT_USER_AGENT,
        policy: RetryPolicy = DEFAULT_POLICY,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.signer = signer
        self.proxy = proxy
        self.log = log or BotLogger()
        self.executor = executor or RequestExecutor(log=self.log)
        self.ref_code = ref_code
        self.api_base = api_base.rstrip("/")
        self.policy = policy
        self._clock = clock
        self.last_points: Optional[Any] = None

        self.headers: Dict[str, str] = {
            'Accept': 'application/json, text/plain, */*',
            'Accept-Encoding': 'gzip, deflate, br',
            'Accept-Language': 'en-US,en;q=0.9',
            'Origin': 'https://layeredge.io',
            'Referer': 'https://layeredge.io/',
            'Sec-Fetch-Dest': 'empty',
            'Sec-Fetch-Mode': 'cors',
            'Sec-Fetch-Site': 'same-site',
            'User-Agent': user_agent,
            'sec-ch-ua': '"Not A(Brand";v="99", "Google Chrome";v="121", "Chromium";v="121"',
            'sec-ch-ua-mobile': '?0',
            'sec-ch-ua-platform': '"Windows"',
        }

        self.log.verbose(
            "Initialised LayerEdge session",
            f"Wallet: {self.address}, Proxy: {self.proxy.masked()}",
        )

    @classmethod
    def from_settings(
        cls,
        settings: BotSettings,
        signer: WalletSigner,
        proxy: Proxy = NO_PROXY,
        log: Optional[BotLogger] = None,
        executor: Optional[RequestExecutor] = None,
    ) -> "LayerEdgeSession":
        """Build a session using the API settings from :class:`BotSettings`."""
        log = log or BotLogger(verbose=settings.verbose)
        return cls(
            signer,
            proxy=proxy,
            log=log,
            executor=executor or RequestExecutor(
                log=log, timeout_seconds=settings.request_timeout_seconds,
            ),
            ref_code=settings.referral_code,
            api_base=settings.api_base_url,
            user_agent=settings.user_agent,
        )

    @property
    def address(self) -> str:
        return self.signer.address

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _timestamp(self) -> int:
        return int(self._clock() * 1000)

    def _signed_payload(self, template: str) -> Dict[str, Any]:
        """Sign *template* for this wallet with a fresh timestamp."""
        timestamp = self._timestamp()
        message = template.format(address=self.address, timestamp=timestamp)
        return {"sign": self.signer.sign_message(message), "timestamp": timestamp}

    async def _request(
        self, method: str, path: str, data: Any = None,
        extra_headers: Optional[Dict[str, str]] = None,
    ) -> RequestOutcome:
        headers = dict(self.headers)
        if extra_headers:
            headers.update(extra_headers)
        spec = RequestSpec(
            method=method,
            url=f"{self.api_base}{path}",
            headers=headers,
            body=data,
            proxy=self.proxy,
        )
        return await self.executor.execute(spec, self.policy)

    async def safe_operation(
        self, operation_name: str, operation_func: Callable[[], Awaitable[bool]],
    ) -> bool:
        """Run an operation, turning any exception into ``False``."""
        try:
            return bool(await operation_func())
        except Exception as e:
            self.log.error(f"{operation_name} failed", self.address, e)
            return False

    # ------------------------------------------------------------------
    # Referral
    # ------------------------------------------------------------------

    async def check_invite(self) -> bool:
        return await self.safe_operation("Invite check", self._check_invite)

    async def _check_invite(self) -> bool:
        outcome = await self._request(
            "post", "/referral/verify-referral-code",
            {"invite_code": self.ref_code},
        )
        if outcome.ok and _data(outcome.body).get("valid") is True:
            self.log.info("Invite code is valid", outcome.body)
            return True
        self.log.error("Invite code verification failed", self.ref_code)
        return False

    async def register_wallet(self) -> bool:
        return await self.safe_operation("Wallet registration", self._register_wallet)

    async def _register_wallet(self) -> bool:
        outcome = await self._request(
            "post", f"/referral/register-wallet/{self.ref_code}",
            {"walletAddress": self.address},
        )
        if outcome.body is not None:
            self.log.info("Wallet registered", outcome.body)
            return True
        self.log.error("Wallet registration failed", self.address)
        return False

    # ------------------------------------------------------------------
    # Light node
    # ------------------------------------------------------------------

    async def connect_node(self) -> bool:
        return await self.safe_operation("Node start", self._connect_node)

    async def _connect_node(self) -> bool:
        outcome = await self._request(
            "post", f"/light-node/node-action/{self.address}/start",
            self._signed_payload(ACTIVATION_TEMPLATE),
            extra_headers={'Content-Type': 'application/json'},
        )
        body = outcome.body
        if isinstance(body, dict) and body.get("message") == NODE_ACTION_SUCCESS:
            self.log.success("Node connected", body)
            return True
        self.log.info("Failed to connect node", body if body is not None else "")
        return False

    async def stop_node(self) -> bool:
        return await self.safe_operation("Node stop", self._stop_node)

    async def _stop_node(self) -> bool:
        outcome = await self._request(
            "post", f"/light-node/node-action/{self.address}/stop",
            self._signed_payload(DEACTIVATION_TEMPLATE),
        )
        if outcome.body is not None:
            self.log.info("Stopped node and claimed points:", outcome.body)
            return True
        self.log.error("Failed to stop node and claim points")
        return False

    async def daily_check_in(self) -> bool:
        return await self.safe_operation("Daily check-in", self._daily_check_in)

    async def _daily_check_in(self) -> bool:
        payload = self._signed_payload(DAILY_CLAIM_TEMPLATE)
        payload["walletAddress"] = self.address
        outcome = await self._request(
            "post", "/light-node/claim-node-points", payload,
            extra_headers={'Content-Type': 'application/json'},
        )
        body = outcome.body
        body_status = body.get("statusCode") if isinstance(body, dict) else None
        if ALREADY_CLAIMED_STATUS in (outcome.status, body_status):
            message = body.get("message") if isinstance(body, dict) else None
            self.log.info(
                "Daily points already claimed, come back after",
                parse_cooldown(message),
            )
            return True
        if body is not None:
            self.log.success("Daily check-in complete", body)
            return True
        self.log.error("Daily check-in failed")
        return False

    async def check_node_status(self) -> bool:
        return await self.safe_operation("Node status check", self._check_node_status)

    async def _check_node_status(self) -> bool:
        outcome = await self._request(
            "get", f"/light-node/node-status/{self.address}",
        )
        if _data(outcome.body).get("startTimestamp") is not None:
            self.log.info("Node status: running", outcome.body)
            return True
        self.log.error("Node is not running, trying to start it...")
        return False

    async def check_node_points(self) -> bool:
        return await self.safe_operation("Points check", self._check_node_points)

    async def _check_node_points(self) -> bool:
        outcome = await self._request(
            "get", f"/referral/wallet-details/{self.address}",
        )
        if outcome.body is not None:
            self.last_points = _data(outcome.body).get("nodePoints") or 0
            self.log.info(f"{self.address} total points:", self.last_points)
            return True
        self.log.error("Failed to fetch total points...")
        return False

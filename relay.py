"""
Block engine JSON-RPC client.

Thin wrappers over sendTransaction, sendBundle, getBundleStatuses,
getInflightBundleStatuses and getTipAccounts, plus local tip account
selection. Endpoints and tip accounts are static data that can be
replaced through the constructor.
"""

import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Union

import aiohttp

from exceptions import SubmissionError
from rpc import JsonRpcClient, RpcResponse
from validators import (
    validate_encoded_transactions,
    validate_encoding,
    validate_tip_accounts,
    validate_url,
)

logger = logging.getLogger(__name__)


class BlockEngineUrl(str, Enum):
    MAINNET = "https://mainnet.block-engine.jito.wtf/api/v1"
    AMSTERDAM = "https://amsterdam.mainnet.block-engine.jito.wtf/api/v1"
    DUBLIN = "https://dublin.mainnet.block-engine.jito.wtf/api/v1"
    FRANKFURT = "https://frankfurt.mainnet.block-engine.jito.wtf/api/v1"
    LONDON = "https://london.mainnet.block-engine.jito.wtf/api/v1"
    NEW_YORK = "https://ny.mainnet.block-engine.jito.wtf/api/v1"
    SALT_LAKE_CITY = "https://slc.mainnet.block-engine.jito.wtf/api/v1"
    SINGAPORE = "https://singapore.mainnet.block-engine.jito.wtf/api/v1"
    TOKYO = "https://tokyo.mainnet.block-engine.jito.wtf/api/v1"

    TESTNET = "https://testnet.block-engine.jito.wtf/api/v1"
    TESTNET_DALLAS = "https://dallas.testnet.block-engine.jito.wtf/api/v1"
    TESTNET_NEW_YORK = "https://ny.testnet.block-engine.jito.wtf/api/v1"


TIP_ACCOUNTS = [
    "96gYZGLnJYVFmbjzopPSU6QiEV5fGqZNyN9nmNhvrZU5",
    "HFqU5x63VTqvQss8hp11i4wVV8bD44PvwucfZ2bU7gRe",
    "Cw8CFyM9FkoMi7K7Crf6HNQqf4uEMzpKw6QNghXLvLkY",
    "ADaUMid9yfUytqMBgopwjb2DTLSokTSzL1zt6iGPaS49",
    "DfXygSm4jCyNCybVYYK6DwvWqjKee8pbDmJGcLWNDXjh",
    "ADuUkR4vqLUMWXxW9gh6D6L8pMSawimctcNZ5pGwDcEt",
    "DttWaMuVvTiduZRnguLF7jNxTgiMBZ1hyAumKUiL2KRL",
    "3AVi9Tg9Uo68tJfuvoKvqKNWKkC5wPdSSdeBnizKZ6jT",
]

BUNDLE_EXPLORER_URL = "https://explorer.jito.wtf/bundle"
TRANSACTION_EXPLORER_URL = "https://solscan.io/tx"

DEFAULT_TIMEOUT = 30


@dataclass
class BundleOptions:
    encoding: str = "base64"


def bundle_explorer_url(bundle_id: str) -> str:
    return f"{BUNDLE_EXPLORER_URL}/{bundle_id}"


def transaction_explorer_url(signature: str) -> str:
    return f"{TRANSACTION_EXPLORER_URL}/{signature}"


class RelayClient(JsonRpcClient):
    """
    Block engine client.

    Example:
        async with RelayClient(BlockEngineUrl.NEW_YORK, uuid=my_uuid) as relay:
            bundle_id = await relay.send_bundle([tx1_b64, tx2_b64])
    """

    def __init__(
        self,
        block_engine_url: Union[BlockEngineUrl, str] = BlockEngineUrl.MAINNET,
        uuid: Optional[str] = None,
        tip_accounts: Optional[Sequence[str]] = None,
        rng: Optional[random.Random] = None,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None
    ):
        headers = {"x-jito-auth": uuid} if uuid else None
        super().__init__(timeout=timeout, headers=headers, session=session)

        base = block_engine_url.value if isinstance(block_engine_url, BlockEngineUrl) else block_engine_url
        self.block_engine_url = validate_url(base, field_name="block_engine_url").rstrip("/")
        self.uuid = uuid
        self.tip_accounts = (
            validate_tip_accounts(tip_accounts) if tip_accounts is not None else list(TIP_ACCOUNTS)
        )
        self._rng = rng or random.Random()

    @property
    def bundles_url(self) -> str:
        return f"{self.block_engine_url}/bundles"

    @property
    def transactions_url(self) -> str:
        return f"{self.block_engine_url}/transactions"

    @property
    def inflight_statuses_url(self) -> str:
        return f"{self.block_engine_url}/getInflightBundleStatuses"

    def get_random_tip_account(self) -> str:
        """Pick a tip account uniformly at random. No network call."""
        return self._rng.choice(self.tip_accounts)

    async def send_transaction(
        self,
        transaction: str,
        encoding: str = "base64",
        bundle_only: bool = False
    ) -> RpcResponse:
        """
        Submit one encoded transaction.

        ``bundle_only`` routes it through the bundle lane on the relay side;
        the response shape is the same either way.

        Returns:
            RpcResponse whose ``result`` is the transaction signature, or
            whose ``error`` holds the relay's error object
        """
        encoding = validate_encoding(encoding)
        validate_encoded_transactions([transaction], field_name="transaction")

        params: List[Any] = [transaction, {"encoding": "base64"}] if encoding == "base64" else [transaction]

        query: Dict[str, str] = {}
        if bundle_only:
            query["bundleOnly"] = "true"
        if self.uuid:
            query["uuid"] = self.uuid

        response = await self.call(self.transactions_url, "sendTransaction", params, query=query or None)

        if response.error is not None:
            logger.warning(f"sendTransaction rejected: {response.error.message}")
        else:
            logger.info(f"Transaction sent: {response.result}")
        return response

    async def send_bundle(
        self,
        transactions: Sequence[str],
        options: Optional[BundleOptions] = None
    ) -> str:
        """
        Submit a bundle and return the relay-issued bundle id.

        Raises:
            BundleValidationError: If the bundle is empty or has more than 5 transactions
            TransportError: On non-2xx status or connection failure
            SubmissionError: If the relay returned no bundle id
        """
        options = options or BundleOptions()
        encoding = validate_encoding(options.encoding)
        encoded = validate_encoded_transactions(transactions)

        response = await self.call(
            self.bundles_url, "sendBundle", [encoded, {"encoding": encoding}]
        )

        if not response.result:
            error = response.error
            raise SubmissionError(
                f"Bundle submission failed: {error.message if error else 'no bundle id returned'}",
                rpc_code=error.code if error else None,
                rpc_message=error.message if error else None,
                method="sendBundle"
            )

        bundle_id = str(response.result)
        logger.info(f"Bundle submitted: {bundle_id} ({len(encoded)} transactions)")
        return bundle_id

    async def get_bundle_statuses(self, bundle_ids: Sequence[Sequence[str]]) -> RpcResponse:
        """Final statuses for landed bundles; ``bundle_ids`` is nested, e.g. ``[[bundle_id]]``."""
        return await self.call(self.bundles_url, "getBundleStatuses", [list(ids) for ids in bundle_ids])

    async def get_inflight_bundle_statuses(self, bundle_ids: Sequence[Sequence[str]]) -> RpcResponse:
        """Inflight statuses (Pending / Landed / Failed / Invalid) for recent bundles."""
        return await self.call(
            self.inflight_statuses_url, "getInflightBundleStatuses", [list(ids) for ids in bundle_ids]
        )

    async def get_tip_accounts(self) -> List[str]:
        response = await self.call(self.bundles_url, "getTipAccounts", [])
        result = response.raise_for_error("getTipAccounts")
        return [str(account) for account in (result or [])]


__all__ = [
    "BlockEngineUrl",
    "TIP_ACCOUNTS",
    "BundleOptions",
    "RelayClient",
    "bundle_explorer_url",
    "transaction_explorer_url",
]

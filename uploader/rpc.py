from typing import Optional, Protocol, Sequence

from loguru import logger
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Confirmed
from solana.rpc.types import TxOpts
from solders.hash import Hash
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import Transaction
from solders.transaction_status import TransactionConfirmationStatus

from uploader.config import MAX_GET_SIGNATURE_STATUSES_QUERY_ITEMS
from uploader.models import Lamports
from uploader.utils import chunks

CONFIRMED_STATUSES = (
    TransactionConfirmationStatus.Confirmed,
    TransactionConfirmationStatus.Finalized,
)


class LedgerClient(Protocol):
    """Everything the upload needs from a Solana RPC node"""

    async def get_balance(self, pubkey: Pubkey) -> Lamports:
        ...

    async def get_account_data(self, pubkey: Pubkey) -> Optional[bytes]:
        ...

    async def get_latest_blockhash(self) -> Hash:
        ...

    async def send_transaction(self, transaction: Transaction) -> Signature:
        ...

    async def is_confirmed(self, signatures: Sequence[Signature]) -> list[bool]:
        ...


class RpcLedgerClient:
    """
    `LedgerClient` backed by solana-py's `AsyncClient` at confirmed commitment.
    Use as an async context manager so the underlying http session is closed.
    """

    def __init__(self, rpc_url: str):
        self.rpc_url = rpc_url
        self._client = AsyncClient(rpc_url, commitment=Confirmed)

    async def __aenter__(self) -> "RpcLedgerClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def close(self) -> None:
        await self._client.close()

    async def get_balance(self, pubkey: Pubkey) -> Lamports:
        resp = await self._client.get_balance(pubkey)
        return resp.value

    async def get_account_data(self, pubkey: Pubkey) -> Optional[bytes]:
        resp = await self._client.get_account_info(pubkey)
        if resp.value is None:
            return None
        return bytes(resp.value.data)

    async def get_latest_blockhash(self) -> Hash:
        resp = await self._client.get_latest_blockhash()
        logger.debug(
            f"blockhash {resp.value.blockhash} valid until block height {resp.value.last_valid_block_height}"
        )
        return resp.value.blockhash

    async def send_transaction(self, transaction: Transaction) -> Signature:
        # preflight is skipped: resubmissions of a landed tx would fail simulation
        resp = await self._client.send_raw_transaction(
            bytes(transaction),
            opts=TxOpts(skip_preflight=True, skip_confirmation=True),
        )
        return resp.value

    async def is_confirmed(self, signatures: Sequence[Signature]) -> list[bool]:
        confirmed: list[bool] = []
        for chunk in chunks(signatures, MAX_GET_SIGNATURE_STATUSES_QUERY_ITEMS):
            resp = await self._client.get_signature_statuses(list(chunk))
            for status in resp.value:
                confirmed.append(
                    status is not None
                    and status.err is None
                    and status.confirmation_status in CONFIRMED_STATUSES
                )
        return confirmed

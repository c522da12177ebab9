import asyncio
import time
from typing import Optional, Sequence

from loguru import logger
from solana.exceptions import SolanaRpcException
from solana.rpc.core import RPCException
from solders.signature import Signature
from solders.transaction import Transaction

from uploader.config import RETRY_INTERVAL
from uploader.models import SendResult
from uploader.rpc import LedgerClient


async def send_once(
    client: LedgerClient, signature: Signature, transaction: Transaction
) -> None:
    """
    Submit a single transaction. Failures are logged and absorbed,
    the transaction stays outstanding and is resent next round
    """
    try:
        await client.send_transaction(transaction)
    except (RPCException, SolanaRpcException, OSError) as e:
        logger.warning(f"failed to send {signature}: {e}")


async def send_transactions_with_retry(
    client: LedgerClient,
    transactions: Sequence[Transaction],
    max_duration: float,
    retry_interval: float = RETRY_INTERVAL,
    started_at: Optional[float] = None,
) -> SendResult:
    """
    Keep resubmitting every unconfirmed transaction until all have confirmed or
    `max_duration` seconds have passed since `started_at`.

    All transactions share one blockhash, so past the deadline nothing outstanding can land
    and no further rounds are started.

    :param `client`: ledger client used for sends and status checks
    :param `transactions`: fully signed transactions, one per tree
    :param `max_duration`: seconds the blockhash is assumed to stay valid
    :param `retry_interval`: pause between a round's sends and its status check
    :param `started_at`: `time.monotonic()` when the blockhash was fetched, defaults to now
    """
    start = time.monotonic() if started_at is None else started_at
    deadline = start + max_duration

    signatures = [tx.signatures[0] for tx in transactions]
    outstanding: dict[Signature, Transaction] = dict(zip(signatures, transactions))

    rounds = 0
    while outstanding and time.monotonic() < deadline:
        rounds += 1
        logger.info(f"round {rounds}: sending {len(outstanding)} transactions")

        try:
            await asyncio.wait_for(
                asyncio.gather(
                    *(send_once(client, sig, tx) for sig, tx in outstanding.items())
                ),
                timeout=max(deadline - time.monotonic(), 0),
            )
        except asyncio.TimeoutError:
            logger.warning(f"round {rounds}: sends still in flight at deadline")

        await asyncio.sleep(max(min(retry_interval, deadline - time.monotonic()), 0))

        pending = list(outstanding)
        try:
            statuses = await asyncio.wait_for(
                client.is_confirmed(pending),
                timeout=max(deadline - time.monotonic(), retry_interval),
            )
        except asyncio.TimeoutError:
            logger.warning(f"round {rounds}: signature statuses timed out")
            statuses = [False] * len(pending)
        except (RPCException, SolanaRpcException, OSError) as e:
            logger.warning(f"round {rounds}: failed to fetch signature statuses: {e}")
            statuses = [False] * len(pending)
        for sig, confirmed in zip(pending, statuses):
            if confirmed:
                del outstanding[sig]

        logger.info(
            f"round {rounds}: {len(signatures) - len(outstanding)}/{len(signatures)} confirmed"
        )

    for sig in outstanding:
        logger.error(f"transaction {sig} did not confirm before the blockhash expired")

    return SendResult(
        confirmed=[sig for sig in signatures if sig not in outstanding],
        unconfirmed=[sig for sig in signatures if sig in outstanding],
        rounds=rounds,
    )

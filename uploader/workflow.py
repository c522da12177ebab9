import asyncio
import time
from enum import Enum

from loguru import logger
from solders.hash import Hash
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.transaction import Transaction

from uploader.config import (
    DEFAULT_TARGET_LAMPORTS_PER_SIGNATURE,
    MAX_RETRY_DURATION,
    RETRY_INTERVAL,
    load_keypair,
    load_tree_collection,
)
from uploader.errors import (
    AccountNotFoundError,
    InsufficientFundsError,
    UnconfirmedTransactionsError,
)
from uploader.models import (
    GeneratedMerkleTree,
    GeneratedMerkleTreeCollection,
    Lamports,
    SolanaAddress,
    TipDistributionAccount,
    UploadSummary,
)
from uploader.program import (
    UploadMerkleRootAccounts,
    UploadMerkleRootArgs,
    derive_config_address,
    upload_merkle_root_ix,
)
from uploader.rpc import LedgerClient, RpcLedgerClient
from uploader.sender import send_transactions_with_retry
from uploader.utils import lamports_to_sol_ceil


class RootStatus(str, Enum):
    """
    :state MISSING: no root has been uploaded
    :state STALE: a different root was uploaded and nothing has been claimed against it
    :state CURRENT: the same root is already on chain
    :state CLAIMED: funds were claimed against the on-chain root, it must never be replaced
    """

    MISSING = "missing"
    STALE = "stale"
    CURRENT = "current"
    CLAIMED = "claimed"


NEEDS_UPLOAD = (RootStatus.MISSING, RootStatus.STALE)


def select_trees(
    collection: GeneratedMerkleTreeCollection, signer: SolanaAddress
) -> list[GeneratedMerkleTree]:
    """Trees the signer is allowed to upload, in collection order"""
    return [
        tree
        for tree in collection.generated_merkle_trees
        if tree.merkle_root_upload_authority == signer
    ]


def check_funds(
    num_trees: int,
    balance: Lamports,
    signer: SolanaAddress,
    lamports_per_signature: Lamports = DEFAULT_TARGET_LAMPORTS_PER_SIGNATURE,
) -> None:
    """
    Heuristic to make sure we have enough funds to cover execution, assumes all trees need updating.
    Raises before anything is sent so we never run dry halfway through a batch.
    """
    desired_balance = num_trees * lamports_per_signature
    if balance < desired_balance:
        sol_to_deposit = lamports_to_sol_ceil(desired_balance - balance)
        raise InsufficientFundsError(
            f"Expected to have at least {desired_balance} lamports in {signer}, "
            f"current balance is {balance} lamports, deposit {sol_to_deposit} SOL to continue."
        )


def root_status(account: TipDistributionAccount, tree: GeneratedMerkleTree) -> RootStatus:
    merkle_root = account.merkle_root
    if merkle_root is None:
        return RootStatus.MISSING
    if merkle_root.total_funds_claimed != 0:
        return RootStatus.CLAIMED
    if merkle_root.root != tree.merkle_root:
        return RootStatus.STALE
    return RootStatus.CURRENT


def needs_upload(account: TipDistributionAccount, tree: GeneratedMerkleTree) -> bool:
    return root_status(account, tree) in NEEDS_UPLOAD


async def fetch_tip_distribution_account(
    client: LedgerClient, tree: GeneratedMerkleTree
) -> TipDistributionAccount:
    data = await client.get_account_data(tree.tip_distribution_pubkey)
    if data is None:
        raise AccountNotFoundError(
            f"TipDistributionAccount {tree.tip_distribution_account} not found"
        )
    return TipDistributionAccount.try_deserialize(data)


async def find_trees_needing_update(
    client: LedgerClient, trees: list[GeneratedMerkleTree]
) -> list[GeneratedMerkleTree]:
    """
    Fetch each tree's TipDistributionAccount, one at a time, and keep the trees
    whose on-chain root is missing or stale. Order is preserved.
    """
    trees_needing_update: list[GeneratedMerkleTree] = []
    for tree in trees:
        account = await fetch_tip_distribution_account(client, tree)
        status = root_status(account, tree)
        logger.debug(f"{tree.tip_distribution_account}: {status.value}")
        if status in NEEDS_UPLOAD:
            trees_needing_update.append(tree)
    return trees_needing_update


def build_transactions(
    program_id: Pubkey,
    trees: list[GeneratedMerkleTree],
    keypair: Keypair,
    recent_blockhash: Hash,
) -> list[Transaction]:
    """One signed `upload_merkle_root` transaction per tree, all stamped with the same blockhash"""
    config = derive_config_address(program_id)
    signer = keypair.pubkey()

    transactions = []
    for tree in trees:
        ix = upload_merkle_root_ix(
            program_id,
            UploadMerkleRootArgs(
                root=tree.merkle_root,
                max_total_claim=tree.max_total_claim,
                max_num_nodes=tree.max_num_nodes,
            ),
            UploadMerkleRootAccounts(
                config=config,
                merkle_root_upload_authority=signer,
                tip_distribution_account=tree.tip_distribution_pubkey,
            ),
        )
        transactions.append(
            Transaction.new_signed_with_payer([ix], signer, [keypair], recent_blockhash)
        )
    return transactions


async def run_upload(
    client: LedgerClient,
    collection: GeneratedMerkleTreeCollection,
    keypair: Keypair,
    program_id: Pubkey,
    max_retry_duration: float = MAX_RETRY_DURATION,
    retry_interval: float = RETRY_INTERVAL,
) -> UploadSummary:
    """
    Upload every root the signer owns that is missing or stale on chain.
    Nothing is sent unless the funds check passes and every account decodes.
    """
    signer = str(keypair.pubkey())

    recent_blockhash = await client.get_latest_blockhash()
    started_at = time.monotonic()

    trees = select_trees(collection, signer)
    logger.info(f"num trees to upload: {len(trees)}")

    balance = await client.get_balance(keypair.pubkey())
    check_funds(len(trees), balance, signer)

    trees_needing_update = await find_trees_needing_update(client, trees)
    logger.info(f"num trees need uploading: {len(trees_needing_update)}")

    transactions = build_transactions(
        program_id, trees_needing_update, keypair, recent_blockhash
    )
    result = await send_transactions_with_retry(
        client,
        transactions,
        max_retry_duration,
        retry_interval=retry_interval,
        started_at=started_at,
    )

    updating = {tree.tip_distribution_account for tree in trees_needing_update}
    summary = UploadSummary(
        num_trees=len(collection.generated_merkle_trees),
        num_owned=len(trees),
        num_needing_update=len(trees_needing_update),
        num_submitted=len(transactions),
        num_confirmed=len(result.confirmed),
        num_failed=len(result.unconfirmed),
        confirmed_signatures=[str(sig) for sig in result.confirmed],
        failed_signatures=[str(sig) for sig in result.unconfirmed],
        skipped_accounts=[
            tree.tip_distribution_account
            for tree in trees
            if tree.tip_distribution_account not in updating
        ],
    )
    logger.info(
        f"uploaded {summary.num_confirmed}/{summary.num_submitted} merkle roots, "
        f"{len(summary.skipped_accounts)} already up to date"
    )
    return summary


async def upload_with_rpc(
    collection: GeneratedMerkleTreeCollection,
    keypair: Keypair,
    rpc_url: str,
    program_id: Pubkey,
    max_retry_duration: float,
) -> UploadSummary:
    async with RpcLedgerClient(rpc_url) as client:
        return await run_upload(
            client, collection, keypair, program_id, max_retry_duration
        )


def upload_merkle_roots(
    merkle_root_path: str,
    keypair_path: str,
    rpc_url: str,
    program_id: str,
    max_retry_duration: float = MAX_RETRY_DURATION,
) -> UploadSummary:
    """
    Entry point: load inputs, then reconcile and upload against `rpc_url`.
    Raises `UnconfirmedTransactionsError` if anything failed to land before the blockhash expired.
    """
    collection = load_tree_collection(merkle_root_path)
    keypair = load_keypair(keypair_path)

    summary = asyncio.run(
        upload_with_rpc(
            collection,
            keypair,
            rpc_url,
            Pubkey.from_string(program_id),
            max_retry_duration,
        )
    )
    if not summary.succeeded:
        raise UnconfirmedTransactionsError(summary)
    return summary

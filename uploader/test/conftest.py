import os
import struct
from pathlib import Path
from typing import Optional, Sequence

import pytest
from solana.rpc.core import RPCException
from solders.hash import Hash
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import Transaction

from uploader.models import (
    GeneratedMerkleTree,
    GeneratedMerkleTreeCollection,
    MerkleRoot,
    TipDistributionAccount,
)
from uploader.models.TipDistribution import (
    MERKLE_ROOT_LAYOUT,
    PUBKEYS_LAYOUT,
    TIP_DISTRIBUTION_TAIL_LAYOUT,
)

STUBS = Path(__file__).parent / "stubs"

LIVE_CALLS_DISABLED = os.environ.get("PYTEST_LIVE_CALLS_ENABLED") != "TRUE"
SKIP_REASON = (
    "API Calls disabled: set PYTEST_LIVE_CALLS_ENABLED=TRUE in .env to run this test"
)


def encode_account(account: TipDistributionAccount) -> bytes:
    """Borsh encode an account the way the program stores it"""
    out = account.discriminator()
    out += PUBKEYS_LAYOUT.pack(
        bytes(Pubkey.from_string(account.validator_vote_account)),
        bytes(Pubkey.from_string(account.merkle_root_upload_authority)),
    )
    root = account.merkle_root
    if root is None:
        out += b"\x00"
    else:
        out += b"\x01" + MERKLE_ROOT_LAYOUT.pack(
            root.root,
            root.max_total_claim,
            root.max_num_nodes,
            root.total_funds_claimed,
            root.num_nodes_claimed,
        )
    out += TIP_DISTRIBUTION_TAIL_LAYOUT.pack(
        account.epoch_created_at,
        account.validator_commission_bps,
        account.expires_at,
        account.bump,
    )
    return out


def make_tree(
    authority: Pubkey,
    tip_distribution_account: Optional[Pubkey] = None,
    root: bytes = b"\x01" * 32,
    max_total_claim: int = 1_000_000,
    max_num_nodes: int = 10,
) -> GeneratedMerkleTree:
    return GeneratedMerkleTree(
        tip_distribution_account=str(tip_distribution_account or Pubkey.new_unique()),
        merkle_root_upload_authority=str(authority),
        merkle_root=list(root),
        max_total_claim=max_total_claim,
        max_num_nodes=max_num_nodes,
    )


def make_account(
    authority: Pubkey,
    root: Optional[bytes] = None,
    total_funds_claimed: int = 0,
) -> TipDistributionAccount:
    merkle_root = None
    if root is not None:
        merkle_root = MerkleRoot(
            root=root,
            max_total_claim=1_000_000,
            max_num_nodes=10,
            total_funds_claimed=total_funds_claimed,
            num_nodes_claimed=1 if total_funds_claimed else 0,
        )
    return TipDistributionAccount(
        validator_vote_account=str(Pubkey.new_unique()),
        merkle_root_upload_authority=str(authority),
        merkle_root=merkle_root,
        epoch_created_at=500,
        validator_commission_bps=800,
        expires_at=510,
        bump=254,
    )


class FakeLedgerClient:
    """
    In-memory ledger. A sent `upload_merkle_root` transaction lands after
    `drops_per_tx` silently dropped sends, and landing writes the new root to the account
    """

    def __init__(
        self,
        balance: int = 10**9,
        accounts: Optional[dict[Pubkey, TipDistributionAccount]] = None,
        drops_per_tx: int = 0,
        never_land: Sequence[Pubkey] = (),
        send_errors: int = 0,
    ):
        self.balance = balance
        self.accounts: dict[Pubkey, bytes] = {
            k: encode_account(v) for k, v in (accounts or {}).items()
        }
        self.blockhash = Hash.new_unique()
        self.drops_per_tx = drops_per_tx
        self.never_land = set(never_land)
        self.send_errors = send_errors
        self.sent: list[Signature] = []
        self.landed: set[Signature] = set()
        self.account_fetches: list[Pubkey] = []

    async def __aenter__(self) -> "FakeLedgerClient":
        return self

    async def __aexit__(self, *exc) -> None:
        pass

    async def get_balance(self, pubkey: Pubkey) -> int:
        return self.balance

    async def get_account_data(self, pubkey: Pubkey) -> Optional[bytes]:
        self.account_fetches.append(pubkey)
        return self.accounts.get(pubkey)

    async def get_latest_blockhash(self) -> Hash:
        return self.blockhash

    async def send_transaction(self, transaction: Transaction) -> Signature:
        signature = transaction.signatures[0]
        self.sent.append(signature)
        if self.send_errors > 0:
            self.send_errors -= 1
            raise RPCException("node is behind")
        target = self.target_account(transaction)
        if target in self.never_land or signature in self.landed:
            return signature
        if self.sent.count(signature) > self.drops_per_tx:
            self.land(target, transaction)
            self.landed.add(signature)
        return signature

    async def is_confirmed(self, signatures: Sequence[Signature]) -> list[bool]:
        return [sig in self.landed for sig in signatures]

    @staticmethod
    def target_account(transaction: Transaction) -> Pubkey:
        ix = transaction.message.instructions[0]
        return transaction.message.account_keys[ix.accounts[1]]

    def land(self, target: Pubkey, transaction: Transaction) -> None:
        data = transaction.message.instructions[0].data
        root, max_total_claim, max_num_nodes = struct.unpack("<32sQQ", data[8:])
        account = TipDistributionAccount.try_deserialize(self.accounts[target])
        account.merkle_root = MerkleRoot(
            root=root,
            max_total_claim=max_total_claim,
            max_num_nodes=max_num_nodes,
            total_funds_claimed=0,
            num_nodes_claimed=0,
        )
        self.accounts[target] = encode_account(account)


@pytest.fixture
def keypair() -> Keypair:
    return Keypair()


@pytest.fixture
def signer(keypair: Keypair) -> Pubkey:
    return keypair.pubkey()


@pytest.fixture
def program_id() -> Pubkey:
    return Pubkey.from_string("4R3gSG8BpU4t19KYj8CfnbtRpnT8gtk4dvTHxVRwc2r7")


@pytest.fixture
def collection(signer: Pubkey) -> GeneratedMerkleTreeCollection:
    """Three trees, the first two owned by the signer"""
    return GeneratedMerkleTreeCollection(
        generated_merkle_trees=[
            make_tree(signer, root=b"\x01" * 32),
            make_tree(signer, root=b"\x02" * 32),
            make_tree(Pubkey.new_unique(), root=b"\x03" * 32),
        ],
        bank_hash="5Hjs9oQp1q7m2M9xV9o3kE5L4h6FzJ8kNLq7dVYX6M3a",
        epoch=500,
        slot=216_000_000,
    )

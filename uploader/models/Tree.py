from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_serializer, field_validator
from solders.hash import Hash, ParseHashError
from solders.pubkey import Pubkey

from uploader.models.types import SolanaAddress, U64


def to_pubkey_string(value: Any) -> str:
    """Round trip through `Pubkey` so every address is canonical base58"""
    if not isinstance(value, str):
        raise ValueError(f"Expected a base58 address, got {value!r}")
    return str(Pubkey.from_string(value))


def to_hash_bytes(value: Any) -> bytes:
    """
    Accept a 32 byte digest either as a list of ints (how serde writes a `Hash`),
    a base58 string, or raw bytes
    """
    if isinstance(value, str):
        try:
            return bytes(Hash.from_string(value))
        except ParseHashError as e:
            raise ValueError(f"Invalid base58 hash {value!r}: {e}") from e
    if isinstance(value, list):
        if not all(isinstance(b, int) and 0 <= b <= 255 for b in value):
            raise ValueError("Hash bytes must be integers in range 0-255")
        value = bytes(value)
    if not isinstance(value, bytes) or len(value) != 32:
        raise ValueError("Hash must be exactly 32 bytes")
    return value


class TreeNode(BaseModel):
    """
    A single claimant leaf. Carried through untouched, proofs are not verified here.
    """

    model_config = ConfigDict(extra="allow")

    claimant: SolanaAddress
    amount: U64
    proof: Optional[list[list[int]]] = None

    @field_validator("claimant", mode="before")
    @classmethod
    def checksum_claimant(cls, value: Any) -> str:
        return to_pubkey_string(value)


class GeneratedMerkleTree(BaseModel):
    """
    One reward distribution tree, targeting exactly one on-chain TipDistributionAccount
    :param `tip_distribution_account`: the account the root will be uploaded to
    :param `merkle_root_upload_authority`: only this key may publish the root
    :param `merkle_root`: 32 byte root of the tree
    :param `max_total_claim`: cap on the total lamports claimable against the root
    :param `max_num_nodes`: cap on the number of leaves that can claim
    """

    tip_distribution_account: SolanaAddress
    merkle_root_upload_authority: SolanaAddress
    merkle_root: bytes
    tree_nodes: list[TreeNode] = []
    max_total_claim: U64
    max_num_nodes: U64

    @field_validator(
        "tip_distribution_account", "merkle_root_upload_authority", mode="before"
    )
    @classmethod
    def checksum_address(cls, value: Any) -> str:
        return to_pubkey_string(value)

    @field_validator("merkle_root", mode="before")
    @classmethod
    def parse_root(cls, value: Any) -> bytes:
        return to_hash_bytes(value)

    @field_serializer("merkle_root")
    def serialize_root(self, root: bytes) -> list[int]:
        # same shape serde writes for a `Hash`
        return list(root)

    @property
    def tip_distribution_pubkey(self) -> Pubkey:
        return Pubkey.from_string(self.tip_distribution_account)


class GeneratedMerkleTreeCollection(BaseModel):
    """The full output of the tree generation step for a single epoch"""

    generated_merkle_trees: list[GeneratedMerkleTree]
    bank_hash: Optional[str] = None
    epoch: Optional[U64] = None
    slot: Optional[U64] = None

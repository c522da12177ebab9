"""
On-chain state of the tip distribution program.

Accounts are Anchor accounts: an 8 byte discriminator followed by borsh encoded fields.
Integers are little endian, `Option<T>` is a 1 byte tag (0 = None, 1 = Some) followed by `T`.
"""

from __future__ import annotations

import hashlib
import struct
from typing import Optional

from pydantic import BaseModel
from solders.pubkey import Pubkey

from uploader.errors import AccountDeserializationError
from uploader.models.types import SolanaAddress


def account_discriminator(name: str) -> bytes:
    return hashlib.sha256(f"account:{name}".encode()).digest()[:8]


# validator_vote_account, merkle_root_upload_authority
PUBKEYS_LAYOUT = struct.Struct("<32s32s")
# root, max_total_claim, max_num_nodes, total_funds_claimed, num_nodes_claimed
MERKLE_ROOT_LAYOUT = struct.Struct("<32sQQQQ")
# epoch_created_at, validator_commission_bps, expires_at, bump
TIP_DISTRIBUTION_TAIL_LAYOUT = struct.Struct("<QHQB")


class MerkleRoot(BaseModel):
    """
    The root published for a TipDistributionAccount along with claim progress
    :param `total_funds_claimed`: once non-zero the root is final, claims have been paid against it
    """

    root: bytes
    max_total_claim: int
    max_num_nodes: int
    total_funds_claimed: int
    num_nodes_claimed: int


class TipDistributionAccount(BaseModel):
    validator_vote_account: SolanaAddress
    merkle_root_upload_authority: SolanaAddress
    merkle_root: Optional[MerkleRoot] = None
    epoch_created_at: int
    validator_commission_bps: int
    expires_at: int
    bump: int

    @staticmethod
    def discriminator() -> bytes:
        return account_discriminator("TipDistributionAccount")

    @staticmethod
    def try_deserialize(data: bytes) -> TipDistributionAccount:
        """Decode raw account data, raising `AccountDeserializationError` on anything unexpected"""
        if data[:8] != TipDistributionAccount.discriminator():
            raise AccountDeserializationError(
                "Account discriminator does not match TipDistributionAccount"
            )

        try:
            offset = 8
            vote_account_bytes, authority_bytes = PUBKEYS_LAYOUT.unpack_from(
                data, offset
            )
            offset += PUBKEYS_LAYOUT.size
            validator_vote_account = Pubkey.from_bytes(vote_account_bytes)
            upload_authority = Pubkey.from_bytes(authority_bytes)

            (tag,) = struct.unpack_from("<B", data, offset)
            offset += 1
            merkle_root = None
            if tag == 1:
                fields = MERKLE_ROOT_LAYOUT.unpack_from(data, offset)
                offset += MERKLE_ROOT_LAYOUT.size
                merkle_root = MerkleRoot(
                    root=fields[0],
                    max_total_claim=fields[1],
                    max_num_nodes=fields[2],
                    total_funds_claimed=fields[3],
                    num_nodes_claimed=fields[4],
                )
            elif tag != 0:
                raise AccountDeserializationError(f"Invalid Option tag {tag}")

            (
                epoch_created_at,
                validator_commission_bps,
                expires_at,
                bump,
            ) = TIP_DISTRIBUTION_TAIL_LAYOUT.unpack_from(data, offset)
        except (struct.error, ValueError) as e:
            raise AccountDeserializationError(
                f"Failed to deserialize TipDistributionAccount: {e}"
            ) from e

        return TipDistributionAccount(
            validator_vote_account=str(validator_vote_account),
            merkle_root_upload_authority=str(upload_authority),
            merkle_root=merkle_root,
            epoch_created_at=epoch_created_at,
            validator_commission_bps=validator_commission_bps,
            expires_at=expires_at,
            bump=bump,
        )


"""
Minimal client side SDK for the tip distribution program's `upload_merkle_root` instruction
"""

import hashlib
import struct
from typing import NamedTuple

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey

CONFIG_SEED = b"CONFIG_ACCOUNT"


def instruction_discriminator(name: str) -> bytes:
    return hashlib.sha256(f"global:{name}".encode()).digest()[:8]


class UploadMerkleRootArgs(NamedTuple):
    root: bytes
    max_total_claim: int
    max_num_nodes: int

    def data(self) -> bytes:
        if len(self.root) != 32:
            raise ValueError("Merkle root must be 32 bytes")
        return instruction_discriminator("upload_merkle_root") + struct.pack(
            "<32sQQ", self.root, self.max_total_claim, self.max_num_nodes
        )


class UploadMerkleRootAccounts(NamedTuple):
    config: Pubkey
    merkle_root_upload_authority: Pubkey
    tip_distribution_account: Pubkey


def derive_config_address(program_id: Pubkey) -> Pubkey:
    """The program's singleton Config account, a PDA of `CONFIG_SEED`"""
    address, _bump = Pubkey.find_program_address([CONFIG_SEED], program_id)
    return address


def upload_merkle_root_ix(
    program_id: Pubkey, args: UploadMerkleRootArgs, accounts: UploadMerkleRootAccounts
) -> Instruction:
    return Instruction(
        program_id,
        args.data(),
        [
            AccountMeta(accounts.config, is_signer=False, is_writable=False),
            AccountMeta(
                accounts.tip_distribution_account, is_signer=False, is_writable=True
            ),
            AccountMeta(
                accounts.merkle_root_upload_authority, is_signer=True, is_writable=True
            ),
        ],
    )

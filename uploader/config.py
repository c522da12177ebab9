import json
from pathlib import Path

from pydantic import ValidationError
from solders.keypair import Keypair

from uploader.errors import MalformedKeypairError, MalformedTreeCollectionError
from uploader.models import GeneratedMerkleTreeCollection

# max amount of time before the blockhash expires
MAX_RETRY_DURATION = 60.0
# pause between resubmission rounds
RETRY_INTERVAL = 2.0

DEFAULT_TARGET_LAMPORTS_PER_SIGNATURE = 10_000
LAMPORTS_PER_SOL = 1_000_000_000

# RPC limit on signatures per getSignatureStatuses call
MAX_GET_SIGNATURE_STATUSES_QUERY_ITEMS = 256


def load_tree_collection(path: str) -> GeneratedMerkleTreeCollection:
    """Loads the generated merkle trees written by the tree generation step"""
    try:
        return GeneratedMerkleTreeCollection.model_validate_json(
            Path(path).read_bytes()
        )
    except ValidationError as e:
        raise MalformedTreeCollectionError(f"{path}: {e}") from e


def load_keypair(path: str) -> Keypair:
    """Loads a keypair in the solana cli format, a json array of the 64 secret key bytes"""
    try:
        with open(path) as f:
            secret = json.load(f)
        return Keypair.from_bytes(bytes(secret))
    except (json.JSONDecodeError, TypeError, ValueError) as e:
        raise MalformedKeypairError(f"{path}: {e}") from e

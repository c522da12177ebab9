from dataclasses import dataclass, field

from pydantic import BaseModel
from solders.signature import Signature

from uploader.models.types import SolanaAddress


@dataclass
class SendResult:
    """Signatures split by whether they were observed as confirmed before the deadline"""

    confirmed: list[Signature] = field(default_factory=list)
    unconfirmed: list[Signature] = field(default_factory=list)
    rounds: int = 0


class UploadSummary(BaseModel):
    """
    Outcome of a single upload run
    :param `num_trees`: trees in the input collection
    :param `num_owned`: trees whose upload authority is the signer
    :param `num_needing_update`: owned trees with a missing or stale on-chain root
    :param `skipped_accounts`: owned TipDistributionAccounts left alone, already up to date or claimed against
    """

    num_trees: int
    num_owned: int
    num_needing_update: int
    num_submitted: int
    num_confirmed: int
    num_failed: int
    confirmed_signatures: list[str] = []
    failed_signatures: list[str] = []
    skipped_accounts: list[SolanaAddress] = []

    @property
    def succeeded(self) -> bool:
        return self.num_failed == 0

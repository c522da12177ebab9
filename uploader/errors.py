class MalformedTreeCollectionError(Exception):
    """Raise if the generated merkle tree file cannot be parsed"""

    pass


class MalformedKeypairError(Exception):
    """Raise if the keypair file is not a valid 64 byte secret key"""

    pass


class InsufficientFundsError(Exception):
    """Raise if the signer cannot cover the fees for every candidate tree"""

    pass


class AccountNotFoundError(Exception):
    pass


class AccountDeserializationError(Exception):
    """Raise if on-chain data does not decode as a TipDistributionAccount"""

    pass


class MissingEnvironmentVariableException(Exception):
    pass


class UnconfirmedTransactionsError(Exception):
    """
    Raise if the blockhash expired with transactions still unconfirmed.
    Anything that confirmed stays on chain, re-running the upload picks up the rest.
    """

    def __init__(self, summary):
        self.summary = summary
        super().__init__(
            f"{summary.num_failed} of {summary.num_submitted} transactions "
            f"failed to confirm: {summary.failed_signatures}"
        )

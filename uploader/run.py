import sys

import fire
from loguru import logger

from uploader.env import RPC_URL, TIP_DISTRIBUTION_PROGRAM_ID
from uploader.errors import UnconfirmedTransactionsError
from uploader.workflow import upload_merkle_roots


def upload(
    merkle_root_path: str,
    keypair_path: str,
    rpc_url: str = RPC_URL,
    program_id: str = TIP_DISTRIBUTION_PROGRAM_ID,
) -> None:
    """
    Upload every missing or stale merkle root owned by the keypair.
    Safe to re-run: roots that already landed are skipped.
    """
    try:
        summary = upload_merkle_roots(merkle_root_path, keypair_path, rpc_url, program_id)
    except UnconfirmedTransactionsError as e:
        logger.error(str(e))
        print(
            f"😬 {e.summary.num_failed} merkle roots did not land, re-run to retry them"
        )
        sys.exit(1)

    print(
        f"😃 Uploaded {summary.num_confirmed} merkle roots "
        f"({summary.num_owned} owned, {len(summary.skipped_accounts)} already up to date)"
    )


def main() -> None:
    fire.Fire({"upload": upload})


if __name__ == "__main__":
    main()

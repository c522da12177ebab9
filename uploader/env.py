import os
from typing import Optional

from dotenv import load_dotenv
from uploader.errors import MissingEnvironmentVariableException

load_dotenv()


def env_var(accessor: str, default: Optional[str] = None) -> str:
    """
    Attempt to fetch an environment variable, falling back to `default`,
    and throw an error if neither is set
    """
    var = os.environ.get(accessor, default)
    if not var:
        raise MissingEnvironmentVariableException(accessor)
    return var


RPC_URL = env_var("RPC_URL", "https://api.mainnet-beta.solana.com")
TIP_DISTRIBUTION_PROGRAM_ID = env_var(
    "TIP_DISTRIBUTION_PROGRAM_ID", "4R3gSG8BpU4t19KYj8CfnbtRpnT8gtk4dvTHxVRwc2r7"
)

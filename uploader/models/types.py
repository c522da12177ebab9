from typing import Annotated

from pydantic import Field

# type aliases for clarity
SolanaAddress = str
Lamports = int
U64 = Annotated[int, Field(ge=0, lt=2**64)]

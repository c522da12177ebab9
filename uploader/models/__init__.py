"""
Types here are instantiated as subclasses of pydantic's `BaseModel`.
This means we get runtime deserialization and validation for free just by using type declarations.

Input trees are parsed from json with `model_validate_json`,
on-chain accounts are decoded from raw bytes with `TipDistributionAccount.try_deserialize`
"""

from uploader.models.Summary import *
from uploader.models.TipDistribution import *
from uploader.models.Tree import *
from uploader.models.types import *

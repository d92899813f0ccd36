"""Immutable record base shared by blocks, logs and filters."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class StrictBaseModel(BaseModel):
    """
    A frozen, strictly validated record.

    Fields are also reachable under their camel case alias, the key style of
    Ethereum JSON-RPC, so `parent_hash` validates from and dumps to
    `parentHash`. No coercion happens: a string is never read as a number.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_default=True,
        extra="forbid",
        frozen=True,
        strict=True,
    )

# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

__all__ = ("PileSettings", "settings")


class PileSettings(BaseSettings, frozen=True):
    """Library settings with environment variable support.

    Every field can be overridden with a ``LIONPILE_`` prefixed variable,
    e.g. ``LIONPILE_VERIFY_INTEGRITY=1``.
    """

    model_config = SettingsConfigDict(
        env_prefix="LIONPILE_",
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    ID_ATTRIBUTE: str = Field(
        default="id",
        description="Attribute holding a record's persisted identifier",
    )
    CID_PREFIX: str = Field(
        default="c",
        description="Prefix of session identifiers handed out to records",
    )
    VERIFY_INTEGRITY: bool = Field(
        default=False,
        description="Check index/sequence invariants after every mutation",
    )


settings = PileSettings()

"""Configuration facade.

Consumers import configuration from here instead of the settings module:

    from deskrank.config import DeskrankConfig, load_deskrank_config
"""

from deskrank.config.settings import (
    ApiSettings,
    DatabaseSettings,
    DeskrankConfig,
    PairingSettings,
    RankingSettings,
    RetrySettings,
    create_default_config,
    find_deskrank_config,
    load_deskrank_config,
    save_deskrank_config,
)

__all__ = [
    "ApiSettings",
    "DatabaseSettings",
    "DeskrankConfig",
    "PairingSettings",
    "RankingSettings",
    "RetrySettings",
    "create_default_config",
    "find_deskrank_config",
    "load_deskrank_config",
    "save_deskrank_config",
]

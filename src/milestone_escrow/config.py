"""Milestone escrow configuration constants.

Keep the timing and sizing constants here; every module reads them from this
file rather than redefining them.
"""

import os
from dataclasses import dataclass

# Identities
ADDRESS_SIZE = 32
NULL_ADDRESS = bytes(ADDRESS_SIZE)

# Milestones
MAX_MILESTONES = 255
APPROVAL_TIMEOUT_DAYS = 7
SECONDS_PER_DAY = 86_400
APPROVAL_TIMEOUT_SECONDS = APPROVAL_TIMEOUT_DAYS * SECONDS_PER_DAY  # 604800

# Identity derivation (BLAKE3 domain tags)
REGISTRY_DOMAIN = b"milestone-escrow/registry/v1"
INSTANCE_DOMAIN = b"milestone-escrow/instance/v1"
ACCOUNT_DOMAIN = b"milestone-escrow/account/v1"

# Logging
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


@dataclass
class HarnessSettings:
    """Per-process settings for the fixture tooling."""
    log_level: str = "INFO"
    fixtures_dir: str = "fixtures"
    verbose: bool = False

    @classmethod
    def from_env(cls) -> "HarnessSettings":
        """Load settings from environment variables."""
        settings = cls()
        settings.log_level = os.environ.get("ESCROW_LOG_LEVEL", "INFO").upper()
        settings.fixtures_dir = os.environ.get("ESCROW_FIXTURES_DIR", "fixtures")
        settings.verbose = os.environ.get("VERBOSE", "").lower() in ("true", "1", "yes")
        return settings

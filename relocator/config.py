"""
Configuration module for the image relocator.

Loads all configuration from environment variables with sensible defaults.
"""

import os


class Config:
    """
    Relocator configuration from environment variables.

    Loads all configuration values from environment variables with sensible defaults.
    All settings can be overridden by setting the corresponding environment variable.
    """

    def __init__(self):
        """
        Initialize configuration from environment variables.

        Environment Variables:
            LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR). Default: INFO
            SKOPEO_BIN: Registry copy executable. Default: skopeo
            TRANSFER_TIMEOUT: Seconds allowed per image copy, 0 for no limit. Default: 0
            IMAGE_FORMAT: Bundle format prefix and local transport. Default: docker-archive
            TRUST_POLICY: "acceptAny" or path to a policy JSON file. Default: acceptAny
            MAX_IMAGE_NAME_LENGTH: Maximum image name length. Default: 255
            MAX_TAG_LENGTH: Maximum tag length. Default: 128
        """
        # Logging
        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

        # Registry copy
        self.SKOPEO_BIN = os.getenv("SKOPEO_BIN", "skopeo")
        self.TRANSFER_TIMEOUT = int(os.getenv("TRANSFER_TIMEOUT", "0"))  # seconds
        self.TRUST_POLICY = os.getenv("TRUST_POLICY", "acceptAny")

        # Bundle
        self.IMAGE_FORMAT = os.getenv("IMAGE_FORMAT", "docker-archive")

        # Validation limits
        self.MAX_IMAGE_NAME_LENGTH = int(os.getenv("MAX_IMAGE_NAME_LENGTH", "255"))
        self.MAX_TAG_LENGTH = int(os.getenv("MAX_TAG_LENGTH", "128"))

    def __repr__(self):
        """String representation for logging."""
        return (
            f"Config(LOG_LEVEL={self.LOG_LEVEL}, "
            f"SKOPEO_BIN={self.SKOPEO_BIN}, "
            f"TRANSFER_TIMEOUT={self.TRANSFER_TIMEOUT}, "
            f"IMAGE_FORMAT={self.IMAGE_FORMAT}, "
            f"TRUST_POLICY={self.TRUST_POLICY})"
        )


# Global config instance
config = Config()

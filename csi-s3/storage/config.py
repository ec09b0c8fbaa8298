"""
Connection settings of a single S3 client.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class S3Config:
    """Values to configure the driver's storage client.

    ``session_token`` is only set for federated (temporary) credentials.
    ``mounter`` is opaque here and passed through to the mount layer.
    """

    access_key_id: str = ""
    secret_access_key: str = ""
    session_token: str = ""
    region: str = ""
    endpoint: str = ""
    mounter: str = ""

    def __repr__(self) -> str:
        return (
            f"S3Config(endpoint={self.endpoint!r}, region={self.region!r}, "
            f"mounter={self.mounter!r}, federated={bool(self.session_token)})"
        )

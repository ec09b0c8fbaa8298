"""
Configuration constants for the csi-s3 object storage client.

This module contains all configuration parameters including:
- Secret bundle keys and federation settings
- Volume metadata naming
- Eviction tuning (bulk batch size, fallback parallelism)
- botocore client settings
- CLI environment defaults
"""

import os

# =============================================================================
# SECRET BUNDLE
# =============================================================================

# Keys of the secret bundle handed over by the provisioning layer
SECRET_ACCESS_KEY_ID: str = "accessKeyID"
SECRET_SECRET_ACCESS_KEY: str = "secretAccessKey"
SECRET_REGION: str = "region"
SECRET_ENDPOINT: str = "endpoint"
SECRET_IAM_ROLE_ARN: str = "iamRoleArn"

# =============================================================================
# WEB IDENTITY FEDERATION
# =============================================================================

# Environment variable holding the path of the projected identity token
WEB_IDENTITY_TOKEN_FILE_ENV: str = "AWS_WEB_IDENTITY_TOKEN_FILE"
ROLE_SESSION_NAME: str = "csi-s3"

# =============================================================================
# VOLUME METADATA
# =============================================================================

METADATA_NAME: str = ".metadata.json"

# =============================================================================
# EVICTION
# =============================================================================

# S3 DeleteObjects accepts at most 1000 keys per request
BULK_DELETE_BATCH_SIZE: int = 1000

# Upper bound on in-flight single deletes in the fallback path
DELETE_PARALLELISM: int = int(os.getenv("CSI_S3_DELETE_PARALLELISM", "16"))

# List every object version (and delete marker) instead of latest objects only
LIST_OBJECT_VERSIONS: bool = os.getenv("CSI_S3_LIST_OBJECT_VERSIONS", "false").lower() in ("1", "true", "yes")

# =============================================================================
# BOTOCORE CLIENT
# =============================================================================

CONNECT_TIMEOUT_SECONDS: int = 10
READ_TIMEOUT_SECONDS: int = 60
MAX_RETRIES: int = 3
RETRY_MODE: str = "standard"

# Enough connections for every fallback worker plus the listing producer
MAX_POOL_CONNECTIONS: int = DELETE_PARALLELISM + 4

# =============================================================================
# CLI DEFAULTS
# =============================================================================

S3_ENDPOINT: str = os.getenv("S3_ENDPOINT", "")
AWS_ACCESS_KEY_ID: str = os.getenv("AWS_ACCESS_KEY_ID", "")
AWS_SECRET_ACCESS_KEY: str = os.getenv("AWS_SECRET_ACCESS_KEY", "")
AWS_REGION: str = os.getenv("AWS_REGION", "")
IAM_ROLE_ARN: str = os.getenv("IAM_ROLE_ARN", "")
DEFAULT_MOUNTER: str = os.getenv("CSI_S3_MOUNTER", "geesefs")

"""
Credential resolution: secret bundle -> S3Config.

Static keys are used as they are. When the bundle names an IAM role, the
projected service account token is exchanged for temporary credentials
with STS AssumeRoleWithWebIdentity.
"""

import logging
import os
from typing import Mapping, Optional, Tuple

import aioboto3
from botocore.exceptions import BotoCoreError, ClientError

from common.errors import ConfigurationError, FederationError, federation_error
from configuration import (
    ROLE_SESSION_NAME,
    SECRET_ACCESS_KEY_ID,
    SECRET_ENDPOINT,
    SECRET_IAM_ROLE_ARN,
    SECRET_REGION,
    SECRET_SECRET_ACCESS_KEY,
    WEB_IDENTITY_TOKEN_FILE_ENV,
)
from storage.config import S3Config

logger = logging.getLogger(__name__)


def read_web_identity_token() -> str:
    """Read the projected identity token named by the environment.

    Raises:
        ConfigurationError: If the variable is unset or the file unreadable
    """
    token_file = os.getenv(WEB_IDENTITY_TOKEN_FILE_ENV, "")
    if not token_file:
        raise ConfigurationError(
            f"Secret references IAM role, but environment var {WEB_IDENTITY_TOKEN_FILE_ENV} undefined"
        )
    try:
        with open(token_file, "rb") as f:
            return f.read().decode("utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"Failed to read web identity token file {token_file}: {e}") from e


async def assume_role_with_web_identity(
    token: str, role_arn: str, region: str = "", session: Optional[aioboto3.Session] = None
) -> Tuple[str, str, str]:
    """Exchange an identity token for temporary credentials.

    Args:
        token: Bearer identity token
        role_arn: IAM role to assume
        region: STS region (empty = session default)
        session: aioboto3 session to use (a fresh one by default)

    Returns:
        Tuple of (access_key_id, secret_access_key, session_token)

    Raises:
        FederationError: One of the named STS conditions, or the backend error verbatim
    """
    session = session or aioboto3.Session()
    try:
        async with session.client("sts", region_name=region or None) as sts:
            result = await sts.assume_role_with_web_identity(
                RoleArn=role_arn,
                RoleSessionName=ROLE_SESSION_NAME,
                WebIdentityToken=token,
            )
    except ClientError as e:
        error = e.response.get("Error", {})
        code = error.get("Code", "")
        message = error.get("Message", str(e))
        logger.error(f"AssumeRoleWithWebIdentity for {role_arn} failed: {code} {message}")
        raise federation_error(code, message) from e
    except BotoCoreError as e:
        logger.error(f"AssumeRoleWithWebIdentity for {role_arn} failed: {e}")
        raise FederationError("", str(e)) from e

    credentials = result["Credentials"]
    logger.info(f"Assumed role {role_arn}, temporary credentials expire at {credentials.get('Expiration')}")
    return credentials["AccessKeyId"], credentials["SecretAccessKey"], credentials["SessionToken"]


async def resolve_config(secret: Mapping[str, str], session: Optional[aioboto3.Session] = None) -> S3Config:
    """Turn a secret bundle into a fully populated S3Config.

    Args:
        secret: Secret bundle (accessKeyID, secretAccessKey, region, endpoint, iamRoleArn)
        session: aioboto3 session used for the federation exchange

    Returns:
        S3Config; the mounter is left empty, it comes from volume parameters

    Raises:
        ConfigurationError: Malformed bundle or missing token file binding
        FederationError: The federation exchange failed
    """
    if not isinstance(secret, Mapping):
        raise ConfigurationError(f"Secret bundle must be a mapping, got {type(secret).__name__}")

    access_key_id = secret.get(SECRET_ACCESS_KEY_ID, "")
    secret_access_key = secret.get(SECRET_SECRET_ACCESS_KEY, "")
    session_token = ""
    region = secret.get(SECRET_REGION, "")
    role_arn = secret.get(SECRET_IAM_ROLE_ARN, "")

    if role_arn:
        token = read_web_identity_token()
        access_key_id, secret_access_key, session_token = await assume_role_with_web_identity(
            token, role_arn, region=region, session=session
        )

    return S3Config(
        access_key_id=access_key_id,
        secret_access_key=secret_access_key,
        session_token=session_token,
        region=region,
        endpoint=secret.get(SECRET_ENDPOINT, ""),
    )

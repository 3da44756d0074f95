# lambdaship/utils/session.py
from __future__ import annotations

import logging
from typing import Callable, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, NoCredentialsError, PartialCredentialsError

from lambdaship.config import DeployConfig
from lambdaship.errors import ConfigurationError

logger = logging.getLogger(__name__)


def make_session(
    config: DeployConfig,
    session_factory: Callable[..., boto3.Session] = boto3.Session,
) -> boto3.Session:
    """
    Build a boto3 session from the deploy config and fail early when no region
    or no credentials can be resolved, before any remote call is made.
    """
    session_kwargs = {}
    if config.profile:
        session_kwargs["profile_name"] = config.profile
    if config.region:
        session_kwargs["region_name"] = config.region

    try:
        session = session_factory(**session_kwargs)
    except BotoCoreError as e:
        # e.g. ProfileNotFound for an unknown AWS_PROFILE
        raise ConfigurationError(f"unable to create AWS session: {e}") from e
    if not session.region_name:
        raise ConfigurationError(
            "unable to determine AWS region. Try setting the AWS_REGION environment variable"
        )
    try:
        credentials = session.get_credentials()
    except (NoCredentialsError, PartialCredentialsError) as e:
        raise ConfigurationError(f"AWS credentials not found or incomplete: {e}") from e
    if credentials is None:
        raise ConfigurationError(
            "AWS credentials not found. Please configure via AWS CLI, "
            "environment variables, or an AWS_PROFILE."
        )
    logger.info(f"Using AWS region {session.region_name}")
    return session


def client_config(config: DeployConfig) -> Config:
    # standard mode retries throttling and 5xx; lambdaship handles the IAM propagation errors itself
    return Config(retries={"max_attempts": config.max_sdk_attempts, "mode": "standard"})


def make_client(session: boto3.Session, service: str, config: Optional[DeployConfig] = None):
    return session.client(service, config=client_config(config or DeployConfig()))

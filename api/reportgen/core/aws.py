from typing import Any

import boto3
from botocore.config import Config

from reportgen.core.config import Settings, settings as default_settings


def _client_kwargs(settings: Settings) -> dict[str, Any]:
    kwargs: dict[str, Any] = {"region_name": settings.aws_region}
    if settings.aws_endpoint_url:
        kwargs["endpoint_url"] = settings.aws_endpoint_url
    if settings.aws_access_key_id and settings.aws_secret_access_key:
        kwargs["aws_access_key_id"] = settings.aws_access_key_id
        kwargs["aws_secret_access_key"] = settings.aws_secret_access_key
    return kwargs


def create_s3_client(settings: Settings = default_settings):
    # LocalStack and MinIO only serve path-style URLs.
    config = Config(s3={"addressing_style": "path"}) if settings.aws_endpoint_url else None
    return boto3.client("s3", config=config, **_client_kwargs(settings))


def create_sqs_client(settings: Settings = default_settings, read_timeout: float | None = None):
    config = None
    if read_timeout is not None:
        config = Config(read_timeout=read_timeout)
    return boto3.client("sqs", config=config, **_client_kwargs(settings))

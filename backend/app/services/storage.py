"""File-reference collaborator — hands out presigned upload URLs for answer files.

Uploads go straight from the respondent to the S3-compatible bucket. The
``file_url`` returned alongside is opaque to the rest of the application:
answers store it as given and never inspect it.
"""

import logging
import uuid
from dataclasses import dataclass
from pathlib import PurePosixPath

import boto3
from botocore.client import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from app.core.config import settings
from app.services.exceptions import StorageUnavailable

logger = logging.getLogger(__name__)


@dataclass
class UploadTarget:
    upload_url: str
    file_url: str
    expires_in: int


def get_s3_client():
    return boto3.client(
        "s3",
        endpoint_url=settings.S3_ENDPOINT_URL,
        region_name=settings.S3_REGION,
        aws_access_key_id=settings.S3_ACCESS_KEY_ID,
        aws_secret_access_key=settings.S3_SECRET_ACCESS_KEY,
        config=BotoConfig(signature_version="s3v4"),
    )


def build_upload_target(file_name: str, content_type: str) -> UploadTarget:
    """Generate a unique storage key for ``file_name`` and presign a PUT for it."""
    extension = PurePosixPath(file_name).suffix.lower()
    key = f"uploads/{uuid.uuid4().hex}{extension}"
    expires_in = settings.UPLOAD_URL_EXPIRES_SECONDS

    try:
        upload_url = get_s3_client().generate_presigned_url(
            "put_object",
            Params={"Bucket": settings.S3_BUCKET, "Key": key, "ContentType": content_type},
            ExpiresIn=expires_in,
        )
    except (BotoCoreError, ClientError) as exc:
        logger.exception("Presigning upload for %s failed", key)
        raise StorageUnavailable("File storage is not available") from exc

    return UploadTarget(
        upload_url=upload_url,
        file_url=f"{settings.STORAGE_BASE_URL.rstrip('/')}/{key}",
        expires_in=expires_in,
    )

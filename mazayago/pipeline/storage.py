import json
import logging
import os
from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from dotenv import load_dotenv

from ..errors import ExternalDependencyError

logger = logging.getLogger(__name__)

_MISSING_KEY_CODES = {"NoSuchKey", "404", "NotFound"}


class PipelineStorage:
    """JSON documents in an S3-compatible bucket (Cloudflare R2 in production)."""

    def __init__(self, client: Any, bucket: str, public_base: str):
        if not bucket:
            raise ValueError("bucket must not be empty")
        if not public_base:
            raise ValueError("public_base must not be empty")
        self.client = client
        self.bucket = bucket
        self.public_base = public_base.rstrip("/")

    def public_url(self, key: str) -> str:
        return f"{self.public_base}/{key.lstrip('/')}"

    def put_json(self, key: str, payload: Any) -> str:
        """Upload ``payload`` as pretty-printed JSON and return its public URL.

        Raises
        ------
        ExternalDependencyError
            If the bucket cannot be reached or rejects the write.
        """
        body = json.dumps(payload, indent=2, ensure_ascii=False).encode("utf-8")
        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=body,
                ContentType="application/json; charset=utf-8",
            )
        except (BotoCoreError, ClientError) as exc:
            logger.error(f"Failed to write {key} to bucket {self.bucket}: {exc}")
            raise ExternalDependencyError(f"Failed to upload {key}: {exc}") from exc
        return self.public_url(key)

    def get_json(self, key: str) -> Optional[Any]:
        """Return the decoded document stored at ``key``.

        Missing objects read as ``None``. Any other read failure is logged
        and also reads as ``None`` so status polling keeps working.
        """
        try:
            obj = self.client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code not in _MISSING_KEY_CODES:
                logger.warning(f"Failed to read {key} from bucket {self.bucket}: {exc}")
            return None
        except BotoCoreError as exc:
            logger.warning(f"Failed to read {key} from bucket {self.bucket}: {exc}")
            return None

        body = obj.get("Body")
        if body is None:
            return None
        try:
            return json.loads(body.read().decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.warning(f"Ignoring malformed JSON at {key}: {exc}")
            return None


def get_pipeline_storage() -> Optional[PipelineStorage]:
    """Build the R2 storage client from the environment.

    Returns ``None`` when any of ``R2_ENDPOINT``/``R2_ACCOUNT_ID``,
    ``R2_BUCKET``, ``R2_ACCESS_KEY_ID`` or ``R2_SECRET_ACCESS_KEY`` is unset;
    callers treat that as the ``fallback`` storage mode.
    """
    load_dotenv()
    account_id = os.getenv("R2_ACCOUNT_ID")
    endpoint = os.getenv("R2_ENDPOINT") or (
        f"https://{account_id}.r2.cloudflarestorage.com" if account_id else ""
    )
    bucket = os.getenv("R2_BUCKET", "")
    access_key = os.getenv("R2_ACCESS_KEY_ID")
    secret_key = os.getenv("R2_SECRET_ACCESS_KEY")
    public_base = os.getenv("R2_PUBLIC_BASE") or (
        f"{endpoint}/{bucket}" if endpoint and bucket else ""
    )

    if not (endpoint and bucket and access_key and secret_key and public_base):
        logger.debug("R2 storage is not configured; publish runs in fallback mode")
        return None

    client = boto3.client(
        "s3",
        endpoint_url=endpoint,
        region_name="auto",
        aws_access_key_id=access_key,
        aws_secret_access_key=secret_key,
    )
    return PipelineStorage(client, bucket, public_base)


__all__ = ["PipelineStorage", "get_pipeline_storage"]

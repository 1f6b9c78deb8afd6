import logging

from botocore.exceptions import BotoCoreError, ClientError
from starlette.concurrency import run_in_threadpool

from reportgen.features.reports.encoding import CONTENT_TYPE
from reportgen.features.reports.errors import ArtifactStoreError

logger = logging.getLogger(__name__)


class S3ArtifactStore:
    """Report artifacts in one S3 bucket; boto3 calls run off the event loop."""

    def __init__(self, s3_client, bucket: str):
        self._s3 = s3_client
        self._bucket = bucket

    @property
    def bucket(self) -> str:
        return self._bucket

    async def put(self, key: str, data: bytes) -> None:
        try:
            await run_in_threadpool(
                self._s3.put_object,
                Bucket=self._bucket,
                Key=key,
                Body=data,
                ContentType=CONTENT_TYPE,
            )
        except (BotoCoreError, ClientError) as exc:
            raise ArtifactStoreError(f"failed to upload report to {key}: {exc}") from exc
        logger.info("Uploaded report artifact", extra={"bucket": self._bucket, "key": key, "size_bytes": len(data)})

    async def presigned_url(self, key: str, expires_in: int) -> str:
        try:
            return await run_in_threadpool(
                self._s3.generate_presigned_url,
                "get_object",
                Params={"Bucket": self._bucket, "Key": key},
                ExpiresIn=expires_in,
            )
        except (BotoCoreError, ClientError) as exc:
            raise ArtifactStoreError(f"failed to presign {key}: {exc}") from exc

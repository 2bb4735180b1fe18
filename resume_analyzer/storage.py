"""S3-compatible document storage for uploaded resumes and preview images."""

import asyncio
import io
import mimetypes
import uuid
from dataclasses import dataclass
from typing import Optional, Protocol
from urllib.parse import urlparse

import structlog
from minio import Minio

from .config import AnalyzerConfig

logger = structlog.get_logger()


@dataclass(frozen=True)
class UploadedDocument:
    """Handle returned by a successful upload."""

    path: str


class DocumentStore(Protocol):
    """Binary storage addressed by opaque paths."""

    async def upload(self, content: bytes, filename: str) -> Optional[UploadedDocument]:
        ...

    async def read(self, path: str) -> Optional[bytes]:
        ...


class MinioDocumentStore:
    """
    Document store backed by any S3-compatible bucket (AWS S3, Backblaze B2, MinIO).

    The minio client is blocking, so every call runs in a worker thread.
    Failures are logged and reported as a missing result rather than raised,
    which lets the pipeline decide which stage failed.
    """

    def __init__(
        self,
        endpoint: str,
        access_key: str,
        secret_key: str,
        bucket: str,
        secure: bool = True,
        client: Optional[Minio] = None,
    ):
        if "://" in endpoint:
            parsed = urlparse(endpoint)
            endpoint = parsed.netloc
            if parsed.scheme == "http":
                secure = False

        if "/" in endpoint:
            endpoint = endpoint.split("/")[0]

        self.client = client or Minio(
            endpoint, access_key=access_key, secret_key=secret_key, secure=secure
        )
        self.bucket = bucket

    @classmethod
    def from_config(cls, config: AnalyzerConfig) -> "MinioDocumentStore":
        store = cls(
            config.s3_endpoint,
            config.s3_access_key,
            config.s3_secret_key,
            config.s3_bucket,
            secure=config.s3_secure,
        )
        store.ensure_bucket()
        return store

    def ensure_bucket(self) -> bool:
        """Create the bucket if it does not exist yet."""
        try:
            if not self.client.bucket_exists(self.bucket):
                self.client.make_bucket(self.bucket)
                logger.info("Created S3 bucket", bucket=self.bucket)
            return True
        except Exception as e:
            # Restricted application keys can fail this check on a pre-provisioned bucket.
            logger.warning("Could not verify S3 bucket", bucket=self.bucket, error=str(e))
            return False

    async def upload(self, content: bytes, filename: str) -> Optional[UploadedDocument]:
        object_name = f"{uuid.uuid4().hex}/{filename}"
        content_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"

        try:
            await asyncio.to_thread(
                self.client.put_object,
                bucket_name=self.bucket,
                object_name=object_name,
                data=io.BytesIO(content),
                length=len(content),
                content_type=content_type,
            )
        except Exception as e:
            logger.error("S3 upload failed", object_name=object_name, error=str(e))
            return None

        logger.info("Uploaded to S3", object_name=object_name, size=len(content))
        return UploadedDocument(path=object_name)

    async def read(self, path: str) -> Optional[bytes]:
        try:
            return await asyncio.to_thread(self._get_bytes, path)
        except Exception as e:
            logger.error("S3 download failed", object_name=path, error=str(e))
            return None

    def _get_bytes(self, path: str) -> bytes:
        response = self.client.get_object(bucket_name=self.bucket, object_name=path)
        try:
            return response.read()
        finally:
            response.close()
            response.release_conn()

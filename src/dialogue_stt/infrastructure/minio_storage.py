"""MinIO implementation of the StorageClient interface."""

import logging
from itertools import islice
from typing import BinaryIO

from minio import Minio

from dialogue_stt.exceptions import StorageDownloadError, StorageListError, StorageUploadError

from .interfaces import StorageClient

logger = logging.getLogger(__name__)


class MinioStorageClient(StorageClient):
    """Handles chunk storage operations against an S3-compatible endpoint."""

    def __init__(self, client: Minio):
        self._client = client

    def list_objects(self, bucket_name: str, prefix: str, limit: int = 1000) -> list[str]:
        try:
            objects = self._client.list_objects(
                bucket_name=bucket_name,
                prefix=f"{prefix.rstrip('/')}/",
                recursive=False,
            )
            names = [obj.object_name for obj in islice(objects, limit)]
            logger.debug(
                "Objects listed",
                extra={"bucket_name": bucket_name, "prefix": prefix, "count": len(names)},
            )
            return names
        except Exception as e:
            logger.exception(
                "MinIO list failed",
                extra={"bucket_name": bucket_name, "prefix": prefix},
            )
            raise StorageListError(prefix, e) from e

    def download(self, bucket_name: str, object_name: str) -> bytes:
        try:
            response = self._client.get_object(bucket_name=bucket_name, object_name=object_name)
            try:
                data = response.data
            finally:
                response.close()
                response.release_conn()
            logger.info(
                "File downloaded from MinIO",
                extra={"bucket_name": bucket_name, "object_name": object_name, "size": len(data)},
            )
            return data
        except Exception as e:
            logger.exception(
                "MinIO download failed",
                extra={"bucket_name": bucket_name, "object_name": object_name},
            )
            raise StorageDownloadError(object_name, e) from e

    def upload(
        self,
        bucket_name: str,
        object_name: str,
        data: BinaryIO,
        size: int,
        content_type: str,
    ) -> None:
        try:
            self._client.put_object(
                bucket_name=bucket_name,
                object_name=object_name,
                data=data,
                length=size,
                content_type=content_type,
            )
            logger.info(
                "File uploaded to MinIO",
                extra={
                    "bucket_name": bucket_name,
                    "object_name": object_name,
                    "size": size,
                },
            )
        except Exception as e:
            logger.exception(
                "MinIO upload failed",
                extra={"bucket_name": bucket_name, "object_name": object_name},
            )
            raise StorageUploadError(object_name, e) from e

    def ensure_bucket_exists(self, bucket_name: str) -> None:
        if not self._client.bucket_exists(bucket_name=bucket_name):
            self._client.make_bucket(bucket_name=bucket_name)
            logger.info("Bucket created", extra={"bucket_name": bucket_name})
        else:
            logger.info("Bucket already exists", extra={"bucket_name": bucket_name})

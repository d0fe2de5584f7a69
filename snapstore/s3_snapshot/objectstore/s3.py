"""
S3 implementation of the ObjectStore protocol.

Uses aiobotocore for non-blocking access to S3 or any S3-compatible
service (MinIO, LocalStack).

Invariants:
    - Service errors (botocore ClientError) become non-success responses
      carrying the HTTP status code; they are not raised
    - Connection errors are raised unchanged
    - Listing follows continuation tokens until the last page

How to change safely:
    - Keep the status mapping intact; the engine reports these codes
    - Test against MinIO before changing request parameters
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from aiobotocore.session import get_session
from botocore.exceptions import ClientError

from ..config import S3Config
from .base import GetObjectResponse, ListObjectsResponse, ObjectResponse, ObjectStoreConnectionError

logger = logging.getLogger(__name__)


def _status_of_response(response: Dict[str, Any], default: int = 200) -> int:
    return response.get("ResponseMetadata", {}).get("HTTPStatusCode", default)


def _status_of_error(error: ClientError) -> int:
    return error.response.get("ResponseMetadata", {}).get("HTTPStatusCode", 500)


class S3ObjectStore:
    """S3 object store backed by an aiobotocore client.

    Attributes:
        config: S3 configuration

    Example:
        >>> async with S3ObjectStore(S3Config.from_env()) as store:
        ...     response = await store.list_objects("snapshots", "order-1/")
    """

    def __init__(self, config: S3Config, client: Any = None) -> None:
        """Initialize the store.

        Args:
            config: S3Config instance
            client: Already-open S3 client; when given, connect() and close()
                leave its lifecycle to the caller
        """
        self.config = config
        self._client = client
        self._owns_client = client is None
        self._client_ctx = None

    @property
    def is_connected(self) -> bool:
        return self._client is not None

    async def connect(self) -> None:
        """Create the S3 client."""
        if self._client is not None:
            return

        session = get_session()
        client_kwargs = {
            "region_name": self.config.region,
        }

        if self.config.endpoint_url:
            client_kwargs["endpoint_url"] = self.config.endpoint_url

        if self.config.access_key_id:
            client_kwargs["aws_access_key_id"] = self.config.access_key_id
            client_kwargs["aws_secret_access_key"] = self.config.secret_access_key

        self._client_ctx = session.create_client("s3", **client_kwargs)
        self._client = await self._client_ctx.__aenter__()
        logger.info(
            "Connected to S3",
            extra={
                "region": self.config.region,
                "endpoint": self.config.endpoint_url or "AWS",
            },
        )

    async def close(self) -> None:
        """Close the S3 client if this store created it."""
        if self._owns_client and self._client_ctx is not None:
            await self._client_ctx.__aexit__(None, None, None)
            self._client_ctx = None
            self._client = None

    async def __aenter__(self) -> S3ObjectStore:
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @property
    def client(self) -> Any:
        if self._client is None:
            raise ObjectStoreConnectionError("S3ObjectStore is not connected; call connect() first")
        return self._client

    async def put_object(
        self,
        bucket: str,
        key: str,
        body: bytes,
        content_length: int,
    ) -> ObjectResponse:
        try:
            response = await self.client.put_object(
                Bucket=bucket,
                Key=key,
                Body=body,
                ContentLength=content_length,
            )
        except ClientError as e:
            return ObjectResponse(status_code=_status_of_error(e))
        return ObjectResponse(status_code=_status_of_response(response))

    async def get_object(self, bucket: str, key: str) -> GetObjectResponse:
        try:
            response = await self.client.get_object(Bucket=bucket, Key=key)
        except ClientError as e:
            return GetObjectResponse(status_code=_status_of_error(e))
        body = await response["Body"].read()
        return GetObjectResponse(status_code=_status_of_response(response), body=body)

    async def delete_object(self, bucket: str, key: str) -> ObjectResponse:
        try:
            response = await self.client.delete_object(Bucket=bucket, Key=key)
        except ClientError as e:
            return ObjectResponse(status_code=_status_of_error(e))
        return ObjectResponse(status_code=_status_of_response(response, default=204))

    async def list_objects(
        self,
        bucket: str,
        prefix: Optional[str] = None,
        delimiter: str = "/",
    ) -> ListObjectsResponse:
        params: Dict[str, Any] = {"Bucket": bucket}
        if delimiter:
            params["Delimiter"] = delimiter
        if prefix:
            params["Prefix"] = prefix

        keys: List[str] = []
        status_code = 200
        paginator = self.client.get_paginator("list_objects_v2")
        try:
            async for page in paginator.paginate(**params):
                status_code = _status_of_response(page)
                keys.extend(obj["Key"] for obj in page.get("Contents", []))
        except ClientError as e:
            return ListObjectsResponse(status_code=_status_of_error(e))
        return ListObjectsResponse(status_code=status_code, keys=keys)

# mediaqueue/services/upload_service.py
from __future__ import annotations

import asyncio
import json
import logging
import uuid
from typing import Any, AsyncIterator, Callable, Dict, Optional, Protocol

import boto3
import httpx
from botocore.exceptions import BotoCoreError, ClientError

from mediaqueue.core.errors import TransferError
from mediaqueue.core.settings import UploadSettings
from mediaqueue.domain.uploads import MediaItem, SourceFile, UploadOptions
from mediaqueue.utils.files import default_title, file_extension, file_kind, slugify

logger = logging.getLogger(__name__)

ProgressFn = Callable[[int], None]

UPLOAD_PATH = "/admin/media/upload"


class UploadService(Protocol):
    async def upload(
        self, file: SourceFile, options: UploadOptions, on_progress: ProgressFn
    ) -> MediaItem: ...


def _percent(sent: int, total: int) -> int:
    if total <= 0:
        return 0
    return min(100, round(sent * 100 / total))


# =========================
# HTTP (media API)
# =========================
class HttpUploadService:
    """POST multipart naar de media API, met voortgang tijdens het streamen van de body."""

    def __init__(
        self,
        base_url: str,
        *,
        token: Optional[str] = None,
        timeout: float = 120.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_settings(cls, settings: UploadSettings) -> "HttpUploadService":
        return cls(
            settings.media_api_base_url,
            token=settings.media_api_token,
            timeout=settings.upload_timeout_seconds,
        )

    def _form_fields(self, options: UploadOptions) -> Dict[str, str]:
        data: Dict[str, str] = {}
        if options.folder_id:
            data["folder_id"] = str(options.folder_id)
        if options.destination_folder:
            data["folder"] = options.destination_folder
        if options.is_public is not None:
            data["is_public"] = str(options.is_public).lower()
        if options.metadata:
            data["metadata"] = json.dumps(options.metadata)
        if options.generate_variants is not None:
            data["generate_variants"] = str(options.generate_variants).lower()
        if options.max_width:
            data["max_width"] = str(options.max_width)
        if options.max_height:
            data["max_height"] = str(options.max_height)
        if options.quality:
            data["quality"] = str(options.quality)
        return data

    async def upload(
        self, file: SourceFile, options: UploadOptions, on_progress: ProgressFn
    ) -> MediaItem:
        url = f"{self.base_url}{UPLOAD_PATH}"
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        if self._client is not None:
            return await self._send(self._client, url, headers, file, options, on_progress)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await self._send(client, url, headers, file, options, on_progress)

    async def _send(
        self,
        client: httpx.AsyncClient,
        url: str,
        headers: Dict[str, str],
        file: SourceFile,
        options: UploadOptions,
        on_progress: ProgressFn,
    ) -> MediaItem:
        with file.open() as fh:
            # multipart body laten opbouwen door httpx, daarna wrappen voor voortgang
            encoded = client.build_request(
                "POST",
                url,
                data=self._form_fields(options),
                files={"file": (file.name, fh, file.content_type or "application/octet-stream")},
            )
            total = int(encoded.headers.get("Content-Length", "0") or 0)
            headers = {
                **headers,
                "Content-Type": encoded.headers["Content-Type"],
            }
            if total:
                headers["Content-Length"] = str(total)

            async def body() -> AsyncIterator[bytes]:
                sent = 0
                async for chunk in encoded.stream:
                    sent += len(chunk)
                    if total:
                        on_progress(_percent(sent, total))
                    yield chunk

            request = client.build_request("POST", url, content=body(), headers=headers)
            try:
                response = await client.send(request)
            except httpx.HTTPError as e:
                raise TransferError(str(e) or type(e).__name__) from e

        return self._parse(response)

    @staticmethod
    def _parse(response: httpx.Response) -> MediaItem:
        try:
            payload: Any = response.json()
        except ValueError:
            payload = None

        if isinstance(payload, dict):
            message = payload.get("message") or payload.get("error")
        else:
            message = None

        if response.status_code >= 400:
            raise TransferError(
                message or f"HTTP {response.status_code}",
                status_code=response.status_code,
                meta={"errors": payload.get("errors") if isinstance(payload, dict) else None},
            )
        if not isinstance(payload, dict):
            raise TransferError("Invalid response from media API", status_code=response.status_code)
        if payload.get("success") is False:
            raise TransferError(message or "", status_code=response.status_code)

        data = payload.get("data", payload)
        try:
            return MediaItem.model_validate(data)
        except ValueError as e:
            raise TransferError(f"Invalid media record: {e}", status_code=response.status_code) from e


# =========================
# S3
# =========================
def _describe_client_error(e: ClientError) -> str:
    err = e.response.get("Error", {}) or {}
    code = err.get("Code", "")
    msg = err.get("Message", "") or str(e)
    if code == "AccessDenied":
        hint = "check IAM/bucket policy (s3:PutObject)"
    elif code in {"NoSuchBucket"}:
        hint = "bucket does not exist"
    elif code in {"RequestTimeout", "SlowDown", "Throttling"}:
        hint = "S3 throttling/timeout, retry later"
    else:
        hint = None
    if not code:
        return msg
    text = f"{code}: {msg}"
    return f"{text} ({hint})" if hint else text


class S3UploadService:
    """Direct naar S3 via boto3 (upload_fileobj in een worker thread)."""

    def __init__(self, bucket: str, region: str = "eu-west-1", prefix: str = "media", client: Any = None):
        if not bucket:
            raise ValueError("S3 bucket is required")
        self.bucket = bucket
        self.region = region
        self.prefix = prefix.strip("/")
        self.s3_client = client or boto3.client("s3", region_name=region)

    @classmethod
    def from_settings(cls, settings: UploadSettings) -> "S3UploadService":
        return cls(settings.s3_bucket or "", region=settings.s3_region, prefix=settings.s3_prefix)

    def build_key(self, file: SourceFile, options: UploadOptions) -> str:
        folder = slugify(options.destination_folder or file_kind(file.content_type) + "s", max_len=32)
        stem = slugify(default_title(file.name))
        ext = slugify(file_extension(file.name) or "bin", max_len=8)
        parts = [p for p in (self.prefix, folder, f"{stem}_{uuid.uuid4().hex}.{ext}") if p]
        return "/".join(parts)

    def public_url(self, key: str) -> str:
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    async def upload(
        self, file: SourceFile, options: UploadOptions, on_progress: ProgressFn
    ) -> MediaItem:
        loop = asyncio.get_running_loop()
        key = self.build_key(file, options)
        extra: Dict[str, Any] = {"ContentType": file.content_type or "application/octet-stream"}
        if options.metadata:
            extra["Metadata"] = {str(k): str(v) for k, v in options.metadata.items()}

        sent = 0

        def _callback(num_bytes: int) -> None:
            # draait in de boto3 thread; voortgang terug naar de event loop
            nonlocal sent
            sent += num_bytes
            loop.call_soon_threadsafe(on_progress, _percent(sent, file.size))

        def _put() -> None:
            with file.open() as fh:
                self.s3_client.upload_fileobj(fh, self.bucket, key, ExtraArgs=extra, Callback=_callback)

        try:
            await asyncio.to_thread(_put)
        except ClientError as e:
            logger.error("S3 upload failed for %s: %s", key, e)
            raise TransferError(_describe_client_error(e)) from e
        except BotoCoreError as e:
            logger.error("S3 upload failed for %s: %s", key, e)
            raise TransferError(str(e)) from e

        logger.info("Uploaded to S3: s3://%s/%s", self.bucket, key)
        return MediaItem(
            id=uuid.uuid5(uuid.NAMESPACE_URL, f"s3://{self.bucket}/{key}").hex,
            name=key.rsplit("/", 1)[-1],
            path=key,
            url=self.public_url(key),
            type=file_kind(file.content_type),
            size=file.size,
            mime_type=file.content_type or None,
        )


def get_upload_service(settings: UploadSettings) -> UploadService:
    backend = (settings.upload_backend or "http").lower()
    if backend == "s3":
        return S3UploadService.from_settings(settings)
    if backend == "http":
        return HttpUploadService.from_settings(settings)
    raise ValueError(f"Unknown upload backend: {settings.upload_backend}")

# media/storage.py
import hashlib
import hmac
import logging
import mimetypes
import os
import shutil
import tempfile
import urllib.parse
from datetime import datetime
from typing import Optional
from uuid import uuid4

import requests
from fastapi import HTTPException, UploadFile

from config import settings

logger = logging.getLogger(__name__)

ALLOWED_MEDIA_PREFIXES = ("image/", "video/", "audio/")


class MediaStorage:
    """Property media in an S3 compatible bucket, requests signed with AWS Signature V4."""

    def __init__(
            self,
            bucket: str,
            endpoint_url: str,
            region: str,
            access_key: str,
            secret_key: str,
            cdn_url: str = "",
            max_upload_mb: int = 50
    ):
        self.bucket = bucket
        self.endpoint_url = endpoint_url.rstrip("/")
        self.region = region
        self.access_key = access_key
        self.secret_key = secret_key
        self.cdn_url = cdn_url.rstrip("/")
        self.max_upload_bytes = max_upload_mb * 1024 * 1024

    @property
    def host(self) -> str:
        return f"{self.bucket}.{urllib.parse.urlparse(self.endpoint_url).netloc}"

    def public_url(self, public_id: str) -> str:
        if self.cdn_url:
            return f"{self.cdn_url}/{public_id}"
        return f"{self.endpoint_url}/{self.bucket}/{public_id}"

    def upload(self, file: UploadFile, folder: str = "properties") -> dict:
        """Store an uploaded file; returns {url, public_id, metadata}."""
        mime_type, _ = mimetypes.guess_type(file.filename or "")
        mime_type = file.content_type if not mime_type else mime_type
        if not mime_type or not mime_type.startswith(ALLOWED_MEDIA_PREFIXES):
            raise HTTPException(status_code=400, detail="File must be an image, video or audio file")

        file.file.seek(0, 2)
        file_size = file.file.tell()
        file.file.seek(0)
        if file_size > self.max_upload_bytes:
            raise HTTPException(status_code=400, detail=f"File size exceeds {self.max_upload_bytes // (1024 * 1024)}MB")

        with tempfile.NamedTemporaryFile(delete=False) as temp_file:
            temp_file_path = temp_file.name
            shutil.copyfileobj(file.file, temp_file)

        try:
            extension = os.path.splitext(file.filename or "")[1].lower()
            public_id = f"{folder}/{uuid4().hex}{extension}"
            payload_hash = self._calculate_payload_hash(temp_file_path)
            headers = self._signed_headers("PUT", f"/{public_id}", payload_hash, mime_type, file_size)
            with open(temp_file_path, "rb") as f:
                response = self._send("PUT", public_id, data=f, headers=headers)
            if response.status_code != 200:
                logger.error(f"Media upload failed: {response.status_code} - {response.text}")
                raise HTTPException(status_code=502, detail="Media upload failed, try again later")
        finally:
            if os.path.exists(temp_file_path):
                os.remove(temp_file_path)

        logger.info(f"Uploaded {public_id} ({file_size} bytes)")
        return {
            "url": self.public_url(public_id),
            "public_id": public_id,
            "metadata": {
                "resource_type": mime_type.split("/")[0],
                "format": extension.lstrip(".") or mime_type.split("/")[1],
                "bytes": file_size,
            },
        }

    def delete(self, public_id: str) -> None:
        payload_hash = hashlib.sha256(b"").hexdigest()
        headers = self._signed_headers("DELETE", f"/{public_id}", payload_hash)
        response = self._send("DELETE", public_id, headers=headers)
        if response.status_code not in (200, 204, 404):
            logger.error(f"Media delete failed: {response.status_code} - {response.text}")
            raise HTTPException(status_code=502, detail="Media delete failed, try again later")

    def _send(self, method: str, public_id: str, **kwargs) -> requests.Response:
        url = f"https://{self.host}/{public_id}"
        try:
            return requests.request(method, url, timeout=60, **kwargs)
        except requests.RequestException as e:
            logger.error(f"Media {method} {public_id} failed: {str(e)}")
            raise HTTPException(status_code=502, detail="Media storage unavailable, try again later")

    @staticmethod
    def _calculate_payload_hash(file_path: str) -> str:
        """Calculate SHA256 hash of file content."""
        sha256 = hashlib.sha256()
        with open(file_path, "rb") as f:
            while chunk := f.read(8192):
                sha256.update(chunk)
        return sha256.hexdigest()

    def _signed_headers(
            self,
            method: str,
            canonical_uri: str,
            payload_hash: str,
            content_type: Optional[str] = None,
            content_length: int = 0
    ) -> dict:
        """AWS Signature V4 headers for a single object request."""
        def sign(key, msg):
            return hmac.new(key, msg.encode('utf-8'), hashlib.sha256).digest()

        now = datetime.utcnow()
        amz_date = now.strftime('%Y%m%dT%H%M%SZ')
        date_stamp = now.strftime('%Y%m%d')
        service = 's3'

        canonical_headers = f"host:{self.host}\nx-amz-content-sha256:{payload_hash}\nx-amz-date:{amz_date}\n"
        signed_headers = 'host;x-amz-content-sha256;x-amz-date'
        canonical_request = f'{method}\n{canonical_uri}\n\n{canonical_headers}\n{signed_headers}\n{payload_hash}'
        algorithm = 'AWS4-HMAC-SHA256'
        credential_scope = f'{date_stamp}/{self.region}/{service}/aws4_request'
        string_to_sign = f'{algorithm}\n{amz_date}\n{credential_scope}\n{hashlib.sha256(canonical_request.encode("utf-8")).hexdigest()}'

        k_date = sign(('AWS4' + self.secret_key).encode('utf-8'), date_stamp)
        k_signing = sign(sign(sign(k_date, self.region), service), 'aws4_request')
        signature = hmac.new(k_signing, string_to_sign.encode('utf-8'), hashlib.sha256).hexdigest()

        headers = {
            'Authorization': f'{algorithm} Credential={self.access_key}/{credential_scope}, SignedHeaders={signed_headers}, Signature={signature}',
            'x-amz-content-sha256': payload_hash,
            'x-amz-date': amz_date,
        }
        if content_type:
            headers['Content-Type'] = content_type
            headers['Content-Length'] = str(content_length)
        return headers


_storage: Optional[MediaStorage] = None


def get_media_storage() -> MediaStorage:
    """FastAPI dependency."""
    global _storage
    if _storage is None:
        _storage = MediaStorage(
            settings.MEDIA_BUCKET_NAME,
            settings.MEDIA_ENDPOINT_URL,
            settings.MEDIA_REGION_NAME,
            settings.MEDIA_ACCESS_KEY,
            settings.MEDIA_SECRET_KEY,
            settings.MEDIA_CDN_URL,
            settings.MEDIA_MAX_UPLOAD_MB,
        )
    return _storage

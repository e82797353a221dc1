# paytovote/storage.py
# Proof image storage: Cloudinary in production, local disk for development.
import io
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import cloudinary
import cloudinary.uploader
import cloudinary.utils

from paytovote import config
from paytovote.errors import UploadError, ValidationError

logger = logging.getLogger(__name__)

PNG_MAGIC = b"\x89PNG\r\n\x1a\n"
JPEG_MAGIC = b"\xff\xd8\xff"


@dataclass
class ProofImage:
    filename: Optional[str]
    content_type: Optional[str]
    data: bytes


def sniff_image_type(data: bytes) -> Optional[str]:
    """Return "png"/"jpg" from the file's magic number, or None."""
    if data.startswith(PNG_MAGIC):
        return "png"
    if data.startswith(JPEG_MAGIC):
        return "jpg"
    return None


def validate_proof(image: Optional[ProofImage], max_bytes: int = config.MAX_PROOF_BYTES) -> str:
    """Check the screenshot before anything touches the network; returns its extension."""
    if image is None or not image.data:
        raise ValidationError("Please provide both the transaction reference and the screenshot.")
    if len(image.data) > max_bytes:
        raise ValidationError(f"Screenshot is too large (max {max_bytes // (1024 * 1024)} MB).")
    ext = sniff_image_type(image.data)
    if ext is None:
        raise ValidationError("Payment screenshot must be a PNG or JPG image.")
    return ext


class ProofStore:
    """Blob store contract used by the vote workflow."""

    def upload(self, path: str, data: bytes) -> None:
        raise NotImplementedError

    def get_public_url(self, path: str) -> str:
        raise NotImplementedError

    def remove(self, path: str) -> None:
        raise NotImplementedError


class CloudinaryProofStore(ProofStore):
    def __init__(self, folder: str = config.PROOF_FOLDER):
        cloudinary.config(
            cloud_name=config.CLOUDINARY_NAME,
            api_key=config.CLOUDINARY_API_KEY,
            api_secret=config.CLOUDINARY_API_SECRET,
            secure=True,
        )
        self.folder = folder

    def _public_id(self, path: str) -> str:
        # Cloudinary public ids carry no extension
        return f"{self.folder}/{os.path.splitext(path)[0]}"

    def upload(self, path: str, data: bytes) -> None:
        try:
            cloudinary.uploader.upload(
                io.BytesIO(data),
                public_id=self._public_id(path),
                resource_type="image",
                overwrite=False,
            )
        except Exception as e:
            raise UploadError(f"Image upload failed: {str(e)}")

    def get_public_url(self, path: str) -> str:
        url, _ = cloudinary.utils.cloudinary_url(self._public_id(path), resource_type="image", secure=True)
        return url

    def remove(self, path: str) -> None:
        try:
            response = cloudinary.uploader.destroy(self._public_id(path), resource_type="image", invalidate=True)
        except Exception as e:
            raise UploadError(f"Image removal failed: {str(e)}")
        if response.get("result") not in ("ok", "not found"):
            raise UploadError(f"Image removal failed: {response.get('result')}")


class LocalProofStore(ProofStore):
    """Writes proofs under ``root`` and serves them from ``/uploads/proofs``."""

    def __init__(self, root: str = config.LOCAL_UPLOAD_DIR, base_url: str = config.PUBLIC_BASE_URL):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)
        self.base_url = base_url.rstrip("/")

    def _file(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if self.root.resolve() not in target.parents:
            raise UploadError("Invalid proof path.")
        return target

    def upload(self, path: str, data: bytes) -> None:
        target = self._file(path)
        if target.exists():
            raise UploadError("A proof with this name already exists.")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, "wb") as f:
                f.write(data)
        except OSError as e:
            raise UploadError(f"Image upload failed: {e}")

    def get_public_url(self, path: str) -> str:
        return f"{self.base_url}/uploads/proofs/{path}"

    def remove(self, path: str) -> None:
        try:
            self._file(path).unlink(missing_ok=True)
        except OSError as e:
            raise UploadError(f"Image removal failed: {e}")


def build_proof_store(kind: str = config.PROOF_STORE) -> ProofStore:
    if kind == "cloudinary":
        return CloudinaryProofStore()
    if kind == "local":
        return LocalProofStore()
    raise ValueError(f"Unknown PROOF_STORE '{kind}'")

"""Image working set: existing vs pending assets, uploads and the committed list."""

import asyncio
import logging
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Protocol

from backend.extranet.adapters.storage import ObjectStorage, make_object_path
from backend.extranet.media.validation import (
    ImageLimits,
    MediaValidationError,
    decode_width,
    validate_image,
)
from backend.extranet.models.activity import ActivityImage, ImageCommitEntry
from backend.extranet.models.responses import CommitResult
from backend.extranet.utils.logging import log_upload
from backend.extranet.utils.metrics import record_upload

logger = logging.getLogger(__name__)


class MediaUploadError(Exception):
    """One or more pending images failed to upload; nothing was committed."""

    def __init__(self, failed: list[str]) -> None:
        super().__init__(f"{len(failed)} image(s) failed to upload: {', '.join(failed)}")
        self.failed = failed


class ImageStore(Protocol):
    """Catalog operations the image step needs."""

    async def save_images(self, activity_id: str, images: list[ImageCommitEntry]) -> CommitResult:
        ...

    async def delete_image(self, image_id: int) -> CommitResult:
        ...


@dataclass
class ImageAsset:
    """One row of the working list.

    Existing assets have a persisted `id`; pending ones only carry local
    bytes until uploaded, after which `url` is set.
    """

    id: int | None = None
    url: str | None = None
    content: bytes | None = None
    filename: str = ""
    content_type: str = ""
    progress: int = 0
    error: str | None = None
    key: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def is_existing(self) -> bool:
        return self.id is not None

    @classmethod
    def from_persisted(cls, image: ActivityImage) -> "ImageAsset":
        return cls(id=image.id, url=image.image_url, progress=100)


@dataclass(frozen=True)
class PendingFile:
    """A file picked by the merchant."""

    filename: str
    content_type: str
    content: bytes


@dataclass
class AddReport:
    """Result of adding files: accepted rows and rejected rows with their error."""

    added: list[ImageAsset] = field(default_factory=list)
    rejected: list[ImageAsset] = field(default_factory=list)


class MediaReconciler:
    """Working set for the image step."""

    def __init__(
        self,
        storage: ObjectStorage,
        limits: ImageLimits | None = None,
        min_count: int = 3,
        max_count: int = 5,
        upload_prefix: str = "catalogs/services",
        decoder: Callable[[bytes], int] = decode_width,
    ) -> None:
        """Initialize working set.

        Args:
            storage: Object storage collaborator
            limits: Per-file validation limits
            min_count: Images required to continue
            max_count: Images allowed in total
            upload_prefix: Object path prefix for uploads
            decoder: Width decoder used by validation (injectable for tests)
        """
        self._storage = storage
        self._limits = limits or ImageLimits()
        self._min_count = min_count
        self._max_count = max_count
        self._upload_prefix = upload_prefix
        self._decoder = decoder
        self.items: list[ImageAsset] = []

    def load(self, images: Sequence[ActivityImage]) -> None:
        """Replace the working list with the persisted images, cover first."""
        ordered = sorted(images, key=lambda i: not i.is_cover)
        self.items = [ImageAsset.from_persisted(i) for i in ordered]

    @property
    def can_add(self) -> bool:
        return len(self.items) < self._max_count

    @property
    def can_continue(self) -> bool:
        return self._min_count <= len(self.items) <= self._max_count

    def find(self, key: str) -> ImageAsset:
        """Row by local key.

        Raises:
            KeyError: If no row has the key
        """
        for item in self.items:
            if item.key == key:
                return item
        raise KeyError(key)

    async def add_files(self, files: Sequence[PendingFile]) -> AddReport:
        """Validate picked files and append the valid ones.

        Files are validated concurrently; each failure is reported on its own
        row and does not affect the others. Valid files beyond the maximum are
        rejected.
        """
        results = await asyncio.gather(
            *(validate_image(f.content, f.content_type, self._limits, self._decoder) for f in files),
            return_exceptions=True,
        )

        report = AddReport()
        for pending, result in zip(files, results):
            asset = ImageAsset(
                content=pending.content,
                filename=pending.filename,
                content_type=pending.content_type,
            )
            if isinstance(result, MediaValidationError):
                asset.error = result.code
                report.rejected.append(asset)
            elif isinstance(result, BaseException):
                raise result
            elif not self.can_add:
                asset.error = "MAX_COUNT"
                report.rejected.append(asset)
            else:
                self.items.append(asset)
                report.added.append(asset)
        return report

    def partition(self) -> tuple[list[ImageAsset], list[ImageAsset]]:
        """Split the working list into (existing, pending)."""
        existing = [i for i in self.items if i.is_existing]
        pending = [i for i in self.items if not i.is_existing]
        return existing, pending

    async def _upload_one(self, asset: ImageAsset) -> str:
        def on_progress(percent: int) -> None:
            asset.progress = percent

        path = make_object_path(self._upload_prefix, asset.filename)
        return await self._storage.upload(asset.content or b"", path, asset.content_type, on_progress)

    async def upload_pending(self) -> list[ImageAsset]:
        """Upload every pending image that has no URL yet.

        Uploads run together; each row records its own progress and error.

        Returns:
            Pending rows, all with URLs

        Raises:
            MediaUploadError: If any upload failed
        """
        _existing, pending = self.partition()
        to_upload = [a for a in pending if a.url is None]
        results = await asyncio.gather(
            *(self._upload_one(a) for a in to_upload), return_exceptions=True
        )

        failed: list[str] = []
        for asset, result in zip(to_upload, results):
            if isinstance(result, Exception):
                asset.error = "UPLOAD_FAILED"
                asset.progress = 0
                failed.append(asset.filename)
                record_upload("error")
                log_upload(asset.filename, "error", type(result).__name__)
            elif isinstance(result, BaseException):
                raise result
            else:
                asset.url = result
                asset.error = None
                asset.progress = 100
                record_upload("success")
                log_upload(asset.filename, "success")

        if failed:
            raise MediaUploadError(failed)
        return pending

    @staticmethod
    def assemble(existing: Sequence[ImageAsset], uploaded: Sequence[ImageAsset]) -> list[ImageCommitEntry]:
        """Final list: existing first, then new uploads; index 0 is the cover."""
        ordered = [*existing, *uploaded]
        return [ImageCommitEntry(url=a.url or "", cover=i == 0) for i, a in enumerate(ordered)]

    async def commit(self, store: ImageStore, activity_id: str) -> CommitResult:
        """Upload pending images and commit the final list.

        Raises:
            MediaUploadError: If any pending upload failed
        """
        existing, _pending = self.partition()
        uploaded = await self.upload_pending()
        return await store.save_images(activity_id, self.assemble(existing, uploaded))

    async def remove(self, key: str, store: ImageStore) -> CommitResult | None:
        """Remove a row.

        Existing images lose their storage blob first (best-effort), then
        their catalog record. Pending images are only dropped locally.

        Returns:
            Catalog delete result for existing images, None for pending ones
        """
        asset = self.find(key)
        if not asset.is_existing:
            self.items.remove(asset)
            return None

        if asset.url:
            try:
                await self._storage.delete(asset.url)
            except Exception as e:
                logger.warning(f"Storage delete failed for image {asset.id}: {type(e).__name__}")

        result = await store.delete_image(asset.id)  # type: ignore[arg-type]
        if result.success:
            self.items.remove(asset)
        return result

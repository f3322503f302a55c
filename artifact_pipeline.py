import io
import itertools
import json
import logging
import re
import zipfile
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, Optional, Tuple, Union

from lens_model import to_payload

logger = logging.getLogger(__name__)

IMAGE_NAME_PATTERN = re.compile(r"\.(png|jpg|jpeg)$", re.IGNORECASE)
IMAGE_MIME_TYPES = {"png": "image/png", "jpg": "image/jpeg", "jpeg": "image/jpeg"}
ARCHIVE_MIME_TYPE = "application/zip"
GENERIC_ERROR_MESSAGE = "An error occurred"


class ArchiveDecodeError(ValueError):
    pass


@dataclass(frozen=True)
class Handle:
    handle_id: str
    mime_type: str


@dataclass(frozen=True)
class ImageArtifact:
    name: str
    handle: Handle


@dataclass(frozen=True)
class ArtifactSet:
    images: Tuple[ImageArtifact, ...]
    archive_handle: Handle

    @property
    def handles(self) -> Tuple[Handle, ...]:
        return tuple(image.handle for image in self.images) + (self.archive_handle,)


class HandleRegistry:
    """Arena of issued resources: handle id -> bytes, released only by ``revoke``."""

    def __init__(self):
        self._buffers: Dict[str, bytes] = {}
        self._ids = itertools.count(1)

    def register(self, data: bytes, mime_type: str) -> Handle:
        handle = Handle(f"res-{next(self._ids)}", mime_type)
        self._buffers[handle.handle_id] = bytes(data)
        return handle

    def resolve(self, handle: Handle) -> bytes:
        try:
            return self._buffers[handle.handle_id]
        except KeyError:
            raise KeyError(f"Handle {handle.handle_id} has been revoked") from None

    def revoke(self, handle: Handle) -> bool:
        return self._buffers.pop(handle.handle_id, None) is not None

    def clear(self):
        count = len(self._buffers)
        self._buffers.clear()
        return count

    def __contains__(self, handle):
        return isinstance(handle, Handle) and handle.handle_id in self._buffers

    def __len__(self):
        return len(self._buffers)


def image_mime_type(name: str) -> Optional[str]:
    match = IMAGE_NAME_PATTERN.search(name)
    if match is None:
        return None
    return IMAGE_MIME_TYPES[match.group(1).lower()]


def display_name(name):
    """Caption for an archive entry: ``lens_polar.png`` -> ``polar``."""
    base = name.rsplit("/", 1)[-1]
    base = IMAGE_NAME_PATTERN.sub("", base)
    if base.startswith("lens_"):
        base = base[len("lens_"):]
    return base


def _detail_message(body: bytes) -> Optional[str]:
    data = json.loads(body.decode("utf-8"))
    detail = data.get("detail") if isinstance(data, dict) else None
    if isinstance(detail, dict):
        message = detail.get("error") or detail.get("message")
    elif isinstance(detail, str):
        message = detail
    elif isinstance(detail, list):
        # validation errors: [{"loc": [...], "msg": "..."}, ...]
        message = "; ".join(str(item["msg"]) for item in detail if isinstance(item, dict) and item.get("msg"))
    else:
        message = None
    return str(message) if message else None


class ResponseArtifactPipeline:
    """
    Turns raw service responses into artifacts.

    A success body is a ZIP archive: every image entry becomes one handle in
    the registry and the whole body becomes one more handle for download.  A
    failure body is decoded into a single human-readable message.
    """

    def __init__(self, transport=None, registry: Optional[HandleRegistry] = None, max_workers: int = 4):
        self.transport = transport
        self.registry = registry if registry is not None else HandleRegistry()
        self.max_workers = max(1, int(max_workers))

    def submit(self, params):
        if self.transport is None:
            raise RuntimeError("No transport configured for this pipeline")
        return self.transport.post(to_payload(params))

    def on_success(self, raw: bytes) -> ArtifactSet:
        try:
            archive = zipfile.ZipFile(io.BytesIO(raw))
        except Exception as e:
            raise ArchiveDecodeError(f"Response is not a valid archive: {e}") from e

        with archive:
            entries = [info for info in archive.infolist()
                       if not info.is_dir() and image_mime_type(info.filename)]
            logger.debug("Archive has %d entries, %d images", len(archive.infolist()), len(entries))
            try:
                with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                    contents = list(pool.map(archive.read, entries))
            except Exception as e:
                # zlib, bz2 and lzma each raise their own error type
                raise ArchiveDecodeError(f"Failed to decode archive entry: {e}") from e

        # register only after every entry decoded
        images = tuple(
            ImageArtifact(info.filename, self.registry.register(content, image_mime_type(info.filename)))
            for info, content in zip(entries, contents)
        )
        archive_handle = self.registry.register(raw, ARCHIVE_MIME_TYPE)
        logger.info("Registered %d image(s) and one archive", len(images))
        return ArtifactSet(images, archive_handle)

    def on_failure(self, raw: Optional[bytes], transport_error=None) -> str:
        if raw:
            try:
                message = _detail_message(bytes(raw))
            except (ValueError, RecursionError) as e:
                # not UTF-8 or not JSON
                logger.debug("Error body is not structured: %s", e)
            else:
                return message or GENERIC_ERROR_MESSAGE

        try:
            error_text = str(transport_error) if transport_error is not None else ""
        except Exception:
            error_text = ""
        if error_text:
            return error_text
        return GENERIC_ERROR_MESSAGE

    def resolve(self, handle: Handle) -> bytes:
        return self.registry.resolve(handle)

    def revoke(self, target: Union[ArtifactSet, Handle, None]) -> int:
        if target is None:
            return 0
        handles = target.handles if isinstance(target, ArtifactSet) else (target,)
        released = sum(self.registry.revoke(handle) for handle in handles)
        if released:
            logger.debug("Revoked %d handle(s)", released)
        return released

    def revoke_all(self) -> int:
        return self.registry.clear()

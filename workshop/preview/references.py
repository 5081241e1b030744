from __future__ import annotations

import base64
import uuid
from dataclasses import dataclass
from typing import Dict, Optional

from workshop.utils.file_ops import file_extension

MEDIA_TYPES: Dict[str, str] = {
    "html": "text/html",
    "htm": "text/html",
    "css": "text/css",
    "js": "application/javascript",
    "mjs": "application/javascript",
    "json": "application/json",
    "svg": "image/svg+xml",
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "webp": "image/webp",
    "ico": "image/x-icon",
    "xml": "application/xml",
    "md": "text/markdown",
    "txt": "text/plain",
}
DEFAULT_MEDIA_TYPE = "text/plain"


def media_type_for(file_name: str) -> str:
    return MEDIA_TYPES.get(file_extension(file_name), DEFAULT_MEDIA_TYPE)


@dataclass
class EphemeralReference:
    url: str
    content: str
    media_type: str


class EphemeralReferencePool:
    """
    Short-lived handles standing in for in-memory file content.

    A pool belongs to exactly one preview generation. `revoke_all()` releases
    every handle it issued; resolving a revoked handle returns None.

    With `inline=True` the handles are self-contained `data:` URLs, which is
    what an exported preview needs when no live resolver sits behind it.
    """

    def __init__(self, generation: int = 0, inline: bool = False) -> None:
        self.generation = generation
        self.inline = inline
        self._refs: Dict[str, EphemeralReference] = {}
        self.revoked = False

    def create(self, content: str, media_type: str) -> str:
        if self.revoked:
            raise RuntimeError(f"Reference pool for generation {self.generation} has been revoked")
        if self.inline:
            payload = base64.b64encode(content.encode("utf-8")).decode("ascii")
            url = f"data:{media_type};base64,{payload}"
            # Identical content yields identical data URLs; keep the key unique anyway.
            key = f"{url}#{uuid.uuid4().hex}"
        else:
            url = f"blob:workshop/{self.generation}/{uuid.uuid4().hex}"
            key = url
        self._refs[key] = EphemeralReference(url=url, content=content, media_type=media_type)
        return url

    def resolve(self, url: str) -> Optional[EphemeralReference]:
        hit = self._refs.get(url)
        if hit is not None:
            return hit
        for ref in self._refs.values():
            if ref.url == url:
                return ref
        return None

    def revoke_all(self) -> int:
        count = len(self._refs)
        self._refs.clear()
        self.revoked = True
        return count

    def __len__(self) -> int:
        return len(self._refs)

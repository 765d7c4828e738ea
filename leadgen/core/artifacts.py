"""Filesystem store for generated site artifacts keyed by locality and business slug."""

import logging
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)


class ArtifactError(RuntimeError):
    """Raised when an artifact cannot be read, written or removed."""


class FileArtifactStore:
    """Keeps one JSON document per business under ``<root>/sites/<locality>/<business>.json``."""

    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root)

    def path_for(self, locality_slug: str, business_slug: str) -> Path:
        return self.root.joinpath("sites", locality_slug, f"{business_slug}.json")

    def exists(self, locality_slug: str, business_slug: str) -> bool:
        return self.path_for(locality_slug, business_slug).is_file()

    def get(self, locality_slug: str, business_slug: str) -> bytes:
        path = self.path_for(locality_slug, business_slug)
        try:
            return path.read_bytes()
        except OSError as exc:
            raise ArtifactError(f"cannot read artifact {path}: {exc}") from exc

    def put(self, locality_slug: str, business_slug: str, body: bytes) -> None:
        path = self.path_for(locality_slug, business_slug)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(body)
        except OSError as exc:
            raise ArtifactError(f"cannot write artifact {path}: {exc}") from exc

    def delete(self, locality_slug: str, business_slug: str) -> None:
        path = self.path_for(locality_slug, business_slug)
        try:
            path.unlink()
        except OSError as exc:
            raise ArtifactError(f"cannot delete artifact {path}: {exc}") from exc

    def move(self, old_locality: str, old_slug: str, new_locality: str, new_slug: str) -> None:
        """Copy then delete; a failed delete leaves both copies in place.

        An existing artifact at the target belongs to another business and is
        never overwritten.
        """
        if self.exists(new_locality, new_slug):
            raise ArtifactError(f"artifact {self.path_for(new_locality, new_slug)} already exists")
        body = self.get(old_locality, old_slug)
        self.put(new_locality, new_slug, body)
        self.delete(old_locality, old_slug)
        logger.debug("Moved artifact %s/%s -> %s/%s", old_locality, old_slug, new_locality, new_slug)

"""Item registry and image storage.

This module handles:
- A JSON catalog of named image items (load/save/add/delete/search)
- Writing uploaded PNG bytes under the items directory
- Loading an item's bytes and intrinsic size as a SourceImage
"""

import io
import json
import logging
import re
import uuid
from pathlib import Path
from typing import Literal

from PIL import Image, UnidentifiedImageError
from pydantic import BaseModel, Field, ValidationError

from labelgrid.config import (
    ITEMS_DIR,
    MAX_FILENAME_LENGTH,
    MAX_ITEM_NAME_LENGTH,
    MIN_IMAGE_BYTES,
    REGISTRY_FILE,
)
from labelgrid.errors import InvalidSpec, SourceImageUnavailable
from labelgrid.validation import SourceImage

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9_\-]+")


class RegistryItem(BaseModel):
    """One named image in the registry."""

    id: str = Field(min_length=1, description="Unique identifier (UUID)")
    name: str = Field(min_length=1, description="Display name")
    type: Literal["image"] = "image"
    value: str = Field(min_length=1, description="Path of the stored image file")


def safe_filename(name: str) -> str:
    """Make a display name safe for use in a filename.

    Runs of characters outside [A-Za-z0-9_-] become "_"; an empty result
    falls back to "item". The result is at most MAX_FILENAME_LENGTH chars.
    """
    cleaned = _UNSAFE_FILENAME_CHARS.sub("_", name.strip())
    return (cleaned or "item")[:MAX_FILENAME_LENGTH]


class ItemRegistry:
    """File-backed catalog of image items."""

    def __init__(self, items_dir: str | Path = ITEMS_DIR, registry_file: str | Path = REGISTRY_FILE) -> None:
        self.items_dir = Path(items_dir)
        self.registry_file = Path(registry_file)

    @classmethod
    def in_data_dir(cls, data_dir: str | Path) -> "ItemRegistry":
        """Registry rooted at `data_dir` (items/ and items_registry.json inside it)."""
        root = Path(data_dir)
        return cls(root / "items", root / "items_registry.json")

    def load_items(self) -> list[RegistryItem]:
        """Load all well-formed items.

        Returns:
            Items in registry order; empty if the file is missing or unreadable

        Note:
            Malformed entries are skipped with a warning rather than failing
            the whole catalog.
        """
        if not self.registry_file.exists():
            logger.debug(f"No registry file found: {self.registry_file}")
            return []

        try:
            data = json.loads(self.registry_file.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Invalid registry file {self.registry_file}: {e}")
            return []

        if not isinstance(data, list):
            logger.warning(f"Registry file {self.registry_file} is not a list, ignoring")
            return []

        items: list[RegistryItem] = []
        for entry in data:
            try:
                items.append(RegistryItem.model_validate(entry))
            except ValidationError as e:
                logger.warning(f"Skipping malformed registry entry {entry!r}: {e.error_count()} error(s)")
        return items

    def save_items(self, items: list[RegistryItem]) -> None:
        """Persist the full item list."""
        self.registry_file.parent.mkdir(parents=True, exist_ok=True)
        payload = [item.model_dump() for item in items]
        self.registry_file.write_text(json.dumps(payload, indent=2), encoding="utf-8")

    def get_item(self, item_id: str) -> RegistryItem | None:
        for item in self.load_items():
            if item.id == item_id:
                return item
        return None

    def search(self, query: str) -> list[RegistryItem]:
        """Items whose name contains `query`, case-insensitive."""
        needle = query.strip().lower()
        items = self.load_items()
        if not needle:
            return items
        return [item for item in items if needle in item.name.lower()]

    def add_png_item(self, name: str, file_bytes: bytes) -> RegistryItem:
        """Store PNG bytes and register them under `name`.

        Args:
            name: Display name (1-80 characters after trimming)
            file_bytes: Encoded PNG

        Returns:
            The new RegistryItem

        Raises:
            InvalidSpec: If the name is empty/too long or the data is too short
        """
        clean_name = name.strip()
        if not clean_name or len(clean_name) > MAX_ITEM_NAME_LENGTH:
            raise InvalidSpec(f"Item name must be 1-{MAX_ITEM_NAME_LENGTH} characters")
        if len(file_bytes) < MIN_IMAGE_BYTES:
            raise InvalidSpec("Invalid PNG data")

        item_id = str(uuid.uuid4())
        self.items_dir.mkdir(parents=True, exist_ok=True)
        file_path = self.items_dir / f"{safe_filename(clean_name)}_{item_id[:8]}.png"
        file_path.write_bytes(file_bytes)

        item = RegistryItem(id=item_id, name=clean_name, value=str(file_path))
        self.save_items([*self.load_items(), item])
        logger.info(f"Added item '{clean_name}' ({item_id}) at {file_path}")
        return item

    def delete_item(self, item_id: str) -> RegistryItem:
        """Remove an item from the registry and delete its file if present.

        Raises:
            KeyError: If no item has this id
        """
        items = self.load_items()
        target = next((item for item in items if item.id == item_id), None)
        if target is None:
            raise KeyError(f"Item not found: {item_id}")

        self.save_items([item for item in items if item.id != item_id])
        Path(target.value).unlink(missing_ok=True)
        logger.info(f"Deleted item '{target.name}' ({item_id})")
        return target


def load_source_image(ref: RegistryItem | str | Path) -> SourceImage:
    """Read an image's bytes and intrinsic pixel size.

    Args:
        ref: Registry item or direct path to the image file

    Returns:
        SourceImage with width, height and raw bytes

    Raises:
        SourceImageUnavailable: If the file is missing or not a readable image
    """
    path = Path(ref.value if isinstance(ref, RegistryItem) else ref)
    if not path.exists():
        raise SourceImageUnavailable(f"Source image not found: {path}")

    try:
        data = path.read_bytes()
    except OSError as e:
        raise SourceImageUnavailable(f"Cannot read source image: {path}: {e}") from e

    try:
        with Image.open(io.BytesIO(data)) as img:
            width, height = img.size
    except (UnidentifiedImageError, OSError) as e:
        raise SourceImageUnavailable(f"Not a valid image: {path}: {e}") from e

    return SourceImage(width_px=width, height_px=height, data=data)

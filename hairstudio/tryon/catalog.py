"""
Style Catalog
Static hairstyle presets loaded once from styles.json.
"""
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from ..config import STYLES_FILE_PATH
from .errors import StyleNotFound

logger = logging.getLogger(__name__)


VALID_GENDERS = {"male", "female", "unisex"}


@dataclass(frozen=True)
class HairstyleOption:
    """A hairstyle preset used to build the edit instruction."""
    id: str
    name: str
    description: str
    gender: str = "unisex"
    preview_color: str = "#64748b"

    def to_dict(self) -> Dict[str, str]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "gender": self.gender,
            "preview_color": self.preview_color,
        }


def load_styles_from_file(path: Union[str, Path, None] = None) -> List[dict]:
    """
    Load raw style entries from a styles.json file.
    """
    path = Path(path) if path else STYLES_FILE_PATH
    if not path.exists():
        raise FileNotFoundError(f"Styles file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    return data.get("styles", [])


class StyleCatalog:
    """Ordered, immutable collection of hairstyle presets."""

    def __init__(self, styles: List[HairstyleOption]):
        if not styles:
            raise ValueError("Style catalog must contain at least one style")

        self._styles: Tuple[HairstyleOption, ...] = tuple(styles)
        self._by_id: Dict[str, HairstyleOption] = {}
        for style in self._styles:
            if style.id in self._by_id:
                raise ValueError(f"Duplicate style id: {style.id}")
            if style.gender not in VALID_GENDERS:
                raise ValueError(f"Invalid gender '{style.gender}' for style {style.id}")
            self._by_id[style.id] = style

    @classmethod
    def from_dicts(cls, entries: List[dict]) -> "StyleCatalog":
        styles = []
        for s in entries:
            styles.append(HairstyleOption(
                id=s["id"],
                name=s.get("name", s["id"]),
                description=s.get("description", ""),
                gender=s.get("gender", "unisex"),
                preview_color=s.get("preview_color", "#64748b"),
            ))
        return cls(styles)

    def __len__(self) -> int:
        return len(self._styles)

    def __contains__(self, style_id: str) -> bool:
        return style_id in self._by_id

    def list_styles(self) -> Tuple[HairstyleOption, ...]:
        return self._styles

    def find_style(self, style_id: Optional[str]) -> Optional[HairstyleOption]:
        if style_id is None:
            return None
        return self._by_id.get(style_id)

    def get_style(self, style_id: str) -> HairstyleOption:
        style = self.find_style(style_id)
        if style is None:
            raise StyleNotFound(style_id)
        return style

    def search(self, query: str = "", gender: Optional[str] = None) -> List[HairstyleOption]:
        """
        Filter styles for the selection grid.

        Args:
            query: Case-insensitive text matched against name, description and gender
            gender: Restrict to one gender; unisex styles always match

        Returns:
            Matching styles in catalog order
        """
        query = (query or "").strip().lower()
        results = []
        for style in self._styles:
            if gender and style.gender not in (gender, "unisex"):
                continue
            if query and not (
                query in style.name.lower()
                or query in style.description.lower()
                or query in style.gender
            ):
                continue
            results.append(style)
        return results


def load_catalog(path: Union[str, Path, None] = None) -> StyleCatalog:
    catalog = StyleCatalog.from_dicts(load_styles_from_file(path))
    logger.info(f"Loaded {len(catalog)} hairstyles")
    return catalog

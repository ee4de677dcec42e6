"""Image-size policy for choosing an overlay template."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from .templates import AlphaTemplate, AlphaTemplateStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SelectionRule:
    """Images whose width and height both exceed ``large_threshold`` get the large template."""

    large_threshold: int = 1024
    large_template: str = "large"
    small_template: str = "small"

    def bucket(self, image_width: int, image_height: int) -> str:
        if image_width > self.large_threshold and image_height > self.large_threshold:
            return self.large_template
        return self.small_template

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> "SelectionRule":
        settings = dict(config.get("selection", {}))
        return cls(
            large_threshold=int(settings.get("large_threshold", 1024)),
            large_template=str(settings.get("large_template", "large")),
            small_template=str(settings.get("small_template", "small")),
        )


class TemplateSelector:
    def __init__(self, store: AlphaTemplateStore, rule: Optional[SelectionRule] = None) -> None:
        self.store = store
        self.rule = rule or SelectionRule()

    def select(self, image_width: int, image_height: int) -> Optional[AlphaTemplate]:
        """Return the template for an image size, or ``None`` if that bucket is not loaded.

        A missing bucket is never replaced by a template of another size.
        """
        name = self.rule.bucket(image_width, image_height)
        template = self.store.get(name)
        if template is None:
            logger.warning(
                "No %s template loaded for %sx%s image (available: %s)",
                name,
                image_width,
                image_height,
                ", ".join(self.store.names) or "none",
            )
        return template

    @classmethod
    def from_config(cls, config: Mapping[str, Any], store: AlphaTemplateStore) -> "TemplateSelector":
        return cls(store, SelectionRule.from_config(config))


__all__ = ["SelectionRule", "TemplateSelector"]

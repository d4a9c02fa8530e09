"""Registry that turns internal page links into links between exported files."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Iterator

from .config import LinkHandling

logger = logging.getLogger(__name__)

# Markdown links whose target uses the notebook application's URL scheme.
INTERNAL_LINK_PATTERN = re.compile(r"\[(?P<text>[^\]]+)\]\(onenote:(?P<url>[^)]+)\)")
PAGE_KEY_PATTERN = re.compile(r"page-id=\{(?P<key>[^}]+)\}", re.IGNORECASE)

LinkRenderer = Callable[[str, str, str], str]


@dataclass(slots=True)
class LinkTarget:
    """Where a linked page ended up in the export."""

    internal_id: str
    original_id: str
    stable_key: str
    output_path: str
    title: str


def extract_link_key(url: str) -> str | None:
    """Return the stable page key embedded in an internal link URL."""
    match = PAGE_KEY_PATTERN.search(url)
    return match.group("key") if match else None


def iter_link_keys(text: str) -> Iterator[str]:
    """Yield the stable keys of the internal links found in ``text``."""
    for match in INTERNAL_LINK_PATTERN.finditer(text):
        key = extract_link_key(match.group("url"))
        if key:
            yield key


class LinkRegistry:
    """Map stable cross-reference keys to exported page locations for one export run."""

    def __init__(self, handling: LinkHandling = LinkHandling.MARKDOWN) -> None:
        self.handling = handling
        self._targets: dict[str, LinkTarget] = {}

    def __len__(self) -> int:
        return len(self._targets)

    def __contains__(self, stable_key: object) -> bool:
        return stable_key in self._targets

    def register(
        self,
        internal_id: str,
        original_id: str,
        stable_key: str,
        output_path: str,
        title: str,
    ) -> LinkTarget:
        target = LinkTarget(
            internal_id=internal_id,
            original_id=original_id,
            stable_key=stable_key,
            output_path=output_path.replace("\\", "/"),
            title=title,
        )
        self._targets[stable_key] = target
        return target

    def lookup(self, stable_key: str) -> LinkTarget | None:
        return self._targets.get(stable_key)

    def resolve(self, text: str, render_link: LinkRenderer) -> str:
        """Rewrite internal links in ``text`` according to the handling policy.

        Resolved links are produced by ``render_link(display_text, output_path,
        internal_id)``. Links that cannot be resolved keep their display text only.
        """
        if self.handling is LinkHandling.KEEP:
            return text

        def _replace(match: re.Match[str]) -> str:
            link_text = match.group("text")
            if not self.handling.resolves:
                return link_text

            key = extract_link_key(match.group("url"))
            if key is not None:
                target = self._targets.get(key)
                if target is not None:
                    logger.debug("Resolved link '%s' to %s", link_text, target.output_path)
                    return render_link(link_text, target.output_path, target.internal_id)
                logger.debug("No exported page registered for link key %s", key)

            # Section, section group or unknown target.
            logger.debug("Link '%s' removed: onenote:%s", link_text, match.group("url"))
            return link_text

        return INTERNAL_LINK_PATTERN.sub(_replace, text)

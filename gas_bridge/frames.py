from __future__ import annotations

from typing import Any, Dict, Optional, Sequence

from playwright.async_api import Frame, Page

__all__ = ["frame_by_path", "frame_containing", "describe_frame_tree"]


def _first_child_by_name(frame: Frame, name: str) -> Optional[Frame]:
    for child in frame.child_frames:
        if child.name == name:
            return child
    return None


def frame_by_path(page: Page, names: Sequence[str]) -> Optional[Frame]:
    """Walk ``names`` down from the main frame; ``None`` if a segment is missing."""

    current: Optional[Frame] = page.main_frame
    for name in names:
        current = _first_child_by_name(current, name)
        if current is None:
            return None
    return current


async def frame_containing(root: Frame, selector: str) -> Optional[Frame]:
    """Return the first frame, pre-order from ``root``, holding ``selector``."""

    handle = await root.query_selector(selector)
    if handle is not None:
        await handle.dispose()
        return root

    for child in root.child_frames:
        found = await frame_containing(child, selector)
        if found is not None:
            return found
    return None


def describe_frame_tree(frame: Frame) -> Dict[str, Any]:
    return {
        "name": frame.name or "(no-name)",
        "url": frame.url,
        "children": [describe_frame_tree(child) for child in frame.child_frames],
    }

import logging
from typing import Dict, Optional, Tuple

from .layout import PreviewNode, measure
from .rasterizer import DEFAULT_VIEWPORT_WIDTH


class DisplaySurface:
    """
    Where a rendered preview tree is attached so it can be found by id and measured.

    Mounting a new tree replaces the previous one, the way a re-render replaces
    the preview on screen.
    """

    def __init__(self, viewport_width: float = DEFAULT_VIEWPORT_WIDTH):
        self.viewport_width = viewport_width
        self.root: Optional[PreviewNode] = None
        self._by_id: Dict[str, PreviewNode] = {}

    def mount(self, root: PreviewNode):
        self.root = root
        self._by_id = {node.node_id: node for node in root.iter_nodes() if node.node_id}
        logging.debug(f"Mounted preview tree with {len(self._by_id)} addressable node(s)")

    def unmount(self):
        self.root = None
        self._by_id = {}

    def get_element_by_id(self, node_id: str) -> Optional[PreviewNode]:
        return self._by_id.get(node_id)

    def measure(self, node: PreviewNode) -> Tuple[int, int]:
        """Rendered (width, height) of a mounted node at the current viewport width."""
        return measure(node, self.viewport_width)

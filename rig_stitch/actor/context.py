"""Base-character vs attachment context detection.

Given any node under a character, tells whether it belongs to the base
character's own rig or to an attached asset (garment, prop), by walking up
to the nearest rig container.
"""

from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from ..scene_graph.sg_nodes import Component, SceneNode

BASE_LABEL = "Base"
UNKNOWN_LABEL = "Unknown"


class CharacterDescriptor(Component):
    """Marks a node as the root of a principal (base) character."""


@dataclass
class RigContext:
    """Where a node lives: the owning object and its rig container."""
    root_object: Optional[SceneNode] = None
    rig_root: Optional[SceneNode] = None
    label: str = UNKNOWN_LABEL
    is_base: bool = False


def _has_descriptor(node: SceneNode) -> bool:
    return node.get_component(CharacterDescriptor) is not None


class ContextDetector:
    """Classifies nodes by the rig they belong to.

    Args:
        is_principal: Optional predicate marking principal-character roots.
            Defaults to checking for a CharacterDescriptor component.
        config: DiscoveryConfig; defaults are used when None.
    """

    def __init__(self, is_principal: Optional[Callable[[SceneNode], bool]] = None,
                 config=None):
        if config is None:
            from ..settings import DiscoveryConfig
            config = DiscoveryConfig()
        self.is_principal = is_principal if is_principal is not None else _has_descriptor
        self._container_names = {n.lower() for n in config.context_container_names}

    def is_rig_container_name(self, name: str) -> bool:
        return bool(name) and name.lower() in self._container_names

    def find_rig_child(self, parent: Optional[SceneNode]) -> Optional[SceneNode]:
        if parent is None:
            return None
        for child in parent.children:
            if self.is_rig_container_name(child.name):
                return child
        return None

    def find_nearest_rig(self, node: Optional[SceneNode],
                         base_root: Optional[SceneNode]) -> Tuple[Optional[SceneNode], Optional[SceneNode]]:
        """Walk up from `node` to the closest rig container.

        Returns:
            (rig container, owning object), or (None, None) when the walk
            leaves the hierarchy without finding one.
        """
        current = node
        while current is not None:
            rig = self.find_rig_child(current)
            if rig is not None:
                return rig, current

            if self.is_rig_container_name(current.name):
                owner = current.parent if current.parent is not None else current
                return current, owner

            if current is base_root:
                return self.find_rig_child(current), current

            current = current.parent
        return None, None

    def is_base_root(self, obj: Optional[SceneNode], base_root: Optional[SceneNode]) -> bool:
        if obj is None:
            return False
        if obj is base_root:
            return True
        return bool(self.is_principal(obj))

    def detect_context(self, node: Optional[SceneNode],
                       base_root: Optional[SceneNode]) -> RigContext:
        """Context (base or attachment) that `node` belongs to."""
        if node is None or base_root is None:
            return RigContext(root_object=base_root)

        rig, owner = self.find_nearest_rig(node, base_root)
        if rig is None:
            return RigContext(base_root, self.find_rig_child(base_root), BASE_LABEL, True)

        if self.is_base_root(owner, base_root):
            return RigContext(base_root, rig, BASE_LABEL, True)
        return RigContext(owner, rig, owner.name, False)

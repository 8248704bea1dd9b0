"""Rig references: one skeleton instance and how to reach its joints.

A rig is reached either through a native joint map (a HumanoidMap component
that the host filled in, or any callable joint -> node) or, failing that,
by discovering its root container node by name.
"""

import logging
from typing import Callable, Dict, List, Optional

from ..scene_graph.sg_nodes import Component, SceneNode
from .joint_names import CanonicalJoint

_log = logging.getLogger("rig_stitch.rig")

NativeLookup = Callable[[CanonicalJoint], Optional[SceneNode]]


class HumanoidMap(Component):
    """Native joint map attached to a character's root node.

    Holds the host's authoritative canonical-joint -> node assignment.
    """

    def __init__(self, joints: Optional[Dict[CanonicalJoint, SceneNode]] = None):
        super().__init__()
        self.joints: Dict[CanonicalJoint, SceneNode] = dict(joints or {})

    def get_joint(self, joint: CanonicalJoint) -> Optional[SceneNode]:
        node = self.joints.get(joint)
        if node is not None and node.destroyed:
            return None
        return node


class RigReference:
    """One skeleton instance inside the scene graph.

    Args:
        root: Root node of the character or attachment.
        native_lookup: Optional callable joint -> node.  When omitted, a
            HumanoidMap component on the root or any descendant is used.
        discovery: DiscoveryConfig; defaults are used when None.
    """

    def __init__(self, root: SceneNode, native_lookup: Optional[NativeLookup] = None,
                 discovery=None):
        if discovery is None:
            from ..settings import DiscoveryConfig
            discovery = DiscoveryConfig()
        self.root = root
        self.discovery = discovery
        self._explicit_lookup = native_lookup
        self._native_lookup: Optional[NativeLookup] = None
        self.native_owner: Optional[SceneNode] = None
        self.rig_root: Optional[SceneNode] = None
        self.refresh()

    def __repr__(self):
        return "RigReference(%r, native=%s, rig_root=%r)" % (
            self.root.name if self.root else None, self.has_native_mapping,
            self.rig_root.name if self.rig_root else None)

    @property
    def name(self) -> str:
        return self.root.name if self.root is not None else ""

    @property
    def is_valid(self) -> bool:
        return self.root is not None and not self.root.destroyed

    @property
    def has_native_mapping(self) -> bool:
        return self._native_lookup is not None

    @property
    def search_root(self) -> Optional[SceneNode]:
        """Node from which name searches start."""
        return self.rig_root or self.native_owner or self.root

    @property
    def hierarchy_path(self) -> str:
        return self.root.path if self.root is not None else ""

    def refresh(self) -> None:
        """Recompute native-mapping availability and rediscover the rig root."""
        self._native_lookup = None
        self.native_owner = None
        self.rig_root = None
        if not self.is_valid:
            return

        if self._explicit_lookup is not None:
            self._native_lookup = self._explicit_lookup
            self.native_owner = self.root
        else:
            humanoid = self.root.get_component(HumanoidMap)
            if humanoid is None:
                found = self.root.get_components_in_children(HumanoidMap, include_self=False)
                humanoid = found[0] if found else None
            if humanoid is not None:
                self._native_lookup = humanoid.get_joint
                self.native_owner = humanoid.node

        self.rig_root = self._discover_rig_root()
        _log.debug("Rig %r: native=%s rig_root=%r", self.root.name,
                   self.has_native_mapping, self.rig_root.name if self.rig_root else None)

    def get_native_joint(self, joint: CanonicalJoint) -> Optional[SceneNode]:
        """Node the native map assigns to `joint`, or None."""
        if self._native_lookup is None:
            return None
        try:
            return self._native_lookup(joint)
        except Exception as exc:
            _log.warning("Native joint lookup for %s failed on %r: %s",
                         joint.label, self.root.name, exc)
            return None

    def _discover_rig_root(self) -> Optional[SceneNode]:
        # ---- 1. Parent of the native hips ----
        hips = self.get_native_joint(CanonicalJoint.HIPS)
        if hips is not None and hips.parent is not None:
            return hips.parent

        # ---- 2. Conventional container names ----
        for name in self.discovery.root_container_names:
            found = self.root.find_child(name)
            if found is not None:
                return found

        # ---- 3. First child that has children and is not a mesh ----
        fragment = self.discovery.mesh_name_fragment.lower()
        for child in self.root.children:
            if child.children and fragment not in child.name.lower():
                return child

        return None

    def validate(self) -> List[str]:
        """Advisory warnings about this rig; never fatal."""
        warnings = []
        if not self.is_valid:
            warnings.append("Rig root is missing or was deleted")
            return warnings
        if not self.has_native_mapping:
            warnings.append("'%s' has no native joint map; joints will be matched by name"
                            % self.root.name)
        if self.rig_root is None:
            warnings.append("No rig root container found under '%s'" % self.root.name)
        return warnings

"""Skinned mesh data for the scene graph.

MeshData is the shareable resource (bind poses, optional vertex positions,
user count); SkinnedMesh is the per-node component that binds a MeshData to
an ordered list of joint nodes.

Bind pose convention: bind_poses[i] is the inverse of joints[i]'s world
matrix at bind time, expressed relative to the skinned node, so that
joint.matrix_world @ bind_poses[i] is the skinning matrix of slot i.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional

from mathutils import Matrix, Vector

from .sg_nodes import Component, SceneNode


@dataclass
class Bounds:
    """Axis-aligned box stored as center + full size."""
    center: Vector
    size: Vector

    def scaled(self, factor: float) -> "Bounds":
        return Bounds(self.center * factor, self.size * factor)

    def copy(self) -> "Bounds":
        return Bounds(self.center.copy(), self.size.copy())

    @classmethod
    def from_points(cls, points: Iterable[Vector]) -> Optional["Bounds"]:
        points = list(points)
        if not points:
            return None
        lo = Vector((min(p.x for p in points), min(p.y for p in points), min(p.z for p in points)))
        hi = Vector((max(p.x for p in points), max(p.y for p in points), max(p.z for p in points)))
        return cls((lo + hi) * 0.5, hi - lo)


class MeshData:
    """Shareable mesh resource.

    `users` counts the SkinnedMesh components referencing this data.
    `is_asset` marks data owned by an asset library: it is never mutated in
    place even with a single user.
    """

    def __init__(self, name: str, bind_poses: Optional[List[Matrix]] = None,
                 vertices: Optional[List[Vector]] = None, is_asset: bool = False):
        self.name = name
        self.bind_poses: List[Matrix] = [m.copy() for m in bind_poses] if bind_poses else []
        self.vertices: List[Vector] = [v.copy() for v in vertices] if vertices else []
        self.is_asset = is_asset
        self.users = 0

    def __repr__(self):
        return "MeshData(%r, %d bind poses)" % (self.name, len(self.bind_poses))

    @property
    def is_shared(self) -> bool:
        return self.is_asset or self.users > 1

    def copy(self, name: Optional[str] = None) -> "MeshData":
        """Independent clone with zero users."""
        return MeshData(name or self.name, self.bind_poses, self.vertices)


class SkinnedMesh(Component):
    """Component binding mesh data to joint nodes."""

    def __init__(self, mesh: MeshData, joints: List[Optional[SceneNode]],
                 root_joint: Optional[SceneNode] = None,
                 local_bounds: Optional[Bounds] = None):
        super().__init__()
        self._mesh = None
        self.mesh = mesh
        self.joints: List[Optional[SceneNode]] = list(joints)
        self.root_joint = root_joint
        self.local_bounds = local_bounds

    def __repr__(self):
        owner = self.node.name if self.node is not None else "?"
        return "SkinnedMesh(%r on %r, %d joints)" % (
            self._mesh.name if self._mesh else None, owner, len(self.joints))

    @property
    def mesh(self) -> Optional[MeshData]:
        return self._mesh

    @mesh.setter
    def mesh(self, value: Optional[MeshData]):
        if self._mesh is not None:
            self._mesh.users -= 1
        self._mesh = value
        if value is not None:
            value.users += 1

    def first_joint(self) -> Optional[SceneNode]:
        for joint in self.joints:
            if joint is not None:
                return joint
        return None

    def referenced_nodes(self) -> List[SceneNode]:
        """Joints plus the root joint, without empty slots or duplicates."""
        seen = []
        for joint in self.joints + [self.root_joint]:
            if joint is not None and joint not in seen:
                seen.append(joint)
        return seen

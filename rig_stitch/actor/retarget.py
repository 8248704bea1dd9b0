"""Retarget skinned meshes from attachment joints onto base joints.

For every joint slot that moves from an old joint to a new one the bind
pose is rewritten so that the skinning matrix is unchanged:

    new_bind = new_joint.world^-1 @ old_joint.world @ old_bind

so new_joint.world @ new_bind == old_joint.world @ old_bind and the mesh
deforms exactly as before in the current pose.

Usage:
    from rig_stitch.actor.retarget import MeshRetargeter
    retargeter = MeshRetargeter()
    changed = retargeter.retarget_meshes(jacket_root, {jacket_hips: body_hips})
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from mathutils import Matrix

from ..scene_graph.sg_nodes import SceneNode
from ..scene_graph.sg_skin import Bounds, SkinnedMesh

_log = logging.getLogger("rig_stitch.retarget")

JointMap = Dict[SceneNode, SceneNode]


class BindPoseError(ValueError):
    """Raised when a mesh's bind poses are unusable and may not be rebuilt."""


@dataclass
class RetargetingStats:
    """What a retarget pass would touch."""
    total_meshes: int = 0
    meshes_needing_retarget: int = 0
    meshes_without_joints: int = 0
    total_joints: int = 0
    total_joints_to_retarget: int = 0

    def __str__(self):
        return "Meshes: %d/%d need retargeting, joints: %d/%d to retarget" % (
            self.meshes_needing_retarget, self.total_meshes,
            self.total_joints_to_retarget, self.total_joints)


def compute_bind_pose(old_joint: SceneNode, new_joint: SceneNode, old_bind: Matrix) -> Matrix:
    """Bind pose for `new_joint` that keeps the old skinning matrix."""
    return new_joint.matrix_world.inverted() @ old_joint.matrix_world @ old_bind


def reconstruct_bind_poses(joints: List[Optional[SceneNode]],
                           skin_node: Optional[SceneNode] = None) -> List[Matrix]:
    """Bind poses assuming the current pose is the bind pose.

    Empty joint slots get the identity matrix.
    """
    mesh_world = skin_node.matrix_world if skin_node is not None else Matrix.Identity(4)
    poses = []
    for joint in joints:
        if joint is None:
            poses.append(Matrix.Identity(4))
        else:
            poses.append(joint.matrix_world.inverted() @ mesh_world)
    return poses


def average_scale(joints: List[Optional[SceneNode]]) -> float:
    """Mean of the per-axis world scale over the non-empty joints."""
    total = 0.0
    count = 0
    for joint in joints:
        if joint is None:
            continue
        s = joint.lossy_scale
        total += (abs(s.x) + abs(s.y) + abs(s.z)) / 3.0
        count += 1
    return total / count if count else 1.0


class MeshRetargeter:
    """Rewrites joint lists, bind poses and bounds of skinned meshes.

    Args:
        config: MergeConfig; defaults are used when None.
    """

    def __init__(self, config=None):
        if config is None:
            from ..settings import MergeConfig
            config = MergeConfig()
        self.config = config

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @staticmethod
    def needs_retargeting(skin: SkinnedMesh, joint_map: JointMap) -> bool:
        return any(j is not None and j in joint_map for j in skin.joints)

    def stats(self, root: Optional[SceneNode], joint_map: JointMap) -> RetargetingStats:
        result = RetargetingStats()
        if root is None:
            return result
        skins = root.get_components_in_children(SkinnedMesh)
        result.total_meshes = len(skins)
        for skin in skins:
            if not skin.joints:
                result.meshes_without_joints += 1
                continue
            mapped = sum(1 for j in skin.joints if j is not None and j in joint_map)
            if mapped:
                result.meshes_needing_retarget += 1
                result.total_joints_to_retarget += mapped
            result.total_joints += len(skin.joints)
        return result

    # ------------------------------------------------------------------
    # Retargeting
    # ------------------------------------------------------------------

    def retarget_meshes(self, root: Optional[SceneNode], joint_map: JointMap,
                        errors: Optional[List[str]] = None,
                        warnings: Optional[List[str]] = None) -> int:
        """Retarget every skinned mesh under `root`.

        Args:
            root: Attachment root.
            joint_map: {old attachment joint: new base joint}.
            errors: When given, a failing mesh appends a message here and the
                    pass continues; otherwise the exception propagates.
            warnings: Receives advisory messages (rebuilt bind poses).

        Returns:
            Number of meshes changed.
        """
        if root is None or not joint_map:
            _log.warning("Retarget skipped: no root or empty joint map")
            return 0

        skins = root.get_components_in_children(SkinnedMesh)
        changed = 0
        for skin in skins:
            try:
                if self.retarget_single(skin, joint_map, warnings):
                    changed += 1
            except Exception as exc:
                if errors is None:
                    raise
                owner = skin.node.name if skin.node is not None else "?"
                _log.warning("Retarget of %r failed: %s", owner, exc)
                errors.append("Could not retarget '%s': %s" % (owner, exc))

        _log.info("Retargeted %d/%d skinned meshes", changed, len(skins))
        return changed

    def retarget_single(self, skin: SkinnedMesh, joint_map: JointMap,
                        warnings: Optional[List[str]] = None) -> bool:
        """Retarget one mesh; False when it references no mapped joint."""
        if skin is None or skin.mesh is None or not skin.joints:
            return False
        if not self.needs_retargeting(skin, joint_map):
            return False

        owner = skin.node.name if skin.node is not None else skin.mesh.name
        old_joints = list(skin.joints)

        old_binds = skin.mesh.bind_poses
        if len(old_binds) != len(old_joints):
            if self.config.strict_bind_poses:
                raise BindPoseError("'%s' has %d bind poses for %d joints"
                                    % (owner, len(old_binds), len(old_joints)))
            msg = ("Bind poses of '%s' are missing or malformed; rebuilt from the current pose"
                   % owner)
            _log.warning(msg)
            if warnings is not None:
                warnings.append(msg)
            old_binds = reconstruct_bind_poses(old_joints, skin.node)

        # ---- Per-slot joint swap and bind pose rewrite ----
        new_joints = []
        new_binds = []
        moved = 0
        for old_joint, old_bind in zip(old_joints, old_binds):
            new_joint = joint_map.get(old_joint) if old_joint is not None else None
            if new_joint is not None:
                new_joints.append(new_joint)
                new_binds.append(compute_bind_pose(old_joint, new_joint, old_bind))
                moved += 1
            else:
                new_joints.append(old_joint)
                new_binds.append(old_bind.copy())

        # ---- Never mutate a mesh someone else also uses ----
        mesh = skin.mesh
        if mesh.is_shared:
            mesh = mesh.copy(mesh.name + self.config.retarget_suffix)
            skin.mesh = mesh

        if skin.root_joint is not None and skin.root_joint in joint_map:
            skin.root_joint = joint_map[skin.root_joint]

        mesh.bind_poses = new_binds
        skin.joints = new_joints
        skin.local_bounds = self.compute_bounds(skin)

        _log.debug("  %r: %d joint slots retargeted", owner, moved)
        return True

    # ------------------------------------------------------------------
    # Bounds
    # ------------------------------------------------------------------

    def compute_bounds(self, skin: SkinnedMesh) -> Optional[Bounds]:
        """Bounds of `skin` relative to its (new) root joint."""
        if self.config.bounds_mode == "vertices" and skin.mesh.vertices and skin.root_joint is not None:
            to_root = skin.root_joint.matrix_world.inverted()
            if skin.node is not None:
                to_root = to_root @ skin.node.matrix_world
            return Bounds.from_points(to_root @ v for v in skin.mesh.vertices)

        bounds = skin.local_bounds
        if bounds is None or skin.root_joint is None:
            return bounds
        factor = average_scale(skin.joints)
        if factor > 0 and abs(factor - 1.0) > self.config.scale_tolerance:
            return bounds.scaled(factor)
        return bounds

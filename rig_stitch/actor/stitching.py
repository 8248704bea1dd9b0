"""Combine an attachment rig with a base rig.

Two strategies:

    STITCH  duplicate-and-parent: every mapped attachment joint is renamed
            with a marker suffix and reparented under its base joint,
            keeping its world transform.  Reversible with undo().
    MERGE   eliminate-and-rebind: skinned meshes are retargeted onto the
            base joints, joints the meshes still need are moved under the
            base rig, and the now-unused attachment joints are deleted.
            Destructive; run it on a working copy.

Usage:
    from rig_stitch.actor.stitching import StitchingController, MergeMode
    controller = StitchingController()
    result = controller.execute(mappings, MergeMode.MERGE, attachment_root=jacket)
    print(result.summary())
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from ..scene_graph.sg_nodes import SceneNode
from ..scene_graph.sg_skin import SkinnedMesh
from .bone_mapper import JointMapping
from .context import ContextDetector
from .dynamic_chains import DynamicChainDetector
from .results import MergeResult, ValidationReport
from .retarget import MeshRetargeter
from .rig_reference import RigReference

_log = logging.getLogger("rig_stitch.stitch")

# Fewer valid mappings than this is allowed but usually means a bad match.
MIN_EXPECTED_MAPPINGS = 3


class MergeMode(Enum):
    STITCH = "stitch"
    MERGE = "merge"


class StitchState(Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    STITCHING = "stitching"
    MERGING = "merging"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class UndoEntry:
    """State of one attachment joint before a stitch moved it."""
    node: SceneNode
    parent: Optional[SceneNode]
    sibling_index: int
    name: str


class StitchingController:
    """Runs stitch / merge passes and keeps the stitch undo log.

    Collaborators are injected; defaults are built from `profile` (a
    StitchProfile, or the default profile when None).
    """

    def __init__(self, retargeter: Optional[MeshRetargeter] = None,
                 chain_detector: Optional[DynamicChainDetector] = None,
                 context_detector: Optional[ContextDetector] = None,
                 profile=None):
        if profile is None:
            from ..settings import StitchProfile
            profile = StitchProfile()
        self.profile = profile
        self.retargeter = retargeter or MeshRetargeter(profile.merge)
        self.chain_detector = chain_detector or DynamicChainDetector(config=profile.physics)
        self.context_detector = context_detector or ContextDetector(config=profile.discovery)
        self.state = StitchState.IDLE
        self.undo_log: List[UndoEntry] = []

    @property
    def marker_suffix(self) -> str:
        return self.profile.stitch.marker_suffix

    # ==================================================================
    # Entry point
    # ==================================================================

    def execute(self, mappings: Optional[List[JointMapping]],
                mode: MergeMode = MergeMode.STITCH,
                attachment_root: Optional[SceneNode] = None,
                base_root: Optional[SceneNode] = None) -> MergeResult:
        """Combine the rigs described by `mappings`.

        Args:
            mappings: Output of BoneMapper.detect_mapping (possibly edited).
            mode: MergeMode.STITCH or MergeMode.MERGE.
            attachment_root: Root of the attachment; required for MERGE.
            base_root: Root of the base character; only used to label
                       warnings about joints that could not be relocated.

        Returns:
            MergeResult; failures never raise.
        """
        self.undo_log.clear()
        self.state = StitchState.VALIDATING

        if not mappings:
            return self._fail(MergeResult.failure("No joint mappings to stitch"))

        valid = [m for m in mappings if m.is_valid]
        if not valid:
            return self._fail(MergeResult.failure(
                "No valid joint mappings (both base and attachment joints are required)"))

        if mode == MergeMode.MERGE:
            if attachment_root is None:
                return self._fail(MergeResult.failure("Merge requires the attachment root"))
            self.state = StitchState.MERGING
            result = self._merge(valid, attachment_root, base_root)
        else:
            self.state = StitchState.STITCHING
            result = self._stitch(valid)

        if len(valid) < MIN_EXPECTED_MAPPINGS:
            result.add_warning("Only %d joints mapped; check the attachment's joint names"
                               % len(valid))

        self.state = StitchState.COMPLETED if result.success else StitchState.FAILED
        _log.info("%s finished: %s", mode.value.capitalize(), result.summary())
        return result

    def _fail(self, result: MergeResult) -> MergeResult:
        self.state = StitchState.FAILED
        _log.warning(result.summary())
        return result

    # ==================================================================
    # Stitch
    # ==================================================================

    def _stitch(self, valid: List[JointMapping]) -> MergeResult:
        result = MergeResult()
        # Parents before children; stable for equal depths.
        ordered = sorted(valid, key=lambda m: m.target_node.depth)
        _log.info("Stitching %d joints", len(ordered))

        for mapping in ordered:
            target = mapping.target_node
            source = mapping.source_node

            if target.parent is source:
                result.bones_skipped += 1
                mapping.was_merged = False
                result.add_warning("%s: already stitched" % mapping.joint.label)
                continue

            entry = UndoEntry(target, target.parent, target.sibling_index, target.name)
            try:
                if not target.name.endswith(self.marker_suffix):
                    target.name = target.name + self.marker_suffix
                target.set_parent(source, keep_world=True)
            except Exception as exc:
                target.name = entry.name
                _log.warning("Stitch of %s failed: %s", mapping.joint.label, exc)
                result.add_warning("%s: could not stitch (%s)" % (mapping.joint.label, exc))
                continue

            self.undo_log.append(entry)
            mapping.was_merged = True
            result.bones_stitched += 1
            _log.debug("  %s: %r -> under %r", mapping.joint.label, entry.name, source.name)

        mapped_targets = {m.target_node for m in ordered}
        for mapping in ordered:
            result.non_humanoid_bones_preserved += sum(
                1 for child in mapping.target_node.children if child not in mapped_targets)
        return result

    def undo(self) -> bool:
        """Reverse the last stitch.  False when there is nothing to undo."""
        if not self.undo_log:
            return False
        restored = 0
        for entry in reversed(self.undo_log):
            node = entry.node
            if node.destroyed:
                continue
            try:
                node.set_parent(entry.parent, keep_world=True)
                node.set_sibling_index(entry.sibling_index)
                node.name = entry.name
                restored += 1
            except Exception as exc:
                _log.warning("Undo of %r failed: %s", entry.name, exc)
        _log.info("Undo restored %d/%d joints", restored, len(self.undo_log))
        self.undo_log.clear()
        self.state = StitchState.IDLE
        return True

    # ==================================================================
    # Merge
    # ==================================================================

    def _merge(self, valid: List[JointMapping], attachment_root: SceneNode,
               base_root: Optional[SceneNode]) -> MergeResult:
        result = MergeResult()

        # ---- 0. Physics chains stay out of the joint map ----
        chains = self.chain_detector.detect_chains(attachment_root)
        info = self.chain_detector.chain_info(attachment_root)
        if chains:
            _log.info("%s", info)

        joint_map: Dict[SceneNode, SceneNode] = {}
        merged: List[JointMapping] = []
        for mapping in valid:
            if mapping.target_node in chains:
                _log.info("  %r kept out of the merge (physics chain)", mapping.target_node.name)
                continue
            joint_map[mapping.target_node] = mapping.source_node
            merged.append(mapping)

        skins = attachment_root.get_components_in_children(SkinnedMesh)
        if not skins:
            return MergeResult.failure("No skinned meshes under '%s'" % attachment_root.name)
        _log.info("Merging %d skinned meshes of %r", len(skins), attachment_root.name)

        # ---- 1. Joints the meshes need that have no base counterpart ----
        preserved: List[SceneNode] = []
        preserved_set = set()
        for node in attachment_root.walk():
            if node in joint_map:
                continue
            if node in chains:
                preserved.append(node)
                preserved_set.add(node)
        for skin in skins:
            for node in skin.referenced_nodes():
                if node in joint_map or node in preserved_set:
                    continue
                if not node.is_descendant_of(attachment_root):
                    continue
                preserved.append(node)
                preserved_set.add(node)
        _log.info("Joints to preserve: %d (%d physics)", len(preserved), len(chains))

        # Relocation can carry mapped joints out of the container, so the
        # cleanup candidates are taken before anything moves.
        container = self.find_rig_container(attachment_root, joint_map)
        candidates = set(joint_map)
        if container is not None:
            candidates.update(container.walk(include_self=False))

        # ---- 2. Move them under the base rig before the meshes change ----
        self._relocate_preserved(preserved, preserved_set, joint_map, base_root, result)

        # ---- 3. Retarget meshes ----
        stats = self.retargeter.stats(attachment_root, joint_map)
        _log.info("%s", stats)
        errors: List[str] = []
        self.retargeter.retarget_meshes(attachment_root, joint_map, errors=errors,
                                        warnings=result.warnings)
        for message in errors:
            result.add_warning(message)

        for mapping in merged:
            mapping.was_merged = True
        result.bones_merged = stats.total_joints_to_retarget
        result.bones_stitched = stats.total_joints_to_retarget
        result.non_humanoid_bones_preserved = len(preserved)
        result.dynamic_chain_bones_preserved = len(chains)

        # ---- 4. Delete attachment joints nothing references any more ----
        in_use = set(preserved_set) | chains
        for skin in skins:
            in_use.update(skin.referenced_nodes())
        result.bones_removed = self._cleanup_joints(candidates, container, in_use)

        # ---- 5. Every mesh must still point at live joints ----
        for skin in skins:
            dangling = [n.name for n in skin.referenced_nodes() if n.destroyed]
            if dangling:
                owner = skin.node.name if skin.node is not None else "?"
                result.add_error("'%s' references deleted joints: %s"
                                 % (owner, ", ".join(dangling)))
        return result

    def _relocate_preserved(self, preserved, preserved_set, joint_map, base_root, result):
        for node in preserved:
            anchor = None
            carried = False
            current = node.parent
            while current is not None:
                if current in joint_map:
                    anchor = joint_map[current]
                    break
                if current in preserved_set:
                    carried = True
                    break
                current = current.parent

            if carried:
                continue
            if anchor is None:
                context = self.context_detector.detect_context(node, base_root)
                _log.warning("No mapped parent for %r (%s); left in place", node.name, context.label)
                result.add_warning("'%s' has no mapped parent in '%s'; left in place"
                                   % (node.name, context.label))
                continue
            try:
                node.set_parent(anchor, keep_world=True)
                _log.debug("  %r moved under %r", node.name, anchor.name)
            except Exception as exc:
                _log.warning("Could not move %r under %r: %s", node.name, anchor.name, exc)
                result.add_warning("Could not move '%s' under '%s' (%s)"
                                   % (node.name, anchor.name, exc))

    def find_rig_container(self, attachment_root: SceneNode,
                           joint_map: Optional[Dict[SceneNode, SceneNode]] = None) -> Optional[SceneNode]:
        """The attachment's joint container: a direct child named like a rig,
        else the direct child holding the first mapped joint."""
        keywords = self.profile.merge.rig_container_keywords
        for child in attachment_root.children:
            lower = child.name.lower()
            if any(k in lower for k in keywords):
                return child

        for target in (joint_map or {}):
            if target.destroyed:
                continue
            node = target
            while node.parent is not None and node.parent is not attachment_root:
                node = node.parent
            if node.parent is attachment_root:
                return node
        return None

    def _cleanup_joints(self, candidates, container: Optional[SceneNode], in_use) -> int:
        # Deepest first so parents empty out before they are checked.
        removed = 0
        for node in sorted(candidates, key=lambda n: -n.depth):
            if node.destroyed or node in in_use or node.children or node.components:
                continue
            node.destroy()
            removed += 1
        if removed:
            _log.info("Removed %d unused attachment joints", removed)

        if container is None or container.destroyed:
            return removed
        if not container.children and not container.components and container not in in_use:
            _log.info("Removing empty rig container %r", container.name)
            container.destroy()
        return removed

    # ==================================================================
    # Merge after stitch
    # ==================================================================

    def has_stitched_joints(self, attachment_root: Optional[SceneNode]) -> bool:
        if attachment_root is None:
            return False
        for skin in attachment_root.get_components_in_children(SkinnedMesh):
            for joint in skin.joints:
                if joint is not None and joint.name.endswith(self.marker_suffix):
                    return True
        return False

    def merge_stitched(self, attachment_root: Optional[SceneNode]) -> MergeResult:
        """Collapse a previous stitch: meshes move from the marked joints to
        the base joints they hang under, and the marked joints are deleted."""
        if attachment_root is None:
            return self._fail(MergeResult.failure("Merge requires the attachment root"))
        self.state = StitchState.MERGING

        skins = attachment_root.get_components_in_children(SkinnedMesh)
        if not skins:
            return self._fail(MergeResult.failure(
                "No skinned meshes under '%s'" % attachment_root.name))

        suffix = self.marker_suffix
        stitched: Dict[SceneNode, SceneNode] = {}
        for skin in skins:
            for joint in skin.referenced_nodes():
                if (joint.name.endswith(suffix) and joint.parent is not None
                        and not joint.parent.name.endswith(suffix)):
                    stitched[joint] = joint.parent

        if not stitched:
            return self._fail(MergeResult.failure(
                "No stitched joints (suffix '%s') found; stitch first" % suffix.strip()))
        _log.info("Collapsing %d stitched joints", len(stitched))

        result = MergeResult()
        stats = self.retargeter.stats(attachment_root, stitched)
        errors: List[str] = []
        self.retargeter.retarget_meshes(attachment_root, stitched, errors=errors,
                                        warnings=result.warnings)
        for message in errors:
            result.add_warning(message)
        result.bones_merged = stats.total_joints_to_retarget

        in_use = set()
        for skin in skins:
            in_use.update(skin.referenced_nodes())

        for joint, base_joint in stitched.items():
            if joint.destroyed or joint in in_use:
                continue
            stranded = False
            for child in list(joint.children):
                if child.name.endswith(suffix):
                    continue
                try:
                    child.set_parent(base_joint, keep_world=True)
                except Exception as exc:
                    stranded = True
                    _log.warning("Could not move %r under %r: %s", child.name, base_joint.name, exc)
                    result.add_warning("Could not move '%s' under '%s' (%s); '%s' kept"
                                       % (child.name, base_joint.name, exc, joint.name))
            if stranded:
                continue
            joint.destroy()
            result.bones_removed += 1

        for skin in skins:
            if any(n.destroyed for n in skin.referenced_nodes()):
                owner = skin.node.name if skin.node is not None else "?"
                result.add_error("'%s' references deleted joints" % owner)

        self.state = StitchState.COMPLETED if result.success else StitchState.FAILED
        _log.info("Merge after stitch: %s", result.summary())
        return result

    # ==================================================================
    # Validation
    # ==================================================================

    def validate_for_stitching(self, base_rig: Optional[RigReference],
                               attachment_rig: Optional[RigReference]) -> ValidationReport:
        """Pre-flight check of a base/attachment pair."""
        report = ValidationReport()

        if base_rig is None or not base_rig.is_valid:
            report.errors.append("Base character is not assigned")
        else:
            report.warnings.extend("Base: " + w for w in base_rig.validate())

        if attachment_rig is None or not attachment_rig.is_valid:
            report.errors.append("Attachment is not assigned")
        else:
            report.warnings.extend("Attachment: " + w for w in attachment_rig.validate())

        if (base_rig is not None and attachment_rig is not None
                and base_rig.root is not None and base_rig.root is attachment_rig.root):
            report.errors.append("Base character and attachment are the same object")

        return report

"""Batch stitching of every attachment found under a base character.

A StitchSession finds the attachments (garments, props) that carry their
own rig under a base character, maps each one, and stitches or merges the
enabled ones in one call.

Usage:
    from rig_stitch.actor.session import StitchSession
    session = StitchSession(body_root)
    session.detect_attachments()
    result = session.stitch_all()
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..scene_graph.sg_nodes import SceneNode
from ..scene_graph.sg_skin import SkinnedMesh
from .bone_mapper import BoneMapper, JointMapping
from .context import ContextDetector
from .joint_names import count_humanoid_names, detect_naming_convention
from .results import MergeResult, ValidationReport
from .rig_reference import RigReference
from .stitching import MergeMode, StitchingController

_log = logging.getLogger("rig_stitch.session")

# Attachments whose skinned joints carry fewer humanoid-looking names than
# this are not considered rigged garments.
MIN_HUMANOID_JOINTS = 3


@dataclass(eq=False)
class AttachmentEntry:
    """One attachment under the base character."""
    root: SceneNode
    rig: RigReference
    enabled: bool = True
    name_prefix: str = ""
    name_suffix: str = ""
    mappings: List[JointMapping] = field(default_factory=list)
    last_result: Optional[MergeResult] = None

    @property
    def name(self) -> str:
        return self.root.name

    @property
    def is_valid(self) -> bool:
        return self.rig is not None and self.rig.is_valid

    @property
    def mapped_count(self) -> int:
        return sum(1 for m in self.mappings if m.is_valid)

    @property
    def has_valid_mappings(self) -> bool:
        return self.mapped_count > 0

    @property
    def was_applied(self) -> bool:
        return self.last_result is not None and self.last_result.success

    def clear_mappings(self) -> None:
        self.mappings = []
        self.last_result = None


class StitchSession:
    """Attachment list plus the collaborators needed to combine them.

    Args:
        base_root: Root node of the base character.
        mode: MergeMode used by stitch_all().
        mapper: BoneMapper (built from `profile` when None).
        controller: StitchingController (built from `profile` when None).
        context_detector: ContextDetector (built from `profile` when None).
        profile: StitchProfile; the default profile when None.
    """

    def __init__(self, base_root: SceneNode, mode: MergeMode = MergeMode.MERGE,
                 mapper: Optional[BoneMapper] = None,
                 controller: Optional[StitchingController] = None,
                 context_detector: Optional[ContextDetector] = None,
                 profile=None):
        if profile is None:
            from ..settings import StitchProfile
            profile = StitchProfile()
        self.profile = profile
        self.base_root = base_root
        self.base_rig = RigReference(base_root, discovery=profile.discovery)
        self.mode = mode
        self.mapper = mapper or BoneMapper(config=profile.matching)
        self.controller = controller or StitchingController(profile=profile)
        self.context_detector = context_detector or ContextDetector(config=profile.discovery)
        self.attachments: List[AttachmentEntry] = []
        self.last_result: Optional[MergeResult] = None

    @property
    def enabled_attachments(self) -> List[AttachmentEntry]:
        return [a for a in self.attachments if a.enabled]

    @property
    def total_mapped_joints(self) -> int:
        return sum(a.mapped_count for a in self.enabled_attachments)

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def detect_attachments(self) -> List[AttachmentEntry]:
        """Rebuild the attachment list from the skinned meshes under the base."""
        self.attachments = []
        self.base_rig.refresh()
        base_rig_root = self.base_rig.rig_root
        _log.info("Looking for attachments under %r", self.base_root.name)

        candidates: Dict[SceneNode, List[SkinnedMesh]] = {}
        for skin in self.base_root.get_components_in_children(SkinnedMesh):
            first = skin.first_joint()
            if first is None or skin.node is None:
                continue
            # Already driven by the base rig.
            if base_rig_root is not None and (first is base_rig_root or first.is_descendant_of(base_rig_root)):
                continue
            root = self._attachment_root_for(skin.node, first)
            if root is None:
                continue
            candidates.setdefault(root, []).append(skin)

        for root, skins in candidates.items():
            joint_names = {j.name for skin in skins for j in skin.joints if j is not None}
            if count_humanoid_names(joint_names) < MIN_HUMANOID_JOINTS:
                _log.info("  %r skipped: no humanoid joints", root.name)
                continue

            entry = AttachmentEntry(root, RigReference(root, discovery=self.profile.discovery))
            self.detect_mappings(entry)
            if entry.has_valid_mappings:
                self.attachments.append(entry)
                _log.info("  found %r (%d meshes, %d joints mapped, naming=%s)", root.name,
                          len(skins), entry.mapped_count, detect_naming_convention(joint_names))
            else:
                _log.info("  %r skipped: no joint maps onto the base rig", root.name)

        _log.info("%d attachments detected", len(self.attachments))
        return self.attachments

    def _attachment_root_for(self, skin_node: SceneNode, first_joint: SceneNode) -> Optional[SceneNode]:
        # Direct child of the base that holds the mesh.
        top = skin_node
        while top is not None and top.parent is not self.base_root:
            top = top.parent
        if top is None or top is self.base_root:
            return None
        if not (first_joint is top or first_joint.is_descendant_of(top)):
            return None

        # Prefer a nested owner ("Outfits/Jacket") when the joint's rig
        # context sits below the top-level child and still holds the mesh.
        context = self.context_detector.detect_context(first_joint, self.base_root)
        owner = context.root_object
        if (not context.is_base and owner is not None and owner is not top
                and owner.is_descendant_of(top)
                and (skin_node is owner or skin_node.is_descendant_of(owner))):
            return owner
        return top

    def detect_mappings(self, entry: AttachmentEntry) -> List[JointMapping]:
        if not self.base_rig.is_valid or not entry.is_valid:
            _log.warning("Cannot map %r: base or attachment rig is invalid", entry.name)
            return entry.mappings
        entry.mappings = self.mapper.detect_mapping(
            self.base_rig, entry.rig, entry.name_prefix or None, entry.name_suffix or None)
        return entry.mappings

    def refresh(self) -> List[AttachmentEntry]:
        """Detect again, keeping the enabled flags of attachments by name."""
        enabled = {a.name: a.enabled for a in self.attachments}
        self.detect_attachments()
        for entry in self.attachments:
            if entry.name in enabled:
                entry.enabled = enabled[entry.name]
        return self.attachments

    def add_attachment(self, root: SceneNode) -> bool:
        """Add an attachment by hand; False when missing or already listed."""
        if root is None or any(a.root is root for a in self.attachments):
            return False
        entry = AttachmentEntry(root, RigReference(root, discovery=self.profile.discovery))
        self.detect_mappings(entry)
        self.attachments.append(entry)
        return True

    def remove_attachment(self, index: int) -> None:
        if 0 <= index < len(self.attachments):
            del self.attachments[index]

    def set_enabled(self, index: int, enabled: bool) -> None:
        if 0 <= index < len(self.attachments):
            self.attachments[index].enabled = enabled

    def enable_all(self) -> None:
        for entry in self.attachments:
            entry.enabled = True

    def disable_all(self) -> None:
        for entry in self.attachments:
            entry.enabled = False

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def stitch_all(self) -> MergeResult:
        """Stitch or merge every enabled attachment.

        The combined result fails only when every attachment failed.
        """
        enabled = self.enabled_attachments
        if not enabled:
            self.last_result = MergeResult.failure("No enabled attachments to stitch")
            return self.last_result

        combined = MergeResult()
        succeeded = 0
        failed = 0
        _log.info("%s of %d attachments", self.mode.value.capitalize(), len(enabled))

        for entry in enabled:
            if not entry.has_valid_mappings:
                entry.last_result = MergeResult.failure("'%s': no valid joint mappings" % entry.name)
                combined.add_warning("'%s': no valid joint mappings, skipped" % entry.name)
                failed += 1
                continue

            result = self.controller.execute(entry.mappings, self.mode,
                                             attachment_root=entry.root,
                                             base_root=self.base_root)
            entry.last_result = result
            if result.success:
                succeeded += 1
                combined.absorb(result, entry.name)
                _log.info("  %r: %s", entry.name, result.summary())
            else:
                failed += 1
                combined.errors.extend("'%s': %s" % (entry.name, e) for e in result.errors)

        if failed and not succeeded:
            combined.success = False

        _log.info("Done: %d succeeded, %d failed", succeeded, failed)
        self.last_result = combined
        return combined

    def has_stitched_joints(self) -> bool:
        return any(self.controller.has_stitched_joints(a.root)
                   for a in self.attachments if not a.root.destroyed)

    def merge_stitched_all(self) -> MergeResult:
        """Collapse previous stitches of every listed attachment."""
        combined = MergeResult()
        succeeded = 0
        failed = 0
        for entry in self.attachments:
            if entry.root.destroyed or not self.controller.has_stitched_joints(entry.root):
                continue
            result = self.controller.merge_stitched(entry.root)
            entry.last_result = result
            if result.success:
                succeeded += 1
                combined.absorb(result, entry.name)
            else:
                failed += 1
                combined.errors.extend("'%s': %s" % (entry.name, e) for e in result.errors)

        # Same policy as stitch_all: the batch fails only when nothing merged.
        if failed and not succeeded:
            combined.success = False

        _log.info("Merge after stitch done: %d succeeded, %d failed", succeeded, failed)
        self.last_result = combined
        return combined

    def validate(self) -> ValidationReport:
        report = ValidationReport()
        if self.base_root is None or not self.base_rig.is_valid:
            report.errors.append("No base character assigned")
            return report
        report.warnings.extend(self.base_rig.validate())

        if not self.attachments:
            report.warnings.append("No attachments detected; attachments must sit under "
                                   "the base character and carry their own rig")
            return report

        enabled = self.enabled_attachments
        if not enabled:
            report.warnings.append("No attachment is enabled")
        elif not any(a.has_valid_mappings for a in enabled):
            report.warnings.append("Enabled attachments have no valid joint mappings")
        return report

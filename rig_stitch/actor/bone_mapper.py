"""Joint mapping between a base rig and an attachment rig.

For every canonical joint the base rig has, find the attachment joint that
plays the same role:

    source (base rig):     native map -> name search from the rig root
    target (attachment):   native map -> exact name -> heuristic name

Usage:
    from rig_stitch.actor.bone_mapper import BoneMapper
    mapper = BoneMapper()
    mappings = mapper.detect_mapping(base_rig, jacket_rig)
    valid = [m for m in mappings if m.is_valid]
"""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional

from ..scene_graph.sg_nodes import SceneNode
from .joint_names import CanonicalJoint, JointNameDatabase
from .rig_reference import RigReference

# Per-joint tier tracing, enabled by the RIG_STITCH_DEBUG=1 environment variable
_map_debug = os.environ.get('RIG_STITCH_DEBUG', '') == '1'
_log = logging.getLogger("rig_stitch.mapper")


class MappingMethod(Enum):
    """How a joint was resolved."""
    NONE = "none"
    NATIVE_MAPPING = "native"
    EXACT_NAME = "exact"
    HEURISTIC_NAME = "heuristic"
    MANUAL = "manual"


@dataclass(eq=False)
class JointMapping:
    """One row of the mapping table: base joint <-> attachment joint."""
    joint: CanonicalJoint
    source_node: Optional[SceneNode] = None
    target_node: Optional[SceneNode] = None
    method: MappingMethod = MappingMethod.NONE
    source_method: MappingMethod = MappingMethod.NONE
    was_merged: bool = False

    @property
    def is_valid(self) -> bool:
        return (self.source_node is not None and self.target_node is not None
                and not self.source_node.destroyed and not self.target_node.destroyed)

    @property
    def source_path(self) -> str:
        return self.source_node.path if self.source_node is not None else ""

    @property
    def target_path(self) -> str:
        return self.target_node.path if self.target_node is not None else ""

    def assign_target(self, node: Optional[SceneNode]) -> None:
        """Manual override of the attachment joint."""
        self.target_node = node
        self.method = MappingMethod.MANUAL if node is not None else MappingMethod.NONE

    def __str__(self):
        return "%s: %s -> %s (%s)" % (self.joint.label, self.source_path or "-",
                                      self.target_path or "-", self.method.value)


def strip_affixes(name: str, prefix: Optional[str], suffix: Optional[str]) -> str:
    """Remove a case-insensitive prefix and/or suffix from a joint name."""
    result = name
    if prefix and result.lower().startswith(prefix.lower()):
        result = result[len(prefix):]
    if suffix and result.lower().endswith(suffix.lower()):
        result = result[:len(result) - len(suffix)]
    return result


class BoneMapper:
    """Builds JointMapping tables between two rigs.

    Args:
        names: Shared JointNameDatabase (one is built when None).
        config: MatchingConfig; defaults are used when None.
    """

    def __init__(self, names: Optional[JointNameDatabase] = None, config=None):
        if config is None:
            from ..settings import MatchingConfig
            config = MatchingConfig()
        self.names = names if names is not None else JointNameDatabase()
        self.config = config

    # ------------------------------------------------------------------
    # Mapping
    # ------------------------------------------------------------------

    def detect_mapping(self, source_rig: RigReference, target_rig: RigReference,
                       name_prefix: Optional[str] = None,
                       name_suffix: Optional[str] = None) -> List[JointMapping]:
        """Map every canonical joint present in `source_rig` to `target_rig`.

        Joints the source rig lacks get no entry; joints the target rig lacks
        get an entry with target_node None.  Never raises for missing joints.

        Args:
            source_rig: Base character rig.
            target_rig: Attachment rig.
            name_prefix: Optional prefix stripped from attachment joint names
                         ("Jacket_Hips" -> "Hips").
            name_suffix: Optional suffix stripped from attachment joint names.

        Returns:
            Mappings in canonical joint order.
        """
        mappings: List[JointMapping] = []
        if source_rig is None or target_rig is None or not source_rig.is_valid or not target_rig.is_valid:
            _log.warning("Joint mapping skipped: base or attachment rig is missing")
            return mappings

        _log.info("Mapping %r (native=%s) -> %r (native=%s)",
                  source_rig.name, source_rig.has_native_mapping,
                  target_rig.name, target_rig.has_native_mapping)
        if name_prefix or name_suffix:
            _log.info("  affixes: prefix=%r suffix=%r", name_prefix or "", name_suffix or "")

        cache = self.build_name_cache(target_rig.search_root, name_prefix, name_suffix)
        ignored = set(self.config.ignored_joints)
        claimed_sources = set()
        claimed_targets = set()
        counts = {MappingMethod.NATIVE_MAPPING: 0, MappingMethod.EXACT_NAME: 0,
                  MappingMethod.HEURISTIC_NAME: 0}

        for joint in CanonicalJoint:
            if joint in ignored:
                continue

            # ---- 1. Base joint ----
            source, source_method = self._resolve_source(source_rig, joint, claimed_sources)
            if source is None:
                continue
            claimed_sources.add(source)

            # ---- 2. Attachment joint, first tier that succeeds ----
            target = target_rig.get_native_joint(joint)
            method = MappingMethod.NATIVE_MAPPING if target is not None else MappingMethod.NONE

            if target is None:
                target = cache.get(source.name.lower())
                if target is not None:
                    method = MappingMethod.EXACT_NAME

            if target is None:
                target = self._find_heuristic(cache, joint, source.name, claimed_targets)
                if target is not None:
                    method = MappingMethod.HEURISTIC_NAME

            if target is not None:
                claimed_targets.add(target)
                counts[method] += 1

            if _map_debug:
                _log.info("  %-24s %-28s -> %-28s [%s/%s]", joint.label, source.name,
                          target.name if target is not None else "-",
                          source_method.value, method.value)

            mappings.append(JointMapping(joint, source, target, method, source_method))

        valid = sum(1 for m in mappings if m.is_valid)
        _log.info("Mapped %d/%d joints (native=%d, exact=%d, heuristic=%d)",
                  valid, len(mappings), counts[MappingMethod.NATIVE_MAPPING],
                  counts[MappingMethod.EXACT_NAME], counts[MappingMethod.HEURISTIC_NAME])
        return mappings

    def _resolve_source(self, rig: RigReference, joint: CanonicalJoint, claimed):
        node = rig.get_native_joint(joint)
        if node is not None:
            return node, MappingMethod.NATIVE_MAPPING
        node = self.names.find_in_tree(rig.search_root, joint, exclude=claimed)
        if node is not None:
            return node, MappingMethod.HEURISTIC_NAME
        return None, MappingMethod.NONE

    def build_name_cache(self, root: Optional[SceneNode], prefix: Optional[str] = None,
                         suffix: Optional[str] = None) -> Dict[str, SceneNode]:
        """Index every node under `root` by lower-cased lookup key.

        Keys per node, in order: original name, affix-stripped name,
        normalized name, normalized stripped name.  The first node to claim
        a key keeps it (pre-order traversal).
        """
        cache: Dict[str, SceneNode] = {}
        if root is None:
            return cache

        for node in root.walk():
            name = node.name
            stripped = strip_affixes(name, prefix, suffix)
            keys = [name.lower()]
            if stripped != name and stripped:
                keys.append(stripped.lower())
            keys.append(self.names.normalize(name))
            if stripped != name:
                keys.append(self.names.normalize(stripped))
            for key in keys:
                if key and key not in cache:
                    cache[key] = node
        return cache

    def _find_heuristic(self, cache: Dict[str, SceneNode], joint: CanonicalJoint,
                        source_name: str, claimed) -> Optional[SceneNode]:
        variants = self.names.get_name_variants(joint)

        for variant in variants:
            node = cache.get(variant)
            if node is not None and node not in claimed:
                return node

        # Strictly-greater keeps the first candidate on ties.
        threshold = self.config.similarity_threshold
        best_score = 0.0
        best = None
        for key, node in cache.items():
            if node in claimed:
                continue
            for candidate in [source_name] + variants:
                score = self.names.similarity(key, candidate)
                if score > best_score and score >= threshold:
                    best_score = score
                    best = node
        return best

    # ------------------------------------------------------------------
    # Single-joint helpers
    # ------------------------------------------------------------------

    def find_joint(self, rig: RigReference, joint: CanonicalJoint) -> Optional[SceneNode]:
        """Node for `joint` in `rig`: native map first, then by name."""
        node, _method = self._resolve_source(rig, joint, ())
        return node

    def identify(self, name: str) -> Optional[CanonicalJoint]:
        return self.names.try_identify(name)

    def is_humanoid_name(self, name: str) -> bool:
        return self.names.is_known(name)

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def analyze_rig(self, root: Optional[SceneNode]) -> Dict[CanonicalJoint, str]:
        """Canonical joints recognizable by name under `root`.

        Returns:
            {joint: first node name identified as that joint}, in joint order.
        """
        identified: Dict[CanonicalJoint, str] = {}
        if root is None:
            return identified
        total = 0
        for node in root.walk():
            total += 1
            joint = self.names.try_identify(node.name)
            if joint is not None and joint not in identified:
                identified[joint] = node.name
        _log.info("Rig %r: %d nodes, %d canonical joints recognized",
                  root.name, total, len(identified))
        return dict(sorted(identified.items()))

    def describe_hierarchy(self, root: Optional[SceneNode]) -> List[str]:
        """Indented hierarchy listing with recognized joints flagged."""
        lines: List[str] = []

        def _visit(node, indent):
            tag = " [HUMANOID]" if self.names.is_known(node.name) else ""
            lines.append("%s- %s%s" % ("  " * indent, node.name, tag))
            for child in node.children:
                _visit(child, indent + 1)

        if root is not None:
            _visit(root, 0)
        return lines

"""Stitch profiles: tunable parameters for rig matching and merging.

Every pass of the pipeline (joint matching, rig discovery, stitching,
merging, physics-chain detection) reads its constants from a StitchProfile
instead of module-level literals, so a caller can trade matching strictness
or bind-pose handling without touching the algorithms.

Profiles live in a ProfileRegistry.  The registry is an ordinary object:
callers build one with build_default_registry() (or from scratch) and pass
the chosen profile down.  Nothing here is process-global.

Adding a new profile:
    1. Start from StitchProfile() and override the sub-configs that differ
    2. Give it a unique profile_id
    3. registry.register(profile)
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .actor.joint_names import CanonicalJoint


# ---------------------------------------------------------------------------
# Configuration dataclasses
# ---------------------------------------------------------------------------

@dataclass
class MatchingConfig:
    """Configuration for the joint-name matching tiers."""

    # Minimum normalized-Levenshtein similarity accepted by the heuristic
    # tier.  1.0 = identical after normalization.
    similarity_threshold: float = 0.7

    # Joints never mapped.  Eyes and jaw are usually driven by the face rig
    # and garments never carry them.
    ignored_joints: Tuple[CanonicalJoint, ...] = (
        CanonicalJoint.LEFT_EYE,
        CanonicalJoint.RIGHT_EYE,
        CanonicalJoint.JAW,
    )


@dataclass
class DiscoveryConfig:
    """Configuration for locating rig roots and rig contexts."""

    # Searched (direct children first, then recursively, case-insensitive)
    # when no native joint map is available.
    root_container_names: Tuple[str, ...] = (
        "Armature", "Skeleton", "Root", "Rig", "Bones",
        "Bip01", "mixamorig:Hips", "Hips",
    )

    # Last-resort rig root: first child with children whose name does not
    # contain this fragment.
    mesh_name_fragment: str = "mesh"

    # Names that mark a node as the container of a rig when walking up from
    # a joint to find its owning character or attachment.
    context_container_names: Tuple[str, ...] = ("Armature", "Skeleton", "Root", "Rig")


@dataclass
class StitchConfig:
    """Configuration for duplicate-and-parent stitching."""

    # Appended to every attachment joint reparented by a stitch.  Also used
    # to recognize stitched joints afterwards.
    marker_suffix: str = " (Attached)"


@dataclass
class MergeConfig:
    """Configuration for eliminate-and-rebind merging."""

    # Direct children of the attachment whose lower-cased names contain one
    # of these are treated as the attachment's rig container during cleanup.
    rig_container_keywords: Tuple[str, ...] = ("armature", "skeleton")

    # Suffix given to mesh data cloned before retargeting.
    retarget_suffix: str = "_Retargeted"

    # When True, a mesh whose bind poses are missing or malformed raises
    # BindPoseError instead of being reconstructed from the current pose.
    strict_bind_poses: bool = False

    # Bounds update after retargeting:
    #   "scale"    = scale stored bounds by the joint set's average scale
    #   "vertices" = exact AABB from vertex positions (falls back to "scale"
    #                when the mesh carries no vertices)
    bounds_mode: str = "scale"

    # Uniform scale factors within this distance of 1.0 leave bounds alone.
    scale_tolerance: float = 0.01


@dataclass
class PhysicsConfig:
    """Configuration for name-based physics-chain detection."""

    # Lower-case substrings that flag a joint as part of a simulated chain
    # when no physics provider is available.
    name_terms: Tuple[str, ...] = (
        # Hair
        "hair", "bangs", "fringe", "ponytail", "pigtail", "braid", "strand",
        # Ears / tail
        "ear", "kemonomimi", "tail",
        # Clothing
        "skirt", "dress", "cloth", "ribbon", "bow",
        # Accessories
        "accessory", "pendant", "earring", "necklace", "chain",
        # Body
        "breast", "bust", "boob",
        # Generic physics markers
        "phys", "dynamic", "jiggle", "swing", "dangle",
    )


@dataclass
class StitchProfile:
    """Complete parameter set for one stitching workflow.

    Groups every sub-config so the pipeline can be re-tuned without
    hardcoded constants scattered across the actor modules.
    """

    # Display info
    profile_id: str = "default"
    name: str = "Default"

    # Sub-configs
    matching: MatchingConfig = field(default_factory=MatchingConfig)
    discovery: DiscoveryConfig = field(default_factory=DiscoveryConfig)
    stitch: StitchConfig = field(default_factory=StitchConfig)
    merge: MergeConfig = field(default_factory=MergeConfig)
    physics: PhysicsConfig = field(default_factory=PhysicsConfig)

    # Short description for listings.
    notes: str = ""


# ---------------------------------------------------------------------------
# Profile registry
# ---------------------------------------------------------------------------

class ProfileRegistry:
    """Named collection of StitchProfiles.

    The first registered profile is the default returned by get() when no
    id is given.
    """

    def __init__(self):
        self._profiles: Dict[str, StitchProfile] = {}

    def register(self, profile: StitchProfile) -> None:
        """Register (or replace) a profile by its profile_id."""
        self._profiles[profile.profile_id] = profile

    def get(self, profile_id: Optional[str] = None) -> Optional[StitchProfile]:
        """Look up a profile by id; None returns the default profile."""
        if profile_id is None:
            return next(iter(self._profiles.values()), None)
        return self._profiles.get(profile_id)

    def items(self) -> List[Tuple[str, str, str]]:
        """Return (identifier, name, description) tuples for listings."""
        return [(pid, prof.name, prof.notes) for pid, prof in self._profiles.items()]

    def __contains__(self, profile_id):
        return profile_id in self._profiles

    def __len__(self):
        return len(self._profiles)


# ---------------------------------------------------------------------------
# Built-in profiles
# ---------------------------------------------------------------------------

def build_default_registry() -> ProfileRegistry:
    """Create a registry holding the built-in profiles."""
    registry = ProfileRegistry()

    registry.register(StitchProfile(
        profile_id="default",
        name="Default",
        notes="0.7 similarity, bind poses reconstructed when missing, scaled bounds",
    ))

    registry.register(StitchProfile(
        profile_id="strict",
        name="Strict",
        matching=MatchingConfig(similarity_threshold=0.85),
        merge=MergeConfig(
            strict_bind_poses=True,
            bounds_mode="vertices",
        ),
        notes="0.85 similarity, missing bind poses are errors, exact vertex bounds",
    ))

    registry.register(StitchProfile(
        profile_id="lenient",
        name="Lenient",
        matching=MatchingConfig(similarity_threshold=0.6),
        notes="0.6 similarity for loosely named third-party rigs",
    ))

    return registry

"""rig_stitch: merge attachment rigs onto a base character rig.

Usage:
    from rig_stitch import BoneMapper, RigReference, StitchingController, MergeMode
    mappings = BoneMapper().detect_mapping(RigReference(body), RigReference(jacket))
    result = StitchingController().execute(mappings, MergeMode.MERGE, attachment_root=jacket)
"""

__version__ = "0.2.0"

from .actor.bone_mapper import BoneMapper, JointMapping, MappingMethod
from .actor.joint_names import CanonicalJoint, JointNameDatabase
from .actor.results import MergeResult, ValidationReport
from .actor.rig_reference import HumanoidMap, RigReference
from .actor.session import StitchSession
from .actor.stitching import MergeMode, StitchingController
from .settings import StitchProfile, build_default_registry

"""Canonical humanoid joint taxonomy and joint-name database.

Matches arbitrary joint names (Unity Humanoid, Blender/Rigify, MMD, VRM,
Mixamo, Character Creator, 3ds Max Biped, VRChat community rigs) to a fixed
set of 55 canonical body joints.

Usage:
    from rig_stitch.actor.joint_names import CanonicalJoint, JointNameDatabase
    names = JointNameDatabase()
    names.try_identify("mixamorig:LeftUpLeg")   # CanonicalJoint.LEFT_UPPER_LEG
    names.similarity("UpperArm_L", "upperarm.L")  # 1.0
"""

import re
from collections import deque
from enum import IntEnum
from typing import Dict, Iterable, List, Optional, Tuple

# ============================================================================
# Canonical joints
# ============================================================================


class CanonicalJoint(IntEnum):
    """Standard humanoid body joints, in the conventional humanoid order."""
    HIPS = 0
    LEFT_UPPER_LEG = 1
    RIGHT_UPPER_LEG = 2
    LEFT_LOWER_LEG = 3
    RIGHT_LOWER_LEG = 4
    LEFT_FOOT = 5
    RIGHT_FOOT = 6
    SPINE = 7
    CHEST = 8
    NECK = 9
    HEAD = 10
    LEFT_SHOULDER = 11
    RIGHT_SHOULDER = 12
    LEFT_UPPER_ARM = 13
    RIGHT_UPPER_ARM = 14
    LEFT_LOWER_ARM = 15
    RIGHT_LOWER_ARM = 16
    LEFT_HAND = 17
    RIGHT_HAND = 18
    LEFT_TOES = 19
    RIGHT_TOES = 20
    LEFT_EYE = 21
    RIGHT_EYE = 22
    JAW = 23
    LEFT_THUMB_PROXIMAL = 24
    LEFT_THUMB_INTERMEDIATE = 25
    LEFT_THUMB_DISTAL = 26
    LEFT_INDEX_PROXIMAL = 27
    LEFT_INDEX_INTERMEDIATE = 28
    LEFT_INDEX_DISTAL = 29
    LEFT_MIDDLE_PROXIMAL = 30
    LEFT_MIDDLE_INTERMEDIATE = 31
    LEFT_MIDDLE_DISTAL = 32
    LEFT_RING_PROXIMAL = 33
    LEFT_RING_INTERMEDIATE = 34
    LEFT_RING_DISTAL = 35
    LEFT_LITTLE_PROXIMAL = 36
    LEFT_LITTLE_INTERMEDIATE = 37
    LEFT_LITTLE_DISTAL = 38
    RIGHT_THUMB_PROXIMAL = 39
    RIGHT_THUMB_INTERMEDIATE = 40
    RIGHT_THUMB_DISTAL = 41
    RIGHT_INDEX_PROXIMAL = 42
    RIGHT_INDEX_INTERMEDIATE = 43
    RIGHT_INDEX_DISTAL = 44
    RIGHT_MIDDLE_PROXIMAL = 45
    RIGHT_MIDDLE_INTERMEDIATE = 46
    RIGHT_MIDDLE_DISTAL = 47
    RIGHT_RING_PROXIMAL = 48
    RIGHT_RING_INTERMEDIATE = 49
    RIGHT_RING_DISTAL = 50
    RIGHT_LITTLE_PROXIMAL = 51
    RIGHT_LITTLE_INTERMEDIATE = 52
    RIGHT_LITTLE_DISTAL = 53
    UPPER_CHEST = 54

    @property
    def label(self) -> str:
        """PascalCase display name, e.g. LEFT_UPPER_LEG -> 'LeftUpperLeg'."""
        return "".join(part.capitalize() for part in self.name.split("_"))


# Default similarity score accepted by heuristic matching.
SIMILARITY_THRESHOLD = 0.7

# Substrings used to tell whether a set of joint names looks humanoid at all.
HUMANOID_FRAGMENTS = (
    "hips", "hip", "pelvis",
    "spine", "chest", "neck", "head",
    "shoulder",
    "arm", "upperarm", "lowerarm", "forearm",
    "hand", "wrist",
    "leg", "upperleg", "lowerleg", "thigh", "calf",
    "foot", "ankle",
)

MIXAMO_PREFIX = "mixamorig:"

# ============================================================================
# Joint name patterns
# ============================================================================

# (joint, variants).  Variant order matters: it is the order in which the
# heuristic tier tries names, and the first joint registered for a normalized
# name wins try_identify().
_JOINT_NAME_PATTERNS_RAW = [
    (CanonicalJoint.HIPS,
     ["Hips", "Hip", "pelvis", "Pelvis", "hip", "hips",
      "Bip01 Pelvis", "J_Bip_C_Hips", "CC_Base_Hip", "Center"]),

    (CanonicalJoint.LEFT_UPPER_LEG,
     ["LeftUpperLeg", "UpperLeg_Left", "UpperLeg_L", "Leg_Left", "Leg_L", "ULeg_L",
      "Left leg", "LeftUpLeg", "UpLeg.L", "Thigh_L", "LeftThigh", "thigh_L", "Upper_Leg_L",
      "thigh.L", "Bip01 L Thigh", "J_Bip_L_UpperLeg", "CC_Base_L_Thigh"]),
    (CanonicalJoint.RIGHT_UPPER_LEG,
     ["RightUpperLeg", "UpperLeg_Right", "UpperLeg_R", "Leg_Right", "Leg_R", "ULeg_R",
      "Right leg", "RightUpLeg", "UpLeg.R", "Thigh_R", "RightThigh", "thigh_R", "Upper_Leg_R",
      "thigh.R", "Bip01 R Thigh", "J_Bip_R_UpperLeg", "CC_Base_R_Thigh"]),

    (CanonicalJoint.LEFT_LOWER_LEG,
     ["LeftLowerLeg", "LowerLeg_Left", "LowerLeg_L", "Knee_Left", "Knee_L", "LLeg_L",
      "Left knee", "LeftLeg", "leg_L", "shin.L", "Shin_L", "Calf_L", "Lower_Leg_L",
      "Bip01 L Calf", "J_Bip_L_LowerLeg", "CC_Base_L_Calf"]),
    (CanonicalJoint.RIGHT_LOWER_LEG,
     ["RightLowerLeg", "LowerLeg_Right", "LowerLeg_R", "Knee_Right", "Knee_R", "LLeg_R",
      "Right knee", "RightLeg", "leg_R", "shin.R", "Shin_R", "Calf_R", "Lower_Leg_R",
      "Bip01 R Calf", "J_Bip_R_LowerLeg", "CC_Base_R_Calf"]),

    (CanonicalJoint.LEFT_FOOT,
     ["LeftFoot", "Foot_Left", "Foot_L", "Ankle_L", "Foot.L.001", "Left ankle",
      "heel.L", "heel", "LeftAnkle", "foot_L", "foot.L",
      "Bip01 L Foot", "J_Bip_L_Foot", "CC_Base_L_Foot"]),
    (CanonicalJoint.RIGHT_FOOT,
     ["RightFoot", "Foot_Right", "Foot_R", "Ankle_R", "Foot.R.001", "Right ankle",
      "heel.R", "RightAnkle", "foot_R", "foot.R",
      "Bip01 R Foot", "J_Bip_R_Foot", "CC_Base_R_Foot"]),

    (CanonicalJoint.SPINE,
     ["Spine", "spine01", "Spine1", "spine_01", "spine.001", "Spine_01",
      "Bip01 Spine", "J_Bip_C_Spine", "CC_Base_Waist"]),
    (CanonicalJoint.CHEST,
     ["Chest", "Bust", "spine02", "upper_chest", "Spine2", "spine_02", "chest", "Ribcage",
      "J_Bip_C_Chest", "CC_Base_Spine01"]),

    (CanonicalJoint.NECK,
     ["Neck", "neck", "Neck1", "Bip01 Neck", "J_Bip_C_Neck", "CC_Base_NeckTwist01"]),
    (CanonicalJoint.HEAD,
     ["Head", "head", "Bip01 Head", "J_Bip_C_Head", "CC_Base_Head"]),

    (CanonicalJoint.LEFT_SHOULDER,
     ["LeftShoulder", "Shoulder_Left", "Shoulder_L", "shoulder_L", "L_Shoulder", "Clavicle_L",
      "shoulder.L", "Bip01 L Clavicle", "J_Bip_L_Shoulder", "CC_Base_L_Clavicle"]),
    (CanonicalJoint.RIGHT_SHOULDER,
     ["RightShoulder", "Shoulder_Right", "Shoulder_R", "shoulder_R", "R_Shoulder", "Clavicle_R",
      "shoulder.R", "Bip01 R Clavicle", "J_Bip_R_Shoulder", "CC_Base_R_Clavicle"]),

    (CanonicalJoint.LEFT_UPPER_ARM,
     ["LeftUpperArm", "UpperArm_Left", "UpperArm_L", "Arm_Left", "Arm_L", "UArm_L",
      "Left arm", "UpperLeftArm", "arm_L", "Upper_Arm_L",
      "upper_arm.L", "LeftArm", "Bip01 L UpperArm", "J_Bip_L_UpperArm", "CC_Base_L_Upperarm"]),
    (CanonicalJoint.RIGHT_UPPER_ARM,
     ["RightUpperArm", "UpperArm_Right", "UpperArm_R", "Arm_Right", "Arm_R", "UArm_R",
      "Right arm", "UpperRightArm", "arm_R", "Upper_Arm_R",
      "upper_arm.R", "RightArm", "Bip01 R UpperArm", "J_Bip_R_UpperArm", "CC_Base_R_Upperarm"]),

    (CanonicalJoint.LEFT_LOWER_ARM,
     ["LeftLowerArm", "LowerArm_Left", "LowerArm_L", "LArm_L", "Left elbow",
      "LeftForeArm", "Elbow_L", "forearm_L", "ForArm_L", "Lower_Arm_L",
      "forearm.L", "Bip01 L Forearm", "J_Bip_L_LowerArm", "CC_Base_L_Forearm"]),
    (CanonicalJoint.RIGHT_LOWER_ARM,
     ["RightLowerArm", "LowerArm_Right", "LowerArm_R", "LArm_R", "Right elbow",
      "RightForeArm", "Elbow_R", "forearm_R", "ForArm_R", "Lower_Arm_R",
      "forearm.R", "Bip01 R Forearm", "J_Bip_R_LowerArm", "CC_Base_R_Forearm"]),

    (CanonicalJoint.LEFT_HAND,
     ["LeftHand", "Hand_Left", "Hand_L", "Left wrist", "Wrist_L", "hand_L",
      "hand.L", "Bip01 L Hand", "J_Bip_L_Hand", "CC_Base_L_Hand"]),
    (CanonicalJoint.RIGHT_HAND,
     ["RightHand", "Hand_Right", "Hand_R", "Right wrist", "Wrist_R", "hand_R",
      "hand.R", "Bip01 R Hand", "J_Bip_R_Hand", "CC_Base_R_Hand"]),

    (CanonicalJoint.LEFT_TOES,
     ["LeftToes", "Toes_Left", "Toe_Left", "ToeIK_L", "Toes_L", "Toe_L",
      "Foot.L.002", "Left Toe", "LeftToeBase", "toe_L",
      "toe.L", "Bip01 L Toe0", "J_Bip_L_ToeBase", "CC_Base_L_ToeBase"]),
    (CanonicalJoint.RIGHT_TOES,
     ["RightToes", "Toes_Right", "Toe_Right", "ToeIK_R", "Toes_R", "Toe_R",
      "Foot.R.002", "Right Toe", "RightToeBase", "toe_R",
      "toe.R", "Bip01 R Toe0", "J_Bip_R_ToeBase", "CC_Base_R_ToeBase"]),

    (CanonicalJoint.LEFT_EYE,
     ["LeftEye", "Eye_Left", "Eye_L", "eye_L", "eye.L", "J_Adj_L_FaceEye"]),
    (CanonicalJoint.RIGHT_EYE,
     ["RightEye", "Eye_Right", "Eye_R", "eye_R", "eye.R", "J_Adj_R_FaceEye"]),
    (CanonicalJoint.JAW,
     ["Jaw", "jaw", "CC_Base_JawRoot"]),

    # ---- Left hand fingers ----
    (CanonicalJoint.LEFT_THUMB_PROXIMAL,
     ["LeftThumbProximal", "ProximalThumb_Left", "ProximalThumb_L", "Thumb1_L",
      "ThumbFinger1_L", "LeftHandThumb1", "Thumb Proximal.L", "Thunb1_L", "finger01_01_L",
      "thumb.01.L", "J_Bip_L_Thumb1"]),
    (CanonicalJoint.LEFT_THUMB_INTERMEDIATE,
     ["LeftThumbIntermediate", "IntermediateThumb_Left", "IntermediateThumb_L", "Thumb2_L",
      "ThumbFinger2_L", "LeftHandThumb2", "Thumb Intermediate.L", "Thunb2_L", "finger01_02_L",
      "thumb.02.L", "J_Bip_L_Thumb2"]),
    (CanonicalJoint.LEFT_THUMB_DISTAL,
     ["LeftThumbDistal", "DistalThumb_Left", "DistalThumb_L", "Thumb3_L", "ThumbFinger3_L",
      "LeftHandThumb3", "Thumb Distal.L", "Thunb3_L", "finger01_03_L",
      "thumb.03.L", "J_Bip_L_Thumb3"]),

    (CanonicalJoint.LEFT_INDEX_PROXIMAL,
     ["LeftIndexProximal", "ProximalIndex_Left", "ProximalIndex_L", "Index1_L",
      "IndexFinger1_L", "LeftHandIndex1", "Index Proximal.L", "finger02_01_L", "f_index.01.L",
      "J_Bip_L_Index1"]),
    (CanonicalJoint.LEFT_INDEX_INTERMEDIATE,
     ["LeftIndexIntermediate", "IntermediateIndex_Left", "IntermediateIndex_L", "Index2_L",
      "IndexFinger2_L", "LeftHandIndex2", "Index Intermediate.L", "finger02_02_L", "f_index.02.L",
      "J_Bip_L_Index2"]),
    (CanonicalJoint.LEFT_INDEX_DISTAL,
     ["LeftIndexDistal", "DistalIndex_Left", "DistalIndex_L", "Index3_L", "IndexFinger3_L",
      "LeftHandIndex3", "Index Distal.L", "finger02_03_L", "f_index.03.L",
      "J_Bip_L_Index3"]),

    (CanonicalJoint.LEFT_MIDDLE_PROXIMAL,
     ["LeftMiddleProximal", "ProximalMiddle_Left", "ProximalMiddle_L", "Middle1_L",
      "MiddleFinger1_L", "LeftHandMiddle1", "Middle Proximal.L", "finger03_01_L", "f_middle.01.L",
      "J_Bip_L_Middle1"]),
    (CanonicalJoint.LEFT_MIDDLE_INTERMEDIATE,
     ["LeftMiddleIntermediate", "IntermediateMiddle_Left", "IntermediateMiddle_L", "Middle2_L",
      "MiddleFinger2_L", "LeftHandMiddle2", "Middle Intermediate.L", "finger03_02_L", "f_middle.02.L",
      "J_Bip_L_Middle2"]),
    (CanonicalJoint.LEFT_MIDDLE_DISTAL,
     ["LeftMiddleDistal", "DistalMiddle_Left", "DistalMiddle_L", "Middle3_L", "MiddleFinger3_L",
      "LeftHandMiddle3", "Middle Distal.L", "finger03_03_L", "f_middle.03.L",
      "J_Bip_L_Middle3"]),

    (CanonicalJoint.LEFT_RING_PROXIMAL,
     ["LeftRingProximal", "ProximalRing_Left", "ProximalRing_L", "Ring1_L", "RingFinger1_L",
      "LeftHandRing1", "Ring Proximal.L", "finger04_01_L", "f_ring.01.L",
      "J_Bip_L_Ring1"]),
    (CanonicalJoint.LEFT_RING_INTERMEDIATE,
     ["LeftRingIntermediate", "IntermediateRing_Left", "IntermediateRing_L", "Ring2_L",
      "RingFinger2_L", "LeftHandRing2", "Ring Intermediate.L", "finger04_02_L", "f_ring.02.L",
      "J_Bip_L_Ring2"]),
    (CanonicalJoint.LEFT_RING_DISTAL,
     ["LeftRingDistal", "DistalRing_Left", "DistalRing_L", "Ring3_L", "RingFinger3_L",
      "LeftHandRing3", "Ring Distal.L", "finger04_03_L", "f_ring.03.L",
      "J_Bip_L_Ring3"]),

    (CanonicalJoint.LEFT_LITTLE_PROXIMAL,
     ["LeftLittleProximal", "ProximalLittle_Left", "ProximalLittle_L", "Little1_L",
      "LittleFinger1_L", "LeftHandPinky1", "Little Proximal.L", "finger05_01_L", "f_pinky.01.L",
      "J_Bip_L_Little1"]),
    (CanonicalJoint.LEFT_LITTLE_INTERMEDIATE,
     ["LeftLittleIntermediate", "IntermediateLittle_Left", "IntermediateLittle_L", "Little2_L",
      "LittleFinger2_L", "LeftHandPinky2", "Little Intermediate.L", "finger05_02_L", "f_pinky.02.L",
      "J_Bip_L_Little2"]),
    (CanonicalJoint.LEFT_LITTLE_DISTAL,
     ["LeftLittleDistal", "DistalLittle_Left", "DistalLittle_L", "Little3_L", "LittleFinger3_L",
      "LeftHandPinky3", "Little Distal.L", "finger05_03_L", "f_pinky.03.L",
      "J_Bip_L_Little3"]),

    # ---- Right hand fingers ----
    (CanonicalJoint.RIGHT_THUMB_PROXIMAL,
     ["RightThumbProximal", "ProximalThumb_Right", "ProximalThumb_R", "Thumb1_R",
      "ThumbFinger1_R", "RightHandThumb1", "Thumb Proximal.R", "Thunb1_R", "finger01_01_R",
      "thumb.01.R", "J_Bip_R_Thumb1"]),
    (CanonicalJoint.RIGHT_THUMB_INTERMEDIATE,
     ["RightThumbIntermediate", "IntermediateThumb_Right", "IntermediateThumb_R", "Thumb2_R",
      "ThumbFinger2_R", "RightHandThumb2", "Thumb Intermediate.R", "Thunb2_R", "finger01_02_R",
      "thumb.02.R", "J_Bip_R_Thumb2"]),
    (CanonicalJoint.RIGHT_THUMB_DISTAL,
     ["RightThumbDistal", "DistalThumb_Right", "DistalThumb_R", "Thumb3_R", "ThumbFinger3_R",
      "RightHandThumb3", "Thumb Distal.R", "Thunb3_R", "finger01_03_R",
      "thumb.03.R", "J_Bip_R_Thumb3"]),

    (CanonicalJoint.RIGHT_INDEX_PROXIMAL,
     ["RightIndexProximal", "ProximalIndex_Right", "ProximalIndex_R", "Index1_R",
      "IndexFinger1_R", "RightHandIndex1", "Index Proximal.R", "finger02_01_R", "f_index.01.R",
      "J_Bip_R_Index1"]),
    (CanonicalJoint.RIGHT_INDEX_INTERMEDIATE,
     ["RightIndexIntermediate", "IntermediateIndex_Right", "IntermediateIndex_R", "Index2_R",
      "IndexFinger2_R", "RightHandIndex2", "Index Intermediate.R", "finger02_02_R", "f_index.02.R",
      "J_Bip_R_Index2"]),
    (CanonicalJoint.RIGHT_INDEX_DISTAL,
     ["RightIndexDistal", "DistalIndex_Right", "DistalIndex_R", "Index3_R", "IndexFinger3_R",
      "RightHandIndex3", "Index Distal.R", "finger02_03_R", "f_index.03.R",
      "J_Bip_R_Index3"]),

    (CanonicalJoint.RIGHT_MIDDLE_PROXIMAL,
     ["RightMiddleProximal", "ProximalMiddle_Right", "ProximalMiddle_R", "Middle1_R",
      "MiddleFinger1_R", "RightHandMiddle1", "Middle Proximal.R", "finger03_01_R", "f_middle.01.R",
      "J_Bip_R_Middle1"]),
    (CanonicalJoint.RIGHT_MIDDLE_INTERMEDIATE,
     ["RightMiddleIntermediate", "IntermediateMiddle_Right", "IntermediateMiddle_R", "Middle2_R",
      "MiddleFinger2_R", "RightHandMiddle2", "Middle Intermediate.R", "finger03_02_R", "f_middle.02.R",
      "J_Bip_R_Middle2"]),
    (CanonicalJoint.RIGHT_MIDDLE_DISTAL,
     ["RightMiddleDistal", "DistalMiddle_Right", "DistalMiddle_R", "Middle3_R", "MiddleFinger3_R",
      "RightHandMiddle3", "Middle Distal.R", "finger03_03_R", "f_middle.03.R",
      "J_Bip_R_Middle3"]),

    (CanonicalJoint.RIGHT_RING_PROXIMAL,
     ["RightRingProximal", "ProximalRing_Right", "ProximalRing_R", "Ring1_R", "RingFinger1_R",
      "RightHandRing1", "Ring Proximal.R", "finger04_01_R", "f_ring.01.R",
      "J_Bip_R_Ring1"]),
    (CanonicalJoint.RIGHT_RING_INTERMEDIATE,
     ["RightRingIntermediate", "IntermediateRing_Right", "IntermediateRing_R", "Ring2_R",
      "RingFinger2_R", "RightHandRing2", "Ring Intermediate.R", "finger04_02_R", "f_ring.02.R",
      "J_Bip_R_Ring2"]),
    (CanonicalJoint.RIGHT_RING_DISTAL,
     ["RightRingDistal", "DistalRing_Right", "DistalRing_R", "Ring3_R", "RingFinger3_R",
      "RightHandRing3", "Ring Distal.R", "finger04_03_R", "f_ring.03.R",
      "J_Bip_R_Ring3"]),

    (CanonicalJoint.RIGHT_LITTLE_PROXIMAL,
     ["RightLittleProximal", "ProximalLittle_Right", "ProximalLittle_R", "Little1_R",
      "LittleFinger1_R", "RightHandPinky1", "Little Proximal.R", "finger05_01_R", "f_pinky.01.R",
      "J_Bip_R_Little1"]),
    (CanonicalJoint.RIGHT_LITTLE_INTERMEDIATE,
     ["RightLittleIntermediate", "IntermediateLittle_Right", "IntermediateLittle_R", "Little2_R",
      "LittleFinger2_R", "RightHandPinky2", "Little Intermediate.R", "finger05_02_R", "f_pinky.02.R",
      "J_Bip_R_Little2"]),
    (CanonicalJoint.RIGHT_LITTLE_DISTAL,
     ["RightLittleDistal", "DistalLittle_Right", "DistalLittle_R", "Little3_R", "LittleFinger3_R",
      "RightHandPinky3", "Little Distal.R", "finger05_03_R", "f_pinky.03.R",
      "J_Bip_R_Little3"]),

    (CanonicalJoint.UPPER_CHEST,
     ["UpperChest", "UChest", "upper_chest", "Spine3", "spine03", "UpperChest1",
      "J_Bip_C_UpperChest", "CC_Base_Spine02"]),
]

_PAT_END_SIDE = re.compile(r"[_.]([LR])$")
_PAT_NORMALIZE = re.compile(r"^bone_|[0-9 ._\-]")


def normalize_name(name: str) -> str:
    """Reduce a joint name to its comparison key.

    Drops a 'namespace:' prefix (Mixamo, MMD exports), lower-cases, removes
    a leading 'bone_' and every digit, space, dot, underscore and hyphen.
    """
    if not name:
        return ""
    if ":" in name:
        name = name.rsplit(":", 1)[1]
    return _PAT_NORMALIZE.sub("", name.lower())


def levenshtein(a: str, b: str) -> int:
    """Edit distance with unit insert/delete/substitute costs."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        current = [i]
        for j, cb in enumerate(b, 1):
            cost = 0 if ca == cb else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


# ============================================================================
# Database
# ============================================================================


class JointNameDatabase:
    """Lookup tables between joint names and canonical joints.

    Built once from the static pattern table; instances are read-only after
    construction and may be shared.
    """

    def __init__(self, patterns=None):
        self._name_to_joints: Dict[str, List[CanonicalJoint]] = {}
        self._joint_to_names: Dict[CanonicalJoint, List[str]] = {j: [] for j in CanonicalJoint}
        self._known: set = set()

        for joint, variants in (patterns or _JOINT_NAME_PATTERNS_RAW):
            for name in variants:
                normalized = normalize_name(name)
                self._register(normalized, joint)
                names = self._joint_to_names[joint]
                if normalized not in names:
                    names.append(normalized)
                self._register_variants(name, joint)

    def _register(self, normalized: str, joint: CanonicalJoint) -> None:
        joints = self._name_to_joints.setdefault(normalized, [])
        if joint not in joints:
            joints.append(joint)
        self._known.add(normalized)

    def _register_variants(self, name: str, joint: CanonicalJoint) -> None:
        # Side moved to the front ("Arm_L" -> "L.Arm"), or the VRM centre
        # prefix ("C.Hips") for names without a side.
        match = _PAT_END_SIDE.search(name)
        if match:
            alt = match.group(1) + "." + name[:-2]
        else:
            alt = "C." + name
        self._register(normalize_name(alt), joint)

    # ---- Lookup ----

    @staticmethod
    def normalize(name: str) -> str:
        return normalize_name(name)

    def get_name_variants(self, joint: CanonicalJoint) -> List[str]:
        """Normalized name variants for a joint, in registration order."""
        return list(self._joint_to_names.get(joint, ()))

    def possible_joints(self, name: str) -> List[CanonicalJoint]:
        if not name:
            return []
        return list(self._name_to_joints.get(normalize_name(name), ()))

    def try_identify(self, name: str) -> Optional[CanonicalJoint]:
        """First canonical joint registered for `name`, or None."""
        joints = self.possible_joints(name)
        return joints[0] if joints else None

    def is_known(self, name: str) -> bool:
        if not name:
            return False
        return normalize_name(name) in self._known

    def similarity(self, a: str, b: str) -> float:
        """Normalized-Levenshtein similarity of two joint names, in [0, 1].

        Symmetric.  Identical names (ignoring case) score 1.0, an empty name
        scores 0.0 against anything else.
        """
        if a is not None and b is not None and a.lower() == b.lower():
            return 1.0
        if not a or not b:
            return 0.0
        norm_a = normalize_name(a)
        norm_b = normalize_name(b)
        if norm_a == norm_b:
            return 1.0
        longest = max(len(norm_a), len(norm_b))
        return 1.0 - levenshtein(norm_a, norm_b) / longest

    # ---- Hierarchy search ----

    def find_in_tree(self, root, joint: CanonicalJoint, exclude=()):
        """Find the node for `joint` under `root` by name.

        Tries the canonical label ('LeftUpperLeg') breadth-first, then each
        normalized variant in registration order.  Nodes in `exclude` are
        never returned.
        """
        if root is None:
            return None

        ordered = [node for node in root.walk_breadth_first() if node not in exclude]

        label = joint.label.lower()
        for node in ordered:
            if node.name.lower() == label:
                return node

        keyed = [(normalize_name(node.name), node) for node in ordered]
        for variant in self.get_name_variants(joint):
            for key, node in keyed:
                if key == variant:
                    return node
        return None


# ============================================================================
# Naming convention detection
# ============================================================================

_UNITY_INDICATORS = frozenset({
    'Hips', 'Spine', 'Head', 'LeftUpperArm', 'RightUpperArm',
    'LeftHand', 'RightHand', 'LeftFoot', 'RightFoot',
    'LeftUpperLeg', 'RightUpperLeg',
})


def detect_naming_convention(names: Iterable[str]) -> Optional[str]:
    """Guess which tool produced a rig from its joint names.

    Returns:
        'mixamo', 'bip01', 'vrm', 'unity', 'blender', or None (unknown).
    """
    names = [n for n in names if n]

    if sum(1 for n in names if n.startswith(MIXAMO_PREFIX)) >= 3:
        return 'mixamo'
    if sum(1 for n in names if n.startswith("Bip01")) >= 3:
        return 'bip01'
    if sum(1 for n in names if n.startswith("J_Bip_")) >= 3:
        return 'vrm'
    if sum(1 for n in set(names) if n in _UNITY_INDICATORS) >= 3:
        return 'unity'
    if sum(1 for n in names if n.endswith((".L", ".R"))) >= 3:
        return 'blender'
    return None


def count_humanoid_names(names: Iterable[str]) -> int:
    """Number of names containing a typical humanoid body-part fragment."""
    count = 0
    for name in names:
        lower = name.lower().replace("_", "").replace("-", "").replace(" ", "").replace(".", "")
        if any(fragment in lower for fragment in HUMANOID_FRAGMENTS):
            count += 1
    return count

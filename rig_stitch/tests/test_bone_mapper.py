import unittest
from pathlib import Path
import sys


# Allow `import rig_stitch.*` from repo root.
_REPO_DIR = Path(__file__).resolve().parents[2]
if str(_REPO_DIR) not in sys.path:
    sys.path.insert(0, str(_REPO_DIR))

from rig_stitch.tests.rigs import build_body, build_jacket


def _by_joint(mappings):
    return {m.joint: m for m in mappings}


class TestDetectMapping(unittest.TestCase):
    def test_exact_names_map_every_base_joint(self) -> None:
        from rig_stitch.actor.bone_mapper import BoneMapper, MappingMethod
        from rig_stitch.actor.joint_names import CanonicalJoint
        from rig_stitch.actor.rig_reference import RigReference

        body, base = build_body()
        jacket, joints, _skin = build_jacket(body)

        mappings = BoneMapper().detect_mapping(RigReference(body), RigReference(jacket))

        self.assertEqual([m.joint for m in mappings],
                         [CanonicalJoint.HIPS, CanonicalJoint.SPINE, CanonicalJoint.CHEST])
        for mapping in mappings:
            self.assertTrue(mapping.is_valid)
            self.assertEqual(mapping.method, MappingMethod.EXACT_NAME)
            self.assertEqual(mapping.source_method, MappingMethod.NATIVE_MAPPING)
            self.assertIs(mapping.source_node, base[mapping.joint.label])
            self.assertIs(mapping.target_node, joints[mapping.joint.label])
        self.assertEqual(mappings[0].target_path, "Body/Jacket/Armature/Hips")

    def test_native_target_beats_exact_name(self) -> None:
        from rig_stitch.actor.bone_mapper import BoneMapper, MappingMethod
        from rig_stitch.actor.joint_names import CanonicalJoint
        from rig_stitch.actor.rig_reference import HumanoidMap, RigReference

        body, _base = build_body()
        jacket, joints, _skin = build_jacket(body)
        jacket.add_component(HumanoidMap({CanonicalJoint.HIPS: joints["Spine"]}))

        mapping = _by_joint(BoneMapper().detect_mapping(RigReference(body), RigReference(jacket)))
        hips = mapping[CanonicalJoint.HIPS]
        self.assertEqual(hips.method, MappingMethod.NATIVE_MAPPING)
        self.assertIs(hips.target_node, joints["Spine"])

    def test_heuristic_tier_uses_variants_then_similarity(self) -> None:
        from rig_stitch.actor.bone_mapper import BoneMapper, MappingMethod
        from rig_stitch.actor.joint_names import CanonicalJoint
        from rig_stitch.actor.rig_reference import RigReference

        body, _base = build_body()
        jacket, joints, _skin = build_jacket(body, names=("pelvis", "Spline", "Chest"))

        mapping = _by_joint(BoneMapper().detect_mapping(RigReference(body), RigReference(jacket)))
        self.assertEqual(mapping[CanonicalJoint.HIPS].method, MappingMethod.HEURISTIC_NAME)
        self.assertIs(mapping[CanonicalJoint.HIPS].target_node, joints["pelvis"])
        self.assertEqual(mapping[CanonicalJoint.SPINE].method, MappingMethod.HEURISTIC_NAME)
        self.assertIs(mapping[CanonicalJoint.SPINE].target_node, joints["Spline"])
        self.assertEqual(mapping[CanonicalJoint.CHEST].method, MappingMethod.EXACT_NAME)

    def test_missing_target_still_yields_an_entry(self) -> None:
        from rig_stitch.actor.bone_mapper import BoneMapper, MappingMethod
        from rig_stitch.actor.joint_names import CanonicalJoint
        from rig_stitch.actor.rig_reference import RigReference

        body, _base = build_body()
        jacket, _joints, _skin = build_jacket(body, names=("Hips", "Spine"))

        mapping = _by_joint(BoneMapper().detect_mapping(RigReference(body), RigReference(jacket)))
        chest = mapping[CanonicalJoint.CHEST]
        self.assertIsNone(chest.target_node)
        self.assertEqual(chest.method, MappingMethod.NONE)
        self.assertFalse(chest.is_valid)
        self.assertEqual(chest.target_path, "")

    def test_prefix_is_stripped_for_matching(self) -> None:
        from rig_stitch.actor.bone_mapper import BoneMapper, MappingMethod
        from rig_stitch.actor.rig_reference import RigReference

        body, _base = build_body()
        jacket, joints, _skin = build_jacket(
            body, names=("Jacket_Hips", "Jacket_Spine", "Jacket_Chest"))
        mapper = BoneMapper()

        plain = mapper.detect_mapping(RigReference(body), RigReference(jacket))
        self.assertEqual(sum(1 for m in plain if m.is_valid), 0)

        stripped = mapper.detect_mapping(RigReference(body), RigReference(jacket),
                                         name_prefix="jacket_")
        self.assertEqual([m.method for m in stripped], [MappingMethod.EXACT_NAME] * 3)
        self.assertIs(stripped[0].target_node, joints["Jacket_Hips"])

    def test_targets_are_never_claimed_twice(self) -> None:
        from rig_stitch.actor.bone_mapper import BoneMapper
        from rig_stitch.actor.rig_reference import RigReference

        body, _base = build_body()
        jacket, _joints, _skin = build_jacket(body, names=("Hips", "Spine1", "Spine2"))

        mappings = BoneMapper().detect_mapping(RigReference(body), RigReference(jacket))
        targets = [m.target_node for m in mappings if m.target_node is not None]
        self.assertEqual(len(targets), len(set(targets)))

    def test_mapping_is_deterministic(self) -> None:
        from rig_stitch.actor.bone_mapper import BoneMapper
        from rig_stitch.actor.rig_reference import RigReference

        body, _base = build_body(with_map=False)
        jacket, _joints, _skin = build_jacket(body, names=("Hip", "Spine_01", "Ribcage"))
        mapper = BoneMapper()

        first = [str(m) for m in mapper.detect_mapping(RigReference(body), RigReference(jacket))]
        second = [str(m) for m in mapper.detect_mapping(RigReference(body), RigReference(jacket))]
        self.assertEqual(first, second)
        self.assertEqual(len(first), 3)

    def test_invalid_rig_yields_no_mappings(self) -> None:
        from rig_stitch.actor.bone_mapper import BoneMapper
        from rig_stitch.actor.rig_reference import RigReference

        body, _base = build_body()
        jacket, _joints, _skin = build_jacket()
        rig = RigReference(jacket)
        jacket.destroy()

        self.assertEqual(BoneMapper().detect_mapping(RigReference(body), rig), [])
        self.assertEqual(BoneMapper().detect_mapping(None, rig), [])


class TestMappingHelpers(unittest.TestCase):
    def test_strip_affixes(self) -> None:
        from rig_stitch.actor.bone_mapper import strip_affixes

        self.assertEqual(strip_affixes("Jacket_Hips_end", "jacket_", "_END"), "Hips")
        self.assertEqual(strip_affixes("Hips", "Jacket_", None), "Hips")

    def test_manual_assignment(self) -> None:
        from rig_stitch.actor.bone_mapper import JointMapping, MappingMethod
        from rig_stitch.actor.joint_names import CanonicalJoint
        from rig_stitch.scene_graph import SceneNode

        mapping = JointMapping(CanonicalJoint.HEAD, SceneNode("Head"))
        mapping.assign_target(SceneNode("HatHead"))
        self.assertEqual(mapping.method, MappingMethod.MANUAL)
        self.assertTrue(mapping.is_valid)
        mapping.assign_target(None)
        self.assertEqual(mapping.method, MappingMethod.NONE)

    def test_analyze_and_describe(self) -> None:
        from rig_stitch.actor.bone_mapper import BoneMapper
        from rig_stitch.actor.joint_names import CanonicalJoint

        jacket, _joints, _skin = build_jacket()
        mapper = BoneMapper()

        found = mapper.analyze_rig(jacket)
        self.assertEqual(list(found), [CanonicalJoint.HIPS, CanonicalJoint.SPINE, CanonicalJoint.CHEST])

        lines = mapper.describe_hierarchy(jacket)
        self.assertEqual(lines[0], "- Jacket")
        self.assertIn("    - Hips [HUMANOID]", lines)
        self.assertTrue(any(line.strip() == "- Tail" for line in lines))


if __name__ == "__main__":
    unittest.main()

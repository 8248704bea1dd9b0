import unittest
from pathlib import Path
import sys


# Allow `import rig_stitch.*` from repo root.
_REPO_DIR = Path(__file__).resolve().parents[2]
if str(_REPO_DIR) not in sys.path:
    sys.path.insert(0, str(_REPO_DIR))


class TestRigRootDiscovery(unittest.TestCase):
    def test_native_hips_parent_wins(self) -> None:
        from rig_stitch.actor.joint_names import CanonicalJoint
        from rig_stitch.actor.rig_reference import HumanoidMap, RigReference
        from rig_stitch.scene_graph import SceneNode

        root = SceneNode("Character")
        SceneNode("Armature", parent=root)
        custom = SceneNode("RigGroup", parent=root)
        hips = SceneNode("Pelvis", parent=custom)
        root.add_component(HumanoidMap({CanonicalJoint.HIPS: hips}))

        rig = RigReference(root)
        self.assertTrue(rig.has_native_mapping)
        self.assertIs(rig.rig_root, custom)
        self.assertIs(rig.get_native_joint(CanonicalJoint.HIPS), hips)
        self.assertIsNone(rig.get_native_joint(CanonicalJoint.HEAD))

    def test_container_name_is_found_without_native_map(self) -> None:
        from rig_stitch.actor.rig_reference import RigReference
        from rig_stitch.scene_graph import SceneNode

        root = SceneNode("Character")
        group = SceneNode("Group", parent=root)
        SceneNode("Child", parent=group)
        skeleton = SceneNode("skeleton", parent=root)

        rig = RigReference(root)
        self.assertFalse(rig.has_native_mapping)
        self.assertIs(rig.rig_root, skeleton)
        self.assertIs(rig.search_root, skeleton)

    def test_first_non_mesh_child_with_children_is_fallback(self) -> None:
        from rig_stitch.actor.rig_reference import RigReference
        from rig_stitch.scene_graph import SceneNode

        root = SceneNode("Character")
        mesh_group = SceneNode("BodyMesh", parent=root)
        SceneNode("Part", parent=mesh_group)
        SceneNode("Empty", parent=root)
        joints = SceneNode("Joints", parent=root)
        SceneNode("Pelvis", parent=joints)

        self.assertIs(RigReference(root).rig_root, joints)

    def test_no_rig_root_is_reported_as_warning(self) -> None:
        from rig_stitch.actor.rig_reference import RigReference
        from rig_stitch.scene_graph import SceneNode

        root = SceneNode("Prop")
        SceneNode("PropMesh", parent=root)

        rig = RigReference(root)
        self.assertIsNone(rig.rig_root)
        self.assertIs(rig.search_root, root)
        warnings = rig.validate()
        self.assertEqual(len(warnings), 2)

    def test_failing_native_lookup_is_treated_as_absent(self) -> None:
        from rig_stitch.actor.joint_names import CanonicalJoint
        from rig_stitch.actor.rig_reference import RigReference
        from rig_stitch.scene_graph import SceneNode

        def broken(joint):
            raise RuntimeError("avatar not configured")

        root = SceneNode("Character")
        armature = SceneNode("Armature", parent=root)

        with self.assertLogs("rig_stitch.rig", level="WARNING"):
            rig = RigReference(root, native_lookup=broken)
        self.assertTrue(rig.has_native_mapping)
        self.assertIsNone(rig.get_native_joint(CanonicalJoint.SPINE))
        self.assertIs(rig.rig_root, armature)

    def test_destroyed_root_is_invalid(self) -> None:
        from rig_stitch.actor.rig_reference import RigReference
        from rig_stitch.scene_graph import SceneNode

        root = SceneNode("Character")
        rig = RigReference(root)
        root.destroy()
        rig.refresh()

        self.assertFalse(rig.is_valid)
        self.assertEqual(rig.validate(), ["Rig root is missing or was deleted"])


if __name__ == "__main__":
    unittest.main()

import unittest
from pathlib import Path
import sys


# Allow `import rig_stitch.*` from repo root.
_REPO_DIR = Path(__file__).resolve().parents[2]
if str(_REPO_DIR) not in sys.path:
    sys.path.insert(0, str(_REPO_DIR))

from rig_stitch.tests.rigs import assert_matrix_close, build_body, build_jacket


def _rotated_jacket():
    """Body plus a jacket whose hips are offset and rotated against the body."""
    from mathutils import Matrix

    body, base = build_body()
    jacket, joints, skin = build_jacket(body)
    joints["Hips"].matrix_local = Matrix.Translation((0.2, 0.0, 1.0)) @ Matrix.Rotation(0.3, 4, 'Z')
    joint_map = {joints[name]: base[name] for name in ("Hips", "Spine", "Chest")}
    return body, base, jacket, joints, skin, joint_map


class TestBindPoseMath(unittest.TestCase):
    def test_skinning_matrices_survive_retarget(self) -> None:
        from rig_stitch.actor.retarget import MeshRetargeter

        _body, base, _jacket, joints, skin, joint_map = _rotated_jacket()
        old_skinning = [j.matrix_world @ b for j, b in zip(skin.joints, skin.mesh.bind_poses)]

        self.assertTrue(MeshRetargeter().retarget_single(skin, joint_map))

        self.assertEqual(skin.joints, [base["Hips"], base["Spine"], base["Chest"], joints["Tail"]])
        self.assertIs(skin.root_joint, base["Hips"])
        for joint, bind, expected in zip(skin.joints, skin.mesh.bind_poses, old_skinning):
            assert_matrix_close(self, joint.matrix_world @ bind, expected)

    def test_compute_bind_pose_is_identity_for_the_same_joint(self) -> None:
        from mathutils import Matrix
        from rig_stitch.actor.retarget import compute_bind_pose
        from rig_stitch.scene_graph import SceneNode

        joint = SceneNode("Joint", Matrix.Translation((1.0, 2.0, 3.0)))
        bind = Matrix.Translation((0.0, 0.0, -1.0))
        assert_matrix_close(self, compute_bind_pose(joint, joint, bind), bind)

    def test_reconstruct_uses_mesh_space_and_identity_for_empty_slots(self) -> None:
        from mathutils import Matrix
        from rig_stitch.actor.retarget import reconstruct_bind_poses
        from rig_stitch.scene_graph import SceneNode

        joint = SceneNode("Joint", Matrix.Translation((0.0, 0.0, 2.0)))
        mesh = SceneNode("Mesh", Matrix.Translation((1.0, 0.0, 0.0)))

        poses = reconstruct_bind_poses([joint, None], mesh)

        assert_matrix_close(self, poses[0], Matrix.Translation((1.0, 0.0, -2.0)))
        assert_matrix_close(self, poses[1], Matrix.Identity(4))


class TestMeshRetargeter(unittest.TestCase):
    def test_mesh_without_mapped_joints_is_untouched(self) -> None:
        from rig_stitch.actor.retarget import MeshRetargeter
        from rig_stitch.scene_graph import SceneNode

        _body, _base, _jacket, joints, skin, _joint_map = _rotated_jacket()
        before = list(skin.joints)

        self.assertFalse(MeshRetargeter().retarget_single(skin, {}))
        self.assertFalse(MeshRetargeter().retarget_single(skin, {SceneNode("Other"): joints["Tail"]}))
        self.assertEqual(skin.joints, before)

    def test_shared_mesh_is_cloned(self) -> None:
        from rig_stitch.actor.retarget import MeshRetargeter
        from rig_stitch.scene_graph import SceneNode, SkinnedMesh

        _body, _base, jacket, _joints, skin, joint_map = _rotated_jacket()
        original = skin.mesh
        original_binds = [m.copy() for m in original.bind_poses]
        twin = SceneNode("JacketMeshLOD1", parent=jacket)
        twin_skin = twin.add_component(SkinnedMesh(original, list(skin.joints)))

        MeshRetargeter().retarget_single(skin, joint_map)

        self.assertIsNot(skin.mesh, original)
        self.assertEqual(skin.mesh.name, "JacketMeshData_Retargeted")
        self.assertIs(twin_skin.mesh, original)
        self.assertEqual(original.users, 1)
        for a, b in zip(original.bind_poses, original_binds):
            assert_matrix_close(self, a, b)

    def test_asset_mesh_is_cloned_even_with_one_user(self) -> None:
        from rig_stitch.actor.retarget import MeshRetargeter

        _body, _base, _jacket, _joints, skin, joint_map = _rotated_jacket()
        original = skin.mesh
        original.is_asset = True

        MeshRetargeter().retarget_single(skin, joint_map)
        self.assertIsNot(skin.mesh, original)
        self.assertEqual(original.users, 0)

    def test_missing_bind_poses_are_rebuilt_with_a_warning(self) -> None:
        from rig_stitch.actor.retarget import MeshRetargeter

        _body, _base, _jacket, _joints, skin, joint_map = _rotated_jacket()
        skin.mesh.bind_poses = []
        warnings = []

        self.assertTrue(MeshRetargeter().retarget_single(skin, joint_map, warnings))
        self.assertEqual(len(warnings), 1)
        self.assertEqual(len(skin.mesh.bind_poses), 4)

    def test_strict_bind_poses_raise(self) -> None:
        from rig_stitch.actor.retarget import BindPoseError, MeshRetargeter
        from rig_stitch.settings import MergeConfig

        _body, _base, jacket, _joints, skin, joint_map = _rotated_jacket()
        skin.mesh.bind_poses = skin.mesh.bind_poses[:2]
        retargeter = MeshRetargeter(MergeConfig(strict_bind_poses=True))

        with self.assertRaises(BindPoseError):
            retargeter.retarget_single(skin, joint_map)

        errors = []
        self.assertEqual(retargeter.retarget_meshes(jacket, joint_map, errors=errors), 0)
        self.assertEqual(len(errors), 1)
        self.assertIn("JacketMesh", errors[0])

    def test_stats(self) -> None:
        from rig_stitch.actor.retarget import MeshRetargeter
        from rig_stitch.scene_graph import MeshData, SceneNode, SkinnedMesh

        _body, _base, jacket, _joints, _skin, joint_map = _rotated_jacket()
        SceneNode("Buttons", parent=jacket).add_component(SkinnedMesh(MeshData("ButtonData"), []))

        stats = MeshRetargeter().stats(jacket, joint_map)
        self.assertEqual(stats.total_meshes, 2)
        self.assertEqual(stats.meshes_without_joints, 1)
        self.assertEqual(stats.meshes_needing_retarget, 1)
        self.assertEqual(stats.total_joints, 4)
        self.assertEqual(stats.total_joints_to_retarget, 3)


class TestBounds(unittest.TestCase):
    def test_scale_mode_scales_by_joint_scale(self) -> None:
        from mathutils import Matrix, Vector
        from rig_stitch.actor.retarget import MeshRetargeter
        from rig_stitch.scene_graph import Bounds, MeshData, SceneNode, SkinnedMesh

        joint = SceneNode("Hips", Matrix.Scale(2.0, 4))
        skin = SkinnedMesh(MeshData("M"), [joint], root_joint=joint,
                           local_bounds=Bounds(Vector((1.0, 0.0, 0.0)), Vector((2.0, 2.0, 2.0))))

        bounds = MeshRetargeter().compute_bounds(skin)
        self.assertAlmostEqual(bounds.center.x, 2.0, places=5)
        self.assertAlmostEqual(bounds.size.y, 4.0, places=5)

    def test_scale_mode_leaves_unit_scale_alone(self) -> None:
        from mathutils import Vector
        from rig_stitch.actor.retarget import MeshRetargeter
        from rig_stitch.scene_graph import Bounds, MeshData, SceneNode, SkinnedMesh

        joint = SceneNode("Hips")
        original = Bounds(Vector((1.0, 0.0, 0.0)), Vector((2.0, 2.0, 2.0)))
        skin = SkinnedMesh(MeshData("M"), [joint], root_joint=joint, local_bounds=original)

        self.assertIs(MeshRetargeter().compute_bounds(skin), original)

    def test_vertices_mode_is_exact_in_root_joint_space(self) -> None:
        from mathutils import Matrix, Vector
        from rig_stitch.actor.retarget import MeshRetargeter
        from rig_stitch.scene_graph import MeshData, SceneNode, SkinnedMesh
        from rig_stitch.settings import MergeConfig

        joint = SceneNode("Hips", Matrix.Translation((1.0, 0.0, 0.0)))
        mesh_node = SceneNode("Mesh")
        data = MeshData("M", vertices=[Vector((0.0, 0.0, 0.0)), Vector((2.0, 0.0, 0.0)),
                                       Vector((0.0, 4.0, 0.0))])
        skin = mesh_node.add_component(SkinnedMesh(data, [joint], root_joint=joint))

        bounds = MeshRetargeter(MergeConfig(bounds_mode="vertices")).compute_bounds(skin)
        self.assertAlmostEqual(bounds.center.x, 0.0, places=5)
        self.assertAlmostEqual(bounds.center.y, 2.0, places=5)
        self.assertAlmostEqual(bounds.size.x, 2.0, places=5)
        self.assertAlmostEqual(bounds.size.y, 4.0, places=5)


if __name__ == "__main__":
    unittest.main()

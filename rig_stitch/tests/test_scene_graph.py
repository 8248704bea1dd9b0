import unittest
from pathlib import Path
import sys


# Allow `import rig_stitch.*` from repo root.
_REPO_DIR = Path(__file__).resolve().parents[2]
if str(_REPO_DIR) not in sys.path:
    sys.path.insert(0, str(_REPO_DIR))


class TestSceneNode(unittest.TestCase):
    def test_world_matrix_composes_parent_and_local(self) -> None:
        from mathutils import Matrix
        from rig_stitch.scene_graph import SceneNode

        parent = SceneNode("Parent", Matrix.Translation((0.0, 2.0, 0.0)))
        child = SceneNode("Child", Matrix.Translation((1.0, 0.0, 0.0)), parent=parent)

        t = child.matrix_world.translation
        self.assertAlmostEqual(t.x, 1.0, places=5)
        self.assertAlmostEqual(t.y, 2.0, places=5)
        self.assertIs(child.parent, parent)
        self.assertEqual(child.depth, 1)
        self.assertEqual(child.path, "Parent/Child")

    def test_set_parent_keeps_world_transform(self) -> None:
        from mathutils import Matrix
        from rig_stitch.scene_graph import SceneNode

        a = SceneNode("A", Matrix.Translation((0.0, 2.0, 0.0)))
        b = SceneNode("B", Matrix.Translation((5.0, 0.0, 0.0)))
        child = SceneNode("Child", Matrix.Translation((1.0, 0.0, 0.0)), parent=a)

        child.set_parent(b, keep_world=True)

        world = child.matrix_world.translation
        local = child.matrix_local.translation
        self.assertAlmostEqual(world.x, 1.0, places=5)
        self.assertAlmostEqual(world.y, 2.0, places=5)
        self.assertAlmostEqual(local.x, -4.0, places=5)
        self.assertEqual(a.children, [])
        self.assertEqual(b.children, [child])

    def test_cycles_are_rejected(self) -> None:
        from rig_stitch.scene_graph import SceneGraphError, SceneNode

        root = SceneNode("Root")
        child = SceneNode("Child", parent=root)
        grandchild = SceneNode("Grandchild", parent=child)

        with self.assertRaises(SceneGraphError):
            root.set_parent(grandchild)
        with self.assertRaises(SceneGraphError):
            child.set_parent(child)

    def test_singular_parent_is_rejected_when_keeping_world(self) -> None:
        from mathutils import Matrix
        from rig_stitch.scene_graph import SceneGraphError, SceneNode

        flat = SceneNode("Flat", Matrix.Scale(0.0, 4))
        node = SceneNode("Node")

        with self.assertRaises(SceneGraphError):
            node.set_parent(flat, keep_world=True)
        self.assertIsNone(node.parent)

    def test_destroy_marks_subtree_and_detaches(self) -> None:
        from rig_stitch.scene_graph import SceneGraphError, SceneNode

        root = SceneNode("Root")
        branch = SceneNode("Branch", parent=root)
        leaf = SceneNode("Leaf", parent=branch)

        branch.destroy()

        self.assertTrue(branch.destroyed)
        self.assertTrue(leaf.destroyed)
        self.assertFalse(root.destroyed)
        self.assertEqual(root.children, [])
        with self.assertRaises(SceneGraphError):
            leaf.set_parent(root)

    def test_sibling_index_round_trip(self) -> None:
        from rig_stitch.scene_graph import SceneNode

        root = SceneNode("Root")
        first = SceneNode("First", parent=root)
        second = SceneNode("Second", parent=root)

        second.set_sibling_index(0)
        self.assertEqual([c.name for c in root.children], ["Second", "First"])
        self.assertEqual(first.sibling_index, 1)

    def test_find_is_case_insensitive_and_breadth_first(self) -> None:
        from rig_stitch.scene_graph import SceneNode

        root = SceneNode("Root")
        deep_parent = SceneNode("Group", parent=root)
        deep = SceneNode("Hips", parent=deep_parent)
        shallow = SceneNode("HIPS", parent=root)

        self.assertIs(root.find("hips"), shallow)
        self.assertIs(root.find_child("group"), deep_parent)
        self.assertTrue(deep.is_descendant_of(root))
        self.assertIsNone(root.find("missing"))

    def test_components_in_children_are_pre_order(self) -> None:
        from rig_stitch.scene_graph import Component, SceneNode

        root = SceneNode("Root")
        a = SceneNode("A", parent=root)
        b = SceneNode("B", parent=a)
        c = SceneNode("C", parent=root)
        comps = [n.add_component(Component()) for n in (c, b, root)]

        found = root.get_components_in_children(Component)
        self.assertEqual([comp.node.name for comp in found], ["Root", "B", "C"])
        self.assertIs(comps[0].node, c)
        self.assertEqual(len(root.get_components_in_children(Component, include_self=False)), 2)


class TestSkinnedMesh(unittest.TestCase):
    def test_mesh_assignment_tracks_users(self) -> None:
        from rig_stitch.scene_graph import MeshData, SceneNode, SkinnedMesh

        data = MeshData("Shared")
        joint = SceneNode("Joint")
        first = SkinnedMesh(data, [joint])
        self.assertFalse(data.is_shared)
        second = SkinnedMesh(data, [joint])
        self.assertEqual(data.users, 2)
        self.assertTrue(data.is_shared)

        second.mesh = data.copy("Clone")
        self.assertEqual(data.users, 1)
        self.assertEqual(second.mesh.users, 1)
        self.assertIs(first.mesh, data)

    def test_referenced_nodes_skip_empty_slots_and_duplicates(self) -> None:
        from rig_stitch.scene_graph import MeshData, SceneNode, SkinnedMesh

        a = SceneNode("A")
        b = SceneNode("B")
        skin = SkinnedMesh(MeshData("M"), [None, a, b, a], root_joint=a)

        self.assertIs(skin.first_joint(), a)
        self.assertEqual(skin.referenced_nodes(), [a, b])

    def test_bounds_from_points(self) -> None:
        from mathutils import Vector
        from rig_stitch.scene_graph import Bounds

        bounds = Bounds.from_points([Vector((0.0, 0.0, 0.0)), Vector((2.0, 4.0, 0.0))])
        self.assertEqual(tuple(bounds.center), (1.0, 2.0, 0.0))
        self.assertEqual(tuple(bounds.size), (2.0, 4.0, 0.0))
        self.assertIsNone(Bounds.from_points([]))


if __name__ == "__main__":
    unittest.main()

"""Scene graph nodes for rig stitching.

A minimal host-neutral transform hierarchy:
- SceneNode: named node with an ordered child list and a local 4x4 matrix
- Component: data attached to a node (skinned meshes, rig maps, markers)

Matrices are mathutils 4x4 matrices in the column-vector convention
(world = parent_world @ local).  Callers adapt their editor's objects into
this graph, run the actor passes, and read the results back.
"""

from collections import deque
from typing import Iterator, List, Optional

from mathutils import Matrix


class SceneGraphError(ValueError):
    """Raised when a hierarchy edit would leave the graph inconsistent."""


class Component:
    """Base class for data attached to a SceneNode."""

    def __init__(self):
        self.node = None


class SceneNode:
    """A transform node in the scene hierarchy."""

    def __init__(self, name: str, matrix_local: Optional[Matrix] = None,
                 parent: Optional["SceneNode"] = None):
        self.name = name
        self.parent = None
        self.children: List["SceneNode"] = []
        self.components: List[Component] = []
        self.destroyed = False
        self.matrix_local = matrix_local.copy() if matrix_local is not None else Matrix.Identity(4)
        if parent is not None:
            self.set_parent(parent, keep_world=False)

    def __repr__(self):
        return "SceneNode(%r)" % self.name

    # ---- Transforms ----

    @property
    def matrix_world(self) -> Matrix:
        if self.parent is None:
            return self.matrix_local.copy()
        return self.parent.matrix_world @ self.matrix_local

    @matrix_world.setter
    def matrix_world(self, value: Matrix):
        if self.parent is None:
            self.matrix_local = value.copy()
        else:
            self.matrix_local = _inverted(self.parent.matrix_world, self.parent.name) @ value

    @property
    def lossy_scale(self):
        """World-space scale, ignoring any shear."""
        return self.matrix_world.to_scale()

    # ---- Hierarchy ----

    def set_parent(self, parent: Optional["SceneNode"], keep_world: bool = True,
                   index: Optional[int] = None) -> None:
        """Move this node under `parent` (None = make it a root).

        With keep_world the node's world matrix is unchanged and its local
        matrix is recomputed against the new parent.

        Raises:
            SceneGraphError: on cycles, destroyed nodes, or a singular parent
                matrix when keep_world is requested.
        """
        if self.destroyed or (parent is not None and parent.destroyed):
            raise SceneGraphError("cannot reparent destroyed node %r" % self.name)
        if parent is not None and (parent is self or parent.is_descendant_of(self)):
            raise SceneGraphError("reparenting %r under %r would create a cycle"
                                  % (self.name, parent.name))

        world = self.matrix_world if keep_world else None
        if keep_world and parent is not None:
            new_local = _inverted(parent.matrix_world, parent.name) @ world
        else:
            new_local = world

        if self.parent is not None:
            self.parent.children.remove(self)
        self.parent = parent
        if parent is not None:
            if index is None or index >= len(parent.children):
                parent.children.append(self)
            else:
                parent.children.insert(max(index, 0), self)

        if new_local is not None:
            self.matrix_local = new_local

    @property
    def sibling_index(self) -> int:
        if self.parent is None:
            return 0
        return self.parent.children.index(self)

    def set_sibling_index(self, index: int) -> None:
        if self.parent is None:
            return
        siblings = self.parent.children
        siblings.remove(self)
        index = max(0, min(index, len(siblings)))
        siblings.insert(index, self)

    @property
    def depth(self) -> int:
        d = 0
        node = self.parent
        while node is not None:
            d += 1
            node = node.parent
        return d

    @property
    def path(self) -> str:
        """Slash-separated names from the hierarchy root to this node."""
        names = []
        node = self
        while node is not None:
            names.append(node.name)
            node = node.parent
        return "/".join(reversed(names))

    def path_from(self, ancestor: Optional["SceneNode"]) -> str:
        """Slash-separated names below `ancestor` (exclusive) down to this node."""
        names = []
        node = self
        while node is not None and node is not ancestor:
            names.append(node.name)
            node = node.parent
        return "/".join(reversed(names))

    def is_descendant_of(self, other: "SceneNode") -> bool:
        node = self.parent
        while node is not None:
            if node is other:
                return True
            node = node.parent
        return False

    def walk(self, include_self: bool = True) -> Iterator["SceneNode"]:
        """Pre-order depth-first traversal."""
        if include_self:
            yield self
        for child in list(self.children):
            yield from child.walk()

    def walk_breadth_first(self) -> Iterator["SceneNode"]:
        queue = deque([self])
        while queue:
            node = queue.popleft()
            yield node
            queue.extend(node.children)

    def find(self, name: str) -> Optional["SceneNode"]:
        """Breadth-first, case-insensitive name search including self."""
        if not name:
            return None
        wanted = name.lower()
        for node in self.walk_breadth_first():
            if node.name.lower() == wanted:
                return node
        return None

    def find_child(self, name: str) -> Optional["SceneNode"]:
        """Case-insensitive search: direct children first, then recursively."""
        wanted = name.lower()
        for child in self.children:
            if child.name.lower() == wanted:
                return child
        for child in self.children:
            found = child.find_child(name)
            if found is not None:
                return found
        return None

    def destroy(self) -> None:
        """Detach this node and mark its whole subtree as destroyed."""
        if self.parent is not None:
            self.parent.children.remove(self)
            self.parent = None
        for node in self.walk():
            node.destroyed = True

    # ---- Components ----

    def add_component(self, component: Component) -> Component:
        component.node = self
        self.components.append(component)
        return component

    def get_component(self, kind) -> Optional[Component]:
        for comp in self.components:
            if isinstance(comp, kind):
                return comp
        return None

    def get_components_in_children(self, kind, include_self: bool = True) -> List[Component]:
        """All components of `kind` in this subtree, in pre-order."""
        found = []
        for node in self.walk(include_self=include_self):
            for comp in node.components:
                if isinstance(comp, kind):
                    found.append(comp)
        return found


def _inverted(matrix: Matrix, owner: str) -> Matrix:
    try:
        return matrix.inverted()
    except ValueError:
        raise SceneGraphError("world matrix of %r is not invertible" % owner) from None

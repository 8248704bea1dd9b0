"""Host-neutral scene graph: transform nodes, components, skinned meshes."""

from .sg_nodes import Component, SceneGraphError, SceneNode
from .sg_skin import Bounds, MeshData, SkinnedMesh

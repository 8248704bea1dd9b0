"""Detection of physics-simulated joint chains (hair, skirts, tails, ...).

Chain joints must survive a merge untouched: they are never aliased onto a
base joint and never deleted.  Detection uses a PhysicsChainProvider when
one is injected (exact, component based); otherwise the graph's own
PhysicsChain components are collected and joint names are matched against
a list of physics terms (false positives are acceptable, a missed chain is
not).
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Set

from ..scene_graph.sg_nodes import Component, SceneNode
from .joint_names import JointNameDatabase

_log = logging.getLogger("rig_stitch.chains")


class PhysicsChain(Component):
    """Simulation settings attached to a node.

    Args:
        root_node: First joint of the simulated chain.  None means the node
                   carrying the component.
        colliders: Collider nodes referenced by the simulation.
        ignored: Joints excluded from simulation (still part of the chain
                 hierarchy, so still preserved).
    """

    def __init__(self, root_node: Optional[SceneNode] = None,
                 colliders: Optional[List[SceneNode]] = None,
                 ignored: Optional[List[SceneNode]] = None):
        super().__init__()
        self.root_node = root_node
        self.colliders = list(colliders or [])
        self.ignored = list(ignored or [])


class PhysicsChainProvider:
    """Access to a dynamic-simulation system's chain definitions."""

    def chains_under(self, root: SceneNode) -> List:
        """All chain definitions in the subtree of `root`."""
        raise NotImplementedError

    def chain_root(self, chain) -> Optional[SceneNode]:
        """First joint simulated by `chain`."""
        raise NotImplementedError

    def chain_colliders(self, chain) -> List[SceneNode]:
        return []

    def owns(self, node: SceneNode) -> bool:
        """True when `node` itself carries a chain definition."""
        raise NotImplementedError


class ComponentChainProvider(PhysicsChainProvider):
    """Provider over PhysicsChain components in the scene graph."""

    def __init__(self, component_type=PhysicsChain):
        self.component_type = component_type

    def chains_under(self, root):
        return root.get_components_in_children(self.component_type)

    def chain_root(self, chain):
        return chain.root_node if chain.root_node is not None else chain.node

    def chain_colliders(self, chain):
        return [c for c in chain.colliders if c is not None]

    def owns(self, node):
        return node.get_component(self.component_type) is not None


@dataclass
class ChainInfo:
    """Summary of the chains found under a root."""
    provider_available: bool = False
    chain_count: int = 0
    affected_joints: int = 0

    def __str__(self):
        if not self.provider_available:
            return "Physics provider unavailable (name heuristic)"
        return "Physics chains: %d definitions, %d joints affected" % (
            self.chain_count, self.affected_joints)


_GRAPH_CHAINS = ComponentChainProvider()


def _collect_subtree(node: SceneNode, result: Set[SceneNode]) -> None:
    for n in node.walk():
        result.add(n)


def _collect_provider_chains(provider: PhysicsChainProvider, root: SceneNode,
                             result: Set[SceneNode]) -> None:
    for chain in provider.chains_under(root):
        chain_root = provider.chain_root(chain)
        if chain_root is None:
            continue
        _collect_subtree(chain_root, result)
        for collider in provider.chain_colliders(chain):
            result.add(collider)
        _log.debug("Chain at %r (%d joints)", chain_root.name,
                   sum(1 for _ in chain_root.walk()))


class DynamicChainDetector:
    """Finds the set of joints that belong to simulated chains.

    Args:
        provider: Optional PhysicsChainProvider, resolved once here.  Without
                  one, detection falls back to joint names.
        config: PhysicsConfig; defaults are used when None.
        names: JointNameDatabase used to keep canonical body joints out of
               the name heuristic ("LeftForeArm" contains "ear").
    """

    def __init__(self, provider: Optional[PhysicsChainProvider] = None, config=None,
                 names: Optional[JointNameDatabase] = None):
        if config is None:
            from ..settings import PhysicsConfig
            config = PhysicsConfig()
        self.provider = provider
        self.config = config
        self.names = names if names is not None else JointNameDatabase()
        if provider is None:
            _log.debug("No physics provider; chains are detected by joint name")

    @property
    def provider_available(self) -> bool:
        return self.provider is not None

    def detect_chains(self, root: Optional[SceneNode]) -> Set[SceneNode]:
        """All chain joints under `root`, each chain with its full subtree."""
        chains: Set[SceneNode] = set()
        if root is None:
            return chains

        if self.provider is None:
            return self._detect_by_name(root)

        _collect_provider_chains(self.provider, root, chains)
        _log.info("Physics chain joints under %r: %d", root.name, len(chains))
        return chains

    def _detect_by_name(self, root: SceneNode) -> Set[SceneNode]:
        chains: Set[SceneNode] = set()
        # Chains marked in the graph itself count whatever their names.
        _collect_provider_chains(_GRAPH_CHAINS, root, chains)
        for node in root.walk(include_self=False):
            if node in chains:
                continue
            # The attachment root and mesh nodes are named after the asset
            # ("Dress"), not after a simulated joint.
            if node.components and node.get_component(PhysicsChain) is None:
                continue
            if self.is_chain_name(node.name):
                _collect_subtree(node, chains)
        if chains:
            _log.info("Physics chain joints under %r by name: %d", root.name, len(chains))
        return chains

    def is_chain_name(self, name: str) -> bool:
        """Name heuristic: contains a physics term and is not a body joint."""
        if not name or self.names.is_known(name):
            return False
        lower = name.lower()
        return any(term in lower for term in self.config.name_terms)

    def is_chain_member(self, node: Optional[SceneNode],
                        chains: Optional[Iterable[SceneNode]] = None) -> bool:
        """True when `node` or one of its ancestors belongs to a chain.

        With `chains` (a result of detect_chains) membership is looked up in
        that set; otherwise the provider (or the graph's PhysicsChain
        components and the name heuristic) is queried.
        """
        if node is None:
            return False
        if chains is not None:
            chain_set = chains if isinstance(chains, (set, frozenset)) else set(chains)
            current = node
            while current is not None:
                if current in chain_set:
                    return True
                current = current.parent
            return False

        current = node
        while current is not None:
            if self.provider is not None:
                if self.provider.owns(current):
                    return True
            elif _GRAPH_CHAINS.owns(current) or self.is_chain_name(current.name):
                return True
            current = current.parent
        return False

    def chain_info(self, root: Optional[SceneNode]) -> ChainInfo:
        info = ChainInfo(provider_available=self.provider is not None)
        if root is None or self.provider is None:
            return info
        chains = self.provider.chains_under(root)
        info.chain_count = len(chains)
        for chain in chains:
            chain_root = self.provider.chain_root(chain)
            if chain_root is not None:
                info.affected_joints += sum(1 for _ in chain_root.walk())
        return info

"""
Lineage Resolver.

Pure computations over a snapshot of the version graph. Nodes are held in an
arena keyed by id; parent/child relations are id references resolved at read
time. Nothing here touches the database.

Ordering rules:
- "Latest" is decided by recency: ``metadata.created_at``, ties broken by
  ``version_number`` and then ``id`` so exactly one node per lineage wins.
- Tree children are ordered by ``version_number``.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from .enums import VersionStatus, VersionType
from .errors import CyclicLineageDetected, InvalidParent, NotFound, VersionGraphError
from .primitives import VERSION_STEP, ensure_utc, quantize_version
from .version import VersionNode

DEFAULT_BRANCH_NAME = "main"

NodeRef = Union[VersionNode, str]


def recency_key(node: VersionNode) -> Tuple[datetime, Decimal, str]:
    """Sort key deciding which node is the most recent."""
    return (ensure_utc(node.metadata.created_at), node.version_number, node.id)


def is_latest(node: VersionNode, siblings: Sequence[VersionNode]) -> bool:
    """True iff no other node in ``siblings`` is more recent than ``node``."""
    key = recency_key(node)
    return all(recency_key(other) < key for other in siblings if other.id != node.id)


def next_version_number(
    version_type: VersionType,
    parent: Optional[VersionNode],
    lineage: Iterable[VersionNode],
) -> Decimal:
    """Number for a new node in ``lineage``.

    ``original`` starts at 1.0. ``branch`` takes the next integer above the
    lineage maximum. ``revision`` and ``merge`` take ``parent + 0.1``,
    stepping past numbers already used in the lineage.
    """
    if version_type is VersionType.ORIGINAL or parent is None:
        return quantize_version(1)

    taken = {quantize_version(node.version_number) for node in lineage}
    taken.add(quantize_version(parent.version_number))

    if version_type is VersionType.BRANCH:
        highest = max(taken)
        return quantize_version(int(highest) + 1)

    candidate = quantize_version(parent.version_number + VERSION_STEP)
    while candidate in taken:
        candidate = quantize_version(candidate + VERSION_STEP)
    return candidate


class VersionTreeNode(BaseModel):
    """A node of a rendered lineage tree."""

    model_config = ConfigDict(extra="forbid")

    version: VersionNode
    depth: int = Field(..., ge=0)
    children: List["VersionTreeNode"] = Field(default_factory=list)


VersionTreeNode.model_rebuild()


class BranchSummary(BaseModel):
    """Members and head of one named branch inside a lineage."""

    model_config = ConfigDict(extra="forbid")

    name: str
    root_version_id: str
    head_version_id: str
    version_ids: List[str]
    created_at: datetime
    is_active: bool


class VersionTree(BaseModel):
    """A whole lineage rendered as a tree."""

    model_config = ConfigDict(extra="forbid")

    root_version: VersionNode
    tree: VersionTreeNode
    branches: List[BranchSummary]
    total_versions: int
    max_depth: int


class LineageIssue(BaseModel):
    """A structural problem found while validating a snapshot."""

    model_config = ConfigDict(extra="forbid")

    version_id: str
    kind: str
    detail: str


class LineageIndex:
    """Id-indexed snapshot of version nodes with lineage queries."""

    def __init__(self, nodes: Iterable[VersionNode]):
        self._nodes: Dict[str, VersionNode] = {}
        for node in nodes:
            self._nodes[node.id] = node

        self._children: Dict[str, List[str]] = defaultdict(list)
        for node_id in sorted(self._nodes):
            parent_id = self._nodes[node_id].parent_version_id
            if parent_id is not None:
                self._children[parent_id].append(node_id)

        self._root_cache: Dict[str, str] = {}
        self._lineages: Optional[Dict[str, List[VersionNode]]] = None
        self._corrupt: Dict[str, VersionGraphError] = {}

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, version_id: object) -> bool:
        return version_id in self._nodes

    @property
    def nodes(self) -> List[VersionNode]:
        return [self._nodes[node_id] for node_id in sorted(self._nodes)]

    def get(self, version_id: str) -> Optional[VersionNode]:
        return self._nodes.get(version_id)

    def require(self, version_id: str) -> VersionNode:
        node = self._nodes.get(version_id)
        if node is None:
            raise NotFound("Version", version_id)
        return node

    def _node(self, ref: NodeRef) -> VersionNode:
        return self.require(ref) if isinstance(ref, str) else ref

    # ------------------------------------------------------------------
    # Root resolution
    # ------------------------------------------------------------------

    def resolve_root(self, ref: NodeRef) -> VersionNode:
        """Follow parent links to the lineage root.

        Traversal is capped at the snapshot size. Raises
        ``CyclicLineageDetected`` when a node is revisited and ``InvalidParent``
        when a parent id is not in the snapshot.
        """
        node = self._node(ref)
        cached = self._root_cache.get(node.id)
        if cached is not None:
            return self._nodes[cached]

        path = [node.id]
        seen = {node.id}
        current = node
        root: Optional[VersionNode] = None

        for _ in range(len(self._nodes) + 1):
            parent_id = current.parent_version_id
            if parent_id is None:
                root = current
                break
            if parent_id in seen:
                raise CyclicLineageDetected(node.id, path + [parent_id])
            parent = self._nodes.get(parent_id)
            if parent is None:
                raise InvalidParent(
                    parent_id, f"referenced by {current.id} but absent from the graph"
                )
            cached = self._root_cache.get(parent_id)
            if cached is not None:
                root = self._nodes[cached]
                break
            seen.add(parent_id)
            path.append(parent_id)
            current = parent

        if root is None:
            raise CyclicLineageDetected(node.id, path)

        for visited in path:
            if visited in self._nodes:
                self._root_cache[visited] = root.id
        return root

    def lineages(self) -> Dict[str, List[VersionNode]]:
        """Group resolvable nodes by computed root id.

        Nodes whose root cannot be resolved are left out and recorded in
        ``corrupt``.
        """
        if self._lineages is None:
            groups: Dict[str, List[VersionNode]] = defaultdict(list)
            for node in self.nodes:
                try:
                    root = self.resolve_root(node)
                except (CyclicLineageDetected, InvalidParent) as exc:
                    self._corrupt[node.id] = exc
                    continue
                groups[root.id].append(node)
            self._lineages = dict(groups)
        return self._lineages

    @property
    def corrupt(self) -> Dict[str, VersionGraphError]:
        self.lineages()
        return dict(self._corrupt)

    def siblings_of_root(self, root_id: str) -> List[VersionNode]:
        """All nodes whose resolved root is ``root_id``."""
        return list(self.lineages().get(root_id, []))

    def lineage_of(self, ref: NodeRef) -> List[VersionNode]:
        return self.siblings_of_root(self.resolve_root(ref).id)

    def total_versions(self, root_id: str) -> int:
        return len(self.siblings_of_root(root_id))

    # ------------------------------------------------------------------
    # Derived facts
    # ------------------------------------------------------------------

    def latest_in_lineage(self, ref: NodeRef) -> VersionNode:
        node = self._node(ref)
        return max(self.lineage_of(node) or [node], key=recency_key)

    def is_latest(self, ref: NodeRef) -> bool:
        node = self._node(ref)
        return is_latest(node, self.lineage_of(node))

    def children_of(self, ref: NodeRef) -> List[VersionNode]:
        node = self._node(ref)
        children = [self._nodes[child_id] for child_id in self._children.get(node.id, [])]
        return sorted(children, key=lambda child: (child.version_number, recency_key(child)))

    def sibling_count(self, ref: NodeRef) -> int:
        """Other nodes sharing this node's parent. Roots have no siblings."""
        node = self._node(ref)
        if node.parent_version_id is None:
            return 0
        return len(self._children.get(node.parent_version_id, [])) - 1

    def descendant_count(self, ref: NodeRef) -> int:
        node = self._node(ref)
        seen = {node.id}
        stack = list(self._children.get(node.id, []))
        count = 0
        while stack:
            child_id = stack.pop()
            if child_id in seen:
                continue
            seen.add(child_id)
            count += 1
            stack.extend(self._children.get(child_id, []))
        return count

    def branches(self, root_id: str) -> List[BranchSummary]:
        """Summaries of the named branches of a lineage.

        Nodes without a branch name belong to the default branch.
        """
        members: Dict[str, List[VersionNode]] = defaultdict(list)
        for node in self.siblings_of_root(root_id):
            members[node.branch_name or DEFAULT_BRANCH_NAME].append(node)

        summaries = []
        for name in sorted(members):
            nodes = sorted(members[name], key=lambda n: (n.version_number, n.id))
            head = max(nodes, key=recency_key)
            summaries.append(
                BranchSummary(
                    name=name,
                    root_version_id=root_id,
                    head_version_id=head.id,
                    version_ids=[n.id for n in nodes],
                    created_at=min(ensure_utc(n.metadata.created_at) for n in nodes),
                    is_active=head.status is VersionStatus.ACTIVE,
                )
            )
        return summaries

    def build_tree(self, root_id: str) -> VersionTree:
        """Render the lineage rooted at ``root_id`` as a nested tree."""
        root = self.require(root_id)
        if root.parent_version_id is not None:
            raise InvalidParent(root_id, "not a lineage root")
        members = {node.id for node in self.siblings_of_root(root_id)}

        max_depth = 0

        def build(node: VersionNode, depth: int) -> VersionTreeNode:
            nonlocal max_depth
            max_depth = max(max_depth, depth)
            children = [
                build(child, depth + 1)
                for child in self.children_of(node)
                if child.id in members
            ]
            return VersionTreeNode(version=node, depth=depth, children=children)

        tree = build(root, 0)
        return VersionTree(
            root_version=root,
            tree=tree,
            branches=self.branches(root_id),
            total_versions=len(members),
            max_depth=max_depth,
        )

    def validate(self) -> List[LineageIssue]:
        """Report structural problems in the snapshot."""
        issues: List[LineageIssue] = []
        for node in self.nodes:
            try:
                root = self.resolve_root(node)
            except CyclicLineageDetected as exc:
                issues.append(LineageIssue(version_id=node.id, kind="cycle", detail=exc.message))
                continue
            except InvalidParent as exc:
                issues.append(
                    LineageIssue(version_id=node.id, kind="dangling_parent", detail=exc.message)
                )
                continue

            if node.root_version_id != root.id:
                issues.append(
                    LineageIssue(
                        version_id=node.id,
                        kind="root_mismatch",
                        detail=f"stored root {node.root_version_id}, computed root {root.id}",
                    )
                )
            parent = self._nodes.get(node.parent_version_id) if node.parent_version_id else None
            if parent is not None and node.version_number <= parent.version_number:
                issues.append(
                    LineageIssue(
                        version_id=node.id,
                        kind="non_monotonic",
                        detail=(
                            f"version {node.version_number} not greater than parent "
                            f"{parent.version_number}"
                        ),
                    )
                )
        return issues

from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional

from engine.config import get_settings
from engine.domain import Anomaly, Category, CycleDetected, OrphanedReference
from engine.functional import Maybe, Nothing, Some
from engine.log import get_logger

log = get_logger(__name__)


@dataclass
class CategoryNode:
    category: Category
    children: list['CategoryNode'] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.category.id

    def walk(self) -> Iterator['CategoryNode']:
        yield self
        for child in self.children:
            yield from child.walk()


class CategoryTree:
    """Read-only forest of one user's categories.

    Rebuilt wholesale from the flat record set on every recompute. Parent ids
    that point outside the set make the category a root; categories caught in
    a parent loop are detached and treat themselves as roots. Both cases are
    recorded in ``anomalies`` instead of raising.
    """

    def __init__(
        self,
        nodes: dict[str, CategoryNode],
        roots: list[CategoryNode],
        parents: dict[str, str],
        root_ids: dict[str, str],
        anomalies: tuple[Anomaly, ...],
    ):
        self._nodes = nodes
        self._roots = roots
        self._parents = parents
        self._root_ids = root_ids
        self.anomalies = anomalies

    @classmethod
    def build(cls, categories: Iterable[Category], max_depth: Optional[int] = None) -> 'CategoryTree':
        max_depth = max_depth or get_settings().max_tree_depth
        anomalies: list[Anomaly] = []

        nodes: dict[str, CategoryNode] = {}
        for c in categories:
            if c.id in nodes:
                log.warning("duplicate_category_id", category_id=c.id)
            nodes[c.id] = CategoryNode(c)

        parents: dict[str, str] = {}
        for cid, node in nodes.items():
            pid = node.category.parent_id
            if pid is None:
                continue
            if pid in nodes:
                parents[cid] = pid
            else:
                anomalies.append(OrphanedReference(source_id=cid, missing_id=pid))

        detached = _detach_cycles(nodes, parents, max_depth, anomalies)
        for cid in detached:
            parents.pop(cid, None)

        roots: list[CategoryNode] = []
        for cid, node in nodes.items():
            pid = parents.get(cid)
            if pid is None:
                roots.append(node)
            else:
                nodes[pid].children.append(node)

        root_ids: dict[str, str] = {}
        for root in roots:
            for node in root.walk():
                root_ids[node.id] = root.id

        for a in anomalies:
            log.warning(a.kind, detail=a.message)
        return cls(nodes, roots, parents, root_ids, tuple(anomalies))

    def __contains__(self, category_id) -> bool:
        return category_id in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    @property
    def roots(self) -> tuple[CategoryNode, ...]:
        return tuple(self._roots)

    def node(self, category_id: str) -> CategoryNode:
        return self._nodes[category_id]

    def find(self, category_id: Optional[str]) -> Maybe[Category]:
        node = self._nodes.get(category_id) if category_id is not None else None
        return Some(node.category) if node is not None else Nothing()

    def parent_of(self, category_id: str) -> Optional[Category]:
        pid = self._parents.get(category_id)
        return self._nodes[pid].category if pid is not None else None

    def root_of(self, category_id: str) -> Category:
        """Root ancestor of a category; a parentless category is its own root.

        Raises KeyError for ids that are not in the tree.
        """
        return self._nodes[self._root_ids[category_id]].category

    def children_of(self, category_id: str) -> tuple[Category, ...]:
        return tuple(child.category for child in self._nodes[category_id].children)


def _detach_cycles(
    nodes: dict[str, CategoryNode],
    parents: dict[str, str],
    max_depth: int,
    anomalies: list[Anomaly],
) -> set[str]:
    detached: set[str] = set()
    for start in nodes:
        path: list[str] = []
        seen: dict[str, int] = {}
        cur: Optional[str] = start
        while cur is not None and cur not in detached:
            if cur in seen:
                loop = tuple(path[seen[cur]:])
                detached.update(loop)
                anomalies.append(CycleDetected(category_ids=loop + (cur,)))
                break
            if len(path) >= max_depth:
                detached.add(start)
                anomalies.append(CycleDetected(category_ids=tuple(path)))
                break
            seen[cur] = len(path)
            path.append(cur)
            cur = parents.get(cur)
    return detached

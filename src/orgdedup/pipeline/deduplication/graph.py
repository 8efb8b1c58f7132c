"""Union-find clustering of matched organisation records."""

from __future__ import annotations

from typing import Dict, Iterable, List, Sequence

from orgdedup.entities.core import Organisation

from .similarity import MatchResult


class UnionFind:
    """Disjoint-set forest over record positions with path compression and union by rank."""

    def __init__(self, size: int) -> None:
        self._parent: List[int] = list(range(size))
        self._rank: List[int] = [0] * size

    def __len__(self) -> int:
        return len(self._parent)

    def find(self, item: int) -> int:
        root = item
        while self._parent[root] != root:
            root = self._parent[root]
        while self._parent[item] != root:
            self._parent[item], item = root, self._parent[item]
        return root

    def union(self, a: int, b: int) -> bool:
        """Merge the sets holding ``a`` and ``b``; return ``False`` if already joined."""

        root_a = self.find(a)
        root_b = self.find(b)
        if root_a == root_b:
            return False
        rank_a = self._rank[root_a]
        rank_b = self._rank[root_b]
        if rank_a < rank_b:
            self._parent[root_a] = root_b
        elif rank_a > rank_b:
            self._parent[root_b] = root_a
        else:
            self._parent[root_b] = root_a
            self._rank[root_a] += 1
        return True

    def components(self) -> List[List[int]]:
        """Groups of positions, ordered by their smallest member."""

        groups: Dict[int, List[int]] = {}
        for index in range(len(self._parent)):
            groups.setdefault(self.find(index), []).append(index)
        return list(groups.values())


class ClusterBuilder:
    """Group records into clusters of transitively matching members."""

    def __init__(self) -> None:
        self._records = 0
        self._unions = 0
        self._clusters: List[List[Organisation]] = []

    def build(
        self,
        records: Sequence[Organisation],
        matches: Iterable[MatchResult],
    ) -> List[List[Organisation]]:
        positions = {record.id: index for index, record in enumerate(records)}
        forest = UnionFind(len(records))
        unions = 0
        for match in matches:
            try:
                left = positions[match.left_id]
                right = positions[match.right_id]
            except KeyError as exc:
                raise ValueError(f"Match references unknown record id {exc.args[0]!r}") from exc
            if forest.union(left, right):
                unions += 1

        clusters = [[records[index] for index in group] for group in forest.components()]
        self._records = len(records)
        self._unions = unions
        self._clusters = clusters
        return clusters

    def stats(self) -> Dict[str, int]:
        largest = max((len(cluster) for cluster in self._clusters), default=0)
        return {
            "records": self._records,
            "unions": self._unions,
            "clusters": len(self._clusters),
            "largest_cluster": largest,
        }


__all__ = ["ClusterBuilder", "UnionFind"]

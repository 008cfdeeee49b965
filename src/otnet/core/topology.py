"""Transport network topology.

A topology is a set of J nodes joined by E undirected edges, plus the
assignment of every node to one of R regions. Each edge has a canonical
orientation from its lower-indexed endpoint to its higher-indexed one;
flows along that orientation are "direct", flows against it "indirect".
"""

from __future__ import annotations

from typing import Any

import numpy as np
from pydantic import BaseModel, Field, PrivateAttr, field_validator, model_validator


class Topology(BaseModel):
    """Undirected transport graph with region membership.

    Edges are stored in canonical order: pairs ``(i, k)`` with ``i < k``,
    sorted lexicographically. Per-edge vectors (capacities, flows) are
    aligned with that order.

    Attributes:
        n_nodes: Number of locations J
        edges: Canonical edge list
        region: Region index (0..R-1) of every node
        coordinates: Optional (J, 2) node coordinates

    Example:
        >>> graph = Topology.line(3)
        >>> graph.edges
        ((0, 1), (1, 2))
        >>> graph.incidence
        array([[ 1.,  0.],
               [-1.,  1.],
               [ 0., -1.]])
    """

    n_nodes: int = Field(..., ge=1, description="Number of nodes J")
    edges: tuple[tuple[int, int], ...] = Field(
        default_factory=tuple, description="Canonical undirected edges (i < k)"
    )
    region: np.ndarray | None = Field(default=None, description="Region index per node")
    coordinates: np.ndarray | None = Field(default=None, description="Node coordinates")

    model_config = {"arbitrary_types_allowed": True, "frozen": True}

    _origin: np.ndarray = PrivateAttr()
    _destination: np.ndarray = PrivateAttr()

    @field_validator("region", "coordinates", mode="before")
    @classmethod
    def coerce_array(cls, v: Any) -> np.ndarray | None:
        """Accept lists and tuples for array fields."""
        if v is None:
            return None
        return np.array(v)

    @field_validator("edges", mode="before")
    @classmethod
    def canonicalize_edges(cls, v: Any) -> tuple[tuple[int, int], ...]:
        """Orient every edge from low to high index and sort."""
        if v is None:
            return ()
        canonical = set()
        for edge in v:
            i, k = (int(e) for e in edge)
            if i == k:
                raise ValueError(f"Self loop on node {i} is not a valid edge")
            pair = (min(i, k), max(i, k))
            if pair in canonical:
                raise ValueError(f"Duplicate edge {pair}")
            canonical.add(pair)
        return tuple(sorted(canonical))

    @model_validator(mode="after")
    def validate_structure(self) -> Topology:
        """Check node indices and region assignment."""
        for i, k in self.edges:
            if i < 0 or k >= self.n_nodes:
                raise ValueError(f"Edge ({i}, {k}) references node outside 0..{self.n_nodes - 1}")

        if self.region is None:
            region = np.zeros(self.n_nodes, dtype=int)
        else:
            region = np.asarray(self.region)
            if region.shape != (self.n_nodes,):
                raise ValueError(
                    f"Region vector has shape {region.shape}, expected ({self.n_nodes},)"
                )
            if not np.all(np.equal(np.mod(region, 1), 0)):
                raise ValueError("Region indices must be integers")
            region = region.astype(int)
            if region.min() < 0:
                raise ValueError("Region indices must be non-negative")
            missing = set(range(int(region.max()) + 1)) - set(region.tolist())
            if missing:
                raise ValueError(f"Regions without nodes: {sorted(missing)}")
        region.setflags(write=False)
        object.__setattr__(self, "region", region)

        if self.coordinates is not None:
            coords = np.asarray(self.coordinates, dtype=float)
            if coords.shape != (self.n_nodes, 2):
                raise ValueError(f"Coordinates must have shape ({self.n_nodes}, 2)")
            coords.setflags(write=False)
            object.__setattr__(self, "coordinates", coords)
        return self

    def model_post_init(self, __context: Any) -> None:
        """Cache edge endpoint arrays."""
        pairs = np.array(self.edges, dtype=int).reshape(-1, 2)
        self._origin = pairs[:, 0].copy()
        self._destination = pairs[:, 1].copy()
        self._origin.setflags(write=False)
        self._destination.setflags(write=False)

    @property
    def n_edges(self) -> int:
        """Number of undirected edges E."""
        return len(self.edges)

    @property
    def n_regions(self) -> int:
        """Number of regions R."""
        return int(self.region.max()) + 1

    @property
    def origin(self) -> np.ndarray:
        """Node at which each edge's canonical orientation starts."""
        return self._origin

    @property
    def destination(self) -> np.ndarray:
        """Node at which each edge's canonical orientation ends."""
        return self._destination

    @property
    def incidence(self) -> np.ndarray:
        """Oriented incidence matrix A (J x E): +1 at origin, -1 at destination."""
        A = np.zeros((self.n_nodes, self.n_edges))
        cols = np.arange(self.n_edges)
        A[self._origin, cols] = 1.0
        A[self._destination, cols] = -1.0
        return A

    @property
    def incidence_pos(self) -> np.ndarray:
        """Positive part of the incidence matrix, max(A, 0)."""
        return np.maximum(self.incidence, 0.0)

    @property
    def incidence_neg(self) -> np.ndarray:
        """Negative part of the incidence matrix, max(-A, 0)."""
        return np.maximum(-self.incidence, 0.0)

    @property
    def location(self) -> np.ndarray:
        """Region membership matrix (R x J), 1 where node j is in region r."""
        return (self.region[None, :] == np.arange(self.n_regions)[:, None]).astype(float)

    def neighbors(self, node: int) -> list[int]:
        """Nodes sharing an edge with ``node``, in increasing order."""
        out = [k for i, k in self.edges if i == node]
        out += [i for i, k in self.edges if k == node]
        return sorted(out)

    def edge_values(self, matrix: np.ndarray) -> np.ndarray:
        """Extract per-edge values from a symmetric J x J matrix.

        Args:
            matrix: Node-pair matrix, e.g. transport efficiency kappa

        Returns:
            Length-E vector aligned with ``edges``
        """
        matrix = np.asarray(matrix, dtype=float)
        if matrix.shape != (self.n_nodes, self.n_nodes):
            raise ValueError(
                f"Edge matrix has shape {matrix.shape}, expected ({self.n_nodes}, {self.n_nodes})"
            )
        return matrix[self._origin, self._destination].copy()

    @classmethod
    def from_adjacency(
        cls,
        adjacency: np.ndarray,
        region: np.ndarray | list[int] | None = None,
        coordinates: np.ndarray | None = None,
    ) -> Topology:
        """Build a topology from a symmetric 0/1 adjacency matrix."""
        adjacency = np.asarray(adjacency)
        if adjacency.ndim != 2 or adjacency.shape[0] != adjacency.shape[1]:
            raise ValueError("Adjacency matrix must be square")
        if not np.array_equal(adjacency != 0, (adjacency != 0).T):
            raise ValueError("Adjacency matrix must be symmetric")
        rows, cols = np.nonzero(np.triu(adjacency, k=1))
        edges = list(zip(rows.tolist(), cols.tolist()))
        return cls(
            n_nodes=adjacency.shape[0],
            edges=edges,
            region=None if region is None else np.asarray(region),
            coordinates=coordinates,
        )

    @classmethod
    def line(cls, n_nodes: int, region: np.ndarray | list[int] | None = None) -> Topology:
        """Nodes 0..J-1 on a line, each linked to its successor."""
        edges = [(j, j + 1) for j in range(n_nodes - 1)]
        coords = np.column_stack([np.arange(n_nodes, dtype=float), np.zeros(n_nodes)])
        return cls(
            n_nodes=n_nodes,
            edges=edges,
            region=None if region is None else np.asarray(region),
            coordinates=coords,
        )

    @classmethod
    def square(
        cls,
        width: int,
        height: int,
        region: np.ndarray | list[int] | None = None,
    ) -> Topology:
        """Rectangular grid with 4-neighbour links, nodes numbered row by row."""
        edges = []
        coords = []
        for y in range(height):
            for x in range(width):
                j = y * width + x
                coords.append((float(x), float(y)))
                if x + 1 < width:
                    edges.append((j, j + 1))
                if y + 1 < height:
                    edges.append((j, j + width))
        return cls(
            n_nodes=width * height,
            edges=edges,
            region=None if region is None else np.asarray(region),
            coordinates=np.array(coords),
        )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"Topology(J={self.n_nodes}, E={self.n_edges}, R={self.n_regions})"
        )

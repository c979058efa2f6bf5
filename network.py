"""Social network topologies for network-structured copying."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Tuple

import networkx as nx
import numpy as np

from model import ConfigError

TOPOLOGIES = ("complete", "random", "small_world", "scale_free", "lattice")


@dataclass
class NetworkMetrics:
    clustering: float
    avg_path_len: float
    degree_mean: float
    degree_std: float


def build_social_graph(
    topology: str,
    n: int,
    rng: np.random.Generator,
    params: Dict[str, float] | None = None,
) -> nx.Graph:
    """Graph on nodes 0..n-1. ``params`` may carry ``k`` (mean degree) and ``p_rewire``."""
    if topology not in TOPOLOGIES:
        raise ConfigError("topology", f"must be one of {', '.join(TOPOLOGIES)}, got {topology!r}")
    params = params or {}
    k = int(params.get("k", 4))
    p_rewire = float(params.get("p_rewire", 0.1))
    seed = int(rng.integers(0, 2**31))
    if topology == "complete" or n < 4:
        return nx.complete_graph(n)
    k = min(max(2, k), n - 1)
    if topology == "random":
        return nx.gnp_random_graph(n, k / (n - 1), seed=seed)
    if topology == "small_world":
        return nx.watts_strogatz_graph(n, k, p_rewire, seed=seed)
    if topology == "scale_free":
        return nx.barabasi_albert_graph(n, max(1, k // 2), seed=seed)
    return nx.watts_strogatz_graph(n, k, 0.0, seed=seed)


def neighbor_table(graph: nx.Graph, n: int) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Adjacency as (offsets, neighbors, degree) arrays, nodes in index order."""
    degree = np.zeros(n, dtype=int)
    flat: List[int] = []
    for node in range(n):
        nbrs = sorted(graph.neighbors(node))
        degree[node] = len(nbrs)
        flat.extend(nbrs)
    offsets = np.concatenate(([0], np.cumsum(degree)[:-1])).astype(int)
    return offsets, np.array(flat, dtype=int), degree


def edge_array(graph: nx.Graph) -> np.ndarray:
    edges = np.array(sorted(graph.edges()), dtype=int)
    return edges.reshape(-1, 2)


def compute_network_metrics(graph: nx.Graph) -> NetworkMetrics:
    if graph.number_of_nodes() == 0:
        return NetworkMetrics(0.0, 0.0, 0.0, 0.0)
    degrees = np.array([d for _, d in graph.degree()], dtype=float)
    largest = graph.subgraph(max(nx.connected_components(graph), key=len))
    path_len = nx.average_shortest_path_length(largest) if largest.number_of_nodes() > 1 else 0.0
    return NetworkMetrics(
        clustering=float(nx.average_clustering(graph)),
        avg_path_len=float(path_len),
        degree_mean=float(degrees.mean()),
        degree_std=float(degrees.std()),
    )

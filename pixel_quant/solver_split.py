"""Principal-axis splitting of colour clusters."""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass
class Cluster:
    """A group of histogram entries and its weighted statistics."""

    members: np.ndarray  # indices into the histogram arrays
    weight: float
    mean: np.ndarray  # (4,) perceptual centroid
    sse: float  # weighted sum of squared distances to the mean

    @classmethod
    def of(cls, members: np.ndarray, vectors: np.ndarray, weights: np.ndarray) -> Cluster:
        v = vectors[members]
        w = weights[members]
        weight = float(w.sum())
        mean = (v * w[:, np.newaxis]).sum(axis=0) / weight
        sse = float(np.dot(w, np.sum((v - mean) ** 2, axis=1)))
        return cls(members=members, weight=weight, mean=mean, sse=max(sse, 0.0))


def split_cluster(
    cluster: Cluster,
    vectors: np.ndarray,
    weights: np.ndarray,
    keys: np.ndarray,
) -> tuple[Cluster, Cluster]:
    """Cut *cluster* in two across its principal axis.

    Members are ordered by their projection on the axis of largest weighted
    variance, with the packed RGBA key breaking ties, and cut where the
    summed 1-D squared error of the two halves is smallest. Both halves are
    non-empty when the cluster has at least two members.

    Args:
        cluster: Cluster to divide.
        vectors: (N, 4) perceptual colours of the whole histogram.
        weights: (N,) importance weights.
        keys:    (N,) uint32 packed RGBA, used only for tie-breaking.
    """
    members = cluster.members
    w = weights[members]
    centered = vectors[members] - cluster.mean

    cov = (centered * w[:, np.newaxis]).T @ centered / cluster.weight
    _, eigvecs = np.linalg.eigh(cov)
    proj = centered @ eigvecs[:, -1]

    order = np.lexsort((keys[members], proj))
    p = proj[order]
    ws = w[order]

    # Best cut of the sorted projections minimizes the summed 1-D variance.
    cw = np.cumsum(ws)
    cwp = np.cumsum(ws * p)
    cwp2 = np.cumsum(ws * p * p)
    lw, lsum, lsq = cw[:-1], cwp[:-1], cwp2[:-1]
    rw, rsum, rsq = cw[-1] - lw, cwp[-1] - lsum, cwp2[-1] - lsq
    with np.errstate(divide="ignore", invalid="ignore"):
        cost = (lsq - lsum ** 2 / lw) + (rsq - rsum ** 2 / rw)
    cost = np.where(np.isfinite(cost), cost, np.inf)
    cut = int(np.argmin(cost)) + 1

    ordered = members[order]
    return (
        Cluster.of(ordered[:cut], vectors, weights),
        Cluster.of(ordered[cut:], vectors, weights),
    )

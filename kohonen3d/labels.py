"""
Post-training label assignment for SOM neurons.

Labels are inferred in two passes over a labeled dataset:

1. Vote collection: every sample writes its label onto its BMU and bumps the
   BMU's vote count. Only the count accumulates; the label field keeps
   whichever sample reached the neuron last.
2. Conflict resolution: every voted neuron is relabeled with the most common
   label among the labeled neurons in its immediate neighborhood (itself and
   its face-adjacent neighbors). Ties go to the label seen first in scan order.
"""
from collections import Counter
from dataclasses import dataclass
from itertools import product

import torch

from .dataset import Dataset
from .errors import DimensionMismatch
from .kernels import find_bmu
from .log import get_logger
from .som import SOM

UNLABELED = -1

logger = get_logger(__name__)


@dataclass
class LabelMap:
    """
    Per-neuron labels and vote counts, in the SOM's flat scan order.

    Attributes:
        labels: Int64 tensor of shape (num_neurons,), `UNLABELED` where empty.
        votes: Int64 tensor of shape (num_neurons,).
    """
    labels: torch.Tensor
    votes: torch.Tensor

    @classmethod
    def empty(cls, num_neurons: int) -> "LabelMap":
        return cls(labels=torch.full((num_neurons,), UNLABELED, dtype=torch.long),
                   votes=torch.zeros(num_neurons, dtype=torch.long))

    def clone(self) -> "LabelMap":
        return LabelMap(labels=self.labels.clone(), votes=self.votes.clone())


def collect_votes(som: SOM, dataset: Dataset) -> LabelMap:
    """Records each sample's label on its BMU and counts votes per neuron."""
    label_map = LabelMap.empty(som.num_neurons)
    if len(dataset) == 0:
        return label_map
    if dataset.input_size != som.input_size:
        raise DimensionMismatch(som.input_size, dataset.input_size, what="samples")

    samples = dataset.samples.to(device=som.device, dtype=torch.float64)
    for sample, label in zip(samples, dataset.labels.tolist()):
        bmu = find_bmu(som.weights, sample)
        label_map.labels[bmu] = label
        label_map.votes[bmu] += 1
    return label_map


def neighborhood(som: SOM, index: int, radius: float = 1.0) -> list[int]:
    """
    Flat indices of the neurons within `radius` grid distance of `index`,
    in scan order. The neuron itself is always included.
    """
    reach = int(radius)
    x, y, z = som.coord_of(index)
    found = []
    for dx, dy, dz in product(range(-reach, reach + 1), repeat=3):
        if dx * dx + dy * dy + dz * dz > radius * radius:
            continue
        nx, ny, nz = x + dx, y + dy, z + dz
        if 0 <= nx < som.grid_x and 0 <= ny < som.grid_y and 0 <= nz < som.grid_z:
            found.append(som.index_of((nx, ny, nz)))
    return found


def resolve_conflicts(som: SOM, label_map: LabelMap, radius: float = 1.0) -> LabelMap:
    """
    Relabels every voted neuron by majority among its labeled neighbors.

    Neighbor labels are read from `label_map` as it was before resolution,
    so the result does not depend on the order neurons are visited. Neurons
    without votes keep their current label.

    Args:
        som (SOM): The trained map.
        label_map (LabelMap): Output of `collect_votes`.
        radius (float): Inclusive grid-distance radius of the neighborhood.
            The default of 1.0 covers the neuron and its six face neighbors.

    Returns:
        LabelMap: A new map with resolved labels and the original vote counts.
    """
    resolved = label_map.clone()
    voted = torch.nonzero(label_map.votes > 0).flatten().tolist()
    labels = label_map.labels.tolist()
    for index in voted:
        tally = Counter()
        for neighbor in neighborhood(som, index, radius):
            if labels[neighbor] != UNLABELED:
                tally[labels[neighbor]] += 1
        if tally:
            # most_common keeps insertion order among equal counts
            resolved.labels[index] = tally.most_common(1)[0][0]
    logger.debug(f"Resolved labels for {len(voted)} voted neurons")
    return resolved


def assign_labels(som: SOM, dataset: Dataset | None, radius: float = 1.0) -> LabelMap:
    """Runs vote collection followed by conflict resolution."""
    if dataset is None:
        return LabelMap.empty(som.num_neurons)
    return resolve_conflicts(som, collect_votes(som, dataset), radius)

"""
Distance, BMU search and weight-update kernels for the SOM.

The grid is stored as one flat `(num_neurons, input_size)` weight tensor with
a parallel `(num_neurons, 3)` tensor of neuron coordinates. Row `i` holds the
neuron at `(x, y, z)` with `i = (x * grid_y + y) * grid_z + z`, so row order
is the x-major, then y, then z scan order.
"""
import math

import torch

from .errors import DimensionMismatch


def sample_distance(a: torch.Tensor, b: torch.Tensor) -> float:
    """
    Euclidean distance between two sample-space vectors.

    Raises:
        DimensionMismatch: If the vectors differ in length.
    """
    a = torch.as_tensor(a, dtype=torch.float64)
    b = torch.as_tensor(b, dtype=torch.float64)
    if a.numel() != b.numel():
        raise DimensionMismatch(a.numel(), b.numel(), what="vector")
    return math.sqrt(torch.sum((a.flatten() - b.flatten()) ** 2).item())


def grid_distance(c1: tuple[int, int, int], c2: tuple[int, int, int]) -> float:
    """Euclidean distance between two grid coordinates, in real-valued space."""
    return math.sqrt(sum((p - q) ** 2 for p, q in zip(c1, c2)))


def neighborhood_weight(distance, sigma: float):
    """
    Gaussian neighborhood function `exp(-d^2 / (2 * sigma^2))`.

    Accepts a scalar or a tensor of distances. Equals 1 at distance 0 and
    decreases monotonically towards 0.
    """
    if not sigma > 0:
        raise ValueError(f"sigma must be > 0, got {sigma}")
    denom = 2.0 * sigma * sigma
    if isinstance(distance, torch.Tensor):
        return torch.exp(-(distance ** 2) / denom)
    return math.exp(-(distance ** 2) / denom)


def neuron_locations(grid_shape: tuple[int, int, int],
                     device: str | torch.device = 'cpu') -> torch.Tensor:
    """Grid coordinates of every neuron in scan order, shape `(num_neurons, 3)`."""
    axes = [torch.arange(n, device=device, dtype=torch.float64) for n in grid_shape]
    grid_x, grid_y, grid_z = torch.meshgrid(*axes, indexing='ij')
    return torch.stack([grid_x.flatten(), grid_y.flatten(), grid_z.flatten()], dim=1)


def distances_to(weights: torch.Tensor, sample: torch.Tensor) -> torch.Tensor:
    """Euclidean distance from every neuron's weight vector to `sample`."""
    return torch.sqrt(torch.sum((weights - sample) ** 2, dim=1))


def find_bmu(weights: torch.Tensor, sample: torch.Tensor) -> int:
    """
    Flat index of the Best Matching Unit for a single sample.

    Rows are in scan order and `torch.argmin` returns the first minimal
    index, so on ties the neuron visited first wins.
    """
    return int(torch.argmin(distances_to(weights, sample)).item())


def update_weights(weights: torch.Tensor,
                   locations: torch.Tensor,
                   sample: torch.Tensor,
                   bmu_index: int,
                   learning_rate: float,
                   sigma: float) -> None:
    """
    Pulls the BMU's neighborhood towards `sample`, in place.

    Neurons whose grid distance to the BMU exceeds `sigma` are left untouched;
    the rest move by `learning_rate * h(d, sigma) * (sample - w)`.
    """
    grid_dists = torch.sqrt(torch.sum((locations - locations[bmu_index]) ** 2, dim=1))
    in_radius = grid_dists <= sigma
    influence = neighborhood_weight(grid_dists[in_radius], sigma)
    neighbors = weights[in_radius]
    weights[in_radius] = neighbors + (learning_rate * influence).unsqueeze(1) * (sample - neighbors)

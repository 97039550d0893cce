from dataclasses import dataclass

import torch


@dataclass(frozen=True, eq=False)
class Dataset:
    """
    An ordered, labeled set of samples loaded from a CSV file.

    Attributes:
        samples: Float64 tensor of shape (num_samples, input_size), values in [0, 1].
        labels: Int64 tensor of shape (num_samples,).
        path: Source file, if any.
    """
    samples: torch.Tensor
    labels: torch.Tensor
    path: str | None = None

    def __post_init__(self):
        if self.samples.dim() != 2:
            raise ValueError(f"samples must be 2D, got shape {tuple(self.samples.shape)}")
        if self.labels.shape != (self.samples.shape[0],):
            raise ValueError(
                f"Expected {self.samples.shape[0]} labels, got shape {tuple(self.labels.shape)}")

    def __len__(self) -> int:
        return self.samples.shape[0]

    @property
    def input_size(self) -> int:
        return self.samples.shape[1]

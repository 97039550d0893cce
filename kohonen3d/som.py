import math

import torch
from tqdm import tqdm

from .config import SOMConfig
from .dataset import Dataset
from .errors import DimensionMismatch, EmptyDataset, InvalidBatchSize
from .kernels import distances_to, find_bmu, neuron_locations, update_weights
from .log import get_logger


class SOM:
    """
    A Self-Organizing Map over a dense 3D grid of neurons.

    The grid is one flat `(num_neurons, input_size)` weight tensor in x-major,
    y, z scan order, with neuron coordinates precomputed alongside it. Training
    is sequential: every sample finds its Best Matching Unit and pulls the
    BMU's neighborhood towards itself before the next sample is visited.
    """
    def __init__(self,
                 config: SOMConfig,
                 device: str | torch.device = 'cpu',
                 generator: torch.Generator | None = None
                ):
        """
        Initializes the SOM with uniform random weights in [0, 1).

        Args:
            config (SOMConfig): Validated grid and training parameters.
            device (str | torch.device): Device for computation.
            generator (torch.Generator | None): Random source for initialization.
                If None, a private generator is created and seeded from
                `config.random_seed` when set.
        """
        self.config = config
        self.grid_x, self.grid_y, self.grid_z = config.grid_shape
        self.num_neurons = config.num_neurons
        self.input_size = config.input_size
        self.device = torch.device(device)
        self.logger = get_logger(self)

        if generator is None:
            generator = torch.Generator(device=self.device)
            if config.random_seed is not None:
                generator.manual_seed(config.random_seed)
            else:
                generator.seed()

        self.weights = torch.rand(self.num_neurons, self.input_size,
                                  generator=generator, device=self.device, dtype=torch.float64)
        self.neuron_locations = neuron_locations(config.grid_shape, device=self.device)

    @property
    def grid_shape(self) -> tuple[int, int, int]:
        return self.grid_x, self.grid_y, self.grid_z

    def index_of(self, coord: tuple[int, int, int]) -> int:
        """Flat weight-row index of the neuron at `coord`."""
        x, y, z = coord
        if not (0 <= x < self.grid_x and 0 <= y < self.grid_y and 0 <= z < self.grid_z):
            raise IndexError(f"Coordinate {coord} outside grid {self.grid_shape}")
        return (x * self.grid_y + y) * self.grid_z + z

    def coord_of(self, index: int) -> tuple[int, int, int]:
        """Grid coordinate of the neuron stored at flat row `index`."""
        if not 0 <= index < self.num_neurons:
            raise IndexError(f"Neuron index {index} outside [0, {self.num_neurons})")
        x, rest = divmod(index, self.grid_y * self.grid_z)
        y, z = divmod(rest, self.grid_z)
        return x, y, z

    def weight_of(self, coord: tuple[int, int, int]) -> torch.Tensor:
        """Returns a copy of the weight vector of the neuron at `coord`."""
        return self.weights[self.index_of(coord)].clone()

    def get_weights(self) -> torch.Tensor:
        """Returns a copy of the weights shaped (grid_x, grid_y, grid_z, input_size)."""
        return self.weights.clone().detach().reshape(*self.grid_shape, self.input_size)

    def get_neuron_locations(self) -> torch.Tensor:
        """Returns a copy of the 3D locations of neurons on the grid."""
        return self.neuron_locations.clone().detach()

    def _as_sample(self, sample) -> torch.Tensor:
        sample = torch.as_tensor(sample, dtype=torch.float64, device=self.device)
        if sample.dim() != 1 or sample.shape[0] != self.input_size:
            raise DimensionMismatch(self.input_size, sample.numel())
        return sample

    def _as_data(self, data) -> torch.Tensor:
        if isinstance(data, Dataset):
            data = data.samples
        data = torch.as_tensor(data, dtype=torch.float64, device=self.device)
        if data.numel() == 0:
            raise EmptyDataset("Training dataset contains no samples")
        if data.dim() != 2 or data.shape[1] != self.input_size:
            raise DimensionMismatch(self.input_size, tuple(data.shape), what="samples")
        return data

    def find_bmu(self, sample) -> tuple[int, int, int]:
        """
        Finds the Best Matching Unit for a sample.

        Args:
            sample: Vector of length `input_size`.

        Returns:
            tuple[int, int, int]: Grid coordinate of the first neuron, in scan
            order, at minimal Euclidean distance from the sample.
        """
        return self.coord_of(find_bmu(self.weights, self._as_sample(sample)))

    def update_weights(self, sample, bmu: tuple[int, int, int],
                       learning_rate: float, sigma: float) -> None:
        """Applies one neighborhood update around `bmu` for `sample`."""
        update_weights(self.weights, self.neuron_locations, self._as_sample(sample),
                       self.index_of(bmu), learning_rate, sigma)

    def decay(self, epoch: int) -> tuple[float, float]:
        """Learning rate and sigma for `epoch`, both decayed by exp(-epoch / epochs)."""
        factor = math.exp(-epoch / self.config.epochs)
        return (self.config.initial_learning_rate * factor,
                self.config.initial_sigma * factor)

    def train(self, data, verbose: bool = False):
        """
        Trains the SOM for `config.epochs` epochs, one sample at a time.

        Args:
            data (Dataset | torch.Tensor): Samples of shape (num_samples, input_size).
            verbose (bool): Show a progress bar per epoch.

        Raises:
            EmptyDataset: If `data` has no samples. The grid is left untouched.
            DimensionMismatch: If the feature count differs from `input_size`.
        """
        data = self._as_data(data)
        for epoch in range(self.config.epochs):
            learning_rate, sigma = self.decay(epoch)
            self.logger.debug(f"Epoch {epoch + 1}/{self.config.epochs}, "
                              f"LR: {learning_rate:.6f}, Sigma: {sigma:.6f}")
            samples = tqdm(data, desc=f"Epoch {epoch + 1}/{self.config.epochs}",
                           unit="sample", leave=False, disable=not verbose)
            self._train_samples(samples, learning_rate, sigma)

    def train_with_batches(self, data, batch_size: int, verbose: bool = False):
        """
        Trains the SOM in contiguous batches of up to `batch_size` samples.

        Batches only group samples for progress reporting: samples are visited
        in the same order with the same updates as `train`, so the resulting
        weights are identical. A `batch_size` larger than the dataset yields a
        single batch per epoch.

        Raises:
            InvalidBatchSize: If `batch_size` is not a positive integer.
        """
        if isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size <= 0:
            raise InvalidBatchSize(f"batch_size must be a positive integer, got {batch_size!r}")
        data = self._as_data(data)
        num_samples = data.shape[0]
        num_batches = math.ceil(num_samples / batch_size)
        epochs = self.config.epochs

        for epoch in range(epochs):
            learning_rate, sigma = self.decay(epoch)
            self.logger.debug(f"Epoch {epoch + 1}/{epochs}, "
                              f"LR: {learning_rate:.6f}, Sigma: {sigma:.6f}, Batches: {num_batches}")
            with tqdm(total=num_samples, desc=f"Epoch {epoch + 1}/{epochs}",
                      unit="sample", leave=False, disable=not verbose) as progress:
                for batch, start in enumerate(range(0, num_samples, batch_size)):
                    batch_data = data[start:start + batch_size]
                    self._train_samples(batch_data, learning_rate, sigma)
                    progress.update(batch_data.shape[0])
                    progress.set_postfix(batch=f"{batch + 1}/{num_batches}")
                    self.logger.debug(
                        f"Epoch {epoch + 1}/{epochs}: batch {batch + 1}/{num_batches} "
                        f"({100.0 * (batch + 1) / num_batches:.1f}% of batches, "
                        f"{100.0 * (start + batch_data.shape[0]) / num_samples:.1f}% of epoch)")
            self.logger.info(f"Epoch {epoch + 1}/{epochs} complete")

    def train_epoch(self, data, learning_rate: float, sigma: float):
        """
        Performs a single training epoch at a fixed learning rate and sigma.
        """
        self._train_samples(self._as_data(data), learning_rate, sigma)

    def _train_samples(self, samples, learning_rate: float, sigma: float):
        for sample in samples:
            bmu_index = find_bmu(self.weights, sample)
            update_weights(self.weights, self.neuron_locations, sample,
                           bmu_index, learning_rate, sigma)

    def map_to_bmu_indices(self, data) -> torch.Tensor:
        """
        Maps input data points to their Best Matching Unit (BMU) flat indices.

        Returns:
            torch.Tensor: A 1D int64 tensor with the BMU row for each input data point.
        """
        data = self._as_data(data)
        return torch.tensor([find_bmu(self.weights, sample) for sample in data],
                            dtype=torch.long, device=self.device)

    def map_to_bmu_locations(self, data) -> torch.Tensor:
        """
        Maps input data points to the 3D grid locations of their BMUs.

        Returns:
            torch.Tensor: Shape (num_samples, 3), the (x, y, z) coordinate of
                          each input data point's BMU.
        """
        bmu_indices = self.map_to_bmu_indices(data)
        return self.neuron_locations[bmu_indices].long()

    def quantization_error(self, data) -> float:
        """
        Average distance between each data vector and its BMU.
        """
        data = self._as_data(data)
        errors = [distances_to(self.weights, sample).min().item() for sample in data]
        return sum(errors) / len(errors)

    def __repr__(self) -> str:
        return (f"SOM(grid_shape={self.grid_shape}, input_size={self.input_size}, "
                f"device='{self.device.type}')")

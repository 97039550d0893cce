"""
kohonen3d - A PyTorch-based Self-Organizing Map (SOM) over a 3D neuron grid.
"""
from .config import SOMConfig
from .dataset import Dataset
from .errors import (DataFormatError, DimensionMismatch, EmptyDataset, InvalidBatchSize,
                     InvalidConfiguration, ResourceUnavailable, SOMError)
from .io import (NeuronRecord, ValidationReport, export_visualization, load_dataset,
                 read_visualization, validate_dataset)
from .labels import UNLABELED, LabelMap, assign_labels
from .som import SOM

__version__ = "0.2.0"

__all__ = [
    "SOM",
    "SOMConfig",
    "Dataset",
    "LabelMap",
    "UNLABELED",
    "assign_labels",
    "load_dataset",
    "validate_dataset",
    "export_visualization",
    "read_visualization",
    "NeuronRecord",
    "ValidationReport",
    "SOMError",
    "InvalidConfiguration",
    "DimensionMismatch",
    "DataFormatError",
    "EmptyDataset",
    "InvalidBatchSize",
    "ResourceUnavailable",
]

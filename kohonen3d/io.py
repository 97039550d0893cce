"""
CSV boundary: loading and validating labeled datasets, and exporting the
trained grid for visualization.

Dataset files have a header whose first field is `label` followed by one
field per feature. Each data row holds an integer label followed by the raw
feature values, which are divided by 255 on load.

Export files hold one line per neuron in scan order:
`x,y,z,label,w_1,...,w_n`, with `-1` marking an unlabeled neuron.
"""
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, NamedTuple

import pandas as pd
import torch

from .dataset import Dataset
from .errors import DataFormatError, ResourceUnavailable
from .labels import UNLABELED, assign_labels
from .log import get_logger
from .som import SOM

LABEL_COLUMN = "label"
PIXEL_SCALE = 255.0

logger = get_logger(__name__)

_PARSER_LINE_RE = re.compile(r"line (\d+)")


class NeuronRecord(NamedTuple):
    """One exported neuron."""
    x: int
    y: int
    z: int
    label: int
    weights: tuple[float, ...]


@dataclass
class ValidationIssue:
    line: int | None
    message: str

    def __str__(self) -> str:
        where = f"line {self.line}" if self.line is not None else "file"
        return f"{where}: {self.message}"


@dataclass
class ValidationReport:
    """Outcome of `validate_dataset`. `rows` counts data rows, valid or not."""
    path: str
    rows: int = 0
    issues: list[ValidationIssue] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.issues


def _undecodable_line(path) -> int | None:
    """1-based line of the first byte sequence that is not valid UTF-8."""
    raw = Path(path).read_bytes()
    try:
        raw.decode("utf-8")
    except UnicodeDecodeError as e:
        return raw.count(b"\n", 0, e.start) + 1
    return None


def _read_frame(path, width: int | None = None) -> pd.DataFrame:
    """
    Reads a headerless CSV into a frame of raw strings, one row per file line.

    With `width`, the frame always has `width` columns: short rows are padded
    and longer rows are cut to `width` fields, so the last column being filled
    means the row had at least `width` fields.

    Raises:
        ResourceUnavailable: If the file cannot be opened.
        DataFormatError: If the file is not UTF-8 text or cannot be tokenized.
    """
    kwargs = dict(header=None, dtype=str, keep_default_na=False, skip_blank_lines=False,
                  encoding="utf-8")
    if width is not None:
        kwargs.update(names=range(width), index_col=False, engine="python",
                      on_bad_lines=lambda fields: fields[:width])
    try:
        return pd.read_csv(path, **kwargs)
    except pd.errors.EmptyDataError:
        return pd.DataFrame(columns=range(width or 0), dtype=str)
    except UnicodeDecodeError as e:
        raise DataFormatError(path, _undecodable_line(path), f"Not valid UTF-8 text: {e.reason}") from None
    except pd.errors.ParserError as e:
        match = _PARSER_LINE_RE.search(str(e))
        line = int(match.group(1)) if match else None
        raise DataFormatError(path, line, f"Could not parse CSV: {e}") from None
    except OSError as e:
        raise ResourceUnavailable(f"Could not open {path}: {e.strerror or e}") from e


def _fields(cells) -> list[str]:
    """Row cells as strings, with padding and trailing empty cells dropped."""
    fields = ["" if pd.isna(cell) else str(cell) for cell in cells]
    while fields and fields[-1] == "":
        fields.pop()
    return fields


def _rows(frame: pd.DataFrame) -> Iterator[tuple[int, list[str]]]:
    """Yields (line number, fields) for every non-blank line of `frame`."""
    for index, *cells in frame.itertuples(index=True, name=None):
        fields = _fields(cells)
        if fields:
            yield index + 1, fields


def _count_message(input_size: int, actual: int, what: str) -> str:
    got = f"more than {input_size}" if actual > input_size else str(actual)
    return f"Expected {input_size} {what}, got {got}"


def _check_header(header: list[str] | None, input_size: int) -> str | None:
    if not header:
        return "Empty file or no header"
    if header[0].strip() != LABEL_COLUMN:
        return f"Invalid header: first field must be '{LABEL_COLUMN}'"
    if len(header) - 1 != input_size:
        return "Invalid header: " + _count_message(input_size, len(header) - 1,
                                                   f"feature columns after '{LABEL_COLUMN}'")
    return None


class _CountError(ValueError):
    def __init__(self, expected: int, actual: int):
        self.expected = expected
        # Rows longer than the read width are cut, so the exact count is unknown
        self.actual = actual if actual <= expected else None
        super().__init__(_count_message(expected, actual, "feature values"))


def _parse_row(row: list[str], input_size: int) -> tuple[int, list[float]]:
    """Parses one data row, raising ValueError with a readable message on failure."""
    if not row[0].strip():
        raise ValueError("Missing label")
    try:
        label = int(row[0])
    except ValueError:
        raise ValueError(f"Invalid label {row[0]!r}") from None
    values = row[1:]
    if len(values) != input_size:
        raise _CountError(input_size, len(values))
    features = []
    for column, token in enumerate(values, start=2):
        try:
            features.append(float(token))
        except ValueError:
            raise ValueError(f"Invalid feature value {token!r} in column {column}") from None
    return label, features


def _dataset_rows(path, input_size: int) -> tuple[list[str] | None, Iterator[tuple[int, list[str]]]]:
    # label + features + one spill column to detect overlong rows
    rows = _rows(_read_frame(path, width=input_size + 2))
    first = next(rows, None)
    if first is None:
        return None, rows
    line, header = first
    if line != 1:
        return [], rows
    return header, rows


def load_dataset(path: str | Path, input_size: int) -> Dataset:
    """
    Loads a labeled dataset, scaling feature values by 1/255.

    Raises:
        ResourceUnavailable: If the file cannot be opened.
        DataFormatError: On the first malformed header or row.
    """
    header, rows = _dataset_rows(path, input_size)
    problem = _check_header(header, input_size)
    if problem is not None:
        actual = len(header) - 1 if header and len(header) - 1 <= input_size else None
        raise DataFormatError(path, 1, problem, expected=input_size, actual=actual)
    logger.debug(f"Header verified for {path}")

    labels = []
    samples = []
    for line, row in rows:
        try:
            label, features = _parse_row(row, input_size)
        except _CountError as e:
            raise DataFormatError(path, line, str(e), expected=e.expected, actual=e.actual) from None
        except ValueError as e:
            raise DataFormatError(path, line, str(e)) from None
        labels.append(label)
        samples.append(features)

    data = torch.tensor(samples, dtype=torch.float64).reshape(len(samples), input_size)
    dataset = Dataset(samples=data / PIXEL_SCALE,
                      labels=torch.tensor(labels, dtype=torch.long),
                      path=str(path))
    logger.info(f"Loaded {len(dataset)} samples with labels from {path}")
    return dataset


def validate_dataset(path: str | Path, input_size: int) -> ValidationReport:
    """
    Checks every row of a dataset file without loading it.

    Unlike `load_dataset`, validation does not stop at the first problem: each
    offending line is recorded in the returned report. A file that cannot be
    read as CSV text at all is reported as a single issue.

    Raises:
        ResourceUnavailable: If the file cannot be opened.
    """
    report = ValidationReport(path=str(path))
    try:
        header, rows = _dataset_rows(path, input_size)
        problem = _check_header(header, input_size)
        if problem is not None:
            report.issues.append(ValidationIssue(1, problem))
        else:
            for line, row in rows:
                report.rows += 1
                try:
                    _parse_row(row, input_size)
                except ValueError as e:
                    report.issues.append(ValidationIssue(line, str(e)))
    except DataFormatError as e:
        report.issues.append(ValidationIssue(e.line, e.reason))

    for issue in report.issues:
        logger.warning(f"{path}: {issue}")
    if report.ok:
        logger.info(f"Validated {report.rows} rows in {path}")
    return report


def export_visualization(som: SOM, output_path: str | Path,
                         labeled_path: str | Path | None = None,
                         radius: float = 1.0) -> list[NeuronRecord]:
    """
    Writes every neuron's coordinate, inferred label and weights to a CSV file.

    Labels are inferred from the dataset at `labeled_path`. If that file
    cannot be opened, the export proceeds with all neurons unlabeled.

    Returns:
        list[NeuronRecord]: The records written, in scan order.

    Raises:
        ResourceUnavailable: If `output_path` cannot be opened for writing.
    """
    dataset = None
    if labeled_path is not None:
        try:
            dataset = load_dataset(labeled_path, som.input_size)
        except ResourceUnavailable as e:
            logger.warning(f"{e}; exporting all neurons as unlabeled")

    label_map = assign_labels(som, dataset, radius)
    labels = label_map.labels.tolist()
    weights = som.weights.cpu().tolist()
    records = [NeuronRecord(*som.coord_of(index), labels[index], tuple(weights[index]))
               for index in range(som.num_neurons)]

    # repr gives the shortest string that parses back to the same float
    frame = pd.DataFrame([[r.x, r.y, r.z, r.label, *(repr(w) for w in r.weights)]
                          for r in records])
    try:
        frame.to_csv(output_path, header=False, index=False, lineterminator="\n")
    except OSError as e:
        raise ResourceUnavailable(f"Could not open {output_path}: {e.strerror or e}") from e

    labeled = sum(1 for label in labels if label != UNLABELED)
    logger.info(f"Wrote {len(records)} neurons ({labeled} labeled) to {output_path}")
    return records


def read_visualization(path: str | Path) -> list[NeuronRecord]:
    """
    Parses a file written by `export_visualization`.

    Raises:
        ResourceUnavailable: If the file cannot be opened.
        DataFormatError: If a line has fewer than four fields or a bad value.
    """
    records = []
    for line, row in _rows(_read_frame(path)):
        if len(row) < 4:
            raise DataFormatError(path, line, "Expected x, y, z and label fields",
                                  expected=4, actual=len(row))
        try:
            x, y, z, label = (int(v) for v in row[:4])
            weights = tuple(float(v) for v in row[4:])
        except ValueError as e:
            raise DataFormatError(path, line, str(e)) from None
        records.append(NeuronRecord(x, y, z, label, weights))
    return records

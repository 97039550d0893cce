import tempfile
import unittest
from pathlib import Path

import torch

from kohonen3d import SOM, SOMConfig
from kohonen3d.errors import DataFormatError, ResourceUnavailable
from kohonen3d.io import (export_visualization, load_dataset, read_visualization,
                          validate_dataset)
from kohonen3d.labels import UNLABELED


class CSVTestCase(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)

    def tearDown(self):
        self._tmp.cleanup()

    def write(self, name: str, text: str) -> Path:
        path = self.tmp / name
        path.write_text(text, encoding="utf-8")
        return path


class TestLoadDataset(CSVTestCase):

    def test_load_scales_by_255(self):
        path = self.write("train.csv", "label,p1,p2,p3\n1,0,255,51\n0,255,0,102\n")
        dataset = load_dataset(path, 3)
        self.assertEqual(len(dataset), 2)
        self.assertEqual(dataset.labels.tolist(), [1, 0])
        self.assertEqual(dataset.samples.dtype, torch.float64)
        self.assertEqual(dataset.samples.tolist(), [[0.0, 1.0, 0.2], [1.0, 0.0, 0.4]])

    def test_header_only(self):
        dataset = load_dataset(self.write("empty.csv", "label,a,b\n"), 2)
        self.assertEqual(len(dataset), 0)
        self.assertEqual(dataset.samples.shape, (0, 2))

    def test_datasets_compare_by_identity(self):
        path = self.write("train.csv", "label,p1\n1,0\n2,255\n")
        first = load_dataset(path, 1)
        second = load_dataset(path, 1)
        self.assertEqual(first, first)
        self.assertNotEqual(first, second)
        self.assertEqual(len({first, second}), 2)

    def test_bad_header(self):
        path = self.write("bad.csv", "digit,p1,p2\n1,0,0\n")
        with self.assertRaises(DataFormatError) as ctx:
            load_dataset(path, 2)
        self.assertEqual(ctx.exception.line, 1)

    def test_header_column_count(self):
        path = self.write("bad.csv", "label,p1,p2\n1,0,0\n")
        with self.assertRaises(DataFormatError) as ctx:
            load_dataset(path, 3)
        self.assertEqual((ctx.exception.expected, ctx.exception.actual), (3, 2))

    def test_short_row_reports_line_and_counts(self):
        path = self.write("short.csv", "label,p1,p2,p3\n1,0,0,0\n2,5,5\n")
        with self.assertRaises(DataFormatError) as ctx:
            load_dataset(path, 3)
        self.assertEqual(ctx.exception.line, 3)
        self.assertEqual((ctx.exception.expected, ctx.exception.actual), (3, 2))

    def test_non_numeric_feature(self):
        path = self.write("nan.csv", "label,p1,p2\n1,0,x\n")
        with self.assertRaisesRegex(DataFormatError, r":2: Invalid feature value 'x'"):
            load_dataset(path, 2)

    def test_non_integer_label(self):
        path = self.write("label.csv", "label,p1\none,0\n")
        with self.assertRaises(DataFormatError):
            load_dataset(path, 1)

    def test_long_row_reports_more_than_expected(self):
        path = self.write("long.csv", "label,p1,p2\n1,0,0\n2,5,5,5,5\n")
        with self.assertRaises(DataFormatError) as ctx:
            load_dataset(path, 2)
        self.assertEqual(ctx.exception.line, 3)
        self.assertIn("more than 2", str(ctx.exception))

    def test_undecodable_bytes_report_line(self):
        path = self.tmp / "latin1.csv"
        path.write_bytes(b"label,a\n1,\xff\n")
        with self.assertRaises(DataFormatError) as ctx:
            load_dataset(path, 1)
        self.assertEqual(ctx.exception.line, 2)
        self.assertIn("UTF-8", str(ctx.exception))

    def test_missing_file(self):
        with self.assertRaises(ResourceUnavailable):
            load_dataset(self.tmp / "missing.csv", 3)


class TestValidateDataset(CSVTestCase):

    def test_all_valid(self):
        path = self.write("ok.csv", "label,a,b\n1,1,2\n2,3,4\n3,5,6\n")
        report = validate_dataset(path, 2)
        self.assertTrue(report.ok)
        self.assertEqual(report.rows, 3)

    def test_reports_each_offending_line(self):
        path = self.write("bad.csv", "label,a,b\n1,1,2\n2,3,oops\n3,5\n4,7,8\n")
        report = validate_dataset(path, 2)
        self.assertFalse(report.ok)
        self.assertEqual(report.rows, 4)
        self.assertEqual([issue.line for issue in report.issues], [3, 4])
        self.assertIn("oops", report.issues[0].message)

    def test_bad_header(self):
        report = validate_dataset(self.write("bad.csv", "label,a\n1,2\n"), 2)
        self.assertFalse(report.ok)
        self.assertEqual(report.issues[0].line, 1)

    def test_empty_file(self):
        report = validate_dataset(self.write("empty.csv", ""), 2)
        self.assertFalse(report.ok)

    def test_undecodable_bytes_become_issue(self):
        path = self.tmp / "latin1.csv"
        path.write_bytes(b"label,a\n1,\xff\n")
        report = validate_dataset(path, 1)
        self.assertFalse(report.ok)
        self.assertEqual(report.issues[0].line, 2)

    def test_missing_file(self):
        with self.assertRaises(ResourceUnavailable):
            validate_dataset(self.tmp / "missing.csv", 2)


class TestExport(CSVTestCase):

    def setUp(self):
        super().setUp()
        self.som = SOM(SOMConfig(grid_x=2, grid_y=2, grid_z=2, input_size=3, random_seed=1))
        data = "label,a,b,c\n" + "".join(
            f"{i % 3},{(i * 37) % 256},{(i * 91) % 256},{(i * 13) % 256}\n" for i in range(12))
        self.train_path = self.write("train.csv", data)
        self.som.train(load_dataset(self.train_path, 3))

    def test_round_trip(self):
        output = self.tmp / "som_output.txt"
        records = export_visualization(self.som, output, self.train_path)
        parsed = read_visualization(output)
        self.assertEqual(parsed, records)
        self.assertEqual(len(parsed), self.som.num_neurons)
        for index, record in enumerate(parsed):
            self.assertEqual((record.x, record.y, record.z), self.som.coord_of(index))
            self.assertEqual(list(record.weights), self.som.weights[index].tolist())

    def test_labels_come_from_dataset(self):
        records = export_visualization(self.som, self.tmp / "out.txt", self.train_path)
        labels = {record.label for record in records}
        self.assertTrue(labels - {UNLABELED})
        self.assertTrue(labels <= {UNLABELED, 0, 1, 2})

    def test_missing_labels_file_exports_unlabeled(self):
        output = self.tmp / "out.txt"
        records = export_visualization(self.som, output, self.tmp / "missing.csv")
        self.assertEqual(len(records), 8)
        self.assertTrue(all(record.label == UNLABELED for record in records))
        first = output.read_text(encoding="utf-8").splitlines()[0].split(",")
        self.assertEqual(first[:4], ["0", "0", "0", "-1"])
        self.assertEqual(len(first), 4 + 3)

    def test_unwritable_output(self):
        with self.assertRaises(ResourceUnavailable):
            export_visualization(self.som, self.tmp / "no" / "such" / "dir" / "out.txt")


if __name__ == '__main__':
    unittest.main()

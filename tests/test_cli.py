import tempfile
import unittest
from pathlib import Path

from kohonen3d.cli import build_parser, config_from_args, main
from kohonen3d.io import read_visualization

TRAIN_CSV = "label,a,b\n" + "".join(f"{i % 2},{(i * 53) % 256},{(i * 29) % 256}\n" for i in range(10))
SMALL_GRID = ["--grid", "2", "2", "1", "--input-size", "2", "--epochs", "2", "--seed", "3"]


class TestCLI(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        self.train = self.tmp / "train.csv"
        self.train.write_text(TRAIN_CSV, encoding="utf-8")
        self.output = self.tmp / "som_output.txt"

    def tearDown(self):
        self._tmp.cleanup()

    def test_train_and_export(self):
        status = main(["train", str(self.train), "--output", str(self.output),
                       "--batch-size", "3", *SMALL_GRID])
        self.assertEqual(status, 0)
        records = read_visualization(self.output)
        self.assertEqual(len(records), 4)
        self.assertTrue(all(len(r.weights) == 2 for r in records))

    def test_unbatched_training(self):
        status = main(["train", str(self.train), "--output", str(self.output),
                       "--batch-size", "0", *SMALL_GRID])
        self.assertEqual(status, 0)

    def test_missing_training_file_fails(self):
        status = main(["train", str(self.tmp / "missing.csv"), "--output", str(self.output), *SMALL_GRID])
        self.assertEqual(status, 1)
        self.assertFalse(self.output.exists())

    def test_validation_failure_does_not_stop_training(self):
        invalid = self.tmp / "test.csv"
        invalid.write_text("label,a,b\n1,2,x\n", encoding="utf-8")
        status = main(["train", str(self.train), "--validate", str(invalid),
                       "--output", str(self.output), *SMALL_GRID])
        self.assertEqual(status, 0)
        self.assertTrue(self.output.exists())

    def test_invalid_configuration_fails(self):
        status = main(["train", str(self.train), "--output", str(self.output),
                       "--grid", "0", "2", "2", "--input-size", "2"])
        self.assertEqual(status, 1)

    def test_invalid_batch_size_fails(self):
        status = main(["train", str(self.train), "--output", str(self.output),
                       "--batch-size", "-1", *SMALL_GRID])
        self.assertEqual(status, 1)

    def test_header_only_training_file_exports_unlabeled(self):
        self.train.write_text("label,a,b\n", encoding="utf-8")
        status = main(["train", str(self.train), "--output", str(self.output), *SMALL_GRID])
        self.assertEqual(status, 0)
        records = read_visualization(self.output)
        self.assertEqual(len(records), 4)
        self.assertTrue(all(r.label == -1 for r in records))

    def test_undecodable_validation_file_does_not_stop_training(self):
        invalid = self.tmp / "test.csv"
        invalid.write_bytes(b"label,a,b\n1,2,\xff\n")
        status = main(["train", str(self.train), "--validate", str(invalid),
                       "--output", str(self.output), *SMALL_GRID])
        self.assertEqual(status, 0)
        self.assertTrue(self.output.exists())

    def test_undecodable_training_file_fails(self):
        self.train.write_bytes(b"label,a,b\n1,2,\xff\n")
        status = main(["train", str(self.train), "--output", str(self.output), *SMALL_GRID])
        self.assertEqual(status, 1)
        self.assertFalse(self.output.exists())

    def test_missing_config_file_fails(self):
        status = main(["train", str(self.train), "--config", str(self.tmp / "missing.yaml"),
                       "--output", str(self.output)])
        self.assertEqual(status, 1)

    def test_flags_override_yaml(self):
        config_path = self.tmp / "som.yaml"
        config_path.write_text("grid_x: 4\ngrid_y: 4\ngrid_z: 4\ninput_size: 2\nepochs: 7\n",
                               encoding="utf-8")
        args = build_parser().parse_args(["train", str(self.train), "--config", str(config_path),
                                          "--epochs", "3"])
        config = config_from_args(args)
        self.assertEqual(config.grid_shape, (4, 4, 4))
        self.assertEqual(config.epochs, 3)


if __name__ == '__main__':
    unittest.main()

import io
import os
import tempfile
import unittest
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path

from imagepick.tests._images import write_png
from scripts.random_image import main


def _run(argv: list[str]) -> tuple[int, str, str]:
    out = io.StringIO()
    err = io.StringIO()
    with redirect_stdout(out), redirect_stderr(err):
        code = main(argv)
    return code, out.getvalue(), err.getvalue()


class TestRandomImageCli(unittest.TestCase):
    def setUp(self) -> None:
        self._td = tempfile.TemporaryDirectory()
        self.base = Path(self._td.name)
        self.state = self.base / "state"

    def tearDown(self) -> None:
        self._td.cleanup()

    def test_prints_one_path(self) -> None:
        big = write_png(self.base / "photos" / "big.png", 300, 300)
        code, out, _ = _run([str(self.base / "photos"), "--state-dir", str(self.state)])
        self.assertEqual(code, 0)
        self.assertEqual(out, f"{big}\n")

    def test_min_size_flags(self) -> None:
        write_png(self.base / "photos" / "big.png", 300, 300)
        code, out, _ = _run([
            str(self.base / "photos"), "--state-dir", str(self.state),
            "--min-width", "1000", "--min-height", "1000", "--no-cache",
        ])
        self.assertEqual(code, 1)
        self.assertEqual(out, "")

    def test_missing_target(self) -> None:
        code, out, _ = _run([str(self.base / "nope"), "--state-dir", str(self.state)])
        self.assertEqual(code, 2)
        self.assertEqual(out, "")

    def test_no_argument(self) -> None:
        code, out, _ = _run(["--state-dir", str(self.state)])
        self.assertEqual(code, 2)
        self.assertEqual(out, "")

    def test_empty_directory_fails_cleanly(self) -> None:
        (self.base / "empty").mkdir()
        code, out, _ = _run([str(self.base / "empty"), "--state-dir", str(self.state)])
        self.assertEqual(code, 1)
        self.assertEqual(out, "")
        self.assertEqual([n for n in os.listdir(self.state / "filelists") if n.endswith(".json")], [])
        self.assertEqual([n for n in os.listdir(self.state) if ".tmp." in n], [])


if __name__ == "__main__":
    unittest.main()

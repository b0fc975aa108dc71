import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from imagepick._util import GOOD_EXTENSIONS
from imagepick.file_scan import ScanContext, find_all_files, scan_directory, spotlight_files


def _touch(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"x")
    return path


class TestScanDirectory(unittest.TestCase):
    def test_recursive_and_filtered(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            root = Path(td)
            a = _touch(root / "a.jpg")
            b = _touch(root / "sub" / "deeper" / "B.PNG")
            _touch(root / "notes.txt")
            _touch(root / "readme")
            _touch(root / ".hidden.jpg")
            _touch(root / ".git" / "c.png")

            files = find_all_files(td)
            self.assertEqual(sorted(files), sorted([str(a), str(b)]))
            for f in files:
                self.assertTrue(f.startswith(os.path.abspath(td) + os.sep))
                self.assertIn(os.path.splitext(f)[1][1:].lower(), GOOD_EXTENSIONS)

    def test_known_names_are_not_stated(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            root = Path(td)
            _touch(root / "a.jpg")
            _touch(root / "page.html")
            _touch(root / "archive.zip")
            _touch(root / "mystery.dat")
            (root / "album").mkdir()

            ctx = scan_directory(td)
            # Only the two ambiguous names need a stat().
            self.assertEqual(ctx.stat_calls, 2)
            self.assertEqual(ctx.dirs_scanned, 2)

    def test_symlink_loop_terminates(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            root = Path(td)
            img = _touch(root / "sub" / "a.gif")
            os.symlink(root, root / "sub" / "loop")
            os.symlink(root / "sub", root / "zz_again")

            ctx = scan_directory(td)
            self.assertEqual(ctx.files, [str(img)])
            self.assertEqual(len(ctx.seen), 2)
            self.assertGreaterEqual(ctx.skipped, 2)

    def test_dangling_symlink_is_skipped(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            root = Path(td)
            img = _touch(root / "a.jpeg")
            os.symlink(root / "gone", root / "broken")
            ctx = scan_directory(td)
            self.assertEqual(ctx.files, [str(img)])
            self.assertEqual(ctx.skipped, 1)

    @unittest.skipIf(hasattr(os, "geteuid") and os.geteuid() == 0, "root can read anything")
    def test_unreadable_subdirectory_drops_only_that_subtree(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            root = Path(td)
            ok = _touch(root / "open" / "a.png")
            _touch(root / "closed" / "b.png")
            os.chmod(root / "closed", 0)
            try:
                files = find_all_files(td)
            finally:
                os.chmod(root / "closed", 0o755)
            self.assertEqual(files, [str(ok)])

    def test_missing_root_gives_empty_result(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            self.assertEqual(find_all_files(os.path.join(td, "nope")), [])

    def test_context_is_threaded_through(self) -> None:
        with tempfile.TemporaryDirectory() as td1, tempfile.TemporaryDirectory() as td2:
            _touch(Path(td1) / "a.jpg")
            _touch(Path(td2) / "b.jpg")
            ctx = ScanContext()
            scan_directory(td1, context=ctx)
            out = scan_directory(td2, context=ctx)
            self.assertIs(out, ctx)
            self.assertEqual(len(ctx.files), 2)


class TestSpotlight(unittest.TestCase):
    @patch("imagepick.file_scan.shutil.which", return_value=None)
    def test_no_mdfind(self, _which) -> None:
        self.assertIsNone(spotlight_files("/tmp"))

    @patch("imagepick.file_scan.subprocess.run")
    @patch("imagepick.file_scan.shutil.which", return_value="/usr/bin/mdfind")
    def test_filters_output(self, _which, mock_run) -> None:
        with tempfile.TemporaryDirectory() as td:
            root = os.path.abspath(td)
            mock_run.return_value.returncode = 0
            mock_run.return_value.stdout = "\n".join([
                os.path.join(root, "a.jpg"),
                os.path.join(root, ".cache", "b.jpg"),
                os.path.join(root, "doc.pdf"),
                "/elsewhere/c.jpg",
                "",
            ])
            self.assertEqual(spotlight_files(td), [os.path.join(root, "a.jpg")])

    @patch("imagepick.file_scan.subprocess.run")
    @patch("imagepick.file_scan.shutil.which", return_value="/usr/bin/mdfind")
    def test_failure_returns_none(self, _which, mock_run) -> None:
        mock_run.return_value.returncode = 1
        mock_run.return_value.stderr = "boom"
        self.assertIsNone(spotlight_files("/tmp"))


if __name__ == "__main__":
    unittest.main()

import random
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock

from imagepick.errors import NoImagesError
from imagepick.selector import select_image
from imagepick.tests._images import gif_bytes, write_png


class TestSelectImage(unittest.TestCase):
    def setUp(self) -> None:
        self._td = tempfile.TemporaryDirectory()
        self.root = Path(self._td.name)

    def tearDown(self) -> None:
        self._td.cleanup()

    def test_small_images_are_never_picked(self) -> None:
        big = str(write_png(self.root / "big.png", 300, 300))
        small = str(write_png(self.root / "small.png", 100, 100))
        rng = random.Random(1234)
        for _ in range(200):
            self.assertEqual(select_image([big, small], min_width=255, min_height=255, rng=rng), big)

    def test_both_dimensions_must_pass(self) -> None:
        wide = str(write_png(self.root / "wide.png", 1000, 100))
        ok = str(write_png(self.root / "ok.png", 255, 255))
        for seed in range(20):
            self.assertEqual(select_image([wide, ok], min_width=255, min_height=255, rng=random.Random(seed)), ok)

    def test_unknown_dimensions_are_accepted(self) -> None:
        odd = self.root / "scan.tiff"
        odd.write_bytes(b"II*\x00" + b"\x00" * 64)
        self.assertEqual(select_image([str(odd)], min_width=5000, min_height=5000), str(odd))

    def test_missing_file_is_never_accepted(self) -> None:
        gone = str(self.root / "gone.jpg")
        real = self.root / "real.gif"
        real.write_bytes(gif_bytes(800, 600))
        for seed in range(20):
            self.assertEqual(
                select_image([gone, str(real)], min_width=10, min_height=10, rng=random.Random(seed)),
                str(real),
            )

    def test_exhaustion_invalidates_and_fails(self) -> None:
        small = str(write_png(self.root / "small.png", 10, 10))
        on_exhausted = MagicMock()
        with self.assertRaises(NoImagesError):
            select_image([small], min_width=255, min_height=255, max_attempts=7, on_exhausted=on_exhausted)
        on_exhausted.assert_called_once_with()

    def test_empty_candidates_fail_without_invalidating(self) -> None:
        on_exhausted = MagicMock()
        with self.assertRaises(NoImagesError):
            select_image([], min_width=1, min_height=1, on_exhausted=on_exhausted)
        on_exhausted.assert_not_called()


if __name__ == "__main__":
    unittest.main()

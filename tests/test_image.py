"""Tests for PNG export of RGB8 buffers."""

import numpy as np
import pytest
from PIL import Image as PILImage

from prayer.image import buffer_to_array, save_png


class TestBufferToArray:
    """Tests for buffer_to_array."""

    def test_bytes_layout(self):
        """Test bytes are read row-major, top row first."""
        buffer = bytes(range(2 * 3 * 3))

        array = buffer_to_array(buffer, width=3, height=2)

        assert array.shape == (2, 3, 3)
        assert array.dtype == np.uint8
        assert array[0, 0].tolist() == [0, 1, 2]
        assert array[0, 2].tolist() == [6, 7, 8]
        assert array[1, 0].tolist() == [9, 10, 11]

    def test_array_input(self):
        """Test arrays with the right number of elements are accepted."""
        image = np.arange(12, dtype=np.uint8).reshape(2, 2, 3)

        np.testing.assert_array_equal(buffer_to_array(image, 2, 2), image)

    @pytest.mark.parametrize("size", [0, 11, 13])
    def test_length_mismatch(self, size):
        """Test buffers of the wrong length are rejected."""
        with pytest.raises(ValueError):
            buffer_to_array(bytes(size), width=2, height=2)


class TestSavePng:
    """Tests for save_png."""

    def test_round_trip(self, tmp_path):
        """Test the saved PNG decodes to the same pixels."""
        rng = np.random.default_rng(7)
        image = rng.integers(0, 256, size=(5, 4, 3), dtype=np.uint8)
        path = tmp_path / "out.png"

        written = save_png(image.tobytes(), 4, 5, path)

        assert written == path
        with PILImage.open(path) as img:
            assert img.format == "PNG"
            assert img.mode == "RGB"
            assert img.size == (4, 5)
            np.testing.assert_array_equal(np.asarray(img), image)

    def test_string_path(self, tmp_path):
        """Test the output path may be given as a string."""
        path = save_png(bytes(3), 1, 1, str(tmp_path / "pixel.png"))
        assert path.exists()

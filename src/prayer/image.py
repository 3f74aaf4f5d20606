"""PNG export of rendered RGB8 buffers.

Example:
    >>> from prayer.image import save_png
    >>> save_png(pixels, 320, 240, "render.png")
"""

from pathlib import Path

import numpy as np
import numpy.typing as npt
from PIL import Image as PILImage


def buffer_to_array(buffer: bytes | npt.ArrayLike, width: int, height: int) -> npt.NDArray[np.uint8]:
    """View a row-major RGB8 buffer as an image array.

    Args:
        buffer: Packed RGB bytes (top row first) or an array with as many
            elements.
        width: Image width in pixels.
        height: Image height in pixels.

    Returns:
        Array of shape (height, width, 3) with dtype uint8.

    Raises:
        ValueError: If the buffer length is not 3 * width * height.
    """
    if isinstance(buffer, (bytes, bytearray, memoryview)):
        flat = np.frombuffer(buffer, dtype=np.uint8)
    else:
        flat = np.asarray(buffer, dtype=np.uint8).reshape(-1)
    expected = 3 * width * height
    if flat.size != expected:
        raise ValueError(
            f"Buffer holds {flat.size} bytes, expected {expected} for {width}x{height} RGB"
        )
    return flat.reshape(height, width, 3)


def save_png(buffer: bytes | npt.ArrayLike, width: int, height: int, path: str | Path) -> Path:
    """Save a row-major RGB8 buffer as an 8-bit PNG file.

    Args:
        buffer: Packed RGB bytes as returned by prayer.render().
        width: Image width in pixels.
        height: Image height in pixels.
        path: Output file path.

    Returns:
        The path the image was written to.
    """
    path = Path(path)
    pil_image = PILImage.fromarray(buffer_to_array(buffer, width, height))
    pil_image.save(path, format="PNG")
    return path

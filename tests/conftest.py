"""
Pytest configuration for local imports and shared artwork fixtures.
"""

# Standard Library
import io
import os
import sys

# PIP3 modules
import PIL.Image
import pytest

#============================================


def _ensure_repo_on_path() -> None:
	"""
	Ensure the repository root is on sys.path.
	"""
	repo_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
	if repo_root not in sys.path:
		sys.path.insert(0, repo_root)


_ensure_repo_on_path()


#============================================
def make_png_bytes(width: int, height: int, color: tuple[int, int, int] = (200, 30, 30)) -> bytes:
	"""
	Encode a solid color PNG.

	Args:
		width: Pixel width.
		height: Pixel height.
		color: RGB fill.

	Returns:
		PNG payload.
	"""
	image = PIL.Image.new("RGB", (width, height), color)
	buffer = io.BytesIO()
	image.save(buffer, format="PNG")
	return buffer.getvalue()


@pytest.fixture
def artwork_png() -> bytes:
	# same aspect as a 3300x5100 print master, at a tenth of the size
	return make_png_bytes(330, 510)

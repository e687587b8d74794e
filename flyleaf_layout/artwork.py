"""
Artwork acquisition: decoding, fetching and the single-asset slot of a job.
"""

# Standard Library
import asyncio
import io
import mimetypes
import pathlib
import threading

# PIP3 modules
import PIL.Image
import requests

# local repo modules
import flyleaf_layout as fl
import flyleaf_layout.config
import flyleaf_layout.errors


ArtworkError = fl.errors.ArtworkError
ArtworkFormatError = fl.errors.ArtworkFormatError
ArtworkDecodeError = fl.errors.ArtworkDecodeError

MIN_IMAGE_WIDTH = fl.config.MIN_IMAGE_WIDTH
MIN_IMAGE_HEIGHT = fl.config.MIN_IMAGE_HEIGHT
IMAGE_MIME_PREFIX = fl.config.IMAGE_MIME_PREFIX
FETCH_TIMEOUT_SECONDS = fl.config.FETCH_TIMEOUT_SECONDS

FORMAT_MESSAGE = "Please upload a JPEG or PNG file."
DECODE_MESSAGE = "We couldn't read that file. Please try another image."
FETCH_MESSAGE = (
	"We couldn't load that artwork from the library. "
	"Please choose another image or upload your own."
)


class ArtworkAsset:
	"""
	Decoded artwork image with a reference-counted pixel handle.

	The slot holds one reference and every export snapshot retains another;
	the decoded image is closed when the last holder releases it.
	"""

	def __init__(self, image: PIL.Image.Image, name: str, mime_type: str, advisory: str | None = None):
		self._image = image
		self.name = name
		self.mime_type = mime_type
		self.advisory = advisory
		self.pixel_width, self.pixel_height = image.size
		self._refs = 1
		self._lock = threading.Lock()
		self.closed = False

	@property
	def image(self) -> PIL.Image.Image:
		if self.closed:
			raise ArtworkError(f"Artwork {self.name} has been released.")
		return self._image

	def retain(self) -> "ArtworkAsset":
		with self._lock:
			if self.closed:
				raise ArtworkError(f"Artwork {self.name} has been released.")
			self._refs += 1
		return self

	def release(self) -> None:
		with self._lock:
			if self.closed:
				return
			self._refs -= 1
			if self._refs > 0:
				return
			self.closed = True
		self._image.close()


#============================================
def resolution_advisory(width: int, height: int) -> str | None:
	"""
	Build the low-resolution advisory for an artwork size.

	Args:
		width: Pixel width.
		height: Pixel height.

	Returns:
		Advisory text, or None when the artwork is large enough.
	"""
	if width >= MIN_IMAGE_WIDTH and height >= MIN_IMAGE_HEIGHT:
		return None
	return (
		f"This artwork is below the recommended {MIN_IMAGE_WIDTH}x{MIN_IMAGE_HEIGHT} pixels "
		"(11x17\" at 300 DPI). It may print with lower quality."
	)


#============================================
def decode_artwork(data: bytes, name: str, mime_type: str | None = None) -> ArtworkAsset:
	"""
	Decode an image payload into an ArtworkAsset.

	Args:
		data: Raw payload bytes.
		name: Display name of the artwork.
		mime_type: Declared MIME type, if known.

	Returns:
		ArtworkAsset.

	Raises:
		ArtworkFormatError: When the payload is not an image.
		ArtworkDecodeError: When the image data is damaged.
	"""
	if mime_type and not mime_type.startswith(IMAGE_MIME_PREFIX):
		raise ArtworkFormatError(FORMAT_MESSAGE)
	try:
		image = PIL.Image.open(io.BytesIO(data))
	except PIL.UnidentifiedImageError:
		raise ArtworkFormatError(FORMAT_MESSAGE) from None
	try:
		image.load()
	except OSError as error:
		image.close()
		raise ArtworkDecodeError(DECODE_MESSAGE) from error
	detected = PIL.Image.MIME.get(image.format or "", mime_type or "image/*")
	width, height = image.size
	if width <= 0 or height <= 0:
		image.close()
		raise ArtworkDecodeError(DECODE_MESSAGE)
	return ArtworkAsset(image, name, detected, resolution_advisory(width, height))


#============================================
def fetch_artwork_bytes(reference: str, timeout: float = FETCH_TIMEOUT_SECONDS) -> tuple[bytes, str | None, str]:
	"""
	Fetch artwork bytes from a URL or a local path.

	Args:
		reference: http(s) URL or filesystem path.
		timeout: Request timeout in seconds.

	Returns:
		Tuple of (payload, mime_type, name).

	Raises:
		ArtworkFormatError: When the reference does not point to an image.
		ArtworkDecodeError: When the reference cannot be read.
	"""
	name = reference.rstrip("/").split("/")[-1] or "library-image"
	if reference.startswith(("http://", "https://")):
		try:
			response = requests.get(reference, timeout=timeout)
			response.raise_for_status()
		except requests.RequestException as error:
			raise ArtworkDecodeError(FETCH_MESSAGE) from error
		content_type = response.headers.get("Content-Type", "")
		mime_type = content_type.split(";", 1)[0].strip() or None
		if mime_type and not mime_type.startswith(IMAGE_MIME_PREFIX):
			raise ArtworkFormatError(FETCH_MESSAGE)
		return (response.content, mime_type, name)

	path = pathlib.Path(reference)
	try:
		data = path.read_bytes()
	except OSError as error:
		raise ArtworkDecodeError(DECODE_MESSAGE) from error
	mime_type, _encoding = mimetypes.guess_type(path.name)
	return (data, mime_type, path.name)


class ArtworkSlot:
	"""
	Holds the current artwork of a job and arbitrates in-flight loads.

	Every load takes a ticket; only the most recent ticket may commit, so a
	superseded decode is dropped (and its asset released) when it finishes.
	"""

	def __init__(self):
		self._asset: ArtworkAsset | None = None
		self._ticket = 0
		self._torn_down = False
		self.notice: str | None = None
		self.revision = 0

	@property
	def asset(self) -> ArtworkAsset | None:
		return self._asset

	def begin_request(self) -> int:
		self._ticket += 1
		return self._ticket

	def is_current(self, ticket: int) -> bool:
		return not self._torn_down and ticket == self._ticket

	def commit(self, ticket: int, asset: ArtworkAsset) -> bool:
		"""
		Install a decoded asset if its ticket is still current.

		Args:
			ticket: Ticket from begin_request.
			asset: Decoded asset.

		Returns:
			True when the asset replaced the current one.
		"""
		if not self.is_current(ticket):
			asset.release()
			return False
		previous = self._asset
		self._asset = asset
		self.notice = asset.advisory
		self.revision += 1
		if previous is not None:
			previous.release()
		return True

	def fail(self, ticket: int, message: str) -> None:
		if self.is_current(ticket):
			self.notice = message

	def teardown(self) -> None:
		self._torn_down = True
		self._ticket += 1
		if self._asset is not None:
			self._asset.release()
			self._asset = None
			self.revision += 1


#============================================
def load_artwork(slot: ArtworkSlot, data: bytes, name: str, mime_type: str | None = None) -> ArtworkAsset:
	"""
	Decode and install artwork synchronously.

	Args:
		slot: Artwork slot of the job.
		data: Payload bytes.
		name: Display name.
		mime_type: Declared MIME type.

	Returns:
		The installed asset.
	"""
	ticket = slot.begin_request()
	try:
		asset = decode_artwork(data, name, mime_type)
	except ArtworkError as error:
		slot.fail(ticket, str(error))
		raise
	slot.commit(ticket, asset)
	return asset


#============================================
def load_artwork_reference(slot: ArtworkSlot, reference: str) -> ArtworkAsset:
	"""
	Fetch artwork from a URL or a local path and install it synchronously.

	Args:
		slot: Artwork slot of the job.
		reference: http(s) URL or filesystem path.

	Returns:
		The installed asset.
	"""
	try:
		data, mime_type, name = fetch_artwork_bytes(reference)
	except ArtworkError as error:
		slot.fail(slot.begin_request(), str(error))
		raise
	return load_artwork(slot, data, name, mime_type)


#============================================
async def acquire_artwork(
	slot: ArtworkSlot,
	data: bytes,
	name: str,
	mime_type: str | None = None,
) -> ArtworkAsset | None:
	"""
	Decode artwork off the event loop and install it if still wanted.

	Args:
		slot: Artwork slot of the job.
		data: Payload bytes.
		name: Display name.
		mime_type: Declared MIME type.

	Returns:
		The installed asset, or None when a newer request superseded it.
	"""
	ticket = slot.begin_request()
	try:
		asset = await asyncio.to_thread(decode_artwork, data, name, mime_type)
	except ArtworkError as error:
		if not slot.is_current(ticket):
			return None
		slot.fail(ticket, str(error))
		raise
	if slot.commit(ticket, asset):
		return asset
	return None


#============================================
async def acquire_artwork_reference(slot: ArtworkSlot, reference: str) -> ArtworkAsset | None:
	"""
	Fetch and decode artwork from a catalog reference.

	Args:
		slot: Artwork slot of the job.
		reference: URL or path of the listing image.

	Returns:
		The installed asset, or None when superseded.
	"""
	ticket = slot.begin_request()
	slot.notice = None
	try:
		data, mime_type, name = await asyncio.to_thread(fetch_artwork_bytes, reference)
		asset = await asyncio.to_thread(decode_artwork, data, name, mime_type)
	except ArtworkError as error:
		if not slot.is_current(ticket):
			return None
		slot.fail(ticket, str(error))
		raise
	if slot.commit(ticket, asset):
		return asset
	return None

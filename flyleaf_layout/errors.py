"""
Exception types raised by the layout engine.
"""


class BookValidationError(ValueError):
	"""
	A book edit that would break a physical limit or the job size rules.
	"""


class ArtworkError(ValueError):
	"""
	Base error for artwork acquisition.
	"""


class ArtworkFormatError(ArtworkError):
	"""
	The payload is not an image.
	"""


class ArtworkDecodeError(ArtworkError):
	"""
	The payload could not be fetched or decoded.
	"""


class ExportError(RuntimeError):
	"""
	Proof export failed; nothing was written to the output path.
	"""


class ExportBusyError(ExportError):
	"""
	Another export is already running.
	"""

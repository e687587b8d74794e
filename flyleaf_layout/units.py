"""
Unit conversions between millimeters, screen pixels and print points.
"""

# local repo modules
import flyleaf_layout as fl
import flyleaf_layout.config


MM_TO_PX = fl.config.MM_TO_PX
MM_PER_INCH = fl.config.MM_PER_INCH
POINTS_PER_INCH = fl.config.POINTS_PER_INCH
MM_TO_POINTS = POINTS_PER_INCH / MM_PER_INCH


#============================================
def mm_to_px(value: float) -> float:
	"""
	Convert millimeters to screen pixels at the 96 DPI reference.

	Args:
		value: Millimeters.

	Returns:
		Pixels.
	"""
	return value * MM_TO_PX


#============================================
def mm_to_points(value: float) -> float:
	"""
	Convert millimeters to PDF points.

	Args:
		value: Millimeters.

	Returns:
		Points.
	"""
	return value * MM_TO_POINTS


#============================================
def inches_to_mm(value: float) -> float:
	"""
	Convert inches to millimeters.

	Args:
		value: Inches.

	Returns:
		Millimeters.
	"""
	return value * MM_PER_INCH


#============================================
def px_to_points(value: float) -> float:
	"""
	Convert screen pixels back to PDF points.

	Args:
		value: Pixels at the 96 DPI reference.

	Returns:
		Points.
	"""
	return value / MM_TO_PX * MM_TO_POINTS

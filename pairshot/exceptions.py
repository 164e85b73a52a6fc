class PairshotError(Exception):
    """Base exception for compositing pipeline errors."""
    pass


class DetectionFailedError(PairshotError):
    """Raised when no usable object is found in one of the images."""
    pass


class ModelNotInitializedError(PairshotError):
    """Raised when a job arrives before the detector has been loaded."""
    pass


class InvalidImageBufferError(PairshotError, ValueError):
    """Raised when a raw RGBA buffer does not match its declared size."""
    pass

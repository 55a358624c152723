class BackdropError(Exception):
    """Base class for pipeline errors."""

    kind = "BackdropError"


class CameraAccessError(BackdropError):
    kind = "CameraAccessError"


class AlreadyActiveError(BackdropError):
    kind = "AlreadyActive"


class ModelLoadError(BackdropError):
    kind = "ModelLoadError"


class InferenceError(BackdropError):
    kind = "InferenceError"


class EngineBusyError(InferenceError):
    """Raised when infer() is called while a previous call is outstanding."""


class EncodingError(BackdropError):
    kind = "EncodingError"


class ImageDecodeError(BackdropError):
    kind = "ImageDecodeError"


class InvalidTransitionError(BackdropError):
    kind = "InvalidTransition"

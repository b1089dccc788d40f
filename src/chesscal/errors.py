"""
Session failures.

Every failure is terminal for the session. The CLI maps them to exit codes;
library code only raises.
"""


class CalibrationSessionError(Exception):
    """Base class for validated precondition failures."""

    exit_code = 1


class InvalidArguments(CalibrationSessionError):
    exit_code = -1


class InputDirectoryNotFound(CalibrationSessionError):
    pass


class UnknownCameraModel(CalibrationSessionError):
    pass


class NoImagesFound(CalibrationSessionError):
    pass


class PairCountMismatch(CalibrationSessionError):
    pass


class StereoPairMismatch(CalibrationSessionError):
    pass


class InsufficientSamples(CalibrationSessionError):
    pass

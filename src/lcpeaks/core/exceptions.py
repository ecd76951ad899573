"""lcpeaks core exceptions."""


class ConfigurationError(ValueError):
    """Base exception for invalid processing parameters. Fails the slice where it is raised."""


class InvalidParameterError(ConfigurationError):
    """Exception raised when a numeric parameter is used with an invalid value."""


class InvalidSliceError(ConfigurationError):
    """Exception raised when a slice has an inverted or negative m/z or retention time window."""


class SampleDataError(ValueError):
    """Exception raised when sample data cannot be read for a slice."""


class SampleNotFound(ValueError):
    """Exception raised when a sample is not found in the detector."""


class RepeatedIdError(ValueError):
    """Exception raised when trying to add a resource with an existing id."""


class RepeatedSampleError(ValueError):
    """Exception raised when adding a second peak from the same sample to a peak group."""


class AlignmentError(ValueError):
    """Exception raised when a retention time correction cannot be applied."""

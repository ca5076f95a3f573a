class ConversionError(ValueError):
    """Fatal for the whole conversion request."""


class FormatError(ConversionError):
    """The transaction export could not be decoded as any supported container."""


class ReferenceDataError(ConversionError):
    """The chart-of-accounts file could not be read."""

class ConversionError(Exception):
    """Base class for errors raised while converting images to .wrt text"""


class InvalidInput(ConversionError, ValueError):
    """Encoder called with something other than a text string"""


class MissingContent(ConversionError):
    """Download requested without any text"""


class InvalidImage(ConversionError):
    """Upload is not a readable image of an accepted type"""


class UpstreamFailure(ConversionError):
    """Upload service or agent reported success=false"""


class EncodingFailure(ConversionError):
    """Unexpected failure while building the download bytes"""

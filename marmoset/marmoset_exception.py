# -*- encoding: utf-8 -*-


class MarmosetException(Exception):
    """Base exception class for all errors raised by Marmoset.

    Attributes:
        http_status (int): the HTTP status that should be sent with the
            response when this error reaches the web layer.
    """
    http_status = 500

    def __init__(self, message='', http_status=None):
        super(MarmosetException, self).__init__(message)
        self.message = message
        if http_status is not None:
            self.http_status = http_status


class SyntaxException(MarmosetException):
    """The request does not match the IIIF URI syntax."""
    http_status = 400


class RequestException(MarmosetException):
    """The request is well formed, but can't be satisfied for this image."""
    http_status = 400


class UnsupportedFeatureException(MarmosetException):
    """The request uses a feature the server does not advertise."""
    http_status = 501


class ResourceNotFoundException(MarmosetException):
    http_status = 404


class DecodeException(MarmosetException):
    pass


class EncodeException(MarmosetException):
    pass


class InternalException(MarmosetException):
    pass


class ConfigError(MarmosetException):
    """Raised for errors in the user config."""
    pass

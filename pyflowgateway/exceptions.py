class PyFlowGatewayError(Exception):
    pass


class TransportError(PyFlowGatewayError):
    """Request to the gateway failed: network error, timeout, non-2xx or bad JSON."""

    def __init__(self, message, status_code=None, api=None):
        super().__init__(message)
        self.status_code = status_code
        self.api = api


class InvalidConfigurationParameter(PyFlowGatewayError, ValueError):
    pass

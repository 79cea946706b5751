"""
Error taxonomy for upstream fetches
"""


class UpstreamUnavailableError(Exception):
    """Upstream returned a non-2xx status or could not be reached"""

    def __init__(self, source, message, status_code=None):
        self.source = source
        self.status_code = status_code
        super().__init__(f"{source}: {message}")


class MalformedResponseError(Exception):
    """Upstream answered but the payload could not be parsed"""

    def __init__(self, source, message):
        self.source = source
        super().__init__(f"{source}: {message}")

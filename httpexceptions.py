class MalformedHttpRequest(Exception):
    """
    Raised when the client sends a request that is not well formed
    """

class MalformedRequestLine(MalformedHttpRequest):
    """
    Raised when the request line does not hold a method token and a target separated by single spaces
    """

class MalformedHeader(MalformedHttpRequest):
    """
    Raised when a header line has no colon, an invalid name, or is a continuation line with nothing to continue
    """

class MalformedMultipartBody(MalformedHttpRequest):
    """
    Raised when a multipart body cannot be split into parts
    """

class MissingMultipartBoundary(MalformedMultipartBody):
    """
    Raised when the boundary is empty or never appears in the body as a delimiter line
    """

class MalformedMultipartSegment(MalformedMultipartBody):
    """
    Raised when a part lacks the blank line between its headers and payload, or the body ends before the closing delimiter
    """

class SerializationFailure(Exception):
    """
    Raised when a response object cannot be turned into a JSON body
    """

class WriteFailure(Exception):
    """
    Raised when the response could not be written completely to the connection
    """

class UnexpectedConnectionClose(WriteFailure):
    """
    Raised when the client closes the connection while the server is still writing the response
    """

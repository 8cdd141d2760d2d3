import pytest


class FakeConnection:

    def __init__(self, error: Exception = None):

        self.sent = bytearray()
        self.error = error

        return

    def sendall(self, data: bytes):

        if self.error is not None:
            raise self.error
        self.sent.extend(data)


@pytest.fixture
def connection():
    return FakeConnection()


@pytest.fixture
def broken_connection():

    def make(error: Exception) -> FakeConnection:
        return FakeConnection(error)

    return make

import logging

NAME = "voice-server"
VERSION = "1.4.24"
SERVER_HEADER = f"{NAME}/{VERSION}"

HTTP_VERSION = "HTTP/1.1"

# Header bytes map one to one onto latin-1 code points, so nothing is lost on decode
HEADER_ENCODING = "iso-8859-1"
BODY_ENCODING = "utf-8"

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def configure_logging(level = logging.INFO) -> logging.Logger:

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT
    )

    # basicConfig does nothing once the root logger has handlers
    root = logging.getLogger()
    root.setLevel(level)

    return root

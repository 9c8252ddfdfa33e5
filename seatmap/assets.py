import io
import logging
from pathlib import Path

import requests
from reportlab.lib.utils import ImageReader

from seatmap import config


class PhotoResolver:
    """
    Resolve a student photo reference to a reportlab ``ImageReader``.

    http(s) references are downloaded with a timeout; anything else is a
    storage path relative to ``photo_dir``. Raises if the photo cannot be
    fetched, is missing, or cannot be decoded.
    """

    def __init__(self, photo_dir=None, timeout=None):
        self.logger = logging.getLogger(__name__)
        self.photo_dir = Path(photo_dir or config.PHOTO_DIR)
        self.timeout = timeout if timeout is not None else config.PHOTO_TIMEOUT

    def path_for(self, photo_ref):
        path = (self.photo_dir / photo_ref).resolve()
        if self.photo_dir.resolve() not in path.parents:
            raise ValueError(f"Photo reference {photo_ref!r} points outside the photo directory")
        return path

    def fetch(self, url):
        response = requests.get(url, timeout=self.timeout)
        response.raise_for_status()
        return io.BytesIO(response.content)

    def __call__(self, photo_ref):
        if photo_ref.startswith(("http://", "https://")):
            source = self.fetch(photo_ref)
        else:
            path = self.path_for(photo_ref)
            if not path.is_file():
                raise FileNotFoundError(f"No photo at {path}")
            source = str(path)

        reader = ImageReader(source)
        # forces the header to be decoded so broken files fail here
        reader.getSize()
        self.logger.debug(f"Resolved photo {photo_ref!r}")
        return reader

"""Profile picture storage."""

from __future__ import annotations

import secrets
import time
from pathlib import Path
from typing import Optional

from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from . import config


def save_profile_picture(
    upload: Optional[FileStorage],
    uploads_dir: Path = config.UPLOADS_DIR,
) -> str:
    """Store ``upload`` under ``uploads_dir`` and return its public path.

    Files are renamed to a millisecond timestamp, a random token and the
    original extension, and opened with exclusive create so concurrent
    uploads never overwrite each other. Returns an empty string when no
    file was sent.
    """

    if upload is None or not upload.filename:
        return ""

    suffix = Path(secure_filename(upload.filename)).suffix.lower()
    while True:
        filename = f"{int(time.time() * 1000)}-{secrets.token_hex(4)}{suffix}"
        try:
            with open(Path(uploads_dir) / filename, "xb") as target:
                upload.save(target)
        except FileExistsError:
            continue
        return f"{config.UPLOADS_URL_PREFIX}/{filename}"

"""
Zip containers (EPUB, ODT) and atomic output writes.

Entries keep their insertion order. A "mimetype" entry is written first
and stored uncompressed, as both EPUB and ODF readers require. Nothing is
written at the destination until the whole artifact is complete: data goes
to a temporary file next to it, then replaces it in one step.
"""

import os
import tempfile
import zipfile


class Container:
    """Ordered set of named entries destined for a zip file."""

    def __init__(self, mimetype=None):
        self._entries = []
        if mimetype:
            self.add("mimetype", mimetype, compress=False)

    def add(self, name, data, compress=True):
        if isinstance(data, str):
            data = data.encode("utf-8")
        if name in self:
            raise ValueError(f"duplicate container entry: {name}")
        self._entries.append((name, data, compress))

    def names(self):
        return [name for name, _, _ in self._entries]

    def read(self, name):
        for entry, data, _ in self._entries:
            if entry == name:
                return data
        raise KeyError(name)

    def __contains__(self, name):
        return any(entry == name for entry, _, _ in self._entries)

    def __len__(self):
        return len(self._entries)

    def write(self, path):
        """Write the zip atomically to `path`."""
        entries = sorted(self._entries, key=lambda e: e[0] != "mimetype")

        def write_zip(f):
            with zipfile.ZipFile(f, "w", zipfile.ZIP_DEFLATED) as zout:
                for name, data, compress in entries:
                    info = zipfile.ZipInfo(name, date_time=(1980, 1, 1, 0, 0, 0))
                    info.compress_type = zipfile.ZIP_DEFLATED if compress else zipfile.ZIP_STORED
                    info.external_attr = 0o644 << 16
                    zout.writestr(info, data)

        write_atomic(path, write_zip)


def write_atomic(path, write):
    """
    Call `write(fileobj)` on a temporary file, then move it to `path`.

    On any failure the temporary file is removed and `path` is untouched.
    """
    directory = os.path.dirname(os.path.abspath(path))
    os.makedirs(directory, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(prefix=".bookpress_", dir=directory)
    try:
        with os.fdopen(fd, "wb") as f:
            write(f)
        os.chmod(tmp_path, 0o644)
        os.replace(tmp_path, path)
    except BaseException:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise


def write_text_atomic(path, text):
    write_atomic(path, lambda f: f.write(text.encode("utf-8")))

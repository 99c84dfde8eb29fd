"""
Shared credentials file model for mfasession.

The AWS shared credentials file is an INI file made of ``[profile]`` sections
holding ``key = value`` pairs. CredentialStore keeps those sections in file
order so a read-modify-write cycle only changes the keys that were explicitly
set, and every other profile survives untouched. Comments are not preserved.
"""

import configparser
import io
import logging
import os
import tempfile
from pathlib import Path

from .exceptions import PersistenceError

log = logging.getLogger(__name__)

# configparser treats [DEFAULT] specially; credentials files do not.
_NO_DEFAULT_SECTION = "__mfasession_no_default__"


def _new_parser():
    parser = configparser.ConfigParser(
        interpolation=None,
        strict=False,
        default_section=_NO_DEFAULT_SECTION,
    )
    # Preserve case sensitivity for AWS credentials
    parser.optionxform = str
    return parser


class CredentialStore:
    """Ordered mapping of section name to an ordered mapping of key to value."""

    def __init__(self, sections=None):
        self._sections = {}
        for name, fields in (sections or {}).items():
            self._sections[name] = {key: str(value) for key, value in fields.items()}

    def __contains__(self, name):
        return name in self._sections

    def __getitem__(self, name):
        return self._sections[name]

    def __iter__(self):
        return iter(self._sections)

    def __len__(self):
        return len(self._sections)

    def __eq__(self, other):
        if not isinstance(other, CredentialStore):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self):
        return f"CredentialStore({list(self._sections)!r})"

    def sections(self):
        """Return section names in file order."""
        return list(self._sections)

    def setdefault(self, name):
        """Return section ``name``, creating it empty at the end if missing."""
        return self._sections.setdefault(name, {})

    def to_dict(self):
        return {name: dict(fields) for name, fields in self._sections.items()}


def parse(text):
    """
    Parse credentials file text into a CredentialStore.

    Raises:
        configparser.Error: If the text is not valid INI
    """
    parser = _new_parser()
    parser.read_string(text)
    return CredentialStore(
        {
            section: {key: parser.get(section, key) for key in parser.options(section)}
            for section in parser.sections()
        }
    )


def serialize(store):
    """Render a CredentialStore as INI text readable by botocore and the AWS CLI."""
    parser = _new_parser()
    parser.read_dict(store.to_dict())
    buffer = io.StringIO()
    parser.write(buffer)
    return buffer.getvalue()


def load(path):
    """
    Read the credentials file at ``path``.

    A missing, unreadable or unparsable file yields an empty store: it is
    treated the same as having no prior credentials file.

    Args:
        path: Path to the credentials file

    Returns:
        CredentialStore
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    except FileNotFoundError:
        log.debug("Credentials file %s does not exist, starting empty", path)
        return CredentialStore()
    except (OSError, UnicodeDecodeError) as e:
        log.warning("Cannot read credentials file %s, starting empty: %s", path, e)
        return CredentialStore()

    try:
        store = parse(text)
    except configparser.Error as e:
        log.warning("Cannot parse credentials file %s, starting empty: %s", path, e)
        return CredentialStore()

    log.debug("Loaded %d profile(s) from %s", len(store), path)
    return store


def upsert_section(store, name, fields):
    """
    Set ``fields`` on section ``name``, creating the section if needed.

    Keys not named in ``fields`` and all other sections are left as they are.
    """
    section = store.setdefault(name)
    for key, value in fields.items():
        section[key] = str(value)
    return section


def save(store, path):
    """
    Write ``store`` to ``path`` atomically with 0600 permissions.

    The store is written to a temporary file in the target directory and
    renamed over ``path``, so readers see either the old or the new file.
    A symlinked ``path`` is resolved first so the link target is updated.

    Raises:
        PersistenceError: If the directory cannot be created or the file
            cannot be written
    """
    path = os.path.realpath(path)
    directory = os.path.dirname(path)
    try:
        Path(directory).mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise PersistenceError(f"Cannot create directory {directory}", e.strerror or str(e)) from e

    content = serialize(store)

    # mkstemp creates the file with 0600, so credentials are never world-readable
    try:
        fd, tmp_path = tempfile.mkstemp(prefix=".credentials-", dir=directory)
    except OSError as e:
        raise PersistenceError(f"Cannot write to {directory}", e.strerror or str(e)) from e

    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
    except OSError as e:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise PersistenceError(f"Cannot write credentials file {path}", e.strerror or str(e)) from e

    log.debug("Wrote %d profile(s) to %s", len(store), path)

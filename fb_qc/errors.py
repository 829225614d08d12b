"""Exceptions raised while loading inputs or reading FastQ pairs"""


class LoadError(ValueError):
    """A reference panel or whitelist could not be loaded."""


class FormatError(ValueError):
    """A read pair is malformed or the two read files are out of sync.

    Args:
        message (str): What went wrong
        path (str): File holding the offending record
        record_index (int): 0-based index of the record pair
    """

    def __init__(self, message: str, path=None, record_index=None):
        self.path = path
        self.record_index = record_index
        if path is not None:
            message = f"{message} (file: {path}, record: {record_index})"
        super().__init__(message)

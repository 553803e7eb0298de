import os
import tempfile
import typing as t
from collections.abc import Iterator
from contextlib import contextmanager


def write_jsonl_file(file_path: str, data: t.Iterable[str]) -> None:
    """Write a list of strings-represented JSON objects to a JSONL file

    Args:
        file_path (str): The path to the file to write
        data (Iterable[str]): The data to write
    """
    with open(file_path, "w", encoding="utf-8") as f:
        f.write("\n".join(data))


@contextmanager
def temporary_jsonl_file(data: t.Iterable[str], prefix: str = "batch-") -> Iterator[str]:
    """Write JSONL lines to a temporary file and remove it on exit

    Args:
        data (Iterable[str]): The strings-represented JSON objects to write
        prefix (str): The temporary file name prefix

    Yields:
        str: The path of the temporary file
    """
    fd, file_path = tempfile.mkstemp(prefix=prefix, suffix=".jsonl")
    os.close(fd)
    try:
        write_jsonl_file(file_path=file_path, data=data)
        yield file_path
    finally:
        if os.path.exists(file_path):
            os.remove(file_path)

"""Form body parsing: URL-encoded and multipart.

URL-encoded forms use stdlib ``urllib.parse``; multipart bodies are
parsed with ``python-multipart``.
"""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Any
from urllib.parse import parse_qs

from python_multipart.multipart import MultipartParser, parse_options_header


@dataclass(frozen=True, slots=True)
class UploadFile:
    """An uploaded file from a multipart form submission.

    The content is held in memory, which suits typical web uploads.
    """

    filename: str
    content_type: str
    size: int
    _content: bytes

    async def read(self) -> bytes:
        return self._content

    def __repr__(self) -> str:
        return f"UploadFile({self.filename!r}, {self.content_type!r}, {self.size} bytes)"


class FormData(Mapping[str, str]):
    """Immutable parsed form data.

    ``__getitem__`` returns the first value for a key (string fields only),
    ``get_list`` returns all values, ``files`` maps field names to uploads.

    Usage::

        form = request.parsed_body
        username = form["username"]
        avatar = form.files.get("avatar")
    """

    __slots__ = ("_data", "_files")

    def __init__(
        self,
        data: dict[str, list[str]],
        files: dict[str, UploadFile] | None = None,
    ) -> None:
        object.__setattr__(self, "_data", data)
        object.__setattr__(self, "_files", files or {})

    @property
    def files(self) -> Mapping[str, UploadFile]:
        return self._files

    def __getitem__(self, key: str) -> str:
        return self._data[key][0]

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        items = ", ".join(f"{k!r}: {self[k]!r}" for k in self)
        return f"FormData({{{items}}})"

    def get(self, key: str, default: str | None = None) -> str | None:  # type: ignore[override]
        values = self._data.get(key)
        if values:
            return values[0]
        return default

    def get_list(self, key: str) -> list[str]:
        """Return all values for *key* (checkboxes, multi-selects)."""
        return list(self._data.get(key, []))


def is_form_content_type(content_type: str | None) -> bool:
    """True for the two form encodings ``parse_form_data`` understands."""
    if not content_type:
        return False
    media = content_type.lower().split(";")[0].strip()
    return media in ("application/x-www-form-urlencoded", "multipart/form-data")


def parse_form_data(body: bytes, content_type: str) -> FormData:
    """Parse a form body into FormData.

    Raises:
        ValueError: If the content type is not a form encoding, or a
            multipart body has no boundary.
    """
    media = content_type.lower().split(";")[0].strip()

    if media == "application/x-www-form-urlencoded":
        return FormData(parse_qs(body.decode("utf-8"), keep_blank_values=True))

    if media == "multipart/form-data":
        return _parse_multipart(body, content_type)

    msg = f"Unsupported form content type: {content_type!r}"
    raise ValueError(msg)


def _parse_multipart(body: bytes, content_type: str) -> FormData:
    _, options = parse_options_header(content_type.encode("latin-1"))
    boundary = options.get(b"boundary")
    if boundary is None:
        msg = "Multipart form data missing boundary parameter"
        raise ValueError(msg)

    data: dict[str, list[str]] = {}
    files: dict[str, UploadFile] = {}

    current_headers: dict[str, str] = {}
    current_data = bytearray()
    current_field_name: str | None = None
    current_filename: str | None = None
    pending_header = ""

    def on_part_begin() -> None:
        nonlocal current_headers, current_data, current_field_name, current_filename
        current_headers = {}
        current_data = bytearray()
        current_field_name = None
        current_filename = None

    def on_part_data(chunk: bytes, start: int, end: int) -> None:
        current_data.extend(chunk[start:end])

    def on_part_end() -> None:
        if current_field_name is None:
            return
        if current_filename is not None:
            content = bytes(current_data)
            files[current_field_name] = UploadFile(
                filename=current_filename,
                content_type=current_headers.get("content-type", "application/octet-stream"),
                size=len(content),
                _content=content,
            )
        else:
            value = current_data.decode("utf-8", errors="replace")
            data.setdefault(current_field_name, []).append(value)

    def on_header_field(chunk: bytes, start: int, end: int) -> None:
        nonlocal pending_header
        pending_header = chunk[start:end].decode("latin-1").lower()

    def on_header_value(chunk: bytes, start: int, end: int) -> None:
        nonlocal current_field_name, current_filename
        value = chunk[start:end].decode("latin-1")
        current_headers[pending_header] = value
        if pending_header == "content-disposition":
            _, params = parse_options_header(value.encode("latin-1"))
            name = params.get(b"name")
            if name is not None:
                current_field_name = name.decode("utf-8")
            fname = params.get(b"filename")
            if fname is not None:
                current_filename = fname.decode("utf-8")

    callbacks: dict[str, Any] = {
        "on_part_begin": on_part_begin,
        "on_part_data": on_part_data,
        "on_part_end": on_part_end,
        "on_header_field": on_header_field,
        "on_header_value": on_header_value,
    }

    parser = MultipartParser(boundary, callbacks)
    parser.write(body)
    parser.finalize()

    return FormData(data, files)

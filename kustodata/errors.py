"""Error types shared by every Kusto operation.

An error carries the operation that was running (:class:`Op`), a
classification (:class:`Kind`) and the underlying cause.  Errors can be
nested with :func:`wrap`, and :func:`retry` decides whether an operation that
failed with a given error may be attempted again.
"""

from __future__ import annotations

import json
from enum import IntEnum
from typing import Any, BinaryIO, Iterator

SEPARATOR = ":\n\t"
"""String placed between nested errors when they are rendered."""


class Op(IntEnum):
    """The operation that was being performed when an error occurred."""

    UNKNOWN = 0
    QUERY = 1
    MGMT = 2
    SERV_CONN = 3
    INGEST_STREAM = 4
    FILE_INGEST = 5
    CLOUD_INFO = 6
    TOKEN_PROVIDER = 7
    TABLE_ACCESS = 8

    def __str__(self) -> str:
        return _OP_LABELS.get(self, f"Op({int(self)})")


_OP_LABELS = {
    Op.UNKNOWN: "OpUnknown",
    Op.QUERY: "OpQuery",
    Op.MGMT: "OpMgmt",
    Op.SERV_CONN: "OpServConn",
    Op.INGEST_STREAM: "OpIngestStream",
    Op.FILE_INGEST: "OpFileIngest",
}


class Kind(IntEnum):
    """Classifies an error as one of a set of standard conditions."""

    OTHER = 0
    IO = 1
    INTERNAL = 2
    DB_NOT_EXIST = 3
    TIMEOUT = 4
    LIMITS_EXCEEDED = 5
    CLIENT_ARGS = 6
    HTTP_ERROR = 7
    BLOBSTORE = 8
    LOCAL_FILE_SYSTEM = 9
    WRONG_TABLE_KIND = 10
    WRONG_COLUMN_TYPE = 11
    FAILED_TO_PARSE = 12

    def __str__(self) -> str:
        return _KIND_LABELS.get(self, f"Kind({int(self)})")


_KIND_LABELS = {
    Kind.OTHER: "KOther",
    Kind.IO: "KIO",
    Kind.INTERNAL: "KInternal",
    Kind.DB_NOT_EXIST: "KDBNotExist",
    Kind.TIMEOUT: "KTimeout",
    Kind.LIMITS_EXCEEDED: "KLimitsExceeded",
    Kind.CLIENT_ARGS: "KClientArgs",
    Kind.HTTP_ERROR: "KHTTPError",
    Kind.BLOBSTORE: "KBlobstore",
    Kind.LOCAL_FILE_SYSTEM: "KLocalFileSystem",
    Kind.WRONG_TABLE_KIND: "KWrongTableKind",
    Kind.WRONG_COLUMN_TYPE: "KWrongColumnType",
    Kind.FAILED_TO_PARSE: "KFailedToParse",
}

_NEVER_RETRY = frozenset(
    {
        Kind.OTHER,
        Kind.IO,
        Kind.INTERNAL,
        Kind.DB_NOT_EXIST,
        Kind.LIMITS_EXCEEDED,
        Kind.CLIENT_ARGS,
        Kind.LOCAL_FILE_SYSTEM,
    }
)


class KustoError(Exception):
    """The core error of the package."""

    def __init__(
        self,
        op: Op = Op.UNKNOWN,
        kind: Kind = Kind.OTHER,
        err: BaseException | None = None,
        *,
        rest_body: bytes = b"",
        inner: KustoError | None = None,
        permanent: bool = False,
    ) -> None:
        super().__init__()
        self.op = Op(op)
        self.kind = Kind(kind)
        self.err = err
        self._rest_body = rest_body
        self._decoded: dict[str, Any] | None = None
        self._permanent = permanent
        self._inner = inner
        if err is not None:
            self.__cause__ = err

    @property
    def inner(self) -> KustoError | None:
        """The nested error set by :func:`wrap`, if any."""
        return self._inner

    @property
    def permanent(self) -> bool:
        """Whether the error has been marked as never retryable."""
        return self._permanent

    def unmarshal_rest(self) -> dict[str, Any] | None:
        """Decode the JSON body of a REST error, or return None if it is not JSON."""
        if self._decoded is not None:
            return self._decoded
        try:
            decoded = json.loads(self._rest_body)
        except (ValueError, TypeError):
            return None
        if not isinstance(decoded, dict):
            return None
        error = decoded.get("error")
        if isinstance(error, dict):
            flag = error.get("@permanent")
            if isinstance(flag, bool):
                self._permanent = flag
        self._decoded = decoded
        return decoded

    def set_no_retry(self) -> KustoError:
        """Mark the error so that :func:`retry` always returns False."""
        self._permanent = True
        return self

    def unwrap(self) -> BaseException | None:
        """Return the nested error, or the underlying cause if nothing is nested."""
        if self._inner is None:
            return self.err
        return self._inner

    def __str__(self) -> str:
        parts: list[str] = []
        if self.op != Op.UNKNOWN:
            parts.append(f"Op({self.op!s})")
        if self.kind != Kind.OTHER:
            parts.append(f"Kind({self.kind!s})")
        if self.err is not None:
            parts.append(str(self.err))
        text = ": ".join(parts)
        inner = self._inner
        while inner is not None:
            message = str(inner.err) if inner.err is not None else str(inner)
            text = text + SEPARATOR + message if text else message
            inner = inner._inner
        return text or "no error"


class HttpError(KustoError):
    """A :class:`KustoError` raised for a non-success HTTP response."""

    def __init__(
        self,
        op: Op = Op.UNKNOWN,
        kind: Kind = Kind.HTTP_ERROR,
        err: BaseException | None = None,
        *,
        status_code: int = 0,
        rest_body: bytes = b"",
        inner: KustoError | None = None,
        permanent: bool = False,
    ) -> None:
        super().__init__(
            op, kind, err, rest_body=rest_body, inner=inner, permanent=permanent
        )
        self.status_code = status_code

    def is_throttled(self) -> bool:
        """True when the server answered 429 Too Many Requests."""
        return self.status_code == 429


class CombinedError(Exception):
    """Several distinct errors reported together."""

    def __init__(self, errors: list[BaseException] | None = None) -> None:
        super().__init__()
        self.errors: list[BaseException] = list(errors or [])

    def __str__(self) -> str:
        return "".join(f"'{error}';" for error in self.errors)

    def add_error(self, error: BaseException | None) -> bool:
        """Add an error unless one with the same message is already held."""
        if error is None:
            return False
        if isinstance(error, CombinedError):
            for nested in error.errors:
                if self.add_error(nested):
                    return True
            return False
        message = str(error)
        if any(str(existing) == message for existing in self.errors):
            return False
        self.errors.append(error)
        return True

    def unwrap(self) -> BaseException | None:
        """None when empty, the single error when one is held, else self."""
        if not self.errors:
            return None
        if len(self.errors) == 1:
            return self.errors[0]
        return self


def _chain(err: BaseException | None) -> Iterator[BaseException]:
    seen: set[int] = set()
    while err is not None and id(err) not in seen:
        seen.add(id(err))
        yield err
        if isinstance(err, (KustoError, CombinedError)):
            nxt = err.unwrap()
        else:
            nxt = err.__cause__
        err = nxt


def _find_kusto_error(err: BaseException | None) -> KustoError | None:
    return next((e for e in _chain(err) if isinstance(e, KustoError)), None)


def retry(err: BaseException | None) -> bool:
    """Decide whether the failed action may be retried."""
    found = _find_kusto_error(err)
    if found is None:
        return False
    if found.permanent:
        return False
    if found.kind in _NEVER_RETRY:
        return False
    if found.kind == Kind.HTTP_ERROR:
        if found.unmarshal_rest() is not None and found.permanent:
            return False
    if found.inner is not None:
        return retry(found.inner)
    return True


def new_error(op: Op, kind: Kind, err: BaseException | None) -> KustoError:
    """Build a :class:`KustoError` around another error.

    When ``err`` is itself a :class:`KustoError`, its cause is taken over and
    its own op and kind are dropped.
    """
    if err is None:
        raise ValueError("cannot pass a None error")
    if isinstance(err, KustoError):
        return KustoError(op, kind, err.err)
    return KustoError(op, kind, err)


def new_error_string(op: Op, kind: Kind, message: str, *args: Any) -> KustoError:
    """Build a :class:`KustoError` from a %-style message and its arguments."""
    text = message % args if args else message
    if not text.strip():
        raise ValueError("an error cannot have an empty message")
    return KustoError(op, kind, Exception(text))


def from_http(
    op: Op, status: str, status_code: int, body: BinaryIO, prefix: str
) -> HttpError:
    """Build an :class:`HttpError` from a response status and body stream.

    The body is read fully and closed.
    """
    try:
        try:
            body_bytes = body.read()
        except OSError as exc:
            body_bytes = f"Failed to read body: {exc}".encode()
    finally:
        try:
            body.close()
        except OSError:
            pass
    text = body_bytes.decode("utf-8", errors="replace")
    error = HttpError(
        op,
        Kind.HTTP_ERROR,
        Exception(f"{prefix}({status}):\n{text}"),
        status_code=status_code,
        rest_body=body_bytes,
    )
    error.unmarshal_rest()
    return error


def wrap(inner: BaseException, outer: BaseException) -> KustoError:
    """Nest ``inner`` inside ``outer``; both must be :class:`KustoError`."""
    if not isinstance(outer, KustoError):
        raise TypeError("outer error must be a KustoError")
    if not isinstance(inner, KustoError):
        raise TypeError("inner error must be a KustoError")
    outer._inner = inner
    outer.__cause__ = inner
    return outer


def get_kusto_error(err: BaseException | None) -> KustoError | None:
    """Return ``err`` if it is a :class:`KustoError`, otherwise None."""
    if isinstance(err, KustoError):
        return err
    return None


def combine_errors(*args: BaseException | None) -> BaseException | None:
    """Merge errors, dropping None and duplicates by message."""
    combined = CombinedError()
    for error in args:
        combined.add_error(error)
    return combined.unwrap()
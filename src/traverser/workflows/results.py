"""Traversal result lattice.

Every traversal produces one immutable result object. Results are refined
step by step by enhancers: a bare :class:`SuccessfulTraversal` becomes
:class:`TraversalContent`, which may become :class:`TraversalTextContent`,
and so on. Each variant declares an explicit :class:`ResultKind`; membership
predicates consult a capability table keyed by that kind, so a text result
also answers ``True`` to :func:`is_traversal_content`.

Enhancers never mutate a result. They either return their input or build a
new object from it with :func:`extend` (plain refinement) or
:func:`transform` (refinement that records provenance).
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field, fields
from typing import (
    TYPE_CHECKING,
    Any,
    ClassVar,
    Dict,
    FrozenSet,
    List,
    Mapping,
    Optional,
    Protocol,
    Type,
    Tuple,
    TypeVar,
)

from ..core.keys import (
    K_CONTENT_DISPOSITION,
    K_CONTENT_TYPE,
    K_ERROR,
    K_IS_HTML,
    K_KIND,
    K_LABEL,
    K_POSITION,
    K_REDIRECT_URL,
    K_REDIRECTED,
    K_REMARKS,
    K_REQUEST,
    K_STATUS,
    K_TERMINAL_URL,
    K_TEXT_LENGTH,
    K_TRANSFORMED_FROM,
)

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .transport import HttpResponse


class ByteSink(Protocol):
    def write(self, data: bytes) -> Optional[int]: ...


class ResultKind(str, enum.Enum):
    UNSUCCESSFUL = "unsuccessful"
    SUCCESSFUL = "successful"
    INVALID_HTTP_STATUS = "invalid_http_status"
    CONTENT = "content"
    STRUCTURED_CONTENT = "structured_content"
    TEXT_CONTENT = "text_content"
    CONTENT_REDIRECT = "content_redirect"
    DOWNLOAD = "download"


_K = ResultKind

# kind -> every kind it satisfies (itself included)
CAPABILITIES: Dict[ResultKind, FrozenSet[ResultKind]] = {
    _K.UNSUCCESSFUL: frozenset({_K.UNSUCCESSFUL}),
    _K.SUCCESSFUL: frozenset({_K.SUCCESSFUL}),
    _K.INVALID_HTTP_STATUS: frozenset({_K.SUCCESSFUL, _K.INVALID_HTTP_STATUS}),
    _K.CONTENT: frozenset({_K.SUCCESSFUL, _K.CONTENT}),
    _K.STRUCTURED_CONTENT: frozenset({_K.SUCCESSFUL, _K.CONTENT, _K.STRUCTURED_CONTENT}),
    _K.TEXT_CONTENT: frozenset({_K.SUCCESSFUL, _K.CONTENT, _K.TEXT_CONTENT}),
    _K.CONTENT_REDIRECT: frozenset({_K.CONTENT_REDIRECT}),
    _K.DOWNLOAD: frozenset({_K.SUCCESSFUL, _K.CONTENT, _K.DOWNLOAD}),
}


@dataclass(frozen=True)
class Provenance:
    """Link from a transformed result back to the result it was built from."""

    transformed_from: "TraversalResult"
    position: int
    remarks: Optional[str] = None


@dataclass(frozen=True, kw_only=True)
class TraversalResult:
    kind: ClassVar[ResultKind]

    request: Any = None
    request_options: Optional[Mapping[str, Any]] = field(default=None, repr=False)
    label: Optional[str] = None
    provenance: Optional[Provenance] = field(default=None, repr=False, compare=False)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            K_KIND: self.kind.value,
            K_REQUEST: self.request if isinstance(self.request, str) else repr(self.request),
        }
        if self.label is not None:
            payload[K_LABEL] = self.label
        if self.provenance is not None:
            payload[K_POSITION] = self.provenance.position
            payload[K_TRANSFORMED_FROM] = self.provenance.transformed_from.kind.value
            if self.provenance.remarks:
                payload[K_REMARKS] = self.provenance.remarks
        return payload


@dataclass(frozen=True, kw_only=True)
class UnsuccessfulTraversal(TraversalResult):
    kind: ClassVar[ResultKind] = ResultKind.UNSUCCESSFUL

    error: BaseException = field(compare=False)

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload[K_ERROR] = f"{type(self.error).__name__}: {self.error}"
        return payload


@dataclass(frozen=True, kw_only=True)
class SuccessfulTraversal(TraversalResult):
    kind: ClassVar[ResultKind] = ResultKind.SUCCESSFUL

    response: "HttpResponse" = field(repr=False, compare=False)
    terminal_url: str

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload[K_TERMINAL_URL] = self.terminal_url
        payload[K_STATUS] = self.response.status
        return payload


@dataclass(frozen=True, kw_only=True)
class InvalidHttpStatus(SuccessfulTraversal):
    kind: ClassVar[ResultKind] = ResultKind.INVALID_HTTP_STATUS

    invalid_http_status: int


@dataclass(frozen=True, kw_only=True)
class TraversalContent(SuccessfulTraversal):
    kind: ClassVar[ResultKind] = ResultKind.CONTENT

    http_status: int
    content_type: str
    content_disposition: Optional[Mapping[str, str]] = None
    # Populated once an enhancer has read the body; None means still streaming.
    body_bytes: Optional[bytes] = field(default=None, repr=False, compare=False)

    async def write_content(self, sink: ByteSink) -> int:
        """Drain the body into ``sink`` and return the number of bytes written."""

        _, written = await self.copy_content(sink)
        return written

    async def copy_content(self, sink: ByteSink) -> Tuple[int, int]:
        """Drain the body into ``sink``; return ``(received, written)`` byte counts."""

        if self.body_bytes is not None:
            return len(self.body_bytes), _write(sink, self.body_bytes)
        received = written = 0
        async for chunk in self.response.iter_chunks():
            received += len(chunk)
            written += _write(sink, chunk)
        return received, written

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload[K_CONTENT_TYPE] = self.content_type
        if self.content_disposition:
            payload[K_CONTENT_DISPOSITION] = dict(self.content_disposition)
        return payload


@dataclass(frozen=True, kw_only=True)
class TraversalStructuredContent(TraversalContent):
    kind: ClassVar[ResultKind] = ResultKind.STRUCTURED_CONTENT

    is_structured_content: bool = True
    structured: Any = field(default=None, compare=False)
    parse_error: Optional[BaseException] = field(default=None, compare=False)
    body_text: str = field(default="", repr=False)


@dataclass(frozen=True, kw_only=True)
class TraversalTextContent(TraversalContent):
    kind: ClassVar[ResultKind] = ResultKind.TEXT_CONTENT

    body_text: str = field(repr=False)
    is_html_content: bool

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload[K_TEXT_LENGTH] = len(self.body_text)
        payload[K_IS_HTML] = self.is_html_content
        return payload


@dataclass(frozen=True, kw_only=True)
class TraversalContentRedirect(TraversalResult):
    """HTML meta-refresh pointed elsewhere; ``redirected`` is the followed hop.

    This is not a content result itself. Callers that want the body should
    go through :func:`terminal_result`, which walks ``redirected`` to the
    last hop.
    """

    kind: ClassVar[ResultKind] = ResultKind.CONTENT_REDIRECT

    content_redirect_url: str
    redirected: TraversalResult

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload[K_REDIRECT_URL] = self.content_redirect_url
        payload[K_REDIRECTED] = self.redirected.to_dict()
        return payload


def _write(sink: ByteSink, data: bytes) -> int:
    written = sink.write(data)
    return len(data) if written is None else int(written)


def has_capability(o: Any, kind: ResultKind) -> bool:
    if not isinstance(o, TraversalResult):
        return False
    return kind in CAPABILITIES.get(o.kind, frozenset())


def is_unsuccessful_traversal(o: Any) -> bool:
    return has_capability(o, ResultKind.UNSUCCESSFUL)


def is_successful_traversal(o: Any) -> bool:
    return has_capability(o, ResultKind.SUCCESSFUL)


def is_invalid_http_status(o: Any) -> bool:
    return has_capability(o, ResultKind.INVALID_HTTP_STATUS)


def is_traversal_content(o: Any) -> bool:
    return has_capability(o, ResultKind.CONTENT)


def is_traversal_structured_content(o: Any) -> bool:
    return has_capability(o, ResultKind.STRUCTURED_CONTENT)


def is_traversal_text_content(o: Any) -> bool:
    return has_capability(o, ResultKind.TEXT_CONTENT)


def is_traversal_redirect(o: Any) -> bool:
    return has_capability(o, ResultKind.CONTENT_REDIRECT)


def is_transformed_traversal_result(o: Any) -> bool:
    return isinstance(o, TraversalResult) and o.provenance is not None


def next_transformation_position(o: TraversalResult) -> int:
    return o.provenance.position + 1 if o.provenance is not None else 0


R = TypeVar("R", bound=TraversalResult)


def extend(instance: TraversalResult, cls: Type[R], **changes: Any) -> R:
    """Build a ``cls`` result carrying every field of ``instance`` it declares."""

    names = {f.name for f in fields(cls)}
    values = {f.name: getattr(instance, f.name) for f in fields(instance) if f.name in names}
    values.update(changes)
    return cls(**values)


def transform(
    instance: TraversalResult,
    cls: Optional[Type[R]] = None,
    *,
    remarks: Optional[str] = None,
    **changes: Any,
) -> R:
    """Like :func:`extend`, but the new result records where it came from."""

    provenance = Provenance(
        transformed_from=instance,
        position=next_transformation_position(instance),
        remarks=remarks,
    )
    return extend(instance, cls or type(instance), provenance=provenance, **changes)


def provenance_chain(result: TraversalResult) -> List[TraversalResult]:
    """Return ``result`` and its predecessors, newest first."""

    chain = [result]
    current = result
    while current.provenance is not None:
        current = current.provenance.transformed_from
        chain.append(current)
    return chain


def terminal_result(result: TraversalResult) -> TraversalResult:
    """Follow meta-refresh redirects down to the last hop."""

    while isinstance(result, TraversalContentRedirect):
        result = result.redirected
    return result


__all__ = [
    "ByteSink",
    "CAPABILITIES",
    "InvalidHttpStatus",
    "Provenance",
    "ResultKind",
    "SuccessfulTraversal",
    "TraversalContent",
    "TraversalContentRedirect",
    "TraversalResult",
    "TraversalStructuredContent",
    "TraversalTextContent",
    "UnsuccessfulTraversal",
    "extend",
    "has_capability",
    "is_invalid_http_status",
    "is_successful_traversal",
    "is_transformed_traversal_result",
    "is_traversal_content",
    "is_traversal_redirect",
    "is_traversal_structured_content",
    "is_traversal_text_content",
    "is_unsuccessful_traversal",
    "next_transformation_position",
    "provenance_chain",
    "terminal_result",
    "transform",
]

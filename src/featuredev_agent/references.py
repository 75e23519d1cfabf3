"""
Code-reference log.

Generated code may match code from public repositories. Each match is
reported as a reference (license, repository, url and the span of the
recommendation it covers). The log keeps a human-readable record of every
inserted reference and can answer which reference covers an offset of
the document the code was inserted into, as long as that text is
unchanged.
"""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass(frozen=True)
class Span:
    """Half-open character range [start, end)."""

    start: int
    end: int


@dataclass(frozen=True)
class CodeReference:
    """A licensed-code match inside generated content."""

    license_name: Optional[str] = None
    repository: Optional[str] = None
    url: Optional[str] = None
    recommendation_content_span: Optional[Span] = None
    information: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> "CodeReference":
        span = data.get("recommendation_content_span")
        return cls(
            license_name=data.get("license_name"),
            repository=data.get("repository"),
            url=data.get("url"),
            recommendation_content_span=Span(**span) if span else None,
            information=data.get("information"),
        )


@dataclass
class Recommendation:
    """
    A recommendation as returned by the service and as inserted.

    The inserted (reformatted) content may differ in whitespace from the
    original; both carry their own reference spans, index-aligned.
    """

    content: str
    references: List[CodeReference] = field(default_factory=list)
    reformatted_content: Optional[str] = None
    reformatted_references: Optional[List[CodeReference]] = None

    @property
    def inserted_references(self) -> List[CodeReference]:
        if self.reformatted_references is None:
            return self.references
        return self.reformatted_references


@dataclass
class ReferenceRecord:
    """One entry of the reference log."""

    reference: CodeReference
    relative_path: str
    line_numbers: str
    content_lines: List[str]

    def render(self) -> str:
        header = (
            f"Accepted recommendation with code under {self.reference.license_name} license "
            f"from repository {self.reference.repository}. "
            f"Added to {self.relative_path} (lines {self.line_numbers})."
        )
        return "\n".join([header] + [f"    {line}" for line in self.content_lines])


@dataclass
class HighlightContext:
    """Document range attributed to a reference."""

    start: int
    end: int
    code_content: str
    reference_content: str

    def contains(self, offset: int) -> bool:
        return self.start <= offset < self.end

    def matches(self, document: str) -> bool:
        """True while the range still holds the text it was recorded with."""
        return self.end <= len(document) and document[self.start:self.end] == self.code_content


def line_number(document: str, offset: int) -> int:
    """0-based line number of an offset."""
    return document.count("\n", 0, offset)


def popup_text(reference: CodeReference) -> str:
    return f"Reference code under {reference.license_name} license from repository {reference.repository}"


class CodeReferenceLog:
    """Records inserted references and resolves offsets to them."""

    def __init__(self) -> None:
        self.records: List[ReferenceRecord] = []
        self.highlights: List[HighlightContext] = []

    def insert_code_reference(
        self,
        document: str,
        caret_offset: int,
        recommendation: Recommendation,
        user_input: str = "",
        relative_path: str = "",
    ) -> List[ReferenceRecord]:
        """
        Record the references of a recommendation inserted at caret_offset.

        `document` is the text after insertion. Characters the user typed
        after invoking (`user_input`) are not attributed to any reference,
        so spans are clipped to start after them and spans entirely inside
        them are skipped.
        """
        added: List[ReferenceRecord] = []
        skip = len(user_input)

        for i, reference in enumerate(recommendation.inserted_references):
            span = reference.recommendation_content_span
            if span is None or span.end <= skip:
                continue

            start = caret_offset + max(span.start, skip)
            end = caret_offset + span.end
            start_line = line_number(document, start)
            end_line = line_number(document, end)
            if start_line == end_line:
                line_nums = str(start_line + 1)
            else:
                line_nums = f"{start_line + 1} to {end_line + 1}"

            # The log shows the service's original text, not the reformatted one
            original_span = span
            if i < len(recommendation.references):
                original_span = recommendation.references[i].recommendation_content_span or span
            original_lines = recommendation.content[max(original_span.start, skip):original_span.end].split("\n")

            record = ReferenceRecord(
                reference=reference,
                relative_path=relative_path,
                line_numbers=line_nums,
                content_lines=original_lines,
            )
            self.records.append(record)
            added.append(record)

            self.highlights.append(
                HighlightContext(
                    start=start,
                    end=end,
                    code_content=document[start:end],
                    reference_content=popup_text(reference),
                )
            )

        return added

    def reference_at(self, document: str, offset: int) -> Optional[HighlightContext]:
        """
        Find the reference covering `offset` in the current document.

        Ranges that no longer fit the document are dropped; a range whose
        text was edited is ignored.
        """
        self.highlights = [h for h in self.highlights if h.end <= len(document)]

        for highlight in self.highlights:
            if highlight.contains(offset):
                if not highlight.matches(document):
                    return None
                return highlight
        return None

    def log_lines(self) -> List[str]:
        return [record.render() for record in self.records]

    def clear(self) -> None:
        self.records.clear()
        self.highlights.clear()

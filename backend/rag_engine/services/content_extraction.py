from typing import List, NamedTuple, Optional

from bs4 import BeautifulSoup

from rag_engine.schemas.document import DocumentSnapshot, DocumentType


MAX_CONTENT_LENGTH = 100_000


def extract_content(body: str, content_type: str = "markdown", context: Optional[str] = None) -> str:
    """Plain text for chunking: HTML is stripped, an optional context line is prefixed."""
    body = body or ""
    if (content_type or "").lower() == "html":
        text = BeautifulSoup(body, "html.parser").get_text(separator=" ")
    else:
        text = body

    text = text.strip()
    if context and context.strip():
        text = f"Context: {context.strip()}\n\n{text}"
    return text[:MAX_CONTENT_LENGTH]


def best_answer(snapshot: DocumentSnapshot):
    """The accepted answer, else the highest voted one."""
    if not snapshot.answers:
        return None
    accepted = next((a for a in snapshot.answers if a.accepted), None)
    if accepted:
        return accepted
    return max(snapshot.answers, key=lambda a: a.vote_score)


class TextSegment(NamedTuple):
    source_type: str
    source_id: str
    text: str


def document_segments(snapshot: DocumentSnapshot) -> List[TextSegment]:
    """
    The pieces that make up a document's indexed text, each tagged with the
    record it came from. A question folds in its best answer.
    """
    body = extract_content(snapshot.body, snapshot.content_type, snapshot.context)
    own = snapshot.type.value
    segments = []

    if snapshot.type == DocumentType.QUESTION:
        if snapshot.title:
            segments.append(TextSegment(own, snapshot.id, f"Question: {snapshot.title}"))
        if body:
            segments.append(TextSegment(own, snapshot.id, body))
        answer = best_answer(snapshot)
        if answer and answer.body.strip():
            segments.append(TextSegment(DocumentType.ANSWER.value, answer.id,
                                        f"Best Answer: {answer.body.strip()}"))
        return segments

    if snapshot.title:
        segments.append(TextSegment(own, snapshot.id, snapshot.title))
    if body:
        segments.append(TextSegment(own, snapshot.id, body))
    return segments


def build_document_text(snapshot: DocumentSnapshot) -> str:
    return "\n\n".join(segment.text for segment in document_segments(snapshot))

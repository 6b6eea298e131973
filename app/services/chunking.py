"""Overlapping fixed-size chunking for extracted document text.

Why overlap:
- Retrieval works on bounded slices; a fact cut at a boundary still appears
  whole in the neighbouring chunk.

How we chunk:
- Fixed window of ``chunk_size`` characters starting at ``start``.
- If the window ends before the text does, look back for the last ``.`` or
  newline inside the window; when it lies past the window's midpoint, end the
  chunk just after it so sentences are not cut.
- Next window starts ``overlap`` characters before the previous end. The loop
  stops once a window reaches the end of the text and the next start would
  not move forward.

Offsets are character indices into the text passed in; ``text`` of a chunk is
exactly ``text[start_offset:end_offset]``.
"""
import re
from typing import Any, Dict, List

_METRICS_RE = re.compile(r"\$[\d,]+|[\d.]+%|CAGR|billion|million|market size", re.IGNORECASE)
_CITATIONS_RE = re.compile(r"\[\d+\]|\(Source:|according to|study|research|survey", re.IGNORECASE)


def chunk_text(text: str, chunk_size: int = 1000, overlap: int = 200) -> List[Dict[str, Any]]:
    """
    Split text into overlapping chunks snapped to sentence/line breaks.

    Returns:
        List of dicts with:
        - chunk_index: 0-based position in emission order
        - text: text[start_offset:end_offset]
        - start_offset: character index where the chunk starts
        - end_offset: character index after the chunk's last character
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if overlap < 0 or overlap >= chunk_size:
        raise ValueError("overlap must be in [0, chunk_size)")
    if not text:
        return []

    length = len(text)
    chunks: List[Dict[str, Any]] = []
    start = 0
    while start < length:
        end = min(start + chunk_size, length)
        if end < length:
            break_point = max(text.rfind(".", start, end), text.rfind("\n", start, end))
            if break_point > start + chunk_size / 2:
                end = break_point + 1

        chunks.append({
            "chunk_index": len(chunks),
            "text": text[start:end],
            "start_offset": start,
            "end_offset": end,
        })

        next_start = end - overlap
        if next_start <= start:
            if end >= length:
                break
            # snapped chunk shorter than the overlap: continue without overlap
            next_start = end
        start = next_start
    return chunks


def has_metrics(text: str) -> bool:
    """Currency amounts, percentages, CAGR, billion/million, market size."""
    return bool(_METRICS_RE.search(text or ""))


def has_citations(text: str) -> bool:
    """Bracketed references, (Source: ...), or study/research/survey wording."""
    return bool(_CITATIONS_RE.search(text or ""))

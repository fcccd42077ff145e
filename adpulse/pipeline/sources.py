"""Multi-source extraction — four independent strategies over one document.

Fast, deterministic, no interpretation. Every strategy runs on every
document; none short-circuits on another's success because cross-source
corroboration feeds the confidence score.
"""

from __future__ import annotations

import json
import logging
import math
import re
from typing import Any, Iterator

from bs4 import BeautifulSoup, Tag
from bs4.element import CData, Comment, Declaration, Doctype, NavigableString, ProcessingInstruction

from adpulse.fetch.fetcher import RawDocument
from adpulse.pipeline.models import (
    Candidate,
    CandidateKind,
    ChartCapture,
    ElementRef,
    ExtractionBundle,
    ScriptDatum,
    TableCapture,
    TextCapture,
    VisibleData,
)

logger = logging.getLogger(__name__)

PARSER = "lxml"

# Script payload shapes
OBJECT_PATTERN = re.compile(r'\{[^{}]*"[^"]*"[^{}]*\}')
ARRAY_PATTERN = re.compile(r"\[\s*[\d,.\s]+\]")
ASSIGNMENT_PATTERN = re.compile(r"(\w+)\s*=\s*([\d,]+)")

# Visible token shapes
CURRENCY_PATTERN = re.compile(r"\$[\d,]+(?:\.\d{2})?")
PERCENTAGE_PATTERN = re.compile(r"(\d+(?:\.\d+)?)%")
COUNT_PATTERN = re.compile(r"(?<![$\d.,/:-])\d[\d,]*(?![\d.,%/:-])")
NON_LABEL_PATTERN = re.compile(r"[\d$%]")

MIN_COUNT_LENGTH = 3
MIN_COUNT_VALUE = 10
MAX_LABEL_LENGTH = 50

SKIPPED_PARENTS = {"script", "style", "noscript", "template", "[document]"}
SKIPPED_STRINGS = (Comment, CData, Declaration, Doctype, ProcessingInstruction)
HEADING_TAGS = {"h1", "h2", "h3", "h4", "h5", "h6", "th"}


class ParseError(ValueError):
    """A script fragment or token that looked like data but did not parse."""


def _reject_constant(name: str) -> float:
    raise ParseError(f"Non-finite constant {name}")


def _is_finite(value: Any) -> bool:
    if isinstance(value, float):
        return math.isfinite(value)
    if isinstance(value, dict):
        return all(_is_finite(item) for item in value.values())
    if isinstance(value, list):
        return all(_is_finite(item) for item in value)
    return True


def _loads(fragment: str) -> Any:
    """Decode a JSON fragment; NaN, Infinity and overflowing floats are rejected."""
    try:
        data = json.loads(fragment, parse_constant=_reject_constant)
    except json.JSONDecodeError as exc:
        raise ParseError(f"Invalid literal: {fragment[:40]}") from exc
    if not _is_finite(data):
        raise ParseError(f"Non-finite number in {fragment[:40]}")
    return data


def _parse_object(fragment: str) -> dict[str, Any]:
    data = _loads(fragment)
    if not isinstance(data, dict):
        raise ParseError("Object literal did not decode to a mapping")
    return data


def _parse_number_array(fragment: str) -> list[float]:
    data = _loads(fragment)
    if not isinstance(data, list) or not all(
        isinstance(n, (int, float)) and not isinstance(n, bool) for n in data
    ):
        raise ParseError("Array contains non-numeric members")
    return data


def _parse_integer(raw: str) -> int:
    digits = raw.replace(",", "")
    if not digits:
        raise ParseError(f"No digits in {raw!r}")
    return int(digits)


def _parse_script(content: str, start_index: int) -> list[ScriptDatum]:
    """Parse one script body. Malformed matches are discarded."""
    found: list[ScriptDatum] = []
    index = start_index

    for match in OBJECT_PATTERN.finditer(content):
        try:
            found.append(ScriptDatum(key=f"object_{index}", shape="object", value=_parse_object(match.group(0))))
            index += 1
        except ParseError as exc:
            logger.debug("Discarded script object", extra={"reason": str(exc)})

    for match in ARRAY_PATTERN.finditer(content):
        try:
            found.append(ScriptDatum(key=f"array_{index}", shape="array", value=_parse_number_array(match.group(0))))
            index += 1
        except ParseError as exc:
            logger.debug("Discarded script array", extra={"reason": str(exc)})

    for match in ASSIGNMENT_PATTERN.finditer(content):
        try:
            found.append(
                ScriptDatum(key=match.group(1), shape="assignment", value=_parse_integer(match.group(2)))
            )
        except ParseError as exc:
            logger.debug("Discarded script assignment", extra={"reason": str(exc)})

    return found


def extract_script_data(soup: BeautifulSoup) -> list[ScriptDatum]:
    """Scan inline script payloads for objects, numeric arrays and assignments."""
    data: list[ScriptDatum] = []
    for script in soup.find_all("script"):
        content = script.string or script.get_text()
        if content:
            data.extend(_parse_script(content, start_index=len(data)))
    return data


def _element_ref(element: Tag) -> ElementRef:
    classes = element.get("class") or []
    if isinstance(classes, str):
        classes = [classes]
    return ElementRef(tag=element.name or "", css_class=" ".join(classes), id=element.get("id") or "")


def _is_heading(element: Tag, ref: ElementRef) -> bool:
    return (
        element.name in HEADING_TAGS
        or "header" in ref.css_class.lower()
        or "header" in ref.id.lower()
    )


def _classify_text(text: str, element: Tag, data: VisibleData) -> None:
    ref = _element_ref(element)

    currency = CURRENCY_PATTERN.search(text)
    if currency:
        try:
            value = float(currency.group(0).replace("$", "").replace(",", ""))
            data.currencies.append(
                Candidate(value=value, kind=CandidateKind.CURRENCY, raw_text=currency.group(0), context_text=text, origin=ref)
            )
        except ValueError:
            logger.debug("Discarded currency token", extra={"text": text})

    percentage = PERCENTAGE_PATTERN.search(text)
    if percentage:
        data.percentages.append(
            Candidate(
                value=float(percentage.group(1)),
                kind=CandidateKind.PERCENTAGE,
                raw_text=percentage.group(0),
                context_text=text,
                origin=ref,
            )
        )

    count = COUNT_PATTERN.search(text)
    if count:
        raw = count.group(0).rstrip(",")
        try:
            value = _parse_integer(raw)
        except ParseError:
            value = 0
        if len(raw) >= MIN_COUNT_LENGTH and value > MIN_COUNT_VALUE:
            data.metrics.append(
                Candidate(value=value, kind=CandidateKind.COUNT, raw_text=raw, context_text=text, origin=ref)
            )

    if len(text) < MAX_LABEL_LENGTH and not NON_LABEL_PATTERN.search(text):
        capture = TextCapture(text=text, origin=ref)
        if _is_heading(element, ref):
            data.headers.append(capture)
        else:
            data.labels.append(capture)


def iter_text_nodes(soup: BeautifulSoup) -> Iterator[tuple[str, Tag]]:
    """Yield (stripped text, parent element) for every rendered text node.

    Only leaf strings are visited, so a value nested three elements deep is
    seen once rather than once per ancestor.
    """
    for node in soup.find_all(string=True):
        if not isinstance(node, NavigableString) or isinstance(node, SKIPPED_STRINGS):
            continue
        parent = node.parent
        if parent is None or parent.name in SKIPPED_PARENTS:
            continue
        text = node.strip()
        if text:
            yield text, parent


def extract_visible_data(soup: BeautifulSoup) -> VisibleData:
    """Walk every text node and bucket it by shape."""
    data = VisibleData()
    for text, parent in iter_text_nodes(soup):
        _classify_text(text, parent, data)
    return data


def extract_tables(soup: BeautifulSoup) -> list[TableCapture]:
    """Capture header and row cells verbatim, per table."""
    tables: list[TableCapture] = []
    for table in soup.find_all("table"):
        capture = TableCapture(headers=[th.get_text(" ", strip=True) for th in table.find_all("th")])
        for row in table.find_all("tr"):
            cells = [td.get_text(" ", strip=True) for td in row.find_all("td")]
            if cells:
                capture.rows.append(cells)
        if capture.headers or capture.rows:
            tables.append(capture)
    return tables


def extract_charts(soup: BeautifulSoup) -> list[ChartCapture]:
    """Capture vector-chart attributes, text and path geometry."""
    charts: list[ChartCapture] = []
    for svg in soup.find_all("svg"):
        attributes = {
            name: " ".join(value) if isinstance(value, list) else str(value)
            for name, value in svg.attrs.items()
        }
        charts.append(
            ChartCapture(
                attributes=attributes,
                text_elements=[t.get_text(" ", strip=True) for t in svg.find_all("text")],
                paths=[p["d"] for p in svg.find_all("path") if p.get("d")],
            )
        )
    return charts


def extract_bundle(document: RawDocument | str) -> ExtractionBundle:
    """Run all four strategies over one document.

    Args:
        document: A fetched RawDocument or raw HTML text.

    Returns:
        ExtractionBundle holding the evidence pool of this document.
    """
    html = document.html if isinstance(document, RawDocument) else document
    soup = BeautifulSoup(html, PARSER)

    bundle = ExtractionBundle(
        script=extract_script_data(soup),
        visible=extract_visible_data(soup),
        tables=extract_tables(soup),
        charts=extract_charts(soup),
    )
    logger.info(
        "Extracted evidence bundle",
        extra={
            "script": len(bundle.script),
            "currencies": len(bundle.visible.currencies),
            "metrics": len(bundle.visible.metrics),
            "tables": len(bundle.tables),
            "charts": len(bundle.charts),
        },
    )
    return bundle

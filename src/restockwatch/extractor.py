from __future__ import annotations

import logging
from typing import Iterable

from bs4 import BeautifulSoup, ParserRejectedMarkup, Tag

from restockwatch.models import CheckTarget, Verdict

LOG = logging.getLogger(__name__)

OUT_OF_STOCK_SENTINEL = "out of stock"


class ParseFailure(ValueError):
    pass


def contains_target_text(fragment_text: str, target_text: str) -> bool:
    # case-sensitive, unlike is_out_of_stock_sentinel
    return target_text in fragment_text


def is_out_of_stock_sentinel(text: str) -> bool:
    cleaned = text.strip()
    return not cleaned or cleaned.casefold() == OUT_OF_STOCK_SENTINEL


def parse_snapshot(snapshot: str) -> BeautifulSoup:
    if not isinstance(snapshot, str) or not snapshot.strip():
        raise ParseFailure("snapshot is empty")
    try:
        return BeautifulSoup(snapshot, "html.parser")
    except ParserRejectedMarkup as exc:
        raise ParseFailure(f"snapshot could not be parsed: {exc}") from exc


def _first(nodes: Iterable[Tag]) -> Tag | None:
    return next(iter(nodes), None)


def find_target_fragment(soup: BeautifulSoup, target: CheckTarget) -> Tag | None:
    """Return the first item fragment, in document order, whose text contains the target name."""
    fragments = soup.css.iselect(target.item_selector)
    return _first(
        fragment
        for fragment in fragments
        if contains_target_text(fragment.get_text(), target.target_item_text)
    )


def extract(snapshot: str, target: CheckTarget) -> Verdict:
    """Classify one rendered container snapshot.

    Fragments are matched on their full text, the first hit wins. A matched
    fragment without availability markup counts as unavailable rather than
    available, and so does blank availability text.
    """
    try:
        soup = parse_snapshot(snapshot)
    except ParseFailure as exc:
        LOG.error("snapshot parse failed: %s", exc)
        return Verdict.EXTRACTION_ERROR

    fragment = find_target_fragment(soup, target)
    if fragment is None:
        LOG.warning(
            "no element matching %r contains %r; check selectors/text",
            target.item_selector,
            target.target_item_text,
        )
        return Verdict.ITEM_NOT_FOUND

    availability = fragment.select_one(target.availability_selector)
    if availability is None:
        LOG.warning(
            "availability element %r missing in target fragment; assuming unavailable",
            target.availability_selector,
        )
        return Verdict.UNAVAILABLE

    text = availability.get_text().strip()
    LOG.debug("availability text for target item: %r", text)
    if is_out_of_stock_sentinel(text):
        return Verdict.UNAVAILABLE
    return Verdict.AVAILABLE

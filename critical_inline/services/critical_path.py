"""Inline critical CSS and defer the blocking stylesheet reference."""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Union

from bs4 import BeautifulSoup, Tag
from bs4.element import Script, Stylesheet

from critical_inline.core.logging import get_logger
from critical_inline.models.critical_css import DeferStrategy
from critical_inline.services.usage import decode_document, parse_document

logger = get_logger(__name__)

MEDIA_PRINT_ONLOAD = "this.media='all'"
PRELOAD_ONLOAD = "this.onload=null;this.rel='stylesheet'"

# Inlined cssrelpreload.min.js from filamentgroup/loadCSS, for browsers without rel="preload".
LOADCSS_PRELOAD_POLYFILL = (
    '!function(t){"use strict";t.loadCSS||(t.loadCSS=function(){});var e=loadCSS.relpreload={};'
    'if(e.support=function(){var e;try{e=t.document.createElement("link").relList.supports("preload")}'
    "catch(t){e=!1}return function(){return e}}(),e.bindMediaToggle=function(t){function e(){t.media=a}"
    'var a=t.media||"all";t.addEventListener?t.addEventListener("load",e):t.attachEvent&&'
    't.attachEvent("onload",e),setTimeout(function(){t.rel="stylesheet",t.media="only x"}),'
    "setTimeout(e,3e3)},e.poly=function(){if(!e.support())for(var a=t.document.getElementsByTagName"
    '("link"),n=0;n<a.length;n++){var o=a[n];"preload"!==o.rel||"style"!==o.getAttribute("as")||'
    'o.getAttribute("data-loadcss")||(o.setAttribute("data-loadcss",!0),e.bindMediaToggle(o))}},'
    "!e.support()){e.poly();var a=t.setInterval(e.poly,500);t.addEventListener?"
    't.addEventListener("load",function(){e.poly(),t.clearInterval(a)}):t.attachEvent&&'
    't.attachEvent("onload",function(){e.poly(),t.clearInterval(a)})}"undefined"!=typeof exports?'
    'exports.loadCSS=loadCSS:t.loadCSS=loadCSS}("undefined"!=typeof global?global:this);'
)


@dataclass(frozen=True)
class DeferMarkup:
    """Attribute changes applied to each deferred link, plus optional trailing script."""

    attributes: Dict[str, str]
    script: Optional[str] = None


def _media_print() -> DeferMarkup:
    # A print stylesheet is fetched at low priority; onload promotes it to all media.
    return DeferMarkup(attributes={"media": "print", "onload": MEDIA_PRINT_ONLOAD})


def _preload_polyfill() -> DeferMarkup:
    return DeferMarkup(
        attributes={"rel": "preload", "as": "style", "onload": PRELOAD_ONLOAD},
        script=LOADCSS_PRELOAD_POLYFILL,
    )


DEFER_STRATEGIES: Dict[DeferStrategy, Callable[[], DeferMarkup]] = {
    DeferStrategy.media_print: _media_print,
    DeferStrategy.preload_polyfill: _preload_polyfill,
}


def is_stylesheet_link(tag: Tag, css_public_path: str) -> bool:
    """Whether ``tag`` is a ``<link rel="stylesheet">`` pointing at ``css_public_path``."""

    if tag.name != "link" or tag.get("href") != css_public_path:
        return False
    rel = tag.get("rel") or []
    if isinstance(rel, str):
        rel = rel.split()
    return [token.lower() for token in rel] == ["stylesheet"]


def find_stylesheet_links(soup: BeautifulSoup, css_public_path: str) -> List[Tag]:
    """Return every matching link in document order."""

    return soup.find_all(lambda tag: is_stylesheet_link(tag, css_public_path))


def rewrite_for_critical_path(
    html_content: Union[str, bytes],
    css_public_path: str,
    critical_css_text: str,
    *,
    strategy: DeferStrategy | str = DeferStrategy.media_print,
    html_parser: Optional[str] = None,
) -> str:
    """Inline ``critical_css_text`` and defer the stylesheet linked as ``css_public_path``.

    Documents without a matching link are returned unchanged. Otherwise every
    matching link is deferred according to ``strategy`` and followed by a
    ``<noscript>`` holding the original link; the ``<style>`` block goes right
    before the first one.

    The rewrite does not recognise its own output, so applying it twice
    duplicates the inlined block and the fallback markup.
    """

    strategy = DeferStrategy(strategy)
    defer = DEFER_STRATEGIES[strategy]()
    soup = parse_document(html_content, html_parser)

    links = find_stylesheet_links(soup, css_public_path)
    if not links:
        logger.debug("link_not_found", css_public_path=css_public_path)
        return decode_document(html_content)

    style = soup.new_tag("style")
    # `<\/` is `</` to CSS, but cannot end the element in HTML.
    style.append(Stylesheet(critical_css_text.replace("</", "<\\/")))
    links[0].insert_before(style)

    fallback = None
    for link in links:
        original = copy.copy(link)
        for name, value in defer.attributes.items():
            link[name] = value

        fallback = soup.new_tag("noscript")
        fallback.append(original)
        link.insert_after(fallback)

    if defer.script and fallback is not None:
        script = soup.new_tag("script")
        script.append(Script(defer.script))
        fallback.insert_after(script)

    logger.debug("stylesheet_deferred", css_public_path=css_public_path, links=len(links), strategy=strategy.value)
    return str(soup)

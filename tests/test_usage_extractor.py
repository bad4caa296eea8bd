"""Tests for critical CSS extraction: rule filtering, groups, selectors and errors."""

from __future__ import annotations

import pytest

from critical_inline.core.errors import ParseError
from critical_inline.services.selectors import DomMatcher, TokenMatcher, get_matcher, parse_selector_list
from critical_inline.services.usage import collect_usage, parse_document
from critical_inline.services.usage_extractor import extract_critical_css

FORM_HTML = """<html><body>
  <header id="top" class="site-header">
    <nav class="menu"><a href="/">Home</a></nav>
  </header>
  <form>
    <input type="text" data-role="nav-main" lang="en-GB">
  </form>
</body></html>"""


def _kept(html: str, css: str, **kwargs) -> list[str]:
    result = extract_critical_css(html, css, **kwargs)
    return result.split("\n") if result else []


# ---------------------------------------------------------------------------
# Reference scenario
# ---------------------------------------------------------------------------


class TestReferenceScenario:
    def test_keeps_used_rules_and_drops_unused(self, page_html: str, page_css: str) -> None:
        result = extract_critical_css(page_html, page_css)

        assert ".test" in result
        assert "strong" in result
        assert ".unused" not in result

    def test_rule_text_is_copied_verbatim(self, page_html: str, page_css: str) -> None:
        result = extract_critical_css(page_html, page_css)

        assert result == ".test {\n      color: red;\n    }\nstrong {\n      font-weight: 600;\n    }"

    def test_accepts_utf8_bytes(self, page_html: str, page_css: str) -> None:
        assert extract_critical_css(page_html.encode("utf-8"), page_css) == extract_critical_css(page_html, page_css)


# ---------------------------------------------------------------------------
# Subset and order
# ---------------------------------------------------------------------------


class TestSubsetProperty:
    CSS = (
        "h1{margin:0}\n"
        ".a{color:red}\n"
        ".missing{color:blue}\n"
        "p .b{color:green}\n"
        "#nope{color:black}\n"
        "em,.c{font-style:italic}"
    )
    HTML = '<h1 class="a">Title</h1><p><span class="b">x</span><i class="c">y</i></p>'

    def test_every_kept_rule_exists_in_source(self) -> None:
        for rule in _kept(self.HTML, self.CSS):
            assert rule in self.CSS

    def test_source_order_is_preserved(self) -> None:
        kept = _kept(self.HTML, self.CSS)

        positions = [self.CSS.index(rule) for rule in kept]
        assert positions == sorted(positions)
        assert kept == ["h1{margin:0}", ".a{color:red}", "p .b{color:green}", "em,.c{font-style:italic}"]

    def test_selector_lists_are_not_rewritten(self) -> None:
        kept = _kept(self.HTML, self.CSS)

        # only .c is used, but the whole rule survives untouched
        assert "em,.c{font-style:italic}" in kept

    def test_nothing_used_yields_empty_text(self) -> None:
        assert extract_critical_css("<div></div>", ".x{color:red} #y{color:blue}") == ""

    def test_rule_text_is_sliced_from_the_source(self) -> None:
        html = '<p class="test"><a href="/">x</a><strong>y</strong></p>'
        css = (
            ".test{content:'x'}\n"
            "a:nth-child(2n+1){x:y}\n"
            ".test{background:url( 'a.png' ) no-repeat}\n"
            "/* between rules */\n"
            "strong{color:#FFF /* c */}\n"
            ".unused{color:blue}\n"
            "@media (min-width: 10px) /* wide */ {\n"
            "  .test { margin : 0 }\n"
            "  .unused{a:b}\n"
            "}"
        )

        result = extract_critical_css(html, css)

        assert result == (
            ".test{content:'x'}\n"
            "a:nth-child(2n+1){x:y}\n"
            ".test{background:url( 'a.png' ) no-repeat}\n"
            "strong{color:#FFF /* c */}\n"
            "@media (min-width: 10px) /* wide */ {\n"
            ".test { margin : 0 }\n"
            "}"
        )
        for line in result.split("\n"):
            assert line in css

    def test_html_comment_markers_are_not_carried_over(self, page_html: str) -> None:
        assert extract_critical_css(page_html, "<!--\n.test{a:1}-->\n.unused{a:2}") == ".test{a:1}"


# ---------------------------------------------------------------------------
# Conditional groups and other at-rules
# ---------------------------------------------------------------------------


class TestAtRules:
    def test_media_group_keeps_only_retained_children(self, page_html: str) -> None:
        css = "@media (max-width: 600px) { .test{color:red} .unused{color:blue} }"

        result = extract_critical_css(page_html, css)

        assert result == "@media (max-width: 600px) {\n.test{color:red}\n}"

    def test_group_without_retained_rules_is_dropped(self, page_html: str) -> None:
        css = "strong{font-weight:600}\n@media print { .unused{color:blue} }"

        result = extract_critical_css(page_html, css)

        assert "@media" not in result
        assert result == "strong{font-weight:600}"

    def test_nested_groups(self, page_html: str) -> None:
        css = "@supports (display: grid) { @media screen { .test{display:grid} .unused{display:none} } }"

        result = extract_critical_css(page_html, css)

        assert result.startswith("@supports (display: grid) {")
        assert "@media screen {\n.test{display:grid}\n}" in result
        assert ".unused" not in result

    def test_selector_free_at_rules_are_kept(self, page_html: str) -> None:
        css = (
            '@import url("fonts.css");\n'
            "@font-face{font-family:Body;src:url(body.woff2)}\n"
            "@keyframes spin{from{transform:rotate(0)}to{transform:rotate(360deg)}}\n"
            ".unused{color:blue}"
        )

        kept = _kept(page_html, css)

        assert kept == [
            '@import url("fonts.css");',
            "@font-face{font-family:Body;src:url(body.woff2)}",
            "@keyframes spin{from{transform:rotate(0)}to{transform:rotate(360deg)}}",
        ]


# ---------------------------------------------------------------------------
# Token matching
# ---------------------------------------------------------------------------


class TestTokenMatching:
    def test_every_compound_must_be_satisfiable(self, page_html: str) -> None:
        css = ".test strong{a:1}\n.test .missing{a:2}\np > strong{a:3}\nul li{a:4}\np ~ em{a:5}"

        assert _kept(page_html, css) == [".test strong{a:1}", "p > strong{a:3}"]

    def test_structure_between_compounds_is_not_checked(self, page_html: str) -> None:
        # strong is a child of .test, not a sibling; token matching still keeps it
        assert _kept(page_html, ".test + strong{a:1}") == [".test + strong{a:1}"]

    def test_ids_and_compound_tags(self) -> None:
        css = "#top{a:1}\nheader#top.site-header{a:2}\nfooter#top{a:3}\n#bottom{a:4}"

        assert _kept(FORM_HTML, css) == ["#top{a:1}", "header#top.site-header{a:2}"]

    def test_tag_names_are_case_insensitive(self) -> None:
        assert _kept(FORM_HTML, "NAV A{a:1}") == ["NAV A{a:1}"]

    def test_class_names_are_case_sensitive(self) -> None:
        assert _kept(FORM_HTML, ".Menu{a:1}") == []

    def test_implicit_document_elements(self) -> None:
        css = "html{a:1}\nbody{a:2}\nhead{a:3}"

        assert _kept('<p class="test">fragment</p>', css) == ["html{a:1}", "body{a:2}", "head{a:3}"]

    def test_universal_selector(self, page_html: str) -> None:
        assert _kept(page_html, "*{box-sizing:border-box}\n.test *{a:1}") == [
            "*{box-sizing:border-box}",
            ".test *{a:1}",
        ]

    @pytest.mark.parametrize(
        ("selector", "kept"),
        [
            ("[type]", True),
            ("[hidden]", False),
            ('[type="text"]', True),
            ("[type=checkbox]", False),
            ('[type="TEXT" i]', True),
            ('[type="TEXT"]', False),
            ('[data-role^="nav"]', True),
            ("[data-role$=main]", True),
            ('[data-role*="-ma"]', True),
            ('[data-role*=""]', False),
            ('[lang|="en"]', True),
            ('[lang|="GB"]', False),
            ('[class~="menu"]', True),
            ("input[type=text]", True),
            ("select[type=text]", False),
        ],
    )
    def test_attribute_selectors(self, selector: str, kept: bool) -> None:
        rule = f"{selector}{{a:1}}"

        assert (_kept(FORM_HTML, rule) == [rule]) is kept

    def test_attribute_flag_folds_document_case(self) -> None:
        css = "input[type=checkbox i]{x:y}"

        assert extract_critical_css('<input type="CHECKBOX">', css) == css

    @pytest.mark.parametrize(
        ("selector", "kept"),
        [
            ("a:hover", True),
            (".missing:hover", False),
            (".menu::before", True),
            ("a:not(.missing)", True),
            ("li:nth-child(2n+1)", False),
            (":root", True),
            (":is(.missing, .menu) a", True),
            (":where(.missing, .other)", False),
            ("header :is(nav, aside)", True),
        ],
    )
    def test_pseudo_selectors(self, selector: str, kept: bool) -> None:
        rule = f"{selector}{{a:1}}"

        assert (_kept(FORM_HTML, rule) == [rule]) is kept


# ---------------------------------------------------------------------------
# DOM matching
# ---------------------------------------------------------------------------


class TestDomMatching:
    def test_combinators_are_evaluated_against_the_tree(self, page_html: str) -> None:
        css = ".test > strong{a:1}\n.test + strong{a:2}\nbody p.test{a:3}\n.test:hover strong{a:4}"

        kept = _kept(page_html, css, matcher=DomMatcher())

        assert kept == [".test > strong{a:1}", "body p.test{a:3}", ".test:hover strong{a:4}"]

    def test_attribute_selectors_use_the_tree(self) -> None:
        css = "form input[type=text]{a:1}\nheader input{a:2}"

        assert _kept(FORM_HTML, css, matcher=DomMatcher()) == ["form input[type=text]{a:1}"]

    def test_get_matcher_resolves_strategy_names(self) -> None:
        assert isinstance(get_matcher("tokens"), TokenMatcher)
        assert isinstance(get_matcher("dom"), DomMatcher)


# ---------------------------------------------------------------------------
# Selector parsing
# ---------------------------------------------------------------------------


class TestSelectorParsing:
    def test_compounds_and_combinators(self) -> None:
        import tinycss2

        (rule,) = tinycss2.parse_stylesheet("nav > ul li.item + a#x[href] {}", skip_whitespace=True)
        (selector,) = parse_selector_list(rule.prelude)

        assert selector.combinators == [">", " ", "+"]
        assert [compound.tag for compound in selector.compounds] == ["nav", "ul", "li", "a"]
        assert selector.compounds[2].classes == ["item"]
        assert selector.compounds[3].ids == ["x"]
        assert selector.compounds[3].attributes[0].name == "href"
        assert selector.dom_text == "nav > ul li.item + a#x[href]"

    def test_collects_usage_tokens(self) -> None:
        usage = collect_usage(parse_document(FORM_HTML))

        assert {"header", "nav", "a", "input", "html", "head", "body"} <= usage.tags
        assert usage.classes == {"site-header", "menu"}
        assert usage.ids == {"top"}
        assert usage.attribute_values("type") == {"text"}


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TestParseErrors:
    def test_malformed_stylesheet(self, page_html: str) -> None:
        with pytest.raises(ParseError) as excinfo:
            extract_critical_css(page_html, "color: red;")

        assert "line" in excinfo.value.context

    def test_empty_selector_in_list(self, page_html: str) -> None:
        with pytest.raises(ParseError):
            extract_critical_css(page_html, "p,,strong{a:1}")

    def test_undecodable_document(self, page_css: str) -> None:
        with pytest.raises(ParseError):
            extract_critical_css(b"\xff\xfe<p class=test>", page_css)

    def test_malformed_markup_is_tolerated(self, page_css: str) -> None:
        result = extract_critical_css('<p class="test"><strong>unclosed', page_css)

        assert ".test" in result and "strong" in result

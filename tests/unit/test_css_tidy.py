"""
Unit tests for the CSS tidier.
"""

import pytest
from bs4 import BeautifulSoup

from docconvert.utils.css_tidy import minify_css, quote_font_families, tidy_css

POPPLER_STYLES = """<html><head><title>t</title>
<style type="text/css"><!--
.p {font-family: Times New Roman, Arial; color: red;}
div {position: relative;}
--></style>
<style>/* page */ div.page { margin: 0 }</style>
</head><body><div class="page"><p class="p">x</p></div></body></html>"""


def styles_of(html_content):
    soup = BeautifulSoup(html_content, "html.parser")
    return [style.get_text() for style in soup.find_all("style")]


class TestQuoteFontFamilies:

    def test_quotes_names_with_spaces_or_digits(self):
        assert quote_font_families("Arial, Times New Roman, sans-serif") == 'Arial, "Times New Roman", sans-serif'
        assert quote_font_families("Font2") == '"Font2"'

    def test_existing_quotes_are_not_doubled(self):
        assert quote_font_families("'Times New Roman', serif") == '"Times New Roman", serif'

    def test_style_close_tag_is_stripped(self):
        assert "</style>" not in quote_font_families("Evil</style><script>x</script>")

    def test_markup_and_control_characters_are_stripped(self):
        assert quote_font_families("Ev<i>l\n, Arial") == "Evil, Arial"
        assert quote_font_families("</style/>, Arial") == "Arial"
        assert quote_font_families("</style\n/>Mono;}") == "Mono"


class TestTidyCss:

    def test_merges_and_minifies(self):
        styles = styles_of(tidy_css(POPPLER_STYLES))
        assert styles == [
            '.p{font-family:"Times New Roman",Arial;color:red}'
            'div{position:relative;page-break-inside:avoid}'
            'div.page{margin:0;page-break-inside:avoid}'
        ]

    def test_style_moves_to_head(self):
        soup = BeautifulSoup(tidy_css(POPPLER_STYLES), "html.parser")
        assert soup.head.find("style") is not None
        assert soup.body.find("style") is None

    def test_font_and_background_overrides(self):
        styles = styles_of(tidy_css(POPPLER_STYLES, background_color="#fff", fonts="Arial, Sans Serif"))
        assert styles == [
            '.p{font-family:Arial,"Sans Serif";color:red}'
            'div{position:relative;page-break-inside:avoid;background-color:#fff}'
            'div.page{margin:0;page-break-inside:avoid;background-color:#fff}'
        ]

    def test_single_stylesheet_gets_fonts_on_every_rule(self):
        html_content = "<html><head><style>p {color: blue}</style></head><body></body></html>"
        assert styles_of(tidy_css(html_content, fonts="Arial")) == ["p{color:blue;font-family:Arial}"]

    def test_override_without_style_creates_div_rule(self):
        html_content = "<html><head></head><body><div>x</div></body></html>"
        styles = styles_of(tidy_css(html_content, background_color="white"))
        assert styles == ["div{page-break-inside:avoid;background-color:white}"]

    def test_no_style_and_no_override_adds_nothing(self):
        html_content = "<html><head></head><body><p>x</p></body></html>"
        assert styles_of(tidy_css(html_content)) == []

    def test_empty_style_is_dropped(self):
        html_content = "<html><head><style><!-- --></style></head><body></body></html>"
        assert styles_of(tidy_css(html_content)) == []

    def test_injected_fonts_cannot_close_style(self):
        result = tidy_css(POPPLER_STYLES, fonts="Evil</style><script>alert(1)</script>")
        assert result.count("</style>") == 1
        assert "</style><script>" not in result

    @pytest.mark.parametrize("fonts", [
        "</style/><script>alert(1)</script>",
        "</style\n/><script>alert(1)</script>",
        "</STYLE foo><img src=x onerror=alert(1)>",
        "Arial;} body {display:none",
    ])
    def test_fonts_cannot_leave_stylesheet(self, fonts):
        result = tidy_css(POPPLER_STYLES, fonts=fonts)
        assert result.count("</style") == 1
        assert "<script" not in result
        assert "<img" not in result
        style = styles_of(result)[0]
        assert "<" not in style
        assert ">" not in style
        assert style.count("{") == style.count("}") == 3

    def test_background_colour_cannot_break_out_of_rule(self):
        styles = styles_of(tidy_css(POPPLER_STYLES, background_color="red} body {display:none"))
        assert "display:none}" not in styles[0]
        assert styles[0].count("{") == styles[0].count("}")

    def test_media_queries_are_kept(self):
        html_content = "<html><head><style>@media print { div { color: black } }</style></head></html>"
        assert styles_of(tidy_css(html_content)) == ["@media print{div{color:black}}"]


class TestMinifyCss:

    def test_strips_comments_and_semicolons(self):
        assert minify_css("/* x */ a ,  b > c { color : red ; ; }") == "a,b>c{color:red}"

    def test_drops_empty_rules(self):
        assert minify_css("div {}") == ""

import httpx
import pytest

from conftest import CH2_XHTML, CONTENT_OPF, PNG_BYTES, TOC_NCX
from epub2md.core.converter import (
    Converter,
    get_default_output_dir,
    get_default_output_file,
)
from epub2md.core.epub_parser import EpubParser
from epub2md.core.output_writer import SECTION_SEPARATOR

REMOTE_CH = """<html><head><title>Remote</title></head><body>
<p><img src="https://cdn.example.com/art/photo.gif" alt="photo"/></p>
<p><img src="images/missing.png" alt="gone"/></p>
<p><img src="./images/cover.png" alt="already local"/></p>
</body></html>
"""


@pytest.fixture
def parser(sample_epub):
    with EpubParser(sample_epub) as parser:
        yield parser


@pytest.fixture
def converter(parser):
    return Converter(parser.parse(), parser.archive)


def test_default_output_locations(tmp_path):
    book = tmp_path / "My Book.epub"
    assert get_default_output_dir(book) == tmp_path / "My Book_markdown"
    assert get_default_output_file(book) == tmp_path / "My Book_merged.md"


def test_convert_without_localization(converter, tmp_path):
    out = tmp_path / "out"
    result = converter.convert_to_markdown(output_dir=out)

    assert [p.name for p in result.files] == ["1-Chapter_One.md", "2-Chapter_Two.md"]
    assert sorted(p.name for p in out.iterdir()) == ["1-Chapter_One.md", "2-Chapter_Two.md"]
    assert not (out / "images").exists()
    assert result.images_dir is None
    assert result.output_path == out

    chapter_one = (out / "1-Chapter_One.md").read_text(encoding="utf-8")
    assert "# Chapter One" in chapter_one
    assert "stormy night" in chapter_one
    assert 'src="images/cover.png"' in chapter_one


def test_convert_with_localization_extracts_and_rewrites(converter, tmp_path):
    out = tmp_path / "out"
    result = converter.convert_to_markdown(localize_images=True, output_dir=out)

    assert (out / "images" / "cover.png").read_bytes() == PNG_BYTES
    assert result.images_dir == out / "images"
    assert result.images == ["cover.png"]
    assert result.warnings == []

    chapter_one = (out / "1-Chapter_One.md").read_text(encoding="utf-8")
    assert 'src="./images/cover.png"' in chapter_one
    assert 'src="images/cover.png"' not in chapter_one


def test_default_output_dir_sits_next_to_book(converter, sample_epub):
    result = converter.convert_to_markdown()
    assert result.output_path == sample_epub.parent / "book_markdown"
    assert len(list(result.output_path.glob("*.md"))) == 2


def test_single_markdown(converter, tmp_path):
    target = tmp_path / "merged" / "book.md"
    result = converter.convert_to_single_markdown(localize_images=True, output_filename=target)

    assert result.files == [target]
    content = target.read_text(encoding="utf-8")
    assert content.startswith("# Chapter One\n\n")
    assert content.count(SECTION_SEPARATOR) == 1
    assert not content.endswith(SECTION_SEPARATOR)
    assert "# Chapter Two" in content
    assert (tmp_path / "merged" / "images" / "cover.png").exists()
    assert 'src="./images/cover.png"' in content


def test_single_markdown_default_name(converter, sample_epub):
    result = converter.convert_to_single_markdown()
    assert result.output_path == sample_epub.parent / "book_merged.md"
    assert result.output_path.exists()
    assert not (sample_epub.parent / "images").exists()


def test_image_failures_do_not_abort_conversion(make_epub, tmp_path):
    opf = CONTENT_OPF.replace('href="ch1.xhtml"', 'href="remote.xhtml"')
    path = make_epub(
        {
            "OEBPS/content.opf": opf,
            "OEBPS/toc.ncx": TOC_NCX,
            "OEBPS/remote.xhtml": REMOTE_CH,
            "OEBPS/ch2.xhtml": CH2_XHTML,
            "OEBPS/images/cover.png": PNG_BYTES,
        },
        name="remote.epub",
    )

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"GIF89a", request=request)

    out = tmp_path / "remote_out"
    with httpx.Client(transport=httpx.MockTransport(handler)) as client:
        with EpubParser(path) as parser:
            converter = Converter(parser.parse(), parser.archive, http_client=client)
            result = converter.convert_to_markdown(localize_images=True, output_dir=out)

    assert len(result.files) == 2
    markdown = result.files[0].read_text(encoding="utf-8")
    assert 'src="./images/photo.gif"' in markdown
    assert 'src="images/missing.png"' in markdown
    assert 'src="./images/cover.png"' in markdown
    assert (out / "images" / "photo.gif").read_bytes() == b"GIF89a"
    assert sorted(result.images) == ["cover.png", "photo.gif"]
    assert len(result.warnings) == 1
    assert "images/missing.png" in result.warnings[0]


def test_exports_do_not_share_state(converter, tmp_path):
    converter.convert_to_markdown(localize_images=True, output_dir=tmp_path / "first")
    result = converter.convert_to_markdown(output_dir=tmp_path / "second")

    assert not (tmp_path / "second" / "images").exists()
    chapter_one = result.files[0].read_text(encoding="utf-8")
    assert 'src="images/cover.png"' in chapter_one


def test_progress_callback_sees_every_section(converter, tmp_path):
    seen = []
    converter.convert_to_single_markdown(
        output_filename=tmp_path / "all.md", on_section=lambda s: seen.append(s.id)
    )
    assert seen == ["ch1", "ch2"]


def test_malformed_image_url_does_not_abort_conversion(make_epub, tmp_path):
    bad_chapter = CH2_XHTML.replace(
        "<p>The end.</p>", '<p><img src="http://[::1/broken.png" alt="bad"/></p>'
    )
    path = make_epub(
        {
            "OEBPS/content.opf": CONTENT_OPF,
            "OEBPS/toc.ncx": TOC_NCX,
            "OEBPS/ch1.xhtml": bad_chapter,
            "OEBPS/ch2.xhtml": CH2_XHTML,
            "OEBPS/images/cover.png": PNG_BYTES,
        },
        name="malformed.epub",
    )

    out = tmp_path / "malformed_out"
    with EpubParser(path) as parser:
        converter = Converter(parser.parse(), parser.archive)
        result = converter.convert_to_markdown(localize_images=True, output_dir=out)

    assert len(result.files) == 2
    assert 'src="http://[::1/broken.png"' in result.files[0].read_text(encoding="utf-8")
    assert len(result.warnings) == 1
    assert "http://[::1/broken.png" in result.warnings[0]

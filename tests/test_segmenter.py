from babelmark.models import SEP, SegmentKind, TranslationOptions
from babelmark.protection import ProtectionRules
from babelmark.segmenter import segment_markdown, segment_tree
from babelmark.markdown import parse_document


def _texts(result):
    return [segment.text for segment in result.segments]


def test_heading_and_paragraph_become_two_text_segments():
    result = segment_markdown("# Title\n\nHello **world**.\n")

    assert [segment.id for segment in result.segments] == ["s1", "s2"]
    assert all(segment.kind is SegmentKind.TEXT for segment in result.segments)
    assert _texts(result) == ["Title", f"Hello {SEP}world{SEP}."]
    assert [node.children for node in result.text_nodes["s2"]] == ["Hello ", "world", "."]


def test_code_is_never_segmented():
    text = "Run `pip install` now.\n\n```python\nprint('hello')\n```\n\n    indented code\n"
    result = segment_markdown(text)

    assert _texts(result) == [f"Run {SEP} now."]
    joined = " ".join(_texts(result))
    assert "pip install" not in joined
    assert "print" not in joined
    assert "indented" not in joined


def test_link_text_follows_option():
    text = "See [the docs](https://example.com/docs) now.\n"

    with_links = segment_markdown(text)
    assert _texts(with_links) == [f"See {SEP}the docs{SEP} now."]

    without_links = segment_markdown(text, TranslationOptions(translate_link_text=False))
    assert _texts(without_links) == [f"See {SEP} now."]
    assert all("example.com" not in value for value in _texts(without_links))


def test_autolinks_are_not_translated():
    result = segment_markdown("Visit <https://example.com> today.\n")

    assert all("example.com" not in value for value in _texts(result))
    assert _texts(result) == [f"Visit {SEP} today."]


def test_image_alt_only_when_enabled():
    text = "![A cat](cat.png)\n"

    default = segment_markdown(text)
    assert default.segments == []

    with_alt = segment_markdown(text, TranslationOptions(translate_image_alt=True))
    assert [(seg.id, seg.kind, seg.text) for seg in with_alt.segments] == [
        ("img1", SegmentKind.IMAGE_ALT, "A cat"),
    ]
    assert "img1" in with_alt.image_nodes


def test_image_alt_is_not_duplicated_into_the_paragraph():
    text = "Look ![A cat](cat.png) here.\n"
    result = segment_markdown(text, TranslationOptions(translate_image_alt=True))

    text_segments = [seg for seg in result.segments if seg.kind is SegmentKind.TEXT]
    image_segments = [seg for seg in result.segments if seg.kind is SegmentKind.IMAGE_ALT]
    assert [seg.text for seg in text_segments] == [f"Look {SEP} here."]
    assert [seg.text for seg in image_segments] == ["A cat"]


def test_empty_alt_produces_no_segment():
    result = segment_markdown("![](cat.png)\n", TranslationOptions(translate_image_alt=True))
    assert result.segments == []


def test_list_items_are_segmented_once():
    result = segment_markdown("- First item\n- Second item\n")
    assert _texts(result) == ["First item", "Second item"]


def test_nested_list_text_is_claimed_by_outer_item():
    result = segment_markdown("- Parent\n  - Child\n")

    texts = _texts(result)
    assert sum(value.count("Parent") for value in texts) == 1
    assert sum(value.count("Child") for value in texts) == 1
    assert len(result.segments) == 1


def test_whitespace_only_text_nodes_are_skipped():
    result = segment_markdown("**alpha** **beta**\n")
    assert _texts(result) == [f"alpha{SEP}beta"]


def test_blank_document_has_no_segments():
    assert segment_markdown("").segments == []
    assert segment_markdown("\n\n   \n").segments == []


def test_table_cells_are_separate_segments():
    result = segment_markdown("| Name | Role |\n| --- | --- |\n| Ada | Author |\n")
    assert _texts(result) == ["Name", "Role", "Ada", "Author"]


def test_front_matter_is_split_off_and_not_segmented():
    text = "---\ntitle: Hello\n---\n# Heading\n"
    result = segment_markdown(text)

    assert result.front_matter == "---\ntitle: Hello\n---\n"
    assert _texts(result) == ["Heading"]


def test_ids_are_sequential_per_kind():
    text = "# One\n\n![Alt one](a.png)\n\nTwo\n\n![Alt two](b.png)\n"
    result = segment_markdown(text, TranslationOptions(translate_image_alt=True))

    assert [segment.id for segment in result.segments] == ["s1", "img1", "s2", "img2"]


def test_segment_tree_accepts_prebuilt_rules():
    front_matter, document, md = parse_document("Hello [link](https://x.test)\n")
    result = segment_tree(document, ProtectionRules(translate_link_text=False), markdown=md)

    assert _texts(result) == ["Hello "]
    assert result.front_matter == ""


def test_source_parts_recovers_node_values():
    result = segment_markdown("Hello **world**.\n")
    assert result.source_parts("s1") == ["Hello ", "world", "."]
    assert result.source_parts("missing") == []


def test_segments_are_looked_up_by_id():
    result = segment_markdown("# Title\n\nBody\n\n![alt](a.png)\n", TranslationOptions(translate_image_alt=True))

    assert result.get("s2") is result.segments[1]
    assert result.get("img1").kind is SegmentKind.IMAGE_ALT
    assert result.get("s9") is None
    assert result.source_parts("img1") == ["alt"]


def test_backslash_escapes_stay_inside_the_text_node():
    result = segment_markdown("Tom &amp; Jerry cost 5\\* each, see $a \\* b$.\n")

    assert _texts(result) == ["Tom &amp; Jerry cost 5\\* each, see $a \\* b$."]
    assert len(result.text_nodes["s1"]) == 1
    assert "*" in result.segments[0].text


def test_escapes_inside_emphasis_are_folded_too():
    result = segment_markdown("Hello **snake\\_case** name.\n")
    assert _texts(result) == [f"Hello {SEP}snake\\_case{SEP} name."]

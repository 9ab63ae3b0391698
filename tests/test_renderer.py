from conftest import make_entry, make_settings

from campaign_dispatcher.schemas.entries import MediaReference
from campaign_dispatcher.services.renderer import BODY_SNIPPET_LENGTH, CampaignRenderer, plain_text


def _renderer() -> CampaignRenderer:
    return CampaignRenderer(public_site_url="https://news.example.com/", media_base_url="https://cms.example.com")


def test_render_is_deterministic() -> None:
    renderer = _renderer()
    entry = make_entry()
    assert renderer.render(entry) == renderer.render(entry)


def test_render_includes_title_link_and_excerpt() -> None:
    html = _renderer().render(make_entry(title="Gold & Copper"))
    assert "<h2>Gold &amp; Copper</h2>" in html
    assert 'href="https://news.example.com/news-sections/A1"' in html
    assert "<p>Drill results are in.</p>" in html
    assert "*|UNSUB|*" in html


def test_render_body_snippet_is_plain_and_truncated() -> None:
    body = "<p>" + ("x" * (BODY_SNIPPET_LENGTH + 50)) + "</p><script>alert(1)</script>"
    html = _renderer().render(make_entry(body=body))
    assert "x" * BODY_SNIPPET_LENGTH in html
    assert "x" * (BODY_SNIPPET_LENGTH + 1) not in html
    assert "<script>" not in html


def test_render_resolves_cover_image() -> None:
    entry = make_entry(cover=MediaReference(url="/uploads/ore.jpg"))
    html = _renderer().render(entry)
    assert 'src="https://cms.example.com/uploads/ore.jpg"' in html


def test_render_without_image_or_excerpt() -> None:
    html = _renderer().render(make_entry(excerpt="", cover=None))
    assert "hero-image" not in html.split("</style>", 1)[1]
    assert 'class="excerpt"' not in html


def test_subject_and_preview_text() -> None:
    renderer = _renderer()
    assert renderer.subject(make_entry()) == "New: Ore Discovery"
    assert renderer.subject(make_entry(title="")) == "New: MiningDiscovery Update"
    assert renderer.preview_text(make_entry()) == "Drill results are in."
    assert renderer.preview_text(make_entry(excerpt="")) == "Ore Discovery"


def test_from_settings_uses_site_url() -> None:
    renderer = CampaignRenderer.from_settings(make_settings(public_site_url="https://site.example.com/"))
    assert renderer.entry_url(make_entry()) == "https://site.example.com/news-sections/A1"
    assert renderer.media_base_url == "https://site.example.com"


def test_plain_text_strips_tags_and_entities() -> None:
    assert plain_text("<p>Gold&nbsp;&amp;   <b>copper</b></p>") == "Gold & copper"
    assert plain_text(None) == ""

"""
Unit tests для ImagePayloadSanitizer.
"""

from content_engine.domain.value_objects.generation import GenerationPayload
from content_engine.infrastructure.ai.payload_sanitizer import ImagePayloadSanitizer
from content_engine.infrastructure.images.url_policy import ImageUrlPolicy

POLICY = ImageUrlPolicy(["images.example.com"])


def payload(**fields):
    return GenerationPayload(content="<p>Body</p>", **fields)


def test_clean_payload_untouched():
    original = payload(
        featured_image_url="https://images.example.com/a.jpg",
        og_image_url="https://images.example.com/b.png",
        inline_images=[{"url": "https://images.example.com/c.webp"}],
    )

    result = ImagePayloadSanitizer(POLICY).sanitize(original)

    assert result.featured_image_url == original.featured_image_url
    assert result.og_image_url == original.og_image_url
    assert len(result.inline_images) == 1
    assert result.image_warnings == []


def test_disallowed_urls_removed_with_warnings():
    original = payload(
        featured_image_url="https://evil.example.net/a.jpg",
        og_image_url="https://images.example.com/page.html",
        inline_images=[
            {"url": "http://images.example.com/c.png"},
            {"url": "https://images.example.com/d.png"},
        ],
    )

    result = ImagePayloadSanitizer(POLICY).sanitize(original)

    assert result.featured_image_url == ""
    assert result.og_image_url == ""
    assert [i.url for i in result.inline_images] == ["https://images.example.com/d.png"]
    assert result.image_warnings == [
        "featured_removed_disallowed_host",
        "og_removed_invalid_extension",
        "inline_removed_count:1",
    ]
    # Исходный объект не меняется
    assert original.featured_image_url == "https://evil.example.net/a.jpg"


def test_unreachable_urls_removed():
    probe_calls = []

    def probe(url):
        probe_calls.append(url)
        return url.endswith("ok.png")

    original = payload(
        featured_image_url="https://images.example.com/missing.png",
        og_image_url="https://images.example.com/ok.png",
        inline_images=[{"url": "https://images.example.com/gone.png"}],
    )

    result = ImagePayloadSanitizer(POLICY, probe=probe).sanitize(original)

    assert result.featured_image_url == ""
    assert result.og_image_url == "https://images.example.com/ok.png"
    assert result.inline_images == []
    assert "featured_not_fetchable" in result.image_warnings
    assert "inline_removed_count:1" in result.image_warnings
    assert len(probe_calls) == 3


def test_existing_warnings_kept():
    original = payload(featured_image_url="ftp://x/a.png", image_warnings=["upstream_note"])

    result = ImagePayloadSanitizer(POLICY).sanitize(original)

    assert result.image_warnings == ["upstream_note", "featured_removed_disallowed_host"]


def test_unparseable_inline_entries_are_counted():
    original = payload(inline_images=[
        {"url": "https://images.example.com/d.png"},
        {"alt": "no url"},
        {"url": "   "},
        "https://images.example.com/e.png",
        {"url": "https://evil.example.net/f.png"},
    ])

    result = ImagePayloadSanitizer(POLICY).sanitize(original)

    assert original.inline_images_dropped == 3
    assert [i.url for i in result.inline_images] == ["https://images.example.com/d.png"]
    assert result.image_warnings == ["inline_removed_count:4"]
    assert result.inline_images_dropped == 0

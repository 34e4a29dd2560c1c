"""Tests for reference image classification and data URL parsing."""
import base64

import pytest

from mcp_fal.services.image_generation.base import ReferenceImageError
from mcp_fal.services.image_generation.inputs import (
    ReferenceKind,
    classify_reference,
    extension_for,
    guess_content_type,
    parse_data_url,
    preview,
)


@pytest.mark.parametrize(
    "value",
    ["data:image/png;base64,AAAA", "data:", "data:https://example.com/x.png", "data:garbage"],
)
def test_data_prefix_is_data_url(value):
    assert classify_reference(value) is ReferenceKind.DATA_URL


@pytest.mark.parametrize("value", ["http://x/y.jpg", "https://x/y.jpg", "https://"])
def test_http_prefix_is_url(value):
    assert classify_reference(value) is ReferenceKind.URL


@pytest.mark.parametrize(
    "value",
    ["/tmp/a.png", "relative/a.jpg", "ftp://x/y.png", "HTTPS://x/y.png", "", "image.data:png"],
)
def test_everything_else_is_local_file(value):
    assert classify_reference(value) is ReferenceKind.LOCAL_FILE


def test_parse_data_url_decodes_payload():
    raw = b"\x89PNG\r\n\x1a\nrest"
    data, content_type = parse_data_url("data:image/png;base64," + base64.b64encode(raw).decode())
    assert data == raw
    assert content_type == "image/png"


@pytest.mark.parametrize(
    "value",
    ["data:image/png,AAAA", "data:;base64,AAAA", "data:image/png;base64,", "data:image/png;utf8,abc"],
)
def test_parse_data_url_rejects_malformed(value):
    with pytest.raises(ReferenceImageError, match="Invalid data URL format"):
        parse_data_url(value)


def test_guess_content_type_table():
    assert guess_content_type("/a/b.PNG") == "image/png"
    assert guess_content_type("b.jpg") == "image/jpeg"
    assert guess_content_type("b.jpeg") == "image/jpeg"
    assert guess_content_type("b.gif") == "image/gif"
    assert guess_content_type("b.webp") == "image/webp"
    assert guess_content_type("b.bmp") == "image/bmp"
    assert guess_content_type("b.tiff") == "image/png"
    assert guess_content_type("noext") == "image/png"


def test_extension_for_content_type():
    assert extension_for("image/jpeg") == ".jpeg"
    assert extension_for("image/webp") == ".webp"
    assert extension_for("application/octet-stream") == ".png"


def test_preview_truncates_long_values():
    assert preview("short") == "short"
    long_value = "data:image/png;base64," + "A" * 500
    assert preview(long_value) == long_value[:100] + "..."

import pytest

from core.sniff import guess_mime_type
from tests.utils_uploads import build_image


@pytest.mark.parametrize(
    "image_format,mime",
    [("PNG", "image/png"), ("JPEG", "image/jpeg"), ("GIF", "image/gif"), ("WEBP", "image/webp")],
)
def test_images_are_recognised(image_format, mime):
    assert guess_mime_type(build_image(8, 8, image_format)) == mime


def test_pdf_is_recognised():
    assert guess_mime_type(b"%PDF-1.7\n%\xe2\xe3\xcf\xd3\n") == "application/pdf"


@pytest.mark.parametrize("data", [b"", b"just some text", b"\x00\x01\x02"])
def test_unknown_content(data):
    assert guess_mime_type(data) is None

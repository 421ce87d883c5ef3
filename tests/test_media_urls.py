"""Renderable media URL tests."""

from zapflow.config import ApiConfig
from zapflow.media.urls import guess_mime_from_base64, is_likely_base64, to_data_uri, to_renderable_url

PNG_B64 = "iVBORw0KGgoAAAANSUhEUgAA" + "A" * 300
JPEG_B64 = "/9j/4AAQSkZJRgABAQ" + "B" * 300
UNKNOWN_B64 = "QUJD" * 80

GATEWAY = ApiConfig(base_url="https://evo.example.com/", api_key="secret", instance_name="main")


class TestCdn:
    def test_host_prefixed(self):
        assert to_renderable_url("mmg.whatsapp.net/v/t62/a.enc") == "https://mmg.whatsapp.net/v/t62/a.enc"

    def test_direct_path(self):
        assert to_renderable_url("/v/t62.7118-24/a.enc?ccb=11") == "https://mmg.whatsapp.net/v/t62.7118-24/a.enc?ccb=11"
        assert to_renderable_url("/mms/image/x") == "https://mmg.whatsapp.net/mms/image/x"

    def test_direct_path_without_slash(self):
        assert to_renderable_url("v/t62/a.enc") == "https://mmg.whatsapp.net/v/t62/a.enc"


class TestBase64:
    def test_png_sniffed(self):
        assert to_renderable_url(PNG_B64) == f"data:image/png;base64,{PNG_B64}"

    def test_jpeg_is_not_a_path(self):
        assert is_likely_base64(JPEG_B64)
        assert to_renderable_url(JPEG_B64, GATEWAY) == f"data:image/jpeg;base64,{JPEG_B64}"

    def test_media_type_default_mime(self):
        assert to_renderable_url(UNKNOWN_B64, media_type="audio") == f"data:audio/ogg; codecs=opus;base64,{UNKNOWN_B64}"
        assert to_renderable_url(UNKNOWN_B64) == f"data:application/octet-stream;base64,{UNKNOWN_B64}"

    def test_mime_hint_wins(self):
        assert to_renderable_url(PNG_B64, mime_type="image/x-custom").startswith("data:image/x-custom;base64,")

    def test_short_strings_not_base64(self):
        assert not is_likely_base64("QUJD")
        assert not is_likely_base64("/files/" + "a" * 300)

    def test_whitespace_stripped(self):
        wrapped = PNG_B64[:100] + "\n" + PNG_B64[100:]
        assert to_data_uri(wrapped) == f"data:image/png;base64,{PNG_B64}"

    def test_guess(self):
        assert guess_mime_from_base64("JVBERi0xLjQ") == "application/pdf"
        assert guess_mime_from_base64("zzzz") is None


class TestUrls:
    def test_data_uri_unchanged(self):
        assert to_renderable_url("data:image/png;base64,AAAA") == "data:image/png;base64,AAAA"

    def test_external_url_unchanged(self):
        assert to_renderable_url("https://cdn.other.com/a.jpg", GATEWAY) == "https://cdn.other.com/a.jpg"

    def test_gateway_url_gets_api_key(self):
        assert (
            to_renderable_url("https://evo.example.com/media/a.jpg", GATEWAY)
            == "https://evo.example.com/media/a.jpg?apikey=secret"
        )

    def test_relative_joined_to_gateway(self):
        assert to_renderable_url("/files/a.jpg", GATEWAY) == "https://evo.example.com/files/a.jpg?apikey=secret"
        assert to_renderable_url("files/a.jpg", GATEWAY) == "https://evo.example.com/files/a.jpg?apikey=secret"

    def test_relative_without_gateway(self):
        assert to_renderable_url("files/a.jpg") == "files/a.jpg"

    def test_empty(self):
        assert to_renderable_url(None) is None
        assert to_renderable_url("   ") is None

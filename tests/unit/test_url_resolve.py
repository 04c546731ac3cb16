from dnilookup.pipeline.urls import absolutize_url, with_query_params


def test_relative_link_resolves_against_base():
    assert absolutize_url("/x", "https://site.test/page") == "https://site.test/x"


def test_relative_path_without_slash():
    assert absolutize_url("ficha/2", "https://site.test/buscar/") == "https://site.test/buscar/ficha/2"


def test_absolute_link_wins():
    assert absolutize_url("https://other.test/a?b=1", "https://site.test/page") == "https://other.test/a?b=1"


def test_malformed_href_returned_unchanged():
    assert absolutize_url("http://[broken", "https://site.test/page") == "http://[broken"
    assert absolutize_url("http://site.test:port/x", "https://site.test/page") == "http://site.test:port/x"


def test_empty_href_gives_empty_string():
    assert absolutize_url("", "https://site.test/page") == ""
    assert absolutize_url(None, "https://site.test/page") == ""


def test_with_query_params_replaces_and_preserves():
    url = with_query_params("https://site.test/buscar/?lang=es&nombres=old", {"nombres": "Juan", "company": ""})
    assert url == "https://site.test/buscar/?lang=es&nombres=Juan&company="

"""
End-to-end tests for the extraction waterfall, driven by the scripted HTTP
client and the recorded browser session.
"""

import json

import pytest

from api_extractor import candidate_endpoints
from collector import JobCollector
from conftest import (
    BASE_URL,
    LISTING_URL,
    FakeHttpClient,
    FixtureBrowserSession,
    card_html,
    ld_json_script,
    listing_html,
    make_config,
)
from http_client import FetchError
from models import NOT_SPECIFIED, ExtractionMethod


def _api_payload(count, prefix="api"):
    return json.dumps({
        "data": {
            "ofertas": [
                {"titulo": f"Oferta {i}", "empresa": "Acme", "url": f"/oferta-{prefix}-{i}"}
                for i in range(count)
            ]
        }
    })


def test_duplicate_cards_keep_first_in_order(three_card_listing):
    """3 cards where card 1 and 3 share a URL yield 2 records: card1, card2."""
    client = FakeHttpClient({LISTING_URL: (200, three_card_listing)})
    collector = JobCollector(make_config(), client)

    result = collector.run(LISTING_URL, 10)

    assert result.method == ExtractionMethod.HTML
    assert [job.title for job in result.jobs] == ["Analista Administrativo", "Recepcionista"]
    assert result.jobs[0].url == f"{BASE_URL}/ofertas-de-trabajo/oferta-de-trabajo-de-analista-administrativo-AAA1"
    for job in result.jobs:
        assert job.title
        assert job.url
        assert job.description_html
    assert len({job.url for job in result.jobs}) == len(result.jobs)


def test_api_success_skips_html_and_json_ld():
    endpoint = candidate_endpoints(LISTING_URL)[0]
    client = FakeHttpClient({endpoint: (200, _api_payload(3))})
    collector = JobCollector(make_config(), client)

    result = collector.run(LISTING_URL, 3)

    assert result.method == ExtractionMethod.API
    assert len(result.jobs) == 3
    assert LISTING_URL not in client.requested_urls()
    assert result.jobs[0].url == f"{BASE_URL}/oferta-api-0"


def test_html_falls_back_to_json_ld_on_same_page():
    posting = {
        "@context": "https://schema.org",
        "@type": "JobPosting",
        "title": "Contador",
        "hiringOrganization": {"@type": "Organization", "name": "Estudio X"},
        "url": "/ofertas-de-trabajo/contador-CCC3",
        "baseSalary": {"minValue": 1000, "maxValue": 2000, "currency": "ARS"},
    }
    html = listing_html([], extra_head=ld_json_script(posting))
    client = FakeHttpClient({LISTING_URL: (200, html)})
    collector = JobCollector(make_config(), client)

    result = collector.run(LISTING_URL, 5)

    assert result.method == ExtractionMethod.JSON_LD
    assert result.jobs[0].salary == "1000 - 2000 ARS"
    assert result.jobs[0].company == "Estudio X"
    assert client.requested_urls().count(LISTING_URL) == 1


def test_max_jobs_truncates_output():
    cards = [card_html(f"Puesto {i}", f"/oferta-{i}") for i in range(6)]
    client = FakeHttpClient({LISTING_URL: (200, listing_html(cards))})
    collector = JobCollector(make_config(), client)

    result = collector.run(LISTING_URL, 4)

    assert [job.title for job in result.jobs] == ["Puesto 0", "Puesto 1", "Puesto 2", "Puesto 3"]


def test_max_jobs_zero_means_ceiling():
    cards = [card_html(f"Puesto {i}", f"/oferta-{i}") for i in range(3)]
    client = FakeHttpClient({LISTING_URL: (200, listing_html(cards))})
    collector = JobCollector(make_config(), client)

    result = collector.run(LISTING_URL, 0)

    assert len(result.jobs) == 3


def test_negative_max_jobs_fails_before_any_fetch():
    client = FakeHttpClient()
    collector = JobCollector(make_config(), client)

    with pytest.raises(ValueError):
        collector.run(LISTING_URL, -1)
    assert client.requests == []


def test_http_pagination_follows_next_link_and_stops_on_empty_page():
    page2 = f"{BASE_URL}/empleos-de-administracion-y-oficina?p=2"
    page3 = f"{BASE_URL}/empleos-de-administracion-y-oficina?p=3"
    client = FakeHttpClient({
        LISTING_URL: (200, listing_html([card_html("Uno", "/oferta-1")], next_href="/empleos-de-administracion-y-oficina?p=2")),
        page2: (200, listing_html([card_html("Dos", "/oferta-2")], next_href="/empleos-de-administracion-y-oficina?p=3")),
        page3: (200, listing_html([])),
    })
    collector = JobCollector(make_config(search={"max_pages": 5}), client)

    result = collector.run(LISTING_URL, 10)

    assert [job.title for job in result.jobs] == ["Uno", "Dos"]
    assert collector.state.pages_processed == 2
    assert page3 in client.requested_urls()
    assert f"{BASE_URL}/empleos-de-administracion-y-oficina?p=4" not in client.requested_urls()


def test_listing_fetch_failure_falls_through_to_browser():
    client = FakeHttpClient({LISTING_URL: FetchError("timeout", url=LISTING_URL)})
    browser = FixtureBrowserSession([{"html": listing_html([card_html("Desde navegador", "/oferta-b1")])}])
    collector = JobCollector(make_config(search={"max_pages": 5}, browser={"enabled": True}), client, browser_factory=lambda: browser)

    result = collector.run(LISTING_URL, 10)

    assert result.method == ExtractionMethod.BROWSER_HTML
    assert [job.title for job in result.jobs] == ["Desde navegador"]
    assert browser.closed
    # No click happened, so HTTP pagination continued with the browser cookies.
    assert client.seeded_cookies
    assert f"{LISTING_URL}?p=2" in client.requested_urls()


def test_browser_prefers_captured_network_json():
    payload = json.loads(_api_payload(2, prefix="net"))
    html = listing_html([card_html("Solo HTML", "/oferta-html")])
    browser = FixtureBrowserSession([{"html": html, "payloads": [payload]}])
    collector = JobCollector(make_config(browser={"enabled": True}), FakeHttpClient(), browser_factory=lambda: browser)

    result = collector.run(LISTING_URL, 10)

    assert result.method == ExtractionMethod.BROWSER_API
    assert [job.title for job in result.jobs] == ["Oferta 0", "Oferta 1"]


def test_browser_json_ld_before_dom_cards():
    posting = {"@type": "JobPosting", "title": "Desde JSON-LD", "url": "/oferta-ld"}
    html = listing_html([card_html("Desde tarjeta", "/oferta-card")], extra_head=ld_json_script(posting))
    browser = FixtureBrowserSession([{"html": html}])
    client = FakeHttpClient({LISTING_URL: (403, "blocked")})
    collector = JobCollector(make_config(browser={"enabled": True}), client, browser_factory=lambda: browser)

    result = collector.run(LISTING_URL, 10)

    assert result.method == ExtractionMethod.BROWSER_JSON_LD
    assert [job.title for job in result.jobs][0] == "Desde JSON-LD"


def test_browser_click_pagination_owns_the_run():
    pages = [
        {"html": listing_html([card_html("Página 1", "/oferta-p1")])},
        {"html": listing_html([card_html("Página 2", "/oferta-p2")])},
        {"html": listing_html([card_html("Página 3", "/oferta-p3")])},
    ]
    browser = FixtureBrowserSession(pages)
    client = FakeHttpClient()
    collector = JobCollector(make_config(search={"max_pages": 5}, browser={"enabled": True}), client, browser_factory=lambda: browser)

    result = collector.run(LISTING_URL, 10)

    assert [job.title for job in result.jobs] == ["Página 1", "Página 2", "Página 3"]
    assert browser.clicks == 2
    assert collector.state.browser_completed
    assert f"{LISTING_URL}?p=2" not in client.requested_urls()


def test_browser_click_pagination_stops_at_target():
    pages = [
        {"html": listing_html([card_html(f"Puesto {p}-{i}", f"/oferta-{p}-{i}") for i in range(2)])}
        for p in range(5)
    ]
    browser = FixtureBrowserSession(pages)
    collector = JobCollector(make_config(search={"max_pages": 5}, browser={"enabled": True}), FakeHttpClient(), browser_factory=lambda: browser)

    result = collector.run(LISTING_URL, 3)

    assert len(result.jobs) == 3
    assert browser.clicks == 1


def test_browser_navigation_failure_yields_no_jobs():
    browser = FixtureBrowserSession([{"html": ""}], fail_render=True)
    collector = JobCollector(make_config(browser={"enabled": True}), FakeHttpClient(), browser_factory=lambda: browser)

    result = collector.run(LISTING_URL, 10)

    assert result.jobs == []
    assert result.method == ExtractionMethod.NONE
    assert browser.closed


def test_browser_disabled_is_never_started():
    started = []

    def factory():
        started.append(True)
        return FixtureBrowserSession([{"html": ""}])

    collector = JobCollector(make_config(), FakeHttpClient(), browser_factory=factory)

    result = collector.run(LISTING_URL, 10)

    assert result.jobs == []
    assert started == []


def test_enrichment_merges_detail_pages():
    detail_url = f"{BASE_URL}/oferta-1"
    detail_html = """
    <html><body>
      <h1>Analista Administrativo</h1>
      <div div-link="oferta"><p>Tareas administrativas generales.</p></div>
      <span class="tag jornada">Tiempo completo</span>
    </body></html>
    """
    client = FakeHttpClient({
        LISTING_URL: (200, listing_html([card_html("Analista Administrativo", "/oferta-1", description="Resumen")])),
        detail_url: (200, detail_html),
    })
    config = make_config(search={"include_full_description": True})
    collector = JobCollector(config, client)

    result = collector.run(LISTING_URL, 10)

    job = result.jobs[0]
    assert job.job_type == "Tiempo completo"
    assert "Tareas administrativas generales." in job.description_html
    assert job.description_text == "Tareas administrativas generales."
    assert collector.state.detail_pages_fetched == 1


def test_job_type_filter_keeps_unknown_types():
    posting_a = {"@type": "JobPosting", "title": "A", "url": "/a", "employmentType": "Tiempo completo"}
    posting_b = {"@type": "JobPosting", "title": "B", "url": "/b", "employmentType": "Medio tiempo"}
    posting_c = {"@type": "JobPosting", "title": "C", "url": "/c"}
    html = listing_html([], extra_head=ld_json_script([posting_a, posting_b, posting_c]))
    client = FakeHttpClient({LISTING_URL: (200, html)})
    collector = JobCollector(make_config(search={"job_type": "completo"}), client)

    result = collector.run(LISTING_URL, 10)

    assert [job.title for job in result.jobs] == ["A", "C"]
    assert result.jobs[1].job_type == NOT_SPECIFIED


def test_stats_snapshot_reflects_run(three_card_listing):
    client = FakeHttpClient({LISTING_URL: (200, three_card_listing)})
    collector = JobCollector(make_config(), client)
    result = collector.run(LISTING_URL, 10)

    stats = collector.build_stats(len(result.jobs)).to_dict()

    assert stats["extractionMethod"] == "Html"
    assert stats["pagesProcessed"] == 1
    assert stats["totalJobs"] == 2
    assert stats["detailPagesFetched"] == 0
    assert stats["searchUrl"] == LISTING_URL
    assert stats["durationSeconds"] >= 0
    assert stats["counters"] == {"attempts_api": 1, "attempts_http": 1, "jobs_emitted": 2}
    assert [event["kind"] for event in stats["events"]] == ["method_selected"]
    assert stats["events"][0]["method"] == "Html"


def test_fragment_variants_count_once_toward_target():
    page2 = f"{LISTING_URL}?p=2"
    client = FakeHttpClient({
        LISTING_URL: (200, listing_html([
            card_html("Uno", "/oferta-1#lc=ListOffers-Score-0"),
            card_html("Uno repetido", "/oferta-1#lc=ListOffers-Score-5"),
        ])),
        page2: (200, listing_html([card_html("Dos", "/oferta-2")])),
    })
    collector = JobCollector(make_config(search={"max_pages": 5}), client)

    result = collector.run(LISTING_URL, 2)

    assert page2 in client.requested_urls()
    assert [job.title for job in result.jobs] == ["Uno", "Dos"]
    assert result.jobs[0].url == f"{BASE_URL}/oferta-1"

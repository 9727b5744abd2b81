"""
Detail page parsing, the non-destructive merge rule and the worker pool.
"""

import threading

from conftest import BASE_URL, FakeHttpClient, ld_json_script
from detail_enricher import DetailData, DetailEnricher, merge_detail, parse_detail_page
from http_client import FetchError, HttpResponse
from models import NOT_SPECIFIED, JobPosting

DETAIL_HTML = """
<html><body>
  <div class="box_detail">
    <h1>Auxiliar administrativo</h1>
    <a class="dIB fs16 js-o-link" href="/empresas/acme">Acme Logística</a>
    <p class="fs16">Pilar, Buenos Aires</p>
  </div>
  <span class="tag base">$ 720.000 (Mensual)</span>
  <span class="tag jornada">Tiempo completo</span>
  <p class="fc_aux fs13">Hace 1 día</p>
  <div div-link="oferta"><p>Atención a proveedores.</p><ul><li>Excel</li></ul></div>
</body></html>
"""


def _job(n, **fields):
    data = {"title": f"Puesto {n}", "company": "Listado SA", "url": f"{BASE_URL}/oferta-{n}"}
    data.update(fields)
    return JobPosting(**data)


def test_parse_detail_page_selectors():
    detail = parse_detail_page(DETAIL_HTML, f"{BASE_URL}/oferta-1")

    assert detail.title == "Auxiliar administrativo"
    assert detail.company == "Acme Logística"
    assert detail.location == "Pilar, Buenos Aires"
    assert detail.salary == "$ 720.000 (Mensual)"
    assert detail.job_type == "Tiempo completo"
    assert detail.posted_date == "Hace 1 día"
    assert detail.description_html == "<p>Atención a proveedores.</p><ul><li>Excel</li></ul>"
    assert detail.description_text == "Atención a proveedores. Excel"


def test_parse_detail_page_prefers_json_ld():
    posting = {
        "@type": "JobPosting",
        "title": "Auxiliar (JSON-LD)",
        "hiringOrganization": {"name": "Acme JSON"},
        "description": "<p>Desde datos estructurados</p>",
    }
    html = DETAIL_HTML.replace("<html><body>", "<html><body>" + ld_json_script(posting))

    detail = parse_detail_page(html)

    assert detail.title == "Auxiliar (JSON-LD)"
    assert detail.company == "Acme JSON"
    assert detail.description_html == "<p>Desde datos estructurados</p>"
    # Fields missing from JSON-LD still come from the selectors.
    assert detail.job_type == "Tiempo completo"


def test_merge_never_overwrites_with_empty_values():
    job = _job(1, location="Rosario", salary="$ 500.000", description_text="Resumen")
    detail = DetailData(company="", location="   ", salary=NOT_SPECIFIED, job_type="Part time")

    merged = merge_detail(job, detail)

    assert merged.company == "Listado SA"
    assert merged.location == "Rosario"
    assert merged.salary == "$ 500.000"
    assert merged.job_type == "Part time"
    assert merged.description_text == "Resumen"


def test_merge_skips_description_when_not_requested():
    job = _job(1, description_text="Resumen")
    detail = DetailData(description_html="<p>Completo</p>", description_text="Completo", salary="$ 1")

    merged = merge_detail(job, detail, include_full_description=False)

    assert merged.description_text == "Resumen"
    assert merged.salary == "$ 1"


def test_enrich_preserves_order_and_counts_pages():
    jobs = [_job(n) for n in range(5)]
    routes = {job.url: (200, DETAIL_HTML.replace("Auxiliar administrativo", f"Detalle {n}")) for n, job in enumerate(jobs)}
    enricher = DetailEnricher(FakeHttpClient(routes), concurrency=3)

    enriched = enricher.enrich(jobs)

    assert [job.title for job in enriched] == [f"Detalle {n}" for n in range(5)]
    assert enricher.detail_pages_fetched == 5


def test_failed_detail_keeps_listing_data():
    jobs = [_job(1), _job(2), _job(3, url="")]
    client = FakeHttpClient({
        jobs[0].url: FetchError("timeout", url=jobs[0].url),
        jobs[1].url: (200, DETAIL_HTML),
    })
    enricher = DetailEnricher(client)

    enriched = enricher.enrich(jobs)

    assert enriched[0] == jobs[0]
    assert enriched[1].company == "Acme Logística"
    assert enriched[2] == jobs[2]
    assert enricher.detail_pages_fetched == 1
    assert len(client.requests) == 2


class _CountingClient:
    """Tracks how many requests are in flight at once"""

    def __init__(self):
        self.lock = threading.Lock()
        self.in_flight = 0
        self.peak = 0
        self.urls = []
        self.barrier = threading.Event()

    def get(self, url, **kwargs):
        with self.lock:
            self.in_flight += 1
            self.peak = max(self.peak, self.in_flight)
            self.urls.append(url)
        self.barrier.wait(0.01)
        with self.lock:
            self.in_flight -= 1
        return HttpResponse(url=url, status_code=200, text="<html><h1>Detalle</h1></html>")


def test_pool_is_bounded_and_each_job_fetched_once():
    client = _CountingClient()
    jobs = [_job(n) for n in range(25)]
    enricher = DetailEnricher(client, concurrency=4)

    enricher.enrich(jobs)

    assert client.peak <= 4
    assert sorted(client.urls) == sorted(job.url for job in jobs)


def test_concurrency_is_clamped():
    assert DetailEnricher(FakeHttpClient(), concurrency=50).concurrency == 10
    assert DetailEnricher(FakeHttpClient(), concurrency=0).concurrency == 1
    assert DetailEnricher(FakeHttpClient()).enrich([]) == []

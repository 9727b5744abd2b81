"""
Canonical URLs, first-wins deduplication and the final defaults pass.
"""

from conftest import BASE_URL
from models import NOT_SPECIFIED, JobPosting
from normalizer import canonical_url, dedupe_jobs, finalize_job, matches_job_type, normalize_jobs


def _job(title, url, **fields):
    return JobPosting(title=title, url=url, **fields)


def test_canonical_url():
    assert canonical_url("/ofertas/1#apply", BASE_URL) == f"{BASE_URL}/ofertas/1"
    assert canonical_url("HTTPS://AR.Computrabajo.com/ofertas/1?x=1") == "https://ar.computrabajo.com/ofertas/1?x=1"
    assert canonical_url("https://ar.computrabajo.com") == "https://ar.computrabajo.com/"
    assert canonical_url("/ofertas/1") == ""
    assert canonical_url("") == ""


def test_dedupe_keeps_first_occurrence():
    jobs = [
        _job("Primero", f"{BASE_URL}/ofertas/1", company="A"),
        _job("Segundo", "/ofertas/2"),
        _job("Duplicado", "/ofertas/1#top", company="B"),
    ]

    unique = dedupe_jobs(jobs, BASE_URL, max_jobs=10)

    assert [job.title for job in unique] == ["Primero", "Segundo"]
    assert unique[0].company == "A"
    assert unique[1].url == f"{BASE_URL}/ofertas/2"


def test_dedupe_truncates_and_drops_missing_urls():
    jobs = [_job("Sin URL", "")] + [_job(f"J{n}", f"/o/{n}") for n in range(5)]

    unique = dedupe_jobs(jobs, BASE_URL, max_jobs=3)

    assert [job.title for job in unique] == ["J0", "J1", "J2"]


def test_finalize_fills_sentinels_and_wraps_text():
    job = finalize_job(_job("Cajero", f"{BASE_URL}/o/1", description_text="Atención <al> público"))

    assert job.company == NOT_SPECIFIED
    assert job.location == NOT_SPECIFIED
    assert job.salary == NOT_SPECIFIED
    assert job.job_type == NOT_SPECIFIED
    assert job.description_html == "<p>Atención &lt;al&gt; público</p>"
    assert job.description_text == "Atención <al> público"


def test_finalize_without_any_description():
    job = finalize_job(_job("Cajero", f"{BASE_URL}/o/1"))

    assert job.description_html == f"<p>{NOT_SPECIFIED}</p>"
    assert job.description_text == NOT_SPECIFIED


def test_finalize_derives_text_from_html():
    job = finalize_job(_job("Cajero", f"{BASE_URL}/o/1", description_html="<p>Turno <b>noche</b></p>"))

    assert job.description_html == "<p>Turno <b>noche</b></p>"
    assert job.description_text == "Turno noche"


def test_matches_job_type():
    full_time = _job("A", "/a", job_type="Tiempo completo")
    unknown = _job("B", "/b")

    assert matches_job_type(full_time, "")
    assert matches_job_type(full_time, "COMPLETO")
    assert not matches_job_type(full_time, "medio tiempo")
    assert matches_job_type(unknown, "medio tiempo")


def test_normalize_jobs_output_invariants():
    jobs = [
        _job("Uno", "/o/1"),
        _job("Uno bis", f"{BASE_URL}/o/1"),
        _job("Dos", "/o/2", job_type="Pasantía"),
        _job("Tres", "/o/3", job_type="Tiempo completo"),
    ]

    result = normalize_jobs(jobs, BASE_URL, max_jobs=10, job_type="completo")

    assert [job.title for job in result] == ["Uno", "Tres"]
    for job in result:
        assert job.title and job.url and job.description_html
        assert job.company == NOT_SPECIFIED

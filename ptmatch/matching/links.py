"""Scored links reported by record matching systems."""

from ptmatch.models.fhir import BundleEntry
from ptmatch.models.resources import Link, RecordMatchJob

MPI_MATCH_EXTENSION_URL = "http://hl7.org/fhir/StructureDefinition/patient-mpi-match"


def _match_grade(entry: BundleEntry) -> str:
    assert entry.search is not None
    for extension in entry.search.extension:
        if extension.url == MPI_MATCH_EXTENSION_URL:
            return extension.value_code or ""
    return ""


def get_links(job: RecordMatchJob) -> list[Link]:
    """All links found in a job's responses, in ascending score order."""
    links: list[Link] = []
    for response in job.responses:
        for entry in response.message.entry:
            if entry.search is None or entry.search.score is None:
                continue
            related = entry.related_links()
            if not related:
                continue
            match = _match_grade(entry)
            for link in related:
                links.append(
                    Link(
                        source=entry.full_url or "",
                        target=link.url,
                        match=match,
                        score=entry.search.score,
                    )
                )
    # sorted() is stable, so equal scores keep response order
    return sorted(links, key=lambda link: link.score)


def get_worst_links(job: RecordMatchJob, count: int) -> list[Link]:
    """The count lowest-scored links."""
    return get_links(job)[:count]


def get_best_links(job: RecordMatchJob, count: int) -> list[Link]:
    """The count highest-scored links, still in ascending order."""
    links = get_links(job)
    if count >= len(links):
        return links
    return links[len(links) - count :]

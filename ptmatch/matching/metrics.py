"""
Match quality metrics for record match jobs.

Each response a record matching system sends back lists the links it found
as bare search-result entries: a fullUrl naming the source record, a search
score and one or more "related" links naming the matched records. Links are
counted cumulatively across every response of a job and, in deduplication
mode, scored against the answer key of the master record set:

- precision = TP / (TP + FP)
- recall = answer-key sources found / answer-key sources
- F1 = harmonic mean of precision and recall

Query mode jobs are not scored.
"""

import logging
from dataclasses import dataclass, field
from typing import Iterator

from ptmatch.exceptions import DependencyLoadError, ResourceNotFoundError
from ptmatch.models.fhir import Bundle, BundleEntry
from ptmatch.models.resources import (
    MatchingMode,
    RecordMatchJob,
    RecordMatchJobMetrics,
    RecordSet,
    ResourceKind,
)
from ptmatch.services.store_service import ResourceStore

logger = logging.getLogger(__name__)


def _is_result_entry(entry: BundleEntry) -> bool:
    """A bare search-result entry carrying a positive score."""
    return (
        entry.resource is None
        and bool(entry.full_url)
        and entry.search is not None
        and entry.search.score is not None
        and entry.search.score > 0
    )


def qualifying_links(bundle: Bundle) -> Iterator[tuple[str, str]]:
    """Yield (source, target) for every related link of every result entry."""
    for entry in bundle.entry:
        if not _is_result_entry(entry):
            continue
        assert entry.full_url is not None
        for link in entry.related_links():
            yield entry.full_url, link.url


@dataclass
class GroundTruth:
    """Known links of an answer key, by source fullUrl."""

    links: dict[str, list[str]] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.links)

    def match(self, source: str, target: str) -> str | None:
        """
        Return the answer-key source confirming a reported link, if any.

        A link is confirmed in either direction.
        """
        if target in self.links.get(source, ()):
            return source
        if source in self.links.get(target, ()):
            return target
        return None


def build_ground_truth(answer_key: Bundle) -> GroundTruth:
    """Collect the positive links of an answer key."""
    truth = GroundTruth()
    for source, target in qualifying_links(answer_key):
        targets = truth.links.setdefault(source, [])
        if target not in targets:
            targets.append(target)
    return truth


@dataclass
class ResponseTally:
    """Counts for the links of a single response."""

    match_count: int = 0
    true_positive_count: int = 0
    false_positive_count: int = 0
    found: set[str] = field(default_factory=set)


def tally_response(message: Bundle, ground_truth: GroundTruth | None) -> ResponseTally:
    """Count the links reported in one response message."""
    tally = ResponseTally()
    for source, target in qualifying_links(message):
        tally.match_count += 1
        if ground_truth is None:
            continue
        matched = ground_truth.match(source, target)
        if matched is None:
            tally.false_positive_count += 1
        else:
            tally.true_positive_count += 1
            tally.found.add(matched)
    return tally


def _ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator else 0.0


def accumulate_metrics(
    current: RecordMatchJobMetrics,
    tally: ResponseTally,
    ground_truth: GroundTruth | None,
) -> RecordMatchJobMetrics:
    """
    Fold one response's tally into a job's cumulative metrics.

    Without usable ground truth only the match count moves.
    """
    metrics = current.model_copy(deep=True)
    metrics.match_count += tally.match_count
    if ground_truth is None or ground_truth.total == 0:
        return metrics

    metrics.true_positive_count += tally.true_positive_count
    metrics.false_positive_count += tally.false_positive_count
    found = set(metrics.ground_truth_found) | tally.found
    metrics.ground_truth_found = sorted(found)

    metrics.precision = _ratio(
        metrics.true_positive_count,
        metrics.true_positive_count + metrics.false_positive_count,
    )
    metrics.recall = _ratio(len(found), ground_truth.total)
    metrics.f1 = _ratio(
        2 * metrics.precision * metrics.recall,
        metrics.precision + metrics.recall,
    )
    return metrics


async def load_answer_key(store: ResourceStore, job: RecordMatchJob) -> Bundle | None:
    """
    Load the answer key a deduplication job is scored against.

    Returns None when the master record set has no answer key with results.

    Raises:
        DependencyLoadError: If the master record set cannot be loaded
    """
    if not job.master_record_set_id:
        raise DependencyLoadError("No master Record Set specified")
    try:
        record_set: RecordSet = await store.load(
            ResourceKind.RECORD_SET, job.master_record_set_id
        )
    except ResourceNotFoundError as e:
        logger.warning(
            "Unable to find master record set %s for job %s",
            job.master_record_set_id,
            job.id,
        )
        raise DependencyLoadError(
            f"Unable to find master Record Set {job.master_record_set_id}"
        ) from e

    answer_key = record_set.answer_key
    if answer_key is None or len(answer_key.entry) <= 1:
        return None
    return answer_key


async def update_job_metrics(
    store: ResourceStore,
    job: RecordMatchJob,
    message: Bundle,
) -> RecordMatchJobMetrics | None:
    """
    Recompute and store a job's metrics after a response was recorded.

    Metrics are folded into the snapshot carried by ``job``, which is the
    job as loaded when the response was correlated.

    Returns:
        The new metrics, or None for query mode jobs, which are not scored
    """
    if job.matching_mode == MatchingMode.QUERY:
        logger.warning("Calculating metrics for query mode is not supported (job %s)", job.id)
        return None

    answer_key = await load_answer_key(store, job)
    ground_truth = build_ground_truth(answer_key) if answer_key is not None else None

    tally = tally_response(message, ground_truth)
    metrics = accumulate_metrics(job.metrics, tally, ground_truth)

    logger.info(
        "Job %s metrics: matches=%d tp=%d fp=%d precision=%.3f recall=%.3f f1=%.3f",
        job.id,
        metrics.match_count,
        metrics.true_positive_count,
        metrics.false_positive_count,
        metrics.precision,
        metrics.recall,
        metrics.f1,
    )

    assert job.id is not None
    await store.set_job_metrics(job.id, metrics, f"Metrics Updated [{message.id}]")
    job.metrics = metrics
    return metrics

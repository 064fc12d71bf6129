from typing import Dict, Iterable, List, NamedTuple

from allele_counter.pileup import PileupColumn, ReadObservation


class FilterConfig(NamedTuple):
    min_mapq: int = 35
    min_base_qual: int = 20
    # all of these bits must be set (paired, proper pair)
    required_flag: int = 3
    # none of these bits may be set (unmapped, mate unmapped, secondary, qcfail, dup, supplementary)
    filtered_flag: int = 3852


class AlleleCount(NamedTuple):
    count_a: int = 0
    count_c: int = 0
    count_g: int = 0
    count_t: int = 0
    good_depth: int = 0


ZERO_COUNT = AlleleCount()


def passes_filters(obs: ReadObservation, config: FilterConfig) -> bool:
    return (
        obs.base_qual >= config.min_base_qual
        and obs.mapq >= config.min_mapq
        and obs.flag & config.filtered_flag == 0
        and obs.flag & config.required_flag == config.required_flag
    )


def deduplicate(observations: Iterable[ReadObservation]) -> List[ReadObservation]:
    """
    Keep one observation per read name: the first one seen, in column order.

    Overlapping mates of a pair share a name and would otherwise both be counted.
    """
    kept: Dict[str, ReadObservation] = {}
    for obs in observations:
        kept.setdefault(obs.read_id, obs)
    return list(kept.values())


def count_bases(bases: Iterable[str]) -> AlleleCount:
    """
    Count A/C/G/T (case-sensitive). Anything else is ignored.
    """
    counts = {"A": 0, "C": 0, "G": 0, "T": 0}
    for base in bases:
        if base in counts:
            counts[base] += 1
    return AlleleCount(
        counts["A"], counts["C"], counts["G"], counts["T"], sum(counts.values())
    )


def column_counts(column: PileupColumn, config: FilterConfig) -> AlleleCount:
    passing = (obs for obs in column.observations if passes_filters(obs, config))
    return count_bases(obs.base for obs in deduplicate(passing))

from functools import partial
from multiprocessing import Pool
from typing import Callable, Iterable, Iterator, List, NamedTuple, Tuple, Union

import pysam

from allele_counter.counting import ZERO_COUNT, AlleleCount, FilterConfig, column_counts
from allele_counter.loci import Locus
from allele_counter.pileup import ColumnCursor, UnknownReferenceError, iter_columns


class LocusResult(NamedTuple):
    locus: Locus
    counts: AlleleCount


class Skipped(NamedTuple):
    locus: Locus
    reason: str


ScanResult = Union[LocusResult, Skipped]
Resolver = Callable[[str], int]


def sync_locus(
    cursor: ColumnCursor, ref_id: int, locus: Locus, config: FilterConfig
) -> AlleleCount:
    """
    Move the cursor forward to the locus and count the column found there.

    The cursor is restarted only when the reference sequence changes. Within a
    reference it never moves backwards, so a locus whose position the cursor has
    already passed (unsorted input) gets zero counts, as does any position with
    no coverage or any locus arriving after the column stream is exhausted.
    """
    if cursor.ref_id != ref_id:
        cursor.reset(ref_id)

    while not cursor.exhausted and cursor.current.pos0 < locus.pos0 and cursor.current.ref_id == ref_id:
        cursor.advance()

    column = cursor.current
    if cursor.exhausted or column.ref_id != ref_id:
        return ZERO_COUNT
    if column.pos0 == locus.pos0:
        return column_counts(column, config)
    return ZERO_COUNT


def unknown_reference(locus: Locus) -> Skipped:
    return Skipped(locus, f"chromosome {locus.chrom!r} not found in alignment header")


def scan_loci(
    loci: Iterable[Locus], resolve: Resolver, cursor: ColumnCursor, config: FilterConfig
) -> Iterator[ScanResult]:
    """
    Single sequential pass over the loci, one result per locus in input order.
    """
    for locus in loci:
        try:
            ref_id = resolve(locus.chrom)
        except UnknownReferenceError:
            yield unknown_reference(locus)
            continue
        yield LocusResult(locus, sync_locus(cursor, ref_id, locus, config))


def split_reference_runs(
    loci: Iterable[Locus], resolve: Resolver
) -> Iterator[Union[Skipped, Tuple[int, List[Union[Locus, Skipped]]]]]:
    """
    Group consecutive resolvable loci sharing a reference id into (ref_id, items) runs.

    An unresolvable locus leaves the cursor alone in the sequential scan, so it is
    kept inside the open run as a Skipped item rather than ending the run. Only
    those seen before the first run come out on their own.
    """
    run_ref = None
    run: List[Union[Locus, Skipped]] = []
    for locus in loci:
        try:
            ref_id = resolve(locus.chrom)
        except UnknownReferenceError:
            if run:
                run.append(unknown_reference(locus))
            else:
                yield unknown_reference(locus)
            continue
        if run and ref_id != run_ref:
            yield run_ref, run
            run = []
        run_ref = ref_id
        run.append(locus)
    if run:
        yield run_ref, run


def scan_run_worker(args) -> List[ScanResult]:
    """
    Worker for a single reference run.

    Opens its own AlignmentFile (needed for safe multiprocessing) and scans the
    run with a fresh cursor.
    """
    bam_path, ref_id, items, config, max_depth = args

    results: List[ScanResult] = []
    bamf = pysam.AlignmentFile(bam_path)
    try:
        cursor = ColumnCursor(partial(iter_columns, bamf, max_depth=max_depth))
        for item in items:
            if isinstance(item, Skipped):
                results.append(item)
            else:
                results.append(LocusResult(item, sync_locus(cursor, ref_id, item, config)))
    finally:
        bamf.close()
    return results


def scan_loci_parallel(
    loci: Iterable[Locus],
    resolve: Resolver,
    bam_path: str,
    config: FilterConfig,
    n_proc: int,
    max_depth: int = 100000,
) -> Iterator[ScanResult]:
    """
    Same output as scan_loci, with each reference run scanned in a worker process.

    Every run starts with a cursor reset in the sequential scan too, so runs are
    independent. The alignment file must already be indexed.
    """
    segments = list(split_reference_runs(loci, resolve))
    task_args = [
        (bam_path, seg[0], seg[1], config, max_depth)
        for seg in segments
        if not isinstance(seg, Skipped)
    ]

    # Use imap to preserve order of runs in output
    with Pool(processes=n_proc) as pool:
        run_results = pool.imap(scan_run_worker, task_args)
        for seg in segments:
            if isinstance(seg, Skipped):
                yield seg
            else:
                yield from next(run_results)

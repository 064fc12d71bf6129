import csv
from typing import Iterable, List, TextIO

from allele_counter.loci import warn_skipped
from allele_counter.scanner import LocusResult, ScanResult, Skipped

HEADER = ["#CHR", "POS", "Count_A", "Count_C", "Count_G", "Count_T", "Good_depth"]


def make_writer(out_fh: TextIO):
    return csv.writer(
        out_fh, delimiter="\t", lineterminator="\n", quoting=csv.QUOTE_NONE, escapechar="\\"
    )


def format_row(result: LocusResult) -> List:
    return [result.locus.chrom, result.locus.pos1, *result.counts]


def write_results(results: Iterable[ScanResult], out_fh: TextIO) -> int:
    """
    Write the header, then one row per counted locus in input order.

    Skipped loci get a LocusWarning instead of a row. Returns the number of rows written.
    """
    writer = make_writer(out_fh)
    writer.writerow(HEADER)

    n_written = 0
    for result in results:
        if isinstance(result, Skipped):
            warn_skipped(result.locus.line_no, result.reason)
            continue
        writer.writerow(format_row(result))
        n_written += 1
    return n_written

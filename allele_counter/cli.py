import argparse
import os
import sys
from functools import partial

import pysam

from allele_counter import __version__
from allele_counter.counting import FilterConfig
from allele_counter.loci import read_loci
from allele_counter.pileup import ColumnCursor, iter_columns, open_alignment, resolve_reference
from allele_counter.report import write_results
from allele_counter.scanner import scan_loci, scan_loci_parallel


def flag_int(tok: str) -> int:
    """
    Parse a flag mask given in decimal, hex (0x..) or octal (0o..).
    """
    try:
        value = int(tok, 0)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid flag value: {tok!r}")
    if value < 0:
        raise argparse.ArgumentTypeError(f"flag value must be >= 0, got: {value}")
    return value


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="allele_counter",
        description="Count A/C/G/T of filtered, deduplicated reads at each locus of a loci file.",
    )
    ap.add_argument("-b", "--bamfile", required=True, help="Input BAM/CRAM (indexed if no index is present).")
    ap.add_argument(
        "-l",
        "--locifile",
        required=True,
        help="Tab-separated loci file with columns: chrom pos (1-based). Blank lines and #comments allowed.",
    )
    ap.add_argument("-m", "--minmapqual", type=int, default=35, help="Minimum mapping quality (default: 35).")
    ap.add_argument("-q", "--minbasequal", type=int, default=20, help="Minimum base quality (Phred) (default: 20).")
    ap.add_argument(
        "-f",
        "--required-flag",
        type=flag_int,
        default=3,
        help="Only count reads with all of these FLAG bits set (default: 3).",
    )
    ap.add_argument(
        "-F",
        "--filtered-flag",
        type=flag_int,
        default=3852,
        help="Only count reads with none of these FLAG bits set (default: 3852).",
    )
    ap.add_argument(
        "-o",
        "--out",
        default="-",
        help="Output TSV file (default: '-' for stdout).",
    )
    ap.add_argument("--max-depth", type=int, default=100000, help="Max pileup depth (default: 100000).")
    ap.add_argument(
        "-p",
        "--process",
        type=int,
        default=1,
        help="Number of worker processes; loci are split by reference sequence (default: 1).",
    )
    ap.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    return ap


def main(argv=None):
    ap = build_parser()
    args = ap.parse_args(argv)

    for path in (args.bamfile, args.locifile):
        if not os.path.exists(path):
            ap.error(f"File {path} does not exist: exiting.")
    if args.minmapqual < 0 or args.minbasequal < 0:
        ap.error("--minmapqual and --minbasequal must be >= 0")
    if args.max_depth < 1:
        ap.error(f"--max-depth must be >= 1 (got {args.max_depth})")
    if args.process < 1:
        ap.error(f"--process must be >= 1 (got {args.process})")

    config = FilterConfig(
        min_mapq=args.minmapqual,
        min_base_qual=args.minbasequal,
        required_flag=args.required_flag,
        filtered_flag=args.filtered_flag,
    )

    print(f"Input bamfile is {args.bamfile}", file=sys.stderr)
    print(f"Input locifile is {args.locifile}", file=sys.stderr)

    try:
        bamf = open_alignment(args.bamfile)
    except (OSError, ValueError, pysam.SamtoolsError) as e:
        ap.error(f"Failed to open alignment file {args.bamfile}: {e}")

    if args.process > 1:
        print(f"Using {args.process} worker process(es).", file=sys.stderr)

    try:
        out_fh = sys.stdout if args.out == "-" else open(args.out, "w", newline="")
    except OSError as e:
        bamf.close()
        ap.error(f"Failed to open output file {args.out}: {e}")

    try:
        # binary, so each line is decoded (and rejected) on its own
        with bamf, open(args.locifile, "rb") as loci_fh:
            loci = read_loci(loci_fh)
            resolve = partial(resolve_reference, bamf)
            if args.process == 1:
                cursor = ColumnCursor(partial(iter_columns, bamf, max_depth=args.max_depth))
                results = scan_loci(loci, resolve, cursor, config)
            else:
                results = scan_loci_parallel(
                    loci, resolve, args.bamfile, config, args.process, args.max_depth
                )
            n_written = write_results(results, out_fh)
    finally:
        if out_fh is not sys.stdout:
            out_fh.close()

    # Tiny summary to stderr
    print(f"Wrote {n_written} rows", file=sys.stderr)


if __name__ == "__main__":
    main()

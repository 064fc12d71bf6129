import sys
from typing import Callable, Iterable, Iterator, List, NamedTuple, Optional

import pysam

# Base reported for reads sitting on a deletion or reference skip at a column.
GAP_BASE = "-"

# The pileup engine hands over every read; all filtering happens in counting.py.
PILEUP_OPTIONS = dict(
    truncate=True,
    stepper="nofilter",
    min_base_quality=0,
    min_mapping_quality=0,
    ignore_overlaps=False,
    ignore_orphans=False,
    compute_baq=False,
)


class ReadObservation(NamedTuple):
    read_id: str
    base: str
    base_qual: int
    mapq: int
    flag: int


class PileupColumn(NamedTuple):
    ref_id: int
    pos0: int
    observations: List[ReadObservation]


class UnknownReferenceError(KeyError):
    pass


def open_alignment(path: str) -> pysam.AlignmentFile:
    """
    Open an alignment file, building its index first if it has none.
    """
    bam = pysam.AlignmentFile(path)
    if bam.has_index():
        return bam
    bam.close()
    print(f"No index found for {path}; creating one.", file=sys.stderr)
    pysam.index(path)
    return pysam.AlignmentFile(path)


def resolve_reference(bam: pysam.AlignmentFile, chrom: str) -> int:
    tid = bam.get_tid(chrom)
    if tid < 0:
        raise UnknownReferenceError(chrom)
    return tid


def observation_from_pileup_read(pr) -> ReadObservation:
    aln = pr.alignment
    qpos = pr.query_position  # None for deletions/refskips
    if pr.is_del or pr.is_refskip or qpos is None:
        base, base_qual = GAP_BASE, 0
    else:
        seq = aln.query_sequence
        base = seq[qpos] if seq is not None else "N"
        quals = aln.query_qualities
        base_qual = int(quals[qpos]) if quals is not None else 0
    return ReadObservation(aln.query_name, base, base_qual, aln.mapping_quality, aln.flag)


def iter_columns(
    bam: pysam.AlignmentFile, ref_id: int, max_depth: int = 100000
) -> Iterator[PileupColumn]:
    """
    Yield every covered column of one reference sequence, in increasing position.

    Observations are copied out of pysam before the next column is requested,
    since pysam invalidates a column's reads once its iterator moves on.
    """
    contig = bam.get_reference_name(ref_id)
    length = bam.get_reference_length(contig)
    for col in bam.pileup(contig, 0, length, max_depth=max_depth, **PILEUP_OPTIONS):
        yield PileupColumn(
            col.reference_id,
            col.reference_pos,
            [observation_from_pileup_read(pr) for pr in col.pileups],
        )


class ColumnCursor:
    """
    Forward-only position in the column stream of a single reference sequence.

    `column_source(ref_id)` must return that reference's columns in increasing
    position order. Positions the cursor has moved past cannot be revisited
    without a reset, which restarts from the beginning of the reference.
    """

    def __init__(self, column_source: Callable[[int], Iterable[PileupColumn]]):
        self.column_source = column_source
        self.ref_id: Optional[int] = None
        self.current: Optional[PileupColumn] = None
        self._columns: Iterator[PileupColumn] = iter(())

    def reset(self, ref_id: int) -> None:
        self.ref_id = ref_id
        self._columns = iter(self.column_source(ref_id))
        self.current = next(self._columns, None)

    def advance(self) -> None:
        self.current = next(self._columns, None)

    @property
    def exhausted(self) -> bool:
        return self.current is None

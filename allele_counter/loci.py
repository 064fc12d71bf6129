import warnings
from typing import Iterable, Iterator, NamedTuple, Optional, Union


class Locus(NamedTuple):
    chrom: str
    pos1: int
    line_no: int

    @property
    def pos0(self) -> int:
        return self.pos1 - 1


class LocusParseError(ValueError):
    pass


class LocusWarning(UserWarning):
    """
    Issued once for every locus that is skipped (no output row).
    """


def warn_skipped(line_no: int, reason: str) -> None:
    warnings.warn(f"Line {line_no}: {reason}; skipping", LocusWarning, stacklevel=2)


def parse_locus_line(line: Union[str, bytes], line_no: int) -> Optional[Locus]:
    """
    Parse one 'CHR<TAB>POS' line (POS 1-based, plain decimal) into a Locus.

    Lines read in binary mode are decoded here as UTF-8, so a bad byte only
    spoils its own line. Returns None for blank lines and #comments. Columns
    after POS are ignored.
    """
    if isinstance(line, bytes):
        try:
            line = line.decode("utf-8")
        except UnicodeDecodeError as e:
            raw = line.rstrip(b"\r\n")
            raise LocusParseError(f"Line is not valid UTF-8: {raw!r}") from e
    s = line.rstrip("\r\n")
    if not s.strip() or s.lstrip().startswith("#"):
        return None
    parts = s.split("\t")
    if len(parts) < 2 or not parts[0]:
        raise LocusParseError(f"Expected CHR<TAB>POS, got: {s!r}")
    spos = parts[1].strip()
    if not (spos.isascii() and spos.isdigit()):
        raise LocusParseError(f"Invalid position value in line: {s!r}")
    pos = int(spos)
    if pos < 1:
        raise LocusParseError(f"Position must be 1-based positive integer in line: {s!r}")
    return Locus(parts[0], pos, line_no)


def read_loci(lines: Iterable[Union[str, bytes]]) -> Iterator[Locus]:
    """
    Lazily yield loci in file order. Malformed lines produce a LocusWarning and are dropped.
    """
    for line_no, line in enumerate(lines, start=1):
        try:
            locus = parse_locus_line(line, line_no)
        except LocusParseError as e:
            warn_skipped(line_no, str(e))
            continue
        if locus is not None:
            yield locus

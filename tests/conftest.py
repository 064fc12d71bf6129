import pysam
import pytest

HEADER = {
    "HD": {"VN": "1.6", "SO": "coordinate"},
    "SQ": [{"LN": 1000, "SN": "chr1"}, {"LN": 1000, "SN": "chr2"}, {"LN": 1000, "SN": "chr3"}],
}


def make_read(header, name, seq, start, ref_id=0, flag=99, mapq=60, qual="I", cigar=None):
    a = pysam.AlignedSegment(header)
    a.query_name = name
    a.query_sequence = seq
    a.flag = flag
    a.reference_id = ref_id
    a.reference_start = start
    a.mapping_quality = mapq
    a.cigartuples = cigar or ((0, len(seq)),)
    a.query_qualities = pysam.qualitystring_to_array(qual * len(seq))
    return a


@pytest.fixture
def write_bam(tmp_path):
    """
    Return a function writing read dicts (make_read keyword arguments) to a BAM.
    """

    def _write(reads, name="test.bam", index=True):
        bam_path = tmp_path / name
        with pysam.AlignmentFile(str(bam_path), "wb", header=HEADER) as outf:
            segments = [make_read(outf.header, **r) for r in reads]
            for seg in sorted(segments, key=lambda s: (s.reference_id, s.reference_start)):
                outf.write(seg)
        if index:
            pysam.index(str(bam_path))
        return str(bam_path)

    return _write


@pytest.fixture
def write_loci(tmp_path):
    def _write(text, name="loci.tsv"):
        loci_path = tmp_path / name
        loci_path.write_text(text)
        return str(loci_path)

    return _write

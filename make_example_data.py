#!/usr/bin/env python3
import pysam
from pathlib import Path

example_dir = Path("example_data")
example_dir.mkdir(exist_ok=True)
bam_path = example_dir / "example.bam"
loci_path = example_dir / "loci.tsv"

header = {
    "HD": {"VN": "1.6", "SO": "coordinate"},
    "SQ": [{"LN": 1000, "SN": "chr1"}, {"LN": 1000, "SN": "chr2"}],
}


def make_read(outf, name, seq, flag, ref_id, start, mapq=60, qual="I"):
    a = pysam.AlignedSegment(outf.header)
    a.query_name = name
    a.query_sequence = seq
    a.flag = flag
    a.reference_id = ref_id
    a.reference_start = start
    a.mapping_quality = mapq
    a.cigartuples = ((0, len(seq)),)
    a.query_qualities = pysam.qualitystring_to_array(qual * len(seq))
    return a


# Reads must be written in coordinate order for indexing
with pysam.AlignmentFile(bam_path, "wb", header=header) as outf:
    # three proper pairs with A at chr1:10
    for i in range(3):
        outf.write(make_read(outf, f"read_00{i + 1}", "A" * 15, 99, 0, 0))
    # overlapping mates of one fragment: counted once at chr1:105
    outf.write(make_read(outf, "pair_001", "C" * 30, 99, 0, 90))
    outf.write(make_read(outf, "pair_001", "C" * 30, 147, 0, 100))
    # duplicate-flagged read (1024): filtered out
    outf.write(make_read(outf, "dup_001", "G" * 30, 99 | 1024, 0, 100))
    outf.write(make_read(outf, "read_101", "T" * 20, 163, 1, 40))

pysam.index(str(bam_path))

loci_content = """# chrom\tpos
chr1\t10
chr1\t20
chr1\t105
chr2\t50
chrUn\t5
chr1\tnot_a_position
"""
loci_path.write_text(loci_content)

print("Created example files in ./example_data/")
print(f"Try: allele_counter -b {bam_path} -l {loci_path}")

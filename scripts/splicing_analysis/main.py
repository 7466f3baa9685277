#!/usr/bin/env python3
"""
Main module - command line handling and control flow of the PIR table merger.

Generates PIR (percent intron retention) tables from the normalized read
count files (EIJ1, EIJ2, EEJ, I) of all samples found in the count directory,
merged onto the species' IR template. Writes raw PIR, coverage, balance
p-value and a clean PIR table in which flagged introns, and optionally those
with PIR > 95 in all samples, are removed.
"""

import os
import sys
import time
import argparse

from splicing_analysis.data_parser import discover_samples, load_template
from splicing_analysis.data_analyzer import PIRThresholds, merge_ir_samples
from splicing_analysis.utils import (
    ensure_trailing_slash,
    expand_key_value_args,
    species_from_dir,
    str2bool,
)

TABLE_PREFIXES = {
    'pir': 'PIR.raw_',
    'coverage': 'Coverage_',
    'balance': 'Balance-pval_',
    'clean_pir': 'PIR_',
}


def output_table_files(out_dir, species):
    """Paths of the four result tables"""
    return {key: os.path.join(out_dir, f"{prefix}{species}.tab") for key, prefix in TABLE_PREFIXES.items()}


def template_file_for(species_dir, species):
    return os.path.join(species_dir, 'TEMPLATES', f"{species}.IR.Template.txt")


def make_pir_tables(species_dir, count_dir=None, out_dir=None, rm_high=True, verbose=False,
                    threads=1, thresholds=PIRThresholds()):
    """
    Merge all IR samples of a species into PIR tables and write them to out_dir.

    Every input is validated before anything is written. Returns a dict
    mapping table names to the written file paths.
    """
    if not species_dir or not os.path.exists(species_dir):
        raise FileNotFoundError(f"sp (species) not found: {species_dir}")
    species_dir = ensure_trailing_slash(species_dir)
    species = species_from_dir(species_dir)

    count_dir = ensure_trailing_slash(count_dir or os.path.join(species_dir, 'RAW_READS'))
    out_dir = ensure_trailing_slash(out_dir or os.path.join(species_dir, 'spli_out'))

    template_file = template_file_for(species_dir, species)
    if not os.path.exists(template_file):
        raise FileNotFoundError(f"Template file {template_file} not found")

    samples = discover_samples(count_dir)
    if verbose:
        print(f"Merging IR of {len(samples)} samples...")
    template = load_template(template_file)

    tables = merge_ir_samples(template, samples, thresholds=thresholds, rm_high=rm_high,
                              verbose=verbose, threads=threads)

    os.makedirs(out_dir, exist_ok=True)
    output_files = output_table_files(out_dir, species)
    for key, path in output_files.items():
        tables[key].to_csv(path, sep='\t', index=False, na_rep='')

    if verbose:
        print("... done.\n")
    return output_files


def build_parser():
    parser = argparse.ArgumentParser(
        description='Merge per-sample intron retention read counts (*cReadcount*) into PIR tables. '
                    'Options may also be given as key=value, e.g. "sp=/db/Hsa" "rmHigh=0" "verb=1".')
    parser.add_argument('--sp', required=True,
                        help='Path of the species directory, e.g. .../AS_PIPE_S/Hsa')
    parser.add_argument('--countDir', default=None,
                        help='Directory of read count tables (default: RAW_READS/ in sp)')
    parser.add_argument('--outDir', default=None,
                        help='Output directory (default: spli_out/ in sp)')
    parser.add_argument('--rmHigh', type=str2bool, default=True, metavar='TRUE|FALSE',
                        help='Set introns with PIR > 95 in all non-NA samples to NA (default: TRUE)')
    parser.add_argument('--verb', type=str2bool, default=False, metavar='TRUE|FALSE',
                        help='Print status messages (default: FALSE)')
    parser.add_argument('--threads', type=int, default=1,
                        help='Number of processes used to read samples (default: 1)')
    return parser


def main(argv=None):
    parser = build_parser()
    argv = sys.argv[1:] if argv is None else argv
    args = parser.parse_args(expand_key_value_args(argv))

    start_time = time.time()
    try:
        output_files = make_pir_tables(args.sp, count_dir=args.countDir, out_dir=args.outDir,
                                       rm_high=args.rmHigh, verbose=args.verb,
                                       threads=max(1, args.threads))
    except (FileNotFoundError, ValueError) as e:
        sys.exit(f"Error: {e}")

    if args.verb:
        print(f"Tables written to: {os.path.dirname(output_files['clean_pir'])}")
        print(f"Total time: {time.time() - start_time:.2f} s")
    return output_files


if __name__ == "__main__":
    main()

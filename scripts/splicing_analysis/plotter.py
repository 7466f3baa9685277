#!/usr/bin/env python3
"""
PSI plotter - generates PSI (or cRPKM) plots across samples.

Input is one of:
  1) PSI data, one AS event per row, in the standard inclusion table format
       GENE  EVENT  COORD  LENGTH  FullCO  COMPLEX  Sample1  Sample1-Q ...
     PSI values that are NA or have NA quality scores are not plotted.
  2) cRPKM data, one gene per row (ID  NAME  Sample1 ...), with --expr TRUE.
If the input file is '-', standard input is read.

A PDF with one plot per page is written. Sample order, colour and grouping
can be customized with a tab-delimited plot configuration file:
  Order    SampleName    GroupName    RColorCode
  1        Oocyte        EarlyDev     blue
  2        Embr_2C       EarlyDev     #ff0000
Only samples listed in the configuration are plotted.
"""

import os
import re
import sys
import argparse
import platform

import matplotlib
import pandas as pd

from splicing_analysis.data_parser import load_inclusion_table, load_plot_config
from splicing_analysis.utils import str2bool
from splicing_analysis.visualization import figure_size, plot_events_to_pdf, prepare_samples

MAX_ENTRIES = 1000


def verb_print(message, verbose=True):
    if verbose:
        print(message, file=sys.stderr)


def output_file_for(input_file, crpkm=False, output_dir=None):
    """
    PDF path for an input table: the input's base name with its last
    extension (and .gz) replaced, next to the input or in output_dir.
    input_file None means standard input.
    """
    suffix = 'cRPKM_plots.pdf' if crpkm else 'PSI_plots.pdf'
    if input_file is None:
        outfile = suffix
    else:
        base = os.path.basename(input_file)
        outfile = re.sub(r'\.[^.]*(\.gz)?$', f'.{suffix}', base)
        if outfile == base:
            outfile = f"{base}.{suffix}"

    if output_dir is None:
        if input_file is not None:
            outfile = os.path.join(os.path.dirname(input_file), outfile)
    else:
        os.makedirs(output_dir, exist_ok=True)
        outfile = os.path.join(output_dir, outfile)
    return outfile


def check_header(all_events, crpkm=False):
    """Raise ValueError if the table does not look like a PSI / cRPKM table"""
    columns = [str(col) for col in all_events.columns]
    if crpkm:
        valid = len(columns) > 1 and columns[1].startswith('NAME')
    else:
        valid = len(columns) > 0 and columns[0].startswith('GENE')
    if not valid:
        raise ValueError("Invalid column names. Does your input file contain the correct header?\n"
                         "If plotting with cRPKM file, set --expr TRUE.")


def filter_by_gene(all_events, pattern, crpkm=False):
    """Keep rows whose GENE (or NAME for cRPKM) matches the regular expression"""
    column = all_events.columns[1] if crpkm else all_events.columns[0]
    keep = all_events[column].astype(str).str.contains(pattern, regex=True, na=False)
    return all_events[keep].reset_index(drop=True)


def build_parser():
    parser = argparse.ArgumentParser(
        description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter,
        usage='%(prog)s [options] INCLUSION_LEVELS.tab')
    parser.add_argument('input', nargs='?', help="Input table, or '-' for standard input")
    parser.add_argument('-v', '--verbose', type=str2bool, default=True, metavar='TRUE|FALSE',
                        help='Enable verbose [%(default)s]')
    parser.add_argument('-c', '--config', default=None,
                        help='Plot configuration file. Used for customizing order and color [%(default)s]')
    parser.add_argument('-m', '--max', type=int, default=MAX_ENTRIES,
                        help='Maximum number of AS events to plot [first %(default)s]')
    parser.add_argument('-l', '--gridLines', type=str2bool, default=True, metavar='TRUE|FALSE',
                        dest='gridLines', help='Show grid lines [%(default)s]')
    parser.add_argument('-o', '--output', default=None, metavar='DIR',
                        help='Output directory where pdf will be saved [default is same location as input data]')
    parser.add_argument('-E', '--noErrorBar', type=str2bool, default=False, metavar='TRUE|FALSE',
                        dest='noErrorBar', help='Do not plot 95%% confidence interval as error bars [%(default)s]')
    parser.add_argument('-u', '--groupMeans', type=str2bool, default=False, metavar='TRUE|FALSE',
                        dest='plotGroupMeans',
                        help='Plot mean PSIs for groups defined in config file. Requires --config [%(default)s]')
    parser.add_argument('-W', '--width', type=float, default=None,
                        help='Width of graphics region in inches [default: automatic]')
    parser.add_argument('-H', '--height', type=float, default=None,
                        help='Height of graphics region in inches [default: automatic]')
    parser.add_argument('--gene', default=None,
                        help='Filter events by the GENE column. Can be any valid regular expression [%(default)s]')
    parser.add_argument('--expr', type=str2bool, default=False, metavar='TRUE|FALSE', dest='crpkm',
                        help='Plot cRPKM instead of PSI [%(default)s]')
    parser.add_argument('--debug', type=str2bool, default=False, metavar='TRUE|FALSE',
                        help='Print out options for debugging [%(default)s]')
    return parser


def run_plotter(args):
    """Plot the events described by parsed arguments; returns (output file, number of plots)"""
    verbose = args.verbose

    using_stdin = args.input == '-'
    if not using_stdin and not os.path.exists(args.input):
        raise FileNotFoundError(f"Input file {args.input} doesn't exist!")
    if args.config is not None and not os.path.exists(args.config):
        raise FileNotFoundError(f"Tissue Group file {args.config} doesn't exist!")

    verb_print("\nPSI Plotter", verbose)
    verb_print(f"\n// Input file: {'STDIN' if using_stdin else args.input}", verbose)
    verb_print(f"// Tissue Group file: {args.config if args.config else 'Did not provide'}", verbose)

    all_events = load_inclusion_table(sys.stdin if using_stdin else args.input)
    config = load_plot_config(args.config) if args.config is not None else None

    check_header(all_events, args.crpkm)

    if args.gene is not None:
        all_events = filter_by_gene(all_events, args.gene, args.crpkm)
        if len(all_events) == 0:
            raise ValueError("No matching events found.")
        verb_print(f"// Filtered {len(all_events)} events that match pattern {args.gene}", verbose)

    if len(all_events) > args.max:
        print(f"Warning: Too many entries in input file, which would produce a very large PDF file. "
              f"Only the first {args.max} events will be plotted. Try splitting your input file into "
              f"smaller files and running them separately.", file=sys.stderr)

    group_means = args.plotGroupMeans
    if group_means and config is None:
        print("Warning: --groupMeans requires --config; group means are not plotted", file=sys.stderr)
        group_means = False

    samples = prepare_samples(all_events, config, args.crpkm)

    verb_print("// Plotting...", verbose)
    if config is not None:
        verb_print(f"// Plot group means as horizontal lines: {group_means}", verbose)

    outfile = output_file_for(None if using_stdin else args.input, args.crpkm, args.output)

    width, height = figure_size(len(samples), args.width, args.height)
    verb_print(f"// Width = {width:.2f} in, Height = {height:.2f} in", verbose)

    nplot = plot_events_to_pdf(all_events, samples, outfile, crpkm=args.crpkm, max_events=args.max,
                               errorbar=not args.noErrorBar, groupmean=group_means,
                               gridlines=args.gridLines, figsize=(width, height))

    verb_print("// Done!\n", verbose)
    verb_print(f"// {nplot} plots are saved in: {outfile}", verbose)
    return outfile, nplot


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.input is None:
        parser.print_help(sys.stderr)
        sys.exit("Error: Missing arguments")

    if args.debug:
        print(args, file=sys.stderr)
        print(f"Python {platform.python_version()}, pandas {pd.__version__}, "
              f"matplotlib {matplotlib.__version__}", file=sys.stderr)

    try:
        return run_plotter(args)
    except (FileNotFoundError, ValueError) as e:
        sys.exit(f"Error: {e}")


if __name__ == "__main__":
    main()

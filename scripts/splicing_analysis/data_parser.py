#!/usr/bin/env python3
"""
Data parsing module - reads the IR template, per-sample read count files,
inclusion level tables and plot configuration files.
"""

import os
from collections import namedtuple

import pandas as pd

from splicing_analysis.utils import COUNT_FILE_PATTERN, extract_sample_name

COUNT_COLUMNS = ['Event', 'EIJ1', 'EIJ2', 'EEJ', 'I']
TEMPLATE_META_COLUMNS = 6
TEMPLATE_KEY = 'juncID'

Sample = namedtuple('Sample', ['name', 'path'])


def discover_samples(count_dir):
    """
    Find the read count files (*cReadcount*) in count_dir.

    Returns a list of Sample(name, path) in sorted file name order.
    Raises FileNotFoundError when no count file is present.
    """
    if not os.path.isdir(count_dir):
        raise FileNotFoundError(f"Count directory {count_dir} not found")
    sample_files = sorted(f for f in os.listdir(count_dir)
                          if COUNT_FILE_PATTERN in f and os.path.isfile(os.path.join(count_dir, f)))
    if not sample_files:
        raise FileNotFoundError(f"No IR samples found in {count_dir}")
    return [Sample(extract_sample_name(f), os.path.join(count_dir, f)) for f in sample_files]


def template_key_column(template):
    """Name of the junction identifier column of a template table"""
    if TEMPLATE_KEY in template.columns:
        return TEMPLATE_KEY
    return template.columns[TEMPLATE_META_COLUMNS]


def load_template(template_file):
    """
    Load the IR template.

    All columns are kept as text so the metadata is written back unchanged.
    The first 6 columns are metadata, the juncID column (or the 7th column
    when no column has that name) holds the junction identifiers.
    """
    if not os.path.exists(template_file):
        raise FileNotFoundError(f"Template file {template_file} not found")
    template = pd.read_csv(template_file, sep='\t', dtype=str, keep_default_na=False)
    if len(template.columns) <= TEMPLATE_META_COLUMNS:
        raise ValueError(f"Template file {template_file} needs {TEMPLATE_META_COLUMNS} metadata "
                         f"columns and a junction ID column, found {len(template.columns)} columns")
    return template


def parse_count_file(count_file):
    """
    Read one sample's EIJ1/EIJ2/EEJ/I read count table.

    Files come either with a header whose first field is 'Event', or without
    a header; in the latter case the canonical column names are assigned by
    position. Counts that cannot be parsed as numbers become NaN.
    """
    try:
        dat = pd.read_csv(count_file, sep='\t', dtype=str)
    except pd.errors.EmptyDataError:
        return pd.DataFrame({col: pd.Series(dtype=object if col == 'Event' else float)
                             for col in COUNT_COLUMNS})

    if dat.columns[0] != 'Event':
        dat = pd.read_csv(count_file, sep='\t', header=None, dtype=str)

    if len(dat.columns) < len(COUNT_COLUMNS):
        raise ValueError(f"{count_file}: expected {len(COUNT_COLUMNS)} columns "
                         f"({', '.join(COUNT_COLUMNS)}), found {len(dat.columns)}")

    dat = dat.iloc[:, :len(COUNT_COLUMNS)].copy()
    dat.columns = COUNT_COLUMNS
    for col in COUNT_COLUMNS[1:]:
        dat[col] = pd.to_numeric(dat[col], errors='coerce')
    return dat.reset_index(drop=True)


def load_inclusion_table(input_file):
    """Load a PSI or cRPKM table; input_file may be a path or an open stream"""
    return pd.read_csv(input_file, sep='\t')


def load_plot_config(config_file):
    """
    Load a plot configuration file.

    Tab-delimited with a header line:
        Order    SampleName    GroupName    RColorCode
    Rows are returned sorted by Order.
    """
    config = pd.read_csv(config_file, sep='\t', dtype={'SampleName': str})
    missing = [col for col in ('Order', 'SampleName') if col not in config.columns]
    if missing:
        raise ValueError(f"Plot configuration {config_file} lacks column(s): {', '.join(missing)}")
    return config.sort_values('Order', kind='stable').reset_index(drop=True)

#!/usr/bin/env python3
"""
Utility functions module - provides common helpers.
"""

import os
import re
import argparse

COUNT_FILE_PATTERN = 'cReadcount'


def extract_sample_name(file_path):
    """Extract the sample name from a read count file path"""
    file_name = os.path.basename(file_path)
    # Drop ".cReadcount" and everything after it
    return re.sub(r'\.cReadcount.*', '', file_name)


def ensure_trailing_slash(path):
    """Normalize a directory path so that it ends with exactly one '/'"""
    return path.rstrip('/') + '/'


def species_from_dir(species_dir):
    """Return the species name, i.e. the last component of the species directory"""
    return os.path.basename(species_dir.rstrip('/'))


def str2bool(value):
    """argparse type for the TRUE/FALSE/1/0 style logical options"""
    if isinstance(value, bool):
        return value
    text = str(value).strip().upper()
    if text in ('TRUE', 'T', '1', 'YES'):
        return True
    if text in ('FALSE', 'F', '0', 'NO'):
        return False
    raise argparse.ArgumentTypeError(f"Expected TRUE/FALSE or 1/0, got '{value}'")


def expand_key_value_args(argv):
    """
    Translate legacy key=value arguments into argparse options.

    The pipeline driver invokes the merger as
        make_table_pir.py "sp='/db/Hsa/'" "rmHigh=0" "verb=1"
    which becomes ['--sp', '/db/Hsa/', '--rmHigh', '0', '--verb', '1'].
    Arguments that already look like options are passed through.
    """
    expanded = []
    for arg in argv:
        match = re.match(r'^([A-Za-z][A-Za-z0-9_]*)=(.*)$', arg)
        if arg.startswith('-') or not match:
            expanded.append(arg)
            continue
        key, value = match.groups()
        # Strip R-style quoting around the value
        value = value.strip()
        if len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
            value = value[1:-1]
        expanded.extend([f'--{key}', value])
    return expanded

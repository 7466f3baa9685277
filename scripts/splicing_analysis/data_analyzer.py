#!/usr/bin/env python3
"""
Data analysis module - computes PIR, coverage and balance per sample, aligns
them to the IR template and applies the coverage/balance/high-PIR filters.
"""

import multiprocessing as mp
from collections import defaultdict
from dataclasses import dataclass

import numpy as np
import pandas as pd
from scipy import stats
from tqdm import tqdm

from splicing_analysis.data_parser import (
    TEMPLATE_META_COLUMNS,
    parse_count_file,
    template_key_column,
)

# Expected minor/major junction read ratio for a balanced intron
BALANCE_P = 1 / 3.5


@dataclass(frozen=True)
class PIRThresholds:
    """Filters applied when building the clean PIR table"""
    coverage: float = 10    # cells with coverage <= this are removed
    balance: float = 0.05   # cells with balance p-value < this are removed
    pir: float = 95         # introns whose minimum clean PIR exceeds this are removed


def calculate_pir(dat):
    """PIR = 100 * (EIJ1 + EIJ2) / (EIJ1 + EIJ2 + 2 * I); NaN if nothing was counted"""
    exclusion = dat['EIJ1'] + dat['EIJ2']
    denominator = exclusion + 2 * dat['I']
    pir = 100 * exclusion / denominator
    return pir.where(denominator != 0)


def calculate_coverage(dat):
    """Coverage = I + median(EIJ1, EIJ2, EEJ)"""
    return dat['I'] + dat[['EIJ1', 'EIJ2', 'EEJ']].median(axis=1, skipna=False)


def balance_pvalue(successes, trials, p=BALANCE_P):
    """One-sided binomial test p-value; 1 when there are no trials"""
    if np.isnan(successes) or np.isnan(trials):
        return np.nan
    if trials == 0:
        return 1.0
    return stats.binomtest(int(successes), int(trials), p=p, alternative='less').pvalue


def calculate_balance(dat):
    """
    Balance p-value of the junction reads.

    With lo and hi the rounded minimum and maximum of (EIJ1, EIJ2, EEJ),
    tests whether lo / (lo + hi) is significantly below 1/3.5.
    """
    counts = dat[['EIJ1', 'EIJ2', 'EEJ']]
    lo = np.round(counts.min(axis=1, skipna=False).to_numpy(dtype=float))
    hi = np.round(counts.max(axis=1, skipna=False).to_numpy(dtype=float))
    trials = lo + hi
    pvalues = [balance_pvalue(k, n) for k, n in zip(lo, trials)]
    return pd.Series(pvalues, index=dat.index, dtype=float)


def select_template_events(dat, template_ids):
    """
    Keep the rows whose Event is in the template and drop every identifier
    that occurs more than once (all occurrences).

    Returns the filtered table and the number of duplicated identifiers.
    """
    dat = dat[dat['Event'].isin(template_ids)]
    duplicated = dat['Event'].duplicated(keep=False)
    n_duplicated = dat.loc[duplicated, 'Event'].nunique()
    return dat[~duplicated].reset_index(drop=True), n_duplicated


def build_template_index(template_ids):
    """Map each junction ID to the template row(s) holding it"""
    index = defaultdict(list)
    for row, junc_id in enumerate(template_ids):
        index[junc_id].append(row)
    return dict(index)


def align_to_template(events, values, template_index, n_rows):
    """Place per-event values at their template rows; rows without a value stay NaN"""
    aligned = np.full(n_rows, np.nan)
    for event, value in zip(events, values):
        for row in template_index.get(event, ()):
            aligned[row] = value
    return aligned


def process_sample(sample, template_index, n_rows):
    """
    Compute template-aligned PIR, coverage and balance vectors for one sample.
    Runs in worker processes when several threads are requested.
    """
    dat = parse_count_file(sample.path)
    dat, n_duplicated = select_template_events(dat, list(template_index))

    events = dat['Event'].tolist()
    metrics = {
        'pir': align_to_template(events, calculate_pir(dat), template_index, n_rows),
        'coverage': align_to_template(events, calculate_coverage(dat), template_index, n_rows),
        'balance': align_to_template(events, calculate_balance(dat), template_index, n_rows),
    }
    return metrics, n_duplicated


def filter_clean_pir(pir, coverage, balance, thresholds=PIRThresholds(), rm_high=True):
    """
    Build the clean PIR table.

    Cells with coverage <= thresholds.coverage or balance < thresholds.balance
    are set to NaN. With rm_high, introns whose minimum remaining PIR exceeds
    thresholds.pir are removed in all samples; rows that are all NaN are left alone.
    """
    flagged = (coverage.to_numpy() <= thresholds.coverage) | (balance.to_numpy() < thresholds.balance)
    clean = pir.astype(float).mask(flagged)
    if rm_high:
        min_pir = clean.min(axis=1, skipna=True)
        clean.loc[min_pir > thresholds.pir, :] = np.nan
    return clean


def add_template_metadata(template, table):
    """Prepend the template's descriptive columns to a result table"""
    meta = template.iloc[:, :TEMPLATE_META_COLUMNS].reset_index(drop=True)
    return pd.concat([meta, table.reset_index(drop=True)], axis=1)


def merge_ir_samples(template, samples, thresholds=PIRThresholds(), rm_high=True,
                     verbose=False, threads=1):
    """
    Merge the read counts of all samples into PIR tables.

    Returns a dict with the 'pir', 'coverage', 'balance' and 'clean_pir'
    tables, each holding the template metadata followed by one column per
    sample in the order of samples.
    """
    template_ids = template[template_key_column(template)].tolist()
    template_index = build_template_index(template_ids)
    n_rows = len(template_ids)
    sample_names = [sample.name for sample in samples]

    pir = pd.DataFrame(np.nan, index=range(n_rows), columns=sample_names)
    coverage = pir.copy()
    balance = pir.copy()

    if threads > 1 and len(samples) > 1:
        if verbose:
            print(f"Processing {len(samples)} samples with {min(threads, len(samples))} processes...")
        pool = mp.Pool(min(threads, len(samples)))
        process_args = [(sample, template_index, n_rows) for sample in samples]
        results = pool.starmap(process_sample, process_args)
        pool.close()
        pool.join()
    else:
        results = []
        for sample in tqdm(samples, desc="Merging samples", disable=not verbose):
            if verbose:
                tqdm.write(sample.name)
            results.append(process_sample(sample, template_index, n_rows))

    for i, (sample, (metrics, n_duplicated)) in enumerate(zip(samples, results)):
        if verbose and n_duplicated:
            print(f"  {sample.name}: dropped {n_duplicated} duplicated junction IDs")
        pir.iloc[:, i] = metrics['pir']
        coverage.iloc[:, i] = metrics['coverage']
        balance.iloc[:, i] = metrics['balance']

    clean_pir = filter_clean_pir(pir, coverage, balance, thresholds, rm_high)

    return {
        'pir': add_template_metadata(template, pir),
        'coverage': add_template_metadata(template, coverage),
        'balance': add_template_metadata(template, balance),
        'clean_pir': add_template_metadata(template, clean_pir),
    }

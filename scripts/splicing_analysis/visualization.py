#!/usr/bin/env python3
"""
Visualization module - draws PSI and cRPKM plots across samples, one event
(or gene) per page of a PDF file.
"""

import re
import sys

import matplotlib.pyplot as plt
import matplotlib.colors as mcolors
import numpy as np
import pandas as pd
from matplotlib.backends.backend_pdf import PdfPages
from scipy import stats
from tqdm import tqdm

# Light colours, cycled when no plot configuration gives colours
COLORS = ['#8dd3c7', '#fb8072', '#bebada', '#80b1d3', '#fdb462', '#b3de69', '#fccde5', '#d9d9d9', '#bc80bd', '#ccebc5']

PSI_META_COLUMNS = 6
EXPR_META_COLUMNS = 2


def get_sample_columns(all_events, crpkm=False):
    """Value columns of a PSI table (skipping '-Q') or cRPKM table (skipping '-Counts')"""
    if crpkm:
        return [col for col in all_events.columns[EXPR_META_COLUMNS:] if not col.endswith('-Counts')]
    return [col for col in all_events.columns[PSI_META_COLUMNS:] if not col.endswith('-Q')]


def prepare_samples(all_events, config=None, crpkm=False):
    """
    Decide which samples are plotted, in which order and colour.

    Returns a DataFrame with the columns SampleName, Color and Group. With a
    plot configuration, only its samples that are present in the table are
    used, ordered by Order.
    """
    columns = get_sample_columns(all_events, crpkm)
    if config is None:
        return pd.DataFrame({
            'SampleName': columns,
            'Color': [COLORS[i % len(COLORS)] for i in range(len(columns))],
            'Group': [None] * len(columns),
        })

    config = config[config['SampleName'].isin(columns)].reset_index(drop=True)
    colors = []
    for i, color in enumerate(config.get('RColorCode', pd.Series([None] * len(config)))):
        if isinstance(color, str) and mcolors.is_color_like(color):
            colors.append(color)
        else:
            if isinstance(color, str):
                print(f"Warning: unknown colour '{color}' for {config['SampleName'][i]}, using default",
                      file=sys.stderr)
            colors.append(COLORS[i % len(COLORS)])
    groups = config['GroupName'].tolist() if 'GroupName' in config.columns else [None] * len(config)
    return pd.DataFrame({'SampleName': config['SampleName'].tolist(), 'Color': colors, 'Group': groups})


def figure_size(nsamples, width=None, height=None):
    """Page size in inches, growing with the number of samples beyond 8"""
    extra = max(0, nsamples - 8)
    w = 3.5 + 0.12 * extra if width is None else width
    h = 3.2 + 0.05 * extra if height is None else height
    return w, h


def parse_quality(quality):
    """
    Read the inclusion/exclusion read counts that follow '@' in a quality
    score, e.g. 'OK,OK,LOW,Bl,S@12.5,3' -> (12.5, 3.0). None if absent.
    """
    if not isinstance(quality, str):
        return None
    match = re.search(r'@([0-9.eE+-]+),([0-9.eE+-]+)\s*$', quality)
    if not match:
        return None
    try:
        return float(match.group(1)), float(match.group(2))
    except ValueError:
        return None


def psi_confidence_interval(inclusion, exclusion, level=0.95):
    """Beta posterior interval of PSI (0-100) from inclusion/exclusion reads"""
    alpha = (1 - level) / 2
    lower = stats.beta.ppf(alpha, inclusion + 1, exclusion + 1) * 100
    upper = stats.beta.ppf(1 - alpha, inclusion + 1, exclusion + 1) * 100
    return lower, upper


def event_values(event, samples, crpkm=False):
    """
    Values of one table row for the plotted samples.

    PSI values whose quality score is NA are treated as missing. Returns
    (values, lower, upper) arrays; bounds are NaN where no interval is known.
    """
    n = len(samples)
    values = np.full(n, np.nan)
    lower = np.full(n, np.nan)
    upper = np.full(n, np.nan)
    for i, sample in enumerate(samples['SampleName']):
        value = pd.to_numeric(event.get(sample), errors='coerce')
        if crpkm:
            values[i] = value
            continue
        quality = event.get(f"{sample}-Q", '')
        if pd.isna(quality):
            continue
        values[i] = value
        counts = parse_quality(quality)
        if counts is not None and not np.isnan(value):
            lower[i], upper[i] = psi_confidence_interval(*counts)
    return values, lower, upper


def plot_event(event, samples, crpkm=False, errorbar=True, groupmean=False, gridlines=True,
               figsize=(3.5, 3.2)):
    """Draw one PSI event (or cRPKM gene) and return the figure"""
    values, lower, upper = event_values(event, samples, crpkm)
    x = np.arange(1, len(samples) + 1)
    colors = samples['Color'].tolist()

    fig, ax = plt.subplots(figsize=figsize)
    if gridlines:
        ax.grid(True, linestyle=':', color='#bbbbbb', linewidth=0.6)
        ax.set_axisbelow(True)

    drawn = ~np.isnan(values)
    if errorbar and not crpkm:
        has_ci = drawn & ~np.isnan(lower)
        if has_ci.any():
            # reported PSI may fall outside the interval of the rounded read counts
            yerr = np.clip([values[has_ci] - lower[has_ci], upper[has_ci] - values[has_ci]], 0, None)
            ax.errorbar(x[has_ci], values[has_ci], yerr=yerr,
                        fmt='none', ecolor='#666666', elinewidth=0.6, capsize=1.5)
    if drawn.any():
        ax.scatter(x[drawn], values[drawn], c=[colors[i] for i in np.flatnonzero(drawn)],
                   s=18, edgecolors='black', linewidths=0.4, zorder=3)

    if groupmean:
        for group, members in samples.groupby('Group', sort=False):
            idx = members.index.to_numpy()
            group_values = values[idx]
            if np.isnan(group_values).all():
                continue
            ax.hlines(np.nanmean(group_values), x[idx].min() - 0.4, x[idx].max() + 0.4,
                      colors=members['Color'].iloc[0], linestyles='--', linewidth=0.8)

    ax.set_xlim(0.5, len(samples) + 0.5)
    ax.set_xticks(x)
    ax.set_xticklabels(samples['SampleName'], rotation=90, fontsize=6)
    ax.tick_params(axis='y', labelsize=7)
    if crpkm:
        ax.set_ylim(bottom=0)
        ax.set_ylabel('cRPKM', fontsize=8)
        ax.set_title(f"{event.get('NAME', '')} ({event.get('ID', '')})", fontsize=7)
    else:
        ax.set_ylim(0, 100)
        ax.set_ylabel('PSI', fontsize=8)
        ax.set_title(f"{event.get('GENE', '')} {event.get('EVENT', '')}\n"
                     f"{event.get('COORD', '')} ({event.get('LENGTH', '')} nt)", fontsize=7)
    fig.tight_layout()
    return fig


def plot_events_to_pdf(all_events, samples, output_file, crpkm=False, max_events=1000,
                       errorbar=True, groupmean=False, gridlines=True, figsize=(3.5, 3.2)):
    """Write one plot per row (up to max_events) into a multi-page PDF; returns the page count"""
    nplot = min(len(all_events), max_events)
    with plt.style.context('seaborn-v0_8-pastel'), PdfPages(output_file) as pdf:
        for i in tqdm(range(nplot), desc="Plotting", file=sys.stderr):
            fig = plot_event(all_events.iloc[i], samples, crpkm=crpkm, errorbar=errorbar,
                             groupmean=groupmean, gridlines=gridlines, figsize=figsize)
            pdf.savefig(fig)
            plt.close(fig)
    return nplot

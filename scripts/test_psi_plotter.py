#!/usr/bin/env python3
"""Tests for the PSI plotter"""

import os

import matplotlib
matplotlib.use('Agg')

import numpy as np
import pandas as pd
import pytest

from splicing_analysis.data_parser import load_plot_config
from splicing_analysis.plotter import check_header, filter_by_gene, main, output_file_for
from splicing_analysis.visualization import (
    COLORS,
    event_values,
    figure_size,
    parse_quality,
    prepare_samples,
    psi_confidence_interval,
)

PSI_TABLE = """GENE\tEVENT\tCOORD\tLENGTH\tFullCO\tCOMPLEX\tLiver\tLiver-Q\tBrain\tBrain-Q\tHeart\tHeart-Q
MAPT\tHsaEX0001\tchr17:100-200\t100\tchr17:50,100-200,300\tS\t20.5\tOK,OK,LOW,Bl,S@8,31\t85\tSOK,SOK,OK,OK,S@85,15\tNA\tN,N,N,Bl,S@0,0
PTBP2\tHsaEX0002\tchr1:500-560\t61\tchr1:400,500-560,700\tC1\t10\tOK,OK,OK,OK,S@10,90\t90\tNA\t50\tOK,OK,OK,OK,S@50,50
MAPK8\tHsaEX0003\tchr10:30-90\t61\tchr10:10,30-90,120\tS\t33\tOK,OK,OK,OK,S@33,67\t40\tOK,OK,OK,OK,S@40,60\t60\tOK,OK,OK,OK,S@60,40
"""

EXPR_TABLE = """ID\tNAME\tLiver\tLiver-Counts\tBrain\tBrain-Counts
ENSG1\tMAPT\t1.5\t30\t120.2\t2400
ENSG2\tPTBP2\t20\t400\t5\t100
"""

CONFIG = """Order\tSampleName\tGroupName\tRColorCode
2\tLiver\tEndoderm\tnot_a_colour
1\tBrain\tEctoderm\t#ff0000
3\tKidney\tMesoderm\tblue
"""


@pytest.fixture
def psi_file(tmp_path):
    path = tmp_path / 'INCLUSION_LEVELS_FULL-Hsa3.tab'
    path.write_text(PSI_TABLE)
    return path


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / 'psiplotter.config'
    path.write_text(CONFIG)
    return path


def test_output_file_names(tmp_path):
    assert output_file_for('/data/INCLUSION_LEVELS.tab') == '/data/INCLUSION_LEVELS.PSI_plots.pdf'
    assert output_file_for('/data/cRPKM.tab.gz', crpkm=True) == '/data/cRPKM.cRPKM_plots.pdf'
    assert output_file_for(None) == 'PSI_plots.pdf'
    out_dir = tmp_path / 'plots' / 'deep'
    assert output_file_for('/data/events', output_dir=str(out_dir)) == str(out_dir / 'events.PSI_plots.pdf')
    assert out_dir.is_dir()


def test_figure_size_grows_after_eight_samples():
    assert figure_size(8) == (3.5, 3.2)
    assert figure_size(18) == pytest.approx((4.7, 3.7))
    assert figure_size(18, width=10) == pytest.approx((10, 3.7))


def test_parse_quality():
    assert parse_quality('OK,OK,LOW,Bl,S@12.5,3') == (12.5, 3.0)
    assert parse_quality('N,N,N') is None
    assert parse_quality(np.nan) is None


def test_confidence_interval_is_symmetric_for_balanced_reads():
    lower, upper = psi_confidence_interval(10, 10)
    assert lower < 50 < upper
    assert lower + upper == pytest.approx(100)


def test_prepare_samples_without_config(psi_file):
    samples = prepare_samples(pd.read_csv(psi_file, sep='\t'))
    assert samples['SampleName'].tolist() == ['Liver', 'Brain', 'Heart']
    assert samples['Color'].tolist() == COLORS[:3]


def test_prepare_samples_with_config(psi_file, config_file):
    samples = prepare_samples(pd.read_csv(psi_file, sep='\t'), load_plot_config(config_file))
    assert samples['SampleName'].tolist() == ['Brain', 'Liver']
    assert samples['Color'][0] == '#ff0000'
    assert samples['Color'][1] == COLORS[1]
    assert samples['Group'].tolist() == ['Ectoderm', 'Endoderm']


def test_na_quality_is_not_plotted(psi_file):
    all_events = pd.read_csv(psi_file, sep='\t')
    samples = prepare_samples(all_events)
    values, lower, upper = event_values(all_events.iloc[1], samples)
    assert values[0] == 10
    assert np.isnan(values[1])
    assert values[2] == 50
    assert lower[2] < 50 < upper[2]


def test_expression_samples_skip_count_columns(tmp_path):
    path = tmp_path / 'cRPKM.tab'
    path.write_text(EXPR_TABLE)
    all_events = pd.read_csv(path, sep='\t')
    samples = prepare_samples(all_events, crpkm=True)
    assert samples['SampleName'].tolist() == ['Liver', 'Brain']
    values, _, _ = event_values(all_events.iloc[0], samples, crpkm=True)
    np.testing.assert_allclose(values, [1.5, 120.2])


def test_check_header(psi_file):
    all_events = pd.read_csv(psi_file, sep='\t')
    check_header(all_events)
    with pytest.raises(ValueError, match='Invalid column names'):
        check_header(all_events, crpkm=True)


def test_filter_by_gene(psi_file):
    filtered = filter_by_gene(pd.read_csv(psi_file, sep='\t'), '^MAP')
    assert filtered['GENE'].tolist() == ['MAPT', 'MAPK8']


def test_main_writes_pdf(psi_file, config_file, tmp_path):
    outfile, nplot = main([str(psi_file), '-c', str(config_file), '-u', 'TRUE', '-o', str(tmp_path / 'out')])
    assert outfile == str(tmp_path / 'out' / 'INCLUSION_LEVELS_FULL-Hsa3.PSI_plots.pdf')
    assert nplot == 3
    with open(outfile, 'rb') as fh:
        assert fh.read(4) == b'%PDF'


def test_main_limits_number_of_plots(psi_file, capsys):
    outfile, nplot = main([str(psi_file), '-m', '2', '-v', 'FALSE', '-E', 'TRUE'])
    assert nplot == 2
    assert os.path.exists(outfile)
    assert 'Only the first 2 events' in capsys.readouterr().err


def test_main_expression_mode(tmp_path):
    path = tmp_path / 'cRPKM-Hsa3.tab'
    path.write_text(EXPR_TABLE)
    outfile, nplot = main([str(path), '--expr', 'TRUE', '--gene', 'PTBP'])
    assert outfile == str(tmp_path / 'cRPKM-Hsa3.cRPKM_plots.pdf')
    assert nplot == 1


def test_main_rejects_bad_input(psi_file, tmp_path):
    with pytest.raises(SystemExit, match="doesn't exist"):
        main([str(tmp_path / 'missing.tab')])
    with pytest.raises(SystemExit, match="doesn't exist"):
        main([str(psi_file), '-c', str(tmp_path / 'missing.config')])
    with pytest.raises(SystemExit, match='No matching events found'):
        main([str(psi_file), '--gene', 'NOTAGENE'])
    with pytest.raises(SystemExit, match='Invalid column names'):
        main([str(psi_file), '--expr', 'TRUE'])
    with pytest.raises(SystemExit, match='Missing arguments'):
        main([])

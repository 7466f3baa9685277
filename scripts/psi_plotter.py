#!/usr/bin/env python3
"""
Entry script for the PSI plotter - plots PSI or cRPKM values across samples,
one event per PDF page.
"""

from splicing_analysis.plotter import main

if __name__ == "__main__":
    main()

#!/usr/bin/env python3
"""
Entry script for the PIR table merger - merges per-sample intron retention
read counts into raw PIR, coverage, balance and clean PIR tables.
"""

from splicing_analysis.main import main

if __name__ == "__main__":
    main()

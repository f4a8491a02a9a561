# SPDX-License-Identifier: Apache-2.0
"""FHE-GWAS ledger: encrypted genomic datasets, association analysis and reveal workflow."""

__version__ = "0.1.0"
